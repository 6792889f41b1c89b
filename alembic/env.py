from logging.config import fileConfig

from alembic import context

from image_service import models  # noqa: F401  (registreert SQLAlchemy modellen)
from image_service.db import Base, get_database

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_online() -> None:
    # zelfde engine als de app: DATABASE_URL of SSM pointer -> RDS secret
    engine = get_database().engine
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


run_migrations_online()
