"""create image_records

Revision ID: 5c1e9a7d2b40
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "5c1e9a7d2b40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "image_records",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("owner_subject", sa.String(255), nullable=False),
        sa.Column("storage_key", sa.String(1024), nullable=False, unique=True),
        sa.Column("title", sa.String(200), nullable=False, server_default="Untitled"),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column(
            "status",
            sa.Enum("PENDING", "CONFIRMED", name="image_status"),
            nullable=False,
            server_default="PENDING",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_image_records_owner_subject", "image_records", ["owner_subject"])
    op.create_index(
        "ix_image_records_status_created",
        "image_records",
        ["status", "created_at", "id"],
    )


def downgrade():
    op.drop_index("ix_image_records_status_created", table_name="image_records")
    op.drop_index("ix_image_records_owner_subject", table_name="image_records")
    op.drop_table("image_records")
    sa.Enum(name="image_status").drop(op.get_bind(), checkfirst=True)
