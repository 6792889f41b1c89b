# image_service/main.py
import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sentry_sdk.integrations.fastapi import FastApiIntegration

from image_service import models  # noqa: F401  (registreert SQLAlchemy modellen)
from image_service.core.exception_handlers import register_exception_handlers
from image_service.core.logging_config import logger, setup_logging
from image_service.core.rate_limit import limiter
from image_service.core.settings import get_settings
from image_service.db import Base, get_database
from image_service.middleware import LoggingMiddleware, RequestIdMiddleware
from image_service.observability.metrics import router as metrics_router
from image_service.routers import health, images


def create_app() -> FastAPI:
    settings = get_settings()

    setup_logging(settings.LOG_LEVEL)
    if settings.SENTRY_DSN:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.APP_ENV,
            integrations=[FastApiIntegration()],
            send_default_pii=False,
        )

    app = FastAPI(title="Image Service", version="0.1.0")

    # ----------------------------------------------------
    # Middleware (laatst toegevoegd = buitenste laag)
    # ----------------------------------------------------
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.state.limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )

    register_exception_handlers(app)

    # ----------------------------------------------------
    # Routers
    # ----------------------------------------------------
    app.include_router(health.router)
    app.include_router(images.router)
    app.include_router(metrics_router)  # /metrics

    @app.on_event("startup")
    def on_startup():
        logger.info("startup", service=settings.SERVICE_NAME, env=settings.APP_ENV)
        if settings.CREATE_TABLES_ON_STARTUP:
            Base.metadata.create_all(bind=get_database().engine)

    return app


app = create_app()
