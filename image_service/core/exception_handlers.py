# image_service/core/exception_handlers.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from slowapi.errors import RateLimitExceeded

from image_service.core.errors import ImageServiceError, ValidationError
from image_service.core.logging_config import logger


def _error_body(exc: ImageServiceError) -> dict:
    return {"error": {"code": exc.code, "message": exc.public_message}}


def image_service_error_handler(request: Request, exc: ImageServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        # oorzaak alleen in de logs, nooit naar de client
        logger.error(
            "request_failed",
            path=request.url.path,
            error_type=exc.__class__.__name__,
            error=str(exc),
            exc_info=exc,
        )
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc), headers=headers)


def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()]
    err = ValidationError(f"invalid fields: {', '.join(fields) or 'body'}")
    return JSONResponse(status_code=err.status_code, content=_error_body(err))


def ratelimit_handler(request: Request, exc: RateLimitExceeded) -> PlainTextResponse:
    return PlainTextResponse(str(exc), status_code=429)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ImageServiceError, image_service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(RateLimitExceeded, ratelimit_handler)
