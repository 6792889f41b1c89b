# image_service/core/errors.py
from typing import Optional


class ImageServiceError(Exception):
    """Base class for errors that map onto an HTTP status.

    ``public_message`` is what the client sees. For 5xx errors it is always
    generic; the real message stays on the exception for operator logs.
    """

    status_code: int = 500
    code: str = "internal_error"
    public_message: str = "Internal server error"

    def __init__(self, message: str = "", *, public_message: Optional[str] = None):
        super().__init__(message or self.public_message)
        if public_message is not None:
            self.public_message = public_message
        elif self.status_code < 500 and message:
            self.public_message = message


class Unauthenticated(ImageServiceError):
    status_code = 401
    code = "unauthenticated"
    public_message = "Not authenticated"


class ValidationError(ImageServiceError):
    status_code = 400
    code = "validation_error"
    public_message = "Invalid request"


class NotFound(ImageServiceError):
    status_code = 404
    code = "not_found"
    public_message = "Not found"


class UploadMissing(ImageServiceError):
    status_code = 409
    code = "upload_missing"
    public_message = "Upload has not completed yet"


class ConfigurationError(ImageServiceError):
    code = "configuration_error"


class CredentialError(ImageServiceError):
    code = "credential_error"


class PersistenceError(ImageServiceError):
    code = "persistence_error"
