# image_service/aws/errors.py
from botocore.exceptions import ClientError

AUTH_FAILURE_CODES = {
    "AccessDenied",
    "AccessDeniedException",
    "ExpiredToken",
    "ExpiredTokenException",
    "InvalidAccessKeyId",
    "InvalidClientTokenId",
    "SignatureDoesNotMatch",
    "UnrecognizedClientException",
}

NOT_FOUND_CODES = {
    "404",
    "NoSuchKey",
    "NotFound",
    "ParameterNotFound",
    "ResourceNotFoundException",
}


def error_code(e: ClientError) -> str:
    return (e.response.get("Error", {}) or {}).get("Code", "")


def is_auth_failure(e: ClientError) -> bool:
    return error_code(e) in AUTH_FAILURE_CODES


def is_not_found(e: ClientError) -> bool:
    return error_code(e) in NOT_FOUND_CODES


def aws_request_id(e: ClientError) -> str | None:
    return (e.response.get("ResponseMetadata", {}) or {}).get("RequestId")
