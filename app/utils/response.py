import logging

from fastapi import HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from jose import ExpiredSignatureError, JWTError
from sqlalchemy.exc import IntegrityError, OperationalError

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    """HTTPException carrying a machine-readable code and extra payload fields."""

    def __init__(self, status_code: int, detail: str, code: str | None = None, data=None):
        super().__init__(status_code=status_code, detail=detail)
        self.code = code
        self.data = data


def create_response(
    message: str,
    data=None,
    status_code: int = status.HTTP_200_OK,
    status_text: str | None = None,
    code: str | None = None,
    details=None,
) -> JSONResponse:
    """Return a consistent API response payload and status code."""
    payload_status = status_text or ("success" if status_code < 400 else "error")
    content = {
        "success": status_code < 400,
        "message": message,
        "data": jsonable_encoder(data),
        "status": payload_status,
        "status_code": status_code,
    }
    if code:
        content["code"] = code
    if details is not None:
        content["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status_code, content=content)


def handle_exception(error: Exception, fallback_message: str = "Internal server error") -> JSONResponse:
    """Coerce raised errors into the shared response structure."""
    if isinstance(error, ApiError):
        return create_response(error.detail, error.data, error.status_code, code=error.code)

    if isinstance(error, HTTPException):
        detail = error.detail if isinstance(error.detail, str) else str(error.detail)
        return create_response(detail, None, error.status_code, status_text="error")

    if isinstance(error, IntegrityError):
        logger.warning("Integrity error: %s", error.orig)
        return create_response(
            "Resource already exists",
            None,
            status.HTTP_409_CONFLICT,
            code="DUPLICATE_FIELD",
        )

    if isinstance(error, OperationalError):
        logger.error("Database operational error: %s", error.orig)
        return create_response(
            "Database connection error",
            None,
            status.HTTP_503_SERVICE_UNAVAILABLE,
            code="DATABASE_CONNECTION_ERROR",
        )

    if isinstance(error, ExpiredSignatureError):
        return create_response("Token expired", None, status.HTTP_401_UNAUTHORIZED, code="TOKEN_EXPIRED")

    if isinstance(error, JWTError):
        return create_response("Invalid token", None, status.HTTP_401_UNAUTHORIZED, code="INVALID_TOKEN")

    logger.error("Unhandled error", exc_info=error)
    return create_response(
        fallback_message,
        None,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        status_text="error",
        code="INTERNAL_ERROR",
    )
