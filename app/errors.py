from typing import Dict, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from config import AUTH_REALM


class ImageHostError(HTTPException):
    """Base class for errors that are reported to the caller as {"error": ...}."""
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(
            status_code=self.status_code,
            detail=message or self.default_message,
            headers=headers,
        )


class ValidationError(ImageHostError):
    status_code = 400
    default_message = "Invalid request"


class AuthError(ImageHostError):
    status_code = 401
    default_message = "Authentication required"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, headers={"WWW-Authenticate": f'Basic realm="{AUTH_REALM}"'})


class NotFoundError(ImageHostError):
    status_code = 404
    default_message = "Not found"


class MissingBlobError(ImageHostError):
    # Metadata is present but the blob file is gone
    status_code = 404
    default_message = "File missing"


class ConflictError(ImageHostError):
    status_code = 409
    default_message = "This ID already exists"


class PayloadTooLargeError(ImageHostError):
    status_code = 413
    default_message = "File too large"


class InternalError(ImageHostError):
    status_code = 500
    default_message = "Server error"


async def image_host_error_handler(request: Request, exc: ImageHostError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=exc.headers,
    )
