"""
    Centralized exception handling for the FastAPI application.
"""
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
import logging

log = logging.getLogger(__name__)

class APIException(Exception):
    """Base class for API exceptions."""
    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(self.detail)

class ImageNotFoundException(APIException):
    """Exception for when an image is not found."""
    def __init__(self, image_id: str):
        super().__init__(status_code=404, detail=f"Image with ID '{image_id}' not found.")

class FileTooLargeException(APIException):
    """Upload exceeds the configured size limit."""
    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            status_code=413,
            detail=f"File size {size} exceeds maximum allowed size of {limit} bytes",
        )

class UnsupportedImageTypeException(APIException):
    """Declared content type is not in the allow-set."""
    def __init__(self, content_type: str):
        self.content_type = content_type
        super().__init__(status_code=415, detail=f"Unsupported content type: {content_type}")

class InvalidImageException(APIException):
    """Exception for invalid image files."""
    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)

class ImageDecodeException(InvalidImageException):
    """Full decode of an upload failed. Reported as an invalid image."""

class StorageIOException(APIException):
    """Exception for failures writing or removing derivative files."""
    def __init__(self, detail: str):
        super().__init__(status_code=500, detail=detail)

class MetadataStoreException(APIException):
    """Exception for DynamoDB failures."""
    def __init__(self, detail: str):
        super().__init__(status_code=500, detail=detail)

class EntityAccessDeniedException(APIException):
    """Caller does not own the target entity or image."""
    def __init__(self, resource: str, resource_id):
        super().__init__(
            status_code=403,
            detail=f"You don't have permission to access {resource} '{resource_id}'.",
        )

async def api_exception_handler(request: Request, exc: APIException):
    """Handles API exceptions."""
    if exc.status_code >= 500:
        log.error("API Exception: %s", exc.detail, exc_info=exc)
    else:
        log.warning("API Exception: %s", exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )

async def http_exception_handler(request: Request, exc: HTTPException):
    """Handles FastAPI HTTP exceptions."""
    log.error("HTTP Exception: %s", exc.detail, exc_info=exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )

async def generic_exception_handler(request: Request, exc: Exception):
    """Handles all other exceptions."""
    log.error("Unhandled Exception: %s", exc, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred."},
    )

def add_exception_handlers(app):
    """Adds exception handlers to the FastAPI app."""
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
