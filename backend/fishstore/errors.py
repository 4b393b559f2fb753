"""
Error taxonomy.

Business code raises these; the handlers registered by ``register_handlers``
turn them into JSON responses with the matching status code.
"""

from typing import Any, Dict, List, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger(__name__)

ROUTE_NOT_FOUND_MESSAGE = "Route not found"


class StoreError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": self.message}
        body.update(self.details)
        return body


class ValidationFailed(StoreError):
    status_code = 400
    message = "Validation failed"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message, errors=errors or [])


class InvalidCredentials(StoreError):
    status_code = 401
    message = "Invalid credentials"


class Unauthenticated(StoreError):
    status_code = 401
    message = "Token is not valid"


class Forbidden(StoreError):
    status_code = 403
    message = "Access denied. Admin required."


class DuplicateEmail(StoreError):
    status_code = 400
    message = "User already exists with this email"


class ProductUnavailable(StoreError):
    status_code = 400

    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} not found", productId=product_id)


class InsufficientStock(StoreError):
    status_code = 400

    def __init__(self, product_id: int, product_name: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for {product_name}",
            productId=product_id,
            requested=requested,
            available=available,
            shortfall=requested - available,
        )


class InvalidOrExpiredToken(StoreError):
    status_code = 400
    message = "Invalid or expired reset token"


class CategoryInUse(StoreError):
    status_code = 400
    message = "Cannot delete category with active products"


class NotFound(StoreError):
    status_code = 404

    def __init__(self, resource: str):
        super().__init__(f"{resource} not found")


class OrderNumberExhausted(StoreError):
    status_code = 503
    message = "Could not allocate an order number, please try again"


class UpstreamServiceFailure(StoreError):
    status_code = 502

    def __init__(self, service: str, message: Optional[str] = None):
        super().__init__(message or f"{service} request failed")
        self.service = service


class InternalError(StoreError):
    status_code = 500
    message = "Something went wrong!"


# ============================================================================
# HTTP MAPPING
# ============================================================================

def _validation_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    errors = []
    for error in exc.errors():
        # loc is ("body", "customerEmail") or ("query", "page")
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(location), "message": error.get("msg", "Invalid value")})
    return errors


def register_handlers(app: FastAPI, debug: bool = False) -> None:
    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        if exc.status_code >= 500:
            logger.error("Request failed", path=request.url.path, error=exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        # Unknown routes, wrong methods and HTTPExceptions raised by dependencies
        message = str(exc.detail)
        if exc.status_code == 404 and message == "Not Found":
            message = ROUTE_NOT_FOUND_MESSAGE
        return JSONResponse(status_code=exc.status_code, content={"message": message}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = _validation_errors(exc)
        logger.info("Validation failed", path=request.url.path, errors=errors)
        return JSONResponse(status_code=400, content={"message": "Validation failed", "errors": errors})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", path=request.url.path)
        content = InternalError().to_dict()
        if debug:
            content["error"] = str(exc)
        return JSONResponse(status_code=500, content=content)
