"""
Error taxonomy and the JSON envelope every endpoint answers with.

Routes raise the exceptions below; the handlers registered by
`register_error_handlers` turn them into

    {"success": false, "message": "...", "errors": [...], "data": {...}}

with the matching HTTP status code.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from config import get_settings

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Any]] = None, data: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.errors = errors
        self.data = data
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Validation failed"


class DuplicateError(AppError):
    """Unique-constraint collision. `field` names the offending key."""

    status_code = 400
    default_message = "Duplicate value"

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"{field} already exists", errors=[{"field": field, "message": f"A record with this {field} already exists"}])


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class Unauthorized(AppError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(AppError):
    status_code = 403
    default_message = "Forbidden"


class InvalidStateError(AppError):
    status_code = 400
    default_message = "Invalid state"


class InternalError(AppError):
    status_code = 500


def envelope(success: bool = True, message: Optional[str] = None, data: Any = None, errors: Optional[List[Any]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": success}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    if errors is not None:
        body["errors"] = errors
    return body


def ok(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    return envelope(True, message=message, data=data)


def _field_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    out = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        out.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return out


def register_error_handlers(app: FastAPI) -> None:
    settings = get_settings()

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder(envelope(False, message=exc.message, data=exc.data, errors=exc.errors)),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=envelope(False, message="Validation failed", errors=_field_errors(exc)),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=envelope(False, message=str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        errors = None if settings.is_production else [str(exc)]
        return JSONResponse(status_code=500, content=envelope(False, message="Internal server error", errors=errors))
