import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class APIError(Exception):
    def __init__(self, code: str, message: str, status_code: int = 400, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class SearchEngineError(APIError):
    """Typesense rejected a request or could not be reached.

    ``engine_status`` is the HTTP status returned by Typesense, or ``None`` when
    the request never got a response.
    """

    def __init__(
        self,
        message: str,
        engine_status: int | None = None,
        details: dict[str, Any] | None = None,
        code: str = "search_engine_error",
        status_code: int = 502,
    ):
        super().__init__(code, message, status_code=status_code, details=details)
        self.engine_status = engine_status


class CollectionNotFoundError(SearchEngineError):
    def __init__(self, collection_name: str, details: dict[str, Any] | None = None):
        super().__init__(
            f'Collection "{collection_name}" does not exist',
            engine_status=404,
            details={"collection_name": collection_name, **(details or {})},
            code="collection_not_found",
            status_code=404,
        )
        self.collection_name = collection_name


class DocumentConflictError(SearchEngineError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, engine_status=409, details=details, code="document_conflict", status_code=409)


class SchemaProvisionError(APIError):
    def __init__(self, collection_name: str, step: str, cause: APIError):
        super().__init__(
            "schema_provision_failed",
            f'Provisioning collection "{collection_name}" failed during {step}: {cause.message}',
            status_code=502,
            details={"collection_name": collection_name, "step": step, "cause": cause.code, **cause.details},
        )
        self.collection_name = collection_name
        self.step = step
        self.cause = cause


class ResultShapeError(APIError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__("invalid_search_response", message, status_code=502, details=details)


class InvalidSearchRequest(APIError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__("invalid_search_request", message, status_code=400, details=details)


class SourceNotFoundError(APIError):
    def __init__(self, path: str):
        super().__init__("source_not_found", f"File not found: {path}", status_code=400, details={"path": path})
        self.path = path


def _error_payload(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"error": code, "message": message}
    if details:
        payload["details"] = details
    return payload


def _is_diagnostic(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return settings is not None and settings.environment == "dev"


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    details = exc.details if _is_diagnostic(request) else None
    return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.code, exc.message, details))


async def not_found_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return JSONResponse(
            status_code=404,
            content=_error_payload("not_found", f"Route {request.url.path} not found"),
        )
    return JSONResponse(status_code=exc.status_code, content=_error_payload("http_error", str(exc.detail)))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    fields = [".".join(str(part) for part in err.get("loc", ())[1:]) or "request" for err in errors]
    code = "invalid_search_request" if request.url.path.startswith("/api/search") else "invalid_request"
    details = {"errors": [{"field": f, "message": err.get("msg")} for f, err in zip(fields, errors)]}
    return JSONResponse(
        status_code=400,
        content=_error_payload(code, f"Invalid value for: {', '.join(fields)}", details),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", extra={"path": request.url.path})
    if _is_diagnostic(request):
        content = _error_payload("internal_error", str(exc), {"type": exc.__class__.__name__})
    else:
        content = _error_payload("internal_error", "Something went wrong")
    return JSONResponse(status_code=500, content=content)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, not_found_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
