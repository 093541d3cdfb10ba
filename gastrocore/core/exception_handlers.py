import logging
import uuid
from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder

from gastrocore.core.errors import CoreError, DuplicateMovement, LimitExceeded

log = logging.getLogger("gastrocore.api")

# Expected outcomes; logged quietly
_BENIGN_ERRORS = (DuplicateMovement, LimitExceeded)


# Generate a clean request id for every response
def _rid():
    """Generates a unique request ID for tracing."""
    return uuid.uuid4().hex


# ----------- Exception Handlers (called by FastAPI) -----------

def core_error_handler(request: Request, exc: CoreError):
    """Maps typed core failures to the error envelope with their own code."""
    if isinstance(exc, _BENIGN_ERRORS):
        log.info(f"{exc.code} on {request.url.path}: {exc.message}")
    elif exc.status_code >= 500:
        log.error(f"{exc.code} on {request.url.path}: {exc.message}")
    else:
        log.warning(f"{exc.code} on {request.url.path}: {exc.message}")

    body = {
        "success": False,
        "error": exc.to_dict(),
        "request_id": _rid(),
    }
    return JSONResponse(status_code=exc.status_code, content=body)


def http_exception_handler(request: Request, exc: HTTPException):
    """Handles exceptions raised by HTTPException (e.g., 404, 400)."""
    body = {
        "success": False,
        "error": {
            "code": "http_error",
            "message": exc.detail,
        },
        "request_id": _rid(),
    }
    return JSONResponse(status_code=exc.status_code, content=body)


def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handles Pydantic validation errors (422 Unprocessable Entity)."""
    body = {
        "success": False,
        "error": {
            "code": "validation_error",
            "message": "Invalid input data",
            "details": jsonable_encoder(
                [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]
            ),
        },
        "request_id": _rid(),
    }
    return JSONResponse(status_code=422, content=body)


def generic_exception_handler(request: Request, exc: Exception):
    """Handles all unhandled exceptions (500 Internal Server Error)."""
    # Unexpected failures are bugs; keep the full traceback
    log.error(f"Unhandled exception on path: {request.url.path}", exc_info=exc)

    body = {
        "success": False,
        "error": {
            "code": "server_error",
            "message": "Internal Server Error",
        },
        "request_id": _rid(),
    }
    return JSONResponse(status_code=500, content=body)


# ----------- Registration Function -----------

def setup_exception_handlers(app: FastAPI):
    """Registers all custom exception handlers with the FastAPI application."""
    app.add_exception_handler(CoreError, core_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    return app
