# weekly_brief/exception_handling.py
from __future__ import annotations

from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .errors import PipelineError
from .logging_setup import get_logger

logger = get_logger("weekly_brief.exceptions")


async def pipeline_exception_handler(request: Request, exc: PipelineError):
    level = logger.exception if exc.status_code >= 500 else logger.warning
    level(
        "PIPELINE_ERROR",
        extra={"handled": True, "path": str(request.url.path), "status_code": exc.status_code, "error": exc.message},
    )
    return JSONResponse({"error": exc.message, **exc.extra}, status_code=exc.status_code)


async def http_exception_handler(request: Request, exc: HTTPException):
    logger.warning(
        "HTTP_EXCEPTION",
        extra={"handled": True, "path": str(request.url.path), "status_code": exc.status_code},
    )
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Invalid request"))
    logger.warning("VALIDATION_ERROR", extra={"handled": True, "path": str(request.url.path), "error": message})
    return JSONResponse({"error": message}, status_code=400)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(
        "UNHANDLED_EXCEPTION",
        extra={"handled": False, "path": str(request.url.path)},
    )
    return JSONResponse({"error": str(exc) or "Internal Server Error"}, status_code=500)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers in one place.
    Every error leaves the API as {"error": message}.
    """
    app.add_exception_handler(PipelineError, pipeline_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
