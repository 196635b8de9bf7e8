"""
FastAPI application entry point for the file hosting service.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from filehost.config import get_settings
from filehost.errors import FileHostError
from filehost.routes import router

logger = logging.getLogger(__name__)


async def file_host_error_handler(request: Request, exc: FileHostError) -> JSONResponse:
    logger.info(
        "%s %s failed: %s (%s)",
        request.method,
        request.url.path,
        exc.message,
        type(exc).__name__,
    )
    return JSONResponse(content={"error": exc.message}, status_code=exc.status_code)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = next(
        (str(part) for part in reversed(first.get("loc", ())) if isinstance(part, str)),
        "",
    )
    if first.get("type") == "missing" and field:
        return f"{field} is required"
    if field and field != "body":
        return f"{field}: {first.get('msg', 'invalid value')}"
    return first.get("msg", "Invalid request")


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # Malformed payloads share the {"error": ...} envelope with domain errors.
    message = _validation_message(exc)
    logger.info("%s %s rejected: %s", request.method, request.url.path, message)
    return JSONResponse(content={"error": message}, status_code=400)


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=logging.INFO)
    app = FastAPI(title="File Host", version="0.1.0")
    app.add_exception_handler(FileHostError, file_host_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
