"""
FastAPI application entry point for the panel upload service.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from panel_server import __version__
from panel_server.config import Settings, get_settings
from panel_server.errors import PanelServiceError
from panel_server.middleware import BodySizeLimitMiddleware
from panel_server.routes import router
from panel_server.service import PanelService

logger = logging.getLogger(__name__)


def _log_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    exc = context.get("exception")
    logger.error(
        "Unhandled error in background task: %s",
        context.get("message", "unknown"),
        exc_info=exc,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Errors escaping background tasks are logged; the server keeps running.
    asyncio.get_running_loop().set_exception_handler(_log_loop_exception)
    yield


async def _panel_error_handler(request: Request, exc: PanelServiceError):
    return JSONResponse(exc.as_dict(), status_code=exc.status_code)


async def _http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        {"error": str(exc.detail)},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    fields = ", ".join(
        ".".join(str(part) for part in error.get("loc", ())) for error in exc.errors()
    )
    return JSONResponse(
        {"error": "Invalid request", "details": f"Invalid fields: {fields}"},
        status_code=400,
    )


async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse({"error": "Internal server error"}, status_code=500)


def create_app(
    settings: Optional[Settings] = None, service: Optional[PanelService] = None
) -> FastAPI:
    """
    Builds the app and its service context.

    Storage directories and the metadata schema are created here, once per
    app; a failure to do so propagates and stops startup.
    """
    settings = settings or get_settings()
    service = service or PanelService.from_settings(settings)

    app = FastAPI(title="Panel Upload Service", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.panel_service = service

    app.add_middleware(
        BodySizeLimitMiddleware, max_bytes=settings.max_upload_bytes
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PanelServiceError, _panel_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    app.include_router(router)
    # StaticFiles never lists directories; only existing file names resolve.
    app.mount(
        "/uploads",
        StaticFiles(directory=settings.upload_dir, check_dir=False),
        name="uploads",
    )
    app.mount(
        "/thumbs",
        StaticFiles(directory=settings.thumb_dir, check_dir=False),
        name="thumbs",
    )
    return app
