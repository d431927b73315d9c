"""
HTTP routes for the panel upload API.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Request
from starlette.datastructures import FormData, UploadFile
from starlette.formparsers import MultiPartException

from panel_server.db import now_millis
from panel_server.dependencies import (
    get_app_settings,
    get_panel_service,
    request_base_url,
)
from panel_server.config import Settings
from panel_server.errors import (
    EmptyUploadError,
    MalformedUploadError,
    MissingFileError,
    UploadTooLargeError,
)
from panel_server.formparsers import FILE_FIELD, PanelUploadParser
from panel_server.schemas import (
    ErrorResponse,
    HealthResponse,
    PanelOut,
    UploadResponse,
)
from panel_server.service import PanelService

logger = logging.getLogger(__name__)

router = APIRouter()


def _text_field(form: FormData, name: str) -> str | None:
    value = form.get(name)
    if isinstance(value, str) and value:
        return value
    return None


@router.post(
    "/upload",
    response_model=UploadResponse,
    responses={
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def upload_panel(
    request: Request,
    service: PanelService = Depends(get_panel_service),
    settings: Settings = Depends(get_app_settings),
):
    """
    Accepts one image in the multipart field `panel`, with optional
    `chainId` and `authorId` text fields.
    """
    media_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if media_type != "multipart/form-data":
        raise MissingFileError()

    parser = PanelUploadParser(request.headers, request.stream(), file_field=FILE_FIELD)
    try:
        form = await parser.parse()
    except MultiPartException as e:
        logger.warning("Rejected malformed upload: %s", e.message)
        raise MalformedUploadError() from e

    try:
        panel = form.get(FILE_FIELD)
        if not isinstance(panel, UploadFile):
            raise MissingFileError()
        if panel.size is not None and panel.size > settings.max_upload_bytes:
            raise UploadTooLargeError(settings.max_upload_bytes)

        data = await panel.read()
        chain_id = _text_field(form, "chainId")
        author_id = _text_field(form, "authorId")
    finally:
        await form.close()

    if not data:
        raise EmptyUploadError()

    result = await service.ingest(
        data,
        chain_id=chain_id,
        author_id=author_id,
        base_url=request_base_url(request),
    )
    return UploadResponse(
        id=result.record.id,
        imageUrl=result.image_url,
        thumbUrl=result.thumb_url,
    )


@router.get(
    "/panels",
    response_model=list[PanelOut],
    responses={500: {"model": ErrorResponse}},
)
def list_panels(
    chain_id: str | None = Query(None, alias="chainId"),
    service: PanelService = Depends(get_panel_service),
):
    """Newest panels first, at most 50, optionally for one chain."""
    records = service.list_panels(chain_id=chain_id or None)
    logger.info("Returning %d panels (chain=%s)", len(records), chain_id)
    return [PanelOut.from_record(r) for r in records]


@router.get(
    "/panels/{panel_id}",
    response_model=PanelOut,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def get_panel(panel_id: str, service: PanelService = Depends(get_panel_service)):
    return PanelOut.from_record(service.get_panel(panel_id))


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok", timestamp=now_millis())
