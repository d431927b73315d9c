"""
Request-scoped panel ingestion and listing on top of the store and file storage.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError

from panel_server.config import Settings
from panel_server.db import (
    DEFAULT_LIST_LIMIT,
    PanelRecord,
    PanelStore,
    SqlPanelStore,
    now_millis,
)
from panel_server.errors import (
    ImageProcessingError,
    PanelListingError,
    PanelNotFoundError,
    StorageWriteError,
)
from panel_server.imaging import (
    ImageDecodeError,
    RenderedImage,
    RenditionSpec,
    derive_renditions,
)
from panel_server.storage import FileKind, FileStorage, LocalFileStorage

logger = logging.getLogger(__name__)

DEFAULT_CHAIN_ID = "unknown"
DEFAULT_AUTHOR_ID = "anonymous"


@dataclass
class IngestResult:
    record: PanelRecord
    image_url: str
    thumb_url: str


@dataclass
class PanelService:
    """
    Everything a request needs, built once at startup and shared by handlers.
    """

    store: PanelStore
    files: FileStorage
    full_spec: RenditionSpec
    thumb_spec: RenditionSpec
    base_url: str
    list_limit: int = DEFAULT_LIST_LIMIT

    @classmethod
    def from_settings(cls, settings: Settings) -> "PanelService":
        files = LocalFileStorage(
            upload_dir=settings.upload_dir, thumb_dir=settings.thumb_dir
        )
        files.ensure_directories()
        store = SqlPanelStore(settings.database_url)
        return cls(
            store=store,
            files=files,
            full_spec=RenditionSpec(
                name="full",
                max_width=settings.full_max_width,
                quality=settings.full_quality,
            ),
            thumb_spec=RenditionSpec(
                name="thumb",
                max_width=settings.thumb_max_width,
                quality=settings.thumb_quality,
                suffix="_thumb",
            ),
            base_url=settings.public_base_url,
        )

    async def ingest(
        self,
        data: bytes,
        *,
        chain_id: Optional[str] = None,
        author_id: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> IngestResult:
        """
        Transcodes, stores and records one panel.

        Steps run in order and any failure stops the rest: render both
        renditions, write the full file, write the thumbnail, insert the row.
        Files written before a failure are removed again, so no row ever
        points at a missing file and failed uploads leave nothing behind.
        """
        panel_id = str(uuid.uuid4())
        chain_id = chain_id or DEFAULT_CHAIN_ID
        author_id = author_id or DEFAULT_AUTHOR_ID

        try:
            full, thumb = await run_in_threadpool(
                derive_renditions, data, (self.full_spec, self.thumb_spec)
            )
        except ImageDecodeError as e:
            logger.warning("Panel %s: decode failed: %s", panel_id, e)
            raise ImageProcessingError() from e

        written: list[tuple[FileKind, str]] = []
        try:
            image_path = await self._write(panel_id, "uploads", full, written)
            thumb_path = await self._write(panel_id, "thumbs", thumb, written)

            record = PanelRecord(
                id=panel_id,
                chain_id=chain_id,
                author_id=author_id,
                image_path=image_path,
                thumb_path=thumb_path,
                created_at=now_millis(),
            )
            try:
                await run_in_threadpool(self.store.insert_panel, record)
            except (SQLAlchemyError, ValueError) as e:
                logger.exception("Panel %s: metadata insert failed", panel_id)
                raise StorageWriteError() from e
        except BaseException:
            await self._discard(panel_id, written)
            raise

        prefix = (base_url or self.base_url).rstrip("/")
        logger.info(
            "Stored panel %s (chain=%s, author=%s, full=%dx%d, thumb=%dx%d)",
            panel_id,
            chain_id,
            author_id,
            full.width,
            full.height,
            thumb.width,
            thumb.height,
        )
        return IngestResult(
            record=record,
            image_url=f"{prefix}{image_path}",
            thumb_url=f"{prefix}{thumb_path}",
        )

    async def _write(
        self,
        panel_id: str,
        kind: FileKind,
        rendition: RenderedImage,
        written: list[tuple[FileKind, str]],
    ) -> str:
        filename = rendition.spec.filename(panel_id)
        try:
            path = await run_in_threadpool(
                self.files.write, kind, filename, rendition.data
            )
        except OSError as e:
            logger.exception("Panel %s: writing %s rendition failed", panel_id, rendition.spec.name)
            raise StorageWriteError() from e
        written.append((kind, filename))
        return path

    async def _discard(self, panel_id: str, written: list[tuple[FileKind, str]]) -> None:
        for kind, filename in written:
            try:
                await run_in_threadpool(self.files.remove, kind, filename)
            except OSError:
                logger.exception(
                    "Panel %s: could not remove %s/%s after failed upload",
                    panel_id,
                    kind,
                    filename,
                )

    def list_panels(self, chain_id: Optional[str] = None) -> list[PanelRecord]:
        try:
            return self.store.list_recent(limit=self.list_limit, chain_id=chain_id)
        except SQLAlchemyError as e:
            logger.exception("Listing panels failed (chain=%s)", chain_id)
            raise PanelListingError() from e

    def get_panel(self, panel_id: str) -> PanelRecord:
        try:
            record = self.store.get_panel(panel_id)
        except SQLAlchemyError as e:
            logger.exception("Loading panel %s failed", panel_id)
            raise PanelListingError() from e
        if record is None:
            raise PanelNotFoundError()
        return record
