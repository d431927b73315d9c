"""
Streaming multipart parsing for panel uploads.
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator

from starlette.datastructures import Headers
from starlette.formparsers import MultiPartParser

from panel_server.errors import UnsupportedMediaError

logger = logging.getLogger(__name__)

FILE_FIELD = "panel"


class PanelUploadParser(MultiPartParser):
    """
    Multipart parser that accepts at most one file and checks the file part's
    declared content type as soon as its headers are parsed.

    A non-image part raises UnsupportedMediaError from inside the parse loop,
    so the rest of the request body is never read.
    """

    def __init__(
        self,
        headers: Headers,
        stream: AsyncGenerator[bytes, None],
        *,
        file_field: str = FILE_FIELD,
    ):
        super().__init__(headers, stream, max_files=1)
        self.file_field = file_field

    def on_headers_finished(self) -> None:
        super().on_headers_finished()
        part = self._current_part
        if part.file is None or part.field_name != self.file_field:
            return
        content_type = part.file.content_type or ""
        if not content_type.startswith("image/"):
            logger.warning(
                "Rejected upload %r with content type %r",
                part.file.filename,
                content_type,
            )
            raise UnsupportedMediaError()
