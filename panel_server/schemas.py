"""
Pydantic schemas for the panel upload API.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel

from panel_server.db import PanelRecord


class UploadResponse(BaseModel):
    id: str
    imageUrl: str
    thumbUrl: str


class PanelOut(BaseModel):
    """A stored panel row as persisted, internal file paths included."""

    id: str
    chainId: Optional[str] = None
    authorId: Optional[str] = None
    imagePath: Optional[str] = None
    thumbPath: Optional[str] = None
    createdAt: Optional[int] = None

    @classmethod
    def from_record(cls, record: PanelRecord) -> "PanelOut":
        return cls(**record.as_dict())


class HealthResponse(BaseModel):
    status: Literal["ok"]
    timestamp: int


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
