"""
Configuration and settings for the panel upload service.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535)
    log_level: str = Field(default="INFO")

    # Storage roots. Unset directories are placed under data_dir.
    data_dir: str = Field(default="./data")
    upload_dir: Optional[str] = Field(default=None)
    thumb_dir: Optional[str] = Field(default=None)

    # Metadata store (SQLite file by default, any SQLAlchemy URL accepted)
    database_url: Optional[str] = Field(default=None)

    # Request body cap for POST /upload
    max_upload_mb: float = Field(default=5, gt=0)

    # Public URL prefix used in upload responses
    base_url: Optional[str] = Field(default=None)
    trust_forwarded_headers: bool = Field(default=False)

    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Renditions
    full_max_width: int = Field(default=1080, ge=1)
    full_quality: int = Field(default=75, ge=1, le=100)
    thumb_max_width: int = Field(default=400, ge=1)
    thumb_quality: int = Field(default=60, ge=1, le=100)

    @model_validator(mode="after")
    def _fill_derived_defaults(self) -> "Settings":
        data_dir = Path(self.data_dir or ".")
        if not self.upload_dir:
            self.upload_dir = (data_dir / "uploads").as_posix()
        if not self.thumb_dir:
            self.thumb_dir = (data_dir / "thumbs").as_posix()
        if not self.database_url:
            self.database_url = f"sqlite:///{(data_dir / 'db.sqlite').as_posix()}"
        return self

    @property
    def base_url_configured(self) -> bool:
        return bool(self.base_url)

    @property
    def public_base_url(self) -> str:
        if self.base_url:
            return self.base_url.rstrip("/")
        return f"http://localhost:{self.port}"

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_upload_mb * 1024 * 1024)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
