"""
Rendition file storage on the local filesystem, plus an in-memory test double.
"""

from __future__ import annotations

import logging
import os
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Literal, Protocol

logger = logging.getLogger(__name__)

FileKind = Literal["uploads", "thumbs"]

# Thumbnails share the id of their full rendition: "{id}_thumb.webp".
THUMB_MARKER = "_thumb"
TEMP_PREFIX = ".tmp-"


class FileStorage(Protocol):
    """Defines the operations the service needs from rendition storage."""

    def ensure_directories(self) -> None:
        ...

    def write(self, kind: FileKind, filename: str, data: bytes) -> str:
        ...

    def remove(self, kind: FileKind, filename: str) -> bool:
        ...


def public_path(kind: FileKind, filename: str) -> str:
    return f"/{kind}/{filename}"


def panel_id_from_filename(filename: str) -> str | None:
    """Returns the panel id encoded in a rendition filename."""
    if filename.startswith("."):
        return None
    stem = Path(filename).stem
    if not stem:
        return None
    if stem.endswith(THUMB_MARKER):
        stem = stem[: -len(THUMB_MARKER)]
    return stem or None


@dataclass
class InMemoryFileStorage:
    """Test double for rendition storage."""

    files: dict = field(default_factory=dict)

    def ensure_directories(self) -> None:
        return None

    def write(self, kind: FileKind, filename: str, data: bytes) -> str:
        self.files[(kind, filename)] = data
        return public_path(kind, filename)

    def remove(self, kind: FileKind, filename: str) -> bool:
        return self.files.pop((kind, filename), None) is not None


@dataclass
class LocalFileStorage:
    """
    Writes renditions under two directories, one per public mount.
    """

    upload_dir: str
    thumb_dir: str

    def directory(self, kind: FileKind) -> Path:
        if kind == "uploads":
            return Path(self.upload_dir)
        if kind == "thumbs":
            return Path(self.thumb_dir)
        raise ValueError(f"Unknown file kind: {kind}")

    def ensure_directories(self) -> None:
        for kind in ("uploads", "thumbs"):
            path = self.directory(kind)
            path.mkdir(parents=True, exist_ok=True)
            logger.info("Storage directory ready: %s", path.resolve())

    def _target(self, kind: FileKind, filename: str) -> Path:
        if not filename or os.path.basename(filename) != filename:
            raise ValueError(f"Invalid rendition filename: {filename!r}")
        return self.directory(kind) / filename

    def write(self, kind: FileKind, filename: str, data: bytes) -> str:
        """
        Writes data atomically and returns the public path of the file.

        The bytes go to a temporary sibling first and are renamed into place
        after fsync, so a served file is never partially written.
        """
        target = self._target(kind, filename)
        fd, temp_name = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=target.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(temp_name, 0o644)
            os.replace(temp_name, target)
        except BaseException:
            try:
                os.unlink(temp_name)
            except FileNotFoundError:
                pass
            raise
        return public_path(kind, filename)

    def remove(self, kind: FileKind, filename: str) -> bool:
        try:
            self._target(kind, filename).unlink()
        except FileNotFoundError:
            return False
        return True

    def iter_files(self) -> Iterable[tuple[FileKind, Path]]:
        for kind in ("uploads", "thumbs"):
            directory = self.directory(kind)
            if not directory.is_dir():
                continue
            for path in directory.iterdir():
                if path.is_file():
                    yield kind, path

    def sweep_orphans(
        self,
        known_ids: set[str],
        *,
        min_age_seconds: float = 3600,
        dry_run: bool = False,
    ) -> list[Path]:
        """
        Removes rendition files whose panel id has no metadata row.

        Files younger than min_age_seconds are left alone because their upload
        may still be in flight. Stale temporary files from interrupted writes
        are removed under the same age rule.

        Returns:
            The paths that were (or, with dry_run, would be) removed.
        """
        cutoff = time.time() - min_age_seconds
        removed: list[Path] = []
        for _, path in self.iter_files():
            try:
                if path.stat().st_mtime > cutoff:
                    continue
            except FileNotFoundError:
                continue
            if path.name.startswith(TEMP_PREFIX):
                orphaned = True
            else:
                panel_id = panel_id_from_filename(path.name)
                orphaned = panel_id is not None and panel_id not in known_ids
            if not orphaned:
                continue
            if not dry_run:
                try:
                    path.unlink()
                except FileNotFoundError:
                    continue
                logger.info("Removed orphaned file %s", path)
            removed.append(path)
        return removed
