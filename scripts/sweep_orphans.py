"""
Remove rendition files that have no metadata row.

Uploads that fail after writing a file clean up after themselves, but a crash
between the file writes and the metadata insert can still leave files behind.
Run this periodically (dry-run by default) to reclaim them.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from panel_server.config import get_settings
from panel_server.db import SqlPanelStore
from panel_server.storage import LocalFileStorage

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Sweep orphaned panel files")
    parser.add_argument(
        "--min-age-seconds",
        type=float,
        default=3600,
        help="Only consider files older than this many seconds",
    )
    parser.add_argument(
        "--delete",
        action="store_true",
        help="Actually delete files (default: only report them)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    settings = get_settings()
    files = LocalFileStorage(upload_dir=settings.upload_dir, thumb_dir=settings.thumb_dir)
    store = SqlPanelStore(settings.database_url)
    try:
        known_ids = store.list_ids()
    finally:
        store.dispose()

    orphans = files.sweep_orphans(
        known_ids, min_age_seconds=args.min_age_seconds, dry_run=not args.delete
    )
    verb = "Removed" if args.delete else "Would remove"
    for path in orphans:
        print(path)
    logger.info("%s %d orphaned file(s)", verb, len(orphans))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
