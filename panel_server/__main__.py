"""
Run the panel upload service: ``python -m panel_server``.
"""

from __future__ import annotations

import logging
from pathlib import Path

import uvicorn

from panel_server.config import get_settings

logger = logging.getLogger("panel_server")


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Listening on http://%s:%s", settings.host, settings.port)
    logger.info("Uploads: %s", Path(settings.upload_dir).resolve())
    logger.info("Thumbs: %s", Path(settings.thumb_dir).resolve())
    logger.info("Public base URL: %s", settings.public_base_url)
    uvicorn.run(
        "panel_server.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        workers=1,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
