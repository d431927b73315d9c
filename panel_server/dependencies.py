"""
Dependency wiring for the FastAPI app.

The service context lives on ``app.state`` so each app instance (and each
test) owns its own store and directories.
"""

from __future__ import annotations

from fastapi import Request

from panel_server.config import Settings
from panel_server.service import PanelService


def get_panel_service(request: Request) -> PanelService:
    return request.app.state.panel_service


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def request_base_url(request: Request) -> str | None:
    """
    Returns the URL prefix seen by the client, when proxy headers are trusted.

    Only used when no BASE_URL is configured; returns None otherwise so the
    service falls back to its configured prefix.
    """
    settings = get_app_settings(request)
    if settings.base_url_configured or not settings.trust_forwarded_headers:
        return None
    headers = request.headers
    proto = headers.get("x-forwarded-proto") or request.url.scheme or "http"
    host = headers.get("x-forwarded-host") or headers.get("host")
    if not host:
        return None
    # Proxies may append several values ("https, http"); the first is the client's.
    proto = proto.split(",")[0].strip()
    host = host.split(",")[0].strip()
    return f"{proto}://{host}"
