"""HTTP client for the library server.

The base URL is passed in at construction; nothing reads it from module
globals, so several servers can be talked to from one process.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


def with_quality(url: str, quality: Optional[str]) -> str:
    """Return ``url`` with its ``quality`` query parameter set (or removed)."""
    u = httpx.URL(url)
    if quality:
        return str(u.copy_set_param("quality", quality))
    return str(u.copy_remove_param("quality"))


class ApiClient:
    def __init__(
        self,
        base_url: str,
        api_prefix: str = "/api",
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_prefix = "/" + api_prefix.strip("/") if api_prefix.strip("/") else ""
        self._http = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def _path(self, *parts: str) -> str:
        return self.api_prefix + "/" + "/".join(p.strip("/") for p in parts)

    def stream_url(self, item_id: str, quality: Optional[str] = None) -> str:
        url = f"{self.base_url}{self._path('items', item_id, 'stream')}"
        return with_quality(url, quality)

    def thumbnail_url(self, item_id: str) -> str:
        return f"{self.base_url}{self._path('items', item_id, 'thumbnail')}"

    def get_item(self, item_id: str) -> Dict[str, Any]:
        r = self._http.get(self._path("items", item_id))
        r.raise_for_status()
        return r.json().get("data") or {}

    def list_items(self) -> List[Dict[str, Any]]:
        r = self._http.get(self._path("items"))
        r.raise_for_status()
        return (r.json().get("data") or {}).get("items") or []

    def track_view(self, item_id: str) -> Optional[int]:
        """Record one view; returns the server's new count."""
        r = self._http.patch(self._path("items", item_id, "view"))
        r.raise_for_status()
        views = (r.json().get("data") or {}).get("views")
        logger.debug("[client] view tracked item=%s views=%s", item_id, views)
        return int(views) if views is not None else None

    def props_for(self, item: Dict[str, Any], **kwargs: Any):
        """Build player props for an item record returned by the server."""
        from .engine import PlayerProps

        item_id = str(item["id"])
        qualities = [r["quality"] for r in item.get("resolutions") or [] if r.get("quality")]
        return PlayerProps(
            media_source=self.stream_url(item_id),
            item_id=item_id,
            available_qualities=qualities,
            on_view=lambda: self.track_view(item_id),
            quality_source=lambda label: self.stream_url(item_id, label),
            **kwargs,
        )
