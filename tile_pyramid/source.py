from __future__ import annotations

"""
Tile sources for the fetch stage.

A tile source is anything with `fetch(zoom, column, row) -> bytes` that raises
FetchError when the tile cannot be produced. The pipeline calls it from many
threads at once, so implementations must be safe to share.

Usage:
    src = UrlTemplateSource("https://tile.openstreetmap.org/{z}/{x}/{y}.png")
    png = src.fetch(19, 343112, 228193)
"""

import threading
from typing import Optional, Protocol

import requests

from common.logging_setup import get_logger
from common.types import TileId
from tile_pyramid.errors import FetchError


log = get_logger(__name__)

DEFAULT_URL_TEMPLATE = "http://c.tile.openstreetmap.org/{z}/{x}/{y}.png"
DEFAULT_USER_AGENT = "tile-pyramid-builder/0.1"


class TileSource(Protocol):
    def fetch(self, zoom: int, column: int, row: int) -> bytes:
        ...


class UrlTemplateSource:
    """
    Blocking HTTP tile source over a `{z}/{x}/{y}` URL template.

    Params:
        url_template: URL with `{z}`, `{x}`, `{y}` placeholders
        timeout: per-request timeout in seconds
        user_agent: sent with every request (tile servers reject blank agents)
        session: optional requests.Session; by default one session per thread
    """

    def __init__(
        self,
        url_template: str = DEFAULT_URL_TEMPLATE,
        *,
        timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[requests.Session] = None,
    ):
        for key in ("{z}", "{x}", "{y}"):
            if key not in url_template:
                raise ValueError(f"url_template is missing the {key} placeholder")
        self.url_template = url_template
        self.timeout = float(timeout)
        self.user_agent = user_agent
        self._session = session
        self._local = threading.local()

    # ----------------------------
    # Public API
    # ----------------------------
    def build_url(self, zoom: int, column: int, row: int) -> str:
        """Substitute the tile key into the template (no request performed)."""
        url = self.url_template.replace("{x}", str(int(column)))
        url = url.replace("{y}", str(int(row)))
        return url.replace("{z}", str(int(zoom)))

    def fetch(self, zoom: int, column: int, row: int) -> bytes:
        """
        GET one tile and return its body unchanged.

        Raises:
            FetchError on transport errors, non-200 responses and empty bodies.
        """
        tile_id = TileId(zoom, column, row)
        url = self.build_url(zoom, column, row)
        try:
            r = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(f"request for tile {tile_id} failed: {e}", tile_id=tile_id) from e

        if r.status_code != 200:
            raise FetchError(
                f"tile {tile_id} returned HTTP {r.status_code}: {r.text[:200]}",
                tile_id=tile_id,
                status=r.status_code,
            )
        if not r.content:
            raise FetchError(f"tile {tile_id} returned an empty body", tile_id=tile_id, status=r.status_code)
        log.debug("Fetched tile", extra={"extra": {"tile": str(tile_id), "bytes": len(r.content)}})
        return r.content

    @property
    def session(self) -> requests.Session:
        # requests.Session is not documented as thread-safe; give each worker its own.
        if self._session is not None:
            return self._session
        s = getattr(self._local, "session", None)
        if s is None:
            s = requests.Session()
            s.headers.update({"User-Agent": self.user_agent})
            self._local.session = s
        return s
