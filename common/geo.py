from __future__ import annotations

import math
from typing import Tuple

from common.types import GridConfig


DEG_TO_RAD = math.pi / 180.0

# sin(lat) is clamped to this before the log so the poles stay finite.
SIN_LAT_LIMIT = 0.9999


# -------------------------
# Scalar helpers
# -------------------------
def round_half_away(value: float) -> float:
    """
    Round to the nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3).

    Python's round() is banker's rounding, which would move tile boundaries.
    """
    if value < 0:
        return float(math.ceil(value - 0.5))
    return float(math.floor(value + 0.5))


def min_max(a: float, b: float, c: float) -> float:
    """min(max(a, b), c). Operand order matters for NaN inputs."""
    return min(max(a, b), c)


# -------------------------
# Spherical Web-Mercator
# -------------------------
class Projector:
    """
    Forward Web-Mercator projection from lon/lat (deg) to world pixels.

    Per-zoom constants are computed once for zooms 0..grid.max_zoom:
      - span:      total world width in pixels (tile_size * 2**z)
      - origin:    pixel origin for both axes (span / 2)
      - lon_scale: pixels per degree of longitude (span / 360)
      - lat_scale: pixels per radian of Mercator y (span / 2pi)
    """

    def __init__(self, grid: GridConfig | None = None):
        self.grid = grid or GridConfig()
        spans = []
        origins = []
        lon_scales = []
        lat_scales = []
        c = float(self.grid.tile_size)
        for _ in range(self.grid.max_zoom + 1):
            spans.append(c)
            origins.append(c / 2.0)
            lon_scales.append(c / 360.0)
            lat_scales.append(c / (2.0 * math.pi))
            c *= 2
        self._span: Tuple[float, ...] = tuple(spans)
        self._origin: Tuple[float, ...] = tuple(origins)
        self._lon_scale: Tuple[float, ...] = tuple(lon_scales)
        self._lat_scale: Tuple[float, ...] = tuple(lat_scales)

    def tile_span(self, zoom: int) -> float:
        return self._span[self._check_zoom(zoom)]

    def project_pixels(self, lon: float, lat: float, zoom: int) -> Tuple[float, float]:
        """Return (px, py) of lon/lat at `zoom`, rounded half away from zero."""
        z = self._check_zoom(zoom)
        origin = self._origin[z]
        px = round_half_away(origin + lon * self._lon_scale[z])
        f = min_max(math.sin(DEG_TO_RAD * lat), -SIN_LAT_LIMIT, SIN_LAT_LIMIT)
        py = round_half_away(origin + 0.5 * math.log((1 + f) / (1 - f)) * -self._lat_scale[z])
        return px, py

    def pixel_to_tile(self, px: float, py: float) -> Tuple[int, int]:
        """Tile (column, row) holding world pixel (px, py)."""
        size = self.grid.tile_size
        return int(math.floor(px / size)), int(math.floor(py / size))

    def _check_zoom(self, zoom: int) -> int:
        z = int(zoom)
        if not 0 <= z <= self.grid.max_zoom:
            raise ValueError(f"zoom {zoom} outside 0..{self.grid.max_zoom}")
        return z
