from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterator, Tuple


# Web-Mercator is undefined past this latitude (atan(sinh(pi)) in degrees).
MAX_LATITUDE = 85.0511287798
MAX_LONGITUDE = 180.0

DEFAULT_TILE_SIZE = 256
DEFAULT_MAX_ZOOM = 19


class InvalidBoundingBox(ValueError):
    """Bounding box cannot be projected (bad ordering or out of range)."""


@dataclass(frozen=True, slots=True)
class GridConfig:
    """
    Shape of the tile grid shared by the projector and the enumerator.

    Attributes:
        max_zoom: highest zoom level of the pyramid (inclusive).
        tile_size: tile edge length in pixels.
        strict_edge: clip column/row indices to [0, 2**z). When False the
            historical clipping is used, which only drops indices > 2**z and
            therefore lets index 2**z through.
    """
    max_zoom: int = DEFAULT_MAX_ZOOM
    tile_size: int = DEFAULT_TILE_SIZE
    strict_edge: bool = True

    def __post_init__(self) -> None:
        if self.max_zoom < 0:
            raise ValueError("max_zoom must be >= 0")
        if self.tile_size <= 0:
            raise ValueError("tile_size must be > 0")


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """
    Geographic rectangle in WGS84 degrees: west, south, east, north.

    Rejects anything the Mercator projection cannot represent instead of
    clamping it.
    """
    xmin: float
    ymin: float
    xmax: float
    ymax: float

    def __post_init__(self) -> None:
        values = (self.xmin, self.ymin, self.xmax, self.ymax)
        if any(math.isnan(v) for v in values):
            raise InvalidBoundingBox(f"bounding box contains NaN: {values}")
        for lon in (self.xmin, self.xmax):
            if not (-MAX_LONGITUDE <= lon <= MAX_LONGITUDE):
                raise InvalidBoundingBox(f"longitude {lon} outside [-180, 180]")
        for lat in (self.ymin, self.ymax):
            if not (-MAX_LATITUDE <= lat <= MAX_LATITUDE):
                raise InvalidBoundingBox(
                    f"latitude {lat} outside Web-Mercator range [-{MAX_LATITUDE}, {MAX_LATITUDE}]"
                )
        if not self.xmin < self.xmax:
            raise InvalidBoundingBox(f"xmin ({self.xmin}) must be < xmax ({self.xmax})")
        if not self.ymin < self.ymax:
            raise InvalidBoundingBox(f"ymin ({self.ymin}) must be < ymax ({self.ymax})")

    @property
    def top_left(self) -> Tuple[float, float]:
        return (self.xmin, self.ymax)

    @property
    def bottom_right(self) -> Tuple[float, float]:
        return (self.xmax, self.ymin)

    @property
    def center(self) -> Tuple[float, float]:
        return (0.5 * (self.xmin + self.xmax), 0.5 * (self.ymin + self.ymax))

    def as_bounds(self) -> str:
        """MBTiles `bounds` string: 'left,bottom,right,top'."""
        return f"{self.xmin},{self.ymin},{self.xmax},{self.ymax}"


@dataclass(frozen=True, slots=True)
class ZoomRange:
    """Inclusive zoom range; the pyramid is built for every level in it."""
    min_zoom: int
    max_zoom: int = DEFAULT_MAX_ZOOM

    def __post_init__(self) -> None:
        if self.min_zoom < 0:
            raise ValueError("min_zoom must be >= 0")
        if self.min_zoom > self.max_zoom:
            raise ValueError(f"requested zoom {self.min_zoom} exceeds max zoom {self.max_zoom}")

    @classmethod
    def from_requested(cls, zoom: int, grid: GridConfig | None = None) -> "ZoomRange":
        """Full pyramid from the requested zoom up to the grid's maximum."""
        grid = grid or GridConfig()
        return cls(min_zoom=int(zoom), max_zoom=grid.max_zoom)

    def __iter__(self) -> Iterator[int]:
        return iter(range(self.min_zoom, self.max_zoom + 1))

    def __len__(self) -> int:
        return self.max_zoom - self.min_zoom + 1


@dataclass(frozen=True, slots=True, order=True)
class TileId:
    """Natural key of a tile slot; orders by zoom, then column, then row."""
    zoom: int
    column: int
    row: int

    def __str__(self) -> str:
        return f"{self.zoom}/{self.column}/{self.row}"


@dataclass(frozen=True, slots=True)
class Tile:
    """A fetched tile: its key plus the encoded image bytes, untouched."""
    tile_id: TileId
    data: bytes = field(repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.data, (bytes, bytearray)):
            raise TypeError("tile data must be bytes")

    @property
    def zxy(self) -> Tuple[int, int, int]:
        return (self.tile_id.zoom, self.tile_id.column, self.tile_id.row)
