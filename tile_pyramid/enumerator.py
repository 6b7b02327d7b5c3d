from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional

from common.geo import Projector
from common.types import BoundingBox, GridConfig, TileId, ZoomRange


@dataclass(frozen=True)
class TileRange:
    """Clipped inclusive column/row ranges of one zoom level."""
    zoom: int
    col_start: int
    col_end: int
    row_start: int
    row_end: int

    @property
    def is_empty(self) -> bool:
        return self.col_end < self.col_start or self.row_end < self.row_start

    def __len__(self) -> int:
        if self.is_empty:
            return 0
        return (self.col_end - self.col_start + 1) * (self.row_end - self.row_start + 1)

    def __iter__(self) -> Iterator[TileId]:
        for col in range(self.col_start, self.col_end + 1):
            for row in range(self.row_start, self.row_end + 1):
                yield TileId(self.zoom, col, row)


class TileEnumerator:
    """
    Turns a bounding box into the tile ids covering it at every zoom level.

    Ids come out ordered by zoom, column, row and never repeat: each zoom
    contributes one rectangular block of the grid.
    """

    def __init__(self, grid: Optional[GridConfig] = None, projector: Optional[Projector] = None):
        self.grid = grid or (projector.grid if projector else GridConfig())
        self.projector = projector or Projector(self.grid)

    def raw_range(self, bbox: BoundingBox, zoom: int) -> TileRange:
        """Unclipped tile range of the box's projected corners."""
        px0 = self.projector.project_pixels(*bbox.top_left, zoom)
        px1 = self.projector.project_pixels(*bbox.bottom_right, zoom)
        col_start, row_start = self.projector.pixel_to_tile(*px0)
        col_end, row_end = self.projector.pixel_to_tile(*px1)
        return TileRange(zoom, col_start, col_end, row_start, row_end)

    def tile_range(self, bbox: BoundingBox, zoom: int) -> TileRange:
        raw = self.raw_range(bbox, zoom)
        last = self._last_index(zoom)
        return TileRange(
            zoom=zoom,
            col_start=max(raw.col_start, 0),
            col_end=min(raw.col_end, last),
            row_start=max(raw.row_start, 0),
            row_end=min(raw.row_end, last),
        )

    def tile_ranges(self, bbox: BoundingBox, zooms: Iterable[int]) -> Dict[int, TileRange]:
        return {z: self.tile_range(bbox, z) for z in zooms}

    def iter_tiles(self, bbox: BoundingBox, zooms: Iterable[int]) -> Iterator[TileId]:
        for z in sorted(set(zooms)):
            yield from self.tile_range(bbox, z)

    def tile_list(self, bbox: BoundingBox, zooms: Iterable[int]) -> List[TileId]:
        return list(self.iter_tiles(bbox, zooms))

    def count_tiles(self, bbox: BoundingBox, zooms: Iterable[int]) -> int:
        return sum(len(r) for r in self.tile_ranges(bbox, zooms).values())

    def _last_index(self, zoom: int) -> int:
        n = 2 ** int(zoom)
        # Legacy clipping only rejected indices > 2**z, so 2**z itself survived.
        return n - 1 if self.grid.strict_edge else n


def enumerate_tiles(
    bbox: BoundingBox,
    zoom: int,
    grid: Optional[GridConfig] = None,
) -> List[TileId]:
    """Tile ids for the full pyramid from `zoom` up to the grid's max zoom."""
    grid = grid or GridConfig()
    zooms = ZoomRange.from_requested(zoom, grid)
    return TileEnumerator(grid).tile_list(bbox, zooms)
