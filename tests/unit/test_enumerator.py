"""
Unit tests for the tile range enumerator
"""

import os
import sys

import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.types import MAX_LATITUDE, BoundingBox, GridConfig, TileId, ZoomRange
from tile_pyramid.enumerator import TileEnumerator, TileRange, enumerate_tiles

DUBAI = BoundingBox(55.397945, 25.291090, 55.402741, 25.292889)
WORLD = BoundingBox(-180.0, -MAX_LATITUDE, 180.0, MAX_LATITUDE)


class TestTileRange:
    def test_len_and_iteration_order(self):
        r = TileRange(zoom=3, col_start=1, col_end=2, row_start=4, row_end=5)
        assert len(r) == 4
        assert list(r) == [TileId(3, 1, 4), TileId(3, 1, 5), TileId(3, 2, 4), TileId(3, 2, 5)]

    def test_empty_range(self):
        r = TileRange(zoom=1, col_start=3, col_end=2, row_start=0, row_end=1)
        assert r.is_empty
        assert len(r) == 0
        assert list(r) == []


class TestTileEnumerator:
    def test_single_tile_footprint_yields_one_tile_per_zoom(self):
        """A box well inside one z4 tile stays inside one tile at every coarser zoom"""
        grid = GridConfig(max_zoom=4)
        bbox = BoundingBox(1.0, 1.0, 2.0, 2.0)
        tiles = TileEnumerator(grid).tile_list(bbox, ZoomRange(0, 4))
        assert [t.zoom for t in tiles] == [0, 1, 2, 3, 4]
        assert tiles[0] == TileId(0, 0, 0)
        assert tiles[-1] == TileId(4, 8, 7)

    def test_dubai_box_at_max_zoom(self):
        enum = TileEnumerator()
        tiles = enumerate_tiles(DUBAI, 19)
        assert tiles
        assert {t.zoom for t in tiles} == {19}

        r = enum.tile_range(DUBAI, 19)
        assert (r.col_start, r.col_end) == (342823, 342830)
        assert len(tiles) == (r.col_end - r.col_start + 1) * (r.row_end - r.row_start + 1)
        assert len(tiles) == enum.count_tiles(DUBAI, [19])

    def test_full_pyramid_from_requested_zoom(self):
        tiles = enumerate_tiles(DUBAI, 17)
        assert {t.zoom for t in tiles} == {17, 18, 19}

    def test_ordered_and_unique(self):
        tiles = enumerate_tiles(DUBAI, 12)
        assert len(set(tiles)) == len(tiles)
        assert tiles == sorted(tiles)

    def test_strict_edge_keeps_ids_inside_grid(self):
        enum = TileEnumerator(GridConfig(max_zoom=3, strict_edge=True))
        tiles = enum.tile_list(WORLD, ZoomRange(0, 3))
        for t in tiles:
            n = 2 ** t.zoom
            assert 0 <= t.column < n
            assert 0 <= t.row < n
        assert len(tiles) == 1 + 4 + 16 + 64

    def test_legacy_edge_admits_index_two_pow_z(self):
        """Historical clipping only rejected indices > 2**z"""
        enum = TileEnumerator(GridConfig(max_zoom=3, strict_edge=False))
        tiles = enum.tile_list(WORLD, ZoomRange(0, 3))
        assert TileId(0, 1, 1) in tiles
        assert TileId(3, 8, 8) in tiles
        assert len(tiles) == 4 + 9 + 25 + 81
        assert len(set(tiles)) == len(tiles)

    def test_antimeridian_column_both_ways(self):
        bbox = BoundingBox(170.0, -10.0, 180.0, 10.0)
        strict = TileEnumerator(GridConfig(max_zoom=1)).tile_list(bbox, [1])
        legacy = TileEnumerator(GridConfig(max_zoom=1, strict_edge=False)).tile_list(bbox, [1])
        assert strict == [TileId(1, 1, 0), TileId(1, 1, 1)]
        assert legacy == [TileId(1, 1, 0), TileId(1, 1, 1), TileId(1, 2, 0), TileId(1, 2, 1)]

    def test_raw_range_is_unclipped(self):
        enum = TileEnumerator(GridConfig(max_zoom=2))
        raw = enum.raw_range(WORLD, 2)
        assert (raw.col_end, raw.row_end) == (4, 4)
        clipped = enum.tile_range(WORLD, 2)
        assert (clipped.col_end, clipped.row_end) == (3, 3)

    def test_tile_ranges_per_zoom(self):
        ranges = TileEnumerator().tile_ranges(DUBAI, ZoomRange(18, 19))
        assert sorted(ranges) == [18, 19]
        assert len(ranges[18]) <= len(ranges[19])

    def test_requested_zoom_above_max(self):
        with pytest.raises(ValueError):
            enumerate_tiles(DUBAI, 20)
