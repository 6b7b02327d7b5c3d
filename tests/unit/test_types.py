"""
Unit tests for the shared tile types
"""

import os
import sys

import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.types import BoundingBox, GridConfig, Tile, TileId, ZoomRange
from tile_pyramid.errors import InvalidBoundingBox


class TestBoundingBox:
    def test_valid_box(self):
        bbox = BoundingBox(55.397945, 25.291090, 55.402741, 25.292889)
        assert bbox.top_left == (55.397945, 25.292889)
        assert bbox.bottom_right == (55.402741, 25.291090)
        assert bbox.as_bounds() == "55.397945,25.29109,55.402741,25.292889"

    def test_center(self):
        assert BoundingBox(-10.0, -20.0, 10.0, 20.0).center == (0.0, 0.0)

    @pytest.mark.parametrize(
        "coords",
        [
            (10.0, 0.0, 5.0, 1.0),  # xmin > xmax
            (0.0, 1.0, 1.0, 1.0),  # ymin == ymax
            (-181.0, 0.0, 0.0, 1.0),
            (0.0, 0.0, 180.5, 1.0),
            (0.0, 0.0, 1.0, 86.0),  # beyond Mercator range
            (0.0, -89.0, 1.0, 0.0),
            (float("nan"), 0.0, 1.0, 1.0),
        ],
    )
    def test_rejects_invalid(self, coords):
        with pytest.raises(InvalidBoundingBox):
            BoundingBox(*coords)

    def test_invalid_box_is_value_error(self):
        with pytest.raises(ValueError):
            BoundingBox(0.0, 0.0, 1.0, 90.0)

    def test_error_is_shared_with_domain_errors(self):
        from common import types

        assert types.InvalidBoundingBox is InvalidBoundingBox
        assert issubclass(InvalidBoundingBox, ValueError)


class TestZoomRange:
    def test_from_requested_goes_to_max(self):
        zr = ZoomRange.from_requested(17)
        assert list(zr) == [17, 18, 19]
        assert len(zr) == 3

    def test_from_requested_with_grid(self):
        zr = ZoomRange.from_requested(1, GridConfig(max_zoom=3))
        assert list(zr) == [1, 2, 3]

    def test_max_zoom_only(self):
        assert list(ZoomRange.from_requested(19)) == [19]

    @pytest.mark.parametrize("zoom", [-1, 20])
    def test_invalid(self, zoom):
        with pytest.raises(ValueError):
            ZoomRange.from_requested(zoom)


class TestGridConfig:
    def test_defaults(self):
        g = GridConfig()
        assert (g.max_zoom, g.tile_size, g.strict_edge) == (19, 256, True)

    def test_invalid_tile_size(self):
        with pytest.raises(ValueError):
            GridConfig(tile_size=0)


class TestTile:
    def test_tile_id_order_and_str(self):
        ids = [TileId(2, 1, 0), TileId(1, 3, 3), TileId(2, 0, 5)]
        assert sorted(ids) == [TileId(1, 3, 3), TileId(2, 0, 5), TileId(2, 1, 0)]
        assert str(TileId(19, 342823, 228000)) == "19/342823/228000"

    def test_tile_holds_bytes(self):
        t = Tile(TileId(1, 0, 1), b"\x89PNG")
        assert t.zxy == (1, 0, 1)
        assert t.data == b"\x89PNG"

    def test_tile_rejects_non_bytes(self):
        with pytest.raises(TypeError):
            Tile(TileId(1, 0, 1), "not bytes")  # type: ignore[arg-type]
