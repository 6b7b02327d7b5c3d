"""
Unit tests for the MBTiles store
"""

import os
import sys

import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.types import Tile, TileId
from tile_pyramid.errors import DuplicateTileError, StoreError
from tile_pyramid.store import MBTilesStore


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "out" / "test.mbtiles"


class TestMBTilesStore:
    def test_create_builds_schema(self, store_path):
        with MBTilesStore.create(store_path) as store:
            schema = "\n".join(store.schema())
        assert store_path.is_file()
        assert "zoom_level INTEGER, tile_column INTEGER, tile_row INTEGER, tile_data BLOB" in schema
        assert "metadata (name TEXT, value TEXT)" in schema
        assert "tile_index" in schema
        assert "INDEX name ON metadata" in schema

    def test_insert_and_read_back(self, store_path):
        with MBTilesStore.create(store_path) as store:
            store.insert_tile(Tile(TileId(1, 0, 1), b"a"))
            store.insert_tile(Tile(TileId(1, 1, 1), b"b"))
            assert store.pending == 2
            store.commit()
            assert store.pending == 0

        with MBTilesStore.open(store_path) as store:
            assert store.count() == 2
            assert store.get_tile(1, 1, 1) == b"b"
            assert store.get_tile(1, 1, 0) is None
            assert store.tile_ids() == [TileId(1, 0, 1), TileId(1, 1, 1)]
            assert store.count_by_zoom() == {1: 2}

    def test_duplicate_key_is_hard_error(self, store_path):
        with MBTilesStore.create(store_path) as store:
            store.insert_tile(Tile(TileId(3, 2, 1), b"first"))
            with pytest.raises(DuplicateTileError):
                store.insert_tile(Tile(TileId(3, 2, 1), b"second"))
            store.commit()
            assert store.get_tile(3, 2, 1) == b"first"

    def test_metadata_unique_by_name(self, store_path):
        with MBTilesStore.create(store_path) as store:
            store.write_metadata({"name": "a", "minzoom": 3})
            store.write_metadata({"name": "b"})
            assert store.metadata() == {"minzoom": "3", "name": "b"}

    def test_create_replaces_existing_file(self, store_path):
        with MBTilesStore.create(store_path) as store:
            store.insert_tile(Tile(TileId(0, 0, 0), b"old"))
        with MBTilesStore.create(store_path) as store:
            assert store.count() == 0

    def test_optimize(self, store_path):
        with MBTilesStore.create(store_path) as store:
            for x in range(4):
                store.insert_tile(Tile(TileId(2, x, 0), bytes([x]) * 64))
            store.optimize()
            assert store.count() == 4

    def test_closed_store_raises(self, store_path):
        store = MBTilesStore.create(store_path)
        store.close()
        assert store.closed
        store.close()  # idempotent
        with pytest.raises(StoreError):
            store.count()

    def test_open_missing_file(self, tmp_path):
        with pytest.raises(StoreError):
            MBTilesStore.open(tmp_path / "missing.mbtiles")

    def test_open_is_read_only(self, store_path):
        MBTilesStore.create(store_path).close()
        with MBTilesStore.open(store_path) as store:
            assert store.readonly
            with pytest.raises(StoreError):
                store.insert_tile(Tile(TileId(0, 0, 0), b"x"))
