from __future__ import annotations

from typing import Optional

from common.types import InvalidBoundingBox, TileId

__all__ = [
    "PyramidError",
    "InvalidBoundingBox",
    "FetchError",
    "StoreError",
    "DuplicateTileError",
    "MaintenanceError",
    "PipelineError",
]


class PyramidError(Exception):
    """Base class for every error raised while building a tile pyramid."""


class FetchError(PyramidError):
    """A tile could not be retrieved from the tile source."""

    def __init__(self, message: str, *, tile_id: Optional["TileId"] = None, status: Optional[int] = None):
        super().__init__(message)
        self.tile_id = tile_id
        self.status = status


class StoreError(PyramidError):
    """Schema creation or write failure in the tile store."""


class DuplicateTileError(StoreError):
    """A (zoom, column, row) key was inserted twice. Never expected in a run."""


class MaintenanceError(StoreError):
    """Post-load maintenance (ANALYZE / VACUUM) failed."""


class PipelineError(PyramidError):
    """Fatal failure of a build run, tied to the tile and stage that failed."""

    def __init__(self, tile_id: "TileId", stage: str, cause: BaseException):
        super().__init__(f"tile {tile_id} failed at {stage} stage: {cause}")
        self.tile_id = tile_id
        self.stage = stage
        self.cause = cause
