from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Union

from common.logging_setup import get_logger
from common.types import Tile, TileId
from tile_pyramid.errors import DuplicateTileError, MaintenanceError, StoreError


log = get_logger(__name__)

PathLike = Union[str, Path]

_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS tiles (zoom_level INTEGER, tile_column INTEGER, tile_row INTEGER, tile_data BLOB);",
    "CREATE TABLE IF NOT EXISTS metadata (name TEXT, value TEXT);",
    "CREATE UNIQUE INDEX name ON metadata (name);",
    "CREATE UNIQUE INDEX tile_index ON tiles (zoom_level, tile_column, tile_row);",
)

# Bulk-load settings: the file is rebuilt from scratch on every run.
_LOAD_PRAGMAS = (
    "PRAGMA synchronous=0",
    "PRAGMA locking_mode=EXCLUSIVE",
    "PRAGMA journal_mode=DELETE",
)


class MBTilesStore:
    """
    SQLite tile store in the MBTiles layout.

        tiles(zoom_level, tile_column, tile_row, tile_data)   unique on the key
        metadata(name, value)                                 unique on name

    Rows are stored as XYZ rows (not TMS-flipped); `scheme=xyz` is recorded
    in metadata.

    Writers: MBTilesStore.create(path) truncates and prepares a new file.
    Readers: MBTilesStore.open(path) opens an existing file read-only.
    Only one thread may use an instance at a time; the connection is opened
    with check_same_thread=False so it can be handed to the writer thread.
    """

    def __init__(self, path: PathLike, conn: sqlite3.Connection, *, readonly: bool):
        self.path = Path(path)
        self.readonly = readonly
        self._conn: Optional[sqlite3.Connection] = conn
        self._pending = 0

    # -------- construction --------

    @classmethod
    def create(cls, path: PathLike) -> "MBTilesStore":
        """Replace any file at `path` with an empty store (schema included)."""
        p = Path(path)
        try:
            if p.exists():
                p.unlink()
            if p.parent and not p.parent.exists():
                p.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(p), check_same_thread=False)
        except (OSError, sqlite3.Error) as e:
            raise StoreError(f"cannot create store at {p}: {e}") from e
        store = cls(p, conn, readonly=False)
        try:
            store._apply_pragmas()
            store.create_schema()
        except StoreError:
            store.close()
            raise
        log.info("Created tile store", extra={"extra": {"path": str(p)}})
        return store

    @classmethod
    def open(cls, path: PathLike) -> "MBTilesStore":
        p = Path(path)
        if not p.is_file():
            raise StoreError(f"no tile store at {p}")
        try:
            conn = sqlite3.connect(f"{p.resolve().as_uri()}?mode=ro", uri=True, check_same_thread=False)
        except sqlite3.Error as e:
            raise StoreError(f"cannot open store at {p}: {e}") from e
        return cls(p, conn, readonly=True)

    # -------- write side --------

    def create_schema(self) -> None:
        try:
            for stmt in _SCHEMA:
                self.conn.execute(stmt)
            self.conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"schema creation failed: {e}") from e

    def insert_tile(self, tile: Tile) -> None:
        z, x, y = tile.zxy
        try:
            self.conn.execute(
                "INSERT INTO tiles (zoom_level, tile_column, tile_row, tile_data) VALUES (?, ?, ?, ?);",
                (z, x, y, sqlite3.Binary(tile.data)),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateTileError(f"tile {tile.tile_id} already stored") from e
        except sqlite3.Error as e:
            raise StoreError(f"insert of tile {tile.tile_id} failed: {e}") from e
        self._pending += 1

    def write_metadata(self, values: Mapping[str, object]) -> None:
        try:
            self.conn.executemany(
                "INSERT OR REPLACE INTO metadata (name, value) VALUES (?, ?);",
                [(str(k), str(v)) for k, v in values.items()],
            )
            self.conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"metadata write failed: {e}") from e

    def commit(self) -> None:
        if self._conn is None or self.readonly:
            return
        try:
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"commit failed: {e}") from e
        self._pending = 0

    @property
    def pending(self) -> int:
        """Inserts not yet committed."""
        return self._pending

    def optimize(self) -> None:
        """Rebuild planner statistics and reclaim free pages."""
        self.commit()
        try:
            self.conn.execute("ANALYZE;")
            self.conn.execute("VACUUM;")
        except sqlite3.Error as e:
            raise MaintenanceError(f"optimize failed: {e}") from e

    # -------- read side --------

    def get_tile(self, zoom: int, column: int, row: int) -> Optional[bytes]:
        cur = self.conn.execute(
            "SELECT tile_data FROM tiles WHERE zoom_level = ? AND tile_column = ? AND tile_row = ?;",
            (int(zoom), int(column), int(row)),
        )
        found = cur.fetchone()
        return bytes(found[0]) if found else None

    def count(self) -> int:
        return int(self.conn.execute("SELECT COUNT(*) FROM tiles;").fetchone()[0])

    def count_by_zoom(self) -> Dict[int, int]:
        cur = self.conn.execute("SELECT zoom_level, COUNT(*) FROM tiles GROUP BY zoom_level ORDER BY zoom_level;")
        return {int(z): int(n) for z, n in cur.fetchall()}

    def iter_tile_ids(self) -> Iterator[TileId]:
        cur = self.conn.execute(
            "SELECT zoom_level, tile_column, tile_row FROM tiles ORDER BY zoom_level, tile_column, tile_row;"
        )
        for z, x, y in cur:
            yield TileId(int(z), int(x), int(y))

    def tile_ids(self) -> List[TileId]:
        return list(self.iter_tile_ids())

    def metadata(self) -> Dict[str, str]:
        cur = self.conn.execute("SELECT name, value FROM metadata ORDER BY name;")
        return {str(k): str(v) for k, v in cur.fetchall()}

    def schema(self) -> List[str]:
        """CREATE statements of every table and index, for comparing stores."""
        cur = self.conn.execute("SELECT sql FROM sqlite_master WHERE sql IS NOT NULL ORDER BY type, name;")
        return [str(r[0]) for r in cur.fetchall()]

    # -------- lifecycle --------

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError(f"store {self.path} is closed")
        return self._conn

    @property
    def closed(self) -> bool:
        return self._conn is None

    def close(self) -> None:
        if self._conn is None:
            return
        try:
            if not self.readonly:
                self._conn.commit()
        finally:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "MBTilesStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _apply_pragmas(self) -> None:
        try:
            for pragma in _LOAD_PRAGMAS:
                self.conn.execute(pragma)
        except sqlite3.Error as e:
            raise StoreError(f"cannot configure store: {e}") from e
