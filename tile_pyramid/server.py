from __future__ import annotations

"""
Read-only HTTP view of a built tile store, for checking a run's output in a
map client.

    GET /health              store path, tile count, metadata present
    GET /stats               tiles per zoom + metadata table
    GET /tiles/{z}/{x}/{y}   stored payload (404 when absent)

Run:
    python -m tile_pyramid.server --store out/dubai.mbtiles --port 8000
"""

import argparse
import contextlib
import threading
from typing import Dict

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.responses import Response

from common.logging_setup import get_logger, setup_logging
from tile_pyramid.config import load_config
from tile_pyramid.store import MBTilesStore


log = get_logger(__name__)

_MEDIA_TYPES: Dict[str, str] = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "pbf": "application/x-protobuf",
}


def create_app(store_path: str) -> FastAPI:
    store = MBTilesStore.open(store_path)
    # FastAPI runs sync endpoints on a threadpool; one sqlite connection, one user at a time.
    lock = threading.Lock()
    with lock:
        meta = store.metadata()
    media_type = _MEDIA_TYPES.get(meta.get("format", "png").lower(), "application/octet-stream")

    @contextlib.asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        with lock:
            store.close()

    app = FastAPI(title="Tile Pyramid Store", version="0.1.0", lifespan=lifespan)

    @app.get("/health")
    def health():
        with lock:
            count = store.count()
        return {
            "status": "ok",
            "store": str(store.path),
            "tiles": count,
            "complete": "bounds" in meta,
        }

    @app.get("/stats")
    def stats():
        with lock:
            per_zoom = store.count_by_zoom()
        return {
            "tiles": sum(per_zoom.values()),
            "zooms": {str(z): n for z, n in per_zoom.items()},
            "metadata": meta,
        }

    @app.get("/tiles/{z}/{x}/{y}")
    def tile(z: int, x: int, y: int):
        with lock:
            data = store.get_tile(z, x, y)
        if data is None:
            raise HTTPException(status_code=404, detail="tile_not_found")
        return Response(
            content=data,
            media_type=media_type,
            headers={"X-Tile-Z": str(z), "X-Tile-X": str(x), "X-Tile-Y": str(y)},
        )

    return app


# -------- local dev entrypoint --------
if __name__ == "__main__":
    ap = argparse.ArgumentParser(description="Serve a built tile store read-only")
    ap.add_argument("--config", default="config/params.yaml")
    ap.add_argument("--store", default=None, help="MBTiles file (overrides config)")
    ap.add_argument("--host", default=None)
    ap.add_argument("--port", type=int, default=None)
    args = ap.parse_args()

    P = load_config(args.config)
    setup_logging(P.get("logging", {}).get("level"), force=True)
    S = P.get("server", {})
    path = args.store or S.get("store_path", "tiles.mbtiles")
    log.info("Serving tile store", extra={"extra": {"store": path}})
    uvicorn.run(create_app(path), host=args.host or S.get("host", "127.0.0.1"), port=args.port or int(S.get("port", 8000)))
