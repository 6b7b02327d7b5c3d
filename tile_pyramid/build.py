from __future__ import annotations

"""
Build an MBTiles pyramid for a bounding box.

Every zoom level from --zoomlevel up to the grid's max zoom (19 by default) is
fetched, so a low starting zoom means many tiles.

Examples:
  python -m tile_pyramid.build --xmin 55.397945 --ymin 25.291090 \
      --xmax 55.402741 --ymax 25.292889 --zoomlevel 19 --filename out/dubai.mbtiles
  python -m tile_pyramid.build --zoomlevel 17 --list
  python -m tile_pyramid.build --config config/params.yaml --workers 8 \
      --url-template "https://tile.openstreetmap.org/{z}/{x}/{y}.png"
"""

import argparse
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from common.logging_setup import get_logger, setup_logging
from common.types import BoundingBox, GridConfig, ZoomRange
from tile_pyramid.config import DEFAULTS, grid_from_config, load_config, retry_from_config
from tile_pyramid.enumerator import TileEnumerator
from tile_pyramid.errors import PyramidError
from tile_pyramid.pipeline import PipelineReport, TilePipeline
from tile_pyramid.retry import RetryPolicy
from tile_pyramid.source import DEFAULT_USER_AGENT, TileSource, UrlTemplateSource
from tile_pyramid.store import MBTilesStore


log = get_logger("tile_pyramid")


@dataclass(frozen=True)
class BuildReport:
    filename: str
    zooms: ZoomRange
    pipeline: PipelineReport

    @property
    def tiles(self) -> int:
        return self.pipeline.stored


def build_metadata(bbox: BoundingBox, zooms: ZoomRange, meta: Optional[Mapping[str, Any]] = None) -> Dict[str, str]:
    m = dict(DEFAULTS["metadata"])
    m.update(meta or {})
    lon, lat = bbox.center
    m.update(
        {
            "bounds": bbox.as_bounds(),
            "center": f"{lon},{lat},{zooms.min_zoom}",
            "minzoom": str(zooms.min_zoom),
            "maxzoom": str(zooms.max_zoom),
            "scheme": "xyz",
        }
    )
    return {str(k): str(v) for k, v in m.items()}


def build_pyramid(
    bbox: BoundingBox,
    zoom: int,
    filename: str,
    source: TileSource,
    *,
    grid: Optional[GridConfig] = None,
    retry: Optional[RetryPolicy] = None,
    workers: int = 20,
    commit_every: int = 500,
    progress_every: int = 100,
    metadata: Optional[Mapping[str, Any]] = None,
) -> BuildReport:
    """
    Enumerate, fetch and store the pyramid; then write metadata and optimize.

    Pipeline settings are checked before the store file is replaced. On
    failure metadata and maintenance are skipped, so an interrupted file has
    no `bounds`/`minzoom` rows, and the store is closed before the error
    propagates.
    """
    TilePipeline.check_settings(workers, commit_every)
    grid = grid or GridConfig()
    zooms = ZoomRange.from_requested(zoom, grid)
    enumerator = TileEnumerator(grid)
    tile_ids = enumerator.tile_list(bbox, zooms)
    log.info(
        "Enumerated tiles",
        extra={"extra": {"tiles": len(tile_ids), "minzoom": zooms.min_zoom, "maxzoom": zooms.max_zoom}},
    )

    with MBTilesStore.create(filename) as store:
        pipeline = TilePipeline(
            source,
            store,
            workers=workers,
            retry=retry,
            commit_every=commit_every,
            progress_every=progress_every,
        )
        report = pipeline.run(tile_ids)
        store.write_metadata(build_metadata(bbox, zooms, metadata))
        store.optimize()

    log.info("Tile store complete", extra={"extra": {"filename": str(filename), "tiles": report.stored}})
    return BuildReport(filename=str(filename), zooms=zooms, pipeline=report)


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Build an MBTiles tile pyramid for a bounding box")
    ap.add_argument("--xmin", type=float, default=55.397945, help="Minimum longitude")
    ap.add_argument("--xmax", type=float, default=55.402741, help="Maximum longitude")
    ap.add_argument("--ymin", type=float, default=25.291090, help="Minimum latitude")
    ap.add_argument("--ymax", type=float, default=25.292889, help="Maximum latitude")
    ap.add_argument("--zoomlevel", type=int, default=19, help="Lowest zoom level; every level up to max zoom is fetched")
    ap.add_argument("--filename", default="tiles.mbtiles", help="Output file to generate (replaced if present)")
    ap.add_argument("--config", default="config/params.yaml", help="Optional YAML config")
    ap.add_argument("--workers", type=int, default=None, help="Concurrent fetchers (overrides config)")
    ap.add_argument("--url-template", default=None, help="Tile URL with {z}/{x}/{y} (overrides config)")
    ap.add_argument("--max-retries", type=int, default=None, help="Retries per tile (overrides config)")
    ap.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds")
    ap.add_argument("--log-level", default=None, help="DEBUG/INFO/WARNING/ERROR")
    ap.add_argument("--list", action="store_true", help="Print the tile ids and exit without fetching")
    return ap.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parse_args(argv)
    P = load_config(args.config)
    setup_logging(args.log_level or P.get("logging", {}).get("level"), force=True)

    src_cfg = P.get("source", {})
    pipe_cfg = P.get("pipeline", {})
    try:
        bbox = BoundingBox(args.xmin, args.ymin, args.xmax, args.ymax)
        grid = grid_from_config(P)
        zooms = ZoomRange.from_requested(args.zoomlevel, grid)
        retry = retry_from_config(P)
        if args.max_retries is not None:
            retry = RetryPolicy(
                max_retries=args.max_retries,
                base_seconds=retry.base_seconds,
                factor=retry.factor,
                max_seconds=retry.max_seconds,
            )
        source = UrlTemplateSource(
            args.url_template or src_cfg.get("url_template"),
            timeout=args.timeout if args.timeout is not None else float(src_cfg.get("timeout", 10.0)),
            user_agent=str(src_cfg.get("user_agent") or DEFAULT_USER_AGENT),
        )
        workers = args.workers if args.workers is not None else int(pipe_cfg.get("workers", 20))
        commit_every = int(pipe_cfg.get("commit_every", 500))
        progress_every = int(pipe_cfg.get("progress_every", 100))
        TilePipeline.check_settings(workers, commit_every)
    except ValueError as e:
        log.error("Invalid input", extra={"extra": {"error": str(e)}})
        raise SystemExit(2)

    if args.list:
        tile_ids = TileEnumerator(grid).tile_list(bbox, zooms)
        lines: List[str] = [str(t) for t in tile_ids]
        print(f"Number of tiles {len(lines)}")
        for line in lines:
            print(line)
        return

    try:
        report = build_pyramid(
            bbox,
            args.zoomlevel,
            args.filename,
            source,
            grid=grid,
            retry=retry,
            workers=workers,
            commit_every=commit_every,
            progress_every=progress_every,
            metadata=P.get("metadata"),
        )
    except PyramidError as e:
        log.error("Build failed", extra={"extra": {"filename": args.filename, "error": str(e)}})
        raise SystemExit(1)

    print(f"Stored {report.tiles} tiles in {report.filename} ({report.pipeline.elapsed_s:.1f}s)")


if __name__ == "__main__":
    main(sys.argv[1:])
