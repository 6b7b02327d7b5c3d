from __future__ import annotations

"""
Fetch-then-store pipeline.

    request queue --(W fetcher threads)--> store queue --(1 writer thread)--> result queue
                                                                                  |
                                                       orchestrator waits for N results

Fetchers are stateless and interchangeable. The writer is the only thread that
touches the store while the pipeline runs. Every tile produces exactly one
result: an acknowledgement after its insert, or a failure naming the stage.
The first failure sets the shared cancel event; workers then skip whatever is
still queued and exit on their sentinels, and the orchestrator raises.
"""

import queue
import threading
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

from common.logging_setup import get_logger
from common.types import Tile, TileId
from common.utils import RateTimer
from tile_pyramid.errors import PipelineError
from tile_pyramid.retry import RetryPolicy
from tile_pyramid.source import TileSource
from tile_pyramid.store import MBTilesStore


log = get_logger(__name__)

STAGE_FETCH = "fetch"
STAGE_STORE = "store"

_STOP = object()


@dataclass(frozen=True)
class TileResult:
    """Outcome of one tile: acknowledged by the writer or failed at `stage`."""
    tile_id: TileId
    stage: str
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class PipelineReport:
    requested: int
    stored: int
    elapsed_s: float

    @property
    def tiles_per_s(self) -> float:
        return 0.0 if self.elapsed_s <= 0 else self.stored / self.elapsed_s


class TilePipeline:
    """
    Concurrent fetch + single-writer store of a list of tile ids.

    Params:
        source: shared TileSource, called from every fetcher thread
        store: writable MBTilesStore, handed to the writer thread for the run
        workers: number of fetcher threads
        retry: per-tile retry policy for fetch errors
        commit_every: writer commits after this many inserts
        progress_every: log progress after this many acknowledgements
    """

    def __init__(
        self,
        source: TileSource,
        store: MBTilesStore,
        *,
        workers: int = 20,
        retry: Optional[RetryPolicy] = None,
        commit_every: int = 500,
        progress_every: int = 100,
    ):
        self.check_settings(workers, commit_every)
        self.source = source
        self.store = store
        self.workers = int(workers)
        self.retry = retry or RetryPolicy()
        self.commit_every = int(commit_every)
        self.progress_every = max(1, int(progress_every))

    @staticmethod
    def check_settings(workers: int, commit_every: int) -> None:
        """Raise ValueError for settings a pipeline cannot run with."""
        if workers < 1:
            raise ValueError("workers must be >= 1")
        if commit_every < 1:
            raise ValueError("commit_every must be >= 1")

    def run(self, tile_ids: Sequence[TileId]) -> PipelineReport:
        """
        Fetch and store every id; return once all of them are acknowledged.

        Raises:
            PipelineError for the first tile that failed. Threads are joined
            before this returns or raises.
        """
        ids: List[TileId] = list(tile_ids)
        n = len(ids)
        t0 = time.perf_counter()
        if n == 0:
            return PipelineReport(requested=0, stored=0, elapsed_s=0.0)

        requests_q: "queue.Queue[object]" = queue.Queue()
        store_q: "queue.Queue[object]" = queue.Queue()
        results_q: "queue.Queue[TileResult]" = queue.Queue()
        cancel = threading.Event()

        fetchers = [
            threading.Thread(
                target=self._fetch_worker,
                args=(requests_q, store_q, results_q, cancel),
                name=f"tile-fetcher-{i}",
                daemon=True,
            )
            for i in range(min(self.workers, n))
        ]
        writer = threading.Thread(
            target=self._store_worker,
            args=(store_q, results_q, cancel),
            name="tile-writer",
            daemon=True,
        )

        log.info(
            "Pipeline started",
            extra={"extra": {"tiles": n, "workers": len(fetchers), "max_retries": self.retry.max_retries}},
        )
        writer.start()
        for t in fetchers:
            t.start()
        for tile_id in ids:
            requests_q.put(tile_id)
        for _ in fetchers:
            requests_q.put(_STOP)

        failure: Optional[TileResult] = None
        stored = 0
        rate = RateTimer(window=max(2, self.progress_every))
        try:
            while stored < n:
                res = results_q.get()
                if not res.ok:
                    failure = res
                    break
                stored += 1
                tiles_per_s = rate.tick()
                if stored % self.progress_every == 0 or stored == n:
                    log.info(
                        "Tiles stored",
                        extra={"extra": {"stored": stored, "total": n, "tiles_per_s": round(tiles_per_s, 1)}},
                    )
        finally:
            if stored < n:
                cancel.set()
            for t in fetchers:
                t.join()
            # No fetcher is left to produce tiles, so the writer can stop.
            store_q.put(_STOP)
            writer.join()

        if failure is not None:
            log.error(
                "Pipeline aborted",
                extra={
                    "extra": {
                        "tile": str(failure.tile_id),
                        "stage": failure.stage,
                        "error": str(failure.error),
                        "stored": stored,
                        "total": n,
                    }
                },
            )
            raise PipelineError(failure.tile_id, failure.stage, failure.error) from failure.error

        self.store.commit()
        elapsed = time.perf_counter() - t0
        log.info("Pipeline finished", extra={"extra": {"stored": stored, "elapsed_s": round(elapsed, 3)}})
        return PipelineReport(requested=n, stored=stored, elapsed_s=elapsed)

    # -------- workers --------

    def _fetch_worker(
        self,
        requests_q: "queue.Queue[object]",
        store_q: "queue.Queue[object]",
        results_q: "queue.Queue[TileResult]",
        cancel: threading.Event,
    ) -> None:
        while True:
            item = requests_q.get()
            if item is _STOP:
                return
            if cancel.is_set():
                continue
            tile_id: TileId = item  # type: ignore[assignment]
            try:
                data = self.retry.call(
                    tile_id,
                    lambda: self.source.fetch(tile_id.zoom, tile_id.column, tile_id.row),
                    should_stop=cancel.is_set,
                    wait=cancel.wait,
                )
                tile = Tile(tile_id, data)
            except Exception as exc:  # noqa: BLE001 - reported to the orchestrator
                results_q.put(TileResult(tile_id, STAGE_FETCH, exc))
                continue
            except BaseException as exc:
                # Leave the loop but still answer for this tile.
                results_q.put(TileResult(tile_id, STAGE_FETCH, exc))
                return
            store_q.put(tile)

    def _store_worker(
        self,
        store_q: "queue.Queue[object]",
        results_q: "queue.Queue[TileResult]",
        cancel: threading.Event,
    ) -> None:
        while True:
            item = store_q.get()
            if item is _STOP:
                return
            if cancel.is_set():
                continue
            tile: Tile = item  # type: ignore[assignment]
            try:
                self.store.insert_tile(tile)
                if self.store.pending >= self.commit_every:
                    self.store.commit()
            except Exception as exc:  # noqa: BLE001 - reported to the orchestrator
                results_q.put(TileResult(tile.tile_id, STAGE_STORE, exc))
                continue
            except BaseException as exc:
                results_q.put(TileResult(tile.tile_id, STAGE_STORE, exc))
                return
            results_q.put(TileResult(tile.tile_id, STAGE_STORE))
