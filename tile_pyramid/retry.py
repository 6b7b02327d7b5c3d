from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from common.logging_setup import get_logger
from common.types import TileId
from tile_pyramid.errors import FetchError


log = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Per-tile retry budget with exponential backoff.

    delay(n) = min(base_seconds * factor**(n-1), max_seconds) for the n-th retry.
    """
    max_retries: int = 3
    base_seconds: float = 0.5
    factor: float = 2.0
    max_seconds: float = 30.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_seconds < 0 or self.max_seconds < 0:
            raise ValueError("backoff seconds must be >= 0")
        if self.factor < 1:
            raise ValueError("factor must be >= 1")

    def delay_seconds(self, retry_number: int) -> float:
        if retry_number <= 0:
            return 0.0
        delay = self.base_seconds * (self.factor ** (retry_number - 1))
        return float(min(delay, self.max_seconds))

    def call(
        self,
        tile_id: TileId,
        fn: Callable[[], T],
        should_stop: Optional[Callable[[], bool]] = None,
        wait: Optional[Callable[[float], bool]] = None,
    ) -> T:
        """
        Run `fn`, retrying FetchError until the budget is spent.

        The last FetchError is re-raised on exhaustion, or as soon as
        `should_stop()` turns true between attempts. When `wait` is given it
        replaces `sleep` for the backoff (e.g. `threading.Event.wait`); a true
        return means the run was cancelled mid-backoff and the error is
        re-raised without another attempt.
        """
        attempts = 0
        while True:
            attempts += 1
            try:
                return fn()
            except FetchError as exc:
                retries_used = attempts - 1
                if retries_used >= self.max_retries or (should_stop is not None and should_stop()):
                    raise
                retry_number = retries_used + 1
                delay = self.delay_seconds(retry_number)
                log.warning(
                    "Tile fetch failed, retrying",
                    extra={
                        "extra": {
                            "tile": str(tile_id),
                            "attempt": attempts,
                            "retry_number": retry_number,
                            "max_retries": self.max_retries,
                            "delay_seconds": delay,
                            "error": str(exc),
                        }
                    },
                )
                if delay > 0:
                    if wait is not None:
                        if wait(delay):
                            raise
                    else:
                        self.sleep(delay)
