"""Latency timing for retrieval stages."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class Timer:
    """Simple context timer."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0


@contextmanager
def timed(label: str) -> Iterator[Timer]:
    """Time the enclosed block and log it, whether or not it raises.

    Works around ``await`` expressions as well as synchronous code.
    """
    timer = Timer()
    try:
        with timer:
            yield timer
    finally:
        logger.info("TIMING %s ms=%d", label, round(timer.elapsed_ms))
