"""Bounded worker pool for outbound classification calls.

InferenceClient is synchronous, so each provider round trip runs on a worker
thread. At most ``max_concurrent`` calls are in flight; further calls wait up
to ``queue_timeout`` seconds for a slot and then fail with TransportError, so
a saturated provider surfaces as a transport failure on the analyze envelope
rather than an unbounded backlog.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from visiontag.errors import TransportError

if TYPE_CHECKING:
    from collections.abc import Callable

    from visiontag.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

QUEUE_FULL_MESSAGE = "Classification queue is full, try again later"


@dataclass(frozen=True)
class PoolStats:
    """Point-in-time counters for the health endpoint."""

    active: int
    waiting: int
    completed: int
    failed: int


class ClassificationPool:
    """Runs blocking provider calls on a bounded set of worker threads."""

    def __init__(self, max_concurrent: int, *, queue_timeout: float = 5.0) -> None:
        self._queue_timeout = queue_timeout
        self._slots = asyncio.Semaphore(max_concurrent)
        self._executor = ThreadPoolExecutor(max_workers=max_concurrent, thread_name_prefix="hf-classify")
        self._lock = threading.Lock()
        self._active = 0
        self._waiting = 0
        self._completed = 0
        self._failed = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> ClassificationPool:
        return cls(settings.max_concurrent, queue_timeout=settings.queue_timeout)

    async def run(self, func: Callable[..., T], *args: object) -> T:
        """Run ``func(*args)`` on a worker thread once a slot is free.

        Exceptions raised by ``func`` propagate unchanged and count as failures.

        Raises:
            TransportError: If no slot frees up within the queue timeout.
        """
        with self._lock:
            self._waiting += 1
        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=self._queue_timeout)
        except TimeoutError as exc:
            logger.warning("No classification slot free after %.1fs", self._queue_timeout)
            raise TransportError(QUEUE_FULL_MESSAGE) from exc
        finally:
            with self._lock:
                self._waiting -= 1

        with self._lock:
            self._active += 1
        started = time.perf_counter()
        succeeded = False
        try:
            result = await asyncio.get_running_loop().run_in_executor(self._executor, func, *args)
            succeeded = True
            return result
        finally:
            self._slots.release()
            elapsed_ms = (time.perf_counter() - started) * 1000
            with self._lock:
                self._active -= 1
                if succeeded:
                    self._completed += 1
                else:
                    self._failed += 1
            logger.debug("Provider call %s in %.0f ms", "succeeded" if succeeded else "failed", elapsed_ms)

    def stats(self) -> PoolStats:
        with self._lock:
            return PoolStats(
                active=self._active,
                waiting=self._waiting,
                completed=self._completed,
                failed=self._failed,
            )

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
        logger.info("Classification pool shut down")
