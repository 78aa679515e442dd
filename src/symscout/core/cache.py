"""
Symscout Result Cache

In-memory, TTL-bounded cache of search results shared by every search
operation of one client.  A single coarse lock guards the entry map, so
``get``/``set`` from request handlers and the periodic sweep never see a
half-updated map.  Entries are replaced wholesale and never mutated.
"""

import asyncio
import hashlib
import json
import logging
import threading
import time
from typing import Any, Callable, Dict, Mapping, Optional

from symscout.core.models import CacheEntry, CacheStats
from symscout.core.telemetry import (
    ErrorReporter,
    LoggingErrorReporter,
    correlation_scope,
    log_event,
    report_error,
)

logger = logging.getLogger(__name__)

_LOG_KEY_LENGTH = 100


class ResultCache:
    """
    Key/value store of prior query results with per-entry timestamps.

    Args:
        ttl_seconds: Maximum entry age.  An entry whose age is at least
            the TTL is never returned as a hit.
        sweep_interval_seconds: Period of the background :meth:`cleanup`
            task started by :meth:`start_sweeper`.
        clock: Monotonic clock in seconds.  Injectable so tests can move
            time forward without sleeping.
        error_reporter: Sink for sweep failures.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        sweep_interval_seconds: float = 60.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        error_reporter: Optional[ErrorReporter] = None,
    ):
        self.ttl_seconds = ttl_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._error_reporter = error_reporter or LoggingErrorReporter()
        self._entries: Dict[str, CacheEntry] = {}
        self._stats = CacheStats()
        self._lock = threading.Lock()
        self._sweep_task: Optional[asyncio.Task] = None

    # ── Keys ──────────────────────────────────────────────────────

    @staticmethod
    def make_key(operation: str, params: Mapping[str, Any]) -> str:
        """
        Deterministic key for *operation* called with *params*.

        Parameters are serialized with sorted keys, so argument order never
        matters while any differing value yields a different key.  The
        operation name is kept as a readable prefix so different operation
        types can never collide.
        """
        canonical = json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)
        digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
        return f"{operation}:{digest}"

    # ── Read / write ──────────────────────────────────────────────

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value for *key*, or None if absent or stale."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._clock() - entry.stored_at < self.ttl_seconds:
                self._stats.hits += 1
                hit = True
            else:
                self._stats.misses += 1
                hit = False
            stats = self._stats.to_dict()

        log_event(
            logger, logging.DEBUG, "cache_hit" if hit else "cache_miss",
            key=key[:_LOG_KEY_LENGTH], stats=stats,
        )
        return entry.value if hit else None

    def set(self, key: str, value: Any) -> None:
        """Store *value* under *key* with the current time, replacing any entry."""
        with self._lock:
            self._entries[key] = CacheEntry(key=key, value=value, stored_at=self._clock())
            size = len(self._entries)
        log_event(
            logger, logging.DEBUG, "cache_set",
            key=key[:_LOG_KEY_LENGTH], cache_size=size,
        )

    # ── Maintenance ───────────────────────────────────────────────

    def cleanup(self) -> int:
        """
        Remove every entry whose age has reached the TTL.

        The scan and the deletions happen under one lock acquisition, so
        readers observe the map either before or after the whole sweep.

        Returns:
            Number of entries evicted.
        """
        started = time.perf_counter()
        with self._lock:
            now = self._clock()
            expired = [
                key for key, entry in self._entries.items()
                if now - entry.stored_at >= self.ttl_seconds
            ]
            for key in expired:
                del self._entries[key]
            self._stats.evictions += len(expired)
            remaining = len(self._entries)
            stats = self._stats.to_dict()

        if expired:
            log_event(
                logger, logging.INFO, "cache_cleanup_success",
                evicted=len(expired), remaining_size=remaining,
                duration_ms=round((time.perf_counter() - started) * 1000, 3),
                stats=stats,
            )
            self._error_reporter.add_breadcrumb(
                f"Evicted {len(expired)} cache entries",
                category="cache",
                data={"evicted": len(expired), "remaining": remaining},
            )
        return len(expired)

    def clear(self) -> int:
        """Drop every entry immediately.  Returns the number removed."""
        with self._lock:
            cleared = len(self._entries)
            self._entries.clear()
        log_event(logger, logging.INFO, "cache_clear_success", cleared_entries=cleared)
        return cleared

    # ── Introspection ─────────────────────────────────────────────

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def stats(self) -> CacheStats:
        """A snapshot of the counters (not a live view)."""
        with self._lock:
            return CacheStats(
                hits=self._stats.hits,
                misses=self._stats.misses,
                evictions=self._stats.evictions,
            )

    # ── Background sweep ──────────────────────────────────────────

    @property
    def sweeper_running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def start_sweeper(self) -> None:
        """Start the periodic sweep on the running event loop.  Idempotent."""
        if self.sweeper_running:
            return
        self._sweep_task = asyncio.get_running_loop().create_task(
            self._sweep_loop(), name="symscout-cache-sweep",
        )
        logger.debug(f"Cache sweeper started (interval: {self.sweep_interval_seconds}s)")

    async def stop_sweeper(self) -> None:
        """Cancel the periodic sweep and wait for it to finish."""
        task, self._sweep_task = self._sweep_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("Cache sweeper stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            self._sweep_once()

    def _sweep_once(self) -> None:
        """One sweep; failures are reported and never stop the schedule."""
        started = time.perf_counter()
        with correlation_scope() as cid:
            try:
                self.cleanup()
            except Exception as e:
                log_event(
                    logger, logging.ERROR, "cache_cleanup_failed",
                    f"Cache cleanup failed: {e}", exc_info=True,
                    duration_ms=round((time.perf_counter() - started) * 1000, 3),
                )
                report_error(self._error_reporter, e, "cache_cleanup", cid)
