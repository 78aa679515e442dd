"""
Symscout Client Facade

Single entry point for programmatic use of Symscout.  Wires transport,
cache, search operations and the mandatory analyzer together behind one
instance-based, async API.

Usage::

    from symscout import Symscout

    # From environment variables (SOURCEGRAPH_ACCESS_TOKEN, ...)
    async with Symscout() as sg:
        result = await sg.search_code("createLogger", count=20)
        print(f"{result.result_count} matches")

        report = await sg.perform_mandatory_analysis("function", "createLogger")
        if not report.can_proceed:
            print("\\n".join(report.warnings))

    # With explicit configuration
    from symscout import SymscoutConfig
    sg = Symscout(config=SymscoutConfig(access_token="sgp_...", cache_ttl_seconds=30))
    ...
    await sg.aclose()
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

import httpx

from symscout.core.analyzer import MandatoryAnalyzer
from symscout.core.cache import ResultCache
from symscout.core.config import SymscoutConfig
from symscout.core.models import (
    AnalysisReport,
    CacheStats,
    ClientReport,
    CodeStructure,
    DuplicateFinding,
    FileContent,
    ImportFindings,
    PatternFindings,
    SearchResult,
    SimilarImplementations,
    SymbolExistence,
    utc_now_iso,
)
from symscout.core.search import SearchOperations
from symscout.core.telemetry import (
    ErrorReporter,
    LoggingErrorReporter,
    correlation_scope,
    log_event,
    report_error,
)
from symscout.core.transport import SearchTransport

logger = logging.getLogger(__name__)

_HEALTH_PROBE_TIMEOUT = 5.0


class Symscout:
    """
    High-level Symscout client.

    Each instance carries its own :class:`SymscoutConfig`, cache and HTTP
    client and never touches global state, so several clients with
    different tokens or policies can live in one process.

    Args:
        config: Explicit configuration object.  When *None*, a config
            is built from environment variables or keyword overrides.
        http_client: Pre-built ``httpx.AsyncClient``; the client does not
            close one it did not create.
        sleep: Backoff sleep coroutine (tests pass a recorder).
        clock: Monotonic clock for cache ages (tests pass a fake).
        error_reporter: Error-tracking sink.  Defaults to logging.
        **kwargs: Forwarded to :class:`SymscoutConfig` when *config* is
            ``None`` (e.g. ``cache_ttl_seconds=30``).

    Raises:
        ConfigError: No access token, or invalid numeric settings.
        TypeError: A keyword override is not a SymscoutConfig field.
    """

    def __init__(
        self,
        config: SymscoutConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        error_reporter: ErrorReporter | None = None,
        **kwargs,
    ):
        if config is not None:
            self._config = config
        elif kwargs:
            # Build a config from env, then overlay keyword overrides
            base = SymscoutConfig.from_env()
            unknown = sorted(set(kwargs) - set(base.__dataclass_fields__))
            if unknown:
                raise TypeError(
                    f"Unknown SymscoutConfig option(s): {', '.join(unknown)}"
                )
            merged = {
                f.name: kwargs.get(f.name, getattr(base, f.name))
                for f in base.__dataclass_fields__.values()
            }
            self._config = SymscoutConfig(**merged)
        else:
            self._config = SymscoutConfig.from_env()

        self._error_reporter = error_reporter or LoggingErrorReporter()

        with correlation_scope() as cid:
            log_event(
                logger, logging.INFO, "symscout_init_start",
                instance_url=self._config.instance_url,
            )
            try:
                self._transport = SearchTransport(
                    self._config,
                    http_client=http_client,
                    sleep=sleep,
                    error_reporter=self._error_reporter,
                )
            except Exception as e:
                log_event(
                    logger, logging.ERROR, "symscout_init_failed",
                    f"Symscout initialization failed: {e}",
                    instance_url=self._config.instance_url, error=type(e).__name__,
                )
                report_error(
                    self._error_reporter, e, "initialize", cid,
                    instance_url=self._config.instance_url,
                )
                raise

            self._cache = ResultCache(
                self._config.cache_ttl_seconds,
                self._config.cache_sweep_interval_seconds,
                clock=clock,
                error_reporter=self._error_reporter,
            )
            self._operations = SearchOperations(
                self._transport, self._cache, self._config, self._error_reporter,
            )
            self._analyzer = MandatoryAnalyzer(
                self._operations, self._config.policy, self._error_reporter,
            )
            self._closed = False
            log_event(
                logger, logging.INFO, "symscout_init_success",
                instance_url=self._config.instance_url,
                cache_ttl_seconds=self._config.cache_ttl_seconds,
                max_retries=self._config.max_retries,
            )

    # ── Configuration ─────────────────────────────────────────────

    @property
    def config(self) -> SymscoutConfig:
        """The active configuration for this client."""
        return self._config

    @property
    def cache(self) -> ResultCache:
        return self._cache

    # ── Lifecycle ─────────────────────────────────────────────────

    async def __aenter__(self) -> "Symscout":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def start(self) -> None:
        """
        Start the periodic cache sweep on the running event loop.

        Called by ``async with``; every operation also calls it, so a client
        used without the context manager still sweeps.  Idempotent, and a
        no-op once the client is closed.
        """
        if not self._closed:
            self._cache.start_sweeper()

    async def aclose(self) -> None:
        """
        Shut the client down.

        Cancels the cache sweep, clears the cache and closes the HTTP client
        if this instance created it.  Requests already in flight are left to
        finish.  Idempotent.
        """
        if self._closed:
            return
        self._closed = True
        await self._cache.stop_sweeper()
        stats = self._cache.stats
        cleared = self._cache.clear()
        await self._transport.aclose()
        log_event(
            logger, logging.INFO, "symscout_shutdown",
            cleared_entries=cleared, stats=stats.to_dict(),
            requests_sent=self._transport.requests_sent,
        )

    # ── Search operations ─────────────────────────────────────────

    async def search_code(
        self,
        query: str,
        *,
        pattern_type: str = "literal",
        count: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> SearchResult:
        """Raw search; see :meth:`SearchOperations.search_code`."""
        self.start()
        return await self._operations.search_code(
            query, pattern_type=pattern_type, count=count, timeout=timeout,
        )

    async def find_duplicates(self, symbol_type: str, name: str) -> DuplicateFinding:
        self.start()
        return await self._operations.find_duplicates(symbol_type, name)

    async def check_symbol_exists(self, symbol_name: str, symbol_type: str = "") -> SymbolExistence:
        self.start()
        return await self._operations.check_symbol_exists(symbol_name, symbol_type)

    async def find_similar_implementations(self, signature: str) -> SimilarImplementations:
        self.start()
        return await self._operations.find_similar_implementations(signature)

    async def find_patterns(self, pattern: str, file_filter: str = "") -> PatternFindings:
        self.start()
        return await self._operations.find_patterns(pattern, file_filter)

    async def find_imports(self, library_name: str) -> ImportFindings:
        self.start()
        return await self._operations.find_imports(library_name)

    async def analyze_code_structure(self, repo: str) -> CodeStructure:
        self.start()
        return await self._operations.analyze_code_structure(repo)

    async def get_file_content(self, repo: str, path: str) -> FileContent:
        self.start()
        return await self._operations.get_file_content(repo, path)

    # ── Composite analysis ────────────────────────────────────────

    async def perform_mandatory_analysis(self, code_type: str, code_name: str) -> AnalysisReport:
        """
        Gate the introduction of a new symbol.

        Returns:
            :class:`AnalysisReport`; check ``can_proceed`` before authoring.
        """
        self.start()
        return await self._analyzer.perform_mandatory_analysis(code_type, code_name)

    def validate_no_duplicates(self, finding: DuplicateFinding) -> bool:
        return self._analyzer.validate_no_duplicates(finding)

    # ── Cache management ──────────────────────────────────────────

    def clear_cache(self) -> int:
        """Drop every cached result.  Returns the number of entries removed."""
        return self._cache.clear()

    def cache_stats(self) -> CacheStats:
        return self._cache.stats

    # ── Status ────────────────────────────────────────────────────

    def health(self) -> dict:
        """Status dict for readiness probes (no network)."""
        from symscout import health

        return health(self._config)

    async def generate_analysis_report(self) -> ClientReport:
        """
        Operational report: configuration, cache usage and a live probe.

        The probe is a one-result search with a short timeout; its failure
        marks the report unhealthy instead of raising.
        """
        self.start()
        started = time.perf_counter()
        with correlation_scope() as cid:
            log_event(logger, logging.INFO, "generate_report_start")
            try:
                stats = self._cache.stats
                health = {"status": "healthy", "last_check": utc_now_iso(), "error": None}
                try:
                    await self._operations.search_code(
                        "test", count=1, timeout=_HEALTH_PROBE_TIMEOUT,
                    )
                except Exception as e:
                    health["status"] = "unhealthy"
                    health["error"] = str(e)

                report = ClientReport(
                    correlation_id=cid,
                    client={
                        "instance_url": self._config.instance_url,
                        "has_token": bool(self._config.access_token),
                        "is_configured": True,
                    },
                    cache={
                        "size": len(self._cache),
                        "stats": stats.to_dict(),
                        "hit_rate": round(stats.hit_rate, 4),
                        "ttl_seconds": self._config.cache_ttl_seconds,
                    },
                    health=health,
                )
            except Exception as e:
                log_event(
                    logger, logging.ERROR, "generate_report_failed",
                    f"Report generation failed: {e}", exc_info=True,
                )
                report_error(
                    self._error_reporter, e, "generate_analysis_report", cid,
                    duration_ms=round((time.perf_counter() - started) * 1000, 3),
                )
                raise

            log_event(
                logger, logging.INFO, "generate_report_success",
                health_status=report.health["status"],
                cache_size=report.cache["size"],
                duration_ms=round((time.perf_counter() - started) * 1000, 3),
            )
            return report

    def __repr__(self) -> str:
        return f"Symscout(instance_url={self._config.instance_url!r})"
