"""
Symscout Transport

Authenticated HTTP access to the search service with retry and
exponential backoff, built on ``httpx.AsyncClient``.

Retry policy:
    * retried: no response at all (connect error, timeout, protocol
      error) or a status >= 500;
    * never retried: 4xx, surfaced at once with a remediation hint;
    * at most ``max_retries`` retries, waiting ``backoff_base ** n``
      seconds before retry *n* (2s, 4s, 8s with the defaults).

The service answers searches with newline-delimited JSON events.
:func:`parse_event_stream` keeps only ``match`` events, in arrival
order, and silently skips lines that are not valid JSON.
"""

import asyncio
import json
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional

import httpx

from symscout.core.config import SymscoutConfig
from symscout.core.telemetry import (
    ErrorReporter,
    LoggingErrorReporter,
    get_correlation_id,
    log_event,
    report_error,
)
from symscout.exceptions import (
    AuthenticationError,
    ClientRequestError,
    PermissionDeniedError,
    ServiceUnavailableError,
    TransportError,
)

logger = logging.getLogger(__name__)

STREAM_SEARCH_PATH = "/search/stream"


def parse_event_stream(lines: Iterable[str]) -> List[Dict[str, Any]]:
    """
    Fold a newline-delimited JSON stream into its match payloads.

    Blank lines, lines that fail to parse, and events whose ``type`` is
    anything other than ``"match"`` are skipped; they never abort the
    search.  Returns the ``data`` payload of each match event in order.
    """
    matches: List[Dict[str, Any]] = []
    skipped = 0
    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            event = json.loads(line)
        except json.JSONDecodeError:
            skipped += 1
            continue
        if (
            isinstance(event, dict)
            and event.get("type") == "match"
            and isinstance(event.get("data"), dict)
        ):
            matches.append(event["data"])

    if skipped:
        logger.debug(f"Skipped {skipped} malformed stream line(s)")
    return matches


class SearchTransport:
    """
    HTTP transport for the search service.

    Construction fails fast with :class:`~symscout.exceptions.ConfigError`
    when the config has no access token.

    Args:
        config: Client configuration (instance URL, token, retry budget).
        http_client: Pre-built ``httpx.AsyncClient`` (e.g. one with a mock
            transport).  When omitted the transport creates and owns one.
        sleep: Coroutine used for backoff delays; injectable for tests.
        error_reporter: Sink for failures that escape the transport.
    """

    def __init__(
        self,
        config: SymscoutConfig,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        error_reporter: Optional[ErrorReporter] = None,
    ):
        config.validate()
        self._config = config
        self._sleep = sleep
        self._error_reporter = error_reporter or LoggingErrorReporter()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.search_timeout_seconds,
        )
        self._headers = {
            "Authorization": f"token {config.access_token}",
            "Accept": "application/x-ndjson, application/json",
            "User-Agent": config.user_agent,
        }
        # Per-call counters, used only for logging
        self._requests_sent = 0
        self._retries_made = 0

    @property
    def requests_sent(self) -> int:
        """Total HTTP attempts made by this transport (retries included)."""
        return self._requests_sent

    # ── Public API ────────────────────────────────────────────────

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """
        Send one logical request, retrying transient failures.

        Args:
            method: HTTP method.
            path: Path below the API root (e.g. ``/search/stream``).
            params: Query parameters.
            timeout: Per-attempt budget in seconds.  Expiry counts as a
                transient failure.

        Returns:
            The first response with a status below 400.

        Raises:
            AuthenticationError: 401.
            PermissionDeniedError: 403.
            ClientRequestError: Any other 4xx.
            ServiceUnavailableError: No response after every retry.
            TransportError: 5xx after every retry.
        """
        url = f"{self._config.api_url}{path}"
        budget = timeout or self._config.search_timeout_seconds
        max_retries = self._config.max_retries
        last_exc: Optional[BaseException] = None
        last_status: Optional[int] = None
        request_id = ""

        for attempt in range(max_retries + 1):
            request_id = str(uuid.uuid4())
            self._requests_sent += 1
            log_event(
                logger, logging.DEBUG, "search_request",
                request_id=request_id, method=method.upper(), path=path,
                params=dict(params or {}), attempt=attempt + 1,
            )

            started = time.perf_counter()
            try:
                response = await self._client.request(
                    method.upper(), url,
                    params=params,
                    headers=self._request_headers(request_id),
                    timeout=budget,
                )
            except httpx.TransportError as e:
                last_exc, last_status = e, None
                log_event(
                    logger, logging.WARNING, "search_request_failed",
                    f"{method.upper()} {path} failed without a response: {e}",
                    request_id=request_id, method=method.upper(), path=path,
                    status=None, duration_ms=self._elapsed_ms(started),
                    error=type(e).__name__,
                )
            else:
                status = response.status_code
                duration_ms = self._elapsed_ms(started)
                if status < 400:
                    log_event(
                        logger, logging.DEBUG, "search_response",
                        request_id=request_id, method=method.upper(), path=path,
                        status=status, duration_ms=duration_ms,
                        payload_size=len(response.content),
                    )
                    return response

                log_event(
                    logger, logging.WARNING, "search_request_failed",
                    f"{method.upper()} {path} returned {status}",
                    request_id=request_id, method=method.upper(), path=path,
                    status=status, duration_ms=duration_ms,
                    body=response.text[:200],
                )
                if status < 500:
                    client_error = self._client_error(response, request_id)
                    report_error(
                        self._error_reporter, client_error, "transport_request",
                        method=method.upper(), path=path, params=dict(params or {}),
                        status=status, duration_ms=duration_ms,
                    )
                    raise client_error
                last_exc, last_status = None, status

            if attempt < max_retries:
                delay = self._config.backoff_delay(attempt + 1)
                self._retries_made += 1
                log_event(
                    logger, logging.INFO, "search_retry",
                    f"Retrying {method.upper()} {path} in {delay:.1f}s "
                    f"(retry {attempt + 1}/{max_retries})",
                    request_id=request_id, retry_count=attempt + 1, delay=delay,
                    path=path, status=last_status,
                )
                self._error_reporter.add_breadcrumb(
                    f"Retrying {path}",
                    category="transport",
                    data={"retry_count": attempt + 1, "delay": delay, "status": last_status},
                )
                await self._sleep(delay)

        attempts = max_retries + 1
        if last_status is None:
            error: TransportError = ServiceUnavailableError(
                f"Cannot connect to the search service at {self._config.instance_url} "
                f"after {attempts} attempts ({type(last_exc).__name__}: {last_exc}). "
                "Please ensure it is running and reachable.",
                attempts=attempts, request_id=request_id,
            )
        else:
            error = TransportError(
                f"Search service kept failing with status {last_status} "
                f"after {attempts} attempts.",
                status_code=last_status, attempts=attempts, request_id=request_id,
            )
        log_event(
            logger, logging.ERROR, "search_request_exhausted", str(error),
            request_id=request_id, path=path, attempts=attempts, status=last_status,
        )
        report_error(
            self._error_reporter, error, "transport_request",
            method=method.upper(), path=path, params=dict(params or {}),
            attempts=attempts,
        )
        if last_exc is not None:
            raise error from last_exc
        raise error

    async def stream_search(
        self,
        params: Mapping[str, Any],
        *,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """GET the streaming search endpoint."""
        return await self.request("GET", STREAM_SEARCH_PATH, params=params, timeout=timeout)

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()
        log_event(
            logger, logging.DEBUG, "transport_closed",
            requests_sent=self._requests_sent, retries_made=self._retries_made,
        )

    # ── Internal helpers ──────────────────────────────────────────

    def _request_headers(self, request_id: str) -> Dict[str, str]:
        headers = {**self._headers, "X-Request-ID": request_id}
        cid = get_correlation_id()
        if cid:
            headers["X-Correlation-ID"] = cid
        return headers

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 3)

    @staticmethod
    def _client_error(response: httpx.Response, request_id: str) -> ClientRequestError:
        """Map a 4xx response to an exception carrying a remediation hint."""
        status = response.status_code
        if status == 401:
            return AuthenticationError(
                "Search service authentication failed. "
                "Please check your SOURCEGRAPH_ACCESS_TOKEN.",
                status_code=status, request_id=request_id,
            )
        if status == 403:
            return PermissionDeniedError(
                "Search service access forbidden. Please check your permissions.",
                status_code=status, request_id=request_id,
            )
        return ClientRequestError(
            f"Search request rejected with status {status}: {response.text[:200]}",
            status_code=status, request_id=request_id,
        )
