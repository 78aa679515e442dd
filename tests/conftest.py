"""
Shared fixtures for the Symscout test suite.
"""

import json
import os
import sys
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import httpx
import pytest

# Filter deprecation warnings from pytest-asyncio; we cannot fix the library.
warnings.filterwarnings(
    "ignore",
    category=DeprecationWarning,
    module="pytest_asyncio",
)

# Ensure the src/ directory is on the import path so that
# symscout.core.config / symscout.core.search / etc. can be imported.
SRC_ROOT = Path(__file__).resolve().parent.parent / "src"
sys.path.insert(0, str(SRC_ROOT))

# Dummy token so that SymscoutConfig.from_env() validates.
os.environ.setdefault("SOURCEGRAPH_ACCESS_TOKEN", "test-token-not-real")

from symscout.core.config import SymscoutConfig  # noqa: E402


# =============================================================================
# Stream builders
# =============================================================================

def match_event(
    repository: str,
    path: Optional[str] = None,
    *,
    lines: Sequence[tuple] = (),
    symbols: Sequence[tuple] = (),
    language: Optional[str] = None,
    content: Optional[str] = None,
) -> Dict[str, Any]:
    """
    One ``match`` event as sent by the search service.

    *lines* are ``(line_number, preview)`` pairs; *symbols* are
    ``(name, kind)`` or ``(name, kind, container_name)`` tuples.
    """
    data: Dict[str, Any] = {"repository": repository, "commit": "abc123"}
    if path is not None:
        data["file"] = {
            "path": path,
            "url": f"/{repository}/-/blob/{path}",
            "language": language,
            "content": content,
        }
    if lines:
        data["lineMatches"] = [
            {"lineNumber": number, "preview": preview, "offsetAndLengths": [[0, 3]]}
            for number, preview in lines
        ]
    if symbols:
        data["symbols"] = [
            {
                "name": sym[0],
                "kind": sym[1],
                "containerName": sym[2] if len(sym) > 2 else None,
                "url": f"/{repository}/-/blob/{path}#{sym[0]}",
            }
            for sym in symbols
        ]
    return {"type": "match", "data": data}


def ndjson(events: Sequence[Any]) -> str:
    """Serialize events one per line; plain strings are written verbatim."""
    return "\n".join(e if isinstance(e, str) else json.dumps(e) for e in events) + "\n"


# =============================================================================
# Fakes
# =============================================================================

class FakeSearchService:
    """
    In-memory search service behind ``httpx.MockTransport``.

    ``streams`` maps a query string to the events returned for it; unknown
    queries return ``default``.  ``fail_next()`` queues outcomes (a status
    code or an exception instance) consumed by the next requests before
    normal handling resumes.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.streams: Dict[str, Sequence[Any]] = {}
        self.default: Sequence[Any] = []
        self._outcomes: List[Any] = []

    def add(self, query: str, *events: Any) -> None:
        self.streams[query] = list(events)

    def fail_next(self, *outcomes: Any) -> None:
        self._outcomes.extend(outcomes)

    @property
    def queries(self) -> List[str]:
        return [r.url.params.get("q") for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._outcomes:
            outcome = self._outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return httpx.Response(outcome, text=f"upstream said {outcome}")
        events = self.streams.get(request.url.params.get("q"), self.default)
        return httpx.Response(200, text=ndjson(events))


class FakeClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def config() -> SymscoutConfig:
    """SymscoutConfig pointing at a fake instance."""
    return SymscoutConfig(
        instance_url="https://sourcegraph.test/",
        access_token="sgp_test",
    )


@pytest.fixture
def service() -> FakeSearchService:
    return FakeSearchService()


@pytest.fixture
def http_client(service) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(service.handler))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()
