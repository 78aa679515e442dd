"""
Tests for the Symscout client API (symscout.client.Symscout).

Covers the public facade: construction, lifecycle, delegation of every
search operation, cache management, the operational report and health().
"""

from unittest.mock import MagicMock

import pytest

import symscout
from symscout import ConfigError, Symscout, SymscoutConfig
from symscout.core.query import QueryBuilder

from conftest import match_event


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def client(config, http_client, sleeper, clock) -> Symscout:
    """Symscout client wired to the fake search service."""
    return Symscout(config=config, http_client=http_client, sleep=sleeper, clock=clock)


# =============================================================================
# Construction
# =============================================================================

class TestSymscoutConstruction:
    """Client construction from config, kwargs and env."""

    def test_construct_with_explicit_config(self, config, http_client):
        client = Symscout(config=config, http_client=http_client)
        assert client.config is config

    def test_construct_from_kwargs_overrides_env(self):
        client = Symscout(cache_ttl_seconds=30, max_retries=1)
        assert client.config.cache_ttl_seconds == 30
        assert client.config.max_retries == 1
        assert client.config.access_token == "test-token-not-real"

    def test_construct_from_env(self):
        client = Symscout()
        assert client.config.access_token == "test-token-not-real"

    def test_unknown_kwarg_is_rejected(self):
        with pytest.raises(TypeError, match="cache_ttl"):
            Symscout(cache_ttl=30)

    def test_missing_token_fails_at_construction(self):
        reporter = MagicMock()
        with pytest.raises(ConfigError):
            Symscout(config=SymscoutConfig(access_token=None), error_reporter=reporter)
        tags = reporter.capture_exception.call_args.kwargs["tags"]
        assert tags["operation"] == "initialize"

    def test_repr(self, client):
        assert "sourcegraph.test" in repr(client)


# =============================================================================
# Lifecycle
# =============================================================================

class TestLifecycle:

    @pytest.mark.asyncio
    async def test_context_manager_starts_and_stops_sweeper(self, client):
        async with client as sg:
            assert sg is client
            assert client.cache.sweeper_running
        assert not client.cache.sweeper_running

    @pytest.mark.asyncio
    async def test_first_operation_starts_sweeper_without_context_manager(self, client):
        assert not client.cache.sweeper_running
        await client.search_code("Foo")
        assert client.cache.sweeper_running
        await client.aclose()
        assert not client.cache.sweeper_running

    @pytest.mark.asyncio
    async def test_operations_after_close_do_not_restart_sweeper(self, client):
        await client.aclose()
        await client.search_code("Foo")
        assert not client.cache.sweeper_running

    @pytest.mark.asyncio
    async def test_aclose_clears_cache(self, client):
        await client.search_code("Foo")
        assert len(client.cache) == 1
        await client.aclose()
        assert len(client.cache) == 0

    @pytest.mark.asyncio
    async def test_aclose_leaves_injected_http_client_open(self, client, http_client):
        await client.aclose()
        assert not http_client.is_closed

    @pytest.mark.asyncio
    async def test_aclose_is_idempotent(self, client):
        await client.aclose()
        await client.aclose()


# =============================================================================
# Operations through the facade
# =============================================================================

class TestOperations:

    @pytest.mark.asyncio
    async def test_search_code(self, client, service):
        service.add("Foo", match_event("acme/api", "a.py"))
        result = await client.search_code("Foo", count=5)
        assert result.result_count == 1
        assert service.requests[0].url.params["count"] == "5"

    @pytest.mark.asyncio
    async def test_default_and_explicit_timeout_share_cache_entry(self, client, service):
        await client.search_code("Foo")
        await client.search_code("Foo", timeout=10)
        await client.search_code("Foo", count=50, timeout=10.0)
        assert len(service.requests) == 1
        assert service.requests[0].url.params["timeout"] == "10s"

    @pytest.mark.asyncio
    async def test_check_symbol_exists_twice_issues_one_request(self, client, service):
        service.add(
            "createLogger type:symbol",
            match_event("acme/api", "log.js", symbols=[("createLogger", "function")]),
        )
        first = await client.check_symbol_exists("createLogger")
        second = await client.check_symbol_exists("createLogger")
        assert first.exists and second.exists
        assert first.location_count == second.location_count == 1
        assert len(service.requests) == 1

    @pytest.mark.asyncio
    async def test_every_operation_is_delegated(self, client, service):
        service.add(
            QueryBuilder.file("acme/api", "a.py"),
            match_event("acme/api", "a.py", content="x = 1\n"),
        )
        await client.find_duplicates("function", "Foo")
        await client.find_similar_implementations("Foo(a, b)")
        await client.find_patterns("Foo", "*.py")
        await client.find_imports("requests")
        await client.analyze_code_structure("acme/api")
        file_content = await client.get_file_content("acme/api", "a.py")

        assert file_content.content == "x = 1\n"
        assert len(service.requests) == 9

    @pytest.mark.asyncio
    async def test_mandatory_analysis_end_to_end(self, client, service):
        service.add(
            QueryBuilder.declarations("function", "Foo"),
            *[match_event(f"acme/r{i}", "a.js", lines=[(1, "function Foo() {}")]) for i in range(4)],
        )
        report = await client.perform_mandatory_analysis("function", "Foo")

        assert report.can_proceed is False
        assert report.checks.duplicates.duplicate_count == 4
        assert len(service.requests) == 4

    @pytest.mark.asyncio
    async def test_mandatory_analysis_fails_fast(self, client, service):
        service.fail_next(401)
        with pytest.raises(symscout.AuthenticationError):
            await client.perform_mandatory_analysis("function", "Foo")

    def test_validate_no_duplicates(self, client):
        from symscout.core.models import DuplicateFinding

        finding = DuplicateFinding(type="class", name="Foo", is_duplicate=True, duplicate_count=2)
        assert client.validate_no_duplicates(finding) is False


# =============================================================================
# Cache management and status
# =============================================================================

class TestCacheAndStatus:

    @pytest.mark.asyncio
    async def test_clear_cache_and_stats(self, client):
        await client.search_code("Foo")
        await client.search_code("Foo")
        stats = client.cache_stats()
        assert (stats.hits, stats.misses) == (1, 1)
        assert client.clear_cache() == 1
        assert client.clear_cache() == 0

    @pytest.mark.asyncio
    async def test_report_when_healthy(self, client, service):
        report = await client.generate_analysis_report()
        assert report.healthy
        assert report.health["error"] is None
        assert report.client == {
            "instance_url": "https://sourcegraph.test",
            "has_token": True,
            "is_configured": True,
        }
        assert report.cache["ttl_seconds"] == 300.0
        params = service.requests[0].url.params
        assert params["q"] == "test"
        assert params["count"] == "1"
        assert params["timeout"] == "5s"

    @pytest.mark.asyncio
    async def test_report_when_unhealthy_does_not_raise(self, client, service):
        service.fail_next(*[503] * 4)
        report = await client.generate_analysis_report()
        assert report.health["status"] == "unhealthy"
        assert "503" in report.health["error"]

    def test_health_has_no_network(self, client, service):
        status = client.health()
        assert status == {
            "version": symscout.__version__,
            "instance_url": "https://sourcegraph.test",
            "has_token": True,
        }
        assert service.requests == []

    def test_module_health_reads_env(self):
        assert symscout.health()["has_token"] is True
