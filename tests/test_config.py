"""
Tests for symscout.core.config — SymscoutConfig, AnalysisPolicy, QuerySyntax.
"""

import pytest
from symscout.core.config import (
    DEFAULT_INSTANCE_URL,
    AnalysisPolicy,
    QuerySyntax,
    SymscoutConfig,
)
from symscout.exceptions import ConfigError


# =============================================================================
# QuerySyntax tests
# =============================================================================

class TestQuerySyntax:
    """Verify the query translation tables."""

    def test_declaration_keywords_per_type(self):
        assert QuerySyntax.declaration_keywords("class") == "(class|interface)"
        assert QuerySyntax.declaration_keywords("function") == "(function|def|func)"
        assert QuerySyntax.declaration_keywords("variable") == "(const|let|var|val)"

    def test_declaration_keywords_is_case_insensitive(self):
        assert QuerySyntax.declaration_keywords("Function") == "(function|def|func)"

    def test_unknown_type_has_no_keywords(self):
        assert QuerySyntax.declaration_keywords("module") is None
        assert QuerySyntax.declaration_keywords("") is None

    def test_import_patterns_cover_six_ecosystems(self):
        assert len(QuerySyntax.IMPORT_PATTERNS) == 6
        assert all("{lib}" in p for p in QuerySyntax.IMPORT_PATTERNS)

    def test_function_kinds_include_methods(self):
        assert QuerySyntax.FUNCTION_KINDS == {"FUNCTION", "METHOD"}


# =============================================================================
# AnalysisPolicy tests
# =============================================================================

class TestAnalysisPolicy:

    def test_defaults(self):
        policy = AnalysisPolicy()
        assert policy.max_duplicate_locations == 3
        assert policy.max_symbol_locations == 3
        assert policy.similar_review_threshold == 5
        assert policy.report_sample_size == 10


# =============================================================================
# SymscoutConfig tests
# =============================================================================

class TestSymscoutConfig:
    """Verify instance config defaults, env loading and validation."""

    def test_defaults(self):
        config = SymscoutConfig(access_token="t")
        assert config.instance_url == DEFAULT_INSTANCE_URL
        assert config.cache_ttl_seconds == 300.0
        assert config.cache_sweep_interval_seconds == 60.0
        assert config.search_timeout_seconds == 10.0
        assert config.max_retries == 3
        assert config.default_result_count == 50

    def test_trailing_slash_is_stripped(self):
        config = SymscoutConfig(instance_url="https://sg.example.com/", access_token="t")
        assert config.instance_url == "https://sg.example.com"
        assert config.api_url == "https://sg.example.com/.api"

    def test_backoff_delays_double(self):
        config = SymscoutConfig(access_token="t")
        assert [config.backoff_delay(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]

    def test_from_env_reads_variables(self, monkeypatch):
        monkeypatch.setenv("SOURCEGRAPH_INSTANCE_URL", "https://sg.internal/")
        monkeypatch.setenv("SOURCEGRAPH_ACCESS_TOKEN", "sgp_env")
        monkeypatch.setenv("SYMSCOUT_CACHE_TTL", "30")
        monkeypatch.setenv("SYMSCOUT_MAX_RETRIES", "1")
        monkeypatch.setenv("SYMSCOUT_LOG_FORMAT", "TEXT")

        config = SymscoutConfig.from_env()

        assert config.instance_url == "https://sg.internal"
        assert config.access_token == "sgp_env"
        assert config.cache_ttl_seconds == 30.0
        assert config.max_retries == 1
        assert config.log_format == "text"

    def test_validate_passes_with_token(self):
        assert SymscoutConfig(access_token="t").validate() is True

    def test_validate_requires_token(self):
        with pytest.raises(ConfigError, match="SOURCEGRAPH_ACCESS_TOKEN"):
            SymscoutConfig(access_token=None).validate()

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            SymscoutConfig(access_token="").validate()

    @pytest.mark.parametrize("field_name", [
        "cache_ttl_seconds", "cache_sweep_interval_seconds", "search_timeout_seconds",
    ])
    def test_validate_rejects_non_positive_durations(self, field_name):
        config = SymscoutConfig(access_token="t", **{field_name: 0})
        with pytest.raises(ConfigError, match=field_name):
            config.validate()

    def test_validate_rejects_negative_retries(self):
        with pytest.raises(ConfigError, match="max_retries"):
            SymscoutConfig(access_token="t", max_retries=-1).validate()

    def test_zero_retries_is_allowed(self):
        assert SymscoutConfig(access_token="t", max_retries=0).validate() is True

    def test_validate_rejects_unknown_log_format(self):
        with pytest.raises(ConfigError, match="log format"):
            SymscoutConfig(access_token="t", log_format="xml").validate()
