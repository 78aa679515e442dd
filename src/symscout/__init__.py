"""
Symscout — resilient code-search client for pre-authoring checks.

The ``symscout`` package queries a remote code-search service (retrying
transient failures, caching results) and answers "does this symbol
already exist, and is it safe to add another one?" before an agent or
developer writes new code.

Quick start::

    from symscout import Symscout

    async with Symscout() as sg:                      # reads env vars
        report = await sg.perform_mandatory_analysis("function", "createLogger")
        print(report.can_proceed, report.warnings)

Configuration override::

    from symscout import Symscout, SymscoutConfig

    config = SymscoutConfig(access_token="sgp_...", cache_ttl_seconds=60)
    sg = Symscout(config=config)
"""

__version__ = "1.0.0"

# Primary public API: the Symscout facade
from symscout.client import Symscout

# Configuration
from symscout.core.config import AnalysisPolicy, SymscoutConfig

# Result types that callers interact with
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
)

# Telemetry hooks
from symscout.core.telemetry import (
    ErrorReporter,
    LoggingErrorReporter,
    OpenTelemetryErrorReporter,
    configure_logging,
)

# Exception hierarchy
from symscout.exceptions import (
    AuthenticationError,
    ClientRequestError,
    ConfigError,
    FileNotFoundInIndexError,
    PermissionDeniedError,
    SearchError,
    ServiceUnavailableError,
    SymscoutError,
    TransportError,
)


def health(config: SymscoutConfig | None = None) -> dict:
    """
    Return a small status dict for agents or REST health checks (no network).

    When *config* is None, uses :meth:`SymscoutConfig.from_env()` for the snapshot.
    """
    cfg = config or SymscoutConfig.from_env()
    return {
        "version": __version__,
        "instance_url": cfg.instance_url,
        "has_token": bool(cfg.access_token),
    }


__all__ = [
    "__version__",
    # Facade
    "Symscout",
    # Config
    "SymscoutConfig",
    "AnalysisPolicy",
    # Data types
    "AnalysisReport",
    "CacheStats",
    "ClientReport",
    "CodeStructure",
    "DuplicateFinding",
    "FileContent",
    "ImportFindings",
    "PatternFindings",
    "SearchResult",
    "SimilarImplementations",
    "SymbolExistence",
    # Telemetry
    "ErrorReporter",
    "LoggingErrorReporter",
    "OpenTelemetryErrorReporter",
    "configure_logging",
    # Exceptions
    "SymscoutError",
    "ConfigError",
    "TransportError",
    "ServiceUnavailableError",
    "ClientRequestError",
    "AuthenticationError",
    "PermissionDeniedError",
    "SearchError",
    "FileNotFoundInIndexError",
    # Status
    "health",
]
