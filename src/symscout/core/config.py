"""
Symscout Configuration Module

Centralized configuration for the Symscout search client: where the
search service lives, how long results stay fresh, how hard to retry,
and the policy knobs used by the mandatory pre-authoring analysis.

Also holds the query-syntax translation tables used to turn a logical
request ("find declarations of function Foo") into the service's query
language.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

DEFAULT_INSTANCE_URL = "https://sourcegraph.com"
USER_AGENT = "symscout/1.0.0"


# =============================================================================
# Analysis Policy
# =============================================================================

@dataclass
class AnalysisPolicy:
    """
    Hand-tuned thresholds for :meth:`MandatoryAnalyzer.perform_mandatory_analysis`.

    These are policy defaults, not properties of the domain: nothing about
    code search makes "3" the right number of tolerated duplicates.  Tune
    them per organisation without touching the decision algorithm.
    """

    max_duplicate_locations: int = 3
    """Block when findDuplicates reports more distinct locations than this."""
    max_symbol_locations: int = 3
    """Block when the symbol probe reports more locations than this."""
    similar_review_threshold: int = 5
    """Recommend a pattern review above this many similar implementations."""
    report_sample_size: int = 10
    """How many implementations / pattern matches the report keeps."""


# =============================================================================
# Instance-Based Configuration
# =============================================================================

@dataclass
class SymscoutConfig:
    """
    Instance-based configuration for Symscout.

    Each ``SymscoutConfig`` is self-contained and passed down the call
    stack, so tests and multi-tenant services can run several clients with
    different tokens, TTLs and policies side by side.

    Create from environment variables (a ``.env`` file is honoured)::

        config = SymscoutConfig.from_env()

    Or with explicit values::

        config = SymscoutConfig(access_token="sgp_...", cache_ttl_seconds=30)
    """

    # ── Search Service ────────────────────────────────────────────
    instance_url: str = DEFAULT_INSTANCE_URL
    access_token: Optional[str] = None
    user_agent: str = USER_AGENT

    # ── Cache ─────────────────────────────────────────────────────
    cache_ttl_seconds: float = 300.0
    cache_sweep_interval_seconds: float = 60.0

    # ── Transport ─────────────────────────────────────────────────
    search_timeout_seconds: float = 10.0
    max_retries: int = 3
    retry_backoff_base: float = 2.0
    default_result_count: int = 50

    # ── Decision Policy ───────────────────────────────────────────
    policy: AnalysisPolicy = field(default_factory=AnalysisPolicy)

    # ── Logging ───────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "json"

    def __post_init__(self) -> None:
        self.instance_url = (self.instance_url or DEFAULT_INSTANCE_URL).rstrip("/")

    # ── Factory ───────────────────────────────────────────────────

    @classmethod
    def from_env(cls) -> "SymscoutConfig":
        """Build a config snapshot from current environment variables.

        Loads a ``.env`` file from the working directory first, without
        overriding variables that are already set.
        """
        load_dotenv()
        return cls(
            instance_url=os.getenv("SOURCEGRAPH_INSTANCE_URL", DEFAULT_INSTANCE_URL),
            access_token=os.getenv("SOURCEGRAPH_ACCESS_TOKEN"),
            cache_ttl_seconds=float(os.getenv("SYMSCOUT_CACHE_TTL", "300")),
            cache_sweep_interval_seconds=float(
                os.getenv("SYMSCOUT_CACHE_SWEEP_INTERVAL", "60")
            ),
            search_timeout_seconds=float(os.getenv("SYMSCOUT_SEARCH_TIMEOUT", "10")),
            max_retries=int(os.getenv("SYMSCOUT_MAX_RETRIES", "3")),
            log_level=os.getenv("SYMSCOUT_LOG_LEVEL", "INFO"),
            log_format=os.getenv("SYMSCOUT_LOG_FORMAT", "json").lower(),
        )

    # ── Validation & Accessors ────────────────────────────────────

    def validate(self) -> bool:
        """
        Validate that the client can be constructed from this config.

        Raises :class:`~symscout.exceptions.ConfigError` on failure.
        """
        from symscout.exceptions import ConfigError

        if not self.access_token:
            raise ConfigError(
                "SOURCEGRAPH_ACCESS_TOKEN is not configured.\n"
                "  Linux/Mac: export SOURCEGRAPH_ACCESS_TOKEN='sgp_...'\n"
                "  Or add it to your .env file."
            )

        for name in ("cache_ttl_seconds", "cache_sweep_interval_seconds",
                     "search_timeout_seconds"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive, got {getattr(self, name)}")

        if self.max_retries < 0:
            raise ConfigError(f"max_retries must be >= 0, got {self.max_retries}")

        if self.log_format not in ("json", "text"):
            raise ConfigError(
                f"Unknown log format '{self.log_format}'. Supported: json, text.\n"
                "  Set via: export SYMSCOUT_LOG_FORMAT=json"
            )
        return True

    @property
    def api_url(self) -> str:
        """Base URL for the service's REST/stream API."""
        return f"{self.instance_url}/.api"

    def backoff_delay(self, retry_number: int) -> float:
        """Seconds to wait before retry *retry_number* (1-based): 2, 4, 8..."""
        return self.retry_backoff_base ** retry_number


# =============================================================================
# Translation Tables (logical request -> service query syntax)
# =============================================================================

class QuerySyntax:
    """
    Standardized translation tables for the search service's query language.

    Keeping them in one place means the query builder and the result
    shaping code agree on which symbol kinds count as what.
    """

    # Declaration keywords per logical symbol type (regexp alternation)
    DECLARATION_KEYWORDS = {
        "class": "(class|interface)",
        "function": "(function|def|func)",
        "variable": "(const|let|var|val)",
    }

    # Import / include idioms, one per ecosystem.  "{lib}" is the library name.
    IMPORT_PATTERNS = (
        "import.*{lib}",          # JavaScript / TypeScript / Java
        "from {lib} import",      # Python
        "require.*{lib}",         # Node.js / Ruby
        "use {lib}",              # Rust / PHP
        'import "{lib}"',         # Go
        "#include.*{lib}",        # C / C++
    )

    # Symbol kinds as reported by the service
    FUNCTION_KINDS = frozenset({"FUNCTION", "METHOD"})
    CLASS_KINDS = frozenset({"CLASS"})
    INTERFACE_KINDS = frozenset({"INTERFACE"})

    # select: filters used for repository structure analysis
    STRUCTURE_SELECTORS = {
        "classes": "select:symbol.class",
        "functions": "select:symbol.function",
        "interfaces": "select:symbol.interface",
    }

    PATTERN_TYPES = ("literal", "regexp")

    @classmethod
    def declaration_keywords(cls, symbol_type: str) -> Optional[str]:
        """Return the keyword alternation for *symbol_type*, or None if unknown."""
        return cls.DECLARATION_KEYWORDS.get((symbol_type or "").lower())
