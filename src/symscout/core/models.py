"""
Symscout Data Models

Typed results for every search operation.  All result types are frozen
dataclasses holding tuples, so a value handed out of the cache can be
shared between concurrent callers without anyone mutating it in place.
Each type offers ``to_dict()`` for JSON logging and agent pipelines.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# Raw matches (one per hit from the search service)
# =============================================================================

@dataclass(frozen=True)
class LineMatch:
    """A single matching line inside a file."""
    line_number: Optional[int]
    preview: str = ""
    offset_and_lengths: Tuple[Tuple[int, int], ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LineMatch":
        offsets = tuple(
            tuple(pair) for pair in data.get("offsetAndLengths") or ()
            if isinstance(pair, (list, tuple))
        )
        return cls(
            line_number=data.get("lineNumber"),
            preview=data.get("preview") or "",
            offset_and_lengths=offsets,
        )


@dataclass(frozen=True)
class SymbolInfo:
    """Symbol metadata attached to a symbol-search hit."""
    name: str
    kind: str = ""
    container_name: Optional[str] = None
    url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SymbolInfo":
        return cls(
            name=data.get("name") or "",
            kind=(data.get("kind") or "").upper(),
            container_name=data.get("containerName"),
            url=data.get("url"),
        )


@dataclass(frozen=True)
class Match:
    """One located occurrence returned by the search service."""
    repository: str
    file_path: Optional[str] = None
    file_url: Optional[str] = None
    language: Optional[str] = None
    content: Optional[str] = None
    commit: Optional[str] = None
    line_matches: Tuple[LineMatch, ...] = ()
    symbols: Tuple[SymbolInfo, ...] = ()

    @property
    def line_number(self) -> Optional[int]:
        """Line number of the first line match, if any."""
        return self.line_matches[0].line_number if self.line_matches else None

    @property
    def preview(self) -> Optional[str]:
        """Preview text of the first line match, if any."""
        return self.line_matches[0].preview if self.line_matches else None

    @property
    def location_key(self) -> str:
        """``repository:file`` identity used to group hits by location."""
        return f"{self.repository}:{self.file_path}"

    @classmethod
    def from_event(cls, data: Dict[str, Any]) -> "Match":
        """Build a Match from the ``data`` payload of a ``match`` event."""
        file_info = data.get("file") or {}
        return cls(
            repository=data.get("repository") or "",
            file_path=file_info.get("path"),
            file_url=file_info.get("url"),
            language=file_info.get("language"),
            content=file_info.get("content"),
            commit=data.get("commit"),
            line_matches=tuple(
                LineMatch.from_dict(lm) for lm in data.get("lineMatches") or ()
                if isinstance(lm, dict)
            ),
            symbols=tuple(
                SymbolInfo.from_dict(s) for s in data.get("symbols") or ()
                if isinstance(s, dict)
            ),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SearchResult:
    """Output of :meth:`SearchOperations.search_code`."""
    query: str
    results: Tuple[Match, ...]
    timestamp: str = field(default_factory=utc_now_iso)

    @property
    def result_count(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["result_count"] = self.result_count
        return data


# =============================================================================
# Operation-specific findings
# =============================================================================

@dataclass(frozen=True)
class Location:
    """Where a declaration was found."""
    repository: str
    file: Optional[str]
    line: Optional[int] = None


@dataclass(frozen=True)
class DuplicateGroup:
    """All line matches of one declaration within a single file."""
    repository: str
    file: Optional[str]
    line_matches: Tuple[LineMatch, ...] = ()


@dataclass(frozen=True)
class DuplicateFinding:
    """Result of :meth:`SearchOperations.find_duplicates`."""
    type: str
    name: str
    is_duplicate: bool
    duplicate_count: int
    locations: Tuple[Location, ...] = ()
    duplicates: Tuple[DuplicateGroup, ...] = ()
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SymbolLocation:
    """A symbol occurrence with its declaring file and kind."""
    repository: str
    file: Optional[str]
    name: str
    kind: str = ""
    container_name: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class SymbolExistence:
    """Result of :meth:`SearchOperations.check_symbol_exists`."""
    symbol_name: str
    symbol_type: str
    exists: bool
    locations: Tuple[SymbolLocation, ...] = ()
    timestamp: str = field(default_factory=utc_now_iso)

    @property
    def location_count(self) -> int:
        return len(self.locations)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["location_count"] = self.location_count
        return data


@dataclass(frozen=True)
class SimilarImplementations:
    """Result of :meth:`SearchOperations.find_similar_implementations`."""
    signature: str
    function_name: str
    implementation_count: int
    implementations: Tuple[SymbolLocation, ...] = ()
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PatternMatch:
    """One line-level regexp hit."""
    repository: str
    file: Optional[str]
    line: Optional[int]
    preview: str = ""
    offset_and_lengths: Tuple[Tuple[int, int], ...] = ()


@dataclass(frozen=True)
class PatternFindings:
    """Result of :meth:`SearchOperations.find_patterns`."""
    pattern: str
    file_filter: str
    match_count: int
    matches: Tuple[PatternMatch, ...] = ()
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ImportStatement:
    """A single import/include line."""
    repository: str
    file: Optional[str]
    line: Optional[int]
    statement: str = ""


@dataclass(frozen=True)
class ImportFileGroup:
    """Import statements grouped by ``repository:file``."""
    repository: str
    file: Optional[str]
    imports: Tuple[ImportStatement, ...] = ()


@dataclass(frozen=True)
class ImportFindings:
    """Result of :meth:`SearchOperations.find_imports`."""
    library_name: str
    imports: Tuple[ImportStatement, ...] = ()
    by_file: Tuple[ImportFileGroup, ...] = ()
    timestamp: str = field(default_factory=utc_now_iso)

    @property
    def total_imports(self) -> int:
        return len(self.imports)

    @property
    def file_count(self) -> int:
        return len(self.by_file)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["total_imports"] = self.total_imports
        data["file_count"] = self.file_count
        return data


@dataclass(frozen=True)
class StructureSymbol:
    """A class / function / interface declared in a repository."""
    name: str
    file: Optional[str]
    container_name: Optional[str] = None


@dataclass(frozen=True)
class StructureFile:
    path: str
    language: Optional[str] = None


@dataclass(frozen=True)
class CodeStructure:
    """Result of :meth:`SearchOperations.analyze_code_structure`."""
    repository: str
    classes: Tuple[StructureSymbol, ...] = ()
    functions: Tuple[StructureSymbol, ...] = ()
    interfaces: Tuple[StructureSymbol, ...] = ()
    files: Tuple[StructureFile, ...] = ()
    languages: Tuple[str, ...] = ()
    """Distinct file languages, in first-seen order."""
    timestamp: str = field(default_factory=utc_now_iso)

    @property
    def statistics(self) -> Dict[str, Any]:
        return {
            "class_count": len(self.classes),
            "function_count": len(self.functions),
            "interface_count": len(self.interfaces),
            "file_count": len(self.files),
            "languages": list(self.languages),
        }

    def to_dict(self) -> dict:
        data = asdict(self)
        data["statistics"] = self.statistics
        return data


@dataclass(frozen=True)
class FileContent:
    """Result of :meth:`SearchOperations.get_file_content`."""
    repository: str
    path: str
    content: Optional[str] = None
    url: Optional[str] = None
    commit: Optional[str] = None
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# Composite analysis
# =============================================================================

@dataclass(frozen=True)
class AnalysisChecks:
    """The four sub-results a mandatory analysis is built from."""
    duplicates: DuplicateFinding
    symbol_exists: SymbolExistence
    similar_implementations: SimilarImplementations
    patterns: PatternFindings

    def to_dict(self) -> dict:
        return {
            "duplicates": self.duplicates.to_dict(),
            "symbol_exists": self.symbol_exists.to_dict(),
            "similar_implementations": self.similar_implementations.to_dict(),
            "patterns": self.patterns.to_dict(),
        }


@dataclass(frozen=True)
class AnalysisReport:
    """Verdict on whether a new symbol can be introduced safely.

    Created fresh per analysis and never cached.
    """
    correlation_id: str
    code_type: str
    code_name: str
    checks: AnalysisChecks
    warnings: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()
    can_proceed: bool = True
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return {
            "correlation_id": self.correlation_id,
            "timestamp": self.timestamp,
            "code_type": self.code_type,
            "code_name": self.code_name,
            "checks": self.checks.to_dict(),
            "warnings": list(self.warnings),
            "recommendations": list(self.recommendations),
            "can_proceed": self.can_proceed,
        }


@dataclass(frozen=True)
class ClientReport:
    """Operational snapshot of one client: configuration, cache and health."""
    correlation_id: str
    client: Dict[str, Any]
    cache: Dict[str, Any]
    health: Dict[str, Any]
    timestamp: str = field(default_factory=utc_now_iso)

    @property
    def healthy(self) -> bool:
        return self.health.get("status") == "healthy"

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# Cache bookkeeping
# =============================================================================

@dataclass(frozen=True)
class CacheEntry:
    """A cached value and the clock reading at which it was stored."""
    key: str
    value: Any
    stored_at: float


@dataclass
class CacheStats:
    """Running cache counters; monotonically increasing for the cache's life."""
    hits: int = 0
    misses: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["hit_rate"] = round(self.hit_rate, 4)
        return data
