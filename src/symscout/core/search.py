"""
Symscout Search Operations

One coroutine per logical query type.  Every operation follows the same
shape:

    cache check -> (hit) return
                -> (miss) build canonical query -> transport -> shape
                   result -> populate cache -> return

``search_code`` is the foundation; every other operation builds a query
string and delegates to it, then reshapes the raw matches into its own
result type.  Each operation runs inside its own correlation scope, logs
start/success/failure, and reports failures to the error sink before
re-raising the original exception.
"""

import asyncio
import contextlib
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Sequence

from symscout.core.cache import ResultCache
from symscout.core.config import QuerySyntax, SymscoutConfig
from symscout.core.models import (
    CodeStructure,
    DuplicateFinding,
    DuplicateGroup,
    FileContent,
    ImportFileGroup,
    ImportFindings,
    ImportStatement,
    Location,
    Match,
    PatternFindings,
    PatternMatch,
    SearchResult,
    SimilarImplementations,
    StructureFile,
    StructureSymbol,
    SymbolExistence,
    SymbolLocation,
)
from symscout.core.query import QueryBuilder
from symscout.core.telemetry import (
    ErrorReporter,
    LoggingErrorReporter,
    correlation_scope,
    get_correlation_id,
    log_event,
    report_error,
)
from symscout.core.transport import SearchTransport, parse_event_stream
from symscout.exceptions import FileNotFoundInIndexError, SearchError

logger = logging.getLogger(__name__)

_LOG_QUERY_LENGTH = 200


async def gather_all(*aws: Awaitable[Any]) -> List[Any]:
    """
    Run awaitables concurrently and return their results in order.

    Built on ``asyncio.TaskGroup``: the first failure cancels the rest.
    The failure is re-raised as the original exception rather than an
    ``ExceptionGroup``, so callers handle the same types as for a single
    call.
    """
    error: Optional[BaseException] = None
    try:
        async with asyncio.TaskGroup() as tg:
            tasks = [tg.create_task(aw) for aw in aws]
    except ExceptionGroup as eg:
        error = _first_leaf(eg)
    if error is not None:
        raise error
    return [task.result() for task in tasks]


def _first_leaf(group: BaseExceptionGroup) -> BaseException:
    """First non-group exception inside a (possibly nested) exception group."""
    first = group.exceptions[0]
    while isinstance(first, BaseExceptionGroup):
        first = first.exceptions[0]
    return first


class SearchOperations:
    """
    Cache-backed search operations against one search service.

    Args:
        transport: Authenticated transport with retry.
        cache: Result cache shared by every operation of the client.
        config: Client configuration (default count, timeout).
        error_reporter: Sink for operation failures.
    """

    def __init__(
        self,
        transport: SearchTransport,
        cache: ResultCache,
        config: SymscoutConfig,
        error_reporter: Optional[ErrorReporter] = None,
    ):
        self._transport = transport
        self._cache = cache
        self._config = config
        self._error_reporter = error_reporter or LoggingErrorReporter()

    # ── Foundation ────────────────────────────────────────────────

    async def search_code(
        self,
        query: str,
        *,
        pattern_type: str = "literal",
        count: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> SearchResult:
        """
        Run a raw search query.

        Args:
            query: Query in the service's syntax.
            pattern_type: ``'literal'`` or ``'regexp'``.
            count: Maximum number of results (default from config, 50).
            timeout: Budget in seconds for the remote search (default 10).

        Returns:
            :class:`SearchResult` with match events in arrival order.
        """
        if pattern_type not in QuerySyntax.PATTERN_TYPES:
            raise ValueError(
                f"Unknown pattern type '{pattern_type}'. "
                f"Supported: {', '.join(QuerySyntax.PATTERN_TYPES)}"
            )
        count = int(count or self._config.default_result_count)
        budget = float(timeout or self._config.search_timeout_seconds)
        wire_timeout = f"{budget:g}s"

        with self._tracked(
            "search_code", "sourcegraph_search",
            query=query[:_LOG_QUERY_LENGTH], pattern_type=pattern_type, count=count,
        ) as started:
            key = ResultCache.make_key("search_code", {
                "query": query, "pattern_type": pattern_type,
                "count": count, "timeout": wire_timeout,
            })
            cached = self._cache.get(key)
            if cached is not None:
                return cached

            response = await self._transport.stream_search(
                {
                    "q": query,
                    "patternType": pattern_type,
                    "count": count,
                    "timeout": wire_timeout,
                },
                timeout=budget,
            )
            if response.status_code != 200:
                raise SearchError(
                    f"Search failed with status {response.status_code}: "
                    f"{response.text[:200]}"
                )

            matches = tuple(
                Match.from_event(data)
                for data in parse_event_stream(response.text.splitlines())
            )
            result = SearchResult(query=query, results=matches)
            self._cache.set(key, result)

            log_event(
                logger, logging.INFO, "sourcegraph_search_success",
                query=query[:_LOG_QUERY_LENGTH], result_count=result.result_count,
                duration_ms=_elapsed_ms(started),
            )
            return result

    # ── Declarations & symbols ────────────────────────────────────

    async def find_duplicates(self, symbol_type: str, name: str) -> DuplicateFinding:
        """
        Find existing declarations of *name* of kind *symbol_type*.

        Hits are grouped by ``repository:file``; the finding is a duplicate
        when more than one distinct location declares the name.
        """
        with self._tracked("find_duplicates", "find_duplicates",
                           type=symbol_type, name=name) as started:
            async def compute() -> DuplicateFinding:
                result = await self.search_code(
                    QueryBuilder.declarations(symbol_type, name),
                    pattern_type="regexp", count=100,
                )
                groups: Dict[str, Dict[str, Any]] = {}
                locations: List[Location] = []
                for match in result.results:
                    if not match.file_path:
                        continue
                    group = groups.setdefault(match.location_key, {
                        "repository": match.repository,
                        "file": match.file_path,
                        "line_matches": [],
                    })
                    group["line_matches"].extend(match.line_matches)
                    locations.append(Location(
                        repository=match.repository,
                        file=match.file_path,
                        line=match.line_number,
                    ))

                return DuplicateFinding(
                    type=symbol_type,
                    name=name,
                    is_duplicate=len(groups) > 1,
                    duplicate_count=len(groups),
                    locations=tuple(locations),
                    duplicates=tuple(
                        DuplicateGroup(
                            repository=g["repository"],
                            file=g["file"],
                            line_matches=tuple(g["line_matches"]),
                        )
                        for g in groups.values()
                    ),
                )

            finding = await self._cached(
                "find_duplicates", {"type": symbol_type, "name": name}, compute,
            )
            log_event(
                logger, logging.INFO, "find_duplicates_success",
                type=symbol_type, name=name,
                duplicate_count=finding.duplicate_count,
                is_duplicate=finding.is_duplicate,
                duration_ms=_elapsed_ms(started),
            )
            return finding

    async def check_symbol_exists(self, symbol_name: str, symbol_type: str = "") -> SymbolExistence:
        """
        Narrow existence probe for a symbol.

        ``exists`` is true when the service returns any hit; ``locations``
        lists the first page of symbols whose name equals or contains
        *symbol_name*.
        """
        with self._tracked("check_symbol_exists", "check_symbol",
                           symbol_name=symbol_name, symbol_type=symbol_type) as started:
            async def compute() -> SymbolExistence:
                result = await self.search_code(
                    QueryBuilder.symbol(symbol_name, symbol_type),
                    pattern_type="literal", count=10,
                )
                locations = [
                    SymbolLocation(
                        repository=match.repository,
                        file=match.file_path,
                        name=symbol.name,
                        kind=symbol.kind,
                        container_name=symbol.container_name,
                        url=symbol.url,
                    )
                    for match in result.results
                    for symbol in match.symbols
                    if symbol_name in symbol.name
                ]
                return SymbolExistence(
                    symbol_name=symbol_name,
                    symbol_type=symbol_type,
                    exists=result.result_count > 0,
                    locations=tuple(locations),
                )

            existence = await self._cached(
                "check_symbol_exists",
                {"symbol_name": symbol_name, "symbol_type": symbol_type},
                compute,
            )
            log_event(
                logger, logging.INFO, "check_symbol_success",
                symbol_name=symbol_name, exists=existence.exists,
                location_count=existence.location_count,
                duration_ms=_elapsed_ms(started),
            )
            return existence

    async def find_similar_implementations(self, signature: str) -> SimilarImplementations:
        """
        Functions and methods sharing the name in *signature*.

        The name is the identifier before the first ``(``; a bare name
        works too.
        """
        with self._tracked("find_similar_implementations", "find_similar",
                           signature=signature[:100]) as started:
            function_name = QueryBuilder.function_name(signature)

            async def compute() -> SimilarImplementations:
                result = await self.search_code(
                    QueryBuilder.symbol(function_name),
                    pattern_type="literal", count=100,
                )
                implementations = tuple(
                    SymbolLocation(
                        repository=match.repository,
                        file=match.file_path,
                        name=symbol.name,
                        kind=symbol.kind,
                        container_name=symbol.container_name,
                        url=symbol.url,
                    )
                    for match in result.results
                    for symbol in match.symbols
                    if symbol.kind in QuerySyntax.FUNCTION_KINDS
                )
                return SimilarImplementations(
                    signature=signature,
                    function_name=function_name,
                    implementation_count=len(implementations),
                    implementations=implementations,
                )

            similar = await self._cached(
                "find_similar_implementations", {"signature": signature}, compute,
            )
            log_event(
                logger, logging.INFO, "find_similar_success",
                signature=signature[:100],
                implementation_count=similar.implementation_count,
                duration_ms=_elapsed_ms(started),
            )
            return similar

    # ── Text patterns & imports ───────────────────────────────────

    async def find_patterns(self, pattern: str, file_filter: str = "") -> PatternFindings:
        """Every line matching the regexp *pattern*, optionally within a file glob."""
        with self._tracked("find_patterns", "find_patterns",
                           pattern=pattern[:100], file_filter=file_filter) as started:
            async def compute() -> PatternFindings:
                result = await self.search_code(
                    QueryBuilder.pattern(pattern, file_filter),
                    pattern_type="regexp", count=100,
                )
                matches = tuple(
                    PatternMatch(
                        repository=match.repository,
                        file=match.file_path,
                        line=line.line_number,
                        preview=line.preview,
                        offset_and_lengths=line.offset_and_lengths,
                    )
                    for match in result.results
                    if match.file_path
                    for line in match.line_matches
                )
                return PatternFindings(
                    pattern=pattern,
                    file_filter=file_filter,
                    match_count=len(matches),
                    matches=matches,
                )

            findings = await self._cached(
                "find_patterns", {"pattern": pattern, "file_filter": file_filter}, compute,
            )
            log_event(
                logger, logging.INFO, "find_patterns_success",
                pattern=pattern[:100], match_count=findings.match_count,
                duration_ms=_elapsed_ms(started),
            )
            return findings

    async def find_imports(self, library_name: str) -> ImportFindings:
        """Import/include statements of *library_name* across ecosystems, grouped by file."""
        with self._tracked("find_imports", "find_imports",
                           library_name=library_name) as started:
            async def compute() -> ImportFindings:
                result = await self.search_code(
                    QueryBuilder.imports(library_name),
                    pattern_type="regexp", count=200,
                )
                imports: List[ImportStatement] = []
                by_file: Dict[str, List[ImportStatement]] = {}
                files: Dict[str, Match] = {}
                for match in result.results:
                    if not match.file_path or not match.line_matches:
                        continue
                    files.setdefault(match.location_key, match)
                    for line in match.line_matches:
                        statement = ImportStatement(
                            repository=match.repository,
                            file=match.file_path,
                            line=line.line_number,
                            statement=line.preview,
                        )
                        imports.append(statement)
                        by_file.setdefault(match.location_key, []).append(statement)

                return ImportFindings(
                    library_name=library_name,
                    imports=tuple(imports),
                    by_file=tuple(
                        ImportFileGroup(
                            repository=files[key].repository,
                            file=files[key].file_path,
                            imports=tuple(statements),
                        )
                        for key, statements in by_file.items()
                    ),
                )

            findings = await self._cached(
                "find_imports", {"library_name": library_name}, compute,
            )
            log_event(
                logger, logging.INFO, "find_imports_success",
                library_name=library_name, total_imports=findings.total_imports,
                file_count=findings.file_count, duration_ms=_elapsed_ms(started),
            )
            return findings

    # ── Repository-level ──────────────────────────────────────────

    async def analyze_code_structure(self, repo: str) -> CodeStructure:
        """
        Inventory of classes, functions/methods, interfaces and files in *repo*.

        The four scoped queries run concurrently; a failure in any of them
        fails the whole analysis.
        """
        with self._tracked("analyze_code_structure", "analyze_structure",
                           repo=repo) as started:
            async def compute() -> CodeStructure:
                class_result, function_result, interface_result, file_result = await gather_all(
                    self.search_code(QueryBuilder.structure(repo, "classes"), count=1000),
                    self.search_code(QueryBuilder.structure(repo, "functions"), count=1000),
                    self.search_code(QueryBuilder.structure(repo, "interfaces"), count=1000),
                    self.search_code(QueryBuilder.structure(repo, None), count=1000),
                )
                files = tuple(
                    StructureFile(path=match.file_path, language=match.language)
                    for match in file_result.results
                    if match.file_path
                )
                return CodeStructure(
                    repository=repo,
                    classes=_symbols_of_kind(class_result.results, QuerySyntax.CLASS_KINDS),
                    functions=_symbols_of_kind(function_result.results, QuerySyntax.FUNCTION_KINDS),
                    interfaces=_symbols_of_kind(interface_result.results, QuerySyntax.INTERFACE_KINDS),
                    files=files,
                    languages=tuple(dict.fromkeys(f.language for f in files if f.language)),
                )

            structure = await self._cached("analyze_code_structure", {"repo": repo}, compute)
            log_event(
                logger, logging.INFO, "analyze_structure_success",
                repo=repo, statistics=structure.statistics,
                duration_ms=_elapsed_ms(started),
            )
            return structure

    async def get_file_content(self, repo: str, path: str) -> FileContent:
        """
        Raw content of *path* in *repo* as indexed by the service.

        Raises:
            FileNotFoundInIndexError: The service has no such file.
        """
        with self._tracked("get_file_content", "get_file", repo=repo, path=path) as started:
            async def compute() -> FileContent:
                result = await self.search_code(
                    QueryBuilder.file(repo, path), pattern_type="literal", count=1,
                )
                if not result.results:
                    raise FileNotFoundInIndexError(f"File not found: {repo}/{path}")
                match = result.results[0]
                return FileContent(
                    repository=repo,
                    path=path,
                    content=match.content,
                    url=match.file_url,
                    commit=match.commit,
                )

            file_content = await self._cached(
                "get_file_content", {"repo": repo, "path": path}, compute,
            )
            log_event(
                logger, logging.INFO, "get_file_success",
                repo=repo, path=path,
                content_size=len(file_content.content or ""),
                duration_ms=_elapsed_ms(started),
            )
            return file_content

    # ── Internal helpers ──────────────────────────────────────────

    async def _cached(
        self,
        operation: str,
        params: Dict[str, Any],
        compute: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Return the cached result for (*operation*, *params*) or compute and store it."""
        key = ResultCache.make_key(operation, params)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        value = await compute()
        self._cache.set(key, value)
        return value

    @contextlib.contextmanager
    def _tracked(self, operation: str, event: str, **context: Any) -> Iterator[float]:
        """
        Correlation scope + start/failure logging for one operation.

        A top-level call gets a fresh correlation id; nested calls (e.g.
        ``search_code`` under ``find_duplicates``) keep the caller's id.
        Yields the start time.  Any exception is logged as
        ``<event>_failed``, reported with the operation's tags, and
        re-raised unchanged.
        """
        started = time.perf_counter()
        with correlation_scope(get_correlation_id()) as cid:
            log_event(logger, logging.INFO, f"{event}_start", **context)
            try:
                yield started
            except Exception as e:
                duration_ms = _elapsed_ms(started)
                log_event(
                    logger, logging.ERROR, f"{event}_failed",
                    f"{operation} failed: {e}", exc_info=True,
                    error=type(e).__name__, duration_ms=duration_ms, **context,
                )
                report_error(
                    self._error_reporter, e, operation, cid,
                    duration_ms=duration_ms, **context,
                )
                raise


def _symbols_of_kind(matches: Sequence[Match], kinds: frozenset) -> tuple:
    return tuple(
        StructureSymbol(
            name=symbol.name,
            file=match.file_path,
            container_name=symbol.container_name,
        )
        for match in matches
        for symbol in match.symbols
        if symbol.kind in kinds
    )


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)
