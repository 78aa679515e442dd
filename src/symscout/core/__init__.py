"""
Symscout Core — configuration, transport, caching, queries, and analysis.

Re-exports the primary classes for convenience::

    from symscout.core import SearchTransport, ResultCache, QueryBuilder
"""

from symscout.core.analyzer import MandatoryAnalyzer
from symscout.core.cache import ResultCache
from symscout.core.config import AnalysisPolicy, QuerySyntax, SymscoutConfig
from symscout.core.query import QueryBuilder
from symscout.core.search import SearchOperations, gather_all
from symscout.core.transport import SearchTransport, parse_event_stream

__all__ = [
    "AnalysisPolicy",
    "MandatoryAnalyzer",
    "QueryBuilder",
    "QuerySyntax",
    "ResultCache",
    "SearchOperations",
    "SearchTransport",
    "SymscoutConfig",
    "gather_all",
    "parse_event_stream",
]
