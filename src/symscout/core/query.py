"""
Symscout Query Builder

Translates logical requests into canonical query strings for the search
service.  Pure string manipulation; no I/O.
"""

import re
from typing import Optional

from symscout.core.config import QuerySyntax

_FUNCTION_NAME = re.compile(r"(\w+)\s*\(")


class QueryBuilder:
    """Static helpers producing the service's query syntax."""

    @staticmethod
    def declarations(symbol_type: str, name: str) -> str:
        """
        Query for declarations of *name* of the given logical type.

        ``class`` matches class/interface declarations, ``function`` matches
        function/def/func, ``variable`` matches const/let/var/val.  Any other
        type searches the bare symbol name.
        """
        keywords = QuerySyntax.declaration_keywords(symbol_type)
        if keywords:
            return f"{keywords} {name} type:symbol"
        return f"{name} type:symbol"

    @staticmethod
    def symbol(name: str, symbol_type: str = "") -> str:
        """Existence probe for a symbol, optionally prefixed by its type."""
        if symbol_type:
            return f"{symbol_type} {name} type:symbol"
        return f"{name} type:symbol"

    @staticmethod
    def function_name(signature: str) -> str:
        """
        Bare function/method name from a signature string.

        ``"createLogger(context = {})"`` -> ``"createLogger"``.  A string
        with no parenthesis is returned unchanged.
        """
        match = _FUNCTION_NAME.search(signature)
        return match.group(1) if match else signature.strip()

    @staticmethod
    def pattern(regex: str, file_filter: str = "") -> str:
        """Regular-expression search, optionally scoped to a file glob."""
        query = f"/{regex}/"
        if file_filter:
            query += f" file:{file_filter}"
        return query

    @staticmethod
    def word(name: str) -> str:
        """Whole-word regexp for *name* (used by the mandatory analysis)."""
        return rf"\b{re.escape(name)}\b"

    @staticmethod
    def imports(library_name: str) -> str:
        """
        One combined query covering the import idioms of several ecosystems,
        so a single call finds usages however the library was pulled in.
        """
        return " OR ".join(
            f"/{pattern.format(lib=library_name)}/"
            for pattern in QuerySyntax.IMPORT_PATTERNS
        )

    @staticmethod
    def structure(repo: str, kind: Optional[str]) -> str:
        """
        Repository-scoped structure query.

        *kind* is one of ``classes``, ``functions``, ``interfaces``; None
        lists files.
        """
        if kind is None:
            return f"repo:{repo} type:file"
        return f"repo:{repo} type:symbol {QuerySyntax.STRUCTURE_SELECTORS[kind]}"

    @staticmethod
    def file(repo: str, path: str) -> str:
        """Exact-path file lookup inside one repository."""
        return f"repo:{repo} file:^{re.escape(path)}$ type:file"
