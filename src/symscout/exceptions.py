"""
Symscout Exception Hierarchy

Structured exceptions for clear error handling by agents and services
that gate code authorship on Symscout results.  Each exception type maps
to a specific failure mode so that callers can decide whether to block,
warn, or proceed without parsing message strings.

Usage::

    from symscout.exceptions import SymscoutError, AuthenticationError

    try:
        report = await client.perform_mandatory_analysis("function", "createLogger")
    except AuthenticationError:
        print("Fix SOURCEGRAPH_ACCESS_TOKEN first.")
    except SymscoutError as exc:
        print(f"Symscout error: {exc}")
"""

from typing import Optional


class SymscoutError(Exception):
    """Base exception for all Symscout errors."""


class ConfigError(SymscoutError, ValueError):
    """Configuration is invalid or incomplete (e.g. missing access token).

    Fatal: raised at construction time and never retried.  Inherits from
    ``ValueError`` so callers validating input generically still catch it.
    """


class TransportError(SymscoutError):
    """The search service kept failing after every retry was spent.

    Raised for 5xx responses once the retry budget is exhausted.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        attempts: int = 1,
        request_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.attempts = attempts
        self.request_id = request_id


class ServiceUnavailableError(TransportError):
    """No response at all (connection refused, DNS failure, timeout)."""


class ClientRequestError(SymscoutError):
    """The service rejected the request with a 4xx status.  Never retried."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        request_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.request_id = request_id


class AuthenticationError(ClientRequestError):
    """401: the access token is missing, expired, or wrong."""


class PermissionDeniedError(ClientRequestError):
    """403: the token is valid but lacks access to the requested data."""


class SearchError(SymscoutError):
    """The service answered, but not with something a search can use."""


class FileNotFoundInIndexError(SearchError, FileNotFoundError):
    """The requested file is not present in the indexed repository.

    Inherits from ``FileNotFoundError`` for intuitive exception handling.
    """
