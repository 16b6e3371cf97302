"""
Bank adapter error taxonomy.

The sync orchestrator records the message of any of these in the sync
history; callers inspect the type to decide between re-authentication
(AuthError) and retrying later (NetworkError).
"""
from typing import Any, Optional


class BankAdapterError(Exception):
    """
    Base error for everything an adapter raises.

    Carries:
    - The institution that failed
    - The HTTP status code (if any)
    - The response body (if any), never the request credentials
    """

    def __init__(self, message: str, institution_id: str = None, status_code: Optional[int] = None, response: Any = None):
        self.institution_id = institution_id
        self.status_code = status_code
        self.response = response
        super().__init__(message)


class AuthError(BankAdapterError):
    """Credentials missing, invalid or expired. Not retried automatically."""

    def __init__(self, message: str = "Authentication failed - invalid credentials", **kwargs):
        kwargs.setdefault('status_code', 401)
        super().__init__(message, **kwargs)


class NetworkError(BankAdapterError):
    """Transient transport failure; the caller may retry."""

    def __init__(self, message: str, original_error: Optional[BaseException] = None, **kwargs):
        self.original_error = original_error
        super().__init__(message, **kwargs)


class MalformedResponseError(BankAdapterError):
    """The remote payload is not JSON or does not match the expected schema."""


class PaginationLimitError(BankAdapterError):
    """A cursor loop ran past the page cap. Results are never truncated silently."""

    def __init__(self, message: str, pages: int = None, **kwargs):
        self.pages = pages
        super().__init__(message, **kwargs)


class BankApiError(BankAdapterError):
    """Any other non-successful HTTP status."""
