"""
Exception taxonomy for the wine graph.

ValidationError and ConfigError are raised before any I/O. TransactionError
and QueryError wrap driver failures at the write and read seams.
"""

from typing import Optional


class WineGraphError(Exception):
    """Base class for all wine graph errors."""


class ValidationError(WineGraphError):
    """A raw record failed required-field or type checks."""

    def __init__(self, message: str, field: Optional[str] = None, position: Optional[int] = None):
        self.field = field
        self.position = position
        if position is not None:
            message = f"record {position}: {message}"
        super().__init__(message)


class ConfigError(WineGraphError):
    """Invalid batch size or malformed query parameters."""


class TransactionError(WineGraphError):
    """
    The store rejected or failed a batch mutation.

    Carries the id range of the failed batch so the orchestrator can report
    it without holding on to the records.
    """

    def __init__(self, min_id: int, max_id: int, cause: BaseException, retryable: bool = False):
        self.min_id = min_id
        self.max_id = max_id
        self.cause = cause
        self.retryable = retryable
        super().__init__(f"Batch [{min_id}, {max_id}] failed: {cause}")


class QueryError(WineGraphError):
    """A read request failed. Distinct from an empty result."""

    def __init__(self, message: str, retryable: bool = True):
        self.retryable = retryable
        super().__init__(message)
