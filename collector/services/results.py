"""
Result values and the job failure exception.

Collector and data processor operations return these values for expected
conditions (quota exhausted, bad identifier, nothing found) instead of
raising. The collection worker turns a failed value into ``JobFailure`` at
its dispatch boundary, which is the only place expected conditions raise.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Why an operation did not produce a value."""

    QUOTA_EXCEEDED = "quota_exceeded"
    INVALID_ASIN = "invalid_asin"
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    NO_DATA = "no_data"
    UPSTREAM_ERROR = "upstream_error"
    UNKNOWN_JOB_TYPE = "unknown_job_type"


# Kinds a later redelivery of the same job may fix
RETRYABLE_KINDS = frozenset({
    ErrorKind.QUOTA_EXCEEDED,
    ErrorKind.UPSTREAM_ERROR,
    ErrorKind.NO_DATA,
})

QUOTA_EXCEEDED_MESSAGE = (
    "API usage limit reached. Please wait until next month or upgrade plan."
)


@dataclass
class CollectResult:
    """Outcome of one collector operation."""

    success: bool = False
    data: Any = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    api_calls: int = 0

    @classmethod
    def ok(cls, data: Any, api_calls: int = 0) -> "CollectResult":
        return cls(success=True, data=data, api_calls=api_calls)

    @classmethod
    def failure(cls, kind: ErrorKind, error: str, api_calls: int = 0) -> "CollectResult":
        return cls(success=False, error=error, error_kind=kind, api_calls=api_calls)


@dataclass
class ProcessResult:
    """Outcome of mapping a normalized record onto a storage entity."""

    success: bool = False
    entity: Any = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def ok(cls, entity: Any) -> "ProcessResult":
        return cls(success=True, entity=entity)

    @classmethod
    def failure(cls, kind: ErrorKind, error: str) -> "ProcessResult":
        return cls(success=False, error=error, error_kind=kind)


class JobFailure(Exception):
    """
    Raised by job handlers when a job cannot complete.

    Attributes:
        kind: ErrorKind describing the failure
        retryable: Whether redelivering the job may succeed
    """

    def __init__(self, message: str, kind: ErrorKind, retryable: Optional[bool] = None):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.retryable = kind in RETRYABLE_KINDS if retryable is None else retryable

    @classmethod
    def from_result(cls, result) -> "JobFailure":
        """Build from a failed CollectResult or ProcessResult."""
        kind = result.error_kind or ErrorKind.UPSTREAM_ERROR
        return cls(result.error or kind.value, kind)
