"""
Error vocabulary shared by the expiration jobs.

Every failure carries a stable ``kind`` for programmatic handling and a
human-readable message. The Vault API client never raises these; it returns
failed ``ExternalCallResult`` objects instead. Layers that need a value to
continue (queries, role lookups, parameters) raise them.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Stable error codes."""

    OPERATION_FAILED = "OPERATION_FAILED"
    OPERATION_DENIED = "OPERATION_DENIED"
    UPDATE_DENIED = "UPDATE_DENIED"
    DELETION_DENIED = "DELETION_DENIED"
    INVALID_INPUT = "INVALID_INPUT"


class JobError(Exception):
    """
    Base class for classified job failures.

    Attributes:
        kind: Stable error code
        message: Human-readable error description
    """

    kind: ErrorKind = ErrorKind.OPERATION_FAILED

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        if kind is not None:
            self.kind = kind
        self.message = message
        super().__init__(f"{self.kind.value}: {message}")

    def to_dict(self) -> dict:
        """Convert to dict for JSON serialization."""
        return {
            "error": "job_error",
            "code": self.kind.value,
            "message": self.message,
        }


class OperationFailed(JobError):
    """A remote call or business rule failed."""

    kind = ErrorKind.OPERATION_FAILED


class OperationDenied(JobError):
    kind = ErrorKind.OPERATION_DENIED


class UpdateDenied(JobError):
    kind = ErrorKind.UPDATE_DENIED


class DeletionDenied(JobError):
    kind = ErrorKind.DELETION_DENIED


class InvalidInput(JobError):
    """Malformed work item, identifier or parameter record."""

    kind = ErrorKind.INVALID_INPUT


class DiscoveryError(OperationFailed):
    """Fatal failure during the discovery phase. No task may be scheduled."""

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["error"] = "discovery_failed"
        return data
