"""
Expiration Pending Jobs

Scheduled jobs that start Expiration Pending workflows for Vault documents
approaching their expiration date and cancel the workflow task once the
expiration date is imminent.
"""

import importlib.metadata

__version__ = importlib.metadata.version("expiration-pending-jobs")

from .errors import (
    DeletionDenied,
    DiscoveryError,
    ErrorKind,
    InvalidInput,
    JobError,
    OperationDenied,
    OperationFailed,
    UpdateDenied,
)
from .jobs import CandidateDiscovery, ExpirationPendingJob, LocalJobRunner
from .schemas import CancelItem, JobOutcome, JobTask, StartItem, TaskResult, TaskState

__all__ = [
    "CancelItem",
    "CandidateDiscovery",
    "DeletionDenied",
    "DiscoveryError",
    "ErrorKind",
    "ExpirationPendingJob",
    "InvalidInput",
    "JobError",
    "JobOutcome",
    "JobTask",
    "LocalJobRunner",
    "OperationDenied",
    "OperationFailed",
    "StartItem",
    "TaskResult",
    "TaskState",
    "UpdateDenied",
]
