"""
Expiration Pending job.

Components:
    - discovery: Start/Cancel candidate scans
    - executor: one executor per work item action
    - orchestrator: init/process/on_success/on_error entry points
    - runner: local host scheduler (partition, process, complete)
    - factory: builds the job from settings
"""

from .discovery import CandidateDiscovery, DiscoveryConfig
from .executor import (
    CancelExecutor,
    Executor,
    ItemOutcome,
    StartActionConfig,
    StartExecutor,
    build_executors,
    compute_task_due_date,
)
from .orchestrator import ExpirationPendingJob, JobPhase, TaskPhase
from .runner import LocalJobRunner, partition

__all__ = [
    "CandidateDiscovery",
    "CancelExecutor",
    "DiscoveryConfig",
    "ExpirationPendingJob",
    "Executor",
    "ItemOutcome",
    "JobPhase",
    "LocalJobRunner",
    "StartActionConfig",
    "StartExecutor",
    "TaskPhase",
    "build_executors",
    "compute_task_due_date",
    "partition",
]
