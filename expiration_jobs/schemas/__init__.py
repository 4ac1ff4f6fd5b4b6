"""Work item and job result schemas."""

from .work_items import (
    ACTION_CANCEL,
    ACTION_START,
    WORK_ITEM_ACTIONS,
    CancelItem,
    JobOutcome,
    JobTask,
    StartItem,
    TaskResult,
    TaskState,
    WorkItem,
    parse_work_item,
)

__all__ = [
    "ACTION_CANCEL",
    "ACTION_START",
    "WORK_ITEM_ACTIONS",
    "CancelItem",
    "JobOutcome",
    "JobTask",
    "StartItem",
    "TaskResult",
    "TaskState",
    "WorkItem",
    "parse_work_item",
]
