"""
Work items and task results for the Expiration Pending job.

Work items are immutable and discriminated on ``action``:

    {"action": "start", "document_number": "JOB-0042", "document_version_id": "101_0_3",
     "expiration_date": "2026-12-15", "task_due_offset_days": 14}
    {"action": "cancel", "document_id": "101", "task_id": "9001"}

Each item carries every value its executor needs; executors never go back
to discovery.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Annotated, Any, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from ..errors import InvalidInput
from ..integrations.documents import DocVersionId

ACTION_START = "start"
ACTION_CANCEL = "cancel"
WORK_ITEM_ACTIONS = frozenset({ACTION_START, ACTION_CANCEL})


class StartItem(BaseModel):
    """Start an Expiration Pending workflow on a document version."""

    model_config = ConfigDict(frozen=True)

    action: Literal["start"] = ACTION_START
    document_number: str = Field(min_length=1)
    document_version_id: str
    expiration_date: date
    task_due_offset_days: Optional[int] = Field(default=None, ge=0)

    @field_validator("document_version_id")
    @classmethod
    def check_version_id(cls, value: str) -> str:
        try:
            return str(DocVersionId.parse(value))
        except InvalidInput as e:
            raise ValueError(e.message)

    @property
    def document_id(self) -> str:
        return DocVersionId.parse(self.document_version_id).document_id


class CancelItem(BaseModel):
    """Cancel the open Expiration Pending task of an active workflow."""

    model_config = ConfigDict(frozen=True)

    action: Literal["cancel"] = ACTION_CANCEL
    document_id: str = Field(min_length=1)
    task_id: str = Field(min_length=1)


WorkItem = Annotated[Union[StartItem, CancelItem], Field(discriminator="action")]

_work_item_adapter: TypeAdapter = TypeAdapter(WorkItem)


def parse_work_item(raw: Union[Mapping[str, Any], StartItem, CancelItem]) -> Union[StartItem, CancelItem]:
    """Validate a work item received in wire format.

    Raises:
        InvalidInput: On an unknown ``action`` or missing/invalid fields
    """
    if isinstance(raw, (StartItem, CancelItem)):
        return raw
    try:
        return _work_item_adapter.validate_python(raw)
    except ValidationError as e:
        action = raw.get("action") if isinstance(raw, Mapping) else None
        raise InvalidInput(
            f"Invalid work item (action={action!r}): {e.errors()[0]['msg']}"
        )


class TaskState(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERRORS_ENCOUNTERED = "errors_encountered"


@dataclass(frozen=True)
class JobTask:
    """A host-scheduled slice of the job's work items."""

    task_id: str
    items: Tuple[Any, ...]


@dataclass(frozen=True)
class TaskResult:
    """Result of one task. Built once, after every item has been attempted."""

    task_id: str
    state: TaskState = TaskState.PENDING
    first_error_message: Optional[str] = None
    item_count: int = 0
    failed_item_count: int = 0

    @property
    def failed(self) -> bool:
        return self.state == TaskState.ERRORS_ENCOUNTERED

    def to_dict(self) -> dict:
        return {
            "task_id": self.task_id,
            "state": self.state.value,
            "first_error_message": self.first_error_message,
            "item_count": self.item_count,
            "failed_item_count": self.failed_item_count,
        }


@dataclass(frozen=True)
class JobOutcome:
    """Aggregate over all task results of one job run."""

    task_results: Tuple[TaskResult, ...] = field(default_factory=tuple)

    @property
    def total_tasks(self) -> int:
        return len(self.task_results)

    @property
    def failed_tasks(self) -> int:
        return sum(1 for r in self.task_results if r.failed)

    @property
    def succeeded(self) -> bool:
        return self.failed_tasks == 0

    def to_dict(self) -> dict:
        return {
            "state": "completed_success" if self.succeeded else "completed_with_errors",
            "total_tasks": self.total_tasks,
            "failed_tasks": self.failed_tasks,
            "tasks": [r.to_dict() for r in self.task_results],
        }
