"""
Work item executors for the Expiration Pending job.

StartExecutor: resolve the approver role, compute the task due date and
run the Expiration Pending lifecycle action.
CancelExecutor: cancel the open workflow task.

One executor per work item action; the orchestrator dispatches by
``item.action``.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

import structlog
from pydantic import BaseModel

from ..config import Settings, get_settings
from ..errors import JobError
from ..integrations.documents import RoleResolver
from ..integrations.vault_api import ExternalCallResult
from ..schemas.work_items import ACTION_CANCEL, ACTION_START, CancelItem, StartItem

logger = structlog.get_logger(__name__)


class WorkflowClient(Protocol):
    """The slice of the Vault API client the executors use."""

    def execute_user_action(
        self, doc_version_id: str, action_label: str, params: Any = None
    ) -> ExternalCallResult:
        ...

    def update_document_fields(self, document_id: str, fields: Any) -> ExternalCallResult:
        ...

    def cancel_workflow_tasks(self, task_ids: Sequence[str]) -> ExternalCallResult:
        ...


@dataclass
class ItemOutcome:
    """Result from an executor for one work item."""

    success: bool
    action: str
    subject: str  # document number or id

    error_message: Optional[str] = None
    outputs: Dict[str, Any] = field(default_factory=dict)

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None


def compute_task_due_date(
    expiration_date: date, offset_days: Optional[int], today: date
) -> date:
    """Due date ``offset_days`` before expiration, never earlier than today."""
    due = expiration_date - timedelta(days=offset_days or 0)
    return max(due, today)


class StartActionConfig(BaseModel):
    """Names used when starting the Expiration Pending workflow."""

    lifecycle_action_label: str = "expiration_pending_autostart"
    approver_role: str = "project_manager__c"
    user_control_field: str = "user_control_multiple__c"
    due_date_control_field: str = "date_control__c"
    notified_flag_field: str = "pending_expiration_task_sent__c"
    mark_notified: bool = True

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "StartActionConfig":
        settings = settings or get_settings()
        return cls(
            lifecycle_action_label=settings.lifecycle_action_label,
            approver_role=settings.approver_role,
            user_control_field=settings.user_control_field,
            due_date_control_field=settings.due_date_control_field,
            notified_flag_field=settings.notified_flag_field,
            mark_notified=settings.mark_notified,
        )


class Executor(ABC):
    """Abstract base class for work item executors."""

    action: str = ""

    @property
    @abstractmethod
    def name(self) -> str:
        """Executor name for logging and identification."""
        pass

    @abstractmethod
    def execute(self, item: Any) -> ItemOutcome:
        """Execute one work item.

        Failures reported by Vault come back as an unsuccessful ItemOutcome.
        Unexpected exceptions propagate to the orchestrator, which counts
        them as item failures.
        """
        pass


class StartExecutor(Executor):
    """Starts the Expiration Pending workflow for a document version."""

    action = ACTION_START

    def __init__(
        self,
        client: WorkflowClient,
        role_resolver: RoleResolver,
        config: Optional[StartActionConfig] = None,
        today: Callable[[], date] = date.today,
    ):
        self.client = client
        self.role_resolver = role_resolver
        self.config = config or StartActionConfig.from_settings()
        self.today = today

    @property
    def name(self) -> str:
        return "start_expiration_pending"

    def build_action_params(self, user_ids: List[str], due_date: date) -> List[Tuple[str, str]]:
        params = [(self.config.user_control_field, f"user:{u}") for u in user_ids]
        params.append((self.config.due_date_control_field, due_date.isoformat()))
        return params

    def execute(self, item: StartItem) -> ItemOutcome:
        started_at = datetime.now(timezone.utc)
        log = logger.bind(action=self.action, document_number=item.document_number)
        log.info("start_workflow_begin", document_version_id=item.document_version_id)

        def failed(message: str) -> ItemOutcome:
            log.error("start_workflow_failed", error=message)
            return ItemOutcome(
                success=False,
                action=self.action,
                subject=item.document_number,
                error_message=f"{item.document_number}: {message}",
                started_at=started_at,
                completed_at=datetime.now(timezone.utc),
            )

        try:
            user_ids = self.role_resolver.users_in_role(
                item.document_version_id, self.config.approver_role
            )
        except JobError as e:
            return failed(str(e))

        for user_id in user_ids:
            log.info("role_user_found", role=self.config.approver_role, user_id=user_id)

        due_date = compute_task_due_date(
            item.expiration_date, item.task_due_offset_days, self.today()
        )
        params = self.build_action_params(user_ids, due_date)

        result = self.client.execute_user_action(
            item.document_version_id, self.config.lifecycle_action_label, params
        )
        if result.failed:
            return failed(f"Unable to execute workflow. {result.describe_error()}")

        if self.config.mark_notified:
            flag = self.client.update_document_fields(
                item.document_id, {self.config.notified_flag_field: True}
            )
            if flag.failed:
                return failed(
                    f"Workflow started but {self.config.notified_flag_field} was not set. "
                    f"{flag.describe_error()}"
                )

        log.info("start_workflow_succeeded", task_due_date=due_date.isoformat(), users=len(user_ids))
        return ItemOutcome(
            success=True,
            action=self.action,
            subject=item.document_number,
            outputs={"task_due_date": due_date.isoformat(), "user_ids": user_ids},
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )


class CancelExecutor(Executor):
    """Cancels an open Expiration Pending workflow task."""

    action = ACTION_CANCEL

    def __init__(self, client: WorkflowClient):
        self.client = client

    @property
    def name(self) -> str:
        return "cancel_expiration_pending_task"

    def execute(self, item: CancelItem) -> ItemOutcome:
        started_at = datetime.now(timezone.utc)
        log = logger.bind(action=self.action, document_id=item.document_id, task_id=item.task_id)
        log.info("cancel_task_begin")

        result = self.client.cancel_workflow_tasks([item.task_id])
        completed_at = datetime.now(timezone.utc)

        if result.failed:
            message = f"Unable to cancel workflow task for {item.document_id}. {result.describe_error()}"
            log.error("cancel_task_failed", error=message)
            return ItemOutcome(
                success=False,
                action=self.action,
                subject=item.document_id,
                error_message=message,
                started_at=started_at,
                completed_at=completed_at,
            )

        log.info("cancel_task_succeeded", vault_job_id=result.payload)
        return ItemOutcome(
            success=True,
            action=self.action,
            subject=item.document_id,
            outputs={"vault_job_id": result.payload},
            started_at=started_at,
            completed_at=completed_at,
        )


def build_executors(
    client: WorkflowClient,
    role_resolver: RoleResolver,
    config: Optional[StartActionConfig] = None,
    today: Callable[[], date] = date.today,
) -> Dict[str, Executor]:
    """Executors keyed by the work item action they handle."""
    executors: List[Executor] = [
        StartExecutor(client, role_resolver, config, today),
        CancelExecutor(client),
    ]
    return {e.action: e for e in executors}
