"""Test configuration and fixtures."""

from datetime import date
from typing import Any, Dict, List, Optional

import pytest
import structlog

from expiration_jobs.errors import OperationFailed
from expiration_jobs.integrations.documents import DocVersionId
from expiration_jobs.integrations.vault_api import ExternalCallResult
from expiration_jobs.jobs.discovery import CandidateDiscovery, DiscoveryConfig
from expiration_jobs.jobs.executor import StartActionConfig, build_executors
from expiration_jobs.jobs.orchestrator import ExpirationPendingJob
from expiration_jobs.parameters import ExpirationPendingParameters, StaticParameterProvider
from expiration_jobs.vql import Between, Comparison, ContainsAny, Func

TODAY = date(2026, 3, 2)

START_ACTION_LABEL = "expiration_pending_autostart"


def _field_name(ref: Any) -> str:
    return ref.argument if isinstance(ref, Func) else ref


def _value(value: Any) -> Any:
    if isinstance(value, Func):
        return value.render()
    return value


def _matches(doc: Dict[str, Any], condition: Any) -> bool:
    if isinstance(condition, ContainsAny):
        return doc.get(_field_name(condition.field)) in condition.values
    if isinstance(condition, Between):
        actual = doc.get(_field_name(condition.field))
        return actual is not None and condition.low <= actual <= condition.high
    if isinstance(condition, Comparison):
        actual = doc.get(_field_name(condition.field))
        expected = _value(condition.value)
        if condition.operator == "=":
            return actual == expected
        if condition.operator == "!=":
            return actual != expected
        if condition.operator == "<=":
            return actual is not None and actual <= expected
        if condition.operator == ">=":
            return actual is not None and actual >= expected
    raise AssertionError(f"Unsupported condition in test vault: {condition!r}")


class InMemoryVault:
    """
    A small Vault stand-in for job tests.

    Serves document and workflow queries by evaluating the typed query
    conditions against in-memory records, resolves roles, and records every
    lifecycle action, field update and task cancellation.
    """

    def __init__(self):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.workflows: List[Dict[str, Any]] = []
        self.roles: Dict[str, List[str]] = {}
        self.parameter_rows: List[Dict[str, Any]] = []
        self.action_labels = {START_ACTION_LABEL}

        self.failing_sources: set = set()
        self.failing_versions: set = set()
        self.failing_role_lookups: set = set()
        self.failing_cancels: set = set()

        self.queries: List[Any] = []
        self.user_actions: List[Dict[str, Any]] = []
        self.field_updates: List[Dict[str, Any]] = []
        self.cancelled_task_batches: List[List[str]] = []

    def add_document(
        self,
        doc_id: str,
        number: str,
        expiration: date,
        doc_type: str = "jobs__c",
        lifecycle: str = "job_processing__c",
        steady: bool = True,
        notified: bool = False,
        version: str = "0_1",
    ) -> Dict[str, Any]:
        doc = {
            "id": doc_id,
            "version_id": f"{doc_id}_{version}",
            "document_number__v": number,
            "expiration_date__c": expiration,
            "type__v": doc_type,
            "lifecycle__v": lifecycle,
            "status__v": "steadyState()" if steady else "draft__c",
            "pending_expiration_task_sent__c": notified,
        }
        self.documents[doc_id] = doc
        return doc

    def add_workflow(self, doc_id: Any, task_id: Any) -> None:
        self.workflows.append(
            {"workflow_document_id__v": doc_id, "task_id__v": task_id}
        )

    # QueryService

    def query(self, query) -> List[Dict[str, Any]]:
        self.queries.append(query)
        if query.source in self.failing_sources:
            raise OperationFailed(f"{query.source} query unavailable")
        if query.source == "workflows":
            return [dict(row) for row in self.workflows]
        if query.source == "vproc_parameter_set__c":
            return [dict(row) for row in self.parameter_rows]

        rows = []
        for doc in self.documents.values():
            if all(_matches(doc, c) for c in query.conditions):
                row = {f: doc.get(f) for f in query.fields}
                if "expiration_date__c" in row and isinstance(row["expiration_date__c"], date):
                    row["expiration_date__c"] = row["expiration_date__c"].isoformat()
                rows.append(row)
        return rows

    # RoleResolver

    def users_in_role(self, doc_version_id: str, role_name: str) -> List[str]:
        doc_id = DocVersionId.parse(doc_version_id).document_id
        if doc_id in self.failing_role_lookups:
            raise OperationFailed(f"Unable to read role '{role_name}'")
        return list(self.roles.get(doc_id, []))

    # WorkflowClient

    def execute_user_action(
        self, doc_version_id: str, action_label: str, params: Any = None
    ) -> ExternalCallResult:
        self.user_actions.append(
            {"doc_version_id": doc_version_id, "label": action_label, "params": list(params or [])}
        )
        if doc_version_id in self.failing_versions:
            return ExternalCallResult.fail("INVALID_DATA: Document is locked")
        if action_label not in self.action_labels:
            return ExternalCallResult.fail(
                'An error occurred accessing Vault API "Retrieve User Actions".  '
                f'Unable to find action "{action_label}"'
            )
        return ExternalCallResult.ok({"responseStatus": "SUCCESS"})

    def update_document_fields(self, document_id: str, fields: Any) -> ExternalCallResult:
        self.field_updates.append({"document_id": document_id, "fields": dict(fields)})
        self.documents[document_id].update(fields)
        return ExternalCallResult.ok({"responseStatus": "SUCCESS"})

    def cancel_workflow_tasks(self, task_ids) -> ExternalCallResult:
        self.cancelled_task_batches.append(list(task_ids))
        if any(t in self.failing_cancels for t in task_ids):
            return ExternalCallResult.fail("INVALID_DATA: Task already completed")
        return ExternalCallResult.ok(f"job-{len(self.cancelled_task_batches)}")


@pytest.fixture(autouse=True)
def reset_structlog():
    """Keep structlog configuration from leaking between tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def params() -> ExpirationPendingParameters:
    """Thresholds with a narrow start window of [55, 60] days."""
    return ExpirationPendingParameters(
        window_low_days=55,
        window_high_days=60,
        task_due_days=14,
        workflow_kill_days=15,
    )


@pytest.fixture
def vault() -> InMemoryVault:
    return InMemoryVault()


def make_job(
    vault: InMemoryVault,
    params: ExpirationPendingParameters,
    today: date = TODAY,
    start_config: Optional[StartActionConfig] = None,
) -> ExpirationPendingJob:
    """Wire a job against the in-memory vault."""
    discovery = CandidateDiscovery(vault, vault, DiscoveryConfig())
    executors = build_executors(
        vault, vault, start_config or StartActionConfig(), lambda: today
    )
    return ExpirationPendingJob(
        discovery=discovery,
        parameter_provider=StaticParameterProvider(params),
        executors=executors,
        today=lambda: today,
    )


@pytest.fixture
def job(vault, params) -> ExpirationPendingJob:
    return make_job(vault, params)
