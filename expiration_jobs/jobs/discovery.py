"""
Candidate discovery for the Expiration Pending job.

Two read-only scans:

- Start: documents of the eligible types, in a steady state, not yet
  flagged as notified, expiring inside ``[today + low, today + high]``.
- Cancel: documents in the target lifecycle expiring on or before
  ``today + workflowKillDays``, intersected with documents that have an
  active Expiration Pending workflow. The workflows object cannot be read
  through the document query path, so it is listed separately through the
  Vault REST query endpoint and joined here. The date filter applies only to
  the local id set.

Any query failure aborts discovery with ``DiscoveryError``.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Set, Tuple

import structlog
from pydantic import BaseModel, ValidationError

from ..config import Settings, get_settings, parse_csv
from ..errors import DiscoveryError, OperationFailed
from ..integrations.documents import QueryService
from ..parameters import ExpirationPendingParameters
from ..schemas.work_items import CancelItem, StartItem
from ..vql import Between, Query, contains_any, eq, le, ne, steady_state, to_name

logger = structlog.get_logger(__name__)

DOCUMENT_ID_FIELD = "workflow_document_id__v"
TASK_ID_FIELD = "task_id__v"


class DiscoveryConfig(BaseModel):
    """Vault vocabulary used to build the discovery queries."""

    document_types: List[str] = ["jobs__c", "nprc__c", "par__c", "endoaesthetics__c"]
    target_lifecycle: str = "job_processing__c"
    notified_flag_field: str = "pending_expiration_task_sent__c"
    expiration_date_field: str = "expiration_date__c"
    workflow_name: str = "Expiration Pending"

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "DiscoveryConfig":
        settings = settings or get_settings()
        return cls(
            document_types=parse_csv(settings.document_types),
            target_lifecycle=settings.target_lifecycle,
            notified_flag_field=settings.notified_flag_field,
            expiration_date_field=settings.expiration_date_field,
            workflow_name=settings.workflow_name,
        )


def start_window(params: ExpirationPendingParameters, today: date) -> Tuple[date, date]:
    """Closed expiration-date window for Start candidates."""
    return (
        today + timedelta(days=params.window_low_days),
        today + timedelta(days=params.window_high_days),
    )


def kill_date(params: ExpirationPendingParameters, today: date) -> date:
    return today + timedelta(days=params.workflow_kill_days)


def _as_id(value: Any) -> str:
    """Normalize ids that come back as JSON numbers (101, 101.0) or strings."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def _as_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


class CandidateDiscovery:
    """Builds Start and Cancel work items.

    Args:
        query_service: Document queries (steady-state documents, lifecycle ids)
        workflow_query_service: Workflow listing through the Vault REST API
        config: Vault vocabulary; defaults to application settings
    """

    def __init__(
        self,
        query_service: QueryService,
        workflow_query_service: QueryService,
        config: Optional[DiscoveryConfig] = None,
    ):
        self.query_service = query_service
        self.workflow_query_service = workflow_query_service
        self.config = config or DiscoveryConfig.from_settings()

    def start_query(self, params: ExpirationPendingParameters, today: date) -> Query:
        low, high = start_window(params, today)
        cfg = self.config
        return (
            Query.select("version_id", "document_number__v", cfg.expiration_date_field)
            .from_("documents")
            .where(
                contains_any(to_name("type__v"), cfg.document_types),
                eq("status__v", steady_state()),
                ne(cfg.notified_flag_field, True),
                Between(cfg.expiration_date_field, low, high),
            )
        )

    def discover_start_candidates(
        self, params: ExpirationPendingParameters, today: date
    ) -> List[StartItem]:
        log = logger.bind(phase="discovery", action="start")
        low, high = start_window(params, today)
        query = self.start_query(params, today)

        log.info("discovery_start_query", query=query.render(), window_from=str(low), window_to=str(high))
        try:
            rows = self.query_service.query(query)
        except OperationFailed as e:
            log.error("discovery_start_query_failed", error=e.message)
            raise DiscoveryError(f"An error occurred finding start candidates: {e.message}")

        log.info("discovery_start_rows", count=len(rows))

        items: List[StartItem] = []
        for row in rows:
            item = self._start_item(row, params, low, high, log)
            if item is not None:
                items.append(item)
        return items

    def _start_item(
        self,
        row: Dict[str, Any],
        params: ExpirationPendingParameters,
        low: date,
        high: date,
        log,
    ) -> Optional[StartItem]:
        doc_number = row.get("document_number__v")
        try:
            if doc_number is None:
                raise ValueError("row has no document_number__v")
            expiration = _as_date(row.get(self.config.expiration_date_field))
            item = StartItem(
                document_number=str(doc_number),
                document_version_id=str(row.get("version_id")),
                expiration_date=expiration,
                task_due_offset_days=params.task_due_days,
            )
        except (TypeError, ValueError, ValidationError) as e:
            log.warning("discovery_row_skipped", document_number=doc_number, reason=str(e))
            return None

        if not low <= item.expiration_date <= high:
            log.warning(
                "discovery_row_outside_window",
                document_number=item.document_number,
                expiration_date=str(item.expiration_date),
            )
            return None

        log.info(
            "discovery_start_candidate",
            document_number=item.document_number,
            document_version_id=item.document_version_id,
            expiration_date=str(item.expiration_date),
        )
        return item

    def expiring_documents_query(self, params: ExpirationPendingParameters, today: date) -> Query:
        return (
            Query.select("id")
            .from_("documents")
            .where(
                eq(to_name("lifecycle__v"), self.config.target_lifecycle),
                le(self.config.expiration_date_field, kill_date(params, today)),
            )
        )

    def active_workflows_query(self) -> Query:
        return (
            Query.select(DOCUMENT_ID_FIELD, TASK_ID_FIELD)
            .from_("workflows")
            .where(
                eq("workflow_name__v", self.config.workflow_name),
                eq("workflow_status__v", "Active"),
            )
        )

    def discover_cancel_candidates(
        self, params: ExpirationPendingParameters, today: date
    ) -> List[CancelItem]:
        log = logger.bind(phase="discovery", action="cancel")
        log.info(
            "discovery_cancel_start",
            workflow_kill_days=params.workflow_kill_days,
            kill_date=str(kill_date(params, today)),
        )

        try:
            rows = self.query_service.query(self.expiring_documents_query(params, today))
        except OperationFailed as e:
            log.error("discovery_cancel_query_failed", error=e.message)
            raise DiscoveryError(f"An error occurred finding expiring documents: {e.message}")
        expiring: Set[str] = {_as_id(row.get("id")) for row in rows if row.get("id") is not None}

        try:
            workflows = self.workflow_query_service.query(self.active_workflows_query())
        except OperationFailed as e:
            msg = f"An error occurred executing workflows query: {e.message}"
            log.error("discovery_workflows_query_failed", error=msg)
            raise DiscoveryError(msg)

        log.info("discovery_cancel_rows", expiring_documents=len(expiring), active_workflows=len(workflows))

        items: List[CancelItem] = []
        for workflow in workflows:
            raw_doc, raw_task = workflow.get(DOCUMENT_ID_FIELD), workflow.get(TASK_ID_FIELD)
            if raw_doc is None or raw_task is None:
                log.warning("discovery_workflow_skipped", workflow=workflow)
                continue
            doc_id = _as_id(raw_doc)
            if doc_id not in expiring:
                continue
            item = CancelItem(document_id=doc_id, task_id=_as_id(raw_task))
            log.info("discovery_cancel_candidate", document_id=doc_id, task_id=item.task_id)
            items.append(item)
        return items
