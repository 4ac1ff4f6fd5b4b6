"""
Expiration Pending job - the batch orchestrator driven by a host scheduler.

This job:
    - starts "Expiration Pending" workflows for documents approaching their
      expiration date
    - cancels the open "Expiration Pending" task on active workflows whose
      document expires within ``workflowKillDays``

The host scheduler drives four entry points:

    items = job.init()                   # discovery; DiscoveryError aborts the run
    result = job.process(task)           # once per task, possibly in parallel
    job.on_success()                     # no task failed
    job.on_error(all_task_results)       # at least one task failed

Lifecycle:
    INITIALIZING -> DISPATCHED -> COMPLETED_SUCCESS | COMPLETED_WITH_ERRORS
    INITIALIZING -> ABORTED (discovery failed)

Per task, inside process():
    PER_TASK_EXECUTING -> AGGREGATING

Within one task, items run in order; a failing item never stops its
siblings. Tasks share no mutable state and may run concurrently.
"""
from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import structlog

from ..errors import DiscoveryError, InvalidInput, JobError, OperationFailed
from ..parameters import ParameterProvider
from ..schemas.work_items import (
    WORK_ITEM_ACTIONS,
    CancelItem,
    JobTask,
    StartItem,
    TaskResult,
    TaskState,
    parse_work_item,
)
from .discovery import CandidateDiscovery
from .executor import Executor, ItemOutcome

logger = structlog.get_logger(__name__)


class JobPhase(str, Enum):
    CREATED = "created"
    INITIALIZING = "initializing"
    DISPATCHED = "dispatched"
    ABORTED = "aborted"
    COMPLETED_SUCCESS = "completed_success"
    COMPLETED_WITH_ERRORS = "completed_with_errors"


class TaskPhase(str, Enum):
    """Phases of one task inside ``process()``; tasks may be in them concurrently."""

    PER_TASK_EXECUTING = "per_task_executing"
    AGGREGATING = "aggregating"


_TRANSITIONS: Dict[JobPhase, frozenset] = {
    JobPhase.CREATED: frozenset({JobPhase.INITIALIZING}),
    JobPhase.INITIALIZING: frozenset({JobPhase.DISPATCHED, JobPhase.ABORTED}),
    JobPhase.DISPATCHED: frozenset({JobPhase.COMPLETED_SUCCESS, JobPhase.COMPLETED_WITH_ERRORS}),
    # A finished job object may be run again.
    JobPhase.ABORTED: frozenset({JobPhase.INITIALIZING}),
    JobPhase.COMPLETED_SUCCESS: frozenset({JobPhase.INITIALIZING}),
    JobPhase.COMPLETED_WITH_ERRORS: frozenset({JobPhase.INITIALIZING}),
}


class ExpirationPendingJob:
    """Discovers, executes and reports Expiration Pending work for one run."""

    def __init__(
        self,
        discovery: CandidateDiscovery,
        parameter_provider: ParameterProvider,
        executors: Dict[str, Executor],
        today: Callable[[], date] = date.today,
    ):
        missing = WORK_ITEM_ACTIONS - set(executors)
        if missing:
            raise ValueError(f"No executor registered for action(s): {', '.join(sorted(missing))}")

        self.discovery = discovery
        self.parameter_provider = parameter_provider
        self.executors = executors
        self.today = today
        self.phase = JobPhase.CREATED

    def _transition(self, new_phase: JobPhase) -> None:
        if new_phase not in _TRANSITIONS[self.phase]:
            raise OperationFailed(
                f"Illegal job phase transition {self.phase.value} -> {new_phase.value}"
            )
        logger.info("job_phase_changed", old_phase=self.phase.value, new_phase=new_phase.value)
        self.phase = new_phase

    def init(self) -> List[Union[StartItem, CancelItem]]:
        """Run both discovery scans and return the ordered work items.

        Raises:
            DiscoveryError: If the parameter lookup or discovery fails for any
                reason. The job is left ABORTED and no task may be scheduled
                for this run.
        """
        self._transition(JobPhase.INITIALIZING)
        today = self.today()

        try:
            try:
                params = self.parameter_provider.load()
            except JobError as e:
                raise DiscoveryError(f"Unable to load Expiration Pending parameters: {e.message}")

            start_items = self.discovery.discover_start_candidates(params, today)
            cancel_items = self.discovery.discover_cancel_candidates(params, today)
        except DiscoveryError as e:
            logger.error("job_init_aborted", error=e.message)
            self._transition(JobPhase.ABORTED)
            raise
        except Exception as e:
            logger.exception("job_init_aborted", error=str(e))
            self._transition(JobPhase.ABORTED)
            raise DiscoveryError(f"Discovery failed unexpectedly: {e}") from e

        items: List[Union[StartItem, CancelItem]] = [*start_items, *cancel_items]
        logger.info(
            "job_init_completed",
            run_date=today.isoformat(),
            start_items=len(start_items),
            cancel_items=len(cancel_items),
        )
        self._transition(JobPhase.DISPATCHED)
        return items

    def process(self, task: JobTask) -> TaskResult:
        """Execute every item of one task and return its result.

        Failures are counted per item; only the first error message is kept.
        """
        log = logger.bind(task_id=task.task_id)
        log.info(
            "task_phase_changed",
            phase=TaskPhase.PER_TASK_EXECUTING.value,
            state=TaskState.PENDING.value,
            items=len(task.items),
        )

        failures = 0
        first_error: Optional[str] = None

        for index, raw_item in enumerate(task.items):
            outcome = self._execute_item(raw_item, index, log)
            if outcome.success:
                continue
            failures += 1
            if first_error is None:
                first_error = outcome.error_message
            else:
                log.info("additional_error_not_retained", item_index=index)

        log.info("task_phase_changed", phase=TaskPhase.AGGREGATING.value, failed_items=failures)
        if failures:
            result = TaskResult(
                task_id=task.task_id,
                state=TaskState.ERRORS_ENCOUNTERED,
                first_error_message=first_error,
                item_count=len(task.items),
                failed_item_count=failures,
            )
            log.error("task_completed", state=result.state.value, failed_items=failures)
        else:
            result = TaskResult(
                task_id=task.task_id,
                state=TaskState.SUCCESS,
                item_count=len(task.items),
            )
            log.info("task_completed", state=result.state.value)
        return result

    def _execute_item(self, raw_item: Any, index: int, log) -> ItemOutcome:
        try:
            item = parse_work_item(raw_item)
        except InvalidInput as e:
            log.error("item_invalid", item_index=index, error=e.message)
            return ItemOutcome(False, "unknown", f"item {index}", error_message=str(e))

        executor = self.executors.get(item.action)
        if executor is None:
            message = f"{InvalidInput.kind.value}: Job item has no associated action ({item.action!r})"
            log.error("item_unhandled_action", item_index=index, error=message)
            return ItemOutcome(False, item.action, f"item {index}", error_message=message)

        try:
            outcome = executor.execute(item)
        except Exception as e:
            log.exception("item_execution_error", item_index=index, executor=executor.name)
            return ItemOutcome(False, item.action, f"item {index}", error_message=f"{executor.name}: {e}")

        if outcome.success:
            log.info("item_succeeded", item_index=index, action=outcome.action, subject=outcome.subject)
        else:
            log.error("item_failed", item_index=index, action=outcome.action, subject=outcome.subject)
        return outcome

    def on_success(self) -> None:
        """Completion callback when every task succeeded."""
        self._transition(JobPhase.COMPLETED_SUCCESS)
        logger.info("job_completed", message="All tasks completed successfully")

    def on_error(self, task_results: Sequence[TaskResult]) -> None:
        """Completion callback when at least one task failed. Reports only."""
        self._transition(JobPhase.COMPLETED_WITH_ERRORS)
        failed = [r for r in task_results if r.state == TaskState.ERRORS_ENCOUNTERED]
        logger.error(
            "job_completed_with_errors",
            failed_tasks=len(failed),
            total_tasks=len(task_results),
        )
        for result in failed:
            logger.error(
                "task_failed",
                task_id=result.task_id,
                error_message=result.first_error_message,
            )
