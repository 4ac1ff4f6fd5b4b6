"""
Local host scheduler for the Expiration Pending job.

Flow:
1. Init: run discovery through ``job.init()`` (a DiscoveryError aborts the run)
2. Partition: split the work items into tasks of ``task_size`` items
3. Process: run ``job.process()`` per task, sequentially or on a thread pool
4. Aggregate: collect every TaskResult into a JobOutcome
5. Complete: ``job.on_success()`` or ``job.on_error(results)``
"""
from __future__ import annotations

import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Optional, Sequence

import structlog

from ..config import get_settings
from ..schemas.work_items import JobOutcome, JobTask, TaskResult, TaskState
from .orchestrator import ExpirationPendingJob

logger = structlog.get_logger(__name__)


def partition(items: Sequence[Any], task_size: int) -> List[JobTask]:
    """Split items into consecutive tasks, preserving discovery order."""
    if task_size < 1:
        raise ValueError(f"task_size must be at least 1, got {task_size}")
    return [
        JobTask(task_id=f"task-{n + 1:04d}", items=tuple(items[i:i + task_size]))
        for n, i in enumerate(range(0, len(items), task_size))
    ]


class LocalJobRunner:
    """Drives one job through init, process and completion."""

    def __init__(
        self,
        job: ExpirationPendingJob,
        task_size: Optional[int] = None,
        max_parallel_tasks: Optional[int] = None,
    ):
        """Initialize the runner.

        Args:
            job: Job to drive
            task_size: Work items per task (default from config)
            max_parallel_tasks: Tasks processed concurrently (default from config)
        """
        settings = get_settings()
        self.job = job
        self.task_size = task_size or settings.task_size
        self.max_parallel_tasks = max_parallel_tasks or settings.max_parallel_tasks
        self.run_id = f"run-{uuid.uuid4().hex[:8]}"

    def _process_safely(self, task: JobTask) -> TaskResult:
        try:
            return self.job.process(task)
        except Exception as e:
            logger.exception("task_process_error", run_id=self.run_id, task_id=task.task_id)
            return TaskResult(
                task_id=task.task_id,
                state=TaskState.ERRORS_ENCOUNTERED,
                first_error_message=f"Task raised: {e}",
                item_count=len(task.items),
                failed_item_count=len(task.items),
            )

    def run(self) -> JobOutcome:
        """Run the job once.

        Raises:
            DiscoveryError: If discovery failed; no task was processed
        """
        log = logger.bind(run_id=self.run_id)
        log.info(
            "job_run_started",
            task_size=self.task_size,
            max_parallel_tasks=self.max_parallel_tasks,
        )

        items = self.job.init()
        tasks = partition(items, self.task_size)
        log.info("job_tasks_dispatched", items=len(items), tasks=len(tasks))

        if self.max_parallel_tasks > 1 and len(tasks) > 1:
            with ThreadPoolExecutor(max_workers=self.max_parallel_tasks) as pool:
                results = list(pool.map(self._process_safely, tasks))
        else:
            results = [self._process_safely(task) for task in tasks]

        outcome = JobOutcome(task_results=tuple(results))
        if outcome.succeeded:
            self.job.on_success()
        else:
            self.job.on_error(outcome.task_results)

        log.info(
            "job_run_finished",
            total_tasks=outcome.total_tasks,
            failed_tasks=outcome.failed_tasks,
        )
        return outcome
