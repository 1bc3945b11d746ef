"""Runs a single task through its gates, its job and its status transitions."""

import logging
import threading
import time

from jobs.base import Job, JobRegistry
from models.state import REPORT_TASK_TYPE, Result, Task, TaskStatus
from services.log_service import TaskLogAdapter, task_logger
from services.state_store import RedisResultStore, RedisTaskStore
from services.workflow_engine import WorkflowEngine

STARTING_PROGRESS = "starting job..."


class DependencyFailedError(Exception):
    """Raised when the task a task depends on has failed."""

    def __init__(self, task_type: str, dependency: str):
        self.task_type = task_type
        self.dependency = dependency
        super().__init__(f'Dependency task "{dependency}" failed.')


class DependencyTimeoutError(Exception):
    """Raised when a dependency does not finish within the allowed time."""

    def __init__(self, task_type: str, dependency: str, timeout: float):
        self.task_type = task_type
        self.dependency = dependency
        self.timeout = timeout
        super().__init__(
            f'Dependency task "{dependency}" did not finish within {timeout:g} seconds.'
        )


class JobExecutionError(Exception):
    """Raised when a job fails while running a task."""

    def __init__(self, task_type: str, task_id: str, reason: str):
        self.task_type = task_type
        self.task_id = task_id
        super().__init__(f"Job {task_type} failed for task {task_id}: {reason}")


class TaskRunner:
    """Drives one task from queued to completed or failed.

    ``run`` passes the task through two gates before dispatching it:

    * dependency gate: waits, inside the caller's thread, for the task of
      type ``task.dependency`` in the same workflow to complete. A missing
      dependency is a skip; a failed one, or one that outlasts
      ``dependency_timeout``, fails the task.
    * report gate: a ``report`` task is skipped until every other task in
      its workflow has completed.

    A skipped task is left queued, untouched, for the next scheduler poll.
    Every failure past the gates is persisted as a failed task plus a result
    row, the workflow status is recomputed, and the error is re-raised.
    """

    def __init__(
        self,
        task_store: RedisTaskStore,
        result_store: RedisResultStore,
        engine: WorkflowEngine,
        registry: JobRegistry,
        logger: logging.Logger | None = None,
        dependency_poll_interval: float = 5.0,
        dependency_timeout: float | None = 600.0,
        stop_event: threading.Event | None = None,
    ):
        if task_store is None:
            raise ValueError("task_store is required")
        if result_store is None:
            raise ValueError("result_store is required")
        if engine is None:
            raise ValueError("engine is required")
        if registry is None:
            raise ValueError("registry is required")
        if dependency_poll_interval <= 0:
            raise ValueError("dependency_poll_interval must be positive")
        if dependency_timeout is not None and dependency_timeout <= 0:
            raise ValueError("dependency_timeout must be positive")

        self._task_store = task_store
        self._result_store = result_store
        self._engine = engine
        self._registry = registry
        self._logger = logger or logging.getLogger(__name__)
        self._dependency_poll_interval = dependency_poll_interval
        self._dependency_timeout = dependency_timeout
        self._stop_event = stop_event or threading.Event()

    def run(self, task: Task) -> bool:
        """Run ``task``. Returns False if a gate skipped it, True once completed."""
        log = task_logger(self._logger, task.task_type)
        log.info(f"--- Starting task {task.task_id} ---")

        try:
            if not self.check_dependency(task):
                return False
        except (DependencyFailedError, DependencyTimeoutError) as e:
            self._handle_failure(task, e, log)
            raise

        if not self.check_report(task):
            return False

        try:
            self._mark_in_progress(task)
            job = self._registry.resolve(task.task_type)
            log.info(f"Starting job {task.task_type} for task {task.task_id}")
            output = self._execute(job, task)
            self._save_result(task, output)
        except Exception as e:
            self._handle_failure(task, e, log)
            raise

        log.info(f"Job {task.task_type} for task {task.task_id} completed successfully")
        self._engine.recompute_status(task.workflow_id)
        return True

    def check_dependency(self, task: Task) -> bool:
        """Wait for the task's dependency. False means skip for now."""
        if not task.dependency:
            return True

        log = task_logger(self._logger, task.task_type)
        log.info(f"Task has a dependency: {task.dependency}, checking...")

        deadline = None
        if self._dependency_timeout is not None:
            deadline = time.monotonic() + self._dependency_timeout

        while True:
            dependency_task = self._task_store.find_one(
                workflow_id=task.workflow_id, task_type=task.dependency
            )
            if dependency_task is None:
                log.info(f"Dependency task not found: {task.dependency}. Skipping for now.")
                return False
            if dependency_task.status == TaskStatus.COMPLETED:
                log.info(f'Dependency task "{task.dependency}" completed.')
                return True
            if dependency_task.status == TaskStatus.FAILED:
                raise DependencyFailedError(task.task_type, task.dependency)

            wait = self._dependency_poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise DependencyTimeoutError(
                        task.task_type, task.dependency, self._dependency_timeout
                    )
                wait = min(wait, remaining)

            log.info(f'Waiting for dependency task "{task.dependency}" to complete...')
            if self._stop_event.wait(wait):
                log.info("Stop requested while waiting for dependency. Skipping for now.")
                return False

    def check_report(self, task: Task) -> bool:
        """Hold back report tasks until the rest of the workflow completed."""
        if task.task_type != REPORT_TASK_TYPE:
            return True

        log = task_logger(self._logger, task.task_type)
        log.info("Checking if all tasks in the workflow are completed for report generation...")

        tasks = self._task_store.find(workflow_id=task.workflow_id)
        pending = [
            t
            for t in tasks
            if t.task_type != REPORT_TASK_TYPE and t.status != TaskStatus.COMPLETED
        ]
        if pending:
            log.info(
                f"Not all tasks in the workflow {task.workflow_id} are completed. "
                "Skipping for now."
            )
            return False

        log.info(
            f"All tasks in the workflow {task.workflow_id} are completed. "
            "Proceeding with report generation."
        )
        return True

    def _execute(self, job: Job, task: Task) -> str:
        try:
            return job.run(task)
        except Exception as e:
            raise JobExecutionError(task.task_type, task.task_id, str(e)) from e

    def _mark_in_progress(self, task: Task) -> None:
        task.status = TaskStatus.IN_PROGRESS
        task.progress = STARTING_PROGRESS
        self._task_store.save(task)

    def _save_result(self, task: Task, output: str) -> None:
        result = Result.for_output(task.task_id, output)
        self._result_store.save(result)

        task.result_id = result.result_id
        task.status = TaskStatus.COMPLETED
        task.progress = None
        self._task_store.save(task)

    def _handle_failure(self, task: Task, error: Exception, log: TaskLogAdapter) -> None:
        log.error(f"Error running job {task.task_type} for task {task.task_id}: {error}")

        task.status = TaskStatus.FAILED
        task.progress = None
        self._task_store.save(task)

        result = Result.for_failure(task.task_id, error)
        self._result_store.save(result)
        task.result_id = result.result_id
        self._task_store.save(task)

        self._engine.recompute_status(task.workflow_id)
