"""Report job that summarises the outputs of a workflow's other tasks."""

import logging

from jobs.base import Job
from models.report import Report, TaskReport
from models.state import REPORT_TASK_TYPE, Task, TaskStatus
from services.state_store import (
    PersistenceError,
    RedisResultStore,
    RedisTaskStore,
    RedisWorkflowStore,
)

logger = logging.getLogger(__name__)


class ReportGenerationError(Exception):
    """Raised when a report cannot be built or saved."""

    def __init__(self, workflow_id: str, reason: str):
        self.workflow_id = workflow_id
        super().__init__(f"Failed to generate report for workflow {workflow_id}: {reason}")


class ReportGenerationJob(Job):
    """Collects every non-report task's latest result into a report.

    The plain-text summary is written to the workflow's ``final_result``;
    the full report is returned as JSON and becomes the task's own output.
    """

    def __init__(
        self,
        task_store: RedisTaskStore,
        result_store: RedisResultStore,
        workflow_store: RedisWorkflowStore,
    ):
        if task_store is None:
            raise ValueError("task_store is required")
        if result_store is None:
            raise ValueError("result_store is required")
        if workflow_store is None:
            raise ValueError("workflow_store is required")

        self._task_store = task_store
        self._result_store = result_store
        self._workflow_store = workflow_store

    def run(self, task: Task) -> str:
        logger.info(f"Running report generation for task {task.task_id}")

        report = self.generate_report(task.workflow_id)
        self._save_report_to_workflow(report)
        return report.model_dump_json()

    def generate_report(self, workflow_id: str) -> Report:
        try:
            tasks = self._task_store.find(workflow_id=workflow_id)
        except PersistenceError as e:
            raise ReportGenerationError(workflow_id, str(e)) from e

        report = Report(workflow_id=workflow_id)
        for workflow_task in tasks:
            if workflow_task.task_type == REPORT_TASK_TYPE:
                continue
            task_report = self._generate_task_report(workflow_task)
            report.tasks.append(task_report)
            report.final_report += (
                f"Task {workflow_task.task_type} - Output: {task_report.output}\n"
            )

        return report

    def _generate_task_report(self, task: Task) -> TaskReport:
        task_report = TaskReport(task_id=task.task_id, task_type=task.task_type)

        try:
            result = self._result_store.find_one(task.task_id)
        except PersistenceError as e:
            logger.error(f"Error fetching result for task {task.task_id}: {e}")
            task_report.output = "Error fetching task result"
            return task_report

        if task.status == TaskStatus.FAILED:
            message = result.error_message() if result else None
            task_report.output = f"Task failed with error: {message or 'Unknown error'}"
        elif result is not None:
            output = result.decoded()
            task_report.output = output if isinstance(output, str) else result.data

        return task_report

    def _save_report_to_workflow(self, report: Report) -> None:
        try:
            workflow = self._workflow_store.set_final_result(
                report.workflow_id, report.final_report
            )
        except PersistenceError as e:
            raise ReportGenerationError(report.workflow_id, str(e)) from e

        if workflow is None:
            logger.warning(f"Workflow {report.workflow_id} not found, report not saved")
