"""Workflow creation, status aggregation and read-only status views."""

import logging
import uuid
from collections.abc import Iterable

from models.state import Task, TaskStatus, Workflow, WorkflowStatus
from services.state_store import RedisTaskStore, RedisWorkflowStore
from services.workflow_parser import WorkflowDefinition

logger = logging.getLogger(__name__)


class WorkflowNotCompletedError(Exception):
    """Raised when results are requested before a workflow completes."""

    def __init__(self, workflow_id: str, status: WorkflowStatus):
        self.workflow_id = workflow_id
        self.status = status
        super().__init__(f"Workflow {workflow_id} is not yet completed ({status.value})")


def aggregate_status(statuses: Iterable[TaskStatus]) -> WorkflowStatus:
    """Workflow status as a pure function of its tasks' statuses.

    Any failed task fails the workflow; all completed completes it; anything
    else, including a workflow with no tasks, is in progress.
    """
    statuses = list(statuses)
    if any(status == TaskStatus.FAILED for status in statuses):
        return WorkflowStatus.FAILED
    if statuses and all(status == TaskStatus.COMPLETED for status in statuses):
        return WorkflowStatus.COMPLETED
    return WorkflowStatus.IN_PROGRESS


class WorkflowEngine:
    """Creates workflows from definitions and keeps their status in sync."""

    def __init__(self, task_store: RedisTaskStore, workflow_store: RedisWorkflowStore):
        if task_store is None:
            raise ValueError("task_store is required")
        if workflow_store is None:
            raise ValueError("workflow_store is required")

        self._task_store = task_store
        self._workflow_store = workflow_store

    def create_workflow(
        self,
        definition: WorkflowDefinition,
        client_id: str,
        geo_json: str,
    ) -> Workflow:
        """Create a workflow and queue one task per definition step."""
        if definition is None:
            raise ValueError("definition is required")
        if not client_id:
            raise ValueError("client_id is required")

        workflow = Workflow(
            workflow_id=f"wf-{uuid.uuid4().hex[:12]}",
            client_id=client_id,
            name=definition.name,
            status=WorkflowStatus.INITIAL,
        )
        self._workflow_store.save(workflow)

        for step in definition.steps:
            task = Task(
                task_id=f"task-{uuid.uuid4().hex[:12]}",
                workflow_id=workflow.workflow_id,
                client_id=client_id,
                task_type=step.task_type,
                step_number=step.step_number,
                dependency=step.dependency,
                status=TaskStatus.QUEUED,
                geo_json=geo_json,
            )
            self._task_store.save(task)

        logger.info(
            f"Created workflow {workflow.workflow_id} ({definition.name}) "
            f"with {len(definition.steps)} tasks"
        )
        return workflow

    def recompute_status(self, workflow_id: str) -> Workflow | None:
        """Derive workflow status from its tasks and persist it.

        Not transactional with the task write that triggered it. Running it
        again over the same task states writes the same status, so a stale
        value heals on the next task outcome. Only the status field is
        written, so a concurrent report write to ``final_result`` survives.
        """
        tasks = self._task_store.find(workflow_id=workflow_id)
        status = aggregate_status(task.status for task in tasks)

        workflow = self._workflow_store.update_status(workflow_id, status)
        if workflow is None:
            logger.warning(f"Workflow {workflow_id} not found, status not updated")
        return workflow

    def get_status(self, workflow_id: str) -> dict:
        """Workflow status with completed and total task counts."""
        workflow = self._workflow_store.get(workflow_id)
        tasks = self._task_store.find(workflow_id=workflow_id)
        return {
            "workflow_id": workflow.workflow_id,
            "status": workflow.status,
            "completed_tasks": sum(1 for t in tasks if t.status == TaskStatus.COMPLETED),
            "total_tasks": len(tasks),
        }

    def get_results(self, workflow_id: str) -> dict:
        """Final result of a completed workflow."""
        workflow = self._workflow_store.get(workflow_id)
        if workflow.status != WorkflowStatus.COMPLETED:
            raise WorkflowNotCompletedError(workflow_id, workflow.status)
        return {
            "workflow_id": workflow.workflow_id,
            "status": workflow.status,
            "final_result": workflow.final_result,
        }
