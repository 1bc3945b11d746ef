"""State models for workflows, tasks and task results."""

import json
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowStatus(str, Enum):
    """Workflow execution status, derived from its tasks."""

    INITIAL = "initial"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskStatus(str, Enum):
    """Task execution status."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


REPORT_TASK_TYPE = "report"


class Workflow(BaseModel):
    """Persistent state of a workflow.

    The task collection is not embedded: tasks are owned by the task store
    and looked up by ``workflow_id``.
    """

    workflow_id: str
    client_id: str
    name: str = ""
    status: WorkflowStatus = WorkflowStatus.INITIAL
    final_result: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Task(BaseModel):
    """Persistent state of a task."""

    task_id: str
    workflow_id: str
    client_id: str
    task_type: str
    step_number: int = 1
    status: TaskStatus = TaskStatus.QUEUED
    progress: str | None = None
    dependency: str | None = None
    result_id: str | None = None
    geo_json: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Result(BaseModel):
    """Outcome of one task run.

    ``data`` holds JSON text: the job's output string on success, or an
    object with ``error``, ``message`` and ``traceback`` on failure.
    """

    result_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    task_id: str
    data: str
    created_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def for_output(cls, task_id: str, output: str | None) -> "Result":
        return cls(task_id=task_id, data=json.dumps(output))

    @classmethod
    def for_failure(cls, task_id: str, error: BaseException) -> "Result":
        payload = {
            "error": type(error).__name__,
            "message": str(error),
            "traceback": "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ),
        }
        return cls(task_id=task_id, data=json.dumps(payload))

    def decoded(self):
        return json.loads(self.data)

    def error_message(self) -> str | None:
        """Human-readable message of a failure payload, None for outputs."""
        payload = self.decoded()
        if isinstance(payload, dict) and "error" in payload:
            return payload.get("message") or payload["error"]
        return None
