"""Models package."""

from models.report import Report, TaskReport
from models.state import (
    REPORT_TASK_TYPE,
    Result,
    Task,
    TaskStatus,
    Workflow,
    WorkflowStatus,
    utc_now,
)

__all__ = [
    "REPORT_TASK_TYPE",
    "Report",
    "Result",
    "Task",
    "TaskReport",
    "TaskStatus",
    "Workflow",
    "WorkflowStatus",
    "utc_now",
]
