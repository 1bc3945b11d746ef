"""Report structure produced by the report generation job."""

from pydantic import BaseModel


class TaskReport(BaseModel):
    task_id: str
    task_type: str
    output: str | None = None


class Report(BaseModel):
    workflow_id: str
    tasks: list[TaskReport] = []
    final_report: str = ""
