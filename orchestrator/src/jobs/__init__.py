"""Job implementations and registry."""

from jobs.base import Job, JobRegistry, UnknownTaskTypeError
from jobs.polygon_area import InvalidGeometryError, PolygonAreaJob
from jobs.report_generation import ReportGenerationError, ReportGenerationJob
from models.state import REPORT_TASK_TYPE
from services.state_store import RedisResultStore, RedisTaskStore, RedisWorkflowStore

POLYGON_AREA_TASK_TYPE = "polygonArea"


def build_default_registry(
    task_store: RedisTaskStore,
    result_store: RedisResultStore,
    workflow_store: RedisWorkflowStore,
) -> JobRegistry:
    """Registry with every built-in job."""
    return JobRegistry(
        {
            POLYGON_AREA_TASK_TYPE: PolygonAreaJob(),
            REPORT_TASK_TYPE: ReportGenerationJob(task_store, result_store, workflow_store),
        }
    )


__all__ = [
    "InvalidGeometryError",
    "Job",
    "JobRegistry",
    "POLYGON_AREA_TASK_TYPE",
    "PolygonAreaJob",
    "ReportGenerationError",
    "ReportGenerationJob",
    "UnknownTaskTypeError",
    "build_default_registry",
]
