# Services package

from services.state_store import (
    PersistenceError,
    RedisResultStore,
    RedisTaskStore,
    RedisWorkflowStore,
    TaskNotFoundError,
    WorkflowNotFoundError,
)
from services.log_service import (
    SizeAndTimeRotatingHandler,
    TaskLogAdapter,
    configure_logging,
    task_logger,
)
from services.workflow_parser import WorkflowDefinition, WorkflowParseError, WorkflowParser
from services.workflow_engine import (
    WorkflowEngine,
    WorkflowNotCompletedError,
    aggregate_status,
)
from services.task_runner import (
    DependencyFailedError,
    DependencyTimeoutError,
    JobExecutionError,
    TaskRunner,
)

__all__ = [
    "DependencyFailedError",
    "DependencyTimeoutError",
    "JobExecutionError",
    "PersistenceError",
    "RedisResultStore",
    "RedisTaskStore",
    "RedisWorkflowStore",
    "SizeAndTimeRotatingHandler",
    "TaskLogAdapter",
    "TaskNotFoundError",
    "TaskRunner",
    "WorkflowDefinition",
    "WorkflowEngine",
    "WorkflowNotCompletedError",
    "WorkflowNotFoundError",
    "WorkflowParseError",
    "WorkflowParser",
    "aggregate_status",
    "configure_logging",
    "task_logger",
]
