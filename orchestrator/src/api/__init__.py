# API package

from api.app import OrchestratorAPI
from api.models import (
    ErrorResponse,
    HealthResponse,
    WorkflowResultResponse,
    WorkflowStatusResponse,
    WorkflowSubmitRequest,
    WorkflowSubmitResponse,
)

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "OrchestratorAPI",
    "WorkflowResultResponse",
    "WorkflowStatusResponse",
    "WorkflowSubmitRequest",
    "WorkflowSubmitResponse",
]
