"""Request and response models for REST API."""

import json

from pydantic import BaseModel, ConfigDict, field_validator


class WorkflowSubmitRequest(BaseModel):
    """Request to create a workflow for a client's geometry."""

    model_config = ConfigDict(extra="forbid")

    client_id: str
    geo_json: dict
    workflow: str = "example_workflow"

    @field_validator("client_id", "workflow")
    @classmethod
    def field_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("field is required")
        return v

    @field_validator("geo_json")
    @classmethod
    def geo_json_not_empty(cls, v: dict) -> dict:
        if not v:
            raise ValueError("geo_json is required")
        return v

    def geo_json_text(self) -> str:
        return json.dumps(self.geo_json)


class WorkflowSubmitResponse(BaseModel):
    """Response from workflow submission."""

    model_config = ConfigDict(frozen=True)

    workflow_id: str
    status: str
    message: str


class WorkflowStatusResponse(BaseModel):
    """Response for workflow status."""

    model_config = ConfigDict(frozen=True)

    workflow_id: str
    status: str
    completed_tasks: int
    total_tasks: int


class WorkflowResultResponse(BaseModel):
    """Response for the results of a completed workflow."""

    model_config = ConfigDict(frozen=True)

    workflow_id: str
    status: str
    final_result: str | None = None


class ErrorResponse(BaseModel):
    """Error response."""

    model_config = ConfigDict(frozen=True)

    detail: str


class HealthResponse(BaseModel):
    """Health check response."""

    model_config = ConfigDict(frozen=True)

    status: str
