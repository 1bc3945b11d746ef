"""FastAPI REST API for creating workflows and reading their state."""

from fastapi import FastAPI, HTTPException

from api.models import (
    ErrorResponse,
    HealthResponse,
    WorkflowResultResponse,
    WorkflowStatusResponse,
    WorkflowSubmitRequest,
    WorkflowSubmitResponse,
)
from services.state_store import WorkflowNotFoundError
from services.workflow_engine import WorkflowEngine, WorkflowNotCompletedError
from services.workflow_parser import WorkflowParseError, WorkflowParser


class OrchestratorAPI:
    """REST API over the workflow engine.

    Status and results endpoints only read state; task execution happens in
    the worker daemon.
    """

    def __init__(self, engine: WorkflowEngine, workflow_parser: WorkflowParser):
        if engine is None:
            raise ValueError("engine is required")
        if workflow_parser is None:
            raise ValueError("workflow_parser is required")

        self._engine = engine
        self._workflow_parser = workflow_parser

    def create_app(self) -> FastAPI:
        """Create FastAPI application."""
        app = FastAPI(
            title="Workflow Orchestrator API",
            description="Create geometry workflows and follow their progress",
            version="1.0.0",
        )

        @app.post(
            "/workflows",
            status_code=202,
            response_model=WorkflowSubmitResponse,
            responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
        )
        def submit_workflow(request: WorkflowSubmitRequest) -> WorkflowSubmitResponse:
            """Create a workflow from a definition and queue its tasks."""
            try:
                definition = self._workflow_parser.load(request.workflow)
            except FileNotFoundError:
                raise HTTPException(
                    status_code=404,
                    detail=f"Workflow definition not found: {request.workflow}",
                )
            except WorkflowParseError as e:
                raise HTTPException(status_code=400, detail=f"Invalid workflow: {e}")

            workflow = self._engine.create_workflow(
                definition, request.client_id, request.geo_json_text()
            )
            return WorkflowSubmitResponse(
                workflow_id=workflow.workflow_id,
                status=workflow.status.value,
                message="Workflow created and tasks queued",
            )

        @app.get(
            "/workflows/{workflow_id}/status",
            response_model=WorkflowStatusResponse,
            responses={404: {"model": ErrorResponse}},
        )
        def get_workflow_status(workflow_id: str) -> WorkflowStatusResponse:
            """Get workflow status with task progress counts."""
            try:
                status = self._engine.get_status(workflow_id)
            except WorkflowNotFoundError:
                raise HTTPException(status_code=404, detail="Workflow not found")

            return WorkflowStatusResponse(
                workflow_id=status["workflow_id"],
                status=status["status"].value,
                completed_tasks=status["completed_tasks"],
                total_tasks=status["total_tasks"],
            )

        @app.get(
            "/workflows/{workflow_id}/results",
            response_model=WorkflowResultResponse,
            responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
        )
        def get_workflow_results(workflow_id: str) -> WorkflowResultResponse:
            """Get the final result of a completed workflow."""
            try:
                results = self._engine.get_results(workflow_id)
            except WorkflowNotFoundError:
                raise HTTPException(status_code=404, detail="Workflow not found")
            except WorkflowNotCompletedError:
                raise HTTPException(status_code=400, detail="Workflow is not yet completed")

            return WorkflowResultResponse(
                workflow_id=results["workflow_id"],
                status=results["status"].value,
                final_result=results["final_result"],
            )

        @app.get("/health", response_model=HealthResponse)
        def health_check() -> HealthResponse:
            """Health check endpoint."""
            return HealthResponse(status="ok")

        return app
