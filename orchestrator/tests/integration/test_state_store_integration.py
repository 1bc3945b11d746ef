"""Integration tests for the Redis stores with real Redis."""

import pytest
from redis import Redis
from testcontainers.redis import RedisContainer

from models.state import Result, Task, TaskStatus, Workflow, WorkflowStatus
from services.state_store import RedisResultStore, RedisTaskStore, RedisWorkflowStore

pytestmark = pytest.mark.integration


@pytest.fixture(scope="module")
def redis_container():
    with RedisContainer() as container:
        yield container


@pytest.fixture(params=[False, True], ids=["bytes", "decoded"])
def redis_client(redis_container, request):
    client = Redis(
        host=redis_container.get_container_host_ip(),
        port=redis_container.get_exposed_port(6379),
        decode_responses=request.param,
    )
    yield client
    client.flushdb()
    client.close()


@pytest.fixture
def task_store(redis_client):
    return RedisTaskStore(redis_client)


@pytest.fixture
def workflow_store(redis_client):
    return RedisWorkflowStore(redis_client)


@pytest.fixture
def result_store(redis_client):
    return RedisResultStore(redis_client)


def create_task(task_id: str, task_type: str, step_number: int, **kwargs) -> Task:
    return Task(
        task_id=task_id,
        workflow_id="wf-int-1",
        client_id="client-1",
        task_type=task_type,
        step_number=step_number,
        **kwargs,
    )


class TestTaskStoreIntegration:
    """Task persistence against a real server."""

    def test_task_lifecycle(self, task_store):
        task = create_task("task-1", "polygonArea", 1)
        task_store.save(task)
        assert [t.task_id for t in task_store.find(status=TaskStatus.QUEUED)] == ["task-1"]

        task.status = TaskStatus.IN_PROGRESS
        task.progress = "starting job..."
        task_store.save(task)
        assert task_store.find(status=TaskStatus.QUEUED) == []

        task.status = TaskStatus.COMPLETED
        task.progress = None
        task_store.save(task)

        stored = task_store.get("task-1")
        assert stored.status == TaskStatus.COMPLETED
        assert stored.progress is None
        assert task_store.find(status=TaskStatus.IN_PROGRESS) == []

    def test_dependency_lookup(self, task_store):
        task_store.save(create_task("task-1", "polygonArea", 1))
        task_store.save(create_task("task-2", "report", 2, dependency="polygonArea"))

        dependency = task_store.find_one(workflow_id="wf-int-1", task_type="polygonArea")

        assert dependency.task_id == "task-1"
        assert [t.step_number for t in task_store.find(workflow_id="wf-int-1")] == [1, 2]


class TestWorkflowStoreIntegration:
    def test_workflow_round_trip(self, workflow_store):
        workflow = Workflow(workflow_id="wf-int-1", client_id="client-1", name="example")
        workflow_store.save(workflow)

        workflow.status = WorkflowStatus.COMPLETED
        workflow.final_result = "Task polygonArea - Output: 1.0\n"
        workflow_store.save(workflow)

        stored = workflow_store.get("wf-int-1")
        assert stored.status == WorkflowStatus.COMPLETED
        assert stored.final_result == "Task polygonArea - Output: 1.0\n"


class TestResultStoreIntegration:
    def test_latest_result_wins(self, result_store):
        result_store.save(Result.for_failure("task-1", RuntimeError("first attempt")))
        result_store.save(Result.for_output("task-1", "42.0"))

        assert result_store.find_one("task-1").decoded() == "42.0"
        assert len(result_store.find_all("task-1")) == 2
