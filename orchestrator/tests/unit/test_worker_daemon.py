"""Unit tests for the worker daemon scheduler loop."""

import logging
import threading
from unittest.mock import MagicMock

import fakeredis
import pytest

from models.state import Task, TaskStatus
from services.state_store import PersistenceError
from worker_daemon import WorkerDaemon, WorkerSettings, build_daemon, order_batch


def create_task(
    task_id: str,
    task_type: str = "polygonArea",
    step_number: int = 1,
    dependency: str | None = None,
    workflow_id: str = "wf-1",
) -> Task:
    """Create a queued Task for testing."""
    return Task(
        task_id=task_id,
        workflow_id=workflow_id,
        client_id="client-1",
        task_type=task_type,
        step_number=step_number,
        dependency=dependency,
    )


@pytest.fixture
def mock_task_store():
    store = MagicMock()
    store.find.return_value = []
    return store


@pytest.fixture
def mock_runner():
    return MagicMock()


@pytest.fixture
def daemon(mock_task_store, mock_runner):
    daemon = WorkerDaemon(mock_task_store, mock_runner, poll_interval=0.01, max_workers=4)
    yield daemon
    daemon.close()


class TestWorkerDaemonInit:
    """Tests for WorkerDaemon initialization."""

    def test_init_none_task_store_raises(self, mock_runner):
        with pytest.raises(ValueError, match="task_store is required"):
            WorkerDaemon(None, mock_runner)

    def test_init_none_runner_raises(self, mock_task_store):
        with pytest.raises(ValueError, match="runner is required"):
            WorkerDaemon(mock_task_store, None)

    def test_init_zero_poll_interval_raises(self, mock_task_store, mock_runner):
        with pytest.raises(ValueError, match="poll_interval must be positive"):
            WorkerDaemon(mock_task_store, mock_runner, poll_interval=0)

    def test_init_zero_max_workers_raises(self, mock_task_store, mock_runner):
        with pytest.raises(ValueError, match="max_workers must be positive"):
            WorkerDaemon(mock_task_store, mock_runner, max_workers=0)


class TestPollOnce:
    """Tests for running one batch."""

    def test_no_queued_tasks(self, daemon, mock_task_store, mock_runner):
        assert daemon.poll_once() == 0
        mock_task_store.find.assert_called_once_with(status=TaskStatus.QUEUED)
        mock_runner.run.assert_not_called()

    def test_runs_every_queued_task(self, daemon, mock_task_store, mock_runner):
        tasks = [create_task("task-1", "a"), create_task("task-2", "b", step_number=2)]
        mock_task_store.find.return_value = tasks

        assert daemon.poll_once() == 2

        run_ids = {call.args[0].task_id for call in mock_runner.run.call_args_list}
        assert run_ids == {"task-1", "task-2"}

    def test_failing_task_does_not_stop_siblings(
        self, daemon, mock_task_store, mock_runner, caplog
    ):
        tasks = [create_task("task-1", "a"), create_task("task-2", "b"), create_task("task-3", "c")]
        mock_task_store.find.return_value = tasks

        def run(task):
            if task.task_id == "task-2":
                raise RuntimeError("boom")
            return True

        mock_runner.run.side_effect = run

        with caplog.at_level(logging.ERROR, logger="worker_daemon"):
            assert daemon.poll_once() == 3

        assert mock_runner.run.call_count == 3
        assert "Task execution failed for task task-2" in caplog.text

    def test_concurrent_failures_are_contained(self, daemon, mock_task_store, mock_runner):
        mock_task_store.find.return_value = [create_task("task-1", "a"), create_task("task-2", "b")]
        mock_runner.run.side_effect = ValueError("invalid geometry")

        assert daemon.poll_once() == 2
        assert mock_runner.run.call_count == 2

    def test_batch_runs_concurrently(self, daemon, mock_task_store, mock_runner):
        mock_task_store.find.return_value = [create_task("task-1", "a"), create_task("task-2", "b")]
        barrier = threading.Barrier(2)
        passed = []

        def run(task):
            barrier.wait(timeout=2)
            passed.append(task.task_id)

        mock_runner.run.side_effect = run

        daemon.poll_once()

        assert sorted(passed) == ["task-1", "task-2"]


class TestOrderBatch:
    """Tests for batch submission order."""

    def test_dependency_submitted_first(self):
        tasks = [
            create_task("task-b", "b", step_number=1, dependency="a"),
            create_task("task-a", "a", step_number=2),
        ]
        assert [t.task_id for t in order_batch(tasks)] == ["task-a", "task-b"]

    def test_chain_ordered_by_depth(self):
        tasks = [
            create_task("task-c", "c", step_number=1, dependency="b"),
            create_task("task-b", "b", step_number=1, dependency="a"),
            create_task("task-a", "a", step_number=1),
        ]
        assert [t.task_id for t in order_batch(tasks)] == ["task-a", "task-b", "task-c"]

    def test_dependency_outside_batch_counts_as_ready(self):
        tasks = [
            create_task("task-b", "b", step_number=2, dependency="a"),
            create_task("task-c", "c", step_number=3),
        ]
        assert [t.task_id for t in order_batch(tasks)] == ["task-b", "task-c"]

    def test_dependency_matched_within_same_workflow(self):
        tasks = [
            create_task("task-b1", "b", step_number=1, dependency="a", workflow_id="wf-1"),
            create_task("task-a2", "a", step_number=2, workflow_id="wf-2"),
        ]
        assert [t.task_id for t in order_batch(tasks)] == ["task-b1", "task-a2"]

    def test_cycle_terminates(self):
        tasks = [
            create_task("task-a", "a", dependency="b"),
            create_task("task-b", "b", dependency="a"),
        ]
        assert len(order_batch(tasks)) == 2


class TestRunLoop:
    """Tests for the polling loop and shutdown."""

    def test_stop_ends_loop(self, mock_task_store, mock_runner):
        daemon = WorkerDaemon(mock_task_store, mock_runner, poll_interval=0.01)

        def find(**kwargs):
            daemon.stop()
            return []

        mock_task_store.find.side_effect = find

        daemon.run()

        assert daemon.running is False
        assert mock_task_store.find.call_count == 1

    def test_loop_survives_poll_errors(self, mock_task_store, mock_runner, caplog):
        daemon = WorkerDaemon(mock_task_store, mock_runner, poll_interval=0.01)
        calls = []

        def find(**kwargs):
            calls.append(kwargs)
            if len(calls) == 1:
                raise PersistenceError("redis down")
            daemon.stop()
            return []

        mock_task_store.find.side_effect = find

        with caplog.at_level(logging.ERROR, logger="worker_daemon"):
            daemon.run()

        assert len(calls) == 2
        assert "Error in daemon loop: redis down" in caplog.text

    def test_shared_stop_event(self, mock_task_store, mock_runner):
        stop_event = threading.Event()
        daemon = WorkerDaemon(mock_task_store, mock_runner, stop_event=stop_event)
        daemon.stop()
        assert stop_event.is_set()
        daemon.close()


class TestWorkerSettings:
    """Tests for environment configuration."""

    def test_defaults(self):
        settings = WorkerSettings.from_env({})
        assert settings.redis_url == "redis://localhost:6379"
        assert settings.poll_interval == 10.0
        assert settings.dependency_poll_interval == 5.0
        assert settings.dependency_timeout == 600.0
        assert settings.max_workers == 16

    def test_overrides(self):
        settings = WorkerSettings.from_env(
            {
                "REDIS_URL": "redis://custom:1234",
                "WORKER_POLL_INTERVAL": "2",
                "DEPENDENCY_POLL_INTERVAL": "0.5",
                "DEPENDENCY_TIMEOUT": "30",
                "WORKER_MAX_CONCURRENCY": "4",
            }
        )
        assert settings.redis_url == "redis://custom:1234"
        assert settings.poll_interval == 2.0
        assert settings.dependency_poll_interval == 0.5
        assert settings.dependency_timeout == 30.0
        assert settings.max_workers == 4

    def test_zero_timeout_disables_it(self):
        assert WorkerSettings.from_env({"DEPENDENCY_TIMEOUT": "0"}).dependency_timeout is None


class TestBuildDaemon:
    def test_builds_daemon(self):
        client = fakeredis.FakeRedis(server=fakeredis.FakeServer())
        daemon = build_daemon(client, WorkerSettings(poll_interval=1.0))
        try:
            assert isinstance(daemon, WorkerDaemon)
            assert daemon.poll_once() == 0
        finally:
            daemon.close()
