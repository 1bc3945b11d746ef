"""Worker daemon that continuously polls for queued tasks and runs them."""

import argparse
import logging
import os
import signal
import sys
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass

import redis

from jobs import build_default_registry
from models.state import Task, TaskStatus
from services.log_service import configure_logging
from services.state_store import RedisResultStore, RedisTaskStore, RedisWorkflowStore
from services.task_runner import TaskRunner
from services.workflow_engine import WorkflowEngine

logger = logging.getLogger("worker_daemon")


@dataclass(frozen=True)
class WorkerSettings:
    """Daemon configuration, read from the environment."""

    redis_url: str = "redis://localhost:6379"
    poll_interval: float = 10.0
    dependency_poll_interval: float = 5.0
    dependency_timeout: float | None = 600.0
    max_workers: int = 16

    @classmethod
    def from_env(cls, environ: dict | None = None) -> "WorkerSettings":
        env = os.environ if environ is None else environ
        # 0 disables the dependency timeout
        timeout = float(env.get("DEPENDENCY_TIMEOUT", "600"))
        return cls(
            redis_url=env.get("REDIS_URL", cls.redis_url),
            poll_interval=float(env.get("WORKER_POLL_INTERVAL", "10.0")),
            dependency_poll_interval=float(env.get("DEPENDENCY_POLL_INTERVAL", "5.0")),
            dependency_timeout=timeout if timeout > 0 else None,
            max_workers=int(env.get("WORKER_MAX_CONCURRENCY", "16")),
        )


def order_batch(tasks: list[Task]) -> list[Task]:
    """Order a batch so every task comes after the dependency it waits on.

    Runners block while their dependency is unfinished. With a bounded pool,
    submitting a dependent before its dependency could fill every slot with
    waiters. Ties keep step-number order.
    """
    by_type = {(task.workflow_id, task.task_type): task for task in tasks}

    def depth(task: Task) -> int:
        level = 0
        seen = {task.task_id}
        current = by_type.get((task.workflow_id, task.dependency)) if task.dependency else None
        while current is not None and current.task_id not in seen:
            level += 1
            seen.add(current.task_id)
            if not current.dependency:
                break
            current = by_type.get((current.workflow_id, current.dependency))
        return level

    return sorted(tasks, key=lambda t: (depth(t), t.step_number))


class WorkerDaemon:
    """Polls the task store for queued tasks and runs each batch concurrently."""

    def __init__(
        self,
        task_store: RedisTaskStore,
        runner: TaskRunner,
        poll_interval: float = 10.0,
        max_workers: int = 16,
        stop_event: threading.Event | None = None,
    ):
        if task_store is None:
            raise ValueError("task_store is required")
        if runner is None:
            raise ValueError("runner is required")
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if max_workers < 1:
            raise ValueError("max_workers must be positive")

        self._task_store = task_store
        self._runner = runner
        self._poll_interval = poll_interval
        self._stop_event = stop_event or threading.Event()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="task-runner"
        )

    @property
    def running(self) -> bool:
        return not self._stop_event.is_set()

    def poll_once(self) -> int:
        """Run every currently queued task and wait for the batch to finish.

        Returns the batch size. A failing task is logged and never aborts
        its siblings.
        """
        tasks = self._task_store.find(status=TaskStatus.QUEUED)
        if not tasks:
            logger.info("No queued tasks found.")
            return 0

        logger.info(f"Found {len(tasks)} queued tasks")
        futures = {
            self._executor.submit(self._runner.run, task): task
            for task in order_batch(tasks)
        }
        for future in as_completed(futures):
            task = futures[future]
            try:
                future.result()
            except Exception:
                logger.exception(f"Task execution failed for task {task.task_id}")

        return len(tasks)

    def run(self) -> None:
        """Main daemon loop; returns once stopped and in-flight tasks drained."""
        logger.info("Worker daemon started, polling for queued tasks...")

        try:
            while self.running:
                logger.debug("Checking for queued tasks...")
                try:
                    self.poll_once()
                except Exception as e:
                    logger.error(f"Error in daemon loop: {e}")
                self._stop_event.wait(self._poll_interval)
        finally:
            self.close()

        logger.info("Worker daemon stopped")

    def stop(self) -> None:
        """Signal daemon to stop."""
        self._stop_event.set()

    def close(self) -> None:
        self._executor.shutdown(wait=True)


def build_daemon(redis_client: redis.Redis, settings: WorkerSettings) -> WorkerDaemon:
    """Wire stores, engine, jobs and runner into a daemon."""
    task_store = RedisTaskStore(redis_client)
    workflow_store = RedisWorkflowStore(redis_client)
    result_store = RedisResultStore(redis_client)
    engine = WorkflowEngine(task_store, workflow_store)
    registry = build_default_registry(task_store, result_store, workflow_store)

    stop_event = threading.Event()
    runner = TaskRunner(
        task_store,
        result_store,
        engine,
        registry,
        logger=logging.getLogger("task_runner"),
        dependency_poll_interval=settings.dependency_poll_interval,
        dependency_timeout=settings.dependency_timeout,
        stop_event=stop_event,
    )
    return WorkerDaemon(
        task_store,
        runner,
        poll_interval=settings.poll_interval,
        max_workers=settings.max_workers,
        stop_event=stop_event,
    )


def main() -> int:
    settings = WorkerSettings.from_env()

    parser = argparse.ArgumentParser(description="Workflow task worker daemon")
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=settings.poll_interval,
        help=f"Seconds between polls for queued tasks (default: {settings.poll_interval:g})",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=settings.max_workers,
        help=f"Maximum tasks running at once (default: {settings.max_workers})",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default=os.environ.get("LOG_LEVEL", "info").lower(),
        help="Log level (default: info)",
    )
    args = parser.parse_args()

    configure_logging("worker_daemon", level=args.log_level)

    settings = WorkerSettings(
        redis_url=settings.redis_url,
        poll_interval=args.poll_interval,
        dependency_poll_interval=settings.dependency_poll_interval,
        dependency_timeout=settings.dependency_timeout,
        max_workers=args.max_workers,
    )

    logger.info(f"Connecting to Redis at {settings.redis_url}")
    redis_client = redis.Redis.from_url(settings.redis_url, decode_responses=True)

    try:
        redis_client.ping()
        logger.info("Redis connection established")
    except redis.ConnectionError as e:
        logger.error(f"Failed to connect to Redis: {e}")
        return 1

    daemon = build_daemon(redis_client, settings)

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        daemon.stop()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    daemon.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
