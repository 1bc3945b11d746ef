"""Redis-based stores for workflows, tasks and task results."""

import functools

from redis import Redis, RedisError

from models.state import Result, Task, TaskStatus, Workflow, WorkflowStatus, utc_now


class WorkflowNotFoundError(Exception):
    """Raised when workflow is not found."""

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")


class TaskNotFoundError(Exception):
    """Raised when task is not found."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")


class PersistenceError(Exception):
    """Raised when the backing store fails a read or write."""

    pass


def _wrap_redis_errors(method):
    @functools.wraps(method)
    def wrapper(*args, **kwargs):
        try:
            return method(*args, **kwargs)
        except RedisError as e:
            raise PersistenceError(f"{method.__qualname__} failed: {e}") from e

    return wrapper


def _decode(value) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


class RedisTaskStore:
    """Stores tasks as JSON with ordered indexes per workflow and per status.

    Both indexes are sorted sets scored by step number, so every lookup
    comes back in ascending step order.
    """

    def __init__(self, redis_client: Redis):
        if redis_client is None:
            raise ValueError("redis_client is required")
        self._redis = redis_client

    def _task_key(self, task_id: str) -> str:
        return f"task:{task_id}"

    def _workflow_tasks_key(self, workflow_id: str) -> str:
        return f"workflow:{workflow_id}:tasks"

    def _status_key(self, status: TaskStatus) -> str:
        return f"tasks:status:{status.value}"

    @_wrap_redis_errors
    def save(self, task: Task) -> Task:
        """Write task and move it to the index of its current status."""
        if task is None:
            raise ValueError("task is required")

        task.updated_at = utc_now()
        pipe = self._redis.pipeline(transaction=True)
        pipe.set(self._task_key(task.task_id), task.model_dump_json())
        for status in TaskStatus:
            if status != task.status:
                pipe.zrem(self._status_key(status), task.task_id)
        pipe.zadd(self._status_key(task.status), {task.task_id: task.step_number})
        pipe.zadd(
            self._workflow_tasks_key(task.workflow_id),
            {task.task_id: task.step_number},
        )
        pipe.execute()
        return task

    @_wrap_redis_errors
    def get(self, task_id: str) -> Task:
        """Get task by ID."""
        if not task_id:
            raise ValueError("task_id is required")

        data = self._redis.get(self._task_key(task_id))
        if data is None:
            raise TaskNotFoundError(task_id)
        return Task.model_validate_json(data)

    @_wrap_redis_errors
    def find(
        self,
        status: TaskStatus | None = None,
        workflow_id: str | None = None,
        task_type: str | None = None,
    ) -> list[Task]:
        """Find tasks matching all given filters, ordered by step number."""
        if workflow_id is not None:
            task_ids = self._redis.zrange(self._workflow_tasks_key(workflow_id), 0, -1)
        elif status is not None:
            task_ids = self._redis.zrange(self._status_key(status), 0, -1)
        else:
            task_ids = []
            for any_status in TaskStatus:
                task_ids.extend(self._redis.zrange(self._status_key(any_status), 0, -1))

        task_ids = [_decode(task_id) for task_id in task_ids]
        if not task_ids:
            return []

        rows = self._redis.mget([self._task_key(task_id) for task_id in task_ids])
        tasks = []
        for data in rows:
            # Index entry for a row that no longer exists
            if data is None:
                continue
            task = Task.model_validate_json(data)
            if status is not None and task.status != status:
                continue
            if task_type is not None and task.task_type != task_type:
                continue
            tasks.append(task)

        return sorted(tasks, key=lambda t: (t.step_number, t.created_at))

    def find_one(
        self,
        status: TaskStatus | None = None,
        workflow_id: str | None = None,
        task_type: str | None = None,
    ) -> Task | None:
        """Return the first task matching the filters, or None."""
        tasks = self.find(status=status, workflow_id=workflow_id, task_type=task_type)
        return tasks[0] if tasks else None


class RedisWorkflowStore:
    """Stores workflows as JSON documents."""

    def __init__(self, redis_client: Redis):
        if redis_client is None:
            raise ValueError("redis_client is required")
        self._redis = redis_client

    def _workflow_key(self, workflow_id: str) -> str:
        return f"workflow:{workflow_id}"

    @_wrap_redis_errors
    def save(self, workflow: Workflow) -> Workflow:
        if workflow is None:
            raise ValueError("workflow is required")

        workflow.updated_at = utc_now()
        self._redis.set(self._workflow_key(workflow.workflow_id), workflow.model_dump_json())
        return workflow

    @_wrap_redis_errors
    def find_one(self, workflow_id: str) -> Workflow | None:
        if not workflow_id:
            raise ValueError("workflow_id is required")

        data = self._redis.get(self._workflow_key(workflow_id))
        if data is None:
            return None
        return Workflow.model_validate_json(data)

    def update_status(self, workflow_id: str, status: WorkflowStatus) -> Workflow | None:
        """Set only the status, leaving every other field as stored."""
        return self._update_fields(workflow_id, status=status)

    def set_final_result(self, workflow_id: str, final_result: str) -> Workflow | None:
        """Set only the final result, leaving the status as stored."""
        return self._update_fields(workflow_id, final_result=final_result)

    @_wrap_redis_errors
    def _update_fields(self, workflow_id: str, **fields) -> Workflow | None:
        """Read-modify-write under WATCH; retried if another writer got in first.

        Returns None when the workflow does not exist.
        """
        if not workflow_id:
            raise ValueError("workflow_id is required")

        key = self._workflow_key(workflow_id)

        def apply(pipe) -> Workflow | None:
            data = pipe.get(key)
            if data is None:
                return None
            workflow = Workflow.model_validate_json(data)
            for name, value in fields.items():
                setattr(workflow, name, value)
            workflow.updated_at = utc_now()
            pipe.multi()
            pipe.set(key, workflow.model_dump_json())
            return workflow

        return self._redis.transaction(apply, key, value_from_callable=True)

    def get(self, workflow_id: str) -> Workflow:
        """Get workflow by ID, raising if it does not exist."""
        workflow = self.find_one(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        return workflow


class RedisResultStore:
    """Append-only log of task results.

    Every run outcome gets its own row; ``find_one`` returns the latest.
    """

    def __init__(self, redis_client: Redis):
        if redis_client is None:
            raise ValueError("redis_client is required")
        self._redis = redis_client

    def _result_key(self, result_id: str) -> str:
        return f"result:{result_id}"

    def _task_results_key(self, task_id: str) -> str:
        return f"task:{task_id}:results"

    @_wrap_redis_errors
    def save(self, result: Result) -> Result:
        if result is None:
            raise ValueError("result is required")

        pipe = self._redis.pipeline(transaction=True)
        pipe.set(self._result_key(result.result_id), result.model_dump_json())
        pipe.rpush(self._task_results_key(result.task_id), result.result_id)
        pipe.execute()
        return result

    @_wrap_redis_errors
    def find_one(self, task_id: str) -> Result | None:
        """Latest result recorded for a task."""
        if not task_id:
            raise ValueError("task_id is required")

        result_id = self._redis.lindex(self._task_results_key(task_id), -1)
        if result_id is None:
            return None

        data = self._redis.get(self._result_key(_decode(result_id)))
        if data is None:
            return None
        return Result.model_validate_json(data)

    @_wrap_redis_errors
    def find_all(self, task_id: str) -> list[Result]:
        """All results recorded for a task, oldest first."""
        if not task_id:
            raise ValueError("task_id is required")

        result_ids = self._redis.lrange(self._task_results_key(task_id), 0, -1)
        results = []
        for result_id in result_ids:
            data = self._redis.get(self._result_key(_decode(result_id)))
            if data is not None:
                results.append(Result.model_validate_json(data))
        return results
