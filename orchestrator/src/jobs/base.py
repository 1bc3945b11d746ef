"""Job contract and the registry that maps task types to jobs."""

from abc import ABC, abstractmethod

from models.state import Task


class UnknownTaskTypeError(Exception):
    """Raised when no job is registered for a task type."""

    def __init__(self, task_type: str):
        self.task_type = task_type
        super().__init__(f"No job registered for task type: {task_type}")


class Job(ABC):
    """A unit of work bound to a task type."""

    @abstractmethod
    def run(self, task: Task) -> str:
        """Execute the job for ``task`` and return its output.

        Implementations raise on invalid input. A job may be invoked again
        for the same task only if a previous run never started, so it does
        not need to be idempotent across successful runs.
        """


class JobRegistry:
    """Resolves a task type string to a Job instance."""

    def __init__(self, jobs: dict[str, Job] | None = None):
        self._jobs: dict[str, Job] = {}
        for task_type, job in (jobs or {}).items():
            self.register(task_type, job)

    def register(self, task_type: str, job: Job) -> None:
        if not task_type or not task_type.strip():
            raise ValueError("task_type is required")
        if job is None:
            raise ValueError("job is required")
        self._jobs[task_type] = job

    def resolve(self, task_type: str) -> Job:
        try:
            return self._jobs[task_type]
        except KeyError:
            raise UnknownTaskTypeError(task_type) from None

    @property
    def task_types(self) -> list[str]:
        return sorted(self._jobs)
