"""Parser for YAML workflow definitions."""

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator


class WorkflowParseError(Exception):
    """Raised when workflow definition parsing fails."""

    pass


class WorkflowStep(BaseModel):
    """One step of a workflow definition; becomes one task."""

    model_config = ConfigDict(extra="forbid")

    task_type: str
    step_number: int = 1
    dependency: str | None = None

    @field_validator("task_type")
    @classmethod
    def task_type_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("task_type is required")
        return v

    @field_validator("step_number")
    @classmethod
    def step_number_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("step_number must be positive")
        return v


class WorkflowDefinition(BaseModel):
    """A named, ordered list of steps."""

    model_config = ConfigDict(extra="forbid")

    name: str
    steps: list[WorkflowStep]

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("name is required")
        return v

    @field_validator("steps")
    @classmethod
    def steps_not_empty(cls, v: list) -> list:
        if not v:
            raise ValueError("steps is required")
        return v


class WorkflowParser:
    """Parses and validates workflow definition files."""

    def __init__(self, definitions_dir: str = "workflows"):
        self._definitions_dir = Path(definitions_dir)

    def load(self, name: str) -> WorkflowDefinition:
        """Load ``<definitions_dir>/<name>.yml`` (or ``.yaml``)."""
        if not name or not name.strip():
            raise ValueError("name is required")
        if Path(name).name != name:
            raise WorkflowParseError(f"Invalid workflow name: {name}")

        for suffix in (".yml", ".yaml"):
            path = self._definitions_dir / f"{name}{suffix}"
            if path.exists():
                return self.parse_file(str(path))
        raise FileNotFoundError(f"Workflow definition not found: {name}")

    def parse_file(self, path: str) -> WorkflowDefinition:
        """Parse workflow definition from a YAML file."""
        if not path:
            raise ValueError("path is required")

        file_path = Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Workflow file not found: {path}")

        with open(file_path, "r", encoding="utf-8") as f:
            return self.parse_yaml(f.read())

    def parse_yaml(self, text: str) -> WorkflowDefinition:
        """Parse workflow definition from YAML text."""
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise WorkflowParseError(f"Invalid YAML: {e}")

        return self.parse_dict(data)

    def parse_dict(self, data: dict) -> WorkflowDefinition:
        """Validate an already-loaded definition."""
        if data is None:
            raise WorkflowParseError("Workflow definition is empty")

        try:
            definition = WorkflowDefinition.model_validate(data)
        except ValidationError as e:
            raise WorkflowParseError(f"Invalid workflow structure: {e}")

        self._validate_unique_task_types(definition)
        self._validate_dependencies(definition)
        self._detect_cycles(definition)
        return definition

    def _validate_unique_task_types(self, definition: WorkflowDefinition) -> None:
        """Dependencies resolve by task type, so each type may appear once."""
        seen: set[str] = set()
        for step in definition.steps:
            if step.task_type in seen:
                raise WorkflowParseError(f"Duplicate task type: {step.task_type}")
            seen.add(step.task_type)

    def _validate_dependencies(self, definition: WorkflowDefinition) -> None:
        task_types = {step.task_type for step in definition.steps}
        for step in definition.steps:
            if step.dependency is None:
                continue
            if step.dependency == step.task_type:
                raise WorkflowParseError(f"Task type depends on itself: {step.task_type}")
            if step.dependency not in task_types:
                raise WorkflowParseError(
                    f"Invalid dependency for {step.task_type}: {step.dependency}"
                )

    def _detect_cycles(self, definition: WorkflowDefinition) -> None:
        """Each step has at most one dependency, so following the chain suffices."""
        depends_on = {step.task_type: step.dependency for step in definition.steps}
        for task_type in depends_on:
            visited = {task_type}
            current = depends_on[task_type]
            while current is not None:
                if current in visited:
                    raise WorkflowParseError("Circular dependency detected")
                visited.add(current)
                current = depends_on[current]
