"""Reusable process pipeline definitions."""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..errors import ConfigurationError

PASSTHROUGH_PLUGIN = "passthrough"

StepConfig = Dict[str, Any]
StepShorthand = Union[str, StepConfig]


def normalize_steps(steps: Union[StepShorthand, List[StepShorthand]]) -> List[StepConfig]:
    """
    Resolve shorthands into a list of full step configurations.

    A bare string names a source property to pass through unchanged, a single
    dict is a one-step pipeline.
    """
    if isinstance(steps, (str, dict)):
        steps = [steps]
    if not isinstance(steps, list):
        raise ConfigurationError(f"Process steps must be a string, dict or list, got {type(steps).__name__}")

    normalized = []
    for step in steps:
        if isinstance(step, str):
            step = {"plugin": PASSTHROUGH_PLUGIN, "source": step}
        elif not isinstance(step, dict):
            raise ConfigurationError(f"Invalid process step: {step!r}")
        elif not isinstance(step.get("plugin"), str) or not step["plugin"]:
            raise ConfigurationError(f"Process step is missing a plugin name: {step!r}")
        normalized.append(dict(step))
    return normalized


def replace_placeholders(value: Any, placeholders: Dict[str, Any]) -> Any:
    """
    Replace configuration values that exactly match a placeholder name.

    Values merely containing a token are left untouched. Nested dicts and
    lists are walked, keys are never replaced.
    """
    if isinstance(value, dict):
        return {k: replace_placeholders(v, placeholders) for k, v in value.items()}
    if isinstance(value, list):
        return [replace_placeholders(v, placeholders) for v in value]
    if isinstance(value, str) and value in placeholders:
        return placeholders[value]
    return value


@dataclass
class PipelineDefinition:
    """A named, ordered list of process steps that can be reused across migrations."""
    id: str
    steps: List[StepShorthand] = field(default_factory=list)
    label: str = ""
    description: str = ""

    def get_steps(self, placeholders: Optional[Dict[str, Any]] = None) -> List[StepConfig]:
        """
        Expand the definition into full step configurations.

        Args:
            placeholders: Token name -> replacement value

        Returns:
            A new list of step configurations; the definition is not modified
        """
        placeholders = placeholders or {}
        return [replace_placeholders(step, placeholders) for step in normalize_steps(self.steps)]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "label": self.label,
            "description": self.description,
            "process": self.steps,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineDefinition":
        """Create from dictionary representation."""
        pipeline_id = data.get("id")
        if not pipeline_id or not isinstance(pipeline_id, str):
            raise ConfigurationError("Pipeline definition requires a string 'id'")

        steps = data.get("process", data.get("steps", []))
        if isinstance(steps, (str, dict)):
            steps = [steps]

        return cls(
            id=pipeline_id,
            steps=list(steps),
            label=data.get("label", ""),
            description=data.get("description", ""),
        )

    @classmethod
    def from_json_file(cls, filepath: str) -> "PipelineDefinition":
        """Load a pipeline definition from a JSON file."""
        with open(filepath, "r") as f:
            return cls.from_dict(json.load(f))
