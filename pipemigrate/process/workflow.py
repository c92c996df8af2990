"""Process plugin setting the moderation state of a destination entity."""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from ..errors import ConfigurationError, FatalStepError, SkipRow
from ..models.row import Row
from .base import ProcessPlugin

_LEADING_INT = re.compile(r"\s*[+-]?\d+")


@dataclass
class Workflow:
    """A moderation workflow: state name -> whether the state is published."""
    id: str
    states: Dict[str, bool] = field(default_factory=dict)

    def has_state(self, state: str) -> bool:
        return state in self.states

    def is_published(self, state: str) -> bool:
        return self.states[state]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Workflow":
        """
        Create from dictionary representation.

        States may be given as {"draft": false} or {"draft": {"published": false}}.
        """
        states = {}
        for name, settings in data.get("states", {}).items():
            published = settings.get("published", False) if isinstance(settings, dict) else settings
            states[name] = bool(published)
        return cls(id=data.get("id", ""), states=states)


class SetWorkflowState(ProcessPlugin):
    """
    Set the workflow state of a destination entity.

    A valid workflow state is returned untransformed. A missing or unknown
    state is derived from the row's status property: "1" maps to the
    published state, anything else to the unpublished state. Rows whose
    status disagrees with the published flag of the resulting state are
    skipped.

    Configuration:
        workflow: Workflow id (default "editorial")
        published_state: Default "published"
        unpublished_state: Default "draft"
        status_property: Source property holding the status (default "status")
    """

    def __init__(self, configuration: Dict[str, Any], plugin_id: str,
                 workflows: Optional[Mapping[str, Workflow]] = None):
        self.workflows = workflows if workflows is not None else {}
        configuration = {
            "workflow": "editorial",
            "published_state": "published",
            "unpublished_state": "draft",
            "status_property": "status",
            **configuration,
        }
        super().__init__(configuration, plugin_id)

    def validate_configuration(self) -> None:
        for option in ("workflow", "published_state", "unpublished_state", "status_property"):
            if not isinstance(self.configuration.get(option), str):
                raise ConfigurationError(
                    f'The "{option}" option must be a string. The given value is of type '
                    f'"{type(self.configuration.get(option)).__name__}".'
                )

        workflow = self.workflows.get(self.configuration["workflow"])
        if workflow is None:
            raise ConfigurationError(f'"{self.configuration["workflow"]}" is not a valid workflow.')
        for option in ("published_state", "unpublished_state"):
            if not workflow.has_state(self.configuration[option]):
                raise ConfigurationError(
                    f'"{self.configuration[option]}" is not a valid state of the "{workflow.id}" workflow.'
                )
        self.workflow = workflow

    def _status(self, row: Row) -> int:
        """Status as an integer; values without a leading integer count as 0."""
        status = row.get_source_property(self.configuration["status_property"], 0)
        if isinstance(status, (bool, int, float)):
            return int(status)
        match = _LEADING_INT.match(str(status)) if status is not None else None
        return int(match.group(0)) if match else 0

    def transform(self, value: Any, executor: Any, row: Row, destination_property: str) -> Any:
        # Source entities without a state are treated like an unknown state.
        value = "" if value is None else value
        if not isinstance(value, str):
            raise FatalStepError(f"{value!r} is not a string.")

        status = self._status(row)
        if not self.workflow.has_state(value):
            value = (
                self.configuration["published_state"]
                if status == 1
                else self.configuration["unpublished_state"]
            )

        if status != int(self.workflow.is_published(value)):
            raise SkipRow("The entity status and the workflow state status don't match.")

        return value
