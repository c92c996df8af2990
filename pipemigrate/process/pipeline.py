"""Process plugin running a reusable pipeline definition."""

from typing import Any, Dict, Optional, Tuple

from ..errors import ConfigurationError
from ..models.row import Row
from .base import ProcessPlugin


class SubPipeline(ProcessPlugin):
    """
    Run a pipeline loaded from the pipeline registry as a single step.

    Useful to avoid repeating the same suite of steps across migrations, or a
    single step with a long configuration.

    Configuration:
        id: Id of the pipeline definition (required)
        placeholders: Token name -> value, substituted in the pipeline's steps

    Example:
        "body": [
            {"plugin": "pipeline", "id": "clean_html", "source": "body_value",
             "placeholders": {"FORMAT": "full_html"}}
        ]
    """

    def __init__(self, configuration: Dict[str, Any], plugin_id: str, pipelines: Any = None):
        self.pipelines = pipelines
        super().__init__(configuration, plugin_id)

    def validate_configuration(self) -> None:
        pipeline_id = self.configuration.get("id")
        if not pipeline_id or not isinstance(pipeline_id, str):
            raise ConfigurationError("The pipeline plugin requires a pipeline ID, none found.")

        placeholders = self.configuration.setdefault("placeholders", {})
        if not isinstance(placeholders, dict):
            raise ConfigurationError("The pipeline plugin placeholders must be a mapping.")

        if self.pipelines is not None and self.pipelines.load(pipeline_id) is None:
            raise ConfigurationError(
                f'The pipeline plugin could not load the given process pipeline "{pipeline_id}".'
            )

    def transform(self, value: Any, executor: Any, row: Row, destination_property: str) -> Any:
        return executor.run_pipeline(
            self.configuration["id"],
            self.configuration["placeholders"],
            row,
            destination_property,
            value,
        )

    def referenced_pipeline(self) -> Optional[Tuple[str, Dict[str, Any]]]:
        return self.configuration["id"], self.configuration["placeholders"]
