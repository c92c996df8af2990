"""Process executor driving rows through process pipelines."""

import json
import logging
from typing import Any, Dict, List, Optional

from ..errors import ConfigurationError, StopPipeline
from ..models.pipeline import StepConfig, normalize_steps
from ..models.row import Row
from ..process.base import PluginRegistry, ProcessPlugin
from .pipeline_registry import PipelineRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_PIPELINE_DEPTH = 16


class ProcessExecutor:
    """
    Runs process steps against a row.

    Steps run strictly in declaration order, each consuming the output of the
    previous one. A step carrying a "source" key first reads that property
    from the row, then applies its plugin. Nested pipelines are expanded and
    run recursively; the ids of pipelines in progress are tracked so a
    self-referencing definition fails instead of recursing forever.
    """

    def __init__(
        self,
        registry: PluginRegistry,
        pipelines: Optional[PipelineRegistry] = None,
        max_pipeline_depth: int = DEFAULT_MAX_PIPELINE_DEPTH,
    ):
        """
        Initialize the executor.

        Args:
            registry: Plugin registry resolving step plugin names
            pipelines: Store of reusable pipeline definitions
            max_pipeline_depth: Deepest allowed nesting of pipelines
        """
        self.registry = registry
        self.pipelines = pipelines or PipelineRegistry()
        self.max_pipeline_depth = max_pipeline_depth
        self._plugins: Dict[str, ProcessPlugin] = {}
        self._pipeline_stack: List[str] = []

    def expand(self, pipeline_id: str, placeholders: Optional[Dict[str, Any]] = None) -> List[StepConfig]:
        """
        Resolve a pipeline definition into full step configurations.

        Args:
            pipeline_id: Id of the pipeline definition
            placeholders: Token name -> value substituted in exactly matching values

        Returns:
            Ordered step configurations

        Raises:
            ConfigurationError: If the pipeline does not exist
        """
        definition = self.pipelines.load(pipeline_id)
        if definition is None:
            raise ConfigurationError(f'Could not load process pipeline "{pipeline_id}".')
        return definition.get_steps(placeholders)

    def get_plugin(self, configuration: StepConfig) -> ProcessPlugin:
        """Get the plugin instance for a step configuration, creating it once."""
        key = json.dumps(configuration, sort_keys=True, default=repr)
        plugin = self._plugins.get(key)
        if plugin is None:
            plugin = self.registry.create(configuration)
            self._plugins[key] = plugin
        return plugin

    def process_row(self, row: Row, process: Dict[str, Any]) -> None:
        """
        Run every destination property pipeline of a process map.

        Properties are processed in declaration order so later pipelines can
        read earlier results through '@property' references.
        """
        for destination_property, steps in process.items():
            self.run(row, steps, destination_property)

    def run(self, row: Row, steps: Any, destination_property: str, seed_value: Any = None) -> Any:
        """
        Run steps and assign the final value to a destination property.

        Args:
            row: Row being processed
            steps: Step shorthand, configuration, or list of them
            destination_property: Property receiving the final value
            seed_value: Input of the first step

        Returns:
            The final value, or None when a step stopped the pipeline
        """
        try:
            value = self.execute(row, steps, destination_property, seed_value)
        except StopPipeline:
            logger.debug(f"Pipeline for {destination_property} stopped, property left unset")
            return None

        row.set_destination_property(destination_property, value)
        return value

    def execute(self, row: Row, steps: Any, destination_property: str, value: Any = None) -> Any:
        """Run steps and return the final value without assigning it."""
        for configuration in normalize_steps(steps):
            if "source" in configuration:
                value = self._read_source(row, configuration["source"])
            plugin = self.get_plugin(configuration)
            value = plugin.transform(value, self, row, destination_property)
        return value

    def run_pipeline(
        self,
        pipeline_id: str,
        placeholders: Optional[Dict[str, Any]],
        row: Row,
        destination_property: str,
        value: Any,
    ) -> Any:
        """
        Expand and run a nested pipeline, returning its result to the caller.

        The nested run does not write the destination property; the calling
        pipeline decides what happens with the result.
        """
        self._enter_pipeline(pipeline_id, self._pipeline_stack)
        self._pipeline_stack.append(pipeline_id)
        try:
            steps = self.expand(pipeline_id, placeholders)
            return self.execute(row, steps, destination_property, value)
        finally:
            self._pipeline_stack.pop()

    def validate(self, process: Dict[str, Any]) -> None:
        """
        Check a process map before any row is processed.

        Every plugin is instantiated and every nested pipeline expanded, so
        unknown plugins, invalid plugin configuration, missing pipelines and
        pipeline cycles surface as ConfigurationError up front.
        """
        for destination_property, steps in process.items():
            try:
                self._validate_steps(normalize_steps(steps), [])
            except ConfigurationError as e:
                raise ConfigurationError(f"Invalid process for {destination_property}: {e}") from e

    def _validate_steps(self, steps: List[StepConfig], stack: List[str]) -> None:
        for configuration in steps:
            plugin = self.get_plugin(configuration)
            reference = plugin.referenced_pipeline()
            if reference is None:
                continue
            pipeline_id, placeholders = reference
            self._enter_pipeline(pipeline_id, stack)
            self._validate_steps(self.expand(pipeline_id, placeholders), stack + [pipeline_id])

    def _enter_pipeline(self, pipeline_id: str, stack: List[str]) -> None:
        if pipeline_id in stack:
            chain = " -> ".join(stack + [pipeline_id])
            raise ConfigurationError(f"Process pipeline cycle detected: {chain}")
        if len(stack) >= self.max_pipeline_depth:
            raise ConfigurationError(
                f"Process pipeline nesting exceeds {self.max_pipeline_depth} levels at {pipeline_id}"
            )

    @staticmethod
    def _read_source(row: Row, source: Any) -> Any:
        if isinstance(source, list):
            return [row.get(name) for name in source]
        if not isinstance(source, str):
            raise ConfigurationError(f"Invalid source reference: {source!r}")
        return row.get(source)
