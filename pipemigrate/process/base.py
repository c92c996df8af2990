"""Process plugin interface and the plugin registration table."""

import logging
from abc import ABC, abstractmethod
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..errors import ConfigurationError
from ..models.row import Row

logger = logging.getLogger(__name__)

TransformFunc = Callable[[Any, Row, str, Dict[str, Any]], Any]
PluginFactory = Callable[[Dict[str, Any], str], "ProcessPlugin"]


class ProcessPlugin(ABC):
    """
    Base class for process plugins.

    A plugin receives the value produced by the previous step and returns the
    value for the next one. It may raise SkipRow to abandon the row,
    StopPipeline to abandon the current property, or FatalStepError to halt
    the batch.
    """

    # Configuration keys that must be present and non-empty
    required_keys: Tuple[str, ...] = ()

    def __init__(self, configuration: Dict[str, Any], plugin_id: str):
        """
        Initialize the plugin.

        Args:
            configuration: Step configuration, including the 'plugin' key
            plugin_id: Registered name the plugin was created under

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self.configuration = dict(configuration)
        self.plugin_id = plugin_id
        self.validate_configuration()

    def validate_configuration(self) -> None:
        """Check the configuration. Subclasses extend this with their own rules."""
        for key in self.required_keys:
            value = self.configuration.get(key)
            if value is None or value == "" or value == [] or value == {}:
                raise ConfigurationError(
                    f'The "{self.plugin_id}" plugin requires the "{key}" configuration option.'
                )

    def require_type(self, key: str, expected: type, type_name: str) -> None:
        """Raise if an optional configuration key is set to the wrong type."""
        if key in self.configuration and not isinstance(self.configuration[key], expected):
            raise ConfigurationError(
                f'The "{key}" option of the "{self.plugin_id}" plugin must be a {type_name}, '
                f"got {type(self.configuration[key]).__name__}."
            )

    @abstractmethod
    def transform(self, value: Any, executor: Any, row: Row, destination_property: str) -> Any:
        """
        Transform a value.

        Args:
            value: Output of the previous step (or the seed value)
            executor: The ProcessExecutor running this step
            row: The row being processed
            destination_property: Destination property the pipeline writes to

        Returns:
            The value handed to the next step
        """
        pass

    def referenced_pipeline(self) -> Optional[Tuple[str, Dict[str, Any]]]:
        """Pipeline id and placeholders this plugin runs, if it nests one."""
        return None


class FunctionPlugin(ProcessPlugin):
    """Adapts a plain transform function to the plugin interface."""

    def __init__(self, configuration: Dict[str, Any], plugin_id: str, func: TransformFunc):
        self.func = func
        super().__init__(configuration, plugin_id)

    def transform(self, value: Any, executor: Any, row: Row, destination_property: str) -> Any:
        return self.func(value, row, destination_property, self.configuration)


class PluginRegistry:
    """
    Closed table of process plugins, keyed by plugin name.

    Every plugin a migration may use is registered up front; looking up an
    unknown name fails immediately with a ConfigurationError.
    """

    def __init__(self):
        self._factories: Dict[str, PluginFactory] = {}

    def register(self, name: str, factory: PluginFactory) -> None:
        """
        Register a plugin factory.

        Args:
            name: Plugin name used in step configurations
            factory: Callable taking (configuration, plugin_id), usually a
                ProcessPlugin subclass or a functools.partial binding its
                collaborators
        """
        if name in self._factories:
            raise ConfigurationError(f"Process plugin already registered: {name}")
        self._factories[name] = factory

    def register_transform(self, name: str, func: TransformFunc) -> None:
        """Register a function taking (value, row, destination_property, configuration)."""
        self.register(name, partial(FunctionPlugin, func=func))

    def has(self, name: str) -> bool:
        return name in self._factories

    def list_plugins(self) -> List[str]:
        """List registered plugin names."""
        return sorted(self._factories)

    def create(self, configuration: Dict[str, Any]) -> ProcessPlugin:
        """
        Instantiate the plugin a step configuration names.

        Raises:
            ConfigurationError: If the plugin is unknown or rejects the configuration
        """
        name = configuration.get("plugin")
        factory = self._factories.get(name)
        if factory is None:
            raise ConfigurationError(f"Unknown process plugin: {name!r}")
        return factory(configuration, name)
