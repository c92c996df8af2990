"""Process plugins and the plugin registry."""

from functools import partial
from typing import Any, Mapping, Optional

from .base import FunctionPlugin, PluginRegistry, ProcessPlugin
from .builtin import BUILTIN_PLUGINS, BUILTIN_TRANSFORMS
from .lookup import MigrationLookup
from .pipeline import SubPipeline
from .workflow import SetWorkflowState, Workflow


def build_default_registry(
    pipelines: Any = None,
    id_maps: Optional[Mapping[str, Any]] = None,
    workflows: Optional[Mapping[str, Workflow]] = None,
) -> PluginRegistry:
    """
    Build a registry holding every built-in plugin.

    Args:
        pipelines: Pipeline registry used by the "pipeline" plugin
        id_maps: Migration id -> IdMap used by "migration_lookup"
        workflows: Workflow id -> Workflow used by "set_workflow_state"

    Returns:
        A PluginRegistry; custom plugins can be registered on top of it
    """
    registry = PluginRegistry()
    for name, func in BUILTIN_TRANSFORMS.items():
        registry.register_transform(name, func)
    for name, plugin_class in BUILTIN_PLUGINS.items():
        registry.register(name, plugin_class)

    registry.register("pipeline", partial(SubPipeline, pipelines=pipelines))
    registry.register("migration_lookup", partial(MigrationLookup, id_maps=id_maps))
    registry.register("set_workflow_state", partial(SetWorkflowState, workflows=workflows))
    return registry


__all__ = [
    "ProcessPlugin",
    "FunctionPlugin",
    "PluginRegistry",
    "SubPipeline",
    "MigrationLookup",
    "SetWorkflowState",
    "Workflow",
    "build_default_registry",
]
