"""Services for resolving and running process pipelines."""

from .executor import ProcessExecutor
from .pipeline_registry import PipelineRegistry

__all__ = ["ProcessExecutor", "PipelineRegistry"]
