"""Registry of reusable process pipeline definitions."""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import ConfigurationError
from ..models.pipeline import PipelineDefinition

logger = logging.getLogger(__name__)


class PipelineRegistry:
    """
    Store of named pipeline definitions.

    Supports:
    - Loading definitions from JSON files
    - Registering definitions programmatically
    - Looking up a definition by id
    """

    def __init__(self, pipelines_dir: Optional[str] = None):
        """
        Initialize the pipeline registry.

        Args:
            pipelines_dir: Directory containing pipeline JSON files
        """
        self.pipelines: Dict[str, PipelineDefinition] = {}

        if pipelines_dir:
            self.load_from_directory(pipelines_dir)

    def load_from_directory(self, directory: str) -> int:
        """
        Load all pipeline files from a directory.

        Args:
            directory: Path to directory containing pipeline JSON files

        Returns:
            Number of pipelines loaded

        Raises:
            ConfigurationError: If a file is not a valid pipeline definition
        """
        loaded = 0
        path = Path(directory)

        if not path.exists():
            logger.warning(f"Pipelines directory does not exist: {directory}")
            return 0

        for file_path in sorted(path.glob("**/*.json")):
            try:
                definition = PipelineDefinition.from_json_file(str(file_path))
            except (OSError, ValueError) as e:
                raise ConfigurationError(f"Failed to load pipeline from {file_path}: {e}") from e
            self.register(definition)
            loaded += 1
            logger.info(f"Loaded pipeline: {definition.id} from {file_path}")

        return loaded

    def register(self, definition: PipelineDefinition) -> None:
        """Register a pipeline definition."""
        if definition.id in self.pipelines:
            raise ConfigurationError(f"Duplicate pipeline definition: {definition.id}")
        self.pipelines[definition.id] = definition

    def load(self, pipeline_id: str) -> Optional[PipelineDefinition]:
        """Get a pipeline definition by id."""
        return self.pipelines.get(pipeline_id)

    def list_pipelines(self) -> List[str]:
        """List all registered pipeline ids."""
        return sorted(self.pipelines)
