"""Environment-driven engine settings."""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from .logging_utils import configure_logging
from .services.pipeline_registry import PipelineRegistry
from .storage.database import DEFAULT_DATABASE_URL, create_db_engine


def _get_bool_env(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """Settings shared by every migration of a process."""
    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = "INFO"
    pipelines_dir: Optional[str] = None
    sql_echo: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Read settings from the environment.

        Variables:
            PIPEMIGRATE_DATABASE_URL: Database holding identity maps and message logs
            PIPEMIGRATE_LOG_LEVEL: Log level name
            PIPEMIGRATE_PIPELINES_DIR: Directory of pipeline definition JSON files
            PIPEMIGRATE_SQL_ECHO: Log every SQL statement
        """
        return cls(
            database_url=os.getenv("PIPEMIGRATE_DATABASE_URL", DEFAULT_DATABASE_URL),
            log_level=os.getenv("PIPEMIGRATE_LOG_LEVEL", "INFO").strip().upper(),
            pipelines_dir=os.getenv("PIPEMIGRATE_PIPELINES_DIR") or None,
            sql_echo=_get_bool_env("PIPEMIGRATE_SQL_ECHO", default=False),
        )

    def create_engine(self) -> Engine:
        """Engine for identity maps and message logs."""
        return create_db_engine(self.database_url, echo=self.sql_echo)

    def create_pipeline_registry(self) -> PipelineRegistry:
        """Pipeline registry preloaded from ``pipelines_dir``."""
        return PipelineRegistry(self.pipelines_dir)

    def configure_logging(self) -> logging.Logger:
        return configure_logging(self.log_level)
