"""Shared test fixtures.

Every test runs against a fresh in-memory SQLite database; no external
services are required.
"""

from typing import Dict

import pytest

from pipemigrate.models import MigrationConfig
from pipemigrate.process import PluginRegistry, Workflow, build_default_registry
from pipemigrate.services import PipelineRegistry, ProcessExecutor
from pipemigrate.storage import IdMap, MessageLog, create_db_engine


# === FIXTURES: Storage ===


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    yield engine
    engine.dispose()


@pytest.fixture
def message_log(engine) -> MessageLog:
    return MessageLog(engine, "articles")


@pytest.fixture
def id_map(engine, message_log) -> IdMap:
    return IdMap(engine, "articles", {"nid": "integer"}, {"id": "integer"}, message_log)


@pytest.fixture
def users_map(engine) -> IdMap:
    return IdMap(engine, "users", {"uid": "integer"}, {"id": "integer"})


# === FIXTURES: Process pipelines ===


@pytest.fixture
def workflows() -> Dict[str, Workflow]:
    return {
        "editorial": Workflow.from_dict({
            "id": "editorial",
            "states": {
                "draft": {"published": False},
                "published": {"published": True},
                "archived": False,
            },
        })
    }


@pytest.fixture
def pipelines() -> PipelineRegistry:
    return PipelineRegistry()


@pytest.fixture
def registry(pipelines, users_map, workflows) -> PluginRegistry:
    registry = build_default_registry(
        pipelines=pipelines,
        id_maps={"users": users_map},
        workflows=workflows,
    )
    registry.register_transform("double", lambda value, row, dest, config: value * 2)
    registry.register_transform("increment", lambda value, row, dest, config: value + 1)
    return registry


@pytest.fixture
def executor(registry, pipelines) -> ProcessExecutor:
    return ProcessExecutor(registry, pipelines)


@pytest.fixture
def articles_migration() -> MigrationConfig:
    return MigrationConfig(
        id="articles",
        label="Articles",
        process={
            "title": [
                {"plugin": "passthrough", "source": "title"},
                {"plugin": "skip_on_value", "value": "spam", "method": "row", "message": "Spam article"},
                {"plugin": "trim"},
            ],
            "body": "body",
        },
    )
