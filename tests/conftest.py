"""Shared test fixtures for agent_spawner tests."""

from pathlib import Path

import pytest
import yaml

from agent_spawner.registry import AgentRegistry
from tests.helpers import FakeInvoker, make_agent


@pytest.fixture
def invoker():
    return FakeInvoker()


@pytest.fixture
def registry():
    """Two agents from the default/gpu scenario."""
    return AgentRegistry([
        make_agent("A", ["queue=default"], spawn_limit=1),
        make_agent("B", ["queue=default", "queue=gpu"], spawn_limit=2),
    ])


@pytest.fixture
def write_config(tmp_path):
    """Write a spawner.yaml under tmp_path and return its path."""

    def _write(content: dict) -> Path:
        path = tmp_path / "spawner.yaml"
        path.write_text(yaml.dump(content))
        return path

    return _write


@pytest.fixture
def minimal_config() -> dict:
    return {
        "buildkite": {"org": "acme", "api_token": "bk-token"},
        "agents": [
            {"name": "default", "tags": ["queue=default"], "command": "./launch.sh"},
        ],
    }
