"""Test helpers shared across agent_spawner tests."""

from agent_spawner.launcher import LaunchOutcome, LaunchResult
from agent_spawner.registry import AgentDefinition


def make_agent(name: str, tags, spawn_limit: int = 1, command: str | None = None) -> AgentDefinition:
    return AgentDefinition(
        name=name,
        tags=tuple(tags),
        command=command or f"launch-{name}",
        spawn_limit=spawn_limit,
    )


class FakeInvoker:
    """Records launch commands and returns a scripted result per command.

    Commands with no scripted result succeed.
    """

    def __init__(self, results: dict | None = None):
        self.results = results or {}
        self.calls: list = []

    def __call__(self, command) -> LaunchResult:
        self.calls.append(command)
        return self.results.get(command, LaunchResult(LaunchOutcome.SUCCESS))
