"""Static registry of launchable agent definitions.

The registry is built once at startup from the ``agents:`` list in the config
file and never changes while the daemon runs. Declaration order is significant:
the matcher always tries agents in this order, so an earlier agent wins any tie.
"""

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field


@dataclass(frozen=True)
class AgentDefinition:
    """One launchable agent kind.

    Attributes:
        name: Label used in log lines (e.g. "default", "gpu").
        tags: Capability tags this agent provides, e.g. ("queue=default",).
        spawn_limit: Max jobs this agent may be credited with in one cycle.
        command: Launch command. A string runs through the shell, a list is
            exec'd as argv.
    """

    name: str
    tags: tuple[str, ...]
    command: str | tuple[str, ...]
    spawn_limit: int = 1
    tag_set: frozenset[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tag_set", frozenset(self.tags))

    def provides(self, required: frozenset[str]) -> bool:
        """Return True if every required tag is one of this agent's tags."""
        return required <= self.tag_set


class AgentRegistry(Sequence):
    """Ordered, read-only sequence of AgentDefinition entries."""

    def __init__(self, definitions: Sequence[AgentDefinition]):
        self._definitions = tuple(definitions)

    def __getitem__(self, index):
        return self._definitions[index]

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self) -> Iterator[AgentDefinition]:
        return iter(self._definitions)

    def __repr__(self) -> str:
        names = ", ".join(d.name for d in self._definitions)
        return f"AgentRegistry([{names}])"
