"""Configuration loading and validation for the spawner daemon.

All validation happens here, once, at startup. Anything wrong raises
ConfigError; after this module hands back its result nothing is re-read.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .buildkite import DEFAULT_API_URL
from .exceptions import ConfigError
from .registry import AgentDefinition, AgentRegistry
from .scheduler import DEFAULT_DEBOUNCE_SECONDS, DEFAULT_POLL_INTERVAL_SECONDS


DEFAULT_CONFIG_FILENAME = "spawner.yaml"

# Environment fallbacks so secrets can stay out of the config file
API_TOKEN_ENV = "BUILDKITE_API_TOKEN"
WEBHOOK_TOKEN_ENV = "BUILDKITE_WEBHOOK_TOKEN"
CONFIG_PATH_ENV = "AGENT_SPAWNER_CONFIG"

DEFAULT_BUILDKITE_CONFIG = {
    "api_url": DEFAULT_API_URL,
    "timeout_seconds": 30,
}

DEFAULT_POLL_CONFIG = {
    "interval_seconds": DEFAULT_POLL_INTERVAL_SECONDS,
    "debounce_seconds": DEFAULT_DEBOUNCE_SECONDS,
}

DEFAULT_WEBHOOK_CONFIG = {
    "enabled": False,
    "host": "0.0.0.0",
    "port": 8080,
}


@dataclass(frozen=True)
class BuildkiteSettings:
    org: str
    api_token: str
    api_url: str = DEFAULT_API_URL
    timeout_seconds: float = 30


@dataclass(frozen=True)
class PollSettings:
    interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS


@dataclass(frozen=True)
class WebhookSettings:
    enabled: bool = False
    host: str = "0.0.0.0"
    port: int = 8080
    token: str | None = None


@dataclass(frozen=True)
class Settings:
    """Everything the daemon needs, validated."""
    buildkite: BuildkiteSettings
    poll: PollSettings
    webhook: WebhookSettings
    registry: AgentRegistry


def get_config_path(path: Path | str | None = None) -> Path:
    """Resolve the config file path.

    An explicit path wins, then the AGENT_SPAWNER_CONFIG environment variable,
    then spawner.yaml in the working directory.
    """
    if path:
        return Path(path)
    env_override = os.environ.get(CONFIG_PATH_ENV)
    if env_override:
        return Path(env_override)
    return Path.cwd() / DEFAULT_CONFIG_FILENAME


def load_config_file(path: Path | str | None = None) -> dict[str, Any]:
    """Read and parse the YAML config file."""
    config_path = get_config_path(path)

    if not config_path.exists():
        raise ConfigError(f"Config not found at {config_path}")

    try:
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigError(f"{config_path} must contain a mapping at the top level")
    return config


def _section(config: dict[str, Any], name: str) -> dict[str, Any]:
    section = config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    return section


def _positive_number(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"{field_name} must be a positive number, got {value!r}")
    return value


def _optional_str(value: Any) -> str | None:
    return str(value) if value else None


def parse_agent(entry: Any, position: int) -> AgentDefinition:
    """Validate one entry of the 'agents' list.

    Args:
        entry: Raw mapping from YAML.
        position: 1-based position in the list, used for the default name.
    """
    if not isinstance(entry, dict):
        raise ConfigError(f"agents[{position}] must be a mapping")

    name = str(entry.get("name") or f"agent-{position}")

    command = entry.get("command")
    if isinstance(command, list):
        if not command or not all(isinstance(part, str) for part in command):
            raise ConfigError(f"Agent {name}: command list must be non-empty strings")
        command = tuple(command)
    elif not isinstance(command, str) or not command.strip():
        raise ConfigError(f"Agent {name}: 'command' is required")

    tags = entry.get("tags", [])
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise ConfigError(f"Agent {name}: 'tags' must be a list of strings")

    spawn_limit = entry.get("spawn_limit", 1)
    if isinstance(spawn_limit, bool) or not isinstance(spawn_limit, int) or spawn_limit < 1:
        raise ConfigError(f"Agent {name}: 'spawn_limit' must be an integer >= 1, got {spawn_limit!r}")

    return AgentDefinition(name=name, tags=tuple(tags), command=command, spawn_limit=spawn_limit)


def load_registry(config: dict[str, Any]) -> AgentRegistry:
    """Build the agent registry, preserving declaration order."""
    agents = config.get("agents")
    if not agents:
        raise ConfigError("At least one agent must be configured under 'agents'")
    if not isinstance(agents, list):
        raise ConfigError("'agents' must be a list")
    return AgentRegistry([parse_agent(entry, i) for i, entry in enumerate(agents, start=1)])


def get_buildkite_settings(config: dict[str, Any]) -> BuildkiteSettings:
    section = _section(config, "buildkite")
    org = section.get("org")
    if not org:
        raise ConfigError("'buildkite.org' is required")
    api_token = section.get("api_token") or os.environ.get(API_TOKEN_ENV)
    if not api_token:
        raise ConfigError(f"'buildkite.api_token' is required (or set {API_TOKEN_ENV})")
    return BuildkiteSettings(
        org=str(org),
        api_token=str(api_token),
        api_url=str(section.get("api_url", DEFAULT_BUILDKITE_CONFIG["api_url"])),
        timeout_seconds=_positive_number(
            section.get("timeout_seconds", DEFAULT_BUILDKITE_CONFIG["timeout_seconds"]),
            "buildkite.timeout_seconds",
        ),
    )


def get_poll_settings(config: dict[str, Any]) -> PollSettings:
    section = _section(config, "poll")
    interval = _positive_number(
        section.get("interval_seconds", DEFAULT_POLL_CONFIG["interval_seconds"]),
        "poll.interval_seconds",
    )
    debounce = _positive_number(
        section.get("debounce_seconds", DEFAULT_POLL_CONFIG["debounce_seconds"]),
        "poll.debounce_seconds",
    )
    if debounce >= interval:
        raise ConfigError("poll.debounce_seconds must be shorter than poll.interval_seconds")
    return PollSettings(interval_seconds=interval, debounce_seconds=debounce)


def get_webhook_settings(config: dict[str, Any]) -> WebhookSettings:
    section = _section(config, "webhook")
    port = section.get("port", DEFAULT_WEBHOOK_CONFIG["port"])
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        raise ConfigError(f"webhook.port must be a valid TCP port, got {port!r}")
    return WebhookSettings(
        enabled=bool(section.get("enabled", DEFAULT_WEBHOOK_CONFIG["enabled"])),
        host=str(section.get("host", DEFAULT_WEBHOOK_CONFIG["host"])),
        port=port,
        token=_optional_str(section.get("token") or os.environ.get(WEBHOOK_TOKEN_ENV)),
    )


def load_settings(path: Path | str | None = None) -> Settings:
    """Load and validate the whole config file."""
    config = load_config_file(path)
    return Settings(
        buildkite=get_buildkite_settings(config),
        poll=get_poll_settings(config),
        webhook=get_webhook_settings(config),
        registry=load_registry(config),
    )
