"""
agent-spawner exceptions
"""


class SpawnerError(Exception):
    """Base exception for all agent-spawner errors"""

    pass


class ConfigError(SpawnerError):
    """Raised when the configuration file is missing or invalid.

    Only ever raised at startup, before the scheduler runs.
    """

    pass


class FetchError(SpawnerError):
    """Raised when the job snapshot cannot be fetched from the API"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
