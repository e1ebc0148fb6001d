"""Configuration exceptions: settings and project definitions."""

from typing import Any

from .base import SustainMinerError
from .taxonomy import ErrorCode


class ConfigurationError(SustainMinerError):
    """Base class for configuration-related errors."""

    code = ErrorCode.SM500


class InvalidConfigError(ConfigurationError):
    """Raised when configuration values are invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            f"Invalid configuration for {key}: {value}",
            details={"key": key, "value": str(value), "reason": reason},
        )
        self.key = key
        self.value = value
        self.reason = reason


class InvalidProjectError(ConfigurationError):
    """Raised when a project definition is contradictory or incomplete."""

    code = ErrorCode.SM501

    def __init__(self, project: str, reason: str):
        super().__init__(
            f"Invalid project definition: {project}",
            details={"project": project, "reason": reason},
        )
        self.project = project
        self.reason = reason
