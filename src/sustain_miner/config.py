"""Configuration loading and management for Sustain Miner.

Configuration sources are merged in priority order:
    1. Defaults (defined in MiningConfig)
    2. Global config (~/.sustain-miner.toml)
    3. Project config (./sustain-miner.toml)
    4. Explicit config file
    5. Environment variables (MINER_* prefix)
    6. CLI overrides (passed as kwargs)

Example:
    >>> config = load_config(window_days=10, workers=4)
    >>> config.window_size
    datetime.timedelta(days=10)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Literal, Optional, get_type_hints

from .exceptions import ConfigurationError, InvalidConfigError

WindowMode = Literal["fixed", "calendar"]

_WINDOW_MODES = ("fixed", "calendar")


@dataclass(frozen=True)
class MiningConfig:
    """Configuration consumed by the mining engine.

    Attributes:
        Windowing:
            window_days: Length of a fixed window in days
            window_mode: "fixed" (window_days increments) or "calendar" (months)
            ignore_dates: Analyze first to last commit instead of the project range

        Concurrency:
            workers: Size of the window worker pool

        Change analysis:
            restrict_languages: Drop file changes outside the language allow-list
            allowed_languages: Language names forming the allow-list (empty = all)

        Remote fetch:
            max_retries: Attempt cap for transient remote failures
            backoff_base_seconds: First backoff delay, doubled per attempt
            backoff_max_seconds: Upper bound for a single backoff delay
            request_timeout_seconds: Per-request timeout for remote calls
            page_size: Items requested per remote page
            github_token: API token (falls back to GITHUB_TOKEN)

        Local git:
            git_timeout_seconds: Timeout for a single git invocation

        Identity:
            mailmap_path: Optional .mailmap file with developer aliases
            merge_aliases_by_name: Also merge emails sharing a normalized name

        Output:
            group_by_developer: Group the commit log per developer
            include_commit_messages: Emit commit messages in the commit log
            output_dir: Folder the CSV sink writes to
    """

    # Windowing
    window_days: int = 30
    window_mode: WindowMode = "fixed"
    ignore_dates: bool = False

    # Concurrency
    workers: int = 1

    # Change analysis
    restrict_languages: bool = False
    allowed_languages: list[str] = field(default_factory=list)

    # Remote fetch
    max_retries: int = 5
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 60.0
    request_timeout_seconds: float = 30.0
    page_size: int = 100
    github_token: Optional[str] = None

    # Local git
    git_timeout_seconds: int = 600

    # Identity
    mailmap_path: Optional[str] = None
    merge_aliases_by_name: bool = False

    # Output
    group_by_developer: bool = False
    include_commit_messages: bool = True
    output_dir: str = "data"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.window_days < 1:
            raise ValueError("window_days must be at least 1")
        if self.window_mode not in _WINDOW_MODES:
            raise ValueError(f"window_mode must be one of {', '.join(_WINDOW_MODES)}")

        if self.workers < 1:
            raise ValueError("workers must be at least 1")

        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.backoff_base_seconds <= 0:
            raise ValueError("backoff_base_seconds must be positive")
        if self.backoff_max_seconds < self.backoff_base_seconds:
            raise ValueError("backoff_max_seconds must be >= backoff_base_seconds")
        if self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        if not 1 <= self.page_size <= 100:
            raise ValueError("page_size must be between 1 and 100")

        if self.git_timeout_seconds < 1:
            raise ValueError("git_timeout_seconds must be at least 1")

        # Unknown language names are a typo, not an empty allow-list
        if self.allowed_languages:
            from .history.languages import LANGUAGES

            unknown = [name for name in self.allowed_languages if name not in LANGUAGES]
            if unknown:
                raise ValueError(f"unknown languages in allowed_languages: {', '.join(unknown)}")

    @property
    def window_size(self) -> timedelta:
        """Fixed window length as a timedelta."""
        return timedelta(days=self.window_days)


def load_config(config_file: Optional[Path] = None, **overrides) -> MiningConfig:
    """Load configuration with auto-discovery and merging.

    Args:
        config_file: Optional explicit config file path
        **overrides: Direct overrides (typically from CLI flags). ``None``
            values are ignored so unset CLI options keep lower-priority values.

    Returns:
        Validated MiningConfig instance

    Raises:
        ConfigurationError: If a config file is missing or unreadable
        InvalidConfigError: If a value fails validation
    """
    merged: dict = {}

    global_config = Path.home() / ".sustain-miner.toml"
    if global_config.exists():
        merged.update(_load_toml_section(global_config))

    project_config = Path.cwd() / "sustain-miner.toml"
    if project_config.exists():
        merged.update(_load_toml_section(project_config))

    if config_file is not None:
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")
        merged.update(_load_toml_section(config_file))

    merged.update(_load_env_vars())

    merged.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return MiningConfig(**merged)
    except TypeError as e:
        # Unknown field in config
        raise ConfigurationError(f"Invalid configuration: {e}")
    except ValueError as e:
        raise InvalidConfigError("config", merged, str(e))


def _load_toml_section(path: Path) -> dict:
    """Load a TOML file; settings may live at top level or under [miner]."""
    try:
        data = _load_toml_file(path)
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Invalid config file '{path}': {e}")
    section = data.get("miner", data)
    if not isinstance(section, dict):
        raise ConfigurationError(f"Invalid [miner] section in '{path}'")
    return dict(section)


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from MINER_* environment variables.

    Every scalar field of MiningConfig maps to ``MINER_<FIELD_NAME>``, e.g.
    MINER_WORKERS=8 or MINER_IGNORE_DATES=true. List fields are skipped.
    """
    type_hints = get_type_hints(MiningConfig)

    result: dict[str, Any] = {}

    for field_name in MiningConfig.__dataclass_fields__:
        env_key = f"MINER_{field_name.upper()}"
        env_value = os.environ.get(env_key)

        if env_value is None:
            continue

        type_hint = type_hints.get(field_name)
        if type_hint is None:
            continue

        try:
            parsed = _parse_env_value(env_value, type_hint)
            if parsed is not None:
                result[field_name] = parsed
        except ValueError as e:
            raise InvalidConfigError(env_key, env_value, str(e))

    return result


def _parse_env_value(value: str, type_hint: Any) -> Any:
    """Parse environment variable string to the field's type."""
    origin = getattr(type_hint, "__origin__", None)

    # Optional[X] is Union[X, None]
    args = getattr(type_hint, "__args__", ())
    if type(None) in args:
        non_none_types = [t for t in args if t is not type(None)]
        if non_none_types:
            type_hint = non_none_types[0]
            origin = getattr(type_hint, "__origin__", None)

    if origin is list or type_hint is list:
        return None

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        elif lower in ("false", "0", "no", "off"):
            return False
        else:
            raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    if type_hint is float:
        return float(value)

    if type_hint is str or origin is Literal:
        return value

    return None


def _load_toml_file(path: Path) -> dict:
    """Load TOML file and return parsed dict."""
    try:
        # Python 3.11+ has tomllib in stdlib
        import tomllib
    except ModuleNotFoundError:
        try:
            import tomli as tomllib  # type: ignore
        except ImportError:
            raise ConfigurationError(
                "TOML support requires Python 3.11+ or 'tomli' package. "
                "Install with: pip install tomli"
            )

    with open(path, "rb") as f:
        return tomllib.load(f)
