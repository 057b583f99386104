"""azure-tui configuration management.

Handles persistent settings stored in ~/.config/azure-tui/config.yaml
"""

import os
from dataclasses import asdict, dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Optional

import yaml


# Default configuration values
DEFAULT_THEME = "textual-dark"
DEFAULT_VIEW = "resources"  # devops, resources, storage, terraform
DEFAULT_LOAD_TIMEOUT = 30.0
DEFAULT_ACTION_TIMEOUT = 120.0
DEFAULT_LOG_LEVEL = "info"
DEFAULT_NAMING_PATTERN = "{{env}}-{{type}}-{{name}}"

VIEWS = ["devops", "resources", "storage", "terraform"]

# Environment variables that override the file
ENV_PAT = "AZURE_DEVOPS_PAT"
ENV_ORG = "AZURE_DEVOPS_ORG"
ENV_PROJECT = "AZURE_DEVOPS_PROJECT"
ENV_CONFIG = "AZURE_TUI_CONFIG"


def _known(cls, data: Any) -> dict[str, Any]:
    """Keep only the keys ``cls`` declares."""
    if not isinstance(data, dict):
        return {}
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass
class DevOpsSettings:
    """Azure DevOps connection settings."""

    organization: Optional[str] = None
    project: Optional[str] = None
    base_url: str = "https://dev.azure.com"
    personal_access_token: Optional[str] = None


@dataclass
class NamingSettings:
    """Resource naming patterns."""

    vm: str = DEFAULT_NAMING_PATTERN
    storage: str = DEFAULT_NAMING_PATTERN
    vnet: str = DEFAULT_NAMING_PATTERN
    default: str = DEFAULT_NAMING_PATTERN


@dataclass
class AppConfig:
    """azure-tui application configuration."""

    # Appearance
    theme: str = DEFAULT_THEME
    default_view: str = DEFAULT_VIEW

    # Timeouts in seconds
    load_timeout: float = DEFAULT_LOAD_TIMEOUT
    action_timeout: float = DEFAULT_ACTION_TIMEOUT

    # Logging; the terminal belongs to the dashboard, so logs go to a file
    log_level: str = DEFAULT_LOG_LEVEL
    log_file: Optional[str] = None

    devops: DevOpsSettings = field(default_factory=DevOpsSettings)
    terraform_dirs: list[str] = field(default_factory=list)
    naming: NamingSettings = field(default_factory=NamingSettings)

    @classmethod
    def get_config_path(cls) -> Path:
        """Get the path to the config file."""
        override = os.environ.get(ENV_CONFIG)
        if override:
            return Path(override).expanduser()
        return Path.home() / ".config" / "azure-tui" / "config.yaml"

    @classmethod
    def default_log_file(cls) -> Path:
        return cls.get_config_path().parent / "azure-tui.log"

    @classmethod
    def from_dict(cls, data: Any) -> "AppConfig":
        # Only use known fields to avoid issues with old config versions
        filtered = _known(cls, data)
        filtered["devops"] = DevOpsSettings(**_known(DevOpsSettings, filtered.get("devops")))
        filtered["naming"] = NamingSettings(**_known(NamingSettings, filtered.get("naming")))
        dirs = filtered.get("terraform_dirs") or []
        filtered["terraform_dirs"] = [str(d) for d in dirs] if isinstance(dirs, list) else []
        config = cls(**filtered)
        config.load_timeout = float(config.load_timeout)
        config.action_timeout = float(config.action_timeout)
        return config

    @classmethod
    def load(cls, apply_env: bool = True) -> "AppConfig":
        """Load configuration from file, or return defaults if not found."""
        config_path = cls.get_config_path()
        config = cls()

        if config_path.exists():
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    config = cls.from_dict(yaml.safe_load(f) or {})
            except (yaml.YAMLError, TypeError, ValueError):
                # Invalid config, use defaults
                config = cls()

        if apply_env:
            config.apply_env()
        return config

    def apply_env(self) -> None:
        """Let the DevOps environment variables take precedence."""
        self.devops.personal_access_token = (
            os.environ.get(ENV_PAT) or self.devops.personal_access_token
        )
        self.devops.organization = os.environ.get(ENV_ORG) or self.devops.organization
        self.devops.project = os.environ.get(ENV_PROJECT) or self.devops.project

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def save(self) -> None:
        """Save configuration to file."""
        config_path = self.get_config_path()

        # Ensure directory exists
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)

    def reset(self) -> None:
        """Reset configuration to defaults."""
        defaults = AppConfig()
        for f in fields(self):
            setattr(self, f.name, getattr(defaults, f.name))

    def set_value(self, key: str, value: str) -> None:
        """Set a setting from its dotted name, e.g. ``devops.organization``.

        Raises:
            KeyError: If no such setting exists.
            ValueError: If the value does not fit the setting.
        """
        target: Any = self
        parts = key.split(".")
        for index, part in enumerate(parts):
            if not is_dataclass(target) or part not in {f.name for f in fields(target)}:
                raise KeyError(key)
            if index < len(parts) - 1:
                target = getattr(target, part)
        name = parts[-1]

        current = getattr(target, name)
        if is_dataclass(current):
            raise KeyError(key)
        if name == "default_view" and value not in VIEWS:
            raise ValueError(f"View must be one of: {', '.join(VIEWS)}")
        if isinstance(current, float):
            parsed: Any = float(value)
            if parsed <= 0:
                raise ValueError(f"{key} must be positive")
        elif isinstance(current, list):
            parsed = [part.strip() for part in value.split(",") if part.strip()]
        elif current is None:
            parsed = value or None
        else:
            parsed = value
        setattr(target, name, parsed)
