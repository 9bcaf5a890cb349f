"""
Configuration file loading.

Loads ``config.yaml`` from the project directory, overlays ``config.{env}.yaml``
when present and resolves environment placeholders.
"""

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

from artisync.config.resolver import resolve_config
from artisync.exceptions import ConfigurationError

CONFIG_FILENAME = "config.yaml"


class Config:
    """Artisync configuration container with dict-like access."""

    def __init__(self, data: dict[str, Any], path: Path | None = None):
        self.data = data
        self.path = path

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation."""
        value: Any = self.data
        for k in key.split("."):
            if not isinstance(value, dict):
                return default
            value = value.get(k)
            if value is None:
                return default
        return value

    def __getitem__(self, key: str) -> Any:
        """Dict-like access: config['key'] or config['nested.key']."""
        if "." in key:
            if key not in self:
                raise KeyError(f"Config key '{key}' not found")
            return self.get(key)
        if key in self.data:
            return self.data[key]
        raise KeyError(f"Config key '{key}' not found")

    def __contains__(self, key: str) -> bool:
        value: Any = self.data
        for k in key.split("."):
            if not isinstance(value, dict) or k not in value:
                return False
            value = value[k]
        return True

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        where = f" at line {mark.line + 1}, column {mark.column + 1}" if mark is not None else ""
        raise ConfigurationError(
            f"Error parsing {path.name}{where}:\n"
            f"  {e}\n"
            f"  Suggestion: Check YAML syntax, ensure proper indentation and quotes",
            details={"path": str(path)},
        ) from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}", details={"path": str(path)}) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"{path.name} must contain a mapping, got {type(data).__name__}", details={"path": str(path)}
        )
    return data


def load_config(project_path: Path | None = None, env: str | None = None) -> Config:
    """
    Load Artisync configuration.

    Args:
        project_path: Path to project root (default: current directory)
        env: Environment name; ``config.{env}.yaml`` overrides the base file

    Returns:
        Config instance with merged configuration

    Raises:
        ConfigurationError: If the file is missing or cannot be parsed
    """
    project_path = Path(project_path) if project_path is not None else Path.cwd()

    base_config_path = project_path / CONFIG_FILENAME
    if not base_config_path.is_file():
        raise ConfigurationError(
            f"Configuration file not found: {base_config_path}\n"
            f"  Suggestion: Create a {CONFIG_FILENAME} file in your project root",
            details={"path": str(base_config_path)},
        )

    config_data = _read_yaml(base_config_path)

    if env:
        env_config_path = project_path / f"config.{env}.yaml"
        if env_config_path.exists():
            _merge_dict(config_data, _read_yaml(env_config_path))

    config_data = resolve_config(config_data, env or "prod")
    return Config(config_data, path=base_config_path)


def _merge_dict(base: dict, override: dict) -> None:
    """Recursively merge override into base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge_dict(base[key], value)
        else:
            base[key] = value
