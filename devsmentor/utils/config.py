"""
Configuration management for DevsMentor.

Settings come from a YAML file layered over get_default_config(), so a
deployment file only lists what it changes. String values may reference
environment variables as ${NAME}; unset variables are left verbatim so
the failure shows up where the value is used (e.g. a missing API key).
"""

import copy
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from devsmentor.utils.errors import ConfigurationError

_ENV_REF = re.compile(r"\$\{([^}]+)\}")

DEFAULT_CONFIG_PATHS = (Path("config/config.yaml"), Path("config.yaml"))

# Dot-path -> rules, checked after defaults and file values are merged
CONFIG_SCHEMA: Dict[str, Dict[str, Any]] = {
    "app.environment": {"type": str, "required": True},
    "llm.provider": {"type": str, "required": True},
    "llm.temperature": {"type": (int, float)},
    "llm.timeout": {"type": (int, float)},
    "llm.max_retries": {"type": int},
    "storage.backend": {"type": str, "required": True},
    "entitlements.limits": {"type": dict},
    "logging.level": {"type": str},
}


def expand_env(value: Any) -> Any:
    """Replace ${NAME} references in every string nested in ``value``."""
    if isinstance(value, dict):
        return {key: expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    if isinstance(value, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(0)), value)
    return value


class ConfigManager:
    """
    Nested settings with dot-path access.

    Usage:
        manager = ConfigManager.from_file(Path("config/config.yaml"))
        manager.layer_over(get_default_config())
        manager.validate(CONFIG_SCHEMA)
        timeout = manager.get("llm.timeout")
    """

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Any] = values or {}

    @classmethod
    def from_file(cls, file_path: Path) -> "ConfigManager":
        """
        Read a YAML mapping and expand environment references.

        Raises:
            ConfigurationError: If the file is missing, unparseable, or
                its top level is not a mapping.
        """
        if not file_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {file_path}",
                config_key=str(file_path),
            )

        try:
            with open(file_path, "r") as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse YAML configuration: {e}",
                config_key=str(file_path),
            ) from e

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigurationError(
                f"Configuration root must be a mapping, got {type(loaded).__name__}",
                config_key=str(file_path),
            )
        return cls(expand_env(loaded))

    def get(self, key: str, default: Any = None, required: bool = False) -> Any:
        """
        Look up a dot-path such as "llm.timeout".

        Raises:
            ConfigurationError: If ``required`` and any segment is missing.
        """
        node: Any = self._values
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                if required:
                    raise ConfigurationError(
                        f"Required configuration key not found: {key}",
                        config_key=key,
                    )
                return default
            node = node[part]
        return node

    def layer_over(self, base: Dict[str, Any]) -> None:
        """Merge these values on top of ``base``; ours win key by key."""
        self._values = _deep_merge(copy.deepcopy(base), self._values)

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._values)

    def validate(self, schema: Dict[str, Dict[str, Any]]) -> None:
        """
        Check required keys and value types.

        Raises:
            ConfigurationError: Naming the first offending key.
        """
        for key, rules in schema.items():
            value = self.get(key)
            if value is None:
                if rules.get("required", False):
                    raise ConfigurationError(
                        f"Required configuration missing: {key}", config_key=key
                    )
                continue

            expected = rules.get("type")
            if expected is None:
                continue
            # YAML booleans are ints to isinstance but never valid numbers here
            if isinstance(value, bool) or not isinstance(value, expected):
                allowed = expected if isinstance(expected, tuple) else (expected,)
                raise ConfigurationError(
                    f"Invalid type for {key}: expected "
                    f"{'/'.join(t.__name__ for t in allowed)}, got {type(value).__name__}",
                    config_key=key,
                )


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load validated settings.

    Args:
        config_path: YAML file to read. When None, the first existing
            path in DEFAULT_CONFIG_PATHS is used, or defaults alone.
    """
    path: Optional[Path] = Path(config_path) if config_path else None
    if path is None:
        path = next((p for p in DEFAULT_CONFIG_PATHS if p.exists()), None)

    manager = ConfigManager.from_file(path) if path else ConfigManager()
    manager.layer_over(get_default_config())
    manager.validate(CONFIG_SCHEMA)
    return manager.to_dict()


def get_default_config() -> Dict[str, Any]:
    """Built-in settings: free-tier friendly, in-memory storage, Gemini."""
    return {
        "app": {
            # "development" raises on unknown feature keys; anything else
            # turns them into a logged deny
            "environment": "development",
        },
        "llm": {
            "provider": "gemini",
            "model": None,
            "api_key": None,
            "temperature": 0.7,
            "max_tokens": None,
            "timeout": 30.0,
            "max_retries": 3,
        },
        "storage": {
            "backend": "memory",
            "url": "sqlite:///devsmentor.db",
        },
        "entitlements": {
            "limits": {},
        },
        "logging": {
            "level": "INFO",
            "format": "json",
            "file": None,
        },
    }
