"""
Config system - Layered configuration with merge precedence.
"""

from typing import Any, Dict, Optional
from pathlib import Path
import copy
import json
import logging
import os

from dotenv import dotenv_values

from .faults import ConfigInvalidFault


logger = logging.getLogger("harrier.config")


DEFAULT_SESSION_CONFIG: Dict[str, Any] = {
    "enabled": True,
    "store": {
        "type": "memory",  # "memory", "file", "redis"
        "max_sessions": 10000,
        "ttl": None,
        # File store options
        "directory": None,
        # Redis options
        "redis_url": None,
        "key_prefix": "harrier:session:",
        # Payload encoding ("json", or Fernet when a key is given)
        "serializer": "json",
        "encryption_key": None,
    },
    "transport": {
        "cookie_name": "id",
        "cookie_path": "/",
        "cookie_domain": None,
        "cookie_samesite": "lax",
        "cookie_secure": "auto",
        "inactivity_timeout": 900,
    },
}


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources with precedence:
    overrides > environment variables > .env file > config files > defaults
    """

    def __init__(self, env_prefix: str = "HARRIER_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        paths: Optional[list[str]] = None,
        env_prefix: str = "HARRIER_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from multiple sources.

        Merge order (later overrides earlier):
        1. Config files (JSON or YAML, glob patterns supported)
        2. .env file (only keys carrying the prefix)
        3. Environment variables (prefix, ``__`` for nesting)
        4. Manual overrides

        Args:
            paths: List of config file paths
            env_prefix: Prefix for environment variables
            env_file: Path to .env file
            overrides: Manual overrides (highest precedence)

        Returns:
            Configured ConfigLoader instance
        """
        loader = cls(env_prefix=env_prefix)

        for pattern in paths or []:
            loader._load_from_files(pattern)

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env()

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    def _load_from_files(self, pattern: str):
        """Load config from JSON or YAML files."""
        from glob import glob

        matched = sorted(glob(pattern))
        if not matched:
            logger.debug(f"No config files match {pattern!r}")

        for path_str in matched:
            path = Path(path_str)

            if path.suffix == ".json":
                self._load_json_file(path)
            elif path.suffix in (".yaml", ".yml"):
                self._load_yaml_file(path)
            else:
                raise ConfigInvalidFault(str(path), "unsupported config file type")

    def _load_json_file(self, path: Path):
        """Load config from JSON file."""
        with open(path) as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigInvalidFault(str(path), f"invalid JSON: {e}")
        self._merge_file_data(path, data)

    def _load_yaml_file(self, path: Path):
        """Load config from YAML file."""
        import yaml

        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigInvalidFault(str(path), f"invalid YAML: {e}")
        self._merge_file_data(path, data)

    def _merge_file_data(self, path: Path, data: Any):
        if not data:
            return
        if not isinstance(data, dict):
            raise ConfigInvalidFault(str(path), "top level must be a mapping")
        self._merge_dict(self.config_data, data)
        logger.debug(f"Loaded config from {path}")

    def _load_env_file(self, path: str):
        """Load prefixed keys from a .env file."""
        env_path = Path(path)
        if not env_path.exists():
            logger.debug(f"No .env file at {path}")
            return

        for key, value in dotenv_values(env_path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _load_from_env(self):
        """Load config from environment variables."""
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert HARRIER_SESSIONS__STORE__TYPE to nested dict."""
        key = key[len(self.env_prefix):]

        # Split by double underscore for nested keys
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        # Boolean
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        # Number
        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        # JSON
        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current: Any = self.config_data
        for part in path.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def to_dict(self) -> dict:
        """Return a copy of the merged configuration."""
        return copy.deepcopy(self.config_data)

    def get_session_config(self) -> dict:
        """
        Get session configuration with defaults.

        Returns:
            Session configuration dictionary
        """
        merged = copy.deepcopy(DEFAULT_SESSION_CONFIG)
        user_config = self.get("sessions", {})

        if user_config:
            if not isinstance(user_config, dict):
                raise ConfigInvalidFault("sessions", "expected a mapping")

            # "store: redis" is shorthand for {"type": "redis"}
            if isinstance(user_config.get("store"), str):
                user_config = {**user_config, "store": {"type": user_config["store"]}}

            self._merge_dict(merged, copy.deepcopy(user_config))

        return merged


__all__ = ["ConfigLoader", "DEFAULT_SESSION_CONFIG"]
