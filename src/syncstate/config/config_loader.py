"""
Configuration loader for sync state tracking.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from ..core.exceptions import SyncConfigError


logger = logging.getLogger(__name__)

TRUE_VALUES = {"1", "true", "yes", "on"}


def _first_non_empty_env(*keys: str) -> Optional[str]:
    """Return the first non-empty env var value for the given keys."""
    for key in keys:
        value = os.environ.get(key)
        if value is not None and value.strip() != "":
            return value
    return None


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class SyncStateConfig:
    """
    Configuration for sync state tracking.

    Loads an optional YAML file over the defaults, then applies environment
    variable overrides. A ``.env`` file is loaded first; variables already
    set in the shell take precedence over it.
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        env_file: Optional[Path] = None,
        load_env: bool = True,
    ):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML config file (optional)
            env_file: Path to a .env file (default: search from cwd)
            load_env: Whether to load a .env file at all
        """
        self.config_path = Path(config_path) if config_path else None
        if load_env:
            load_dotenv(dotenv_path=env_file, override=False)

        self.config = self._default_config()
        if self.config_path:
            self.config = _deep_merge(self.config, self._load_config())
        self._apply_env_overrides()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise SyncConfigError(f"Config file not found: {self.config_path}")

        logger.info(f"Loading config from: {self.config_path}")

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise SyncConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise SyncConfigError(f"Config root must be a mapping: {self.config_path}")
        return config

    def _default_config(self) -> Dict[str, Any]:
        """Return default configuration."""
        return {
            "store": {
                "backend": "mongodb",
                "mongodb": {
                    "uri": "mongodb://localhost:27017",
                    "database": "syncstate",
                    "collection": "sync_records",
                    "server_selection_timeout_ms": 5000,
                },
                "sqlserver": {
                    "host": "localhost",
                    "port": 1433,
                    "database": "SyncState",
                    "username": "sa",
                    "driver": "ODBC Driver 18 for SQL Server",
                    "schema": "sync",
                },
            },
            "fingerprint": {
                "algorithm": "sha256",
            },
            "concurrency": {
                "optimistic": False,
            },
        }

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to loaded config."""
        store = self.config.setdefault("store", {})
        mongodb = store.setdefault("mongodb", {})
        sqlserver = store.setdefault("sqlserver", {})

        backend = _first_non_empty_env("SYNCSTATE_BACKEND")
        if backend:
            store["backend"] = backend.lower()

        for env_key, target, name in (
            ("SYNCSTATE_MONGODB_URI", mongodb, "uri"),
            ("SYNCSTATE_MONGODB_DATABASE", mongodb, "database"),
            ("SYNCSTATE_MONGODB_COLLECTION", mongodb, "collection"),
            ("SYNCSTATE_SQLSERVER_CONN_STR", sqlserver, "connection_string"),
            ("SYNCSTATE_SQLSERVER_HOST", sqlserver, "host"),
            ("SYNCSTATE_SQLSERVER_DATABASE", sqlserver, "database"),
            ("SYNCSTATE_SQLSERVER_USER", sqlserver, "username"),
            ("SYNCSTATE_SQLSERVER_PASSWORD", sqlserver, "password"),
            ("SYNCSTATE_SQLSERVER_DRIVER", sqlserver, "driver"),
            ("SYNCSTATE_SQLSERVER_SCHEMA", sqlserver, "schema"),
        ):
            value = _first_non_empty_env(env_key)
            if value is not None:
                target[name] = value

        port = _first_non_empty_env("SYNCSTATE_SQLSERVER_PORT")
        if port is not None:
            try:
                sqlserver["port"] = int(port)
            except ValueError:
                raise SyncConfigError(f"SYNCSTATE_SQLSERVER_PORT must be an integer: {port}") from None

        algorithm = _first_non_empty_env("SYNCSTATE_FINGERPRINT_ALGORITHM")
        if algorithm:
            self.config.setdefault("fingerprint", {})["algorithm"] = algorithm

        optimistic = _first_non_empty_env("SYNCSTATE_OPTIMISTIC_CONCURRENCY")
        if optimistic is not None:
            self.config.setdefault("concurrency", {})["optimistic"] = (
                optimistic.strip().lower() in TRUE_VALUES
            )

    def get_store_config(self) -> Dict[str, Any]:
        """Get store configuration."""
        return self.config.get("store", {})

    def get_fingerprint_config(self) -> Dict[str, Any]:
        """Get fingerprint configuration."""
        return self.config.get("fingerprint", {})

    @property
    def backend(self) -> str:
        return self.get("store.backend", "mongodb")

    @property
    def fingerprint_algorithm(self) -> str:
        return self.get("fingerprint.algorithm", "sha256")

    @property
    def optimistic_concurrency(self) -> bool:
        return bool(self.get("concurrency.optimistic", False))

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key."""
        keys = key.split(".")
        value = self.config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default
