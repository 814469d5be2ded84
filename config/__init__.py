"""
Configuration for the invoice intake system.

Settings live in ``config/settings.yaml`` and are read through one
process-wide ConfigurationManager. Components never index the raw
dictionary; they call ``get_config("queue.max_attempts", 3)`` with an
in-code default, so a partial settings file is always usable.

A few deployment values may come from the environment instead of the
file (see ENV_OVERRIDES).
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_SETTINGS = Path(__file__).resolve().parent / "settings.yaml"

# Environment variable -> dotted settings key it replaces when set.
ENV_OVERRIDES = {
    "DATABASE_URL": "database.url",
    "INVOICE_INTAKE_UPLOAD_DIR": "paths.upload_dir",
    "INVOICE_INTAKE_LOG_LEVEL": "logging.level",
    "INVOICE_INTAKE_OCR_ENGINE": "ocr.engine",
}


class ConfigurationManager:
    """
    Singleton holder of the loaded settings.

    The first instantiation decides which file is loaded; later calls
    return the same object whatever path they pass. ``reset()`` drops the
    instance so the next call loads again.

    Example:
        >>> ConfigurationManager().get("review.confidence_threshold")
        80
        >>> ConfigurationManager().get("queue.unknown_key", 42)
        42
    """

    _instance: Optional['ConfigurationManager'] = None

    def __new__(cls, config_path: Optional[str] = None) -> 'ConfigurationManager':
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._loaded = False
            cls._instance = instance
        return cls._instance

    def __init__(self, config_path: Optional[str] = None) -> None:
        """
        Load the settings file once.

        Args:
            config_path: YAML file to load; ``config/settings.yaml`` when
                omitted.

        Raises:
            FileNotFoundError: If the file does not exist.
            yaml.YAMLError: If the file is not valid YAML.
        """
        if self._loaded:
            return

        self.config_path = Path(config_path) if config_path else DEFAULT_SETTINGS
        self._settings = self._read(self.config_path)
        self._apply_environment()
        self._absolutize_paths()
        self._loaded = True

    @staticmethod
    def _read(path: Path) -> Dict[str, Any]:
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}

    def _apply_environment(self) -> None:
        for variable, key in ENV_OVERRIDES.items():
            value = os.environ.get(variable)
            if value:
                self._set(key, value)

    def _set(self, key: str, value: Any) -> None:
        *parents, leaf = key.split('.')
        node = self._settings
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = value

    def _absolutize_paths(self) -> None:
        """Relative ``paths.*`` entries are relative to the project root."""
        paths = self._settings.get('paths') or {}
        for name, value in paths.items():
            if value and not Path(value).is_absolute():
                paths[name] = str(PROJECT_ROOT / value)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Read a value by dotted key.

        Missing keys and explicit nulls both return ``default``.
        """
        node: Any = self._settings
        for part in key.split('.'):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return default if node is None else node

    @classmethod
    def reset(cls) -> None:
        """Forget the loaded settings (tests, or a new ``--config``)."""
        cls._instance = None


def get_config(key: str, default: Any = None) -> Any:
    """Shortcut for ``ConfigurationManager().get(key, default)``."""
    return ConfigurationManager().get(key, default)


__all__ = ['ConfigurationManager', 'get_config', 'PROJECT_ROOT']
