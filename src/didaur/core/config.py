"""
Layered YAML configuration.

Layers, later ones winning:
1. config/default.yaml
2. config/{DIDAUR_ENV}.yaml
3. DIDAUR_<SECTION>__<KEY> environment variables

Secrets are never stored in YAML. Sections that need a secret name the
environment variable holding it (e.g. ``gemini.api_key_env``).
"""

import os
from pathlib import Path
from typing import Any, Mapping

import yaml

ENV_PREFIX = "DIDAUR_"
ENV_SELECTOR = "DIDAUR_ENV"
NESTING_SEPARATOR = "__"
DEFAULT_CONFIG_DIR = Path(__file__).resolve().parents[3] / "config"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``; nested sections merge key by key."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def parse_env_value(raw: str) -> Any:
    """Interpret an environment string as bool, int or float where it looks like one."""
    lowered = raw.strip().lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            continue
    return raw


def env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """
    Nested overrides from DIDAUR_* variables.

    Example:
        DIDAUR_GEMINI__RETRY__MAX_ATTEMPTS=5 -> {'gemini': {'retry': {'max_attempts': 5}}}
    """
    overrides: dict[str, Any] = {}
    for name, raw in environ.items():
        if not name.startswith(ENV_PREFIX) or name == ENV_SELECTOR:
            continue
        path = name[len(ENV_PREFIX):].lower().split(NESTING_SEPARATOR)
        # DIDAUR__X or DIDAUR_A___B would yield keys with stray underscores
        if not all(part and part.strip("_") == part for part in path):
            continue
        node = overrides
        for part in path[:-1]:
            node = node.setdefault(part, {})
            if not isinstance(node, dict):
                break
        else:
            node[path[-1]] = parse_env_value(raw)
    return overrides


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


class Config:
    """
    Configuration for the API server and the CLI.

    Usage:
        config = Config()
        model = config.get('gemini.model', 'gemini-2.5-flash')
        # or
        port = config['web']['port']
    """

    def __init__(self, config_dir: Path | None = None):
        """
        Args:
            config_dir: Directory holding default.yaml and the environment
                files. Defaults to the project's config/
        """
        self.config_dir = Path(config_dir) if config_dir is not None else DEFAULT_CONFIG_DIR
        self.env = os.getenv(ENV_SELECTOR, "development")
        self._config = self._load()

    @classmethod
    def from_dict(cls, values: dict[str, Any]) -> "Config":
        """Build a config from an in-memory dictionary (no files, no env overrides)."""
        config = cls.__new__(cls)
        config.config_dir = Path(".")
        config.env = "test"
        config._config = dict(values)
        return config

    def _load(self) -> dict[str, Any]:
        merged: dict[str, Any] = {}
        for layer in (
            _read_yaml(self.config_dir / "default.yaml"),
            _read_yaml(self.config_dir / f"{self.env}.yaml"),
            env_overrides(os.environ),
        ):
            merged = deep_merge(merged, layer)
        return merged

    def get(self, key: str, default: Any = None) -> Any:
        """
        Look up a value by dotted path.

        Args:
            key: Path like 'gemini.model' or 'gemini.retry.max_attempts'
            default: Returned when any part of the path is missing

        Returns:
            Configuration value or default
        """
        node: Any = self._config
        for part in key.split("."):
            if not isinstance(node, dict) or node.get(part) is None:
                return default
            node = node[part]
        return node

    def __getitem__(self, section: str) -> Any:
        """Top-level section, or an empty dict when absent."""
        return self._config.get(section, {})

    @property
    def as_dict(self) -> dict[str, Any]:
        return self._config.copy()

    def reload(self) -> None:
        """Re-read files and the environment, including a changed DIDAUR_ENV."""
        self.env = os.getenv(ENV_SELECTOR, self.env)
        self._config = self._load()
