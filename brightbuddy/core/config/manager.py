"""
Dynamic configuration manager for BrightBuddy.

Purpose
-------
Resolves business tunables (quotas, trial length, experience awards,
retention limits, lock timeouts) by dot-notation key. Values come from three
layers, highest priority first:

1. Runtime overrides applied with ``set()`` (tests, admin tooling)
2. YAML files discovered under ``Config.CONFIG_DIR``
3. Built-in defaults declared in this module

Responsibilities
----------------
- Load and deep-merge every ``*.yaml`` / ``*.yml`` file in the config directory
- Resolve dot-notation keys with a caller supplied default
- Apply registered validators to runtime overrides
- Track lightweight read metrics for health snapshots

Non-Responsibilities
--------------------
- Environment/static settings (see ``Config``)
- Persistence of overrides (overrides live for the process lifetime)

Architecture Notes
------------------
- Instances are constructed once by the application context and injected
  into services; there is no module-level singleton.
- ``initialize()`` is idempotent and synchronous-safe to call before the
  event loop starts.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml

from brightbuddy.core.config.config import Config
from brightbuddy.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Built-in defaults
# ============================================================================

DEFAULT_CONFIG: Dict[str, Any] = {
    "freemium": {
        "free_tier": {
            "daily_activity_limit": 3,
            "max_subjects": 8,
            "analytics_level": "basic",
            "support_level": "community",
        },
        "premium_tier": {
            "daily_activity_limit": -1,
            "max_subjects": -1,
            "analytics_level": "advanced",
            "support_level": "priority",
            "price": 9.99,
            "currency": "USD",
        },
        "trial": {
            "duration_days": 7,
            "activities_per_day": 5,
        },
        "history": {
            "default_limit": 50,
            "stats_scan_limit": 1000,
        },
    },
    "progression": {
        "category_experience": {
            "learning": 50,
            "streak": 100,
            "subject": 75,
            "premium": 200,
            "special": 150,
        },
        "default_experience": 50,
        "recent_limit": 5,
    },
    "analytics": {
        "max_events_per_user": 1000,
    },
    "notifications": {
        "max_pending": 50,
    },
    "storage": {
        "lock": {
            "timeout_seconds": 5,
            "wait_timeout_seconds": 5,
            "retry_interval_seconds": 0.05,
        },
    },
    "core": {
        "event": {
            "listener_timeout": {
                "critical_seconds": 5.0,
                "high_seconds": 5.0,
            },
        },
    },
}


class ConfigManagerError(RuntimeError):
    """Base error for configuration manager failures."""


@dataclass
class ConfigReadMetrics:
    gets: int = 0
    hits: int = 0
    misses: int = 0
    overrides_applied: int = 0


class ConfigManager:
    """
    Layered configuration lookup with dot-notation keys.

    Examples
    --------
    >>> manager = ConfigManager()
    >>> manager.initialize()
    >>> manager.get("freemium.free_tier.daily_activity_limit")
    3
    >>> manager.set("freemium.free_tier.daily_activity_limit", 5)
    >>> manager.get("freemium.free_tier.daily_activity_limit")
    5
    """

    def __init__(
        self,
        config_dir: Optional[Path] = None,
        defaults: Optional[Dict[str, Any]] = None,
        *,
        load_files: bool = True,
    ) -> None:
        self._config_dir = Path(config_dir) if config_dir else Path(Config.CONFIG_DIR)
        self._defaults: Dict[str, Any] = copy.deepcopy(
            defaults if defaults is not None else DEFAULT_CONFIG
        )
        self._load_files = load_files
        self._values: Dict[str, Any] = {}
        self._overrides: Dict[str, Any] = {}
        self._validators: Dict[str, Callable[[Any], Any]] = {}
        self._initialized = False
        self._metrics = ConfigReadMetrics()

    # ------------------------------------------------------------------ #
    # Loading
    # ------------------------------------------------------------------ #

    @staticmethod
    def _deep_merge_dict(target: Dict[str, Any], source: Dict[str, Any]) -> None:
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = copy.deepcopy(value)

    def _load_yaml_configs(self) -> int:
        """Merge every YAML file in the config directory over the defaults."""
        if not self._config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(self._config_dir)},
            )
            return 0

        yaml_files = sorted(
            list(self._config_dir.rglob("*.yaml")) + list(self._config_dir.rglob("*.yml"))
        )
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.warning(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                continue

            if isinstance(data, dict):
                self._deep_merge_dict(self._values, data)
                loaded_count += 1
                logger.debug(
                    "Loaded YAML config",
                    extra={"file": str(yaml_file.relative_to(self._config_dir))},
                )
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={
                        "file": str(yaml_file.relative_to(self._config_dir)),
                        "root_type": type(data).__name__,
                    },
                )

        return loaded_count

    def initialize(self) -> None:
        """Build the merged configuration tree. Safe to call repeatedly."""
        if self._initialized:
            return

        self._values = copy.deepcopy(self._defaults)
        loaded = self._load_yaml_configs() if self._load_files else 0
        self._initialized = True

        logger.info(
            "ConfigManager initialized",
            extra={
                "config_dir": str(self._config_dir),
                "yaml_files_loaded": loaded,
                "top_level_keys": sorted(self._values.keys()),
            },
        )

    # ------------------------------------------------------------------ #
    # Validation
    # ------------------------------------------------------------------ #

    def register_validator(self, key: str, validator: Callable[[Any], Any]) -> None:
        """
        Register a validator for runtime overrides of ``key``.

        The validator returns the (possibly coerced) value or raises
        ``ValueError``.
        """
        self._validators[key] = validator

    # ------------------------------------------------------------------ #
    # Access
    # ------------------------------------------------------------------ #

    @staticmethod
    def _lookup(tree: Dict[str, Any], key: str) -> Any:
        value: Any = tree
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return None
            value = value[part]
        return value

    def get(self, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Parameters
        ----------
        key:
            Dot-notation config path (e.g. ``"freemium.trial.duration_days"``).
        default:
            Value returned when the key is absent from every layer.
        """
        if not self._initialized:
            self.initialize()

        self._metrics.gets += 1

        if key in self._overrides:
            self._metrics.hits += 1
            return copy.deepcopy(self._overrides[key])

        value = self._lookup(self._values, key)
        if value is None:
            self._metrics.misses += 1
            return default

        self._metrics.hits += 1
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        """
        Apply a runtime override for ``key``.

        Raises
        ------
        ConfigManagerError
            If a registered validator rejects the value.
        """
        validator = self._validators.get(key)
        if validator is not None:
            try:
                value = validator(value)
            except (TypeError, ValueError) as exc:
                raise ConfigManagerError(
                    f"Invalid value for config key '{key}': {exc}"
                ) from exc

        self._overrides[key] = value
        self._metrics.overrides_applied += 1
        logger.info(
            "Configuration override applied",
            extra={"config_key": key, "value": value},
        )

    def clear_overrides(self) -> None:
        self._overrides.clear()

    def get_all_keys(self) -> List[str]:
        if not self._initialized:
            self.initialize()
        return sorted(self._values.keys())

    def health_snapshot(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "config_dir": str(self._config_dir),
            "override_count": len(self._overrides),
            "gets": self._metrics.gets,
            "hits": self._metrics.hits,
            "misses": self._metrics.misses,
        }
