"""Configuration management for production and test environments.

This module provides centralized path configuration for the settings file and
session logs, allowing safe separation between production and test runs, and
the loading/saving of the persisted ``SyncSettings``.
"""

import json
import os
from pathlib import Path
from typing import Literal

from pydantic import ValidationError

from ..utils.log import get_logger
from .models import SyncSettings

log = get_logger(__name__)

# Environment mode type
EnvironmentMode = Literal["production", "test"]

# Relative to the vault root
_DEFAULT_PRODUCTION_PATHS = {
    "settings_path": Path(".research_hubs/settings.json"),
    "log_dir": Path(".research_hubs/logs"),
}

_DEFAULT_TEST_PATHS = {
    "settings_path": Path(".research_hubs_test/settings.json"),
    "log_dir": Path(".research_hubs_test/logs"),
}


class EnvironmentConfig:
    """Manages environment-specific paths for settings and logs.

    Paths are resolved against the vault root so that several vaults can be
    synchronized from the same working directory.
    """

    def __init__(
        self, mode: EnvironmentMode = "production", vault_root: Path | None = None
    ) -> None:
        """Initialize configuration with specified mode.

        Args:
            mode: Environment mode ('production' or 'test')
            vault_root: Root directory of the vault (default: current directory)
        """
        self._mode: EnvironmentMode = mode
        self._vault_root = Path(vault_root) if vault_root else Path(".")
        self._paths: dict[str, Path] = {}
        self._load_paths()
        log.debug("environment_config_initialized", mode=mode, paths=str(self._paths))

    def _load_paths(self) -> None:
        """Load paths based on current mode."""
        defaults = _DEFAULT_TEST_PATHS if self._mode == "test" else _DEFAULT_PRODUCTION_PATHS
        self._paths = {name: self._vault_root / path for name, path in defaults.items()}

    @property
    def mode(self) -> EnvironmentMode:
        """Get current environment mode."""
        return self._mode

    @property
    def vault_root(self) -> Path:
        return self._vault_root

    @property
    def settings_path(self) -> Path:
        """Get persisted settings file path."""
        return self._paths["settings_path"]

    @property
    def log_dir(self) -> Path:
        """Get session log directory."""
        return self._paths["log_dir"]

    def set_mode(self, mode: EnvironmentMode) -> None:
        """Change environment mode and reload paths."""
        if mode != self._mode:
            old_mode = self._mode
            self._mode = mode
            self._load_paths()
            log.info("environment_mode_changed", old_mode=old_mode, new_mode=mode)

    def set_vault_root(self, vault_root: Path) -> None:
        self._vault_root = Path(vault_root)
        self._load_paths()

    def get_summary(self) -> dict[str, str]:
        """Get summary of current configuration."""
        return {
            "mode": self._mode,
            "vault_root": str(self._vault_root),
            **{k: str(v) for k, v in self._paths.items()},
        }


# Global configuration instance (lazily initialized)
_config: EnvironmentConfig | None = None


def get_config() -> EnvironmentConfig:
    """Get the global configuration instance, creating it in production mode."""
    global _config
    if _config is None:
        _config = EnvironmentConfig(mode="production")
    return _config


def set_test_mode() -> None:
    """Switch to test mode globally."""
    global _config
    if _config is None:
        _config = EnvironmentConfig(mode="test")
        log.info("initialized_in_test_mode", paths=_config.get_summary())
    else:
        _config.set_mode("test")


def set_production_mode() -> None:
    """Switch to production mode globally."""
    global _config
    if _config is None:
        _config = EnvironmentConfig(mode="production")
        log.info("initialized_in_production_mode", paths=_config.get_summary())
    else:
        _config.set_mode("production")


def is_test_mode() -> bool:
    return get_config().mode == "test"


def load_settings(path: Path | None = None) -> SyncSettings:
    """Load settings from JSON, merged over the defaults.

    A missing file yields the defaults. ``OPENALEX_MAILTO`` overrides the
    stored contact address.

    Raises:
        ValueError: The file exists but is not valid settings JSON
    """
    path = path or get_config().settings_path
    stored: dict = {}
    if path.exists():
        try:
            stored = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            log.error("settings_json_invalid", path=str(path), error=str(e))
            raise ValueError(f"Invalid settings file {path}: {e}") from e
        if not isinstance(stored, dict):
            raise ValueError(f"Invalid settings file {path}: expected an object")
    else:
        log.debug("settings_file_missing", path=str(path))

    env_mailto = os.getenv("OPENALEX_MAILTO")
    if env_mailto:
        stored["mailto"] = env_mailto

    try:
        settings = SyncSettings(**stored)
    except ValidationError as e:
        log.error("settings_invalid", path=str(path), error=str(e))
        raise ValueError(f"Invalid settings file {path}: {e}") from e

    log.debug("settings_loaded", path=str(path), settings=settings.model_dump())
    return settings


def save_settings(settings: SyncSettings, path: Path | None = None) -> Path:
    """Persist settings as pretty-printed JSON and return the path written."""
    path = path or get_config().settings_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(settings.model_dump_json(indent=2), encoding="utf-8")
    log.info("settings_saved", path=str(path))
    return path
