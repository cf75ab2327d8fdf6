import os
import sys
import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional

import src.settings as default_settings
from src.local.errors import ConfigurationError

log = logging.getLogger(__name__)


class MergedSettings:
    """
    A singleton class that merges default settings with JSON/env overrides.

    This class provides a unified, attribute-based access point for all
    application configuration. It follows a clear precedence:
    1. Base values from `settings.py`.
    2. Overrides from `.env` file (handled by `python-dotenv` in settings.py).
    3. Overrides from `overrides.json` for settings in `MODIFIABLE_SETTINGS`.
    """

    def __init__(self, overrides_path: Optional[Path] = None) -> None:
        """
        Initializes the settings object by loading defaults and overrides.

        :param overrides_path: Alternative overrides file, mostly for tests.
        """
        self._load_defaults()
        self.OVERRIDES_JSON_PATH: Path = overrides_path or default_settings.OVERRIDES_JSON_PATH
        self._load_overrides()

    def _load_defaults(self) -> None:
        """
        Loads all uppercase attributes from the settings.py module as defaults.
        """
        for key in dir(default_settings):
            if key.isupper():
                setattr(self, key, getattr(default_settings, key))

    def _load_overrides(self) -> None:
        """
        Loads and applies settings from the `overrides.json` file.

        It will only apply overrides for keys that are explicitly listed in
        the `MODIFIABLE_SETTINGS` set in `settings.py`.
        """
        if not self.OVERRIDES_JSON_PATH.exists():
            return

        try:
            with self.OVERRIDES_JSON_PATH.open('r') as f:
                overrides = json.load(f)

            log.info(f"Loading runtime configuration overrides from {self.OVERRIDES_JSON_PATH}")
            for key, value in overrides.items():
                if hasattr(self, key):
                    if key not in self.MODIFIABLE_SETTINGS:
                        log.warning(
                            f"Attempted to override non-modifiable setting '{key}'. Ignoring."
                        )
                        continue

                    original_value = getattr(self, key)
                    if isinstance(original_value, Path):
                        setattr(self, key, Path(value))
                    else:
                        setattr(self, key, value)
                    log.debug(f"Overridden setting: {key} = {value}")
                else:
                    log.warning(f"Override setting '{key}' not found in default settings. Ignoring.")
        except (json.JSONDecodeError, IOError) as e:
            log.error(
                f"Failed to load or parse overrides file '{self.OVERRIDES_JSON_PATH}': {e}"
            )

    def update_setting(self, key: str, value: Any) -> Dict[str, Any]:
        """
        Coerces a new value to the type of the current one, applies it and persists it.

        :param key: The setting name, must be in `MODIFIABLE_SETTINGS`.
        :param value: The raw new value (usually a string from the console).
        :return: The full set of persisted overrides.
        :raises KeyError: If the setting is not modifiable.
        :raises ValueError: If the value cannot be coerced.
        """
        if key not in self.MODIFIABLE_SETTINGS:
            raise KeyError(f"Setting '{key}' is not modifiable.")

        original_value = getattr(self, key, None)
        if isinstance(original_value, bool):
            new_value = str(value).lower() in ('true', '1', 't', 'yes', 'y')
        elif original_value is not None:
            try:
                new_value = type(original_value)(value)
            except (TypeError, ValueError) as e:
                raise ValueError(f"Could not convert value '{value}' for key '{key}': {e}") from e
        else:
            new_value = value

        setattr(self, key, new_value)
        overrides = {k: getattr(self, k) for k in self.MODIFIABLE_SETTINGS if hasattr(self, k)}
        self.save_overrides(overrides)
        return overrides

    def save_overrides(self, overrides_to_save: Dict[str, Any]) -> None:
        """
        Saves the provided dictionary of settings to the overrides JSON file.

        Only keys present in `MODIFIABLE_SETTINGS` are persisted.

        :param overrides_to_save: A dictionary of settings to persist.
        """
        filtered_overrides = {
            key: str(value) if isinstance(value, Path) else value
            for key, value in overrides_to_save.items()
            if key in self.MODIFIABLE_SETTINGS
        }

        if not filtered_overrides:
            log.warning("No modifiable settings provided to save.")
            return

        try:
            with self.OVERRIDES_JSON_PATH.open('w') as f:
                json.dump(filtered_overrides, f, indent=4)
            log.info(
                f"Configuration overrides saved to {self.OVERRIDES_JSON_PATH}"
            )
        except IOError as e:
            log.error(
                f"Failed to write to overrides file '{self.OVERRIDES_JSON_PATH}': {e}"
            )


def resolve_data_dir(override: Optional[str] = None, app_name: str = default_settings.APP_NAME) -> Path:
    """
    Resolves the platform-specific base application data directory.

    :param override: An explicit directory that wins over the platform default.
    :param app_name: The directory name appended to the platform location.
    :return: The base data directory (not created).
    :raises ConfigurationError: If no home or platform data location can be determined.
    """
    if override:
        return Path(override).expanduser()

    if sys.platform == "win32":
        local_app_data = os.environ.get("LOCALAPPDATA")
        if not local_app_data:
            raise ConfigurationError("Cannot get project directories: LOCALAPPDATA is not set.")
        return Path(local_app_data) / app_name

    xdg_data_home = os.environ.get("XDG_DATA_HOME")
    if xdg_data_home and sys.platform != "darwin":
        return Path(xdg_data_home) / app_name

    try:
        home = Path.home()
    except (RuntimeError, KeyError) as e:
        raise ConfigurationError(f"Cannot get project directories: {e}") from e

    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / app_name
    return home / ".local" / "share" / app_name


# Create a singleton instance to be imported by other modules
effective_settings = MergedSettings()
