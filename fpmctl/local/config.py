import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional

import fpmctl.settings as default_settings

log = logging.getLogger(__name__)

# None, 'none' or 0 mean no deadline
OPTIONAL_TIMEOUTS = {"PID_FILE_TIMEOUT"}
POSITIVE_SETTINGS = {"FPM_WORKERS", "POLL_INTERVAL", "READY_TIMEOUT", "GRACEFUL_SHUTDOWN_TIMEOUT"}


class MergedSettings:
    """
    Merges default settings with JSON overrides.

    This class provides a unified, attribute-based access point for all
    configuration. It follows a clear precedence:
    1. Base values from `settings.py`.
    2. Overrides from the environment / `.env` file (handled by `python-dotenv` in settings.py).
    3. Overrides from `overrides.json` for settings in `MODIFIABLE_SETTINGS`.
    """

    def __init__(self, overrides_path: Optional[Path] = None) -> None:
        """Initializes the settings object by loading defaults and overrides."""
        self._load_defaults()
        if overrides_path is not None:
            self.OVERRIDES_JSON_PATH = Path(overrides_path)
        self._load_overrides()

    def _load_defaults(self) -> None:
        """Loads all uppercase attributes from the settings.py module as defaults."""
        for key in dir(default_settings):
            if key.isupper():
                setattr(self, key, getattr(default_settings, key))

    def _coerce(self, key: str, value: Any) -> Any:
        """
        Converts an override to the type of the default it replaces.

        :raises ValueError: If the value cannot be converted or is out of range.
        """
        if key in OPTIONAL_TIMEOUTS:
            return default_settings.parse_optional_seconds(value)
        if key in POSITIVE_SETTINGS:
            number = type(getattr(default_settings, key))(value)
            if number <= 0:
                raise ValueError(f"Setting '{key}' must be greater than 0, got {value!r}")
            return number

        original_value = getattr(self, key)
        if value is None:
            return None
        if isinstance(original_value, Path):
            return Path(value)
        if isinstance(original_value, bool):
            return str(value).lower() in ('true', '1', 't', 'yes', 'y')
        if original_value is not None:
            return type(original_value)(value)
        return value

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
        except (json.JSONDecodeError, IOError) as e:
            log.error(f"Failed to load or parse overrides file '{self.OVERRIDES_JSON_PATH}': {e}")
            return

        log.info(f"Loading runtime configuration overrides from {self.OVERRIDES_JSON_PATH}")
        for key, value in overrides.items():
            if not hasattr(self, key):
                log.warning(f"Override setting '{key}' not found in default settings. Ignoring.")
                continue
            if key not in self.MODIFIABLE_SETTINGS:
                log.warning(f"Attempted to override non-modifiable setting '{key}'. Ignoring.")
                continue
            try:
                setattr(self, key, self._coerce(key, value))
            except (ValueError, TypeError) as e:
                log.error(f"Could not convert override '{value}' for '{key}': {e}")
                continue
            log.debug(f"Overridden setting: {key} = {value}")

    def update_setting(self, key: str, value: Any) -> None:
        """
        Changes a modifiable setting and persists it to the overrides file.

        :raises KeyError: If the setting is unknown or not modifiable.
        :raises ValueError: If the value cannot be converted to the setting's type.
        """
        if key not in self.MODIFIABLE_SETTINGS:
            raise KeyError(f"Setting '{key}' is not modifiable.")
        new_value = self._coerce(key, value)
        setattr(self, key, new_value)
        self.save_overrides({k: getattr(self, k) for k in self.MODIFIABLE_SETTINGS})
        log.info(f"Setting '{key}' updated to '{new_value}'.")

    def save_overrides(self, overrides_to_save: Dict[str, Any]) -> None:
        """
        Saves the provided dictionary of settings to the overrides JSON file.

        Only keys present in `MODIFIABLE_SETTINGS` are persisted.

        :param overrides_to_save: A dictionary of settings to persist.
        """
        filtered_overrides = {
            key: (str(value) if isinstance(value, Path) else value)
            for key, value in overrides_to_save.items()
            if key in self.MODIFIABLE_SETTINGS
        }

        if not filtered_overrides:
            log.warning("No modifiable settings provided to save.")
            return

        self.OVERRIDES_JSON_PATH.parent.mkdir(parents=True, exist_ok=True)
        with self.OVERRIDES_JSON_PATH.open('w') as f:
            json.dump(filtered_overrides, f, indent=4)
        log.info(f"Configuration overrides saved to {self.OVERRIDES_JSON_PATH}")


# Create a singleton instance to be imported by other modules
effective_settings = MergedSettings()
