"""
Manages loading, validation, and migration of the INI preferences file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from stationhub.exceptions import ConfigurationError
from stationhub.models.preferences import Preferences
from stationhub.system.environment import get_default_installation_path

log = logging.getLogger(__name__)


class PreferencesManager:
    """Handles all operations related to the application's INI preferences file."""

    def __init__(
        self,
        preferences_file_path: Path,
        default_installation_path: Path | None = None,
    ):
        self.preferences_file_path = preferences_file_path
        self.default_installation_path = (
            default_installation_path or get_default_installation_path()
        )
        self._parser = configparser.ConfigParser(interpolation=None)
        self._preferences: Preferences | None = None

    def get_preferences(self) -> Preferences:
        """Returns the current preferences, loading them on first access."""
        if self._preferences is None:
            self._preferences = self.load()
        return self._preferences

    def load(self, overrides: dict[str, Any] | None = None) -> Preferences:
        """
        Loads preferences from the INI file, creating it with defaults if needed.

        Args:
            overrides: Values that take precedence over the file, e.g. from the CLI.

        Returns:
            A validated Preferences object.

        Raises:
            ConfigurationError: If the file cannot be parsed, written, or validated.
        """
        if not self.preferences_file_path.is_file():
            log.info(
                f"No preferences found, writing defaults to "
                f"[dim]{self.preferences_file_path}[/dim]"
            )
            self.save(self._defaults())

        try:
            self._parser.read(self.preferences_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing preferences file: {e}") from e

        if self._migrate_if_needed():
            log.info(
                "[yellow]Preferences file was updated with new default values."
                "[/yellow]"
            )

        values = self._get_preferences_as_dict()
        if overrides:
            values.update(overrides)

        try:
            self._preferences = Preferences(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Preferences validation failed:\n{e}") from e
        return self._preferences

    def save(self, preferences: Preferences) -> None:
        """
        Writes the given preferences to the INI file, replacing its contents.

        Args:
            preferences: The preferences to store.
        """
        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {}
        for key, value in preferences.model_dump().items():
            if isinstance(value, bool):
                config["DEFAULT"][key] = "true" if value else "false"
            else:
                config["DEFAULT"][key] = str(value)

        try:
            self.preferences_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.preferences_file_path, "w", encoding="utf-8") as f:
                config.write(f)
        except OSError as e:
            raise ConfigurationError(f"Failed to save preferences file: {e}") from e

        self._preferences = preferences

    def update(self, **changes: Any) -> Preferences:
        """Applies changes to the current preferences and saves them."""
        try:
            updated = self.get_preferences().model_copy(update=changes)
            updated = Preferences(**updated.model_dump())
        except ValidationError as e:
            raise ConfigurationError(f"Invalid preference value:\n{e}") from e
        self.save(updated)
        return updated

    def _defaults(self) -> Preferences:
        return Preferences(installation_path=str(self.default_installation_path))

    def _get_preferences_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        try:
            auto_remove = section.getboolean("auto_remove", False)
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for 'auto_remove': {e}") from e
        return {
            "installation_path": section.get(
                "installation_path", str(self.default_installation_path)
            ),
            "auto_remove": auto_remove,
        }

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing preferences file."""
        defaults = self._defaults()
        section = self._parser["DEFAULT"]
        needs_saving = False

        for key in Preferences.get_ini_keys():
            if key not in section:
                default_value = getattr(defaults, key)
                if isinstance(default_value, bool):
                    section[key] = "true" if default_value else "false"
                else:
                    section[key] = str(default_value)
                needs_saving = True
                log.debug(
                    f"Migrating preferences: added missing key '{key}' with "
                    f"value '{section[key]}'."
                )

        if needs_saving:
            try:
                with open(self.preferences_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated preferences file: {e}")
                return False

        return needs_saving
