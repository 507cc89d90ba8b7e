"""Configuration manager using QSettings for persistent storage."""

import json
import logging
from pathlib import Path
from typing import Any, cast

from PySide6.QtCore import QSettings

from roonmpris.core.seek import (
    DEFAULT_EXPECTED_ADVANCE_US,
    DEFAULT_SEEK_THRESHOLD_US,
    SeekClassifier,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "roon-mpris.conf"
DEFAULT_CONFIG_DIR = Path("~/.config/roon-mpris")

# Settings keys
_GROUP_TOKENS = "roon/tokens"
_KEY_PAIRED_CORE = "roon/paired_core_id"
_KEY_SETTINGS_VALUES = "settings/values"

# Seek detection
_KEY_EXPECTED_ADVANCE = "seek/expected_advance_us"
_KEY_SEEK_THRESHOLD = "seek/threshold_us"


class ConfigManager:
    """Wrapper around QSettings for type-safe config access.

    Values live in an INI file inside the config directory:
    ``<config_dir>/roon-mpris.conf``.

    Example:
        config = ConfigManager("~/.config/roon-mpris")
        tokens = config.get_tokens()
        config.set_token(core_id, token)
    """

    def __init__(self, config_dir: str | Path = DEFAULT_CONFIG_DIR) -> None:
        """Initialize the config manager.

        Args:
            config_dir: Directory holding the config file (created if missing).
        """
        self._dir = Path(config_dir).expanduser()
        self._dir.mkdir(parents=True, exist_ok=True)
        self._settings = QSettings(str(self._dir / CONFIG_FILENAME), QSettings.Format.IniFormat)

    @property
    def settings(self) -> QSettings:
        """Return the underlying QSettings instance."""
        return self._settings

    @property
    def path(self) -> Path:
        """Return the config file path."""
        return Path(self._settings.fileName())

    # -- Pairing ---------------------------------------------------------------

    def get_tokens(self) -> dict[str, str]:
        """Load saved pairing tokens.

        Returns:
            Tokens by core ID.
        """
        tokens: dict[str, str] = {}
        self._settings.beginGroup(_GROUP_TOKENS)
        try:
            for core_id in self._settings.childKeys():
                value = self._settings.value(core_id, "", str)
                if value:
                    tokens[core_id] = str(value)
        finally:
            self._settings.endGroup()
        return tokens

    def set_token(self, core_id: str, token: str) -> None:
        """Save the pairing token for a core.

        Args:
            core_id: Core the token was issued by.
            token: Token from the registration reply.
        """
        self._settings.setValue(f"{_GROUP_TOKENS}/{core_id}", token)

    def get_paired_core_id(self) -> str | None:
        """Get the ID of the last paired core.

        Returns:
            Core ID string, or None if never paired.
        """
        value = self._settings.value(_KEY_PAIRED_CORE, None, str)
        return str(value) if value else None

    def set_paired_core_id(self, core_id: str) -> None:
        """Set the ID of the paired core."""
        self._settings.setValue(_KEY_PAIRED_CORE, core_id)

    # -- Extension settings ----------------------------------------------------

    def get_settings_values(self) -> dict[str, Any]:
        """Load values saved from Roon's extension settings dialog."""
        raw = self._settings.value(_KEY_SETTINGS_VALUES, "", str)
        if not raw:
            return {}
        try:
            data = json.loads(str(raw))
        except json.JSONDecodeError as e:
            logger.warning("Ignoring invalid saved settings: %s", e)
            return {}
        if not isinstance(data, dict):
            return {}
        return cast(dict[str, Any], data)

    def set_settings_values(self, values: dict[str, Any]) -> None:
        """Save values from Roon's extension settings dialog."""
        self._settings.setValue(_KEY_SETTINGS_VALUES, json.dumps(values))

    # -- Seek detection --------------------------------------------------------

    def get_expected_advance_us(self) -> int:
        """Get the expected position advance between two updates (microseconds)."""
        value = self._settings.value(_KEY_EXPECTED_ADVANCE, DEFAULT_EXPECTED_ADVANCE_US, int)
        return int(value) if isinstance(value, int) else DEFAULT_EXPECTED_ADVANCE_US

    def set_expected_advance_us(self, value: int) -> None:
        """Set the expected position advance between two updates (microseconds)."""
        self._settings.setValue(_KEY_EXPECTED_ADVANCE, value)

    def get_seek_threshold_us(self) -> int:
        """Get the deviation that counts as a seek (microseconds)."""
        value = self._settings.value(_KEY_SEEK_THRESHOLD, DEFAULT_SEEK_THRESHOLD_US, int)
        return int(value) if isinstance(value, int) else DEFAULT_SEEK_THRESHOLD_US

    def set_seek_threshold_us(self, value: int) -> None:
        """Set the deviation that counts as a seek (microseconds)."""
        self._settings.setValue(_KEY_SEEK_THRESHOLD, value)

    def get_seek_classifier(self) -> SeekClassifier:
        """Return a seek classifier using the configured thresholds."""
        return SeekClassifier(
            expected_advance_us=self.get_expected_advance_us(),
            threshold_us=self.get_seek_threshold_us(),
        )

    def sync(self) -> None:
        """Write pending changes to disk."""
        self._settings.sync()

    def clear(self) -> None:
        """Clear all settings (for testing)."""
        self._settings.clear()
