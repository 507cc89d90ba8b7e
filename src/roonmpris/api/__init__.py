"""API client for the Roon Core (MOO over WebSocket)."""

from roonmpris.api.client import ExtensionInfo, RoonClient
from roonmpris.api.protocol import MooError, MooMessage, MooParseError
from roonmpris.api.settings import SettingsService

__all__ = [
    "ExtensionInfo",
    "MooError",
    "MooMessage",
    "MooParseError",
    "RoonClient",
    "SettingsService",
]
