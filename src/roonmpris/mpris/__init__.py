"""MPRIS (D-Bus) side of the bridge: one media player per zone."""

from roonmpris.mpris.player import MprisPlayer, PlayerError, dbus_metadata

__all__ = ["MprisPlayer", "PlayerError", "dbus_metadata"]
