"""MPRIS D-Bus player objects.

Each zone gets its own bus connection, which owns the well-known name
``org.mpris.MediaPlayer2.<name>`` and exports ``/org/mpris/MediaPlayer2``
with the root and player interfaces. Property changes are announced with
``org.freedesktop.DBus.Properties.PropertiesChanged``; inbound method calls
and property writes are turned into Qt signals for the router.
"""

import itertools
import logging
from typing import Any

from PySide6.QtCore import ClassInfo, Property, QObject, Signal, Slot
from PySide6.QtDBus import (
    QDBusAbstractAdaptor,
    QDBusConnection,
    QDBusMessage,
    QDBusObjectPath,
)

from roonmpris.models.metadata import TrackMetadata

logger = logging.getLogger(__name__)

OBJECT_PATH = "/org/mpris/MediaPlayer2"
ROOT_INTERFACE = "org.mpris.MediaPlayer2"
PLAYER_INTERFACE = "org.mpris.MediaPlayer2.Player"
PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"
SERVICE_PREFIX = "org.mpris.MediaPlayer2."
NO_TRACK = "/org/mpris/MediaPlayer2/TrackList/NoTrack"

SUPPORTED_URI_SCHEMES = ["file"]
SUPPORTED_MIME_TYPES = ["audio/mpeg", "application/ogg"]

_connection_ids = itertools.count(1)


class PlayerError(RuntimeError):
    """Raised when a player cannot be published on the bus."""


def dbus_metadata(metadata: TrackMetadata) -> dict[str, Any]:
    """Return the Metadata property value for `metadata`.

    The track ID is sent as an object path; empty metadata stays empty.
    """
    result = metadata.to_dict()
    if not result:
        return {}
    result["mpris:trackid"] = QDBusObjectPath(metadata.track_id or NO_TRACK)
    return result


@ClassInfo(**{"D-Bus Interface": ROOT_INTERFACE})
class RootAdaptor(QDBusAbstractAdaptor):
    """org.mpris.MediaPlayer2"""

    def __init__(self, player: "MprisPlayer") -> None:
        super().__init__(player)
        self._player = player

    @Property(bool)
    def CanQuit(self) -> bool:  # noqa: N802
        return False

    @Property(bool)
    def CanRaise(self) -> bool:  # noqa: N802
        return False

    @Property(bool)
    def HasTrackList(self) -> bool:  # noqa: N802
        return False

    @Property(str)
    def Identity(self) -> str:  # noqa: N802
        return self._player.identity

    @Property("QStringList")
    def SupportedUriSchemes(self) -> list[str]:  # noqa: N802
        return list(SUPPORTED_URI_SCHEMES)

    @Property("QStringList")
    def SupportedMimeTypes(self) -> list[str]:  # noqa: N802
        return list(SUPPORTED_MIME_TYPES)

    @Slot()
    def Raise(self) -> None:  # noqa: N802
        self._player.event_requested.emit("raise", None)

    @Slot()
    def Quit(self) -> None:  # noqa: N802
        self._player.event_requested.emit("quit", None)


@ClassInfo(**{"D-Bus Interface": PLAYER_INTERFACE})
class PlayerAdaptor(QDBusAbstractAdaptor):
    """org.mpris.MediaPlayer2.Player"""

    Seeked = Signal("qlonglong")

    def __init__(self, player: "MprisPlayer") -> None:
        super().__init__(player)
        self._player = player

    @Property(str)
    def PlaybackStatus(self) -> str:  # noqa: N802
        return self._player.playback_status

    def _get_loop_status(self) -> str:
        return "None"

    def _set_loop_status(self, value: str) -> None:
        self._player.event_requested.emit("loop_status", value)

    LoopStatus = Property(str, _get_loop_status, _set_loop_status)

    def _get_shuffle(self) -> bool:
        return False

    def _set_shuffle(self, value: bool) -> None:
        self._player.event_requested.emit("shuffle", value)

    Shuffle = Property(bool, _get_shuffle, _set_shuffle)

    def _get_volume(self) -> float:
        return 1.0

    def _set_volume(self, value: float) -> None:
        self._player.event_requested.emit("volume", value)

    Volume = Property(float, _get_volume, _set_volume)

    @Property(float)
    def Rate(self) -> float:  # noqa: N802
        return 1.0

    @Property(float)
    def MinimumRate(self) -> float:  # noqa: N802
        return 1.0

    @Property(float)
    def MaximumRate(self) -> float:  # noqa: N802
        return 1.0

    @Property("QVariantMap")
    def Metadata(self) -> dict[str, Any]:  # noqa: N802
        return dbus_metadata(self._player.metadata)

    @Property("qlonglong")
    def Position(self) -> int:  # noqa: N802
        return self._player.position

    @Property(bool)
    def CanGoNext(self) -> bool:  # noqa: N802
        return self._player.can_go_next

    @Property(bool)
    def CanGoPrevious(self) -> bool:  # noqa: N802
        return self._player.can_go_previous

    @Property(bool)
    def CanPlay(self) -> bool:  # noqa: N802
        return self._player.can_play

    @Property(bool)
    def CanPause(self) -> bool:  # noqa: N802
        return self._player.can_pause

    @Property(bool)
    def CanSeek(self) -> bool:  # noqa: N802
        return self._player.can_seek

    @Property(bool)
    def CanControl(self) -> bool:  # noqa: N802
        return True

    @Slot()
    def Next(self) -> None:  # noqa: N802
        self._player.control_requested.emit("next")

    @Slot()
    def Previous(self) -> None:  # noqa: N802
        self._player.control_requested.emit("previous")

    @Slot()
    def Pause(self) -> None:  # noqa: N802
        self._player.control_requested.emit("pause")

    @Slot()
    def PlayPause(self) -> None:  # noqa: N802
        self._player.control_requested.emit("playpause")

    @Slot()
    def Stop(self) -> None:  # noqa: N802
        self._player.control_requested.emit("stop")

    @Slot()
    def Play(self) -> None:  # noqa: N802
        self._player.control_requested.emit("play")

    @Slot("qlonglong")
    def Seek(self, offset: int) -> None:  # noqa: N802
        self._player.seek_requested.emit(int(offset))

    @Slot(QDBusObjectPath, "qlonglong")
    def SetPosition(self, track_id: QDBusObjectPath, position: int) -> None:  # noqa: N802
        self._player.position_requested.emit(track_id.path(), int(position))

    @Slot(str)
    def OpenUri(self, uri: str) -> None:  # noqa: N802
        self._player.event_requested.emit("open_uri", uri)


class MprisPlayer(QObject):
    """One MPRIS media player on the session bus.

    Setting a property while published announces the change to clients,
    except `position`, which clients poll and which only jumps via
    `emit_seeked`.

    Example:
        player = MprisPlayer("roon_Kitchen", "Roon - Kitchen")
        player.control_requested.connect(lambda cmd: print(cmd))
        player.publish()
    """

    control_requested = Signal(str)  # playpause, stop, next, previous, play, pause
    seek_requested = Signal(object)  # offset in microseconds
    position_requested = Signal(str, object)  # track ID, position in microseconds
    event_requested = Signal(str, object)  # name, argument

    def __init__(
        self,
        name: str,
        identity: str,
        parent: QObject | None = None,
        bus_type: QDBusConnection.BusType = QDBusConnection.BusType.SessionBus,
    ) -> None:
        """Initialize an unpublished player.

        Args:
            name: Bus name suffix (org.mpris.MediaPlayer2.<name>).
            identity: Human-readable player name.
            parent: Optional Qt parent.
            bus_type: Bus to publish on.
        """
        super().__init__(parent)
        self._name = name
        self._identity = identity
        self._bus_type = bus_type
        self._connection_name = f"roonmpris-{next(_connection_ids)}-{name}"
        self._connection: QDBusConnection | None = None

        self._metadata = TrackMetadata()
        self._playback_status = "Stopped"
        self._can_go_next = False
        self._can_go_previous = False
        self._can_play = True
        self._can_pause = False
        self._can_seek = False
        self._position = 0

        self._root_adaptor = RootAdaptor(self)
        self._player_adaptor = PlayerAdaptor(self)

    @property
    def name(self) -> str:
        """Return the bus name suffix."""
        return self._name

    @property
    def identity(self) -> str:
        """Return the human-readable player name."""
        return self._identity

    @property
    def service_name(self) -> str:
        """Return the well-known bus name."""
        return SERVICE_PREFIX + self._name

    @property
    def is_published(self) -> bool:
        """Return True while the player is on the bus."""
        return self._connection is not None

    @property
    def metadata(self) -> TrackMetadata:
        """Return current track metadata."""
        return self._metadata

    @metadata.setter
    def metadata(self, value: TrackMetadata) -> None:
        if value == self._metadata:
            return
        self._metadata = value
        self._properties_changed({"Metadata": dbus_metadata(value)})

    @property
    def playback_status(self) -> str:
        """Return "Playing", "Paused" or "Stopped" (or another capitalised state)."""
        return self._playback_status

    @playback_status.setter
    def playback_status(self, value: str) -> None:
        if value == self._playback_status:
            return
        self._playback_status = value
        self._properties_changed({"PlaybackStatus": value})

    @property
    def can_go_next(self) -> bool:
        """Return True if Next is allowed."""
        return self._can_go_next

    @can_go_next.setter
    def can_go_next(self, value: bool) -> None:
        self._set_flag("_can_go_next", "CanGoNext", value)

    @property
    def can_go_previous(self) -> bool:
        """Return True if Previous is allowed."""
        return self._can_go_previous

    @can_go_previous.setter
    def can_go_previous(self, value: bool) -> None:
        self._set_flag("_can_go_previous", "CanGoPrevious", value)

    @property
    def can_play(self) -> bool:
        """Return True if Play is allowed."""
        return self._can_play

    @can_play.setter
    def can_play(self, value: bool) -> None:
        self._set_flag("_can_play", "CanPlay", value)

    @property
    def can_pause(self) -> bool:
        """Return True if Pause is allowed."""
        return self._can_pause

    @can_pause.setter
    def can_pause(self, value: bool) -> None:
        self._set_flag("_can_pause", "CanPause", value)

    @property
    def can_seek(self) -> bool:
        """Return True if seeking is allowed."""
        return self._can_seek

    @can_seek.setter
    def can_seek(self, value: bool) -> None:
        self._set_flag("_can_seek", "CanSeek", value)

    @property
    def position(self) -> int:
        """Return the playback position in microseconds."""
        return self._position

    @position.setter
    def position(self, value: int) -> None:
        self._position = int(value)

    def _set_flag(self, attr: str, dbus_name: str, value: bool) -> None:
        value = bool(value)
        if getattr(self, attr) == value:
            return
        setattr(self, attr, value)
        self._properties_changed({dbus_name: value})

    def _properties_changed(self, changed: dict[str, Any]) -> None:
        """Announce changed player properties."""
        if self._connection is None:
            return
        message = QDBusMessage.createSignal(OBJECT_PATH, PROPERTIES_INTERFACE, "PropertiesChanged")
        message.setArguments([PLAYER_INTERFACE, changed, []])
        if not self._connection.send(message):
            logger.debug("PropertiesChanged for %s not sent", self._name)

    def emit_seeked(self, position_us: int) -> None:
        """Tell clients the position jumped to `position_us`."""
        if self._connection is None:
            return
        self._player_adaptor.Seeked.emit(int(position_us))

    def publish(self) -> None:
        """Connect to the bus, export the object and claim the name.

        Raises:
            PlayerError: If the bus is unreachable or the name is taken.
        """
        if self._connection is not None:
            return

        connection = QDBusConnection.connectToBus(self._bus_type, self._connection_name)
        if not connection.isConnected():
            QDBusConnection.disconnectFromBus(self._connection_name)
            raise PlayerError(f"Cannot connect to D-Bus: {connection.lastError().message()}")

        if not connection.registerObject(
            OBJECT_PATH, self, QDBusConnection.RegisterOption.ExportAdaptors
        ):
            QDBusConnection.disconnectFromBus(self._connection_name)
            raise PlayerError(f"Cannot export {OBJECT_PATH} for {self._name}")

        if not connection.registerService(self.service_name):
            error = connection.lastError().message()
            connection.unregisterObject(OBJECT_PATH)
            QDBusConnection.disconnectFromBus(self._connection_name)
            raise PlayerError(f"Cannot claim {self.service_name}: {error}")

        self._connection = connection
        logger.debug("Published %s", self.service_name)

    def close(self) -> None:
        """Release the bus name and connection. Safe to call repeatedly."""
        connection = self._connection
        if connection is None:
            return
        self._connection = None
        connection.unregisterService(self.service_name)
        connection.unregisterObject(OBJECT_PATH)
        QDBusConnection.disconnectFromBus(self._connection_name)
        logger.debug("Closed %s", self.service_name)
