"""Tests for the MPRIS player objects."""

import uuid
from typing import Any

import pytest
from PySide6.QtDBus import QDBusConnection, QDBusObjectPath

from roonmpris.models.metadata import TrackMetadata
from roonmpris.mpris.player import (
    NO_TRACK,
    SUPPORTED_MIME_TYPES,
    SUPPORTED_URI_SCHEMES,
    MprisPlayer,
    PlayerAdaptor,
    PlayerError,
    RootAdaptor,
    dbus_metadata,
)


@pytest.fixture
def player(qapp: Any) -> MprisPlayer:
    """Return an unpublished player."""
    return MprisPlayer("roon_Living_Room", "Roon - Living Room")


def _adaptors(player: MprisPlayer) -> tuple[RootAdaptor, PlayerAdaptor]:
    return player._root_adaptor, player._player_adaptor


def _record(signal: Any) -> list[tuple[Any, ...]]:
    calls: list[tuple[Any, ...]] = []
    signal.connect(lambda *args: calls.append(args))
    return calls


class TestDbusMetadata:
    """Test dbus_metadata."""

    def test_empty(self) -> None:
        """Test empty metadata stays empty."""
        assert dbus_metadata(TrackMetadata()) == {}

    def test_track_id_is_object_path(self) -> None:
        """Test the track ID is sent as an object path."""
        result = dbus_metadata(TrackMetadata(track_id="/com/roon/zone/z/track/00000001", title="T"))
        assert isinstance(result["mpris:trackid"], QDBusObjectPath)
        assert result["mpris:trackid"].path() == "/com/roon/zone/z/track/00000001"
        assert result["xesam:title"] == "T"

    def test_missing_track_id(self) -> None:
        """Test metadata without a track ID uses NoTrack."""
        result = dbus_metadata(TrackMetadata(title="T"))
        assert result["mpris:trackid"].path() == NO_TRACK


class TestMprisPlayerState:
    """Test player state without a bus."""

    def test_initial_state(self, player: MprisPlayer) -> None:
        """Test a new player."""
        assert player.name == "roon_Living_Room"
        assert player.identity == "Roon - Living Room"
        assert player.service_name == "org.mpris.MediaPlayer2.roon_Living_Room"
        assert player.is_published is False
        assert player.playback_status == "Stopped"
        assert player.can_play is True
        assert player.can_pause is False
        assert player.position == 0
        assert player.metadata.is_empty

    def test_setters(self, player: MprisPlayer) -> None:
        """Test properties can be set before publishing."""
        player.playback_status = "Playing"
        player.can_go_next = True
        player.can_seek = True
        player.position = 5_000_000
        player.metadata = TrackMetadata(title="Song")

        assert player.playback_status == "Playing"
        assert player.can_go_next is True
        assert player.can_seek is True
        assert player.position == 5_000_000
        assert player.metadata.title == "Song"

    def test_unpublished_operations_are_noops(self, player: MprisPlayer) -> None:
        """Test Seeked and close before publishing do nothing."""
        player.emit_seeked(1_000_000)
        player.close()
        assert player.is_published is False


class TestRootAdaptor:
    """Test org.mpris.MediaPlayer2."""

    def test_properties(self, player: MprisPlayer) -> None:
        """Test root properties."""
        root, _ = _adaptors(player)
        assert root.Identity == "Roon - Living Room"
        assert root.CanQuit is False
        assert root.CanRaise is False
        assert root.HasTrackList is False
        assert root.SupportedUriSchemes == SUPPORTED_URI_SCHEMES == ["file"]
        assert root.SupportedMimeTypes == SUPPORTED_MIME_TYPES

    def test_raise_and_quit_are_events(self, player: MprisPlayer) -> None:
        """Test Raise and Quit are accepted as events."""
        root, _ = _adaptors(player)
        events = _record(player.event_requested)
        root.Raise()
        root.Quit()
        assert events == [("raise", None), ("quit", None)]


class TestPlayerAdaptor:
    """Test org.mpris.MediaPlayer2.Player."""

    def test_properties_follow_player(self, player: MprisPlayer) -> None:
        """Test properties read the player's state."""
        _, adaptor = _adaptors(player)
        player.playback_status = "Paused"
        player.can_go_previous = True
        player.position = 42
        player.metadata = TrackMetadata(track_id="/t/1", title="Song")

        assert adaptor.PlaybackStatus == "Paused"
        assert adaptor.CanGoPrevious is True
        assert adaptor.CanPlay is True
        assert adaptor.CanControl is True
        assert adaptor.Position == 42
        assert adaptor.Rate == 1.0
        assert adaptor.Metadata["xesam:title"] == "Song"

    @pytest.mark.parametrize(
        ("method", "command"),
        [
            ("Next", "next"),
            ("Previous", "previous"),
            ("PlayPause", "playpause"),
            ("Stop", "stop"),
            ("Play", "play"),
            ("Pause", "pause"),
        ],
    )
    def test_controls(self, player: MprisPlayer, method: str, command: str) -> None:
        """Test control methods become control requests."""
        _, adaptor = _adaptors(player)
        controls = _record(player.control_requested)
        getattr(adaptor, method)()
        assert controls == [(command,)]

    def test_seek(self, player: MprisPlayer) -> None:
        """Test Seek becomes a relative seek request."""
        _, adaptor = _adaptors(player)
        seeks = _record(player.seek_requested)
        adaptor.Seek(-5_000_000)
        assert seeks == [(-5_000_000,)]

    def test_set_position(self, player: MprisPlayer) -> None:
        """Test SetPosition carries the track path and position."""
        _, adaptor = _adaptors(player)
        positions = _record(player.position_requested)
        adaptor.SetPosition(QDBusObjectPath("/com/roon/zone/z/track/00000001"), 30_000_000)
        assert positions == [("/com/roon/zone/z/track/00000001", 30_000_000)]

    def test_open_uri(self, player: MprisPlayer) -> None:
        """Test OpenUri is accepted as an event."""
        _, adaptor = _adaptors(player)
        events = _record(player.event_requested)
        adaptor.OpenUri("file:///music/song.mp3")
        assert events == [("open_uri", "file:///music/song.mp3")]

    def test_writable_properties_are_events(self, player: MprisPlayer) -> None:
        """Test writes to Volume, LoopStatus and Shuffle become events."""
        _, adaptor = _adaptors(player)
        events = _record(player.event_requested)
        adaptor.Volume = 0.5
        adaptor.LoopStatus = "Track"
        adaptor.Shuffle = True
        assert events == [("volume", 0.5), ("loop_status", "Track"), ("shuffle", True)]


def _session_bus_available() -> bool:
    return QDBusConnection.sessionBus().isConnected()


@pytest.mark.integration
class TestMprisPlayerOnBus:
    """Test publishing on a live session bus."""

    @pytest.fixture(autouse=True)
    def _require_bus(self, qapp: Any) -> None:
        if not _session_bus_available():
            pytest.skip("no session D-Bus")

    def test_publish_and_close(self) -> None:
        """Test a player can claim and release its name."""
        player = MprisPlayer(f"roon_test_{uuid.uuid4().hex[:8]}", "Roon - Test")
        player.publish()
        try:
            assert player.is_published
            player.playback_status = "Playing"
            player.emit_seeked(1_000_000)
        finally:
            player.close()
        assert not player.is_published

    def test_name_taken(self) -> None:
        """Test a second player with the same name cannot publish."""
        name = f"roon_test_{uuid.uuid4().hex[:8]}"
        first = MprisPlayer(name, "Roon - Test")
        second = MprisPlayer(name, "Roon - Test")
        first.publish()
        try:
            with pytest.raises(PlayerError):
                second.publish()
            assert not second.is_published
        finally:
            first.close()
