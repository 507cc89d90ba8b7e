"""Interfaces the engine and router expect from their collaborators."""

from collections.abc import Callable
from typing import Any, Protocol

from roonmpris.models.metadata import TrackMetadata


class SignalInstance(Protocol):
    """The part of a bound Qt signal the router uses."""

    def connect(self, slot: Callable[..., Any]) -> Any: ...


class Player(Protocol):
    """A desktop-facing player object for one zone.

    Properties are plain attributes; setting one pushes the new value to
    clients once the player is published. Inbound requests arrive as Qt
    signals:

    - ``control_requested(command)``: "playpause", "stop", "next",
      "previous", "play" or "pause".
    - ``seek_requested(offset_us)``: relative seek.
    - ``position_requested(track_id, position_us)``: absolute seek.
    - ``event_requested(name, args)``: everything else ("raise", "quit",
      "open_uri", "volume", "loop_status", "shuffle").
    """

    name: str
    metadata: TrackMetadata
    playback_status: str
    can_go_next: bool
    can_go_previous: bool
    can_pause: bool
    can_seek: bool
    position: int

    @property
    def control_requested(self) -> SignalInstance: ...

    @property
    def seek_requested(self) -> SignalInstance: ...

    @property
    def position_requested(self) -> SignalInstance: ...

    @property
    def event_requested(self) -> SignalInstance: ...

    def emit_seeked(self, position_us: int) -> None:
        """Tell clients the position jumped to `position_us`."""

    def publish(self) -> None:
        """Make the player visible to clients."""

    def close(self) -> None:
        """Withdraw the player and release its connection."""


PlayerFactory = Callable[[str, str], Player]
"""Create an unpublished player from (player name, identity)."""


class Transport(Protocol):
    """Upstream control calls.

    Each call returns a correlation token; the result arrives later through
    ``CommandRouter.on_request_finished(token, error)``. A call that cannot
    be issued at all raises ConnectionError.
    """

    def control(self, zone_id: str, command: str) -> int: ...

    def seek(self, zone_id: str, how: str, seconds: float) -> int: ...
