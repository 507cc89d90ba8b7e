"""Zone models representing Roon playback zones.

Roon delivers zones as JSON objects on every update. Parsing is lenient:
missing or wrongly-typed fields fall back to defaults so a partial payload
never prevents the rest of a batch from being applied.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, cast

logger = logging.getLogger(__name__)


def _str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) else ""


def _number(data: dict[str, Any], key: str) -> float | None:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    # json.loads accepts NaN and Infinity
    if not math.isfinite(value):
        return None
    return value


def _as_dict(value: object) -> dict[str, Any] | None:
    if isinstance(value, dict):
        return cast(dict[str, Any], value)
    return None


@dataclass(frozen=True, slots=True)
class ThreeLine:
    """Roon's three-line display structure.

    Attributes:
        line1: Track title.
        line2: Artist(s), multiple artists joined by " / ".
        line3: Album title.
    """

    line1: str = ""
    line2: str = ""
    line3: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ThreeLine":
        """Create from a `three_line` JSON object."""
        return cls(line1=_str(data, "line1"), line2=_str(data, "line2"), line3=_str(data, "line3"))


@dataclass(frozen=True, slots=True)
class NowPlaying:
    """Currently playing track of a zone.

    Attributes:
        three_line: Title/artist/album display lines (None if absent).
        length: Track duration in seconds (None if unknown, e.g. radio).
        seek_position: Elapsed position in seconds (None if unknown).
        image_key: Roon image key for the artwork.
        sample_rate: Sample rate in Hz, when the core reports it.
        bit_depth: Bit depth, when the core reports it.
        bitrate: Bitrate in kbps, when the core reports it.
        format: Codec/format name, when the core reports it.
        source_type: Source kind (library, streaming service...), when reported.
    """

    three_line: ThreeLine | None = None
    length: float | None = None
    seek_position: float | None = None
    image_key: str = ""
    sample_rate: float | None = None
    bit_depth: float | None = None
    bitrate: float | None = None
    format: str = ""
    source_type: str = ""

    @property
    def title(self) -> str:
        """Return the track title, or empty string."""
        return self.three_line.line1 if self.three_line else ""

    @property
    def artist(self) -> str:
        """Return the raw artist line, or empty string."""
        return self.three_line.line2 if self.three_line else ""

    @property
    def album(self) -> str:
        """Return the album title, or empty string."""
        return self.three_line.line3 if self.three_line else ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NowPlaying":
        """Create from a `now_playing` JSON object."""
        three_line_data = _as_dict(data.get("three_line"))
        return cls(
            three_line=ThreeLine.from_dict(three_line_data) if three_line_data is not None else None,
            length=_number(data, "length"),
            seek_position=_number(data, "seek_position"),
            image_key=_str(data, "image_key"),
            sample_rate=_number(data, "sample_rate"),
            bit_depth=_number(data, "bit_depth"),
            bitrate=_number(data, "bitrate"),
            format=_str(data, "format"),
            source_type=_str(data, "source_type"),
        )


@dataclass(frozen=True, slots=True)
class Zone:
    """A Roon zone (an independently controllable playback stream).

    Attributes:
        zone_id: Stable zone identifier from the core.
        display_name: Human-readable zone name (may change).
        state: Playback state token: "playing", "paused", "stopped", "loading".
        is_next_allowed: Whether "next" is currently allowed.
        is_previous_allowed: Whether "previous" is currently allowed.
        is_pause_allowed: Whether "pause" is currently allowed.
        is_play_allowed: Whether "play" is currently allowed.
        is_seek_allowed: Whether seeking is currently allowed.
        now_playing: Current track, or None when nothing is loaded.
    """

    zone_id: str
    display_name: str = ""
    state: str = "stopped"
    is_next_allowed: bool = False
    is_previous_allowed: bool = False
    is_pause_allowed: bool = False
    is_play_allowed: bool = False
    is_seek_allowed: bool = False
    now_playing: NowPlaying | None = None

    @property
    def is_playing(self) -> bool:
        """Return True if the zone is playing."""
        return self.state == "playing"

    @property
    def playback_status(self) -> str:
        """Return the state token with its first letter upper-cased."""
        return self.state[:1].upper() + self.state[1:]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Zone":
        """Create from a zone JSON object."""
        now_playing_data = _as_dict(data.get("now_playing"))
        return cls(
            zone_id=_str(data, "zone_id"),
            display_name=_str(data, "display_name"),
            state=_str(data, "state") or "stopped",
            is_next_allowed=bool(data.get("is_next_allowed", False)),
            is_previous_allowed=bool(data.get("is_previous_allowed", False)),
            is_pause_allowed=bool(data.get("is_pause_allowed", False)),
            is_play_allowed=bool(data.get("is_play_allowed", False)),
            is_seek_allowed=bool(data.get("is_seek_allowed", False)),
            now_playing=NowPlaying.from_dict(now_playing_data) if now_playing_data is not None else None,
        )


@dataclass(frozen=True, slots=True)
class SeekChange:
    """A periodic position update for one zone.

    Attributes:
        zone_id: Zone the update belongs to.
        seek_position: Elapsed position in seconds (None if unknown).
        queue_time_remaining: Seconds left in the queue (None if unknown).
    """

    zone_id: str
    seek_position: float | None = None
    queue_time_remaining: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SeekChange":
        """Create from a `zones_seek_changed` entry."""
        return cls(
            zone_id=_str(data, "zone_id"),
            seek_position=_number(data, "seek_position"),
            queue_time_remaining=_number(data, "queue_time_remaining"),
        )


def _parse_list(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
    raw = data.get(key)
    if not isinstance(raw, list):
        return []
    items: list[dict[str, Any]] = []
    for item in cast(list[object], raw):
        item_dict = _as_dict(item)
        if item_dict is None:
            logger.debug("Skipping malformed %s entry: %r", key, item)
            continue
        items.append(item_dict)
    return items


@dataclass(frozen=True, slots=True)
class ZoneEvent:
    """One batch of zone changes from the transport subscription.

    Attributes:
        added: Zones that appeared (includes the initial zone list).
        changed: Zones whose state changed.
        removed: IDs of zones that disappeared.
        seek_changed: Position updates.
    """

    added: list[Zone] = field(default_factory=list)
    changed: list[Zone] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    seek_changed: list[SeekChange] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """Return True if the batch carries no changes."""
        return not (self.added or self.changed or self.removed or self.seek_changed)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ZoneEvent":
        """Create from a `Subscribed` or `Changed` message body.

        The initial `Subscribed` reply carries `zones`; later `Changed`
        messages carry `zones_added`, `zones_changed`, `zones_removed` and
        `zones_seek_changed`.
        """
        added = _parse_list(data, "zones") or _parse_list(data, "zones_added")
        removed_raw = data.get("zones_removed")
        removed: list[str] = []
        if isinstance(removed_raw, list):
            removed = [z for z in cast(list[object], removed_raw) if isinstance(z, str)]
        return cls(
            added=[Zone.from_dict(z) for z in added],
            changed=[Zone.from_dict(z) for z in _parse_list(data, "zones_changed")],
            removed=removed,
            seek_changed=[SeekChange.from_dict(s) for s in _parse_list(data, "zones_seek_changed")],
        )
