"""Track metadata exposed to MPRIS clients."""

from dataclasses import dataclass, field
from typing import Any

# Vendor namespace for fields MPRIS/xesam have no key for
VENDOR_PREFIX = "roon:"


@dataclass(frozen=True, slots=True)
class TrackMetadata:
    """Metadata of the track a player currently exposes.

    Unset fields are left out of the exported mapping rather than sent empty.

    Attributes:
        track_id: Identity token (`mpris:trackid`).
        length_us: Track length in microseconds (`mpris:length`).
        art_url: Artwork URL (`mpris:artUrl`).
        title: Track title (`xesam:title`).
        album: Album title (`xesam:album`).
        artists: Track artists (`xesam:artist`).
        extra: Vendor-prefixed keys (e.g. "roon:sampleRate") to values.
    """

    track_id: str = ""
    length_us: int | None = None
    art_url: str = ""
    title: str = ""
    album: str = ""
    artists: tuple[str, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        """Return True if no field is set."""
        return not self.to_dict()

    def to_dict(self) -> dict[str, Any]:
        """Return the MPRIS metadata mapping (well-known keys plus extras)."""
        result: dict[str, Any] = {}
        if self.track_id:
            result["mpris:trackid"] = self.track_id
        if self.length_us is not None:
            result["mpris:length"] = self.length_us
        if self.art_url:
            result["mpris:artUrl"] = self.art_url
        if self.title:
            result["xesam:title"] = self.title
        if self.album:
            result["xesam:album"] = self.album
        if self.artists:
            result["xesam:artist"] = list(self.artists)
        result.update(self.extra)
        return result
