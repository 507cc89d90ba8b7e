"""Data models for Roon zones, track metadata and cores."""

from roonmpris.models.core_info import CoreInfo
from roonmpris.models.metadata import VENDOR_PREFIX, TrackMetadata
from roonmpris.models.zone import NowPlaying, SeekChange, ThreeLine, Zone, ZoneEvent

__all__ = [
    "CoreInfo",
    "NowPlaying",
    "SeekChange",
    "ThreeLine",
    "TrackMetadata",
    "VENDOR_PREFIX",
    "Zone",
    "ZoneEvent",
]
