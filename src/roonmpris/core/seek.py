"""Seek/progress classification for periodic position updates.

Roon reports the position of every playing zone about once per second.
MPRIS clients assume the position advances on its own and expect a
`Seeked` signal only when it jumps, so each update is compared with where
playback would be had it just kept going.

Both thresholds are empirical tuning, not protocol values, and can be
overridden in the config file.
"""

from dataclasses import dataclass

MICROSECONDS_PER_SECOND = 1_000_000

# ~1s of playback between updates plus 0.5s slack
DEFAULT_EXPECTED_ADVANCE_US = 1_500_000
DEFAULT_SEEK_THRESHOLD_US = 2_000_000


def seconds_to_us(seconds: float) -> int:
    """Convert seconds to whole microseconds."""
    return int(round(seconds * MICROSECONDS_PER_SECOND))


@dataclass(frozen=True, slots=True)
class SeekClassifier:
    """Decide whether a position update is an explicit seek.

    Attributes:
        expected_advance_us: Assumed advance since the previous update.
        threshold_us: Deviation from the expected position that counts as a seek.
    """

    expected_advance_us: int = DEFAULT_EXPECTED_ADVANCE_US
    threshold_us: int = DEFAULT_SEEK_THRESHOLD_US

    def is_seek(self, last_position_us: int, new_position_us: int) -> bool:
        """Return True if moving from `last_position_us` to `new_position_us` is a seek."""
        expected = last_position_us + self.expected_advance_us
        return abs(new_position_us - expected) > self.threshold_us
