"""Track identity tokens (`mpris:trackid`).

The token only has to tell tracks apart within one zone so that clients can
address `SetPosition` at the current track. A weak 32-bit hash is enough;
collisions are tolerated.
"""

import re

from roonmpris.models.zone import NowPlaying

TRACK_PATH_ROOT = "/com/roon/zone"

_FIELD_DELIMITER = "|"
_PATH_ESCAPED = re.compile(r"[^A-Za-z0-9]")
_HASH_MULTIPLIER = 31
_UINT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def rolling_hash(text: str) -> int:
    """Return the unsigned magnitude of a 32-bit multiply-and-add hash.

    Computes ``h = h * 31 + ord(c)`` truncated to 32 bits, reinterprets the
    result as signed, and returns its absolute value.
    """
    value = 0
    for char in text:
        value = (value * _HASH_MULTIPLIER + ord(char)) & _UINT32_MASK
    if value & _INT32_SIGN:
        value -= _UINT32_MASK + 1
    return abs(value)


def _escape(match: re.Match[str]) -> str:
    return "".join(f"_{byte:02x}" for byte in match.group().encode("utf-8"))


def path_element(value: str) -> str:
    """Return `value` made safe for use as a D-Bus object path element.

    Every byte outside ``[A-Za-z0-9]`` becomes ``_<hex>``, underscores
    included, so distinct values never share an element.
    """
    return _PATH_ESCAPED.sub(_escape, value) or "_"


def track_id(zone_id: str, now_playing: NowPlaying) -> str:
    """Return the identity token for a zone's current track.

    Args:
        zone_id: Owning zone ID.
        now_playing: The zone's now-playing record.

    Returns:
        An object path ``/com/roon/zone/<zone>/track/<8 hex digits>``.
    """
    key = _FIELD_DELIMITER.join((now_playing.title, now_playing.artist, now_playing.album))
    return f"{TRACK_PATH_ROOT}/{path_element(zone_id)}/track/{rolling_hash(key):08x}"
