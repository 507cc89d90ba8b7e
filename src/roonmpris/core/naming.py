"""Player naming for D-Bus bus names.

D-Bus bus-name elements only allow ASCII letters, digits, underscore and
hyphen, and must not start with a digit.
"""

import re

PLAYER_PREFIX = "roon_"

_DISALLOWED = re.compile(r"[^A-Za-z0-9_-]")
_LEADING_DIGIT_PREFIX = "zone_"
_FALLBACK_NAME = "unnamed_zone"


def sanitize_name(display_name: str) -> str:
    """Map a display name to the D-Bus bus-name alphabet.

    Args:
        display_name: Arbitrary human-readable name.

    Returns:
        A non-empty name matching ``[A-Za-z0-9_-]+`` that does not start
        with a digit.
    """
    sanitized = _DISALLOWED.sub("_", display_name)
    if sanitized[:1].isdigit():
        sanitized = _LEADING_DIGIT_PREFIX + sanitized
    return sanitized or _FALLBACK_NAME


def player_name(display_name: str) -> str:
    """Return the namespaced player name for a zone display name."""
    return PLAYER_PREFIX + sanitize_name(display_name)


def unique_player_name(display_name: str, taken: set[str]) -> str:
    """Return a player name not already in `taken`.

    A numeric suffix (``_2``, ``_3``, ...) is appended on collision, which
    happens when two zone names differ only in disallowed characters.
    """
    base = player_name(display_name)
    name = base
    suffix = 2
    while name in taken:
        name = f"{base}_{suffix}"
        suffix += 1
    return name
