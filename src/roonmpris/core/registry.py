"""Zone registry: the one piece of mutable state shared by engine and router.

Only the Qt main thread touches the registry, so it needs no locking.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass

from roonmpris.core.player import Player
from roonmpris.models.zone import Zone

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProjectionContext:
    """Per-zone projection state.

    Attributes:
        player: The player object exposing this zone.
        zone: Last zone snapshot received.
        base_address: Core address (host:port) used for artwork URLs.
        last_position_us: Last position reported to clients.
    """

    player: Player
    zone: Zone
    base_address: str
    last_position_us: int = 0

    @property
    def zone_id(self) -> str:
        """Return the zone ID."""
        return self.zone.zone_id

    @property
    def display_name(self) -> str:
        """Return the zone display name."""
        return self.zone.display_name


class ZoneRegistry:
    """Mapping from zone ID to ProjectionContext.

    Lookups and removals of unknown IDs return None instead of raising:
    events and control requests for vanished zones are routine.

    Example:
        registry = ZoneRegistry()
        registry.upsert("zone-1", context)
        if (ctx := registry.get("zone-1")) is not None:
            ctx.player.position = 0
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._contexts: dict[str, ProjectionContext] = {}

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, zone_id: object) -> bool:
        return zone_id in self._contexts

    def __iter__(self) -> Iterator[ProjectionContext]:
        # Snapshot so callers may remove while iterating
        return iter(list(self._contexts.values()))

    @property
    def zone_ids(self) -> list[str]:
        """Return the IDs of all known zones."""
        return list(self._contexts)

    @property
    def player_names(self) -> set[str]:
        """Return the names of all registered players."""
        return {ctx.player.name for ctx in self._contexts.values()}

    def upsert(self, zone_id: str, context: ProjectionContext) -> None:
        """Insert or replace the context for a zone."""
        self._contexts[zone_id] = context

    def get(self, zone_id: str) -> ProjectionContext | None:
        """Return the context for a zone, or None if unknown."""
        return self._contexts.get(zone_id)

    def remove(self, zone_id: str) -> ProjectionContext | None:
        """Remove and return the context for a zone, or None if unknown."""
        return self._contexts.pop(zone_id, None)

    def clear(self) -> list[ProjectionContext]:
        """Remove all contexts and return them."""
        contexts = list(self._contexts.values())
        self._contexts.clear()
        return contexts
