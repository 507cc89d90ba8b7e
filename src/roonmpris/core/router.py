"""Routing of MPRIS player requests to the Roon transport service.

Requests are resolved to their zone through the registry at the time they
arrive, and again when the transport reports completion: the zone may have
changed or disappeared while the call was in flight.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial

from PySide6.QtCore import QObject, Slot

from roonmpris.core.player import Player, Transport
from roonmpris.core.registry import ZoneRegistry
from roonmpris.core.seek import MICROSECONDS_PER_SECOND, seconds_to_us

logger = logging.getLogger(__name__)

# Controls passed to the core as-is
FORWARDED_CONTROLS = frozenset({"playpause", "stop", "next", "previous"})

SEEK_RELATIVE = "relative"
SEEK_ABSOLUTE = "absolute"


@dataclass(frozen=True, slots=True)
class PendingRequest:
    """An upstream call awaiting completion.

    Attributes:
        zone_id: Zone the call was issued for.
        action: "control", "seek" (relative) or "set_position" (absolute).
        command: Control name, for "control".
        offset_us: Seek offset, for "seek".
        position_us: Target position, for "set_position".
    """

    zone_id: str
    action: str
    command: str = ""
    offset_us: int = 0
    position_us: int = 0

    def describe(self) -> str:
        """Return a short description for log messages."""
        if self.action == "control":
            return self.command
        if self.action == "seek":
            return f"seek {self.offset_us:+d}us"
        return f"set position {self.position_us}us"


class CommandRouter(QObject):
    """Forward player requests for a zone to the upstream transport.

    Example:
        router = CommandRouter(registry, worker)
        router.bind(player, "zone-1")
        worker.request_finished.connect(router.on_request_finished)
    """

    def __init__(
        self,
        registry: ZoneRegistry,
        transport: Transport,
        parent: QObject | None = None,
    ) -> None:
        """Initialize the router.

        Args:
            registry: Registry shared with the projection engine.
            transport: Upstream control calls.
            parent: Optional Qt parent.
        """
        super().__init__(parent)
        self._registry = registry
        self._transport = transport
        self._pending: dict[int, PendingRequest] = {}

    @property
    def pending_count(self) -> int:
        """Return the number of calls awaiting completion."""
        return len(self._pending)

    def bind(self, player: Player, zone_id: str) -> None:
        """Route a player's inbound requests to `zone_id`."""
        player.control_requested.connect(partial(self.handle_control, zone_id))
        player.seek_requested.connect(partial(self.handle_seek, zone_id))
        player.position_requested.connect(partial(self.handle_set_position, zone_id))
        player.event_requested.connect(partial(self.handle_event, zone_id))

    def handle_control(self, zone_id: str, command: str) -> None:
        """Forward a transport control (play/pause toggle, stop, next, previous)."""
        context = self._registry.get(zone_id)
        if context is None:
            logger.debug("Control %s for unknown zone %s ignored", command, zone_id)
            return
        if command not in FORWARDED_CONTROLS:
            logger.info('Zone "%s": event %s', context.display_name, command)
            return

        logger.info('Zone "%s": %s', context.display_name, command)
        request = PendingRequest(zone_id=zone_id, action="control", command=command)
        self._issue(request, lambda: self._transport.control(zone_id, command))

    def handle_seek(self, zone_id: str, offset_us: int) -> None:
        """Seek relative to the current position."""
        context = self._registry.get(zone_id)
        if context is None:
            logger.debug("Seek for unknown zone %s ignored", zone_id)
            return
        if not context.zone.is_seek_allowed:
            logger.debug('Zone "%s": seek not allowed, dropped', context.display_name)
            return

        seconds = offset_us / MICROSECONDS_PER_SECOND
        request = PendingRequest(zone_id=zone_id, action="seek", offset_us=offset_us)
        self._issue(request, lambda: self._transport.seek(zone_id, SEEK_RELATIVE, seconds))

    def handle_set_position(self, zone_id: str, track_id: str, position_us: int) -> None:
        """Seek to an absolute position within the current track."""
        context = self._registry.get(zone_id)
        if context is None:
            logger.debug("SetPosition for unknown zone %s ignored", zone_id)
            return
        zone = context.zone
        if not zone.is_seek_allowed:
            logger.debug('Zone "%s": seek not allowed, dropped', context.display_name)
            return
        if position_us < 0:
            logger.debug('Zone "%s": negative position %d dropped', context.display_name, position_us)
            return
        length = zone.now_playing.length if zone.now_playing else None
        if length is not None and position_us > seconds_to_us(length):
            logger.debug('Zone "%s": position %d past track end', context.display_name, position_us)
            return
        current_track = context.player.metadata.track_id
        if track_id and current_track and track_id != current_track:
            logger.debug('Zone "%s": stale track id %s dropped', context.display_name, track_id)
            return

        seconds = position_us / MICROSECONDS_PER_SECOND
        request = PendingRequest(zone_id=zone_id, action="set_position", position_us=position_us)
        self._issue(request, lambda: self._transport.seek(zone_id, SEEK_ABSOLUTE, seconds))

    def handle_event(self, zone_id: str, name: str, args: object = None) -> None:
        """Log requests that are accepted but not supported."""
        context = self._registry.get(zone_id)
        display_name = context.display_name if context else zone_id
        if name == "quit":
            logger.info('Zone "%s": quit requested, ignoring', display_name)
            return
        logger.info('Zone "%s": event %s %r', display_name, name, args)

    def _issue(self, request: PendingRequest, call: Callable[[], int]) -> None:
        try:
            token = call()
        except ConnectionError as e:
            logger.warning("Cannot send %s for zone %s: %s", request.describe(), request.zone_id, e)
            return
        self._pending[token] = request

    @Slot(int, object)
    def on_request_finished(self, token: int, error: object) -> None:
        """Complete an upstream call.

        Args:
            token: Correlation token returned by the transport call.
            error: None on success, else the failure (exception or message).
        """
        request = self._pending.pop(token, None)
        if request is None:
            return

        context = self._registry.get(request.zone_id)
        if error is not None:
            display_name = context.display_name if context else request.zone_id
            logger.error('Zone "%s": %s failed: %s', display_name, request.describe(), error)
            return
        if context is None:
            logger.debug("Zone %s gone before %s completed", request.zone_id, request.describe())
            return

        if request.action == "seek":
            position_us = max(0, context.last_position_us + request.offset_us)
        elif request.action == "set_position":
            position_us = request.position_us
        else:
            return

        context.last_position_us = position_us
        context.player.position = position_us
        context.player.emit_seeked(position_us)
