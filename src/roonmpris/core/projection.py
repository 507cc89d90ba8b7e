"""Projection of Roon zone state onto MPRIS players.

The engine consumes zone batches from the transport subscription, keeps the
ZoneRegistry in step with the zones the core reports, and pushes computed
player state (metadata, status, capabilities, position) onto each zone's
player object.

It runs on the Qt main thread; the worker's signals are delivered here as
queued calls, so one batch is fully applied before the next starts.
"""

import logging
import re
from collections.abc import Iterable
from typing import Any

from PySide6.QtCore import QObject, Slot

from roonmpris.core.identity import track_id
from roonmpris.core.naming import unique_player_name
from roonmpris.core.player import PlayerFactory
from roonmpris.core.registry import ProjectionContext, ZoneRegistry
from roonmpris.core.router import CommandRouter
from roonmpris.core.seek import SeekClassifier, seconds_to_us
from roonmpris.models.metadata import VENDOR_PREFIX, TrackMetadata
from roonmpris.models.zone import SeekChange, Zone, ZoneEvent

logger = logging.getLogger(__name__)

# Roon joins multiple artists with " / "
_ARTIST_DELIMITER = re.compile(r"\s+/\s+")

IDENTITY_PREFIX = "Roon - "


def art_url(base_address: str, image_key: str) -> str:
    """Return the artwork URL for an image key on the core."""
    return f"http://{base_address}/image/{image_key}"


def split_artists(artist_line: str) -> tuple[str, ...]:
    """Split Roon's artist line into individual artists."""
    if not artist_line.strip():
        return ()
    return tuple(_ARTIST_DELIMITER.split(artist_line.strip()))


def build_metadata(zone: Zone, base_address: str) -> TrackMetadata:
    """Compute the metadata a zone's player should expose.

    Fields the zone does not provide are left unset. A zone without a
    now-playing record yields empty metadata.
    """
    now_playing = zone.now_playing
    if now_playing is None:
        return TrackMetadata()

    extra: dict[str, Any] = {}
    if now_playing.sample_rate is not None:
        extra[f"{VENDOR_PREFIX}sampleRate"] = int(now_playing.sample_rate)
    if now_playing.bit_depth is not None:
        extra[f"{VENDOR_PREFIX}bitDepth"] = int(now_playing.bit_depth)
    if now_playing.bitrate is not None:
        extra[f"{VENDOR_PREFIX}bitrate"] = int(now_playing.bitrate)
    if now_playing.format:
        extra[f"{VENDOR_PREFIX}format"] = now_playing.format
    if now_playing.source_type:
        extra[f"{VENDOR_PREFIX}sourceType"] = now_playing.source_type

    length_us = None
    if now_playing.length is not None:
        try:
            length_us = seconds_to_us(now_playing.length)
        except OverflowError:
            logger.warning(
                "Zone %s: track length %r out of range", zone.display_name, now_playing.length
            )

    return TrackMetadata(
        track_id=track_id(zone.zone_id, now_playing),
        length_us=length_us,
        art_url=art_url(base_address, now_playing.image_key) if now_playing.image_key else "",
        title=now_playing.title,
        album=now_playing.album,
        artists=split_artists(now_playing.artist),
        extra=extra,
    )


class ProjectionEngine(QObject):
    """Apply zone batches to the registry and project them onto players.

    Example:
        registry = ZoneRegistry()
        router = CommandRouter(registry, worker)
        engine = ProjectionEngine(registry, router, MprisPlayer)
        worker.zones_received.connect(engine.apply)
        worker.core_lost.connect(engine.on_connection_lost)
    """

    def __init__(
        self,
        registry: ZoneRegistry,
        router: CommandRouter,
        player_factory: PlayerFactory,
        classifier: SeekClassifier | None = None,
        parent: QObject | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            registry: Registry shared with the router.
            router: Router the players' inbound requests are bound to.
            player_factory: Creates an unpublished player from (name, identity).
            classifier: Seek/progress policy (defaults to the stock thresholds).
            parent: Optional Qt parent.
        """
        super().__init__(parent)
        self._registry = registry
        self._router = router
        self._player_factory = player_factory
        self._classifier = classifier or SeekClassifier()

    @property
    def registry(self) -> ZoneRegistry:
        """Return the zone registry."""
        return self._registry

    @Slot(object, str)
    def apply(self, event: ZoneEvent, base_address: str) -> None:
        """Apply one upstream batch in order: added, changed, removed, seek."""
        self.on_zones_added(event.added, base_address)
        self.on_zones_changed(event.changed)
        self.on_zones_removed(event.removed)
        self.on_zones_seek_changed(event.seek_changed)

    def on_zones_added(self, zones: Iterable[Zone], base_address: str) -> None:
        """Create, project and publish a player for each new zone."""
        for zone in zones:
            if not zone.zone_id:
                logger.warning("Ignoring zone without an ID: %r", zone.display_name)
                continue
            if zone.zone_id in self._registry:
                logger.debug("Zone %s already known, ignoring add", zone.zone_id)
                continue
            self._add_zone(zone, base_address)

    def _add_zone(self, zone: Zone, base_address: str) -> None:
        name = unique_player_name(zone.display_name, self._registry.player_names)
        logger.info('Creating MPRIS player "%s" for zone: %s', name, zone.display_name)
        try:
            player = self._player_factory(name, IDENTITY_PREFIX + zone.display_name)
        except Exception:
            logger.exception("Failed to create player for zone %s", zone.display_name)
            return

        self._router.bind(player, zone.zone_id)
        context = ProjectionContext(player=player, zone=zone, base_address=base_address)
        self._registry.upsert(zone.zone_id, context)
        self._project(context)

        try:
            player.publish()
        except Exception:
            logger.exception('Failed to publish player "%s"', name)
            self._registry.remove(zone.zone_id)
            self._close(context)

    def on_zones_changed(self, zones: Iterable[Zone]) -> None:
        """Replace the stored snapshot of each known zone and re-project it."""
        for zone in zones:
            context = self._registry.get(zone.zone_id)
            if context is None:
                logger.debug("Change for unknown zone %s ignored", zone.zone_id)
                continue
            context.zone = zone
            self._project(context)

    def on_zones_removed(self, zone_ids: Iterable[str]) -> None:
        """Withdraw and forget the players of removed zones."""
        for zone_id in zone_ids:
            context = self._registry.remove(zone_id)
            if context is None:
                logger.debug("Removal of unknown zone %s ignored", zone_id)
                continue
            logger.info("Removing MPRIS player for zone: %s", context.display_name)
            self._close(context)

    def on_zones_seek_changed(self, entries: Iterable[SeekChange]) -> None:
        """Push position updates, signalling Seeked when the position jumped."""
        for entry in entries:
            context = self._registry.get(entry.zone_id)
            if context is None:
                logger.debug("Seek update for unknown zone %s ignored", entry.zone_id)
                continue
            if entry.seek_position is None:
                continue
            try:
                position_us = seconds_to_us(entry.seek_position)
            except (ValueError, OverflowError):
                logger.exception("Bad seek position for zone %s", context.display_name)
                continue
            self._update_position(context, position_us)

    def _update_position(self, context: ProjectionContext, position_us: int) -> None:
        seeked = self._classifier.is_seek(context.last_position_us, position_us)
        context.last_position_us = position_us
        try:
            context.player.position = position_us
            if seeked:
                logger.debug("Zone %s seeked to %d us", context.display_name, position_us)
                context.player.emit_seeked(position_us)
        except Exception:
            logger.exception("Failed to update position for zone %s", context.display_name)

    @Slot()
    def on_connection_lost(self) -> None:
        """Withdraw every player after the core connection is gone."""
        contexts = self._registry.clear()
        for context in contexts:
            logger.info("Destroying player for zone: %s", context.display_name)
            self._close(context)

    def _project(self, context: ProjectionContext) -> None:
        """Push full state for one zone; errors are logged, never raised."""
        zone = context.zone
        player = context.player
        try:
            player.metadata = build_metadata(zone, context.base_address)
        except Exception:
            logger.exception("Failed to project metadata for zone %s", zone.display_name)
        try:
            player.playback_status = zone.playback_status
            player.can_go_next = zone.is_next_allowed
            player.can_go_previous = zone.is_previous_allowed
            # CanPlay is left untouched
            player.can_pause = zone.is_pause_allowed
            player.can_seek = zone.is_seek_allowed
        except Exception:
            logger.exception("Failed to project state for zone %s", zone.display_name)

    @staticmethod
    def _close(context: ProjectionContext) -> None:
        try:
            context.player.close()
        except Exception:
            logger.exception("Failed to close player for zone %s", context.display_name)
