"""Core bridge logic.

This module contains the logic that maps Roon zones onto MPRIS players and
bridges the async Roon client with the Qt main thread.

Classes:
    ZoneRegistry: Zone ID to projection context mapping.
    ProjectionEngine: Applies zone batches and projects them onto players.
    CommandRouter: Forwards player requests to the Roon transport.
    RoonWorker: QThread worker for the async client.
    ConfigManager: QSettings wrapper for configuration.
    CoreDiscovery: SOOD discovery of Roon Cores.
"""

from roonmpris.core.config import ConfigManager
from roonmpris.core.discovery import CoreDiscovery, DiscoveredCore
from roonmpris.core.projection import ProjectionEngine
from roonmpris.core.registry import ProjectionContext, ZoneRegistry
from roonmpris.core.router import CommandRouter
from roonmpris.core.seek import SeekClassifier
from roonmpris.core.worker import RoonWorker

__all__ = [
    "CommandRouter",
    "ConfigManager",
    "CoreDiscovery",
    "DiscoveredCore",
    "ProjectionContext",
    "ProjectionEngine",
    "RoonWorker",
    "SeekClassifier",
    "ZoneRegistry",
]
