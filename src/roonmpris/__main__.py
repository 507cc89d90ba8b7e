"""Main entry point for the Roon MPRIS bridge."""

import argparse
import logging
import signal
import sys
from typing import Any

from PySide6.QtCore import QCoreApplication, QTimer

from roonmpris import __version__
from roonmpris.api.client import DEFAULT_PORT
from roonmpris.core.config import DEFAULT_CONFIG_DIR, ConfigManager
from roonmpris.core.discovery import CoreDiscovery
from roonmpris.core.projection import ProjectionEngine
from roonmpris.core.registry import ZoneRegistry
from roonmpris.core.router import CommandRouter
from roonmpris.core.worker import RoonWorker
from roonmpris.models.core_info import CoreInfo
from roonmpris.mpris.player import MprisPlayer

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="roon-mpris",
        description="Expose every Roon zone as its own MPRIS media player",
    )
    parser.add_argument("-H", "--host", default=None, help="Roon Core hostname or IP (default: discover)")
    parser.add_argument(
        "-p", "--port", type=int, default=DEFAULT_PORT, help=f"Roon Core port (default: {DEFAULT_PORT})"
    )
    parser.add_argument(
        "-c", "--config", default=str(DEFAULT_CONFIG_DIR), help="config directory (default: %(default)s)"
    )
    parser.add_argument(
        "-l", "--log", choices=("none", "all"), default="none", help="Roon API wire logging"
    )
    parser.add_argument(
        "-P", "--pause-all", action="store_true", help="pause all zones and exit"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def setup_logging(verbose: bool, wire: str) -> None:
    """Configure root logging and the Roon API wire log."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)
    logging.getLogger("roonmpris.api").setLevel(logging.DEBUG if wire == "all" else logging.WARNING)


def discover_core() -> tuple[str, int] | None:
    """Discover a Roon Core on the network.

    Returns:
        Tuple of (host, port) if found, None otherwise.
    """
    logger.info("Searching for Roon Cores via SOOD...")
    try:
        core = CoreDiscovery.discover_one(timeout=5.0)
    except OSError as e:
        logger.error("Discovery failed: %s", e)
        return None
    if core:
        logger.info("Found core: %s at %s:%d", core.display_name, core.host, core.port)
        return (core.host, core.port)
    logger.warning("No Roon Cores found via SOOD")
    return None


def install_signal_handlers(app: QCoreApplication) -> QTimer:
    """Quit the application on SIGINT/SIGTERM.

    Python signal handlers only run when the interpreter regains control,
    so a timer wakes it periodically while Qt's event loop is running.
    """
    signal.signal(signal.SIGINT, lambda *_: app.quit())
    signal.signal(signal.SIGTERM, lambda *_: app.quit())
    timer = QTimer()
    timer.start(500)
    timer.timeout.connect(lambda: None)
    return timer


def run_pause_all(app: QCoreApplication, worker: RoonWorker) -> int:
    """Pause every zone once paired, then exit.

    Returns:
        0 if the core accepted the request, 1 otherwise.
    """
    pause_token: int | None = None

    def on_core_paired(core: CoreInfo) -> None:
        nonlocal pause_token
        logger.info("Pausing all zones on %s", core.display_name)
        try:
            pause_token = worker.pause_all()
        except ConnectionError as e:
            logger.error("Cannot pause all zones: %s", e)
            app.exit(1)

    def on_request_finished(token: int, error: object) -> None:
        if token != pause_token:
            return
        if error is not None:
            logger.error("Pause all failed: %s", error)
            app.exit(1)
        else:
            logger.info("Paused all zones")
            app.exit(0)

    worker.core_paired.connect(on_core_paired)
    worker.request_finished.connect(on_request_finished)
    worker.start()
    return app.exec()


def main() -> int:
    """Run the bridge.

    Returns:
        Exit code (0 for success).
    """
    args = parse_args(sys.argv[1:])
    setup_logging(args.verbose, args.log)

    QCoreApplication.setApplicationName("roon-mpris")
    QCoreApplication.setApplicationVersion(__version__)
    app = QCoreApplication(sys.argv[:1])
    _signal_timer = install_signal_handlers(app)

    config = ConfigManager(args.config)
    logger.debug("Using config %s", config.path)

    host: str | None = args.host
    port: int = args.port
    if not host:
        result = discover_core()
        if result is None:
            logger.error("No Roon Core found; pass --host to connect directly")
            return 1
        host, port = result

    worker = RoonWorker(
        host,
        port,
        tokens=config.get_tokens(),
        settings_values=config.get_settings_values(),
        subscribe=not args.pause_all,
    )

    def on_token_received(core_id: str, token: str) -> None:
        config.set_token(core_id, token)
        config.sync()

    def on_core_paired(core: CoreInfo) -> None:
        logger.info("Connected to Roon Core %s at %s", core.display_name, core.address)
        config.set_paired_core_id(core.core_id)
        config.sync()

    def on_settings_saved(values: dict[str, Any]) -> None:
        config.set_settings_values(values)
        config.sync()

    def on_core_lost() -> None:
        logger.warning("Connection to Roon Core lost")

    def on_error(err: object) -> None:
        logger.error("Error: %s", err)

    worker.token_received.connect(on_token_received)
    worker.core_paired.connect(on_core_paired)
    worker.settings_saved.connect(on_settings_saved)
    worker.core_lost.connect(on_core_lost)
    worker.error_occurred.connect(on_error)

    if args.pause_all:
        exit_code = run_pause_all(app, worker)
        worker.stop()
        worker.wait()
        return exit_code

    registry = ZoneRegistry()
    router = CommandRouter(registry, worker)
    engine = ProjectionEngine(
        registry, router, MprisPlayer, classifier=config.get_seek_classifier()
    )

    worker.zones_received.connect(engine.apply)
    worker.request_finished.connect(router.on_request_finished)
    worker.core_lost.connect(engine.on_connection_lost)

    # Start worker thread
    worker.start()

    # Run the application
    exit_code = app.exec()

    # Cleanup
    logger.info("Shutting down")
    worker.stop()
    worker.wait()
    engine.on_connection_lost()
    config.sync()

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
