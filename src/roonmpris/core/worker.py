"""QThread worker for running the async RoonClient in a Qt application.

The projection engine, router and MPRIS players live in the main thread,
but the RoonClient uses asyncio. This worker runs the asyncio event loop in
a background thread and bridges events to the main thread via Qt signals.
"""

import asyncio
import itertools
import logging
from collections.abc import Coroutine
from typing import Any

from PySide6.QtCore import QThread, Signal

from roonmpris.api.client import DEFAULT_PORT, ExtensionInfo, RoonClient
from roonmpris.api.protocol import MooError
from roonmpris.api.settings import SettingsService
from roonmpris.models.zone import ZoneEvent

logger = logging.getLogger(__name__)


class RoonWorker(QThread):
    """Background thread worker for the Roon Core connection.

    Connects, registers the extension, subscribes to zones and reconnects
    with backoff when the connection drops. Transport calls return a token
    immediately; the result arrives later via `request_finished`.

    Example:
        worker = RoonWorker("192.168.1.5", 9100, tokens=config.get_tokens())
        worker.zones_received.connect(engine.apply)
        worker.request_finished.connect(router.on_request_finished)
        worker.core_lost.connect(engine.on_connection_lost)
        worker.start()
    """

    # Connection state signals
    connected = Signal()  # WebSocket open, registration pending
    core_paired = Signal(object)  # CoreInfo
    core_lost = Signal()  # Paired connection ended

    # Data signals
    zones_received = Signal(object, str)  # ZoneEvent, base address
    request_finished = Signal(int, object)  # token, None or error

    # Persistence signals
    token_received = Signal(str, str)  # core ID, token
    settings_saved = Signal(object)  # dict of values

    # Error signal
    error_occurred = Signal(object)  # Exception

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        extension: ExtensionInfo | None = None,
        tokens: dict[str, str] | None = None,
        settings_values: dict[str, Any] | None = None,
        subscribe: bool = True,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the worker.

        Args:
            host: Core hostname or IP.
            port: Core port (default 9100).
            extension: Registration info.
            tokens: Saved pairing tokens by core ID.
            settings_values: Saved extension settings values.
            subscribe: Subscribe to zone changes after pairing.
            timeout: Connect/request timeout in seconds.
        """
        super().__init__()
        self._host = host
        self._port = port
        self._extension = extension or ExtensionInfo()
        self._tokens: dict[str, str] = dict(tokens or {})
        self._settings_values: dict[str, Any] = dict(settings_values or {})
        self._subscribe = subscribe
        self._timeout = timeout
        self._client: RoonClient | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_event: asyncio.Event | None = None
        self._tokens_issued = itertools.count(1)
        self._should_run = True
        self._reconnect_delay = 2.0  # Initial reconnect delay

    @property
    def host(self) -> str:
        """Return core host."""
        return self._host

    @property
    def port(self) -> int:
        """Return core port."""
        return self._port

    @property
    def base_address(self) -> str:
        """Return host:port, the base for artwork URLs."""
        return f"{self._host}:{self._port}"

    @property
    def is_paired(self) -> bool:
        """Return True if registered with a core."""
        return self._client is not None and self._client.is_paired

    def stop(self) -> None:
        """Signal the worker to stop (called from main thread)."""
        self._should_run = False
        if self._loop and self._loop.is_running():
            if self._stop_event is not None:
                self._loop.call_soon_threadsafe(self._stop_event.set)
            if self._client:
                asyncio.run_coroutine_threadsafe(self._client.disconnect(), self._loop)

    def control(self, zone_id: str, command: str) -> int:
        """Send a transport control to a zone.

        Thread-safe call from main thread.

        Returns:
            Token reported back with `request_finished`.

        Raises:
            ConnectionError: If not paired with a core.
        """
        client = self._require_client()
        return self._submit(client.control(zone_id, command))

    def seek(self, zone_id: str, how: str, seconds: float) -> int:
        """Seek a zone ("relative" or "absolute").

        Thread-safe call from main thread.

        Raises:
            ConnectionError: If not paired with a core.
        """
        client = self._require_client()
        return self._submit(client.seek(zone_id, how, seconds))

    def pause_all(self) -> int:
        """Pause every zone.

        Thread-safe call from main thread.

        Raises:
            ConnectionError: If not paired with a core.
        """
        client = self._require_client()
        return self._submit(client.pause_all())

    def _require_client(self) -> RoonClient:
        client = self._client
        if client is None or not client.is_paired or not self._loop or not self._loop.is_running():
            raise ConnectionError("Not connected to a Roon Core")
        return client

    def _submit(self, coro: Coroutine[Any, Any, None]) -> int:
        assert self._loop is not None
        token = next(self._tokens_issued)
        asyncio.run_coroutine_threadsafe(self._run_request(token, coro), self._loop)
        return token

    async def _run_request(self, token: int, coro: Coroutine[Any, Any, None]) -> None:
        """Run one transport call and report its outcome."""
        try:
            await coro
        except (ConnectionError, MooError) as e:
            self.request_finished.emit(token, e)
        else:
            self.request_finished.emit(token, None)

    def run(self) -> None:
        """Run the worker thread (entry point)."""
        # Create new event loop for this thread
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        self._stop_event = asyncio.Event()

        try:
            self._loop.run_until_complete(self._connection_loop())
        except Exception as e:
            self.error_occurred.emit(e)
        finally:
            if self._client:
                self._loop.run_until_complete(self._client.disconnect())
            self._loop.close()
            self._loop = None
            self._stop_event = None
            self._client = None

    async def _connection_loop(self) -> None:
        """Main connection loop with auto-reconnect."""
        reconnect_delay = self._reconnect_delay

        while self._should_run:
            client = RoonClient(
                self._host,
                self._port,
                extension=self._extension,
                tokens=self._tokens,
                timeout=self._timeout,
            )
            client.set_event_handlers(on_error=self._on_error)
            SettingsService(self._settings_values, on_saved=self._on_settings_saved).attach(
                client
            )
            self._client = client
            paired = False

            try:
                await client.connect()
                self.connected.emit()

                core = await client.register()
                paired = True
                reconnect_delay = self._reconnect_delay  # Reset delay
                self._remember_token(core.core_id, client.tokens.get(core.core_id))
                self.core_paired.emit(core)

                if self._subscribe:
                    await client.subscribe_zones(self._on_zones)

                # Keep connection alive until disconnected
                while self._should_run and client.is_connected:
                    await asyncio.sleep(0.5)

            except (OSError, ConnectionError, MooError) as e:
                if self._should_run:
                    self.error_occurred.emit(e)
            finally:
                await client.disconnect()
                if paired:
                    self.core_lost.emit()

            if not self._should_run:
                break

            # Auto-reconnect with backoff
            logger.info("Reconnecting to %s in %.0fs", self.base_address, reconnect_delay)
            await self._wait_stop(reconnect_delay)
            reconnect_delay = min(reconnect_delay * 2, 30.0)  # Max 30s

    async def _wait_stop(self, delay: float) -> None:
        """Sleep for `delay` seconds, returning early on stop()."""
        assert self._stop_event is not None
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except TimeoutError:
            pass

    def _remember_token(self, core_id: str, token: str | None) -> None:
        if not token or self._tokens.get(core_id) == token:
            return
        self._tokens[core_id] = token
        self.token_received.emit(core_id, token)

    def _on_zones(self, event: ZoneEvent) -> None:
        """Handle a zone subscription update."""
        self.zones_received.emit(event, self.base_address)

    def _on_settings_saved(self, values: dict[str, Any]) -> None:
        self._settings_values = dict(values)
        self.settings_saved.emit(values)

    def _on_error(self, error: Exception) -> None:
        """Handle client error."""
        self.error_occurred.emit(error)
