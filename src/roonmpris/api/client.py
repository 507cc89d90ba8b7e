"""Roon Core client speaking MOO over WebSocket.

The core listens on ``ws://<host>:<port>/api``. After connecting, the
extension asks the registry for the core's identity and registers itself;
the core only answers the registration once the user has enabled the
extension under Settings > Extensions in Roon. From then on the core may
also send requests to the services the extension provides (ping, settings).
"""

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from roonmpris import __version__
from roonmpris.api.protocol import (
    STATUS_SUCCESS,
    VERB_COMPLETE,
    VERB_CONTINUE,
    MooError,
    MooMessage,
    MooParseError,
)
from roonmpris.models.core_info import CoreInfo
from roonmpris.models.zone import ZoneEvent

logger = logging.getLogger(__name__)

REGISTRY_SERVICE = "com.roonlabs.registry:1"
PING_SERVICE = "com.roonlabs.ping:1"
SETTINGS_SERVICE = "com.roonlabs.settings:1"
TRANSPORT_SERVICE = "com.roonlabs.transport:2"

STATUS_REGISTERED = "Registered"
STATUS_INVALID_REQUEST = "InvalidRequest"

DEFAULT_PORT = 9100

# Type aliases for handlers
ConnectionHandler = Callable[[], None]
ErrorHandler = Callable[[Exception], None]
MessageHandler = Callable[[MooMessage], None]
ServiceHandler = Callable[[MooMessage], Awaitable[None]]
ZoneEventHandler = Callable[[ZoneEvent], None]


@dataclass(frozen=True)
class ExtensionInfo:
    """How the extension presents itself in Roon's Extensions list."""

    extension_id: str = "org.roonmpris.multizone"
    display_name: str = "Roon MPRIS Multi-Zone Bridge"
    display_version: str = __version__
    publisher: str = "roon-mpris"
    email: str = "roon-mpris@users.noreply.github.com"
    website: str = "https://github.com/roon-mpris/roon-mpris"
    required_services: list[str] = field(default_factory=lambda: [TRANSPORT_SERVICE])
    optional_services: list[str] = field(default_factory=list)
    provided_services: list[str] = field(
        default_factory=lambda: [PING_SERVICE, SETTINGS_SERVICE]
    )

    def to_dict(self, token: str | None = None) -> dict[str, Any]:
        """Return the registration body."""
        result: dict[str, Any] = {
            "extension_id": self.extension_id,
            "display_name": self.display_name,
            "display_version": self.display_version,
            "publisher": self.publisher,
            "email": self.email,
            "website": self.website,
            "required_services": list(self.required_services),
            "optional_services": list(self.optional_services),
            "provided_services": list(self.provided_services),
        }
        if token:
            result["token"] = token
        return result


class RoonClient:
    """Async WebSocket client for the Roon Core API.

    Example:
        async with RoonClient("192.168.1.5", 9100) as client:
            core = await client.register()
            await client.subscribe_zones(lambda event: print(event))
    """

    _DEFAULT_TIMEOUT: float = 10.0

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        extension: ExtensionInfo | None = None,
        tokens: dict[str, str] | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the client.

        Args:
            host: Core hostname or IP address.
            port: Core HTTP/WebSocket port (default 9100).
            extension: Registration info (defaults to ExtensionInfo()).
            tokens: Saved pairing tokens by core ID.
            timeout: Connect/request timeout in seconds.
        """
        self._host = host
        self._port = port
        self._extension = extension or ExtensionInfo()
        self._tokens: dict[str, str] = dict(tokens or {})
        self._timeout = timeout
        self._ws: ClientConnection | None = None
        self._request_ids = itertools.count()
        self._subscription_keys = itertools.count()
        self._pending: dict[int, asyncio.Future[MooMessage]] = {}
        self._subscriptions: dict[int, MessageHandler] = {}
        self._services: dict[str, ServiceHandler] = {PING_SERVICE: self._handle_ping}
        self._connected: bool = False
        self._core: CoreInfo | None = None
        self._receive_task: asyncio.Task[None] | None = None

        # Event handlers
        self._on_disconnect: ConnectionHandler | None = None
        self._on_error: ErrorHandler | None = None

    @property
    def host(self) -> str:
        """Return core host."""
        return self._host

    @property
    def port(self) -> int:
        """Return core port."""
        return self._port

    @property
    def url(self) -> str:
        """Return the WebSocket URL."""
        return f"ws://{self._host}:{self._port}/api"

    @property
    def is_connected(self) -> bool:
        """Return True if connected to the core."""
        return self._connected and self._ws is not None

    @property
    def is_paired(self) -> bool:
        """Return True once registration has been accepted."""
        return self.is_connected and self._core is not None

    @property
    def core(self) -> CoreInfo | None:
        """Return the paired core, or None."""
        return self._core

    @property
    def tokens(self) -> dict[str, str]:
        """Return pairing tokens by core ID."""
        return dict(self._tokens)

    def set_event_handlers(
        self,
        on_disconnect: ConnectionHandler | None = None,
        on_error: ErrorHandler | None = None,
    ) -> None:
        """Set event handlers for client events.

        Args:
            on_disconnect: Handler for disconnect events.
            on_error: Handler for errors.
        """
        self._on_disconnect = on_disconnect
        self._on_error = on_error

    def add_service(self, service: str, handler: ServiceHandler) -> None:
        """Handle inbound requests for a provided service.

        Args:
            service: Service name, e.g. "com.roonlabs.settings:1".
            handler: Coroutine called with each request; it must reply.
        """
        self._services[service] = handler

    async def __aenter__(self) -> "RoonClient":
        """Enter async context (connect)."""
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Exit async context (disconnect)."""
        await self.disconnect()

    async def connect(self) -> None:
        """Open the WebSocket connection.

        Raises:
            ConnectionError: If the connection fails or times out.
        """
        if self._connected:
            return

        try:
            self._ws = await connect(
                self.url, open_timeout=self._timeout, max_size=None, ping_interval=None
            )
        except (OSError, TimeoutError, InvalidHandshake, InvalidURI) as e:
            self._ws = None
            raise ConnectionError(f"Failed to connect to {self.url}: {e}") from e

        self._connected = True
        self._receive_task = asyncio.create_task(self._receive_loop())
        logger.debug("Connected to %s", self.url)

    async def disconnect(self) -> None:
        """Close the connection and fail pending requests."""
        self._connected = False

        if self._receive_task:
            self._receive_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._receive_task
            self._receive_task = None

        if self._ws:
            try:
                await asyncio.wait_for(self._ws.close(), timeout=1.0)
            except (OSError, TimeoutError, asyncio.CancelledError):
                pass
            self._ws = None

        self._fail_pending(ConnectionError("Connection closed"))
        self._subscriptions.clear()
        self._core = None

    def _fail_pending(self, error: Exception) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()

    async def _receive_loop(self) -> None:
        """Background task to receive and dispatch messages."""
        if self._ws is None:
            return

        try:
            async for frame in self._ws:
                try:
                    message = MooMessage.parse(frame)
                except MooParseError as e:
                    self._emit_error(e)
                    continue
                logger.debug("<- %s %s [%d]", message.verb, message.name, message.request_id)
                try:
                    await self._handle_message(message)
                except Exception as e:  # noqa: BLE001
                    self._emit_error(e)
        except ConnectionClosed as e:
            logger.debug("Connection closed by core: %s", e)
        except asyncio.CancelledError:
            pass
        finally:
            self._connected = False
            self._fail_pending(ConnectionError("Connection closed"))
            self._emit_disconnect()

    async def _handle_message(self, message: MooMessage) -> None:
        """Dispatch one incoming message."""
        if message.is_request:
            await self._handle_request(message)
            return

        subscription = self._subscriptions.get(message.request_id)
        if subscription is not None:
            if message.is_complete:
                del self._subscriptions[message.request_id]
            subscription(message)
            return

        future = self._pending.pop(message.request_id, None)
        if future and not future.done():
            future.set_result(message)

    async def _handle_request(self, message: MooMessage) -> None:
        handler = self._services.get(message.service)
        if handler is None:
            logger.debug("Unhandled request %s", message.name)
            await self.send(
                message.reply(
                    VERB_COMPLETE,
                    STATUS_INVALID_REQUEST,
                    {"error": f"unknown request name: {message.name}"},
                )
            )
            return
        await handler(message)

    async def _handle_ping(self, message: MooMessage) -> None:
        await self.send(message.reply(VERB_COMPLETE, STATUS_SUCCESS))

    def _emit_disconnect(self) -> None:
        """Emit disconnect to handler."""
        if self._on_disconnect:
            try:
                loop = asyncio.get_event_loop()
                if loop.is_running():
                    loop.call_soon(self._on_disconnect)
            except RuntimeError:
                logger.debug("Cannot emit disconnect: no event loop running")

    def _emit_error(self, error: Exception) -> None:
        """Emit error to handler."""
        logger.debug("Client error: %s", error)
        if self._on_error:
            try:
                loop = asyncio.get_event_loop()
                if loop.is_running():
                    loop.call_soon(self._on_error, error)
            except RuntimeError:
                logger.debug("Cannot emit error: no event loop running")

    async def send(self, message: MooMessage) -> None:
        """Send one message.

        Raises:
            ConnectionError: If not connected or the send fails.
        """
        if not self.is_connected or self._ws is None:
            raise ConnectionError("Not connected to core")
        logger.debug("-> %s %s [%d]", message.verb, message.name, message.request_id)
        try:
            await asyncio.wait_for(self._ws.send(message.to_bytes()), timeout=self._timeout)
        except (ConnectionClosed, TimeoutError) as e:
            raise ConnectionError(f"Failed to send {message.name}: {e}") from e

    async def request(
        self,
        name: str,
        body: dict[str, Any] | None = None,
        timeout: float | None = None,
        wait_forever: bool = False,
    ) -> MooMessage:
        """Send a request and wait for the first response.

        Args:
            name: Service method, e.g. "com.roonlabs.transport:2/control".
            body: Request body.
            timeout: Seconds to wait for the response (default: the client timeout).
            wait_forever: Wait for the response without any timeout.

        Returns:
            The first response (COMPLETE or CONTINUE).

        Raises:
            ConnectionError: If not connected, closed, or timed out.
            MooError: If the request completed with a non-Success status.
        """
        if wait_forever:
            timeout = None
        elif timeout is None:
            timeout = self._timeout
        request_id = next(self._request_ids)
        future: asyncio.Future[MooMessage] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        try:
            await self.send(MooMessage.request(name, request_id, body))
            response = await asyncio.wait_for(future, timeout=timeout)
        except TimeoutError:
            raise ConnectionError(f"Request {request_id} ({name}) timed out") from None
        finally:
            self._pending.pop(request_id, None)

        if response.is_complete and not response.is_success:
            raise MooError(response.name, response.body)
        return response

    async def subscribe(
        self,
        service: str,
        name: str,
        handler: MessageHandler,
    ) -> int:
        """Start a subscription and route every response to `handler`.

        Args:
            service: Service name, e.g. TRANSPORT_SERVICE.
            name: Subscription name, e.g. "zones" for subscribe_zones.
            handler: Called with each CONTINUE message (and the final COMPLETE).

        Returns:
            The subscription key.
        """
        key = next(self._subscription_keys)
        request_id = next(self._request_ids)
        self._subscriptions[request_id] = handler
        try:
            await self.send(
                MooMessage.request(
                    f"{service}/subscribe_{name}", request_id, {"subscription_key": key}
                )
            )
        except ConnectionError:
            self._subscriptions.pop(request_id, None)
            raise
        return key

    async def register(self) -> CoreInfo:
        """Identify the core and register the extension with it.

        Waits without timeout for the user to enable the extension in Roon.

        Returns:
            The paired core.

        Raises:
            ConnectionError: If the connection drops while waiting.
            MooError: If the core rejects the registration.
        """
        info = await self.request(f"{REGISTRY_SERVICE}/info")
        core_id = str((info.body or {}).get("core_id", ""))
        token = self._tokens.get(core_id)
        if token is None:
            logger.info(
                "Waiting for authorization: enable the extension in Roon under Settings > Extensions"
            )

        response = await self.request(
            f"{REGISTRY_SERVICE}/register",
            self._extension.to_dict(token),
            wait_forever=True,
        )
        if response.name != STATUS_REGISTERED:
            raise MooError(response.name, response.body)

        body = response.body or {}
        core = CoreInfo.from_dict(body, self._host, self._port)
        new_token = body.get("token")
        if isinstance(new_token, str) and new_token:
            self._tokens[core.core_id] = new_token
        self._core = core
        logger.info("Paired with core %s (%s)", core.display_name, core.display_version)
        return core

    # Transport service

    async def subscribe_zones(self, handler: ZoneEventHandler) -> int:
        """Subscribe to zone changes.

        The first event lists every zone as added; later events carry the
        changes since the previous one.
        """

        def on_message(message: MooMessage) -> None:
            if message.verb != VERB_CONTINUE or message.body is None:
                logger.debug("Zone subscription ended: %s", message.name)
                return
            handler(ZoneEvent.from_dict(message.body))

        return await self.subscribe(TRANSPORT_SERVICE, "zones", on_message)

    async def control(self, zone_id: str, control: str) -> None:
        """Send a transport control ("playpause", "stop", "next", ...) to a zone."""
        await self.request(
            f"{TRANSPORT_SERVICE}/control",
            {"zone_or_output_id": zone_id, "control": control},
        )

    async def seek(self, zone_id: str, how: str, seconds: float) -> None:
        """Seek a zone.

        Args:
            zone_id: Zone to seek.
            how: "relative" or "absolute".
            seconds: Offset or target position in seconds.
        """
        await self.request(
            f"{TRANSPORT_SERVICE}/seek",
            {"zone_or_output_id": zone_id, "how": how, "seconds": seconds},
        )

    async def pause_all(self) -> None:
        """Pause every zone."""
        await self.request(f"{TRANSPORT_SERVICE}/pause_all", {})
