"""Test fixtures for roonmpris tests."""

import asyncio
import itertools
import os
import threading
from collections.abc import AsyncGenerator, Generator
from typing import Any

import pytest
from PySide6.QtCore import QObject, Signal
from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from roonmpris.api.protocol import VERB_COMPLETE, VERB_CONTINUE, MooMessage
from roonmpris.models.metadata import TrackMetadata

# pytest-qt needs a platform plugin; run headless
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

BASE_ADDRESS = "192.168.1.5:9100"


class FakePlayer(QObject):
    """In-memory stand-in for an MPRIS player."""

    control_requested = Signal(str)
    seek_requested = Signal(object)
    position_requested = Signal(str, object)
    event_requested = Signal(str, object)

    def __init__(self, name: str, identity: str, fail_publish: bool = False) -> None:
        super().__init__()
        self.name = name
        self.identity = identity
        self.metadata = TrackMetadata()
        self.playback_status = "Stopped"
        self.can_go_next = False
        self.can_go_previous = False
        self.can_play = True
        self.can_pause = False
        self.can_seek = False
        self.position = 0
        self.seeked: list[int] = []
        self.published = False
        self.state_at_publish: dict[str, Any] | None = None
        self.closed = False
        self._fail_publish = fail_publish

    def emit_seeked(self, position_us: int) -> None:
        self.seeked.append(position_us)

    def publish(self) -> None:
        if self._fail_publish:
            raise RuntimeError("name already taken")
        self.state_at_publish = {
            "metadata": self.metadata,
            "playback_status": self.playback_status,
            "can_go_next": self.can_go_next,
            "can_go_previous": self.can_go_previous,
            "can_play": self.can_play,
            "can_pause": self.can_pause,
            "can_seek": self.can_seek,
        }
        self.published = True

    def close(self) -> None:
        self.closed = True


class PlayerFactory:
    """Records every player it creates."""

    def __init__(self) -> None:
        self.players: list[FakePlayer] = []
        self.fail_publish_names: set[str] = set()

    def __call__(self, name: str, identity: str) -> FakePlayer:
        player = FakePlayer(name, identity, fail_publish=name in self.fail_publish_names)
        self.players.append(player)
        return player

    def by_name(self, name: str) -> FakePlayer:
        return next(p for p in self.players if p.name == name)


class FakeTransport:
    """Records upstream calls and hands out correlation tokens."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.connected = True
        self._tokens = itertools.count(1)

    def control(self, zone_id: str, command: str) -> int:
        return self._record("control", zone_id, command)

    def seek(self, zone_id: str, how: str, seconds: float) -> int:
        return self._record("seek", zone_id, how, seconds)

    def _record(self, *call: Any) -> int:
        if not self.connected:
            raise ConnectionError("Not connected to a Roon Core")
        self.calls.append(call)
        return next(self._tokens)


def make_zone_dict(
    zone_id: str = "zone-1",
    display_name: str = "Living Room",
    state: str = "playing",
    now_playing: dict[str, Any] | None = None,
    **flags: bool,
) -> dict[str, Any]:
    """Return a zone JSON object as the core sends it."""
    zone: dict[str, Any] = {
        "zone_id": zone_id,
        "display_name": display_name,
        "state": state,
        "is_next_allowed": flags.get("is_next_allowed", True),
        "is_previous_allowed": flags.get("is_previous_allowed", True),
        "is_pause_allowed": flags.get("is_pause_allowed", True),
        "is_play_allowed": flags.get("is_play_allowed", False),
        "is_seek_allowed": flags.get("is_seek_allowed", True),
    }
    if now_playing is not None:
        zone["now_playing"] = now_playing
    return zone


def make_now_playing(
    title: str = "Song",
    artist: str = "Artist A / Artist B",
    album: str = "Album",
    length: float | None = 200,
    seek_position: float | None = 0,
    image_key: str = "img1",
) -> dict[str, Any]:
    """Return a now_playing JSON object."""
    now_playing: dict[str, Any] = {
        "three_line": {"line1": title, "line2": artist, "line3": album},
        "seek_position": seek_position,
        "image_key": image_key,
    }
    if length is not None:
        now_playing["length"] = length
    return now_playing


@pytest.fixture
def player_factory() -> PlayerFactory:
    """Return a recording player factory."""
    return PlayerFactory()


@pytest.fixture
def transport() -> FakeTransport:
    """Return a recording transport."""
    return FakeTransport()


@pytest.fixture
def sample_zone_dict() -> dict[str, Any]:
    """Return a playing zone with a full now-playing record."""
    return make_zone_dict(now_playing=make_now_playing())


class MockRoonCore:
    """Scripted Roon Core speaking MOO over WebSocket.

    Answers registry and transport requests, records everything it
    receives, and can send requests to the connected extension.
    """

    core_id = "core-1"
    display_name = "Test Core"
    display_version = "2.0 (build 1234)"

    def __init__(self) -> None:
        self.zones: list[dict[str, Any]] = [
            make_zone_dict(now_playing=make_now_playing()),
            make_zone_dict("zone-2", "Kitchen", state="stopped"),
        ]
        self.token = "token-1"
        self.fail_transport = False
        self.silent_methods: set[str] = set()
        self.received: list[MooMessage] = []
        self.connection: ServerConnection | None = None
        self._request_ids = itertools.count(1000)
        self._replies: dict[int, asyncio.Future[MooMessage]] = {}
        self._subscription_id: int | None = None

    async def handler(self, websocket: ServerConnection) -> None:
        """Serve one extension connection."""
        self.connection = websocket
        try:
            async for frame in websocket:
                message = MooMessage.parse(frame)
                self.received.append(message)
                if message.is_request:
                    await self._answer(websocket, message)
                    continue
                future = self._replies.pop(message.request_id, None)
                if future and not future.done():
                    future.set_result(message)
        except ConnectionClosed:
            pass

    def requests_named(self, name: str) -> list[MooMessage]:
        """Return received requests for a method name."""
        return [m for m in self.received if m.is_request and m.name == name]

    async def _answer(self, websocket: ServerConnection, message: MooMessage) -> None:
        core = {
            "core_id": self.core_id,
            "display_name": self.display_name,
            "display_version": self.display_version,
        }
        method = message.method
        if method in self.silent_methods:
            return
        if message.name == "com.roonlabs.registry:1/info":
            reply = message.reply(VERB_COMPLETE, "Success", core)
        elif message.name == "com.roonlabs.registry:1/register":
            reply = message.reply(VERB_CONTINUE, "Registered", {**core, "token": self.token})
        elif method == "subscribe_zones":
            self._subscription_id = message.request_id
            reply = message.reply(VERB_CONTINUE, "Subscribed", {"zones": self.zones})
        elif method in {"control", "seek", "pause_all"}:
            if self.fail_transport:
                reply = message.reply(VERB_COMPLETE, "InvalidRequest", {"message": "Zone not found"})
            else:
                reply = message.reply(VERB_COMPLETE, "Success")
        else:
            reply = message.reply(VERB_COMPLETE, "InvalidRequest", {"error": "unknown"})
        await websocket.send(reply.to_bytes())

    async def send_changed(self, body: dict[str, Any]) -> None:
        """Push a zone `Changed` message on the zone subscription."""
        assert self.connection is not None and self._subscription_id is not None
        message = MooMessage(
            verb=VERB_CONTINUE, name="Changed", request_id=self._subscription_id, body=body
        )
        await self.connection.send(message.to_bytes())

    async def request(
        self, name: str, body: dict[str, Any] | None = None, timeout: float = 2.0
    ) -> MooMessage:
        """Send a request to the extension and wait for its first reply."""
        assert self.connection is not None
        request_id = next(self._request_ids)
        future: asyncio.Future[MooMessage] = asyncio.get_running_loop().create_future()
        self._replies[request_id] = future
        await self.connection.send(MooMessage.request(name, request_id, body).to_bytes())
        return await asyncio.wait_for(future, timeout)

    async def next_reply(self, request_id: int, timeout: float = 2.0) -> MooMessage:
        """Wait for a further reply to an earlier request."""
        future: asyncio.Future[MooMessage] = asyncio.get_running_loop().create_future()
        self._replies[request_id] = future
        return await asyncio.wait_for(future, timeout)


@pytest.fixture
def roon_core() -> MockRoonCore:
    """Return a scripted Roon Core."""
    return MockRoonCore()


@pytest.fixture
async def mock_server(roon_core: MockRoonCore) -> AsyncGenerator[tuple[str, int], None]:
    """Fixture providing a mock Roon Core WebSocket server.

    Returns:
        Tuple of (host, port) for the test server.
    """
    async with serve(roon_core.handler, "127.0.0.1", 0) as server:
        port = next(iter(server.sockets)).getsockname()[1]
        yield "127.0.0.1", port


@pytest.fixture
def threaded_server(roon_core: MockRoonCore) -> Generator[tuple[str, int], None, None]:
    """Mock Roon Core served from its own thread and event loop.

    For tests whose main thread runs a Qt event loop instead of asyncio.
    """
    loop = asyncio.new_event_loop()
    ready = threading.Event()
    state: dict[str, Any] = {}

    async def serve_until_stopped() -> None:
        state["stop"] = asyncio.Event()
        async with serve(roon_core.handler, "127.0.0.1", 0) as server:
            state["port"] = next(iter(server.sockets)).getsockname()[1]
            ready.set()
            await state["stop"].wait()

    thread = threading.Thread(
        target=loop.run_until_complete, args=(serve_until_stopped(),), daemon=True
    )
    thread.start()
    assert ready.wait(5.0), "mock core did not start"

    yield "127.0.0.1", state["port"]

    loop.call_soon_threadsafe(state["stop"].set)
    thread.join(5.0)
    loop.close()
