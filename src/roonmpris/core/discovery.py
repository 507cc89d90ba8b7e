"""SOOD discovery for Roon Cores on the local network.

Roon Cores answer UDP queries sent to the SOOD multicast group (and the
broadcast address) on port 9003. Messages start with ``SOOD``, a version
byte and a type byte (``Q`` query, ``R`` reply), followed by properties:
1-byte key length, key, 2-byte big-endian value length, value. A value
length of 0xFFFF encodes a null value.
"""

from __future__ import annotations

import logging
import select
import socket
import struct
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

SOOD_PORT = 9003
SOOD_MULTICAST_ADDRESS = "239.255.90.90"
SOOD_BROADCAST_ADDRESS = "255.255.255.255"
SOOD_MAGIC = b"SOOD\x02"
SOOD_QUERY = b"Q"
SOOD_REPLY = b"R"

# Service ID advertised by Roon Cores
ROON_SERVICE_ID = "00720724-5143-4a9b-abac-0e50cba674bb"

_NULL_LENGTH = 0xFFFF
_QUERY_INTERVAL = 1.0


def encode_message(kind: bytes, props: dict[str, str | None]) -> bytes:
    """Encode a SOOD message.

    Args:
        kind: SOOD_QUERY or SOOD_REPLY.
        props: Properties to include; None values are encoded as null.

    Raises:
        ValueError: If a key or value is too long to encode.
    """
    parts = [SOOD_MAGIC, kind]
    for key, value in props.items():
        key_bytes = key.encode("utf-8")
        if not key_bytes or len(key_bytes) > 255:
            raise ValueError(f"Invalid SOOD property name: {key!r}")
        parts.append(struct.pack("B", len(key_bytes)))
        parts.append(key_bytes)
        if value is None:
            parts.append(struct.pack(">H", _NULL_LENGTH))
            continue
        value_bytes = value.encode("utf-8")
        if len(value_bytes) >= _NULL_LENGTH:
            raise ValueError(f"SOOD property {key!r} is too long")
        parts.append(struct.pack(">H", len(value_bytes)))
        parts.append(value_bytes)
    return b"".join(parts)


def decode_message(data: bytes) -> tuple[bytes, dict[str, str | None]] | None:
    """Decode a SOOD message.

    Returns:
        (kind, props), or None if the datagram is not a valid SOOD message.
    """
    if len(data) < len(SOOD_MAGIC) + 1 or not data.startswith(SOOD_MAGIC):
        return None
    kind = data[len(SOOD_MAGIC) : len(SOOD_MAGIC) + 1]
    props: dict[str, str | None] = {}
    pos = len(SOOD_MAGIC) + 1

    while pos < len(data):
        key_length = data[pos]
        pos += 1
        if key_length == 0 or pos + key_length > len(data):
            return None
        key = data[pos : pos + key_length].decode("utf-8", errors="replace")
        pos += key_length

        if pos + 2 > len(data):
            return None
        (value_length,) = struct.unpack_from(">H", data, pos)
        pos += 2
        if value_length == _NULL_LENGTH:
            props[key] = None
            continue
        if pos + value_length > len(data):
            return None
        props[key] = data[pos : pos + value_length].decode("utf-8", errors="replace")
        pos += value_length

    return kind, props


@dataclass(frozen=True)
class DiscoveredCore:
    """A Roon Core that answered a SOOD query."""

    unique_id: str
    name: str
    host: str
    port: int
    display_version: str = ""

    @property
    def display_name(self) -> str:
        """Return a display-friendly name."""
        return self.name or self.host

    @classmethod
    def from_reply(
        cls, props: dict[str, str | None], sender: str
    ) -> DiscoveredCore | None:
        """Build from reply properties, or None if the reply is unusable."""
        service_id = props.get("service_id")
        if service_id is not None and service_id != ROON_SERVICE_ID:
            return None
        port_raw = props.get("http_port") or ""
        if not port_raw.isdigit():
            return None
        return cls(
            unique_id=props.get("unique_id") or "",
            name=props.get("name") or "",
            host=props.get("_replyaddr") or sender,
            port=int(port_raw),
            display_version=props.get("display_version") or "",
        )


class CoreDiscovery:
    """Discovers Roon Cores on the local network via SOOD.

    Example:
        core = CoreDiscovery.discover_one(timeout=5.0)
        if core:
            print(f"Found: {core.host}:{core.port}")
    """

    def __init__(self) -> None:
        """Initialize the discovery service."""
        self._cores: dict[str, DiscoveredCore] = {}
        self._transaction_id = str(uuid.uuid4())

    @property
    def cores(self) -> list[DiscoveredCore]:
        """Return list of discovered cores."""
        return list(self._cores.values())

    def query_message(self) -> bytes:
        """Return the query datagram for this discovery run."""
        return encode_message(
            SOOD_QUERY,
            {"query_service_id": ROON_SERVICE_ID, "_tid": self._transaction_id},
        )

    def handle_datagram(self, data: bytes, sender: str) -> DiscoveredCore | None:
        """Record a core from a reply datagram.

        Returns:
            The core if it was seen for the first time, else None.
        """
        decoded = decode_message(data)
        if decoded is None:
            return None
        kind, props = decoded
        if kind != SOOD_REPLY:
            return None
        tid = props.get("_tid")
        if tid is not None and tid != self._transaction_id:
            return None

        core = DiscoveredCore.from_reply(props, sender)
        if core is None:
            logger.debug("Ignoring SOOD reply from %s: %s", sender, props)
            return None
        key = core.unique_id or f"{core.host}:{core.port}"
        if key in self._cores:
            return None
        self._cores[key] = core
        logger.info("Discovered Roon Core: %s at %s:%d", core.display_name, core.host, core.port)
        return core

    def scan(
        self,
        timeout: float = 5.0,
        on_found: Callable[[DiscoveredCore], bool] | None = None,
    ) -> list[DiscoveredCore]:
        """Query the network until `timeout` or until `on_found` returns True.

        Args:
            timeout: Maximum time to wait in seconds.
            on_found: Called for each new core; returning True stops the scan.

        Returns:
            Cores found so far.

        Raises:
            OSError: If the UDP socket cannot be opened.
        """
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP) as sock:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, 1)
            sock.bind(("", 0))

            deadline = time.monotonic() + timeout
            next_query = 0.0
            logger.debug("Started SOOD discovery for Roon Cores")

            while True:
                now = time.monotonic()
                if now >= deadline:
                    break
                if now >= next_query:
                    self._send_query(sock)
                    next_query = now + _QUERY_INTERVAL

                wait = min(deadline, next_query) - now
                readable, _, _ = select.select([sock], [], [], max(wait, 0.0))
                if not readable:
                    continue
                try:
                    data, (sender, _port) = sock.recvfrom(65535)
                except OSError as e:
                    logger.debug("SOOD receive failed: %s", e)
                    continue
                core = self.handle_datagram(data, sender)
                if core is not None and on_found is not None and on_found(core):
                    break

        logger.debug("Stopped SOOD discovery")
        return self.cores

    def _send_query(self, sock: socket.socket) -> None:
        message = self.query_message()
        for address in (SOOD_MULTICAST_ADDRESS, SOOD_BROADCAST_ADDRESS):
            try:
                sock.sendto(message, (address, SOOD_PORT))
            except OSError as e:
                logger.debug("SOOD query to %s failed: %s", address, e)

    @staticmethod
    def discover_one(timeout: float = 5.0) -> DiscoveredCore | None:
        """Discover and return the first Roon Core found.

        Args:
            timeout: Maximum time to wait in seconds.

        Returns:
            First discovered core, or None if no core found.
        """
        cores = CoreDiscovery().scan(timeout, on_found=lambda _core: True)
        return cores[0] if cores else None

    @staticmethod
    def discover_all(timeout: float = 5.0) -> list[DiscoveredCore]:
        """Discover all Roon Cores within timeout.

        Args:
            timeout: Time to wait for discovery in seconds.

        Returns:
            List of discovered cores.
        """
        return CoreDiscovery().scan(timeout)
