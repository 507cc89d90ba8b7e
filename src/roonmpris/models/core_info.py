"""Roon Core connection model."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class CoreInfo:
    """A Roon Core the extension is paired with.

    Attributes:
        core_id: Unique core identifier.
        display_name: Human-readable core name.
        display_version: Core software version.
        host: Host the WebSocket connection goes to.
        port: HTTP/WebSocket port (default 9100).
    """

    core_id: str
    display_name: str = ""
    display_version: str = ""
    host: str = ""
    port: int = 9100

    @property
    def address(self) -> str:
        """Return the connection base address (host:port)."""
        return f"{self.host}:{self.port}"

    @classmethod
    def from_dict(cls, data: dict[str, Any], host: str, port: int) -> "CoreInfo":
        """Create from a registry `info` or `Registered` body."""
        return cls(
            core_id=str(data.get("core_id", "")),
            display_name=str(data.get("display_name", "")),
            display_version=str(data.get("display_version", "")),
            host=host,
            port=port,
        )
