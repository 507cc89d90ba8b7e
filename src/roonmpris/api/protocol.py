"""MOO protocol types for Roon Core communication.

Every WebSocket frame carries one message: a first line
``MOO/1 <VERB> <name>``, header lines, an empty line, and an optional body.
Requests name a service method (``com.roonlabs.transport:2/control``);
responses name a status (``Success``, ``Subscribed``, ``Changed``...).
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, cast

MOO_VERSION = "MOO/1"

VERB_REQUEST = "REQUEST"
VERB_COMPLETE = "COMPLETE"
VERB_CONTINUE = "CONTINUE"

STATUS_SUCCESS = "Success"

_CONTENT_TYPE_JSON = "application/json"
_FIRST_LINE = re.compile(r"^MOO/(\d+) ([A-Z]+) (.*)$")
_HEADER_LINE = re.compile(r"^([^:]+):\s*(.*)$")


class MooParseError(ValueError):
    """Raised when a frame is not a valid MOO message."""


class MooError(RuntimeError):
    """A request completed with a status other than Success.

    Attributes:
        name: Status name returned by the core (e.g. "InvalidRequest").
        body: Response body, if any.
    """

    def __init__(self, name: str, body: dict[str, Any] | None = None) -> None:
        self.name = name
        self.body = body
        message = body.get("message") if body else None
        super().__init__(f"{name}: {message}" if message else name)


@dataclass(frozen=True)
class MooMessage:
    """A single MOO message.

    Attributes:
        verb: REQUEST, COMPLETE or CONTINUE.
        name: Method path for requests, status name for responses.
        request_id: Correlates responses with requests.
        body: Decoded JSON body, or None.
        headers: Extra headers (Request-Id and content headers excluded).
    """

    verb: str
    name: str
    request_id: int
    body: dict[str, Any] | None = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def is_request(self) -> bool:
        """Return True for messages initiated by the peer."""
        return self.verb == VERB_REQUEST

    @property
    def is_complete(self) -> bool:
        """Return True for final responses."""
        return self.verb == VERB_COMPLETE

    @property
    def is_success(self) -> bool:
        """Return True for a COMPLETE Success response."""
        return self.verb == VERB_COMPLETE and self.name == STATUS_SUCCESS

    @property
    def service(self) -> str:
        """Return the service part of a request name (before the last '/')."""
        return self.name.rpartition("/")[0]

    @property
    def method(self) -> str:
        """Return the method part of a request name (after the last '/')."""
        return self.name.rpartition("/")[2]

    def to_bytes(self) -> bytes:
        """Encode for sending as a binary WebSocket frame."""
        lines = [f"{MOO_VERSION} {self.verb} {self.name}", f"Request-Id: {self.request_id}"]
        lines.extend(f"{key}: {value}" for key, value in self.headers.items())
        payload = b""
        if self.body is not None:
            payload = json.dumps(self.body).encode("utf-8")
            lines.append(f"Content-Length: {len(payload)}")
            lines.append(f"Content-Type: {_CONTENT_TYPE_JSON}")
        header = "\n".join(lines) + "\n\n"
        return header.encode("utf-8") + payload

    @classmethod
    def request(
        cls, name: str, request_id: int, body: dict[str, Any] | None = None
    ) -> "MooMessage":
        """Create a request for a service method."""
        return cls(verb=VERB_REQUEST, name=name, request_id=request_id, body=body)

    def reply(
        self, verb: str, name: str, body: dict[str, Any] | None = None
    ) -> "MooMessage":
        """Create a response to this request."""
        return MooMessage(verb=verb, name=name, request_id=self.request_id, body=body)

    @classmethod
    def parse(cls, data: bytes | str) -> "MooMessage":
        """Decode a received frame.

        Raises:
            MooParseError: If the frame is not a well-formed MOO message.
        """
        raw = data.encode("utf-8") if isinstance(data, str) else data
        head, separator, payload = raw.partition(b"\n\n")
        if not separator:
            raise MooParseError("Missing header terminator")

        try:
            header_lines = head.decode("utf-8").split("\n")
        except UnicodeDecodeError as e:
            raise MooParseError(f"Invalid header encoding: {e}") from e

        match = _FIRST_LINE.match(header_lines[0])
        if not match:
            raise MooParseError(f"Invalid first line: {header_lines[0]!r}")
        _version, verb, name = match.groups()

        headers: dict[str, str] = {}
        for line in header_lines[1:]:
            header = _HEADER_LINE.match(line)
            if not header:
                raise MooParseError(f"Invalid header line: {line!r}")
            headers[header.group(1)] = header.group(2)

        request_id_raw = headers.pop("Request-Id", None)
        if request_id_raw is None or not request_id_raw.isdigit():
            raise MooParseError(f"Missing or invalid Request-Id: {request_id_raw!r}")

        content_type = headers.pop("Content-Type", "")
        content_length = headers.pop("Content-Length", None)
        if content_length is not None and content_length.isdigit():
            payload = payload[: int(content_length)]

        body: dict[str, Any] | None = None
        if payload and content_type.startswith(_CONTENT_TYPE_JSON):
            try:
                decoded = json.loads(payload.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                raise MooParseError(f"Invalid JSON body: {e}") from e
            if isinstance(decoded, dict):
                body = cast(dict[str, Any], decoded)

        return cls(
            verb=verb,
            name=name,
            request_id=int(request_id_raw),
            body=body,
            headers=headers,
        )
