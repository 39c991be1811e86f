"""Control protocol between the daemon and its clients.

One request and one response are exchanged per connection. Each message is a
single UTF-8 JSON object. Writers end it with a newline; readers take the first
complete JSON value, which may span several lines:

    {"type": "add_seconds", "payload": "30"}
    {"success": true, "message": "Added 30 seconds."}
    {"success": true, "status": {"state": "countdown", "duration": 90}}
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from jsonschema import ValidationError, validate  # type: ignore[import-untyped]

from pomidoras.constants import MAX_MESSAGE_SIZE
from pomidoras.core.timer import Phase, TimerStatus

MESSAGE_DELIMITER = b"\n"

_DECODER = json.JSONDecoder()

_INTEGER = re.compile(r"[+-]?\d+")


class ProtocolError(Exception):
    """Message could not be encoded or decoded."""

    pass


class RequestType(Enum):
    """Request kinds understood by the daemon."""

    STATUS = "status"
    ADD_SECONDS = "add_seconds"
    RESET = "reset"


REQUEST_SCHEMA = {
    "type": "object",
    "properties": {
        "type": {"type": "string"},
        "payload": {"type": "string"},
    },
    "required": ["type"],
}

RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "success": {"type": "boolean"},
        "message": {"type": "string"},
        "status": {
            "type": "object",
            "properties": {
                "state": {"type": "string", "enum": [p.value for p in Phase]},
                "duration": {"type": "integer", "minimum": 0},
            },
            "required": ["state", "duration"],
        },
    },
    "required": ["success"],
}


@dataclass(frozen=True)
class Request:
    """A single control request."""

    type: RequestType
    payload: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert request to its wire dictionary."""
        data: Dict[str, Any] = {"type": self.type.value}
        if self.payload is not None:
            data["payload"] = self.payload
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Request":
        """Create request from a wire dictionary.

        Raises:
            ProtocolError: If the dictionary does not describe a request
        """
        _validate(data, REQUEST_SCHEMA, "request")
        try:
            request_type = RequestType(data["type"])
        except ValueError:
            raise ProtocolError(f"Unknown request type: {data['type']}")
        return cls(type=request_type, payload=data.get("payload"))


@dataclass(frozen=True)
class Response:
    """The daemon's answer to a single request."""

    success: bool
    message: Optional[str] = None
    status: Optional[TimerStatus] = None

    @classmethod
    def ok(cls, message: Optional[str] = None, status: Optional[TimerStatus] = None) -> "Response":
        """Create a success response."""
        return cls(success=True, message=message, status=status)

    @classmethod
    def error(cls, message: str) -> "Response":
        """Create a failure response."""
        return cls(success=False, message=message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert response to its wire dictionary."""
        data: Dict[str, Any] = {"success": self.success}
        if self.message is not None:
            data["message"] = self.message
        if self.status is not None:
            data["status"] = self.status.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Response":
        """Create response from a wire dictionary.

        Raises:
            ProtocolError: If the dictionary does not describe a response
        """
        _validate(data, RESPONSE_SCHEMA, "response")
        status = data.get("status")
        return cls(
            success=data["success"],
            message=data.get("message"),
            status=TimerStatus.from_dict(status) if status is not None else None,
        )


def _validate(data: Any, schema: Dict[str, Any], kind: str) -> None:
    try:
        validate(instance=data, schema=schema)
    except ValidationError as e:
        raise ProtocolError(f"Invalid {kind} format: {e.message}")


def _encode(data: Dict[str, Any]) -> bytes:
    return json.dumps(data).encode("utf-8") + MESSAGE_DELIMITER


def _first_value(data: bytes) -> Any:
    """Decode the first complete JSON value, ignoring anything after it."""
    text = data.decode("utf-8").lstrip()
    value, _ = _DECODER.raw_decode(text)
    return value


def message_complete(data: bytes) -> bool:
    """Whether ``data`` holds a whole message, or can no longer become one.

    Malformed input counts as complete so the reader stops and the decoder
    can report the error.
    """
    try:
        _first_value(data)
    except UnicodeDecodeError as e:
        return e.reason != "unexpected end of data"
    except json.JSONDecodeError as e:
        truncated = e.pos >= len(e.doc) or e.msg.startswith("Unterminated string")
        return not truncated
    return True


def _decode(data: bytes, kind: str) -> Any:
    if len(data) > MAX_MESSAGE_SIZE:
        raise ProtocolError(f"Invalid {kind} format: message exceeds {MAX_MESSAGE_SIZE} bytes")

    if not data.strip():
        raise ProtocolError(f"Invalid {kind} format: empty message")

    try:
        return _first_value(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolError(f"Invalid {kind} format: {e}")


def encode_request(request: Request) -> bytes:
    """Serialize a request for the wire."""
    return _encode(request.to_dict())


def decode_request(data: bytes) -> Request:
    """Parse a request received from the wire.

    Raises:
        ProtocolError: If the bytes are not a valid request
    """
    return Request.from_dict(_decode(data, "request"))


def encode_response(response: Response) -> bytes:
    """Serialize a response for the wire."""
    return _encode(response.to_dict())


def decode_response(data: bytes) -> Response:
    """Parse a response received from the wire.

    Raises:
        ProtocolError: If the bytes are not a valid response
    """
    return Response.from_dict(_decode(data, "response"))


def parse_seconds(payload: Optional[str]) -> int:
    """Parse an add_seconds payload as a signed decimal integer.

    Raises:
        ValueError: If the payload is missing or not an integer
    """
    if payload is None or not _INTEGER.fullmatch(payload):
        raise ValueError(f"Invalid seconds value: {payload!r}")
    return int(payload)
