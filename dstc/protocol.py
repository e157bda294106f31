"""Wire format of call packets and control messages.

A call packet holds one or more calls back to back. Each call is a
header (little-endian ``uint32`` node id, ``uint16`` payload length)
followed by the payload. A named call's payload is the NUL-terminated
function name and then the argument bytes. A callback invocation's
payload is a single NUL, the signed 64-bit callback reference, and then
the argument bytes.

A control message announces a function a node serves: its ``uint32``
node id followed by the NUL-terminated name.
"""

from __future__ import annotations

import logging
import struct
from collections.abc import Iterator
from dataclasses import dataclass

__all__ = [
    "Call",
    "ControlMessage",
    "ProtocolError",
    "HEADER_SIZE",
    "MAX_PAYLOAD",
    "CONTROL_NAME_SIZE",
    "encode_call",
    "encode_callback",
    "decode_calls",
    "encode_control_message",
    "decode_control_message",
]

log = logging.getLogger(__name__)

_HEADER = struct.Struct("<IH")
_NODE_ID = struct.Struct("<I")
_CALLBACK_REF = struct.Struct("<q")

HEADER_SIZE = _HEADER.size
MAX_PAYLOAD = 0xFFFF
CONTROL_NAME_SIZE = 256


class ProtocolError(ValueError):
    """Raised for calls or control messages that cannot be encoded or decoded."""


@dataclass(frozen=True)
class Call:
    """One decoded call: named when ``name`` is set, otherwise a callback."""

    node_id: int
    name: str
    args: bytes = b""
    callback_ref: int = 0

    @property
    def is_callback(self) -> bool:
        return not self.name


@dataclass(frozen=True)
class ControlMessage:
    """Announcement that ``node_id`` serves the function ``name``."""

    node_id: int
    name: str


def _frame(node_id: int, payload: bytes) -> bytes:
    if len(payload) > MAX_PAYLOAD:
        raise ProtocolError(f"payload of {len(payload)} bytes exceeds {MAX_PAYLOAD}")
    try:
        header = _HEADER.pack(node_id, len(payload))
    except struct.error as exc:
        raise ProtocolError(f"node id {node_id} out of range") from exc
    return header + payload


def encode_call(node_id: int, name: str, args: bytes = b"") -> bytes:
    """Encode a call of the named remote function."""
    if not name:
        raise ProtocolError("a call needs a function name")
    raw_name = name.encode("utf-8")
    if b"\0" in raw_name:
        raise ProtocolError("function name may not contain NUL")
    return _frame(node_id, raw_name + b"\0" + bytes(args))


def encode_callback(node_id: int, callback_ref: int, args: bytes = b"") -> bytes:
    """Encode an invocation of a previously handed-out callback reference."""
    if not callback_ref:
        raise ProtocolError("a callback invocation needs a non-zero reference")
    try:
        ref = _CALLBACK_REF.pack(callback_ref)
    except struct.error as exc:
        raise ProtocolError(f"callback reference {callback_ref} out of range") from exc
    return _frame(node_id, b"\0" + ref + bytes(args))


def _parse_payload(node_id: int, payload: bytes) -> Call | None:
    if not payload:
        log.warning("Empty call payload from node 0x%X ignored", node_id)
        return None
    if payload[0]:
        name_end = payload.find(b"\0")
        if name_end == -1:
            log.warning("Unterminated function name from node 0x%X ignored", node_id)
            return None
        name = payload[:name_end].decode("utf-8", errors="replace")
        return Call(node_id, name, payload[name_end + 1:])
    ref_end = 1 + _CALLBACK_REF.size
    if len(payload) < ref_end:
        log.warning("Callback payload from node 0x%X too short; ignored", node_id)
        return None
    (ref,) = _CALLBACK_REF.unpack_from(payload, 1)
    return Call(node_id, "", payload[ref_end:], ref)


def decode_calls(data: bytes) -> Iterator[Call]:
    """Yield the calls held in a packet, stopping at a truncated one."""
    buf = bytes(data)
    offset = 0
    while offset < len(buf):
        remaining = len(buf) - offset
        if remaining < HEADER_SIZE:
            log.warning(
                "Packet header too short! Wanted %d bytes, got %d", HEADER_SIZE, remaining
            )
            return
        node_id, payload_len = _HEADER.unpack_from(buf, offset)
        if remaining - HEADER_SIZE < payload_len:
            log.warning(
                "Packet payload too short! Wanted %d bytes, got %d",
                payload_len,
                remaining - HEADER_SIZE,
            )
            return
        start = offset + HEADER_SIZE
        offset = start + payload_len
        call = _parse_payload(node_id, buf[start:offset])
        if call is not None:
            yield call


def encode_control_message(node_id: int, name: str) -> bytes:
    """Encode the announcement of a served function."""
    raw_name = name.encode("utf-8")
    if not raw_name or b"\0" in raw_name:
        raise ProtocolError("control message needs a non-empty name without NUL")
    if len(raw_name) >= CONTROL_NAME_SIZE:
        raise ProtocolError(
            f"function name of {len(raw_name)} bytes exceeds {CONTROL_NAME_SIZE - 1}"
        )
    try:
        head = _NODE_ID.pack(node_id)
    except struct.error as exc:
        raise ProtocolError(f"node id {node_id} out of range") from exc
    # One padding byte follows the terminator, as peers send it.
    return head + raw_name + b"\0\0"


def decode_control_message(data: bytes) -> ControlMessage:
    """Decode a served-function announcement."""
    buf = bytes(data)
    if len(buf) < _NODE_ID.size + 1:
        raise ProtocolError("control message too short")
    (node_id,) = _NODE_ID.unpack_from(buf, 0)
    name_area = buf[_NODE_ID.size:_NODE_ID.size + CONTROL_NAME_SIZE]
    name_end = name_area.find(b"\0")
    if name_end == -1:
        raise ProtocolError("control message name is not terminated")
    return ControlMessage(node_id, name_area[:name_end].decode("utf-8", errors="replace"))