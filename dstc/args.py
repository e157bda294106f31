"""Argument kinds for remote calls and their wire encoding.

Three kinds of argument travel in a call payload:

* fixed-size values, described by a :mod:`struct` format;
* dynamic data, sent as a little-endian ``uint16`` length followed by
  that many bytes;
* callback references, sent as a signed 64-bit integer.
"""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field

__all__ = [
    "ArgKind",
    "ArgSpec",
    "DynamicData",
    "SerializationError",
    "MAX_DYNAMIC_LENGTH",
    "fixed",
    "dynamic",
    "callback",
    "string_arg",
    "dynamic_arg",
]

MAX_DYNAMIC_LENGTH = 0xFFFF

_DYN_LEN = struct.Struct("<H")
_CALLBACK_REF = struct.Struct("<q")
_BYTE_ORDER_CHARS = "@=<>!"


class SerializationError(ValueError):
    """Raised when an argument cannot be encoded or decoded."""


class ArgKind(enum.Enum):
    """The kind of a single call argument."""

    FIXED = "fixed"
    DYNAMIC = "dynamic"
    CALLBACK = "callback"


@dataclass(frozen=True)
class DynamicData:
    """A variable-length blob carried with a ``uint16`` length prefix."""

    data: bytes = b""

    def __post_init__(self) -> None:
        try:
            raw = bytes(self.data)
        except TypeError as exc:
            raise SerializationError(f"dynamic data must be bytes-like: {exc}") from exc
        if len(raw) > MAX_DYNAMIC_LENGTH:
            raise SerializationError(
                f"dynamic data of {len(raw)} bytes exceeds {MAX_DYNAMIC_LENGTH}"
            )
        object.__setattr__(self, "data", raw)

    @property
    def length(self) -> int:
        return len(self.data)

    @property
    def text(self) -> str:
        """The data up to its first NUL byte, decoded as UTF-8."""
        return self.data.split(b"\0", 1)[0].decode("utf-8", errors="replace")


@dataclass(frozen=True)
class ArgSpec:
    """Describes how one argument is laid out in a payload."""

    kind: ArgKind
    fmt: str | None = None
    _struct: struct.Struct | None = field(init=False, repr=False, compare=False, default=None)
    _count: int = field(init=False, repr=False, compare=False, default=0)

    def __post_init__(self) -> None:
        if self.kind is not ArgKind.FIXED:
            if self.fmt is not None:
                raise SerializationError(f"{self.kind.value} arguments take no format")
            return
        if not self.fmt:
            raise SerializationError("fixed arguments need a struct format")
        fmt = self.fmt if self.fmt[0] in _BYTE_ORDER_CHARS else "<" + self.fmt
        try:
            packer = struct.Struct(fmt)
        except struct.error as exc:
            raise SerializationError(f"bad format {self.fmt!r}: {exc}") from exc
        count = len(packer.unpack(bytes(packer.size)))
        if count == 0:
            raise SerializationError(f"format {self.fmt!r} holds no values")
        object.__setattr__(self, "_struct", packer)
        object.__setattr__(self, "_count", count)

    def _coerce_dynamic(self, value: object) -> DynamicData:
        if isinstance(value, DynamicData):
            return value
        if isinstance(value, (bytes, bytearray, memoryview)):
            return DynamicData(bytes(value))
        raise SerializationError(
            f"dynamic argument must be DynamicData or bytes, not {type(value).__name__}"
        )

    @staticmethod
    def _coerce_callback(value: object) -> int:
        if value is None:
            return 0
        if isinstance(value, bool) or not isinstance(value, int):
            raise SerializationError(
                f"callback reference must be an int, not {type(value).__name__}"
            )
        return value

    def size(self, value: object = None) -> int:
        """Number of bytes ``value`` occupies on the wire."""
        if self.kind is ArgKind.FIXED:
            return self._struct.size
        if self.kind is ArgKind.CALLBACK:
            return _CALLBACK_REF.size
        return _DYN_LEN.size + self._coerce_dynamic(value).length

    def encode(self, value: object) -> bytes:
        """Encode ``value`` into its wire form."""
        if self.kind is ArgKind.FIXED:
            values = (value,) if self._count == 1 else tuple(value)
            try:
                return self._struct.pack(*values)
            except (struct.error, TypeError) as exc:
                raise SerializationError(f"cannot pack {value!r} as {self.fmt!r}: {exc}") from exc
        if self.kind is ArgKind.CALLBACK:
            ref = self._coerce_callback(value)
            try:
                return _CALLBACK_REF.pack(ref)
            except struct.error as exc:
                raise SerializationError(f"callback reference {ref} out of range") from exc
        dyn = self._coerce_dynamic(value)
        return _DYN_LEN.pack(dyn.length) + dyn.data

    def decode(self, data: bytes, offset: int = 0) -> tuple[object, int]:
        """Decode one value at ``offset``; return it and the offset after it."""
        buf = memoryview(data)
        if self.kind is ArgKind.FIXED:
            end = offset + self._struct.size
            if end > len(buf):
                raise SerializationError("payload too short for fixed argument")
            values = self._struct.unpack_from(buf, offset)
            return (values[0] if self._count == 1 else values), end
        if self.kind is ArgKind.CALLBACK:
            end = offset + _CALLBACK_REF.size
            if end > len(buf):
                raise SerializationError("payload too short for callback argument")
            return _CALLBACK_REF.unpack_from(buf, offset)[0], end
        start = offset + _DYN_LEN.size
        if start > len(buf):
            raise SerializationError("payload too short for dynamic length")
        (length,) = _DYN_LEN.unpack_from(buf, offset)
        end = start + length
        if end > len(buf):
            raise SerializationError("payload too short for dynamic data")
        return DynamicData(bytes(buf[start:end])), end


def fixed(fmt: str) -> ArgSpec:
    """A fixed-size argument described by a struct format (little-endian by default)."""
    return ArgSpec(ArgKind.FIXED, fmt)


def dynamic() -> ArgSpec:
    """A variable-length argument."""
    return ArgSpec(ArgKind.DYNAMIC)


def callback() -> ArgSpec:
    """A callback reference argument."""
    return ArgSpec(ArgKind.CALLBACK)


def string_arg(text: str) -> DynamicData:
    """Wrap ``text`` as NUL-terminated dynamic data."""
    return DynamicData(text.encode("utf-8") + b"\0")


def dynamic_arg(data: bytes) -> DynamicData:
    """Wrap raw bytes as dynamic data."""
    return DynamicData(data)