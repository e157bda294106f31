"""Argument lists of remote functions and their payload encoding."""

from __future__ import annotations

from collections.abc import Iterator

from .args import ArgSpec, SerializationError

__all__ = ["Signature", "MAX_ARGUMENTS"]

MAX_ARGUMENTS = 16


class Signature:
    """An ordered list of argument specs shared by a client and a server.

    Arguments are packed back to back with no padding, in declaration
    order. Unpacking ignores bytes after the last argument.
    """

    __slots__ = ("_specs",)

    def __init__(self, *specs: ArgSpec) -> None:
        for spec in specs:
            if not isinstance(spec, ArgSpec):
                raise TypeError(f"signature entries must be ArgSpec, not {type(spec).__name__}")
        if len(specs) > MAX_ARGUMENTS:
            raise SerializationError(
                f"a signature holds at most {MAX_ARGUMENTS} arguments, got {len(specs)}"
            )
        self._specs: tuple[ArgSpec, ...] = specs

    @property
    def specs(self) -> tuple[ArgSpec, ...]:
        return self._specs

    def __len__(self) -> int:
        return len(self._specs)

    def __iter__(self) -> Iterator[ArgSpec]:
        return iter(self._specs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Signature):
            return NotImplemented
        return self._specs == other._specs

    def __hash__(self) -> int:
        return hash(self._specs)

    def __repr__(self) -> str:
        return f"Signature{self._specs!r}"

    def _check_count(self, args: tuple[object, ...]) -> None:
        if len(args) != len(self._specs):
            raise SerializationError(
                f"expected {len(self._specs)} arguments, got {len(args)}"
            )

    def pack(self, *args: object) -> bytes:
        """Encode ``args`` into a call payload."""
        self._check_count(args)
        return b"".join(spec.encode(value) for spec, value in zip(self._specs, args))

    def unpack(self, payload: bytes) -> tuple[object, ...]:
        """Decode a call payload into a tuple of argument values."""
        values = []
        offset = 0
        for spec in self._specs:
            value, offset = spec.decode(payload, offset)
            values.append(value)
        return tuple(values)

    def size(self, *args: object) -> int:
        """Number of payload bytes that ``args`` occupy."""
        self._check_count(args)
        return sum(spec.size(value) for spec, value in zip(self._specs, args))