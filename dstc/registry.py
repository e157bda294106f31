"""Lookup tables kept by a node: functions, callbacks and remote functions.

Each table has a fixed capacity and raises :class:`SymbolTableFull`
when it runs out of room.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

__all__ = [
    "SymbolTableFull",
    "CallbackTable",
    "RemoteNodeTable",
    "FunctionTable",
    "DEFAULT_CAPACITY",
]

log = logging.getLogger(__name__)

DEFAULT_CAPACITY = 128

Dispatch = Callable[..., Any]


class SymbolTableFull(RuntimeError):
    """Raised when a table has no room for another entry."""


def _check_capacity(capacity: int) -> int:
    if capacity < 1:
        raise ValueError(f"capacity must be positive, got {capacity}")
    return capacity


@dataclass(frozen=True)
class _CallbackSlot:
    callback_ref: int
    dispatch: Dispatch


class CallbackTable:
    """One-shot callbacks keyed by the reference handed to a remote node.

    Slots freed by a lookup or a cancellation are reused before new
    slots are taken.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self.capacity = _check_capacity(capacity)
        self._slots: list[_CallbackSlot | None] = []

    def __len__(self) -> int:
        return sum(slot is not None for slot in self._slots)

    def __contains__(self, callback_ref: object) -> bool:
        return any(
            slot is not None and slot.callback_ref == callback_ref for slot in self._slots
        )

    def activate(self, callback_ref: int, dispatch: Dispatch | None) -> int:
        """Make ``dispatch`` callable through ``callback_ref``.

        Returns the reference, or 0 when no dispatch function is given:
        a zero reference tells the remote side not to call back.
        """
        if not dispatch:
            return 0
        slot = _CallbackSlot(callback_ref, dispatch)
        free = next((i for i, entry in enumerate(self._slots) if entry is None), None)
        if free is not None:
            self._slots[free] = slot
            index = free
        else:
            if len(self._slots) >= self.capacity:
                raise SymbolTableFull(
                    f"cannot register callback: table holds {self.capacity} entries"
                )
            self._slots.append(slot)
            index = len(self._slots) - 1
        log.debug("Registered callback [%X] at index %d", callback_ref, index)
        return callback_ref

    def _take(self, matches: Callable[[_CallbackSlot], bool]) -> Dispatch | None:
        for index, slot in enumerate(self._slots):
            if slot is not None and matches(slot):
                self._slots[index] = None
                return slot.dispatch
        return None

    def find_by_ref(self, callback_ref: int) -> Dispatch | None:
        """Remove and return the dispatch function for ``callback_ref``."""
        found = self._take(lambda slot: slot.callback_ref == callback_ref)
        if found is None:
            log.debug("Did not find callback [%X]", callback_ref)
        return found

    def cancel(self, dispatch: Dispatch) -> Dispatch | None:
        """Remove the first slot holding ``dispatch``; return it, or None."""
        found = self._take(lambda slot: slot.dispatch == dispatch)
        if found is None:
            log.debug("Did not find callback %r", dispatch)
        return found


@dataclass(frozen=True)
class _RemoteFunction:
    node_id: int
    func_name: str


class RemoteNodeTable:
    """Functions that remote nodes have announced they serve.

    Entries of a node that goes away are cleared but keep their place,
    so they still count towards the capacity.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self.capacity = _check_capacity(capacity)
        self._entries: list[_RemoteFunction | None] = []

    def __len__(self) -> int:
        return sum(entry is not None for entry in self._entries)

    def __iter__(self) -> Iterator[tuple[int, str]]:
        return (
            (entry.node_id, entry.func_name) for entry in self._entries if entry is not None
        )

    def register(self, node_id: int, func_name: str) -> bool:
        """Record that ``node_id`` serves ``func_name``.

        Returns False, leaving the table unchanged, for a repeated
        announcement.
        """
        entry = _RemoteFunction(node_id, func_name)
        if entry in self._entries:
            log.warning(
                "Remote function [%s] registered several times by node [0x%X]",
                func_name,
                node_id,
            )
            return False
        if len(self._entries) >= self.capacity:
            raise SymbolTableFull(
                f"cannot register remote function: table holds {self.capacity} entries"
            )
        self._entries.append(entry)
        log.info("Remote [%s] now supported by new node [0x%X]", func_name, node_id)
        return True

    def unregister_node(self, node_id: int) -> int:
        """Clear every function announced by ``node_id``; return how many."""
        cleared = 0
        for index, entry in enumerate(self._entries):
            if entry is not None and entry.node_id == node_id:
                log.info("Unregistering node [0x%X] function [%s]", node_id, entry.func_name)
                self._entries[index] = None
                cleared += 1
        return cleared

    def available(self, func_name: str) -> bool:
        """True if some live remote node serves ``func_name``."""
        found = any(
            entry is not None and entry.node_id != 0 and entry.func_name == func_name
            for entry in self._entries
        )
        if not found:
            log.debug("Could not find a remote node that had registered function %s", func_name)
        return found


class FunctionTable:
    """Named local functions, in registration order.

    A table of capacity ``n`` holds at most ``n - 1`` functions. When a
    name is registered twice, the later registration wins.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self.capacity = _check_capacity(capacity)
        self._entries: list[tuple[str, Any]] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[tuple[str, Any]]:
        return iter(self._entries)

    def __reversed__(self) -> Iterator[tuple[str, Any]]:
        return reversed(self._entries)

    def __contains__(self, name: object) -> bool:
        return any(entry_name == name for entry_name, _ in self._entries)

    def register(self, name: str, func: Any) -> None:
        """Add ``func`` under ``name``."""
        if len(self._entries) >= self.capacity - 1:
            raise SymbolTableFull(
                f"cannot register function [{name}]: table holds {self.capacity} entries"
            )
        self._entries.append((name, func))

    def find(self, name: str) -> Any | None:
        """The function most recently registered under ``name``, or None."""
        return next((func for entry_name, func in reversed(self._entries) if entry_name == name), None)

    def names(self) -> list[str]:
        """Registered names in registration order."""
        return [name for name, _ in self._entries]