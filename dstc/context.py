"""A node's call state: registered functions, callbacks and the outbound buffer.

A :class:`Context` turns local calls into packets handed to a
:class:`Transport`, and dispatches the calls in incoming packets to the
functions registered with it. The transport sends packets and reports
congestion. Every public method takes the context's re-entrant lock, so
a dispatched function may queue further calls.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from .protocol import (
    ProtocolError,
    decode_calls,
    decode_control_message,
    encode_call,
    encode_callback,
    encode_control_message,
)
from .registry import (
    DEFAULT_CAPACITY,
    CallbackTable,
    FunctionTable,
    RemoteNodeTable,
)

__all__ = [
    "BufferFullError",
    "CallError",
    "Transport",
    "MemoryTransport",
    "Context",
    "DEFAULT_BUFFER_SIZE",
]

log = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 63 * 1024

Dispatch = Callable[[int, int, str, bytes], Any]


class BufferFullError(RuntimeError):
    """Raised when the outbound buffer has no room for a call.

    Whatever was buffered has been handed to the transport if it was
    not congested; process events for a while and try again.
    """


class CallError(ValueError):
    """Raised for a call that cannot be queued as given."""


class Transport:
    """Where a context sends its packets."""

    node_id: int = 0

    def send(self, packet: bytes) -> None:
        """Queue ``packet`` for delivery to all subscribers."""
        raise NotImplementedError

    def traffic_suspended(self) -> bool:
        """True while the transport refuses new packets because of congestion."""
        return False


class MemoryTransport(Transport):
    """A transport that keeps sent packets in a list."""

    def __init__(self, node_id: int = 1, *, suspended: bool = False) -> None:
        self.node_id = node_id
        self.suspended = suspended
        self.sent: list[bytes] = []

    def send(self, packet: bytes) -> None:
        """Record ``packet`` as sent."""
        self.sent.append(bytes(packet))

    def traffic_suspended(self) -> bool:
        """Whether sending is currently suspended."""
        return self.suspended


class Context:
    """State of one node taking part in remote calls."""

    def __init__(
        self,
        transport: Transport,
        *,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        capacity: int = DEFAULT_CAPACITY,
    ) -> None:
        if buffer_size < 1:
            raise ValueError(f"buffer size must be positive, got {buffer_size}")
        self.transport = transport
        self.buffer_size = buffer_size
        self._lock = threading.RLock()
        self._buffer = bytearray()
        self._buffering = False
        self._server_funcs = FunctionTable(capacity)
        self._client_funcs = FunctionTable(capacity)
        self._callbacks = CallbackTable(capacity)
        self._remote = RemoteNodeTable(capacity)
        self._callback_client_count = 0

    # -- state ---------------------------------------------------------

    @property
    def node_id(self) -> int:
        return self.transport.node_id

    @property
    def buffering(self) -> bool:
        with self._lock:
            return self._buffering

    @property
    def pending(self) -> bytes:
        """Calls buffered but not yet handed to the transport."""
        with self._lock:
            return bytes(self._buffer)

    @property
    def needs_announce(self) -> bool:
        """True when client functions or callbacks are declared.

        Such a node must announce itself so that servers connect back
        to it and make their functions known.
        """
        with self._lock:
            return bool(len(self._client_funcs) or self._callback_client_count)

    # -- registration --------------------------------------------------

    def register_server(self, name: str, func: Dispatch) -> None:
        """Serve ``func`` under ``name`` to remote callers."""
        with self._lock:
            self._server_funcs.register(name, func)

    def register_client(self, name: str, func: Any) -> None:
        """Record ``func`` as the local stub calling the remote ``name``."""
        with self._lock:
            self._client_funcs.register(name, func)

    def register_callback_client(self, name: str) -> None:
        """Note that a callback-invoking stub named ``name`` exists."""
        with self._lock:
            self._callback_client_count += 1
            log.debug("Callback client [%s] declared", name)

    def activate_callback(self, callback_ref: int, dispatch: Dispatch | None) -> int:
        """Make ``dispatch`` callable once through ``callback_ref``; 0 if no dispatch."""
        with self._lock:
            return self._callbacks.activate(callback_ref, dispatch)

    def cancel_callback(self, dispatch: Dispatch) -> Dispatch | None:
        """Deactivate a pending callback; return it, or None if not found."""
        with self._lock:
            return self._callbacks.cancel(dispatch)

    # -- outbound ------------------------------------------------------

    def _queue_pending_calls(self) -> None:
        if self._buffer and not self.transport.traffic_suspended():
            packet = bytes(self._buffer)
            self._buffer.clear()
            self.transport.send(packet)
            log.debug("Queued %d bytes from payload buffer.", len(packet))

    def _queue(self, call: bytes) -> None:
        if len(call) > self.buffer_size - len(self._buffer):
            self._queue_pending_calls()
            raise BufferFullError(
                f"outbound buffer has {self.buffer_size - len(self._buffer)} bytes free, "
                f"call needs {len(call)}"
            )
        self._buffer += call
        if not self._buffering:
            self._queue_pending_calls()

    def queue_func(self, name: str, payload: bytes = b"") -> None:
        """Queue a call of the remote function ``name`` with encoded arguments."""
        if not name:
            raise CallError("a call needs a function name")
        with self._lock:
            try:
                call = encode_call(self.node_id, name, payload)
            except ProtocolError as exc:
                raise CallError(str(exc)) from exc
            self._queue(call)

    def queue_callback(self, callback_ref: int, payload: bytes = b"") -> None:
        """Queue an invocation of the remote callback ``callback_ref``."""
        if not callback_ref:
            raise CallError("a callback invocation needs a non-zero reference")
        with self._lock:
            try:
                call = encode_callback(self.node_id, callback_ref, payload)
            except ProtocolError as exc:
                raise CallError(str(exc)) from exc
            self._queue(call)

    def buffer_client_calls(self) -> None:
        """Collect outbound calls until flushed or the buffer fills."""
        with self._lock:
            self._buffering = True

    def flush_client_calls(self) -> None:
        """Hand buffered calls to the transport, staying in buffered mode."""
        with self._lock:
            self._queue_pending_calls()

    def unbuffer_client_calls(self) -> None:
        """Leave buffered mode and hand buffered calls to the transport."""
        with self._lock:
            self._buffering = False
            self._queue_pending_calls()

    # -- inbound -------------------------------------------------------

    def process_packet(self, data: bytes) -> int:
        """Dispatch every call in ``data``; return how many were dispatched."""
        dispatched = 0
        with self._lock:
            for call in decode_calls(data):
                if call.name:
                    func = self._server_funcs.find(call.name)
                    if func is None:
                        log.debug("Function [%s] not loaded. Ignored", call.name)
                        continue
                    func(0, call.node_id, call.name, call.args)
                else:
                    func = self._callbacks.find_by_ref(call.callback_ref)
                    if func is None:
                        log.debug("Callback [%d] not loaded. Ignored", call.callback_ref)
                        continue
                    func(call.callback_ref, call.node_id, "", call.args)
                dispatched += 1
        return dispatched

    def on_control_message(self, data: bytes) -> bool:
        """Record a remote node's announcement of a served function.

        Returns False for a repeated announcement.
        """
        message = decode_control_message(data)
        with self._lock:
            return self._remote.register(message.node_id, message.name)

    def on_subscriber_disconnect(self, node_id: int) -> int:
        """Forget the functions served by ``node_id``; return how many."""
        with self._lock:
            return self._remote.unregister_node(node_id)

    def subscription_complete(self) -> list[bytes]:
        """Control messages announcing every served function, latest first."""
        with self._lock:
            return [
                encode_control_message(self.node_id, name)
                for name, _ in reversed(self._server_funcs)
            ]

    # -- queries -------------------------------------------------------

    def remote_function_available(self, name: str) -> bool:
        """True if a connected remote node serves ``name``."""
        with self._lock:
            return self._remote.available(name)

    def remote_function_available_by_client(self, func: Any) -> bool:
        """True if the remote function behind client stub ``func`` is served."""
        with self._lock:
            name = next(
                (entry_name for entry_name, entry in reversed(self._client_funcs)
                 if entry is func),
                None,
            )
            if name is None:
                return False
            return self._remote.available(name)