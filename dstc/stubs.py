"""Client and server stubs built from a :class:`~dstc.signature.Signature`.

A client stub packs its arguments and queues a call of the remote
function. A server stub unpacks an incoming payload and calls the local
function. Callback stubs do the same for callback references handed
from a client to a server.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .context import Context
from .signature import Signature

__all__ = [
    "make_client",
    "make_server",
    "make_server_callback",
    "make_callback_dispatch",
    "callback_arg",
]

_REF_MASK = 0x7FFFFFFFFFFFFFFF


@dataclass(frozen=True)
class _CallbackDispatch:
    """Unpacks a callback payload and calls ``func``.

    Two dispatchers for the same function and signature compare equal,
    so a pending callback can be cancelled by building its dispatcher
    again.
    """

    signature: Signature
    func: Callable[..., Any]

    def __call__(self, callback_ref: int, node_id: int, name: str, payload: bytes) -> Any:
        return self.func(*self.signature.unpack(payload))


@dataclass(frozen=True)
class _ServerDispatch:
    """Unpacks a call payload and calls the served function."""

    name: str
    signature: Signature
    func: Callable[..., Any]

    def __call__(self, callback_ref: int, node_id: int, name: str, payload: bytes) -> Any:
        return self.func(*self.signature.unpack(payload))


def make_client(context: Context, name: str, signature: Signature) -> Callable[..., None]:
    """Build and register a stub that calls the remote function ``name``.

    The stub raises :class:`~dstc.context.BufferFullError` when the
    outbound buffer has no room for the call.
    """

    def client(*args: object) -> None:
        context.queue_func(name, signature.pack(*args))

    client.__name__ = client.__qualname__ = f"dstc_{name}"
    client.__doc__ = f"Call the remote function {name!r}."
    context.register_client(name, client)
    return client


def make_server(
    context: Context, name: str, signature: Signature, func: Callable[..., Any]
) -> Callable[[int, int, str, bytes], Any]:
    """Serve ``func`` under ``name``, decoding its arguments with ``signature``."""
    dispatch = _ServerDispatch(name, signature, func)
    context.register_server(name, dispatch)
    return dispatch


def make_server_callback(
    context: Context, name: str, signature: Signature
) -> Callable[..., None]:
    """Build a stub a server uses to invoke a client's callback.

    The stub takes the callback reference followed by the arguments. A
    zero reference means the client passed no callback; nothing is sent.
    """

    def invoke(callback_ref: int, *args: object) -> None:
        if not callback_ref:
            return
        context.queue_callback(callback_ref, signature.pack(*args))

    invoke.__name__ = invoke.__qualname__ = f"dstc_{name}"
    invoke.__doc__ = f"Invoke a client callback of kind {name!r}."
    context.register_callback_client(name)
    return invoke


def make_callback_dispatch(
    signature: Signature, func: Callable[..., Any]
) -> Callable[[int, int, str, bytes], Any]:
    """Dispatcher that decodes a callback payload and calls ``func``."""
    return _CallbackDispatch(signature, func)


def callback_arg(
    context: Context, func: Callable[..., Any] | None, signature: Signature
) -> int:
    """Activate ``func`` as a one-shot callback and return its reference.

    The reference is what a client passes as a callback argument. With
    no function the reference is 0, which servers treat as "do not call
    back".
    """
    if func is None:
        return 0
    ref = id(func) & _REF_MASK or 1
    return context.activate_callback(ref, make_callback_dispatch(signature, func))