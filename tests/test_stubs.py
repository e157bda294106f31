import pytest

from dstc.args import SerializationError, callback, dynamic, fixed, string_arg
from dstc.context import BufferFullError, Context, MemoryTransport
from dstc.protocol import decode_calls, encode_call, encode_control_message
from dstc.signature import Signature
from dstc.stubs import (
    callback_arg,
    make_callback_dispatch,
    make_client,
    make_server,
    make_server_callback,
)


def _pair():
    client_ctx = Context(MemoryTransport(node_id=1))
    server_ctx = Context(MemoryTransport(node_id=2))
    return client_ctx, server_ctx


def test_client_packet_wire_bytes():
    ctx = Context(MemoryTransport(node_id=1))
    client = make_client(ctx, "f", Signature(fixed("i")))
    client(7)
    assert ctx.transport.sent == [
        b"\x01\x00\x00\x00" + b"\x06\x00" + b"f\x00" + b"\x07\x00\x00\x00"
    ]


def test_client_packet_matches_encode_call():
    ctx = Context(MemoryTransport(node_id=5))
    sig = Signature(fixed("i"), dynamic())
    client = make_client(ctx, "print_name", sig)
    client(42, string_arg("Bob"))
    assert ctx.transport.sent == [encode_call(5, "print_name", sig.pack(42, string_arg("Bob")))]


def test_client_to_server_roundtrip():
    client_ctx, server_ctx = _pair()
    sig = Signature(dynamic(), fixed("i"))
    received = []
    make_server(server_ctx, "print_name_and_age", sig, lambda name, age: received.append((name.text, age)))
    client = make_client(client_ctx, "print_name_and_age", sig)
    client(string_arg("Alice"), 30)
    dispatched = server_ctx.process_packet(client_ctx.transport.sent[0])
    assert dispatched == 1
    assert received == [("Alice", 30)]


def test_server_ignores_unknown_function():
    client_ctx, server_ctx = _pair()
    sig = Signature(fixed("i"))
    hits = []
    make_server(server_ctx, "known", sig, hits.append)
    make_client(client_ctx, "unknown", sig)(1)
    assert server_ctx.process_packet(client_ctx.transport.sent[0]) == 0
    assert hits == []


def test_client_wrong_argument_count():
    ctx = Context(MemoryTransport())
    client = make_client(ctx, "f", Signature(fixed("i"), fixed("i")))
    with pytest.raises(SerializationError):
        client(1)
    assert ctx.transport.sent == []


def test_client_buffer_full():
    ctx = Context(MemoryTransport(), buffer_size=8)
    client = make_client(ctx, "longname", Signature(fixed("q")))
    with pytest.raises(BufferFullError):
        client(1)


def test_make_client_registers_and_announces():
    ctx = Context(MemoryTransport())
    assert ctx.needs_announce is False
    client = make_client(ctx, "remote", Signature())
    assert ctx.needs_announce is True
    assert ctx.remote_function_available_by_client(client) is False
    ctx.on_control_message(encode_control_message(9, "remote"))
    assert ctx.remote_function_available_by_client(client) is True


def test_make_server_callback_announces():
    ctx = Context(MemoryTransport())
    make_server_callback(ctx, "done", Signature(fixed("i")))
    assert ctx.needs_announce is True


def test_server_announces_served_functions():
    ctx = Context(MemoryTransport(node_id=3))
    make_server(ctx, "a", Signature(), lambda: None)
    assert ctx.subscription_complete() == [encode_control_message(3, "a")]


def test_callback_roundtrip_is_one_shot():
    client_ctx, server_ctx = _pair()
    results = []
    cb_sig = Signature(fixed("i"))
    call_sig = Signature(fixed("i"), fixed("i"), callback())
    reply = make_server_callback(server_ctx, "sum_reply", cb_sig)
    make_server(server_ctx, "add", call_sig, lambda a, b, ref: reply(ref, a + b))
    client = make_client(client_ctx, "add", call_sig)

    def on_result(value):
        results.append(value)

    ref = callback_arg(client_ctx, on_result, cb_sig)
    assert ref > 0
    client(2, 3, ref)
    server_ctx.process_packet(client_ctx.transport.sent[0])
    reply_packet = server_ctx.transport.sent[0]
    calls = list(decode_calls(reply_packet))
    assert [c.callback_ref for c in calls] == [ref]
    assert client_ctx.process_packet(reply_packet) == 1
    assert results == [5]
    assert client_ctx.process_packet(reply_packet) == 0
    assert results == [5]


def test_null_callback_sends_nothing():
    client_ctx, server_ctx = _pair()
    cb_sig = Signature(fixed("i"))
    assert callback_arg(client_ctx, None, cb_sig) == 0
    reply = make_server_callback(server_ctx, "r", cb_sig)
    reply(0, 10)
    assert server_ctx.transport.sent == []


def test_callback_ref_stable_for_same_function():
    client_ctx, server_ctx = _pair()
    sig = Signature(fixed("i"))
    hits = []

    def handler(value):
        hits.append(value)

    first = callback_arg(client_ctx, handler, sig)
    second = callback_arg(client_ctx, handler, sig)
    assert first > 0
    assert first == second

    reply = make_server_callback(server_ctx, "r", sig)
    reply(second, 21)
    assert client_ctx.process_packet(server_ctx.transport.sent[0]) == 1
    assert hits == [21]


def test_cancel_callback_with_rebuilt_dispatch():
    client_ctx, server_ctx = _pair()
    sig = Signature(fixed("i"))
    hits = []

    def handler(value):
        hits.append(value)

    ref = callback_arg(client_ctx, handler, sig)
    cancelled = client_ctx.cancel_callback(make_callback_dispatch(sig, handler))
    assert cancelled == make_callback_dispatch(sig, handler)
    reply = make_server_callback(server_ctx, "r", sig)
    reply(ref, 4)
    assert client_ctx.process_packet(server_ctx.transport.sent[0]) == 0
    assert hits == []


def test_callback_dispatch_unpacks_payload():
    sig = Signature(fixed("i"), dynamic())
    dispatch = make_callback_dispatch(sig, lambda n, d: (n, d.text))
    assert dispatch(1, 2, "", sig.pack(11, string_arg("hi"))) == (11, "hi")


def test_server_dispatch_direct_call():
    ctx = Context(MemoryTransport())
    sig = Signature(fixed("h"))
    dispatch = make_server(ctx, "neg", sig, lambda x: -x)
    assert dispatch(0, 1, "neg", sig.pack(12)) == -12