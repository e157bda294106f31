# dstc

Remote function calls between nodes. A client calls a function by name,
and any node that serves that function runs it. Arguments are packed
into a compact binary payload. A server can send results back through
one-shot callbacks that the client hands over as an argument.

## Installation

```
pip install .
```

## Modules

- `dstc.args`: argument kinds. `fixed(fmt)` is a fixed-size value given
  by a `struct` format (little-endian unless the format says otherwise).
  `dynamic()` is a byte blob with a `uint16` length prefix. `callback()`
  is a signed 64-bit callback reference. `string_arg(text)` and
  `dynamic_arg(data)` wrap values as `DynamicData` for dynamic arguments.
  Bad formats or values raise `SerializationError`.
- `dstc.signature`: `Signature(*specs)` is an ordered list of at most 16
  argument specs. `pack(*args)`, `unpack(payload)` and `size(*args)`
  convert between Python values and payload bytes.
- `dstc.protocol`: the wire format. `encode_call`, `encode_callback` and
  `decode_calls` build and parse call packets. A packet may hold several
  calls, and decoding stops at a truncated one. `encode_control_message`
  and `decode_control_message` handle the announcements that tell other
  nodes which functions a node serves. Errors raise `ProtocolError`.
- `dstc.registry`: the fixed-capacity tables a node keeps:
  `FunctionTable`, `CallbackTable` (one-shot, slots reused) and
  `RemoteNodeTable`. A full table raises `SymbolTableFull`.
- `dstc.context`: `Context(transport, buffer_size=..., capacity=...)`
  holds a node's tables and its outbound buffer, and sends packets
  through a `Transport`. `MemoryTransport` keeps sent packets in its
  `sent` list.
- `dstc.stubs`: `make_client`, `make_server`, `make_server_callback`,
  `make_callback_dispatch` and `callback_arg` build callables from a
  signature.
- `dstc.config`: `load_settings(environ)` reads node settings from
  `DSTC_*` environment variables (`DSTC_NODE_ID`, `DSTC_MCAST_GROUP_ADDR`,
  `DSTC_LOG_LEVEL` and others) into a frozen `Settings`. Its
  `python_log_level` maps the 0–6 level scale to a `logging` level.

## Example

```python
from dstc.args import fixed, dynamic, string_arg
from dstc.context import Context, MemoryTransport
from dstc.signature import Signature
from dstc.stubs import make_client, make_server

transport = MemoryTransport()
ctx = Context(transport)

sig = Signature(dynamic(), fixed("i"))

received = []
make_server(ctx, "print_name_and_age", sig,
            lambda name, age: received.append((name.text, age)))

call = make_client(ctx, "print_name_and_age", sig)
call(string_arg("Bob"), 25)

for packet in transport.sent:
    ctx.process_packet(packet)

assert received == [("Bob", 25)]
```

## Callbacks

```python
from dstc.args import callback, fixed
from dstc.context import Context, MemoryTransport
from dstc.signature import Signature
from dstc.stubs import callback_arg, make_client, make_server, make_server_callback

transport = MemoryTransport()
ctx = Context(transport)

reply = make_server_callback(ctx, "double_reply", Signature(fixed("i")))
make_server(ctx, "double", Signature(fixed("i"), callback()),
            lambda value, ref: reply(ref, value * 2))

ask = make_client(ctx, "double", Signature(fixed("i"), callback()))
results = []
ask(21, callback_arg(ctx, results.append, Signature(fixed("i"))))

ctx.process_packet(transport.sent[0])  # runs "double", which queues the reply
ctx.process_packet(transport.sent[1])  # runs the callback
assert results == [42]
```

A callback runs once and is then removed. `Context.cancel_callback`
removes a pending one. A zero reference means "no callback", and the
server-side stub then sends nothing.

## Buffering

By default every queued call goes to the transport at once, unless the
transport reports `traffic_suspended()`. `Context.buffer_client_calls()`
collects calls into larger packets. `Context.flush_client_calls()` sends
what has been collected. `Context.unbuffer_client_calls()` sends it and
turns buffering off. When a call does not fit in the buffer, whatever is
buffered is sent if possible and `BufferFullError` is raised. Retry later.

## Announcements

`Context.subscription_complete()` returns one control message for each
served function. `Context.on_control_message(data)` records another
node's announcement. `Context.on_subscriber_disconnect(node_id)` forgets
that node's functions. `Context.remote_function_available(name)` and
`Context.remote_function_available_by_client(stub)` tell whether some
node serves a function.

## What this package does not do

It has no network transport. There is no multicast or TCP layer, no
event loop, and nothing that polls sockets or handles timeouts. To talk
to other processes, subclass `Transport`: implement `send`, set
`node_id`, and optionally override `traffic_suspended`. Feed received
packets to `Context.process_packet`. `load_settings` only reads settings.
Nothing in the package uses them to open connections.

## Running the tests

```
pip install .[test]
pytest
```