# exhy

Building blocks for small network servers.

- `exhy.address`: `IPv4Address`, `IPv6Address`, `UnixAddress` and
  `UnknownAddress`, all comparable and hashable. `Address.lookup`,
  `Address.lookup_any` and `Address.lookup_any_ip_address` resolve host names,
  with an optional port written as `host:port` or `[v6]:port`.
  `Address.interface_addresses` lists interface addresses with their prefix
  lengths. IP addresses can also compute `network_address`,
  `broadcast_address` and `subnet_mask` for a given prefix length.
- `exhy.bytearray`: `ByteArray`, a buffer that grows in fixed-size blocks. It
  writes and reads fixed-width integers in big- or little-endian order
  (`little_endian`), zigzag varints, floats, doubles and length-prefixed
  strings. It can also give a hex dump, save to a file and load from one.
  Reading past the written data raises `IndexError`. The module also has the
  zigzag helpers `encode_zigzag32`, `decode_zigzag32`, `encode_zigzag64` and
  `decode_zigzag64`.
- `exhy.config`: `Config.lookup` registers named, typed `ConfigVar` values,
  which take change listeners (`add_listener`, `del_listener`).
  `Config.load_from_yaml` and `Config.load_from_yaml_text` set the registered
  values from dotted YAML paths.
- `exhy.fdmanager`: `FdManager` and `fd_manager()` keep per-descriptor state
  (`FdCtx`). This covers whether the descriptor is a socket, its non-blocking
  flags and its send and receive timeouts.
- `exhy.stream`: an abstract `Stream`. Its helpers `read_fix_size` and
  `write_fix_size`, with their `ByteArray` forms, move exact amounts of data
  and raise `EOFError` or `BrokenPipeError` when the stream stops short.
- `exhy.sockets`: `Socket`, a wrapper around the system socket. It keeps its
  family, type, addresses and millisecond timeouts, raises `OSError` on
  failure, and can be used as a context manager.
- `exhy.tcpserver`: `TcpServer`, which binds and listens on one or more
  addresses. It gives each listening socket its own accept thread and passes
  every accepted client to `handle_client` on a worker thread. The client is
  closed when `handle_client` returns.
- `exhy.echo_server`: `EchoServer`, a `TcpServer` that writes what its clients
  send to a text stream, either as text or as a hex dump.

## Install

```
pip install .
```

## Examples

```python
from exhy.bytearray import ByteArray

ba = ByteArray(base_size=1)
ba.write_int32(-42)
ba.write_string_vint(b"hello")
ba.position = 0
assert ba.read_int32() == -42
assert ba.read_string_vint() == b"hello"
```

```python
from exhy.config import Config

port = Config.lookup("server.port", 8030, "listening port")
Config.load_from_yaml_text("server:\n  port: 9000\n")
assert port.value == 9000
```

```python
from exhy.address import Address
from exhy.tcpserver import TcpServer

class Printer(TcpServer):
    def handle_client(self, client):
        print(client.recv(1024))

server = Printer()
server.bind(Address.lookup_any("0.0.0.0:8030"))
server.start()
```

## Echo server

The echo server listens on `0.0.0.0:8030` and prints whatever its clients
send to standard output:

```
exhy-echo-server -t    # print received data as text
exhy-echo-server -b    # print received data as hex
```

If you start it with no argument, it logs a usage line and exits. If the port
cannot be bound, it tries again every two seconds. Ctrl-C stops it.

## What it does not do

- `TcpServer` serves clients on ordinary threads. There is no coroutine
  scheduler or event loop.
- The `ssl` flag of `TcpServer.bind` is only recorded and shown by
  `to_string`. Connections are never encrypted.