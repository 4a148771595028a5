"""A TCP server that prints whatever its clients send, as text or hex."""

from __future__ import annotations

import codecs
import logging
import sys
import time
from typing import Optional, Sequence, TextIO

from exhy.address import Address
from exhy.bytearray import ByteArray
from exhy.sockets import Socket
from exhy.tcpserver import TcpServer

_log = logging.getLogger(__name__)

_CHUNK = 1024
_LISTEN = "0.0.0.0:8030"
_RETRY_SECONDS = 2


class EchoServer(TcpServer):
    """Writes received data to ``out``: decoded text or a hex dump."""

    def __init__(self, text_mode: bool = True, out: Optional[TextIO] = None) -> None:
        super().__init__()
        self.text_mode = text_mode
        self.out = out if out is not None else sys.stdout

    def handle_client(self, client: Socket) -> None:
        _log.info("handleClient %s", client)
        buffer = ByteArray()
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            buffer.clear()
            views = buffer.get_write_buffers(_CHUNK)
            try:
                count = client.recv_into(views)
            except OSError as exc:
                _log.info("client error %s: %s", client, exc)
                break
            if count == 0:
                _log.info("client close: %s", client)
                break
            buffer.position += count
            buffer.position = 0
            if self.text_mode:
                self.out.write(decoder.decode(buffer.to_bytes()))
            else:
                self.out.write(buffer.to_hex_string())
            self.out.flush()
        if self.text_mode:
            tail = decoder.decode(b"", final=True)
            if tail:
                self.out.write(tail)
                self.out.flush()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the echo server on port 8030; ``-t`` prints text, ``-b`` hex."""
    logging.basicConfig(level=logging.INFO)
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        _log.info("used as[%s -t] or [%s -b]", "echo_server", "echo_server")
        return 0
    text_mode = args[0] != "-b"
    _log.info("server type=%d", 1 if text_mode else 2)
    addr = Address.lookup_any(_LISTEN)
    if addr is None:
        _log.error("cannot resolve %s", _LISTEN)
        return 1
    server = EchoServer(text_mode)
    while not server.bind(addr):
        time.sleep(_RETRY_SECONDS)
    server.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        server.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())