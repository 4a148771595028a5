"""A threaded TCP server that accepts connections and hands each to a handler."""

from __future__ import annotations

import logging
import select
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional

from exhy.address import Address
from exhy.config import Config
from exhy.sockets import Socket

_log = logging.getLogger(__name__)

_read_timeout = Config.lookup(
    "tcp_server.read_timeout", 60 * 1000 * 2, "tcp server read timeout"
)

_ACCEPT_POLL_SECONDS = 0.2
_JOIN_SECONDS = 5.0


class TcpServer:
    """Listens on bound addresses and runs :meth:`handle_client` per connection.

    Each listening socket gets its own accept thread; clients are served by a
    pool of ``max_workers`` threads and closed when the handler returns.
    """

    def __init__(self, max_workers: int = 10) -> None:
        if max_workers <= 0:
            raise ValueError("max_workers must be positive")
        self.max_workers = max_workers
        self.recv_timeout: Optional[int] = _read_timeout.value
        self.name = "exhy/1.0.0"
        self.type = "tcp"
        self.ssl = False
        self._socks: list[Socket] = []
        self._stopped = True
        self._accept_threads: list[threading.Thread] = []
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def socks(self) -> list[Socket]:
        """The listening sockets."""
        return list(self._socks)

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    def bind(self, addr: Address, ssl: bool = False) -> bool:
        """Bind and listen on ``addr``; True on success."""
        return not self.bind_all([addr], ssl)

    def bind_all(self, addrs: Iterable[Address], ssl: bool = False) -> list[Address]:
        """Bind and listen on every address; return those that failed.

        If any address fails, no socket is kept listening.
        """
        self.ssl = ssl
        fails: list[Address] = []
        for addr in addrs:
            sock = Socket.create_tcp(addr)
            try:
                sock.bind(addr)
            except (OSError, ValueError) as exc:
                _log.error("bind fail %s addr=[%s]", exc, addr)
                sock.close()
                fails.append(addr)
                continue
            try:
                sock.listen()
            except OSError as exc:
                _log.error("listen fail %s addr=[%s]", exc, addr)
                sock.close()
                fails.append(addr)
                continue
            self._socks.append(sock)
        if fails:
            for sock in self._socks:
                sock.close()
            self._socks.clear()
            return fails
        for sock in self._socks:
            _log.info("type=%s name=%s ssl=%d server bind success: %s",
                      self.type, self.name, int(self.ssl), sock)
        return []

    def start(self) -> bool:
        """Start accepting on every bound socket."""
        if not self._stopped:
            return True
        self._stopped = False
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix=f"{self.type}-worker"
        )
        for sock in self._socks:
            thread = threading.Thread(
                target=self._accept_loop, args=(sock, self._executor),
                name=f"{self.type}-accept-{sock.fd}", daemon=True,
            )
            self._accept_threads.append(thread)
            thread.start()
        return True

    def stop(self) -> None:
        """Stop accepting and close the listening sockets."""
        self._stopped = True
        for thread in self._accept_threads:
            thread.join(_JOIN_SECONDS)
        self._accept_threads.clear()
        for sock in self._socks:
            sock.close()
        self._socks.clear()
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    def __enter__(self) -> "TcpServer":
        return self

    def __exit__(self, *args) -> None:
        self.stop()

    def _accept_loop(self, sock: Socket, executor: ThreadPoolExecutor) -> None:
        while not self._stopped:
            fd = sock.fd
            if fd < 0:
                break
            try:
                ready, _, _ = select.select([fd], [], [], _ACCEPT_POLL_SECONDS)
            except (OSError, ValueError):
                break
            if not ready or self._stopped:
                continue
            try:
                client = sock.accept()
            except OSError as exc:
                if self._stopped:
                    break
                _log.error("accept failed: %s", exc)
                continue
            client.recv_timeout = self.recv_timeout
            try:
                executor.submit(self._serve, client)
            except RuntimeError:
                client.close()
                break

    def _serve(self, client: Socket) -> None:
        try:
            self.handle_client(client)
        except Exception:
            _log.exception("handle_client failed for %s", client)
        finally:
            client.close()

    def handle_client(self, client: Socket) -> None:
        """Serve one connection; the client is closed after this returns."""
        _log.info("handleClient %s", client)

    def to_string(self, prefix: str = "") -> str:
        lines = [
            f"{prefix}[type={self.type} name={self.name} ssl={int(self.ssl)}"
            f" workers={self.max_workers} recv_timeout={self.recv_timeout}]\n"
        ]
        pfx = prefix or "    "
        lines.extend(f"{pfx}{pfx}{sock}\n" for sock in self._socks)
        return "".join(lines)

    def __str__(self) -> str:
        return self.to_string()