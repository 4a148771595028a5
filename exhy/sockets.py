"""A socket wrapper that keeps its family, type, addresses and timeouts."""

from __future__ import annotations

import enum
import errno
import logging
import socket
from typing import Callable, Iterable, Optional, Union

from exhy.address import Address, UnixAddress, UnknownAddress

_log = logging.getLogger(__name__)

Buffer = Union[bytes, bytearray, memoryview]


class SocketType(enum.IntEnum):
    TCP = socket.SOCK_STREAM
    UDP = socket.SOCK_DGRAM


class SocketFamily(enum.IntEnum):
    IPv4 = socket.AF_INET
    IPv6 = socket.AF_INET6
    UNIX = socket.AF_UNIX


class Socket:
    """A socket whose OS handle is created lazily by bind or connect.

    Timeouts are in milliseconds; None means wait without limit.  Failed
    operations raise OSError (TimeoutError when a timeout expires).
    """

    def __init__(self, family: int, type: int, protocol: int = 0) -> None:
        self.family = int(family)
        self.type = int(type)
        self.protocol = int(protocol)
        self._sock: Optional[socket.socket] = None
        self._connected = False
        self._local_address: Optional[Address] = None
        self._remote_address: Optional[Address] = None
        self._recv_timeout: Optional[int] = None
        self._send_timeout: Optional[int] = None

    # -- factories ----------------------------------------------------------

    @staticmethod
    def create_tcp(address: Address) -> "Socket":
        return Socket(address.family, SocketType.TCP)

    @staticmethod
    def create_udp(address: Address) -> "Socket":
        sock = Socket(address.family, SocketType.UDP)
        sock._new_sock()
        sock._connected = True
        return sock

    @staticmethod
    def create_tcp_socket() -> "Socket":
        return Socket(SocketFamily.IPv4, SocketType.TCP)

    @staticmethod
    def create_udp_socket() -> "Socket":
        return Socket(SocketFamily.IPv4, SocketType.UDP)

    @staticmethod
    def create_tcp_socket6() -> "Socket":
        return Socket(SocketFamily.IPv6, SocketType.TCP)

    @staticmethod
    def create_udp_socket6() -> "Socket":
        return Socket(SocketFamily.IPv6, SocketType.UDP)

    @staticmethod
    def create_unix_tcp_socket() -> "Socket":
        return Socket(SocketFamily.UNIX, SocketType.TCP)

    @staticmethod
    def create_unix_udp_socket() -> "Socket":
        return Socket(SocketFamily.UNIX, SocketType.UDP)

    # -- state --------------------------------------------------------------

    @property
    def fd(self) -> int:
        """The OS handle, or -1 when there is none."""
        return self._sock.fileno() if self._sock is not None else -1

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def send_timeout(self) -> Optional[int]:
        return self._send_timeout

    @send_timeout.setter
    def send_timeout(self, value: Optional[int]) -> None:
        self._send_timeout = None if value is None else int(value)

    @property
    def recv_timeout(self) -> Optional[int]:
        return self._recv_timeout

    @recv_timeout.setter
    def recv_timeout(self, value: Optional[int]) -> None:
        self._recv_timeout = None if value is None else int(value)

    def is_valid(self) -> bool:
        return self._sock is not None

    def _require_sock(self) -> socket.socket:
        if self._sock is None:
            raise OSError(errno.EBADF, "socket is not open")
        return self._sock

    def _require_connected(self) -> socket.socket:
        if not self._connected:
            raise OSError(errno.ENOTCONN, "socket is not connected")
        return self._require_sock()

    def _with_timeout(self, timeout_ms: Optional[int]) -> socket.socket:
        sock = self._require_sock()
        sock.settimeout(None if timeout_ms is None else timeout_ms / 1000)
        return sock

    # -- options ------------------------------------------------------------

    def get_option(self, level: int, option: int, buflen: int = 0) -> Union[int, bytes]:
        """An integer option, or the raw bytes when ``buflen`` is given."""
        sock = self._require_sock()
        if buflen:
            return sock.getsockopt(level, option, buflen)
        return sock.getsockopt(level, option)

    def set_option(self, level: int, option: int, value: Union[int, bytes]) -> None:
        self._require_sock().setsockopt(level, option, value)

    def get_error(self) -> int:
        """The pending socket error, or the errno of failing to read it."""
        try:
            return int(self.get_option(socket.SOL_SOCKET, socket.SO_ERROR))
        except OSError as exc:
            return exc.errno or errno.EBADF

    # -- lifecycle ----------------------------------------------------------

    def _init_sock(self) -> None:
        for level, option in ((socket.SOL_SOCKET, socket.SO_REUSEADDR),
                              (socket.IPPROTO_TCP, socket.TCP_NODELAY)):
            if option == socket.TCP_NODELAY and self.type != socket.SOCK_STREAM:
                continue
            try:
                self.set_option(level, option, 1)
            except OSError as exc:
                _log.debug("set_option sock=%d level=%d option=%d: %s",
                           self.fd, level, option, exc)

    def _new_sock(self) -> None:
        try:
            self._sock = socket.socket(self.family, self.type, self.protocol)
        except OSError as exc:
            _log.error("socket(%d, %d, %d) failed: %s",
                       self.family, self.type, self.protocol, exc)
            raise
        self._init_sock()

    def _adopt(self, sock: socket.socket) -> None:
        self._sock = sock
        self._connected = True
        self._init_sock()
        self.local_address()
        self.remote_address()

    def accept(self) -> "Socket":
        """Wait for and return a new connection on a listening socket."""
        listener = self._with_timeout(self._recv_timeout)
        try:
            conn, _ = listener.accept()
        except OSError as exc:
            _log.error("accept(%d) failed: %s", self.fd, exc)
            raise
        conn.settimeout(None)
        client = Socket(self.family, self.type, self.protocol)
        client._adopt(conn)
        return client

    def bind(self, addr: Address) -> None:
        """Bind to ``addr``; a Unix path already being served is refused."""
        if not self.is_valid():
            self._new_sock()
        if int(addr.family) != self.family:
            raise ValueError(
                f"bind sock.family({self.family}) addr.family({addr.family}) "
                f"not equal, addr={addr}"
            )
        if isinstance(addr, UnixAddress):
            probe = Socket.create_unix_tcp_socket()
            try:
                probe.connect(addr)
            except OSError:
                pass
            else:
                probe.close()
                raise OSError(errno.EADDRINUSE, f"{addr} is already in use")
        try:
            self._require_sock().bind(addr.to_sockaddr())
        except OSError as exc:
            _log.error("bind %s failed: %s", addr, exc)
            raise
        self.local_address()

    def connect(self, addr: Address, timeout_ms: Optional[int] = None) -> None:
        """Connect to ``addr``; on failure the socket is closed and the error raised."""
        self._remote_address = addr
        if not self.is_valid():
            self._new_sock()
        if int(addr.family) != self.family:
            raise ValueError(
                f"connect sock.family({self.family}) addr.family({addr.family}) "
                f"not equal, addr={addr}"
            )
        try:
            self._with_timeout(timeout_ms).connect(addr.to_sockaddr())
        except OSError as exc:
            _log.error("sock=%d connect(%s) timeout=%s failed: %s",
                       self.fd, addr, timeout_ms, exc)
            self.close()
            raise
        self._require_sock().settimeout(None)
        self._connected = True
        self.remote_address()
        self.local_address()

    def reconnect(self, timeout_ms: Optional[int] = None) -> None:
        """Connect again to the last remote address."""
        if self._remote_address is None:
            raise ValueError("reconnect: no remote address")
        self._local_address = None
        self.connect(self._remote_address, timeout_ms)

    def listen(self, backlog: int = socket.SOMAXCONN) -> None:
        try:
            self._require_sock().listen(backlog)
        except OSError as exc:
            _log.error("listen sock=%d failed: %s", self.fd, exc)
            raise

    def close(self) -> None:
        self._connected = False
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def __enter__(self) -> "Socket":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # -- data ---------------------------------------------------------------

    def send(self, data: Buffer, flags: int = 0) -> int:
        self._require_connected()
        return self._with_timeout(self._send_timeout).send(data, flags)

    def send_buffers(self, buffers: Iterable[Buffer], flags: int = 0) -> int:
        self._require_connected()
        return self._with_timeout(self._send_timeout).sendmsg(list(buffers), [], flags)

    def send_to(self, data: Buffer, to: Address, flags: int = 0) -> int:
        self._require_connected()
        return self._with_timeout(self._send_timeout).sendto(data, flags, to.to_sockaddr())

    def recv(self, length: int, flags: int = 0) -> bytes:
        """Up to ``length`` bytes; empty when the peer has closed."""
        self._require_connected()
        return self._with_timeout(self._recv_timeout).recv(length, flags)

    def recv_into(self, buffers: Iterable[memoryview], flags: int = 0) -> int:
        """Fill the writable ``buffers`` in order; return the byte count, 0 on close."""
        self._require_connected()
        return self._with_timeout(self._recv_timeout).recvmsg_into(list(buffers), 0, flags)[0]

    def recv_from(self, length: int, flags: int = 0) -> tuple[bytes, Address]:
        """Up to ``length`` bytes and the address they came from."""
        self._require_connected()
        data, raw = self._with_timeout(self._recv_timeout).recvfrom(length, flags)
        if raw is None:
            return data, UnknownAddress(self.family)
        try:
            return data, Address.from_sockaddr(self.family, raw)
        except ValueError:
            return data, UnknownAddress(self.family)

    # -- addresses ----------------------------------------------------------

    def _query_address(self, getter: Callable[[], object]) -> Optional[Address]:
        try:
            raw = getter()
            return Address.from_sockaddr(self.family, raw)
        except (OSError, ValueError):
            return None

    def remote_address(self) -> Address:
        """The peer's address, or an UnknownAddress if it cannot be had."""
        if self._remote_address is not None:
            return self._remote_address
        if self._sock is None:
            return UnknownAddress(self.family)
        result = self._query_address(self._sock.getpeername)
        if result is None:
            return UnknownAddress(self.family)
        self._remote_address = result
        return result

    def local_address(self) -> Address:
        """The bound address, or an UnknownAddress if it cannot be had."""
        if self._local_address is not None:
            return self._local_address
        if self._sock is None:
            return UnknownAddress(self.family)
        result = self._query_address(self._sock.getsockname)
        if result is None:
            return UnknownAddress(self.family)
        self._local_address = result
        return result

    def __str__(self) -> str:
        parts = [
            f"[Socket sock={self.fd}",
            f" is_connected={int(self._connected)}",
            f" family={self.family}",
            f" type={self.type}",
            f" protocol={self.protocol}",
        ]
        if self._local_address is not None:
            parts.append(f" local_address={self._local_address}")
        if self._remote_address is not None:
            parts.append(f" remote_address={self._remote_address}")
        parts.append("]")
        return "".join(parts)

    def __repr__(self) -> str:
        return f"<Socket {self}>"