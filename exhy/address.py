"""Socket address types, host name lookup and interface enumeration."""

from __future__ import annotations

import abc
import logging
import os
import socket
import struct
from typing import Optional, Union

import psutil

_log = logging.getLogger(__name__)

_UNIX_PATH_SIZE = 108
_UNIX_PATH_OFFSET = 2
_NO_PREFIX = 0xFFFFFFFF

_V4_BITS = 32
_V6_BITS = 128


def _family_header(family: int) -> bytes:
    return struct.pack("=H", family & 0xFFFF)


def _check_prefix(prefix_len: int, bits: int) -> None:
    if not 0 <= prefix_len <= bits:
        raise ValueError(f"prefix length {prefix_len} out of range 0..{bits}")


def _host_mask(prefix_len: int, bits: int) -> int:
    """Mask covering the host part of an address with the given prefix."""
    _check_prefix(prefix_len, bits)
    return (1 << (bits - prefix_len)) - 1


def _split_host(host: str) -> tuple[str, Optional[str]]:
    """Split ``host`` into node and service, accepting ``[v6]:port`` and ``node:port``."""
    node = ""
    service: Optional[str] = None
    if host.startswith("["):
        end = host.find("]", 1)
        if end != -1:
            if host[end + 1:end + 2] == ":":
                service = host[end + 2:]
            node = host[1:end]
    if not node:
        first = host.find(":")
        if first != -1 and host.find(":", first + 1) == -1:
            node = host[:first]
            service = host[first + 1:]
    if not node:
        node = host
    return node, service or None


def _prefix_from_netmask(family: int, netmask: Optional[str]) -> int:
    if not netmask:
        return _NO_PREFIX
    packed = socket.inet_pton(family, netmask.split("%", 1)[0])
    return bin(int.from_bytes(packed, "big")).count("1")


class Address(abc.ABC):
    """A socket address that can be compared, hashed and printed."""

    family: int

    @property
    @abc.abstractmethod
    def packed(self) -> bytes:
        """The address laid out as the kernel's sockaddr structure."""

    @abc.abstractmethod
    def to_sockaddr(self):
        """The address in the form the ``socket`` module expects."""

    @abc.abstractmethod
    def __str__(self) -> str:
        ...

    @property
    def addr_len(self) -> int:
        return len(self.packed)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Address):
            return NotImplemented
        return self.packed == other.packed

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Address):
            return NotImplemented
        # Byte-wise comparison; on a common prefix the shorter one sorts first.
        return self.packed < other.packed

    def __hash__(self) -> int:
        return hash(self.packed)

    @staticmethod
    def from_sockaddr(family: int, sockaddr) -> "Address":
        """Build an address from a ``socket`` module address of ``family``."""
        if family == socket.AF_INET:
            host, port = sockaddr[0], sockaddr[1]
            return IPv4Address.create(host, port)
        if family == socket.AF_INET6:
            host, port = sockaddr[0], sockaddr[1]
            result = IPv6Address.create(host.split("%", 1)[0], port)
            if len(sockaddr) >= 4:
                result._flowinfo = int(sockaddr[2])
                result._scope_id = int(sockaddr[3])
            return result
        if family == socket.AF_UNIX:
            return UnixAddress(sockaddr)
        return UnknownAddress(family)

    @staticmethod
    def lookup(host: str, family: int = socket.AF_INET, type: int = 0,
               protocol: int = 0) -> list["Address"]:
        """Resolve ``host`` (optionally with a port); an empty list on failure."""
        node, service = _split_host(host)
        try:
            infos = socket.getaddrinfo(node, service, family, type, protocol)
        except (socket.gaierror, UnicodeError) as exc:
            _log.debug("Address.lookup(%s, %s, %s) failed: %s", host, family, type, exc)
            return []
        return [Address.from_sockaddr(fam, sockaddr) for fam, _, _, _, sockaddr in infos]

    @staticmethod
    def lookup_any(host: str, family: int = socket.AF_INET, type: int = 0,
                   protocol: int = 0) -> Optional["Address"]:
        """The first address ``host`` resolves to, or None."""
        results = Address.lookup(host, family, type, protocol)
        return results[0] if results else None

    @staticmethod
    def lookup_any_ip_address(host: str, family: int = socket.AF_INET, type: int = 0,
                              protocol: int = 0) -> Optional["IPAddress"]:
        """The first IP address ``host`` resolves to, or None."""
        return next(
            (addr for addr in Address.lookup(host, family, type, protocol)
             if isinstance(addr, IPAddress)),
            None,
        )

    @staticmethod
    def interface_addresses(family: int = socket.AF_INET) -> dict[str, list[tuple["Address", int]]]:
        """Map each interface name to its (address, prefix length) pairs."""
        try:
            interfaces = psutil.net_if_addrs()
        except OSError as exc:
            _log.debug("Address.interface_addresses failed: %s", exc)
            return {}
        result: dict[str, list[tuple[Address, int]]] = {}
        for name, entries in interfaces.items():
            for entry in entries:
                entry_family = int(entry.family)
                if entry_family not in (socket.AF_INET, socket.AF_INET6):
                    continue
                if family != socket.AF_UNSPEC and family != entry_family:
                    continue
                try:
                    host = entry.address.split("%", 1)[0]
                    if entry_family == socket.AF_INET:
                        addr: Address = IPv4Address.create(host)
                    else:
                        addr = IPv6Address.create(host)
                    prefix = _prefix_from_netmask(entry_family, entry.netmask)
                except (ValueError, OSError) as exc:
                    _log.error("Address.interface_addresses: bad entry on %s: %s", name, exc)
                    return {}
                result.setdefault(name, []).append((addr, prefix))
        return result

    @staticmethod
    def interface_addresses_for(iface: str, family: int = socket.AF_INET) -> list[tuple["Address", int]]:
        """The (address, prefix length) pairs of one interface; ``*`` means any."""
        if not iface or iface == "*":
            result: list[tuple[Address, int]] = []
            if family in (socket.AF_INET, socket.AF_UNSPEC):
                result.append((IPv4Address(), 0))
            if family in (socket.AF_INET6, socket.AF_UNSPEC):
                result.append((IPv6Address(), 0))
            return result
        return list(Address.interface_addresses(family).get(iface, []))


class IPAddress(Address):
    """An internet address with a port."""

    _port: int = 0

    @property
    def port(self) -> int:
        return self._port

    @port.setter
    def port(self, value: int) -> None:
        self._port = int(value) & 0xFFFF

    @staticmethod
    def create(address: str, port: int = 0) -> "IPAddress":
        """Resolve ``address`` of any family and give it ``port``."""
        try:
            infos = socket.getaddrinfo(address, None, socket.AF_UNSPEC)
        except (socket.gaierror, UnicodeError) as exc:
            raise ValueError(f"cannot resolve {address!r}: {exc}") from exc
        family, _, _, _, sockaddr = infos[0]
        result = Address.from_sockaddr(family, sockaddr)
        if not isinstance(result, IPAddress):
            raise ValueError(f"{address!r} is not an IP address")
        result.port = port
        return result

    @abc.abstractmethod
    def broadcast_address(self, prefix_len: int) -> "IPAddress":
        """The last address of the network of the given prefix."""

    @abc.abstractmethod
    def network_address(self, prefix_len: int) -> "IPAddress":
        """The first address of the network of the given prefix."""

    @abc.abstractmethod
    def subnet_mask(self, prefix_len: int) -> "IPAddress":
        """The netmask of the given prefix, with port 0."""


class IPv4Address(IPAddress):
    """An IPv4 address; ``address`` is the 32-bit value in host order."""

    family = socket.AF_INET

    def __init__(self, address: int = 0, port: int = 0) -> None:
        self._ip = int(address) & 0xFFFFFFFF
        self.port = port

    @staticmethod
    def create(address: str, port: int = 0) -> "IPv4Address":
        """Parse a dotted-quad address."""
        try:
            packed = socket.inet_pton(socket.AF_INET, address)
        except (OSError, TypeError) as exc:
            raise ValueError(f"invalid IPv4 address {address!r}") from exc
        return IPv4Address(int.from_bytes(packed, "big"), port)

    @property
    def host(self) -> str:
        return socket.inet_ntop(socket.AF_INET, self._ip.to_bytes(4, "big"))

    @property
    def packed(self) -> bytes:
        return (_family_header(self.family) + struct.pack("!HI", self.port, self._ip)
                + bytes(8))

    def to_sockaddr(self) -> tuple[str, int]:
        return (self.host, self.port)

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"

    def broadcast_address(self, prefix_len: int) -> "IPv4Address":
        return IPv4Address(self._ip | _host_mask(prefix_len, _V4_BITS), self.port)

    def network_address(self, prefix_len: int) -> "IPv4Address":
        return IPv4Address(self._ip & ~_host_mask(prefix_len, _V4_BITS), self.port)

    def subnet_mask(self, prefix_len: int) -> "IPv4Address":
        return IPv4Address(~_host_mask(prefix_len, _V4_BITS), 0)


class IPv6Address(IPAddress):
    """An IPv6 address; ``address`` is the 16 raw bytes."""

    family = socket.AF_INET6

    def __init__(self, address: Optional[bytes] = None, port: int = 0) -> None:
        raw = bytes(16) if address is None else bytes(address)
        if len(raw) != 16:
            raise ValueError("an IPv6 address is 16 bytes long")
        self._ip = int.from_bytes(raw, "big")
        self._flowinfo = 0
        self._scope_id = 0
        self.port = port

    @staticmethod
    def create(address: str, port: int = 0) -> "IPv6Address":
        """Parse a textual IPv6 address."""
        try:
            packed = socket.inet_pton(socket.AF_INET6, address)
        except (OSError, TypeError) as exc:
            raise ValueError(f"invalid IPv6 address {address!r}") from exc
        return IPv6Address(packed, port)

    def _derive(self, ip: int, port: int, keep_extra: bool = True) -> "IPv6Address":
        result = IPv6Address((ip & ((1 << _V6_BITS) - 1)).to_bytes(16, "big"), port)
        if keep_extra:
            result._flowinfo = self._flowinfo
            result._scope_id = self._scope_id
        return result

    @property
    def raw(self) -> bytes:
        return self._ip.to_bytes(16, "big")

    @property
    def host(self) -> str:
        return socket.inet_ntop(socket.AF_INET6, self.raw)

    @property
    def packed(self) -> bytes:
        return (_family_header(self.family) + struct.pack("!HI", self.port, self._flowinfo)
                + self.raw + struct.pack("=I", self._scope_id))

    def to_sockaddr(self) -> tuple[str, int, int, int]:
        return (self.host, self.port, self._flowinfo, self._scope_id)

    def __str__(self) -> str:
        words = struct.unpack("!8H", self.raw)
        parts = ["["]
        used_zeros = False
        for index, (previous, word) in enumerate(zip((None,) + words, words)):
            if word == 0 and not used_zeros:
                continue
            if index and previous == 0 and not used_zeros:
                parts.append(":")
                used_zeros = True
            if index:
                parts.append(":")
            parts.append(f"{word:x}")
        if not used_zeros and words[-1] == 0:
            parts.append("::")
        parts.append(f"]:{self.port}")
        return "".join(parts)

    def broadcast_address(self, prefix_len: int) -> "IPv6Address":
        return self._derive(self._ip | _host_mask(prefix_len, _V6_BITS), self.port)

    def network_address(self, prefix_len: int) -> "IPv6Address":
        return self._derive(self._ip & ~_host_mask(prefix_len, _V6_BITS), self.port)

    def subnet_mask(self, prefix_len: int) -> "IPv6Address":
        return self._derive(~_host_mask(prefix_len, _V6_BITS), 0, keep_extra=False)


class UnixAddress(Address):
    """A Unix domain socket path; a leading NUL byte names an abstract socket."""

    family = socket.AF_UNIX

    def __init__(self, path: Union[str, bytes, None] = None) -> None:
        if path is None:
            self._path = b""
            self._length = _UNIX_PATH_OFFSET + _UNIX_PATH_SIZE - 1
            return
        raw = os.fsencode(path)
        length = len(raw) + 1
        if raw.startswith(b"\0"):
            length -= 1
        if length > _UNIX_PATH_SIZE:
            raise ValueError("path too long")
        self._path = raw
        self._length = length + _UNIX_PATH_OFFSET

    @property
    def is_abstract(self) -> bool:
        return self._length > _UNIX_PATH_OFFSET and self._path.startswith(b"\0")

    @property
    def path(self) -> str:
        if self.is_abstract:
            return "\\0" + os.fsdecode(self._path[1:])
        return os.fsdecode(self._path.split(b"\0", 1)[0])

    @property
    def packed(self) -> bytes:
        size = self._length - _UNIX_PATH_OFFSET
        return _family_header(self.family) + self._path.ljust(size, b"\0")[:size]

    def to_sockaddr(self) -> Union[str, bytes]:
        if self.is_abstract:
            return self._path
        return os.fsdecode(self._path)

    def __str__(self) -> str:
        return self.path


class UnknownAddress(Address):
    """An address of a family this package does not interpret."""

    def __init__(self, family: int) -> None:
        self.family = int(family)

    @property
    def packed(self) -> bytes:
        return _family_header(self.family) + bytes(14)

    def to_sockaddr(self):
        raise ValueError(f"no socket address form for family {self.family}")

    def __str__(self) -> str:
        return f"[UnknownAddress family={self.family}]"