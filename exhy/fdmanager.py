"""Per-descriptor bookkeeping: socket detection, non-blocking flags, timeouts."""

from __future__ import annotations

import enum
import functools
import os
import socket
import stat
import threading
from typing import Optional


class TimeoutKind(enum.IntEnum):
    """Which direction a timeout applies to, by socket option number."""

    RECV = socket.SO_RCVTIMEO
    SEND = socket.SO_SNDTIMEO


class FdCtx:
    """State kept for one file descriptor.

    A socket descriptor is switched to non-blocking mode on creation.
    Timeouts are in milliseconds; None means no timeout.
    """

    def __init__(self, fd: int) -> None:
        self.fd = fd
        self._is_init = False
        self._is_socket = False
        self._is_closed = False
        self.sys_nonblock = False
        self.user_nonblock = False
        self._recv_timeout: Optional[int] = None
        self._send_timeout: Optional[int] = None
        self._init()

    def _init(self) -> None:
        try:
            mode = os.fstat(self.fd).st_mode
        except OSError:
            self._is_init = False
            self._is_socket = False
        else:
            self._is_init = True
            self._is_socket = stat.S_ISSOCK(mode)
        if self._is_socket:
            if os.get_blocking(self.fd):
                os.set_blocking(self.fd, False)
            self.sys_nonblock = True
        else:
            self.sys_nonblock = False
        self.user_nonblock = False
        self._is_closed = False

    @property
    def is_init(self) -> bool:
        return self._is_init

    @property
    def is_socket(self) -> bool:
        return self._is_socket

    @property
    def is_closed(self) -> bool:
        return self._is_closed

    def set_timeout(self, kind: int, value: Optional[int]) -> None:
        """Set the receive timeout for RECV and the send timeout otherwise."""
        if kind == TimeoutKind.RECV:
            self._recv_timeout = value
        else:
            self._send_timeout = value

    def get_timeout(self, kind: int) -> Optional[int]:
        if kind == TimeoutKind.RECV:
            return self._recv_timeout
        return self._send_timeout


class FdManager:
    """A thread-safe table of :class:`FdCtx` keyed by descriptor."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._contexts: dict[int, FdCtx] = {}

    def get(self, fd: int, auto_create: bool = False) -> Optional[FdCtx]:
        """The context of ``fd``, created on demand when ``auto_create`` is set."""
        if fd < 0:
            return None
        with self._lock:
            ctx = self._contexts.get(fd)
            if ctx is not None or not auto_create:
                return ctx
            ctx = FdCtx(fd)
            self._contexts[fd] = ctx
            return ctx

    def delete(self, fd: int) -> None:
        """Forget the context of ``fd``, if any."""
        with self._lock:
            self._contexts.pop(fd, None)


@functools.lru_cache(maxsize=None)
def fd_manager() -> FdManager:
    """The process-wide descriptor table."""
    return FdManager()