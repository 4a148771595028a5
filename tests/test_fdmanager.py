import os
import socket

import pytest

from exhy.fdmanager import FdCtx, FdManager, TimeoutKind, fd_manager


@pytest.fixture
def sock_pair():
    first, second = socket.socketpair()
    yield first, second
    first.close()
    second.close()


def test_timeout_kinds_share_slots_with_socket_options(sock_pair):
    ctx = FdCtx(sock_pair[0].fileno())
    ctx.set_timeout(TimeoutKind.RECV, 100)
    ctx.set_timeout(TimeoutKind.SEND, 200)
    assert ctx.get_timeout(socket.SO_RCVTIMEO) == 100
    assert ctx.get_timeout(socket.SO_SNDTIMEO) == 200


def test_socket_ctx_is_nonblocking(sock_pair):
    first, _ = sock_pair
    assert os.get_blocking(first.fileno()) is True
    ctx = FdCtx(first.fileno())
    assert ctx.is_init is True
    assert ctx.is_socket is True
    assert ctx.sys_nonblock is True
    assert ctx.user_nonblock is False
    assert ctx.is_closed is False
    assert os.get_blocking(first.fileno()) is False


def test_regular_file_ctx(tmp_path):
    path = tmp_path / "data.bin"
    path.write_bytes(b"abc")
    with open(path, "rb") as handle:
        ctx = FdCtx(handle.fileno())
        assert ctx.is_init is True
        assert ctx.is_socket is False
        assert ctx.sys_nonblock is False
        assert os.get_blocking(handle.fileno()) is True


def test_closed_fd_ctx(tmp_path):
    path = tmp_path / "gone.bin"
    path.write_bytes(b"")
    fd = os.open(path, os.O_RDONLY)
    os.close(fd)
    ctx = FdCtx(fd)
    assert ctx.is_init is False
    assert ctx.is_socket is False


def test_timeouts_default_and_set(sock_pair):
    ctx = FdCtx(sock_pair[0].fileno())
    assert ctx.get_timeout(TimeoutKind.RECV) is None
    assert ctx.get_timeout(TimeoutKind.SEND) is None
    ctx.set_timeout(socket.SO_RCVTIMEO, 500)
    assert ctx.get_timeout(TimeoutKind.RECV) == 500
    assert ctx.get_timeout(TimeoutKind.SEND) is None
    ctx.set_timeout(TimeoutKind.SEND, 250)
    assert ctx.get_timeout(socket.SO_SNDTIMEO) == 250
    assert ctx.get_timeout(TimeoutKind.RECV) == 500


def test_manager_get_without_create(sock_pair):
    manager = FdManager()
    assert manager.get(sock_pair[0].fileno()) is None


def test_manager_auto_create_and_reuse(sock_pair):
    manager = FdManager()
    fd = sock_pair[0].fileno()
    ctx = manager.get(fd, True)
    assert ctx.fd == fd
    assert ctx.is_socket is True
    assert manager.get(fd) is ctx
    assert manager.get(fd, True) is ctx


def test_manager_delete(sock_pair):
    manager = FdManager()
    fd = sock_pair[1].fileno()
    manager.get(fd, True)
    manager.delete(fd)
    assert manager.get(fd) is None
    manager.delete(fd)
    assert manager.get(fd) is None


def test_manager_negative_fd():
    manager = FdManager()
    assert manager.get(-1, True) is None


def test_fd_manager_shares_contexts_between_calls(sock_pair):
    fd = sock_pair[0].fileno()
    ctx = fd_manager().get(fd, True)
    try:
        assert ctx.fd == fd
        assert fd_manager().get(fd) is ctx
    finally:
        fd_manager().delete(fd)
    assert fd_manager().get(fd) is None