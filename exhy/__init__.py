"""Socket addresses, a chunked byte buffer, typed YAML configuration, sockets and a threaded TCP server."""

__version__ = "0.1.0"
__all__ = ["address", "bytearray", "config", "fdmanager", "stream", "sockets", "tcpserver", "echo_server"]