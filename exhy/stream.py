"""An abstract byte stream with helpers that transfer exact amounts."""

from __future__ import annotations

from abc import ABC, abstractmethod

from exhy.bytearray import ByteArray


class Stream(ABC):
    """A source and sink of bytes.

    ``read`` returns an empty result when the stream has ended and ``write``
    returns 0 when nothing more can be written.  The ``*_fix_size`` helpers
    repeat the basic calls until the whole amount has been moved.
    """

    @abstractmethod
    def read(self, length: int) -> bytes:
        """Read at most ``length`` bytes; empty at the end of the stream."""

    @abstractmethod
    def read_into(self, ba: ByteArray, length: int) -> int:
        """Read at most ``length`` bytes into ``ba``; return how many, 0 at the end."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Write some of ``data``; return how many bytes were taken."""

    @abstractmethod
    def write_from(self, ba: ByteArray, length: int) -> int:
        """Write at most ``length`` bytes taken from ``ba``; return how many."""

    @abstractmethod
    def close(self) -> None:
        """Release the stream."""

    def read_fix_size(self, length: int) -> bytes:
        """Read exactly ``length`` bytes; raise EOFError if the stream ends first."""
        chunks: list[bytes] = []
        received = 0
        while received < length:
            chunk = self.read(length - received)
            if not chunk:
                raise EOFError(f"stream ended after {received} of {length} bytes")
            chunks.append(chunk)
            received += len(chunk)
        return b"".join(chunks)

    def read_fix_size_into(self, ba: ByteArray, length: int) -> int:
        """Read exactly ``length`` bytes into ``ba``; raise EOFError if the stream ends first."""
        left = length
        while left > 0:
            count = self.read_into(ba, left)
            if count <= 0:
                raise EOFError(f"stream ended after {length - left} of {length} bytes")
            left -= count
        return length

    def write_fix_size(self, data: bytes) -> int:
        """Write all of ``data``; raise BrokenPipeError if the stream stops taking it."""
        view = memoryview(bytes(data))
        offset = 0
        while offset < len(view):
            count = self.write(view[offset:])
            if count <= 0:
                raise BrokenPipeError(f"stream closed after {offset} of {len(view)} bytes")
            offset += count
        return len(view)

    def write_fix_size_from(self, ba: ByteArray, length: int) -> int:
        """Write exactly ``length`` bytes from ``ba``; raise BrokenPipeError on a stall."""
        left = length
        while left > 0:
            count = self.write_from(ba, left)
            if count <= 0:
                raise BrokenPipeError(f"stream closed after {length - left} of {length} bytes")
            left -= count
        return length