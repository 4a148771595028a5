"""A growable binary buffer with fixed-width, varint and string encodings."""

from __future__ import annotations

import math
import os
import struct
from typing import Iterator, Optional, Union

_U32 = 0xFFFFFFFF
_U64 = 0xFFFFFFFFFFFFFFFF

Text = Union[str, bytes, bytearray, memoryview]


def encode_zigzag32(value: int) -> int:
    """Map a signed 32-bit integer onto an unsigned one, small magnitudes first."""
    if not -(1 << 31) <= value < (1 << 31):
        raise OverflowError(f"{value} does not fit in int32")
    return ((value << 1) ^ (value >> 31)) & _U32


def decode_zigzag32(value: int) -> int:
    """Inverse of :func:`encode_zigzag32`."""
    value &= _U32
    return (value >> 1) ^ -(value & 1)


def encode_zigzag64(value: int) -> int:
    """Map a signed 64-bit integer onto an unsigned one, small magnitudes first."""
    if not -(1 << 63) <= value < (1 << 63):
        raise OverflowError(f"{value} does not fit in int64")
    return ((value << 1) ^ (value >> 63)) & _U64


def decode_zigzag64(value: int) -> int:
    """Inverse of :func:`encode_zigzag64`."""
    value &= _U64
    return (value >> 1) ^ -(value & 1)


def _as_bytes(value: Text) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


class ByteArray:
    """A buffer made of fixed-size blocks with a shared read/write position.

    Multi-byte fixed-width values are big-endian unless ``little_endian`` is set.
    Reading past the written size raises :class:`IndexError`.
    """

    def __init__(self, base_size: int = 4096) -> None:
        if base_size <= 0:
            raise ValueError("base_size must be positive")
        self._base_size = base_size
        self._nodes: list[bytearray] = [bytearray(base_size)]
        self._position = 0
        self._size = 0
        self.little_endian = False

    # -- state --------------------------------------------------------------

    @property
    def base_size(self) -> int:
        return self._base_size

    @property
    def capacity(self) -> int:
        return len(self._nodes) * self._base_size

    @property
    def size(self) -> int:
        return self._size

    @property
    def read_size(self) -> int:
        return self._size - self._position

    @property
    def position(self) -> int:
        return self._position

    @position.setter
    def position(self, value: int) -> None:
        if value < 0 or value > self.capacity:
            raise IndexError("set_position out of range")
        self._position = value
        if value > self._size:
            self._size = value

    @property
    def _order(self) -> str:
        return "little" if self.little_endian else "big"

    @property
    def _struct_prefix(self) -> str:
        return "<" if self.little_endian else ">"

    def clear(self) -> None:
        """Drop all data and shrink back to a single block."""
        self._position = self._size = 0
        del self._nodes[1:]

    # -- raw access ---------------------------------------------------------

    def _add_capacity(self, size: int) -> None:
        free = self.capacity - self._position
        if size <= 0 or free >= size:
            return
        count = math.ceil((size - free) / self._base_size)
        self._nodes.extend(bytearray(self._base_size) for _ in range(count))

    def _segments(self, position: int, length: int) -> Iterator[memoryview]:
        index, offset = divmod(position, self._base_size)
        while length > 0:
            count = min(self._base_size - offset, length)
            yield memoryview(self._nodes[index])[offset:offset + count]
            length -= count
            index += 1
            offset = 0

    def write(self, data: Text) -> None:
        """Write ``data`` at the position and advance past it."""
        raw = memoryview(_as_bytes(data))
        if not raw:
            return
        self._add_capacity(len(raw))
        done = 0
        for segment in self._segments(self._position, len(raw)):
            segment[:] = raw[done:done + len(segment)]
            done += len(segment)
        self._position += len(raw)
        if self._position > self._size:
            self._size = self._position

    def peek(self, size: int, position: Optional[int] = None) -> bytes:
        """Read ``size`` bytes at ``position`` without moving the position."""
        start = self._position if position is None else position
        if size < 0 or start < 0 or start + size > self._size:
            raise IndexError("not enough data to read")
        return b"".join(bytes(segment) for segment in self._segments(start, size))

    def read(self, size: int) -> bytes:
        """Read ``size`` bytes at the position and advance past them."""
        data = self.peek(size)
        self._position += size
        return data

    # -- fixed width --------------------------------------------------------

    def _write_int(self, value: int, width: int, signed: bool) -> None:
        self.write(int(value).to_bytes(width, self._order, signed=signed))

    def _read_int(self, width: int, signed: bool) -> int:
        return int.from_bytes(self.read(width), self._order, signed=signed)

    def write_fint8(self, value: int) -> None:
        self._write_int(value, 1, True)

    def write_fuint8(self, value: int) -> None:
        self._write_int(value, 1, False)

    def write_fint16(self, value: int) -> None:
        self._write_int(value, 2, True)

    def write_fuint16(self, value: int) -> None:
        self._write_int(value, 2, False)

    def write_fint32(self, value: int) -> None:
        self._write_int(value, 4, True)

    def write_fuint32(self, value: int) -> None:
        self._write_int(value, 4, False)

    def write_fint64(self, value: int) -> None:
        self._write_int(value, 8, True)

    def write_fuint64(self, value: int) -> None:
        self._write_int(value, 8, False)

    def read_fint8(self) -> int:
        return self._read_int(1, True)

    def read_fuint8(self) -> int:
        return self._read_int(1, False)

    def read_fint16(self) -> int:
        return self._read_int(2, True)

    def read_fuint16(self) -> int:
        return self._read_int(2, False)

    def read_fint32(self) -> int:
        return self._read_int(4, True)

    def read_fuint32(self) -> int:
        return self._read_int(4, False)

    def read_fint64(self) -> int:
        return self._read_int(8, True)

    def read_fuint64(self) -> int:
        return self._read_int(8, False)

    # -- varints ------------------------------------------------------------

    def _write_varint(self, value: int, limit: int) -> None:
        if not 0 <= value <= limit:
            raise OverflowError(f"{value} does not fit in the varint range")
        out = bytearray()
        while value >= 0x80:
            out.append((value & 0x7F) | 0x80)
            value >>= 7
        out.append(value)
        self.write(out)

    def _read_varint(self, bits: int, mask: int) -> int:
        result = 0
        for shift in range(0, bits, 7):
            byte = self.read_fuint8()
            result |= (byte & 0x7F) << shift
            if byte < 0x80:
                break
        return result & mask

    def write_int32(self, value: int) -> None:
        self.write_uint32(encode_zigzag32(value))

    def write_uint32(self, value: int) -> None:
        self._write_varint(value, _U32)

    def write_int64(self, value: int) -> None:
        self.write_uint64(encode_zigzag64(value))

    def write_uint64(self, value: int) -> None:
        self._write_varint(value, _U64)

    def read_int32(self) -> int:
        return decode_zigzag32(self.read_uint32())

    def read_uint32(self) -> int:
        return self._read_varint(32, _U32)

    def read_int64(self) -> int:
        return decode_zigzag64(self.read_uint64())

    def read_uint64(self) -> int:
        return self._read_varint(64, _U64)

    # -- floating point -----------------------------------------------------

    def write_float(self, value: float) -> None:
        self.write(struct.pack(self._struct_prefix + "f", value))

    def write_double(self, value: float) -> None:
        self.write(struct.pack(self._struct_prefix + "d", value))

    def read_float(self) -> float:
        return struct.unpack(self._struct_prefix + "f", self.read(4))[0]

    def read_double(self) -> float:
        return struct.unpack(self._struct_prefix + "d", self.read(8))[0]

    # -- strings ------------------------------------------------------------

    def write_string_f16(self, value: Text) -> None:
        raw = _as_bytes(value)
        self.write_fuint16(len(raw))
        self.write(raw)

    def write_string_f32(self, value: Text) -> None:
        raw = _as_bytes(value)
        self.write_fuint32(len(raw))
        self.write(raw)

    def write_string_f64(self, value: Text) -> None:
        raw = _as_bytes(value)
        self.write_fuint64(len(raw))
        self.write(raw)

    def write_string_vint(self, value: Text) -> None:
        raw = _as_bytes(value)
        self.write_uint64(len(raw))
        self.write(raw)

    def write_string_without_length(self, value: Text) -> None:
        self.write(value)

    def read_string_f16(self) -> bytes:
        return self.read(self.read_fuint16())

    def read_string_f32(self) -> bytes:
        return self.read(self.read_fuint32())

    def read_string_f64(self) -> bytes:
        return self.read(self.read_fuint64())

    def read_string_vint(self) -> bytes:
        return self.read(self.read_uint64())

    # -- whole buffer -------------------------------------------------------

    def to_bytes(self) -> bytes:
        """The unread data, without moving the position."""
        return self.peek(self.read_size)

    def to_hex_string(self) -> str:
        """The unread data as hex byte pairs, 32 to a line."""
        parts = []
        for index, byte in enumerate(self.to_bytes()):
            if index and index % 32 == 0:
                parts.append("\n")
            parts.append(f"{byte:02x} ")
        return "".join(parts)

    def write_to_file(self, name: Union[str, os.PathLike]) -> None:
        """Write the unread data to ``name``, replacing its contents."""
        with open(name, "wb") as handle:
            for segment in self.get_read_buffers():
                handle.write(segment)

    def read_from_file(self, name: Union[str, os.PathLike]) -> None:
        """Append the contents of ``name`` at the position."""
        with open(name, "rb") as handle:
            while chunk := handle.read(self._base_size):
                self.write(chunk)

    def get_read_buffers(self, length: Optional[int] = None,
                         position: Optional[int] = None) -> list[memoryview]:
        """Views over up to ``length`` readable bytes, split at block edges."""
        available = self.read_size
        length = available if length is None else min(length, available)
        if length <= 0:
            return []
        start = self._position if position is None else position
        if start < 0 or start + length > self.capacity:
            raise IndexError("read buffers out of range")
        return [segment.toreadonly() for segment in self._segments(start, length)]

    def get_write_buffers(self, length: int) -> list[memoryview]:
        """Writable views over ``length`` bytes at the position, growing as needed.

        The position is left unchanged; move it after filling the views.
        """
        if length <= 0:
            return []
        self._add_capacity(length)
        return list(self._segments(self._position, length))