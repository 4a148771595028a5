import pytest

from exhy.bytearray import ByteArray
from exhy.stream import Stream


class ChunkedStream(Stream):
    """Reads from a fixed source and writes to a sink, a few bytes per call."""

    def __init__(self, source: bytes = b"", chunk: int = 3, capacity: int = 1 << 20):
        self.source = source
        self.offset = 0
        self.chunk = chunk
        self.capacity = capacity
        self.sink = bytearray()
        self.closed = False

    def read(self, length):
        count = min(length, self.chunk, len(self.source) - self.offset)
        data = self.source[self.offset:self.offset + count]
        self.offset += count
        return data

    def read_into(self, ba, length):
        data = self.read(length)
        ba.write(data)
        return len(data)

    def write(self, data):
        count = min(len(data), self.chunk, self.capacity - len(self.sink))
        self.sink.extend(bytes(data[:count]))
        return count

    def write_from(self, ba, length):
        count = min(length, self.chunk, ba.read_size, self.capacity - len(self.sink))
        self.sink.extend(ba.read(count))
        return count

    def close(self):
        self.closed = True


def test_read_fix_size_collects_short_reads():
    stream = ChunkedStream(b"hello world", chunk=2)
    assert Stream.read_fix_size(stream, 11) == b"hello world"


def test_read_fix_size_leaves_rest_unread():
    stream = ChunkedStream(b"abcdefgh", chunk=3)
    assert Stream.read_fix_size(stream, 5) == b"abcde"
    assert stream.read(10) == b"fgh"


def test_read_fix_size_zero_length():
    stream = ChunkedStream(b"abc")
    assert Stream.read_fix_size(stream, 0) == b""


def test_read_fix_size_raises_at_end():
    stream = ChunkedStream(b"abc", chunk=2)
    with pytest.raises(EOFError):
        Stream.read_fix_size(stream, 4)


def test_read_fix_size_into_bytearray():
    stream = ChunkedStream(b"0123456789", chunk=4)
    ba = ByteArray(base_size=3)
    assert stream.read_fix_size_into(ba, 10) == 10
    ba.position = 0
    assert ba.to_bytes() == b"0123456789"


def test_read_fix_size_into_raises_at_end():
    stream = ChunkedStream(b"xy", chunk=1)
    with pytest.raises(EOFError):
        stream.read_fix_size_into(ByteArray(), 3)


def test_write_fix_size_writes_everything():
    stream = ChunkedStream(chunk=2)
    payload = b"the quick brown fox"
    assert Stream.write_fix_size(stream, payload) == len(payload)
    assert bytes(stream.sink) == payload


def test_write_fix_size_raises_when_sink_is_full():
    stream = ChunkedStream(chunk=2, capacity=3)
    with pytest.raises(BrokenPipeError):
        Stream.write_fix_size(stream, b"abcdef")
    assert bytes(stream.sink) == b"abc"


def test_write_fix_size_from_bytearray():
    ba = ByteArray(base_size=4)
    ba.write(b"payload-data")
    ba.position = 0
    stream = ChunkedStream(chunk=5)
    assert stream.write_fix_size_from(ba, 12) == 12
    assert bytes(stream.sink) == b"payload-data"
    assert ba.read_size == 0


def test_write_fix_size_from_raises_when_data_runs_out():
    ba = ByteArray()
    ba.write(b"ab")
    ba.position = 0
    stream = ChunkedStream(chunk=5)
    with pytest.raises(BrokenPipeError):
        stream.write_fix_size_from(ba, 4)


def test_round_trip_through_two_streams():
    writer = ChunkedStream(chunk=3)
    assert Stream.write_fix_size(writer, b"round trip") == 10
    reader = ChunkedStream(bytes(writer.sink), chunk=4)
    assert Stream.read_fix_size(reader, 10) == b"round trip"