import math

import pytest

from exhy.bytearray import (
    ByteArray,
    decode_zigzag32,
    decode_zigzag64,
    encode_zigzag32,
    encode_zigzag64,
)

BASE_SIZES = [1, 3, 7, 4096]


def _rewound(ba):
    ba.position = 0
    return ba


@pytest.mark.parametrize("base", BASE_SIZES)
@pytest.mark.parametrize(
    "writer,reader,values",
    [
        ("write_fint8", "read_fint8", [-128, -1, 0, 127]),
        ("write_fuint8", "read_fuint8", [0, 1, 255]),
        ("write_fint16", "read_fint16", [-(1 << 15), -2, 0, (1 << 15) - 1]),
        ("write_fuint16", "read_fuint16", [0, 258, (1 << 16) - 1]),
        ("write_fint32", "read_fint32", [-(1 << 31), -5, 0, (1 << 31) - 1]),
        ("write_fuint32", "read_fuint32", [0, 12345678, (1 << 32) - 1]),
        ("write_fint64", "read_fint64", [-(1 << 63), -7, 0, (1 << 63) - 1]),
        ("write_fuint64", "read_fuint64", [0, 1 << 40, (1 << 64) - 1]),
        ("write_int32", "read_int32", [-(1 << 31), -1, 0, 1, (1 << 31) - 1]),
        ("write_uint32", "read_uint32", [0, 127, 128, 300, (1 << 32) - 1]),
        ("write_int64", "read_int64", [-(1 << 63), -1, 0, 1, (1 << 63) - 1]),
        ("write_uint64", "read_uint64", [0, 127, 128, (1 << 64) - 1]),
    ],
)
@pytest.mark.parametrize("little", [False, True])
def test_integer_round_trip(base, writer, reader, values, little):
    ba = ByteArray(base)
    ba.little_endian = little
    for value in values:
        getattr(ba, writer)(value)
    _rewound(ba)
    assert [getattr(ba, reader)() for _ in values] == values
    assert ba.read_size == 0


@pytest.mark.parametrize("base", BASE_SIZES)
def test_float_and_double_round_trip(base):
    ba = ByteArray(base)
    ba.write_float(1.5)
    ba.write_double(-2.25e100)
    _rewound(ba)
    assert ba.read_float() == 1.5
    assert ba.read_double() == -2.25e100


@pytest.mark.parametrize("base", BASE_SIZES)
@pytest.mark.parametrize("suffix", ["f16", "f32", "f64", "vint"])
def test_string_round_trip(base, suffix):
    ba = ByteArray(base)
    items = [b"", b"hello", "caf\u00e9".encode("utf-8"), bytes(range(256))]
    for item in items:
        getattr(ba, f"write_string_{suffix}")(item)
    _rewound(ba)
    assert [getattr(ba, f"read_string_{suffix}")() for _ in items] == items


def test_str_is_written_as_utf8():
    ba = ByteArray(4)
    ba.write_string_vint("caf\u00e9")
    _rewound(ba)
    assert ba.read_string_vint() == "caf\u00e9".encode("utf-8")


def test_string_without_length():
    ba = ByteArray(2)
    ba.write_string_without_length(b"abcde")
    assert ba.size == 5
    _rewound(ba)
    assert ba.to_bytes() == b"abcde"


def test_varint_wire_format():
    ba = ByteArray()
    ba.write_uint32(300)
    _rewound(ba)
    assert ba.to_bytes() == b"\xac\x02"


def test_varint32_max_takes_five_bytes():
    ba = ByteArray()
    ba.write_uint32((1 << 32) - 1)
    assert ba.size == 5


def test_little_endian_reverses_fixed_width_bytes():
    big = ByteArray()
    big.write_fuint32(0x01020304)
    little = ByteArray()
    little.little_endian = True
    little.write_fuint32(0x01020304)
    assert _rewound(little).to_bytes() == _rewound(big).to_bytes()[::-1]


def test_zigzag_pins_and_round_trips():
    assert encode_zigzag32(-1) == 1
    for value in [-(1 << 31), -3, 0, 3, (1 << 31) - 1]:
        assert decode_zigzag32(encode_zigzag32(value)) == value
    for value in [-(1 << 63), -3, 0, 3, (1 << 63) - 1]:
        assert decode_zigzag64(encode_zigzag64(value)) == value


def test_zigzag_orders_by_magnitude():
    encoded = [encode_zigzag64(v) for v in (0, -1, 1, -2, 2)]
    assert encoded == sorted(encoded)
    assert encoded == list(range(5))


@pytest.mark.parametrize(
    "method,value",
    [
        ("write_fint8", 128),
        ("write_fuint8", -1),
        ("write_fuint16", 1 << 16),
        ("write_uint32", 1 << 32),
        ("write_uint64", -1),
        ("write_int32", 1 << 31),
    ],
)
def test_out_of_range_values_raise(method, value):
    with pytest.raises(OverflowError):
        getattr(ByteArray(), method)(value)


def test_string_f16_too_long_raises():
    with pytest.raises(OverflowError):
        ByteArray().write_string_f16(bytes(1 << 16))


def test_reading_past_end_raises():
    ba = ByteArray(4)
    ba.write_fuint16(7)
    _rewound(ba)
    with pytest.raises(IndexError):
        ba.read_fuint32()


def test_position_beyond_capacity_raises():
    ba = ByteArray(8)
    with pytest.raises(IndexError):
        ba.position = ba.capacity + 1
    assert ba.position == 0
    assert ba.size == 0
    ba.position = ba.capacity
    assert ba.position == 8
    assert ba.size == 8


def test_position_extends_size():
    ba = ByteArray(8)
    ba.position = 5
    assert ba.size == 5
    assert ba.read_size == 0


def test_capacity_grows_in_blocks():
    ba = ByteArray(4)
    ba.write(bytes(10))
    assert ba.capacity == 4 * math.ceil(10 / 4)
    assert ba.size == 10


def test_clear_resets_state():
    ba = ByteArray(4)
    ba.write(b"0123456789")
    ba.clear()
    assert (ba.position, ba.size, ba.capacity) == (0, 0, 4)
    ba.write(b"ab")
    _rewound(ba)
    assert ba.to_bytes() == b"ab"


def test_peek_does_not_move_position():
    ba = ByteArray(3)
    ba.write(b"abcdefgh")
    _rewound(ba)
    assert ba.peek(4, 2) == b"cdef"
    assert ba.position == 0
    assert ba.read(3) == b"abc"
    assert ba.peek(2) == b"de"


def test_to_bytes_starts_at_position():
    ba = ByteArray(3)
    ba.write(b"abcdefgh")
    ba.position = 3
    assert ba.to_bytes() == b"defgh"
    assert ba.position == 3


def test_hex_string_format():
    ba = ByteArray()
    ba.write(b"\x00\xff")
    _rewound(ba)
    assert ba.to_hex_string() == "00 ff "


def test_hex_string_breaks_every_32_bytes():
    ba = ByteArray(5)
    data = bytes(range(70))
    ba.write(data)
    _rewound(ba)
    lines = ba.to_hex_string().split("\n")
    assert [len(line) for line in lines] == [32 * 3, 32 * 3, 6 * 3]
    assert bytes.fromhex("".join(lines)) == data


def test_file_round_trip(tmp_path):
    target = tmp_path / "data.bin"
    ba = ByteArray(7)
    payload = bytes(range(256)) * 3
    ba.write(payload)
    _rewound(ba)
    ba.write_to_file(target)
    assert target.read_bytes() == payload

    other = ByteArray(11)
    other.read_from_file(target)
    _rewound(other)
    assert other.to_bytes() == payload


def test_read_from_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        ByteArray().read_from_file(tmp_path / "missing.bin")


def test_write_buffers_fill_then_expose():
    ba = ByteArray(4)
    data = b"hello world"
    buffers = ba.get_write_buffers(len(data))
    assert ba.position == 0
    assert sum(len(b) for b in buffers) == len(data)
    assert all(len(b) <= 4 for b in buffers)
    done = 0
    for buf in buffers:
        buf[:] = data[done:done + len(buf)]
        done += len(buf)
    ba.position = len(data)
    ba.position = 0
    assert ba.to_bytes() == data


def test_write_buffers_zero_length():
    assert ByteArray().get_write_buffers(0) == []


def test_read_buffers_cover_readable_data():
    ba = ByteArray(3)
    ba.write(b"abcdefghij")
    ba.position = 2
    buffers = ba.get_read_buffers()
    assert b"".join(bytes(b) for b in buffers) == ba.to_bytes()
    assert all(len(b) <= 3 for b in buffers)
    limited = ba.get_read_buffers(4)
    assert b"".join(bytes(b) for b in limited) == b"cdef"
    at = ba.get_read_buffers(3, 0)
    assert b"".join(bytes(b) for b in at) == b"abc"


def test_read_buffers_empty_when_nothing_to_read():
    ba = ByteArray()
    ba.write(b"xy")
    assert ba.get_read_buffers() == []


def test_invalid_base_size_raises():
    with pytest.raises(ValueError):
        ByteArray(0)