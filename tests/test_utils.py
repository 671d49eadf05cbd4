import pytest

from ngblocks.utils import (
    pack_euiaddr,
    pack_ipv4,
    pack_ipv6,
    pack_macaddr,
    pack_timestamp_resolution,
    unpack_euiaddr,
    unpack_ipv4,
    unpack_ipv6,
    unpack_macaddr,
    unpack_timestamp_resolution,
)


@pytest.mark.parametrize(
    "raw,text",
    [
        (b"\x00\x00\x00\x00", "0.0.0.0"),
        (b"\xc0\x00\x02\x7b", "192.0.2.123"),
        (memoryview(b"\x7f\x00\x00\x01"), "127.0.0.1"),
    ],
)
def test_unpack_ipv4(raw, text):
    assert unpack_ipv4(raw) == text


def test_ipv6_addresses():
    raw = b"\x20\x01\x0d\xb8" + b"\x00" * 10 + b"\x00\x2a"
    assert unpack_ipv6(raw) == "2001:db8::2a"
    assert unpack_ipv6(memoryview(raw)) == "2001:db8::2a"
    assert pack_ipv6("2001:db8::2a") == raw
    assert pack_ipv6("::1") == b"\x00" * 15 + b"\x01"


def test_hardware_addresses():
    assert unpack_macaddr(b"\x02\x42\xac\x11\x00\x02") == "02:42:ac:11:00:02"
    assert pack_macaddr("02:42:AC:11:00:02") == b"\x02\x42\xac\x11\x00\x02"

    eui = b"\x02\x42\xac\xff\xfe\x11\x00\x02"
    assert unpack_euiaddr(eui) == "02:42:ac:ff:fe:11:00:02"
    assert pack_euiaddr("02:42:ac:ff:fe:11:00:02") == eui

    assert pack_ipv4("192.0.2.123") == b"\xc0\x00\x02\x7b"


@pytest.mark.parametrize(
    "func,text",
    [
        (pack_macaddr, "02:42:ac:11:00"),
        (pack_macaddr, "02:42:ac:11:00:02:03"),
        (pack_euiaddr, "02:42:ac:11:00:02"),
    ],
)
def test_pack_hardware_address_wrong_length(func, text):
    with pytest.raises(ValueError):
        func(text)


@pytest.mark.parametrize(
    "byte,resolution",
    [
        (0x00, 1.0),
        (0x03, 10**-3),
        (0x06, 10**-6),
        (0x09, 10**-9),
        (0x80, 1.0),
        (0x8A, 2**-10),
        (0x94, 2**-20),
    ],
)
def test_unpack_tsresol(byte, resolution):
    assert unpack_timestamp_resolution(bytes((byte,))) == resolution


def test_unpack_tsresol_needs_one_byte():
    with pytest.raises(ValueError):
        unpack_timestamp_resolution(b"")
    with pytest.raises(ValueError):
        unpack_timestamp_resolution(b"\x06\x06")


def test_pack_tsresol():
    assert pack_timestamp_resolution(10, 6) == b"\x06"
    assert pack_timestamp_resolution(10, -9) == b"\x09"
    assert pack_timestamp_resolution(2, 0) == b"\x80"
    assert pack_timestamp_resolution(2, -20) == b"\x94"

    # Whatever is packed unpacks to the same resolution
    for base, exponent in [(10, 3), (2, 16)]:
        packed = pack_timestamp_resolution(base, exponent)
        assert unpack_timestamp_resolution(packed) == base ** -exponent

    with pytest.raises(ValueError):
        pack_timestamp_resolution(16, -3)
