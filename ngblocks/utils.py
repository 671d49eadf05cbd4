"""
Helpers converting the address and resolution values found in block
options and name resolution records.

Unpacking functions accept any bytes-like object, so that they can be
fed slices of a borrowed block body.
"""

import socket
import struct


def pack_ipv4(data):
    # type: (str) -> bytes
    return socket.inet_aton(data)


def unpack_ipv4(data):
    # type: (bytes) -> str
    return socket.inet_ntoa(bytes(data))


def pack_ipv6(data):
    # type: (str) -> bytes
    return socket.inet_pton(socket.AF_INET6, data)


def unpack_ipv6(data):
    # type: (bytes) -> str
    return socket.inet_ntop(socket.AF_INET6, bytes(data))


def _pack_hex_octets(data, count):
    octets = [int(x, 16) for x in data.split(":")]
    if len(octets) != count:
        raise ValueError(
            "Expected {0} colon-separated octets, got {1!r}".format(count, data)
        )
    return struct.pack("!{0}B".format(count), *octets)


def pack_macaddr(data):
    # type: (str) -> bytes
    return _pack_hex_octets(data, 6)


def unpack_macaddr(data):
    # type: (bytes) -> str
    return ":".join(format(x, "02x") for x in bytes(data))


def pack_euiaddr(data):
    # type: (str) -> bytes
    return _pack_hex_octets(data, 8)


def unpack_euiaddr(data):
    # type: (bytes) -> str
    return unpack_macaddr(data)


def unpack_timestamp_resolution(data):
    # type: (bytes) -> float
    """
    Decode an ``if_tsresol`` value into the length of one timestamp
    tick, in seconds.

    The high bit selects the base (set: 2, clear: 10), the low seven bits
    hold the negative exponent.
    """
    if len(data) != 1:
        raise ValueError(
            "if_tsresol must be a single byte, got {0}".format(len(data))
        )
    base = 2 if data[0] & 0x80 else 10
    return float(base ** -(data[0] & 0x7F))


def pack_timestamp_resolution(base, exponent):
    # type: (int, int) -> bytes
    """Encode a resolution of ``base ** -abs(exponent)`` seconds per tick"""
    base_flags = {2: 0x80, 10: 0x00}
    if base not in base_flags:
        raise ValueError("Timestamp resolution base must be 2 or 10")
    return bytes((abs(exponent) | base_flags[base],))
