"""
Byte order handling.

Every multi-byte integer in a pcap-ng section is stored in the byte
order announced by the section header; :py:class:`Endianness` is the
tag passed around to select it. Its value is the prefix understood by
the :py:mod:`struct` module.
"""

import struct
from enum import Enum

from ngblocks.constants import BYTE_ORDER_MAGIC, BYTE_ORDER_MAGIC_INVERSE
from ngblocks.exceptions import BadMagic

INT_FORMATS = {8: "b", 16: "h", 32: "i", 64: "q"}


class Endianness(Enum):
    BIG = ">"
    LITTLE = "<"

    @classmethod
    def from_magic(cls, magic):
        """
        Get the byte order announced by a section header magic.

        :param magic: the byte order magic, as read big-endian
        :raises: :py:exc:`~ngblocks.exceptions.BadMagic` for any value
            other than the two known ones
        """
        if magic == BYTE_ORDER_MAGIC:
            return cls.BIG
        if magic == BYTE_ORDER_MAGIC_INVERSE:
            return cls.LITTLE
        raise BadMagic(
            "SectionHeaderBlock: invalid magic number: got 0x{0:08X}, "
            "expected 0x{1:08X} or 0x{2:08X}".format(
                magic, BYTE_ORDER_MAGIC, BYTE_ORDER_MAGIC_INVERSE
            )
        )


def int_format(size, signed=False, endianness=Endianness.BIG):
    """
    Build the :py:mod:`struct` format for an integer.

    :param size: the size, in bits; one of 8, 16, 32 and 64
    :param signed: whether the number is signed
    :param endianness: an :py:class:`Endianness`
    """
    fmt = INT_FORMATS[size]
    fmt = fmt.lower() if signed else fmt.upper()
    return endianness.value + fmt


def pack_int(number, size, signed=False, endianness=Endianness.BIG):
    # type: (int, int, bool, Endianness) -> bytes
    return struct.pack(int_format(size, signed, endianness), number)


def unpack_int(data, size, signed=False, endianness=Endianness.BIG):
    # type: (bytes, int, bool, Endianness) -> int
    return struct.unpack(int_format(size, signed, endianness), data)[0]


def swap_u32(number):
    # type: (int) -> int
    """Reverse the byte order of a 32bit unsigned integer"""
    return struct.unpack("<I", struct.pack(">I", number))[0]
