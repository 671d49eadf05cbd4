"""
Block type tags.

Known block types are members of :py:class:`BlockType`; any other code
read from a file is kept verbatim in an :py:class:`UnknownBlockType`, so
that converting a tag back to its code is always lossless.
"""

from collections import namedtuple
from enum import IntEnum

from ngblocks.constants import block_types


class BlockType(IntEnum):
    SECTION_HEADER = block_types.BLK_SECTION_HEADER
    INTERFACE_DESCRIPTION = block_types.BLK_INTERFACE
    PACKET = block_types.BLK_PACKET
    SIMPLE_PACKET = block_types.BLK_PACKET_SIMPLE
    NAME_RESOLUTION = block_types.BLK_NAME_RESOLUTION
    INTERFACE_STATISTICS = block_types.BLK_INTERFACE_STATS
    ENHANCED_PACKET = block_types.BLK_ENHANCED_PACKET
    SYSTEMD_JOURNAL_EXPORT = block_types.BLK_SYSTEMD_JOURNAL

    @classmethod
    def from_code(cls, code):
        """
        Get the tag for a 32bit block type code.

        Never fails: codes not listed here give an
        :py:class:`UnknownBlockType` carrying the code.
        """
        try:
            return cls(code)
        except ValueError:
            return UnknownBlockType(code)

    @property
    def is_known(self):
        return True

    def __repr__(self):
        return "BlockType.{0}".format(self.name)


class UnknownBlockType(namedtuple("UnknownBlockType", ("value",))):
    """
    A block type code with no matching :py:class:`BlockType`.

    Compares equal to its code, like :py:class:`BlockType` members do, and
    never to plain tuples.
    """

    __slots__ = []

    name = "UNKNOWN"

    @property
    def is_known(self):
        return False

    def __int__(self):
        return self.value

    __index__ = __int__

    def __eq__(self, other):
        if isinstance(other, UnknownBlockType):
            return self.value == other.value
        if isinstance(other, int):
            return self.value == other
        return False

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash(self.value)

    def __repr__(self):
        return "UnknownBlockType(0x{0:08X})".format(self.value)
