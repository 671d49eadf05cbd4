# ----------------------------------------------------------------------
# Library to frame and decode pcap-ng blocks
#
# See: https://www.ietf.org/archive/id/draft-tuexen-opsawg-pcapng-05.html
# ----------------------------------------------------------------------

from .block_type import BlockType, UnknownBlockType  # noqa
from .blocks import (  # noqa
    EnhancedPacketBlock,
    InterfaceDescriptionBlock,
    InterfaceStatisticsBlock,
    NameResolutionBlock,
    PacketBlock,
    ParsedBlock,
    SectionHeaderBlock,
    SimplePacketBlock,
    SystemdJournalExportBlock,
    UnknownBlock,
)
from .byteorder import Endianness  # noqa
from .framing import Block  # noqa
from .scanner import BufferScanner, FileScanner  # noqa
from .writer import FileWriter  # noqa
