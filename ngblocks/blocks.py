"""
Codecs for the block bodies of the pcap-ng format, and the
:py:class:`ParsedBlock` union they are dispatched into.

A codec object exposes the decoded fields of one body as attributes
(the names come from its ``schema``) plus a few computed properties.
The envelope around the body (type, lengths) is the business of
:py:mod:`ngblocks.framing`, or of :py:meth:`BlockCodec.write_block_to`
when writing.
"""

import copy
import logging
from collections import namedtuple

from ngblocks.block_type import BlockType
from ngblocks.byteorder import Endianness
from ngblocks.constants import BLOCK_OVERHEAD, BYTE_ORDER_MAGIC, SIZE_NOTSET
from ngblocks.structs import (
    TYPE_BYTES,
    TYPE_EUIADDR,
    TYPE_I64,
    TYPE_IPV4,
    TYPE_IPV4_MASK,
    TYPE_IPV6,
    TYPE_IPV6_PREFIX,
    TYPE_MACADDR,
    TYPE_STRING,
    TYPE_TYPE_BYTES,
    TYPE_U8,
    TYPE_U32,
    TYPE_U64,
    IntField,
    ListField,
    NameResolutionRecordField,
    NullWriter,
    Option,
    Options,
    OptionsField,
    PacketBytes,
    RemainingBytes,
    SliceReader,
    struct_decode,
    struct_encode,
    write_bytes_padded,
    write_int,
)
from ngblocks.utils import unpack_timestamp_resolution

logger = logging.getLogger(__name__)


class BlockCodec(object):
    """
    Base class for block body codecs.

    Every codec has:

    - a ``block_type`` (a :py:class:`~ngblocks.block_type.BlockType`);
    - a ``schema``: a list of ``(name, field, default)`` tuples describing
      the body, in order;
    - :py:meth:`from_slice`, decoding a body into ``(remaining, block)``;
    - :py:meth:`write_to`, encoding the body only;
    - :py:meth:`into_parsed`, wrapping the block in a :py:class:`ParsedBlock`.

    :py:meth:`write_block_to` builds the whole block (envelope included)
    on top of those, for every codec alike.
    """

    block_type = None
    schema = []
    readonly_fields = set()
    __slots__ = ["_decoded"]

    def __init__(self, **kwargs):
        self._decoded = {}
        for key, field, default in self.schema:
            if key in self.readonly_fields:
                continue
            if isinstance(field, OptionsField):
                self._decoded[key] = self._make_options(field, kwargs.pop(key, None))
            elif key in kwargs:
                self._decoded[key] = kwargs.pop(key)
            else:
                self._decoded[key] = copy.copy(default)
        for key in self.readonly_fields:
            kwargs.pop(key, None)
        if kwargs:
            raise TypeError(
                "{cls} got unexpected fields: {names}".format(
                    cls=self.__class__.__name__, names=", ".join(sorted(kwargs))
                )
            )

    @staticmethod
    def _make_options(field, value):
        if isinstance(value, Options):
            return value
        options = Options(schema=field.options_schema)
        if value:
            for name, item in value.items():
                options[name] = item
        return options

    @classmethod
    def _from_decoded(cls, decoded):
        block = cls.__new__(cls)
        block._decoded = decoded
        return block

    @classmethod
    def from_slice(cls, data, endianness):
        """
        Decode a block body.

        :param data: a bytes-like object starting with the body; variable
            length payloads in the result are views into it.
        :param endianness: the :py:class:`~ngblocks.byteorder.Endianness`
            of the section.
        :returns: a ``(remaining, block)`` tuple, ``remaining`` being a
            view of the bytes following what was decoded.
        """
        reader = SliceReader(data)
        block = cls._from_decoded(struct_decode(cls.schema, reader, endianness))
        return reader.rest(), block

    def write_to(self, stream, endianness):
        """
        Encode the body of this block (no envelope).

        :returns: the number of bytes written
        """
        return struct_encode(self.schema, self, stream, endianness)

    def write_block_to(self, stream, endianness):
        """
        Write the whole block: type, total length, body, total length.

        The body is encoded once into a discarding sink to measure it, so
        the leading and trailing lengths always agree.

        :returns: the total block length
        """
        length = self.write_to(NullWriter(), endianness) + BLOCK_OVERHEAD
        write_int(int(self.block_type), stream, 32, endianness=endianness)
        write_int(length, stream, 32, endianness=endianness)
        self.write_to(stream, endianness)
        write_int(length, stream, 32, endianness=endianness)
        return length

    def into_parsed(self):
        return ParsedBlock(self.block_type, self)

    def _field_values(self):
        # Through getattr(), so that properties win over stored values
        return [getattr(self, name) for name, _, _ in self.schema]

    def __eq__(self, other):
        if type(self) is not type(other):
            return False
        return self._field_values() == other._field_values()

    def __getattr__(self, name):
        # Only reached for names that are not real attributes
        if name == "_decoded":
            raise AttributeError(name)
        if name not in self._decoded:
            raise AttributeError(
                "'{0}' block has no field '{1}'".format(self.__class__.__name__, name)
            )
        return self._decoded[name]

    def __setattr__(self, name, value):
        if any(name in getattr(cls, "__slots__", ()) for cls in type(self).__mro__):
            object.__setattr__(self, name, value)
            return
        if name in self.readonly_fields:
            raise AttributeError(
                "field '{0}' of '{1}' is computed, it cannot be set".format(
                    name, self.__class__.__name__
                )
            )
        self._decoded[name] = value

    def __repr__(self):
        fields = []
        for (name, _, _), value in zip(self.schema, self._field_values()):
            if isinstance(value, memoryview):
                value = bytes(value)
            fields.append("{0}={1!r}".format(name, value))
        return "<{0} {1}>".format(self.__class__.__name__, " ".join(fields))


class SectionHeaderBlock(BlockCodec):
    """
    Section header: opens a section and fixes its byte order.

    The body starts with the byte order magic, which is always read
    big-endian first; the remaining fields are then decoded in the byte
    order it announces, kept in :py:attr:`endianness`.
    """

    block_type = BlockType.SECTION_HEADER
    __slots__ = ["endianness"]
    schema = [
        ("version_major", IntField(16, False), 1),
        ("version_minor", IntField(16, False), 0),
        ("section_length", IntField(64, True), SIZE_NOTSET),
        (
            "options",
            OptionsField(
                [
                    Option(2, "shb_hardware", TYPE_STRING),
                    Option(3, "shb_os", TYPE_STRING),
                    Option(4, "shb_userappl", TYPE_STRING),
                ]
            ),
            None,
        ),
    ]

    def __init__(self, endianness=Endianness.BIG, **kwargs):
        self.endianness = endianness
        super(SectionHeaderBlock, self).__init__(**kwargs)

    @classmethod
    def from_slice(cls, data, endianness=Endianness.BIG):
        """
        Decode a section header body.

        ``endianness`` is not used: the byte order comes from the magic.
        """
        reader = SliceReader(data)
        magic = reader.read_int(32, False, Endianness.BIG)
        section_endianness = Endianness.from_magic(magic)
        block = cls._from_decoded(struct_decode(cls.schema, reader, section_endianness))
        block.endianness = section_endianness
        return reader.rest(), block

    def write_to(self, stream, endianness):
        written = write_int(BYTE_ORDER_MAGIC, stream, 32, endianness=endianness)
        return written + super(SectionHeaderBlock, self).write_to(stream, endianness)

    def write_block_to(self, stream, endianness=None):
        """
        Write the whole section header; by default in the byte order
        this section announces.
        """
        if endianness is None:
            endianness = self.endianness
        return super(SectionHeaderBlock, self).write_block_to(stream, endianness)

    @property
    def version(self):
        return (self.version_major, self.version_minor)

    @property
    def length(self):
        return self.section_length

    def __eq__(self, other):
        return (
            super(SectionHeaderBlock, self).__eq__(other)
            and self.endianness == other.endianness
        )

    def __repr__(self):
        return (
            "<{name} version={version} endianness={endianness} "
            "length={length} options={options}>"
        ).format(
            name=self.__class__.__name__,
            version=".".join(str(x) for x in self.version),
            endianness=self.endianness.name,
            length=self.length,
            options=repr(self.options),
        )


class InterfaceDescriptionBlock(BlockCodec):
    """
    Interface description: link type, snap length and properties of one
    capture interface. Interfaces are numbered from zero, in the order
    their descriptions appear in the section.
    """

    block_type = BlockType.INTERFACE_DESCRIPTION
    __slots__ = []
    schema = [
        ("link_type", IntField(16, False), 0),
        ("reserved", IntField(16, False), 0),
        ("snaplen", IntField(32, False), 0),
        (
            "options",
            OptionsField(
                [
                    Option(2, "if_name", TYPE_STRING),
                    Option(3, "if_description", TYPE_STRING),
                    Option(4, "if_IPv4addr", TYPE_IPV4_MASK, multiple=True),
                    Option(5, "if_IPv6addr", TYPE_IPV6_PREFIX, multiple=True),
                    Option(6, "if_MACaddr", TYPE_MACADDR),
                    Option(7, "if_EUIaddr", TYPE_EUIADDR),
                    Option(8, "if_speed", TYPE_U64),
                    Option(9, "if_tsresol", TYPE_BYTES),  # see timestamp_resolution
                    Option(10, "if_tzone", TYPE_U32),
                    Option(11, "if_filter", TYPE_TYPE_BYTES),
                    Option(12, "if_os", TYPE_STRING),
                    Option(13, "if_fcslen", TYPE_U8),
                    Option(14, "if_tsoffset", TYPE_I64),
                    Option(15, "if_hardware", TYPE_STRING),
                    Option(16, "if_txspeed", TYPE_U64),
                    Option(17, "if_rxspeed", TYPE_U64),
                ]
            ),
            None,
        ),
    ]

    @property
    def timestamp_resolution(self):
        """Seconds per timestamp tick; microseconds unless ``if_tsresol`` says"""
        tsresol = self.options.get("if_tsresol")
        if tsresol is None:
            return 1e-6
        return unpack_timestamp_resolution(tsresol)


class BlockWithTimestampMixin(object):
    """
    Timestamp accessors for the blocks that carry one.

    Timestamps are stored as two 32bit halves of a tick count; the
    tick length is given by the ``if_tsresol`` option of the interface.
    """

    __slots__ = []

    @property
    def timestamp(self):
        return (self.timestamp_high << 32) + self.timestamp_low

    def timestamp_seconds(self, resolution=1e-6):
        return self.timestamp * resolution


class BasePacketBlock(BlockCodec):
    """
    Common part of the blocks carrying a packet in ``packet_data``.

    ``captured_len`` is computed from the data and cannot be set;
    ``packet_len``, the length of the packet on the wire, falls back to
    it when zero.
    """

    __slots__ = []
    readonly_fields = {"captured_len"}

    @property
    def captured_len(self):
        return len(self.packet_data)

    @property
    def packet_len(self):
        # The stored value, bypassing this property
        return self._decoded.get("packet_len") or self.captured_len


class EnhancedPacketBlock(BlockWithTimestampMixin, BasePacketBlock):
    """
    Enhanced packet: one captured packet, with the interface it was seen
    on and its timestamp.
    """

    block_type = BlockType.ENHANCED_PACKET
    __slots__ = []
    schema = [
        ("interface_id", IntField(32, False), 0),
        ("timestamp_high", IntField(32, False), 0),
        ("timestamp_low", IntField(32, False), 0),
        ("captured_len", IntField(32, False), 0),
        ("packet_len", IntField(32, False), 0),
        ("packet_data", PacketBytes("captured_len"), b""),
        (
            "options",
            OptionsField(
                [
                    Option(2, "epb_flags", TYPE_U32),
                    Option(3, "epb_hash", TYPE_TYPE_BYTES, multiple=True),
                    Option(4, "epb_dropcount", TYPE_U64),
                    Option(5, "epb_packetid", TYPE_U64),
                    Option(6, "epb_queue", TYPE_U32),
                    Option(7, "epb_verdict", TYPE_TYPE_BYTES, multiple=True),
                ]
            ),
            None,
        ),
    ]


class SimplePacketBlock(BasePacketBlock):
    """
    Simple packet: a packet from the first interface of the section,
    with neither timestamp nor options.

    The block has no captured length field: the packet data is whatever
    follows ``packet_len`` in the body, trimmed to ``packet_len`` when
    the body holds more (i.e. padding). A packet cut by the interface
    snap length keeps its trailing padding, since telling them apart
    requires the interface description.
    """

    block_type = BlockType.SIMPLE_PACKET
    __slots__ = []
    schema = [
        # packet_len is NOT the captured length
        ("packet_len", IntField(32, False), 0),
        ("packet_data", RemainingBytes(), b""),
    ]

    @classmethod
    def from_slice(cls, data, endianness):
        remaining, block = super(SimplePacketBlock, cls).from_slice(data, endianness)
        packet_len = block._decoded["packet_len"]
        if packet_len < len(block.packet_data):
            block.packet_data = block.packet_data[:packet_len]
        return remaining, block


class PacketBlock(BlockWithTimestampMixin, BasePacketBlock):
    """
    Obsolete packet block, superseded by :py:class:`EnhancedPacketBlock`.
    Still decoded when found in old files; see :py:meth:`enhanced`.
    """

    block_type = BlockType.PACKET
    __slots__ = []
    schema = [
        ("interface_id", IntField(16, False), 0),
        ("drops_count", IntField(16, False), 0),
        ("timestamp_high", IntField(32, False), 0),
        ("timestamp_low", IntField(32, False), 0),
        ("captured_len", IntField(32, False), 0),
        ("packet_len", IntField(32, False), 0),
        ("packet_data", PacketBytes("captured_len"), b""),
        (
            # The options have the same definitions as their epb_ equivalents
            "options",
            OptionsField(
                [
                    Option(2, "pack_flags", TYPE_U32),
                    Option(3, "pack_hash", TYPE_TYPE_BYTES, multiple=True),
                ]
            ),
            None,
        ),
    ]

    def enhanced(self):
        """
        Convert to an :py:class:`EnhancedPacketBlock`; ``pack_*`` options
        become their ``epb_*`` counterparts, the drop count
        ``epb_dropcount``.
        """
        options = {"epb_dropcount": self.drops_count}
        for name, values in self.options.iter_all_items():
            if isinstance(name, str) and name.startswith("pack_"):
                name = name.replace("pack_", "epb_", 1)
            options[name] = values[0] if len(values) == 1 else list(values)
        return EnhancedPacketBlock(
            interface_id=self.interface_id,
            timestamp_high=self.timestamp_high,
            timestamp_low=self.timestamp_low,
            packet_len=self.packet_len,
            packet_data=self.packet_data,
            options=options,
        )


class NameResolutionBlock(BlockCodec):
    """
    Name resolution: address to name records (see
    :py:class:`~ngblocks.structs.NameResolutionRecordField`), plus the
    DNS server used to resolve them in its options.
    """

    block_type = BlockType.NAME_RESOLUTION
    __slots__ = []
    schema = [
        ("records", ListField(NameResolutionRecordField()), []),
        (
            "options",
            OptionsField(
                [
                    Option(2, "ns_dnsname", TYPE_STRING),
                    Option(3, "ns_dnsIP4addr", TYPE_IPV4),
                    Option(4, "ns_dnsIP6addr", TYPE_IPV6),
                ]
            ),
            None,
        ),
    ]


class InterfaceStatisticsBlock(BlockWithTimestampMixin, BlockCodec):
    """
    Interface statistics: packet counters of one interface at the
    time given by the block timestamp.
    """

    block_type = BlockType.INTERFACE_STATISTICS
    __slots__ = []
    schema = [
        ("interface_id", IntField(32, False), 0),
        ("timestamp_high", IntField(32, False), 0),
        ("timestamp_low", IntField(32, False), 0),
        (
            "options",
            OptionsField(
                [
                    Option(2, "isb_starttime", TYPE_U64),
                    Option(3, "isb_endtime", TYPE_U64),
                    Option(4, "isb_ifrecv", TYPE_U64),
                    Option(5, "isb_ifdrop", TYPE_U64),
                    Option(6, "isb_filteraccept", TYPE_U64),
                    Option(7, "isb_osdrop", TYPE_U64),
                    Option(8, "isb_usrdeliv", TYPE_U64),
                ]
            ),
            None,
        ),
    ]


class SystemdJournalExportBlock(BlockCodec):
    """
    Block holding one entry of a systemd journal, in the journal export
    format; the entry fills the whole body (padded to 32 bits).
    """

    block_type = BlockType.SYSTEMD_JOURNAL_EXPORT
    __slots__ = []
    schema = [
        ("journal_entry", RemainingBytes(), b""),
    ]


class UnknownBlock(object):
    """
    Body of a block of a type no codec handles, kept undecoded along with
    the type and total length read from its envelope.
    """

    __slots__ = ["block_type", "length", "data"]

    def __init__(self, block_type, length, data):
        self.block_type = block_type
        self.length = length
        self.data = data

    def write_to(self, stream, endianness=None):
        return write_bytes_padded(stream, self.data)

    write_block_to = BlockCodec.write_block_to

    def into_parsed(self):
        return ParsedBlock(self.block_type, self)

    def __eq__(self, other):
        if not isinstance(other, UnknownBlock):
            return False
        return (int(self.block_type), self.length, bytes(self.data)) == (
            int(other.block_type),
            other.length,
            bytes(other.data),
        )

    def __repr__(self):
        return "UnknownBlock(0x{0:08X}, {1}, {2!r})".format(
            int(self.block_type), self.length, bytes(self.data)
        )


# The closed set of body codecs, by block type
BLOCK_CODECS = {
    BlockType.SECTION_HEADER: SectionHeaderBlock,
    BlockType.INTERFACE_DESCRIPTION: InterfaceDescriptionBlock,
    BlockType.PACKET: PacketBlock,
    BlockType.SIMPLE_PACKET: SimplePacketBlock,
    BlockType.NAME_RESOLUTION: NameResolutionBlock,
    BlockType.INTERFACE_STATISTICS: InterfaceStatisticsBlock,
    BlockType.ENHANCED_PACKET: EnhancedPacketBlock,
    BlockType.SYSTEMD_JOURNAL_EXPORT: SystemdJournalExportBlock,
}


class ParsedBlock(namedtuple("ParsedBlock", ("block_type", "block"))):
    """
    A decoded block body, tagged with its block type.

    ``block`` is an instance of the codec class matching ``block_type``,
    or an :py:class:`UnknownBlock`. The ``into_*()`` methods narrow it to
    one expected kind, returning ``None`` for any other.
    """

    __slots__ = []

    @classmethod
    def from_slice(cls, block_type, data, endianness):
        """
        Decode a block body with the codec selected by ``block_type``.

        Section header bodies always start big-endian (the codec switches
        to the order its magic announces); every other body uses
        ``endianness``. Unknown types never fail: the whole of ``data`` is
        taken as the body and nothing is reported as remaining.

        :returns: a ``(remaining, parsed_block)`` tuple
        """
        codec = BLOCK_CODECS.get(block_type)
        if codec is None:
            logger.debug("No codec for block type 0x%08X", int(block_type))
            block = UnknownBlock(block_type, len(data) + BLOCK_OVERHEAD, data)
            return data[len(data) :], block.into_parsed()

        if codec is SectionHeaderBlock:
            endianness = Endianness.BIG
        remaining, block = codec.from_slice(data, endianness)
        return remaining, block.into_parsed()

    @property
    def is_unknown(self):
        return isinstance(self.block, UnknownBlock)

    def _narrow(self, cls):
        if type(self.block) is cls:
            return self.block
        return None

    def into_section_header(self):
        return self._narrow(SectionHeaderBlock)

    def into_interface_description(self):
        return self._narrow(InterfaceDescriptionBlock)

    def into_packet(self):
        return self._narrow(PacketBlock)

    def into_simple_packet(self):
        return self._narrow(SimplePacketBlock)

    def into_name_resolution(self):
        return self._narrow(NameResolutionBlock)

    def into_interface_statistics(self):
        return self._narrow(InterfaceStatisticsBlock)

    def into_enhanced_packet(self):
        return self._narrow(EnhancedPacketBlock)

    def into_systemd_journal_export(self):
        return self._narrow(SystemdJournalExportBlock)

    def into_unknown(self):
        return self._narrow(UnknownBlock)
