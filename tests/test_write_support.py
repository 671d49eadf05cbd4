import io

import pytest

import ngblocks.blocks as blocks
from ngblocks import BufferScanner, FileScanner, FileWriter
from ngblocks.block_type import BlockType
from ngblocks.byteorder import Endianness
from ngblocks.exceptions import PcapngDumpError
from ngblocks.framing import Block


def _sample_blocks(endianness):
    """One block of each kind, section header first"""
    return [
        blocks.SectionHeaderBlock(
            endianness=endianness,
            options={
                "shb_hardware": "arm64",
                "shb_os": "Linux 6.8",
                "shb_userappl": "ngblocks round trip",
            },
        ),
        blocks.InterfaceDescriptionBlock(
            link_type=105,
            snaplen=2048,
            options={
                "if_name": "wlan0",
                "if_description": "radio",
                "if_IPv6addr": ("2001:db8::10", 64),
                "if_MACaddr": "02:42:ac:11:00:02",
                "if_tsresol": b"\x09",
                "if_speed": 54000000,
                "if_filter": (0, b"udp port 53"),
            },
        ),
        blocks.EnhancedPacketBlock(
            timestamp_high=0x00061A2B,
            timestamp_low=0x3C4D5E6F,
            packet_len=1500,
            packet_data=b"\x45\x00\x00\x1c" + b"\x00" * 24,
            options={
                "opt_comment": ["retransmit", "late"],
                "epb_flags": 2,
                "epb_packetid": 99,
            },
        ),
        blocks.SimplePacketBlock(packet_data=b"short frame"),
        blocks.PacketBlock(
            drops_count=5,
            packet_data=b"legacy",
            options={"pack_flags": 1},
        ),
        blocks.NameResolutionBlock(
            records=[
                {"type": 1, "address": "192.0.2.53", "names": ["dns.example"]},
                {
                    "type": 2,
                    "address": "2001:db8::53",
                    "names": ["dns6.example", "resolver.example"],
                },
            ],
            options={"ns_dnsIP4addr": "192.0.2.53"},
        ),
        blocks.InterfaceStatisticsBlock(
            timestamp_high=0x00061A2C,
            options={"isb_ifrecv": 120, "isb_ifdrop": 0, "isb_usrdeliv": 118},
        ),
        blocks.SystemdJournalExportBlock(
            journal_entry=b"MESSAGE=link up\nPRIORITY=6\n\n"  # 28 bytes
        ),
        blocks.UnknownBlock(BlockType.from_code(0x0BADBEEF), 20, b"opaque\x00\x00"),
    ]


@pytest.mark.parametrize("endianness", [Endianness.LITTLE, Endianness.BIG])
def test_write_read_all_blocks(endianness):
    written = _sample_blocks(endianness)

    out = io.BytesIO()
    writer = FileWriter(out, written[0])
    for block in written[1:]:
        writer.write_block(block)

    data = out.getvalue()
    assert len(data) % 4 == 0

    for scanner in (FileScanner(io.BytesIO(data)), BufferScanner(data)):
        read = [parsed.block for parsed in scanner.iter_parsed()]
        assert len(read) == len(written)
        for index, (got, expected) in enumerate(zip(read, written)):
            assert got == expected, "block #{0} differs".format(index)


@pytest.mark.parametrize("endianness", [Endianness.LITTLE, Endianness.BIG])
def test_write_block_lengths(endianness):
    fake_file = io.BytesIO()
    writer = FileWriter(fake_file, blocks.SectionHeaderBlock(endianness=endianness))
    assert len(fake_file.getvalue()) == 28

    # 12 bytes of envelope, 20 of fixed fields, 8 of padded data, no options
    written = writer.write_block(blocks.EnhancedPacketBlock(packet_data=b"12345"))
    assert written == 40

    raw = fake_file.getvalue()[28:]
    assert len(raw) == 40
    order = "little" if endianness is Endianness.LITTLE else "big"
    assert raw[4:8] == (40).to_bytes(4, order)
    assert raw[-4:] == (40).to_bytes(4, order)


@pytest.mark.parametrize("endianness", [Endianness.LITTLE, Endianness.BIG])
def test_write_section_header_bytes(endianness):
    fake_file = io.BytesIO()
    FileWriter(fake_file, blocks.SectionHeaderBlock(endianness=endianness))

    if endianness is Endianness.BIG:
        assert fake_file.getvalue() == (
            b"\x0a\x0d\x0d\x0a"  # Magic number
            b"\x00\x00\x00\x1c"  # Block size (28 bytes)
            b"\x1a\x2b\x3c\x4d"  # Byte order magic
            b"\x00\x01\x00\x00"  # Version
            b"\xff\xff\xff\xff\xff\xff\xff\xff"  # Undefined section length
            b"\x00\x00\x00\x1c"  # Block size (28 bytes)
        )
    else:
        assert fake_file.getvalue() == (
            b"\x0a\x0d\x0d\x0a"  # Magic number
            b"\x1c\x00\x00\x00"  # Block size (28 bytes)
            b"\x4d\x3c\x2b\x1a"  # Byte order magic
            b"\x01\x00\x00\x00"  # Version
            b"\xff\xff\xff\xff\xff\xff\xff\xff"  # Undefined section length
            b"\x1c\x00\x00\x00"  # Block size (28 bytes)
        )


def test_write_multiple_sections():
    fake_file = io.BytesIO()
    writer = FileWriter(fake_file, blocks.SectionHeaderBlock())
    writer.write_block(blocks.SimplePacketBlock(packet_data=b"big"))

    writer.write_block(blocks.SectionHeaderBlock(endianness=Endianness.LITTLE))
    assert writer.endianness is Endianness.LITTLE
    writer.write_block(blocks.SimplePacketBlock(packet_data=b"little"))

    raw = list(FileScanner(io.BytesIO(fake_file.getvalue())))
    assert [b.endianness for b in raw] == [
        Endianness.BIG,
        Endianness.BIG,
        Endianness.LITTLE,
        Endianness.LITTLE,
    ]
    assert raw[1].parsed().into_simple_packet().packet_data == b"big"
    assert raw[3].parsed().into_simple_packet().packet_data == b"little"


def test_copy_raw_blocks():
    source = io.BytesIO()
    writer = FileWriter(source, blocks.SectionHeaderBlock(endianness=Endianness.LITTLE))
    writer.write_block(blocks.InterfaceDescriptionBlock(link_type=1, snaplen=96))
    writer.write_block(blocks.EnhancedPacketBlock(packet_data=b"copy me"))

    # Blocks are copied as-is, section headers included
    in_blocks = list(BufferScanner(source.getvalue()))
    dest = io.BytesIO()
    writer = FileWriter(dest, in_blocks[0].parsed().into_section_header())
    for block in in_blocks[1:]:
        writer.write_block(block)
    assert dest.getvalue() == source.getvalue()

    # Wrapped blocks are written too
    dest = io.BytesIO()
    writer = FileWriter(dest, blocks.SectionHeaderBlock(endianness=Endianness.LITTLE))
    for block in in_blocks[1:]:
        writer.write_block(block.parsed())
    assert dest.getvalue() == source.getvalue()


def test_copy_raw_block_wrong_byte_order():
    _, block = Block.from_slice(
        b"\x00\x00\x00\x03"  # Block type
        b"\x00\x00\x00\x14"  # Block size (20 bytes)
        b"\x00\x00\x00\x04"  # Original length
        b"abcd"  # Packet data
        b"\x00\x00\x00\x14"  # Block size (20 bytes)
    )
    writer = FileWriter(
        io.BytesIO(), blocks.SectionHeaderBlock(endianness=Endianness.LITTLE)
    )
    with pytest.raises(PcapngDumpError):
        writer.write_block(block)


def test_write_not_a_block():
    writer = FileWriter(io.BytesIO(), blocks.SectionHeaderBlock())
    with pytest.raises(TypeError):
        writer.write_block(b"not a block")

    with pytest.raises(TypeError):
        FileWriter(io.BytesIO(), blocks.InterfaceDescriptionBlock())


@pytest.mark.parametrize("endianness", [Endianness.LITTLE, Endianness.BIG])
@pytest.mark.parametrize(
    "size,packet_len,captured_len",
    [
        (16, 0, 16),
        (31, 0, 31),
        (32, 33, 32),
        # cut by the snap length: the padding cannot be told apart
        (29, 1514, 32),
    ],
)
def test_simple_packet_lengths(endianness, size, packet_len, captured_len):
    """
    Simple packets have no captured length field: the data is the rest of
    the body, trimmed to the original length when that is shorter.
    """
    payload = bytes(range(7, 7 + size))

    out = io.BytesIO()
    writer = FileWriter(out, blocks.SectionHeaderBlock(endianness=endianness))
    writer.write_block(blocks.InterfaceDescriptionBlock(snaplen=32))
    writer.write_block(
        blocks.SimplePacketBlock(packet_data=payload, packet_len=packet_len)
    )

    spb = list(BufferScanner(out.getvalue()).iter_parsed())[-1].into_simple_packet()
    assert spb.packet_len == (packet_len or size)
    assert spb.captured_len == captured_len
    assert spb.packet_data[:size] == payload
