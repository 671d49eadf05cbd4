import ngblocks.blocks as blocks
from ngblocks.block_type import BlockType
from ngblocks.exceptions import PcapngDumpError
from ngblocks.framing import Block


class FileWriter(object):
    """
    pcap-ng file writer.

    Blocks are encoded in the byte order of the current section, with
    their lengths computed from the encoded body.
    """

    __slots__ = [
        "stream",
        "current_section",
    ]

    def __init__(self, stream, shb):
        """
        Start writing a new pcap-ng section to the given stream. Writes the
        :py:class:`~ngblocks.blocks.SectionHeaderBlock` immediately.

        :param stream:
            a file-like object to which to write the data.

        :param shb:
            a :py:class:`~ngblocks.blocks.SectionHeaderBlock` to start the
            section; its ``endianness`` is used for the whole section.
        """
        self.stream = stream
        self._start_section(shb)

    @property
    def endianness(self):
        return self.current_section.endianness

    def _start_section(self, shb):
        if not isinstance(shb, blocks.SectionHeaderBlock):
            raise TypeError("not a SectionHeaderBlock")
        self.current_section = shb
        return shb.write_block_to(self.stream, shb.endianness)

    def write_block(self, blk):
        """
        Write the given block to this stream.

        If the block is a :py:class:`~ngblocks.blocks.SectionHeaderBlock`,
        then a new section will be started in the same output stream.

        :param blk:
            a block codec instance (e.g.
            :py:class:`~ngblocks.blocks.EnhancedPacketBlock`), an
            :py:class:`~ngblocks.blocks.UnknownBlock`, a
            :py:class:`~ngblocks.blocks.ParsedBlock`, or a
            :py:class:`~ngblocks.framing.Block` read from a section with the
            same byte order (it is copied as-is).
        :returns: the number of bytes written
        """
        if isinstance(blk, Block) and blk.type_ == BlockType.SECTION_HEADER:
            blk = blk.parsed()
        if isinstance(blk, blocks.ParsedBlock):
            blk = blk.block

        if isinstance(blk, blocks.SectionHeaderBlock):
            # Starting a new section
            return self._start_section(blk)

        if isinstance(blk, Block):
            if blk.endianness != self.endianness:
                raise PcapngDumpError(
                    "cannot copy a {0} block into a {1} section".format(
                        blk.endianness.name, self.endianness.name
                    )
                )
            return blk.write_to(self.stream, self.endianness)

        if not isinstance(blk, (blocks.BlockCodec, blocks.UnknownBlock)):
            raise TypeError("not a pcapng block")

        return blk.write_block_to(self.stream, self.endianness)
