import logging

from ngblocks import strictness as strictness
from ngblocks.block_type import BlockType
from ngblocks.byteorder import Endianness
from ngblocks.constants.block_types import BLK_RESERVED, is_reserved_corrupted
from ngblocks.exceptions import CorruptedFile, IncompleteBuffer, StreamEmpty
from ngblocks.framing import Block

logger = logging.getLogger(__name__)


class BaseScanner(object):
    """
    Common logic of the scanners: remember the byte order announced by the
    last section header, and check blocks against their section.
    """

    __slots__ = ["current_section", "endianness"]

    def __init__(self):
        self.current_section = None
        self.endianness = Endianness.BIG

    def iter_parsed(self):
        """Iterate over the blocks, decoding their bodies"""
        for block in self:
            yield block.parsed()

    def _track(self, block):
        code = int(block.type_)

        if block.type_ == BlockType.SECTION_HEADER:
            self.current_section = block
            self.endianness = block.endianness
            logger.debug("New section, byte order %s", self.endianness.name)
            return

        if code == BLK_RESERVED:
            raise CorruptedFile(
                "Block type 0x00000000 is reserved and should not be used "
                "in capture files!"
            )

        if is_reserved_corrupted(code):
            raise CorruptedFile(
                "Block type 0x{0:08X} is reserved to detect a corrupted file".format(
                    code
                )
            )

        if self.current_section is None:
            strictness.problem(
                "Block {0!r} found before any section header".format(block.type_)
            )

        if not block.type_.is_known:
            logger.warning("Unrecognised block type 0x%08X was not parsed", code)


class FileScanner(BaseScanner):
    """
    pcap-ng file scanner.

    This object can be iterated to get blocks out of a pcap-ng
    stream (a file or file-like object providing a .read() method).
    Blocks are :py:class:`~ngblocks.framing.Block` instances owning their
    body; call :py:meth:`~ngblocks.framing.Block.parsed` (or iterate
    :py:meth:`iter_parsed`) to decode them.

    Example usage:

        .. code-block:: python

            from ngblocks import FileScanner

            with open('/tmp/mycapture.pcapng', 'rb') as fp:
                scanner = FileScanner(fp)
                for block in scanner:
                    pass  # do something with the block...

    :param stream:
        a file-like object from which to read the data.
    """

    __slots__ = ["stream"]

    def __init__(self, stream):
        super(FileScanner, self).__init__()
        self.stream = stream

    def __iter__(self):
        while True:
            try:
                yield self._read_next_block()
            except StreamEmpty:
                return

    def _read_next_block(self):
        block = Block.from_reader(self.stream, self.endianness)
        self._track(block)
        return block


class BufferScanner(BaseScanner):
    """
    pcap-ng scanner over in-memory data.

    Blocks borrow their body from the data (no copy is made). More data
    can be appended with :py:meth:`feed`: iteration stops at the first
    incomplete block, which is decoded on the next iteration once enough
    data is available. :py:attr:`pending` tells how many bytes are left
    undecoded.

    :param data: a bytes-like object holding the start of the capture.
    """

    __slots__ = ["data", "offset"]

    def __init__(self, data=b""):
        super(BufferScanner, self).__init__()
        self.data = bytes(data)
        self.offset = 0

    @property
    def pending(self):
        return len(self.data) - self.offset

    def feed(self, data):
        """Append data after what is left to decode"""
        # Blocks already handed out keep referencing the old buffer
        self.data = self.data[self.offset :] + bytes(data)
        self.offset = 0

    def __iter__(self):
        while self.pending > 0:
            try:
                block = self._read_next_block()
            except IncompleteBuffer as e:
                logger.debug("Waiting for %d more bytes", e.needed)
                return
            yield block

    def _read_next_block(self):
        remaining, block = Block.from_slice(
            memoryview(self.data)[self.offset :], self.endianness
        )
        # A rejected block stays pending
        self._track(block)
        self.offset = len(self.data) - len(remaining)
        return block
