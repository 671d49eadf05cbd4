"""
Generic pcap-ng block framing.

Every block, whatever its type, is wrapped in the same envelope::

     0                   1                   2                   3
     0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1
    +---------------------------------------------------------------+
    |                          Block Type                           |
    +---------------------------------------------------------------+
    |                      Block Total Length                       |
    +---------------------------------------------------------------+
    /                          Block Body                           /
    /          /* variable length, aligned to 32 bits */            /
    +---------------------------------------------------------------+
    |                      Block Total Length                       |
    +---------------------------------------------------------------+

:py:class:`Block` reads and writes this envelope around an opaque body.
The body is interpreted on demand by :py:meth:`Block.parsed`.

Section header blocks are special: the byte order of the section is
only known once the magic at the start of their body has been read,
so their length is read big-endian first and fixed up afterwards.
The framer does not remember the byte order across calls; callers
(e.g. :py:class:`~ngblocks.scanner.FileScanner`) pass the order
announced by the last section header to the following calls.
"""

import logging
from collections import namedtuple

from ngblocks.block_type import BlockType
from ngblocks.blocks import ParsedBlock
from ngblocks.byteorder import Endianness, pack_int, swap_u32, unpack_int
from ngblocks.constants import (
    BLOCK_HEADER_SIZE,
    BLOCK_OVERHEAD,
    SECTION_HEADER_MIN_SIZE,
)
from ngblocks.exceptions import (
    IncompleteBuffer,
    InvalidField,
    StreamEmpty,
    TruncatedFile,
)
from ngblocks.structs import read_bytes, read_int, write_bytes, write_int

logger = logging.getLogger(__name__)


def _check_length(initial_len, type_):
    if initial_len % 4 != 0:
        raise InvalidField(
            "Block: initial_len % 4 != 0 (got {0})".format(initial_len)
        )
    if initial_len < BLOCK_OVERHEAD:
        raise InvalidField(
            "Block: initial_len < {0} (got {1})".format(BLOCK_OVERHEAD, initial_len)
        )
    if type_ == BlockType.SECTION_HEADER and initial_len < SECTION_HEADER_MIN_SIZE:
        raise InvalidField(
            "SectionHeaderBlock: initial_len < {0} (got {1})".format(
                SECTION_HEADER_MIN_SIZE, initial_len
            )
        )


def _check_trailer(initial_len, trailer_len):
    if initial_len != trailer_len:
        raise InvalidField(
            "Block initial_length != trailer_length ({0} != {1})".format(
                initial_len, trailer_len
            )
        )


def _section_length(raw_len, magic):
    """
    Get the byte order of a section header from its magic, and its
    length from the length field as read big-endian.
    """
    endianness = Endianness.from_magic(magic)
    if endianness == Endianness.LITTLE:
        raw_len = swap_u32(raw_len)
    logger.debug("    section byte order: %s", endianness.name)
    return endianness, raw_len


class Block(
    namedtuple(
        "Block", ("type_", "initial_len", "body", "trailer_len", "endianness")
    )
):
    """
    One pcap-ng block, with its body left undecoded.

    The ``body`` is either ``bytes`` (read from a stream; the block owns
    it) or a read-only ``memoryview`` into the buffer it was decoded from
    (the buffer must then be kept alive and unchanged while the block is
    in use; see :py:meth:`into_owned`).

    ``endianness`` is the byte order the block was decoded with: for a
    section header, the one announced by its magic.

    Only :py:meth:`from_reader` and :py:meth:`from_slice` validate the
    framing. Building one directly checks nothing: the lengths need not
    match each other or the body, and :py:meth:`write_to` writes the
    fields as given.
    """

    __slots__ = []

    @classmethod
    def from_reader(cls, stream, endianness=Endianness.BIG):
        """
        Read one block from a stream.

        :param stream: an object providing a ``read()`` method
        :param endianness: byte order of the current section; ignored
            if the block turns out to be a section header.
        :raises: :py:exc:`~ngblocks.exceptions.StreamEmpty` if the stream
            is exhausted before the block starts,
            :py:exc:`~ngblocks.exceptions.TruncatedFile` if it ends inside
            the block (both are ``EOFError``),
            :py:exc:`~ngblocks.exceptions.InvalidField` on bad lengths or
            section header magic.
        """
        type_ = BlockType.from_code(read_int(stream, 32, False, endianness))
        logger.debug("Reading block %r from stream", type_)

        try:
            if type_ == BlockType.SECTION_HEADER:
                return cls._read_section_header(stream, type_)
            initial_len = read_int(stream, 32, False, endianness)
            _check_length(initial_len, type_)
            body = read_bytes(stream, initial_len - BLOCK_OVERHEAD)
            trailer_len = read_int(stream, 32, False, endianness)
        except StreamEmpty as e:
            # The block has started: running out of data now is a truncation
            raise TruncatedFile(
                "Stream ended inside a {0!r} block".format(type_)
            ) from e

        _check_trailer(initial_len, trailer_len)
        logger.debug("    block length: %d", initial_len)
        return cls(type_, initial_len, body, trailer_len, endianness)

    @classmethod
    def _read_section_header(cls, stream, type_):
        # The length can only be decoded once the magic told the byte order
        raw_len = read_int(stream, 32, False, Endianness.BIG)
        magic = read_int(stream, 32, False, Endianness.BIG)
        endianness, initial_len = _section_length(raw_len, magic)
        _check_length(initial_len, type_)

        # Keep the magic at the start of the body, as it was on the wire
        body = pack_int(magic, 32, False, Endianness.BIG) + read_bytes(
            stream, initial_len - BLOCK_OVERHEAD - 4
        )
        trailer_len = read_int(stream, 32, False, endianness)
        _check_trailer(initial_len, trailer_len)
        logger.debug("    block length: %d", initial_len)
        return cls(type_, initial_len, body, trailer_len, endianness)

    @classmethod
    def from_slice(cls, data, endianness=Endianness.BIG):
        """
        Decode one block from the start of an in-memory buffer, without
        copying its body.

        :param data: a bytes-like object
        :param endianness: byte order of the current section; ignored
            if the block turns out to be a section header.
        :returns: a ``(remaining, block)`` tuple, ``remaining`` being a
            view of the bytes following the block.
        :raises: :py:exc:`~ngblocks.exceptions.IncompleteBuffer` if the
            buffer holds only part of the block (its ``needed`` attribute
            tells how many more bytes are required),
            :py:exc:`~ngblocks.exceptions.InvalidField` on bad lengths or
            section header magic.
        """
        view = memoryview(data).cast("B").toreadonly()
        if len(view) < BLOCK_OVERHEAD:
            raise IncompleteBuffer(BLOCK_OVERHEAD - len(view))

        type_ = BlockType.from_code(unpack_int(view[0:4], 32, False, endianness))
        logger.debug("Decoding block %r from buffer", type_)

        if type_ == BlockType.SECTION_HEADER:
            raw_len = unpack_int(view[4:8], 32, False, Endianness.BIG)
            magic = unpack_int(view[8:12], 32, False, Endianness.BIG)
            endianness, initial_len = _section_length(raw_len, magic)
        else:
            initial_len = unpack_int(view[4:8], 32, False, endianness)
        _check_length(initial_len, type_)

        # Type and length are consumed; body and trailer must follow
        available = len(view) - BLOCK_HEADER_SIZE
        if available < initial_len - BLOCK_HEADER_SIZE:
            raise IncompleteBuffer(initial_len - BLOCK_HEADER_SIZE - available)

        body_end = initial_len - 4
        body = view[BLOCK_HEADER_SIZE:body_end]
        trailer_len = unpack_int(view[body_end:initial_len], 32, False, endianness)
        _check_trailer(initial_len, trailer_len)
        logger.debug("    block length: %d", initial_len)

        return view[initial_len:], cls(type_, initial_len, body, trailer_len, endianness)

    def write_to(self, stream, endianness=None):
        """
        Write the block as-is; lengths are not recomputed.

        :param endianness: byte order for the type and length fields;
            defaults to the one the block was decoded with.
        :returns: the number of bytes written
        """
        if endianness is None:
            endianness = self.endianness
        write_int(int(self.type_), stream, 32, endianness=endianness)
        write_int(self.initial_len, stream, 32, endianness=endianness)
        write_bytes(stream, self.body)
        write_int(self.trailer_len, stream, 32, endianness=endianness)
        return BLOCK_OVERHEAD + len(self.body)

    def parsed(self):
        """
        Decode the body according to the block type.

        Not cached: every call decodes again.

        :returns: a :py:class:`~ngblocks.blocks.ParsedBlock`
        """
        return ParsedBlock.from_slice(self.type_, self.body, self.endianness)[1]

    @property
    def is_borrowed(self):
        return isinstance(self.body, memoryview)

    @property
    def body_length(self):
        return len(self.body)

    def into_owned(self):
        """Return an equal block holding its own copy of the body"""
        if not self.is_borrowed:
            return self
        return self._replace(body=self.body.tobytes())

    def __repr__(self):
        return (
            "<Block type={type_!r} length={length} endianness={endianness} "
            "{storage}>"
        ).format(
            type_=self.type_,
            length=self.initial_len,
            endianness=self.endianness.name,
            storage="borrowed" if self.is_borrowed else "owned",
        )
