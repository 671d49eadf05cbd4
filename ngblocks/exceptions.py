class PcapngException(Exception):
    """Base for all the pcapng exceptions"""

    pass


class PcapngWarning(Warning):
    """Base for all the pcapng warnings"""

    pass


class PcapngLoadError(PcapngException):
    """Indicate an error while decoding a pcapng block"""

    pass


class PcapngDumpError(PcapngException):
    """Indicate an error while writing a pcapng file"""

    pass


class PcapngStrictnessError(PcapngException):
    """Raised for questionable pcapng data under the FORBID strictness"""


class PcapngStrictnessWarning(PcapngWarning):
    """Issued for questionable pcapng data under the lesser strictness levels"""


class IncompleteBuffer(PcapngLoadError):
    """
    Exception raised when decoding from an in-memory buffer that does
    not (yet) hold the whole block.

    The ``needed`` attribute holds the exact number of extra bytes
    required; callers may buffer that much more data and retry the
    same decode call from the start.
    """

    def __init__(self, needed):
        self.needed = needed
        super(IncompleteBuffer, self).__init__(
            "Incomplete buffer: {0} more bytes needed".format(needed)
        )


class InvalidField(PcapngLoadError):
    """
    Exception used to indicate that a structural field of a block
    holds an impossible value (misaligned or too short length,
    mismatching leading / trailing lengths, ...).
    """

    pass


class BadMagic(InvalidField):
    """The section header byte order magic is neither of the two known ones"""

    pass


class StreamEmpty(PcapngLoadError, EOFError):
    """
    The stream ended exactly at a block boundary: no byte of a new
    block could be read. Scanners take this as the normal end of a file.
    """

    pass


class TruncatedFile(PcapngLoadError, EOFError):
    """
    The stream ended in the middle of a block: some of its bytes were
    read, but not all of them.
    """

    pass


class CorruptedFile(PcapngLoadError):
    """
    The file structure cannot be trusted any more, e.g. a block type
    reserved to spot files damaged by text mode transfers was found.
    """

    pass
