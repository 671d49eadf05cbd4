"""Generic constants"""

# Byte order magic numbers, as read big-endian from the section header
# ----------------------------------------

BYTE_ORDER_MAGIC = 0x1A2B3C4D
BYTE_ORDER_MAGIC_INVERSE = 0x4D3C2B1A

SIZE_NOTSET = -1  # section length "unknown"

# Block envelope sizes, in bytes

BLOCK_HEADER_SIZE = 8  # type + leading length
BLOCK_OVERHEAD = 12  # type + leading length + trailing length
SECTION_HEADER_MIN_SIZE = 16  # overhead + byte order magic
