# PCAPNG Block types

BLK_RESERVED = 0x00000000  # Reserved
BLK_INTERFACE = 0x00000001  # Interface description block
BLK_PACKET = 0x00000002  # Packet Block (obsolete)
BLK_PACKET_SIMPLE = 0x00000003  # Simple Packet block
BLK_NAME_RESOLUTION = 0x00000004  # Name Resolution Block
BLK_INTERFACE_STATS = 0x00000005  # Interface Statistics Block
BLK_ENHANCED_PACKET = 0x00000006  # Enhanced Packet Block
BLK_SYSTEMD_JOURNAL = 0x00000009  # systemd Journal Export Block

BLK_SECTION_HEADER = 0x0A0D0D0A  # Section Header Block

# Reserved. Used to detect trace files corrupted because
# of file transfers using the HTTP protocol in text mode.
# Each entry is (mask, value): 0x0A0D0A00-0x0A0D0AFF, 0x000A0D0A-0xFF0A0D0A,
# 0x000A0D0D-0xFF0A0D0D and 0x0D0D0A00-0x0D0D0AFF.
BLK_RESERVED_CORRUPTED = [
    (0xFFFFFF00, 0x0A0D0A00),
    (0x00FFFFFF, 0x000A0D0A),
    (0x00FFFFFF, 0x000A0D0D),
    (0xFFFFFF00, 0x0D0D0A00),
]


def is_reserved_corrupted(code):
    """Tell whether a block type is reserved to detect a corrupted file"""
    return any((code & mask) == value for mask, value in BLK_RESERVED_CORRUPTED)
