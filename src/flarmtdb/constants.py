"""
FlarmTDB - File Format Constants
Constants for the TDB header, index, padding and record layout.
All multi-byte integers are little-endian and unsigned.
"""

# File Layout
# [magic:4][version:4][count:4][index:N*4][padding:8][records:N*96]
TDB_MAGIC = b'\x08\xd5\x19\x87'
HEADER_SIZE = 12
INDEX_ENTRY_SIZE = 4
PADDING_SIZE = 8
RECORD_SIZE = 96

HEADER_FORMAT = '<4sII'
INDEX_ENTRY_FORMAT = '<I'

# Header Offsets
MAGIC_OFFSET = 0  # 4 bytes
VERSION_OFFSET = 4  # 4 bytes
RECORD_COUNT_OFFSET = 8  # 4 bytes
INDEX_OFFSET = HEADER_SIZE

# Record Offsets (default layout)
FLARM_ID_OFFSET = 0  # 4 bytes
FREQUENCY_OFFSET = 4  # 4 bytes, kHz
RESERVED_OFFSET = 8
RESERVED_SIZE = 8
CALL_SIGN_OFFSET = 16
PILOT_NAME_OFFSET = 32
AIRFIELD_OFFSET = 48
PLANE_TYPE_OFFSET = 64
REGISTRATION_OFFSET = 80

# Alternative pilot_name placement (inside the reserved region)
ALT_PILOT_NAME_OFFSET = RESERVED_OFFSET
ALT_PILOT_NAME_SIZE = RESERVED_SIZE

# String Fields
STRING_FIELD_SIZE = 16  # 15 payload bytes + NUL terminator
STRING_ENCODING = 'utf-8'

# Value Limits
MAX_FLARM_ID = 0xFFFFFF  # 24-bit radio identifier
MAX_U32 = 0xFFFFFFFF
MAX_FREQUENCY = MAX_U32
FREQUENCY_UNSET = 0

# Defaults used when building a database from records
DEFAULT_VERSION = 1
DEFAULT_OFFSET_POLICY = 'OFFSET_32'
