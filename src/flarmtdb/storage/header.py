"""
Header Module - Fixed 12-byte TDB file header
Validates the magic number and derives the offsets of the index, padding
and record sections from the declared record count.
"""

import struct
from dataclasses import dataclass
from ..constants import (TDB_MAGIC, HEADER_SIZE, HEADER_FORMAT, INDEX_OFFSET,
                         INDEX_ENTRY_SIZE, PADDING_SIZE, RECORD_SIZE, MAX_U32)
from ..exceptions import BadMagic, Truncated


@dataclass(frozen=True)
class Header:
    """TDB file header: [magic:4][version:4][record_count:4]"""
    version: int
    record_count: int

    def __post_init__(self):
        # Both fields are stored as unsigned 32-bit integers
        for name in ('version', 'record_count'):
            value = getattr(self, name)
            if not 0 <= value <= MAX_U32:
                raise ValueError(f"Header {name} out of u32 range: {value}")

    @property
    def magic(self) -> bytes:
        return TDB_MAGIC

    # --------------------------------------------------------------------
    # Section Layout
    # --------------------------------------------------------------------

    @property
    def index_offset(self) -> int:
        return INDEX_OFFSET

    @property
    def index_size(self) -> int:
        return self.record_count * INDEX_ENTRY_SIZE

    @property
    def padding_offset(self) -> int:
        return self.index_offset + self.index_size

    @property
    def records_offset(self) -> int:
        return self.padding_offset + PADDING_SIZE

    @property
    def records_size(self) -> int:
        return self.record_count * RECORD_SIZE

    @property
    def total_size(self) -> int:
        """Minimum buffer length for a file with this header"""
        return self.records_offset + self.records_size

    def record_offset(self, position: int) -> int:
        """Byte offset of the record at position"""
        return self.records_offset + position * RECORD_SIZE

    # --------------------------------------------------------------------
    # Serialization
    # --------------------------------------------------------------------

    @classmethod
    def decode(cls, data: bytes) -> 'Header':
        """
        Decode header from the first 12 bytes of data

        Raises:
            Truncated: If fewer than 12 bytes are available
            BadMagic: If the magic number does not match
        """
        magic = bytes(data[:len(TDB_MAGIC)])
        if len(magic) == len(TDB_MAGIC) and magic != TDB_MAGIC:
            raise BadMagic(magic)
        if len(data) < HEADER_SIZE:
            raise Truncated(HEADER_SIZE, len(data))

        _, version, record_count = struct.unpack_from(HEADER_FORMAT, data, 0)
        return cls(version, record_count)

    def encode(self) -> bytes:
        """Encode header to 12 bytes"""
        return struct.pack(HEADER_FORMAT, TDB_MAGIC, self.version, self.record_count)
