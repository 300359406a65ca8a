"""
Fixed String - Fixed-width, NUL-terminated UTF-8 string fields
Encodes text into zero-padded slots without ever splitting a code point.
"""

from ..constants import STRING_FIELD_SIZE, STRING_ENCODING
from ..exceptions import InvalidEncoding


def truncate_utf8(value: str, max_bytes: int) -> bytes:
    """
    Encode value as UTF-8, cut to at most max_bytes on a character boundary

    Args:
        value: Text to encode
        max_bytes: Maximum number of payload bytes

    Returns:
        The longest UTF-8 prefix of value that fits in max_bytes
    """
    encoded = value.encode(STRING_ENCODING)
    if len(encoded) <= max_bytes:
        return encoded

    # Back off while the first dropped byte is a continuation byte (10xxxxxx)
    cut = max_bytes
    while cut > 0 and (encoded[cut] & 0xC0) == 0x80:
        cut -= 1
    return encoded[:cut]


class StringField:
    """A named fixed-width string slot inside a record"""

    def __init__(self, name: str, offset: int, width: int = STRING_FIELD_SIZE):
        """
        Initialize string field

        Args:
            name: Field name used in error reports
            offset: Byte offset of the field within its record
            width: Slot width in bytes, including the NUL terminator
        """
        if width < 1:
            raise ValueError("String field width must be at least 1 byte")
        self.name = name
        self.offset = offset
        self.width = width

    @property
    def max_length(self) -> int:
        """Maximum payload bytes (one byte is kept for the terminator)"""
        return self.width - 1

    def decode(self, data: bytes) -> str:
        """
        Decode field bytes up to the first NUL (or the end of the slot)

        Raises:
            InvalidEncoding: If the payload is not valid UTF-8
        """
        raw = bytes(data[:self.width])
        end = raw.find(b'\x00')
        if end < 0:
            end = len(raw)
        try:
            return raw[:end].decode(STRING_ENCODING)
        except UnicodeDecodeError as e:
            raise InvalidEncoding(self.name, self.offset) from e

    def encode(self, value: str) -> bytes:
        """
        Encode value into exactly `width` bytes, NUL-terminated and zero-padded

        Text after an embedded NUL cannot be represented and is dropped.

        Raises:
            InvalidEncoding: If value cannot be encoded as UTF-8
        """
        value = value.split('\x00', 1)[0]
        try:
            payload = truncate_utf8(value, self.max_length)
        except UnicodeEncodeError as e:
            raise InvalidEncoding(self.name, self.offset) from e
        return payload.ljust(self.width, b'\x00')

    # --------------------------------------------------------------------
    # Record Access
    # --------------------------------------------------------------------

    def read(self, record: bytes) -> str:
        """Decode this field from a whole record buffer"""
        return self.decode(record[self.offset:self.offset + self.width])

    def write(self, buffer: bytearray, value: str) -> None:
        """Encode this field into a whole record buffer"""
        buffer[self.offset:self.offset + self.width] = self.encode(value)

    def __repr__(self) -> str:
        return f"StringField({self.name!r}, offset={self.offset}, width={self.width})"
