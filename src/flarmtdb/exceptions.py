"""
FlarmTDB Exceptions - Errors and warnings raised while decoding or encoding
TDB databases.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class TDBError(Exception):
    """Base class for TDB codec errors"""
    pass


class BadMagic(TDBError):
    """Buffer does not start with the TDB magic number"""

    def __init__(self, found: bytes):
        self.found = bytes(found)
        super().__init__(f"Invalid magic number: {self.found.hex(' ')}")


class Truncated(TDBError):
    """Buffer is shorter than the size implied by its header"""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Unexpected end of data: need {expected} bytes, got {actual}")


class IndexMismatch(TDBError):
    """Index entry and record flarm_id disagree at some position"""

    def __init__(self, position: int, index_id: Optional[int], record_id: Optional[int]):
        self.position = position
        self.index_id = index_id
        self.record_id = record_id
        super().__init__(
            f"Index entry {_hex(index_id)} does not match record "
            f"{_hex(record_id)} at position {position}"
        )


class InvalidEncoding(TDBError, ValueError):
    """String field is not valid UTF-8"""

    def __init__(self, field: str, offset: int, position: Optional[int] = None):
        self.field = field
        self.offset = offset
        self.position = position
        where = f" of record {position}" if position is not None else ""
        super().__init__(f"Invalid UTF-8 in {field} field at offset {offset}{where}")


class InvalidFlarmId(TDBError, ValueError):
    """Flarm ID outside the 24-bit range or not parseable"""

    def __init__(self, value, position: Optional[int] = None):
        self.value = value
        self.position = position
        where = f" at record {position}" if position is not None else ""
        shown = _hex(value) if isinstance(value, int) else repr(value)
        super().__init__(f"Invalid FLARM id: {shown}{where}")


class InvalidFrequency(TDBError, ValueError):
    """Frequency outside the unsigned 32-bit kHz range or not parseable"""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid frequency: {value!r}")


class NotSorted(TDBError):
    """Identifier sequence is not strictly ascending"""

    def __init__(self, position: int, previous: int, current: int):
        self.position = position
        self.previous = previous
        self.current = current
        super().__init__(
            f"Index not strictly ascending at position {position}: "
            f"{_hex(previous)} followed by {_hex(current)}"
        )


# --------------------------------------------------------------------
# Recoverable Inconsistencies
# --------------------------------------------------------------------

class WarningKind(Enum):
    """Kinds of soft inconsistencies found while loading a database"""
    NOT_SORTED = 1
    DUPLICATE_ID = 2
    NONZERO_RESERVED = 3
    NONZERO_PADDING = 4
    TRAILING_BYTES = 5


@dataclass(frozen=True)
class ValidationWarning:
    """Soft inconsistency; the database is still usable"""
    kind: WarningKind
    message: str
    position: Optional[int] = None

    def __str__(self) -> str:
        return f"{self.kind.name}: {self.message}"


def _hex(value: Optional[int]) -> str:
    if value is None:
        return "<missing>"
    return f"0x{value:06X}"
