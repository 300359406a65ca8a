"""
Record Module - 96-byte FlarmNet record codec
Maps raw record bytes to Record values and back. Where the pilot name lives
inside a record is not settled by the format documentation, so the choice
is an explicit OffsetPolicy rather than a fixed constant.
"""

import struct
from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
from ..constants import (RECORD_SIZE, FLARM_ID_OFFSET, FREQUENCY_OFFSET,
                         RESERVED_OFFSET, RESERVED_SIZE, CALL_SIGN_OFFSET,
                         PILOT_NAME_OFFSET, AIRFIELD_OFFSET, PLANE_TYPE_OFFSET,
                         REGISTRATION_OFFSET, ALT_PILOT_NAME_OFFSET,
                         ALT_PILOT_NAME_SIZE, STRING_FIELD_SIZE, MAX_FLARM_ID,
                         MAX_FREQUENCY, FREQUENCY_UNSET, DEFAULT_OFFSET_POLICY)
from ..exceptions import InvalidEncoding, InvalidFlarmId, InvalidFrequency
from ..types.fixed_string import StringField
from ..types.units import format_flarm_id, format_frequency


class OffsetPolicy(Enum):
    """Which byte range of a record holds pilot_name"""
    OFFSET_32 = 32  # bytes 32..48, uniform 16-byte layout
    OFFSET_8 = 8  # bytes 8..16, the region otherwise reserved


DEFAULT_POLICY = OffsetPolicy[DEFAULT_OFFSET_POLICY]


class RecordLayout:
    """Field placement within a record for one OffsetPolicy"""

    def __init__(self, policy: OffsetPolicy, pilot_name: StringField,
                 reserved: Tuple[int, int]):
        self.policy = policy
        self.reserved_offset, self.reserved_size = reserved
        self.string_fields = (
            StringField('call_sign', CALL_SIGN_OFFSET),
            pilot_name,
            StringField('airfield', AIRFIELD_OFFSET),
            StringField('plane_type', PLANE_TYPE_OFFSET),
            StringField('registration', REGISTRATION_OFFSET),
        )

    @property
    def reserved_slice(self) -> slice:
        return slice(self.reserved_offset, self.reserved_offset + self.reserved_size)


LAYOUTS: Dict[OffsetPolicy, RecordLayout] = {
    OffsetPolicy.OFFSET_32: RecordLayout(
        OffsetPolicy.OFFSET_32,
        StringField('pilot_name', PILOT_NAME_OFFSET),
        (RESERVED_OFFSET, RESERVED_SIZE),
    ),
    OffsetPolicy.OFFSET_8: RecordLayout(
        OffsetPolicy.OFFSET_8,
        StringField('pilot_name', ALT_PILOT_NAME_OFFSET, ALT_PILOT_NAME_SIZE),
        (PILOT_NAME_OFFSET, STRING_FIELD_SIZE),
    ),
}


def get_layout(policy: OffsetPolicy) -> RecordLayout:
    return LAYOUTS[OffsetPolicy(policy)]


STRING_FIELD_NAMES = ('call_sign', 'pilot_name', 'airfield', 'plane_type', 'registration')


def _is_integer(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class Record:
    """One aircraft entry. Strings are plain text, frequency is in kHz."""
    flarm_id: int
    frequency: int = FREQUENCY_UNSET
    call_sign: str = ''
    pilot_name: str = ''
    airfield: str = ''
    plane_type: str = ''
    registration: str = ''
    # Raw bytes of the reserved region as read; always written back as zero
    reserved: bytes = field(default=b'', compare=False, repr=False)

    def __post_init__(self):
        if not _is_integer(self.flarm_id) or not 0 <= self.flarm_id <= MAX_FLARM_ID:
            raise InvalidFlarmId(self.flarm_id)
        if not _is_integer(self.frequency) or not 0 <= self.frequency <= MAX_FREQUENCY:
            raise InvalidFrequency(self.frequency)
        for name in STRING_FIELD_NAMES:
            value = getattr(self, name)
            if not isinstance(value, str):
                raise TypeError(f"Record {name} must be str, got {type(value).__name__}")

    @property
    def flarm_id_hex(self) -> str:
        return format_flarm_id(self.flarm_id)

    @property
    def frequency_mhz(self) -> Optional[float]:
        """Frequency in MHz, or None when unset"""
        if self.frequency == FREQUENCY_UNSET:
            return None
        return self.frequency / 1000.0

    @property
    def frequency_text(self) -> str:
        return format_frequency(self.frequency)

    @property
    def has_reserved_data(self) -> bool:
        return any(self.reserved)


# --------------------------------------------------------------------
# Codec
# --------------------------------------------------------------------

def decode_record(data: bytes, policy: OffsetPolicy = DEFAULT_POLICY,
                  position: Optional[int] = None) -> Record:
    """
    Decode one 96-byte record

    Args:
        data: Exactly RECORD_SIZE bytes
        policy: Where pilot_name is read from
        position: Record position in the file, used in error reports

    Returns:
        Decoded Record. Nonzero reserved bytes are kept on Record.reserved.

    Raises:
        InvalidFlarmId: If the stored id exceeds 24 bits
        InvalidEncoding: If a string field is not valid UTF-8
    """
    if len(data) != RECORD_SIZE:
        raise ValueError(f"Record must be {RECORD_SIZE} bytes, got {len(data)}")

    layout = get_layout(policy)
    flarm_id = struct.unpack_from('<I', data, FLARM_ID_OFFSET)[0]
    frequency = struct.unpack_from('<I', data, FREQUENCY_OFFSET)[0]
    if flarm_id > MAX_FLARM_ID:
        raise InvalidFlarmId(flarm_id, position)

    strings = {}
    for string_field in layout.string_fields:
        try:
            strings[string_field.name] = string_field.read(data)
        except InvalidEncoding as e:
            raise InvalidEncoding(string_field.name, string_field.offset, position) from e

    return Record(flarm_id=flarm_id, frequency=frequency,
                  reserved=bytes(data[layout.reserved_slice]), **strings)


def encode_record(record: Record, policy: OffsetPolicy = DEFAULT_POLICY) -> bytes:
    """
    Encode one record to 96 bytes

    The reserved region of the selected layout is always written as zero;
    strings longer than their slot are cut on a UTF-8 character boundary.
    """
    layout = get_layout(policy)
    buffer = bytearray(RECORD_SIZE)
    struct.pack_into('<I', buffer, FLARM_ID_OFFSET, record.flarm_id)
    struct.pack_into('<I', buffer, FREQUENCY_OFFSET, record.frequency)
    for string_field in layout.string_fields:
        string_field.write(buffer, getattr(record, string_field.name))
    return bytes(buffer)
