import logging
import struct
import pytest
from flarmtdb.storage.database import Database
from flarmtdb.storage.header import Header
from flarmtdb.storage.index import Index
from flarmtdb.storage.record import Record, OffsetPolicy, encode_record
from flarmtdb.constants import TDB_MAGIC
from flarmtdb.exceptions import (BadMagic, Truncated, IndexMismatch,
                                 InvalidEncoding, InvalidFlarmId, WarningKind)


def make_record_bytes(flarm_id, frequency=0, fields=None, reserved=b''):
    data = bytearray(96)
    struct.pack_into('<II', data, 0, flarm_id, frequency)
    data[8:8 + len(reserved)] = reserved
    for offset, value in (fields or {}).items():
        data[offset:offset + len(value)] = value
    return bytes(data)


def make_file(records, ids=None, version=1, padding=bytes(8)):
    """Assemble a TDB buffer; ids defaults to each record's own flarm_id"""
    if ids is None:
        ids = [struct.unpack_from('<I', record, 0)[0] for record in records]
    data = TDB_MAGIC + struct.pack('<II', version, len(records))
    data += b''.join(struct.pack('<I', flarm_id) for flarm_id in ids)
    data += padding
    data += b''.join(records)
    return data


def kinds(db):
    return [warning.kind for warning in db.warnings]


@pytest.fixture
def sample_records():
    return [
        Record(0x00000F, 0, 'X27', 'Jane Roe', 'D-9527', 'ASW 27', 'D-9527'),
        Record(0x000001, 0, '', '', '', 'Paraglider', ''),
        Record(0x3EE3C7, 123500, 'SG', 'John Doe', 'EDKA', 'LS6a', 'D-0816'),
        Record(0x000000, 123150, '', '', 'D-2188', 'ASK-13', 'D-2188'),
        Record(0xDDA5BA, 122475, 'Ä1', 'Jörg Müller', 'EDxx', 'Duo Discus', 'D-KÖLN'),
    ]


@pytest.fixture
def sample_db(sample_records):
    return Database.build(sample_records)


# --------------------------------------------------------------------
# Parsing
# --------------------------------------------------------------------

def test_single_record_file():
    data = (bytes.fromhex('08d51987 01000000 01000000')
            + bytes.fromhex('efcdab00')
            + bytes(8)
            + make_record_bytes(0x00ABCDEF, 123500, {16: b'ABC'}))

    db = Database.parse(data)
    assert db.version == 1
    assert len(db) == 1
    assert db.warnings == ()

    record = db.lookup_by_flarm_id(0x00ABCDEF)
    assert record.frequency == 123500
    assert record.call_sign == 'ABC'
    assert record.frequency / 1000.0 == 123.5
    assert record.pilot_name == record.airfield == record.plane_type == record.registration == ''

    # valid input serializes back byte for byte
    assert db.serialize() == data


def test_empty_database():
    data = make_file([])
    db = Database.parse(data)
    assert len(db) == 0
    assert db.lookup_by_flarm_id(1) is None
    assert db.serialize() == data


def test_accepts_bytearray_and_memoryview():
    data = make_file([make_record_bytes(1), make_record_bytes(2)])
    assert Database.parse(bytearray(data)) == Database.parse(data)
    assert Database.parse(memoryview(data)) == Database.parse(data)


def test_bad_magic():
    with pytest.raises(BadMagic):
        Database.parse(bytes(12))


def test_truncated():
    data = make_file([make_record_bytes(1)])

    with pytest.raises(Truncated) as excinfo:
        Database.parse(data[:12])
    assert excinfo.value.expected == 12 + 4 + 8 + 96
    assert excinfo.value.actual == 12

    with pytest.raises(Truncated):
        Database.parse(data[:-1])
    with pytest.raises(Truncated):
        Database.parse(b'')


def test_index_mismatch():
    ids = [10, 20, 30, 40, 50]
    records = [make_record_bytes(flarm_id) for flarm_id in ids]
    data = make_file(records, ids=[10, 20, 30, 35, 50])

    with pytest.raises(IndexMismatch) as excinfo:
        Database.parse(data)
    assert excinfo.value.position == 3
    assert excinfo.value.index_id == 35
    assert excinfo.value.record_id == 40


def test_invalid_encoding_reports_field_and_position():
    records = [make_record_bytes(1), make_record_bytes(2, fields={32: b'\xc3\x28'})]
    with pytest.raises(InvalidEncoding) as excinfo:
        Database.parse(make_file(records))
    assert excinfo.value.field == 'pilot_name'
    assert excinfo.value.offset == 32
    assert excinfo.value.position == 1


def test_invalid_flarm_id_in_file():
    records = [make_record_bytes(1), make_record_bytes(0x01000000)]
    with pytest.raises(InvalidFlarmId) as excinfo:
        Database.parse(make_file(records))
    assert excinfo.value.position == 1


# --------------------------------------------------------------------
# Recoverable inconsistencies
# --------------------------------------------------------------------

def test_unsorted_file_loads_with_warning():
    records = [make_record_bytes(3, fields={16: b'C'}),
               make_record_bytes(1, fields={16: b'A'}),
               make_record_bytes(2, fields={16: b'B'})]
    db = Database.parse(make_file(records))

    assert kinds(db) == [WarningKind.NOT_SORTED]
    assert db.warnings[0].position == 1
    assert db.index.ids == (1, 2, 3)
    assert [record.call_sign for record in db] == ['A', 'B', 'C']
    assert db.lookup_by_flarm_id(3).call_sign == 'C'

    # re-serializing produces a clean, sorted file
    clean = Database.parse(db.serialize())
    assert clean.warnings == ()
    assert clean == db


def test_duplicate_ids_keep_first():
    records = [make_record_bytes(1, fields={16: b'A'}),
               make_record_bytes(2, fields={16: b'first'}),
               make_record_bytes(2, fields={16: b'second'})]
    db = Database.parse(make_file(records))

    assert kinds(db) == [WarningKind.DUPLICATE_ID]
    assert len(db) == 2
    assert db.header.record_count == 2
    assert db.lookup_by_flarm_id(2).call_sign == 'first'


def test_nonzero_padding_is_a_warning():
    data = make_file([make_record_bytes(1)], padding=b'\x00\x01' + bytes(6))
    db = Database.parse(data)

    assert kinds(db) == [WarningKind.NONZERO_PADDING]
    # padding is normalized on write
    expected = make_file([make_record_bytes(1)])
    assert db.serialize() == expected


def test_nonzero_reserved_is_a_warning():
    data = make_file([make_record_bytes(1), make_record_bytes(2, reserved=b'\xaa' * 8)])
    db = Database.parse(data)

    assert kinds(db) == [WarningKind.NONZERO_RESERVED]
    assert db.warnings[0].position == 1
    assert db.records[1].reserved == b'\xaa' * 8
    assert db.serialize() == make_file([make_record_bytes(1), make_record_bytes(2)])


def test_warning_positions_follow_file_order():
    # record 1 has id 1 and lands at sorted position 0
    records = [make_record_bytes(5),
               make_record_bytes(1, reserved=b'\x01' * 8),
               make_record_bytes(3)]
    db = Database.parse(make_file(records))

    assert [(w.kind, w.position) for w in db.warnings] == [
        (WarningKind.NOT_SORTED, 1),
        (WarningKind.NONZERO_RESERVED, 1),
    ]
    assert db.records[0].has_reserved_data
    # validate() reports positions within the database itself
    assert [w.position for w in db.validate()] == [0]


def test_duplicate_warning_has_file_position():
    records = [make_record_bytes(2), make_record_bytes(1), make_record_bytes(2)]
    db = Database.parse(make_file(records))
    duplicate = [w for w in db.warnings if w.kind is WarningKind.DUPLICATE_ID]
    assert [w.position for w in duplicate] == [2]


def test_buffer_can_grow_after_truncated():
    full = make_file([make_record_bytes(1), make_record_bytes(2)])
    buffer = bytearray(full[:40])
    try:
        Database.parse(buffer)
    except Truncated:
        buffer += full[40:]
    assert len(Database.parse(buffer)) == 2


def test_buffer_is_released_after_decode_error():
    records = [make_record_bytes(1, fields={16: b'\xff'})]
    buffer = bytearray(make_file(records))
    try:
        Database.parse(buffer)
    except InvalidEncoding:
        buffer[28 + 16] = ord('A')
        buffer += bytes(4)
    db = Database.parse(buffer)
    assert db.records[0].call_sign == 'A'
    assert kinds(db) == [WarningKind.TRAILING_BYTES]


def test_trailing_bytes_are_a_warning():
    data = make_file([make_record_bytes(1)])
    db = Database.parse(data + b'junk')
    assert kinds(db) == [WarningKind.TRAILING_BYTES]
    assert db.serialize() == data


def test_warnings_are_logged(caplog):
    data = make_file([make_record_bytes(1)], padding=b'\xff' * 8)
    with caplog.at_level(logging.WARNING, logger='flarmtdb.storage.database'):
        Database.parse(data)
    assert 'NONZERO_PADDING' in caplog.text


# --------------------------------------------------------------------
# Building, lookup and round trip
# --------------------------------------------------------------------

def test_build_sorts_records(sample_db):
    assert sample_db.index.ids == (0x000000, 0x000001, 0x00000F, 0x3EE3C7, 0xDDA5BA)
    assert [record.flarm_id for record in sample_db] == list(sample_db.index)
    assert sample_db.header == Header(1, 5)
    assert sample_db.warnings == ()


def test_build_drops_duplicates():
    db = Database.build([Record(5, call_sign='first'), Record(1), Record(5, call_sign='second')])
    assert db.index.ids == (1, 5)
    assert db.lookup_by_flarm_id(5).call_sign == 'first'
    assert kinds(db) == [WarningKind.DUPLICATE_ID]
    assert db.warnings[0].position == 2


def test_lookup_every_record(sample_db):
    for position, record in enumerate(sample_db.records):
        assert sample_db.lookup_by_flarm_id(record.flarm_id) is sample_db.records[position]

    assert sample_db.lookup_by_flarm_id(0x123456) is None
    assert 0x3EE3C7 in sample_db
    assert 0x123456 not in sample_db


def test_lookup_large_database():
    records = [Record(flarm_id, call_sign=f'{flarm_id:X}') for flarm_id in range(7, 0xFFFFFF, 4099)]
    db = Database.parse(Database.build(reversed(records)).serialize())
    for record in records:
        assert db.lookup_by_flarm_id(record.flarm_id) == record
        assert db.lookup_by_flarm_id(record.flarm_id + 1) is None


def test_round_trip(sample_db):
    data = sample_db.serialize()
    assert len(data) == 12 + 5 * 4 + 8 + 5 * 96

    parsed = Database.parse(data)
    assert parsed == sample_db
    assert parsed.serialize() == data
    assert parsed.lookup_by_flarm_id(0xDDA5BA).pilot_name == 'Jörg Müller'


def test_serialized_index_matches_records(sample_db):
    data = sample_db.serialize()
    assert data[12:12 + 5 * 4] == sample_db.index.encode()
    assert Index.decode_ids(data, 5, 12) == [record.flarm_id for record in sample_db]


def test_round_trip_keeps_version_and_zero_frequency():
    db = Database.build([Record(1, 0), Record(2, 118000)], version=0x12345678)
    parsed = Database.parse(db.serialize())
    assert parsed.version == 0x12345678
    assert parsed.lookup_by_flarm_id(1).frequency == 0
    assert parsed.lookup_by_flarm_id(2).frequency == 118000


def test_offset_policy_round_trip():
    records = [Record(1, pilot_name='Pilot'), Record(2, pilot_name='Someone Else')]
    db = Database.build(records, policy=OffsetPolicy.OFFSET_8)
    data = db.serialize()

    # pilot names live in the 8-byte region after the frequency
    assert data[12 + 8 + 8 + 8:12 + 8 + 8 + 16] == b'Pilot\x00\x00\x00'

    parsed = Database.parse(data, OffsetPolicy.OFFSET_8)
    assert parsed.policy is OffsetPolicy.OFFSET_8
    assert parsed.lookup_by_flarm_id(1).pilot_name == 'Pilot'
    assert parsed.lookup_by_flarm_id(2).pilot_name == 'Someone'
    assert parsed.serialize() == data

    # the default policy sees no pilot name and flags the bytes as reserved
    default = Database.parse(data)
    assert default.lookup_by_flarm_id(1).pilot_name == ''
    assert kinds(default) == [WarningKind.NONZERO_RESERVED] * 2


def test_serialize_with_other_policy(sample_db):
    data = sample_db.serialize(OffsetPolicy.OFFSET_8)
    parsed = Database.parse(data, OffsetPolicy.OFFSET_8)
    assert parsed.lookup_by_flarm_id(0x3EE3C7).pilot_name == 'John Do'


# --------------------------------------------------------------------
# Invariants
# --------------------------------------------------------------------

def test_validate_detects_nothing_on_clean_database(sample_db):
    assert sample_db.validate() == []


def test_construction_requires_matching_index():
    with pytest.raises(IndexMismatch) as excinfo:
        Database(Header(1, 1), Index([1]), (Record(2),))
    assert excinfo.value.position == 0

    with pytest.raises(IndexMismatch):
        Database(Header(1, 1), Index([]), (Record(1),))


def test_construction_requires_matching_count():
    with pytest.raises(ValueError):
        Database(Header(1, 2), Index([1]), (Record(1),))


def test_database_is_immutable(sample_db):
    with pytest.raises(AttributeError):
        sample_db.records = ()
    assert isinstance(sample_db.records, tuple)
