"""
Database Module - TDB database aggregate
Owns the header, the sorted index and the record sequence, and keeps the
index and records in positional correspondence. Hard format violations
raise; soft inconsistencies are collected as warnings.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple
from ..constants import PADDING_SIZE, DEFAULT_VERSION
from ..exceptions import (IndexMismatch, NotSorted, Truncated,
                          ValidationWarning, WarningKind)
from .header import Header
from .index import Index, sort_entries
from .record import (OffsetPolicy, DEFAULT_POLICY, Record, decode_record,
                     encode_record)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Database:
    """Parsed or built TDB database; immutable once constructed"""
    header: Header
    index: Index
    records: Tuple[Record, ...]
    policy: OffsetPolicy = DEFAULT_POLICY
    warnings: Tuple[ValidationWarning, ...] = field(default=(), compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'records', tuple(self.records))
        object.__setattr__(self, 'warnings', tuple(self.warnings))
        if self.header.record_count != len(self.records):
            raise ValueError(
                f"Header declares {self.header.record_count} records, "
                f"got {len(self.records)}"
            )
        _check_correspondence(self.index.ids, self.records)

    # --------------------------------------------------------------------
    # Construction
    # --------------------------------------------------------------------

    @classmethod
    def parse(cls, data: bytes, policy: OffsetPolicy = DEFAULT_POLICY) -> 'Database':
        """
        Parse a complete TDB byte buffer

        Args:
            data: File contents
            policy: Where pilot_name is read from in each record

        Returns:
            Database whose `warnings` lists any soft inconsistencies

        Raises:
            BadMagic: Not a TDB file
            Truncated: Buffer shorter than the declared record count implies
            IndexMismatch: Index entry differs from the record flarm_id
            InvalidEncoding: A string field is not valid UTF-8
            InvalidFlarmId: A record flarm_id exceeds 24 bits
        """
        with memoryview(data) as view, view.cast('B') as buffer:
            return cls._parse_buffer(buffer, policy)

    @classmethod
    def _parse_buffer(cls, data: memoryview, policy: OffsetPolicy) -> 'Database':
        # Only bytes copies may leave this frame, so the caller's buffer is
        # free again once parse returns or raises
        header = Header.decode(data)
        if len(data) < header.total_size:
            raise Truncated(header.total_size, len(data))

        warnings: List[ValidationWarning] = []
        raw_ids = Index.decode_ids(data, header.record_count, header.index_offset)

        padding = bytes(data[header.padding_offset:header.records_offset])
        if any(padding):
            warnings.append(ValidationWarning(
                WarningKind.NONZERO_PADDING,
                f"Padding after index is not zero: {padding.hex(' ')}"))

        records = [
            decode_record(bytes(data[header.record_offset(i):header.record_offset(i + 1)]), policy, i)
            for i in range(header.record_count)
        ]
        _check_correspondence(raw_ids, records)

        trailing = len(data) - header.total_size
        if trailing:
            warnings.append(ValidationWarning(
                WarningKind.TRAILING_BYTES,
                f"{trailing} bytes after the last record ignored"))

        # Positions in warnings always refer to the file order
        reserved_warnings = _reserved_warnings(records)
        try:
            index = Index.from_sorted(raw_ids)
        except NotSorted:
            warnings.extend(_ordering_warnings(raw_ids))
            index, records, duplicate_warnings = _sort_records(raw_ids, records)
            warnings.extend(duplicate_warnings)
        warnings.extend(reserved_warnings)

        db = cls(Header(header.version, len(records)), index, tuple(records), policy,
                 tuple(warnings))

        for warning in db.warnings:
            logger.warning("%s", warning)
        logger.debug("Parsed TDB version %d with %d records (%d warnings)",
                     header.version, len(records), len(db.warnings))
        return db

    @classmethod
    def build(cls, records: Iterable[Record], version: int = DEFAULT_VERSION,
              policy: OffsetPolicy = DEFAULT_POLICY) -> 'Database':
        """
        Build a database from records in any order

        Records are sorted by flarm_id; for a repeated id the first record
        wins and each dropped one is reported as a DUPLICATE_ID warning.
        """
        records = list(records)
        index, records, warnings = _sort_records([record.flarm_id for record in records], records)
        for warning in warnings:
            logger.warning("%s", warning)

        return cls(
            Header(version, len(records)),
            index,
            tuple(records),
            policy,
            tuple(warnings),
        )

    # --------------------------------------------------------------------
    # Validation and Lookup
    # --------------------------------------------------------------------

    def validate(self) -> List[ValidationWarning]:
        """
        Re-check the database invariants

        Returns:
            Warnings for records whose reserved bytes are nonzero

        Raises:
            IndexMismatch: If index and records have drifted apart
        """
        _check_correspondence(self.index.ids, self.records)
        return _reserved_warnings(self.records)

    def lookup_by_flarm_id(self, flarm_id: int) -> Optional[Record]:
        """
        Find a record by Flarm ID in O(log N) via the sorted index

        Returns:
            The matching Record, or None if the id is not present
        """
        position = self.index.lookup(flarm_id)
        if position is None:
            return None
        return self.records[position]

    # --------------------------------------------------------------------
    # Serialization
    # --------------------------------------------------------------------

    def serialize(self, policy: Optional[OffsetPolicy] = None) -> bytes:
        """
        Encode the database to TDB bytes

        The record count and index are re-derived from the records, padding
        and reserved bytes are written as zero. Output is byte-identical to
        the parsed input for any file that was already valid.
        """
        policy = self.policy if policy is None else policy
        # Records already follow index order, so the rebuilt index lines up with them
        index, _ = Index.build(record.flarm_id for record in self.records)

        parts = [Header(self.header.version, len(self.records)).encode(),
                 index.encode(),
                 bytes(PADDING_SIZE)]
        parts.extend(encode_record(record, policy) for record in self.records)
        data = b''.join(parts)

        logger.debug("Serialized %d records (%d bytes)", len(self.records), len(data))
        return data

    # --------------------------------------------------------------------
    # Utility Methods
    # --------------------------------------------------------------------

    @property
    def version(self) -> int:
        return self.header.version

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)

    def __contains__(self, flarm_id: object) -> bool:
        return flarm_id in self.index

    def __repr__(self) -> str:
        return (f"Database(version={self.header.version}, records={len(self.records)}, "
                f"policy={self.policy.name}, warnings={len(self.warnings)})")


def _check_correspondence(ids: Sequence[int], records: Sequence[Record]) -> None:
    """Raise IndexMismatch at the first position where ids and records differ"""
    for position in range(max(len(ids), len(records))):
        index_id = ids[position] if position < len(ids) else None
        record_id = records[position].flarm_id if position < len(records) else None
        if index_id != record_id:
            raise IndexMismatch(position, index_id, record_id)


def _ordering_warnings(ids: Sequence[int]) -> List[ValidationWarning]:
    return [
        ValidationWarning(
            WarningKind.NOT_SORTED,
            f"Index entry 0x{ids[position]:06X} follows 0x{ids[position - 1]:06X}",
            position)
        for position in range(1, len(ids))
        if ids[position] < ids[position - 1]
    ]


def _reserved_warnings(records: Sequence[Record]) -> List[ValidationWarning]:
    return [
        ValidationWarning(
            WarningKind.NONZERO_RESERVED,
            f"Record {record.flarm_id_hex} has nonzero reserved bytes: "
            f"{record.reserved.hex(' ')}",
            position)
        for position, record in enumerate(records)
        if record.has_reserved_data
    ]


def _sort_records(ids: Sequence[int], records: Sequence[Record]
                  ) -> Tuple[Index, List[Record], List[ValidationWarning]]:
    """
    Sort records by id, first-seen wins for a repeated id

    Returns:
        (index, records, warnings) with one DUPLICATE_ID warning per dropped
        record, positioned at its place in the input order
    """
    entries, dropped = sort_entries(
        (flarm_id, (position, record))
        for position, (flarm_id, record) in enumerate(zip(ids, records))
    )
    warnings = [
        ValidationWarning(WarningKind.DUPLICATE_ID,
                          f"Duplicate flarm_id 0x{flarm_id:06X} dropped, first entry kept",
                          position)
        for flarm_id, (position, _) in dropped
    ]
    index = Index(flarm_id for flarm_id, _ in entries)
    return index, [record for _, (_, record) in entries], warnings
