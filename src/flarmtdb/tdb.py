"""
TDB - Decoder/Encoder entry points for FlarmNet databases in TDB format
Byte buffer in, Database out, and back. No file or network access.
"""

from typing import Iterable, Optional, Union
from .storage.database import Database
from .storage.record import OffsetPolicy, DEFAULT_POLICY, Record
from .types.units import parse_flarm_id
from .constants import DEFAULT_VERSION


def decode_file(data: bytes, policy: OffsetPolicy = DEFAULT_POLICY) -> Database:
    """Decode TDB bytes; see Database.parse for the errors raised"""
    return Database.parse(data, policy)


def encode_file(database: Union[Database, Iterable[Record]],
                version: int = DEFAULT_VERSION,
                policy: Optional[OffsetPolicy] = None) -> bytes:
    """
    Encode a Database, or a plain iterable of records, to TDB bytes

    Args:
        database: Database to encode, or records to build one from
        version: Version written when building from records
        policy: Offset policy override; defaults to the database's own
    """
    if not isinstance(database, Database):
        database = Database.build(database, version, policy or DEFAULT_POLICY)
    return database.serialize(policy)


def lookup(database: Database, flarm_id: Union[int, str]) -> Optional[Record]:
    """Look up a record by numeric Flarm ID or its hex text form"""
    if isinstance(flarm_id, str):
        flarm_id = parse_flarm_id(flarm_id)
    return database.lookup_by_flarm_id(flarm_id)
