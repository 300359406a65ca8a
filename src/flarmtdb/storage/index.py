"""
Index Module - Sorted Flarm ID index
The index is a positional mirror of the record section: entry i is the
flarm_id of record i, and entries are strictly ascending so lookups can
binary search.
"""

import struct
from typing import Iterable, Iterator, List, NamedTuple, Optional, Sequence, Tuple, TypeVar
from ..constants import INDEX_ENTRY_SIZE, INDEX_ENTRY_FORMAT, MAX_U32
from ..exceptions import NotSorted, Truncated

T = TypeVar('T')


def binary_search(ids: Sequence[int], target: int) -> Optional[int]:
    """
    Find target in an ascending sequence

    Midpoint narrowing over [low, high); at most floor(log2(N)) + 1 reads.

    Returns:
        Position of target, or None if absent
    """
    low, high = 0, len(ids)
    while low < high:
        mid = (low + high) // 2
        value = ids[mid]
        if value == target:
            return mid
        if value < target:
            low = mid + 1
        else:
            high = mid
    return None


def check_sorted(ids: Sequence[int]) -> None:
    """Raise NotSorted at the first position that is not strictly ascending"""
    for position in range(1, len(ids)):
        if ids[position] <= ids[position - 1]:
            raise NotSorted(position, ids[position - 1], ids[position])


def sort_entries(entries: Iterable[Tuple[int, T]]) -> Tuple[List[Tuple[int, T]], List[Tuple[int, T]]]:
    """
    Sort (id, item) pairs by id, keeping the first-seen pair for each id

    Items travel with their ids so a parallel record sequence can never
    drift out of step with the index built from it.

    Returns:
        (kept, dropped) where kept is strictly ascending by id and dropped
        holds the later duplicates in their original order
    """
    # sorted() is stable, so the first-seen pair comes first within an id
    ordered = sorted(entries, key=lambda entry: entry[0])
    kept: List[Tuple[int, T]] = []
    dropped: List[Tuple[int, T]] = []
    for entry in ordered:
        if kept and kept[-1][0] == entry[0]:
            dropped.append(entry)
        else:
            kept.append(entry)
    return kept, dropped


class BuildResult(NamedTuple):
    index: 'Index'
    dropped: int


class Index:
    """Immutable, strictly ascending sequence of u32 identifiers"""

    __slots__ = ('_ids',)

    def __init__(self, ids: Sequence[int] = ()):
        ids = tuple(ids)
        for value in ids:
            if not 0 <= value <= MAX_U32:
                raise ValueError(f"Index entry out of u32 range: {value}")
        check_sorted(ids)
        self._ids = ids

    @classmethod
    def from_sorted(cls, ids: Sequence[int]) -> 'Index':
        """
        Wrap an already ascending id sequence

        Raises:
            NotSorted: If ids are not strictly ascending
        """
        return cls(ids)

    @classmethod
    def build(cls, ids: Iterable[int]) -> BuildResult:
        """Sort and de-duplicate ids; returns the index and the number dropped"""
        kept, dropped = sort_entries((value, None) for value in ids)
        return BuildResult(cls(value for value, _ in kept), len(dropped))

    def lookup(self, target: int) -> Optional[int]:
        """Position of target, usable directly on the parallel record sequence"""
        return binary_search(self._ids, target)

    # --------------------------------------------------------------------
    # Wire Format
    # --------------------------------------------------------------------

    @staticmethod
    def decode_ids(data: bytes, count: int, offset: int = 0) -> List[int]:
        """Read count raw little-endian u32 entries without validating order"""
        end = offset + count * INDEX_ENTRY_SIZE
        if len(data) < end:
            raise Truncated(end, len(data))
        return [value for (value,) in struct.iter_unpack(INDEX_ENTRY_FORMAT, bytes(data[offset:end]))]

    def encode(self) -> bytes:
        return struct.pack(f'<{len(self._ids)}I', *self._ids)

    # --------------------------------------------------------------------
    # Sequence Protocol
    # --------------------------------------------------------------------

    @property
    def ids(self) -> Tuple[int, ...]:
        return self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[int]:
        return iter(self._ids)

    def __getitem__(self, position: int) -> int:
        return self._ids[position]

    def __contains__(self, target: object) -> bool:
        return isinstance(target, int) and self.lookup(target) is not None

    def __eq__(self, other):
        if not isinstance(other, Index):
            return NotImplemented
        return self._ids == other._ids

    def __hash__(self):
        return hash(self._ids)

    def __repr__(self) -> str:
        return f"Index(entries={len(self._ids)})"
