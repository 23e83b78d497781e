"""
Result envelopes returned by KvDB operations.

- KvMetadata: collection, key and ref of a stored value
- KvObject: KvMetadata plus the typed value and its raw JSON text
- Event: a timestamped, typed sub-record of a key
- RelationEdge: a directed, labelled edge between two keys
- KvList: one page of a collection listing plus its continuation link

Invariants:
    - Envelopes are immutable; they are built once by response interpretation
    - If ``value`` is not None then ``raw_value`` is the exact text it was parsed from
    - ``KvList.count`` is the size of the current page, never a running total
    - ``KvList.next`` is None exactly when no further pages exist
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, Iterator, Optional, TypeVar

if TYPE_CHECKING:
    from .operations import KvListOperation

T = TypeVar("T")


@dataclass(frozen=True)
class KvMetadata:
    """Location and version of a stored value.

    Attributes:
        collection: Collection name
        key: Key within the collection
        ref: Version token of the value
    """

    collection: str
    key: str
    ref: Optional[str] = None


@dataclass(frozen=True)
class KvObject(KvMetadata, Generic[T]):
    """A stored value with its metadata.

    Attributes:
        value: Value decoded into the requested type
        raw_value: JSON text the value was decoded from
    """

    value: Optional[T] = None
    raw_value: Optional[str] = None


@dataclass(frozen=True)
class Event(Generic[T]):
    """An event attached to a key.

    Attributes:
        collection: Collection name
        key: Key the event belongs to
        type: Event type
        timestamp: Service-assigned ordinal (Unix ms)
        value: Event payload decoded into the requested type
        raw_value: JSON text of the payload
    """

    collection: str
    key: str
    type: str
    timestamp: Optional[int] = None
    value: Optional[T] = None
    raw_value: Optional[str] = None


@dataclass(frozen=True)
class RelationEdge:
    """Directed, labelled edge ``(collection, key) -kind-> (to_collection, to_key)``."""

    collection: str
    key: str
    kind: str
    to_collection: str
    to_key: str


@dataclass(frozen=True)
class KvList(Generic[T]):
    """One page of a collection listing.

    Iterating a KvList yields only this page and never touches the
    network. Use ``next_operation()`` or ``DbClient.iter_list()`` to
    continue past it.

    Attributes:
        collection: Collection that was listed
        results: Objects on this page, in service order
        count: Number of objects on this page
        next: Opaque continuation link, None on the last page
    """

    collection: str
    results: tuple[KvObject[T], ...] = ()
    count: int = 0
    next: Optional[str] = None
    value_type: Any = field(default=str, repr=False, compare=False)

    def __iter__(self) -> Iterator[KvObject[T]]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    @property
    def has_next(self) -> bool:
        return self.next is not None

    def next_operation(self) -> Optional[KvListOperation[T]]:
        """Operation fetching the page after this one, or None on the last page."""
        if self.next is None:
            return None

        from .operations import KvListOperation

        return KvListOperation.continuation(self.collection, self.next, self.value_type)
