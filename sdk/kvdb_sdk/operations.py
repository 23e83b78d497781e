"""
Operations against the KvDB service.

Each operation is an immutable record of request parameters plus two pure
functions:

- render(): the HttpRequest to send
- interpret(response): the typed result for an HttpResponse

Variants:
- KvStoreOperation: store a value (optionally conditional) -> KvMetadata | None
- KvFetchOperation: fetch a value by key (optionally a pinned ref) -> KvObject | None
- KvDeleteOperation: delete a key (optionally conditional / purge) -> bool
- CollectionDeleteOperation: delete a whole collection -> bool
- KvListOperation: list a collection page by page -> KvList
- EventStoreOperation: append an event to a key -> bool
- EventFetchOperation: fetch events of one type for a key -> tuple[Event, ...]
- RelationStoreOperation: add a labelled edge between two keys -> bool
- RelationFetchOperation: walk relations from a key -> tuple[KvObject, ...]

Example:
    >>> op = KvFetchOperation("users", "alice", User)
    >>> obj = await db.execute(op).result(timeout=3)

Invariants:
    - Invalid arguments raise ValidationError at construction time
    - A failed precondition (412) yields False / None, never an exception
    - "Not found" yields None or an empty tuple, never an exception
    - Any other unmapped status raises ServiceError from interpret()
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, Sequence, TypeVar, Union

from .conditions import (
    UNCONDITIONAL,
    ConditionalPolicy,
    MustMatch,
    MustNotExist,
    Unconditional,
)
from .errors import DeserializationError, ValidationError
from .results import Event, KvList, KvMetadata, KvObject, RelationEdge
from .serialization import dump, parse, parse_value
from .wire import (
    JSON_CONTENT_TYPE,
    HttpRequest,
    HttpResponse,
    build_path,
    require,
    unexpected_status,
)

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_API_VERSION = "v0"
MAX_LIST_LIMIT = 100


class Operation(ABC, Generic[R]):
    """An operation that renders to a request and interprets its response."""

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def render(self, api_version: str = DEFAULT_API_VERSION) -> HttpRequest:
        """Build the HTTP request for this operation."""

    @abstractmethod
    def interpret(self, response: HttpResponse) -> R:
        """Map a response into this operation's result type."""


def _check_condition(condition: Any) -> None:
    if not isinstance(condition, (Unconditional, MustMatch, MustNotExist)):
        raise ValidationError(
            f"'condition' must be a conditional policy, got {type(condition).__name__}",
            field_name="condition",
        )


def _malformed(operation: str, problem: str, raw: Optional[str]) -> DeserializationError:
    cause = TypeError(problem)
    error = DeserializationError(
        f"{operation} received a malformed body: {problem}",
        type_name="json",
        raw_value=raw,
        cause=cause,
    )
    error.__cause__ = cause
    return error


def _json_body(operation: str, response: HttpResponse) -> dict[str, Any]:
    """Decode a JSON object body.

    An empty body decodes to ``{}``; malformed JSON or a non-object
    document is a deserialization failure.
    """
    try:
        document = response.json()
    except (ValueError, UnicodeDecodeError) as e:
        raise DeserializationError(
            f"{operation} received a malformed JSON body: {e}",
            type_name="json",
            raw_value=None,
            cause=e,
        ) from e

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise _malformed(operation, f"expected a JSON object, got {type(document).__name__}", response.text)
    return document


def _result_items(operation: str, document: dict[str, Any]) -> list[dict[str, Any]]:
    """The ``results`` array of a list body; every item must be an object."""
    results = document.get("results") or []
    if not isinstance(results, list):
        raise _malformed(operation, f"'results' must be an array, got {type(results).__name__}", json.dumps(results))
    for item in results:
        if not isinstance(item, dict):
            raise _malformed(operation, f"result items must be objects, got {type(item).__name__}", json.dumps(item))
    return results


def _results_to_objects(
    operation: str,
    results: Sequence[dict[str, Any]],
    value_type: Any,
) -> tuple[KvObject[Any], ...]:
    """Convert ``[{"path": {...}, "value": ...}, ...]`` into KvObjects."""
    objects = []
    for item in results:
        path = item.get("path") or {}
        if not isinstance(path, dict):
            raise _malformed(operation, f"'path' must be an object, got {type(path).__name__}", json.dumps(path))
        value, raw = parse_value(item.get("value"), value_type)
        objects.append(
            KvObject(
                collection=path.get("collection"),
                key=path.get("key"),
                ref=path.get("ref"),
                value=value,
                raw_value=raw,
            )
        )
    return tuple(objects)


@dataclass(frozen=True)
class KvStoreOperation(Operation[Optional[KvMetadata]]):
    """Store a value at a key.

    Returns KvMetadata carrying the new ref, or None if the conditional
    policy did not hold (HTTP 412).

    Attributes:
        collection: Collection name
        key: Key to store to
        value: JSON text, pydantic model, dataclass or JSON-compatible object
        condition: Unconditional, MustMatch(ref) or MustNotExist()
    """

    collection: str
    key: str
    value: Any
    condition: ConditionalPolicy = UNCONDITIONAL

    def __post_init__(self) -> None:
        require(self.collection, "collection")
        require(self.key, "key")
        if self.value is None:
            raise ValidationError("'value' cannot be null", field_name="value")
        _check_condition(self.condition)

    def render(self, api_version: str = DEFAULT_API_VERSION) -> HttpRequest:
        headers = {"Content-Type": JSON_CONTENT_TYPE, **self.condition.headers()}
        return HttpRequest(
            method="PUT",
            path=build_path(api_version, self.collection, self.key),
            headers=headers,
            body=dump(self.value),
        )

    def interpret(self, response: HttpResponse) -> Optional[KvMetadata]:
        if response.status in (200, 201, 204):
            return KvMetadata(self.collection, self.key, response.ref())
        if response.status == 412:
            return None
        raise unexpected_status(self.name, response)


@dataclass(frozen=True)
class KvFetchOperation(Operation[Optional[KvObject[T]]]):
    """Fetch the value stored at a key.

    Returns None if nothing is stored at the key. A key that was never
    stored and one that was deleted both come back as None.

    Attributes:
        collection: Collection name
        key: Key to fetch
        value_type: Type to decode the value into (``str`` for raw JSON)
        ref: Optional ref to fetch a specific past version
    """

    collection: str
    key: str
    value_type: Any = str
    ref: Optional[str] = None

    def __post_init__(self) -> None:
        require(self.collection, "collection")
        require(self.key, "key")
        if self.value_type is None:
            raise ValidationError("'value_type' cannot be null", field_name="value_type")
        if self.ref is not None:
            require(self.ref, "ref")

    @classmethod
    def from_metadata(cls, metadata: KvMetadata, value_type: Any = str) -> KvFetchOperation[Any]:
        """Fetch exactly the version described by ``metadata``."""
        return cls(metadata.collection, metadata.key, value_type, ref=metadata.ref)

    def render(self, api_version: str = DEFAULT_API_VERSION) -> HttpRequest:
        if self.ref is None:
            path = build_path(api_version, self.collection, self.key)
        else:
            path = build_path(api_version, self.collection, self.key, "refs", self.ref)
        return HttpRequest(method="GET", path=path, headers={"Accept": JSON_CONTENT_TYPE})

    def interpret(self, response: HttpResponse) -> Optional[KvObject[T]]:
        if response.status == 200:
            value, raw = parse(response.body, self.value_type)
            return KvObject(
                collection=self.collection,
                key=self.key,
                ref=response.ref() or self.ref,
                value=value,
                raw_value=raw,
            )
        if response.status == 404:
            return None
        raise unexpected_status(self.name, response)


@dataclass(frozen=True)
class KvDeleteOperation(Operation[bool]):
    """Delete the value stored at a key.

    Returns True if the value was deleted, False if the MustMatch ref did
    not match (HTTP 412) or there was nothing to delete (HTTP 404).

    Attributes:
        collection: Collection name
        key: Key to delete
        condition: Unconditional or MustMatch(ref)
        purge: Also remove the key's history
    """

    collection: str
    key: str
    condition: ConditionalPolicy = UNCONDITIONAL
    purge: bool = False

    def __post_init__(self) -> None:
        require(self.collection, "collection")
        require(self.key, "key")
        _check_condition(self.condition)
        if isinstance(self.condition, MustNotExist):
            raise ValidationError(
                "MustNotExist is not a valid condition for a delete",
                field_name="condition",
            )

    @classmethod
    def from_metadata(cls, metadata: KvMetadata, purge: bool = False) -> KvDeleteOperation:
        """Delete the key only if it is still at ``metadata.ref``."""
        condition: ConditionalPolicy = UNCONDITIONAL
        if metadata.ref is not None:
            condition = MustMatch(metadata.ref)
        return cls(metadata.collection, metadata.key, condition, purge=purge)

    def render(self, api_version: str = DEFAULT_API_VERSION) -> HttpRequest:
        query = {"purge": "true"} if self.purge else None
        return HttpRequest(
            method="DELETE",
            path=build_path(api_version, self.collection, self.key, query=query),
            headers=self.condition.headers(),
        )

    def interpret(self, response: HttpResponse) -> bool:
        if response.status in (200, 204):
            return True
        if response.status in (404, 412):
            return False
        raise unexpected_status(self.name, response)


@dataclass(frozen=True)
class CollectionDeleteOperation(Operation[bool]):
    """Delete an entire collection and everything in it."""

    collection: str

    def __post_init__(self) -> None:
        require(self.collection, "collection")

    def render(self, api_version: str = DEFAULT_API_VERSION) -> HttpRequest:
        return HttpRequest(
            method="DELETE",
            path=build_path(api_version, self.collection, query={"force": "true"}),
        )

    def interpret(self, response: HttpResponse) -> bool:
        if response.status in (200, 204):
            return True
        if response.status == 404:
            return False
        raise unexpected_status(self.name, response)


@dataclass(frozen=True)
class KvListOperation(Operation[KvList[T]]):
    """List the objects in a collection, one page at a time.

    The first page is addressed by collection, limit and an optional
    start/after key. Later pages are addressed by the service's opaque
    continuation link, sent back verbatim.

    Attributes:
        collection: Collection name
        value_type: Type to decode each value into
        limit: Page size (1-100)
        start_key: First key to include
        after_key: Key to start after (exclusive)
        next_link: Continuation link from a previous page
    """

    collection: str
    value_type: Any = str
    limit: int = 10
    start_key: Optional[str] = None
    after_key: Optional[str] = None
    next_link: Optional[str] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        require(self.collection, "collection")
        if self.value_type is None:
            raise ValidationError("'value_type' cannot be null", field_name="value_type")
        if not 1 <= self.limit <= MAX_LIST_LIMIT:
            raise ValidationError(
                f"'limit' must be between 1 and {MAX_LIST_LIMIT}, got {self.limit}",
                field_name="limit",
            )
        if self.start_key is not None and self.after_key is not None:
            raise ValidationError(
                "'start_key' and 'after_key' are mutually exclusive",
                field_name="start_key",
            )
        if self.next_link is not None:
            require(self.next_link, "next_link")

    @classmethod
    def continuation(cls, collection: str, next_link: str, value_type: Any = str) -> KvListOperation[Any]:
        """Operation fetching the page behind a continuation link."""
        return cls(collection, value_type, next_link=next_link)

    def render(self, api_version: str = DEFAULT_API_VERSION) -> HttpRequest:
        headers = {"Accept": JSON_CONTENT_TYPE}
        if self.next_link is not None:
            return HttpRequest(method="GET", path=self.next_link, headers=headers)

        query = {
            "limit": self.limit,
            "startKey": self.start_key,
            "afterKey": self.after_key,
        }
        return HttpRequest(
            method="GET",
            path=build_path(api_version, self.collection, query=query),
            headers=headers,
        )

    def interpret(self, response: HttpResponse) -> KvList[T]:
        if response.status == 404:
            return KvList(self.collection, value_type=self.value_type)
        if response.status != 200:
            raise unexpected_status(self.name, response)

        document = _json_body(self.name, response)
        results = _results_to_objects(self.name, _result_items(self.name, document), self.value_type)
        return KvList(
            collection=self.collection,
            results=results,
            count=document.get("count", len(results)),
            next=document.get("next") or None,
            value_type=self.value_type,
        )


@dataclass(frozen=True)
class EventStoreOperation(Operation[bool]):
    """Append an event to a key.

    Attributes:
        collection: Collection name
        key: Key the event belongs to
        type: Event type
        value: Event payload
        timestamp: Optional explicit timestamp (Unix ms)
    """

    collection: str
    key: str
    type: str
    value: Any
    timestamp: Optional[int] = None

    def __post_init__(self) -> None:
        require(self.collection, "collection")
        require(self.key, "key")
        require(self.type, "type")
        if self.value is None:
            raise ValidationError("'value' cannot be null", field_name="value")
        if self.timestamp is not None and self.timestamp < 0:
            raise ValidationError("'timestamp' must be non-negative", field_name="timestamp")

    def render(self, api_version: str = DEFAULT_API_VERSION) -> HttpRequest:
        query = {"timestamp": self.timestamp}
        return HttpRequest(
            method="PUT",
            path=build_path(api_version, self.collection, self.key, "events", self.type, query=query),
            headers={"Content-Type": JSON_CONTENT_TYPE},
            body=dump(self.value),
        )

    def interpret(self, response: HttpResponse) -> bool:
        if response.status in (200, 201, 204):
            return True
        if response.status == 404:
            return False
        raise unexpected_status(self.name, response)


@dataclass(frozen=True)
class EventFetchOperation(Operation[tuple]):
    """Fetch events of one type for a key, in service order.

    Returns an empty tuple when there are no events, whether or not the
    key itself exists.

    Attributes:
        collection: Collection name
        key: Key the events belong to
        type: Event type
        value_type: Type to decode each payload into
        start: Optional inclusive lower timestamp bound (Unix ms)
        end: Optional exclusive upper timestamp bound (Unix ms)
    """

    collection: str
    key: str
    type: str
    value_type: Any = str
    start: Optional[int] = None
    end: Optional[int] = None

    def __post_init__(self) -> None:
        require(self.collection, "collection")
        require(self.key, "key")
        require(self.type, "type")
        if self.value_type is None:
            raise ValidationError("'value_type' cannot be null", field_name="value_type")
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValidationError("'start' must not be after 'end'", field_name="start")

    def render(self, api_version: str = DEFAULT_API_VERSION) -> HttpRequest:
        query = {"start": self.start, "end": self.end}
        return HttpRequest(
            method="GET",
            path=build_path(api_version, self.collection, self.key, "events", self.type, query=query),
            headers={"Accept": JSON_CONTENT_TYPE},
        )

    def interpret(self, response: HttpResponse) -> tuple[Event[T], ...]:
        if response.status == 404:
            return ()
        if response.status != 200:
            raise unexpected_status(self.name, response)

        document = _json_body(self.name, response)
        events = []
        for item in _result_items(self.name, document):
            value, raw = parse_value(item.get("value"), self.value_type)
            events.append(
                Event(
                    collection=self.collection,
                    key=self.key,
                    type=self.type,
                    timestamp=item.get("timestamp"),
                    value=value,
                    raw_value=raw,
                )
            )
        return tuple(events)


@dataclass(frozen=True)
class RelationStoreOperation(Operation[bool]):
    """Create a labelled relation from one key to another.

    Attributes:
        collection: Source collection
        key: Source key
        kind: Relation label
        to_collection: Destination collection
        to_key: Destination key
    """

    collection: str
    key: str
    kind: str
    to_collection: str
    to_key: str

    def __post_init__(self) -> None:
        require(self.collection, "collection")
        require(self.key, "key")
        require(self.kind, "kind")
        require(self.to_collection, "to_collection")
        require(self.to_key, "to_key")

    @classmethod
    def between(cls, source: KvMetadata, kind: str, destination: KvMetadata) -> RelationStoreOperation:
        return cls(source.collection, source.key, kind, destination.collection, destination.key)

    @property
    def edge(self) -> RelationEdge:
        return RelationEdge(self.collection, self.key, self.kind, self.to_collection, self.to_key)

    def render(self, api_version: str = DEFAULT_API_VERSION) -> HttpRequest:
        return HttpRequest(
            method="PUT",
            path=build_path(
                api_version,
                self.collection,
                self.key,
                "relation",
                self.kind,
                self.to_collection,
                self.to_key,
            ),
        )

    def interpret(self, response: HttpResponse) -> bool:
        if response.status in (200, 201, 204):
            return True
        if response.status == 404:
            return False
        raise unexpected_status(self.name, response)


@dataclass(frozen=True)
class RelationFetchOperation(Operation[tuple]):
    """Fetch the objects reached by following relation kinds from a key.

    ``kinds`` may name several hops, e.g. ("friends", "family").

    Attributes:
        collection: Source collection
        key: Source key
        kinds: Relation label, or sequence of labels to walk
        value_type: Type to decode each related value into
    """

    collection: str
    key: str
    kinds: Union[str, Sequence[str]]
    value_type: Any = str

    def __post_init__(self) -> None:
        require(self.collection, "collection")
        require(self.key, "key")
        kinds = (self.kinds,) if isinstance(self.kinds, str) else tuple(self.kinds or ())
        if not kinds:
            raise ValidationError("'kinds' cannot be empty", field_name="kinds")
        for kind in kinds:
            require(kind, "kinds")
        object.__setattr__(self, "kinds", kinds)
        if self.value_type is None:
            raise ValidationError("'value_type' cannot be null", field_name="value_type")

    def render(self, api_version: str = DEFAULT_API_VERSION) -> HttpRequest:
        return HttpRequest(
            method="GET",
            path=build_path(api_version, self.collection, self.key, "relations", *self.kinds),
            headers={"Accept": JSON_CONTENT_TYPE},
        )

    def interpret(self, response: HttpResponse) -> tuple[KvObject[T], ...]:
        if response.status == 404:
            return ()
        if response.status != 200:
            raise unexpected_status(self.name, response)

        document = _json_body(self.name, response)
        return _results_to_objects(self.name, _result_items(self.name, document), self.value_type)
