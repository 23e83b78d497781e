"""
KvDB Python SDK - Client library for the KvDB key/value, event and graph service.

This SDK turns declarative operations into HTTP exchanges and resolves
typed results:
- Operations (KvStoreOperation, KvFetchOperation, KvListOperation, ...)
- Conditional policies for optimistic concurrency (MustMatch, MustNotExist)
- DbClient for submitting operations asynchronously
- BlockingClient for synchronous use

Example:
    >>> from kvdb_sdk import DbClient, Document, KvFetchOperation, KvStoreOperation
    >>>
    >>> class User(Document):
    ...     name: str
    >>>
    >>> async with DbClient() as db:
    ...     meta = await db.execute(KvStoreOperation("users", "alice", User(name="Alice"))).result(3)
    ...     obj = await db.execute(KvFetchOperation("users", "alice", User)).result(3)
    ...     assert obj.ref == meta.ref

Invariants:
    - Invalid operation arguments fail at construction, before any I/O
    - Not-found and failed preconditions are results, not errors
    - Refs and continuation links are opaque and round-tripped verbatim

Version: 1.0.0
"""

__version__ = "1.0.0"

from .blocking import BlockingClient
from .client import DbClient
from .conditions import ConditionalPolicy, MustMatch, MustNotExist, Unconditional
from .config import ClientSettings
from .errors import (
    DeserializationError,
    ErrorKind,
    KvDbError,
    OperationTimeoutError,
    ServiceError,
    TransportError,
    ValidationError,
)
from .future import OperationFuture
from .operations import (
    CollectionDeleteOperation,
    EventFetchOperation,
    EventStoreOperation,
    KvDeleteOperation,
    KvFetchOperation,
    KvListOperation,
    KvStoreOperation,
    Operation,
    RelationFetchOperation,
    RelationStoreOperation,
)
from .results import Event, KvList, KvMetadata, KvObject, RelationEdge
from .serialization import Document

__all__ = [
    # Version
    "__version__",
    # Clients
    "DbClient",
    "BlockingClient",
    "OperationFuture",
    "ClientSettings",
    # Operations
    "Operation",
    "KvStoreOperation",
    "KvFetchOperation",
    "KvDeleteOperation",
    "CollectionDeleteOperation",
    "KvListOperation",
    "EventStoreOperation",
    "EventFetchOperation",
    "RelationStoreOperation",
    "RelationFetchOperation",
    # Conditions
    "ConditionalPolicy",
    "Unconditional",
    "MustMatch",
    "MustNotExist",
    # Results
    "KvMetadata",
    "KvObject",
    "KvList",
    "Event",
    "RelationEdge",
    "Document",
    # Errors
    "ErrorKind",
    "KvDbError",
    "ValidationError",
    "TransportError",
    "OperationTimeoutError",
    "DeserializationError",
    "ServiceError",
]
