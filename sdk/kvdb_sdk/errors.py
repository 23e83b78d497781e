"""
Error types for the KvDB SDK.

This module defines all exception types raised by the SDK:
- KvDbError: Base exception
- ValidationError: Bad operation arguments (raised before any network call)
- TransportError: Connection or protocol failure talking to the service
- OperationTimeoutError: Local wait on an operation exceeded its timeout
- DeserializationError: Response body could not be decoded into the requested type
- ServiceError: Status code the operation does not know how to interpret

A failed precondition (412) and a missing key (404) are NOT errors; operations
return False / None for those.

Invariants:
    - All errors inherit from KvDbError
    - Every error carries an ErrorKind for programmatic handling
    - Wrapped errors keep the original exception as ``cause`` and ``__cause__``
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(Enum):
    """Failure classes surfaced by an operation."""

    VALIDATION = "validation"
    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    DESERIALIZATION = "deserialization"
    SERVICE = "service"


class KvDbError(Exception):
    """Base exception for all KvDB SDK errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    kind: ErrorKind = ErrorKind.SERVICE

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "KVDB_ERROR"
        self.details = details or {}


class ValidationError(KvDbError):
    """Operation arguments are invalid.

    Raised synchronously when an operation is constructed with:
    - A missing or empty collection, key, type or kind
    - An empty ref
    - A conditional policy the operation does not support
    """

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name},
        )
        self.field_name = field_name


class TransportError(KvDbError):
    """The HTTP exchange with the service failed.

    Raised when:
    - Server is unreachable or refuses the connection
    - The transport times out
    - The response is malformed at the protocol level
    """

    kind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        address: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            message,
            code="TRANSPORT_ERROR",
            details={"address": address},
        )
        self.address = address
        self.cause = cause


class OperationTimeoutError(KvDbError):
    """Waiting for an operation result took longer than the caller allowed."""

    kind = ErrorKind.TIMEOUT

    def __init__(
        self,
        message: str,
        timeout: Optional[float] = None,
    ) -> None:
        super().__init__(
            message,
            code="TIMEOUT",
            details={"timeout": timeout},
        )
        self.timeout = timeout


class DeserializationError(KvDbError):
    """Response body could not be decoded into the requested type.

    The raw body was read successfully; the parser rejected it. The
    parser's own exception is kept in ``cause``.

    Attributes:
        type_name: Name of the requested value type
        raw_value: Text that failed to decode
        cause: Original parser exception
    """

    kind = ErrorKind.DESERIALIZATION

    def __init__(
        self,
        message: str,
        type_name: str,
        raw_value: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            message,
            code="DESERIALIZATION_ERROR",
            details={"type_name": type_name},
        )
        self.type_name = type_name
        self.raw_value = raw_value
        self.cause = cause


class ServiceError(KvDbError):
    """The service answered with a status the operation does not map.

    Attributes:
        status: HTTP status code
        body: Response body text
        service_code: Error code reported by the service, if any
    """

    kind = ErrorKind.SERVICE

    def __init__(
        self,
        message: str,
        status: int,
        body: Optional[str] = None,
        service_code: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="SERVICE_ERROR",
            details={
                "status": status,
                "service_code": service_code,
            },
        )
        self.status = status
        self.body = body
        self.service_code = service_code
