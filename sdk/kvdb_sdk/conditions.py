"""
Conditional policies for mutating operations.

A policy expresses an optimistic-concurrency precondition on a store or
delete. Exactly one policy is attached to an operation:

- Unconditional: no precondition header
- MustMatch(ref): the stored ref must equal ``ref`` (If-Match)
- MustNotExist: no value may be stored at the key yet (If-None-Match: *)

Invariants:
    - Refs are opaque; they are compared only for exact equality, by the service
    - MustMatch and MustNotExist are mutually exclusive by construction
    - A conditional policy turns HTTP 412 into a negative result, not an error
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .errors import ValidationError


@dataclass(frozen=True)
class Unconditional:
    """No precondition."""

    @property
    def is_conditional(self) -> bool:
        return False

    def headers(self) -> dict[str, str]:
        return {}


@dataclass(frozen=True)
class MustMatch:
    """The currently stored ref must equal ``ref``.

    Attributes:
        ref: Last known version token of the value
    """

    ref: str

    def __post_init__(self) -> None:
        if not self.ref:
            raise ValidationError("'ref' cannot be null or empty", field_name="ref")

    @property
    def is_conditional(self) -> bool:
        return True

    def headers(self) -> dict[str, str]:
        return {"If-Match": f'"{self.ref}"'}


@dataclass(frozen=True)
class MustNotExist:
    """Only succeed if no value is stored at the key."""

    @property
    def is_conditional(self) -> bool:
        return True

    def headers(self) -> dict[str, str]:
        return {"If-None-Match": '"*"'}


ConditionalPolicy = Union[Unconditional, MustMatch, MustNotExist]

UNCONDITIONAL = Unconditional()
