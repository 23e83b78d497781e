"""
Value (de)serialization for the KvDB SDK.

Values travel as JSON text. The caller picks the Python type a value is
decoded into:

- ``str``: the raw JSON text itself (identity)
- a pydantic ``BaseModel`` subclass: validated into that model
- anything pydantic can adapt (``dict``, ``list[int]``, TypedDict, ...)

Invariants:
    - The raw text is always returned alongside the typed value
    - Empty or absent bodies decode to (None, None), never to an error
    - Malformed or mismatched bodies raise DeserializationError wrapping
      the parser's exception; nothing is silently dropped
    - Models that do not configure ``extra`` reject unknown fields
"""

from __future__ import annotations

import dataclasses
import json
from functools import lru_cache
from typing import Any, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .errors import DeserializationError

T = TypeVar("T")


class Document(BaseModel):
    """Base class for stored values; unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


def _is_model(value_type: Any) -> bool:
    return isinstance(value_type, type) and issubclass(value_type, BaseModel)


def _type_name(value_type: Any) -> str:
    return getattr(value_type, "__name__", repr(value_type))


@lru_cache(maxsize=None)
def _strict_model(model: Type[BaseModel]) -> Type[BaseModel]:
    """Subclass of ``model`` that forbids extra fields."""
    config = ConfigDict(**{**model.model_config, "extra": "forbid"})
    return type(
        model.__name__,
        (model,),
        {"model_config": config, "__module__": model.__module__},
    )


@lru_cache(maxsize=None)
def _adapter(value_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(value_type)


def parse(raw: bytes | str | None, value_type: Type[T]) -> Tuple[Optional[T], Optional[str]]:
    """Decode raw JSON into ``value_type``.

    Args:
        raw: Response body bytes or text
        value_type: Requested Python type

    Returns:
        Tuple of (typed value, raw text); (None, None) for an empty body

    Raises:
        DeserializationError: If the text cannot represent ``value_type``
    """
    if raw is None:
        return None, None

    try:
        text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
    except UnicodeDecodeError as e:
        raise DeserializationError(
            f"Response body is not valid UTF-8: {e}",
            type_name=_type_name(value_type),
            cause=e,
        ) from e

    if not text:
        return None, None

    if value_type is str:
        return text, text  # type: ignore[return-value]

    try:
        if _is_model(value_type):
            if "extra" not in value_type.model_config:  # type: ignore[attr-defined]
                _strict_model(value_type).model_validate_json(text)  # type: ignore[arg-type]
            value = value_type.model_validate_json(text)  # type: ignore[attr-defined]
        else:
            value = _adapter(value_type).validate_json(text)
    except PydanticValidationError as e:
        raise DeserializationError(
            f"Cannot decode value as {_type_name(value_type)}: {e}",
            type_name=_type_name(value_type),
            raw_value=text,
            cause=e,
        ) from e

    return value, text


def parse_value(data: Any, value_type: Type[T]) -> Tuple[Optional[T], Optional[str]]:
    """Decode an already-parsed JSON element (e.g. one item of a list body).

    The element is re-serialized compactly so the raw text is available
    on the result envelope.
    """
    if data is None:
        return None, None
    return parse(json.dumps(data, separators=(",", ":"), ensure_ascii=False), value_type)


def dump(value: Any) -> str:
    """Encode a value as a JSON request body.

    Strings are sent as-is and must already be JSON.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return json.dumps(dataclasses.asdict(value))
    return json.dumps(value)
