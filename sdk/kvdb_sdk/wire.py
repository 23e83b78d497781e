"""
Wire-level request/response records for the KvDB SDK.

Operations render themselves into an HttpRequest and interpret an
HttpResponse; the transport only ever sees these two types.

Invariants:
    - Every collection, key, event type, relation kind and ref is exactly
      one percent-encoded path segment ("/" never splits a key)
    - Header lookups are case-insensitive
    - Version tokens are returned verbatim (minus ETag quoting)
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping
from urllib.parse import quote, urlencode

from .errors import ServiceError, ValidationError

JSON_CONTENT_TYPE = "application/json"


def encode_segment(segment: str) -> str:
    """Percent-encode a single path segment, including "/"."""
    return quote(segment, safe="")


def build_path(api_version: str, *segments: str, query: Mapping[str, Any] | None = None) -> str:
    """Build an API path from raw (unencoded) segments.

    Args:
        api_version: API version prefix, e.g. "v0"
        *segments: Path segments, each encoded on its own
        query: Optional query parameters; None values are dropped

    Returns:
        Path with optional query string
    """
    path = "/" + "/".join([api_version, *(encode_segment(s) for s in segments)])
    if query:
        params = {k: v for k, v in query.items() if v is not None}
        if params:
            path += "?" + urlencode(params)
    return path


def require(value: str | None, name: str) -> str:
    """Return value, or raise ValidationError if it is None or empty."""
    if value is None or (isinstance(value, str) and not value):
        raise ValidationError(f"'{name}' cannot be null or empty", field_name=name)
    return value


@dataclass(frozen=True)
class HttpRequest:
    """A rendered request.

    Attributes:
        method: HTTP method
        path: Path (with query) relative to the service base URL
        headers: Request headers
        body: Request body text, if any
    """

    method: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str | None = None


@dataclass(frozen=True)
class HttpResponse:
    """A received response.

    Attributes:
        status: HTTP status code
        headers: Response headers
        body: Raw body bytes (None or empty when absent)
    """

    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes | None = None

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    @property
    def text(self) -> str | None:
        """Body decoded as UTF-8, or None if there is no body."""
        if not self.body:
            return None
        return self.body.decode("utf-8")

    def json(self) -> Any:
        """Body decoded as JSON, or None if there is no body."""
        text = self.text
        if text is None:
            return None
        return json.loads(text)

    def ref(self) -> str | None:
        """Version token of the object this response describes.

        Taken from the ETag header if present, otherwise from the last
        segment of a ``.../refs/{ref}`` Location header.
        """
        etag = self.header("ETag")
        if etag:
            etag = etag.strip()
            if etag.startswith("W/"):
                etag = etag[2:]
            return etag.strip('"')

        location = self.header("Location")
        if location and "/refs/" in location:
            return location.rsplit("/refs/", 1)[1]
        return None


def unexpected_status(operation: str, response: HttpResponse) -> ServiceError:
    """Build a ServiceError for a status the operation does not map."""
    # Error pages from proxies are not always UTF-8.
    body = response.body.decode("utf-8", errors="replace") if response.body else None
    message = f"{operation} failed with HTTP {response.status}"
    service_code = None
    try:
        document = json.loads(body) if body else None
    except ValueError:
        document = None
    if isinstance(document, dict):
        if document.get("message"):
            message = f"{message}: {document['message']}"
        service_code = document.get("code")
    return ServiceError(message, status=response.status, body=body, service_code=service_code)
