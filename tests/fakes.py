"""
In-memory fake of the KvDB HTTP API.

FakeKvService implements the SDK's Transport protocol, so DbClient and
BlockingClient can run end to end without a network. It follows the
service's wire behaviour closely enough for the SDK's interpretation
logic to be exercised: refs in ETag/Location, 412 on failed
preconditions, 404 for missing keys, continuation links on listings.
"""

from __future__ import annotations

import asyncio
import itertools
import json
from typing import Any, Optional
from urllib.parse import parse_qsl, quote, unquote, urlsplit

from kvdb_sdk.errors import TransportError
from kvdb_sdk.wire import HttpRequest, HttpResponse


def _json_response(status: int, document: Any, headers: Optional[dict[str, str]] = None) -> HttpResponse:
    return HttpResponse(status=status, headers=headers or {}, body=json.dumps(document).encode("utf-8"))


def _error(status: int, message: str, code: str) -> HttpResponse:
    return _json_response(status, {"message": message, "code": code})


class FakeKvService:
    """In-memory KvDB service speaking the SDK's wire records."""

    def __init__(self, api_version: str = "v0") -> None:
        self.api_version = api_version
        self.values: dict[tuple[str, str], tuple[str, str]] = {}
        self.history: dict[tuple[str, str, str], str] = {}
        self.events: dict[tuple[str, str, str], list[tuple[int, str]]] = {}
        self.relations: dict[tuple[str, str, str], list[tuple[str, str]]] = {}
        self.requests: list[HttpRequest] = []
        self.connected = False
        self.delay = 0.0
        self.fail_with: Optional[Exception] = None
        self._canned: list[HttpResponse] = []
        self._refs = itertools.count(1)
        self._clock = itertools.count(1_000)

    # Transport protocol

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def exchange(self, request: HttpRequest) -> HttpResponse:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise TransportError(str(self.fail_with), address="fake", cause=self.fail_with)
        if self._canned:
            return self._canned.pop(0)
        return self.handle(request)

    # Test helpers

    def respond_with(self, response: HttpResponse) -> None:
        """Answer the next request with ``response`` instead of routing it."""
        self._canned.append(response)

    def requests_for(self, method: str) -> list[HttpRequest]:
        return [r for r in self.requests if r.method == method]

    def put_value(self, collection: str, key: str, value: Any) -> str:
        """Seed a value directly; returns its ref."""
        body = value if isinstance(value, str) else json.dumps(value)
        return self._store(collection, key, body)

    # Routing

    def handle(self, request: HttpRequest) -> HttpResponse:
        split = urlsplit(request.path)
        segments = [unquote(s) for s in split.path.split("/")[1:]]
        query = dict(parse_qsl(split.query))
        if not segments or segments[0] != self.api_version:
            return _error(404, "Unknown API version", "api_not_found")

        rest = segments[1:]
        method = request.method

        if len(rest) == 1:
            if method == "GET":
                return self._list(rest[0], query)
            if method == "DELETE":
                return self._delete_collection(rest[0])
        elif len(rest) == 2:
            collection, key = rest
            if method == "PUT":
                return self._put(collection, key, request)
            if method == "GET":
                return self._get(collection, key)
            if method == "DELETE":
                return self._delete(collection, key, request, query)
        elif len(rest) == 4 and rest[2] == "refs" and method == "GET":
            return self._get_ref(rest[0], rest[1], rest[3])
        elif len(rest) == 4 and rest[2] == "events":
            collection, key, _, event_type = rest
            if method == "PUT":
                return self._put_event(collection, key, event_type, request, query)
            if method == "GET":
                return self._get_events(collection, key, event_type, query)
        elif len(rest) == 6 and rest[2] == "relation" and method == "PUT":
            return self._put_relation(rest[0], rest[1], rest[3], rest[4], rest[5])
        elif len(rest) >= 4 and rest[2] == "relations" and method == "GET":
            return self._get_relations(rest[0], rest[1], rest[3:])

        return _error(400, f"Unsupported request {method} {request.path}", "api_bad_request")

    # Key/value

    def _location(self, collection: str, key: str, ref: str) -> str:
        return f"/{self.api_version}/{quote(collection, safe='')}/{quote(key, safe='')}/refs/{ref}"

    def _store(self, collection: str, key: str, body: str) -> str:
        ref = f"{next(self._refs):016x}"
        self.values[(collection, key)] = (ref, body)
        self.history[(collection, key, ref)] = body
        return ref

    def _put(self, collection: str, key: str, request: HttpRequest) -> HttpResponse:
        current = self.values.get((collection, key))
        if_match = request.headers.get("If-Match")
        if_none_match = request.headers.get("If-None-Match")

        if if_match is not None and (current is None or current[0] != if_match.strip('"')):
            return _error(412, "The item has been modified", "item_version_mismatch")
        if if_none_match is not None and current is not None:
            return _error(412, "The item already exists", "item_already_present")

        ref = self._store(collection, key, request.body or "")
        headers = {"ETag": f'"{ref}"', "Location": self._location(collection, key, ref)}
        return HttpResponse(status=201, headers=headers)

    def _get(self, collection: str, key: str) -> HttpResponse:
        current = self.values.get((collection, key))
        if current is None:
            return _error(404, "The requested items could not be found", "items_not_found")
        ref, body = current
        return HttpResponse(
            status=200,
            headers={"ETag": f'"{ref}"', "Content-Type": "application/json"},
            body=body.encode("utf-8"),
        )

    def _get_ref(self, collection: str, key: str, ref: str) -> HttpResponse:
        body = self.history.get((collection, key, ref))
        if body is None:
            return _error(404, "The requested items could not be found", "items_not_found")
        return HttpResponse(status=200, headers={}, body=body.encode("utf-8"))

    def _delete(self, collection: str, key: str, request: HttpRequest, query: dict[str, str]) -> HttpResponse:
        current = self.values.get((collection, key))
        if_match = request.headers.get("If-Match")
        if if_match is not None:
            if current is None:
                return _error(404, "The requested items could not be found", "items_not_found")
            if current[0] != if_match.strip('"'):
                return _error(412, "The item has been modified", "item_version_mismatch")

        self.values.pop((collection, key), None)
        if query.get("purge") == "true":
            for history_key in [h for h in self.history if h[:2] == (collection, key)]:
                del self.history[history_key]
        return HttpResponse(status=204)

    def _delete_collection(self, collection: str) -> HttpResponse:
        keys = [k for k in self.values if k[0] == collection]
        if not keys:
            return _error(404, "The requested collection could not be found", "items_not_found")
        for k in keys:
            del self.values[k]
        return HttpResponse(status=204)

    def _list(self, collection: str, query: dict[str, str]) -> HttpResponse:
        limit = int(query.get("limit", "10"))
        keys = sorted(k for c, k in self.values if c == collection)
        if "afterKey" in query:
            keys = [k for k in keys if k > query["afterKey"]]
        elif "startKey" in query:
            keys = [k for k in keys if k >= query["startKey"]]

        page, remaining = keys[:limit], keys[limit:]
        results = []
        for key in page:
            ref, body = self.values[(collection, key)]
            results.append(
                {
                    "path": {"collection": collection, "key": key, "ref": ref},
                    "value": json.loads(body),
                }
            )

        document: dict[str, Any] = {"count": len(results), "results": results}
        if remaining:
            document["next"] = (
                f"/{self.api_version}/{quote(collection, safe='')}"
                f"?limit={limit}&afterKey={quote(page[-1], safe='')}"
            )
        return _json_response(200, document)

    # Events

    def _put_event(
        self,
        collection: str,
        key: str,
        event_type: str,
        request: HttpRequest,
        query: dict[str, str],
    ) -> HttpResponse:
        if (collection, key) not in self.values:
            return _error(404, "The requested items could not be found", "items_not_found")
        timestamp = int(query["timestamp"]) if "timestamp" in query else next(self._clock)
        self.events.setdefault((collection, key, event_type), []).append((timestamp, request.body or ""))
        return HttpResponse(status=204)

    def _get_events(
        self,
        collection: str,
        key: str,
        event_type: str,
        query: dict[str, str],
    ) -> HttpResponse:
        if (collection, key) not in self.values:
            return _error(404, "The requested items could not be found", "items_not_found")
        start = int(query["start"]) if "start" in query else None
        end = int(query["end"]) if "end" in query else None
        results = [
            {"timestamp": ts, "value": json.loads(body)}
            for ts, body in self.events.get((collection, key, event_type), [])
            if (start is None or ts >= start) and (end is None or ts < end)
        ]
        return _json_response(200, {"count": len(results), "results": results})

    # Relations

    def _put_relation(
        self,
        collection: str,
        key: str,
        kind: str,
        to_collection: str,
        to_key: str,
    ) -> HttpResponse:
        if (collection, key) not in self.values or (to_collection, to_key) not in self.values:
            return _error(404, "The requested items could not be found", "items_not_found")
        self.relations.setdefault((collection, key, kind), []).append((to_collection, to_key))
        return HttpResponse(status=204)

    def _get_relations(self, collection: str, key: str, kinds: list[str]) -> HttpResponse:
        if (collection, key) not in self.values:
            return _error(404, "The requested items could not be found", "items_not_found")

        frontier = [(collection, key)]
        for kind in kinds:
            frontier = [dest for source in frontier for dest in self.relations.get((*source, kind), [])]

        results = []
        for dest_collection, dest_key in frontier:
            current = self.values.get((dest_collection, dest_key))
            if current is None:
                continue
            ref, body = current
            results.append(
                {
                    "path": {"collection": dest_collection, "key": dest_key, "ref": ref},
                    "value": json.loads(body),
                }
            )
        return _json_response(200, {"count": len(results), "results": results})
