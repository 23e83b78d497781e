"""
Command line tool for the KvDB service.

Commands:
- get: Fetch a value by key
- put: Store a value (optionally if-absent or if-match)
- delete: Delete a key (optionally if-match, purge)
- ls: List a collection
- events: Fetch events of a type for a key
- relations: Fetch objects related to a key

Usage:
    kvdb put users alice '{"name": "Alice"}'
    kvdb get users alice
    kvdb ls users --limit 50 --all
    kvdb delete users alice --ref 0d1f2e3c

Connection settings come from KVDB_* environment variables (see config.py).
Results are printed as JSON; failures exit with status 1.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Optional, Sequence

from ._http_transport import Transport
from .blocking import BlockingClient
from .config import ClientSettings
from .errors import KvDbError
from .log import setup_logging
from .results import Event, KvMetadata, KvObject

logger = logging.getLogger(__name__)


def _raw_json(raw: Optional[str]) -> Any:
    return json.loads(raw) if raw else None


def _object_to_dict(obj: KvMetadata) -> dict[str, Any]:
    result: dict[str, Any] = {"collection": obj.collection, "key": obj.key, "ref": obj.ref}
    if isinstance(obj, KvObject):
        result["value"] = _raw_json(obj.raw_value)
    return result


def _event_to_dict(event: Event[Any]) -> dict[str, Any]:
    return {"type": event.type, "timestamp": event.timestamp, "value": _raw_json(event.raw_value)}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kvdb", description="KvDB key/value, event and relation tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    get_parser = subparsers.add_parser("get", help="Fetch a value")
    get_parser.add_argument("collection")
    get_parser.add_argument("key")
    get_parser.add_argument("--ref", help="Fetch a specific version")

    put_parser = subparsers.add_parser("put", help="Store a JSON value")
    put_parser.add_argument("collection")
    put_parser.add_argument("key")
    put_parser.add_argument("value", help="JSON document")
    condition = put_parser.add_mutually_exclusive_group()
    condition.add_argument("--if-absent", action="store_true", help="Only store if the key is empty")
    condition.add_argument("--if-match", metavar="REF", help="Only store if the current ref matches")

    delete_parser = subparsers.add_parser("delete", help="Delete a key")
    delete_parser.add_argument("collection")
    delete_parser.add_argument("key")
    delete_parser.add_argument("--ref", help="Only delete if the current ref matches")
    delete_parser.add_argument("--purge", action="store_true", help="Also remove history")

    ls_parser = subparsers.add_parser("ls", help="List a collection")
    ls_parser.add_argument("collection")
    ls_parser.add_argument("--limit", type=int, default=10, help="Page size")
    ls_parser.add_argument("--all", action="store_true", help="Follow continuation links")

    events_parser = subparsers.add_parser("events", help="Fetch events for a key")
    events_parser.add_argument("collection")
    events_parser.add_argument("key")
    events_parser.add_argument("type")
    events_parser.add_argument("--start", type=int, help="Start timestamp (Unix ms)")
    events_parser.add_argument("--end", type=int, help="End timestamp (Unix ms)")

    relations_parser = subparsers.add_parser("relations", help="Fetch related objects")
    relations_parser.add_argument("collection")
    relations_parser.add_argument("key")
    relations_parser.add_argument("kinds", nargs="+", help="Relation kind(s) to follow")

    return parser


def run(args: argparse.Namespace, client: BlockingClient) -> int:
    """Execute a parsed command; returns the process exit code."""
    if args.command == "get":
        obj = client.kv_get(args.collection, args.key, ref=args.ref)
        if obj is None:
            print(f"Not found: {args.collection}/{args.key}", file=sys.stderr)
            return 1
        print(json.dumps(_object_to_dict(obj), indent=2))

    elif args.command == "put":
        if args.if_absent:
            meta = client.kv_put_if_absent(args.collection, args.key, args.value)
        elif args.if_match:
            meta = client.kv_put_if_match(args.collection, args.key, args.value, args.if_match)
        else:
            meta = client.kv_put(args.collection, args.key, args.value)
        if meta is None:
            print("Precondition failed; value not stored", file=sys.stderr)
            return 1
        print(json.dumps(_object_to_dict(meta), indent=2))

    elif args.command == "delete":
        if args.purge:
            deleted = client.kv_purge(args.collection, args.key, args.ref)
        else:
            deleted = client.kv_delete(args.collection, args.key, args.ref)
        print(json.dumps({"deleted": deleted}))
        return 0 if deleted else 1

    elif args.command == "ls":
        if args.all:
            objects = list(client.kv_list_all(args.collection, args.limit))
            print(json.dumps([_object_to_dict(o) for o in objects], indent=2))
        else:
            page = client.kv_list(args.collection, args.limit)
            output = {
                "count": page.count,
                "next": page.next,
                "results": [_object_to_dict(o) for o in page],
            }
            print(json.dumps(output, indent=2))

    elif args.command == "events":
        events = client.event_get(args.collection, args.key, args.type, start=args.start, end=args.end)
        print(json.dumps([_event_to_dict(e) for e in events], indent=2))

    elif args.command == "relations":
        related = client.relation_get(args.collection, args.key, args.kinds)
        print(json.dumps([_object_to_dict(o) for o in related], indent=2))

    return 0


def main(argv: Optional[Sequence[str]] = None, *, transport: Optional[Transport] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    settings = ClientSettings()
    setup_logging(settings)

    try:
        with BlockingClient(settings, transport=transport) as client:
            return run(args, client)
    except KvDbError as e:
        logger.error(f"{args.command} failed: [{e.code}] {e.message}")
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
