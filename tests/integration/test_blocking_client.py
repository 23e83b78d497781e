"""
Integration tests for BlockingClient against the in-memory service.

Tests cover:
- Convenience methods for keys, events and relations
- Lazy iteration over all pages
- Timeouts and error passthrough
- Lifecycle
"""

import pytest

from kvdb_sdk import (
    BlockingClient,
    Document,
    KvFetchOperation,
    OperationTimeoutError,
    TransportError,
)
from kvdb_sdk.wire import HttpResponse


class Note(Document):
    text: str


@pytest.fixture
def kv(settings, service):
    """BlockingClient backed by the fake service."""
    with BlockingClient(settings, transport=service) as client:
        yield client


class TestKeyValue:
    """Tests for the key/value convenience methods."""

    def test_put_and_get(self, kv):
        meta = kv.kv_put("notes", "n1", Note(text="hello"))
        obj = kv.kv_get("notes", "n1", Note)

        assert obj.value == Note(text="hello")
        assert obj.ref == meta.ref

    def test_get_missing(self, kv):
        assert kv.kv_get("notes", "missing") is None

    def test_put_precondition_failure(self, kv, service):
        """A 412 from a plain put comes back as None."""
        service.respond_with(HttpResponse(status=412))

        assert kv.kv_put("notes", "n1", "{}") is None

    def test_put_if_absent(self, kv):
        assert kv.kv_put_if_absent("notes", "n1", '{"text":"a"}') is not None
        assert kv.kv_put_if_absent("notes", "n1", '{"text":"b"}') is None

    def test_put_if_match(self, kv):
        meta = kv.kv_put("notes", "n1", '{"text":"a"}')

        assert kv.kv_put_if_match("notes", "n1", '{"text":"b"}', meta.ref) is not None
        assert kv.kv_put_if_match("notes", "n1", '{"text":"c"}', meta.ref) is None
        assert kv.kv_get("notes", "n1", Note).value.text == "b"

    def test_get_by_ref(self, kv):
        meta = kv.kv_put("notes", "n1", '{"text":"a"}')
        kv.kv_put("notes", "n1", '{"text":"b"}')

        assert kv.kv_get("notes", "n1", Note, ref=meta.ref).value.text == "a"

    def test_delete(self, kv):
        meta = kv.kv_put("notes", "n1", "{}")
        kv.kv_put("notes", "n1", "{}")

        assert kv.kv_delete("notes", "n1", ref=meta.ref) is False
        assert kv.kv_delete("notes", "n1") is True
        assert kv.kv_get("notes", "n1") is None

    def test_purge(self, kv):
        meta = kv.kv_put("notes", "n1", "{}")

        assert kv.kv_purge("notes", "n1") is True
        assert kv.kv_get("notes", "n1", ref=meta.ref) is None

    def test_delete_collection(self, kv):
        kv.kv_put("notes", "n1", "{}")

        assert kv.delete_collection("notes") is True
        assert kv.kv_list("notes").count == 0


class TestListing:
    """Tests for kv_list and kv_list_all."""

    def test_list_page(self, kv, service):
        for i in range(5):
            service.put_value("notes", f"n{i}", {"text": str(i)})

        page = kv.kv_list("notes", limit=2, value_type=Note)

        assert page.count == 2
        assert page.has_next
        assert [o.value.text for o in page] == ["0", "1"]

    def test_list_all(self, kv, service):
        for i in range(12):
            service.put_value("notes", f"n{i:02d}", {"text": str(i)})

        keys = [obj.key for obj in kv.kv_list_all("notes", limit=5)]

        assert keys == [f"n{i:02d}" for i in range(12)]

    def test_list_all_is_lazy(self, kv, service):
        """Only the pages actually consumed are fetched."""
        for i in range(12):
            service.put_value("notes", f"n{i:02d}", {})

        objects = kv.kv_list_all("notes", limit=5)
        first = [next(objects) for _ in range(5)]

        assert len(first) == 5
        assert len(service.requests_for("GET")) == 1


class TestEventsAndRelations:
    """Tests for event and relation convenience methods."""

    def test_events(self, kv):
        kv.kv_put("notes", "n1", "{}")

        assert kv.event_put("notes", "n1", "edit", {"by": "alice"}, timestamp=7) is True
        events = kv.event_get("notes", "n1", "edit", dict)

        assert [(e.timestamp, e.value) for e in events] == [(7, {"by": "alice"})]
        assert kv.event_get("notes", "missing", "edit") == ()

    def test_relations(self, kv):
        kv.kv_put("notes", "n1", '{"text":"a"}')
        kv.kv_put("notes", "n2", '{"text":"b"}')

        assert kv.relation_put("notes", "n1", "links", "notes", "n2") is True
        related = kv.relation_get("notes", "n1", "links", Note)

        assert [o.key for o in related] == ["n2"]
        assert related[0].value == Note(text="b")


class TestErrors:
    """Errors pass through unchanged."""

    def test_timeout(self, settings, service):
        service.delay = 0.3
        with BlockingClient(settings, transport=service, timeout=0.01) as kv:
            with pytest.raises(OperationTimeoutError):
                kv.kv_get("notes", "n1")

    def test_per_call_timeout(self, kv, service):
        service.delay = 0.3

        with pytest.raises(OperationTimeoutError):
            kv.execute(KvFetchOperation("notes", "n1"), timeout=0.01)

    def test_transport_error(self, kv, service):
        service.fail_with = ConnectionResetError("reset")

        with pytest.raises(TransportError):
            kv.kv_get("notes", "n1")


class TestLifecycle:
    """Tests for connect / close."""

    def test_connects_on_init_and_closes(self, settings, service):
        kv = BlockingClient(settings, transport=service)
        assert service.connected

        kv.close()
        assert not service.connected

        kv.close()

    def test_default_timeout_from_settings(self, settings, service):
        with BlockingClient(settings, transport=service) as kv:
            assert kv.timeout == settings.default_timeout
