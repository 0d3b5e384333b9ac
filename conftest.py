"""
Shared fixtures: an in-memory document store that pushes full snapshots the
way Firestore listeners do, and helpers to build a wired context.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import pytest

from portfolio.config.settings import Settings
from portfolio.services.context import PortfolioContext
from portfolio.services.identity_service import IdentityBootstrap, IdentityProvider

SERVER_TIMESTAMP = object()
BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeDocumentStore:
    """Thread-safe stand-in for Firestore with injectable failures."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.listeners: List[Dict[str, Any]] = []
        self.calls: List[tuple] = []
        self.fail_creates = False
        self.fail_deletes: set = set()
        self.fail_listen = False
        self._ticks = 0
        self._ids = 0
        self._lock = threading.RLock()

    # Test helpers

    def seed(self, collection: str, document_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self.collections.setdefault(collection, {})[document_id] = dict(data)
        self._notify(collection)

    def documents(self, collection: str) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return dict(self.collections.get(collection, {}))

    def listener_count(self) -> int:
        with self._lock:
            return len(self.listeners)

    def calls_of(self, op: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == op]

    def break_listeners(self, error: Exception) -> None:
        with self._lock:
            listeners = list(self.listeners)
        for listener in listeners:
            listener["on_error"](error)

    # DocumentStore

    def server_timestamp(self):
        return SERVER_TIMESTAMP

    def create_document(self, collection: str, data: Dict[str, Any]) -> str:
        self.calls.append(("create", collection, dict(data)))
        if self.fail_creates:
            raise RuntimeError("PERMISSION_DENIED: Missing or insufficient permissions.")
        with self._lock:
            self._ids += 1
            document_id = f"{collection}-{self._ids}"
            stored = {}
            for key, value in data.items():
                if value is SERVER_TIMESTAMP:
                    self._ticks += 1
                    value = BASE_TIME + timedelta(seconds=self._ticks)
                stored[key] = value
            self.collections.setdefault(collection, {})[document_id] = stored
        self._notify(collection)
        return document_id

    def delete_document(self, collection: str, document_id: str) -> None:
        self.calls.append(("delete", collection, document_id))
        if document_id in self.fail_deletes:
            raise RuntimeError(f"UNAVAILABLE: could not delete {document_id}")
        with self._lock:
            self.collections.get(collection, {}).pop(document_id, None)
        self._notify(collection)

    def get_documents(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        self.calls.append(("query", collection, field, value))
        return self._matching(collection, field, value)

    def subscribe_collection(self, collection, on_snapshot, on_error):
        return self._listen({"kind": "collection", "collection": collection,
                             "on_snapshot": on_snapshot, "on_error": on_error})

    def subscribe_query(self, collection, field, value, on_snapshot, on_error):
        return self._listen({"kind": "query", "collection": collection, "field": field, "value": value,
                             "on_snapshot": on_snapshot, "on_error": on_error})

    def subscribe_document(self, collection, document_id, on_snapshot, on_error):
        return self._listen({"kind": "document", "collection": collection, "document_id": document_id,
                             "on_snapshot": on_snapshot, "on_error": on_error})

    # Internals

    def _matching(self, collection: str, field: Optional[str] = None, value: Any = None) -> List[Dict[str, Any]]:
        with self._lock:
            result = []
            for document_id, data in self.collections.get(collection, {}).items():
                if field is None or data.get(field) == value:
                    result.append({**data, "id": document_id})
            return result

    def _result(self, listener: Dict[str, Any]):
        if listener["kind"] == "collection":
            return self._matching(listener["collection"])
        if listener["kind"] == "query":
            return self._matching(listener["collection"], listener["field"], listener["value"])
        with self._lock:
            data = self.collections.get(listener["collection"], {}).get(listener["document_id"])
        return None if data is None else {**data, "id": listener["document_id"]}

    def _listen(self, listener: Dict[str, Any]) -> Callable[[], None]:
        if self.fail_listen:
            raise RuntimeError("PERMISSION_DENIED: listen rejected")
        with self._lock:
            self.listeners.append(listener)
        listener["on_snapshot"](self._result(listener))

        def detach() -> None:
            with self._lock:
                if listener in self.listeners:
                    self.listeners.remove(listener)

        return detach

    def _notify(self, collection: str) -> None:
        with self._lock:
            listeners = [listener for listener in self.listeners if listener["collection"] == collection]
        for listener in listeners:
            listener["on_snapshot"](self._result(listener))


def offline_provider() -> IdentityProvider:
    """Provider without an API key: every sign-in fails, bootstrap falls back to a local id."""
    return IdentityProvider(api_key=None)


@pytest.fixture
def fake_store() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
def identity() -> IdentityBootstrap:
    return IdentityBootstrap(offline_provider())


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        ADMIN_PASSWORD="letmein",
        JWT_SECRET="test-secret",
        APP_ID="test-portfolio",
    )


@pytest.fixture
def context(test_settings, fake_store) -> PortfolioContext:
    return PortfolioContext(test_settings, fake_store, offline_provider())
