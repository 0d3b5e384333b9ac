import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
CollectionCallback = Callable[[List[Document]], None]
DocumentCallback = Callable[[Optional[Document]], None]
ErrorCallback = Callable[[Exception], None]
Detach = Callable[[], None]


class DocumentStore(Protocol):
    """Hosted document database consumed by the sync layer.

    Every document handed to callbacks is a plain dict carrying its store id
    under ``"id"``. Subscription callbacks receive the full current result set
    on every change and may be invoked from a thread owned by the store.
    """

    def create_document(self, collection: str, data: Document) -> str:
        """Create a document with a store-assigned id and return the id."""

    def delete_document(self, collection: str, document_id: str) -> None:
        """Delete one document; deleting a missing document is not an error."""

    def get_documents(self, collection: str, field: str, value: Any) -> List[Document]:
        """Return the documents whose ``field`` equals ``value``."""

    def subscribe_collection(
        self, collection: str, on_snapshot: CollectionCallback, on_error: ErrorCallback
    ) -> Detach:
        """Listen to the whole collection."""

    def subscribe_document(
        self, collection: str, document_id: str, on_snapshot: DocumentCallback, on_error: ErrorCallback
    ) -> Detach:
        """Listen to one document; ``None`` is pushed while it does not exist."""

    def subscribe_query(
        self, collection: str, field: str, value: Any, on_snapshot: CollectionCallback, on_error: ErrorCallback
    ) -> Detach:
        """Listen to the documents whose ``field`` equals ``value``."""

    def server_timestamp(self) -> Any:
        """Sentinel replaced by the store with its own commit time."""


def _to_document(snapshot) -> Document:
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    return data


class FirestoreDocumentStore:
    """DocumentStore backed by a google-cloud-firestore client."""

    def __init__(self, client, app_id: str):
        self.client = client
        self.app_id = app_id
        logger.info(f"[Firestore] Document store ready namespace=artifacts/{app_id}/public/data")

    def collection_path(self, collection: str) -> str:
        return f"artifacts/{self.app_id}/public/data/{collection}"

    def _collection(self, collection: str):
        return self.client.collection(self.collection_path(collection))

    def create_document(self, collection: str, data: Document) -> str:
        logger.info(f"[Firestore] Create.start collection={collection}")
        _, ref = self._collection(collection).add(data)
        logger.info(f"[Firestore] Create.done collection={collection} id={ref.id}")
        return ref.id

    def delete_document(self, collection: str, document_id: str) -> None:
        logger.info(f"[Firestore] Delete.start collection={collection} id={document_id}")
        self._collection(collection).document(document_id).delete()
        logger.info(f"[Firestore] Delete.done collection={collection} id={document_id}")

    def get_documents(self, collection: str, field: str, value: Any) -> List[Document]:
        query = self._collection(collection).where(filter=FieldFilter(field, "==", value))
        documents = [_to_document(snapshot) for snapshot in query.stream()]
        logger.info(f"[Firestore] Query collection={collection} {field}=={value} found={len(documents)}")
        return documents

    def subscribe_collection(
        self, collection: str, on_snapshot: CollectionCallback, on_error: ErrorCallback
    ) -> Detach:
        return self._watch_query(self._collection(collection), collection, on_snapshot, on_error)

    def subscribe_query(
        self, collection: str, field: str, value: Any, on_snapshot: CollectionCallback, on_error: ErrorCallback
    ) -> Detach:
        query = self._collection(collection).where(filter=FieldFilter(field, "==", value))
        return self._watch_query(query, f"{collection}[{field}=={value}]", on_snapshot, on_error)

    def subscribe_document(
        self, collection: str, document_id: str, on_snapshot: DocumentCallback, on_error: ErrorCallback
    ) -> Detach:
        ref = self._collection(collection).document(document_id)

        def handle(snapshots, changes, read_time):
            try:
                current = snapshots[0] if snapshots else None
                if current is None or not current.exists:
                    on_snapshot(None)
                else:
                    on_snapshot(_to_document(current))
            except Exception as e:
                logger.error(f"[Firestore] Document listener error {collection}/{document_id}: {e}", exc_info=True)
                on_error(e)

        watch = ref.on_snapshot(handle)
        logger.info(f"[Firestore] Listen.start {collection}/{document_id}")
        return watch.unsubscribe

    def _watch_query(self, query, label: str, on_snapshot: CollectionCallback, on_error: ErrorCallback) -> Detach:
        def handle(snapshots, changes, read_time):
            try:
                on_snapshot([_to_document(snapshot) for snapshot in snapshots])
            except Exception as e:
                logger.error(f"[Firestore] Listener error {label}: {e}", exc_info=True)
                on_error(e)

        watch = query.on_snapshot(handle)
        logger.info(f"[Firestore] Listen.start {label}")
        return watch.unsubscribe

    def server_timestamp(self) -> Any:
        return firestore.SERVER_TIMESTAMP
