"""
Live, in-memory mirror of the album and photo collections.

Every list held here is replaced wholesale by the snapshot the document store
pushes; commands never touch local state and rely on the next push instead.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from portfolio.models.album import Album, AlbumCreateRequest
from portfolio.models.photo import Photo, PhotoCreateRequest
from portfolio.services.document_store import Detach, Document, DocumentStore
from portfolio.services.errors import CascadeDeleteError, InputValidationError, RemoteStoreError
from portfolio.services.identity_service import Identity, IdentityBootstrap

logger = logging.getLogger(__name__)

ALBUMS_COLLECTION = "albums"
PHOTOS_COLLECTION = "photos"

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

Push = Callable[[Any], None]
Fail = Callable[[Exception], None]
Opener = Callable[[Push, Fail], Detach]
ErrorReporter = Callable[[str, Exception], None]


class SubscriptionState(str, Enum):
    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBING = "subscribing"
    LIVE = "live"
    NOT_FOUND = "not_found"
    CANCELLED = "cancelled"


class Subscription(Generic[T]):
    """Handle on one live query.

    Snapshots pushed by the store (possibly from a store-owned thread) are
    applied on the event loop that opened the subscription. After ``cancel``
    no listener is called again. Use ``async with`` to tie the subscription to
    a scope.
    """

    def __init__(
        self,
        name: str,
        opener: Opener,
        transform: Callable[[Any], Optional[T]],
        identity: IdentityBootstrap,
        on_error: Optional[ErrorReporter] = None,
    ):
        self.name = name
        self.state = SubscriptionState.UNSUBSCRIBED
        self.current: Optional[T] = None
        self.version = 0
        self.last_error: Optional[Exception] = None
        self._opener = opener
        self._transform = transform
        self._identity = identity
        self._on_error = on_error
        self._listeners: List[Callable[[Optional[T]], None]] = []
        self._waiters: List[asyncio.Future] = []
        self._detach: Optional[Detach] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def is_active(self) -> bool:
        return self.state in (SubscriptionState.SUBSCRIBING, SubscriptionState.LIVE)

    def add_listener(self, listener: Callable[[Optional[T]], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def open(self) -> "Subscription[T]":
        if self.state is not SubscriptionState.UNSUBSCRIBED:
            return self
        self._loop = asyncio.get_running_loop()
        self.state = SubscriptionState.SUBSCRIBING

        try:
            if not self._identity.is_ready:
                logger.info(f"[Sync] {self.name} waiting for identity")
            await self._identity.wait_ready()
        except BaseException:
            self.cancel()
            raise

        if self.state is SubscriptionState.CANCELLED:
            return self

        try:
            detach = self._opener(self._push, self._push_error)
        except Exception as e:
            logger.error(f"[Sync] {self.name} listen failed: {e}", exc_info=True)
            self.cancel()
            raise RemoteStoreError(f"Could not subscribe to {self.name}: {e}") from e

        self._detach = detach
        if self.state is SubscriptionState.SUBSCRIBING:
            self.state = SubscriptionState.LIVE
        logger.info(f"[Sync] {self.name} live")
        return self

    def cancel(self) -> None:
        if self.state is SubscriptionState.CANCELLED:
            return
        self.state = SubscriptionState.CANCELLED
        detach, self._detach = self._detach, None
        self._listeners.clear()
        if detach is not None:
            try:
                detach()
            except Exception as e:
                logger.warning(f"[Sync] {self.name} detach failed: {e}")
        for waiter in self._waiters:
            if not waiter.done():
                waiter.set_result(None)
        self._waiters.clear()
        logger.info(f"[Sync] {self.name} cancelled")

    async def wait_for_snapshot(self, after_version: int = 0) -> Optional[T]:
        """Return the first snapshot newer than ``after_version``."""
        while True:
            if self.version > after_version:
                return self.current
            if self.state is SubscriptionState.NOT_FOUND:
                return None
            if self.state is SubscriptionState.CANCELLED:
                raise RemoteStoreError(f"Subscription {self.name} is cancelled")

            waiter = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            try:
                await waiter
            finally:
                if waiter in self._waiters:
                    self._waiters.remove(waiter)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        seen = 0
        while self.state is not SubscriptionState.CANCELLED:
            try:
                snapshot = await self.wait_for_snapshot(seen)
            except RemoteStoreError:
                if self.state is SubscriptionState.CANCELLED:
                    return
                raise
            seen = self.version
            yield snapshot
            if self.state is SubscriptionState.NOT_FOUND:
                return

    async def __aenter__(self) -> "Subscription[T]":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cancel()

    def _push(self, raw: Any) -> None:
        self._post(self._apply, raw)

    def _push_error(self, error: Exception) -> None:
        self._post(self._fail, error)

    def _post(self, callback: Callable[[Any], None], value: Any) -> None:
        loop = self._loop
        if loop is None or self.state is SubscriptionState.CANCELLED:
            return
        try:
            loop.call_soon_threadsafe(callback, value)
        except RuntimeError:
            logger.debug(f"[Sync] {self.name} dropped a push after its loop closed")

    def _apply(self, raw: Any) -> None:
        if self.state in (SubscriptionState.CANCELLED, SubscriptionState.NOT_FOUND):
            return
        try:
            value = self._transform(raw)
        except Exception as e:
            self._fail(e)
            return

        if value is None:
            self.state = SubscriptionState.NOT_FOUND
            logger.info(f"[Sync] {self.name} not found")
        elif self.state is SubscriptionState.SUBSCRIBING:
            self.state = SubscriptionState.LIVE

        self.current = value
        self.version += 1
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception as e:
                logger.error(f"[Sync] {self.name} listener failed: {e}", exc_info=True)

        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

    def _fail(self, error: Exception) -> None:
        if self.state is SubscriptionState.CANCELLED:
            return
        self.last_error = error
        logger.error(f"[Sync] {self.name} error: {error}")
        if self._on_error is not None:
            try:
                self._on_error(self.name, error)
            except Exception as e:
                logger.error(f"[Sync] {self.name} error reporter failed: {e}", exc_info=True)

        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_exception(RemoteStoreError(f"Error fetching {self.name}: {error}"))


def _parse_all(model: Type[M], documents: List[Document]) -> List[M]:
    parsed = []
    for document in documents:
        try:
            parsed.append(model.model_validate(document))
        except ValidationError as e:
            logger.warning(f"[Sync] Skipping malformed {model.__name__} {document.get('id')}: {e}")
    return parsed


def albums_from_snapshot(documents: List[Document]) -> List[Album]:
    # sorted() is stable with reverse=True, so equal timestamps keep snapshot order
    return sorted(_parse_all(Album, documents), key=lambda album: album.created_time, reverse=True)


def photos_from_snapshot(documents: List[Document]) -> List[Photo]:
    return sorted(_parse_all(Photo, documents), key=lambda photo: photo.uploaded_time, reverse=True)


def album_from_snapshot(document: Optional[Document]) -> Optional[Album]:
    if document is None:
        return None
    return Album.model_validate(document)


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _coerce(model: Type[M], fields: Union[M, Dict[str, Any]], message: str) -> M:
    if isinstance(fields, model):
        return fields
    try:
        return model.model_validate(fields)
    except ValidationError as e:
        raise InputValidationError(message) from e


def validate_album_fields(fields: Union[AlbumCreateRequest, Dict[str, Any]]) -> AlbumCreateRequest:
    message = "Album name and cover URL are required."
    request = _coerce(AlbumCreateRequest, fields, message)
    if _blank(request.name) or (_blank(request.coverImageUrl) and _blank(request.thumbnailUrl)):
        raise InputValidationError(message)
    return request


def validate_photo_fields(album_id: Optional[str], fields: Union[PhotoCreateRequest, Dict[str, Any]]) -> PhotoCreateRequest:
    message = "Please select an album and provide a photo URL."
    request = _coerce(PhotoCreateRequest, fields, message)
    if _blank(album_id) or _blank(request.imageUrl):
        raise InputValidationError(message)
    return request


class SyncStore:
    """Subscriptions and commands over the album and photo collections."""

    def __init__(self, store: DocumentStore, identity: IdentityBootstrap, on_error: Optional[ErrorReporter] = None):
        self.store = store
        self.identity = identity
        self.on_error = on_error

    # Subscriptions

    def subscribe_albums(self) -> Subscription[List[Album]]:
        def opener(push: Push, fail: Fail) -> Detach:
            return self.store.subscribe_collection(ALBUMS_COLLECTION, push, fail)

        return Subscription("albums", opener, albums_from_snapshot, self.identity, self.on_error)

    def subscribe_album(self, album_id: str) -> Subscription[Album]:
        if _blank(album_id):
            raise InputValidationError("An album id is required.")

        def opener(push: Push, fail: Fail) -> Detach:
            return self.store.subscribe_document(ALBUMS_COLLECTION, album_id, push, fail)

        return Subscription(f"album {album_id}", opener, album_from_snapshot, self.identity, self.on_error)

    def subscribe_photos_by_album(self, album_id: str) -> Subscription[List[Photo]]:
        if _blank(album_id):
            raise InputValidationError("An album id is required.")

        def opener(push: Push, fail: Fail) -> Detach:
            return self.store.subscribe_query(PHOTOS_COLLECTION, "albumId", album_id, push, fail)

        return Subscription(f"photos for album {album_id}", opener, photos_from_snapshot, self.identity, self.on_error)

    # Commands

    async def create_album(self, fields: Union[AlbumCreateRequest, Dict[str, Any]]) -> str:
        request = validate_album_fields(fields)
        identity = self._require_identity("Cannot create album.")

        data: Dict[str, Any] = {
            "name": request.name.strip(),
            "coverImageUrl": (request.coverImageUrl or "").strip(),
            "description": request.description or "",
            "createdAt": self.store.server_timestamp(),
            "createdBy": identity.uid,
        }
        if not _blank(request.thumbnailUrl):
            data["thumbnailUrl"] = request.thumbnailUrl.strip()

        album_id = await self._call("create album", self.store.create_document, ALBUMS_COLLECTION, data)
        logger.info(f"[Sync] Album created id={album_id} by={identity.uid}")
        return album_id

    async def add_photo(self, album_id: str, fields: Union[PhotoCreateRequest, Dict[str, Any]]) -> str:
        request = validate_photo_fields(album_id, fields)
        identity = self._require_identity("Cannot add photo.")

        data: Dict[str, Any] = {
            "albumId": album_id,
            "imageUrl": request.imageUrl.strip(),
            "title": request.title or "",
            "uploadedAt": self.store.server_timestamp(),
            "uploadedBy": identity.uid,
        }
        if request.caption:
            data["caption"] = request.caption

        photo_id = await self._call("add photo", self.store.create_document, PHOTOS_COLLECTION, data)
        logger.info(f"[Sync] Photo added id={photo_id} album={album_id}")
        return photo_id

    async def delete_album(self, album_id: str) -> int:
        """Delete an album after all of its photos; returns the photo count.

        Photo deletes run first and concurrently. If any of them fails the
        album delete is skipped and ``CascadeDeleteError`` is raised; photos
        already deleted stay deleted.
        """
        if _blank(album_id):
            raise InputValidationError("An album id is required.")

        deleted = await self._delete_album_photos(album_id)
        await self._call("delete album", self.store.delete_document, ALBUMS_COLLECTION, album_id)
        logger.info(f"[Sync] Album deleted id={album_id} photos={deleted}")
        return deleted

    async def delete_photo(self, photo_id: str) -> None:
        if _blank(photo_id):
            raise InputValidationError("A photo id is required.")
        await self._call("delete photo", self.store.delete_document, PHOTOS_COLLECTION, photo_id)
        logger.info(f"[Sync] Photo deleted id={photo_id}")

    async def _delete_album_photos(self, album_id: str) -> int:
        photos = await self._call("list album photos", self.store.get_documents, PHOTOS_COLLECTION, "albumId", album_id)
        photo_ids = [photo["id"] for photo in photos]
        logger.info(f"[Sync] Cascade.start album={album_id} photos={len(photo_ids)}")

        results = await asyncio.gather(
            *(asyncio.to_thread(self.store.delete_document, PHOTOS_COLLECTION, photo_id) for photo_id in photo_ids),
            return_exceptions=True,
        )
        failures = [
            (photo_id, result)
            for photo_id, result in zip(photo_ids, results)
            if isinstance(result, Exception)
        ]
        if failures:
            logger.error(f"[Sync] Cascade.aborted album={album_id} failed={len(failures)} of {len(photo_ids)}")
            raise CascadeDeleteError(album_id, len(photo_ids) - len(failures), failures)
        return len(photo_ids)

    def _require_identity(self, action: str) -> Identity:
        identity = self.identity.identity
        if identity is None:
            raise RemoteStoreError(f"User not authenticated. {action}")
        return identity

    async def _call(self, action: str, func: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(func, *args)
        except Exception as e:
            logger.error(f"[Sync] {action} failed: {e}", exc_info=True)
            raise RemoteStoreError(f"Could not {action}: {e}") from e
