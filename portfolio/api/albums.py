from fastapi import APIRouter, Depends, HTTPException, status
from portfolio.api.deps import command_failed, get_context, require_admin
from portfolio.models.album import AlbumCreateRequest, AlbumListResponse, AlbumResponse
from portfolio.models.photo import PhotoCreateRequest, PhotoListResponse, PhotoResponse
from portfolio.services.context import PortfolioContext
from portfolio.services.errors import InputValidationError, RemoteStoreError
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=AlbumListResponse)
async def list_albums(context: PortfolioContext = Depends(get_context)):
    """Albums as of the latest snapshot, newest first."""
    albums = context.current_albums()
    return AlbumListResponse(success=True, data=[album.to_view() for album in albums], total=len(albums))


@router.get("/{album_id}", response_model=AlbumResponse)
async def get_album(album_id: str, context: PortfolioContext = Depends(get_context)):
    album = next((album for album in context.current_albums() if album.id == album_id), None)
    if album is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Album not found")
    return AlbumResponse(success=True, data=album.to_view())


@router.get("/{album_id}/photos", response_model=PhotoListResponse)
async def list_album_photos(album_id: str, context: PortfolioContext = Depends(get_context)):
    """Open a photo subscription for this album, take its first snapshot, release it."""
    try:
        async with context.sync_store.subscribe_photos_by_album(album_id) as subscription:
            photos = await subscription.wait_for_snapshot()
    except (InputValidationError, RemoteStoreError) as e:
        raise command_failed(context, f"fetching photos for album {album_id}", e)

    photos = photos or []
    return PhotoListResponse(
        success=True,
        data=[photo.to_view() for photo in photos],
        total=len(photos),
        album_id=album_id,
    )


@router.post("", response_model=AlbumResponse, status_code=status.HTTP_201_CREATED)
async def create_album(
    payload: AlbumCreateRequest,
    context: PortfolioContext = Depends(get_context),
    admin: dict = Depends(require_admin),
):
    try:
        album_id = await context.sync_store.create_album(payload)
    except (InputValidationError, RemoteStoreError) as e:
        raise command_failed(context, "creating album", e)

    context.notifications.success("Album created successfully!")
    return AlbumResponse(success=True, message="Album created successfully!", data={"id": album_id})


@router.post("/{album_id}/photos", response_model=PhotoResponse, status_code=status.HTTP_201_CREATED)
async def add_photo(
    album_id: str,
    payload: PhotoCreateRequest,
    context: PortfolioContext = Depends(get_context),
    admin: dict = Depends(require_admin),
):
    try:
        photo_id = await context.sync_store.add_photo(album_id, payload)
    except (InputValidationError, RemoteStoreError) as e:
        raise command_failed(context, "adding photo", e)

    context.notifications.success("Photo added successfully!")
    return PhotoResponse(success=True, message="Photo added successfully!", data={"id": photo_id, "albumId": album_id})


@router.delete("/{album_id}", response_model=AlbumResponse)
async def delete_album(
    album_id: str,
    context: PortfolioContext = Depends(get_context),
    admin: dict = Depends(require_admin),
):
    try:
        deleted = await context.sync_store.delete_album(album_id)
    except (InputValidationError, RemoteStoreError) as e:
        raise command_failed(context, "deleting album", e)

    context.notifications.success("Album and its photos deleted successfully!")
    return AlbumResponse(
        success=True,
        message="Album and its photos deleted successfully!",
        data={"id": album_id, "photos_deleted": deleted},
    )
