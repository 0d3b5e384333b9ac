from fastapi import APIRouter, Depends
from portfolio.api.deps import command_failed, get_context, require_admin
from portfolio.models.photo import PhotoResponse
from portfolio.services.context import PortfolioContext
from portfolio.services.errors import InputValidationError, RemoteStoreError

router = APIRouter()


@router.delete("/{photo_id}", response_model=PhotoResponse)
async def delete_photo(
    photo_id: str,
    context: PortfolioContext = Depends(get_context),
    admin: dict = Depends(require_admin),
):
    try:
        await context.sync_store.delete_photo(photo_id)
    except (InputValidationError, RemoteStoreError) as e:
        raise command_failed(context, "deleting photo", e)

    context.notifications.success("Photo deleted successfully!")
    return PhotoResponse(success=True, message="Photo deleted successfully!", data={"id": photo_id})
