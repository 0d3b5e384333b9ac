from pydantic import BaseModel, ConfigDict
from typing import Optional, List, Dict
from datetime import datetime, timezone

from portfolio.utils.placeholders import album_cover_placeholder, image_error_placeholder


def epoch_seconds(value: Optional[datetime]) -> float:
    """Sort key for server timestamps; missing values sort as the epoch."""
    if value is None:
        return 0.0
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


class AlbumCreateRequest(BaseModel):
    name: str = ""
    coverImageUrl: Optional[str] = None
    thumbnailUrl: Optional[str] = None
    description: Optional[str] = None

class Album(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    coverImageUrl: Optional[str] = None
    thumbnailUrl: Optional[str] = None
    description: Optional[str] = None
    createdAt: Optional[datetime] = None
    timestamp: Optional[datetime] = None
    createdBy: Optional[str] = None

    @property
    def created_time(self) -> float:
        return epoch_seconds(self.createdAt or self.timestamp)

    @property
    def display_cover_url(self) -> str:
        return self.coverImageUrl or self.thumbnailUrl or album_cover_placeholder(self.name)

    def to_view(self) -> Dict:
        data = self.model_dump(mode="json")
        data["displayCoverUrl"] = self.display_cover_url
        data["fallbackImageUrl"] = image_error_placeholder()
        return data

class AlbumResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    data: Optional[Dict] = None

class AlbumListResponse(BaseModel):
    success: bool
    data: List[Dict]
    total: int
