from pydantic import BaseModel, ConfigDict
from typing import Optional, List, Dict
from datetime import datetime

from portfolio.models.album import epoch_seconds
from portfolio.utils.placeholders import photo_placeholder, image_error_placeholder

class PhotoCreateRequest(BaseModel):
    imageUrl: str = ""
    title: Optional[str] = None
    caption: Optional[str] = None

class Photo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    albumId: str = ""
    imageUrl: Optional[str] = None
    title: Optional[str] = None
    caption: Optional[str] = None
    uploadedAt: Optional[datetime] = None
    timestamp: Optional[datetime] = None
    uploadedBy: Optional[str] = None

    @property
    def uploaded_time(self) -> float:
        return epoch_seconds(self.uploadedAt or self.timestamp)

    @property
    def display_url(self) -> str:
        return self.imageUrl or photo_placeholder()

    def to_view(self) -> Dict:
        data = self.model_dump(mode="json")
        data["displayUrl"] = self.display_url
        data["fallbackImageUrl"] = image_error_placeholder()
        return data

class PhotoResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    data: Optional[Dict] = None

class PhotoListResponse(BaseModel):
    success: bool
    data: List[Dict]
    total: int
    album_id: str
