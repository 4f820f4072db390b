from typing import List, Optional
from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, Field
from uuid import uuid4

def new_image_id() -> str:
    """Generates a new unique image ID."""
    return str(uuid4())

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class EntityType(str, Enum):
    PROJECT = "project"
    PORTFOLIO = "portfolio"
    SECTION = "section"

class ImageType(str, Enum):
    PHOTO = "photo"
    IMAGE = "image"
    ICON = "icon"
    LOGO = "logo"
    BANNER = "banner"
    AVATAR = "avatar"
    BACKGROUND = "background"

class ImageMeta(BaseModel):
    image_id: str = Field(default_factory=new_image_id)
    url: str
    thumbnail_url: str
    file_name: str
    file_size: int
    mime_type: str
    alt: str = Field("", max_length=255)
    owner_id: str
    type: ImageType
    entity_id: int
    entity_type: EntityType
    is_main: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

class ImageItem(BaseModel):
    image_id: str
    url: str
    thumbnail_url: str
    file_name: str
    file_size: int
    mime_type: str
    alt: str
    type: ImageType
    entity_id: int
    entity_type: EntityType
    is_main: bool
    created_at: datetime
    updated_at: datetime

class UpdateImageRequest(BaseModel):
    alt: Optional[str] = Field(None, max_length=255)
    is_main: Optional[bool] = None
    type: Optional[ImageType] = None

class ListImagesResponse(BaseModel):
    images: List[ImageItem]
