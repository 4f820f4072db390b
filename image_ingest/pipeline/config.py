from pathlib import Path
from typing import FrozenSet

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB
MAX_IMAGE_WIDTH = 1920
THUMBNAIL_SIZE = 400
JPEG_QUALITY = 85

ALLOWED_CONTENT_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})

# Pillow plugins permitted to parse upload bytes
DECODER_FORMATS = ("JPEG", "PNG", "WEBP")

class PipelineConfig(BaseModel):
    """
        Limits and storage locations for one ImagePipeline.
        Passed in at construction so tests can vary limits without touching global state.
    """
    model_config = ConfigDict(frozen=True)

    max_file_size: int = Field(MAX_FILE_SIZE, gt=0)
    max_image_width: int = Field(MAX_IMAGE_WIDTH, gt=0)
    thumbnail_size: int = Field(THUMBNAIL_SIZE, gt=0)
    jpeg_quality: int = Field(JPEG_QUALITY, ge=1, le=100)
    png_compress_level: int = Field(9, ge=0, le=9)
    allowed_content_types: FrozenSet[str] = ALLOWED_CONTENT_TYPES
    storage_root: Path = Path("./uploads/images")
    public_prefix: str = "/uploads/images"

    @field_validator("public_prefix")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        v = "/" + v.strip("/")
        return v

    @property
    def original_dir(self) -> Path:
        return self.storage_root / "original"

    @property
    def thumbnail_dir(self) -> Path:
        return self.storage_root / "thumbnail"
