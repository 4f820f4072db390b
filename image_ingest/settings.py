from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional

from image_ingest.pipeline.config import PipelineConfig

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="allow",  # tolerate unknown vars if needed
    )

    # Pipeline limits
    max_file_size: int = Field(10 * 1024 * 1024, description="Upload size limit in bytes")
    max_image_width: int = Field(1920)
    thumbnail_size: int = Field(400)
    jpeg_quality: int = Field(85, ge=1, le=100)
    png_compress_level: int = Field(9, ge=0, le=9)
    allowed_content_types: str = Field("image/jpeg,image/png,image/webp", description="Comma separated")

    # Derivative storage
    storage_root: str = Field("./uploads/images")
    public_prefix: str = Field("/uploads/images")

    # Metadata store
    aws_region: str = Field("us-east-1")
    aws_endpoint_url: Optional[str] = Field(None)
    aws_access_key_id: str = Field("test")
    aws_secret_access_key: str = Field("test")
    dynamodb_table: str = Field("Images")

    # Entity tables consulted for ownership checks
    projects_table: str = Field("Projects")
    portfolios_table: str = Field("Portfolios")
    sections_table: str = Field("Sections")

    app_title: str = Field("Image Ingest Service")
    log_level: str = Field("INFO")

    def pipeline_config(self) -> PipelineConfig:
        """Builds the immutable pipeline configuration from these settings."""
        return PipelineConfig(
            max_file_size=self.max_file_size,
            max_image_width=self.max_image_width,
            thumbnail_size=self.thumbnail_size,
            jpeg_quality=self.jpeg_quality,
            png_compress_level=self.png_compress_level,
            allowed_content_types=frozenset(
                t.strip() for t in self.allowed_content_types.split(",") if t.strip()
            ),
            storage_root=self.storage_root,
            public_prefix=self.public_prefix,
        )

settings = Settings()
