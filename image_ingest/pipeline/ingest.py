from enum import Enum
from typing import BinaryIO, Optional
import logging

from pydantic import BaseModel

from image_ingest.pipeline.config import PipelineConfig
from image_ingest.pipeline.naming import allocate_filename
from image_ingest.pipeline.processing import decode_image, fit_thumbnail, optimize_image
from image_ingest.pipeline.storage import DerivativeStorage
from image_ingest.pipeline.validator import validate_upload

log = logging.getLogger(__name__)

class UploadStage(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    ALLOCATED = "allocated"
    DECODED = "decoded"
    OPTIMIZED = "optimized"
    ORIGINAL_PERSISTED = "original_persisted"
    THUMBNAIL_PERSISTED = "thumbnail_persisted"
    COMPLETE = "complete"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"

class IngestResult(BaseModel):
    """What a successful upload hands to the metadata layer."""
    url: str
    thumbnail_url: str
    file_size: int
    mime_type: str
    stored_name: str

class ImagePipeline:
    """
        Turns one uploaded byte stream into an optimized original and a thumbnail.

        Runs synchronously in the caller's thread and keeps no per-upload state on
        the instance, so one pipeline can serve concurrent requests.
    """
    def __init__(self, config: PipelineConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.storage = DerivativeStorage(config)
        self.log = logger or log

    def ingest(
        self,
        stream: BinaryIO,
        declared_size: int,
        content_type: Optional[str],
        filename: str,
    ) -> IngestResult:
        stage = UploadStage.RECEIVED
        validate_upload(stream, declared_size, content_type, self.config)
        stage = UploadStage.VALIDATED

        name = allocate_filename(filename)
        stage = UploadStage.ALLOCATED
        original_path = self.storage.original_path(name)
        thumbnail_path = self.storage.thumbnail_path(name)

        try:
            decoded = decode_image(stream)
            stage = UploadStage.DECODED

            optimized = optimize_image(decoded.raster, self.config.max_image_width)
            stage = UploadStage.OPTIMIZED

            self.storage.persist(optimized, original_path, decoded.format)
            stage = UploadStage.ORIGINAL_PERSISTED

            thumbnail = fit_thumbnail(optimized, self.config.thumbnail_size)
            self.storage.persist(thumbnail, thumbnail_path, decoded.format)
            stage = UploadStage.THUMBNAIL_PERSISTED
        except Exception as e:
            outcome = self._rollback(name, original_path, thumbnail_path)
            self.log.warning(
                "Upload of %s failed after stage %s (%s): %s", name, stage.value, outcome.value, e
            )
            raise

        stage = UploadStage.COMPLETE
        self.log.info("Stored derivatives for %s as %s (%s)", filename, name, stage.value)
        return IngestResult(
            url=self.storage.to_url(original_path),
            thumbnail_url=self.storage.to_url(thumbnail_path),
            file_size=declared_size,
            mime_type=content_type,
            stored_name=name,
        )

    def _rollback(self, name: str, *paths):
        # Advisory only: a failure here must not replace the error being propagated
        try:
            self.storage.remove_paths(*paths)
        except Exception as e:
            self.log.error("Rollback of %s incomplete: %s", name, e)
            return UploadStage.FAILED
        self.log.info("Rolled back derivatives for %s", name)
        return UploadStage.ROLLED_BACK

    def remove(self, original_url: str, thumbnail_url: Optional[str]):
        """Deletes both derivatives of a stored image. Raises StorageIOException on hard errors."""
        self.storage.remove(original_url, thumbnail_url)
        self.log.info("Removed derivatives %s, %s", original_url, thumbnail_url)
