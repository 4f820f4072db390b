import os
import logging
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Callable, Dict, List, Optional

from PIL import Image

from image_ingest.pipeline.config import PipelineConfig
from image_ingest.pipeline.processing import ImageFormat
from image_ingest.exceptions import StorageIOException

log = logging.getLogger(__name__)

ORIGINAL = "original"
THUMBNAIL = "thumbnail"

JPEG_MODES = {"L", "RGB", "CMYK"}

# -------------------------
# Encoders
# -------------------------
def encode_jpeg(raster: Image.Image, fp: BinaryIO, config: PipelineConfig):
    if raster.mode not in JPEG_MODES:
        raster = raster.convert("RGB")
    raster.save(fp, format="JPEG", quality=config.jpeg_quality, optimize=True)

def encode_png(raster: Image.Image, fp: BinaryIO, config: PipelineConfig):
    raster.save(fp, format="PNG", compress_level=config.png_compress_level)

ENCODERS: Dict[ImageFormat, Callable[[Image.Image, BinaryIO, PipelineConfig], None]] = {
    ImageFormat.JPEG: encode_jpeg,
    ImageFormat.PNG: encode_png,
    ImageFormat.OTHER: encode_jpeg,
}

# -------------------------
# Derivative Storage
# -------------------------
class DerivativeStorage:
    """
        Writes and removes derivative files under <storage_root>/original and
        <storage_root>/thumbnail, and maps them to root-relative references
        (<public_prefix>/original/<name>) handed to the metadata layer.
    """
    def __init__(self, config: PipelineConfig):
        self.config = config
        self.dirs = {
            ORIGINAL: config.original_dir,
            THUMBNAIL: config.thumbnail_dir,
        }

    def original_path(self, name: str) -> Path:
        return self.dirs[ORIGINAL] / name

    def thumbnail_path(self, name: str) -> Path:
        return self.dirs[THUMBNAIL] / name

    def persist(self, raster: Image.Image, target: Path, image_format: ImageFormat):
        """Encodes raster into target, creating the parent directory if needed."""
        encoder = ENCODERS[image_format]
        try:
            os.makedirs(target.parent, exist_ok=True)
            with open(target, "wb") as fp:
                encoder(raster, fp, self.config)
        except (OSError, ValueError) as e:
            log.error("Failed to write %s: %s", target, e)
            raise StorageIOException(f"Failed to save image {target.name}: {e}") from e
        log.debug("Wrote %s (%s, %dx%d)", target, image_format.value, raster.width, raster.height)

    def to_url(self, path: Path) -> str:
        kind = path.parent.name
        return f"{self.config.public_prefix.rstrip('/')}/{kind}/{path.name}"

    def to_path(self, url: str) -> Path:
        """Maps a root-relative reference back to a filesystem path."""
        prefix = self.config.public_prefix.rstrip("/") + "/"
        if not url or not url.startswith(prefix):
            raise StorageIOException(f"Unrecognized image reference: {url}")
        parts = PurePosixPath(url[len(prefix):]).parts
        if len(parts) != 2 or parts[0] not in self.dirs or parts[1] in ("", ".", ".."):
            raise StorageIOException(f"Unrecognized image reference: {url}")
        return self.dirs[parts[0]] / parts[1]

    def remove_paths(self, *paths: Path):
        """
            Deletes each path independently. A missing file counts as removed.
            Every path is attempted; the first hard error is raised afterwards.
        """
        errors: List[OSError] = []
        for path in paths:
            try:
                os.remove(path)
                log.debug("Deleted %s", path)
            except FileNotFoundError:
                continue
            except OSError as e:
                log.error("Failed to delete %s: %s", path, e)
                errors.append(e)
        if errors:
            raise StorageIOException(f"Failed to delete image file: {errors[0]}") from errors[0]

    def remove(self, original_url: str, thumbnail_url: Optional[str]):
        """Deletes both derivatives referenced by a metadata record. Idempotent."""
        paths: List[Path] = []
        bad_reference: Optional[StorageIOException] = None
        for url in (original_url, thumbnail_url):
            if not url:
                continue
            try:
                paths.append(self.to_path(url))
            except StorageIOException as e:
                bad_reference = bad_reference or e
        self.remove_paths(*paths)
        if bad_reference:
            raise bad_reference
