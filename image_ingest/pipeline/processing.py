from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Tuple
import logging

from PIL import Image

from image_ingest.pipeline.config import DECODER_FORMATS, MAX_IMAGE_WIDTH, THUMBNAIL_SIZE
from image_ingest.exceptions import ImageDecodeException

log = logging.getLogger(__name__)

RESAMPLE_FILTER = Image.Resampling.LANCZOS

class ImageFormat(str, Enum):
    """Encoder selection for derivatives. Anything that is not JPEG or PNG is OTHER."""
    JPEG = "jpeg"
    PNG = "png"
    OTHER = "other"

    @classmethod
    def from_pil(cls, pil_format) -> "ImageFormat":
        name = (pil_format or "").lower()
        if name in ("jpeg", "jpg", "mpo"):
            return cls.JPEG
        if name == "png":
            return cls.PNG
        return cls.OTHER

@dataclass
class DecodedImage:
    raster: Image.Image
    format: ImageFormat

def decode_image(stream: BinaryIO) -> DecodedImage:
    """Fully decodes the stream (pixel data included) into a raster."""
    try:
        img = Image.open(stream, formats=DECODER_FORMATS)
        img.load()
    except Exception as e:
        raise ImageDecodeException(f"Failed to decode image: {e}") from e
    image_format = ImageFormat.from_pil(img.format)
    log.debug("Decoded %s image %dx%d mode=%s", img.format, img.width, img.height, img.mode)
    return DecodedImage(raster=img, format=image_format)

def _scaled(length: int, numerator: int, denominator: int) -> int:
    # round half up, never collapse to zero
    return max(1, int(length * numerator / denominator + 0.5))

def _resize(raster: Image.Image, size: Tuple[int, int]) -> Image.Image:
    # Pillow silently drops to nearest-neighbour for palette and bilevel images
    if raster.mode in ("1", "P"):
        has_alpha = raster.mode == "P" and "transparency" in raster.info
        raster = raster.convert("RGBA" if has_alpha else "RGB")
    return raster.resize(size, RESAMPLE_FILTER)

def optimize_image(raster: Image.Image, max_width: int = MAX_IMAGE_WIDTH) -> Image.Image:
    """
        Bounds the raster to max_width, preserving aspect ratio.

        Only width is bounded. Rasters already within the limit are returned as-is,
        without a copy.
    """
    width, height = raster.size
    if width <= max_width:
        return raster
    new_size = (max_width, _scaled(height, max_width, width))
    log.debug("Optimizing %dx%d -> %dx%d", width, height, *new_size)
    return _resize(raster, new_size)

def fit_dimensions(width: int, height: int, box_size: int) -> Tuple[int, int]:
    if width <= box_size and height <= box_size:
        return width, height
    if width >= height:
        return box_size, _scaled(height, box_size, width)
    return _scaled(width, box_size, height), box_size

def fit_thumbnail(raster: Image.Image, box_size: int = THUMBNAIL_SIZE) -> Image.Image:
    """Scales the longer side down to box_size. Never enlarges."""
    new_size = fit_dimensions(raster.width, raster.height, box_size)
    if new_size == raster.size:
        return raster
    return _resize(raster, new_size)
