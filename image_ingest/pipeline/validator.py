from typing import BinaryIO, Optional
import logging

from PIL import Image

from image_ingest.pipeline.config import DECODER_FORMATS, PipelineConfig
from image_ingest.exceptions import (
    FileTooLargeException,
    InvalidImageException,
    UnsupportedImageTypeException,
)

log = logging.getLogger(__name__)

def validate_upload(
    stream: BinaryIO,
    declared_size: int,
    declared_content_type: Optional[str],
    config: PipelineConfig,
) -> str:
    """
        Rejects oversized, disallowed or unparseable uploads before any work is done.

        Size and content type are checked before a single byte is read. The image
        header is then probed (Image.open is lazy and does not load pixel data) and
        the stream is rewound to offset 0 for the decoder.

        Returns the format name Pillow detected in the header.
    """
    if declared_size > config.max_file_size:
        raise FileTooLargeException(declared_size, config.max_file_size)

    if declared_content_type not in config.allowed_content_types:
        raise UnsupportedImageTypeException(str(declared_content_type))

    try:
        stream.seek(0)
        with Image.open(stream, formats=DECODER_FORMATS) as img:
            detected = img.format
            width, height = img.size
    except Exception as e:
        raise InvalidImageException(f"Invalid image file: {e}") from e
    finally:
        stream.seek(0)

    log.debug("Validated %s upload (%dx%d, %d bytes)", detected, width, height, declared_size)
    return detected
