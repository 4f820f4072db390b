import hashlib
import ntpath
import os
import time

from image_ingest.exceptions import InvalidImageException

TOKEN_LENGTH = 12
MAX_EXTENSION_LENGTH = 16

def allocate_filename(original_filename: str) -> str:
    """
        Generates a unique derivative filename: <timestamp_ns>_<token><ext>.

        The token is a truncated SHA-256 of the client filename, the timestamp and a
        per-call random salt, so calls landing on the same clock tick still differ.
        No counter or lock is shared between callers.

        Raises InvalidImageException when the client extension is longer than
        MAX_EXTENSION_LENGTH characters (dot included).
    """
    # Client filenames may carry either separator style
    basename = ntpath.basename(original_filename or "")
    ext = os.path.splitext(basename)[1]
    if len(ext) > MAX_EXTENSION_LENGTH:
        raise InvalidImageException(f"File extension too long ({len(ext)} > {MAX_EXTENSION_LENGTH})")
    timestamp = time.time_ns()

    digest = hashlib.sha256()
    digest.update(f"{original_filename}{timestamp}".encode("utf-8"))
    digest.update(os.urandom(8))
    token = digest.hexdigest()[:TOKEN_LENGTH]

    return f"{timestamp}_{token}{ext}"
