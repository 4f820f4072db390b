import io
import logging
import pytest
from PIL import Image

from image_ingest.pipeline.config import PipelineConfig
from image_ingest.pipeline.ingest import ImagePipeline
from image_ingest.pipeline.storage import DerivativeStorage
from image_ingest.exceptions import (
    FileTooLargeException,
    ImageDecodeException,
    InvalidImageException,
    StorageIOException,
)


def make_upload(size=(2400, 1600), fmt="JPEG", mode="RGB"):
    img = Image.new(mode, size, color="orange")
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    data = buf.getvalue()
    return io.BytesIO(data), len(data)


def stored_files(config):
    if not config.storage_root.exists():
        return []
    return sorted(p.name for p in config.storage_root.rglob("*") if p.is_file())


# ------------------------------
# happy path
# ------------------------------

def test_ingest_large_jpeg(pipeline, config):
    stream, size = make_upload()
    result = pipeline.ingest(stream, size, "image/jpeg", "beach.jpg")

    assert result.url == f"/uploads/images/original/{result.stored_name}"
    assert result.thumbnail_url == f"/uploads/images/thumbnail/{result.stored_name}"
    assert result.stored_name.endswith(".jpg")
    assert result.file_size == size
    assert result.mime_type == "image/jpeg"

    with Image.open(config.original_dir / result.stored_name) as original:
        assert original.format == "JPEG"
        assert original.size == (1920, 1280)
    with Image.open(config.thumbnail_dir / result.stored_name) as thumb:
        assert thumb.size[0] == 400
        assert abs(thumb.size[1] - 267) <= 1


def test_ingest_png_keeps_png(pipeline, config):
    stream, size = make_upload(size=(800, 800), fmt="PNG", mode="RGBA")
    result = pipeline.ingest(stream, size, "image/png", "logo.png")
    with Image.open(config.original_dir / result.stored_name) as original:
        assert original.format == "PNG"
        assert original.size == (800, 800)
    with Image.open(config.thumbnail_dir / result.stored_name) as thumb:
        assert thumb.format == "PNG"
        assert thumb.size == (400, 400)


def test_ingest_webp_stored_as_jpeg(pipeline, config):
    stream, size = make_upload(size=(200, 200), fmt="WEBP")
    result = pipeline.ingest(stream, size, "image/webp", "icon.webp")
    assert result.stored_name.endswith(".webp")
    with Image.open(config.thumbnail_dir / result.stored_name) as thumb:
        assert thumb.format == "JPEG"
        assert thumb.size == (200, 200)


def test_uses_injected_limits(tmp_path):
    config = PipelineConfig(storage_root=tmp_path, max_image_width=100, thumbnail_size=20)
    stream, size = make_upload(size=(300, 150))
    result = ImagePipeline(config).ingest(stream, size, "image/jpeg", "a.jpg")
    with Image.open(config.original_dir / result.stored_name) as original:
        assert original.size == (100, 50)
    with Image.open(config.thumbnail_dir / result.stored_name) as thumb:
        assert thumb.size == (20, 10)


# ------------------------------
# early rejection
# ------------------------------

def test_validation_failure_writes_nothing(pipeline, config):
    stream, size = make_upload()
    with pytest.raises(FileTooLargeException):
        pipeline.ingest(stream, config.max_file_size + 1, "image/jpeg", "big.jpg")
    with pytest.raises(InvalidImageException):
        pipeline.ingest(io.BytesIO(b"hello"), 5, "image/png", "fake.png")
    assert not config.storage_root.exists()


def test_animated_gif_declared_as_jpeg_writes_nothing(pipeline, config):
    frames = [Image.new("RGB", (20, 20), c) for c in ("red", "green")]
    buf = io.BytesIO()
    frames[0].save(buf, format="GIF", save_all=True, append_images=frames[1:])
    with pytest.raises(InvalidImageException):
        pipeline.ingest(io.BytesIO(buf.getvalue()), len(buf.getvalue()), "image/jpeg", "anim.jpg")
    assert not config.storage_root.exists()


def test_overlong_extension_writes_nothing(pipeline, config):
    stream, size = make_upload(size=(50, 50))
    with pytest.raises(InvalidImageException):
        pipeline.ingest(stream, size, "image/jpeg", "a." + "jpg" * 100)
    assert not config.storage_root.exists()


def test_decode_failure_writes_nothing(pipeline, config, mocker):
    mocker.patch(
        "image_ingest.pipeline.ingest.decode_image",
        side_effect=ImageDecodeException("Failed to decode image: boom"),
    )
    stream, size = make_upload(size=(50, 50))
    with pytest.raises(ImageDecodeException):
        pipeline.ingest(stream, size, "image/jpeg", "x.jpg")
    assert stored_files(config) == []


# ------------------------------
# rollback
# ------------------------------

def test_thumbnail_failure_rolls_back_original(pipeline, config, mocker):
    real_persist = DerivativeStorage.persist

    def persist(self, raster, target, image_format):
        if target.parent == config.thumbnail_dir:
            raise StorageIOException("disk full")
        return real_persist(self, raster, target, image_format)

    mocker.patch.object(DerivativeStorage, "persist", persist)
    stream, size = make_upload()
    with pytest.raises(StorageIOException, match="disk full"):
        pipeline.ingest(stream, size, "image/jpeg", "beach.jpg")
    assert stored_files(config) == []


def test_partial_thumbnail_is_removed_too(pipeline, config, mocker):
    real_persist = DerivativeStorage.persist

    def persist(self, raster, target, image_format):
        real_persist(self, raster, target, image_format)
        if target.parent == config.thumbnail_dir:
            raise StorageIOException("write interrupted")

    mocker.patch.object(DerivativeStorage, "persist", persist)
    stream, size = make_upload(size=(500, 500))
    with pytest.raises(StorageIOException):
        pipeline.ingest(stream, size, "image/jpeg", "a.jpg")
    assert stored_files(config) == []


def test_unexpected_error_after_original_rolls_back(pipeline, config, mocker):
    mocker.patch("image_ingest.pipeline.ingest.fit_thumbnail", side_effect=MemoryError())
    stream, size = make_upload(size=(500, 500))
    with pytest.raises(MemoryError):
        pipeline.ingest(stream, size, "image/jpeg", "a.jpg")
    assert stored_files(config) == []


def test_rollback_failure_does_not_mask_original_error(config, mocker):
    sink = mocker.Mock(spec=logging.Logger)
    pipeline = ImagePipeline(config, logger=sink)
    mocker.patch.object(
        DerivativeStorage, "persist", side_effect=StorageIOException("encode failed")
    )
    mocker.patch.object(
        DerivativeStorage, "remove_paths", side_effect=StorageIOException("cannot delete")
    )
    stream, size = make_upload(size=(50, 50))
    with pytest.raises(StorageIOException, match="encode failed"):
        pipeline.ingest(stream, size, "image/jpeg", "a.jpg")
    sink.error.assert_called_once()
    assert "Rollback" in sink.error.call_args.args[0]


# ------------------------------
# remove
# ------------------------------

def test_remove_is_idempotent(pipeline, config):
    stream, size = make_upload(size=(50, 50))
    result = pipeline.ingest(stream, size, "image/jpeg", "a.jpg")
    pipeline.remove(result.url, result.thumbnail_url)
    assert stored_files(config) == []
    pipeline.remove(result.url, result.thumbnail_url)


# ------------------------------
# concurrency
# ------------------------------

def test_parallel_uploads_share_nothing(pipeline, config):
    from concurrent.futures import ThreadPoolExecutor

    def upload(i):
        stream, size = make_upload(size=(600, 300))
        return pipeline.ingest(stream, size, "image/jpeg", "same-name.jpg")

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(upload, range(24)))

    names = {r.stored_name for r in results}
    assert len(names) == 24
    assert len(stored_files(config)) == 48
