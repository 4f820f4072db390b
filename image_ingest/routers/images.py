from fastapi import APIRouter, Depends, UploadFile, File, Form, Query, Response
import os
import logging

from image_ingest.storage.dynamodb import ImageMetadataStore
from image_ingest.ownership import OwnershipRegistry
from image_ingest.pipeline.ingest import ImagePipeline
from image_ingest.dependencies import (
    get_current_user_id,
    get_metadata_store,
    get_ownership_registry,
    get_pipeline,
)
from image_ingest.image_service.service import (
    check_entity_owner,
    fetch_images,
    get_image_meta,
    remove_image,
    save_image_and_meta,
    update_image,
)
from image_ingest.image_service.models import (
    EntityType,
    ImageItem,
    ImageType,
    ListImagesResponse,
    UpdateImageRequest,
)

log = logging.getLogger(__name__)

router = APIRouter(
    prefix="/images",
    tags=["image-ingest-service"]
)

def declared_size(file: UploadFile) -> int:
    if file.size is not None:
        return file.size
    # Fall back to the spooled file's length
    pos = file.file.tell()
    size = file.file.seek(0, os.SEEK_END)
    file.file.seek(pos)
    return size

@router.post("", response_model=ImageItem, status_code=201)
def upload_image(
    response: Response,
    file: UploadFile = File(...),
    entity_type: EntityType = Form(...),
    entity_id: int = Form(..., ge=1),
    image_type: ImageType = Form(..., alias="type"),
    alt: str = Form("", max_length=255),
    is_main: bool = Form(False),
    user_id: str = Depends(get_current_user_id),
    db: ImageMetadataStore = Depends(get_metadata_store),
    pipeline: ImagePipeline = Depends(get_pipeline),
    registry: OwnershipRegistry = Depends(get_ownership_registry),
):
    """Uploads an image, stores its original and thumbnail derivatives and records its metadata."""
    # Add security header
    response.headers["X-Content-Type-Options"] = "nosniff"

    check_entity_owner(registry, entity_type, entity_id, user_id)

    image = save_image_and_meta(
        db=db,
        pipeline=pipeline,
        fileobj=file.file,
        filename=file.filename or "",
        content_type=file.content_type,
        size=declared_size(file),
        owner_id=user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        image_type=image_type,
        alt=alt,
        is_main=is_main,
    )
    return ImageItem(**image.model_dump())

@router.get("", response_model=ListImagesResponse)
def list_images_handler(
    entity_type: EntityType = Query(...),
    entity_id: int = Query(..., ge=1),
    db: ImageMetadataStore = Depends(get_metadata_store),
):
    """Lists the images attached to an entity, main image first."""
    items = fetch_images(db, entity_type, entity_id)
    return ListImagesResponse(images=[ImageItem.model_validate(it) for it in items])

@router.get("/entity/{entity_type}/{entity_id}", response_model=ListImagesResponse)
def list_entity_images(
    entity_type: EntityType,
    entity_id: int,
    db: ImageMetadataStore = Depends(get_metadata_store),
):
    """Public listing of an entity's images."""
    items = fetch_images(db, entity_type, entity_id)
    return ListImagesResponse(images=[ImageItem.model_validate(it) for it in items])

@router.get("/{image_id}", response_model=ImageItem)
def get_image(
    image_id: str,
    db: ImageMetadataStore = Depends(get_metadata_store),
):
    """Gets image metadata."""
    return ImageItem.model_validate(get_image_meta(db, image_id))

@router.patch("/{image_id}", response_model=ImageItem)
def patch_image(
    image_id: str,
    changes: UpdateImageRequest,
    user_id: str = Depends(get_current_user_id),
    db: ImageMetadataStore = Depends(get_metadata_store),
):
    """Updates alt text, main flag or type of an image the caller owns."""
    image = update_image(db, image_id, user_id, changes)
    return ImageItem(**image.model_dump())

@router.delete("/{image_id}", status_code=204)
def delete_image(
    image_id: str,
    user_id: str = Depends(get_current_user_id),
    db: ImageMetadataStore = Depends(get_metadata_store),
    pipeline: ImagePipeline = Depends(get_pipeline),
):
    """Deletes an image record and its derivative files."""
    warnings = remove_image(db, pipeline, image_id, user_id)
    if warnings:
        log.warning("Image %s deleted with warnings: %s", image_id, warnings)
    return Response(status_code=204)
