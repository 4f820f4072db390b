from typing import BinaryIO, List, Dict, Any, Optional
import logging
from botocore.exceptions import BotoCoreError, ClientError

from image_ingest.storage.dynamodb import ImageMetadataStore
from image_ingest.image_service.models import (
    EntityType,
    ImageMeta,
    ImageType,
    UpdateImageRequest,
    utcnow,
)
from image_ingest.ownership import OwnershipRegistry
from image_ingest.pipeline.ingest import ImagePipeline
from image_ingest.exceptions import (
    EntityAccessDeniedException,
    ImageNotFoundException,
    MetadataStoreException,
    StorageIOException,
)

log = logging.getLogger(__name__)

def to_item(image: ImageMeta) -> Dict[str, Any]:
    item = image.model_dump(mode="json")
    # Dynamo keeps numbers as numbers for the entity filter
    item["entity_id"] = image.entity_id
    item["file_size"] = image.file_size
    return item

def check_entity_owner(
    registry: OwnershipRegistry,
    entity_type: EntityType,
    entity_id: int,
    owner_id: str,
):
    """Raises EntityAccessDeniedException unless owner_id owns the entity."""
    try:
        allowed = registry.is_owner(entity_type, entity_id, owner_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"Ownership lookup failed: {e}")
        raise MetadataStoreException(f"Failed to verify entity ownership: {e}")
    if not allowed:
        raise EntityAccessDeniedException(EntityType(entity_type).value, entity_id)

def save_image_and_meta(
    db: ImageMetadataStore,
    pipeline: ImagePipeline,
    fileobj: BinaryIO,
    filename: str,
    content_type: Optional[str],
    size: int,
    owner_id: str,
    entity_type: EntityType,
    entity_id: int,
    image_type: ImageType,
    alt: str = "",
    is_main: bool = False,
) -> ImageMeta:
    """Stores the derivatives and then the metadata record that references them."""
    result = pipeline.ingest(fileobj, size, content_type, filename)

    image = ImageMeta(
        url=result.url,
        thumbnail_url=result.thumbnail_url,
        file_name=filename,
        file_size=result.file_size,
        mime_type=result.mime_type,
        alt=alt or "",
        owner_id=owner_id,
        type=image_type,
        entity_id=entity_id,
        entity_type=entity_type,
        is_main=is_main,
    )

    # persist metadata in dynamodb
    try:
        db.put_metadata(to_item(image))
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB put_metadata failed: {e}")
        # no record will reference these files
        try:
            pipeline.remove(result.url, result.thumbnail_url)
        except StorageIOException as cleanup_error:
            log.error(f"Failed to delete image files after DB error: {cleanup_error}")
        raise MetadataStoreException(f"Failed to save image metadata: {e}")

    log.info("Saved image metadata %s", image.image_id)
    return image

def fetch_images(db: ImageMetadataStore, entity_type: EntityType, entity_id: int) -> List[Dict[str, Any]]:
    """Fetches the images attached to one entity."""
    try:
        return db.list_by_entity(EntityType(entity_type).value, entity_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB fetch_images failed: {e}")
        raise MetadataStoreException(f"Failed to fetch images: {e}")

def get_image_meta(db: ImageMetadataStore, image_id: str) -> Dict[str, Any]:
    """Gets image metadata from DynamoDB."""
    try:
        item = db.get_metadata(image_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB get_image_meta failed: {e}")
        raise MetadataStoreException(f"Failed to get image metadata: {e}")
    if not item:
        raise ImageNotFoundException(image_id)
    return item

def get_owned_image(db: ImageMetadataStore, image_id: str, owner_id: str) -> ImageMeta:
    image = ImageMeta.model_validate(get_image_meta(db, image_id))
    if image.owner_id != owner_id:
        log.warning("User %s denied access to image %s owned by %s", owner_id, image_id, image.owner_id)
        raise EntityAccessDeniedException("image", image_id)
    return image

def update_image(
    db: ImageMetadataStore,
    image_id: str,
    owner_id: str,
    changes: UpdateImageRequest,
) -> ImageMeta:
    """Updates alt text, main flag or type. Derivatives are left untouched."""
    image = get_owned_image(db, image_id, owner_id)

    updates = changes.model_dump(exclude_none=True)
    # empty alt means "not provided"
    if updates.get("alt") == "":
        updates.pop("alt")
    updates = {k: v for k, v in updates.items() if getattr(image, k) != v}
    if not updates:
        return image

    image = image.model_copy(update={**updates, "updated_at": utcnow()})
    try:
        db.put_metadata(to_item(image))
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB update failed: {e}")
        raise MetadataStoreException(f"Failed to update image: {e}")

    log.info("Updated image %s: %s", image_id, sorted(updates))
    return image

def remove_image(
    db: ImageMetadataStore,
    pipeline: ImagePipeline,
    image_id: str,
    owner_id: str,
) -> List[str]:
    """
        Removes the metadata record, then both derivative files.

        File removal is best effort: its failure does not undo the record deletion
        and is returned as a warning instead of raised.
    """
    image = get_owned_image(db, image_id, owner_id)

    try:
        db.delete_metadata(image_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB delete_metadata failed: {e}")
        raise MetadataStoreException(f"Failed to delete image metadata: {e}")

    warnings: List[str] = []
    try:
        pipeline.remove(image.url, image.thumbnail_url)
    except StorageIOException as e:
        log.warning("Failed to delete image files for %s: %s", image_id, e.detail)
        warnings.append(e.detail)
    return warnings
