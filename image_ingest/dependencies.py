from fastapi import Header, Request

from image_ingest.storage.dynamodb import ImageMetadataStore
from image_ingest.ownership import OwnershipRegistry
from image_ingest.pipeline.ingest import ImagePipeline

def get_pipeline(request: Request) -> ImagePipeline:
    """Dependency provider for ImagePipeline"""
    return request.app.state.pipeline

def get_metadata_store(request: Request) -> ImageMetadataStore:
    """Dependency provider for ImageMetadataStore"""
    return request.app.state.db

def get_ownership_registry(request: Request) -> OwnershipRegistry:
    """Dependency provider for OwnershipRegistry"""
    return request.app.state.ownership

def get_current_user_id(x_user_id: str = Header(..., min_length=1)) -> str:
    """Caller identity, resolved upstream and forwarded in X-User-ID."""
    return x_user_id
