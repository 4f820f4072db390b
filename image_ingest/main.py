from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
import uvicorn
import logging

from image_ingest.storage.dynamodb import ImageMetadataStore, dynamodb_resource
from image_ingest.ownership import OwnershipRegistry
from image_ingest.pipeline.ingest import ImagePipeline
from image_ingest.settings import settings
from image_ingest.routers.images import router as image_router
from image_ingest.exceptions import add_exception_handlers

logging.basicConfig(level=settings.log_level)
log = logging.getLogger("image-ingest")

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
        Async context manager for FastAPI application lifecycle events.
        Builds the pipeline and the DynamoDB-backed stores for the application.
    """
    # Initialize resources
    resource = dynamodb_resource(settings)
    app.state.pipeline = ImagePipeline(settings.pipeline_config(), logger=log)
    app.state.db = ImageMetadataStore(settings, resource=resource)
    app.state.ownership = OwnershipRegistry.from_settings(settings, resource=resource)
    yield
    # Cleanup resources
    app.state.db.close()

# Initialize App
app = FastAPI(
    title=settings.app_title,
    lifespan=lifespan,
    description="Image Ingest Service",
    root_path = "/api/v1"
)

# Add exception handlers
add_exception_handlers(app)

# CORS - Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=['*'],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add the routers
app.include_router(image_router)

# Derivatives are served read-only under their public prefix
app.mount(
    settings.pipeline_config().public_prefix,
    StaticFiles(directory=settings.storage_root, check_dir=False),
    name="uploads",
)

# Check Health
@app.get("/")
def read_root():
    """
        Default end point

    """
    return "Image Ingest Service is running."

if __name__ == "__main__":
    uvicorn.run("image_ingest.main:app", host="0.0.0.0", port=8000, reload=True)
