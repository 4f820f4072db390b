import io
import os
import pytest
from moto import mock_aws
from fastapi.testclient import TestClient
from PIL import Image
import boto3

# Dummy AWS credentials for moto, set BEFORE importing app modules
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["AWS_REGION"] = "us-east-1"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["DYNAMODB_TABLE"] = "Images"
# Clear the AWS_ENDPOINT_URL so moto mocks are used instead of localstack
os.environ.pop("AWS_ENDPOINT_URL", None)

from image_ingest.main import app
from image_ingest.settings import Settings
from image_ingest.pipeline.config import PipelineConfig
from image_ingest.pipeline.ingest import ImagePipeline
from image_ingest.storage.dynamodb import ImageMetadataStore
from image_ingest.ownership import OwnershipRegistry

OWNER = "owner-1"
STRANGER = "someone-else"


def make_image_bytes(size=(10, 10), fmt="PNG", mode="RGB", color="red"):
    """Generate a simple valid image in-memory."""
    img = Image.new(mode, size, color=color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def png_bytes():
    return make_image_bytes()


@pytest.fixture
def config(tmp_path):
    return PipelineConfig(storage_root=tmp_path / "images")


@pytest.fixture
def pipeline(config):
    return ImagePipeline(config)


@pytest.fixture(scope="function")
def aws_credentials():
    """Mocked AWS Credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"


@pytest.fixture(scope="function")
def dynamodb(aws_credentials):
    with mock_aws():
        resource = boto3.resource("dynamodb", region_name="us-east-1")
        # Entity tables owned by other services
        for name in ("Projects", "Portfolios", "Sections"):
            resource.create_table(
                TableName=name,
                KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
                AttributeDefinitions=[{"AttributeName": "id", "AttributeType": "N"}],
                BillingMode="PAY_PER_REQUEST",
            )
        resource.Table("Projects").put_item(Item={"id": 1, "owner_id": OWNER})
        resource.Table("Portfolios").put_item(Item={"id": 2, "owner_id": OWNER})
        resource.Table("Sections").put_item(Item={"id": 3, "owner_id": STRANGER})
        yield resource


@pytest.fixture(scope="function")
def metadata_store(dynamodb):
    return ImageMetadataStore(Settings(), resource=dynamodb)


@pytest.fixture(scope="function")
def ownership(dynamodb):
    return OwnershipRegistry.from_settings(Settings(), resource=dynamodb)


@pytest.fixture(scope="function")
def test_client(dynamodb, metadata_store, ownership, pipeline):
    with TestClient(app) as client:
        # The lifespan builds its own services; replace them with the test ones
        app.state.db = metadata_store
        app.state.ownership = ownership
        app.state.pipeline = pipeline
        client.headers["X-User-ID"] = OWNER
        yield client
