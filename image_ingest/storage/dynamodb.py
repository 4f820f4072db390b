import boto3
from typing import Optional, Dict, Any, List
from botocore.exceptions import ClientError
from boto3.dynamodb.conditions import Attr
import logging

from image_ingest.settings import Settings

log = logging.getLogger(__name__)

def dynamodb_resource(settings: Settings):
    session = boto3.session.Session(region_name=settings.aws_region)
    kwargs = {
        "aws_access_key_id": settings.aws_access_key_id,
        "aws_secret_access_key": settings.aws_secret_access_key,
    }
    if settings.aws_endpoint_url:
        kwargs["endpoint_url"] = settings.aws_endpoint_url
    return session.resource("dynamodb", **kwargs)

# -------------------------
# Image Metadata Store
# -------------------------
class ImageMetadataStore:
    def __init__(self, settings: Settings, resource=None):
        self.table_name = settings.dynamodb_table
        self.resource = resource or dynamodb_resource(settings)
        log.info("Initialized DynamoDB resource")

        # Ensure table exists at initialization
        self.ensure_table()

    # Refer here: https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/dynamodb/client/create_table.html
    def ensure_table(self):
        try:
            table = self.resource.Table(self.table_name)
            table.load()
        except ClientError:
            table = self.resource.create_table(
                TableName=self.table_name,
                KeySchema=[{"AttributeName": "image_id", "KeyType": "HASH"}],
                AttributeDefinitions=[
                    {"AttributeName": "image_id", "AttributeType": "S"},
                ],
                BillingMode="PAY_PER_REQUEST",
            )
            table.wait_until_exists()
            log.info("Created table %s", self.table_name)

    @property
    def table(self):
        return self.resource.Table(self.table_name)

    def put_metadata(self, item: Dict[str, Any]):
        self.table.put_item(Item=item)
        log.debug("Inserted metadata %s", item.get("image_id"))

    def get_metadata(self, image_id: str) -> Optional[Dict[str, Any]]:
        resp = self.table.get_item(Key={"image_id": image_id})
        return resp.get("Item")

    def delete_metadata(self, image_id: str):
        self.table.delete_item(Key={"image_id": image_id})
        log.debug("Deleted metadata %s", image_id)

    def list_by_entity(self, entity_type: str, entity_id: int) -> List[Dict[str, Any]]:
        """Main image first, then oldest first."""
        scan_kwargs = {
            "FilterExpression": Attr("entity_type").eq(entity_type) & Attr("entity_id").eq(entity_id),
        }
        items: List[Dict[str, Any]] = []
        while True:
            resp = self.table.scan(**scan_kwargs)
            items.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            scan_kwargs["ExclusiveStartKey"] = last_key
        items.sort(key=lambda it: it.get("created_at", ""))
        items.sort(key=lambda it: bool(it.get("is_main")), reverse=True)
        return items

    def close(self):
        log.info("Closed DynamoDB resource")
