"""
    Entity ownership lookups used before attaching images to an entity.

    Each entity kind has its own checker reading the owning service's table.
    The registry resolves an EntityType to its checker.
"""
from typing import Dict, Protocol
import logging

from botocore.exceptions import ClientError

from image_ingest.image_service.models import EntityType
from image_ingest.settings import Settings
from image_ingest.storage.dynamodb import dynamodb_resource

log = logging.getLogger(__name__)

class EntityOwnershipChecker(Protocol):
    def is_owner(self, entity_id: int, owner_id: str) -> bool:
        ...

class DynamoDBOwnershipChecker:
    """Reads the owner_id of an entity keyed by numeric id."""
    entity_type: EntityType

    def __init__(self, resource, table_name: str):
        self.resource = resource
        self.table_name = table_name

    def is_owner(self, entity_id: int, owner_id: str) -> bool:
        try:
            resp = self.resource.Table(self.table_name).get_item(Key={"id": entity_id})
        except ClientError as e:
            log.error("Ownership lookup on %s failed: %s", self.table_name, e)
            raise
        item = resp.get("Item")
        if not item:
            log.debug("%s %s not found", self.entity_type.value, entity_id)
            return False
        return item.get("owner_id") == owner_id

class ProjectOwnershipChecker(DynamoDBOwnershipChecker):
    entity_type = EntityType.PROJECT

class PortfolioOwnershipChecker(DynamoDBOwnershipChecker):
    entity_type = EntityType.PORTFOLIO

class SectionOwnershipChecker(DynamoDBOwnershipChecker):
    entity_type = EntityType.SECTION

class OwnershipRegistry:
    def __init__(self, checkers: Dict[EntityType, EntityOwnershipChecker]):
        self.checkers = dict(checkers)

    @classmethod
    def from_settings(cls, settings: Settings, resource=None) -> "OwnershipRegistry":
        resource = resource or dynamodb_resource(settings)
        return cls({
            EntityType.PROJECT: ProjectOwnershipChecker(resource, settings.projects_table),
            EntityType.PORTFOLIO: PortfolioOwnershipChecker(resource, settings.portfolios_table),
            EntityType.SECTION: SectionOwnershipChecker(resource, settings.sections_table),
        })

    def is_owner(self, entity_type: EntityType, entity_id: int, owner_id: str) -> bool:
        checker = self.checkers.get(EntityType(entity_type))
        if checker is None:
            return False
        return checker.is_owner(entity_id, owner_id)
