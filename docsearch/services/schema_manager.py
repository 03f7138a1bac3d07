import logging
from typing import Any

from docsearch.core.errors import APIError, CollectionNotFoundError, SchemaProvisionError
from docsearch.models.schema import CollectionSchema
from docsearch.services.search_engine import SearchEngine

logger = logging.getLogger(__name__)


class SchemaManager:
    """Creates collections from a schema, replacing any existing one.

    Provisioning drops every document in an existing collection of the same
    name. It must not run while ingestion or queries target that collection;
    callers are responsible for serializing it against them.
    """

    def __init__(self, engine: SearchEngine):
        self.engine = engine

    async def provision(self, schema: CollectionSchema) -> dict[str, Any]:
        name = schema.name
        try:
            await self.engine.retrieve_collection(name)
            exists = True
        except CollectionNotFoundError:
            exists = False
        except APIError as exc:
            raise SchemaProvisionError(name, "retrieve", exc) from exc

        if exists:
            logger.info("Collection exists, deleting before recreate", extra={"collection_name": name})
            try:
                await self.engine.delete_collection(name)
            except APIError as exc:
                raise SchemaProvisionError(name, "delete", exc) from exc

        try:
            created = await self.engine.create_collection(schema.to_engine_payload())
        except APIError as exc:
            raise SchemaProvisionError(name, "create", exc) from exc

        logger.info(
            "Collection provisioned",
            extra={"collection_name": name, "replaced": exists, "fields": schema.field_names},
        )
        return created

    async def describe(self, name: str) -> dict[str, Any]:
        return await self.engine.retrieve_collection(name)
