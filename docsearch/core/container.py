import logging

from docsearch.core.settings import Settings
from docsearch.models.schema import article_schema
from docsearch.services.ingestion_service import IngestionPipeline
from docsearch.services.schema_manager import SchemaManager
from docsearch.services.search_engine import SearchEngine
from docsearch.services.search_service import SearchService
from docsearch.services.typesense_client import TypesenseClient

logger = logging.getLogger(__name__)


class AppContainer:
    def __init__(self, settings: Settings, engine: SearchEngine | None = None):
        self.settings = settings

        self.engine: SearchEngine = engine if engine is not None else TypesenseClient(settings)
        self.schema = article_schema(settings.collection_name)
        self.schema_manager = SchemaManager(self.engine)
        self.ingestion_pipeline = IngestionPipeline(settings=settings, engine=self.engine)
        self.search_service = SearchService(settings=settings, engine=self.engine, schema=self.schema)

        logger.info(
            "App container initialized",
            extra={
                "typesense_url": settings.typesense_base_url,
                "collection_name": settings.collection_name,
                "ingest_mode": settings.ingest_mode,
                "ingest_concurrency": settings.ingest_concurrency,
                "default_per_page": settings.default_per_page,
                "max_per_page": settings.max_per_page,
            },
        )

    async def close(self) -> None:
        await self.engine.close()
