import logging
import time

from docsearch.core.settings import Settings
from docsearch.models.schema import CollectionSchema
from docsearch.models.search import SearchResultSet
from docsearch.services.query_builder import build_query
from docsearch.services.result_normalizer import normalize_search_response
from docsearch.services.search_engine import SearchEngine

logger = logging.getLogger(__name__)


class SearchService:
    def __init__(self, settings: Settings, engine: SearchEngine, schema: CollectionSchema):
        self.settings = settings
        self.engine = engine
        self.schema = schema

    async def search(
        self,
        free_text: str | None,
        filter_by: str | None = None,
        page: int = 1,
        per_page: int | None = None,
        sort: str | None = None,
        collection_name: str | None = None,
    ) -> SearchResultSet:
        request = build_query(
            free_text,
            filter_by,
            page=page,
            per_page=per_page,
            sort=sort,
            settings=self.settings,
            schema=self.schema,
        )
        collection = collection_name or self.schema.name
        start = time.perf_counter()
        raw = await self.engine.search(collection, request.to_params())
        results = normalize_search_response(raw, page=request.page)
        logger.info(
            "Search completed",
            extra={
                "collection_name": collection,
                "q": request.q,
                "filter_by": request.filter_by,
                "found": results.found,
                "returned": len(results.hits),
                "latency_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return results
