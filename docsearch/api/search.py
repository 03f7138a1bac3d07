from typing import Any

from fastapi import APIRouter, Depends, Query

from docsearch.api.deps import get_container
from docsearch.core.container import AppContainer
from docsearch.core.errors import APIError, InvalidSearchRequest
from docsearch.models.search import SearchResponse
from docsearch.services.query_builder import SORT_OPTIONS

router = APIRouter(prefix="/api", tags=["search"])


@router.get("")
async def describe_api() -> dict[str, Any]:
    return {
        "message": "Docsearch API is running",
        "version": "1.0.0",
        "endpoints": {
            "health": "/health/live",
            "searchEngineHealth": "/health/search-engine",
            "api": "/api",
            "search": "/api/search",
            "ingest": "/v1/ingest",
        },
        "sort_options": sorted(SORT_OPTIONS),
    }


@router.get("/search", response_model=SearchResponse)
async def search_documents(
    q: str = Query(default="*", max_length=500),
    filter_by: str | None = Query(default=None, max_length=1000),
    sort: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    per_page: int | None = Query(default=None, ge=1),
    container: AppContainer = Depends(get_container),
) -> SearchResponse:
    try:
        results = await container.search_service.search(q, filter_by, page=page, per_page=per_page, sort=sort)
    except InvalidSearchRequest:
        raise
    except APIError as exc:
        raise APIError("search_failed", exc.message, status_code=500, details={"cause": exc.code, **exc.details}) from exc
    return SearchResponse(results=results, query=q)
