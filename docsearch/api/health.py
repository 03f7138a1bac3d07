from typing import Any

from fastapi import APIRouter, Depends

from docsearch.api.deps import get_container
from docsearch.core.container import AppContainer
from docsearch.core.errors import APIError

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/search-engine")
async def search_engine_health(container: AppContainer = Depends(get_container)) -> dict[str, Any]:
    try:
        health = await container.engine.health()
    except APIError as exc:
        raise APIError(
            "search_engine_unavailable",
            "Search engine connection failed",
            status_code=503,
            details={"cause": exc.message},
        ) from exc
    return {"status": "ok", "search_engine": health}
