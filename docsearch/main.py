from contextlib import asynccontextmanager

from fastapi import FastAPI

from docsearch.api.health import router as health_router
from docsearch.api.ingest import router as ingest_router
from docsearch.api.search import router as search_router
from docsearch.core.container import AppContainer
from docsearch.core.errors import register_error_handlers
from docsearch.core.logging import configure_logging
from docsearch.core.rate_limit import RateLimitMiddleware
from docsearch.core.settings import get_settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)
    app.state.settings = settings
    app.state.container = AppContainer(settings)
    yield
    await app.state.container.close()


app = FastAPI(title="Docsearch API", version="1.0.0", lifespan=lifespan)

settings = get_settings()
app.add_middleware(RateLimitMiddleware, settings=settings)
register_error_handlers(app)

app.include_router(health_router)
app.include_router(search_router)
app.include_router(ingest_router)
