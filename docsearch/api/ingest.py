from fastapi import APIRouter, Depends

from docsearch.api.deps import get_container
from docsearch.core.container import AppContainer
from docsearch.models.ingest import IngestRequest, IngestResponse

router = APIRouter(prefix="/v1", tags=["ingestion"])


@router.post("/ingest", response_model=IngestResponse)
async def ingest_documents(payload: IngestRequest, container: AppContainer = Depends(get_container)) -> IngestResponse:
    report = await container.ingestion_pipeline.ingest(payload.lines, collection_name=payload.collection_name)
    return IngestResponse(
        collection_name=report.collection_name,
        lines_seen=report.lines_seen,
        succeeded=report.succeeded,
        failed=report.failed,
        skipped_blank=report.skipped_blank,
        verified_count=report.verified_count,
        duration_ms=report.duration_ms,
        errors=report.rejections,
    )
