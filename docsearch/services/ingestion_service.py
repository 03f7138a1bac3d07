import asyncio
import logging
import time
from collections.abc import AsyncIterable, AsyncIterator, Iterable
from pathlib import Path

from docsearch.core.errors import APIError, DocumentConflictError, SourceNotFoundError
from docsearch.core.settings import Settings
from docsearch.models.document import Document
from docsearch.models.ingest import Imported, IngestionReport, Rejected, RejectionKind, truncate_raw
from docsearch.services.record_decoder import decode_record
from docsearch.services.search_engine import SearchEngine

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 10

Outcome = Imported | Rejected
# (line number, raw line, decoded record); decoded is None for blank lines
_Entry = tuple[int, str, Document | Rejected | None]


async def _numbered(lines: Iterable[str] | AsyncIterable[str]) -> AsyncIterator[tuple[int, str]]:
    if isinstance(lines, AsyncIterable):
        line_number = 0
        async for line in lines:
            line_number += 1
            yield line_number, line.rstrip("\r\n")
        return
    for line_number, line in enumerate(lines, start=1):
        yield line_number, line.rstrip("\r\n")


class IngestionPipeline:
    """Loads newline-delimited JSON documents into a collection.

    Each line is decoded on its own and a bad line only produces a rejection
    in the report; the run carries on with the next line. Lines are handled in
    windows of ``ingest_concurrency`` records. Submissions inside a window may
    run concurrently, but outcomes always land in the report in line order.
    """

    def __init__(self, settings: Settings, engine: SearchEngine):
        self.settings = settings
        self.engine = engine

    async def ingest_file(
        self,
        path: str | Path,
        collection_name: str | None = None,
        report: IngestionReport | None = None,
    ) -> IngestionReport:
        source = Path(path)
        if not source.is_file():
            raise SourceNotFoundError(str(source))
        # undecodable bytes become U+FFFD so the line is rejected on its own
        with source.open("r", encoding="utf-8", errors="replace") as handle:
            return await self.ingest(handle, collection_name=collection_name, report=report)

    async def ingest(
        self,
        lines: Iterable[str] | AsyncIterable[str],
        collection_name: str | None = None,
        report: IngestionReport | None = None,
    ) -> IngestionReport:
        """Run one ingestion pass and return its report.

        Raises ``CollectionNotFoundError`` before reading anything when the
        collection is missing. Pass ``report`` to keep a handle on the partial
        report if the run gets cancelled; it is flagged ``aborted`` and keeps
        the outcomes of every completed window.
        """
        name = collection_name or self.settings.collection_name
        await self.engine.retrieve_collection(name)

        if report is None:
            report = IngestionReport(collection_name=name)
        window_size = self.settings.ingest_concurrency
        start = time.perf_counter()
        logger.info(
            "Ingestion started",
            extra={"collection_name": name, "mode": self.settings.ingest_mode, "window_size": window_size},
        )

        window: list[_Entry] = []
        records_in_window = 0
        try:
            async for line_number, line in _numbered(lines):
                if not line.strip():
                    window.append((line_number, line, None))
                    continue
                window.append((line_number, line, decode_record(line, line_number)))
                records_in_window += 1
                if records_in_window >= window_size:
                    await self._flush(name, window, report)
                    window = []
                    records_in_window = 0
            if window:
                await self._flush(name, window, report)
        except (asyncio.CancelledError, KeyboardInterrupt):
            report.aborted = True
            report.duration_ms = int((time.perf_counter() - start) * 1000)
            logger.warning(
                "Ingestion aborted",
                extra={"collection_name": name, "succeeded": report.succeeded, "failed": report.failed},
            )
            raise

        report.verified_count = await self._verify_count(name)
        report.duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "Ingestion completed",
            extra={
                "collection_name": name,
                "lines_seen": report.lines_seen,
                "succeeded": report.succeeded,
                "failed": report.failed,
                "skipped_blank": report.skipped_blank,
                "verified_count": report.verified_count,
                "duration_ms": report.duration_ms,
            },
        )
        return report

    async def _flush(self, collection: str, window: list[_Entry], report: IngestionReport) -> None:
        documents = [(n, line, decoded) for n, line, decoded in window if isinstance(decoded, Document)]
        if self.settings.ingest_mode == "batch":
            submitted = await self._submit_batch(collection, documents)
        else:
            submitted = await self._submit_concurrently(collection, documents)

        by_line = dict(zip((n for n, _, _ in documents), submitted))
        for line_number, _, decoded in window:
            report.lines_seen += 1
            if decoded is None:
                report.skipped_blank += 1
                continue
            outcome = by_line[line_number] if isinstance(decoded, Document) else decoded
            report.record(outcome)
            if isinstance(outcome, Rejected):
                logger.warning(
                    "Record rejected",
                    extra={"line_number": line_number, "kind": outcome.kind.value, "reason": outcome.reason},
                )
            elif report.succeeded % PROGRESS_EVERY == 0:
                logger.info("Ingestion progress", extra={"imported_so_far": report.succeeded})

    async def _submit_concurrently(
        self, collection: str, documents: list[tuple[int, str, Document]]
    ) -> list[Outcome]:
        in_flight: dict[int, asyncio.Task] = {}
        tasks: list[asyncio.Task] = []
        for line_number, line, document in documents:
            # a later line with the same ID waits for the earlier one to settle
            previous = in_flight.get(document.ID)
            task = asyncio.ensure_future(self._submit_one(collection, line_number, line, document, previous))
            in_flight[document.ID] = task
            tasks.append(task)
        if not tasks:
            return []
        return list(await asyncio.gather(*tasks))

    async def _submit_one(
        self,
        collection: str,
        line_number: int,
        line: str,
        document: Document,
        previous: asyncio.Task | None,
    ) -> Outcome:
        if previous is not None:
            await previous
        try:
            await self.engine.create_document(collection, document.to_engine_document())
        except DocumentConflictError as exc:
            return Rejected(
                line_number=line_number,
                kind=RejectionKind.CONFLICT,
                reason=f"Document with ID {document.ID} already exists: {exc.message}",
                raw=truncate_raw(line),
            )
        except APIError as exc:
            return Rejected(
                line_number=line_number,
                kind=RejectionKind.SERVICE_ERROR,
                reason=exc.message,
                raw=truncate_raw(line),
            )
        return Imported(line_number=line_number, document_id=document.ID)

    async def _submit_batch(self, collection: str, documents: list[tuple[int, str, Document]]) -> list[Outcome]:
        if not documents:
            return []
        try:
            results = await self.engine.import_documents(
                collection, [document.to_engine_document() for _, _, document in documents], action="create"
            )
        except APIError as exc:
            logger.exception("Bulk import failed", extra={"collection_name": collection, "batch_size": len(documents)})
            return [
                Rejected(
                    line_number=n,
                    kind=RejectionKind.SERVICE_ERROR,
                    reason=exc.message,
                    raw=truncate_raw(line),
                )
                for n, line, _ in documents
            ]

        outcomes: list[Outcome] = []
        for (line_number, line, document), result in zip(documents, results):
            if result.get("success"):
                outcomes.append(Imported(line_number=line_number, document_id=document.ID))
                continue
            message = str(result.get("error") or "import failed")
            kind = RejectionKind.CONFLICT if result.get("code") == 409 else RejectionKind.SERVICE_ERROR
            outcomes.append(Rejected(line_number=line_number, kind=kind, reason=message, raw=truncate_raw(line)))
        return outcomes

    async def _verify_count(self, collection: str) -> int | None:
        # the engine may still be indexing, so this number is advisory
        try:
            raw = await self.engine.search(collection, {"q": "*", "query_by": "title", "per_page": 1})
        except APIError:
            logger.warning("Verification query failed", extra={"collection_name": collection}, exc_info=True)
            return None
        found = raw.get("found") if isinstance(raw, dict) else None
        return found if isinstance(found, int) else None
