import argparse
import asyncio
import json
import sys

from docsearch.core.container import AppContainer
from docsearch.core.errors import APIError, CollectionNotFoundError, SchemaProvisionError, SourceNotFoundError
from docsearch.core.logging import configure_logging
from docsearch.core.settings import Settings, get_settings
from docsearch.models.ingest import IngestionReport
from docsearch.models.search import SearchResultSet
from docsearch.services.query_builder import SORT_OPTIONS
from docsearch.services.search_engine import SearchEngine

CONTENT_PREVIEW_CHARS = 150

JSONL_HELP = """\
Each line of the source file is one JSON object with these fields:
  {"ID": 1, "date": "2023-01-01", "slug": "example-slug", "type": "article",
   "title": "Example Title", "status": "published", "content": "Example content..."}
ID is an integer, every other field is a string. Blank lines are skipped.
"""

FILTER_HELP = """\
filter examples (only facetable fields can be filtered on; the article schema facets date):
  date:>=2023-01-01
  date:[2023-01-01..2023-12-31]
  date:=2024-05-01
"""


def format_report(report: IngestionReport, preview: int = 5) -> str:
    lines = ["", "Import summary:"]
    if report.aborted:
        lines.append("  (aborted before the end of the source)")
    lines.append(f"  Lines processed: {report.lines_seen}")
    lines.append(f"  Successfully imported: {report.succeeded} documents")
    lines.append(f"  Errors: {report.failed}")
    if report.skipped_blank:
        lines.append(f"  Blank lines skipped: {report.skipped_blank}")

    rejections = report.rejections
    if rejections and preview > 0:
        lines.append("")
        lines.append("Error details:")
        for rejected in rejections[:preview]:
            lines.append(f"  Line {rejected.line_number} [{rejected.kind.value}]: {rejected.reason}")
            lines.append(f"  Data: {rejected.raw}")
            lines.append("")
        if len(rejections) > preview:
            lines.append(f"  ... and {len(rejections) - preview} more errors")

    if report.verified_count is not None:
        lines.append("")
        lines.append(f"Total documents in collection: {report.verified_count}")
    return "\n".join(lines)


def format_results(results: SearchResultSet) -> str:
    lines = [f"Found {results.found} results", "=" * 80]
    if not results.hits:
        lines.append("No documents found matching your search criteria")

    for index, hit in enumerate(results.hits, start=1):
        doc = hit.document
        content = doc.content
        if len(content) > CONTENT_PREVIEW_CHARS:
            content = content[:CONTENT_PREVIEW_CHARS] + "..."
        lines.append(f"{index}. {doc.title} (ID: {doc.ID})")
        lines.append(f"   Type: {doc.type}")
        lines.append(f"   Status: {doc.status}")
        lines.append(f"   Date: {doc.date}")
        lines.append(f"   Slug: {doc.slug}")
        lines.append(f"   Content: {content}")
        if hit.highlights:
            lines.append("   Highlights:")
            for field, snippet in hit.highlights.items():
                lines.append(f"     {field}: ...{snippet}...")
        lines.append("-" * 60)

    if results.facet_counts:
        lines.append("")
        lines.append("Facet counts:")
        for field, counts in results.facet_counts.items():
            lines.append(f"{field}:")
            for value, count in counts.items():
                lines.append(f"  {value}: {count}")
    return "\n".join(lines)


async def _provision(args: argparse.Namespace, container: AppContainer) -> int:
    schema = container.schema
    if args.collection:
        schema = schema.model_copy(update={"name": args.collection})
    try:
        await container.schema_manager.provision(schema)
        described = await container.schema_manager.describe(schema.name)
    except SchemaProvisionError as exc:
        print(f"Error creating collection: {exc.message}", file=sys.stderr)
        return 1
    except APIError as exc:
        print(f'Created collection "{schema.name}" but could not read it back: {exc.message}', file=sys.stderr)
        return 1
    finally:
        await container.close()
    print(f'Created collection "{schema.name}"')
    print(json.dumps(described, indent=2))
    return 0


async def _ingest(args: argparse.Namespace, container: AppContainer, report: IngestionReport) -> int:
    try:
        await container.ingestion_pipeline.ingest_file(args.file, report.collection_name, report=report)
    except SourceNotFoundError as exc:
        print(exc.message, file=sys.stderr)
        return 1
    except CollectionNotFoundError:
        print(f'Collection "{report.collection_name}" does not exist. Please create it first.', file=sys.stderr)
        return 1
    except APIError as exc:
        print(f"Import failed: {exc.message}", file=sys.stderr)
        return 1
    finally:
        await container.close()
    print(format_report(report, container.settings.ingest_error_preview))
    return 0


async def _search(args: argparse.Namespace, container: AppContainer) -> int:
    try:
        results = await container.search_service.search(
            args.query,
            args.filter,
            page=args.page,
            per_page=args.per_page,
            sort=args.sort,
            collection_name=args.collection,
        )
    except APIError as exc:
        print(f"Search failed: {exc.message}", file=sys.stderr)
        return 1
    finally:
        await container.close()
    print(format_results(results))
    return 0


def provision_command(args: argparse.Namespace, settings: Settings, engine: SearchEngine | None) -> int:
    return asyncio.run(_provision(args, AppContainer(settings, engine=engine)))


def ingest_command(args: argparse.Namespace, settings: Settings, engine: SearchEngine | None) -> int:
    report = IngestionReport(collection_name=args.collection or settings.collection_name)
    try:
        return asyncio.run(_ingest(args, AppContainer(settings, engine=engine), report))
    except KeyboardInterrupt:
        report.aborted = True
        print(format_report(report, settings.ingest_error_preview))
        return 130


def search_command(args: argparse.Namespace, settings: Settings, engine: SearchEngine | None) -> int:
    return asyncio.run(_search(args, AppContainer(settings, engine=engine)))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="docsearch", description="Manage and query the article search collection.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    provision_parser = subparsers.add_parser(
        "provision",
        help="Create the article collection, dropping any existing collection of the same name.",
    )
    provision_parser.add_argument("--collection", default=None, help="Collection name (default: configured name).")
    provision_parser.set_defaults(func=provision_command)

    ingest_parser = subparsers.add_parser(
        "ingest",
        help="Import a JSONL file into an existing collection.",
        epilog=JSONL_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    ingest_parser.add_argument("file", help="Path to the JSONL file to import.")
    ingest_parser.add_argument("collection", nargs="?", default=None, help="Target collection (default: configured name).")
    ingest_parser.set_defaults(func=ingest_command)

    search_parser = subparsers.add_parser(
        "search",
        help="Search the collection across title, content, type and slug.",
        epilog=FILTER_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    search_parser.add_argument("query", nargs="?", default="*", help="Free text query, '*' matches everything.")
    search_parser.add_argument("filter", nargs="?", default=None, help="Filter expression over facetable fields.")
    search_parser.add_argument("--sort", choices=sorted(SORT_OPTIONS), default=None)
    search_parser.add_argument("--page", type=int, default=1)
    search_parser.add_argument("--per-page", type=int, default=None)
    search_parser.add_argument("--collection", default=None)
    search_parser.set_defaults(func=search_command)

    return parser


def main(argv: list[str] | None = None, settings: Settings | None = None, engine: SearchEngine | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = settings or get_settings()
    configure_logging(settings.log_level, stream=sys.stderr)
    return args.func(args, settings, engine)


if __name__ == "__main__":
    raise SystemExit(main())
