from typing import Any

from pydantic import ValidationError

from docsearch.core.errors import ResultShapeError
from docsearch.models.document import Document
from docsearch.models.search import SearchHit, SearchResultSet


def _snippet(entry: dict[str, Any]) -> str | None:
    snippet = entry.get("snippet")
    if isinstance(snippet, str):
        return snippet
    # array fields carry a list of snippets instead
    snippets = entry.get("snippets")
    if isinstance(snippets, list):
        parts = [s for s in snippets if isinstance(s, str)]
        return " ... ".join(parts) if parts else None
    return None


def _highlights(hit: dict[str, Any]) -> dict[str, str]:
    fragments: dict[str, str] = {}
    listed = hit.get("highlights")
    if isinstance(listed, list):
        for entry in listed:
            if not isinstance(entry, dict) or not isinstance(entry.get("field"), str):
                continue
            snippet = _snippet(entry)
            if snippet is not None:
                fragments[entry["field"]] = snippet
        return fragments

    keyed = hit.get("highlight")
    if isinstance(keyed, dict):
        for field, entry in keyed.items():
            if isinstance(entry, dict):
                snippet = _snippet(entry)
                if snippet is not None:
                    fragments[field] = snippet
    return fragments


def _facet_counts(raw_facets: Any) -> dict[str, dict[str, int]]:
    if raw_facets is None:
        return {}
    if not isinstance(raw_facets, list):
        raise ResultShapeError("facet_counts is not a list")
    facets: dict[str, dict[str, int]] = {}
    for facet in raw_facets:
        if not isinstance(facet, dict) or not isinstance(facet.get("field_name"), str):
            raise ResultShapeError("facet entry is missing field_name")
        counts: dict[str, int] = {}
        for item in facet.get("counts") or []:
            if not isinstance(item, dict) or not isinstance(item.get("count"), int):
                raise ResultShapeError("facet count entry is malformed", details={"field_name": facet["field_name"]})
            counts[str(item.get("value"))] = item["count"]
        facets[facet["field_name"]] = counts
    return facets


def normalize_search_response(raw: Any, page: int = 1) -> SearchResultSet:
    """Map a raw typesense search response onto a SearchResultSet.

    Hit order is kept as returned. A response with ``found == 0`` is a valid
    empty result; a response that does not look like a search response raises
    ``ResultShapeError``.
    """
    if not isinstance(raw, dict):
        raise ResultShapeError("Search response is not an object")
    found = raw.get("found")
    raw_hits = raw.get("hits")
    if not isinstance(found, int) or isinstance(found, bool):
        raise ResultShapeError("Search response is missing 'found'")
    if raw_hits is None and found == 0:
        raw_hits = []
    if not isinstance(raw_hits, list):
        raise ResultShapeError("Search response 'hits' is not a list")

    hits: list[SearchHit] = []
    for position, hit in enumerate(raw_hits):
        if not isinstance(hit, dict):
            raise ResultShapeError("Search hit is not an object", details={"position": position})
        try:
            document = Document.model_validate(hit.get("document"))
        except ValidationError as exc:
            raise ResultShapeError(
                "Search hit does not hold a valid document",
                details={"position": position, "errors": exc.error_count()},
            ) from exc
        hits.append(SearchHit(document=document, highlights=_highlights(hit)))

    search_time_ms = raw.get("search_time_ms")
    return SearchResultSet(
        hits=tuple(hits),
        found=found,
        search_time_ms=search_time_ms if isinstance(search_time_ms, int) else 0,
        page=raw.get("page") if isinstance(raw.get("page"), int) else page,
        facet_counts=_facet_counts(raw.get("facet_counts")),
    )
