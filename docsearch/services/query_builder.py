from docsearch.core.errors import InvalidSearchRequest
from docsearch.core.settings import Settings
from docsearch.models.schema import CollectionSchema
from docsearch.models.search import SearchRequest

MATCH_ALL = "*"

# order matters: typesense weighs earlier fields higher on ties
QUERY_FIELDS = ("title", "content", "type", "slug")
QUERY_WEIGHTS = (4, 2, 1, 1)
HIGHLIGHT_FIELDS = ("title", "content")

SORT_OPTIONS = {
    "title": "title:asc",
    "title_desc": "title:desc",
    "date": "date:desc",
    "date_asc": "date:asc",
    "relevance": "_text_match:desc,title:asc",
}
DEFAULT_SORT = "title"
# free text ranks by relevance unless a sort is asked for
DEFAULT_TEXT_SORT = "relevance"


def build_query(
    free_text: str | None,
    filter_by: str | None = None,
    page: int = 1,
    per_page: int | None = None,
    sort: str | None = None,
    *,
    settings: Settings,
    schema: CollectionSchema,
) -> SearchRequest:
    """Turn a user query into a fully specified search request.

    The filter expression is handed to the engine untouched; a bad filter (for
    example one naming a field that is not facetable) fails at search time.
    ``per_page`` is clamped to ``settings.max_per_page``.
    """
    text = (free_text or "").strip() or MATCH_ALL

    sort_key = sort or (DEFAULT_SORT if text == MATCH_ALL else DEFAULT_TEXT_SORT)
    if sort_key not in SORT_OPTIONS:
        raise InvalidSearchRequest(
            f"Unknown sort option: {sort_key}",
            details={"allowed": sorted(SORT_OPTIONS)},
        )
    if page < 1:
        raise InvalidSearchRequest("page must be 1 or greater", details={"page": page})

    size = settings.default_per_page if per_page is None else per_page
    size = max(1, min(size, settings.max_per_page))

    cleaned_filter = (filter_by or "").strip() or None
    facets = schema.facet_fields

    return SearchRequest(
        q=text,
        query_by=",".join(QUERY_FIELDS),
        query_by_weights=",".join(str(w) for w in QUERY_WEIGHTS),
        filter_by=cleaned_filter,
        sort_by=SORT_OPTIONS[sort_key],
        facet_by=",".join(facets) if facets else None,
        highlight_fields=",".join(HIGHLIGHT_FIELDS),
        highlight_full_fields=",".join(HIGHLIGHT_FIELDS),
        highlight_affix_num_tokens=settings.highlight_affix_num_tokens,
        page=page,
        per_page=size,
    )
