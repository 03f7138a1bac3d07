from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from docsearch.models.document import Document


class SearchRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    q: str = "*"
    query_by: str
    query_by_weights: str | None = None
    filter_by: str | None = None
    sort_by: str
    facet_by: str | None = None
    highlight_fields: str
    highlight_full_fields: str
    highlight_affix_num_tokens: int = Field(ge=0)
    highlight_start_tag: str = "<mark>"
    highlight_end_tag: str = "</mark>"
    page: int = Field(default=1, ge=1)
    per_page: int = Field(ge=1)

    def to_params(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class SearchHit(BaseModel):
    model_config = ConfigDict(frozen=True)

    document: Document
    highlights: dict[str, str] = Field(default_factory=dict)


class SearchResultSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    hits: tuple[SearchHit, ...] = ()
    found: int = 0
    search_time_ms: int = 0
    page: int = 1
    facet_counts: dict[str, dict[str, int]] = Field(default_factory=dict)


class SearchResponse(BaseModel):
    results: SearchResultSet
    query: str
