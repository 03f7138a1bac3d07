from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

RAW_PREVIEW_CHARS = 100


class RejectionKind(str, Enum):
    MALFORMED = "malformed"
    MISSING_FIELDS = "missing_fields"
    INVALID_FIELDS = "invalid_fields"
    CONFLICT = "conflict"
    SERVICE_ERROR = "service_error"


def truncate_raw(line: str, limit: int = RAW_PREVIEW_CHARS) -> str:
    return line[:limit] + ("..." if len(line) > limit else "")


class Imported(BaseModel):
    outcome: Literal["imported"] = "imported"
    line_number: int
    document_id: int


class Rejected(BaseModel):
    outcome: Literal["rejected"] = "rejected"
    line_number: int
    kind: RejectionKind
    reason: str
    raw: str


class IngestionReport(BaseModel):
    collection_name: str
    outcomes: list[Imported | Rejected] = Field(default_factory=list)
    lines_seen: int = 0
    skipped_blank: int = 0
    succeeded: int = 0
    failed: int = 0
    aborted: bool = False
    verified_count: int | None = None
    duration_ms: int = 0

    def record(self, outcome: Imported | Rejected) -> None:
        self.outcomes.append(outcome)
        if isinstance(outcome, Imported):
            self.succeeded += 1
        else:
            self.failed += 1

    @property
    def rejections(self) -> list[Rejected]:
        return [o for o in self.outcomes if isinstance(o, Rejected)]


class IngestRequest(BaseModel):
    lines: list[str] = Field(min_length=1, description="newline-delimited JSON records, one per entry")
    collection_name: str | None = Field(default=None, description="target collection, defaults to the configured one")


class IngestResponse(BaseModel):
    collection_name: str
    lines_seen: int
    succeeded: int
    failed: int
    skipped_blank: int
    verified_count: int | None
    duration_ms: int
    errors: list[Rejected]
