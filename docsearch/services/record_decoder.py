import json
from typing import Any

from pydantic import ValidationError

from docsearch.models.document import REQUIRED_FIELDS, Document
from docsearch.models.ingest import Rejected, RejectionKind, truncate_raw


def _rejected(line_number: int, kind: RejectionKind, reason: str, line: str) -> Rejected:
    return Rejected(line_number=line_number, kind=kind, reason=reason, raw=truncate_raw(line))


def decode_record(line: str, line_number: int) -> Document | Rejected:
    """Decode one non-blank source line into a document or a rejection.

    Pure: the same line always yields the same outcome.
    """
    try:
        payload: Any = json.loads(line)
    except ValueError:
        return _rejected(line_number, RejectionKind.MALFORMED, "malformed record", line)
    if not isinstance(payload, dict):
        return _rejected(line_number, RejectionKind.MALFORMED, "malformed record", line)

    missing = [name for name in REQUIRED_FIELDS if name not in payload]
    if missing:
        return _rejected(
            line_number,
            RejectionKind.MISSING_FIELDS,
            f"Missing required fields: {', '.join(missing)}",
            line,
        )

    try:
        return Document.model_validate(payload)
    except ValidationError as exc:
        bad = {str(err["loc"][0]) for err in exc.errors() if err["loc"]}
        bad_fields = [name for name in REQUIRED_FIELDS if name in bad]
        return _rejected(
            line_number,
            RejectionKind.INVALID_FIELDS,
            f"Invalid field types: {', '.join(bad_fields)}",
            line,
        )
