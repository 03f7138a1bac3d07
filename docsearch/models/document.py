from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr

REQUIRED_FIELDS = ("ID", "date", "slug", "type", "title", "status", "content")


class Document(BaseModel):
    """One article as stored in the collection."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    ID: StrictInt
    date: StrictStr
    slug: StrictStr
    type: StrictStr
    title: StrictStr
    status: StrictStr
    content: StrictStr

    def to_engine_document(self) -> dict:
        # typesense keys uniqueness on "id", so mirror ID there
        payload = self.model_dump()
        payload["id"] = str(self.ID)
        return payload
