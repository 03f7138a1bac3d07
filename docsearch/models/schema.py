from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

FieldType = Literal["string", "int32", "int64", "string[]"]


class FieldSpec(BaseModel):
    name: str
    type: FieldType
    facet: bool = False
    sort: bool = False


class CollectionSchema(BaseModel):
    name: str
    fields: list[FieldSpec] = Field(min_length=1)
    default_sorting_field: str

    @model_validator(mode="after")
    def check_default_sorting_field(self) -> "CollectionSchema":
        names = [f.name for f in self.fields]
        if len(set(names)) != len(names):
            raise ValueError("field names must be unique")
        if self.default_sorting_field not in names:
            raise ValueError(f"default_sorting_field {self.default_sorting_field!r} is not a schema field")
        return self

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def facet_fields(self) -> list[str]:
        return [f.name for f in self.fields if f.facet]

    def to_engine_payload(self) -> dict[str, Any]:
        fields: list[dict[str, Any]] = []
        for spec in self.fields:
            entry: dict[str, Any] = {"name": spec.name, "type": spec.type}
            if spec.facet:
                entry["facet"] = True
            if spec.sort:
                entry["sort"] = True
            fields.append(entry)
        return {"name": self.name, "fields": fields, "default_sorting_field": self.default_sorting_field}


def article_schema(name: str = "articles") -> CollectionSchema:
    """Schema of the article collection.

    Only ``date`` is facetable, so it is the only field filter expressions may
    reference. ``title`` is the default sort; ``date`` is sortable as well.
    """
    return CollectionSchema(
        name=name,
        fields=[
            FieldSpec(name="ID", type="int32"),
            FieldSpec(name="date", type="string", facet=True, sort=True),
            FieldSpec(name="slug", type="string"),
            FieldSpec(name="type", type="string"),
            FieldSpec(name="title", type="string", sort=True),
            FieldSpec(name="status", type="string"),
            FieldSpec(name="content", type="string"),
        ],
        default_sorting_field="title",
    )
