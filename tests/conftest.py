import asyncio
import json
import re
from typing import Any

import pytest

from docsearch.core.errors import CollectionNotFoundError, DocumentConflictError, SearchEngineError
from docsearch.core.settings import Settings

TOKEN_RE = re.compile(r"[a-z0-9]+")
FILTER_RE = re.compile(r"^\s*(\w+)\s*:\s*(>=|<=|>|<|=)?\s*(.+?)\s*$")


def _tokens(value: Any) -> set[str]:
    return set(TOKEN_RE.findall(str(value).lower()))


class InMemorySearchEngine:
    """Small stand-in for typesense used by the tests.

    Ranks by summed field weight of matched tokens, rejects filters on
    non-facet fields and duplicate ids the way typesense does.
    """

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, Any]] = {}
        self.documents: dict[str, dict[str, dict[str, Any]]] = {}
        self.delays: dict[int, float] = {}
        self.blocked_ids: set[int] = set()
        self.failing_ids: set[int] = set()
        self.pending_ids: set[int] = set()
        self.created_order: list[int] = []
        self.search_calls: list[dict[str, Any]] = []
        self.closed = False

    def _collection(self, name: str) -> dict[str, Any]:
        if name not in self.collections:
            raise CollectionNotFoundError(name)
        return self.collections[name]

    async def health(self) -> dict[str, Any]:
        return {"ok": True}

    async def retrieve_collection(self, name: str) -> dict[str, Any]:
        schema = self._collection(name)
        return {**schema, "num_documents": len(self.documents[name])}

    async def create_collection(self, schema: dict[str, Any]) -> dict[str, Any]:
        name = schema["name"]
        if name in self.collections:
            raise SearchEngineError(f"A collection with name `{name}` already exists.", engine_status=409)
        self.collections[name] = json.loads(json.dumps(schema))
        self.documents[name] = {}
        return {**schema, "num_documents": 0}

    async def delete_collection(self, name: str) -> dict[str, Any]:
        schema = self._collection(name)
        del self.collections[name]
        del self.documents[name]
        return schema

    def _store(self, collection: str, document: dict[str, Any]) -> None:
        self._collection(collection)
        doc_id = document["id"]
        if document["ID"] in self.failing_ids:
            raise SearchEngineError("Simulated engine failure", engine_status=500)
        if doc_id in self.documents[collection]:
            raise DocumentConflictError(f"A document with id {doc_id} already exists.")
        self.documents[collection][doc_id] = dict(document)
        self.created_order.append(document["ID"])

    async def create_document(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        self.pending_ids.add(document["ID"])
        if document["ID"] in self.blocked_ids:
            await asyncio.Event().wait()
        await asyncio.sleep(self.delays.get(document["ID"], 0))
        self.pending_ids.discard(document["ID"])
        self._store(collection, document)
        return document

    async def import_documents(
        self, collection: str, documents: list[dict[str, Any]], action: str = "create"
    ) -> list[dict[str, Any]]:
        self._collection(collection)
        results = []
        for document in documents:
            try:
                self._store(collection, document)
            except SearchEngineError as exc:
                results.append({"success": False, "error": exc.message, "code": exc.engine_status})
            else:
                results.append({"success": True})
        return results

    def _filter(self, schema: dict[str, Any], expression: str) -> list[tuple[str, str, str]]:
        facets = {f["name"] for f in schema["fields"] if f.get("facet")}
        clauses = []
        for part in expression.split("&&"):
            match = FILTER_RE.match(part)
            if not match:
                raise SearchEngineError(f"Could not parse the filter query: `{expression}`.", engine_status=400)
            field, op, value = match.groups()
            if field not in facets:
                raise SearchEngineError(
                    f"Cannot filter on field `{field}`: it is not a facet field.", engine_status=400
                )
            clauses.append((field, op or "=", value))
        return clauses

    @staticmethod
    def _passes(document: dict[str, Any], clauses: list[tuple[str, str, str]]) -> bool:
        for field, op, value in clauses:
            actual = str(document[field])
            if op == "=" and actual != value:
                return False
            if op == ">=" and not actual >= value:
                return False
            if op == "<=" and not actual <= value:
                return False
            if op == ">" and not actual > value:
                return False
            if op == "<" and not actual < value:
                return False
        return True

    async def search(self, collection: str, params: dict[str, Any]) -> dict[str, Any]:
        self.search_calls.append(dict(params))
        schema = self._collection(collection)
        clauses = self._filter(schema, params["filter_by"]) if params.get("filter_by") else []

        fields = params["query_by"].split(",")
        raw_weights = params.get("query_by_weights")
        weights = [int(w) for w in raw_weights.split(",")] if raw_weights else [1] * len(fields)
        query = params["q"]
        query_tokens = set() if query == "*" else _tokens(query)

        scored = []
        for document in self.documents[collection].values():
            if not self._passes(document, clauses):
                continue
            score = sum(w for f, w in zip(fields, weights) if query_tokens & _tokens(document[f]))
            if query_tokens and score == 0:
                continue
            scored.append((score, document))

        for clause in reversed(params.get("sort_by", "").split(",")):
            if not clause:
                continue
            key, _, direction = clause.partition(":")
            reverse = direction == "desc"
            if key == "_text_match":
                scored.sort(key=lambda item: item[0], reverse=reverse)
            else:
                scored.sort(key=lambda item, k=key: item[1][k], reverse=reverse)

        page = int(params.get("page", 1))
        per_page = int(params.get("per_page", 10))
        window = scored[(page - 1) * per_page : page * per_page]

        highlight_fields = [f for f in params.get("highlight_fields", "").split(",") if f]
        hits = []
        for _, document in window:
            highlights = []
            for field in highlight_fields:
                matched = query_tokens & _tokens(document[field])
                if not matched:
                    continue
                snippet = document[field]
                for token in matched:
                    snippet = re.sub(
                        rf"(?i)\b({re.escape(token)})\b",
                        lambda m: f"{params['highlight_start_tag']}{m.group(1)}{params['highlight_end_tag']}",
                        snippet,
                    )
                highlights.append({"field": field, "snippet": snippet, "matched_tokens": sorted(matched)})
            hits.append({"document": document, "highlights": highlights, "text_match": 0})

        facet_counts = []
        for field in [f for f in (params.get("facet_by") or "").split(",") if f]:
            counts: dict[str, int] = {}
            for _, document in scored:
                counts[document[field]] = counts.get(document[field], 0) + 1
            ordered = sorted(counts.items(), key=lambda item: item[1], reverse=True)
            facet_counts.append(
                {"field_name": field, "counts": [{"value": v, "count": c} for v, c in ordered], "stats": {}}
            )

        return {
            "found": len(scored),
            "out_of": len(self.documents[collection]),
            "page": page,
            "search_time_ms": 1,
            "hits": hits,
            "facet_counts": facet_counts,
            "request_params": {"collection_name": collection, "per_page": per_page, "q": query},
        }

    async def close(self) -> None:
        self.closed = True


def make_document(doc_id: int, title: str = "", content: str = "", **overrides: Any) -> dict[str, Any]:
    document = {
        "ID": doc_id,
        "date": "2023-01-01",
        "slug": f"article-{doc_id}",
        "type": "article",
        "title": title or f"Article {doc_id}",
        "status": "published",
        "content": content or f"Body of article {doc_id}",
    }
    document.update(overrides)
    return document


def jsonl(*records: Any) -> list[str]:
    return [record if isinstance(record, str) else json.dumps(record) for record in records]


@pytest.fixture
def settings() -> Settings:
    return Settings(environment="test", collection_name="articles", ingest_concurrency=4)


@pytest.fixture
def engine() -> InMemorySearchEngine:
    return InMemorySearchEngine()
