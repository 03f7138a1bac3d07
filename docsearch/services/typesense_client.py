import asyncio
import json
import logging
from typing import Any

import httpx

from docsearch.core.errors import CollectionNotFoundError, DocumentConflictError, SearchEngineError
from docsearch.core.settings import Settings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.text[:200]


class TypesenseClient:
    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.typesense_base_url,
            headers={"X-TYPESENSE-API-KEY": settings.typesense_api_key},
            timeout=settings.typesense_connection_timeout_seconds,
            transport=transport,
        )
        self._max_retries = settings.typesense_max_retries

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        content: str | None = None,
        idempotent: bool = True,
    ) -> httpx.Response:
        backoff_seconds = 0.3
        for attempt in range(1, self._max_retries + 1):
            try:
                response = await self._client.request(method, path, params=params, json=json_body, content=content)
            except httpx.TransportError as exc:
                # a write is only safe to resend when it never reached the server
                can_retry = idempotent or isinstance(exc, httpx.ConnectError)
                if can_retry and attempt < self._max_retries:
                    await asyncio.sleep(backoff_seconds)
                    backoff_seconds *= 2
                    continue
                raise SearchEngineError(
                    "Search engine is unreachable",
                    details={"path": path, "error_type": exc.__class__.__name__},
                ) from exc

            if response.status_code < 400:
                return response

            if response.status_code in RETRYABLE_STATUS and idempotent and attempt < self._max_retries:
                logger.warning(
                    "Retrying search engine request",
                    extra={"path": path, "status_code": response.status_code, "attempt": attempt},
                )
                await asyncio.sleep(backoff_seconds)
                backoff_seconds *= 2
                continue

            return response

        raise SearchEngineError("Search engine retries exhausted", details={"path": path})

    @staticmethod
    def _raise_for_status(response: httpx.Response, path: str) -> None:
        if response.status_code < 400:
            return
        message = _error_message(response)
        details = {"path": path, "status_code": response.status_code}
        if response.status_code == 409:
            raise DocumentConflictError(message, details=details)
        if response.status_code == 401:
            raise SearchEngineError("Search engine API key is invalid", engine_status=401, details=details)
        raise SearchEngineError(message, engine_status=response.status_code, details=details)

    async def _json(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._request(method, path, **kwargs)
        self._raise_for_status(response, path)
        return response.json()

    async def health(self) -> dict[str, Any]:
        return await self._json("GET", "/health")

    async def retrieve_collection(self, name: str) -> dict[str, Any]:
        path = f"/collections/{name}"
        response = await self._request("GET", path)
        if response.status_code == 404:
            raise CollectionNotFoundError(name)
        self._raise_for_status(response, path)
        return response.json()

    async def create_collection(self, schema: dict[str, Any]) -> dict[str, Any]:
        return await self._json("POST", "/collections", json_body=schema, idempotent=False)

    async def delete_collection(self, name: str) -> dict[str, Any]:
        path = f"/collections/{name}"
        response = await self._request("DELETE", path, idempotent=False)
        if response.status_code == 404:
            raise CollectionNotFoundError(name)
        self._raise_for_status(response, path)
        return response.json()

    async def create_document(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        path = f"/collections/{collection}/documents"
        response = await self._request("POST", path, json_body=document, idempotent=False)
        if response.status_code == 404:
            raise CollectionNotFoundError(collection)
        self._raise_for_status(response, path)
        return response.json()

    async def import_documents(
        self, collection: str, documents: list[dict[str, Any]], action: str = "create"
    ) -> list[dict[str, Any]]:
        """Bulk import; returns one result object per input document, in order."""
        if not documents:
            return []
        path = f"/collections/{collection}/documents/import"
        body = "\n".join(json.dumps(doc, ensure_ascii=False) for doc in documents)
        response = await self._request("POST", path, params={"action": action}, content=body, idempotent=False)
        if response.status_code == 404:
            raise CollectionNotFoundError(collection)
        self._raise_for_status(response, path)

        results = [json.loads(line) for line in response.text.splitlines() if line.strip()]
        if len(results) != len(documents):
            raise SearchEngineError(
                "Import response count mismatch",
                details={"expected": len(documents), "received": len(results)},
            )
        return results

    async def search(self, collection: str, params: dict[str, Any]) -> dict[str, Any]:
        path = f"/collections/{collection}/documents/search"
        response = await self._request("GET", path, params=params)
        if response.status_code == 404:
            raise CollectionNotFoundError(collection)
        self._raise_for_status(response, path)
        return response.json()
