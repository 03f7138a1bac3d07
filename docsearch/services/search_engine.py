from typing import Any, Protocol


class SearchEngine(Protocol):
    """The operations the core needs from the search service.

    Implementations raise ``CollectionNotFoundError`` for an unknown
    collection, ``DocumentConflictError`` for a duplicate document id and
    ``SearchEngineError`` for any other rejection or transport failure.
    """

    async def health(self) -> dict[str, Any]:
        ...

    async def retrieve_collection(self, name: str) -> dict[str, Any]:
        ...

    async def create_collection(self, schema: dict[str, Any]) -> dict[str, Any]:
        ...

    async def delete_collection(self, name: str) -> dict[str, Any]:
        ...

    async def create_document(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        ...

    async def import_documents(
        self, collection: str, documents: list[dict[str, Any]], action: str = "create"
    ) -> list[dict[str, Any]]:
        ...

    async def search(self, collection: str, params: dict[str, Any]) -> dict[str, Any]:
        ...

    async def close(self) -> None:
        ...
