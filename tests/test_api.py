import asyncio

import pytest
from conftest import jsonl, make_document
from fastapi.testclient import TestClient

from docsearch.core.container import AppContainer
from docsearch.core.settings import Settings
from docsearch.main import app
from docsearch.services.schema_manager import SchemaManager


@pytest.fixture
def client(engine):
    settings = Settings(environment="prod", collection_name="articles")
    container = AppContainer(settings, engine=engine)
    asyncio.run(SchemaManager(engine).provision(container.schema))
    app.state.settings = settings
    app.state.container = container
    return TestClient(app)


def test_liveness(client) -> None:
    assert client.get("/health/live").json() == {"status": "ok"}


def test_search_engine_health(client) -> None:
    response = client.get("/health/search-engine")

    assert response.status_code == 200
    assert response.json()["search_engine"] == {"ok": True}


def test_ingest_then_search(client) -> None:
    lines = jsonl(make_document(1, title="Docker Basics"), {"ID": 2}, make_document(3, title="Kubernetes"))
    ingest = client.post("/v1/ingest", json={"lines": lines})

    assert ingest.status_code == 200
    body = ingest.json()
    assert body["succeeded"] == 2
    assert body["failed"] == 1
    assert body["errors"][0]["line_number"] == 2
    assert body["errors"][0]["kind"] == "missing_fields"
    assert body["verified_count"] == 2

    search = client.get("/api/search", params={"q": "docker"})
    assert search.status_code == 200
    payload = search.json()
    assert payload["query"] == "docker"
    assert payload["results"]["found"] == 1
    assert payload["results"]["hits"][0]["document"]["title"] == "Docker Basics"


def test_ingest_into_missing_collection_is_404(client) -> None:
    response = client.post("/v1/ingest", json={"lines": jsonl(make_document(1)), "collection_name": "absent"})

    assert response.status_code == 404
    assert response.json()["error"] == "collection_not_found"


def test_search_failure_envelope_hides_details_outside_dev(client) -> None:
    response = client.get("/api/search", params={"q": "*", "filter_by": "status:published"})

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "search_failed"
    assert "message" in body
    assert "details" not in body


def test_search_failure_envelope_has_details_in_dev(client) -> None:
    app.state.settings = Settings(environment="dev")

    response = client.get("/api/search", params={"q": "*", "filter_by": "status:published"})

    assert response.status_code == 500
    assert response.json()["details"]["cause"] == "search_engine_error"


def test_empty_search_is_successful(client) -> None:
    response = client.get("/api/search")

    assert response.status_code == 200
    assert response.json()["results"]["found"] == 0
    assert response.json()["results"]["hits"] == []


def test_unknown_sort_is_a_bad_request(client) -> None:
    response = client.get("/api/search", params={"sort": "popularity"})

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_search_request"


def test_unmatched_route_envelope(client) -> None:
    response = client.get("/nope")

    assert response.status_code == 404
    assert response.json() == {"error": "not_found", "message": "Route /nope not found"}


@pytest.mark.parametrize("params", [{"page": "0"}, {"per_page": "abc"}])
def test_invalid_query_parameters_use_the_error_envelope(client, params) -> None:
    response = client.get("/api/search", params=params)

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "invalid_search_request"
    assert body["message"].startswith("Invalid value for: ")
    assert "detail" not in body


def test_invalid_ingest_body_uses_the_error_envelope(client) -> None:
    response = client.post("/v1/ingest", json={"lines": []})

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"
