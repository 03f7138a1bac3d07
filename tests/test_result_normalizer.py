import pytest
from conftest import make_document

from docsearch.core.errors import ResultShapeError
from docsearch.services.result_normalizer import normalize_search_response


def _raw(hits, found=None, **extra):
    payload = {"found": len(hits) if found is None else found, "hits": hits, "search_time_ms": 3, "page": 1}
    payload.update(extra)
    return payload


def test_hits_keep_engine_order_and_highlights() -> None:
    raw = _raw(
        [
            {
                "document": make_document(2, title="Zebra"),
                "highlights": [{"field": "title", "snippet": "<mark>Zebra</mark>", "matched_tokens": ["Zebra"]}],
            },
            {"document": make_document(1, title="Aardvark")},
        ]
    )

    results = normalize_search_response(raw)

    assert [hit.document.ID for hit in results.hits] == [2, 1]
    assert results.hits[0].highlights == {"title": "<mark>Zebra</mark>"}
    assert results.hits[1].highlights == {}
    assert results.found == 2
    assert results.search_time_ms == 3


def test_legacy_highlight_object_is_read() -> None:
    raw = _raw([{"document": make_document(1), "highlight": {"content": {"snippet": "a <mark>b</mark>"}}}])

    results = normalize_search_response(raw)

    assert results.hits[0].highlights == {"content": "a <mark>b</mark>"}


def test_facet_counts_pass_through_in_order() -> None:
    raw = _raw(
        [],
        found=0,
        facet_counts=[
            {
                "field_name": "date",
                "counts": [{"value": "2024-01-01", "count": 5}, {"value": "2023-01-01", "count": 2}],
            }
        ],
    )

    results = normalize_search_response(raw)

    assert list(results.facet_counts["date"].items()) == [("2024-01-01", 5), ("2023-01-01", 2)]


def test_zero_results_is_not_an_error() -> None:
    results = normalize_search_response({"found": 0, "hits": [], "search_time_ms": 0})

    assert results.found == 0
    assert results.hits == ()
    assert results.facet_counts == {}


@pytest.mark.parametrize(
    "raw",
    [
        None,
        [],
        {"hits": []},
        {"found": 1, "hits": "nope"},
        {"found": 1, "hits": [{"document": {"ID": 1}}]},
        {"found": 0, "hits": [], "facet_counts": [{"counts": []}]},
    ],
)
def test_contract_violations_raise(raw) -> None:
    with pytest.raises(ResultShapeError):
        normalize_search_response(raw)


def test_result_set_is_immutable() -> None:
    results = normalize_search_response(_raw([{"document": make_document(1)}]))

    with pytest.raises(Exception):
        results.found = 10
