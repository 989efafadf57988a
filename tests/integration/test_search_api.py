"""
API tests for the search, suggestion and health endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from stocksearch.api.main import create_app
from stocksearch.caching import NullResultCache

pytestmark = pytest.mark.integration

FACETS = {"makes", "grades", "brands", "gsm", "locations", "units"}
RANGES = {"gsm_range", "price_range"}


class UnreachableStore:
    async def fetch_rows(self, predicate, *, limit, timeout=None):
        raise ConnectionError("connection refused")

    async def count_distinct(self, field, predicate, *, limit=None, timeout=None):
        raise ConnectionError("connection refused")

    async def count_rows(self, predicate, *, timeout=None):
        raise ConnectionError("connection refused")

    async def range_stats(self, field, predicate, *, timeout=None):
        raise ConnectionError("connection refused")

    async def ping(self):
        return False


@pytest.fixture
def failing_client(api_settings):
    app = create_app(settings=api_settings, store=UnreachableStore(), cache=NullResultCache())
    with TestClient(app) as test_client:
        yield test_client


class TestSearchEndpoint:
    def test_response_shape(self, client, catalog):
        response = client.post("/api/v1/search", json={"query": "ITC 120gsm"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["total"] == 2
        assert body["page"] == 1
        assert body["pageSize"] == 12
        assert body["totalPages"] == 1
        assert body["cached"] is False
        assert body["truncated"] is False
        assert set(body["aggregations"]) == FACETS | RANGES

        first = body["data"][0]
        assert first["id"] == catalog["itc_120"]
        assert first["rank"] == 1
        assert first["description"] == "ITC Supreme Board 120gsm"
        assert first["dimensions"] == "63.5 x 91.0 cm"

    def test_range_stats_in_aggregations(self, client, catalog):
        body = client.post("/api/v1/search", json={"query": "ITC 120gsm"}).json()

        aggregations = body["aggregations"]
        assert aggregations["gsm_range"] == {"min": 120, "max": 125, "avg": 122.5, "count": 2}
        assert aggregations["price_range"] == {"min": 48, "max": 55, "avg": 51.5, "count": 2}

    def test_second_identical_request_is_cached(self, client, catalog):
        payload = {"query": "board", "filters": {"makes": ["ITC"]}, "sortBy": "gsm-low"}

        first = client.post("/api/v1/search", json=payload).json()
        second = client.post("/api/v1/search", json=payload).json()

        assert second["cached"] is True
        assert [r["id"] for r in second["data"]] == [r["id"] for r in first["data"]]

    def test_hidden_price_is_null(self, client, add_listings):
        (listing_id,) = add_listings({"make": "BILT", "price": 99.0, "show_price": False})

        body = client.post("/api/v1/search", json={"query": "bilt"}).json()

        assert [r["id"] for r in body["data"]] == [listing_id]
        assert body["data"][0]["price"] is None

    def test_malformed_filters_are_ignored(self, client, catalog):
        payload = {
            "query": 42,
            "filters": {
                "makes": "ITC",
                "gsmRange": {"min": "abc", "max": None},
                "priceRange": "cheap",
                "dimensionRange": {"unit": "furlong", "deckle": {"min": "60"}},
                "dateRange": "yesterday",
                "gsmTolerance": -3,
            },
            "page": "zero",
            "pageSize": "lots",
            "sortBy": "random",
        }

        response = client.post("/api/v1/search", json=payload)

        assert response.status_code == 200
        body = response.json()
        assert body["page"] == 1
        assert body["pageSize"] == 12
        # "42" matches nothing, so the filters only need to have parsed
        assert body["total"] == 0

    def test_coerced_filters_still_apply(self, client, catalog):
        payload = {
            "filters": {
                "makes": "ITC",
                "dimensionRange": {"unit": "CM", "deckle": {"min": "60"}},
            },
        }

        body = client.post("/api/v1/search", json=payload).json()

        assert [r["id"] for r in body["data"]] == [catalog["itc_120"], catalog["itc_150"]]

    def test_page_size_is_clamped(self, client, catalog):
        body = client.post("/api/v1/search", json={"pageSize": 1000}).json()
        assert body["pageSize"] == 100

    def test_page_beyond_last(self, client, catalog):
        body = client.post("/api/v1/search", json={"page": 5, "pageSize": 2}).json()

        assert body["data"] == []
        assert body["total"] == 5
        assert body["totalPages"] == 3

    def test_store_failure_returns_503(self, failing_client):
        response = failing_client.post("/api/v1/search", json={"query": "ITC", "page": 3})

        assert response.status_code == 503
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Search is temporarily unavailable"
        assert body["data"] == []
        assert body["total"] == 0
        assert body["page"] == 3
        assert body["totalPages"] == 0
        assert set(body["aggregations"]) == FACETS | RANGES
        assert body["aggregations"]["price_range"] == {
            "min": None, "max": None, "avg": None, "count": 0
        }

    def test_request_id_header(self, client, catalog):
        response = client.post("/api/v1/search", json={})

        assert response.headers["X-Request-ID"]
        assert float(response.headers["X-Response-Time"].rstrip("ms")) >= 0


class TestSuggestionsEndpoint:
    def test_gsm_prefix(self, client, catalog):
        response = client.get("/api/v1/search/suggestions", params={"q": "15"})

        assert response.status_code == 200
        assert response.json()["suggestions"] == [
            {"text": "150 GSM", "type": "gsm", "score": 1},
            {"text": "ITC Supreme Board 150gsm", "type": "product", "score": 1},
        ]

    def test_short_query(self, client, catalog):
        body = client.get("/api/v1/search/suggestions", params={"q": "i"}).json()
        assert body == {"success": True, "suggestions": []}

    def test_limit(self, client, catalog):
        body = client.get("/api/v1/search/suggestions", params={"q": "it", "limit": 1}).json()
        assert [s["text"] for s in body["suggestions"]] == ["ITC"]

    def test_store_failure_is_empty(self, failing_client):
        body = failing_client.get("/api/v1/search/suggestions", params={"q": "itc"}).json()
        assert body["suggestions"] == []


class TestHealthEndpoints:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_status_reports_components(self, client, catalog):
        client.post("/api/v1/search", json={"query": "ITC"})

        body = client.get("/status").json()

        assert body["status"] == "healthy"
        assert body["components"]["database"]["status"] == "healthy"
        assert body["components"]["cache"]["backend"] == "memory"
        assert body["latency_ms"]["count"] >= 1

    def test_status_degraded_when_store_down(self, failing_client):
        body = failing_client.get("/status").json()

        assert body["status"] == "degraded"
        assert body["components"]["database"]["status"] == "unhealthy"

    def test_root(self, client):
        body = client.get("/").json()
        assert body["endpoints"]["search"] == "/api/v1/search"


def test_unparseable_body_returns_error_envelope(client):
    response = client.post(
        "/api/v1/search", content="not json", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 422
    assert response.json()["error"]["type"] == "ValidationError"
