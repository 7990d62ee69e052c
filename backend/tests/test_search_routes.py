"""Tests for the /v1/rest read endpoints and health checks."""

import pytest
from fastapi.testclient import TestClient

from main import app, set_ready
from winegraph.errors import ConfigError, QueryError
from winegraph.models.response import TopWine, VarietyCount, WineSummary
from winegraph.routes.search import get_query_service


CHIANTI = WineSummary(
    country="Italy",
    wine_id=40825,
    points=90,
    title="Castello San Donato in Perano 2009 Riserva (Chianti Classico)",
    description="Not available",
    price=-1.0,
    variety="Not available",
    winery="Not available",
)


class FakeQueryService:
    """Returns canned results, or raises the configured error."""

    def __init__(self):
        self.results = []
        self.error = None
        self.calls = []

    async def _respond(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        if self.error:
            raise self.error
        return self.results

    async def search_by_keywords(self, terms, max_price, limit=5):
        return await self._respond("search", terms, max_price, limit=limit)

    async def top_by_country(self, country, limit=5):
        return await self._respond("top_by_country", country, limit=limit)

    async def top_by_province(self, province, limit=5):
        return await self._respond("top_by_province", province, limit=limit)

    async def most_by_variety(self, country, limit=5):
        return await self._respond("most_by_variety", country, limit=limit)


@pytest.fixture
def service():
    fake = FakeQueryService()
    app.dependency_overrides[get_query_service] = lambda: fake
    yield fake
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


# === Search Tests ===


class TestSearchEndpoint:
    def test_returns_wines_with_wire_names(self, client, service):
        service.results = [CHIANTI]

        response = client.get("/v1/rest/search", params={"terms": "chianti", "max_price": 50})

        assert response.status_code == 200
        body = response.json()
        assert body[0]["wineID"] == 40825
        assert body[0]["price"] == -1.0
        assert body[0]["country"] == "Italy"
        assert service.calls == [("search", ("chianti", 50.0), {"limit": 5})]

    def test_empty_result_is_404(self, client, service):
        response = client.get("/v1/rest/search", params={"terms": "retsina", "max_price": 5})
        assert response.status_code == 404

    def test_missing_terms_is_422(self, client, service):
        response = client.get("/v1/rest/search", params={"max_price": 50})
        assert response.status_code == 422

    def test_negative_price_is_422(self, client, service):
        response = client.get("/v1/rest/search", params={"terms": "red", "max_price": -1})
        assert response.status_code == 422
        assert service.calls == []

    def test_service_validation_error_is_422(self, client, service):
        service.error = ConfigError("terms must be a non-empty string")

        response = client.get("/v1/rest/search", params={"terms": "  ", "max_price": 50})

        assert response.status_code == 422
        assert response.json()["detail"] == "terms must be a non-empty string"

    def test_retryable_query_error_is_503_with_retry_after(self, client, service):
        service.error = QueryError("search timed out", retryable=True)

        response = client.get("/v1/rest/search", params={"terms": "red", "max_price": 50})

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "5"
        assert response.json()["detail"] == "Graph query failed"

    def test_permanent_query_error_has_no_retry_after(self, client, service):
        service.error = QueryError("search failed", retryable=False)

        response = client.get("/v1/rest/search", params={"terms": "red", "max_price": 50})

        assert response.status_code == 503
        assert "Retry-After" not in response.headers


class TestBrowseEndpoints:
    def test_top_by_country(self, client, service):
        service.results = [TopWine(
            wine_id=40825, country="Italy", province="Tuscany", title="Castello",
            points=90, price=-1.0, variety="Not available", taster_name="Kerin O'Keefe",
        )]

        response = client.get("/v1/rest/top_by_country", params={"country": "Italy", "limit": 3})

        assert response.status_code == 200
        assert response.json()[0]["tasterName"] == "Kerin O'Keefe"
        assert service.calls == [("top_by_country", ("Italy",), {"limit": 3})]

    def test_top_by_province_not_found(self, client, service):
        response = client.get("/v1/rest/top_by_province", params={"province": "Atlantis"})
        assert response.status_code == 404

    def test_most_by_variety(self, client, service):
        service.results = [VarietyCount(variety="Nebbiolo", country="Italy", wine_count=2)]

        response = client.get("/v1/rest/most_by_variety", params={"country": "Italy"})

        assert response.status_code == 200
        assert response.json() == [{"variety": "Nebbiolo", "country": "Italy", "wineCount": 2}]

    def test_limit_bounds(self, client, service):
        response = client.get("/v1/rest/top_by_country", params={"country": "Italy", "limit": 500})
        assert response.status_code == 422


# === Health & Readiness Tests ===


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_graph_health_without_session(self, client):
        response = client.get("/health/graph")
        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    def test_search_without_session_is_503(self, client):
        response = client.get("/v1/rest/search", params={"terms": "red", "max_price": 50})
        assert response.status_code == 503

    def test_warming_up_returns_503(self, client, service):
        set_ready(False)
        try:
            response = client.get("/v1/rest/search", params={"terms": "red", "max_price": 50})
        finally:
            set_ready(True)

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "10"
