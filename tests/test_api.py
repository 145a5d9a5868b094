import json

import numpy as np
import pytest
from fastapi.testclient import TestClient

from aqar.errors import EmbeddingProviderError
from aqar.main import create_app
from aqar.services.claude_service import ClaudeCriteriaService
from aqar.services.ranker import EmbeddingIndex
from aqar.services.search_engine import SearchEngine
from tests.helpers import FakeAnthropic


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as client:
        yield client


class FailingProvider:
    def __init__(self, error: EmbeddingProviderError) -> None:
        self.error = error

    async def embed(self, text):
        raise self.error


def install_semantic_engine(client, provider):
    engine = client.app.state.engines["ar"]
    index = EmbeddingIndex(
        ids=tuple(prop.id for prop in engine.catalog),
        vectors=np.ones((len(engine.catalog), 4)),
    )
    client.app.state.engines["ar"] = SearchEngine(
        engine.catalog, engine.lexicon, embedding_index=index, embedding_provider=provider
    )


class TestSearchEndpoint:
    def test_empty_query(self, client):
        response = client.post("/api/search", json={"query": "", "limit": 5})
        assert response.status_code == 200
        data = response.json()
        assert [r["id"] for r in data["results"]] == ["1", "2", "3", "4", "5"]
        assert all(r["similarity_score"] == 1.0 for r in data["results"])
        assert data["total_count"] == 150
        assert data["confidence"] == 0.0

    def test_default_limit(self, client):
        response = client.post("/api/search", json={})
        assert len(response.json()["results"]) == 10

    def test_limit_is_clamped(self, client):
        response = client.post("/api/search", json={"query": "", "limit": 500})
        assert len(response.json()["results"]) == 50

    def test_arabic_query(self, client):
        response = client.post("/api/search", json={"query": "شقة اقل من مليون"})
        data = response.json()
        assert response.status_code == 200
        assert data["criteria"]["type"] == "شقة"
        assert data["criteria"]["max_price"] == 1_000_000
        assert data["results"]
        assert all(r["type"] == "شقة" and r["price"] <= 1_000_000 for r in data["results"])
        assert all(r["rooms"] is not None for r in data["results"])

    def test_english_locale(self, client):
        response = client.post(
            "/api/search",
            json={"query": "villa in Riyadh", "locale": "en", "limit": 3},
        )
        data = response.json()
        assert data["criteria"]["city"] == "Riyadh"
        assert all(r["type"] == "villa" and r["city"] == "Riyadh" for r in data["results"])

    @pytest.mark.parametrize("body", [{"limit": 0}, {"limit": -3}, {"locale": "fr"}])
    def test_invalid_request(self, client, body):
        assert client.post("/api/search", json=body).status_code == 422

    def test_semantic_without_embeddings(self, client):
        response = client.post("/api/search", json={"query": "فيلا", "mode": "semantic"})
        assert response.status_code == 409

    def test_cached_response_is_identical(self, client):
        body = {"query": "فيلا في الرياض", "limit": 5}
        first = client.post("/api/search", json=body).json()
        second = client.post("/api/search", json=dict(body, query="  فيلا في الرياض ")).json()
        assert first == second
        assert client.app.state.cache.stats()["hits"] == 1

    def test_provider_unreachable(self, client):
        install_semantic_engine(client, FailingProvider(EmbeddingProviderError("down")))
        response = client.post("/api/search", json={"query": "فيلا", "mode": "semantic"})
        assert response.status_code == 503
        assert response.headers["Retry-After"] == "5"

    def test_provider_error(self, client):
        error = EmbeddingProviderError("HTTP 500", retryable=True, status_code=500)
        install_semantic_engine(client, FailingProvider(error))
        response = client.post("/api/search", json={"query": "فيلا", "mode": "semantic"})
        assert response.status_code == 502
        assert response.headers["Retry-After"] == "5"


class TestParseEndpoint:
    def test_parse(self, client):
        response = client.post("/api/parse", json={"query": "فيلا فوق 2 مليون"})
        data = response.json()
        assert response.status_code == 200
        assert data["criteria"]["min_price"] == 2_000_000
        assert data["confidence"] == 0.5
        assert data["understood"]


class TestVoiceEndpoint:
    def test_not_configured(self, client):
        response = client.post("/api/voice", json={"text": "فيلا في الرياض"})
        assert response.status_code == 503

    def test_extracts_criteria(self, client, settings):
        reply = json.dumps({"type": "villa", "city": "riyad", "features": {"required": ["lift"]}})
        client.app.state.claude = ClaudeCriteriaService(settings, client=FakeAnthropic(reply))

        response = client.post("/api/voice", json={"text": "a villa in riyadh", "locale": "en"})

        assert response.status_code == 200
        data = response.json()
        assert data["type"] == "villa"
        assert data["city"] == "Riyadh"
        assert data["features"]["required"] == ["elevator"]

    def test_unusable_answer(self, client, settings):
        client.app.state.claude = ClaudeCriteriaService(settings, client=FakeAnthropic("sorry"))
        response = client.post("/api/voice", json={"text": "فيلا"})
        assert response.status_code == 422


class TestHealth:
    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["locales"]["ar"]["properties"] == 150
        assert data["locales"]["en"]["semantic"] is False
        assert data["voice"] is False

    def test_root(self, client):
        assert client.get("/").json()["docs"] == "/docs"
