import numpy as np
import pytest

from aqar.data.catalog import generate_catalog
from aqar.errors import InvalidLimitError, MissingEmbeddingError
from aqar.services.ranker import EmbeddingIndex
from aqar.services.search_engine import SearchEngine
from tests.helpers import FakeEmbeddingProvider


@pytest.fixture
def catalog():
    return generate_catalog("ar", 50)


@pytest.fixture
def engine(catalog, ar_lexicon):
    return SearchEngine(catalog, ar_lexicon)


def semantic_engine(catalog, lexicon, provider):
    rng = np.random.default_rng(7)
    vectors = rng.random((len(catalog), 8))
    index = EmbeddingIndex(ids=tuple(prop.id for prop in catalog), vectors=vectors)
    return SearchEngine(catalog, lexicon, embedding_index=index, embedding_provider=provider)


class TestSearch:
    async def test_empty_query_returns_first_entries(self, engine, catalog):
        response = await engine.search("", limit=10)
        assert [r.id for r in response.results] == [prop.id for prop in catalog[:10]]
        assert all(r.similarity_score == 1.0 for r in response.results)
        assert response.total_count == 50
        assert response.confidence == 0.0

    async def test_results_satisfy_criteria(self, engine):
        response = await engine.search("شقة اقل من مليون", limit=50)
        assert response.results
        assert all(r.type == "شقة" and r.price <= 1_000_000 for r in response.results)
        assert response.criteria.max_price == 1_000_000
        assert response.total_count == len(response.results)

    async def test_limit_truncates_but_total_counts_all(self, engine):
        response = await engine.search("فيلا", limit=3)
        assert len(response.results) == 3
        assert response.total_count > 3

    async def test_invalid_limit(self, engine):
        with pytest.raises(InvalidLimitError):
            await engine.search("فيلا", limit=0)

    async def test_no_results_summary(self, engine, ar_lexicon):
        response = await engine.search("قصر اقل من مليون", limit=10)
        assert response.results == []
        assert response.total_count == 0
        assert response.summary == ar_lexicon.message("none")

    async def test_found_summary(self, engine, ar_lexicon):
        response = await engine.search("دوبلكس", limit=10)
        assert response.summary == ar_lexicon.message("found", count=response.total_count)

    async def test_cheapest_first(self, engine):
        response = await engine.search("ارخص شقة", limit=50)
        prices = [r.price for r in response.results]
        assert prices == sorted(prices)

    async def test_most_expensive_first(self, engine):
        response = await engine.search("اغلى فيلا", limit=50)
        prices = [r.price for r in response.results]
        assert prices == sorted(prices, reverse=True)

    async def test_understood_lines(self, engine):
        response = await engine.search("فيلا في الرياض", limit=5)
        assert "النوع: فيلا" in response.understood

    async def test_heuristic_mode(self, engine):
        response = await engine.search("فيلا مسبح", limit=5, mode="heuristic")
        assert response.results
        assert all(r.type == "فيلا" for r in response.results)
        scores = [r.similarity_score for r in response.results]
        assert scores == sorted(scores, reverse=True)


class TestSemanticSearch:
    async def test_unavailable_without_index(self, engine):
        with pytest.raises(MissingEmbeddingError):
            await engine.search("فيلا", limit=5, mode="semantic")

    async def test_ranks_with_embeddings(self, catalog, ar_lexicon):
        provider = FakeEmbeddingProvider([1.0] * 8)
        engine = semantic_engine(catalog, ar_lexicon, provider)

        response = await engine.search("فيلا", limit=5, mode="semantic")

        scores = [r.similarity_score for r in response.results]
        assert scores == sorted(scores, reverse=True)
        assert all(r.type == "فيلا" for r in response.results)
        assert provider.calls == ["فيلا"]

    async def test_empty_query_skips_provider(self, catalog, ar_lexicon):
        provider = FakeEmbeddingProvider([1.0] * 8)
        engine = semantic_engine(catalog, ar_lexicon, provider)

        response = await engine.search("  ", limit=5, mode="semantic")

        assert [r.id for r in response.results] == [prop.id for prop in catalog[:5]]
        assert provider.calls == []

    def test_index_must_cover_catalog(self, catalog, ar_lexicon):
        index = EmbeddingIndex(ids=("1",), vectors=np.ones((1, 2)))
        with pytest.raises(ValueError):
            SearchEngine(catalog, ar_lexicon, embedding_index=index)


class TestParse:
    def test_parse(self, engine):
        parsed = engine.parse("فيلا فوق 2 مليون")
        assert parsed.criteria.min_price == 2_000_000
        assert parsed.confidence == 0.5
        assert "السعر الأدنى: 2 مليون" in parsed.understood

    def test_english_engine(self, en_lexicon):
        engine = SearchEngine(generate_catalog("en", 30), en_lexicon)
        parsed = engine.parse("3 bedroom apartment in Jeddah under 1.5 million")
        assert engine.locale == "en"
        assert parsed.criteria.city == "Jeddah"
        assert parsed.confidence == 0.75
