"""
Search orchestration: extract -> match -> rank.

One `SearchEngine` is built per locale at startup from the loaded catalog,
lexicon and optional embedding index. It holds no per-request state, so a
single instance serves concurrent requests.
"""

import logging
from typing import List, Optional, Sequence

from aqar.errors import InvalidLimitError, MissingEmbeddingError
from aqar.models.criteria import ExtractionResult, SearchCriteria
from aqar.models.lexicon import Lexicon
from aqar.models.property import ParseResponse, Property, SearchMode, SearchResponse, SearchResult
from aqar.services.counts import CountReader
from aqar.services.extractor import CriteriaExtractor
from aqar.services.matcher import CatalogMatcher
from aqar.services.numerals import NumeralNormalizer
from aqar.services.ranker import EmbeddingIndex, EmbeddingProvider, SimilarityRanker
from aqar.text import normalize_query

logger = logging.getLogger(__name__)


class SearchEngine:
    """Query understanding and ranking over one locale's catalog."""

    def __init__(
        self,
        catalog: Sequence[Property],
        lexicon: Lexicon,
        embedding_index: Optional[EmbeddingIndex] = None,
        embedding_provider: Optional[EmbeddingProvider] = None,
    ) -> None:
        self.catalog = tuple(catalog)
        self.lexicon = lexicon
        self.embedding_index = embedding_index
        self.embedding_provider = embedding_provider

        if embedding_index is not None and len(embedding_index) != len(self.catalog):
            raise ValueError(
                f"Embedding index has {len(embedding_index)} vectors for "
                f"{len(self.catalog)} properties"
            )

        normalizer = NumeralNormalizer(lexicon)
        counts = CountReader(lexicon, normalizer)
        self.extractor = CriteriaExtractor(lexicon, normalizer)
        self.matcher = CatalogMatcher(lexicon, counts)
        self.ranker = SimilarityRanker(lexicon, embedding_provider, counts)

    @property
    def locale(self) -> str:
        return self.lexicon.locale

    @property
    def supports_semantic(self) -> bool:
        return self.embedding_index is not None and self.embedding_provider is not None

    def extract(self, query: Optional[str]) -> ExtractionResult:
        return self.extractor.extract(query)

    def match(self, criteria: SearchCriteria) -> List[Property]:
        return self.matcher.match(criteria, self.catalog)

    async def rank(
        self,
        query: str,
        candidates: Sequence[Property],
        limit: int,
        mode: SearchMode = "exact",
    ) -> List[SearchResult]:
        index = self.embedding_index if mode == "semantic" and normalize_query(query) else None
        return await self.ranker.rank(
            query,
            candidates,
            limit,
            embedding_index=index,
            heuristic=mode == "heuristic",
        )

    def parse(self, query: Optional[str]) -> ParseResponse:
        """Parsing only, for showing the user how the query was understood."""
        extraction = self.extract(query)
        return ParseResponse(
            criteria=extraction.criteria,
            confidence=extraction.confidence,
            understood=self.extractor.describe(extraction.criteria),
        )

    async def search(self, query: str, limit: int, mode: SearchMode = "exact") -> SearchResponse:
        """
        Run the full pipeline for one query.

        Args:
            query: Raw query text; empty means "no constraints".
            limit: Maximum number of results, must be positive.
            mode: "exact" (catalog order, score 1.0), "heuristic" or "semantic".

        Raises:
            InvalidLimitError: If limit is not positive.
            MissingEmbeddingError: If semantic mode is requested but no
                embedding index or provider is configured.
            EmbeddingProviderError: If the query embedding call fails.
        """
        if limit <= 0:
            raise InvalidLimitError(limit)
        if mode == "semantic" and not self.supports_semantic:
            raise MissingEmbeddingError(
                f"Semantic search is not available for locale {self.locale!r}: "
                "no embedding index or provider configured"
            )

        extraction = self.extract(query)
        criteria = extraction.criteria
        candidates = self.match(criteria)
        if criteria.price_order and mode == "exact":
            candidates = sorted(
                candidates,
                key=lambda prop: prop.price,
                reverse=criteria.price_order == "desc",
            )

        results = await self.rank(query, candidates, limit, mode)
        logger.info(
            "Search (%s, %s): %d candidates, %d returned, confidence %.2f",
            self.locale,
            mode,
            len(candidates),
            len(results),
            extraction.confidence,
        )

        if candidates:
            summary = self.lexicon.message("found", count=len(candidates))
        else:
            summary = self.lexicon.message("none")
        return SearchResponse(
            criteria=criteria,
            confidence=extraction.confidence,
            understood=self.extractor.describe(criteria),
            results=results,
            total_count=len(candidates),
            summary=summary,
        )
