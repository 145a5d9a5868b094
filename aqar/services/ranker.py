"""
Similarity ranking of matched properties.

Three strategies share one output contract:

- semantic: cosine similarity between the query embedding and each
  candidate's precomputed vector, descending, ties in catalog order;
- heuristic: weighted query-term hits over title, type, location and
  features, descending, ties by ascending price;
- exact: every candidate scores 1.0 and catalog order is kept.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from aqar.errors import InvalidLimitError, MissingEmbeddingError
from aqar.models.lexicon import Lexicon
from aqar.models.property import Property, SearchResult
from aqar.services.counts import CountReader
from aqar.text import fold_text, normalize_query

logger = logging.getLogger(__name__)

TITLE_WEIGHT = 3
TYPE_WEIGHT = 2
LOCATION_WEIGHT = 2
FEATURE_WEIGHT = 1


class EmbeddingProvider(Protocol):
    async def embed(self, text: str) -> List[float]:
        ...


@dataclass(frozen=True, eq=False)
class EmbeddingIndex:
    """Precomputed vectors, one row per catalog property, in catalog order."""

    ids: Tuple[str, ...]
    vectors: np.ndarray
    _rows: Dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        vectors = np.array(self.vectors, dtype=np.float32)
        if vectors.ndim != 2 or vectors.shape[0] != len(self.ids):
            raise ValueError(
                f"Embedding index has {vectors.shape[0] if vectors.ndim else 0} rows "
                f"for {len(self.ids)} properties"
            )
        vectors.flags.writeable = False
        object.__setattr__(self, "ids", tuple(self.ids))
        object.__setattr__(self, "vectors", vectors)
        object.__setattr__(self, "_rows", {pid: row for row, pid in enumerate(self.ids)})

    def __len__(self) -> int:
        return len(self.ids)

    @property
    def dimensions(self) -> int:
        return int(self.vectors.shape[1])

    def __contains__(self, property_id: str) -> bool:
        return property_id in self._rows

    def vector_for(self, property_id: str) -> np.ndarray:
        try:
            return self.vectors[self._rows[property_id]]
        except KeyError:
            raise MissingEmbeddingError(f"No embedding for property {property_id!r}") from None


def cosine_similarity(a, b) -> float:
    """Cosine similarity clamped to [0, 1]; a zero vector scores 0.0."""
    a = np.asarray(a, dtype=np.float32)
    b = np.asarray(b, dtype=np.float32)
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.clip(np.dot(a, b) / (norm_a * norm_b), 0.0, 1.0))


class SimilarityRanker:
    """Orders candidate properties and wraps them as `SearchResult`."""

    def __init__(
        self,
        lexicon: Lexicon,
        embedding_provider: Optional[EmbeddingProvider] = None,
        counts: Optional[CountReader] = None,
    ) -> None:
        self.lexicon = lexicon
        self.embedding_provider = embedding_provider
        self.counts = counts or CountReader(lexicon)
        self._stopwords = {normalize_query(word) for word in lexicon.stopwords}

    async def rank(
        self,
        query: str,
        candidates: Sequence[Property],
        limit: int,
        embedding_index: Optional[EmbeddingIndex] = None,
        heuristic: bool = False,
    ) -> List[SearchResult]:
        """
        Rank candidates and truncate to `limit`.

        Raises:
            InvalidLimitError: If limit is not positive.
            MissingEmbeddingError: If an index is given but no embedding
                provider is configured, or a candidate has no vector.
            EmbeddingProviderError: If embedding the query fails.
        """
        if limit <= 0:
            raise InvalidLimitError(limit)

        terms = self.query_terms(query) if heuristic else []
        if embedding_index is not None:
            scores = await self._semantic_scores(query, candidates, embedding_index)
            order = sorted(range(len(candidates)), key=lambda i: -scores[i])
        elif terms:
            scores = [self.heuristic_score(terms, prop) for prop in candidates]
            order = sorted(range(len(candidates)), key=lambda i: (-scores[i], candidates[i].price))
        else:
            scores = [1.0] * len(candidates)
            order = list(range(len(candidates)))

        return [self.to_result(candidates[i], scores[i]) for i in order[:limit]]

    async def _semantic_scores(
        self, query: str, candidates: Sequence[Property], index: EmbeddingIndex
    ) -> List[float]:
        if self.embedding_provider is None:
            raise MissingEmbeddingError("Semantic ranking requested without an embedding provider")
        if not candidates:
            return []
        # Fail before the remote call if any vector is missing.
        matrix = np.stack([index.vector_for(prop.id) for prop in candidates])

        query_vector = np.asarray(await self.embedding_provider.embed(query), dtype=np.float32)
        if query_vector.shape != (index.dimensions,):
            raise MissingEmbeddingError(
                f"Query embedding has shape {query_vector.shape}, index expects "
                f"{index.dimensions} dimensions"
            )

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query_vector)
        with np.errstate(divide="ignore", invalid="ignore"):
            similarities = np.where(norms > 0, matrix @ query_vector / norms, 0.0)
        return [float(score) for score in np.clip(similarities, 0.0, 1.0)]

    def query_terms(self, query: str) -> List[str]:
        return [
            term
            for term in normalize_query(query).split()
            if len(term) > 1 and term not in self._stopwords and any(c.isalnum() for c in term)
        ]

    def heuristic_score(self, terms: Sequence[str], prop: Property) -> float:
        """
        Weighted substring hits of query terms, normalised to [0, 1].

        Each term scores its best field: title 3, type 2, city/district 2,
        any feature 1.
        """
        if not terms:
            return 0.0
        title = fold_text(prop.title)
        prop_type = fold_text(prop.type)
        location = f"{fold_text(prop.city)} {fold_text(prop.district)}"
        features = [fold_text(feature) for feature in prop.features]

        total = 0
        for term in terms:
            if term in title:
                total += TITLE_WEIGHT
            elif term in prop_type or prop_type in term:
                total += TYPE_WEIGHT
            elif term in location:
                total += LOCATION_WEIGHT
            elif any(term in feature for feature in features):
                total += FEATURE_WEIGHT
        return total / (TITLE_WEIGHT * len(terms))

    def to_result(self, prop: Property, score: float) -> SearchResult:
        rooms, bathrooms = self.counts.derive(prop.features)
        return SearchResult.from_property(prop, score, rooms=rooms, bathrooms=bathrooms)
