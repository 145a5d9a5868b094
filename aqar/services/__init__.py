from .extractor import CriteriaExtractor
from .matcher import CatalogMatcher
from .ranker import EmbeddingIndex, SimilarityRanker, cosine_similarity
from .search_engine import SearchEngine

__all__ = [
    "CriteriaExtractor",
    "CatalogMatcher",
    "EmbeddingIndex",
    "SimilarityRanker",
    "cosine_similarity",
    "SearchEngine",
]
