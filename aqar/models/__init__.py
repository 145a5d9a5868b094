from .criteria import (
    ExtractionResult,
    FeatureCriteria,
    SearchCriteria,
)
from .lexicon import Lexicon, load_lexicon
from .property import (
    ParseResponse,
    Property,
    SearchRequest,
    SearchResponse,
    SearchResult,
    VoiceRequest,
)

__all__ = [
    "ExtractionResult",
    "FeatureCriteria",
    "SearchCriteria",
    "Lexicon",
    "load_lexicon",
    "ParseResponse",
    "Property",
    "SearchRequest",
    "SearchResponse",
    "SearchResult",
    "VoiceRequest",
]
