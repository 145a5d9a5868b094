"""
Catalog filtering.

A property survives only if it satisfies every criterion that is present;
absent criteria place no constraint. Catalog order is preserved.
"""

from functools import lru_cache
from typing import List, Optional, Sequence

from aqar.models.criteria import SearchCriteria
from aqar.models.lexicon import Lexicon, load_lexicon
from aqar.models.property import Property
from aqar.services.counts import CountReader
from aqar.text import fold_text

DEFAULT_LOCALE = "ar"


def feature_matches(wanted: str, features: Sequence[str]) -> bool:
    """True when a folded feature contains the wanted one or vice versa."""
    wanted = fold_text(wanted)
    return any(wanted in feature or feature in wanted for feature in map(fold_text, features))


class CatalogMatcher:
    """Applies `SearchCriteria` to a catalog of properties."""

    def __init__(self, lexicon: Lexicon, counts: Optional[CountReader] = None) -> None:
        self.lexicon = lexicon
        self.counts = counts or CountReader(lexicon)

    def match(self, criteria: SearchCriteria, catalog: Sequence[Property]) -> List[Property]:
        if criteria.is_unconstrained():
            return list(catalog)
        return [prop for prop in catalog if self.matches(criteria, prop)]

    def matches(self, criteria: SearchCriteria, prop: Property) -> bool:
        if criteria.type is not None and prop.type != criteria.type:
            return False
        if criteria.city is not None and prop.city != criteria.city:
            return False
        if criteria.districts and prop.district not in criteria.districts:
            return False
        if criteria.min_price is not None and prop.price < criteria.min_price:
            return False
        if criteria.max_price is not None and prop.price > criteria.max_price:
            return False

        required = criteria.features.required
        if not all(feature_matches(feature, prop.features) for feature in required):
            return False
        optional = criteria.features.optional
        if optional and not any(feature_matches(feature, prop.features) for feature in optional):
            return False

        # Counts are exact: "4 غرف" excludes a five-room property.
        if criteria.room_count is not None or criteria.bathroom_count is not None:
            rooms, bathrooms = self.counts.derive(prop.features)
            if criteria.room_count is not None and rooms != criteria.room_count:
                return False
            if criteria.bathroom_count is not None and bathrooms != criteria.bathroom_count:
                return False
        return True


@lru_cache(maxsize=None)
def get_matcher(locale: str) -> CatalogMatcher:
    return CatalogMatcher(load_lexicon(locale))


def match(
    criteria: SearchCriteria,
    catalog: Sequence[Property],
    lexicon: Optional[Lexicon] = None,
) -> List[Property]:
    """Filter `catalog` by `criteria` using the lexicon's count vocabulary."""
    matcher = get_matcher(DEFAULT_LOCALE) if lexicon is None else CatalogMatcher(lexicon)
    return matcher.match(criteria, catalog)
