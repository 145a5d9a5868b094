"""Confidence scoring for extracted criteria."""

from aqar.models.criteria import SearchCriteria

CONFIDENCE_SLOTS = 4


def estimate_confidence(criteria: SearchCriteria) -> float:
    """
    Score how much of a query was understood.

    One slot each for type, location (city or districts), features and price
    (either bound). Room counts and price ordering do not count: a query that
    only asks for "4 rooms" still scores 0.0. The score describes the parse,
    never how well any property matches it.
    """
    filled = sum(
        (
            criteria.type is not None,
            criteria.has_location(),
            not criteria.features.is_empty(),
            criteria.has_price(),
        )
    )
    return filled / CONFIDENCE_SLOTS
