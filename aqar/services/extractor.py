"""
Criteria extraction from free-form property queries.

`CriteriaExtractor` turns colloquial text such as
"ابي فيلا بحي النرجس فيها مسبح وحديقة ما تطلع فوق 3 مليون ونص" into a
`SearchCriteria` plus a parse confidence. Every scanner works on the
normalised query and on the locale's lexicon; nothing here is specific to
one language.
"""

import logging
import re
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from aqar.models.criteria import ExtractionResult, FeatureCriteria, SearchCriteria
from aqar.models.lexicon import Lexicon
from aqar.services.confidence import estimate_confidence
from aqar.services.counts import BATHROOMS, ROOMS, CountReader
from aqar.services.numerals import Amount, NumeralNormalizer
from aqar.text import (
    Span,
    TermMatch,
    TermMatcher,
    alternation,
    clause_of,
    clause_starts,
    normalize_query,
    overlaps,
)

logger = logging.getLogger(__name__)

# How far back from a price to look for "under", "فوق"...
PRICE_WINDOW = 40
# Bare numbers below this are only prices with a currency word ("900 ريال").
MIN_BARE_PRICE = 1_000

MIN = "min"
MAX = "max"
EXACT = "exact"
AND = "and"
OR = "or"


class CriteriaExtractor:
    """
    Parses query text into search criteria for one locale.

    Instances hold only compiled matchers built from the lexicon and can be
    shared between concurrent requests.
    """

    def __init__(self, lexicon: Lexicon, normalizer: Optional[NumeralNormalizer] = None) -> None:
        self.lexicon = lexicon
        self.normalizer = normalizer or NumeralNormalizer(lexicon)
        self.counts = CountReader(lexicon, self.normalizer)

        clitics = lexicon.clitics
        self._types = TermMatcher(lexicon.type_terms(), clitics)
        self._cities = TermMatcher(lexicon.city_terms(), clitics)
        self._districts = TermMatcher(lexicon.district_terms(), clitics, lexicon.district_prefixes)
        self._features = TermMatcher(lexicon.feature_terms(), clitics)

        self._and_markers = TermMatcher({marker: AND for marker in lexicon.and_markers})
        self._or_markers = TermMatcher({marker: OR for marker in lexicon.or_markers})
        # A one-letter and-marker can also be glued onto the next word ("وحديقة").
        self._and_letters = {
            folded
            for folded in map(normalize_query, lexicon.and_markers)
            if len(folded) == 1 and folded.isalpha()
        }

        directions = {}
        for phrases, direction in (
            (lexicon.exact_price_phrases, EXACT),
            (lexicon.min_price_phrases, MIN),
            (lexicon.max_price_phrases, MAX),
        ):
            for phrase in phrases:
                directions.setdefault(phrase, direction)
        self._directions = TermMatcher(directions, clitics)
        self._exact = TermMatcher({phrase: EXACT for phrase in lexicon.exact_price_phrases}, clitics)
        self._connectors = {normalize_query(connector) for connector in lexicon.range_connectors}
        currencies = alternation(normalize_query(word) for word in lexicon.currency_words)
        self._currency = re.compile(rf"\s*(?:{currencies})(?!\w)") if currencies else None

        price_order = {phrase: "asc" for phrase in lexicon.cheap_phrases}
        price_order.update({phrase: "desc" for phrase in lexicon.expensive_phrases})
        self._price_order = TermMatcher(price_order, clitics)

    def extract(self, query: Optional[str]) -> ExtractionResult:
        """
        Extract search criteria and confidence from a query.

        Unrecognised words are ignored. An empty or whitespace-only query
        yields empty criteria with confidence 0.0. Never raises on text input.
        """
        text = normalize_query(query)
        if not text:
            return ExtractionResult()

        claimed: List[Span] = []

        type_match = self._types.search(text)
        if type_match:
            claimed.append((type_match.start, type_match.end))

        cities = self._cities.finditer(text, exclude=claimed)
        city = cities[0] if cities else None
        if city:
            claimed.append((city.start, city.end))

        districts: List[str] = []
        for term in self._districts.finditer(text, exclude=claimed):
            claimed.append((term.start, term.end))
            if term.value not in districts:
                districts.append(term.value)

        features, feature_spans = self._extract_features(text, claimed)
        claimed.extend(feature_spans)

        counts = self.counts.read(text, exclude=claimed)
        claimed.extend(counts.spans)

        min_price, max_price = self._extract_prices(text, claimed, counts.spans)

        order = self._price_order.search(text)

        criteria = SearchCriteria(
            type=type_match.value if type_match else None,
            city=city.value if city else None,
            districts=districts,
            features=features,
            room_count=counts.get(ROOMS),
            bathroom_count=counts.get(BATHROOMS),
            min_price=min_price,
            max_price=max_price,
            price_order=order.value if order else None,
        )
        result = ExtractionResult(criteria=criteria, confidence=estimate_confidence(criteria))
        logger.debug(
            "Extracted %s from %r (confidence %.2f)",
            criteria.model_dump(exclude_defaults=True),
            query,
            result.confidence,
        )
        return result

    def _extract_features(
        self, text: str, exclude: Sequence[Span]
    ) -> Tuple[FeatureCriteria, List[Span]]:
        """
        Split feature mentions into required and optional groups.

        Features linked to a neighbour by an and-marker are required; the rest
        (or-linked ones and lone mentions) are optional. Synonyms collapse to
        one canonical feature, and the longest surface form claims its span.
        """
        matches = self._features.finditer(text, exclude=exclude)
        if not matches:
            return FeatureCriteria(), []

        starts = clause_starts(text)
        links: List[Optional[str]] = [None]
        for previous, current in zip(matches, matches[1:]):
            links.append(self._link(text, starts, previous, current))
        links.append(None)

        required: List[str] = []
        optional: List[str] = []
        for index, term in enumerate(matches):
            target = required if AND in (links[index], links[index + 1]) else optional
            if term.value not in target:
                target.append(term.value)
        optional = [feature for feature in optional if feature not in required]

        spans = [(term.start, term.end) for term in matches]
        return FeatureCriteria(required=required, optional=optional), spans

    def _link(
        self, text: str, starts: Sequence[int], previous: TermMatch, current: TermMatch
    ) -> Optional[str]:
        if clause_of(starts, previous.start) != clause_of(starts, current.start):
            return None
        gap = text[previous.end:current.start]
        if self._or_markers.search(gap):
            return OR
        if self._and_markers.search(gap) or current.clitic[:1] in self._and_letters:
            return AND
        # Plain lists ("مسبح حديقة مصعد") read as all of them.
        if not gap.strip():
            return AND
        return None

    def _extract_prices(
        self, text: str, claimed: Sequence[Span], count_spans: Sequence[Span]
    ) -> Tuple[Optional[int], Optional[int]]:
        found = self.normalizer.find_amounts(text)
        amounts = [amount for amount in found if not overlaps(amount.start, amount.end, claimed)]
        if not amounts:
            return None, None

        starts = clause_starts(text)
        barriers = sorted([amount.end for amount in found] + [end for _, end in count_spans])

        prices: List[Tuple[Amount, Optional[str]]] = []
        for index, amount in enumerate(amounts):
            following = amounts[index + 1] if index + 1 < len(amounts) else None
            if amount.unit is None and amount.value < MIN_BARE_PRICE:
                if following is not None and following.unit and self._is_range(text, amount, following):
                    # "بين 1 و 2 مليون", "1-2m"
                    amount = replace(amount, unit=following.unit)
                elif not self._has_currency(text, amount.end):
                    continue
            prices.append((amount, self._direction(text, amount, starts, barriers)))

        bounds: List[Tuple[str, int]] = []
        for index, (amount, direction) in enumerate(prices):
            if direction is None:
                following = prices[index + 1][0] if index + 1 < len(prices) else None
                # The lower end of "3-4 مليون" or "2 million to 3 million".
                if following is not None and self._is_range(text, amount, following):
                    direction = MIN
                else:
                    direction = MAX
            bounds.append((direction, amount.value))

        return self._resolve_bounds(text, bounds)

    def _is_range(self, text: str, amount: Amount, following: Amount) -> bool:
        gap = text[amount.end:following.start].strip()
        return not gap or gap in self._connectors

    def _has_currency(self, text: str, position: int) -> bool:
        return bool(self._currency and self._currency.match(text, position))

    def _direction(
        self, text: str, amount: Amount, starts: Sequence[int], barriers: Sequence[int]
    ) -> Optional[str]:
        """
        Classify a price as a lower, upper or exact bound.

        Looks at the text just before the amount, inside its clause and after
        the previous number; the phrase closest to the amount decides. Exact
        phrases may also directly follow the amount ("2 مليون بالضبط").
        Returns None when no phrase applies.
        """
        following = self._exact.search(text, amount.end, min(len(text), amount.end + PRICE_WINDOW))
        if following and not text[amount.end:following.start].strip():
            return EXACT

        window_start = max(starts[clause_of(starts, amount.start)], amount.start - PRICE_WINDOW)
        for end in barriers:
            if window_start < end <= amount.start:
                window_start = end
        phrases = self._directions.finditer(text, window_start, amount.start)
        return phrases[-1].value if phrases else None

    @staticmethod
    def _resolve_bounds(
        text: str, bounds: Sequence[Tuple[str, int]]
    ) -> Tuple[Optional[int], Optional[int]]:
        min_price: Optional[int] = None
        max_price: Optional[int] = None
        min_order = max_order = -1
        for order, (direction, value) in enumerate(bounds):
            if direction in (MIN, EXACT):
                min_price, min_order = value, order
            if direction in (MAX, EXACT):
                max_price, max_order = value, order

        if min_price is not None and max_price is not None and min_price > max_price:
            # Contradictory range: the bound stated last wins.
            if min_order > max_order:
                logger.info(
                    "Dropping max price %d below later min price %d in %r",
                    max_price,
                    min_price,
                    text,
                )
                max_price = None
            else:
                logger.info(
                    "Dropping min price %d above later max price %d in %r",
                    min_price,
                    max_price,
                    text,
                )
                min_price = None
        return min_price, max_price

    def canonicalize(self, criteria: SearchCriteria) -> SearchCriteria:
        """
        Map loosely spelled criteria values onto canonical lexicon values.

        Used for criteria that did not come from `extract`, e.g. from the LLM
        assistant. Values the lexicon does not know are dropped.
        """

        def lookup_all(matcher: TermMatcher, values: Sequence[str]) -> List[str]:
            canonical: List[str] = []
            for value in values:
                resolved = matcher.lookup(value)
                if resolved is not None and resolved not in canonical:
                    canonical.append(resolved)
            return canonical

        required = lookup_all(self._features, criteria.features.required)
        optional = [
            feature
            for feature in lookup_all(self._features, criteria.features.optional)
            if feature not in required
        ]
        return SearchCriteria(
            type=self._types.lookup(criteria.type) if criteria.type else None,
            city=self._cities.lookup(criteria.city) if criteria.city else None,
            districts=lookup_all(self._districts, criteria.districts),
            features=FeatureCriteria(required=required, optional=optional),
            room_count=criteria.room_count,
            bathroom_count=criteria.bathroom_count,
            min_price=criteria.min_price,
            max_price=criteria.max_price,
            price_order=criteria.price_order,
        )

    def describe(self, criteria: SearchCriteria) -> List[str]:
        """Human-readable "label: value" lines for the parsed criteria."""
        lexicon = self.lexicon
        lines = []

        def add(label: str, value) -> None:
            lines.append(f"{lexicon.label(label)}: {value}")

        if criteria.type:
            add("type", criteria.type)
        if criteria.city:
            add("city", criteria.city)
        if criteria.districts:
            add("districts", lexicon.message("or").join(criteria.districts))
        if criteria.features.required:
            add("required_features", lexicon.message("and").join(criteria.features.required))
        if criteria.features.optional:
            add("optional_features", lexicon.message("or").join(criteria.features.optional))
        if criteria.room_count is not None:
            add("rooms", criteria.room_count)
        if criteria.bathroom_count is not None:
            add("bathrooms", criteria.bathroom_count)
        if criteria.min_price is not None:
            add("min_price", self.normalizer.describe_amount(criteria.min_price))
        if criteria.max_price is not None:
            add("max_price", self.normalizer.describe_amount(criteria.max_price))
        if criteria.price_order:
            key = "cheapest_first" if criteria.price_order == "asc" else "priciest_first"
            add("price_order", lexicon.message(key))
        return lines
