"""
Room and bathroom count recognition.

The same reader runs over query text in the criteria extractor and over
catalog count features ("4 غرف", "3 bathrooms") in the matcher and ranker,
so both sides of a room-count comparison are read the same way.
"""

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional, Sequence, Tuple

from aqar.models.lexicon import Lexicon
from aqar.services.numerals import NumeralNormalizer
from aqar.text import Span, TermMatcher, alternation, normalize_query, overlaps

ROOMS = "rooms"
BATHROOMS = "bathrooms"


@dataclass(frozen=True)
class CountMatch:
    kind: str
    count: int
    start: int
    end: int


@dataclass
class CountResult:
    counts: Dict[str, CountMatch] = field(default_factory=dict)
    spans: List[Span] = field(default_factory=list)

    def get(self, kind: str) -> Optional[int]:
        match = self.counts.get(kind)
        return match.count if match else None


class CountReader:
    """Finds "<number> <room word>" style counts in normalised text."""

    def __init__(self, lexicon: Lexicon, normalizer: Optional[NumeralNormalizer] = None) -> None:
        self.normalizer = normalizer or NumeralNormalizer(lexicon)
        clitic = self.normalizer.clitic_pattern
        number = self.normalizer.number_pattern("count")
        magnitudes = self.normalizer.magnitude_alternation()

        self._forward: Dict[str, re.Pattern] = {}
        self._backward: Dict[str, re.Pattern] = {}
        for kind, words in ((ROOMS, lexicon.room_words), (BATHROOMS, lexicon.bathroom_words)):
            word = alternation(normalize_query(w) for w in words)
            # "3 غرف", "ثلاث غرف", "3-bedroom"
            self._forward[kind] = re.compile(
                rf"(?<!\w){number}\s*-?\s*{clitic}(?:{word})(?!\w)"
            )
            # "غرف النوم: 3", "bedrooms 3", but not "غرف 2 مليون"
            self._backward[kind] = re.compile(
                rf"(?<!\w){clitic}(?:{word})\s*:?\s*{number}(?!\w)"
                rf"(?!\s*(?:{magnitudes})(?!\w))"
            )
        self._compounds = {
            ROOMS: TermMatcher(lexicon.compound_rooms, lexicon.clitics),
            BATHROOMS: TermMatcher(lexicon.compound_bathrooms, lexicon.clitics),
        }
        self._derive = lru_cache(maxsize=4096)(self._derive_counts)

    def read(self, text: str, exclude: Sequence[Span] = ()) -> CountResult:
        """
        Read room and bathroom counts from normalised text.

        Numbers directly before a room/bathroom word are tried first, then
        numbers directly after one, then compound idioms such as "غرفتين".
        The first count found for each kind wins; every recognised count
        span is reported so that price parsing can skip it.
        """
        result = CountResult()
        claimed = list(exclude)
        for patterns in (self._forward, self._backward):
            for kind, pattern in patterns.items():
                for match in pattern.finditer(text):
                    if overlaps(match.start(), match.end(), claimed):
                        continue
                    count = self.normalizer.parse_count(match.group("count"))
                    if count is None:
                        continue
                    claimed.append(match.span())
                    result.spans.append(match.span())
                    result.counts.setdefault(kind, CountMatch(kind, count, *match.span()))
        for kind, matcher in self._compounds.items():
            for term in matcher.finditer(text, exclude=claimed):
                claimed.append((term.start, term.end))
                result.spans.append((term.start, term.end))
                result.counts.setdefault(kind, CountMatch(kind, term.value, term.start, term.end))
        return result

    def derive(self, features: Sequence[str]) -> Tuple[Optional[int], Optional[int]]:
        """Room and bathroom counts of a property, read from its count features."""
        return self._derive(tuple(features))

    def _derive_counts(self, features: Tuple[str, ...]) -> Tuple[Optional[int], Optional[int]]:
        rooms: Optional[int] = None
        bathrooms: Optional[int] = None
        for feature in features:
            result = self.read(normalize_query(feature))
            if rooms is None:
                rooms = result.get(ROOMS)
            if bathrooms is None:
                bathrooms = result.get(BATHROOMS)
        return rooms, bathrooms
