"""
Text normalisation and lexicon term matching.

Queries arrive with mixed numeral systems, Arabic orthographic variants
(hamza forms, taa marbuta, tatweel, diacritics) and stray punctuation.
Lexicon surface forms and queries go through the same folding so that they
compare equal, while canonical values keep their proper spelling.
"""

import re
from bisect import bisect_right
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

ARABIC_INDIC_DIGITS = "٠١٢٣٤٥٦٧٨٩"
EXTENDED_ARABIC_INDIC_DIGITS = "۰۱۲۳۴۵۶۷۸۹"

_DIGIT_TABLE = str.maketrans(
    {
        **{digit: str(value) for value, digit in enumerate(ARABIC_INDIC_DIGITS)},
        **{digit: str(value) for value, digit in enumerate(EXTENDED_ARABIC_INDIC_DIGITS)},
        "٫": ".",
        "٬": ",",
    }
)

_FOLD_TABLE = str.maketrans(
    {
        "أ": "ا",
        "إ": "ا",
        "آ": "ا",
        "ٱ": "ا",
        "ة": "ه",
        "ى": "ي",
        "ڤ": "ف",
        "ـ": None,
    }
)

_DIACRITICS = re.compile(r"[\u0610-\u061a\u064b-\u065f\u0670\u06d6-\u06ed]")
_THOUSANDS_SEPARATOR = re.compile(r"(?<=\d),(?=\d{3}(?!\d))")
_NOISE = re.compile(r"[^\w\s.,،؛;!?؟&+\-]")
_WHITESPACE = re.compile(r"\s+")
_CLAUSE_BREAK = re.compile(r"(?<!\d)\.|\.(?!\d)|[,،؛;!?؟]")

Span = Tuple[int, int]


def normalize_digits(text: str) -> str:
    """Map Arabic-Indic digits and separators onto their Latin equivalents."""
    return text.translate(_DIGIT_TABLE)


def fold_text(text: str) -> str:
    """
    Fold a string for matching.

    Lower-cases, converts native digits, removes diacritics and tatweel and
    merges orthographic variants (alef forms, taa marbuta, alef maqsura).
    """
    folded = normalize_digits(text).translate(_FOLD_TABLE)
    return _DIACRITICS.sub("", folded).lower()


def normalize_query(text: Optional[str]) -> str:
    """
    Normalise raw query text into the form every scanner works on.

    Applies `fold_text`, drops thousands separators inside numbers, turns
    punctuation that carries no meaning into spaces and collapses whitespace.
    Clause punctuation is kept so that clauses can still be told apart.
    """
    if not text:
        return ""
    normalized = _THOUSANDS_SEPARATOR.sub("", fold_text(text))
    normalized = _NOISE.sub(" ", normalized)
    return _WHITESPACE.sub(" ", normalized).strip()


def clause_starts(text: str) -> List[int]:
    """Return the sorted start offsets of the clauses in normalised text."""
    return [0] + [match.end() for match in _CLAUSE_BREAK.finditer(text)]


def clause_of(starts: Sequence[int], position: int) -> int:
    """Index of the clause containing `position`, given `clause_starts` output."""
    return bisect_right(starts, position) - 1


def overlaps(start: int, end: int, spans: Iterable[Span]) -> bool:
    return any(start < span_end and span_start < end for span_start, span_end in spans)


def alternation(options: Iterable[str]) -> str:
    """Regex alternation of the given literals, longest first."""
    unique = sorted({option for option in options if option}, key=lambda o: (-len(o), o))
    return "|".join(re.escape(option) for option in unique)


@dataclass(frozen=True)
class TermMatch:
    """A lexicon surface form found in normalised text."""

    start: int
    end: int
    value: Any
    surface: str
    clitic: str = ""


class TermMatcher:
    """
    Token-aware matcher for a table of surface forms.

    A surface form only matches when it starts at a word start, optionally
    preceded by one of the locale's clitics (``و``, ``بال``...) or by one of
    the given prefixes followed by whitespace, and ends at a word end. Longer
    surface forms win when several start at the same position.
    """

    def __init__(
        self,
        terms: Mapping[str, Any],
        clitics: Iterable[str] = (),
        prefixes: Iterable[str] = (),
    ) -> None:
        self._values = {}
        for surface, value in terms.items():
            key = normalize_query(surface)
            if key:
                self._values.setdefault(key, value)

        self.pattern: Optional[re.Pattern] = None
        if not self._values:
            return

        parts = [r"(?<!\w)"]
        prefix_options = alternation(normalize_query(prefix) for prefix in prefixes)
        if prefix_options:
            parts.append(rf"(?:(?:{prefix_options})\s+)?")
        clitic_options = alternation(normalize_query(clitic) for clitic in clitics)
        if clitic_options:
            parts.append(rf"(?P<clitic>{clitic_options})?")
        parts.append(rf"(?P<term>{alternation(self._values)})(?!\w)")
        self.pattern = re.compile("".join(parts))

    def __contains__(self, surface: str) -> bool:
        return normalize_query(surface) in self._values

    def finditer(
        self,
        text: str,
        pos: int = 0,
        endpos: Optional[int] = None,
        exclude: Iterable[Span] = (),
    ) -> List[TermMatch]:
        """All non-overlapping matches in `text[pos:endpos]`, left to right."""
        if self.pattern is None:
            return []
        excluded = list(exclude)
        endpos = len(text) if endpos is None else endpos
        matches = []
        for match in self.pattern.finditer(text, pos, endpos):
            if overlaps(match.start(), match.end(), excluded):
                continue
            term = match.group("term")
            matches.append(
                TermMatch(
                    start=match.start(),
                    end=match.end(),
                    value=self._values[term],
                    surface=term,
                    clitic=match.groupdict().get("clitic") or "",
                )
            )
        return matches

    def search(self, text: str, pos: int = 0, endpos: Optional[int] = None) -> Optional[TermMatch]:
        matches = self.finditer(text, pos, endpos)
        return matches[0] if matches else None

    def lookup(self, value: str) -> Optional[Any]:
        """Canonical value for a single phrase, exact surface first."""
        key = normalize_query(value)
        if key in self._values:
            return self._values[key]
        match = self.search(key)
        return match.value if match else None
