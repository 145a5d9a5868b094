"""
Lexicon tables for query understanding.

Each supported locale ships one versioned JSON artifact under
``aqar/data/lexicons``. The artifact maps surface-form variants (spelling
mistakes, dialect synonyms, written-out numerals, unit words) onto canonical
attribute values. This module only describes and loads that data; matching
happens in the services that consume it.
"""

from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from aqar.errors import UnsupportedLocaleError

LEXICON_DIR = Path(__file__).resolve().parent.parent / "data" / "lexicons"

SUPPORTED_LOCALES: Tuple[str, ...] = ("ar", "en")


class Lexicon(BaseModel):
    """Vocabulary of one locale, as loaded from its JSON artifact."""

    model_config = ConfigDict(frozen=True)

    version: str = Field(description="Version of the lexicon artifact")
    locale: str = Field(description="Locale tag, e.g. 'ar' or 'en'")
    clitics: List[str] = Field(
        default_factory=list,
        description="Prefixes that attach to words without a space (و, ب, بال...)",
    )
    stopwords: List[str] = Field(default_factory=list)

    types: Dict[str, List[str]] = Field(description="Canonical property type -> surface forms")
    luxury_home_phrases: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Compound 'luxury home' phrases -> canonical type they stand for",
    )
    cities: Dict[str, List[str]]
    districts: Dict[str, List[str]]
    district_prefixes: List[str] = Field(default_factory=list)
    features: Dict[str, List[str]]

    room_words: List[str]
    bathroom_words: List[str]
    compound_rooms: Dict[str, int] = Field(default_factory=dict)
    compound_bathrooms: Dict[str, int] = Field(default_factory=dict)

    number_words: Dict[str, int]
    magnitudes: Dict[str, int]
    magnitude_duals: Dict[str, str] = Field(
        default_factory=dict,
        description="Dual magnitude words (مليونين) -> the magnitude word they double",
    )
    fractions: Dict[str, float] = Field(default_factory=dict)
    fraction_suffixes: Dict[str, float] = Field(default_factory=dict)
    currency_words: List[str] = Field(default_factory=list)

    max_price_phrases: List[str]
    min_price_phrases: List[str]
    exact_price_phrases: List[str] = Field(default_factory=list)
    range_connectors: List[str] = Field(default_factory=list)
    and_markers: List[str] = Field(default_factory=list)
    or_markers: List[str] = Field(default_factory=list)
    cheap_phrases: List[str] = Field(default_factory=list)
    expensive_phrases: List[str] = Field(default_factory=list)

    labels: Dict[str, str] = Field(default_factory=dict)
    messages: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_references(self) -> "Lexicon":
        for dual, base in self.magnitude_duals.items():
            if base not in self.magnitudes:
                raise ValueError(f"Dual magnitude {dual!r} refers to unknown magnitude {base!r}")
        for canonical in self.luxury_home_phrases:
            if canonical not in self.types:
                raise ValueError(f"Luxury home phrases map to unknown type {canonical!r}")
        return self

    @staticmethod
    def surface_map(table: Dict[str, List[str]]) -> Dict[str, str]:
        """Flatten a canonical -> surfaces table into surface -> canonical."""
        mapping: Dict[str, str] = {}
        for canonical, surfaces in table.items():
            mapping.setdefault(canonical, canonical)
            for surface in surfaces:
                mapping.setdefault(surface, canonical)
        return mapping

    def type_terms(self) -> Dict[str, str]:
        terms = self.surface_map(self.types)
        for surface, canonical in self.surface_map(self.luxury_home_phrases).items():
            terms.setdefault(surface, canonical)
        return terms

    def city_terms(self) -> Dict[str, str]:
        return self.surface_map(self.cities)

    def district_terms(self) -> Dict[str, str]:
        return self.surface_map(self.districts)

    def feature_terms(self) -> Dict[str, str]:
        return self.surface_map(self.features)

    def message(self, key: str, **values) -> str:
        return self.messages.get(key, key).format(**values)

    def label(self, key: str) -> str:
        return self.labels.get(key, key)


@lru_cache(maxsize=None)
def load_lexicon(locale: str) -> Lexicon:
    """
    Load the lexicon artifact for a locale.

    Cached so that each artifact is read and validated once per process.

    Raises:
        UnsupportedLocaleError: If no artifact exists for the locale.
    """
    if locale not in SUPPORTED_LOCALES:
        raise UnsupportedLocaleError(locale)
    path = LEXICON_DIR / f"{locale}.json"
    return Lexicon.model_validate_json(path.read_text(encoding="utf-8"))
