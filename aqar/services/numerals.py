"""
Numeral normalisation for query understanding.

Turns native-script digits, spelled-out cardinals and magnitude words into
canonical integers, e.g. "٢ مليوون" -> 2,000,000, "3 مليون ونص" -> 3,500,000,
"2 and a half million" -> 2,500,000, "ست" -> 6, "half a million" -> 500,000.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from aqar.models.lexicon import Lexicon
from aqar.text import alternation, normalize_digits, normalize_query

_DIGITS = r"\d+(?:\.\d+)?"
_DIGITS_ONLY = re.compile(rf"{_DIGITS}")

MILLION = 1_000_000
THOUSAND = 1_000


@dataclass(frozen=True)
class Amount:
    """A numeral found in normalised text, with its optional magnitude."""

    start: int
    end: int
    number: float
    unit: Optional[int] = None

    @property
    def value(self) -> int:
        return int(round(self.number * (self.unit or 1)))


class NumeralNormalizer:
    """
    Converts numeral tokens of one locale into canonical integers.

    All lookups go through the locale's lexicon, so spelling variants of
    number and magnitude words live in data, not here.
    """

    normalize_digits = staticmethod(normalize_digits)

    def __init__(self, lexicon: Lexicon) -> None:
        self.lexicon = lexicon
        self._number_words = self._fold_keys(lexicon.number_words)
        self._magnitudes = self._fold_keys(lexicon.magnitudes)
        self._duals = {
            normalize_query(dual): self._magnitudes[normalize_query(base)]
            for dual, base in lexicon.magnitude_duals.items()
        }
        self._fractions = self._fold_keys(lexicon.fractions)
        self._fraction_suffixes = self._fold_keys(lexicon.fraction_suffixes)

        clitics = alternation(normalize_query(clitic) for clitic in lexicon.clitics)
        self.clitic_pattern = f"(?:{clitics})?" if clitics else ""
        self._amount_pattern = re.compile(self._build_amount_pattern())

    @staticmethod
    def _fold_keys(table: Dict[str, float]) -> Dict[str, float]:
        return {normalize_query(key): value for key, value in table.items()}

    def _build_amount_pattern(self) -> str:
        clitic = self.clitic_pattern
        magnitudes = alternation(self._magnitudes)
        # Bare magnitude words ("اقل من مليون") stand for one unit; single
        # letters like "m" or "k" only count right after a number.
        bare = alternation(
            word for word, value in self._magnitudes.items() if value >= MILLION and len(word) >= 3
        )

        number = rf"{clitic}(?P<digits>{_DIGITS})"
        if self._number_words:
            number = rf"(?:{number}|{clitic}(?P<word>{alternation(self._number_words)}))"
        branches = [rf"{number}(?:\s*(?P<unit>{magnitudes}))?"]
        if self._fractions:
            branches.insert(
                0,
                rf"{clitic}(?P<fraction>{alternation(self._fractions)})\s+"
                rf"(?P<fraction_unit>{magnitudes})",
            )
        if self._duals:
            branches.insert(0, rf"{clitic}(?P<dual>{alternation(self._duals)})")
        if bare:
            branches.append(rf"{clitic}(?P<bare>{bare})")

        suffix = ""
        if self._fraction_suffixes:
            # The magnitude may also come after the fraction: "2 and a half million".
            suffix = (
                rf"(?:\s*(?P<suffix>{alternation(self._fraction_suffixes)})"
                rf"(?:\s*(?P<late_unit>{magnitudes}))?)?"
            )
        return rf"(?<![\w.])(?P<core>{'|'.join(branches)}){suffix}(?!\w)"

    def number_pattern(self, name: str) -> str:
        """Regex fragment capturing one digit or number-word token as group `name`."""
        options = [r"\d+"]
        if self._number_words:
            options.insert(0, alternation(self._number_words))
        return rf"{self.clitic_pattern}(?P<{name}>{'|'.join(options)})"

    def magnitude_alternation(self) -> str:
        return alternation(self._magnitudes)

    def parse_number(self, token: Optional[str]) -> Optional[float]:
        """
        Parse a digit or spelled-out cardinal token.

        Returns:
            The numeric value, or None when the token is not a numeral.
        """
        if not token:
            return None
        key = normalize_query(token)
        if _DIGITS_ONLY.fullmatch(key):
            return float(key)
        if key in self._number_words:
            return float(self._number_words[key])
        for clitic in sorted(self.lexicon.clitics, key=len, reverse=True):
            stripped = key[len(clitic):] if key.startswith(clitic) else None
            if stripped and stripped in self._number_words:
                return float(self._number_words[stripped])
        return None

    def parse_count(self, token: Optional[str]) -> Optional[int]:
        """Parse a whole count (rooms, bathrooms); fractions are rejected."""
        number = self.parse_number(token)
        if number is None or not number.is_integer():
            return None
        return int(number)

    def magnitude_of(self, token: Optional[str]) -> Optional[int]:
        if not token:
            return None
        return self._magnitudes.get(normalize_query(token))

    def normalize(
        self,
        token: Optional[str],
        unit: Optional[str] = None,
        fraction: Optional[str] = None,
    ) -> Optional[int]:
        """
        Normalise a numeral token with an optional magnitude unit.

        Args:
            token: Digit or number-word token, e.g. "3", "٣" or "ثلاث".
            unit: Optional magnitude word, e.g. "مليون" or "thousand".
            fraction: Optional fractional suffix, e.g. "ونص" or "and a half",
                which adds that share of one unit.

        Returns:
            The absolute integer amount, or None when no numeral is found or
            the unit is unknown.
        """
        number = self.parse_number(token)
        if number is None:
            return None
        multiplier = 1
        if unit:
            magnitude = self.magnitude_of(unit)
            if magnitude is None:
                return None
            multiplier = magnitude
        if fraction:
            number += self._fraction_suffixes.get(normalize_query(fraction), 0.0)
        return int(round(number * multiplier))

    def find_amounts(self, text: str, pos: int = 0, endpos: Optional[int] = None) -> List[Amount]:
        """All numerals in normalised text, with magnitudes resolved."""
        endpos = len(text) if endpos is None else endpos
        amounts = []
        for match in self._amount_pattern.finditer(text, pos, endpos):
            groups = match.groupdict()
            unit: Optional[int] = None
            if groups.get("dual"):
                number, unit = 2.0, self._duals[groups["dual"]]
            elif groups.get("fraction"):
                number = self._fractions[groups["fraction"]]
                unit = self._magnitudes[groups["fraction_unit"]]
            elif groups.get("bare"):
                number, unit = 1.0, self._magnitudes[groups["bare"]]
            else:
                number = self.parse_number(groups.get("digits") or groups.get("word"))
                if number is None:
                    continue
                if groups.get("unit"):
                    unit = self._magnitudes[groups["unit"]]
            end = match.end()
            if groups.get("suffix"):
                late_unit = groups.get("late_unit")
                if unit is None and late_unit:
                    unit = self._magnitudes[late_unit]
                elif late_unit:
                    end = match.end("suffix")
                if unit is None:
                    # A fraction only scales a magnitude; "3 ونص" alone is 3.
                    end = match.end("core")
                else:
                    number += self._fraction_suffixes[groups["suffix"]]
            amounts.append(Amount(match.start(), end, number, unit))
        return amounts

    def parse_amount(self, text: Optional[str]) -> Optional[int]:
        """Absolute amount of the first numeral in `text`, e.g. "3 مليون ونص"."""
        amounts = self.find_amounts(normalize_query(text))
        return amounts[0].value if amounts else None

    def _unit_word(self, unit: int) -> Optional[str]:
        for word, value in self.lexicon.magnitudes.items():
            if value == unit and len(word) >= 3:
                return word
        return None

    def describe_amount(self, amount: int) -> str:
        """
        Render an amount in its textual magnitude class.

        The output parses back to the same amount through `parse_amount`:
        3_500_000 -> "3.5 مليون", 2_000 -> "2 ألف".
        """
        for unit, places in ((MILLION, 6), (THOUSAND, 3)):
            word = self._unit_word(unit)
            if word and amount >= unit:
                scaled = f"{amount / unit:.{places}f}".rstrip("0").rstrip(".")
                return f"{scaled} {word}"
        return str(amount)
