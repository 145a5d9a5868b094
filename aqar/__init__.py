"""Aqar Search: natural-language property search for Arabic and English queries."""

__version__ = "0.1.0"
