"""
Pydantic models for parsed query intent.

A `SearchCriteria` is built fresh for every query by the criteria extractor
and never mutated afterwards. Every field is optional: an absent field means
the query placed no constraint on that attribute.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

PriceOrder = Literal["asc", "desc"]


class FeatureCriteria(BaseModel):
    """Feature constraints split by conjunctive and disjunctive semantics."""

    model_config = ConfigDict(frozen=True)

    required: List[str] = Field(
        default_factory=list,
        description="Canonical features that must all be present",
    )
    optional: List[str] = Field(
        default_factory=list,
        description="Canonical features of which at least one must be present",
    )

    def is_empty(self) -> bool:
        return not self.required and not self.optional


class SearchCriteria(BaseModel):
    """
    Structured search criteria extracted from a natural language query.

    Room and bathroom counts are matched exactly, not as minimums. Price
    bounds are inclusive.
    """

    model_config = ConfigDict(frozen=True)

    type: Optional[str] = Field(default=None, description="Canonical property type")
    city: Optional[str] = Field(default=None, description="Canonical city")
    districts: List[str] = Field(
        default_factory=list,
        description="Acceptable canonical districts (any one of them)",
    )
    features: FeatureCriteria = Field(default_factory=FeatureCriteria)
    room_count: Optional[int] = Field(default=None, ge=0, description="Exact number of rooms")
    bathroom_count: Optional[int] = Field(
        default=None,
        ge=0,
        description="Exact number of bathrooms",
    )
    min_price: Optional[int] = Field(default=None, ge=0, description="Inclusive lower price bound")
    max_price: Optional[int] = Field(default=None, ge=0, description="Inclusive upper price bound")
    price_order: Optional[PriceOrder] = Field(
        default=None,
        description="Requested price ordering ('asc' for cheapest first)",
    )

    @model_validator(mode="after")
    def _check_price_bounds(self) -> "SearchCriteria":
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ValueError(
                f"min_price ({self.min_price}) cannot exceed max_price ({self.max_price})"
            )
        return self

    def has_location(self) -> bool:
        return self.city is not None or bool(self.districts)

    def has_price(self) -> bool:
        return self.min_price is not None or self.max_price is not None

    def is_unconstrained(self) -> bool:
        """True when no filtering criterion is set."""
        return (
            self.type is None
            and not self.has_location()
            and self.features.is_empty()
            and self.room_count is None
            and self.bathroom_count is None
            and not self.has_price()
        )


class ExtractionResult(BaseModel):
    """Criteria parsed from one query together with the parse confidence."""

    model_config = ConfigDict(frozen=True)

    criteria: SearchCriteria = Field(default_factory=SearchCriteria)
    confidence: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Fraction of criteria slots (type, location, features, price) filled",
    )
