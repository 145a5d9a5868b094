"""
Pydantic models for property search functionality.

These models define the data structures used throughout the application
for API requests, responses, and the validated in-memory catalog.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from aqar.models.criteria import SearchCriteria

SearchMode = Literal["exact", "heuristic", "semantic"]
Locale = Literal["ar", "en"]


class Property(BaseModel):
    """
    Individual property listing from the catalog.

    Instances are created by the catalog loader, validated at that boundary
    and treated as immutable for the lifetime of the process.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique property identifier")
    title: str = Field(description="Display title")
    description: str = Field(default="", description="Property description")
    type: str = Field(description="Canonical property type")
    city: str = Field(description="Canonical city")
    district: str = Field(description="Canonical district")
    price: int = Field(gt=0, description="Asking price in SAR")
    features: List[str] = Field(
        default_factory=list,
        description="Canonical features, duplicates removed",
    )
    images: List[str] = Field(default_factory=list, description="Image URLs")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        # Older catalog dumps used numeric ids.
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("features")
    @classmethod
    def _dedupe_features(cls, value: List[str]) -> List[str]:
        seen = set()
        features = []
        for feature in value:
            feature = feature.strip()
            if feature and feature not in seen:
                seen.add(feature)
                features.append(feature)
        return features


class SearchResult(Property):
    """A matched property with its ranking score and derived display fields."""

    similarity_score: float = Field(
        ge=0.0,
        le=1.0,
        description="Semantic or heuristic closeness to the query (1.0 for exact matching)",
    )
    rooms: Optional[int] = Field(default=None, description="Room count derived from features")
    bathrooms: Optional[int] = Field(
        default=None,
        description="Bathroom count derived from features",
    )

    @classmethod
    def from_property(
        cls,
        prop: Property,
        similarity_score: float,
        rooms: Optional[int] = None,
        bathrooms: Optional[int] = None,
    ) -> "SearchResult":
        return cls(
            **prop.model_dump(),
            similarity_score=similarity_score,
            rooms=rooms,
            bathrooms=bathrooms,
        )


class SearchRequest(BaseModel):
    """API request body for property search."""

    query: str = Field(
        default="",
        max_length=2000,
        description="Natural language description of the desired property",
        examples=[
            "فيلا مع مسبح في الرياض",
            "شقة في حي النرجس اقل من مليون",
            "3 bedroom apartment in Jeddah under 1.5 million",
        ],
    )
    limit: Optional[int] = Field(
        default=None,
        gt=0,
        description="Maximum number of results (clamped to the configured maximum)",
    )
    locale: Optional[Locale] = Field(
        default=None,
        description="Lexicon and catalog pairing to use",
    )
    mode: SearchMode = Field(
        default="exact",
        description="Ranking strategy: exact (catalog order), heuristic or semantic",
    )


class VoiceRequest(BaseModel):
    """API request body for LLM-assisted criteria extraction from transcribed speech."""

    text: str = Field(..., min_length=1, max_length=2000)
    locale: Optional[Locale] = None


class ParseResponse(BaseModel):
    """API response describing how a query was understood."""

    criteria: SearchCriteria = Field(description="Criteria extracted from the query")
    confidence: float = Field(ge=0.0, le=1.0)
    understood: List[str] = Field(
        default_factory=list,
        description="Human-readable lines describing the parsed criteria",
    )


class SearchResponse(ParseResponse):
    """API response containing search results."""

    results: List[SearchResult] = Field(
        default_factory=list,
        description="Ranked matching properties",
    )
    total_count: int = Field(
        default=0,
        ge=0,
        description="Number of matching properties before truncation",
    )
    summary: Optional[str] = Field(
        default=None,
        description="Human-readable summary of the search results",
    )
