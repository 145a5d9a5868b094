"""
API routes for property search functionality.
"""

import logging
from typing import Annotated, Dict, NamedTuple, Optional

import anthropic
from fastapi import APIRouter, Depends, HTTPException, Request, status

from aqar.config import Settings
from aqar.errors import (
    EmbeddingProviderError,
    InvalidLimitError,
    MissingEmbeddingError,
    UnsupportedLocaleError,
)
from aqar.models.criteria import SearchCriteria
from aqar.models.property import ParseResponse, SearchRequest, SearchResponse, VoiceRequest
from aqar.services.cache import ResultCache
from aqar.services.claude_service import ClaudeCriteriaService
from aqar.services.search_engine import SearchEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["search"])

RETRY_AFTER_SECONDS = "5"


class Services(NamedTuple):
    """Container for objects built at startup and shared by all requests."""

    settings: Settings
    engines: Dict[str, SearchEngine]
    cache: ResultCache
    claude: Optional[ClaudeCriteriaService]

    def engine(self, locale: Optional[str]) -> SearchEngine:
        locale = locale or self.settings.default_locale
        try:
            return self.engines[locale]
        except KeyError:
            raise UnsupportedLocaleError(locale) from None

    def limit(self, requested: Optional[int]) -> int:
        limit = requested if requested is not None else self.settings.default_limit
        if limit <= 0:
            raise InvalidLimitError(limit)
        return min(limit, self.settings.max_limit)


def get_services(request: Request) -> Services:
    """Dependency that provides the startup-built services."""
    state = request.app.state
    return Services(
        settings=state.settings,
        engines=state.engines,
        cache=state.cache,
        claude=state.claude,
    )


@router.post(
    "/search",
    response_model=SearchResponse,
    summary="Search for properties",
    description="Parse a free-form query, filter the catalog and rank the matches.",
)
async def search_properties(
    request: SearchRequest,
    services: Annotated[Services, Depends(get_services)],
) -> SearchResponse:
    """
    Search for properties based on a natural language query.

    An empty query means "no constraints" and returns the first catalog
    entries. Responses are cached per (locale, mode, query, limit).

    Raises:
        HTTPException: 422 for a bad limit or locale, 409 when semantic
            ranking has no embedding data, 502/503 when the embedding
            provider fails.
    """
    logger.info("Received search request (%s): %s", request.mode, request.query[:100])

    try:
        engine = services.engine(request.locale)
        limit = services.limit(request.limit)

        key = ResultCache.make_key(engine.locale, request.mode, request.query, limit)
        cached = services.cache.get(key)
        if cached is not None:
            logger.info("Serving cached response")
            return cached

        response = await engine.search(request.query, limit, request.mode)
        services.cache.set(key, response)
        return response

    except (InvalidLimitError, UnsupportedLocaleError) as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        ) from e

    except MissingEmbeddingError as e:
        logger.warning("Semantic search unavailable: %s", e)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e

    except EmbeddingProviderError as e:
        logger.error("Embedding provider error: %s", e)
        if e.status_code is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Failed to connect to the embedding provider. Please try again later.",
                headers={"Retry-After": RETRY_AFTER_SECONDS},
            ) from e
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Embedding provider error: {e}",
            headers={"Retry-After": RETRY_AFTER_SECONDS} if e.retryable else None,
        ) from e

    except Exception as e:
        logger.exception("Unexpected error during search")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"An unexpected error occurred: {type(e).__name__}: {e}",
        ) from e


@router.post(
    "/parse",
    response_model=ParseResponse,
    summary="Show how a query was understood",
    description="Extract structured criteria from a query without searching.",
)
async def parse_query(
    request: SearchRequest,
    services: Annotated[Services, Depends(get_services)],
) -> ParseResponse:
    try:
        return services.engine(request.locale).parse(request.query)

    except UnsupportedLocaleError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        ) from e


@router.post(
    "/voice",
    response_model=SearchCriteria,
    summary="Extract criteria from transcribed speech",
    description="Ask Claude for search criteria and map them onto the lexicon.",
)
async def voice_criteria(
    request: VoiceRequest,
    services: Annotated[Services, Depends(get_services)],
) -> SearchCriteria:
    """
    Extract search criteria from a voice transcript using Claude.

    Raises:
        HTTPException: 503 when no Anthropic key is configured or Claude is
            unreachable, 502 on Claude API errors, 422 when the answer is
            not usable criteria.
    """
    if services.claude is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Voice search is not configured (ANTHROPIC_API_KEY is missing).",
        )

    try:
        engine = services.engine(request.locale)
        return await services.claude.extract_criteria(request.text, engine.extractor)

    except ValueError as e:
        logger.error("Failed to extract voice criteria: %s", e)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Could not understand the request: {e}",
        ) from e

    except anthropic.APIStatusError as e:
        logger.error("Anthropic API error: %s", e.message)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Claude API error: {e.message}",
        ) from e

    except anthropic.APIConnectionError as e:
        logger.error("Failed to connect to Anthropic API: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to connect to Claude API. Please try again later.",
        ) from e
