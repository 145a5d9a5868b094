"""
Claude API service for extracting search criteria from transcribed speech.

Spoken queries ramble more than typed ones, so the voice endpoint asks
Claude for the criteria and then maps every value it returns onto the
locale's lexicon, dropping anything the catalog could never match.
"""

import json
import logging
from typing import Any, Optional

from anthropic import AsyncAnthropic
from pydantic import ValidationError

from aqar.config import Settings
from aqar.models.criteria import SearchCriteria
from aqar.services.extractor import CriteriaExtractor

logger = logging.getLogger(__name__)

EXTRACTION_SYSTEM_PROMPT = """You are a real-estate search assistant for Saudi Arabia. You read a transcribed spoken request (Arabic or English) and extract structured search criteria.

Return a JSON object with exactly this structure:

{{
    "type": <one of {types} or null>,
    "city": <one of {cities} or null>,
    "districts": [<zero or more of {districts}>],
    "features": {{
        "required": [<features the user wants all of, from {features}>],
        "optional": [<features of which any one is enough, from the same list>]
    }},
    "room_count": <integer or null>,
    "bathroom_count": <integer or null>,
    "min_price": <integer in SAR or null>,
    "max_price": <integer in SAR or null>,
    "price_order": <"asc" for cheapest first, "desc" for most expensive first, or null>
}}

Guidelines:
- Use the listed values verbatim; map synonyms and misspellings onto them
- Convert price mentions to integers (e.g., "مليونين" = 2000000, "1.5m" = 1500000)
- "under/less than" is a max_price, "above/at least" is a min_price
- Room and bathroom counts are exact numbers the user asked for
- If something isn't mentioned, use null for values or empty lists
- Return ONLY the JSON object, no additional text or explanation"""


def strip_code_fence(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        cleaned = "\n".join(line for line in lines[1:] if not line.startswith("```"))
    return cleaned


class ClaudeCriteriaService:
    """Service for asking Claude to extract search criteria."""

    def __init__(self, settings: Settings, client: Optional[Any] = None) -> None:
        """
        Initialize the Claude service.

        Args:
            settings: Application settings containing API configuration.
            client: Optional pre-built Anthropic client (used by tests).
        """
        self.client = client or AsyncAnthropic(api_key=settings.anthropic_api_key)
        self.model = settings.claude_model
        self.max_tokens = settings.claude_max_tokens

    def system_prompt(self, extractor: CriteriaExtractor) -> str:
        lexicon = extractor.lexicon
        return EXTRACTION_SYSTEM_PROMPT.format(
            types=json.dumps(list(lexicon.types), ensure_ascii=False),
            cities=json.dumps(list(lexicon.cities), ensure_ascii=False),
            districts=json.dumps(list(lexicon.districts), ensure_ascii=False),
            features=json.dumps(list(lexicon.features), ensure_ascii=False),
        )

    async def extract_criteria(self, text: str, extractor: CriteriaExtractor) -> SearchCriteria:
        """
        Extract canonical search criteria from transcribed speech.

        Args:
            text: Transcribed request.
            extractor: Extractor of the request's locale, used to map values
                onto the lexicon.

        Raises:
            ValueError: If Claude's response is not valid criteria JSON.
            anthropic.APIError: If the API request fails.
        """
        logger.info("Extracting voice criteria (%s): %s", extractor.lexicon.locale, text[:100])

        message = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=self.system_prompt(extractor),
            messages=[
                {
                    "role": "user",
                    "content": f"Extract property search criteria from this request:\n\n{text}",
                }
            ],
        )

        response_text = message.content[0].text
        logger.debug("Claude response: %s", response_text)

        try:
            raw = SearchCriteria.model_validate(json.loads(strip_code_fence(response_text)))
        except json.JSONDecodeError as e:
            logger.error("Failed to parse Claude response as JSON: %s", e)
            raise ValueError(f"Failed to parse search criteria from response: {response_text}") from e
        except ValidationError as e:
            logger.error("Claude returned invalid criteria: %s", e)
            raise ValueError(f"Invalid search criteria in response: {e}") from e

        criteria = extractor.canonicalize(raw)
        logger.info("Voice criteria: %s", criteria.model_dump(exclude_defaults=True))
        return criteria


# Dependency injection helper for FastAPI
_claude_service: Optional[ClaudeCriteriaService] = None


def get_claude_service(settings: Settings) -> Optional[ClaudeCriteriaService]:
    """
    Get or create the Claude service singleton.

    Returns None when no Anthropic key is configured.
    """
    global _claude_service
    if not settings.anthropic_api_key:
        return None
    if _claude_service is None:
        _claude_service = ClaudeCriteriaService(settings)
    return _claude_service
