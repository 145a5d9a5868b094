"""
Embedding provider client.

Talks to an OpenAI-compatible ``POST {base_url}/embeddings`` endpoint and
turns text into vectors for semantic ranking and for building the
precomputed embedding index.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

import httpx

from aqar.config import Settings
from aqar.errors import EmbeddingProviderError

logger = logging.getLogger(__name__)


class EmbeddingService:
    """Async client for the embedding provider."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_backoff: float = 0.5,
    ) -> None:
        """
        Initialize the embedding client.

        Args:
            settings: Application settings containing provider configuration.
            transport: Optional httpx transport, e.g. ``httpx.MockTransport``.
            retry_backoff: Seconds to wait before the first retry; doubles
                on each further attempt.
        """
        self.api_key = settings.embedding_api_key
        self.base_url = settings.embedding_base_url.rstrip("/")
        self.model = settings.embedding_model
        self.max_retries = settings.embedding_max_retries
        self.retry_backoff = retry_backoff

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        self.client = httpx.AsyncClient(
            timeout=settings.embedding_timeout,
            headers=headers,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def embed(self, text: str) -> List[float]:
        """Embed a single text."""
        vectors = await self.embed_many([text])
        return vectors[0]

    async def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Embed a batch of texts in one request.

        Transport failures, rate limiting (429) and 5xx answers are retried
        up to ``embedding_max_retries`` times.

        Returns:
            One vector per input text, in input order.

        Raises:
            EmbeddingProviderError: If the provider keeps failing or answers
                with something that is not an embedding list.
        """
        if not texts:
            return []
        url = f"{self.base_url}/embeddings"
        payload = {"model": self.model, "input": list(texts)}

        attempt = 0
        while True:
            try:
                response = await self.client.post(url, json=payload)
                response.raise_for_status()
                break
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                retryable = status == 429 or status >= 500
                if retryable and attempt < self.max_retries:
                    attempt += 1
                    logger.warning("Embedding provider returned %d, retry %d", status, attempt)
                    await self._backoff(attempt)
                    continue
                logger.error("Embedding request failed with HTTP %d", status)
                raise EmbeddingProviderError(
                    f"Embedding provider returned HTTP {status}",
                    retryable=retryable,
                    status_code=status,
                ) from e
            except httpx.RequestError as e:
                if attempt < self.max_retries:
                    attempt += 1
                    logger.warning("Embedding provider unreachable (%s), retry %d", e, attempt)
                    await self._backoff(attempt)
                    continue
                logger.error("Embedding provider unreachable: %s", e)
                raise EmbeddingProviderError(f"Embedding provider unreachable: {e}") from e

        return self._parse_embeddings(response, len(texts))

    async def _backoff(self, attempt: int) -> None:
        if self.retry_backoff > 0:
            await asyncio.sleep(self.retry_backoff * 2 ** (attempt - 1))

    @staticmethod
    def _parse_embeddings(response: httpx.Response, expected: int) -> List[List[float]]:
        try:
            items = sorted(response.json()["data"], key=lambda item: item.get("index", 0))
            vectors = [[float(value) for value in item["embedding"]] for item in items]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise EmbeddingProviderError(
                f"Malformed embedding response: {e}", retryable=False
            ) from e
        if len(vectors) != expected:
            raise EmbeddingProviderError(
                f"Expected {expected} embeddings, got {len(vectors)}", retryable=False
            )
        return vectors

