"""
PolicyQA Embedding Generator

Async client for an OpenAI-compatible ``/embeddings`` endpoint.
Document batches degrade to null vectors on failure so ingestion can still
store text; query embedding failures are fatal.
"""

import logging

import httpx

from policyqa.config import Settings, get_settings
from policyqa.errors import EmbeddingFailure, InvalidProviderResponse

logger = logging.getLogger(__name__)


class EmbeddingGenerator:
    """Generates dense vectors for chunk text and queries."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        timeout: float = 30.0,
        dimension: int | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        # Vectors of any other width would be rejected by the chunk column
        self.dimension = dimension

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "EmbeddingGenerator":
        settings = settings or get_settings()
        return cls(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            model=settings.embedding_model,
            timeout=settings.embedding_timeout_seconds,
            dimension=settings.embedding_dimension,
        )

    async def generate_embeddings(self, texts: list[str]) -> list[list[float] | None]:
        """Embed ``texts`` in a single batched request.

        Returns a list aligned with ``texts``. Every position is None when
        the key is missing, the request fails, or the response does not
        match the request.
        """
        if not texts:
            return []

        empty: list[list[float] | None] = [None] * len(texts)

        if not self.api_key:
            logger.warning(
                "Embedding API key not configured; storing %d chunks without embeddings",
                len(texts),
            )
            return empty

        try:
            return await self._request(texts)
        except InvalidProviderResponse as e:
            logger.warning("Discarding embedding batch: %s", e.details)
        except (httpx.ConnectTimeout, httpx.ReadTimeout) as e:
            logger.warning("Embedding request timed out: %s", e)
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Embedding provider HTTP error %d: %s", e.response.status_code, e
            )
        except httpx.HTTPError as e:
            logger.warning("Embedding request failed: %s", e)
        return empty

    async def embed_query(self, query: str) -> list[float]:
        """Embed a single query string.

        Raises:
            EmbeddingFailure: If no vector could be produced.
        """
        vectors = await self.generate_embeddings([query])
        if not vectors or vectors[0] is None:
            raise EmbeddingFailure("Failed to generate query embedding")
        return vectors[0]

    async def _request(self, texts: list[str]) -> list[list[float] | None]:
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
            response = await client.post(
                f"{self.base_url}/embeddings",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"model": self.model, "input": texts},
            )
            response.raise_for_status()
            try:
                payload = response.json()
            except ValueError as e:
                raise InvalidProviderResponse(
                    f"Embedding response is not JSON: {e}"
                ) from e

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list) or len(data) != len(texts):
            got = len(data) if isinstance(data, list) else 0
            raise InvalidProviderResponse(
                f"Expected {len(texts)} embeddings, got {got}"
            )

        # The provider tags each item with its input position
        ordered: list[list[float] | None] = [None] * len(texts)
        for position, item in enumerate(data):
            if not isinstance(item, dict):
                raise InvalidProviderResponse(
                    f"Embedding item {position} is not an object"
                )
            index = item.get("index", position)
            if not isinstance(index, int) or not 0 <= index < len(texts):
                raise InvalidProviderResponse(f"Embedding index out of range: {index}")
            vector = item.get("embedding")
            if not isinstance(vector, list):
                raise InvalidProviderResponse(
                    f"Embedding item {position} has no vector"
                )
            if self.dimension is not None and len(vector) != self.dimension:
                raise InvalidProviderResponse(
                    f"Embedding item {position} has {len(vector)} dimensions, "
                    f"expected {self.dimension}"
                )
            ordered[index] = vector

        if any(vector is None for vector in ordered):
            raise InvalidProviderResponse("Embedding response has missing positions")
        return ordered
