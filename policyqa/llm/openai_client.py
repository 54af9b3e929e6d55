"""
Chat Completion Client for PolicyQA

Async HTTP client for an OpenAI-compatible ``/chat/completions`` API with:
- Configurable timeout
- Optional transport-level retries (off by default)
- Health check
Every failure is raised as CompletionFailure; nothing is swallowed.
"""

import asyncio
import logging
import os

import httpx

from policyqa.config import Settings, get_settings
from policyqa.errors import CompletionFailure

logger = logging.getLogger(__name__)

# Retry configuration: one attempt unless explicitly raised
DEFAULT_MAX_ATTEMPTS = int(os.environ.get("LLM_MAX_ATTEMPTS", "1"))
RETRY_BACKOFF_BASE = 2  # seconds


class ChatCompletionClient:
    """Async client for chat-completion inference."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        timeout: float = 60.0,
        temperature: float = 0.2,
        max_tokens: int = 500,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_attempts = max(1, max_attempts)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ChatCompletionClient":
        settings = settings or get_settings()
        return cls(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            model=settings.chat_model,
            timeout=settings.llm_timeout_seconds,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )

    async def complete(self, messages: list[dict[str, str]]) -> str:
        """
        Send ``messages`` and return the assistant's reply text.

        Only connection and timeout errors are retried, and only when
        ``max_attempts`` > 1. HTTP errors fail immediately.

        Raises:
            CompletionFailure: On missing key, timeout, transport or HTTP
                error, or a malformed response.
        """
        if not self.api_key:
            raise CompletionFailure("Chat completion API key not configured")

        last_error: Exception | None = None
        for attempt in range(self.max_attempts):
            try:
                return await self._request(messages)
            except (httpx.ConnectTimeout, httpx.ReadTimeout) as e:
                logger.warning(
                    "Chat completion timeout (attempt %d/%d): %s",
                    attempt + 1,
                    self.max_attempts,
                    e,
                )
                last_error = e
            except httpx.ConnectError as e:
                logger.warning(
                    "Chat completion connection error (attempt %d/%d): %s",
                    attempt + 1,
                    self.max_attempts,
                    e,
                )
                last_error = e
            except httpx.HTTPStatusError as e:
                logger.error(
                    "Chat completion HTTP error %d: %s", e.response.status_code, e
                )
                raise CompletionFailure(
                    f"Provider returned HTTP {e.response.status_code}"
                ) from e
            except httpx.HTTPError as e:
                logger.error("Chat completion request failed: %s", e)
                raise CompletionFailure(f"Chat completion request failed: {e}") from e

            if attempt < self.max_attempts - 1:
                wait = RETRY_BACKOFF_BASE**attempt
                logger.info("Retrying in %ds...", wait)
                await asyncio.sleep(wait)

        raise CompletionFailure(
            f"Chat completion failed after {self.max_attempts} attempt(s): {last_error}"
        ) from last_error

    async def _request(self, messages: list[dict[str, str]]) -> str:
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "model": self.model,
                    "messages": messages,
                    "temperature": self.temperature,
                    "max_tokens": self.max_tokens,
                },
            )
            response.raise_for_status()

            try:
                data = response.json()
                content = data["choices"][0]["message"].get("content")
            except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
                raise CompletionFailure(
                    f"Malformed chat completion response: {e}"
                ) from e
        return content or ""

    async def health_check(self) -> bool:
        """Return True if the provider's model listing responds with 200."""
        if not self.api_key:
            return False
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(10)) as client:
                response = await client.get(
                    f"{self.base_url}/models",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning("Chat provider health check failed: %s", e)
            return False
