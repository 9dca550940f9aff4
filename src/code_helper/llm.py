# llm.py
# Text-generation client: one prompt in, one text reply out.
#
# Wraps the OpenAI-compatible chat completions endpoint (OpenRouter by
# default). The SDK's own retries are disabled; this module owns the retry
# policy so that only HTTP 429 and 5xx are retried, with exponential
# backoff. Everything else (timeouts included) surfaces immediately as a
# typed error from errors.py.

import asyncio
from typing import Protocol

import httpx
import openai
from openai import AsyncOpenAI

from code_helper.config import DEFAULT_BASE_URL, DEFAULT_MODEL
from code_helper.errors import (
    InvalidCredential,
    MalformedResponse,
    RateLimited,
    RequestFailed,
    ServerError,
    TextGenerationError,
    Timeout,
)
from code_helper.log import get_logger

logger = get_logger("llm")


class TextGenerator(Protocol):
    """Anything the agents can send a prompt to."""

    async def call(self, prompt: str) -> str: ...


class TextGenerationClient:
    """
    Single-prompt client with retry/backoff and typed error classification.

    Example:
        client = TextGenerationClient(credential="sk-or-...")
        text = await client.call("Explain this function.")
    """

    def __init__(
        self,
        *,
        credential: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        max_retries: int = 2,
        backoff_base: float = 1.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not credential or not credential.strip():
            raise InvalidCredential("No API key provided.")
        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._client = AsyncOpenAI(
            api_key=credential.strip(),
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
            http_client=http_client,
        )

    async def call(self, prompt: str) -> str:
        attempt = 0
        while True:
            try:
                return await self._request(prompt)
            except TextGenerationError as exc:
                if not exc.retryable or attempt >= self.max_retries:
                    logger.error(
                        "llm_call_failed",
                        model=self.model,
                        attempt=attempt + 1,
                        error_code=exc.code.value,
                        error=str(exc),
                    )
                    raise
                delay = self.backoff_base * (2**attempt)
                logger.warning(
                    "llm_call_retry",
                    model=self.model,
                    attempt=attempt + 1,
                    error_code=exc.code.value,
                    delay_seconds=delay,
                )
                await asyncio.sleep(delay)
                attempt += 1

    async def aclose(self) -> None:
        await self._client.close()

    # ------------------------------------------------------------------
    # Single attempt
    # ------------------------------------------------------------------

    async def _request(self, prompt: str) -> str:
        logger.debug("llm_request", model=self.model, prompt_chars=len(prompt))
        try:
            completion = await self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
            )
        except openai.AuthenticationError as exc:
            raise InvalidCredential("Invalid API key - check your credential.") from exc
        except openai.RateLimitError as exc:
            raise RateLimited("Rate limit exceeded - try again later.") from exc
        except openai.APITimeoutError as exc:
            raise Timeout(f"Request timed out after {self.timeout:.0f}s.") from exc
        except openai.APIConnectionError as exc:
            raise RequestFailed(f"Could not reach the model service: {exc}") from exc
        except openai.APIStatusError as exc:
            if exc.status_code >= 500:
                raise ServerError(
                    f"Model service error (HTTP {exc.status_code}) - try again later."
                ) from exc
            raise RequestFailed(f"API request failed: HTTP {exc.status_code}.") from exc
        except (ValueError, openai.APIError) as exc:
            # A 200 whose body is not JSON, or fails SDK validation.
            raise MalformedResponse(f"Unreadable response body: {exc}") from exc

        return _extract_text(completion)


def _extract_text(completion: object) -> str:
    """Pull choices[0].message.content, rejecting any other shape."""
    choices = getattr(completion, "choices", None)
    if not choices:
        raise MalformedResponse("Response contained no choices.")
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None)
    if not isinstance(content, str):
        raise MalformedResponse("Response choice had no text content.")
    return content.strip()
