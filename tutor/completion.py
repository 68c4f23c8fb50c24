"""
OpenAI chat-completion client for the tutor.

Sends a system prompt built from formatted library context plus the user's
message, with retry on transient API errors.
"""

import logging
import os
import time
from dataclasses import dataclass

from openai import OpenAI, OpenAIError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_MAX_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.7
EMPTY_RESPONSE_TEXT = "No text response received from the model"

SYSTEM_PROMPT_PREFIX = (
    "You are a helpful Spanish language tutor. Use the following Spanish language "
    "reference materials to help answer the user's question:\n\n"
)


class CompletionError(Exception):
    """Raised when the LLM API does not return a completion."""


@dataclass
class Completion:
    text: str
    model: str
    input_tokens: int
    output_tokens: int
    elapsed_ms: float


def build_system_prompt(context: str) -> str:
    return SYSTEM_PROMPT_PREFIX + context


class CompletionClient:
    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        retries: int = 3,
    ):
        self._client = OpenAI(api_key=api_key or os.environ.get("OPENAI_API_KEY"))
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.retries = max(1, retries)

    def query_with_context(
        self,
        user_message: str,
        context: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> Completion:
        """Answer ``user_message`` using ``context`` as reference material."""
        return self.complete(
            build_system_prompt(context),
            user_message,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    def complete(
        self,
        system_prompt: str,
        user_message: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> Completion:
        t0 = time.perf_counter()
        params = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            "temperature": self.temperature if temperature is None else temperature,
            "max_tokens": max_tokens or self.max_tokens,
        }
        logger.debug(
            "Querying %s: message=%d chars system=%d chars",
            self.model, len(user_message), len(system_prompt),
        )

        for attempt in range(self.retries):
            try:
                response = self._client.chat.completions.create(**params)
                break
            except OpenAIError as e:
                if attempt < self.retries - 1:
                    wait = 2 ** (attempt + 1)
                    logger.warning("Completion API error: %s, retrying in %ds...", e, wait)
                    time.sleep(wait)
                else:
                    logger.error("Completion API failed after %d attempts: %s", self.retries, e)
                    raise CompletionError(f"Failed to get response from model: {e}") from e

        text = (response.choices[0].message.content or "").strip() if response.choices else ""
        usage = response.usage
        return Completion(
            text=text or EMPTY_RESPONSE_TEXT,
            model=self.model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            elapsed_ms=(time.perf_counter() - t0) * 1000,
        )
