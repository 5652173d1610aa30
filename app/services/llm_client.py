"""Client for an OpenAI Responses-style text generation endpoint."""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx

from app.core.config import Settings

logger = logging.getLogger(__name__)

# Last-resort extraction only accepts text longer than this
MIN_FALLBACK_TEXT_LENGTH = 100


class TextGenerationError(Exception):
    """Base exception for text generation failures."""

    pass


class TextExtractionError(TextGenerationError):
    """The response envelope had no text we could extract."""

    pass


@dataclass
class LLMConfig:
    """Configuration for the text generation endpoint."""
    model: str
    api_key: str
    base_url: str = "https://api.openai.com/v1"
    reasoning_effort: str = "medium"
    max_output_tokens: int = 16000
    timeout_seconds: float = 600.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMConfig":
        return cls(
            model=settings.analysis_model,
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            reasoning_effort=settings.reasoning_effort,
            max_output_tokens=settings.max_output_tokens,
            timeout_seconds=settings.llm_timeout_seconds,
        )


class TextGenerator(Protocol):
    """Anything that turns instructions plus a prompt into text."""

    model: str

    async def generate(self, instructions: str, prompt: str) -> str: ...


def _content_text(item: Any, index: int = 0) -> Optional[str]:
    if not isinstance(item, dict):
        return None
    content = item.get("content")
    if not isinstance(content, list) or len(content) <= index:
        return None
    entry = content[index]
    if isinstance(entry, dict) and isinstance(entry.get("text"), str) and entry["text"]:
        return entry["text"]
    return None


def extract_output_text(envelope: dict[str, Any]) -> str:
    """Pull the generated text out of a response envelope.

    Reasoning models may emit a reasoning item before the message, so the
    output shape varies. Candidates are tried in order:

    1. the flattened ``output_text`` field
    2. the second output item's first content text
    3. the first output item's first content text
    4. any ``message`` item with a content text
    5. any content text longer than 100 characters

    Raises:
        TextExtractionError: If no candidate is found
    """
    direct = envelope.get("output_text")
    if isinstance(direct, str) and direct:
        return direct

    output = envelope.get("output")
    if not isinstance(output, list):
        output = []

    for position in (1, 0):
        if len(output) > position:
            text = _content_text(output[position])
            if text:
                return text

    for item in output:
        if isinstance(item, dict) and item.get("type") == "message":
            for entry in item.get("content") or []:
                if isinstance(entry, dict) and isinstance(entry.get("text"), str) and entry["text"]:
                    return entry["text"]

    for item in output:
        if not isinstance(item, dict):
            continue
        for entry in item.get("content") or []:
            text = entry.get("text") if isinstance(entry, dict) else None
            if isinstance(text, str) and len(text) > MIN_FALLBACK_TEXT_LENGTH:
                return text

    raise TextExtractionError("Could not extract text from the model response")


class TextGenerationClient:
    """Issues single generation requests over HTTP."""

    def __init__(
        self,
        config: LLMConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout_seconds)
        )

    @property
    def model(self) -> str:
        return self.config.model

    def build_payload(self, instructions: str, prompt: str) -> dict[str, Any]:
        return {
            "model": self.config.model,
            "instructions": instructions,
            "input": prompt,
            "reasoning": {"effort": self.config.reasoning_effort},
            "max_output_tokens": self.config.max_output_tokens,
            "text": {"format": {"type": "text"}},
        }

    async def generate(self, instructions: str, prompt: str) -> str:
        """Generate text for a prompt.

        Raises:
            TextGenerationError: If the request fails or returns an error status
            TextExtractionError: If the response has no usable text
        """
        url = f"{self.config.base_url.rstrip('/')}/responses"
        try:
            response = await self.http_client.post(
                url,
                json=self.build_payload(instructions, prompt),
                headers={"Authorization": f"Bearer {self.config.api_key}"},
            )
            response.raise_for_status()
            envelope = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Text generation returned {e.response.status_code}: {e.response.text[:500]}"
            )
            raise TextGenerationError(
                f"Text generation failed with status {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Text generation request failed: {e}")
            raise TextGenerationError(f"Text generation request failed: {e}") from e
        except ValueError as e:
            logger.error(f"Text generation returned invalid JSON: {e}")
            raise TextGenerationError("Text generation returned invalid JSON") from e

        if not isinstance(envelope, dict):
            raise TextExtractionError("Model response was not a JSON object")

        try:
            return extract_output_text(envelope)
        except TextExtractionError:
            logger.error(f"Could not extract text from response: {str(envelope)[:600]}")
            raise

    async def close(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()
