# note_poster/providers/prompt_client.py
"""Text-generation client that turns a note into an image prompt."""

import logging
import re
from typing import Any

from anthropic import AsyncAnthropic
from google import genai
from google.genai import types as genai_types
from openai import AsyncOpenAI

from note_poster.models import PromptResult

from .errors import ErrorKind, GenerationError, classify_provider_exception
from .prompts import PROMPT_SYSTEM, build_prompt_messages

logger = logging.getLogger(__name__)

XAI_BASE_URL = "https://api.x.ai/v1"

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def clean_prompt(text: str | None) -> str:
    """Strip code fences, surrounding quotes and a leading "Prompt:" label."""
    if not text:
        return ""
    cleaned = _FENCE_RE.sub("", text.strip()).strip()
    if cleaned.lower().startswith("prompt:"):
        cleaned = cleaned[len("prompt:"):].strip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in "\"'":
        cleaned = cleaned[1:-1].strip()
    return cleaned


class PromptClient:
    """
    Async prompt generator over OpenAI, Google, Anthropic and xAI.

    SDK clients are created lazily per (provider, credential) and reused until
    close() is called.
    """

    def __init__(self, timeout: float = 60.0, max_tokens: int = 2048):
        """
        Initialize prompt client.

        Args:
            timeout: Per-request timeout in seconds
            max_tokens: Output token cap for providers that require one
        """
        self._timeout = timeout
        self._max_tokens = max_tokens
        self._clients: dict[tuple[str, str], Any] = {}

    def _client_for(self, provider_id: str, credential: str) -> Any:
        key = (provider_id, credential)
        client = self._clients.get(key)
        if client is not None:
            return client

        if provider_id == "openai":
            client = AsyncOpenAI(api_key=credential, timeout=self._timeout)
        elif provider_id == "xai":
            client = AsyncOpenAI(api_key=credential, base_url=XAI_BASE_URL, timeout=self._timeout)
        elif provider_id == "anthropic":
            client = AsyncAnthropic(api_key=credential, timeout=self._timeout)
        elif provider_id == "google":
            client = genai.Client(
                api_key=credential,
                http_options=genai_types.HttpOptions(timeout=int(self._timeout * 1000)),
            )
        else:
            raise GenerationError(
                ErrorKind.GENERATION_FAILED,
                f"Unknown provider: {provider_id}",
                retryable=False,
            )

        self._clients[key] = client
        return client

    async def generate_prompt(
        self,
        note_text: str,
        provider_id: str,
        model: str,
        credential: str,
    ) -> PromptResult:
        """
        Ask the selected provider for an image prompt describing the note.

        Args:
            note_text: Note content (non-empty, checked upstream)
            provider_id: openai | google | anthropic | xai
            model: Provider model name
            credential: API key (non-empty, checked upstream)

        Returns:
            PromptResult with the cleaned prompt text

        Raises:
            GenerationError: Classified provider failure
        """
        client = self._client_for(provider_id, credential)
        messages = build_prompt_messages(note_text)
        logger.info(f"Generating prompt: provider={provider_id}, model={model}")

        try:
            if provider_id == "anthropic":
                raw = await self._anthropic(client, model, messages)
            elif provider_id == "google":
                raw = await self._google(client, model, messages)
            else:
                raw = await self._openai_compatible(client, model, messages)
        except GenerationError:
            raise
        except Exception as e:
            error = classify_provider_exception(e)
            logger.warning(f"Prompt generation failed ({error.kind.value}): {e}")
            raise error from e

        prompt = clean_prompt(raw)
        if not prompt:
            raise GenerationError(
                ErrorKind.GENERATION_FAILED,
                "Provider returned an empty prompt",
                retryable=False,
                details=f"provider={provider_id}, model={model}",
            )

        logger.info(f"Generated prompt ({len(prompt)} chars)")
        return PromptResult(prompt=prompt)

    async def _openai_compatible(self, client: Any, model: str, messages: list[dict]) -> str | None:
        response = await client.chat.completions.create(model=model, messages=messages)
        if not response.choices:
            return None
        return response.choices[0].message.content

    async def _anthropic(self, client: Any, model: str, messages: list[dict]) -> str:
        response = await client.messages.create(
            model=model,
            max_tokens=self._max_tokens,
            system=PROMPT_SYSTEM,
            messages=[m for m in messages if m["role"] != "system"],
        )
        return "".join(
            block.text for block in (response.content or []) if getattr(block, "type", "") == "text"
        )

    async def _google(self, client: Any, model: str, messages: list[dict]) -> str | None:
        user_text = "\n\n".join(m["content"] for m in messages if m["role"] == "user")
        response = await client.aio.models.generate_content(
            model=model,
            contents=user_text,
            config=genai_types.GenerateContentConfig(system_instruction=PROMPT_SYSTEM),
        )
        feedback = getattr(response, "prompt_feedback", None)
        if feedback is not None and getattr(feedback, "block_reason", None):
            raise GenerationError(
                ErrorKind.GENERATION_FAILED,
                "Prompt generation was blocked by the provider",
                retryable=False,
                details=str(feedback.block_reason),
            )
        return response.text

    async def close(self) -> None:
        """Close any SDK clients that hold connection pools."""
        for (provider_id, _), client in self._clients.items():
            if provider_id == "google":
                await client.aio.aclose()
            else:
                await client.close()
        self._clients.clear()
