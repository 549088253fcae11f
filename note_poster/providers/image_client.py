# note_poster/providers/image_client.py
"""Image-generation client for Gemini image models."""

import base64
import logging
from typing import Any

from google import genai
from google.genai import types as genai_types

from note_poster.models import ImageResult

from .errors import ErrorKind, GenerationError, classify_provider_exception
from .prompts import build_image_prompt

logger = logging.getLogger(__name__)

# Finish reasons that mean the provider refused on policy grounds
FILTERED_FINISH_REASONS = frozenset(
    {
        "SAFETY",
        "IMAGE_SAFETY",
        "PROHIBITED_CONTENT",
        "IMAGE_PROHIBITED_CONTENT",
        "BLOCKLIST",
        "SPII",
        "RECITATION",
    }
)

DEFAULT_MIME_TYPE = "image/png"


def _reason_name(reason: Any) -> str:
    """Enum or string reason -> upper-case name."""
    if reason is None:
        return ""
    return str(getattr(reason, "name", reason)).rsplit(".", 1)[-1].upper()


class ImageClient:
    """
    Async Gemini image generator.

    Builds a style/language-aware instruction around the prompt, requests an
    IMAGE-only response and decodes the first inline image part.
    """

    def __init__(self, timeout: float = 120.0):
        """
        Initialize image client.

        Args:
            timeout: Per-request timeout in seconds (image models are slow)
        """
        self._timeout = timeout
        self._clients: dict[str, genai.Client] = {}

    def _client_for(self, credential: str) -> genai.Client:
        client = self._clients.get(credential)
        if client is None:
            client = genai.Client(
                api_key=credential,
                http_options=genai_types.HttpOptions(timeout=int(self._timeout * 1000)),
            )
            self._clients[credential] = client
        return client

    async def close(self) -> None:
        """Close the cached Gemini clients."""
        for client in self._clients.values():
            await client.aio.aclose()
        self._clients.clear()

    async def generate_image(
        self,
        prompt: str,
        credential: str,
        model: str,
        style: str,
        language: str,
        size: str,
        panel_count: int | None = None,
    ) -> ImageResult:
        """
        Generate a poster image.

        Args:
            prompt: Image prompt (non-empty)
            credential: Google API key
            model: Gemini image model name
            style: infographic | poster | diagram | mindmap | timeline | cartoon
            language: Language code for text rendered in the image
            size: 1K | 2K | 4K
            panel_count: Comic panels (cartoon style only)

        Returns:
            ImageResult with raw bytes and MIME type

        Raises:
            GenerationError: Classified failure (CONTENT_FILTERED / NO_CONTENT included)
        """
        if not prompt.strip():
            raise GenerationError(ErrorKind.NO_CONTENT, "Prompt is empty", retryable=False)

        full_prompt = build_image_prompt(
            prompt, style, language, panel_count if style == "cartoon" else None
        )
        config = genai_types.GenerateContentConfig(
            response_modalities=["IMAGE"],
            image_config=genai_types.ImageConfig(image_size=size),
        )
        logger.info(
            f"Generating image: model={model}, style={style}, size={size}, "
            f"panels={panel_count if style == 'cartoon' else '-'}"
        )

        client = self._client_for(credential)
        try:
            response = await client.aio.models.generate_content(
                model=model,
                contents=full_prompt,
                config=config,
            )
        except Exception as e:
            error = classify_provider_exception(e)
            logger.warning(f"Image generation failed ({error.kind.value}): {e}")
            raise error from e

        result = self._extract_image(response)
        logger.info(f"Generated image: {len(result.image_bytes)} bytes ({result.mime_type})")
        return result

    def _extract_image(self, response: Any) -> ImageResult:
        feedback = getattr(response, "prompt_feedback", None)
        block_reason = getattr(feedback, "block_reason", None) if feedback else None
        if block_reason:
            raise GenerationError(
                ErrorKind.CONTENT_FILTERED,
                "The request was blocked by the content policy",
                retryable=False,
                details=_reason_name(block_reason),
            )

        candidates = getattr(response, "candidates", None) or []
        finish_reasons = []
        for candidate in candidates:
            content = getattr(candidate, "content", None)
            for part in getattr(content, "parts", None) or []:
                inline = getattr(part, "inline_data", None)
                if inline is None or not getattr(inline, "data", None):
                    continue
                data = inline.data
                image_bytes = base64.b64decode(data) if isinstance(data, str) else bytes(data)
                return ImageResult(
                    image_bytes=image_bytes,
                    mime_type=getattr(inline, "mime_type", None) or DEFAULT_MIME_TYPE,
                )
            finish_reasons.append(_reason_name(getattr(candidate, "finish_reason", None)))

        filtered = [r for r in finish_reasons if r in FILTERED_FINISH_REASONS]
        if filtered:
            raise GenerationError(
                ErrorKind.CONTENT_FILTERED,
                "The image was filtered by the content policy",
                retryable=False,
                details=filtered[0],
            )

        raise GenerationError(
            ErrorKind.NO_CONTENT,
            "The provider returned no image",
            retryable=False,
            details=", ".join(r for r in finish_reasons if r) or None,
        )
