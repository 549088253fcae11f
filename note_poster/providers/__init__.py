# note_poster/providers/__init__.py
"""Provider clients for prompt and image generation, plus the shared error taxonomy."""

from .errors import ErrorKind, GenerationError, classify_provider_exception, to_generation_error
from .image_client import ImageClient
from .keys import resolve_provider_key
from .prompt_client import PromptClient

__all__ = [
    "ErrorKind",
    "GenerationError",
    "classify_provider_exception",
    "to_generation_error",
    "ImageClient",
    "PromptClient",
    "resolve_provider_key",
]
