# note_poster/config/schema.py
"""
Pydantic configuration model for note-poster.

The settings record is flat (one key per setting) so it maps 1:1 onto the
YAML file and onto ``note-poster config set KEY VALUE``. Unknown keys are
ignored so older/newer config files load without crashing.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from note_poster.models import CartoonCuts, ImageSize, ImageStyle, ProviderId

PreferredLanguage = Literal["en", "ko", "ja", "zh", "es", "fr", "de"]


class PosterConfig(BaseModel):
    """Root configuration for note-poster."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    selected_provider: ProviderId = Field(
        default="google", description="Text provider used to write the image prompt"
    )
    openai_api_key: str = Field(default="", description="OpenAI API key")
    google_api_key: str = Field(
        default="", description="Google AI Studio API key (always required for images)"
    )
    anthropic_api_key: str = Field(default="", description="Anthropic API key")
    xai_api_key: str = Field(default="", description="xAI API key")

    prompt_model: str = Field(
        default="gemini-2.5-flash", description="Model used for prompt generation"
    )
    image_model: str = Field(
        default="gemini-3-pro-image-preview", description="Gemini image model"
    )

    image_style: ImageStyle = Field(default="infographic", description="Default poster style")
    image_size: ImageSize = Field(default="2K", description="Default output resolution")
    cartoon_cuts: CartoonCuts = Field(default="4", description="Default comic panel selector")
    custom_cartoon_cuts: int = Field(
        default=4, ge=2, le=12, description="Panel count when cartoon_cuts is 'custom'"
    )

    attachment_folder: str = Field(
        default="attachments",
        description="Where images are saved ('' = next to the note, './x' = relative to the note)",
    )
    auto_retry_count: int = Field(
        default=2, ge=0, le=5, description="Automatic retries for retryable provider errors"
    )
    preferred_language: PreferredLanguage = Field(
        default="en", description="Language for progress messages and text in the image"
    )
    show_preview_before_generation: bool = Field(
        default=True, description="Let the user review/edit the prompt before generating"
    )
    show_progress_modal: bool = Field(default=True, description="Show the live progress panel")
    custom_prompt_prefix: str = Field(
        default="", description="Text prepended to every generated prompt"
    )
    request_timeout: int = Field(
        default=60, ge=5, le=600, description="Timeout in seconds for each provider call"
    )
    image_timeout: int = Field(
        default=180, ge=10, le=1200, description="Timeout in seconds for each image generation call"
    )

    def api_keys(self) -> dict[str, str]:
        """Provider -> credential mapping for the key resolver."""
        return {
            "openai": self.openai_api_key,
            "google": self.google_api_key,
            "anthropic": self.anthropic_api_key,
            "xai": self.xai_api_key,
        }
