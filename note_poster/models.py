# note_poster/models.py
"""
Core data model for poster generation.

Pydantic models for validated request/response data, plain dataclasses for
transient pipeline state (same split as the config and job models).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ProviderId = Literal["openai", "google", "anthropic", "xai"]
ImageStyle = Literal["infographic", "poster", "diagram", "mindmap", "timeline", "cartoon"]
ImageSize = Literal["1K", "2K", "4K"]
CartoonCuts = Literal["4", "6", "8", "custom"]

PROVIDERS: tuple[str, ...] = ("openai", "google", "anthropic", "xai")
IMAGE_STYLES: tuple[str, ...] = (
    "infographic",
    "poster",
    "diagram",
    "mindmap",
    "timeline",
    "cartoon",
)
IMAGE_SIZES: tuple[str, ...] = ("1K", "2K", "4K")
CARTOON_CUTS: tuple[str, ...] = ("4", "6", "8", "custom")

MIN_PANELS = 2
MAX_PANELS = 12


class ProgressStep(str, Enum):
    """Pipeline steps shown on the progress surface, in display order."""

    ANALYZING = "analyzing"
    GENERATING_PROMPT = "generating-prompt"
    GENERATING_IMAGE = "generating-image"
    SAVING = "saving"
    EMBEDDING = "embedding"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ProgressState:
    """Snapshot pushed to the progress surface at every phase transition."""

    step: ProgressStep
    progress: int  # 0-100
    message: str


class GenerationRequest(BaseModel):
    """Everything one poster generation needs, validated up front."""

    model_config = ConfigDict(extra="ignore")

    note_text: str = Field(description="Raw note content")
    provider_id: ProviderId = Field(description="Text provider used for the prompt")
    prompt_model: str = Field(description="Model name for prompt generation")
    image_model: str = Field(description="Model name for image generation")
    api_keys: dict[str, str] = Field(default_factory=dict, description="provider -> credential")
    style: ImageStyle = "infographic"
    size: ImageSize = "2K"
    panel_count: int | None = Field(
        default=None, description="Comic panels, only used when style is cartoon"
    )

    @field_validator("note_text")
    @classmethod
    def _note_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("note_text must not be empty")
        return value

    @model_validator(mode="after")
    def _normalize_panels(self) -> "GenerationRequest":
        if self.style != "cartoon":
            self.panel_count = None
        else:
            count = self.panel_count if self.panel_count is not None else 4
            self.panel_count = max(MIN_PANELS, min(MAX_PANELS, count))
        return self


class PromptResult(BaseModel):
    """Prompt text returned by a text-generation provider."""

    prompt: str = Field(min_length=1)


@dataclass
class ImageResult:
    """Raw image payload returned by the image provider."""

    image_bytes: bytes
    mime_type: str


@dataclass
class PosterSession:
    """
    Per-user generation memory.

    Holds the last generated prompt and the note it came from so that
    "regenerate last poster" can skip prompt generation. Overwritten on every
    successful prompt generation.
    """

    last_prompt: str = ""
    last_note_path: str | None = None

    def remember(self, prompt: str, note_path: str | None = None) -> None:
        self.last_prompt = prompt
        if note_path is not None:
            self.last_note_path = note_path


def get_cartoon_cuts_number(cartoon_cuts: str, custom_cuts: int) -> int:
    """
    Resolve a panel selector to a panel count.

    Numeric selectors are returned as-is, "custom" returns ``custom_cuts``
    unchanged. Clamping belongs to the input surface, not here.
    """
    if cartoon_cuts == "custom":
        return custom_cuts
    return int(cartoon_cuts)


def clamp_panel_count(value: int) -> int:
    """Clamp a user-entered panel count into [2, 12]."""
    return max(MIN_PANELS, min(MAX_PANELS, value))
