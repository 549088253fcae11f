# note_poster/pipeline/surfaces.py
"""
User-surface contracts consumed by the pipeline.

The pipeline awaits each surface call, so a surface may block on user input
for as long as it needs; no other session can start meanwhile.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from note_poster.models import ProgressState, clamp_panel_count
from note_poster.providers.errors import GenerationError

DEFAULT_CUSTOM_CUTS = 4


@dataclass
class OptionsResult:
    """Per-generation choices collected before the pipeline starts."""

    confirmed: bool
    image_style: str
    image_size: str
    cartoon_cuts: str
    custom_cartoon_cuts: int


@dataclass
class PreviewResult:
    """User decision on the generated prompt."""

    confirmed: bool
    regenerate: bool = False
    prompt: str = ""


class OptionsSurface(Protocol):
    async def choose(
        self, style: str, size: str, cartoon_cuts: str, custom_cartoon_cuts: int
    ) -> OptionsResult: ...


class PreviewSurface(Protocol):
    async def review(self, prompt: str) -> PreviewResult: ...


class ProgressSurface(Protocol):
    """Live progress display; ``cancelled`` flips when the user cancels."""

    cancelled: bool

    def open(self) -> None: ...

    def close(self) -> None: ...

    def update(self, state: ProgressState) -> None: ...

    def show_success(self, file_path: str) -> None: ...

    def show_error(self, error: GenerationError, suggestions: list[str]) -> None: ...


class Notifier(Protocol):
    def notify(self, message: str) -> None: ...


class Clipboard(Protocol):
    async def copy(self, text: str) -> None: ...


@dataclass
class Surfaces:
    """
    Bundle of surfaces handed to the pipeline.

    ``progress_factory`` builds a fresh progress surface each time one is
    opened (the pipeline closes it around the preview step).
    """

    notifier: Notifier
    options: OptionsSurface | None = None
    preview: PreviewSurface | None = None
    progress_factory: Callable[[], ProgressSurface] | None = None
    clipboard: Clipboard | None = None


def parse_custom_cuts(value: str | int | None) -> int:
    """
    Parse a user-entered panel count.

    Non-numeric or zero input falls back to 4; the result is clamped to [2, 12].
    """
    try:
        number = int(str(value).strip()) if value is not None else 0
    except ValueError:
        number = 0
    return clamp_panel_count(number or DEFAULT_CUSTOM_CUTS)


@dataclass
class FixedOptionsSurface:
    """
    Non-interactive options surface (command-line flags, --yes, tests).

    The custom panel count is clamped when the surface is built, i.e. at
    input time, before anything reaches the pipeline.
    """

    image_style: str | None = None
    image_size: str | None = None
    cartoon_cuts: str | None = None
    custom_cartoon_cuts: int | None = None
    confirmed: bool = True

    def __post_init__(self) -> None:
        if self.custom_cartoon_cuts is not None:
            self.custom_cartoon_cuts = parse_custom_cuts(self.custom_cartoon_cuts)

    async def choose(
        self, style: str, size: str, cartoon_cuts: str, custom_cartoon_cuts: int
    ) -> OptionsResult:
        return OptionsResult(
            confirmed=self.confirmed,
            image_style=self.image_style or style,
            image_size=self.image_size or size,
            cartoon_cuts=self.cartoon_cuts or cartoon_cuts,
            custom_cartoon_cuts=(
                self.custom_cartoon_cuts
                if self.custom_cartoon_cuts is not None
                else custom_cartoon_cuts
            ),
        )


@dataclass
class MemoryNotifier:
    """Notifier that collects messages (headless runs and tests)."""

    messages: list[str] = field(default_factory=list)

    def notify(self, message: str) -> None:
        self.messages.append(message)
