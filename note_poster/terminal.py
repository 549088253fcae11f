# note_poster/terminal.py
"""
Terminal implementations of the pipeline's user surfaces.

Everything renders to stderr via rich so stdout stays clean for command
output.
"""

import asyncio
import logging
import signal

import click
import typer
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from note_poster.models import CARTOON_CUTS, IMAGE_SIZES, IMAGE_STYLES, ProgressState, ProgressStep
from note_poster.pipeline.surfaces import OptionsResult, PreviewResult, parse_custom_cuts
from note_poster.providers.errors import GenerationError

logger = logging.getLogger(__name__)

console = Console(stderr=True)

STYLE_LABELS = {
    "infographic": "Infographic - charts & visual hierarchy",
    "poster": "Poster - bold typography & imagery",
    "diagram": "Diagram - technical connections",
    "mindmap": "Mind map - central concept & branches",
    "timeline": "Timeline - progression & milestones",
    "cartoon": "Cartoon - comic strip panels",
}

# (step, label) in display order
_DISPLAY_STEPS = [
    (ProgressStep.ANALYZING, "Analyzing note"),
    (ProgressStep.GENERATING_PROMPT, "Generating prompt"),
    (ProgressStep.GENERATING_IMAGE, "Generating image"),
    (ProgressStep.SAVING, "Saving file"),
    (ProgressStep.EMBEDDING, "Embedding in note"),
]


class TerminalNotifier:
    """Transient one-line notifications."""

    def notify(self, message: str) -> None:
        console.print(f"[bold]note-poster:[/bold] {message}")


class TerminalOptionsSurface:
    """Asks for style, size and panel count before a generation."""

    async def choose(
        self, style: str, size: str, cartoon_cuts: str, custom_cartoon_cuts: int
    ) -> OptionsResult:
        console.print("\n[bold]Quick options[/bold]")
        for name in IMAGE_STYLES:
            console.print(f"  [cyan]{name:<12}[/cyan] {STYLE_LABELS[name]}")

        try:
            chosen_style = typer.prompt(
                "Image style", default=style, type=click.Choice(list(IMAGE_STYLES))
            )
            chosen_size = typer.prompt(
                "Resolution", default=size, type=click.Choice(list(IMAGE_SIZES))
            )
            chosen_cuts = cartoon_cuts
            chosen_custom = custom_cartoon_cuts
            if chosen_style == "cartoon":
                chosen_cuts = typer.prompt(
                    "Panel cuts (4=2x2, 6=2x3, 8=2x4)",
                    default=cartoon_cuts,
                    type=click.Choice(list(CARTOON_CUTS)),
                )
                if chosen_cuts == "custom":
                    raw = typer.prompt("Custom panel count (2-12)", default=str(custom_cartoon_cuts))
                    chosen_custom = parse_custom_cuts(raw)
        except typer.Abort:
            return OptionsResult(False, style, size, cartoon_cuts, custom_cartoon_cuts)

        return OptionsResult(True, chosen_style, chosen_size, chosen_cuts, chosen_custom)


class TerminalPreviewSurface:
    """Shows the generated prompt; accept, edit, regenerate or cancel."""

    async def review(self, prompt: str) -> PreviewResult:
        console.print(Panel(prompt, title="Prompt preview", border_style="cyan"))
        try:
            action = typer.prompt(
                "[a]ccept, [e]dit, [r]egenerate, [c]ancel",
                default="a",
                type=click.Choice(["a", "e", "r", "c"]),
                show_choices=False,
            )
        except typer.Abort:
            return PreviewResult(confirmed=False)

        if action == "c":
            return PreviewResult(confirmed=False)
        if action == "r":
            return PreviewResult(confirmed=True, regenerate=True, prompt=prompt)
        if action == "e":
            edited = click.edit(prompt)
            return PreviewResult(confirmed=True, prompt=(edited or prompt).strip())
        return PreviewResult(confirmed=True, prompt=prompt)


def _render_progress(state: ProgressState | None) -> Panel:
    current = state.progress if state else 0
    active_index = -1
    if state is not None:
        keys = [step for step, _ in _DISPLAY_STEPS]
        active_index = keys.index(state.step) if state.step in keys else len(keys)

    table = Table.grid(padding=(0, 2))
    table.add_column(width=3)
    table.add_column()
    for i, (_, label) in enumerate(_DISPLAY_STEPS):
        if i < active_index:
            icon, style = Text("✓", style="green"), "dim"
        elif i == active_index:
            icon, style = Text("⟳", style="yellow"), "bold"
        else:
            icon, style = Text("○", style="dim"), "dim"
        table.add_row(icon, Text(label, style=style))

    bar_width = 36
    filled = int(current / 100 * bar_width)
    bar = Text(f"\n  {'█' * filled}{'░' * (bar_width - filled)}  {current}%", style="cyan")
    message = Text(f"\n  {state.message}" if state else "", style="dim italic")
    hint = Text("\n  Ctrl+C to cancel", style="dim")

    return Panel(
        Group(table, bar, message, hint),
        title=Text(" Generating knowledge poster ", style="bold"),
        border_style="bright_black",
    )


class RichProgressSurface:
    """
    Live progress panel.

    While open, the first Ctrl+C cancels: the panel closes and later updates
    are ignored; the in-flight request finishes and its result is discarded.
    """

    def __init__(self) -> None:
        self.cancelled = False
        self._live: Live | None = None
        self._state: ProgressState | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def open(self) -> None:
        self._live = Live(_render_progress(None), console=console, refresh_per_second=4)
        self._live.start()
        try:
            self._loop = asyncio.get_running_loop()
            self._loop.add_signal_handler(signal.SIGINT, self.cancel)
        except (RuntimeError, NotImplementedError):
            # No running loop, or Windows: Ctrl+C keeps its default behaviour
            self._loop = None

    def close(self) -> None:
        if self._loop is not None:
            self._loop.remove_signal_handler(signal.SIGINT)
            self._loop = None
        if self._live is not None:
            self._live.stop()
            self._live = None

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        self.close()
        console.print("[yellow]Cancelled.[/yellow] Waiting for the current request to finish...")

    def update(self, state: ProgressState) -> None:
        if self.cancelled or self._live is None:
            return
        self._state = state
        self._live.update(_render_progress(state))

    def show_success(self, file_path: str) -> None:
        self.close()
        console.print(
            Panel(
                f"Saved: {file_path}",
                title="Knowledge poster generated",
                border_style="green",
            )
        )

    def show_error(self, error: GenerationError, suggestions: list[str]) -> None:
        self.close()
        lines = [Text(error.message, style="bold")]
        if error.details:
            lines.append(Text(error.details, style="dim"))
        if suggestions:
            lines.append(Text("\nHow to fix:"))
            lines.extend(Text(f"  • {s}") for s in suggestions)
        if error.retryable:
            lines.append(Text("\nThis error is temporary; try again shortly.", style="dim"))
        console.print(
            Panel(
                Group(*lines),
                title=f"Generation failed ({error.kind.value})",
                border_style="red",
            )
        )


class StdoutClipboard:
    """
    "Clipboard" for the terminal: writes the prompt to stdout.

    Pipe it into pbcopy/xclip/clip to reach the system clipboard.
    """

    async def copy(self, text: str) -> None:
        typer.echo(text)
