# note_poster/cli.py
"""
CLI interface for note-poster.

Thin presentation layer over the pipeline: builds the vault, surfaces and
clients, runs one entry point, and persists the session for ``regenerate``.
"""

import asyncio
from pathlib import Path

import typer
from pydantic import ValidationError

from note_poster.config import PosterConfig, get_config_path, load_config, redacted, save_config
from note_poster.logging_config import configure_logging
from note_poster.models import CARTOON_CUTS, IMAGE_SIZES, IMAGE_STYLES
from note_poster.pipeline import FixedOptionsSurface, PosterPipeline, Surfaces
from note_poster.providers import ImageClient, PromptClient
from note_poster.session import load_session, save_session
from note_poster.storage import FileSystemVault, StorageError
from note_poster.terminal import (
    RichProgressSurface,
    StdoutClipboard,
    TerminalNotifier,
    TerminalOptionsSurface,
    TerminalPreviewSurface,
)

app = typer.Typer(
    name="note-poster",
    help="Turn Markdown notes into AI-generated knowledge posters.",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Show or change configuration.", no_args_is_help=True)
app.add_typer(config_app, name="config")


def _run(coro):
    """Run async function from sync CLI context."""
    return asyncio.run(coro)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log pipeline steps to stderr"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Log as JSON lines"),
):
    """Turn Markdown notes into AI-generated knowledge posters."""
    configure_logging(verbose=verbose, json_output=json_logs)


def _open_vault(vault_dir: str | None) -> FileSystemVault:
    root = Path(vault_dir) if vault_dir else Path.cwd()
    if not root.is_dir():
        typer.echo(f"Error: vault directory not found: {root}", err=True)
        raise typer.Exit(1)
    return FileSystemVault(root)


def _note_in_vault(vault: FileSystemVault, note: str) -> str:
    try:
        return vault.relative(note)
    except StorageError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _build_pipeline(
    config: PosterConfig, vault: FileSystemVault, surfaces: Surfaces
) -> tuple[PosterPipeline, PromptClient, ImageClient]:
    prompt_client = PromptClient(timeout=config.request_timeout)
    image_client = ImageClient(timeout=config.image_timeout)
    pipeline = PosterPipeline(
        config,
        vault,
        surfaces,
        prompt_client=prompt_client,
        image_client=image_client,
    )
    return pipeline, prompt_client, image_client


async def _close_clients(prompt_client: PromptClient, image_client: ImageClient) -> None:
    try:
        await prompt_client.close()
    finally:
        await image_client.close()


@app.command()
def generate(
    note: str = typer.Argument(..., help="Path to the Markdown note"),
    vault_dir: str = typer.Option(None, "--vault", help="Vault root (default: current directory)"),
    style: str = typer.Option(None, "--style", "-s", help=f"One of: {', '.join(IMAGE_STYLES)}"),
    size: str = typer.Option(None, "--size", help=f"One of: {', '.join(IMAGE_SIZES)}"),
    cuts: str = typer.Option(None, "--cuts", help=f"Cartoon panels: {', '.join(CARTOON_CUTS)}"),
    custom_cuts: int = typer.Option(None, "--custom-cuts", help="Panel count for --cuts custom (2-12)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the options and preview prompts"),
):
    """Generate a knowledge poster for NOTE and embed it in the note."""
    config = load_config()
    vault = _open_vault(vault_dir)
    note_path = _note_in_vault(vault, note)

    for value, allowed, flag in (
        (style, IMAGE_STYLES, "--style"),
        (size, IMAGE_SIZES, "--size"),
        (cuts, CARTOON_CUTS, "--cuts"),
    ):
        if value is not None and value not in allowed:
            typer.echo(f"Error: {flag} must be one of: {', '.join(allowed)}", err=True)
            raise typer.Exit(2)

    flags_given = any(v is not None for v in (style, size, cuts, custom_cuts))
    if yes or flags_given:
        options = FixedOptionsSurface(
            image_style=style or config.image_style,
            image_size=size or config.image_size,
            cartoon_cuts=cuts or config.cartoon_cuts,
            custom_cartoon_cuts=custom_cuts if custom_cuts is not None else config.custom_cartoon_cuts,
        )
    else:
        options = TerminalOptionsSurface()

    surfaces = Surfaces(
        notifier=TerminalNotifier(),
        options=options,
        preview=None if yes else TerminalPreviewSurface(),
        progress_factory=RichProgressSurface,
    )
    session, _ = load_session()

    async def _generate():
        pipeline, prompt_client, image_client = _build_pipeline(config, vault, surfaces)
        try:
            return await pipeline.generate_poster(note_path, session)
        finally:
            await _close_clients(prompt_client, image_client)

    image_path = _run(_generate())
    if session.last_prompt:
        save_session(session, vault.root)
    if image_path is None:
        raise typer.Exit(1)
    typer.echo(image_path)


@app.command()
def prompt(
    note: str = typer.Argument(..., help="Path to the Markdown note"),
    vault_dir: str = typer.Option(None, "--vault", help="Vault root (default: current directory)"),
):
    """Generate only the image prompt for NOTE and print it to stdout."""
    config = load_config()
    vault = _open_vault(vault_dir)
    note_path = _note_in_vault(vault, note)

    surfaces = Surfaces(notifier=TerminalNotifier(), clipboard=StdoutClipboard())
    session, _ = load_session()

    async def _prompt():
        pipeline, prompt_client, image_client = _build_pipeline(config, vault, surfaces)
        try:
            return await pipeline.generate_prompt_only(note_path, session)
        finally:
            await _close_clients(prompt_client, image_client)

    result = _run(_prompt())
    if result is None:
        raise typer.Exit(1)
    save_session(session, vault.root)


@app.command()
def regenerate(
    vault_dir: str = typer.Option(
        None, "--vault", help="Vault root (default: the vault of the last generation)"
    ),
):
    """Generate a new poster from the last prompt, using the default options."""
    config = load_config()
    session, stored_root = load_session()
    vault = _open_vault(vault_dir or stored_root)

    surfaces = Surfaces(notifier=TerminalNotifier(), progress_factory=RichProgressSurface)

    async def _regenerate():
        pipeline, prompt_client, image_client = _build_pipeline(config, vault, surfaces)
        try:
            return await pipeline.regenerate_last_poster(session)
        finally:
            await _close_clients(prompt_client, image_client)

    image_path = _run(_regenerate())
    if image_path is None:
        raise typer.Exit(1)
    typer.echo(image_path)


@config_app.command("show")
def config_show():
    """Print the current configuration (API keys masked)."""
    for key, value in redacted(load_config()).items():
        typer.echo(f"{key}: {value!r}" if isinstance(value, str) else f"{key}: {value}")


@config_app.command("path")
def config_path():
    """Print the config file location."""
    typer.echo(str(get_config_path()))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Setting name, e.g. selected_provider"),
    value: str = typer.Argument(..., help="New value"),
):
    """Change one setting and save the config file."""
    config = load_config()
    if key not in PosterConfig.model_fields:
        typer.echo(f"Error: unknown setting '{key}'", err=True)
        raise typer.Exit(1)

    try:
        setattr(config, key, value)
    except ValidationError as e:
        message = e.errors()[0]["msg"] if e.errors() else str(e)
        typer.echo(f"Error: invalid value for {key}: {message}", err=True)
        raise typer.Exit(1)

    save_config(config)
    shown = redacted(config)[key]
    typer.echo(f"{key} = {shown}")
