# note_poster/pipeline/orchestrator.py
"""
Poster generation pipeline.

Sequences prompt generation, optional prompt preview, image generation,
saving and embedding, with retries, progress reporting and a single-flight
guard. Three entry points share the same guard:

    generate_poster         full flow (options -> prompt -> preview -> image -> save -> embed)
    regenerate_last_poster  reuse the session's last prompt, skip prompt generation
    generate_prompt_only    prompt generation + clipboard, nothing written to the vault
"""

import asyncio
import logging

from note_poster.config.schema import PosterConfig
from note_poster.models import (
    GenerationRequest,
    PosterSession,
    ProgressState,
    ProgressStep,
    get_cartoon_cuts_number,
)
from note_poster.pipeline.messages import error_suggestions, progress_message
from note_poster.pipeline.retry import SleepFn, run_with_retry
from note_poster.pipeline.surfaces import OptionsResult, ProgressSurface, Surfaces
from note_poster.providers.errors import GenerationError, to_generation_error
from note_poster.providers.image_client import ImageClient
from note_poster.providers.keys import resolve_provider_key
from note_poster.providers.prompt_client import PromptClient
from note_poster.storage.vault import StorageError, Vault
from note_poster.storage.writer import StorageWriter

logger = logging.getLogger(__name__)

# (step, progress %) milestones
FRESH_MILESTONES = {
    ProgressStep.GENERATING_PROMPT: 20,
    ProgressStep.GENERATING_IMAGE: 50,
    ProgressStep.SAVING: 80,
    ProgressStep.EMBEDDING: 95,
    ProgressStep.COMPLETE: 100,
}
REGENERATE_MILESTONES = {
    ProgressStep.GENERATING_IMAGE: 40,
    ProgressStep.SAVING: 80,
    ProgressStep.EMBEDDING: 95,
    ProgressStep.COMPLETE: 100,
}


class PosterPipeline:
    """
    Interruptible poster generation orchestrator.

    One pipeline instance allows one active session at a time; a second call
    while a session runs is rejected immediately (never queued). Session
    memory (last prompt / last note) lives in a PosterSession passed in by the
    caller so independent sessions can coexist in tests.

    Example:
        pipeline = PosterPipeline(config, vault, surfaces)
        session = PosterSession()
        path = await pipeline.generate_poster("notes/tcp.md", session)
    """

    def __init__(
        self,
        config: PosterConfig,
        vault: Vault,
        surfaces: Surfaces,
        prompt_client: PromptClient | None = None,
        image_client: ImageClient | None = None,
        writer: StorageWriter | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        """
        Initialize poster pipeline.

        Args:
            config: Loaded PosterConfig
            vault: Host vault capability
            surfaces: User surfaces (options/preview/progress/notify/clipboard)
            prompt_client: Prompt client (default: PromptClient with config timeout)
            image_client: Image client (default: ImageClient with the image timeout)
            writer: Storage writer (default: StorageWriter over ``vault``)
            sleep: Backoff sleep, injectable for tests
        """
        self._config = config
        self._vault = vault
        self._surfaces = surfaces
        self._prompt_client = prompt_client or PromptClient(timeout=config.request_timeout)
        self._image_client = image_client or ImageClient(timeout=config.image_timeout)
        self._writer = writer or StorageWriter(vault)
        self._sleep = sleep
        self._is_generating = False

    @property
    def is_generating(self) -> bool:
        """True while a session is active."""
        return self._is_generating

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def generate_poster(self, note_path: str, session: PosterSession) -> str | None:
        """
        Run the full generation flow for ``note_path``.

        Returns:
            Vault path of the embedded image, or None if the session was
            rejected, cancelled or failed (the user has been told why).
        """
        if self._is_generating:
            self._notify("Generation already in progress")
            return None

        self._is_generating = True
        progress: ProgressSurface | None = None
        try:
            note_text = await self._read_note(note_path)
            if note_text is None:
                return None

            provider_key = resolve_provider_key(
                self._config.selected_provider, self._config.api_keys()
            )
            if not provider_key:
                self._notify(
                    f"{self._config.selected_provider} API key is not configured. "
                    "Please check settings."
                )
                return None
            if not self._config.google_api_key:
                self._notify(
                    "Google API key is required for image generation. "
                    "Please configure it in settings."
                )
                return None

            options = await self._choose_options()
            if not options.confirmed:
                logger.info("Generation cancelled at options")
                return None

            request = GenerationRequest(
                note_text=note_text,
                provider_id=self._config.selected_provider,
                prompt_model=self._config.prompt_model,
                image_model=self._config.image_model,
                api_keys=self._config.api_keys(),
                style=options.image_style,
                size=options.image_size,
                panel_count=get_cartoon_cuts_number(
                    options.cartoon_cuts, options.custom_cartoon_cuts
                ),
            )
            logger.info(
                f"Starting poster generation for {note_path} "
                f"(provider={request.provider_id}, style={request.style}, size={request.size})"
            )

            # Regeneration is a loop, not recursion
            should_regenerate = True
            while should_regenerate:
                should_regenerate = False

                progress = self._open_progress()
                self._update(progress, ProgressStep.GENERATING_PROMPT, FRESH_MILESTONES)

                prompt_result = await run_with_retry(
                    lambda: self._prompt_client.generate_prompt(
                        request.note_text,
                        request.provider_id,
                        request.prompt_model,
                        provider_key,
                    ),
                    self._config.auto_retry_count,
                    sleep=self._sleep,
                )
                if self._cancelled(progress):
                    return None

                session.remember(prompt_result.prompt, note_path)
                final_prompt = self._with_prefix(prompt_result.prompt)

                if self._config.show_preview_before_generation and self._surfaces.preview:
                    self._close(progress)
                    progress = None

                    decision = await self._surfaces.preview.review(final_prompt)
                    if not decision.confirmed:
                        logger.info("Generation cancelled at preview")
                        return None
                    if decision.regenerate:
                        logger.info("Prompt regeneration requested")
                        should_regenerate = True
                        continue

                    final_prompt = decision.prompt.strip() or final_prompt
                    progress = self._open_progress()

                return await self._produce_poster(
                    prompt=final_prompt,
                    note_path=note_path,
                    style=request.style,
                    size=request.size,
                    panel_count=request.panel_count,
                    progress=progress,
                    milestones=FRESH_MILESTONES,
                )
            return None

        except Exception as e:
            self._report_failure(progress, e, "generation failed")
            return None
        finally:
            self._is_generating = False

    async def regenerate_last_poster(self, session: PosterSession) -> str | None:
        """
        Generate a new image from the session's last prompt.

        Fails fast, without any network call, when there is no previous
        prompt or the originating note is gone. Uses the configured default
        style, size and panel count.
        """
        if not session.last_prompt:
            self._notify("No previous generation found. Please generate a poster first.")
            return None
        if not session.last_note_path:
            self._notify("Original note not found. Please generate a new poster.")
            return None
        if self._vault.resolve_file(session.last_note_path) is None:
            self._notify("Original note was moved or deleted")
            return None
        if not self._config.google_api_key:
            self._notify("Google API key is required for image generation.")
            return None

        if self._is_generating:
            self._notify("Generation already in progress")
            return None

        self._is_generating = True
        progress: ProgressSurface | None = None
        try:
            progress = self._open_progress()
            panel_count = get_cartoon_cuts_number(
                self._config.cartoon_cuts, self._config.custom_cartoon_cuts
            )
            logger.info(f"Regenerating poster for {session.last_note_path}")
            return await self._produce_poster(
                prompt=self._with_prefix(session.last_prompt),
                note_path=session.last_note_path,
                style=self._config.image_style,
                size=self._config.image_size,
                panel_count=panel_count if self._config.image_style == "cartoon" else None,
                progress=progress,
                milestones=REGENERATE_MILESTONES,
            )
        except Exception as e:
            self._report_failure(progress, e, "regeneration failed")
            return None
        finally:
            self._is_generating = False

    async def generate_prompt_only(self, note_path: str, session: PosterSession) -> str | None:
        """
        Generate a prompt for ``note_path`` and copy it to the clipboard.

        The prompt is cached in ``session`` for a later regeneration. Never
        touches the image client or the vault's write side.
        """
        if self._is_generating:
            self._notify("Generation already in progress")
            return None

        self._is_generating = True
        try:
            note_text = await self._read_note(note_path)
            if note_text is None:
                return None

            provider_key = resolve_provider_key(
                self._config.selected_provider, self._config.api_keys()
            )
            if not provider_key:
                self._notify(f"{self._config.selected_provider} API key is not configured")
                return None

            self._notify("Generating prompt...")
            result = await run_with_retry(
                lambda: self._prompt_client.generate_prompt(
                    note_text,
                    self._config.selected_provider,
                    self._config.prompt_model,
                    provider_key,
                ),
                self._config.auto_retry_count,
                sleep=self._sleep,
            )

            session.remember(result.prompt, note_path)
            if self._surfaces.clipboard is not None:
                await self._surfaces.clipboard.copy(result.prompt)
                self._notify("Prompt copied to clipboard!")
            else:
                self._notify("Prompt generated")
            return result.prompt

        except Exception as e:
            error = to_generation_error(e)
            logger.error(f"Prompt generation failed: {error!r}", exc_info=e)
            self._notify(f"Failed: {error.message}")
            return None
        finally:
            self._is_generating = False

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    async def _produce_poster(
        self,
        prompt: str,
        note_path: str,
        style: str,
        size: str,
        panel_count: int | None,
        progress: ProgressSurface | None,
        milestones: dict[ProgressStep, int],
    ) -> str | None:
        """Image -> save -> embed -> complete. Returns the image path or None if cancelled."""
        self._update(progress, ProgressStep.GENERATING_IMAGE, milestones)
        image = await run_with_retry(
            lambda: self._image_client.generate_image(
                prompt,
                self._config.google_api_key,
                self._config.image_model,
                style,
                self._config.preferred_language,
                size,
                panel_count,
            ),
            self._config.auto_retry_count,
            sleep=self._sleep,
        )
        if self._cancelled(progress):
            return None

        self._update(progress, ProgressStep.SAVING, milestones)
        image_path = await self._writer.save_image(
            image.image_bytes,
            image.mime_type,
            note_path,
            self._config.attachment_folder,
        )

        self._update(progress, ProgressStep.EMBEDDING, milestones)
        try:
            await self._writer.embed_image_in_note(note_path, image_path)
        except StorageError:
            # The saved attachment is intentionally left in place
            logger.warning(f"Image saved to {image_path} but embedding in {note_path} failed")
            raise

        self._update(progress, ProgressStep.COMPLETE, milestones)
        logger.info(f"Poster complete: {image_path}")

        if progress is not None and not progress.cancelled:
            progress.show_success(image_path)
        else:
            self._notify(f"Knowledge poster generated: {image_path}")
        return image_path

    async def _read_note(self, note_path: str) -> str | None:
        if self._vault.resolve_file(note_path) is None:
            self._notify(f"Note not found: {note_path}")
            return None
        note_text = await self._vault.read(note_path)
        if not note_text.strip():
            self._notify("Note is empty. Please add some content first.")
            return None
        return note_text

    async def _choose_options(self) -> OptionsResult:
        defaults = (
            self._config.image_style,
            self._config.image_size,
            self._config.cartoon_cuts,
            self._config.custom_cartoon_cuts,
        )
        if self._surfaces.options is None:
            return OptionsResult(True, *defaults)
        return await self._surfaces.options.choose(*defaults)

    def _with_prefix(self, prompt: str) -> str:
        prefix = self._config.custom_prompt_prefix.strip()
        return f"{prefix}\n\n{prompt}" if prefix else prompt

    # ------------------------------------------------------------------
    # Surface helpers
    # ------------------------------------------------------------------

    def _open_progress(self) -> ProgressSurface | None:
        if not self._config.show_progress_modal or self._surfaces.progress_factory is None:
            return None
        progress = self._surfaces.progress_factory()
        progress.open()
        return progress

    @staticmethod
    def _close(progress: ProgressSurface | None) -> None:
        if progress is not None:
            progress.close()

    def _update(
        self,
        progress: ProgressSurface | None,
        step: ProgressStep,
        milestones: dict[ProgressStep, int],
    ) -> None:
        state = ProgressState(
            step=step,
            progress=milestones[step],
            message=progress_message(step, self._config.preferred_language),
        )
        logger.info(f"[{state.progress:>3}%] {step.value}")
        if progress is not None and not progress.cancelled:
            progress.update(state)

    @staticmethod
    def _cancelled(progress: ProgressSurface | None) -> bool:
        if progress is not None and progress.cancelled:
            logger.info("Cancelled by user; discarding result")
            return True
        return False

    def _notify(self, message: str) -> None:
        logger.info(f"notify: {message}")
        self._surfaces.notifier.notify(message)

    def _report_failure(
        self, progress: ProgressSurface | None, exc: Exception, what: str
    ) -> None:
        error = to_generation_error(exc)
        if isinstance(exc, GenerationError):
            logger.error(f"Poster {what}: {error!r} details={error.details}")
        else:
            logger.error(f"Poster {what}: {exc}", exc_info=exc)

        if progress is not None and not progress.cancelled:
            progress.show_error(error, error_suggestions(error))
        else:
            self._notify(f"Poster {what}: {error.message}")
