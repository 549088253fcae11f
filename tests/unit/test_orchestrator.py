# tests/unit/test_orchestrator.py
"""
Unit tests for PosterPipeline.

Provider clients are AsyncMocks; the vault is a real directory under
tmp_path so saved files and embed links can be asserted directly.
"""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from note_poster.config import PosterConfig
from note_poster.models import ImageResult, PosterSession, ProgressStep, PromptResult
from note_poster.pipeline import FixedOptionsSurface, PosterPipeline, PreviewResult, Surfaces
from note_poster.pipeline.surfaces import MemoryNotifier
from note_poster.providers.errors import ErrorKind, GenerationError
from note_poster.storage import FileSystemVault, StorageWriter

NOTE = "notes/tcp.md"
NOTE_TEXT = "# TCP\n\nThree-way handshake.\n"
PNG = b"\x89PNG\r\n\x1a\nfake"
IMAGE_PATH = "attachments/tcp-poster-20250101-120000.png"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeProgress:
    """Progress surface that records everything it is shown."""

    def __init__(self):
        self.cancelled = False
        self.opened = False
        self.closed = False
        self.states = []
        self.success = None
        self.error = None
        self.suggestions = None

    def open(self):
        self.opened = True

    def close(self):
        self.closed = True

    def update(self, state):
        self.states.append(state)

    def show_success(self, file_path):
        self.success = file_path

    def show_error(self, error, suggestions):
        self.error = error
        self.suggestions = suggestions

    @property
    def percents(self):
        return [s.progress for s in self.states]


class ScriptedPreview:
    """Preview surface that replays a list of decisions."""

    def __init__(self, *decisions):
        self.decisions = list(decisions)
        self.reviewed = []

    async def review(self, prompt):
        self.reviewed.append(prompt)
        return self.decisions.pop(0)


class RecordingClipboard:
    def __init__(self):
        self.copied = []

    async def copy(self, text):
        self.copied.append(text)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def vault(tmp_path):
    (tmp_path / "notes").mkdir()
    (tmp_path / "notes" / "tcp.md").write_text(NOTE_TEXT, encoding="utf-8")
    return FileSystemVault(tmp_path)


def _config(**overrides):
    data = dict(
        selected_provider="google",
        google_api_key="g-key",
        show_preview_before_generation=False,
        auto_retry_count=2,
    )
    data.update(overrides)
    return PosterConfig(**data)


class Harness:
    """Pipeline plus all of its collaborators."""

    def __init__(self, vault, config=None, options=None, preview=None, clipboard=None):
        self.vault = vault
        self.notifier = MemoryNotifier()
        self.progresses: list[FakeProgress] = []
        self.prompt_client = MagicMock()
        self.prompt_client.generate_prompt = AsyncMock(
            return_value=PromptResult(prompt="A poster about TCP")
        )
        self.image_client = MagicMock()
        self.image_client.generate_image = AsyncMock(return_value=ImageResult(PNG, "image/png"))
        self.sleep = AsyncMock()
        surfaces = Surfaces(
            notifier=self.notifier,
            options=options,
            preview=preview,
            progress_factory=self._new_progress,
            clipboard=clipboard,
        )
        self.pipeline = PosterPipeline(
            config or _config(),
            vault,
            surfaces,
            prompt_client=self.prompt_client,
            image_client=self.image_client,
            writer=StorageWriter(vault, clock=lambda: datetime(2025, 1, 1, 12, 0, 0)),
            sleep=self.sleep,
        )

    def _new_progress(self):
        progress = FakeProgress()
        self.progresses.append(progress)
        return progress

    @property
    def image_prompt(self):
        return self.image_client.generate_image.call_args.args[0]

    @property
    def panel_count(self):
        return self.image_client.generate_image.call_args.args[6]

    def note_content(self):
        return (self.vault.root / NOTE).read_text(encoding="utf-8")

    def saved_files(self):
        folder = self.vault.root / "attachments"
        return sorted(p.name for p in folder.iterdir()) if folder.exists() else []


def _retryable():
    return GenerationError(ErrorKind.RATE_LIMIT, "Rate limit exceeded", retryable=True)


# ---------------------------------------------------------------------------
# generate_poster
# ---------------------------------------------------------------------------

class TestGeneratePoster:
    @pytest.mark.asyncio
    async def test_happy_path(self, vault):
        h = Harness(vault)
        session = PosterSession()

        result = await h.pipeline.generate_poster(NOTE, session)

        assert result == IMAGE_PATH
        assert (vault.root / IMAGE_PATH).read_bytes() == PNG
        assert h.note_content() == NOTE_TEXT + f"\n![[{IMAGE_PATH}]]\n"
        assert session.last_prompt == "A poster about TCP"
        assert session.last_note_path == NOTE
        assert h.progresses[0].percents == [20, 50, 80, 95, 100]
        assert h.progresses[0].states[-1].step == ProgressStep.COMPLETE
        assert h.progresses[0].success == IMAGE_PATH
        assert h.pipeline.is_generating is False

    @pytest.mark.asyncio
    async def test_prompt_call_uses_selected_provider(self, vault):
        config = _config(selected_provider="anthropic", anthropic_api_key="a-key", prompt_model="claude")
        h = Harness(vault, config=config)

        await h.pipeline.generate_poster(NOTE, PosterSession())

        args = h.prompt_client.generate_prompt.call_args.args
        assert args == (NOTE_TEXT, "anthropic", "claude", "a-key")
        # Images always go through Google
        assert h.image_client.generate_image.call_args.args[1] == "g-key"

    @pytest.mark.asyncio
    async def test_without_progress_surface_notifies(self, vault):
        h = Harness(vault, config=_config(show_progress_modal=False))

        result = await h.pipeline.generate_poster(NOTE, PosterSession())

        assert result == IMAGE_PATH
        assert h.progresses == []
        assert h.notifier.messages[-1] == f"Knowledge poster generated: {IMAGE_PATH}"

    @pytest.mark.asyncio
    async def test_custom_prefix_prepended(self, vault):
        h = Harness(vault, config=_config(custom_prompt_prefix="Dark theme."))
        await h.pipeline.generate_poster(NOTE, PosterSession())
        assert h.image_prompt == "Dark theme.\n\nA poster about TCP"

    @pytest.mark.asyncio
    async def test_cartoon_custom_cuts_clamped(self, vault):
        options = FixedOptionsSurface(
            image_style="cartoon", cartoon_cuts="custom", custom_cartoon_cuts=20
        )
        h = Harness(vault, options=options)

        await h.pipeline.generate_poster(NOTE, PosterSession())

        assert h.image_client.generate_image.call_args.args[3] == "cartoon"
        assert h.panel_count == 12

    @pytest.mark.asyncio
    async def test_non_cartoon_has_no_panel_count(self, vault):
        h = Harness(vault, options=FixedOptionsSurface(image_style="diagram", image_size="4K"))
        await h.pipeline.generate_poster(NOTE, PosterSession())
        args = h.image_client.generate_image.call_args.args
        assert args[3] == "diagram"
        assert args[5] == "4K"
        assert args[6] is None

    @pytest.mark.asyncio
    async def test_options_cancelled(self, vault):
        h = Harness(vault, options=FixedOptionsSurface(confirmed=False))
        assert await h.pipeline.generate_poster(NOTE, PosterSession()) is None
        h.prompt_client.generate_prompt.assert_not_awaited()


class TestPreconditions:
    @pytest.mark.asyncio
    async def test_missing_note(self, vault):
        h = Harness(vault)
        assert await h.pipeline.generate_poster("notes/none.md", PosterSession()) is None
        assert h.notifier.messages == ["Note not found: notes/none.md"]

    @pytest.mark.asyncio
    async def test_empty_note(self, vault):
        (vault.root / NOTE).write_text("  \n", encoding="utf-8")
        h = Harness(vault)
        assert await h.pipeline.generate_poster(NOTE, PosterSession()) is None
        assert h.notifier.messages == ["Note is empty. Please add some content first."]
        h.prompt_client.generate_prompt.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_provider_key(self, vault):
        h = Harness(vault, config=_config(selected_provider="openai"))
        assert await h.pipeline.generate_poster(NOTE, PosterSession()) is None
        assert "openai API key is not configured" in h.notifier.messages[0]
        h.prompt_client.generate_prompt.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_google_key(self, vault):
        config = _config(selected_provider="openai", openai_api_key="sk", google_api_key="")
        h = Harness(vault, config=config)
        assert await h.pipeline.generate_poster(NOTE, PosterSession()) is None
        assert "Google API key is required" in h.notifier.messages[0]
        h.prompt_client.generate_prompt.assert_not_awaited()


class TestRetriesAndErrors:
    @pytest.mark.asyncio
    async def test_transient_prompt_failures_retried(self, vault):
        h = Harness(vault)
        h.prompt_client.generate_prompt.side_effect = [
            _retryable(),
            _retryable(),
            PromptResult(prompt="A poster about TCP"),
        ]

        result = await h.pipeline.generate_poster(NOTE, PosterSession())

        assert result == IMAGE_PATH
        assert h.prompt_client.generate_prompt.await_count == 3
        assert [c.args[0] for c in h.sleep.await_args_list] == [1, 2]

    @pytest.mark.asyncio
    async def test_invalid_key_not_retried(self, vault):
        h = Harness(vault)
        h.prompt_client.generate_prompt.side_effect = GenerationError(
            ErrorKind.INVALID_API_KEY, "Invalid API key"
        )

        assert await h.pipeline.generate_poster(NOTE, PosterSession()) is None

        assert h.prompt_client.generate_prompt.await_count == 1
        progress = h.progresses[0]
        assert progress.error.kind == ErrorKind.INVALID_API_KEY
        assert progress.suggestions
        h.image_client.generate_image.assert_not_awaited()
        assert h.pipeline.is_generating is False

        # A later attempt is accepted
        h.prompt_client.generate_prompt.side_effect = None
        assert await h.pipeline.generate_poster(NOTE, PosterSession()) == IMAGE_PATH

    @pytest.mark.asyncio
    async def test_image_retries_exhausted(self, vault):
        h = Harness(vault, config=_config(auto_retry_count=1))
        h.image_client.generate_image.side_effect = GenerationError(
            ErrorKind.NETWORK_ERROR, "Network error", retryable=True
        )

        assert await h.pipeline.generate_poster(NOTE, PosterSession()) is None

        assert h.image_client.generate_image.await_count == 2
        assert h.progresses[0].error.kind == ErrorKind.NETWORK_ERROR
        assert h.saved_files() == []
        assert h.note_content() == NOTE_TEXT

    @pytest.mark.asyncio
    async def test_content_filtered_reported(self, vault):
        h = Harness(vault)
        h.image_client.generate_image.side_effect = GenerationError(
            ErrorKind.CONTENT_FILTERED, "The image was filtered by the content policy"
        )
        assert await h.pipeline.generate_poster(NOTE, PosterSession()) is None
        assert h.image_client.generate_image.await_count == 1
        assert h.progresses[0].error.kind == ErrorKind.CONTENT_FILTERED

    @pytest.mark.asyncio
    async def test_failure_without_progress_notifies(self, vault):
        h = Harness(vault, config=_config(show_progress_modal=False))
        h.prompt_client.generate_prompt.side_effect = RuntimeError("boom")

        assert await h.pipeline.generate_poster(NOTE, PosterSession()) is None
        assert h.notifier.messages[-1] == "Poster generation failed: boom"

    @pytest.mark.asyncio
    async def test_embed_failure_leaves_saved_image(self, vault):
        h = Harness(vault)

        async def image_then_delete_note(*args):
            (vault.root / NOTE).unlink()
            return ImageResult(PNG, "image/png")

        h.image_client.generate_image.side_effect = image_then_delete_note

        assert await h.pipeline.generate_poster(NOTE, PosterSession()) is None

        assert h.saved_files() == ["tcp-poster-20250101-120000.png"]
        assert h.progresses[0].error.kind == ErrorKind.GENERATION_FAILED


class TestPreview:
    @pytest.mark.asyncio
    async def test_edited_prompt_used(self, vault):
        preview = ScriptedPreview(PreviewResult(confirmed=True, prompt="  Edited prompt "))
        h = Harness(vault, config=_config(show_preview_before_generation=True), preview=preview)

        result = await h.pipeline.generate_poster(NOTE, PosterSession())

        assert result == IMAGE_PATH
        assert preview.reviewed == ["A poster about TCP"]
        assert h.image_prompt == "Edited prompt"
        # Progress closed for the preview, reopened for the image
        assert h.progresses[0].closed
        assert h.progresses[0].percents == [20]
        assert h.progresses[1].percents == [50, 80, 95, 100]

    @pytest.mark.asyncio
    async def test_regenerate_loops_back_to_prompt(self, vault):
        preview = ScriptedPreview(
            PreviewResult(confirmed=True, regenerate=True),
            PreviewResult(confirmed=True, regenerate=True),
            PreviewResult(confirmed=True, prompt="Third time lucky"),
        )
        h = Harness(vault, config=_config(show_preview_before_generation=True), preview=preview)
        h.prompt_client.generate_prompt.side_effect = [
            PromptResult(prompt="one"),
            PromptResult(prompt="two"),
            PromptResult(prompt="three"),
        ]
        session = PosterSession()

        result = await h.pipeline.generate_poster(NOTE, session)

        assert result == IMAGE_PATH
        assert preview.reviewed == ["one", "two", "three"]
        assert h.image_prompt == "Third time lucky"
        assert h.image_client.generate_image.await_count == 1
        assert session.last_prompt == "three"

    @pytest.mark.asyncio
    async def test_cancel_at_preview(self, vault):
        preview = ScriptedPreview(PreviewResult(confirmed=False))
        h = Harness(vault, config=_config(show_preview_before_generation=True), preview=preview)

        assert await h.pipeline.generate_poster(NOTE, PosterSession()) is None

        h.image_client.generate_image.assert_not_awaited()
        assert h.note_content() == NOTE_TEXT
        assert h.pipeline.is_generating is False


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_during_prompt_discards_result(self, vault):
        h = Harness(vault)
        session = PosterSession()

        async def prompt_then_cancel(*args):
            h.progresses[-1].cancelled = True
            return PromptResult(prompt="A poster about TCP")

        h.prompt_client.generate_prompt.side_effect = prompt_then_cancel

        assert await h.pipeline.generate_poster(NOTE, session) is None

        h.image_client.generate_image.assert_not_awaited()
        assert session.last_prompt == ""
        assert h.progresses[0].percents == [20]

    @pytest.mark.asyncio
    async def test_cancel_during_image_saves_nothing(self, vault):
        h = Harness(vault)

        async def image_then_cancel(*args):
            h.progresses[-1].cancelled = True
            return ImageResult(PNG, "image/png")

        h.image_client.generate_image.side_effect = image_then_cancel

        assert await h.pipeline.generate_poster(NOTE, PosterSession()) is None

        assert h.saved_files() == []
        assert h.note_content() == NOTE_TEXT
        assert h.progresses[0].percents == [20, 50]
        assert h.progresses[0].success is None

    @pytest.mark.asyncio
    async def test_error_after_cancel_is_notified_not_shown(self, vault):
        h = Harness(vault)

        async def fail_after_cancel(*args):
            h.progresses[-1].cancelled = True
            raise GenerationError(ErrorKind.INVALID_API_KEY, "Invalid API key")

        h.prompt_client.generate_prompt.side_effect = fail_after_cancel

        assert await h.pipeline.generate_poster(NOTE, PosterSession()) is None
        assert h.progresses[0].error is None
        assert h.notifier.messages[-1] == "Poster generation failed: Invalid API key"


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_second_session_rejected(self, vault):
        h = Harness(vault)
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_prompt(*args):
            started.set()
            await release.wait()
            return PromptResult(prompt="A poster about TCP")

        h.prompt_client.generate_prompt.side_effect = slow_prompt

        first = asyncio.create_task(h.pipeline.generate_poster(NOTE, PosterSession()))
        await started.wait()
        assert h.pipeline.is_generating is True

        other = PosterSession(last_prompt="old", last_note_path=NOTE)
        assert await h.pipeline.generate_poster(NOTE, PosterSession()) is None
        assert await h.pipeline.regenerate_last_poster(other) is None
        assert await h.pipeline.generate_prompt_only(NOTE, PosterSession()) is None
        assert h.notifier.messages.count("Generation already in progress") == 3

        release.set()
        assert await first == IMAGE_PATH
        assert h.prompt_client.generate_prompt.await_count == 1
        assert h.image_client.generate_image.await_count == 1
        assert h.pipeline.is_generating is False

    @pytest.mark.asyncio
    async def test_flag_cleared_after_failure(self, vault):
        h = Harness(vault)
        h.prompt_client.generate_prompt.side_effect = [
            RuntimeError("boom"),
            PromptResult(prompt="A poster about TCP"),
        ]
        assert await h.pipeline.generate_poster(NOTE, PosterSession()) is None
        assert await h.pipeline.generate_poster(NOTE, PosterSession()) == IMAGE_PATH


# ---------------------------------------------------------------------------
# regenerate_last_poster
# ---------------------------------------------------------------------------

class TestRegenerate:
    @pytest.mark.asyncio
    async def test_no_previous_prompt(self, vault):
        h = Harness(vault)
        assert await h.pipeline.regenerate_last_poster(PosterSession()) is None
        assert h.notifier.messages == [
            "No previous generation found. Please generate a poster first."
        ]
        h.image_client.generate_image.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_note_reference(self, vault):
        h = Harness(vault)

        assert await h.pipeline.regenerate_last_poster(PosterSession(last_prompt="x")) is None

        assert h.notifier.messages == ["Original note not found. Please generate a new poster."]
        h.image_client.generate_image.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_run_keeps_previous_note(self, vault):
        (vault.root / "notes" / "other.md").write_text("# Other\n", encoding="utf-8")
        h = Harness(vault)
        session = PosterSession(last_prompt="Prompt derived from tcp.md", last_note_path=NOTE)
        h.prompt_client.generate_prompt.side_effect = GenerationError(
            ErrorKind.INVALID_API_KEY, "Invalid API key"
        )

        assert await h.pipeline.generate_poster("notes/other.md", session) is None

        assert session.last_prompt == "Prompt derived from tcp.md"
        assert session.last_note_path == NOTE

        result = await h.pipeline.regenerate_last_poster(session)

        assert result == IMAGE_PATH
        assert h.image_prompt == "Prompt derived from tcp.md"
        assert f"![[{IMAGE_PATH}]]" in h.note_content()
        assert (vault.root / "notes" / "other.md").read_text(encoding="utf-8") == "# Other\n"

    @pytest.mark.asyncio
    async def test_note_deleted(self, vault):
        h = Harness(vault)
        (vault.root / NOTE).unlink()
        session = PosterSession(last_prompt="A poster about TCP", last_note_path=NOTE)

        assert await h.pipeline.regenerate_last_poster(session) is None

        assert h.notifier.messages == ["Original note was moved or deleted"]
        h.image_client.generate_image.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reuses_last_prompt(self, vault):
        config = _config(image_style="cartoon", cartoon_cuts="6", image_size="1K")
        h = Harness(vault, config=config)
        session = PosterSession(last_prompt="Cached prompt", last_note_path=NOTE)

        result = await h.pipeline.regenerate_last_poster(session)

        assert result == IMAGE_PATH
        h.prompt_client.generate_prompt.assert_not_awaited()
        args = h.image_client.generate_image.call_args.args
        assert args[0] == "Cached prompt"
        assert args[3:] == ("cartoon", "en", "1K", 6)
        assert h.progresses[0].percents == [40, 80, 95, 100]
        assert f"![[{IMAGE_PATH}]]" in h.note_content()

    @pytest.mark.asyncio
    async def test_after_generate(self, vault):
        h = Harness(vault)
        session = PosterSession()

        await h.pipeline.generate_poster(NOTE, session)
        second = await h.pipeline.regenerate_last_poster(session)

        assert second == "attachments/tcp-poster-20250101-120000-1.png"
        assert h.prompt_client.generate_prompt.await_count == 1
        assert h.image_client.generate_image.await_count == 2
        assert h.note_content().count("![[") == 2


# ---------------------------------------------------------------------------
# generate_prompt_only
# ---------------------------------------------------------------------------

class TestPromptOnly:
    @pytest.mark.asyncio
    async def test_copies_and_remembers(self, vault):
        clipboard = RecordingClipboard()
        h = Harness(vault, clipboard=clipboard)
        session = PosterSession()

        result = await h.pipeline.generate_prompt_only(NOTE, session)

        assert result == "A poster about TCP"
        assert clipboard.copied == ["A poster about TCP"]
        assert session.last_prompt == "A poster about TCP"
        assert session.last_note_path == NOTE
        assert h.notifier.messages == ["Generating prompt...", "Prompt copied to clipboard!"]
        h.image_client.generate_image.assert_not_awaited()
        assert h.saved_files() == []
        assert h.note_content() == NOTE_TEXT

    @pytest.mark.asyncio
    async def test_failure_notifies(self, vault):
        h = Harness(vault, clipboard=RecordingClipboard())
        h.prompt_client.generate_prompt.side_effect = GenerationError(
            ErrorKind.INVALID_API_KEY, "Invalid API key"
        )
        session = PosterSession()

        assert await h.pipeline.generate_prompt_only(NOTE, session) is None

        assert h.notifier.messages[-1] == "Failed: Invalid API key"
        assert session.last_prompt == ""

    @pytest.mark.asyncio
    async def test_without_clipboard_does_not_claim_copy(self, vault):
        h = Harness(vault)
        session = PosterSession()

        assert await h.pipeline.generate_prompt_only(NOTE, session) == "A poster about TCP"

        assert h.notifier.messages == ["Generating prompt...", "Prompt generated"]
        assert session.last_prompt == "A poster about TCP"
