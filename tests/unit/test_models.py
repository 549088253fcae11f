# tests/unit/test_models.py
"""Unit tests for the core data model."""

import pytest
from pydantic import ValidationError

from note_poster.models import (
    GenerationRequest,
    PosterSession,
    PromptResult,
    clamp_panel_count,
    get_cartoon_cuts_number,
)
from note_poster.pipeline.surfaces import FixedOptionsSurface, parse_custom_cuts
from note_poster.providers.keys import resolve_provider_key


def _request(**overrides):
    data = dict(
        note_text="# TCP\nHandshake",
        provider_id="google",
        prompt_model="gemini-2.5-flash",
        image_model="gemini-3-pro-image-preview",
    )
    data.update(overrides)
    return GenerationRequest(**data)


class TestGenerationRequest:
    def test_defaults(self):
        request = _request()
        assert request.style == "infographic"
        assert request.size == "2K"
        assert request.panel_count is None

    def test_blank_note_rejected(self):
        with pytest.raises(ValidationError):
            _request(note_text="   \n ")

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValidationError):
            _request(provider_id="mistral")

    def test_panel_count_ignored_for_non_cartoon(self):
        assert _request(style="poster", panel_count=6).panel_count is None

    @pytest.mark.parametrize("given,expected", [(1, 2), (6, 6), (20, 12), (None, 4)])
    def test_cartoon_panel_count_clamped(self, given, expected):
        assert _request(style="cartoon", panel_count=given).panel_count == expected


class TestCartoonCuts:
    def test_numeric_selector(self):
        assert get_cartoon_cuts_number("6", 10) == 6

    def test_custom_returned_unchanged(self):
        # No clamping when reading the selector
        assert get_cartoon_cuts_number("custom", 20) == 20
        assert get_cartoon_cuts_number("custom", 1) == 1

    def test_clamp(self):
        assert clamp_panel_count(0) == 2
        assert clamp_panel_count(13) == 12
        assert clamp_panel_count(7) == 7

    @pytest.mark.parametrize(
        "raw,expected",
        [("abc", 4), ("0", 4), ("", 4), ("1", 2), ("20", 12), ("9", 9), (None, 4), (5, 5)],
    )
    def test_parse_custom_cuts(self, raw, expected):
        assert parse_custom_cuts(raw) == expected

    def test_fixed_options_clamps_at_input(self):
        surface = FixedOptionsSurface(custom_cartoon_cuts=50)
        assert surface.custom_cartoon_cuts == 12


class TestSession:
    def test_remember_overwrites(self):
        session = PosterSession()
        session.remember("first", "a.md")
        session.remember("second", "b.md")
        assert session.last_prompt == "second"
        assert session.last_note_path == "b.md"

    def test_remember_keeps_note_when_not_given(self):
        session = PosterSession(last_prompt="old", last_note_path="a.md")
        session.remember("new")
        assert session.last_prompt == "new"
        assert session.last_note_path == "a.md"


def test_prompt_result_requires_text():
    with pytest.raises(ValidationError):
        PromptResult(prompt="")


class TestResolveProviderKey:
    def test_configured_key(self):
        assert resolve_provider_key("xai", {"xai": " xai-123 "}) == "xai-123"

    def test_missing_or_blank(self):
        assert resolve_provider_key("openai", {"openai": ""}) == ""
        assert resolve_provider_key("openai", {"openai": None}) == ""
        assert resolve_provider_key("mistral", {"openai": "sk"}) == ""
