"""Tests for prompt assembly, brand voice rendering and title derivation."""

import pytest

from prowrite.service.context_window import ContextTurn
from prowrite.service.errors import UnsupportedModuleError
from prowrite.service.prompt_builder import assemble, build_system_prompt, derive_title
from prowrite.service.prompts.registry import (
    MODULE_PROMPTS,
    available_modules,
    get_system_prompt,
    is_valid_module,
)
from prowrite.storage.models import BrandVoice


class TestRegistry:
    def test_five_modules_registered(self):
        assert {cfg.module_type for cfg in available_modules()} == {
            "cold_email",
            "hr_docs",
            "youtube_scripts",
            "website_copy",
            "software_docs",
        }

    def test_unknown_module_raises(self):
        with pytest.raises(UnsupportedModuleError) as excinfo:
            get_system_prompt("poetry")
        assert excinfo.value.error_code == "unsupported_module"
        assert excinfo.value.detail == {"module_type": "poetry"}
        assert not is_valid_module("poetry")

    def test_registry_is_read_only(self):
        with pytest.raises(TypeError):
            MODULE_PROMPTS["poetry"] = MODULE_PROMPTS["cold_email"]  # type: ignore[index]


class TestSystemPrompt:
    def test_no_voice_returns_base_prompt(self):
        assert build_system_prompt("cold_email") == get_system_prompt("cold_email")

    def test_empty_voice_appends_nothing(self):
        voice = BrandVoice(tone=None, style="", terminology=[], avoid=["jargon"])
        assert build_system_prompt("hr_docs", voice) == get_system_prompt("hr_docs")

    def test_full_voice_section(self):
        voice = BrandVoice(tone="friendly", style="concise", terminology=["clients", "partners"])
        prompt = build_system_prompt("cold_email", voice)
        expected = (
            get_system_prompt("cold_email")
            + "\n\n====\n## BRAND VOICE SETTINGS\n\n"
            + "Apply these brand voice preferences to all generated content:\n\n"
            + "**Tone:** friendly\n**Style:** concise\n"
            + "**Preferred Terminology:** clients, partners"
        )
        assert prompt == expected

    def test_only_supplied_fields_rendered(self):
        prompt = build_system_prompt("website_copy", BrandVoice(style="playful"))
        assert "**Style:** playful" in prompt
        assert "**Tone:**" not in prompt
        assert "**Preferred Terminology:**" not in prompt

    def test_avoid_list_is_not_rendered(self):
        prompt = build_system_prompt("website_copy", BrandVoice(tone="bold", avoid=["synergy"]))
        assert "synergy" not in prompt


class TestAssemble:
    def test_without_history_user_prompt_is_raw_text(self):
        result = assemble("software_docs", "Write a README", [])
        assert result.user_prompt == "Write a README"
        assert result.system_prompt == get_system_prompt("software_docs")

    def test_transcript_rendering(self):
        turns = [ContextTurn("user", "Hi"), ContextTurn("assistant", "Hello!")]
        result = assemble("cold_email", "Make it shorter", turns)
        assert result.user_prompt == (
            "--- Previous Conversation ---\n"
            "User: Hi\n\n"
            "Assistant: Hello!\n\n"
            "--- Current Message ---\n"
            "Make it shorter"
        )

    def test_same_inputs_give_identical_output(self):
        turns = [ContextTurn("user", "a"), ContextTurn("assistant", "b")]
        voice = BrandVoice(tone="warm", terminology=["team"])
        first = assemble("hr_docs", "Draft an offer letter", turns, voice)
        second = assemble("hr_docs", "Draft an offer letter", turns, voice)
        assert first == second

    def test_unknown_module_fails(self):
        with pytest.raises(UnsupportedModuleError):
            assemble("unknown", "text", [])


class TestDeriveTitle:
    def test_short_text_kept(self):
        assert derive_title("Write a tweet about coffee") == "Write a tweet about coffee"

    def test_whitespace_trimmed_and_collapsed(self):
        assert derive_title("  Write \n a\t\ttweet  ") == "Write a tweet"

    def test_long_text_truncated_with_ellipsis(self):
        text = "word " * 30
        title = derive_title(text)
        assert len(title) == 50
        assert title.endswith("...")
        assert title == " ".join(text.split())[:47] + "..."

    def test_exactly_max_length_not_truncated(self):
        text = "a" * 50
        assert derive_title(text) == text

    def test_blank_text_gives_none(self):
        assert derive_title("   \n ") is None
