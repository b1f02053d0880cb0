"""Unit tests for src/core/prompts.py."""

import pytest

from src.core.prompts import (
    INFOGRAPHIC_STYLE_DIRECTIVE,
    PreparedPrompt,
    enhance_prompt,
    is_infographic_prompt,
    prepare_prompt,
)


# =============================================================================
# Trigger detection
# =============================================================================


class TestIsInfographicPrompt:
    @pytest.mark.parametrize(
        "prompt",
        [
            "infographic of the water cycle",
            "An INFOGRAPHIC about volcanoes",
            "Make an Infographic: photosynthesis",
            "infographics comparing planets",
            "إنفوجرافيك عن دورة الماء",
        ],
    )
    def test_detects_trigger(self, prompt):
        assert is_infographic_prompt(prompt) is True

    @pytest.mark.parametrize(
        "prompt",
        ["A cat wearing a hat", "info graphic of the moon", "انفوجرافيك بدون همزة", ""],
    )
    def test_ignores_other_prompts(self, prompt):
        assert is_infographic_prompt(prompt) is False


# =============================================================================
# Enhancement
# =============================================================================


class TestEnhancePrompt:
    def test_plain_prompt_unchanged(self):
        assert enhance_prompt("a red fox") == "a red fox"

    def test_directive_prefixed(self):
        result = enhance_prompt("Infographic of the water cycle")
        assert result.startswith(INFOGRAPHIC_STYLE_DIRECTIVE)
        assert result.endswith("Infographic of the water cycle")

    def test_arabic_trigger_prefixed(self):
        prompt = "إنفوجرافيك عن النظام الشمسي"
        assert enhance_prompt(prompt) == f"{INFOGRAPHIC_STYLE_DIRECTIVE}{prompt}"

    def test_applied_once(self):
        # The directive itself contains no trigger, so it is never stacked
        result = enhance_prompt("infographic")
        assert result.count(INFOGRAPHIC_STYLE_DIRECTIVE) == 1


class TestPreparePrompt:
    def test_trims_whitespace(self):
        prepared = prepare_prompt("   a lighthouse at dawn  \n")
        assert prepared.original == "a lighthouse at dawn"
        assert prepared.dispatched == "a lighthouse at dawn"
        assert prepared.enhanced is False

    def test_whitespace_only_is_empty(self):
        prepared = prepare_prompt(" \t\n ")
        assert prepared.original == ""

    def test_original_kept_for_infographics(self):
        prepared = prepare_prompt(" Infographic of the water cycle ")
        assert prepared.original == "Infographic of the water cycle"
        assert prepared.dispatched != prepared.original
        assert prepared.enhanced is True

    def test_is_frozen(self):
        prepared = PreparedPrompt(original="a", dispatched="a")
        with pytest.raises(Exception):
            prepared.original = "b"
