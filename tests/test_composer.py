"""Tests for prompt composition and the Human Element interaction sub-call."""

import pytest

from enhancer.cancellation import CancellationToken
from enhancer.composer import (
    CLOSING_RULE,
    FRAMING,
    INTERACTION_SYSTEM_INSTRUCTION,
    STUDIO_BACKGROUND,
    PromptComposer,
    compose,
    is_apparel,
)
from enhancer.errors import ProviderError
from enhancer.executor import UserKeyStrategy
from enhancer.models import AspectRatio, DetectionResult
from enhancer.styles import (
    CLEAN_CATALOG,
    GHOST_MANNEQUIN,
    HUMAN_ELEMENT,
    PROMPT_LIBRARY,
    STYLE_ENHANCEMENTS,
    StyleCategory,
    StyleSelection,
)

from conftest import SPOON_PHRASE, FakeTransport, text_reply

BACKGROUND = "a sunlit marble countertop with fresh herbs"


@pytest.fixture
def food():
    return DetectionResult(category="Food", subject="Nasi Goreng", background_prompt=BACKGROUND)


class TestCompose:
    def test_all_axes_unset_still_has_background(self, food):
        prompt = compose(food, StyleSelection(), AspectRatio.SQUARE, isolate_subject=False)
        assert prompt.strip()
        assert BACKGROUND in prompt

    def test_deterministic(self, food):
        sel = StyleSelection(style="Rustic", lighting="Backlit", composition="Top-down", mood="Hangat")
        first = compose(food, sel, AspectRatio.PORTRAIT, True)
        second = compose(food, sel, AspectRatio.PORTRAIT, True)
        assert first == second

    def test_isolation_always_uses_studio_backdrop(self, food):
        for sel in (StyleSelection(), StyleSelection(style="Dark & Moody", mood="Misterius")):
            prompt = compose(food, sel, AspectRatio.SQUARE, isolate_subject=True)
            assert STUDIO_BACKGROUND in prompt
            assert BACKGROUND not in prompt
            assert prompt.startswith("CRITICAL TASK")
            assert "'Nasi Goreng'" in prompt

    def test_clean_catalog_overrides_background(self, food):
        prompt = compose(food, StyleSelection(style=CLEAN_CATALOG), AspectRatio.SQUARE, False)
        assert STUDIO_BACKGROUND in prompt
        assert BACKGROUND not in prompt

    def test_restyle_in_place_directive(self, food):
        prompt = compose(food, StyleSelection(), AspectRatio.SQUARE, False)
        assert prompt.startswith("Task: Transform this image")

    def test_selected_axes_expand_to_bullets(self, food):
        sel = StyleSelection(lighting="Backlit", mood="Hangat")
        prompt = compose(food, sel, AspectRatio.SQUARE, False)
        assert f"- {PROMPT_LIBRARY[StyleCategory.LIGHTING]['Backlit']}" in prompt
        assert f"- {PROMPT_LIBRARY[StyleCategory.MOOD]['Hangat']}" in prompt

    def test_unset_style_uses_suggested_style(self):
        det = DetectionResult(category="Food", subject="Soto", suggested_style="Rustic", background_prompt=BACKGROUND)
        prompt = compose(det, StyleSelection(), AspectRatio.SQUARE, False)
        assert PROMPT_LIBRARY[StyleCategory.STYLE]["Rustic"] in prompt

    def test_unknown_choice_passes_through_verbatim(self, food):
        prompt = compose(food, StyleSelection(lighting="Candlelit dinner glow"), AspectRatio.SQUARE, False)
        assert "- Candlelit dinner glow" in prompt

    def test_splash_adds_default_composition(self):
        det = DetectionResult(category="Drink", subject="Es Teh", background_prompt=BACKGROUND)
        prompt = compose(det, StyleSelection(style="Splash"), AspectRatio.SQUARE, False)
        assert STYLE_ENHANCEMENTS["Splash"] in prompt

    def test_apparel_gets_ghost_mannequin_when_isolated(self):
        det = DetectionResult(category="Product", subject="Kemeja Batik")
        prompt = compose(det, StyleSelection(), AspectRatio.SQUARE, True)
        assert STYLE_ENHANCEMENTS[GHOST_MANNEQUIN] in prompt
        assert STYLE_ENHANCEMENTS[GHOST_MANNEQUIN] not in compose(det, StyleSelection(), AspectRatio.SQUARE, False)

    def test_framing_and_closing_rule_present(self, food):
        for ratio in AspectRatio:
            prompt = compose(food, StyleSelection(), ratio, False)
            assert FRAMING[ratio] in prompt
            assert prompt.endswith(CLOSING_RULE)

    def test_no_detection_is_fine(self):
        prompt = compose(None, StyleSelection(), AspectRatio.STORY, True)
        assert STUDIO_BACKGROUND in prompt
        assert "isolate the main subject from everything else" in prompt

    def test_human_element_phrase_replaces_library_sentence(self, food):
        sel = StyleSelection(composition=HUMAN_ELEMENT)
        prompt = compose(food, sel, AspectRatio.SQUARE, False, interaction_phrase=SPOON_PHRASE)
        assert f"- {SPOON_PHRASE}" in prompt
        assert PROMPT_LIBRARY[StyleCategory.COMPOSITION][HUMAN_ELEMENT] not in prompt

    def test_is_apparel(self):
        assert is_apparel("Gaun Pesta")
        assert is_apparel("denim jacket")
        assert not is_apparel("Nasi Goreng")
        assert not is_apparel(None)


class TestPromptComposer:
    @pytest.mark.asyncio
    async def test_nasi_goreng_human_element_gets_spoon_phrase(self, food):
        transport = FakeTransport(script=[text_reply(SPOON_PHRASE)])
        strategy = UserKeyStrategy(transport, "image-model")
        composer = PromptComposer("vision-model")

        prompt = await composer.build(
            food, StyleSelection(composition=HUMAN_ELEMENT), AspectRatio.SQUARE, False,
            strategy, CancellationToken(),
        )

        assert "a hand holding a spoon, scooping a perfect bite." in prompt
        request = transport.requests[0]
        assert request.system_instruction == INTERACTION_SYSTEM_INSTRUCTION
        assert '"Nasi Goreng"' in request.parts[0].text

    @pytest.mark.asyncio
    async def test_phrase_cached_per_subject(self, food):
        transport = FakeTransport(script=[text_reply(f'"{SPOON_PHRASE}"')])
        strategy = UserKeyStrategy(transport, "image-model")
        composer = PromptComposer("vision-model")
        sel = StyleSelection(composition=HUMAN_ELEMENT)

        await composer.build(food, sel, AspectRatio.SQUARE, False, strategy, CancellationToken())
        shouty = DetectionResult(category="Food", subject="  NASI GORENG ", background_prompt=BACKGROUND)
        prompt = await composer.build(shouty, sel, AspectRatio.SQUARE, False, strategy, CancellationToken())

        assert transport.calls == 1
        assert f"- {SPOON_PHRASE}" in prompt

    @pytest.mark.asyncio
    async def test_interaction_failure_falls_back_to_library(self, food):
        transport = FakeTransport(script=[ProviderError("Resource has been exhausted", 429)])
        strategy = UserKeyStrategy(transport, "image-model")
        composer = PromptComposer("vision-model")

        prompt = await composer.build(
            food, StyleSelection(composition=HUMAN_ELEMENT), AspectRatio.SQUARE, False,
            strategy, CancellationToken(),
        )

        assert PROMPT_LIBRARY[StyleCategory.COMPOSITION][HUMAN_ELEMENT] in prompt

    @pytest.mark.asyncio
    async def test_no_sub_call_without_human_element(self, food):
        transport = FakeTransport()
        composer = PromptComposer("vision-model")
        await composer.build(food, StyleSelection(composition="Top-down"), AspectRatio.SQUARE, False,
                             UserKeyStrategy(transport, "image-model"), CancellationToken())
        assert transport.calls == 0

    @pytest.mark.asyncio
    async def test_no_sub_call_without_subject(self):
        transport = FakeTransport()
        composer = PromptComposer("vision-model")
        det = DetectionResult(category="Food", subject="", background_prompt=BACKGROUND)
        prompt = await composer.build(det, StyleSelection(composition=HUMAN_ELEMENT), AspectRatio.SQUARE, False,
                                      UserKeyStrategy(transport, "image-model"), CancellationToken())
        assert transport.calls == 0
        assert PROMPT_LIBRARY[StyleCategory.COMPOSITION][HUMAN_ELEMENT] in prompt
