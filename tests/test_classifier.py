"""Tests for content classification and shoot direction."""

import pytest

from enhancer.cancellation import CancellationToken
from enhancer.classifier import (
    CLASSIFICATION_PROMPT,
    FALLBACK_BACKGROUND,
    ContentClassifier,
    DetectionSchema,
)
from enhancer.errors import GenerationCancelled, ProviderError
from enhancer.executor import UserKeyStrategy
from enhancer.models import DetectionResult, ImagePayload
from enhancer.styles import STYLE_PRESETS, options_for

from conftest import FakeTransport, json_reply, text_reply

IMAGE = ImagePayload(b"jpeg", "image/jpeg")


def strategy_with(*script):
    transport = FakeTransport(script=list(script))
    return transport, UserKeyStrategy(transport, "image-model")


class TestClassify:
    @pytest.mark.asyncio
    async def test_known_category(self):
        transport, strategy = strategy_with(json_reply({"category": "Food", "subject": " Nasi Goreng "}))
        result = await ContentClassifier("vision").classify(IMAGE, strategy, CancellationToken())
        assert result == DetectionResult(category="Food", subject="Nasi Goreng")

        sent = transport.requests[0]
        assert sent.model == "vision"
        assert sent.response_schema is DetectionSchema
        assert sent.system_instruction == CLASSIFICATION_PROMPT

    @pytest.mark.asyncio
    async def test_unknown_category_falls_back_to_default(self):
        _, strategy = strategy_with(json_reply({"category": "Furniture", "subject": "Teak chair"}))
        result = await ContentClassifier("vision").classify(IMAGE, strategy, CancellationToken())
        assert result.category == "Default"
        assert result.subject == "Teak chair"
        assert options_for(result.category) == STYLE_PRESETS["Default"]

    @pytest.mark.asyncio
    async def test_fenced_json_accepted(self):
        _, strategy = strategy_with(text_reply('```json\n{"category": "Drink", "subject": "Es Kopi"}\n```'))
        result = await ContentClassifier("vision").classify(IMAGE, strategy, CancellationToken())
        assert result.category == "Drink"

    @pytest.mark.asyncio
    async def test_garbage_reply_raises_provider_error(self):
        _, strategy = strategy_with(text_reply("I see a lovely photo."))
        with pytest.raises(ProviderError):
            await ContentClassifier("vision").classify(IMAGE, strategy, CancellationToken())

    @pytest.mark.asyncio
    async def test_cancelled_token_blocks_call(self):
        transport, strategy = strategy_with(json_reply({"category": "Food", "subject": "x"}))
        token = CancellationToken()
        token.cancel()
        with pytest.raises(GenerationCancelled):
            await ContentClassifier("vision").classify(IMAGE, strategy, token)
        assert transport.calls == 0


class TestDirection:
    @pytest.mark.asyncio
    async def test_direction_attached(self):
        _, strategy = strategy_with(json_reply({"style": "Rustic", "background_prompt": "an old oak table"}))
        base = DetectionResult(category="Food", subject="Rendang")
        result = await ContentClassifier("vision").direct(IMAGE, base, strategy, CancellationToken())
        assert result.subject == "Rendang"
        assert result.suggested_style == "Rustic"
        assert result.background_prompt == "an old oak table"

    @pytest.mark.asyncio
    async def test_direction_failure_is_tolerated(self):
        _, strategy = strategy_with(ProviderError("503 overloaded", 503))
        result = await ContentClassifier("vision").direct(IMAGE, None, strategy, CancellationToken())
        assert result.category == "Default"
        assert result.suggested_style is None
        assert result.background_prompt == FALLBACK_BACKGROUND

    @pytest.mark.asyncio
    async def test_existing_direction_reused(self):
        transport, strategy = strategy_with()
        base = DetectionResult(category="Food", subject="Soto", suggested_style="Rustic", background_prompt="bg")
        result = await ContentClassifier("vision").direct(IMAGE, base, strategy, CancellationToken())
        assert result is base
        assert transport.calls == 0

    @pytest.mark.asyncio
    async def test_cancellation_not_swallowed(self):
        _, strategy = strategy_with(json_reply({"style": "Rustic", "background_prompt": "bg"}))
        token = CancellationToken()
        token.cancel()
        with pytest.raises(GenerationCancelled):
            await ContentClassifier("vision").direct(IMAGE, None, strategy, token)
