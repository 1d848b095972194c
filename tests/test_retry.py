"""Tests for cancellation tokens, request slots and the retry controller."""

import asyncio

import pytest

from enhancer.cancellation import CancellationToken, RequestSlot
from enhancer.errors import GenerationCancelled, ProviderError
from enhancer.retry import AttemptsExhausted, RetryController


def flaky(*outcomes):
    """An operation that returns/raises the given outcomes in order and counts calls."""
    queue = list(outcomes)
    calls = []

    async def op():
        calls.append(1)
        item = queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    return op, calls


TRANSIENT = ProviderError("503 UNAVAILABLE", 503)


class TestCancellationToken:
    @pytest.mark.asyncio
    async def test_sleep_completes_when_not_cancelled(self):
        token = CancellationToken()
        await token.sleep(0.01)
        assert not token.cancelled

    @pytest.mark.asyncio
    async def test_cancel_interrupts_sleep(self):
        token = CancellationToken()
        task = asyncio.create_task(token.sleep(10))
        await asyncio.sleep(0)
        token.cancel("user")
        with pytest.raises(GenerationCancelled):
            await asyncio.wait_for(task, 1)

    def test_raise_if_cancelled(self):
        token = CancellationToken()
        token.raise_if_cancelled()
        token.cancel()
        with pytest.raises(GenerationCancelled):
            token.raise_if_cancelled()


class TestRequestSlot:
    def test_begin_supersedes_previous(self):
        slot = RequestSlot("generation")
        first = slot.begin()
        second = slot.begin()
        assert first.cancelled
        assert not second.cancelled
        assert slot.is_current(second)
        assert not slot.is_current(first)

    def test_finish_only_clears_own_token(self):
        slot = RequestSlot("generation")
        first = slot.begin()
        second = slot.begin()
        slot.finish(first)
        assert slot.current is second
        slot.finish(second)
        assert slot.current is None
        assert not slot.busy

    def test_cancelled_token_is_not_current(self):
        slot = RequestSlot("classification")
        token = slot.begin()
        slot.cancel("panel closed")
        assert not slot.is_current(token)

    def test_token_made_outside_a_loop_can_wait_inside_one(self):
        token = RequestSlot("generation").begin()
        asyncio.run(token.sleep(0.01))

        async def cancel_then_wait():
            token.cancel("user")
            await token.sleep(10)

        with pytest.raises(GenerationCancelled):
            asyncio.run(cancel_then_wait())


class TestRetryController:
    @pytest.mark.asyncio
    async def test_success_first_time(self):
        op, calls = flaky("ok")
        result = await RetryController(2, 0.0).run(op, CancellationToken())
        assert result.value == "ok"
        assert result.attempts == 1

    @pytest.mark.asyncio
    async def test_transient_then_success(self):
        op, calls = flaky(TRANSIENT, "ok")
        result = await RetryController(2, 0.0).run(op, CancellationToken())
        assert result.value == "ok"
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_transient_twice_exhausts(self):
        op, calls = flaky(TRANSIENT, TRANSIENT, "never")
        with pytest.raises(AttemptsExhausted) as info:
            await RetryController(2, 0.0).run(op, CancellationToken())
        assert info.value.attempts == 2
        assert info.value.cause is TRANSIENT
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_non_transient_not_retried(self):
        op, calls = flaky(ProviderError("Resource has been exhausted", 429), "never")
        with pytest.raises(AttemptsExhausted) as info:
            await RetryController(2, 0.0).run(op, CancellationToken())
        assert info.value.attempts == 1
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_cancelled_before_dispatch(self):
        op, calls = flaky("ok")
        token = CancellationToken()
        token.cancel()
        with pytest.raises(GenerationCancelled):
            await RetryController(2, 0.0).run(op, token)
        assert calls == []

    @pytest.mark.asyncio
    async def test_cancel_during_wait_stops_retrying(self):
        op, calls = flaky(TRANSIENT, "never")
        token = CancellationToken()
        task = asyncio.create_task(RetryController(2, 10.0).run(op, token))
        while not calls:
            await asyncio.sleep(0)
        token.cancel()
        with pytest.raises(GenerationCancelled):
            await asyncio.wait_for(task, 1)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_failure_after_cancel_is_cancellation(self):
        token = CancellationToken()

        async def op():
            token.cancel("user")
            raise ProviderError("Resource has been exhausted", 429)

        with pytest.raises(GenerationCancelled):
            await RetryController(2, 0.0).run(op, token)

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryController(0, 1.0)
