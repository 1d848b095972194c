"""
Per-request cancellation.

A CancellationToken belongs to exactly one in-flight request (a generation or
a lazy classification). Once fired it stays fired: no more attempts, no more
waits, no credit deduction.

A RequestSlot models one output slot on a UI surface. Starting a new request
in the slot fires the previous request's token first, and only the current
token may publish a result into the slot.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .errors import GenerationCancelled

logger = logging.getLogger(__name__)


class CancellationToken:
    def __init__(self, label: str = "") -> None:
        self.label = label
        self._event = asyncio.Event()
        self.reason = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()
            logger.debug("token %s fired (%s)", self.label or id(self), reason)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise GenerationCancelled(self.reason or "cancelled")

    async def sleep(self, delay: float) -> None:
        """Wait `delay` seconds, raising GenerationCancelled as soon as the token fires."""
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise GenerationCancelled(self.reason or "cancelled")


class RequestSlot:
    """One result slot; a new request supersedes whatever was in flight."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._current: Optional[CancellationToken] = None

    @property
    def current(self) -> Optional[CancellationToken]:
        return self._current

    @property
    def busy(self) -> bool:
        return self._current is not None and not self._current.cancelled

    def begin(self) -> CancellationToken:
        if self._current is not None:
            self._current.cancel(f"superseded in {self.name}")
        self._current = CancellationToken(label=self.name)
        return self._current

    def cancel(self, reason: str = "cancelled") -> None:
        if self._current is not None:
            self._current.cancel(reason)

    def is_current(self, token: CancellationToken) -> bool:
        return token is self._current and not token.cancelled

    def finish(self, token: CancellationToken) -> None:
        if token is self._current:
            self._current = None
