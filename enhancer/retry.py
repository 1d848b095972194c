"""
Retry Controller — bounded retry with fixed backoff, cancellation-aware.

Only failures the ErrorClassifier calls TransientServer are retried. The token
is checked before every dispatch and the wait between attempts is cut short
the moment it fires.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

from .cancellation import CancellationToken
from .errors import ErrorClassifier, GenerationCancelled, default_classifier

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Attempted(Generic[T]):
    value: T
    attempts: int


class AttemptsExhausted(Exception):
    """Wraps the last failure so callers still know how many calls were made."""

    def __init__(self, cause: BaseException, attempts: int) -> None:
        super().__init__(str(cause))
        self.cause = cause
        self.attempts = attempts


class RetryController:
    def __init__(
        self,
        max_attempts: int = 2,
        delay: float = 1.5,
        classifier: ErrorClassifier = default_classifier,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.delay = delay
        self.classifier = classifier

    async def run(self, operation: Callable[[], Awaitable[T]], token: CancellationToken) -> Attempted[T]:
        """
        Call `operation` until it succeeds, fails non-transiently, or the
        budget runs out. GenerationCancelled propagates untouched; any other
        final failure is raised as AttemptsExhausted.
        """
        attempt = 0
        while True:
            token.raise_if_cancelled()
            attempt += 1
            try:
                return Attempted(await operation(), attempt)
            except GenerationCancelled:
                raise
            except Exception as e:
                # a failure after the token fired is a cancellation
                token.raise_if_cancelled()
                if not self.classifier.is_transient(e):
                    raise AttemptsExhausted(e, attempt) from e
                if attempt >= self.max_attempts:
                    logger.warning("transient failure on final attempt %d/%d: %s", attempt, self.max_attempts, e)
                    raise AttemptsExhausted(e, attempt) from e
                logger.info("attempt %d/%d failed transiently, retrying in %.1fs: %s",
                            attempt, self.max_attempts, self.delay, e)
            await token.sleep(self.delay)
