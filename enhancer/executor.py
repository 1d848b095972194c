"""
Generation Executor — run model calls on the request's credential path.

Two strategies behind one interface:

  UserKeyStrategy  — direct REST with the user's key. One call, never retried;
                     the user sees their own key's failures immediately.
  PooledStrategy   — google-genai SDK with the operator key, wrapped in the
                     RetryController (transient failures retried once).

Every model call on a request's path goes through its strategy: `send` for the
text/vision helpers (classifier, interaction phrase, caption), `execute` for
the final image edit. `execute` never raises for provider failures; it returns
a classified GenerationOutcome.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from .cancellation import CancellationToken
from .config import EnhancerConfig
from .errors import (
    ErrorClassifier,
    GenerationCancelled,
    SafetyRejectedError,
    default_classifier,
)
from .models import CredentialContext, CredentialMode, GenerationOutcome, GenerationRequest
from .responses import ModelReply
from .retry import Attempted, AttemptsExhausted, RetryController
from .transport import GenaiTransport, ImagePart, ModelRequest, ModelTransport, RestTransport, TextPart

logger = logging.getLogger(__name__)

IMAGE_MODALITIES = ("IMAGE", "TEXT")


def image_edit_request(model: str, request: GenerationRequest, prompt: str) -> ModelRequest:
    source = request.source_image
    return ModelRequest(
        model=model,
        parts=(ImagePart(source.data, source.mime_type), TextPart(prompt)),
        response_modalities=IMAGE_MODALITIES,
    )


class ExecutionStrategy(ABC):
    mode: CredentialMode

    def __init__(self, transport: ModelTransport, image_model: str,
                 classifier: ErrorClassifier = default_classifier) -> None:
        self.transport = transport
        self.image_model = image_model
        self.classifier = classifier

    @property
    def user_supplied(self) -> bool:
        return self.mode is CredentialMode.USER_SUPPLIED

    @abstractmethod
    async def _dispatch(self, model_request: ModelRequest, token: CancellationToken) -> Attempted[ModelReply]:
        """Run the call under this path's retry policy. Raises AttemptsExhausted or GenerationCancelled."""

    async def send(self, model_request: ModelRequest, token: CancellationToken) -> ModelReply:
        """Helper-call entry point: returns the reply or raises the underlying failure."""
        try:
            attempted = await self._dispatch(model_request, token)
        except AttemptsExhausted as e:
            token.raise_if_cancelled()
            raise e.cause
        token.raise_if_cancelled()
        return attempted.value

    async def execute(self, request: GenerationRequest, prompt: str, token: CancellationToken) -> GenerationOutcome:
        model_request = image_edit_request(self.image_model, request, prompt)
        try:
            attempted = await self._dispatch(model_request, token)
            token.raise_if_cancelled()
        except GenerationCancelled:
            logger.info("generation %s cancelled", request.generation_id)
            return GenerationOutcome.cancelled_for(request, final_prompt=prompt)
        except AttemptsExhausted as e:
            if token.cancelled:
                logger.info("generation %s cancelled while its call failed", request.generation_id)
                return GenerationOutcome.cancelled_for(request, final_prompt=prompt, attempts=e.attempts)
            error = self.classifier.classify(e.cause, self.user_supplied)
            logger.warning("generation %s failed after %d attempt(s): %s (%s)",
                           request.generation_id, e.attempts, error.kind.value, e.cause)
            return GenerationOutcome.failure(request, error, final_prompt=prompt, attempts=e.attempts)

        reply = attempted.value
        if reply.image is None:
            refusal = SafetyRejectedError(reply.refusal_text)
            error = self.classifier.classify(refusal, self.user_supplied)
            logger.warning("generation %s returned text only: %s", request.generation_id, refusal.refusal_text[:200])
            return GenerationOutcome.failure(request, error, final_prompt=prompt, attempts=attempted.attempts)

        logger.info("generation %s succeeded on %s path (%d attempt(s))",
                    request.generation_id, self.mode.value, attempted.attempts)
        return GenerationOutcome.success(request, reply.image, prompt, attempts=attempted.attempts)


class UserKeyStrategy(ExecutionStrategy):
    mode = CredentialMode.USER_SUPPLIED

    async def _dispatch(self, model_request: ModelRequest, token: CancellationToken) -> Attempted[ModelReply]:
        token.raise_if_cancelled()
        try:
            reply = await self.transport.generate(model_request)
        except GenerationCancelled:
            raise
        except Exception as e:
            token.raise_if_cancelled()
            raise AttemptsExhausted(e, 1) from e
        return Attempted(reply, 1)


class PooledStrategy(ExecutionStrategy):
    mode = CredentialMode.POOLED

    def __init__(self, transport: ModelTransport, image_model: str, retry: RetryController,
                 classifier: ErrorClassifier = default_classifier) -> None:
        super().__init__(transport, image_model, classifier)
        self.retry = retry

    async def _dispatch(self, model_request: ModelRequest, token: CancellationToken) -> Attempted[ModelReply]:
        return await self.retry.run(lambda: self.transport.generate(model_request), token)


class GenerationExecutor:
    """Picks the strategy for a credential context and runs the image edit."""

    def __init__(
        self,
        config: EnhancerConfig,
        pooled_transport: Optional[ModelTransport] = None,
        user_transport_factory: Optional[Callable[[str], ModelTransport]] = None,
        classifier: ErrorClassifier = default_classifier,
    ) -> None:
        self.config = config
        self.classifier = classifier
        self.pooled_transport = pooled_transport or GenaiTransport(config.pooled_api_key)
        self._user_transport_factory = user_transport_factory or self._rest_transport
        self.retry = RetryController(config.max_attempts, config.retry_delay, classifier)

    def _rest_transport(self, key: str) -> ModelTransport:
        return RestTransport(key, base_url=self.config.rest_base_url, timeout=self.config.request_timeout)

    def strategy_for(self, credential: CredentialContext) -> ExecutionStrategy:
        if credential.user_supplied:
            return UserKeyStrategy(self._user_transport_factory(credential.key or ""),
                                   self.config.image_model, self.classifier)
        return PooledStrategy(self.pooled_transport, self.config.image_model, self.retry, self.classifier)

    async def execute(self, request: GenerationRequest, prompt: str, token: CancellationToken) -> GenerationOutcome:
        return await self.strategy_for(request.credential).execute(request, prompt, token)
