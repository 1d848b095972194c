"""
Orchestrator — one EnhancementSession per UI surface.

Owns the surface state (uploaded image, selected styles, cached detection)
and wires the pipeline together:

  resolve credential → balance check / key validation → prepare image
    → (cached) detection + shoot direction → compose prompt → execute
    → deduct credits (pooled success only, still-current request only)

Each result slot (generation, classification, caption) is a RequestSlot, so a
new request supersedes the previous one and a superseded or cancelled request
can never publish a result or trigger a deduction. Provider failures come back
as classified outcomes; they are never raised out of the session.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from .caption import CaptionWriter
from .cancellation import RequestSlot
from .classifier import ContentClassifier
from .composer import PromptComposer
from .config import EnhancerConfig
from .credentials import CredentialResolver, CredentialValidationError
from .credits import CreditLedger, ensure_sufficient_credits
from .errors import ClassifiedError, ErrorClassifier, ErrorKind, GenerationCancelled, default_classifier
from .executor import GenerationExecutor
from .imaging import prepare_image
from .models import (
    AspectRatio,
    CredentialContext,
    CredentialMode,
    DetectionResult,
    GenerationOutcome,
    GenerationRequest,
    ImagePayload,
)
from .styles import (
    SavedPreset,
    SelectedStyles,
    StyleCategory,
    StyleOption,
    StylePresetBook,
    display_name,
    options_for,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptionOutcome:
    caption: str = ""
    error: Optional[ClassifiedError] = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return bool(self.caption) and self.error is None and not self.cancelled


class EnhancementSession:
    def __init__(
        self,
        config: EnhancerConfig,
        ledger: CreditLedger,
        executor: Optional[GenerationExecutor] = None,
        resolver: Optional[CredentialResolver] = None,
        error_classifier: ErrorClassifier = default_classifier,
    ) -> None:
        self.config = config
        self.ledger = ledger
        self.errors = error_classifier
        self.executor = executor or GenerationExecutor(config, classifier=error_classifier)
        self.resolver = resolver or CredentialResolver(config, classifier=error_classifier)
        self.content_classifier = ContentClassifier(config.vision_model)
        self.composer = PromptComposer(config.vision_model)
        self.caption_writer = CaptionWriter(config.vision_model)

        self.image: Optional[ImagePayload] = None
        self.styles = SelectedStyles()
        self.presets = StylePresetBook()
        self.detection: Optional[DetectionResult] = None
        self.analysis_error: Optional[ClassifiedError] = None
        self.advanced_open = False
        self.last_outcome: Optional[GenerationOutcome] = None

        self._generation = RequestSlot("generation")
        self._classification = RequestSlot("classification")
        self._caption = RequestSlot("caption")

    # ── Surface state ────────────────────────────────────────────────────────

    @property
    def generating(self) -> bool:
        return self._generation.busy

    def upload(self, image: ImagePayload) -> None:
        """A new image invalidates everything derived from the old one."""
        self._classification.cancel("image changed")
        self._generation.cancel("image changed")
        self._caption.cancel("image changed")
        self.image = image
        self.styles.reset()
        self.detection = None
        self.analysis_error = None
        self.advanced_open = False
        self.last_outcome = None
        logger.info("new image uploaded (%s, %d bytes)", image.mime_type, len(image.data))

    def toggle_style(self, category: StyleCategory, choice: str) -> Optional[str]:
        return self.styles.toggle(category, choice)

    def style_options(self) -> Tuple[StyleOption, ...]:
        return options_for(self.detection.category if self.detection else None)

    def category_display_name(self) -> str:
        return display_name(self.detection.category if self.detection else None)

    def save_preset(self, name: str) -> SavedPreset:
        return self.presets.save(name, self.styles.snapshot())

    def apply_preset(self, name: str) -> bool:
        preset = self.presets.find(name)
        if preset is None:
            return False
        self.styles.apply(preset.selection)
        return True

    # ── Advanced panel (lazy classification) ─────────────────────────────────

    async def open_advanced(self, use_own_key: bool = False, stored_key: Optional[str] = None) -> Optional[DetectionResult]:
        """Open the panel; classify the image on first open. None if failed or superseded."""
        self.advanced_open = True
        if self.image is None:
            return None
        if self.detection is not None:
            return self.detection

        token = self._classification.begin()
        image = self.image
        self.analysis_error = None
        try:
            credential = self.resolver.resolve(use_own_key, stored_key)
            await self.resolver.ensure_validated(credential)
            strategy = self.executor.strategy_for(credential)
            detection = await self.content_classifier.classify(image, strategy, token)
            if not self._classification.is_current(token):
                logger.info("classification result discarded (superseded)")
                return None
            self.detection = detection
            return detection
        except GenerationCancelled:
            logger.info("classification cancelled")
            return None
        except CredentialValidationError as e:
            if self._classification.is_current(token):
                self.analysis_error = e.error
            return None
        except Exception as e:
            if self._classification.is_current(token):
                self.analysis_error = self.errors.classify(e, use_own_key)
                logger.warning("classification failed: %s", self.analysis_error.kind.value)
            return None
        finally:
            self._classification.finish(token)

    def close_advanced(self) -> None:
        self.advanced_open = False
        self._classification.cancel("panel closed")

    # ── Generation ───────────────────────────────────────────────────────────

    def cancel(self) -> None:
        self._generation.cancel("cancelled by user")

    async def generate(
        self,
        aspect_ratio: AspectRatio = AspectRatio.SQUARE,
        isolate_subject: bool = False,
        use_own_key: bool = False,
        stored_key: Optional[str] = None,
    ) -> GenerationOutcome:
        if self.image is None:
            raise ValueError("Upload an image before generating.")

        token = self._generation.begin()
        request = GenerationRequest(
            source_image=self.image,
            aspect_ratio=AspectRatio(aspect_ratio),
            selected_styles=self.styles.snapshot(),
            detection=self.detection,
            isolate_subject=isolate_subject,
            credential=CredentialContext(CredentialMode.USER_SUPPLIED if use_own_key else CredentialMode.POOLED),
            generation_id=uuid.uuid4().hex,
        )
        prompt = ""
        try:
            credential = self.resolver.resolve(use_own_key, stored_key)
            request = replace(request, credential=credential)
            if credential.user_supplied:
                await self.resolver.ensure_validated(credential)
            else:
                await ensure_sufficient_credits(self.ledger, self.config.credit_cost)
            token.raise_if_cancelled()

            strategy = self.executor.strategy_for(credential)
            loop = asyncio.get_running_loop()
            prepared = await loop.run_in_executor(
                None, prepare_image, request.source_image, request.aspect_ratio, self.config.canvas_width
            )
            detection = await self.content_classifier.direct(prepared, request.detection, strategy, token)
            prompt = await self.composer.build(
                detection, request.selected_styles, request.aspect_ratio, isolate_subject, strategy, token
            )
            request = replace(request, source_image=prepared, detection=detection)
            outcome = await strategy.execute(request, prompt, token)
        except GenerationCancelled:
            outcome = GenerationOutcome.cancelled_for(request, final_prompt=prompt)
        except CredentialValidationError as e:
            outcome = GenerationOutcome.failure(request, e.error, final_prompt=prompt)
        except Exception as e:
            error = self.errors.classify(e, use_own_key)
            logger.warning("generation %s failed before dispatch: %s (%s)", request.generation_id, error.kind.value, e)
            outcome = GenerationOutcome.failure(request, error, final_prompt=prompt)

        try:
            if not self._generation.is_current(token):
                if not outcome.cancelled:
                    logger.info("generation %s superseded, result dropped", request.generation_id)
                return GenerationOutcome.cancelled_for(request, final_prompt=outcome.final_prompt,
                                                       attempts=outcome.attempts)
            if outcome.ok and outcome.credential_mode is CredentialMode.POOLED:
                await self._deduct(outcome)
            if outcome.error_kind is ErrorKind.INVALID_CREDENTIAL and request.credential.key:
                self.resolver.forget(request.credential.key)
            self.last_outcome = outcome
            return outcome
        finally:
            self._generation.finish(token)

    async def _deduct(self, outcome: GenerationOutcome) -> None:
        try:
            await self.ledger.deduct_credits(self.config.credit_cost, outcome.generation_id)
        except Exception:
            logger.exception("credit deduction failed for %s", outcome.generation_id)

    # ── Caption ──────────────────────────────────────────────────────────────

    async def write_caption(self, use_own_key: bool = False, stored_key: Optional[str] = None) -> CaptionOutcome:
        if self.last_outcome is None or self.last_outcome.image is None:
            raise ValueError("Generate an image before writing a caption.")

        token = self._caption.begin()
        image = self.last_outcome.image
        try:
            credential = self.resolver.resolve(use_own_key, stored_key)
            await self.resolver.ensure_validated(credential)
            strategy = self.executor.strategy_for(credential)
            caption = await self.caption_writer.write(image, strategy, token)
            if not self._caption.is_current(token):
                return CaptionOutcome(cancelled=True)
            return CaptionOutcome(caption=caption)
        except GenerationCancelled:
            return CaptionOutcome(cancelled=True)
        except CredentialValidationError as e:
            return CaptionOutcome(error=e.error)
        except Exception as e:
            return CaptionOutcome(error=self.errors.classify(e, use_own_key))
        finally:
            self._caption.finish(token)
