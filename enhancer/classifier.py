"""
Content Classifier — what is in the photo, and how should it be shot?

Two vision calls, both constrained to a JSON schema:

  classify()           — {category, subject}; drives the context-aware presets
  suggest_direction()  — "photoshoot director": {style, background_prompt};
                         drives the default style and the new background

An unknown category is not an error: it falls back to Default.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel, Field

from .cancellation import CancellationToken
from .errors import GenerationCancelled
from .executor import ExecutionStrategy
from .models import DetectionResult, ImagePayload
from .responses import parse_structured
from .styles import known_category
from .transport import ImagePart, ModelRequest

logger = logging.getLogger(__name__)


CLASSIFICATION_PROMPT = (
    "Analyze the image, identify the main subject.\n"
    "Classify the image into exactly one category from: Food, Drink, Portrait, Landscape, Product, Default.\n"
    'Respond ONLY with a JSON object containing "category" and "subject".'
)

DIRECTOR_PROMPT = (
    "You are a professional photoshoot director. Analyze the image. "
    "First, determine the most fitting professional photography style. "
    "Second, suggest a NEW, creative, and professional background that would elevate the subject. "
    "Respond ONLY with a JSON object."
)

FALLBACK_BACKGROUND = "a professional studio environment with tasteful, brand-aligned styling."


# ── Structured output schemas ─────────────────────────────────────────────────

class DetectionSchema(BaseModel):
    category: str = Field(description="One of: Food, Drink, Portrait, Landscape, Product, Default")
    subject: str = Field(default="", description="Short noun phrase naming the main subject")


class ShootDirectionSchema(BaseModel):
    style: str = Field(description="Most fitting professional photography style")
    background_prompt: str = Field(description="A new, creative, professional background for the subject")


# ── Classifier ────────────────────────────────────────────────────────────────

class ContentClassifier:
    def __init__(self, vision_model: str) -> None:
        self.vision_model = vision_model

    def _request(self, image: ImagePayload, instruction: str, schema) -> ModelRequest:
        return ModelRequest(
            model=self.vision_model,
            parts=(ImagePart(image.data, image.mime_type),),
            system_instruction=instruction,
            response_schema=schema,
        )

    async def classify(self, image: ImagePayload, strategy: ExecutionStrategy,
                       token: CancellationToken) -> DetectionResult:
        """Category + subject. Failures propagate; an unknown category does not fail."""
        reply = await strategy.send(self._request(image, CLASSIFICATION_PROMPT, DetectionSchema), token)
        parsed = parse_structured(reply, DetectionSchema)

        category = known_category(parsed.category.strip())
        if category != parsed.category.strip():
            logger.info("unknown category %r, using %s presets", parsed.category, category)
        subject = parsed.subject.strip()
        logger.info("classified image as %s (%s)", category, subject or "no subject")
        return DetectionResult(category=category, subject=subject)

    async def suggest_direction(self, image: ImagePayload, strategy: ExecutionStrategy,
                                token: CancellationToken) -> ShootDirectionSchema:
        reply = await strategy.send(self._request(image, DIRECTOR_PROMPT, ShootDirectionSchema), token)
        return parse_structured(reply, ShootDirectionSchema)

    async def direct(self, image: ImagePayload, detection: Optional[DetectionResult],
                     strategy: ExecutionStrategy, token: CancellationToken) -> DetectionResult:
        """
        Attach the director's style + background to `detection`.

        Tolerant: if the director call fails for any reason other than
        cancellation, log it and fall back to a generic studio background.
        """
        base = detection or DetectionResult()
        if base.has_direction:
            return base
        try:
            direction = await self.suggest_direction(image, strategy, token)
        except GenerationCancelled:
            raise
        except Exception as e:
            logger.warning("shoot direction failed, using fallback background: %s", e)
            return base.with_direction(None, FALLBACK_BACKGROUND)
        return base.with_direction(direction.style.strip(), direction.background_prompt.strip() or FALLBACK_BACKGROUND)
