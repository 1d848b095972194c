"""
Caption writer — a short social-media caption for a finished image.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from .cancellation import CancellationToken
from .executor import ExecutionStrategy
from .models import ImagePayload
from .responses import parse_structured
from .transport import ImagePart, ModelRequest, TextPart

logger = logging.getLogger(__name__)

CAPTION_SYSTEM_INSTRUCTION = "You are a professional social media manager."


class CaptionSchema(BaseModel):
    caption: str = Field(description="Caption text including hashtags")


class CaptionWriter:
    def __init__(self, vision_model: str, language: str = "Indonesian") -> None:
        self.vision_model = vision_model
        self.language = language

    async def write(self, image: ImagePayload, strategy: ExecutionStrategy, token: CancellationToken) -> str:
        request = ModelRequest(
            model=self.vision_model,
            parts=(
                ImagePart(image.data, image.mime_type),
                TextPart(f"Write a short, engaging, creative social media caption in {self.language} with hashtags."),
            ),
            system_instruction=CAPTION_SYSTEM_INSTRUCTION,
            response_schema=CaptionSchema,
        )
        reply = await strategy.send(request, token)
        caption = parse_structured(reply, CaptionSchema).caption.strip()
        logger.info("caption written (%d chars)", len(caption))
        return caption
