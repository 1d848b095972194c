"""
Data model shared by the orchestrator, composer and executor.

Everything that crosses a component boundary is a frozen dataclass so a
dispatched GenerationRequest cannot be mutated by the session that built it.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from .errors import ClassifiedError, ErrorKind
from .styles import DEFAULT_CATEGORY, StyleSelection


class AspectRatio(str, Enum):
    SQUARE = "1:1"
    PORTRAIT = "4:5"
    LANDSCAPE = "16:9"
    STORY = "9:16"

    @property
    def ratio(self) -> float:
        w, h = self.value.split(":")
        return int(w) / int(h)


class CredentialMode(str, Enum):
    POOLED = "pooled"
    USER_SUPPLIED = "user_supplied"


@dataclass(frozen=True)
class CredentialContext:
    mode: CredentialMode
    key: Optional[str] = field(default=None, repr=False)

    @property
    def user_supplied(self) -> bool:
        return self.mode is CredentialMode.USER_SUPPLIED


@dataclass(frozen=True)
class ImagePayload:
    data: bytes = field(repr=False)
    mime_type: str = "image/jpeg"


@dataclass(frozen=True)
class DetectionResult:
    """Best-effort guess at the photo's content. Never ground truth."""
    category: str = DEFAULT_CATEGORY
    subject: str = ""
    suggested_style: Optional[str] = None
    background_prompt: Optional[str] = None

    @property
    def has_direction(self) -> bool:
        return self.suggested_style is not None or self.background_prompt is not None

    def with_direction(self, style: Optional[str], background_prompt: Optional[str]) -> "DetectionResult":
        return replace(self, suggested_style=style or None, background_prompt=background_prompt or None)


@dataclass(frozen=True)
class GenerationRequest:
    source_image: ImagePayload
    aspect_ratio: AspectRatio
    selected_styles: StyleSelection
    detection: Optional[DetectionResult]
    isolate_subject: bool
    credential: CredentialContext
    generation_id: str = field(default_factory=lambda: uuid.uuid4().hex)


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class GenerationOutcome:
    status: OutcomeStatus
    generation_id: str
    credential_mode: CredentialMode
    image: Optional[ImagePayload] = None
    final_prompt: str = ""
    error: Optional[ClassifiedError] = None
    attempts: int = 0
    title: str = ""

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS

    @property
    def cancelled(self) -> bool:
        return self.status is OutcomeStatus.CANCELLED

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None

    @property
    def message(self) -> str:
        return self.error.message if self.error else ""

    @classmethod
    def success(cls, request: GenerationRequest, image: ImagePayload, final_prompt: str,
                attempts: int = 1) -> "GenerationOutcome":
        subject = request.detection.subject if request.detection else ""
        return cls(
            status=OutcomeStatus.SUCCESS,
            generation_id=request.generation_id,
            credential_mode=request.credential.mode,
            image=image,
            final_prompt=final_prompt,
            attempts=attempts,
            title=f"Project {subject}" if subject else "AI Image Project",
        )

    @classmethod
    def failure(cls, request: GenerationRequest, error: ClassifiedError,
                final_prompt: str = "", attempts: int = 0) -> "GenerationOutcome":
        if error.kind is ErrorKind.CANCELLED:
            return cls.cancelled_for(request, final_prompt=final_prompt, attempts=attempts)
        return cls(
            status=OutcomeStatus.FAILED,
            generation_id=request.generation_id,
            credential_mode=request.credential.mode,
            final_prompt=final_prompt,
            error=error,
            attempts=attempts,
        )

    @classmethod
    def cancelled_for(cls, request: GenerationRequest, final_prompt: str = "",
                      attempts: int = 0) -> "GenerationOutcome":
        return cls(
            status=OutcomeStatus.CANCELLED,
            generation_id=request.generation_id,
            credential_mode=request.credential.mode,
            final_prompt=final_prompt,
            error=ClassifiedError(kind=ErrorKind.CANCELLED, message=""),
            attempts=attempts,
        )
