"""
Normalise model responses from both call paths into a ModelReply.

The SDK returns typed objects (candidates → content → parts with `.text` or
`.inline_data`), the REST endpoint returns the same tree as camelCase JSON.
Either way we only care about: the concatenated text, the first inline image,
and why the model stopped.
"""

from __future__ import annotations

import base64
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import ProviderError
from .models import ImagePayload

T = TypeVar("T", bound=BaseModel)


@dataclass(frozen=True)
class ModelReply:
    text: str = ""
    image: Optional[ImagePayload] = None
    finish_reason: str = ""
    block_reason: str = ""

    @property
    def refusal_text(self) -> str:
        """Best explanation for a missing image (model text, else block/finish reason)."""
        if self.text.strip():
            return self.text.strip()
        if self.block_reason:
            return f"Blocked by safety filter ({self.block_reason})"
        if self.finish_reason and self.finish_reason.upper() != "STOP":
            return f"No image returned (finish reason: {self.finish_reason})"
        return ""


def _decode(data: Any) -> bytes:
    if isinstance(data, str):
        return base64.b64decode(data)
    return bytes(data)


def reply_from_sdk(response: Any) -> ModelReply:
    """Build a ModelReply from a google-genai GenerateContentResponse."""
    texts = []
    image = None
    finish_reason = ""
    for candidate in getattr(response, "candidates", None) or []:
        if not finish_reason and getattr(candidate, "finish_reason", None):
            finish_reason = str(getattr(candidate.finish_reason, "name", candidate.finish_reason))
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is not None and getattr(inline, "data", None):
                if image is None:
                    image = ImagePayload(data=_decode(inline.data), mime_type=inline.mime_type or "image/png")
            elif getattr(part, "text", None):
                texts.append(part.text)

    block_reason = ""
    feedback = getattr(response, "prompt_feedback", None)
    if feedback is not None and getattr(feedback, "block_reason", None):
        block_reason = str(getattr(feedback.block_reason, "name", feedback.block_reason))

    return ModelReply(text="".join(texts), image=image, finish_reason=finish_reason, block_reason=block_reason)


def reply_from_rest(data: Dict[str, Any]) -> ModelReply:
    """Build a ModelReply from a REST generateContent JSON body."""
    texts = []
    image = None
    finish_reason = ""
    for candidate in data.get("candidates") or []:
        finish_reason = finish_reason or candidate.get("finishReason", "")
        for part in (candidate.get("content") or {}).get("parts") or []:
            inline = part.get("inlineData")
            if inline and inline.get("data"):
                if image is None:
                    image = ImagePayload(data=_decode(inline["data"]), mime_type=inline.get("mimeType", "image/png"))
            elif part.get("text"):
                texts.append(part["text"])

    block_reason = (data.get("promptFeedback") or {}).get("blockReason", "")
    return ModelReply(text="".join(texts), image=image, finish_reason=finish_reason, block_reason=block_reason)


_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def extract_json_block(text: str) -> Optional[str]:
    """Pull a JSON object out of raw model text, tolerating markdown fences."""
    if not text:
        return None
    m = _FENCE_RE.search(text)
    if m:
        return m.group(1).strip()
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        return text[start:end + 1]
    return None


def parse_structured(reply: ModelReply, schema: Type[T]) -> T:
    """Validate a structured-output reply against its pydantic schema."""
    raw = extract_json_block(reply.text)
    if raw is None:
        raise ProviderError(f"Model returned no JSON for {schema.__name__}")
    try:
        return schema.model_validate_json(raw)
    except ValidationError as e:
        raise ProviderError(f"Model returned malformed {schema.__name__}: {e.error_count()} error(s)") from e
