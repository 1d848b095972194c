"""
Errors — transport exceptions and the closed failure taxonomy.

Upstream failures arrive as free text (SDK exception strings, REST error
bodies). The ErrorClassifier maps them onto a fixed set of kinds and picks
the user-facing message for the credential path that was in use:

  pooled        — operator key, metered by the credit balance
  user_supplied — the user's own provider key

Matching runs over the lower-cased message. Rules are plain data so they can
be replaced by structured error codes if the provider ever exposes them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple


class ErrorKind(str, Enum):
    INVALID_CREDENTIAL = "InvalidCredential"
    QUOTA_EXHAUSTED = "QuotaExhausted"
    SAFETY_REJECTED = "SafetyRejected"
    TRANSIENT_SERVER = "TransientServer"
    CREDENTIAL_MISSING = "CredentialMissing"
    INSUFFICIENT_CREDITS = "InsufficientCredits"
    CANCELLED = "Cancelled"
    UNEXPECTED = "Unexpected"


# ── Exceptions ────────────────────────────────────────────────────────────────

class EnhancerError(Exception):
    """Base class for errors raised inside the enhancer core."""


class ProviderError(EnhancerError):
    """A model-provider call failed. `status_code` is None for transport faults."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SafetyRejectedError(ProviderError):
    """The model answered with text only (refusal) instead of an image."""

    def __init__(self, refusal_text: str) -> None:
        super().__init__(refusal_text or "No image was generated by the model.")
        self.refusal_text = refusal_text


class CredentialMissingError(EnhancerError):
    pass


class InsufficientCreditsError(EnhancerError):
    def __init__(self, balance: float, required: float) -> None:
        super().__init__(f"credits/insufficient: balance {balance} < required {required}")
        self.balance = balance
        self.required = required


class GenerationCancelled(EnhancerError):
    """The request's cancellation token fired."""


# ── Classification ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ClassifiedError:
    kind: ErrorKind
    message: str
    raw_message: str = ""
    needs_key_update: bool = False

    @property
    def visible(self) -> bool:
        """Cancelled outcomes never surface an error to the user."""
        return self.kind is not ErrorKind.CANCELLED


@dataclass(frozen=True)
class SubstringRule:
    kind: ErrorKind
    needles: Tuple[str, ...]

    def matches(self, lowered: str, status_code: Optional[int]) -> bool:
        return any(n in lowered for n in self.needles)


@dataclass(frozen=True)
class StatusRule:
    kind: ErrorKind
    codes: Tuple[int, ...] = ()
    min_code: Optional[int] = None

    def matches(self, lowered: str, status_code: Optional[int]) -> bool:
        if status_code is None:
            return False
        if status_code in self.codes:
            return True
        return self.min_code is not None and status_code >= self.min_code


# Order matters: credentials and quota are terminal and must win over the
# generic transient needles ("unknown", "500") that can appear in the same body.
DEFAULT_RULES: Tuple[object, ...] = (
    SubstringRule(ErrorKind.INSUFFICIENT_CREDITS, ("credits/insufficient", "kredit tidak cukup")),
    SubstringRule(
        ErrorKind.INVALID_CREDENTIAL,
        ("api key not valid", "api_key_invalid", "permission denied", "permission_denied",
         "unauthenticated", "invalid api key"),
    ),
    SubstringRule(
        ErrorKind.QUOTA_EXHAUSTED,
        ("resource has been exhausted", "resource_exhausted", "quota", "rate-limit", "rate limit",
         "too many requests"),
    ),
    SubstringRule(
        ErrorKind.SAFETY_REJECTED,
        ("safety", "prohibited_content", "blocked due to", "blocklist"),
    ),
    SubstringRule(
        ErrorKind.TRANSIENT_SERVER,
        ("500", "502", "503", "504", "internal", "unavailable", "overloaded",
         "unknown", "xhr", "failed to fetch", "deadline", "timed out", "timeout",
         "connection"),
    ),
    StatusRule(ErrorKind.INVALID_CREDENTIAL, codes=(401, 403)),
    StatusRule(ErrorKind.QUOTA_EXHAUSTED, codes=(429,)),
    StatusRule(ErrorKind.TRANSIENT_SERVER, min_code=500),
)


_POOLED_MESSAGES = {
    ErrorKind.INVALID_CREDENTIAL: "The image service is temporarily unavailable. Please try again later.",
    ErrorKind.QUOTA_EXHAUSTED: "The app's shared quota is used up. Try again later or switch to your own API key.",
    ErrorKind.SAFETY_REJECTED: "The image could not be created because it violates the content policy. Try a different image or style.",
    ErrorKind.TRANSIENT_SERVER: "The AI server is busy or had a brief outage. Please try again in a moment.",
    ErrorKind.CREDENTIAL_MISSING: "The image service is temporarily unavailable. Please try again later.",
    ErrorKind.INSUFFICIENT_CREDITS: "Not enough credits. Top up or use your own API key.",
    ErrorKind.CANCELLED: "",
    ErrorKind.UNEXPECTED: "An unexpected error occurred. Please try again later.",
}

_USER_KEY_MESSAGES = {
    ErrorKind.INVALID_CREDENTIAL: "Your API key is not valid or lacks permission. Please re-enter it in Settings.",
    ErrorKind.QUOTA_EXHAUSTED: "Your API key has exceeded its usage quota. Please check your Google AI Studio account.",
    ErrorKind.SAFETY_REJECTED: "The image could not be created because it violates the content policy. Try a different image or style.",
    ErrorKind.TRANSIENT_SERVER: "The AI server is busy or had a brief outage. Please try again in a moment.",
    ErrorKind.CREDENTIAL_MISSING: "Own-key mode is on but no API key is stored. Please add your key in Settings.",
    ErrorKind.INSUFFICIENT_CREDITS: "Not enough credits. Top up or use your own API key.",
    ErrorKind.CANCELLED: "",
    ErrorKind.UNEXPECTED: "Could not use your API key. Make sure it is correct and active.",
}

_KEY_ROUTED = {ErrorKind.INVALID_CREDENTIAL, ErrorKind.CREDENTIAL_MISSING}


class ErrorClassifier:
    """Map raw upstream failures onto ErrorKind + a path-aware message."""

    def __init__(self, rules: Optional[Sequence[object]] = None) -> None:
        self.rules: List[object] = list(rules if rules is not None else DEFAULT_RULES)

    def kind_of(self, message: str, status_code: Optional[int] = None) -> ErrorKind:
        lowered = (message or "").strip().lower()
        for rule in self.rules:
            if rule.matches(lowered, status_code):
                return rule.kind
        return ErrorKind.UNEXPECTED

    def classify_exception(self, exc: BaseException) -> ErrorKind:
        if isinstance(exc, GenerationCancelled):
            return ErrorKind.CANCELLED
        if isinstance(exc, CredentialMissingError):
            return ErrorKind.CREDENTIAL_MISSING
        if isinstance(exc, InsufficientCreditsError):
            return ErrorKind.INSUFFICIENT_CREDITS
        if isinstance(exc, SafetyRejectedError):
            return ErrorKind.SAFETY_REJECTED
        status = getattr(exc, "status_code", None)
        return self.kind_of(str(exc), status)

    def is_transient(self, exc: BaseException) -> bool:
        return self.classify_exception(exc) is ErrorKind.TRANSIENT_SERVER

    def describe(self, kind: ErrorKind, user_supplied: bool, raw_message: str = "") -> ClassifiedError:
        table = _USER_KEY_MESSAGES if user_supplied else _POOLED_MESSAGES
        return ClassifiedError(
            kind=kind,
            message=table[kind],
            raw_message=raw_message,
            needs_key_update=user_supplied and kind in _KEY_ROUTED,
        )

    def classify(self, exc: BaseException, user_supplied: bool) -> ClassifiedError:
        return self.describe(self.classify_exception(exc), user_supplied, str(exc))


default_classifier = ErrorClassifier()
