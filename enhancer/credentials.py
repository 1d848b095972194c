"""
Credential Resolver — pick the credential path for a request and vet user keys.

Two paths:
  POOLED         — the operator's key, metered by the user's credit balance
  USER_SUPPLIED  — the user's own key, unmetered, used over direct REST

A user key must pass a cheap countTokens probe once per session before it is
used for anything else. Only a fingerprint of a validated key is remembered.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Callable, Optional, Set

from .config import DEFAULT_VISION_MODEL, EnhancerConfig
from .errors import (
    ClassifiedError,
    CredentialMissingError,
    EnhancerError,
    ErrorClassifier,
    ErrorKind,
    default_classifier,
)
from .models import CredentialContext, CredentialMode
from .transport import ModelTransport, RestTransport

logger = logging.getLogger(__name__)

PROBE_TEXT = "test"


def mask_key(key: Optional[str]) -> str:
    """Render a key for display: first 3 + last 4, stars in between."""
    if not key:
        return ""
    if len(key) <= 7:
        return f"{key[:3]}****"
    return f"{key[:3]}{'*' * 20}{key[-4:]}"


def fingerprint(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]


class CredentialValidationError(EnhancerError):
    """A user key failed its probe. `error` carries the classified reason."""

    def __init__(self, error: ClassifiedError) -> None:
        super().__init__(error.raw_message or error.kind.value)
        self.error = error


class CredentialResolver:
    def __init__(
        self,
        config: EnhancerConfig,
        transport_factory: Optional[Callable[[str], ModelTransport]] = None,
        classifier: ErrorClassifier = default_classifier,
        probe_model: str = DEFAULT_VISION_MODEL,
    ) -> None:
        self.config = config
        self.classifier = classifier
        self.probe_model = probe_model
        self._transport_factory = transport_factory or self._rest_transport
        self._validated: Set[str] = set()

    def _rest_transport(self, key: str) -> ModelTransport:
        return RestTransport(key, base_url=self.config.rest_base_url, timeout=self.config.request_timeout)

    def resolve(self, use_own_key: bool, stored_key: Optional[str]) -> CredentialContext:
        if use_own_key:
            key = (stored_key or "").strip()
            if not key:
                raise CredentialMissingError("Own-key mode is enabled but no API key is stored.")
            return CredentialContext(mode=CredentialMode.USER_SUPPLIED, key=key)
        return CredentialContext(mode=CredentialMode.POOLED)

    def is_validated(self, key: str) -> bool:
        return fingerprint(key) in self._validated

    def forget(self, key: str) -> None:
        self._validated.discard(fingerprint(key))

    async def validate(self, key: str) -> None:
        """Probe the key with countTokens. Raises CredentialValidationError on any failure."""
        if not key or not key.strip():
            raise CredentialMissingError("No API key to validate.")
        transport = self._transport_factory(key)
        try:
            await transport.count_tokens(self.probe_model, PROBE_TEXT)
        except Exception as e:
            kind = self.classifier.classify_exception(e)
            # An unclassifiable probe failure is still a failure
            if kind is ErrorKind.UNEXPECTED:
                kind = ErrorKind.INVALID_CREDENTIAL
            error = self.classifier.describe(kind, user_supplied=True, raw_message=str(e))
            logger.warning("key %s failed validation: %s", mask_key(key), kind.value)
            raise CredentialValidationError(error) from e

        self._validated.add(fingerprint(key))
        logger.info("key %s validated", mask_key(key))

    async def ensure_validated(self, context: CredentialContext) -> None:
        """Validate a user key once per session; pooled contexts pass straight through."""
        if not context.user_supplied or context.key is None:
            return
        if self.is_validated(context.key):
            return
        await self.validate(context.key)
