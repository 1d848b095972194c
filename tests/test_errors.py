"""Tests for the failure taxonomy and path-aware messages."""

import pytest

from enhancer.errors import (
    CredentialMissingError,
    ErrorClassifier,
    ErrorKind,
    GenerationCancelled,
    InsufficientCreditsError,
    ProviderError,
    SafetyRejectedError,
    SubstringRule,
    default_classifier,
)


class TestKindOf:
    @pytest.mark.parametrize("message,kind", [
        ("API key not valid. Please pass a valid API key. [INVALID_ARGUMENT]", ErrorKind.INVALID_CREDENTIAL),
        ("Permission denied on resource project", ErrorKind.INVALID_CREDENTIAL),
        ("Resource has been exhausted (e.g. check quota).", ErrorKind.QUOTA_EXHAUSTED),
        ("You exceeded your current quota [RESOURCE_EXHAUSTED]", ErrorKind.QUOTA_EXHAUSTED),
        ("auth/rate-limit: too many requests", ErrorKind.QUOTA_EXHAUSTED),
        ("Too Many Requests", ErrorKind.QUOTA_EXHAUSTED),
        ("Response was blocked due to SAFETY", ErrorKind.SAFETY_REJECTED),
        ("503 UNAVAILABLE. The model is overloaded.", ErrorKind.TRANSIENT_SERVER),
        ("HTTP error! status: 500", ErrorKind.TRANSIENT_SERVER),
        ("failed to fetch: ConnectionError", ErrorKind.TRANSIENT_SERVER),
        ("Rpc failed due to xhr error. error code: 6", ErrorKind.TRANSIENT_SERVER),
        ("credits/insufficient: balance 2 < required 5", ErrorKind.INSUFFICIENT_CREDITS),
        ("Something nobody anticipated", ErrorKind.UNEXPECTED),
        ("", ErrorKind.UNEXPECTED),
    ])
    def test_substrings(self, message, kind):
        assert default_classifier.kind_of(message) is kind

    def test_case_insensitive(self):
        assert default_classifier.kind_of("API_KEY_INVALID") is ErrorKind.INVALID_CREDENTIAL

    def test_status_code_used_when_text_is_silent(self):
        assert default_classifier.kind_of("Bad things", 401) is ErrorKind.INVALID_CREDENTIAL
        assert default_classifier.kind_of("Slow down", 429) is ErrorKind.QUOTA_EXHAUSTED
        assert default_classifier.kind_of("Oops", 502) is ErrorKind.TRANSIENT_SERVER
        assert default_classifier.kind_of("Bad request", 400) is ErrorKind.UNEXPECTED

    def test_credential_text_wins_over_transient_status(self):
        assert default_classifier.kind_of("API key not valid", 500) is ErrorKind.INVALID_CREDENTIAL

    def test_rules_are_swappable(self):
        classifier = ErrorClassifier(rules=[SubstringRule(ErrorKind.TRANSIENT_SERVER, ("try later",))])
        assert classifier.kind_of("please try later") is ErrorKind.TRANSIENT_SERVER
        assert classifier.kind_of("api key not valid") is ErrorKind.UNEXPECTED


class TestClassifyException:
    def test_typed_exceptions(self):
        c = default_classifier
        assert c.classify_exception(GenerationCancelled()) is ErrorKind.CANCELLED
        assert c.classify_exception(CredentialMissingError("no key")) is ErrorKind.CREDENTIAL_MISSING
        assert c.classify_exception(InsufficientCreditsError(1, 5)) is ErrorKind.INSUFFICIENT_CREDITS
        assert c.classify_exception(SafetyRejectedError("I can't help with that.")) is ErrorKind.SAFETY_REJECTED

    def test_provider_error_uses_status(self):
        assert default_classifier.classify_exception(ProviderError("weird", 503)) is ErrorKind.TRANSIENT_SERVER

    def test_is_transient(self):
        assert default_classifier.is_transient(ProviderError("503 Service Unavailable", 503))
        assert not default_classifier.is_transient(ProviderError("quota exceeded", 429))


class TestMessages:
    def test_messages_differ_per_path(self):
        exc = ProviderError("API key not valid", 400)
        pooled = default_classifier.classify(exc, user_supplied=False)
        user = default_classifier.classify(exc, user_supplied=True)
        assert pooled.kind is user.kind is ErrorKind.INVALID_CREDENTIAL
        assert pooled.message != user.message
        assert "API key" in user.message

    def test_key_update_routing_only_on_user_path(self):
        assert default_classifier.classify(ProviderError("API key not valid"), True).needs_key_update
        assert not default_classifier.classify(ProviderError("API key not valid"), False).needs_key_update
        assert default_classifier.classify(CredentialMissingError("x"), True).needs_key_update
        assert not default_classifier.classify(ProviderError("quota"), True).needs_key_update

    def test_cancelled_is_invisible(self):
        err = default_classifier.classify(GenerationCancelled(), user_supplied=False)
        assert err.message == ""
        assert not err.visible

    def test_every_kind_has_a_message_on_both_paths(self):
        for kind in ErrorKind:
            for user_supplied in (False, True):
                err = default_classifier.describe(kind, user_supplied)
                assert (err.message == "") == (kind is ErrorKind.CANCELLED)

    def test_raw_message_kept(self):
        err = default_classifier.classify(ProviderError("503 overloaded", 503), False)
        assert err.raw_message == "503 overloaded"
