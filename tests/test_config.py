"""Tests for settings and adapter options."""

import pytest
from pydantic import ValidationError

from walletbridge.config import (
    DEFAULT_MAX_MESSAGE_AGE_MS,
    DEFAULT_NONCE_LEDGER_LIMIT,
    AdapterOptions,
    AuthFailurePolicy,
    Settings,
    get_settings,
)
from walletbridge.logging_config import redact_secret


class TestSettings:
    """Tests for environment settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("WALLETBRIDGE_DEBUG_MODE", raising=False)

        settings = Settings(_env_file=None)

        assert settings.max_message_age_ms == DEFAULT_MAX_MESSAGE_AGE_MS == 300_000
        assert settings.nonce_ledger_limit == DEFAULT_NONCE_LEDGER_LIMIT == 1000
        assert settings.auth_failure_policy == AuthFailurePolicy.DROP
        assert settings.shared_secret is None
        assert settings.debug_mode is False

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("WALLETBRIDGE_MAX_MESSAGE_AGE_MS", "60000")
        monkeypatch.setenv("WALLETBRIDGE_AUTH_FAILURE_POLICY", "reject")
        monkeypatch.setenv("WALLETBRIDGE_ALLOWED_CHAINS", "Ethereum, base ,")

        settings = get_settings()

        assert settings.max_message_age_ms == 60000
        assert settings.auth_failure_policy == AuthFailurePolicy.REJECT
        assert settings.chain_allow_list == ["ethereum", "base"]
        assert get_settings() is settings

    @pytest.mark.parametrize("field", ["max_message_age_ms", "nonce_ledger_limit"])
    def test_limits_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            Settings(**{field: 0})

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValidationError):
            Settings(auth_failure_policy="explain")

    def test_safe_dict_redacts_secrets(self):
        settings = Settings(shared_secret="abc", local_private_key="0xdead")

        safe = settings.get_safe_dict()

        assert safe["shared_secret"] == "***"
        assert safe["local_private_key"] == "***"
        assert safe["allowed_chains"] == "(any)"
        assert "abc" not in str(safe)


class TestAdapterOptions:
    """Tests for per-adapter options."""

    def test_from_settings(self):
        callback = print
        settings = Settings(
            shared_secret="seed",
            max_message_age_ms=1000,
            nonce_ledger_limit=10,
            allowed_chains="ethereum",
            auth_failure_policy="reject",
        )

        options = AdapterOptions.from_settings(settings, on_shared_secret_received=callback)

        assert options.shared_secret == "seed"
        assert options.max_message_age_ms == 1000
        assert options.nonce_ledger_limit == 10
        assert options.allowed_chains == ["ethereum"]
        assert options.auth_failure_policy == AuthFailurePolicy.REJECT
        assert options.on_shared_secret_received is callback
        assert options.debug_mode is True

    def test_defaults(self):
        options = AdapterOptions()

        assert options.shared_secret is None
        assert options.max_message_age_ms == 300_000
        assert options.debug_mode is False


@pytest.mark.parametrize(
    "secret, expected",
    [(None, "(not set)"), ("", "(not set)"), ("abc", "***"), ("0123456789abcdef", "0123***")],
)
def test_redact_secret(secret, expected):
    assert redact_secret(secret) == expected
