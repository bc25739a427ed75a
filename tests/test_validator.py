"""Tests for inbound message validation and secret exchange."""

import asyncio

import pytest

from conftest import signed_request
from walletbridge.auth.authenticator import MessageAuthenticator
from walletbridge.config import AuthFailurePolicy
from walletbridge.protocol.exchange import ACK_MESSAGE, SecretExchangeHandler, parse_exchange
from walletbridge.protocol.validator import (
    AUTHENTICATION_FAILED_ERROR,
    ChannelState,
    MessageValidator,
    ValidationOutcome,
)


@pytest.fixture
def auth() -> MessageAuthenticator:
    return MessageAuthenticator()


@pytest.fixture
def exchange(auth) -> SecretExchangeHandler:
    return SecretExchangeHandler(auth)


@pytest.fixture
def validator(auth, exchange) -> MessageValidator:
    return MessageValidator(auth, exchange, debug_mode=True)


def exchange_message(secret: str = "abc", request_id: str = "ex-1") -> dict:
    return {"requestId": request_id, "action": "EXCHANGE_SHARED_SECRET", "widgetSecret": secret}


class TestStructuralChecks:
    """Malformed messages are dropped without a reply."""

    @pytest.mark.parametrize("raw", [None, "GET_CHAIN_ID", 42, ["requestId"], {}, {"requestId": ""}, {"action": "GET_CHAIN_ID"}])
    def test_malformed_dropped(self, validator, raw):
        result = validator.validate(raw)
        assert result.outcome == ValidationOutcome.DROPPED
        assert result.reply is None


class TestSecretExchange:
    """Tests for the handshake."""

    def test_exchange_from_unkeyed(self, validator, auth):
        assert validator.state == ChannelState.UNKEYED

        result = validator.validate(exchange_message("abc"))

        assert result.outcome == ValidationOutcome.EXCHANGED
        assert result.reply.envelope() == {
            "requestId": "ex-1",
            "success": True,
            "data": {"message": ACK_MESSAGE},
        }
        assert auth.get_secret() == "abc"
        assert validator.state == ChannelState.KEYED

    def test_exchange_notifies_subscribers(self, validator, exchange):
        received = []
        unsubscribe = exchange.subscribe(received.append)

        validator.validate(exchange_message("s1"))
        unsubscribe()
        validator.validate(exchange_message("s2"))

        assert received == ["s1"]

    def test_failing_subscriber_does_not_abort(self, validator, exchange, auth):
        def broken(secret):
            raise RuntimeError("observer down")

        exchange.subscribe(broken)
        result = validator.validate(exchange_message("abc"))

        assert result.outcome == ValidationOutcome.EXCHANGED
        assert auth.get_secret() == "abc"

    @pytest.mark.parametrize("secret", [None, "", 123])
    def test_exchange_without_secret_is_not_a_handshake(self, validator, auth, secret):
        raw = {"requestId": "1", "action": "EXCHANGE_SHARED_SECRET"}
        if secret is not None:
            raw["widgetSecret"] = secret

        assert parse_exchange(raw) is None
        result = validator.validate(raw)

        assert result.outcome == ValidationOutcome.REJECTED
        assert not auth.has_secret

    def test_reexchange_resets_ledger(self, validator, auth):
        validator.validate(exchange_message("abc"))
        message = signed_request("abc", "GET_CHAIN_ID")
        assert validator.validate(message).outcome == ValidationOutcome.ACCEPTED
        assert validator.validate(message).outcome == ValidationOutcome.DROPPED

        validator.validate(exchange_message("abc"))
        assert validator.validate(message).outcome == ValidationOutcome.ACCEPTED

    @pytest.mark.asyncio
    async def test_wait_for_secret(self, validator, exchange):
        waiter = asyncio.create_task(exchange.wait_for_secret(timeout=1.0))
        await asyncio.sleep(0)

        validator.validate(exchange_message("abc"))

        assert await waiter == "abc"

    @pytest.mark.asyncio
    async def test_wait_for_secret_after_exchange_returns_immediately(self, validator, exchange):
        validator.validate(exchange_message("abc"))
        assert await exchange.wait_for_secret(timeout=0.1) == "abc"

    @pytest.mark.asyncio
    async def test_wait_for_secret_times_out(self, exchange):
        with pytest.raises(asyncio.TimeoutError):
            await exchange.wait_for_secret(timeout=0.01)


class TestUnkeyed:
    """Without a secret every action is rejected explicitly."""

    @pytest.mark.parametrize("action", ["GET_CHAIN_ID", "CONNECT_WALLET", "SIGN_MESSAGE", "UNKNOWN"])
    def test_actions_rejected(self, validator, action):
        result = validator.validate(signed_request("abc", action))

        assert result.outcome == ValidationOutcome.REJECTED
        assert result.request is None
        assert "shared secret not established" in result.reply.error
        assert result.reply.success is False
        assert not result.reply_is_signed


class TestKeyed:
    """Tests for authenticated messages."""

    @pytest.fixture(autouse=True)
    def keyed(self, auth):
        auth.set_secret("abc")

    @pytest.mark.parametrize("field", ["timestamp", "nonce", "signature"])
    def test_missing_auth_field_dropped(self, validator, field):
        message = signed_request("abc", "GET_CHAIN_ID")
        del message[field]

        result = validator.validate(message)

        assert result.outcome == ValidationOutcome.DROPPED
        assert "missing authentication fields" in result.reason

    def test_wrong_types_dropped(self, validator):
        message = signed_request("abc", "GET_CHAIN_ID")
        message["timestamp"] = str(message["timestamp"])

        assert validator.validate(message).outcome == ValidationOutcome.DROPPED

    def test_bad_signature_dropped_silently(self, validator):
        message = signed_request("abc", "GET_CHAIN_ID")
        message["signature"] = "0" * 64

        result = validator.validate(message)

        assert result.outcome == ValidationOutcome.DROPPED
        assert result.reply is None

    def test_reject_policy_returns_generic_error(self, auth, exchange):
        validator = MessageValidator(auth, exchange, auth_failure_policy=AuthFailurePolicy.REJECT)
        stale = signed_request("abc", "GET_CHAIN_ID", timestamp=1)
        forged = signed_request("other", "GET_CHAIN_ID", nonce="n2")

        errors = set()
        for message in (stale, forged):
            result = validator.validate(message)
            assert result.outcome == ValidationOutcome.AUTH_FAILED
            assert result.reply_is_signed
            errors.add(result.reply.error)

        assert errors == {AUTHENTICATION_FAILED_ERROR}

    def test_valid_message_accepted_and_stripped(self, validator):
        message = signed_request("abc", "SIGN_MESSAGE", params={"message": "hi"})

        result = validator.validate(message)

        assert result.outcome == ValidationOutcome.ACCEPTED
        assert result.request.to_wire() == {
            "requestId": "1",
            "action": "SIGN_MESSAGE",
            "chain": "ethereum",
            "params": {"message": "hi"},
        }
