"""Message authentication for the wallet channel.

One MessageAuthenticator belongs to one channel session. It owns:
- the shared secret delivered by the widget
- the nonce ledger used for replay protection

Inbound verification order:
1. a secret must be installed
2. |now - timestamp| must be within max_message_age_ms (both directions,
   so a producer clock running ahead does not mint long-lived messages)
3. the nonce must not be in the ledger
4. the HMAC-SHA256 over the canonical payload must match
5. the nonce is recorded

The ledger is cleared whenever the secret changes and whenever it grows past
its bound. Clearing forgets old nonces; that weakening of replay protection is
accepted in exchange for bounded memory.
"""

import hashlib
import hmac
import logging
import threading
import time
import uuid
from typing import Any, Callable, Mapping, Optional, Union

from pydantic import ValidationError

from walletbridge.auth.canonical import canonicalize
from walletbridge.config import DEFAULT_MAX_MESSAGE_AGE_MS, DEFAULT_NONCE_LEDGER_LIMIT
from walletbridge.errors import SecretNotEstablishedError
from walletbridge.logging_config import redact_secret
from walletbridge.protocol.contracts import (
    Action,
    AdapterRequest,
    AdapterResponse,
    AuthenticatedMessage,
    SecureResponse,
)

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def compute_mac(message: str, secret: str) -> str:
    """HMAC-SHA256 of a canonical string, as lowercase hex."""
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


class MessageAuthenticator:
    """Shared-secret authenticator with a bounded nonce ledger.

    Usage:
        auth = MessageAuthenticator()
        auth.set_secret(widget_secret)
        if auth.verify(message):
            ...
        signed = auth.sign(AdapterResponse.ok(request_id, data))
    """

    def __init__(
        self,
        secret: Optional[str] = None,
        max_message_age_ms: int = DEFAULT_MAX_MESSAGE_AGE_MS,
        nonce_ledger_limit: int = DEFAULT_NONCE_LEDGER_LIMIT,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize the authenticator.

        Args:
            secret: Optional pre-seeded shared secret
            max_message_age_ms: Freshness window in milliseconds
            nonce_ledger_limit: Ledger is cleared once its size exceeds this
            clock: Returns the current time in milliseconds
        """
        self._secret = ""
        self._used_nonces: set[str] = set()
        self._ledger_lock = threading.Lock()
        self.max_message_age_ms = max_message_age_ms
        self.nonce_ledger_limit = nonce_ledger_limit
        self._clock = clock

        if secret:
            self.set_secret(secret)

    # ======================
    # Secret management
    # ======================

    def set_secret(self, secret: str) -> None:
        """Install a new shared secret and forget every recorded nonce."""
        with self._ledger_lock:
            self._secret = secret
            self._used_nonces.clear()
        logger.info("Shared secret installed: %s", redact_secret(secret))

    def get_secret(self) -> str:
        return self._secret

    @property
    def has_secret(self) -> bool:
        return bool(self._secret)

    def set_max_message_age(self, age_ms: int) -> None:
        self.max_message_age_ms = age_ms
        logger.info(f"Max message age set to: {age_ms}ms")

    # ======================
    # Nonce ledger
    # ======================

    @property
    def ledger_size(self) -> int:
        return len(self._used_nonces)

    def cleanup_ledger(self) -> None:
        """Clear the nonce ledger if it has grown past its bound."""
        with self._ledger_lock:
            self._cleanup_locked()

    def _cleanup_locked(self) -> None:
        if len(self._used_nonces) > self.nonce_ledger_limit:
            logger.info(
                "Nonce ledger exceeded %d entries, clearing %d nonces",
                self.nonce_ledger_limit,
                len(self._used_nonces),
            )
            self._used_nonces.clear()

    # ======================
    # Inbound verification
    # ======================

    def verify(self, message: Union[AuthenticatedMessage, Mapping[str, Any]]) -> bool:
        """Verify an inbound authenticated message.

        Never raises: every failure, including a malformed message, is False.
        """
        try:
            if not isinstance(message, AuthenticatedMessage):
                message = AuthenticatedMessage.model_validate(message)
        except ValidationError as e:
            logger.warning("Message verification failed: malformed message (%d errors)", e.error_count())
            return False

        secret = self._secret
        if not secret:
            logger.warning("No shared secret configured")
            return False

        current_time = self._clock()
        message_age = abs(current_time - message.timestamp)
        if message_age > self.max_message_age_ms:
            logger.warning(
                "Message age invalid: timestamp=%d now=%d diff=%d max=%d",
                message.timestamp,
                current_time,
                message_age,
                self.max_message_age_ms,
            )
            return False

        try:
            expected = compute_mac(canonicalize(message.signable_payload()), secret)
        except ValueError as e:
            logger.warning("Message verification failed: %s", e)
            return False

        with self._ledger_lock:
            if secret != self._secret:
                # Secret rotated while this message was being checked
                logger.warning("Shared secret changed during verification")
                return False

            if message.nonce in self._used_nonces:
                logger.warning("Nonce already used: %s", message.nonce)
                return False

            if not hmac.compare_digest(expected, message.signature):
                logger.warning("Invalid signature for request %s", message.request_id)
                return False

            self._used_nonces.add(message.nonce)
            self._cleanup_locked()

        return True

    # ======================
    # Outbound signing
    # ======================

    def sign(self, response: AdapterResponse) -> SecureResponse:
        """Sign a response envelope.

        Raises:
            SecretNotEstablishedError: If no secret is installed. An unsigned
                response must never be sent once secure mode has begun.
        """
        secret = self._secret
        if not secret:
            raise SecretNotEstablishedError()

        payload = response.envelope()
        payload["timestamp"] = self._clock()
        payload["signature"] = compute_mac(canonicalize(payload), secret)
        return SecureResponse.model_validate(payload)

    # ======================
    # Requestor side
    # ======================

    def sign_request(
        self,
        request: AdapterRequest,
        nonce: Optional[str] = None,
        timestamp: Optional[int] = None,
    ) -> AuthenticatedMessage:
        """Build an authenticated message from a plain request (widget side).

        Raises:
            SecretNotEstablishedError: If no secret is installed
        """
        secret = self._secret
        if not secret:
            raise SecretNotEstablishedError("No shared secret configured for signing request")

        action = request.action.value if isinstance(request.action, Action) else request.action
        payload = request.model_dump(by_alias=True, exclude_unset=True)
        payload["action"] = action
        payload["timestamp"] = timestamp if timestamp is not None else self._clock()
        payload["nonce"] = nonce or uuid.uuid4().hex
        payload["signature"] = compute_mac(canonicalize(payload), secret)
        return AuthenticatedMessage.model_validate(payload)

    def verify_response(self, response: Union[SecureResponse, Mapping[str, Any]]) -> bool:
        """Check the signature and freshness of a host response (widget side)."""
        try:
            if not isinstance(response, SecureResponse):
                response = SecureResponse.model_validate(response)
        except ValidationError:
            logger.warning("Response verification failed: malformed response")
            return False

        secret = self._secret
        if not secret:
            return False

        if abs(self._clock() - response.timestamp) > self.max_message_age_ms:
            logger.warning("Response %s is stale", response.request_id)
            return False

        try:
            expected = compute_mac(canonicalize(response.signable_payload()), secret)
        except ValueError:
            return False
        return hmac.compare_digest(expected, response.signature)
