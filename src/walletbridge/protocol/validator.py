"""Inbound message validation.

Per channel the validator is in one of two states:

    UNKEYED --(secret exchange)--> KEYED --(re-exchange)--> KEYED (fresh ledger)

Processing rules, in order:
1. Not an object, or no requestId: dropped silently.
2. Secret exchange: handled, unsigned ack returned.
3. UNKEYED: explicit unsigned precondition error, never dispatched.
4. KEYED without timestamp/nonce/signature: dropped silently.
5. Authentication failure: dropped silently (or, under the REJECT policy, a
   generic signed error that never names the failed check).
6. Authenticated: auth fields stripped, request handed on.

Silent drops keep the adapter from acting as an oracle for forged or
malformed probes.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError

from walletbridge.auth.authenticator import MessageAuthenticator
from walletbridge.config import AuthFailurePolicy
from walletbridge.protocol.contracts import (
    AUTH_FIELDS,
    AdapterRequest,
    AdapterResponse,
    AuthenticatedMessage,
)
from walletbridge.protocol.exchange import SecretExchangeHandler, parse_exchange

logger = logging.getLogger(__name__)

SECRET_NOT_ESTABLISHED_ERROR = (
    "SECURITY_ERROR: shared secret not established. Widget must initialize "
    "secure communication first via EXCHANGE_SHARED_SECRET action."
)
AUTHENTICATION_FAILED_ERROR = "Message authentication failed"

_REDACTED_KEYS = frozenset({"widgetSecret", "signature"})


class ChannelState(str, Enum):
    """Authentication state of one channel."""

    UNKEYED = "unkeyed"
    KEYED = "keyed"


class ValidationOutcome(str, Enum):
    """What the adapter should do with an inbound message."""

    DROPPED = "dropped"          # No response
    EXCHANGED = "exchanged"      # Unsigned ack
    REJECTED = "rejected"        # Unsigned precondition error
    AUTH_FAILED = "auth_failed"  # Generic signed error (REJECT policy only)
    ACCEPTED = "accepted"        # Dispatch, then sign


@dataclass
class ValidationResult:
    """Result of validating one inbound message.

    Attributes:
        outcome: What to do with the message
        request: Clean request to dispatch (ACCEPTED only)
        reply: Response to send back (EXCHANGED, REJECTED, AUTH_FAILED)
        reason: Short diagnostic for logs, never sent to the widget
    """

    outcome: ValidationOutcome
    request: Optional[AdapterRequest] = None
    reply: Optional[AdapterResponse] = None
    reason: str = ""

    @property
    def reply_is_signed(self) -> bool:
        return self.outcome == ValidationOutcome.AUTH_FAILED


def _describe(raw: dict) -> dict:
    """Log-safe copy of a raw message."""
    return {k: ("***" if k in _REDACTED_KEYS else v) for k, v in raw.items()}


class MessageValidator:
    """Applies structural checks, then delegates to the authenticator."""

    def __init__(
        self,
        authenticator: MessageAuthenticator,
        exchange_handler: SecretExchangeHandler,
        auth_failure_policy: AuthFailurePolicy = AuthFailurePolicy.DROP,
        debug_mode: bool = False,
    ):
        self._authenticator = authenticator
        self._exchange = exchange_handler
        self.auth_failure_policy = AuthFailurePolicy(auth_failure_policy)
        self.debug_mode = debug_mode

    @property
    def state(self) -> ChannelState:
        return ChannelState.KEYED if self._authenticator.has_secret else ChannelState.UNKEYED

    def _drop(self, reason: str, raw: Any) -> ValidationResult:
        logger.warning("Dropping message: %s", reason)
        if self.debug_mode and isinstance(raw, dict):
            logger.debug("Dropped message: %s", _describe(raw))
        return ValidationResult(ValidationOutcome.DROPPED, reason=reason)

    def validate(self, raw: Any) -> ValidationResult:
        """Classify an inbound raw message."""
        if not isinstance(raw, dict) or not raw.get("requestId"):
            return self._drop("invalid message format", raw)

        if self.debug_mode:
            logger.debug("Received message: %s", _describe(raw))

        exchange = parse_exchange(raw)
        if exchange is not None:
            ack = self._exchange.handle(exchange)
            return ValidationResult(ValidationOutcome.EXCHANGED, reply=ack)

        request_id = str(raw["requestId"])

        if self.state == ChannelState.UNKEYED:
            logger.error(
                "No shared secret established, rejecting request %s (action=%s). "
                "Widget must send EXCHANGE_SHARED_SECRET first",
                request_id,
                raw.get("action"),
            )
            return ValidationResult(
                ValidationOutcome.REJECTED,
                reply=AdapterResponse.fail(request_id, SECRET_NOT_ESTABLISHED_ERROR),
                reason="shared secret not established",
            )

        missing = sorted(field for field in AUTH_FIELDS if not raw.get(field))
        if missing:
            return self._drop(f"missing authentication fields {missing}", raw)

        try:
            message = AuthenticatedMessage.model_validate(raw)
        except ValidationError as e:
            return self._drop(f"malformed authenticated message ({e.error_count()} errors)", raw)

        if self.debug_mode:
            logger.debug(
                "Validating request %s: action=%s timestamp=%d",
                message.request_id,
                message.action,
                message.timestamp,
            )

        if not self._authenticator.verify(message):
            logger.warning(
                "Message authentication failed for request %s (action=%s)",
                message.request_id,
                message.action,
            )
            if self.auth_failure_policy == AuthFailurePolicy.REJECT:
                return ValidationResult(
                    ValidationOutcome.AUTH_FAILED,
                    reply=AdapterResponse.fail(message.request_id, AUTHENTICATION_FAILED_ERROR),
                    reason="authentication failed",
                )
            return ValidationResult(ValidationOutcome.DROPPED, reason="authentication failed")

        return ValidationResult(ValidationOutcome.ACCEPTED, request=message.strip_authentication())
