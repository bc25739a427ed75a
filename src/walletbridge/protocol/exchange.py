"""Shared secret exchange handshake.

The widget opens the session by sending EXCHANGE_SHARED_SECRET with a freshly
generated secret. This is the only message the adapter processes without
authentication; it is what makes authentication possible. The reply is an
unsigned acknowledgment echoing the requestId.
"""

import asyncio
import logging
from typing import Any, Callable, Mapping, Optional

from pydantic import ValidationError

from walletbridge.auth.authenticator import MessageAuthenticator
from walletbridge.logging_config import redact_secret
from walletbridge.protocol.contracts import Action, AdapterResponse, SecretExchangeMessage

logger = logging.getLogger(__name__)

SecretCallback = Callable[[str], None]

ACK_MESSAGE = "Shared secret received"


def parse_exchange(raw: Mapping[str, Any]) -> Optional[SecretExchangeMessage]:
    """Return the exchange message if ``raw`` is a well-formed handshake.

    A message tagged EXCHANGE_SHARED_SECRET without a non-empty widgetSecret
    is not a handshake and goes through normal authentication instead.
    """
    if raw.get("action") != Action.EXCHANGE_SHARED_SECRET.value:
        return None
    try:
        return SecretExchangeMessage.model_validate(raw)
    except ValidationError:
        return None


class SecretExchangeHandler:
    """Installs exchanged secrets and notifies subscribers.

    Subscribers are called with every new secret. ``wait_for_secret`` resolves
    once, with the first secret the session holds.
    """

    def __init__(self, authenticator: MessageAuthenticator):
        self._authenticator = authenticator
        self._subscribers: list[SecretCallback] = []
        self._first_secret: Optional[asyncio.Future] = None

    def subscribe(self, callback: SecretCallback) -> Callable[[], None]:
        """Register a secret observer.

        Returns:
            Function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _get_future(self) -> asyncio.Future:
        if self._first_secret is None:
            self._first_secret = asyncio.get_running_loop().create_future()
            if self._authenticator.has_secret:
                self._first_secret.set_result(self._authenticator.get_secret())
        return self._first_secret

    async def wait_for_secret(self, timeout: Optional[float] = None) -> str:
        """Wait until the widget has delivered a secret.

        Raises:
            asyncio.TimeoutError: If no exchange happened within ``timeout``
        """
        future = self._get_future()
        return await asyncio.wait_for(asyncio.shield(future), timeout=timeout)

    def handle(self, message: SecretExchangeMessage) -> AdapterResponse:
        """Install the secret, notify subscribers and build the acknowledgment."""
        secret = message.widget_secret
        self._authenticator.set_secret(secret)
        logger.info(
            "Received shared secret from widget (request %s, secret %s)",
            message.request_id,
            redact_secret(secret),
        )

        for callback in list(self._subscribers):
            try:
                callback(secret)
            except Exception as e:
                logger.error(f"Shared secret subscriber failed: {e}")

        if self._first_secret is not None and not self._first_secret.done():
            self._first_secret.set_result(secret)

        return AdapterResponse.ok(message.request_id, {"message": ACK_MESSAGE})
