"""Widget-side client for the wallet channel.

The widget generates a fresh secret, delivers it with EXCHANGE_SHARED_SECRET,
then signs every request and verifies every response with it. Responses are
correlated to requests by requestId; any number of requests may be in flight.
"""

import asyncio
import logging
import secrets
import uuid
from typing import Any, Optional, Union

from walletbridge.auth.authenticator import MessageAuthenticator
from walletbridge.channel import MessagePort
from walletbridge.config import DEFAULT_MAX_MESSAGE_AGE_MS
from walletbridge.errors import ResponseVerificationError, WalletRequestError
from walletbridge.protocol.contracts import Action, AdapterRequest, SecretExchangeMessage

logger = logging.getLogger(__name__)


def generate_secret() -> str:
    """Fresh 256-bit secret as hex."""
    return secrets.token_hex(32)


class WidgetClient:
    """Requestor endpoint: signs requests, awaits and verifies responses.

    Usage:
        client = WidgetClient(adapter.port2)
        client.start()
        await client.exchange_secret()
        chain_id = await client.request(Action.GET_CHAIN_ID)
    """

    def __init__(
        self,
        port: MessagePort,
        max_message_age_ms: int = DEFAULT_MAX_MESSAGE_AGE_MS,
        default_timeout: Optional[float] = 30.0,
        authenticator: Optional[MessageAuthenticator] = None,
    ):
        self.port = port
        self.authenticator = authenticator or MessageAuthenticator(max_message_age_ms=max_message_age_ms)
        self.default_timeout = default_timeout
        self._pending: dict[str, asyncio.Future] = {}
        self.port.on_message = self._on_message

    def start(self) -> None:
        self.port.start()

    async def close(self) -> None:
        for future in self._pending.values():
            if not future.done():
                future.cancel()
        self._pending.clear()
        await self.port.close()

    async def _on_message(self, data: Any) -> None:
        request_id = data.get("requestId") if isinstance(data, dict) else None
        future = self._pending.get(request_id) if request_id else None
        if future is None:
            logger.warning("Received response for unknown request %s", request_id)
            return
        if not future.done():
            future.set_result(data)

    async def _send(self, request_id: str, message: dict, timeout: Optional[float]) -> dict:
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            self.port.post_message(message)
            return await asyncio.wait_for(future, timeout=timeout)
        finally:
            self._pending.pop(request_id, None)

    async def exchange_secret(self, secret: Optional[str] = None, timeout: Optional[float] = None) -> str:
        """Deliver a shared secret to the host and install it locally.

        Returns:
            The secret now in use
        """
        secret = secret or generate_secret()
        if timeout is None:
            timeout = self.default_timeout
        request_id = uuid.uuid4().hex
        message = SecretExchangeMessage(request_id=request_id, widget_secret=secret)

        ack = await self._send(request_id, message.to_wire(), timeout)
        if not ack.get("success"):
            raise WalletRequestError(request_id, ack.get("error") or "Secret exchange failed")

        self.authenticator.set_secret(secret)
        logger.info("Shared secret exchanged with host")
        return secret

    async def request(
        self,
        action: Union[Action, str],
        chain: str = "ethereum",
        params: Optional[dict] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Send a signed request and return the response data.

        Raises:
            ResponseVerificationError: If the response signature does not verify
            WalletRequestError: If the host reports ``success=false``
            asyncio.TimeoutError: If no response arrives in time (a dropped
                request is indistinguishable from a slow one)
        """
        if timeout is None:
            timeout = self.default_timeout
        request_id = uuid.uuid4().hex
        fields: dict[str, Any] = {
            "request_id": request_id,
            "action": action.value if isinstance(action, Action) else action,
            "chain": chain,
        }
        if params is not None:
            fields["params"] = params
        signed = self.authenticator.sign_request(AdapterRequest(**fields))

        response = await self._send(request_id, signed.to_wire(), timeout)

        if not self.authenticator.verify_response(response):
            raise ResponseVerificationError(f"Response {request_id} failed signature verification")
        if not response.get("success"):
            raise WalletRequestError(request_id, response.get("error") or "Wallet operation failed")
        return response.get("data")
