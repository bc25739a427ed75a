"""Secure wallet adapter: the host endpoint of the widget channel.

Pipeline for each inbound message:

    raw message -> MessageValidator -> ActionDispatcher -> sign -> port1

Every adapter owns its own MessageAuthenticator. There is no process-wide
authenticator, so two adapters (two widget sessions) never share a secret or
a nonce ledger.

Usage:
    adapter = create_wallet_adapter(provider, AdapterOptions(debug_mode=True))
    adapter.start()
    widget_port = adapter.port2   # hand this to the widget
    ...
    await adapter.close()
"""

import logging
from typing import Any, Callable, Optional

from walletbridge.auth.authenticator import MessageAuthenticator
from walletbridge.channel import MessageChannel, MessagePort
from walletbridge.config import AdapterOptions, AuthFailurePolicy, Settings
from walletbridge.dispatch.dispatcher import ActionDispatcher
from walletbridge.dispatch.events import HostEvents
from walletbridge.protocol.contracts import AdapterResponse, SecureResponse
from walletbridge.protocol.exchange import SecretExchangeHandler
from walletbridge.protocol.validator import (
    ChannelState,
    MessageValidator,
    ValidationOutcome,
)
from walletbridge.providers.base import WalletProvider

logger = logging.getLogger(__name__)

NON_SERIALIZABLE_RESULT_ERROR = "Wallet operation returned a non-serializable result"


class WalletAdapter:
    """One widget session: channel, authenticator, validator and dispatcher."""

    def __init__(
        self,
        provider: WalletProvider,
        options: Optional[AdapterOptions] = None,
        events: Optional[HostEvents] = None,
        authenticator: Optional[MessageAuthenticator] = None,
    ):
        """Initialize the adapter.

        Args:
            provider: Wallet capability actions are dispatched to
            options: Construction-time options (defaults if omitted)
            events: Host event registry (a new one is created if omitted)
            authenticator: Session authenticator (a new one is created if omitted)
        """
        self.options = options or AdapterOptions()
        self.debug_mode = self.options.debug_mode
        policy = AuthFailurePolicy(self.options.auth_failure_policy)

        logger.info(
            "Creating secure wallet adapter (max_message_age=%dms, debug=%s, auth_failure_policy=%s)",
            self.options.max_message_age_ms,
            self.debug_mode,
            policy.value,
        )

        self.authenticator = authenticator or MessageAuthenticator(
            max_message_age_ms=self.options.max_message_age_ms,
            nonce_ledger_limit=self.options.nonce_ledger_limit,
        )
        if self.options.shared_secret:
            self.authenticator.set_secret(self.options.shared_secret)

        self.exchange = SecretExchangeHandler(self.authenticator)
        if self.options.on_shared_secret_received:
            self.exchange.subscribe(self.options.on_shared_secret_received)

        self.validator = MessageValidator(
            self.authenticator,
            self.exchange,
            auth_failure_policy=policy,
            debug_mode=self.debug_mode,
        )
        self.events = events or HostEvents()
        self.dispatcher = ActionDispatcher(
            provider,
            events=self.events,
            allowed_chains=self.options.allowed_chains,
        )

        self.channel = MessageChannel()
        self.channel.port1.on_message = self._on_port_message

    # ======================
    # Channel
    # ======================

    @property
    def port1(self) -> MessagePort:
        """Host end of the channel."""
        return self.channel.port1

    @property
    def port2(self) -> MessagePort:
        """Widget end of the channel."""
        return self.channel.port2

    @property
    def state(self) -> ChannelState:
        return self.validator.state

    def start(self) -> None:
        """Begin processing messages arriving on port1."""
        self.channel.port1.start()

    async def close(self) -> None:
        await self.channel.close()

    async def __aenter__(self) -> "WalletAdapter":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    async def _on_port_message(self, raw: Any) -> None:
        reply = await self.handle_message(raw)
        if reply is not None:
            self.channel.port1.post_message(reply)

    # ======================
    # Message pipeline
    # ======================

    async def handle_message(self, raw: Any) -> Optional[dict]:
        """Process one inbound message.

        Returns:
            Wire response to send back, or None when the message is dropped

        Raises:
            SecretNotEstablishedError: If a response must be signed but the
                secret is gone. Nothing is sent in that case.
        """
        result = self.validator.validate(raw)

        if result.outcome == ValidationOutcome.DROPPED:
            return None

        if result.outcome in (ValidationOutcome.EXCHANGED, ValidationOutcome.REJECTED):
            # The handshake ack and the no-secret error cannot be signed
            return result.reply.envelope()

        if result.outcome == ValidationOutcome.AUTH_FAILED:
            return self.create_secure_response(result.reply).to_wire()

        request = result.request
        if self.debug_mode:
            logger.debug("Processing validated request %s: %s", request.request_id, request.action)

        response = await self.dispatcher.dispatch(request)
        try:
            return self.create_secure_response(response).to_wire()
        except ValueError:
            # Result is not representable as JSON
            failure = AdapterResponse.fail(request.request_id, NON_SERIALIZABLE_RESULT_ERROR)
            return self.create_secure_response(failure).to_wire()

    def create_secure_response(self, response: AdapterResponse) -> SecureResponse:
        """Sign a response envelope. Signing errors propagate: never send unsigned."""
        try:
            return self.authenticator.sign(response)
        except Exception as e:
            logger.error(f"Failed to sign response {response.request_id}: {e}")
            raise

    # ======================
    # Control surface
    # ======================

    def get_shared_secret(self) -> str:
        return self.authenticator.get_secret()

    def set_shared_secret(self, secret: str) -> None:
        self.authenticator.set_secret(secret)

    def is_secure_mode(self) -> bool:
        """Always True: there is no unauthenticated mode."""
        return True

    def cleanup_nonces(self) -> None:
        self.authenticator.cleanup_ledger()

    def subscribe_secret(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """Observe secrets installed by the exchange handshake."""
        return self.exchange.subscribe(callback)

    async def wait_for_secret(self, timeout: Optional[float] = None) -> str:
        """Wait until the session holds a shared secret."""
        return await self.exchange.wait_for_secret(timeout)


def create_wallet_adapter(
    provider: WalletProvider,
    options: Optional[AdapterOptions] = None,
    settings: Optional[Settings] = None,
    events: Optional[HostEvents] = None,
) -> WalletAdapter:
    """Create a wallet adapter.

    Options take precedence; without them, options are read from settings
    (environment) when settings are given, otherwise defaults apply.
    """
    if options is None and settings is not None:
        options = AdapterOptions.from_settings(settings)
    return WalletAdapter(provider, options=options, events=events)


# Alternative names kept for hosts written against earlier releases
create_secure_wallet_adapter = create_wallet_adapter
create_secure_adapter = create_wallet_adapter
