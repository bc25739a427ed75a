"""Action dispatcher: maps an authenticated request to one wallet call.

Every request produces exactly one AdapterResponse. Handler failures
(missing parameters, provider rejection, unsupported action) become
``success=False`` responses with a human-readable error; nothing is left
unanswered.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from pydantic import ValidationError

from walletbridge.dispatch.events import (
    NETWORK_SWITCHED_EVENT,
    WALLET_CONNECT,
    WALLET_DISCONNECT,
    WALLET_NETWORK_CHANGED,
    HostEvents,
)
from walletbridge.errors import ActionError, WalletProviderError
from walletbridge.protocol.contracts import (
    ACTION_PARAMS,
    Action,
    ActionParams,
    AdapterRequest,
    AdapterResponse,
    BroadcastTransactionParams,
    NetworkSwitchedEventParams,
    NoParams,
    SignMessageParams,
    SignTransactionParams,
    SwitchNetworkParams,
)
from walletbridge.providers.base import UNRECOGNIZED_CHAIN, WalletProvider

logger = logging.getLogger(__name__)

WEI_PER_ETHER = 10**18

Handler = Callable[[Any], Awaitable[Any]]


class ActionDispatcher:
    """Runs one wallet operation per validated request."""

    def __init__(
        self,
        provider: WalletProvider,
        events: Optional[HostEvents] = None,
        allowed_chains: Optional[list[str]] = None,
    ):
        """Initialize the dispatcher.

        Args:
            provider: Wallet capability the handlers call into
            events: Host event registry (a private one is created if omitted)
            allowed_chains: Chain names accepted in requests (empty = any)
        """
        self.provider = provider
        self.events = events or HostEvents()
        self.allowed_chains = [c.lower() for c in (allowed_chains or [])]
        self.wallet_disconnected = False

        self._handlers: dict[Action, Handler] = {
            Action.CONNECT_WALLET: self._connect_wallet,
            Action.DISCONNECT_WALLET: self._disconnect_wallet,
            Action.GET_ACCOUNTS: self._get_accounts,
            Action.GET_CHAIN_ID: self._get_chain_id,
            Action.GET_BALANCE: self._get_balance,
            Action.SIGN_MESSAGE: self._sign_message,
            Action.SIGN_TRANSACTION: self._sign_transaction,
            Action.BROADCAST_TRANSACTION: self._broadcast_transaction,
            Action.SWITCH_NETWORK: self._switch_network,
            Action.NETWORK_SWITCHED_EVENT: self._network_switched_event,
        }

    @property
    def supported_actions(self) -> list[Action]:
        return list(self._handlers)

    async def dispatch(self, request: AdapterRequest) -> AdapterResponse:
        """Run the handler for a request and normalize its outcome."""
        try:
            result = await self._run(request)
        except Exception as e:
            logger.error(f"Wallet operation {request.action} failed for request {request.request_id}: {e}")
            return AdapterResponse.fail(request.request_id, str(e))

        return AdapterResponse.ok(request.request_id, result)

    async def _run(self, request: AdapterRequest) -> Any:
        action = request.parsed_action
        handler = self._handlers.get(action) if action is not None else None
        if handler is None:
            raise ActionError(f"Unsupported action: {request.action}")

        if self.allowed_chains and (request.chain or "").lower() not in self.allowed_chains:
            raise ActionError(f"Unsupported chain: {request.chain}")

        params = self._parse_params(action, request.params)
        logger.debug("Dispatching %s for request %s", action.value, request.request_id)
        return await handler(params)

    @staticmethod
    def _parse_params(action: Action, raw: Any) -> ActionParams:
        """Validate raw params against the action's parameter shape."""
        model = ACTION_PARAMS[action]
        if model is NoParams:
            return NoParams()
        try:
            return model.model_validate(raw if raw is not None else {})
        except ValidationError as e:
            raise ActionError(model.required_message or f"Invalid parameters for {action.value}") from e

    async def _accounts(self) -> list[str]:
        return await self.provider.request("eth_accounts") or []

    async def _first_account(self) -> str:
        accounts = await self._accounts()
        if not accounts:
            raise ActionError("No accounts connected")
        return accounts[0]

    # ======================
    # Handlers
    # ======================

    async def _connect_wallet(self, params: ActionParams) -> Any:
        self.wallet_disconnected = False
        accounts = await self.provider.request("eth_requestAccounts")
        await self.events.emit(WALLET_CONNECT, {"accounts": accounts})
        return accounts

    async def _disconnect_wallet(self, params: ActionParams) -> Any:
        try:
            await self.provider.request("wallet_revokePermissions", [{"eth_accounts": {}}])
        except WalletProviderError as e:
            # Not every wallet can revoke; the local flag still applies
            logger.info(f"Wallet permission revoke failed, using local disconnect: {e}")

        self.wallet_disconnected = True
        await self.events.emit(WALLET_DISCONNECT, {})
        return {"status": "disconnected"}

    async def _get_accounts(self, params: ActionParams) -> Any:
        if self.wallet_disconnected:
            return []
        accounts = await self._accounts()
        await self.events.emit(WALLET_CONNECT, {"accounts": accounts})
        return accounts

    async def _get_chain_id(self, params: ActionParams) -> Any:
        return await self.provider.request("eth_chainId")

    async def _get_balance(self, params: ActionParams) -> Any:
        account = await self._first_account()
        balance = await self.provider.request("eth_getBalance", [account, "latest"])
        wei = balance if isinstance(balance, int) else int(balance, 16)
        return wei / WEI_PER_ETHER

    async def _sign_message(self, params: SignMessageParams) -> Any:
        account = await self._first_account()
        return await self.provider.request("personal_sign", [params.message, account])

    async def _sign_transaction(self, params: SignTransactionParams) -> Any:
        return await self.provider.request("eth_signTransaction", [params.transaction])

    async def _broadcast_transaction(self, params: BroadcastTransactionParams) -> Any:
        return await self.provider.request("eth_sendTransaction", [params.transaction])

    async def _switch_network(self, params: SwitchNetworkParams) -> Any:
        chain_id = params.chain_id
        try:
            await self.provider.request("wallet_switchEthereumChain", [{"chainId": chain_id}])
            status = "switched"
        except WalletProviderError as e:
            if e.code != UNRECOGNIZED_CHAIN:
                raise
            if not params.network_config:
                raise ActionError("Network not found and no network config provided") from e
            await self.provider.request("wallet_addEthereumChain", [params.network_config])
            status = "added_and_switched"

        await self.events.emit(WALLET_NETWORK_CHANGED, {"chainId": chain_id})
        return {"chainId": chain_id, "status": status}

    async def _network_switched_event(self, params: NetworkSwitchedEventParams) -> Any:
        await self.events.emit(NETWORK_SWITCHED_EVENT, params.model_dump(by_alias=True))
        return {"status": "event_dispatched"}
