"""JSON-RPC wallet provider.

Forwards wallet calls to an Ethereum node whose accounts are unlocked
(anvil, hardhat, a geth dev node). Browser-only methods that a node does not
serve are emulated:
- eth_requestAccounts -> eth_accounts
- wallet_switchEthereumChain succeeds only for the node's own chain
- wallet_revokePermissions is a no-op
"""

import itertools
import logging
from typing import Any, Optional

import httpx

from walletbridge.errors import WalletProviderError
from walletbridge.providers.base import UNRECOGNIZED_CHAIN, UNSUPPORTED_METHOD, WalletProvider

logger = logging.getLogger(__name__)

DEFAULT_RPC_URL = "http://127.0.0.1:8545"


class JsonRpcWalletProvider(WalletProvider):
    """Wallet provider backed by a node's JSON-RPC endpoint."""

    def __init__(
        self,
        rpc_url: str = DEFAULT_RPC_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the provider.

        Args:
            rpc_url: Node JSON-RPC URL
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.rpc_url = rpc_url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._ids = itertools.count(1)

    @property
    def name(self) -> str:
        return "rpc"

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        if method == "eth_requestAccounts":
            return await self._call("eth_accounts", [])

        if method == "wallet_revokePermissions":
            return None

        if method == "wallet_switchEthereumChain":
            requested = (params or [{}])[0].get("chainId")
            current = await self._call("eth_chainId", [])
            if _same_chain(requested, current):
                return None
            raise WalletProviderError(
                f"Unrecognized chain ID {requested}. Node serves {current}",
                code=UNRECOGNIZED_CHAIN,
            )

        if method == "wallet_addEthereumChain":
            raise WalletProviderError(
                "A node endpoint cannot add networks", code=UNSUPPORTED_METHOD
            )

        return await self._call(method, params or [])

    async def _call(self, method: str, params: list) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids),
        }
        try:
            response = await self._client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"RPC call {method} failed: {e}")
            raise WalletProviderError(f"RPC request failed: {e}") from e
        except ValueError as e:
            logger.error(f"RPC call {method} returned invalid JSON: {e}")
            raise WalletProviderError("RPC returned invalid JSON") from e

        if "error" in data and data["error"]:
            error = data["error"]
            raise WalletProviderError(
                error.get("message", "RPC error"),
                code=error.get("code"),
                data=error.get("data"),
            )

        return data.get("result")

    async def close(self) -> None:
        await self._client.aclose()


def _same_chain(a: Any, b: Any) -> bool:
    """Compare chain IDs given as hex strings or integers."""
    try:
        return _to_int(a) == _to_int(b)
    except (TypeError, ValueError):
        return False


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    return int(str(value), 16) if str(value).startswith("0x") else int(str(value))
