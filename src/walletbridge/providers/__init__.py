"""Wallet providers the adapter dispatches to.

- JsonRpcWalletProvider: Node JSON-RPC endpoint with unlocked accounts
- LocalWalletProvider: In-memory development wallet (eth-account)
"""

from walletbridge.providers.base import WalletProvider
from walletbridge.providers.factory import get_wallet_provider, reset_wallet_provider
from walletbridge.providers.local import LocalWalletProvider
from walletbridge.providers.rpc import JsonRpcWalletProvider

__all__ = [
    "WalletProvider",
    "JsonRpcWalletProvider",
    "LocalWalletProvider",
    "get_wallet_provider",
    "reset_wallet_provider",
]
