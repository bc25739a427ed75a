"""Provider factory for creating wallet providers."""

from typing import Optional

from walletbridge.config import Settings, get_settings
from walletbridge.providers.base import WalletProvider
from walletbridge.providers.local import LocalWalletProvider
from walletbridge.providers.rpc import JsonRpcWalletProvider

# Singleton instance
_provider_instance: Optional[WalletProvider] = None


def get_wallet_provider(settings: Optional[Settings] = None) -> WalletProvider:
    """Get the configured wallet provider.

    Provider is selected based on WALLETBRIDGE_PROVIDER:
    - rpc (default): JSON-RPC node at WALLETBRIDGE_RPC_URL
    - local: In-memory development wallet (WALLETBRIDGE_LOCAL_PRIVATE_KEY)

    Returns:
        Configured WalletProvider instance
    """
    global _provider_instance

    if _provider_instance is not None:
        return _provider_instance

    settings = settings or get_settings()
    provider_name = settings.provider.lower()

    if provider_name == "local":
        _provider_instance = LocalWalletProvider(
            private_key=settings.local_private_key,
            chain_id=settings.local_chain_id,
        )
    elif provider_name == "rpc":
        _provider_instance = JsonRpcWalletProvider(
            rpc_url=settings.rpc_url,
            timeout=settings.rpc_timeout,
        )
    else:
        raise ValueError(f"Unknown wallet provider: {settings.provider}")

    return _provider_instance


def reset_wallet_provider() -> None:
    """Reset provider instance (useful for testing)."""
    global _provider_instance
    _provider_instance = None
