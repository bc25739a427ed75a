"""Wallet provider base interface.

The adapter never touches keys. It forwards each action to a provider that
speaks the EIP-1193 ``request`` convention: a JSON-RPC method name plus a
positional parameter list.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

# EIP-1193 / EIP-3085 error codes
USER_REJECTED = 4001
UNAUTHORIZED = 4100
UNSUPPORTED_METHOD = 4200
DISCONNECTED = 4900
UNRECOGNIZED_CHAIN = 4902


class WalletProvider(ABC):
    """Abstract base class for wallet providers."""

    @abstractmethod
    async def request(self, method: str, params: Optional[list] = None) -> Any:
        """Perform one wallet RPC call.

        Args:
            method: RPC method (eth_accounts, personal_sign, wallet_switchEthereumChain, ...)
            params: Positional parameters

        Returns:
            Method result

        Raises:
            WalletProviderError: If the wallet rejects the call
        """
        raise NotImplementedError()

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        raise NotImplementedError()

    async def close(self) -> None:
        """Release provider resources."""
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"
