"""Local development wallet provider.

Holds one private key in memory and signs with eth-account. Nothing is sent
to a network: "broadcast" transactions are signed, hashed and recorded.

WARNING: Private key is stored in memory. Use only for development and tests.
"""

import logging
from typing import Any, Optional

from eth_account import Account
from eth_account.messages import encode_defunct

from walletbridge.errors import WalletProviderError
from walletbridge.providers.base import (
    DISCONNECTED,
    UNRECOGNIZED_CHAIN,
    UNSUPPORTED_METHOD,
    WalletProvider,
)

logger = logging.getLogger(__name__)

# Chains the host wallet knows out of the box: Ethereum, Base, Polygon, Soneium
DEFAULT_KNOWN_CHAINS = ("0x1", "0x2105", "0x89", "0x74c")

DEFAULT_GAS = 21000
DEFAULT_GAS_PRICE = 10**9  # 1 gwei


def _hex_chain(chain_id: Any) -> str:
    """Normalize a chain ID (int, decimal or hex string) to 0x-prefixed lowercase hex."""
    if isinstance(chain_id, int):
        return hex(chain_id)
    text = str(chain_id).strip().lower()
    if text.startswith("0x"):
        return hex(int(text, 16))
    return hex(int(text))


class LocalWalletProvider(WalletProvider):
    """In-memory wallet backed by a single private key."""

    def __init__(
        self,
        private_key: Optional[str] = None,
        chain_id: str = "0x1",
        balance_wei: int = 0,
        known_chains: tuple[str, ...] = DEFAULT_KNOWN_CHAINS,
    ):
        """Initialize the wallet.

        Args:
            private_key: Hex private key (a random one is created if omitted)
            chain_id: Active chain
            balance_wei: Balance reported by eth_getBalance
            known_chains: Chains wallet_switchEthereumChain accepts without adding
        """
        self._account = Account.from_key(private_key) if private_key else Account.create()
        self.chain_id = _hex_chain(chain_id)
        self.balance_wei = balance_wei
        self.known_chains = {_hex_chain(c) for c in known_chains} | {self.chain_id}
        self.connected = False
        self.nonce = 0
        self.sent_transactions: list[dict] = []

    @property
    def name(self) -> str:
        return "local"

    @property
    def address(self) -> str:
        return self._account.address

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        params = params or []
        handler = getattr(self, f"_rpc_{method}", None)
        if handler is None:
            raise WalletProviderError(f"Method not supported: {method}", code=UNSUPPORTED_METHOD)
        return handler(params)

    # ======================
    # Accounts
    # ======================

    def _rpc_eth_requestAccounts(self, params: list) -> list[str]:
        self.connected = True
        return [self.address]

    def _rpc_eth_accounts(self, params: list) -> list[str]:
        return [self.address] if self.connected else []

    def _rpc_wallet_revokePermissions(self, params: list) -> None:
        self.connected = False
        return None

    # ======================
    # Chain state
    # ======================

    def _rpc_eth_chainId(self, params: list) -> str:
        return self.chain_id

    def _rpc_eth_getBalance(self, params: list) -> str:
        return hex(self.balance_wei)

    def _rpc_wallet_switchEthereumChain(self, params: list) -> None:
        chain_id = _hex_chain(params[0]["chainId"])
        if chain_id not in self.known_chains:
            raise WalletProviderError(
                f"Unrecognized chain ID {chain_id}. Try adding the chain using wallet_addEthereumChain first.",
                code=UNRECOGNIZED_CHAIN,
            )
        self.chain_id = chain_id
        logger.info(f"Local wallet switched to chain {chain_id}")
        return None

    def _rpc_wallet_addEthereumChain(self, params: list) -> None:
        chain_id = _hex_chain(params[0]["chainId"])
        self.known_chains.add(chain_id)
        self.chain_id = chain_id
        logger.info(f"Local wallet added and switched to chain {chain_id}")
        return None

    # ======================
    # Signing
    # ======================

    def _require_connected(self) -> None:
        if not self.connected:
            raise WalletProviderError("Wallet is not connected", code=DISCONNECTED)

    def _rpc_personal_sign(self, params: list) -> str:
        self._require_connected()
        message = params[0]
        if isinstance(message, str) and message.startswith("0x"):
            signable = encode_defunct(hexstr=message)
        else:
            signable = encode_defunct(text=str(message))
        signed = self._account.sign_message(signable)
        return "0x" + bytes(signed.signature).hex()

    def _build_transaction(self, tx: Any) -> dict:
        if not isinstance(tx, dict):
            raise WalletProviderError("Local wallet only signs transaction objects", code=UNSUPPORTED_METHOD)
        tx = dict(tx)
        sender = tx.pop("from", None)
        if sender and sender.lower() != self.address.lower():
            raise WalletProviderError(f"Unknown sender {sender}")
        tx.setdefault("nonce", self.nonce)
        tx.setdefault("chainId", int(self.chain_id, 16))
        tx.setdefault("value", 0)
        if "gasLimit" in tx:
            tx.setdefault("gas", tx.pop("gasLimit"))
        tx.setdefault("gas", DEFAULT_GAS)
        if "maxFeePerGas" not in tx:
            tx.setdefault("gasPrice", DEFAULT_GAS_PRICE)
        return tx

    def _sign(self, tx: dict):
        self._require_connected()
        try:
            return self._account.sign_transaction(self._build_transaction(tx))
        except (TypeError, ValueError) as e:
            raise WalletProviderError(f"Invalid transaction: {e}") from e

    def _rpc_eth_signTransaction(self, params: list) -> str:
        signed = self._sign(params[0])
        return "0x" + bytes(signed.raw_transaction).hex()

    def _rpc_eth_sendTransaction(self, params: list) -> str:
        signed = self._sign(params[0])
        tx_hash = "0x" + bytes(signed.hash).hex()
        self.nonce += 1
        self.sent_transactions.append({"hash": tx_hash, "raw": "0x" + bytes(signed.raw_transaction).hex()})
        logger.info(f"Local wallet recorded transaction {tx_hash}")
        return tx_hash
