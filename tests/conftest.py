"""Pytest configuration and fixtures."""

import hashlib
import hmac
import json
import os
import time
from typing import Any, Optional

import pytest

# Set test environment before any walletbridge settings are read
os.environ["WALLETBRIDGE_DEBUG_MODE"] = "true"
os.environ["WALLETBRIDGE_PROVIDER"] = "local"
os.environ.pop("WALLETBRIDGE_SHARED_SECRET", None)

from walletbridge.adapter import WalletAdapter
from walletbridge.config import AdapterOptions, get_settings
from walletbridge.errors import WalletProviderError
from walletbridge.providers.base import WalletProvider
from walletbridge.providers.factory import reset_wallet_provider

ACCOUNT = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"


def now_ms() -> int:
    return int(time.time() * 1000)


def reference_sign(secret: str, message: dict) -> dict:
    """Sign a request the way the browser widget does.

    Built independently of walletbridge.auth: JSON.stringify output for
    flat ASCII payloads equals compact json.dumps in insertion order.
    """
    fields = {
        key: message[key]
        for key in ("requestId", "action", "chain", "params", "timestamp", "nonce")
        if key in message
    }
    body = json.dumps(fields, separators=(",", ":"), ensure_ascii=False)
    signature = hmac.new(secret.encode(), body.encode(), hashlib.sha256).hexdigest()
    return {**fields, "signature": signature}


def reference_verify_response(secret: str, response: dict) -> bool:
    """Verify a host response the way the browser widget does."""
    fields = {
        key: response[key]
        for key in ("requestId", "success", "data", "error", "timestamp")
        if key in response
    }
    body = json.dumps(fields, separators=(",", ":"), ensure_ascii=False)
    expected = hmac.new(secret.encode(), body.encode(), hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, response.get("signature", ""))


def signed_request(
    secret: str,
    action: str,
    request_id: str = "1",
    nonce: str = "n1",
    chain: Optional[str] = "ethereum",
    params: Any = None,
    timestamp: Optional[int] = None,
) -> dict:
    message: dict[str, Any] = {"requestId": request_id, "action": action}
    if chain is not None:
        message["chain"] = chain
    if params is not None:
        message["params"] = params
    message["timestamp"] = timestamp if timestamp is not None else now_ms()
    message["nonce"] = nonce
    return reference_sign(secret, message)


class FakeClock:
    """Controllable millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeWalletProvider(WalletProvider):
    """Scripted wallet provider that records every call.

    ``results`` maps a method to a value, an exception instance to raise,
    or a callable taking the params list.
    """

    def __init__(self, results: Optional[dict] = None):
        self.results = {
            "eth_requestAccounts": [ACCOUNT],
            "eth_accounts": [ACCOUNT],
            "eth_chainId": "0x1",
            "eth_getBalance": hex(15 * 10**17),
            "personal_sign": "0xsigned",
            "eth_signTransaction": "0xrawtx",
            "eth_sendTransaction": "0xtxhash",
            "wallet_switchEthereumChain": None,
            "wallet_addEthereumChain": None,
            "wallet_revokePermissions": None,
        }
        self.results.update(results or {})
        self.calls: list[tuple[str, Optional[list]]] = []

    @property
    def name(self) -> str:
        return "fake"

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        self.calls.append((method, params))
        if method not in self.results:
            raise WalletProviderError(f"Method not supported: {method}", code=4200)
        result = self.results[method]
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return result(params)
        return result

    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]


@pytest.fixture(autouse=True)
def reset_singletons():
    """Clear cached settings and provider between tests."""
    get_settings.cache_clear()
    reset_wallet_provider()
    yield
    get_settings.cache_clear()
    reset_wallet_provider()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider() -> FakeWalletProvider:
    return FakeWalletProvider()


@pytest.fixture
def adapter(provider) -> WalletAdapter:
    """Unkeyed adapter around the fake provider."""
    return WalletAdapter(provider, AdapterOptions(debug_mode=True))


@pytest.fixture
def keyed_adapter(provider) -> WalletAdapter:
    """Adapter pre-seeded with the secret 'abc'."""
    return WalletAdapter(provider, AdapterOptions(shared_secret="abc"))
