"""Authenticated wallet channel between an embedded widget and its host.

The host creates a WalletAdapter around its wallet provider and hands the
adapter's second port to the widget. The widget delivers a shared secret once,
then every request it sends is HMAC-signed, timestamped and nonce-protected,
and every response it receives is signed by the host.
"""

from walletbridge.adapter import (
    WalletAdapter,
    create_secure_adapter,
    create_secure_wallet_adapter,
    create_wallet_adapter,
)
from walletbridge.auth.authenticator import MessageAuthenticator
from walletbridge.channel import MessageChannel, MessagePort
from walletbridge.client import WidgetClient
from walletbridge.config import AdapterOptions, AuthFailurePolicy, Settings, get_settings
from walletbridge.protocol.contracts import (
    Action,
    AdapterRequest,
    AdapterResponse,
    AuthenticatedMessage,
    SecureResponse,
)

__version__ = "0.1.0"

__all__ = [
    "Action",
    "AdapterOptions",
    "AdapterRequest",
    "AdapterResponse",
    "AuthFailurePolicy",
    "AuthenticatedMessage",
    "MessageAuthenticator",
    "MessageChannel",
    "MessagePort",
    "SecureResponse",
    "Settings",
    "WalletAdapter",
    "WidgetClient",
    "create_secure_adapter",
    "create_secure_wallet_adapter",
    "create_wallet_adapter",
    "get_settings",
]
