"""Wire contracts, secret exchange and inbound validation."""

from walletbridge.protocol.contracts import (
    Action,
    AdapterRequest,
    AdapterResponse,
    AuthenticatedMessage,
    SecretExchangeMessage,
    SecureResponse,
)

__all__ = [
    "Action",
    "AdapterRequest",
    "AdapterResponse",
    "AuthenticatedMessage",
    "SecretExchangeMessage",
    "SecureResponse",
]
