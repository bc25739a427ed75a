"""Exception hierarchy for the wallet bridge.

Only action errors and provider errors ever reach the widget, and only as the
``error`` text of a signed response. Protocol and authentication failures are
never raised: they are normal outcomes of validation and end in a silent drop.
"""

from typing import Any, Optional


class WalletBridgeError(Exception):
    """Base class for all wallet bridge errors."""

    pass


class SecretNotEstablishedError(WalletBridgeError):
    """Raised when a response must be signed but no shared secret is installed."""

    def __init__(self, message: str = "No shared secret configured for signing response"):
        super().__init__(message)


class ActionError(WalletBridgeError):
    """Raised by an action handler for missing parameters or unsupported input."""

    pass


class WalletProviderError(WalletBridgeError):
    """Raised when the wallet provider rejects a request.

    Attributes:
        code: EIP-1193 / JSON-RPC error code (4001 user rejected, 4902 unknown chain, ...)
        data: Optional error payload returned by the provider
    """

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data

    def __repr__(self) -> str:
        return f"WalletProviderError(code={self.code}, message={str(self)!r})"


class ResponseVerificationError(WalletBridgeError):
    """Raised by the widget client when a response signature does not verify."""

    pass


class WalletRequestError(WalletBridgeError):
    """Raised by the widget client when the host answers with ``success=false``."""

    def __init__(self, request_id: str, message: str):
        super().__init__(message)
        self.request_id = request_id
