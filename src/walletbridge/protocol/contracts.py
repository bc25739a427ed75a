"""Message contracts exchanged between the widget and the host adapter.

Wire keys are camelCase (``requestId``, ``widgetSecret``, ``chainId``) because
the counterpart is a browser widget; Python attributes are snake_case.

Signable payloads are built with ``exclude_unset`` so that an optional field
the producer never sent is left out of the canonical form, exactly as
``JSON.stringify`` leaves out ``undefined``.
"""

from enum import Enum
from typing import Any, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_ERROR_MESSAGE = "Wallet operation failed"

AUTH_FIELDS = frozenset({"timestamp", "nonce", "signature"})


class Action(str, Enum):
    """Closed action vocabulary of the wallet channel."""

    EXCHANGE_SHARED_SECRET = "EXCHANGE_SHARED_SECRET"
    CONNECT_WALLET = "CONNECT_WALLET"
    DISCONNECT_WALLET = "DISCONNECT_WALLET"
    GET_ACCOUNTS = "GET_ACCOUNTS"
    GET_CHAIN_ID = "GET_CHAIN_ID"
    GET_BALANCE = "GET_BALANCE"
    SIGN_MESSAGE = "SIGN_MESSAGE"
    SIGN_TRANSACTION = "SIGN_TRANSACTION"
    BROADCAST_TRANSACTION = "BROADCAST_TRANSACTION"
    SWITCH_NETWORK = "SWITCH_NETWORK"
    NETWORK_SWITCHED_EVENT = "NETWORK_SWITCHED_EVENT"

    @classmethod
    def parse(cls, value: str) -> Optional["Action"]:
        """Return the action for a wire tag, or None if the tag is unknown."""
        try:
            return cls(value)
        except ValueError:
            return None


class WireModel(BaseModel):
    """Base for models that travel over the channel."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict:
        """Serialize with wire (camelCase) keys, omitting fields never set."""
        return self.model_dump(by_alias=True, exclude_unset=True)


# ======================
# Inbound
# ======================


class SecretExchangeMessage(WireModel):
    """Handshake message that delivers the widget's freshly generated secret."""

    request_id: str = Field(..., alias="requestId", min_length=1)
    action: Literal["EXCHANGE_SHARED_SECRET"] = Action.EXCHANGE_SHARED_SECRET.value
    widget_secret: str = Field(..., alias="widgetSecret", min_length=1)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class AuthenticatedMessage(WireModel):
    """Inbound request carrying timestamp, nonce and MAC.

    Validation is strict: a field of the wrong JSON type is a malformed
    message, not something to coerce.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", strict=True)

    request_id: str = Field(..., alias="requestId")
    action: str
    chain: Optional[str] = None
    params: Any = None
    timestamp: int
    nonce: str
    signature: str = ""

    def signable_payload(self) -> dict:
        """Every field except the signature, in wire order."""
        return self.model_dump(by_alias=True, exclude={"signature"}, exclude_unset=True)

    def strip_authentication(self) -> "AdapterRequest":
        """Drop timestamp, nonce and signature."""
        return AdapterRequest.model_validate(
            self.model_dump(by_alias=True, exclude=set(AUTH_FIELDS), exclude_unset=True)
        )


class AdapterRequest(WireModel):
    """Authenticated request with the authentication fields removed."""

    request_id: str = Field(..., alias="requestId")
    action: str
    chain: Optional[str] = None
    params: Any = None

    @property
    def parsed_action(self) -> Optional[Action]:
        return Action.parse(self.action)


# ======================
# Outbound
# ======================


class AdapterResponse(WireModel):
    """Unsigned response envelope produced by the dispatcher."""

    request_id: str = Field(..., alias="requestId")
    success: bool = False
    data: Any = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, request_id: str, data: Any) -> "AdapterResponse":
        return cls(request_id=request_id, success=True, data=data)

    @classmethod
    def fail(cls, request_id: str, error: Optional[str]) -> "AdapterResponse":
        return cls(request_id=request_id, success=False, error=error or DEFAULT_ERROR_MESSAGE)

    def envelope(self) -> dict:
        """Wire envelope: ``data`` only on success, ``error`` only on failure."""
        body: dict[str, Any] = {"requestId": self.request_id, "success": self.success}
        if self.success:
            body["data"] = self.data
        else:
            body["error"] = self.error or DEFAULT_ERROR_MESSAGE
        return body

    def to_wire(self) -> dict:
        return self.envelope()


class SecureResponse(WireModel):
    """Signed, timestamped response sent back to the widget."""

    request_id: str = Field(..., alias="requestId")
    success: bool
    data: Any = None
    error: Optional[str] = None
    timestamp: int
    signature: str = ""

    def signable_payload(self) -> dict:
        """Every field except the signature, in wire order."""
        return self.model_dump(by_alias=True, exclude={"signature"}, exclude_unset=True)


# ======================
# Per-action parameters
# ======================


class ActionParams(BaseModel):
    """Parameter shape of one action.

    ``required_message`` is the error reported when required parameters are
    missing or empty.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    required_message: ClassVar[str] = ""


class NoParams(ActionParams):
    pass


class SignMessageParams(ActionParams):
    required_message: ClassVar[str] = "Message is required for signing"

    message: str = Field(..., min_length=1)


class TransactionParams(ActionParams):
    """Transaction object or raw transaction hex, passed to the wallet unchanged.

    Only an absent, null or falsy scalar value counts as missing; an empty
    object is left for the wallet to reject.
    """

    transaction: Any = Field(...)

    @field_validator("transaction")
    @classmethod
    def validate_transaction(cls, v: Any) -> Any:
        if v is None or (not v and not isinstance(v, (dict, list))):
            raise ValueError("transaction is required")
        return v


class SignTransactionParams(TransactionParams):
    required_message: ClassVar[str] = "Transaction is required for signing"


class BroadcastTransactionParams(TransactionParams):
    required_message: ClassVar[str] = "Transaction is required for broadcasting"


class SwitchNetworkParams(ActionParams):
    required_message: ClassVar[str] = "Chain ID is required for network switch"

    chain_id: Union[str, int] = Field(..., alias="chainId")
    network_config: Optional[dict[str, Any]] = Field(None, alias="networkConfig")

    @field_validator("chain_id")
    @classmethod
    def validate_chain_id(cls, v: Union[str, int]) -> Union[str, int]:
        """An empty or zero chain ID counts as missing."""
        if not v:
            raise ValueError("chainId is required")
        return v


class NetworkSwitchedEventParams(ActionParams):
    """Free-form event detail forwarded to host listeners."""

    pass


ACTION_PARAMS: dict[Action, type[ActionParams]] = {
    Action.CONNECT_WALLET: NoParams,
    Action.DISCONNECT_WALLET: NoParams,
    Action.GET_ACCOUNTS: NoParams,
    Action.GET_CHAIN_ID: NoParams,
    Action.GET_BALANCE: NoParams,
    Action.SIGN_MESSAGE: SignMessageParams,
    Action.SIGN_TRANSACTION: SignTransactionParams,
    Action.BROADCAST_TRANSACTION: BroadcastTransactionParams,
    Action.SWITCH_NETWORK: SwitchNetworkParams,
    Action.NETWORK_SWITCHED_EVENT: NetworkSwitchedEventParams,
}
