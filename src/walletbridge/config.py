"""Application configuration using pydantic-settings.

Settings are read from ``WALLETBRIDGE_*`` environment variables (or a ``.env``
file). Per-adapter overrides, including the secret-received callback that
cannot come from the environment, travel in :class:`AdapterOptions`.
"""

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Callable, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MAX_MESSAGE_AGE_MS = 300_000
DEFAULT_NONCE_LEDGER_LIMIT = 1000


class AuthFailurePolicy(str, Enum):
    """What the adapter does with a message that fails authentication."""

    DROP = "drop"      # No response at all
    REJECT = "reject"  # Generic signed error, never naming the failed check


class Settings(BaseSettings):
    """Wallet bridge settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="WALLETBRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Authentication
    # ======================
    shared_secret: Optional[str] = Field(
        default=None, description="Pre-seeded shared secret (normally delivered by the widget)"
    )
    max_message_age_ms: int = Field(
        default=DEFAULT_MAX_MESSAGE_AGE_MS,
        description="Maximum clock distance between message timestamp and now",
    )
    nonce_ledger_limit: int = Field(
        default=DEFAULT_NONCE_LEDGER_LIMIT,
        description="Nonce ledger is cleared once it grows past this size",
    )
    auth_failure_policy: AuthFailurePolicy = Field(
        default=AuthFailurePolicy.DROP,
        description="drop (silent) or reject (generic signed error)",
    )

    # ======================
    # Dispatch
    # ======================
    allowed_chains: str = Field(
        default="", description="Comma-separated chain names accepted by the dispatcher (empty = any)"
    )

    # ======================
    # Wallet provider
    # ======================
    provider: str = Field(default="rpc", description="Wallet provider: rpc or local")
    rpc_url: str = Field(default="http://127.0.0.1:8545", description="JSON-RPC endpoint")
    rpc_timeout: float = Field(default=30.0, description="JSON-RPC request timeout in seconds")
    local_private_key: Optional[str] = Field(
        default=None, description="Private key for the local (development) wallet provider"
    )
    local_chain_id: str = Field(default="0x1", description="Initial chain ID of the local provider")

    # ======================
    # Diagnostics
    # ======================
    debug_mode: bool = Field(default=False, description="Verbose protocol tracing")

    @field_validator("max_message_age_ms", "nonce_ledger_limit")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Reject zero or negative limits."""
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @property
    def chain_allow_list(self) -> list[str]:
        """Parse allowed chains into a list of lowercase names."""
        if not self.allowed_chains:
            return []
        return [c.strip().lower() for c in self.allowed_chains.split(",") if c.strip()]

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "shared_secret": "***" if self.shared_secret else "(not set)",
            "max_message_age_ms": self.max_message_age_ms,
            "nonce_ledger_limit": self.nonce_ledger_limit,
            "auth_failure_policy": self.auth_failure_policy.value,
            "allowed_chains": self.chain_allow_list or "(any)",
            "provider": self.provider,
            "rpc_url": self.rpc_url,
            "local_private_key": "***" if self.local_private_key else "(not set)",
            "debug_mode": self.debug_mode,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


@dataclass
class AdapterOptions:
    """Construction-time options for one wallet adapter.

    Attributes:
        shared_secret: Pre-seeded secret; the adapter starts in keyed state
        on_shared_secret_received: Called with every secret installed by exchange
        max_message_age_ms: Freshness window for inbound messages
        debug_mode: Verbose tracing, no behavioral effect
        auth_failure_policy: Drop or reject messages that fail authentication
        allowed_chains: Chains the dispatcher accepts (empty = any)
        nonce_ledger_limit: Ledger size bound
    """

    shared_secret: Optional[str] = None
    on_shared_secret_received: Optional[Callable[[str], None]] = None
    max_message_age_ms: int = DEFAULT_MAX_MESSAGE_AGE_MS
    debug_mode: bool = False
    auth_failure_policy: AuthFailurePolicy = AuthFailurePolicy.DROP
    allowed_chains: Optional[list[str]] = None
    nonce_ledger_limit: int = DEFAULT_NONCE_LEDGER_LIMIT

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        on_shared_secret_received: Optional[Callable[[str], None]] = None,
    ) -> "AdapterOptions":
        """Build options from environment settings."""
        settings = settings or get_settings()
        return cls(
            shared_secret=settings.shared_secret,
            on_shared_secret_received=on_shared_secret_received,
            max_message_age_ms=settings.max_message_age_ms,
            debug_mode=settings.debug_mode,
            auth_failure_policy=settings.auth_failure_policy,
            allowed_chains=settings.chain_allow_list,
            nonce_ledger_limit=settings.nonce_ledger_limit,
        )
