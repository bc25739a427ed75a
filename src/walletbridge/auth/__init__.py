"""Shared-secret message authentication."""

from walletbridge.auth.authenticator import MessageAuthenticator, compute_mac, now_ms
from walletbridge.auth.canonical import canonicalize

__all__ = ["MessageAuthenticator", "canonicalize", "compute_mac", "now_ms"]
