"""Action dispatch and host-side wallet events."""

from walletbridge.dispatch.dispatcher import ActionDispatcher
from walletbridge.dispatch.events import HostEvents

__all__ = ["ActionDispatcher", "HostEvents"]
