"""Host-side wallet events.

The host application listens here for wallet state changes the widget caused
(connect, disconnect, network switch) so it can refresh its own UI.
"""

import inspect
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)

WALLET_CONNECT = "wallet-connect"
WALLET_DISCONNECT = "wallet-disconnect"
WALLET_NETWORK_CHANGED = "wallet-network-changed"
NETWORK_SWITCHED_EVENT = "NETWORK_SWITCHED_EVENT"

EventListener = Callable[[dict], Union[None, Awaitable[None]]]


class HostEvents:
    """Listener registry keyed by event name."""

    def __init__(self):
        self._listeners: dict[str, list[EventListener]] = defaultdict(list)

    def add_listener(self, event: str, listener: EventListener) -> Callable[[], None]:
        """Register a listener.

        Returns:
            Function that removes the listener
        """
        self._listeners[event].append(listener)
        return lambda: self.remove_listener(event, listener)

    def remove_listener(self, event: str, listener: EventListener) -> None:
        if listener in self._listeners.get(event, []):
            self._listeners[event].remove(listener)

    async def emit(self, event: str, detail: Optional[dict[str, Any]] = None) -> int:
        """Deliver an event to every listener.

        A failing listener is logged and does not affect the others or the
        wallet request that triggered the event.

        Returns:
            Number of listeners notified
        """
        detail = detail or {}
        listeners = list(self._listeners.get(event, []))
        logger.debug("Dispatching %s to %d listeners", event, len(listeners))

        for listener in listeners:
            try:
                result = listener(detail)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Listener for {event} failed: {e}")

        return len(listeners)
