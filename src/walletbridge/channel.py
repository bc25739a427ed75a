"""In-process two-endpoint message channel.

A MessageChannel links two MessagePorts. Whatever one port posts arrives at
the other. Data is deep-copied on post, so neither side can mutate what the
other already holds.

A port either has an ``on_message`` handler and is started (each message is
handled in its own task, so a slow handler never blocks delivery of the next
message), or is read directly with ``receive()``.
"""

import asyncio
import copy
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Any], Awaitable[None]]


class PortClosedError(RuntimeError):
    """Raised when posting to or reading from a closed port."""

    pass


class MessagePort:
    """One end of a MessageChannel."""

    def __init__(self, name: str):
        self.name = name
        self._queue: asyncio.Queue = asyncio.Queue()
        self._peer: Optional["MessagePort"] = None
        self._handler: Optional[MessageHandler] = None
        self._reader: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()
        self.closed = False

    def _link(self, peer: "MessagePort") -> None:
        self._peer = peer

    @property
    def on_message(self) -> Optional[MessageHandler]:
        return self._handler

    @on_message.setter
    def on_message(self, handler: Optional[MessageHandler]) -> None:
        self._handler = handler

    def post_message(self, data: Any) -> None:
        """Deliver a copy of ``data`` to the peer port."""
        if self.closed or self._peer is None:
            raise PortClosedError(f"Port {self.name} is closed")
        if self._peer.closed:
            logger.debug("Peer of %s is closed, message discarded", self.name)
            return
        self._peer._queue.put_nowait(copy.deepcopy(data))

    async def receive(self, timeout: Optional[float] = None) -> Any:
        """Read the next message directly.

        Raises:
            asyncio.TimeoutError: If nothing arrives within ``timeout``
        """
        if self.closed:
            raise PortClosedError(f"Port {self.name} is closed")
        return await asyncio.wait_for(self._queue.get(), timeout=timeout)

    def pending(self) -> int:
        """Number of messages waiting to be read."""
        return self._queue.qsize()

    def start(self) -> None:
        """Start dispatching queued messages to ``on_message``."""
        if self._handler is None:
            raise RuntimeError(f"Port {self.name} has no on_message handler")
        if self._reader is None or self._reader.done():
            self._reader = asyncio.create_task(self._read_loop())

    async def _read_loop(self) -> None:
        while not self.closed:
            data = await self._queue.get()
            task = asyncio.create_task(self._deliver(data))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _deliver(self, data: Any) -> None:
        try:
            await self._handler(data)
        except Exception as e:
            # One failed message never takes the port down
            logger.error(f"Port {self.name}: error handling message: {e}")

    async def drain(self) -> None:
        """Wait until every in-flight handler task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Stop the reader and cancel in-flight handlers."""
        self.closed = True
        tasks = list(self._tasks)
        if self._reader is not None:
            tasks.append(self._reader)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._reader = None


class MessageChannel:
    """Pair of linked ports: port1 stays with the host, port2 goes to the widget."""

    def __init__(self):
        self.port1 = MessagePort("port1")
        self.port2 = MessagePort("port2")
        self.port1._link(self.port2)
        self.port2._link(self.port1)

    async def close(self) -> None:
        await self.port1.close()
        await self.port2.close()
