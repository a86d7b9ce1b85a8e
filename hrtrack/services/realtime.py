"""
In-process real-time channel.

Each connected WebSocket subscribes an asyncio.Queue for its employee id; `publish` pushes an
event onto every queue of the recipient. One ConnectionManager is created with the app and
handed to whoever needs to publish.
"""
import asyncio
import contextlib
import logging
from collections import defaultdict
from typing import Any, Dict, List, Protocol, Tuple

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    """Anything that can push an event to a recipient's live sessions."""

    def publish(self, recipient_id: int, event_name: str, payload: Dict[str, Any]) -> int:
        ...


class ConnectionManager:
    """Per-employee fan-out of events to subscribed queues."""

    def __init__(self) -> None:
        self._subscribers: Dict[int, List[Tuple[asyncio.AbstractEventLoop, asyncio.Queue]]] = defaultdict(list)

    def subscribe(self, recipient_id: int) -> asyncio.Queue:
        """Register a queue for `recipient_id`. Must be called from the event loop serving the socket."""
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers[recipient_id].append((asyncio.get_running_loop(), queue))
        logger.debug("subscribed: recipient_id=%s sessions=%s", recipient_id, len(self._subscribers[recipient_id]))
        return queue

    def unsubscribe(self, recipient_id: int, queue: asyncio.Queue) -> None:
        entries = self._subscribers.get(recipient_id, [])
        self._subscribers[recipient_id] = [(loop, q) for loop, q in entries if q is not queue]
        if not self._subscribers[recipient_id]:
            del self._subscribers[recipient_id]

    def connection_count(self, recipient_id: int) -> int:
        return len(self._subscribers.get(recipient_id, []))

    def publish(self, recipient_id: int, event_name: str, payload: Dict[str, Any]) -> int:
        """
        Queue `{event, data}` for every live session of the recipient without blocking.

        Safe to call from request worker threads.

        Returns:
            number of sessions the event was handed to
        """
        message = {"event": event_name, "data": payload}
        delivered = 0
        for loop, queue in list(self._subscribers.get(recipient_id, [])):
            if loop.is_closed():
                continue
            loop.call_soon_threadsafe(queue.put_nowait, message)
            delivered += 1
        return delivered


async def stop_task(task: asyncio.Task) -> None:
    """
    Cancel a per-connection sender task and wait for it to finish.

    A sender that already died (e.g. writing to a client that went away) has its error
    retrieved here and logged at debug, so asyncio does not report it as never retrieved.
    """
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        try:
            await task
        except Exception as e:
            logger.debug("live sender ended with error: %s", e)
