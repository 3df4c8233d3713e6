"""
In-process change feed for new chat messages
"""

import asyncio
import threading
from typing import Dict, Set

from ..core.logging import get_logger

logger = get_logger(__name__)


class ChatSubscription:
    """One live listener on a chat; events are queued for the listener's event loop"""

    def __init__(self, hub: "ChatHub", chat_id: str, loop: asyncio.AbstractEventLoop):
        self.hub = hub
        self.chat_id = chat_id
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue()

    def deliver(self, payload: dict) -> None:
        self.loop.call_soon_threadsafe(self.queue.put_nowait, payload)

    async def get(self) -> dict:
        return await self.queue.get()

    def close(self) -> None:
        self.hub.unsubscribe(self)


class ChatHub:
    def __init__(self):
        self._subscribers: Dict[str, Set[ChatSubscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, chat_id: str) -> ChatSubscription:
        """Must be called from the listener's running event loop"""
        subscription = ChatSubscription(self, chat_id, asyncio.get_running_loop())
        with self._lock:
            self._subscribers.setdefault(chat_id, set()).add(subscription)
        return subscription

    def unsubscribe(self, subscription: ChatSubscription) -> None:
        with self._lock:
            subs = self._subscribers.get(subscription.chat_id)
            if subs:
                subs.discard(subscription)
                if not subs:
                    del self._subscribers[subscription.chat_id]

    def listener_count(self, chat_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(chat_id, ()))

    def publish(self, chat_id: str, payload: dict) -> int:
        """Queue an INSERT event for every listener on chat_id; safe from any thread"""
        with self._lock:
            subs = list(self._subscribers.get(chat_id, ()))
        for subscription in subs:
            try:
                subscription.deliver(payload)
            except RuntimeError as e:
                # Listener's loop already closed
                logger.warning(f"Dropping listener on chat {chat_id}: {e}")
                self.unsubscribe(subscription)
        return len(subs)


chat_hub = ChatHub()


def message_event(message) -> dict:
    return {
        "id": message.id,
        "chat_id": message.chat_id,
        "sender_id": message.sender_id,
        "content": message.content,
        "image_url": message.image_url,
        "is_read": message.is_read,
        "created_at": message.created_at.isoformat() if message.created_at else None,
    }
