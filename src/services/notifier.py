"""
リアルタイム通知

名前付きイベントを現在の購読者へ配信します（at-most-once、未配信イベントは保持しない）。
"""

import asyncio
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from src.config.logging import get_logger
from src.config.settings import get_settings

logger = get_logger(__name__)

RESOURCES_UPDATED = "resources_updated"
DISASTER_APPROVED = "disaster_approved"


@dataclass
class Event:
    """配信イベント"""

    name: str
    payload: dict[str, Any] = field(default_factory=dict)

    def to_message(self) -> dict[str, Any]:
        return {"event": self.name, "payload": self.payload}


class Subscription:
    """購読者ごとの受信キュー"""

    def __init__(self, events: frozenset[str] | None, maxsize: int):
        self.events = events
        self.queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=maxsize)

    def accepts(self, event: Event) -> bool:
        return self.events is None or event.name in self.events

    async def get(self) -> Event:
        return await self.queue.get()


class EventBroadcaster:
    """イベント配信ハブ"""

    def __init__(self, queue_size: int | None = None):
        if queue_size is None:
            queue_size = get_settings().notification_queue_size
        self.queue_size = queue_size
        self._subscriptions: set[Subscription] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, *events: str, maxsize: int | None = None) -> Subscription:
        """購読を開始

        Args:
            *events: 受信するイベント名（省略時はすべて）
            maxsize: キューサイズ（0 で無制限、省略時は設定値）
        """
        subscription = Subscription(
            frozenset(events) or None, self.queue_size if maxsize is None else maxsize
        )
        self._subscriptions.add(subscription)
        logger.debug(f"Subscriber added: total={len(self._subscriptions)}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """購読を解除"""
        self._subscriptions.discard(subscription)
        logger.debug(f"Subscriber removed: total={len(self._subscriptions)}")

    def publish(self, name: str, payload: dict[str, Any] | None = None) -> int:
        """イベントを配信

        キューが満杯の購読者には配信せず破棄します。

        Returns:
            配信できた購読者数
        """
        event = Event(name=name, payload=payload or {})
        delivered = 0
        for subscription in list(self._subscriptions):
            if not subscription.accepts(event):
                continue
            try:
                subscription.queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(f"Subscriber queue full, dropping event: {name}")

        logger.info(
            f"Event published: {name} -> {delivered} subscribers",
            extra={"event": name, "disaster_id": event.payload.get("disaster_id")},
        )
        return delivered


@lru_cache()
def get_broadcaster() -> EventBroadcaster:
    """EventBroadcaster を取得（シングルトン）"""
    return EventBroadcaster()
