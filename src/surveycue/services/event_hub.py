"""EventHub -- 内存中的事件/会话生命周期广播器

每个订阅者持有一个 asyncio.Queue，支持 subscribe/unsubscribe/broadcast。
同一个队列可以订阅多个主题，从而按发布顺序交错接收事件与生命周期通知。
"""

import asyncio
from collections import defaultdict
from typing import Any

import structlog

from ..config import EVENT_HUB_QUEUE_MAXSIZE

log = structlog.get_logger()

EVENTS_TOPIC = "events"
SESSIONS_TOPIC = "sessions"


class EventHub:
    """基于 asyncio.Queue 的发布/订阅"""

    def __init__(self, queue_maxsize: int = EVENT_HUB_QUEUE_MAXSIZE) -> None:
        # topic -> set of asyncio.Queue
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._queue_maxsize = queue_maxsize

    async def subscribe(self, topic: str, queue: asyncio.Queue | None = None) -> asyncio.Queue:
        """订阅主题

        Args:
            topic: EVENTS_TOPIC 或 SESSIONS_TOPIC
            queue: 复用已有队列；缺省新建一个有界队列

        Returns:
            asyncio.Queue 实例，新消息会被推送到此队列
        """
        if queue is None:
            queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._subscribers[topic].add(queue)
        return queue

    async def unsubscribe(self, topic: str, queue: asyncio.Queue) -> None:
        self._subscribers[topic].discard(queue)
        if not self._subscribers[topic]:
            del self._subscribers[topic]

    async def broadcast(self, topic: str, item: Any) -> None:
        """向主题的所有订阅者广播

        队列已满的订阅者视为失效并移除。
        """
        dead_queues = []
        for queue in self._subscribers.get(topic, set()):
            try:
                queue.put_nowait(item)
            except asyncio.QueueFull:
                dead_queues.append(queue)

        for q in dead_queues:
            self._subscribers[topic].discard(q)
            log.warning("subscriber_dropped", topic=topic, reason="queue_full")
        if topic in self._subscribers and not self._subscribers[topic]:
            del self._subscribers[topic]

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, set()))
