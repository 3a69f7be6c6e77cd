"""EventRecorder -- 宿主应用的事件记录入口

显式构造、显式传递（不使用全局单例）。
组合 SessionCoordinator（当前会话）、StoreGroup（事件/门控/调度存储）
与 EventHub（事件流 + 会话生命周期流）。
"""

import asyncio
from pathlib import Path

import structlog

from ..config import SCHEDULED_MAX_AGE_S, get_data_dir
from ..models.enums import SessionLifecycle
from ..models.event import Event, EventSession, SessionLifecycleEvent
from ..models.retention import RetentionPolicy
from ..models.values import EventValue
from ..store import StoreGroup, create_store_group
from .event_hub import EVENTS_TOPIC, SESSIONS_TOPIC, EventHub
from .session_coordinator import SessionCoordinator

log = structlog.get_logger()


class EventRecorder:
    """事件记录器

    Args:
        directory: 存储根目录，缺省取 SURVEYCUE_DATA_DIR
        retention_policy: 会话保留策略，缺省 standard
    """

    def __init__(
        self,
        directory: str | Path | None = None,
        retention_policy: RetentionPolicy | None = None,
    ) -> None:
        base_dir = Path(directory) if directory is not None else get_data_dir()
        self.stores: StoreGroup = create_store_group(base_dir)
        self.hub = EventHub()
        self._coordinator = SessionCoordinator(
            self.stores.event_store,
            retention_policy or RetentionPolicy.standard(),
        )

    @property
    def storage_base_dir(self) -> Path:
        return self.stores.base_dir

    @property
    def retention_policy(self) -> RetentionPolicy:
        return self._coordinator.retention_policy

    # ============================================================
    # 会话
    # ============================================================

    async def start_session(
        self,
        user_id: str | None = None,
        metadata: dict[str, EventValue] | None = None,
    ) -> EventSession:
        session, _ = await self._coordinator.start_session(user_id, metadata)
        await self.hub.broadcast(
            SESSIONS_TOPIC,
            SessionLifecycleEvent(kind=SessionLifecycle.STARTED, session=session),
        )
        return session

    async def end_session(self) -> EventSession | None:
        ended = await self._coordinator.end_session()
        await self.hub.broadcast(
            SESSIONS_TOPIC,
            SessionLifecycleEvent(kind=SessionLifecycle.ENDED, session=ended),
        )
        return ended

    async def current_session(self) -> EventSession | None:
        return self._coordinator.current

    # ============================================================
    # 事件
    # ============================================================

    async def record(
        self,
        name: str,
        properties: dict[str, EventValue] | None = None,
    ) -> Event:
        """记录事件并广播；无当前会话时先开启匿名会话"""
        event, auto_started = await self._coordinator.record(name, properties)
        if auto_started is not None:
            await self.hub.broadcast(
                SESSIONS_TOPIC,
                SessionLifecycleEvent(kind=SessionLifecycle.STARTED, session=auto_started),
            )
        await self.hub.broadcast(EVENTS_TOPIC, event)
        return event

    async def events_in_current_session(self) -> list[Event]:
        return await self._coordinator.events_in_current_session()

    async def all_events(self) -> list[Event]:
        return await self.stores.event_store.get_all_events()

    async def events_for_session(self, session_id: str) -> list[Event]:
        return await self.stores.event_store.get_events_for_session(session_id)

    async def list_all_sessions(self) -> list[EventSession]:
        return await self.stores.event_store.list_sessions(all_users=True)

    async def list_sessions(self, user_id: str | None) -> list[EventSession]:
        return await self.stores.event_store.list_sessions(user_id)

    async def clear(self) -> None:
        """删除全部数据（事件、会话、门控、调度）"""
        await self._coordinator.clear()

    async def apply_retention_policy(self) -> int:
        return await self._coordinator.apply_retention_policy()

    # ============================================================
    # 延迟问卷
    # ============================================================

    async def has_scheduled_surveys(self, user_id: str | None) -> bool:
        return await self.stores.scheduled_store.has_scheduled_surveys(user_id)

    async def cleanup_old_scheduled_surveys(
        self,
        older_than_seconds: float = SCHEDULED_MAX_AGE_S,
    ) -> int:
        return await self.stores.scheduled_store.cleanup_old_scheduled(older_than_seconds)

    # ============================================================
    # 订阅
    # ============================================================

    async def subscribe_events(self, queue: asyncio.Queue | None = None) -> asyncio.Queue:
        """订阅事件流"""
        return await self.hub.subscribe(EVENTS_TOPIC, queue)

    async def subscribe_sessions(self, queue: asyncio.Queue | None = None) -> asyncio.Queue:
        """订阅会话生命周期流（SessionLifecycleEvent）"""
        return await self.hub.subscribe(SESSIONS_TOPIC, queue)

    async def unsubscribe(self, queue: asyncio.Queue) -> None:
        await self.hub.unsubscribe(EVENTS_TOPIC, queue)
        await self.hub.unsubscribe(SESSIONS_TOPIC, queue)
