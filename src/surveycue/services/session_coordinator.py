"""SessionCoordinator -- 当前会话的唯一所有者

- 同一进程同一时刻只有一个当前会话
- 首次 record 时若无会话，惰性创建匿名会话（唯一一处状态迁移）
- start_session 替换旧会话时为旧会话补写 endedAt
- 开启新会话时按 RetentionPolicy 自动清理
所有状态变更在同一把 asyncio.Lock 内完成。
"""

import asyncio
from datetime import timedelta

import structlog

from ..models.event import Event, EventSession, utcnow
from ..models.retention import RetentionPolicy
from ..models.values import EventValue
from ..store.event_store import JsonlEventStore

log = structlog.get_logger()


class SessionCoordinator:
    """会话生命周期与事件持久化"""

    def __init__(
        self,
        event_store: JsonlEventStore,
        retention_policy: RetentionPolicy,
    ) -> None:
        self._event_store = event_store
        self.retention_policy = retention_policy
        self._current: EventSession | None = None
        self._lock = asyncio.Lock()

    @property
    def current(self) -> EventSession | None:
        return self._current

    async def start_session(
        self,
        user_id: str | None = None,
        metadata: dict[str, EventValue] | None = None,
    ) -> tuple[EventSession, EventSession | None]:
        """开启新会话

        Returns:
            (新会话, 被替换的旧会话或 None)
        """
        async with self._lock:
            # 清理在替换之前执行，被替换的会话此时仍是当前会话，不会被删除
            if self.retention_policy.automatic_cleanup_enabled:
                await self._apply_retention()

            replaced = await self._close_current()
            session = EventSession(user_id=user_id or None, metadata=metadata)
            self._current = session
            await self._event_store.save_session(session)

        log.info("session_started", session_id=session.id, user_id=session.user_id)
        return session, replaced

    async def end_session(self) -> EventSession | None:
        """结束当前会话，返回已结束的会话"""
        async with self._lock:
            ended = await self._close_current()
        if ended is not None:
            log.info("session_ended", session_id=ended.id, user_id=ended.user_id)
        return ended

    async def _close_current(self) -> EventSession | None:
        if self._current is None:
            return None
        ended = self._current.ended()
        self._current = None
        await self._event_store.save_session(ended)
        return ended

    async def record(
        self,
        name: str,
        properties: dict[str, EventValue] | None = None,
    ) -> tuple[Event, EventSession | None]:
        """记录事件

        Returns:
            (事件, 本次惰性创建的匿名会话或 None)
        """
        async with self._lock:
            auto_started = None
            if self._current is None:
                auto_started = EventSession()
                self._current = auto_started
                await self._event_store.save_session(auto_started)
                log.info("anonymous_session_started", session_id=auto_started.id)

            session = self._current
            event = Event(
                name=name,
                properties=properties,
                session_id=session.id,
                user_id=session.user_id,
            )
            await self._event_store.append_event(event)
        return event, auto_started

    async def events_in_current_session(self) -> list[Event]:
        session = self._current
        if session is None:
            return []
        return await self._event_store.get_events_for_session(session.id, session.user_id)

    async def apply_retention_policy(self) -> int:
        """手动执行保留策略清理

        Returns:
            删除的会话数
        """
        async with self._lock:
            return await self._apply_retention()

    async def _apply_retention(self) -> int:
        policy = self.retention_policy
        if policy.max_age_seconds is None and policy.max_sessions_per_user is None:
            return 0

        current_id = self._current.id if self._current else None
        sessions = await self._event_store.list_sessions(all_users=True)
        doomed: dict[str, EventSession] = {}

        if policy.max_age_seconds is not None:
            cutoff = utcnow() - timedelta(seconds=policy.max_age_seconds)
            for s in sessions:
                if s.id != current_id and s.started_at < cutoff:
                    doomed[s.id] = s

        if policy.max_sessions_per_user is not None:
            by_user: dict[str | None, list[EventSession]] = {}
            for s in sessions:
                if s.id not in doomed:
                    by_user.setdefault(s.user_id, []).append(s)
            for user_sessions in by_user.values():
                # sessions 已按 startedAt 升序，保留最新的 N 个
                overflow = len(user_sessions) - policy.max_sessions_per_user
                for s in user_sessions:
                    if overflow <= 0:
                        break
                    if s.id == current_id:
                        continue
                    doomed[s.id] = s
                    overflow -= 1

        for s in doomed.values():
            await self._event_store.delete_session(s)

        if doomed:
            log.info(
                "retention_cleanup_completed",
                removed_sessions=len(doomed),
                max_age_seconds=policy.max_age_seconds,
                max_sessions_per_user=policy.max_sessions_per_user,
            )
        return len(doomed)

    async def clear(self) -> None:
        """删除全部数据并丢弃当前会话"""
        async with self._lock:
            self._current = None
            await self._event_store.clear()
        log.info("event_store_cleared")
