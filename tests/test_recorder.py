"""EventRecorder / SessionCoordinator 测试

测试内容：
1. 会话开启/结束与元数据持久化
2. 首个事件惰性创建匿名会话
3. 事件流与会话生命周期流
4. 查询、清空与保留策略
"""

import asyncio
import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

from surveycue.models import EventSession, RetentionPolicy, SessionLifecycle
from surveycue.services import EventRecorder
from surveycue.store import StorageLayout


class TestSessions:
    async def test_start_and_end_session(self, recorder: EventRecorder):
        """开启会话写 session.json，结束时写 endedAt"""
        session = await recorder.start_session("u1", {"app": "1.0"})
        assert (await recorder.current_session()) == session

        meta_path = StorageLayout(recorder.storage_base_dir).session_meta_path("u1", session.id)
        assert json.loads(meta_path.read_text(encoding="utf-8"))["userId"] == "u1"

        ended = await recorder.end_session()
        assert ended.id == session.id
        assert ended.ended_at is not None
        assert await recorder.current_session() is None
        assert "endedAt" in json.loads(meta_path.read_text(encoding="utf-8"))

    async def test_end_without_session(self, recorder: EventRecorder):
        """无会话时结束返回 None"""
        assert await recorder.end_session() is None

    async def test_replacing_session_closes_previous(self, recorder: EventRecorder):
        """新会话替换旧会话时为旧会话写 endedAt"""
        first = await recorder.start_session("u1")
        second = await recorder.start_session("u1")
        assert (await recorder.current_session()).id == second.id
        sessions = {s.id: s for s in await recorder.list_sessions("u1")}
        assert sessions[first.id].ended_at is not None
        assert sessions[second.id].ended_at is None

    async def test_empty_user_id_is_anonymous(self, recorder: EventRecorder):
        """空串 userId 视为匿名"""
        session = await recorder.start_session("")
        assert session.user_id is None


class TestRecording:
    async def test_record_auto_starts_anonymous_session(self, recorder: EventRecorder):
        """首个事件自动开启匿名会话"""
        event = await recorder.record("app_open")
        session = await recorder.current_session()
        assert session is not None
        assert session.user_id is None
        assert event.session_id == session.id
        assert event.user_id is None

        events_path = StorageLayout(recorder.storage_base_dir).events_path(None, session.id)
        assert events_path.exists()

    async def test_events_carry_session_user(self, recorder: EventRecorder):
        """事件继承当前会话的用户"""
        session = await recorder.start_session("u1")
        await recorder.record("scan", {"count": 1})
        await recorder.record("scan", {"count": 2})
        events = await recorder.events_in_current_session()
        assert [e.properties["count"] for e in events] == [1, 2]
        assert all(e.user_id == "u1" and e.session_id == session.id for e in events)

    async def test_all_events_and_by_session(self, recorder: EventRecorder):
        """跨会话查询事件"""
        s1 = await recorder.start_session("u1")
        await recorder.record("a")
        s2 = await recorder.start_session("u2")
        await recorder.record("b")

        names = [e.name for e in await recorder.all_events()]
        assert names == ["a", "b"]
        assert [e.name for e in await recorder.events_for_session(s1.id)] == ["a"]
        assert [e.name for e in await recorder.events_for_session(s2.id)] == ["b"]
        assert await recorder.events_for_session("missing") == []

    async def test_corrupt_event_line_skipped(self, recorder: EventRecorder):
        """损坏的事件行被跳过"""
        session = await recorder.start_session("u1")
        await recorder.record("a")
        path = StorageLayout(recorder.storage_base_dir).events_path("u1", session.id)
        with path.open("a", encoding="utf-8") as f:
            f.write("{oops\n")
        await recorder.record("b")
        assert [e.name for e in await recorder.events_in_current_session()] == ["a", "b"]

    async def test_clear(self, recorder: EventRecorder):
        """clear 删除全部数据"""
        await recorder.start_session("u1")
        await recorder.record("a")
        await recorder.clear()
        assert await recorder.current_session() is None
        assert await recorder.all_events() == []
        assert await recorder.list_all_sessions() == []


class TestStreams:
    async def test_event_stream(self, recorder: EventRecorder):
        """订阅者按顺序收到事件"""
        queue = await recorder.subscribe_events()
        await recorder.start_session("u1")
        await recorder.record("a")
        await recorder.record("b")
        received = [queue.get_nowait().name, queue.get_nowait().name]
        assert received == ["a", "b"]

    async def test_session_lifecycle_stream(self, recorder: EventRecorder):
        """生命周期流：started / ended"""
        queue = await recorder.subscribe_sessions()
        session = await recorder.start_session("u1")
        await recorder.end_session()

        started = await asyncio.wait_for(queue.get(), timeout=1)
        ended = await asyncio.wait_for(queue.get(), timeout=1)
        assert started.kind == SessionLifecycle.STARTED
        assert started.session.id == session.id
        assert ended.kind == SessionLifecycle.ENDED
        assert ended.session.id == session.id

    async def test_auto_start_published_before_event(self, recorder: EventRecorder):
        """惰性开启的会话先于事件发布到共享队列"""
        queue: asyncio.Queue = asyncio.Queue()
        await recorder.subscribe_sessions(queue)
        await recorder.subscribe_events(queue)
        await recorder.record("first")
        first = queue.get_nowait()
        second = queue.get_nowait()
        assert first.kind == SessionLifecycle.STARTED
        assert second.name == "first"

    async def test_unsubscribe(self, recorder: EventRecorder):
        """取消订阅后不再收到"""
        queue = await recorder.subscribe_events()
        await recorder.unsubscribe(queue)
        await recorder.record("a")
        assert queue.empty()


class TestRetention:
    def _seed_session(self, base: Path, user_id: str, age_seconds: float) -> EventSession:
        started = datetime.now(UTC) - timedelta(seconds=age_seconds)
        session = EventSession(user_id=user_id, started_at=started, ended_at=started)
        path = StorageLayout(base).session_meta_path(user_id, session.id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(session.to_json(), encoding="utf-8")
        return session

    async def test_age_based_cleanup(self, store_dir: Path):
        """超龄会话在开启新会话时被删除"""
        old = self._seed_session(store_dir, "u1", 10 * 24 * 3600)
        recent = self._seed_session(store_dir, "u1", 3600)
        recorder = EventRecorder(store_dir, retention_policy=RetentionPolicy.aggressive())

        current = await recorder.start_session("u1")

        ids = {s.id for s in await recorder.list_sessions("u1")}
        assert old.id not in ids
        assert {recent.id, current.id} <= ids

    async def test_count_based_cleanup(self, store_dir: Path):
        """开启新会话前每用户只保留最新 N 个会话"""
        seeded = [self._seed_session(store_dir, "u1", 3600 * (10 - i)) for i in range(5)]
        policy = RetentionPolicy(max_sessions_per_user=3)
        recorder = EventRecorder(store_dir, retention_policy=policy)

        current = await recorder.start_session("u1")

        remaining = [s.id for s in await recorder.list_sessions("u1")]
        assert remaining == [seeded[2].id, seeded[3].id, seeded[4].id, current.id]

    async def test_replaced_session_survives_count_cleanup(self, store_dir: Path):
        """清理在替换前执行：刚被替换的会话不会被删除"""
        recorder = EventRecorder(store_dir, retention_policy=RetentionPolicy(max_sessions_per_user=1))
        first = await recorder.start_session("u1")
        second = await recorder.start_session("u1")

        sessions = await recorder.list_sessions("u1")
        assert [s.id for s in sessions] == [first.id, second.id]
        assert sessions[0].ended_at is not None

        # 下一次开启会话时，已结束的旧会话超出上限被清理
        third = await recorder.start_session("u1")
        assert [s.id for s in await recorder.list_sessions("u1")] == [second.id, third.id]

    async def test_current_session_never_deleted(self, store_dir: Path):
        """当前会话不会被清理"""
        recorder = EventRecorder(store_dir, retention_policy=RetentionPolicy(max_sessions_per_user=0))
        current = await recorder.start_session("u1")
        await recorder.apply_retention_policy()
        assert [s.id for s in await recorder.list_sessions("u1")] == [current.id]

    async def test_disabled_automatic_cleanup(self, store_dir: Path):
        """关闭自动清理时保留全部，手动触发仍生效"""
        old = self._seed_session(store_dir, "u1", 10 * 24 * 3600)
        policy = RetentionPolicy(max_age_seconds=24 * 3600, automatic_cleanup_enabled=False)
        recorder = EventRecorder(store_dir, retention_policy=policy)
        await recorder.start_session("u1")
        assert old.id in {s.id for s in await recorder.list_sessions("u1")}

        assert await recorder.apply_retention_policy() == 1
        assert old.id not in {s.id for s in await recorder.list_sessions("u1")}


class TestScheduledHelpers:
    async def test_has_and_cleanup_scheduled(self, recorder: EventRecorder):
        """has_scheduled_surveys / cleanup_old_scheduled_surveys"""
        store = recorder.stores.scheduled_store
        await store.schedule_for_later("r1", "u1", "s1", 60)
        assert await recorder.has_scheduled_surveys("u1")
        assert await recorder.cleanup_old_scheduled_surveys(older_than_seconds=0) == 1
        assert not await recorder.has_scheduled_surveys("u1")
