"""EventStore 文件实现 -- 每会话一个 append-only events.jsonl

一行一个 Event JSON；会话元数据写 session.json（整体原子替换）。
损坏的行跳过并记录日志，不影响其余事件读取。
"""

import asyncio
import shutil
from pathlib import Path

import structlog
from pydantic import ValidationError

from ..models.event import Event, EventSession
from .documents import FileLockRegistry, read_document, write_document
from .paths import StorageLayout

log = structlog.get_logger()


def _append_line(path: Path, line: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        f.write(line + "\n")


def _read_lines(path: Path) -> list[str]:
    try:
        return path.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError:
        return []


class JsonlEventStore:
    """事件与会话元数据的文件存储"""

    def __init__(
        self,
        layout: StorageLayout,
        locks: FileLockRegistry | None = None,
    ) -> None:
        self._layout = layout
        self._locks = locks or FileLockRegistry()

    # ============================================================
    # 事件
    # ============================================================

    async def append_event(self, event: Event) -> bool:
        """追加事件（append-only），写失败只记录日志"""
        path = self._layout.events_path(event.user_id, event.session_id)
        line = event.model_dump_json(by_alias=True, exclude_none=True)
        async with self._locks.lock_for(path):
            try:
                await asyncio.to_thread(_append_line, path, line)
            except OSError as e:
                log.warning(
                    "event_append_failed",
                    event_name=event.name,
                    session_id=event.session_id,
                    error_type=type(e).__name__,
                )
                return False
        return True

    async def _read_events(self, path: Path) -> list[Event]:
        async with self._locks.lock_for(path):
            try:
                lines = await asyncio.to_thread(_read_lines, path)
            except OSError as e:
                log.warning("event_read_failed", path=str(path), error_type=type(e).__name__)
                return []

        events: list[Event] = []
        for lineno, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                events.append(Event.model_validate_json(line))
            except ValidationError:
                log.warning("event_line_corrupt", path=str(path), line=lineno)
        return events

    async def get_events_for_session(
        self, session_id: str, user_id: str | None = None
    ) -> list[Event]:
        """查询会话的全部事件（按写入顺序）

        user_id 缺省时在所有用户目录中查找该会话。
        """
        if user_id is not None:
            return await self._read_events(self._layout.events_path(user_id, session_id))
        for session_dir in self._session_dirs():
            if session_dir.name == session_id:
                return await self._read_events(session_dir / "events.jsonl")
        return []

    async def get_all_events(self) -> list[Event]:
        """所有会话的事件，按时间排序"""
        events: list[Event] = []
        for session_dir in self._session_dirs():
            events.extend(await self._read_events(session_dir / "events.jsonl"))
        events.sort(key=lambda e: e.timestamp)
        return events

    # ============================================================
    # 会话元数据
    # ============================================================

    async def save_session(self, session: EventSession) -> bool:
        path = self._layout.session_meta_path(session.user_id, session.id)
        async with self._locks.lock_for(path):
            return await write_document(path, session)

    async def list_sessions(
        self,
        user_id: str | None = None,
        *,
        all_users: bool = False,
    ) -> list[EventSession]:
        """列出会话，按 startedAt 排序"""
        if all_users:
            dirs = self._session_dirs()
        else:
            sessions_dir = self._layout.sessions_dir(user_id)
            dirs = []
            if sessions_dir.is_dir():
                dirs = sorted(p for p in sessions_dir.iterdir() if p.is_dir())

        sessions: list[EventSession] = []
        for session_dir in dirs:
            path = session_dir / "session.json"
            async with self._locks.lock_for(path):
                session = await read_document(path, EventSession)
            if session is not None:
                sessions.append(session)
        sessions.sort(key=lambda s: s.started_at)
        return sessions

    async def delete_session(self, session: EventSession) -> None:
        """删除会话目录（事件 + 元数据）"""
        session_dir = self._layout.session_dir(session.user_id, session.id)
        try:
            await asyncio.to_thread(shutil.rmtree, session_dir, True)
        except OSError as e:
            log.warning("session_delete_failed", session_id=session.id, error_type=type(e).__name__)

    async def clear(self) -> None:
        """删除全部存储数据"""
        base_dir = self._layout.base_dir
        try:
            await asyncio.to_thread(shutil.rmtree, base_dir, True)
        except OSError as e:
            log.warning("store_clear_failed", path=str(base_dir), error_type=type(e).__name__)

    def _session_dirs(self) -> list[Path]:
        dirs: list[Path] = []
        for user_folder in self._layout.user_folders():
            sessions_dir = user_folder / "sessions"
            if sessions_dir.is_dir():
                dirs.extend(p for p in sessions_dir.iterdir() if p.is_dir())
        return sorted(dirs)
