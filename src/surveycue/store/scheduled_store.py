"""ScheduledSurveyStore 文件实现 -- 每用户一个 scheduled.json

同一 (ruleId, sessionId) 至多一条记录：重复调度替换旧记录。
会话级查询按 sessionId 过滤；All 系列跨会话查询，用于进程重启后的恢复。
"""

from datetime import timedelta

import structlog

from ..config import SCHEDULED_MAX_AGE_S
from ..models.event import utcnow
from ..models.scheduled import ScheduledDocument, ScheduledSurvey
from .documents import FileLockRegistry, read_document, remove_document, write_document
from .paths import StorageLayout

log = structlog.get_logger()


class JsonScheduledSurveyStore:
    """ScheduledSurveyStore 的 JSON 文件实现"""

    def __init__(
        self,
        layout: StorageLayout,
        locks: FileLockRegistry | None = None,
    ) -> None:
        self._layout = layout
        self._locks = locks or FileLockRegistry()

    async def _load(self, user_id: str | None) -> ScheduledDocument:
        doc = await read_document(self._layout.scheduled_path(user_id), ScheduledDocument)
        return doc if doc is not None else ScheduledDocument()

    async def _entries(self, user_id: str | None) -> list[ScheduledSurvey]:
        path = self._layout.scheduled_path(user_id)
        async with self._locks.lock_for(path):
            doc = await self._load(user_id)
        return doc.scheduled

    async def schedule_for_later(
        self,
        rule_id: str,
        user_id: str | None,
        session_id: str,
        delay_seconds: float,
    ) -> ScheduledSurvey:
        """登记延迟问卷，triggerAt = now + delay

        delay 允许为负（立即过期），便于恢复逻辑测试与补偿。
        """
        now = utcnow()
        entry = ScheduledSurvey(
            rule_id=rule_id,
            user_id=user_id,
            session_id=session_id,
            scheduled_at=now,
            trigger_at=now + timedelta(seconds=delay_seconds),
        )
        path = self._layout.scheduled_path(user_id)
        async with self._locks.lock_for(path):
            doc = await self._load(user_id)
            doc.scheduled = [
                s
                for s in doc.scheduled
                if not (s.rule_id == rule_id and s.session_id == session_id)
            ]
            doc.scheduled.append(entry)
            await write_document(path, doc)

        log.info(
            "survey_scheduled",
            rule_id=rule_id,
            user_id=user_id,
            session_id=session_id,
            delay_seconds=delay_seconds,
        )
        return entry

    async def get_pending_surveys(
        self, user_id: str | None, session_id: str
    ) -> list[ScheduledSurvey]:
        """当前会话中尚未到期的记录"""
        now = utcnow()
        return [
            s
            for s in await self._entries(user_id)
            if s.session_id == session_id and not s.is_expired(now)
        ]

    async def get_triggered_surveys(
        self, user_id: str | None, session_id: str
    ) -> list[ScheduledSurvey]:
        """当前会话中已到期的记录"""
        now = utcnow()
        return [
            s
            for s in await self._entries(user_id)
            if s.session_id == session_id and s.is_expired(now)
        ]

    async def get_all_pending_surveys(self, user_id: str | None) -> list[ScheduledSurvey]:
        """跨会话：尚未到期的记录"""
        now = utcnow()
        return [s for s in await self._entries(user_id) if not s.is_expired(now)]

    async def get_all_triggered_surveys(self, user_id: str | None) -> list[ScheduledSurvey]:
        """跨会话：已到期的记录"""
        now = utcnow()
        return [s for s in await self._entries(user_id) if s.is_expired(now)]

    async def has_scheduled_surveys(self, user_id: str | None) -> bool:
        return bool(await self._entries(user_id))

    async def remove_scheduled(
        self,
        rule_id: str,
        session_id: str,
        user_id: str | None,
    ) -> bool:
        """按 (ruleId, sessionId) 删除，不存在时 no-op

        Returns:
            是否删除了记录
        """
        path = self._layout.scheduled_path(user_id)
        async with self._locks.lock_for(path):
            doc = await self._load(user_id)
            remaining = [
                s
                for s in doc.scheduled
                if not (s.rule_id == rule_id and s.session_id == session_id)
            ]
            if len(remaining) == len(doc.scheduled):
                return False
            doc.scheduled = remaining
            await write_document(path, doc)
        return True

    async def cleanup_old_scheduled(
        self,
        older_than_seconds: float = SCHEDULED_MAX_AGE_S,
    ) -> int:
        """清理所有用户中 scheduledAt 早于阈值的记录，与是否到期无关

        Returns:
            删除的记录数
        """
        cutoff = utcnow() - timedelta(seconds=older_than_seconds)
        removed_total = 0
        for user_folder in self._layout.user_folders():
            path = user_folder / "surveys" / "scheduled.json"
            if not path.exists():
                continue
            async with self._locks.lock_for(path):
                doc = await read_document(path, ScheduledDocument)
                if doc is None:
                    continue
                kept = [s for s in doc.scheduled if s.scheduled_at >= cutoff]
                removed = len(doc.scheduled) - len(kept)
                if removed == 0:
                    continue
                if kept:
                    doc.scheduled = kept
                    await write_document(path, doc)
                else:
                    await remove_document(path)
                removed_total += removed

        if removed_total:
            log.info(
                "scheduled_cleanup_completed",
                removed=removed_total,
                older_than_seconds=older_than_seconds,
            )
        return removed_total
