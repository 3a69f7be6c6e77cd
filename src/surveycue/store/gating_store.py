"""GatingStore 文件实现 -- 每用户一个 gating.json

canShow 判断顺序：
1. 无记录 -> 允许
2. completedOnce -> 永久拒绝
3. attemptCount >= maxAttempts -> 拒绝
4. oncePerUser -> 拒绝（有任何记录即拒绝）
5. 有效冷却 = attemptCooldownSeconds，缺省回退 cooldownSeconds；now < lastShownAt + 冷却 -> 拒绝
6. 允许

持久化失败一律吞掉：文件缺失/损坏时 canShow 放行（fail-open），写失败静默丢弃。
门控只是体验层策略，不是安全边界。
"""

from datetime import datetime

import structlog

from ..models.event import utcnow
from ..models.gating import GatingDocument, GatingRecord
from .documents import FileLockRegistry, read_document, write_document
from .paths import StorageLayout

log = structlog.get_logger()


class JsonGatingStore:
    """GatingStore 的 JSON 文件实现

    同一用户文件上的读-改-写通过 FileLockRegistry 串行化，
    同一进程内 can_show 总能看到最近一次 mark_shown/mark_completed 的结果。
    """

    def __init__(
        self,
        layout: StorageLayout,
        locks: FileLockRegistry | None = None,
    ) -> None:
        self._layout = layout
        self._locks = locks or FileLockRegistry()

    async def _load(self, user_id: str | None) -> GatingDocument:
        doc = await read_document(self._layout.gating_path(user_id), GatingDocument)
        return doc if doc is not None else GatingDocument()

    async def get_record(self, rule_id: str, user_id: str | None) -> GatingRecord | None:
        """查询单条门控记录"""
        path = self._layout.gating_path(user_id)
        async with self._locks.lock_for(path):
            doc = await self._load(user_id)
        return doc.rules.get(rule_id)

    async def can_show(
        self,
        rule_id: str,
        user_id: str | None,
        *,
        once_per_user: bool = False,
        cooldown_seconds: float | None = None,
        max_attempts: int | None = None,
        attempt_cooldown_seconds: float | None = None,
        now: datetime | None = None,
    ) -> bool:
        """判断规则当前能否展示，无副作用"""
        record = await self.get_record(rule_id, user_id)
        if record is None:
            return True
        return record.allows(
            now or utcnow(),
            once_per_user=once_per_user,
            cooldown_seconds=cooldown_seconds,
            max_attempts=max_attempts,
            attempt_cooldown_seconds=attempt_cooldown_seconds,
        )

    async def mark_shown(self, rule_id: str, user_id: str | None) -> GatingRecord:
        """记录一次展示：attemptCount + 1，刷新 lastShownAt"""
        path = self._layout.gating_path(user_id)
        async with self._locks.lock_for(path):
            doc = await self._load(user_id)
            now = utcnow()
            existing = doc.rules.get(rule_id)
            if existing is None:
                record = GatingRecord(last_shown_at=now, shown_once=True, attempt_count=1)
            else:
                record = existing.model_copy(
                    update={
                        "last_shown_at": now,
                        "shown_once": True,
                        "attempt_count": existing.attempt_count + 1,
                    }
                )
            doc.rules[rule_id] = record
            await write_document(path, doc)

        log.debug(
            "gating_mark_shown",
            rule_id=rule_id,
            user_id=user_id,
            attempt_count=record.attempt_count,
        )
        return record

    async def mark_completed(self, rule_id: str, user_id: str | None) -> GatingRecord:
        """记录完成，幂等；不重置 attemptCount"""
        path = self._layout.gating_path(user_id)
        async with self._locks.lock_for(path):
            doc = await self._load(user_id)
            existing = doc.rules.get(rule_id)
            if existing is None:
                record = GatingRecord(
                    last_shown_at=utcnow(),
                    shown_once=True,
                    attempt_count=1,
                    completed_once=True,
                )
            elif existing.completed_once:
                return existing
            else:
                record = existing.model_copy(update={"completed_once": True})
            doc.rules[rule_id] = record
            await write_document(path, doc)

        log.info("gating_mark_completed", rule_id=rule_id, user_id=user_id)
        return record
