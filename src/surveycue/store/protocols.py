"""Store Protocol 接口定义

定义 GatingStore、ScheduledSurveyStore 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

from typing import Protocol

from ..models.gating import GatingRecord
from ..models.scheduled import ScheduledSurvey


class GatingStore(Protocol):
    """门控存储接口 -- 规则能否展示的唯一权威"""

    async def can_show(
        self,
        rule_id: str,
        user_id: str | None,
        *,
        once_per_user: bool = False,
        cooldown_seconds: float | None = None,
        max_attempts: int | None = None,
        attempt_cooldown_seconds: float | None = None,
    ) -> bool:
        """判断规则当前能否展示，无副作用"""
        ...

    async def mark_shown(self, rule_id: str, user_id: str | None) -> GatingRecord:
        """记录一次展示"""
        ...

    async def mark_completed(self, rule_id: str, user_id: str | None) -> GatingRecord:
        """记录完成（幂等）"""
        ...


class ScheduledSurveyStore(Protocol):
    """延迟问卷存储接口"""

    async def schedule_for_later(
        self,
        rule_id: str,
        user_id: str | None,
        session_id: str,
        delay_seconds: float,
    ) -> ScheduledSurvey:
        """登记延迟问卷（同 ruleId+sessionId 替换）"""
        ...

    async def get_all_pending_surveys(self, user_id: str | None) -> list[ScheduledSurvey]:
        """跨会话查询未到期记录"""
        ...

    async def get_all_triggered_surveys(self, user_id: str | None) -> list[ScheduledSurvey]:
        """跨会话查询已到期记录"""
        ...

    async def remove_scheduled(
        self,
        rule_id: str,
        session_id: str,
        user_id: str | None,
    ) -> bool:
        """按 (ruleId, sessionId) 删除"""
        ...

    async def cleanup_old_scheduled(self, older_than_seconds: float = ...) -> int:
        """按 scheduledAt 清理过旧记录"""
        ...
