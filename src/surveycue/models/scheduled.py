"""ScheduledSurvey -- 延迟展示的问卷记录

文件 users/<safeUser>/surveys/scheduled.json：
{"scheduled": [{"id": ruleId, "userId": ..., "sessionId": ..., "scheduledAt": ..., "triggerAt": ...}]}

session_id 是调度发生时的会话，创建后不再改写；跨会话恢复时按原 session_id 删除。
"""

from datetime import datetime

from pydantic import ConfigDict, Field

from .base import CamelModel, UtcDatetime
from .event import utcnow


class ScheduledSurvey(CamelModel):
    """一条延迟问卷"""

    model_config = ConfigDict(frozen=True)

    rule_id: str = Field(alias="id", description="规则 ID")
    user_id: str | None = Field(default=None, description="用户 ID")
    session_id: str = Field(description="调度时的会话 ID")
    scheduled_at: UtcDatetime = Field(description="调度时间")
    trigger_at: UtcDatetime = Field(description="应展示时间")

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) > self.trigger_at

    def remaining_delay(self, now: datetime | None = None) -> float:
        """距离 trigger_at 的秒数，下限为 0"""
        return max(0.0, (self.trigger_at - (now or utcnow())).total_seconds())


class ScheduledDocument(CamelModel):
    """scheduled.json 文档"""

    scheduled: list[ScheduledSurvey] = Field(default_factory=list)
