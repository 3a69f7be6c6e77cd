"""GatingRecord -- 每用户、每规则的展示/完成记录

文件 users/<safeUser>/surveys/gating.json：
{"rules": {"<ruleId>": {"lastShownAt": ..., "shownOnce": true, "attemptCount": 1, "completedOnce": false}}}
"""

from datetime import datetime, timedelta

from pydantic import Field

from .base import CamelModel, UtcDatetime


class GatingRecord(CamelModel):
    """单条规则的门控记录

    completed_once 一旦为 True 永不清除。
    """

    last_shown_at: UtcDatetime = Field(description="最近一次展示时间")
    shown_once: bool = Field(default=True, description="是否展示过")
    attempt_count: int = Field(default=0, ge=0, description="展示次数")
    completed_once: bool = Field(default=False, description="是否已完成")

    def allows(
        self,
        now: datetime,
        *,
        once_per_user: bool = False,
        cooldown_seconds: float | None = None,
        max_attempts: int | None = None,
        attempt_cooldown_seconds: float | None = None,
    ) -> bool:
        """已有记录时的门控判断（顺序即优先级）"""
        if self.completed_once:
            return False
        if max_attempts is not None and self.attempt_count >= max_attempts:
            return False
        if once_per_user:
            return False
        cooldown = (
            attempt_cooldown_seconds
            if attempt_cooldown_seconds is not None
            else cooldown_seconds
        )
        if cooldown is not None and now < self.last_shown_at + timedelta(seconds=cooldown):
            return False
        return True


class GatingDocument(CamelModel):
    """gating.json 文档"""

    rules: dict[str, GatingRecord] = Field(default_factory=dict)
