"""RetentionPolicy -- 事件与会话的自动清理策略"""

from pydantic import BaseModel, ConfigDict, Field

_DAY_S = 24 * 3600


class RetentionPolicy(BaseModel):
    """会话保留策略

    max_age_seconds: 按 startedAt 计算，超龄会话被删除
    max_sessions_per_user: 每个用户保留最新的 N 个会话
    automatic_cleanup_enabled: start_session 时是否自动清理
    """

    model_config = ConfigDict(frozen=True)

    max_age_seconds: float | None = Field(default=None, gt=0)
    max_sessions_per_user: int | None = Field(default=None, ge=0)
    automatic_cleanup_enabled: bool = True

    @classmethod
    def none(cls) -> "RetentionPolicy":
        """不清理，永久保留"""
        return cls(automatic_cleanup_enabled=False)

    @classmethod
    def conservative(cls) -> "RetentionPolicy":
        """90 天 / 100 个会话"""
        return cls(max_age_seconds=90 * _DAY_S, max_sessions_per_user=100)

    @classmethod
    def standard(cls) -> "RetentionPolicy":
        """30 天 / 50 个会话"""
        return cls(max_age_seconds=30 * _DAY_S, max_sessions_per_user=50)

    @classmethod
    def aggressive(cls) -> "RetentionPolicy":
        """7 天 / 20 个会话"""
        return cls(max_age_seconds=7 * _DAY_S, max_sessions_per_user=20)

    @classmethod
    def from_name(cls, name: str) -> "RetentionPolicy":
        """按预设名构造（CLI 使用）"""
        presets = {
            "none": cls.none,
            "conservative": cls.conservative,
            "standard": cls.standard,
            "aggressive": cls.aggressive,
        }
        if name not in presets:
            raise ValueError(f"未知保留策略: {name}")
        return presets[name]()
