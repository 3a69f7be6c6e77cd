"""Event / EventSession 数据模型

事件创建后不可变，按会话追加到 events.jsonl。
会话由 start_session 创建，end_session 写入 endedAt（只写一次）。
"""

from datetime import UTC, datetime

from pydantic import ConfigDict, Field
from ulid import ULID

from .base import CamelModel, UtcDatetime
from .enums import SessionLifecycle
from .values import EventValue


def new_id() -> str:
    """ULID 格式唯一标识，时间有序"""
    return str(ULID())


def utcnow() -> datetime:
    return datetime.now(UTC)


class Event(CamelModel):
    """一次被记录的事件"""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id, description="唯一标识，ULID 格式")
    name: str = Field(description="事件名")
    timestamp: UtcDatetime = Field(default_factory=utcnow, description="记录时间")
    properties: dict[str, EventValue] | None = Field(
        default=None,
        description="属性包",
    )
    session_id: str = Field(description="所属会话 ID")
    user_id: str | None = Field(default=None, description="用户 ID，None 表示匿名")


class EventSession(CamelModel):
    """会话信封"""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id, description="唯一标识，ULID 格式")
    user_id: str | None = Field(default=None, description="用户 ID，None 表示匿名")
    metadata: dict[str, EventValue] | None = Field(default=None, description="会话元数据")
    started_at: UtcDatetime = Field(default_factory=utcnow, description="开始时间")
    ended_at: UtcDatetime | None = Field(default=None, description="结束时间")

    @property
    def is_ended(self) -> bool:
        return self.ended_at is not None

    def ended(self, at: datetime | None = None) -> "EventSession":
        """返回已结束的副本；已结束的会话原样返回"""
        if self.ended_at is not None:
            return self
        return self.model_copy(update={"ended_at": at or utcnow()})


class SessionLifecycleEvent(CamelModel):
    """会话生命周期通知 -- started(session) / ended(session | None)"""

    model_config = ConfigDict(frozen=True)

    kind: SessionLifecycle
    session: EventSession | None = None
