"""通知调度接口 -- 延迟问卷的本地通知

引擎只需要 schedule / cancel 两个操作，调用方式为后台任务（fire-and-forget），
失败只记录日志，永不阻塞问卷展示逻辑。平台通知能力由宿主实现本接口接入。
"""

from typing import Protocol

import structlog

from ..models.survey import NotificationConfig

log = structlog.get_logger()

NOTIFICATION_ID_PREFIX = "surveycue-survey"


def notification_identifier(rule_id: str, session_id: str) -> str:
    """通知唯一标识：surveycue-survey-<rule>-<session>"""
    return f"{NOTIFICATION_ID_PREFIX}-{rule_id}-{session_id}"


class NotificationScheduler(Protocol):
    """通知调度接口"""

    async def schedule(
        self,
        rule_id: str,
        session_id: str,
        config: NotificationConfig,
        delay_seconds: float,
    ) -> None:
        """登记一条延迟通知"""
        ...

    async def cancel(self, rule_id: str, session_id: str) -> None:
        """取消通知，不存在时忽略"""
        ...


class InMemoryNotificationScheduler:
    """内存中的通知调度器

    按标识去重：同一 (rule, session) 已登记时不重复添加。
    pending 中保存 (config, delay_seconds) 供宿主轮询或测试断言。
    """

    def __init__(self) -> None:
        self.pending: dict[str, tuple[NotificationConfig, float]] = {}

    async def schedule(
        self,
        rule_id: str,
        session_id: str,
        config: NotificationConfig,
        delay_seconds: float,
    ) -> None:
        identifier = notification_identifier(rule_id, session_id)
        if identifier in self.pending:
            log.info("notification_already_scheduled", identifier=identifier)
            return
        self.pending[identifier] = (config, delay_seconds)
        log.info(
            "notification_scheduled",
            identifier=identifier,
            title=config.title,
            delay_seconds=delay_seconds,
        )

    async def cancel(self, rule_id: str, session_id: str) -> None:
        identifier = notification_identifier(rule_id, session_id)
        if self.pending.pop(identifier, None) is not None:
            log.info("notification_cancelled", identifier=identifier)

    async def cancel_all(self) -> None:
        self.pending.clear()
