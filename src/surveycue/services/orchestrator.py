"""SurveyOrchestrator -- 事件驱动的问卷触发与门控编排

单消费者按到达顺序处理事件流与会话生命周期流：

每个事件：
1. 会话 ID 变化 -> 清空本会话已展示集合，取消旧会话的延迟计时器（持久化记录保留）
2. 按声明顺序找到第一条满足条件的规则：本会话未展示过（oncePerSession）、
   触发条件匹配、GatingStore.can_show 放行；每个事件至多激活一条
3. 有正数 scheduleAfterSeconds -> 持久化调度记录并启动计时器；否则立即展示
4. 展示：加入已展示集合 -> mark_shown -> 记录 survey_presented 事件 -> 通知宿主

恢复（启动时与每次新会话开始时）：
- 当前用户跨会话已到期的记录：展示第一条规则仍存在的，按原 sessionId 删除，然后结束
- 否则为未到期记录按剩余时间重新启动计时器，不重复持久化
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Coroutine
from datetime import datetime
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ..models.debug import SurveyDebugConfig
from ..models.enums import PresentationSource, SessionLifecycle
from ..models.event import Event, SessionLifecycleEvent, utcnow
from ..models.submission import decode_combined_response
from ..models.survey import CombinedResponse, OptionsResponse, SurveyConfig, SurveyRule
from .config_manager import SurveyConfigManager
from .notifications import NotificationScheduler
from .recorder import EventRecorder

log = structlog.get_logger()


class SurveyPresentation(BaseModel):
    """交给宿主渲染的一次展示"""

    model_config = ConfigDict(frozen=True)

    rule: SurveyRule
    session_id: str = Field(description="展示时的当前会话")
    user_id: str | None = None
    source: PresentationSource
    presented_at: datetime = Field(default_factory=utcnow)


PresentHandler = Callable[[SurveyPresentation], Awaitable[None] | None]


class SurveyOrchestrator:
    """问卷触发编排器

    Args:
        recorder: 事件来源与当前会话访问器
        config: 问卷配置；与 config_manager 二选一
        config_manager: 提供配置并推送更新
        debug_config: 调试覆盖，缺省 production
        notification_scheduler: 延迟问卷的通知调度，缺省不发通知
        on_present: 展示回调（同步或异步）
    """

    def __init__(
        self,
        recorder: EventRecorder,
        config: SurveyConfig | None = None,
        *,
        config_manager: SurveyConfigManager | None = None,
        debug_config: SurveyDebugConfig | None = None,
        notification_scheduler: NotificationScheduler | None = None,
        on_present: PresentHandler | None = None,
    ) -> None:
        if config is None and config_manager is None:
            raise ValueError("需要提供 config 或 config_manager")
        self._recorder = recorder
        self._gating = recorder.stores.gating_store
        self._scheduled = recorder.stores.scheduled_store
        self._debug = debug_config or SurveyDebugConfig.production()
        self._notifier = notification_scheduler
        self._on_present = on_present

        self._config_manager = config_manager
        if config_manager is not None:
            config = config_manager.current_config
            config_manager.subscribe(self.update_config)
        self._config = self._debug.apply(config)

        self._shown_this_session: set[str] = set()
        self._last_session_id: str | None = None
        self._timers: dict[str, asyncio.Task] = {}
        self._background: set[asyncio.Task] = set()
        self._queue: asyncio.Queue | None = None
        self._consumer: asyncio.Task | None = None

        self.active_rule: SurveyRule | None = None
        self.last_presentation: SurveyPresentation | None = None

    @property
    def config(self) -> SurveyConfig:
        return self._config

    @property
    def debug_config(self) -> SurveyDebugConfig:
        return self._debug

    @property
    def is_presented(self) -> bool:
        return self.active_rule is not None

    @property
    def pending_timer_rule_ids(self) -> set[str]:
        return {rule_id for rule_id, task in self._timers.items() if not task.done()}

    def update_config(self, config: SurveyConfig) -> None:
        """替换规则集（重新应用调试覆盖）"""
        self._config = self._debug.apply(config)
        log.info("survey_config_updated", rules=len(self._config.surveys))

    # ============================================================
    # 生命周期
    # ============================================================

    async def start(self) -> None:
        """订阅事件流与会话流，执行一次恢复，启动消费任务"""
        if self._consumer is not None:
            return
        # 先订阅再恢复，恢复期间到达的事件在队列中等待
        self._queue = asyncio.Queue()
        await self._recorder.subscribe_sessions(self._queue)
        await self._recorder.subscribe_events(self._queue)

        session = await self._recorder.current_session()
        if session is not None:
            self._enter_session(session.id)
            await self.restore_pending_surveys()

        self._consumer = asyncio.create_task(self._consume(self._queue))
        log.info("survey_orchestrator_started", rules=len(self._config.surveys))

    async def stop(self) -> None:
        """停止消费并取消全部计时器与后台任务"""
        if self._queue is not None:
            await self._recorder.unsubscribe(self._queue)
        if self._config_manager is not None:
            self._config_manager.unsubscribe(self.update_config)

        tasks = [t for t in (self._consumer,) if t is not None]
        tasks.extend(self._timers.values())
        tasks.extend(self._background)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        self._consumer = None
        self._queue = None
        self._timers.clear()
        self._background.clear()

    async def wait_idle(self) -> None:
        """等待队列中已到达的事件全部处理完"""
        if self._queue is not None:
            await self._queue.join()

    async def _consume(self, queue: asyncio.Queue) -> None:
        while True:
            item = await queue.get()
            try:
                if isinstance(item, SessionLifecycleEvent):
                    await self._handle_lifecycle(item)
                elif isinstance(item, Event):
                    await self.process_event(item)
            except Exception as e:
                # 求值/展示中的任何错误都不中断后续事件的处理
                log.error(
                    "survey_event_processing_failed",
                    error_type=type(e).__name__,
                    error=str(e),
                    exc_info=True,
                )
            finally:
                queue.task_done()

    async def _handle_lifecycle(self, notice: SessionLifecycleEvent) -> None:
        if notice.kind == SessionLifecycle.STARTED and notice.session is not None:
            self._enter_session(notice.session.id)
            await self.restore_pending_surveys()
        elif notice.kind == SessionLifecycle.ENDED:
            self._leave_session()

    def _enter_session(self, session_id: str) -> None:
        if self._last_session_id == session_id:
            return
        if self._last_session_id is not None:
            log.debug(
                "survey_session_changed",
                previous_session_id=self._last_session_id,
                session_id=session_id,
            )
        self._shown_this_session.clear()
        self._cancel_all_timers()
        self._last_session_id = session_id

    def _leave_session(self) -> None:
        self._shown_this_session.clear()
        self._cancel_all_timers()
        self._last_session_id = None

    # ============================================================
    # 事件求值
    # ============================================================

    async def process_event(self, event: Event) -> SurveyRule | None:
        """对单个事件求值

        Returns:
            被激活（立即展示或已调度）的规则，没有则 None
        """
        self._enter_session(event.session_id)
        bypass = self._debug.bypass_gating

        for rule in self._config.surveys:
            if not bypass and rule.once_per_session and rule.rule_id in self._shown_this_session:
                continue
            if not rule.trigger.matches(event):
                continue
            if not bypass and not await self._gating.can_show(
                rule.rule_id,
                event.user_id,
                once_per_user=rule.once_per_user,
                cooldown_seconds=rule.cooldown_seconds,
                max_attempts=rule.max_attempts,
                attempt_cooldown_seconds=rule.attempt_cooldown_seconds,
            ):
                log.debug("survey_gated", rule_id=rule.rule_id, user_id=event.user_id)
                continue

            delay = rule.trigger.delay_seconds
            if delay is not None:
                await self._schedule(rule, event, delay)
            else:
                await self._present(
                    rule,
                    session_id=event.session_id,
                    user_id=event.user_id,
                    source=PresentationSource.IMMEDIATE,
                )
            return rule
        return None

    async def _schedule(self, rule: SurveyRule, event: Event, delay: float) -> None:
        await self._scheduled.schedule_for_later(
            rule.rule_id, event.user_id, event.session_id, delay
        )
        if self._notifier is not None and rule.notification is not None:
            self._fire_and_forget(
                self._notifier.schedule(rule.rule_id, event.session_id, rule.notification, delay)
            )
        self._arm_timer(
            rule.rule_id,
            delay,
            user_id=event.user_id,
            scheduled_session_id=event.session_id,
            armed_session_id=event.session_id,
            source=PresentationSource.SCHEDULED,
        )

    # ============================================================
    # 计时器
    # ============================================================

    def _arm_timer(
        self,
        rule_id: str,
        delay: float,
        *,
        user_id: str | None,
        scheduled_session_id: str,
        armed_session_id: str,
        source: PresentationSource,
    ) -> None:
        self._cancel_timer(rule_id)
        task = asyncio.create_task(
            self._fire_after(
                rule_id,
                delay,
                user_id=user_id,
                scheduled_session_id=scheduled_session_id,
                armed_session_id=armed_session_id,
                source=source,
            )
        )
        self._timers[rule_id] = task

        def _discard(done: asyncio.Task) -> None:
            if self._timers.get(rule_id) is done:
                del self._timers[rule_id]

        task.add_done_callback(_discard)
        log.debug("survey_timer_armed", rule_id=rule_id, delay_seconds=delay, source=source)

    def _cancel_timer(self, rule_id: str) -> None:
        task = self._timers.pop(rule_id, None)
        if task is not None and not task.done():
            task.cancel()

    def _cancel_all_timers(self) -> None:
        for rule_id in list(self._timers):
            self._cancel_timer(rule_id)

    async def _fire_after(
        self,
        rule_id: str,
        delay: float,
        *,
        user_id: str | None,
        scheduled_session_id: str,
        armed_session_id: str,
        source: PresentationSource,
    ) -> None:
        await asyncio.sleep(delay)

        # 取消与到期可能并发：展示前重新校验当前会话与用户
        current = await self._recorder.current_session()
        if current is None or current.id != armed_session_id or current.user_id != user_id:
            log.info(
                "scheduled_survey_stale",
                rule_id=rule_id,
                armed_session_id=armed_session_id,
            )
            return
        rule = self._config.rule(rule_id)
        if rule is None:
            log.warning("scheduled_survey_rule_missing", rule_id=rule_id)
            return

        try:
            await self._present(rule, session_id=current.id, user_id=user_id, source=source)
            await self._scheduled.remove_scheduled(rule_id, scheduled_session_id, user_id)
            self._cancel_notification(rule_id, scheduled_session_id)
        except Exception as e:
            log.error(
                "scheduled_survey_present_failed",
                rule_id=rule_id,
                error_type=type(e).__name__,
                error=str(e),
            )

    # ============================================================
    # 恢复
    # ============================================================

    async def restore_pending_surveys(self) -> SurveyRule | None:
        """恢复跨会话/跨进程的延迟问卷

        Returns:
            本次立即展示的规则，没有则 None
        """
        session = await self._recorder.current_session()
        if session is None:
            log.debug("survey_restore_skipped", reason="no_current_session")
            return None
        user_id = session.user_id

        for entry in await self._scheduled.get_all_triggered_surveys(user_id):
            rule = self._config.rule(entry.rule_id)
            if rule is None:
                # 规则已从配置中移除：保留记录，等待按龄清理
                log.warning(
                    "scheduled_survey_rule_missing",
                    rule_id=entry.rule_id,
                    session_id=entry.session_id,
                )
                continue
            await self._present(
                rule,
                session_id=session.id,
                user_id=user_id,
                source=PresentationSource.RESTORED,
            )
            await self._scheduled.remove_scheduled(entry.rule_id, entry.session_id, user_id)
            self._cancel_notification(entry.rule_id, entry.session_id)
            return rule

        restored = 0
        for entry in await self._scheduled.get_all_pending_surveys(user_id):
            if self._config.rule(entry.rule_id) is None:
                log.warning("scheduled_survey_rule_missing", rule_id=entry.rule_id)
                continue
            self._arm_timer(
                entry.rule_id,
                entry.remaining_delay(),
                user_id=user_id,
                scheduled_session_id=entry.session_id,
                armed_session_id=session.id,
                source=PresentationSource.RESTORED,
            )
            restored += 1
        if restored:
            log.info("scheduled_surveys_restored", count=restored, session_id=session.id)
        return None

    async def check_pending_surveys(self) -> SurveyRule | None:
        """宿主回到前台时主动检查到期问卷"""
        return await self.restore_pending_surveys()

    async def handle_notification_tap(self, rule_id: str, session_id: str) -> bool:
        """用户点击延迟问卷通知

        只有通知所属会话仍是当前会话时才展示。

        Returns:
            是否展示了问卷
        """
        current = await self._recorder.current_session()
        if current is None or current.id != session_id:
            log.info("notification_tap_ignored", rule_id=rule_id, session_id=session_id)
            return False
        rule = self._config.rule(rule_id)
        if rule is None:
            log.warning("notification_tap_rule_missing", rule_id=rule_id)
            return False

        self._cancel_timer(rule_id)
        await self._present(
            rule,
            session_id=current.id,
            user_id=current.user_id,
            source=PresentationSource.NOTIFICATION,
        )
        await self._scheduled.remove_scheduled(rule_id, session_id, current.user_id)
        return True

    # ============================================================
    # 展示与宿主回报
    # ============================================================

    async def _present(
        self,
        rule: SurveyRule,
        *,
        session_id: str,
        user_id: str | None,
        source: PresentationSource,
    ) -> None:
        if not self._debug.bypass_gating:
            if rule.once_per_session:
                self._shown_this_session.add(rule.rule_id)
            await self._gating.mark_shown(rule.rule_id, user_id)

        presentation = SurveyPresentation(
            rule=rule,
            session_id=session_id,
            user_id=user_id,
            source=source,
        )
        self.active_rule = rule
        self.last_presentation = presentation

        await self._recorder.record(
            "survey_presented",
            {
                "id": rule.rule_id,
                "responseType": rule.response.analytics_type,
                "debugMode": self._debug.enabled,
            },
        )
        log.info(
            "survey_presented",
            rule_id=rule.rule_id,
            session_id=session_id,
            user_id=user_id,
            source=source,
        )

        if self._on_present is not None:
            try:
                result = self._on_present(presentation)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                log.error(
                    "present_handler_failed",
                    rule_id=rule.rule_id,
                    error_type=type(e).__name__,
                    error=str(e),
                )

    async def submit(self, rule_id: str, payload: str) -> None:
        """宿主回报作答完成

        记录 survey_response 事件，然后标记完成。
        """
        rule = self._config.rule(rule_id)
        properties: dict[str, Any] = {"id": rule_id}
        if rule is not None:
            response = rule.response
            properties["type"] = response.analytics_type
            if isinstance(response, CombinedResponse):
                option, text = decode_combined_response(payload)
                properties["option"] = option
                if text is not None:
                    properties["text"] = text
            elif isinstance(response, OptionsResponse):
                properties["option"] = payload
            else:
                properties["text"] = payload
        else:
            properties["response"] = payload

        await self._recorder.record("survey_response", properties)
        await self.mark_survey_completed(rule_id)

    async def dismiss(self, rule_id: str) -> None:
        """宿主回报关闭未作答；尝试次数已在展示时计入，门控不再变更"""
        rule = self._config.rule(rule_id)
        properties: dict[str, Any] = {"id": rule_id}
        if rule is not None:
            properties["responseType"] = rule.response.analytics_type
        await self._recorder.record("survey_dismissed", properties)
        self._clear_active(rule_id)

    async def mark_survey_completed(self, rule_id: str) -> None:
        """标记完成：门控 completedOnce，清除当前会话的调度记录与计时器"""
        session = await self._recorder.current_session()
        user_id = session.user_id if session is not None else None
        await self._gating.mark_completed(rule_id, user_id)
        if session is not None:
            await self._scheduled.remove_scheduled(rule_id, session.id, user_id)
            self._cancel_notification(rule_id, session.id)
        self._cancel_timer(rule_id)
        self._clear_active(rule_id)

    def _clear_active(self, rule_id: str) -> None:
        if self.active_rule is not None and self.active_rule.rule_id == rule_id:
            self.active_rule = None

    # ============================================================
    # 通知
    # ============================================================

    def _cancel_notification(self, rule_id: str, session_id: str) -> None:
        if self._notifier is not None:
            self._fire_and_forget(self._notifier.cancel(rule_id, session_id))

    def _fire_and_forget(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        if (exc := task.exception()) is not None:
            log.warning(
                "notification_call_failed",
                error_type=type(exc).__name__,
                error=str(exc),
            )
