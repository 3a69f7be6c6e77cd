"""SurveyDebugConfig -- 调试模式下的延迟/冷却覆盖与门控旁路"""

from pydantic import BaseModel, ConfigDict, Field

from .survey import SurveyConfig


class SurveyDebugConfig(BaseModel):
    """调试配置

    override_schedule_delay 与 override_attempt_cooldown 互相独立：
    前者只改写已有正数 scheduleAfterSeconds 的规则（立即规则保持立即），后者改写全部规则，
    未设置 attemptCooldownSeconds 的规则也会得到覆盖值，从而不再回退到 cooldownSeconds。
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    override_schedule_delay: float | None = Field(default=None, gt=0)
    override_attempt_cooldown: float | None = Field(default=None, ge=0)
    bypass_gating: bool = False

    @classmethod
    def production(cls) -> "SurveyDebugConfig":
        return cls()

    @classmethod
    def debug(cls) -> "SurveyDebugConfig":
        return cls(
            enabled=True,
            override_schedule_delay=10,
            override_attempt_cooldown=15,
            bypass_gating=True,
        )

    def apply(self, config: SurveyConfig) -> SurveyConfig:
        """返回应用覆盖后的配置副本，原配置不变"""
        if not self.enabled:
            return config
        if self.override_schedule_delay is None and self.override_attempt_cooldown is None:
            return config

        rules = []
        for rule in config.surveys:
            update: dict = {}
            event_trigger = rule.trigger.event
            if (
                self.override_schedule_delay is not None
                and event_trigger.delay_seconds is not None
            ):
                trigger = rule.trigger.model_copy(
                    update={
                        "event": event_trigger.model_copy(
                            update={"schedule_after_seconds": self.override_schedule_delay}
                        )
                    }
                )
                update["trigger"] = trigger
            if self.override_attempt_cooldown is not None:
                update["attempt_cooldown_seconds"] = self.override_attempt_cooldown
            rules.append(rule.model_copy(update=update) if update else rule)
        return config.model_copy(update={"surveys": rules})
