"""SurveyDebugConfig 覆盖规则测试"""

from helpers import make_rule

from surveycue.models import SurveyConfig, SurveyDebugConfig


def _config() -> SurveyConfig:
    return SurveyConfig(
        surveys=[
            make_rule("delayed", "scan", schedule_after_seconds=3600, attempt_cooldown_seconds=86400),
            make_rule("immediate", "open", cooldown_seconds=600),
            make_rule("zero", "close", schedule_after_seconds=0),
        ]
    )


class TestPresets:
    def test_production_is_noop(self):
        config = _config()
        assert SurveyDebugConfig.production().apply(config) is config

    def test_debug_preset_values(self):
        debug = SurveyDebugConfig.debug()
        assert debug.enabled
        assert debug.bypass_gating
        assert debug.override_schedule_delay == 10
        assert debug.override_attempt_cooldown == 15


class TestApply:
    def test_overrides_only_existing_delays(self):
        """只改写已有正数延迟的规则；立即规则保持立即"""
        result = SurveyDebugConfig.debug().apply(_config())
        assert result.rule("delayed").trigger.delay_seconds == 10
        assert result.rule("immediate").trigger.delay_seconds is None
        assert result.rule("zero").trigger.delay_seconds is None

    def test_attempt_cooldown_applies_to_every_rule(self):
        """attemptCooldownSeconds 未设置的规则也得到覆盖值"""
        result = SurveyDebugConfig.debug().apply(_config())
        assert result.rule("delayed").attempt_cooldown_seconds == 15
        assert result.rule("immediate").attempt_cooldown_seconds == 15
        assert result.rule("immediate").cooldown_seconds == 600
        assert result.rule("immediate").effective_attempt_cooldown == 15

    def test_cooldown_override_without_delay_override(self):
        """只覆盖冷却：cooldownSeconds 为一天的规则改为 15 秒"""
        debug = SurveyDebugConfig(enabled=True, override_attempt_cooldown=15)
        config = SurveyConfig(surveys=[make_rule("r", "scan", cooldown_seconds=86400)])
        rule = debug.apply(config).rule("r")
        assert rule.attempt_cooldown_seconds == 15
        assert rule.trigger.delay_seconds is None

    def test_other_fields_preserved(self):
        original = _config()
        result = SurveyDebugConfig.debug().apply(original)
        before, after = original.rule("delayed"), result.rule("delayed")
        assert after.title == before.title
        assert after.trigger.event.name == "scan"
        assert after.once_per_session == before.once_per_session
        # 原配置不被修改
        assert before.trigger.delay_seconds == 3600

    def test_disabled_ignores_overrides(self):
        config = _config()
        debug = SurveyDebugConfig(enabled=False, override_schedule_delay=5)
        assert debug.apply(config).rule("delayed").trigger.delay_seconds == 3600
