"""问卷配置解码测试

测试内容：
1. 三种 response 形态与旧格式 options
2. 触发条件与属性匹配器解码
3. 配置错误统一抛出 ConfigDecodeError
4. response 编码-解码往返
"""

import json
from pathlib import Path

import pytest

from surveycue import ConfigDecodeError
from surveycue.models import (
    CombinedResponse,
    MatchOp,
    OptionsResponse,
    SurveyConfig,
    SurveyRule,
    TextFieldConfig,
    TextResponse,
)

FULL_CONFIG = {
    "surveys": [
        {
            "id": "nps_after_purchase",
            "title": "How likely are you to recommend us?",
            "message": "Tell us about your purchase",
            "response": {"type": "options", "options": ["0-6", "7-8", "9-10"]},
            "trigger": {
                "event": {
                    "name": "purchase",
                    "properties": {
                        "plan": "pro",
                        "amount": {"op": "gte", "value": 50},
                        "coupon": {"op": "notExists"},
                    },
                    "scheduleAfterSeconds": 30,
                }
            },
            "oncePerSession": True,
            "oncePerUser": False,
            "cooldownSeconds": 86400,
            "maxAttempts": 3,
            "attemptCooldownSeconds": 3600,
            "notification": {"title": "Quick question", "body": "Got a minute?"},
        },
        {
            "id": "feedback_text",
            "title": "Feedback",
            "message": "Anything to add?",
            "response": {"type": "text", "placeholder": "Type here", "maxLength": 200},
            "trigger": {"event": {"name": "settings_opened"}},
        },
    ]
}


class TestConfigDecoding:
    def test_full_document(self):
        """完整配置解码"""
        config = SurveyConfig.from_data(FULL_CONFIG)
        assert config.rule_ids == ["nps_after_purchase", "feedback_text"]

        rule = config.rule("nps_after_purchase")
        assert isinstance(rule.response, OptionsResponse)
        assert rule.trigger.event.name == "purchase"
        assert rule.trigger.delay_seconds == 30
        assert rule.max_attempts == 3
        assert rule.attempt_cooldown_seconds == 3600
        assert rule.cooldown_seconds == 86400
        assert rule.notification.title == "Quick question"
        assert rule.notification.sound is True

        matchers = rule.trigger.event.properties
        assert matchers["plan"].op == MatchOp.EQ
        assert matchers["amount"].op == MatchOp.GTE
        assert matchers["coupon"].op == MatchOp.NOT_EXISTS

    def test_defaults(self):
        """oncePerSession 默认 true，oncePerUser 默认 false"""
        rule = SurveyConfig.from_data(FULL_CONFIG).rule("feedback_text")
        assert rule.once_per_session is True
        assert rule.once_per_user is False
        assert rule.max_attempts is None
        assert rule.notification is None
        assert rule.response.allow_empty is False

    def test_legacy_options(self):
        """旧格式顶层 options 转换为 options response"""
        rule = SurveyRule.model_validate(
            {
                "id": "legacy",
                "title": "t",
                "message": "m",
                "options": ["A", "B"],
                "trigger": {"event": {"name": "scan"}},
            }
        )
        assert rule.response == OptionsResponse(options=["A", "B"])

    def test_attempt_cooldown_independent_of_cooldown(self):
        """只设 attemptCooldownSeconds 不影响 cooldownSeconds，反之亦然"""
        base = {"id": "r", "title": "t", "message": "m", "options": ["A"], "trigger": {"event": {"name": "e"}}}
        only_attempt = SurveyRule.model_validate({**base, "attemptCooldownSeconds": 60})
        assert only_attempt.attempt_cooldown_seconds == 60
        assert only_attempt.cooldown_seconds is None

        only_cooldown = SurveyRule.model_validate({**base, "cooldownSeconds": 120})
        assert only_cooldown.cooldown_seconds == 120
        assert only_cooldown.attempt_cooldown_seconds is None
        assert only_cooldown.effective_attempt_cooldown == 120

    def test_from_path(self, tmp_path: Path):
        """从文件加载"""
        path = tmp_path / "surveys.json"
        path.write_text(json.dumps(FULL_CONFIG), encoding="utf-8")
        config = SurveyConfig.from_path(path)
        assert len(config.surveys) == 2


class TestConfigErrors:
    def _rule(self, **overrides):
        rule = {
            "id": "r1",
            "title": "t",
            "message": "m",
            "response": {"type": "options", "options": ["A"]},
            "trigger": {"event": {"name": "scan"}},
        }
        rule.update(overrides)
        return json.dumps({"surveys": [rule]})

    def test_malformed_json(self):
        """非法 JSON"""
        with pytest.raises(ConfigDecodeError):
            SurveyConfig.from_json("{not json")

    def test_missing_response_and_options(self):
        """既无 response 也无 options"""
        doc = json.loads(self._rule())
        del doc["surveys"][0]["response"]
        with pytest.raises(ConfigDecodeError):
            SurveyConfig.from_data(doc)

    def test_unknown_response_type(self):
        """未知 response type"""
        with pytest.raises(ConfigDecodeError):
            SurveyConfig.from_json(self._rule(response={"type": "slider", "min": 0}))

    def test_unknown_trigger(self):
        """未知 trigger 类型"""
        with pytest.raises(ConfigDecodeError):
            SurveyConfig.from_json(self._rule(trigger={"screen": {"name": "home"}}))

    def test_unknown_matcher_op(self):
        """未知匹配操作符"""
        trigger = {"event": {"name": "scan", "properties": {"x": {"op": "regex", "value": ".*"}}}}
        with pytest.raises(ConfigDecodeError):
            SurveyConfig.from_json(self._rule(trigger=trigger))

    def test_missing_required_field(self):
        """缺少 title"""
        doc = json.loads(self._rule())
        del doc["surveys"][0]["title"]
        with pytest.raises(ConfigDecodeError):
            SurveyConfig.from_data(doc)

    def test_duplicate_rule_ids(self):
        """重复的规则 id"""
        doc = json.loads(self._rule())
        doc["surveys"].append(doc["surveys"][0])
        with pytest.raises(ConfigDecodeError):
            SurveyConfig.from_data(doc)

    def test_missing_file(self, tmp_path: Path):
        """文件不存在"""
        with pytest.raises(ConfigDecodeError):
            SurveyConfig.from_path(tmp_path / "missing.json")


class TestResponseRoundTrip:
    @pytest.mark.parametrize(
        "response",
        [
            OptionsResponse(options=["Yes", "No"]),
            TextResponse(placeholder="Tell us", submit_label="Send", min_length=2, max_length=100),
            TextResponse(allow_empty=True),
            CombinedResponse(
                options=["Poor", "Good"],
                options_label="Rating",
                text_field=TextFieldConfig(label="Why?", required=True, max_length=50),
                submit_label="Send",
            ),
        ],
    )
    def test_round_trip(self, response):
        """编码后再解码得到相等的值"""
        rule = SurveyRule(
            rule_id="r1",
            title="t",
            message="m",
            response=response,
            trigger={"event": {"name": "scan"}},
        )
        restored = SurveyConfig.from_json(SurveyConfig(surveys=[rule]).to_json())
        assert restored.surveys[0].response == response
        assert restored.surveys[0] == rule

    def test_text_omits_default_allow_empty(self):
        """allowEmpty 为 false 时不写出"""
        assert "allowEmpty" not in TextResponse().to_dict()
        assert TextResponse(allow_empty=True).to_dict()["allowEmpty"] is True

    def test_rule_encodes_id_key(self):
        """规则 ID 写为 id，匹配器 eq 写为裸值"""
        rule = SurveyConfig.from_data(FULL_CONFIG).rule("nps_after_purchase")
        data = rule.to_dict()
        assert data["id"] == "nps_after_purchase"
        assert data["trigger"]["event"]["properties"]["plan"] == "pro"
        assert data["trigger"]["event"]["scheduleAfterSeconds"] == 30
