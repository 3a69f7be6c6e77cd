"""SurveyConfig Domain Model -- 声明式问卷规则集

配置文档形如 {"surveys": [SurveyRule, ...]}。
- response 以 type 字段判别：options / text / combined
- 兼容旧格式：规则顶层 options 数组等价于 response = options
- trigger 目前只有 event 一种：{"event": {name, properties?, scheduleAfterSeconds?}}
解码失败统一抛出 ConfigDecodeError，编排器永远拿不到残缺规则。
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import (
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_serializer,
    model_validator,
)

from ..exceptions import ConfigDecodeError
from .base import CamelModel
from .enums import ResponseType
from .event import Event
from .matcher import PropertyMatcher


# ============================================================
# 响应形态
# ============================================================


class OptionsResponse(CamelModel):
    """单选项响应"""

    type: Literal["options"] = "options"
    options: list[str] = Field(min_length=1, description="可选项")

    @property
    def analytics_type(self) -> str:
        return "choice"


class TextResponse(CamelModel):
    """自由文本响应"""

    type: Literal["text"] = "text"
    placeholder: str | None = None
    submit_label: str | None = None
    allow_empty: bool = False
    min_length: int | None = Field(default=None, ge=0)
    max_length: int | None = Field(default=None, ge=1)

    @property
    def analytics_type(self) -> str:
        return "text"

    @model_serializer(mode="wrap")
    def _omit_default_allow_empty(self, handler: Any) -> Any:
        data = handler(self)
        # allowEmpty 只在为 true 时写出
        if isinstance(data, dict) and not self.allow_empty:
            data.pop("allowEmpty", None)
            data.pop("allow_empty", None)
        return data


class TextFieldConfig(CamelModel):
    """组合响应中的附加文本框"""

    label: str | None = None
    placeholder: str | None = None
    required: bool = False
    min_length: int | None = Field(default=None, ge=0)
    max_length: int | None = Field(default=None, ge=1)


class CombinedResponse(CamelModel):
    """选项 + 可选文本框"""

    type: Literal["combined"] = "combined"
    options: list[str] = Field(min_length=1)
    options_label: str | None = None
    text_field: TextFieldConfig | None = None
    submit_label: str | None = None

    @property
    def analytics_type(self) -> str:
        return "combined"


SurveyResponse = Annotated[
    OptionsResponse | TextResponse | CombinedResponse,
    Field(discriminator="type"),
]


# ============================================================
# 触发条件
# ============================================================


class EventTrigger(CamelModel):
    """事件触发条件：事件名 + 全部属性匹配 + 可选延迟"""

    name: str
    properties: dict[str, PropertyMatcher] | None = None
    schedule_after_seconds: float | None = None

    @property
    def delay_seconds(self) -> float | None:
        """正数延迟；缺省或 <= 0 表示立即展示"""
        if self.schedule_after_seconds is not None and self.schedule_after_seconds > 0:
            return self.schedule_after_seconds
        return None

    def matches(self, event: Event) -> bool:
        if event.name != self.name:
            return False
        if not self.properties:
            return True
        # 按声明顺序求值，遇到第一个不满足的 key 即返回
        for key, matcher in self.properties.items():
            if not matcher.evaluate(event.properties, key):
                return False
        return True


class TriggerCondition(CamelModel):
    """触发条件联合，目前仅 event 一种"""

    model_config = ConfigDict(extra="forbid")

    event: EventTrigger

    def matches(self, event: Event) -> bool:
        return self.event.matches(event)

    @property
    def delay_seconds(self) -> float | None:
        return self.event.delay_seconds


class NotificationConfig(CamelModel):
    """延迟问卷的本地通知内容，引擎只透传"""

    title: str
    body: str
    sound: bool = True


# ============================================================
# 规则与配置文档
# ============================================================


class SurveyRule(CamelModel):
    """一条问卷规则"""

    rule_id: str = Field(alias="id", min_length=1, description="规则唯一键")
    title: str
    message: str
    response: SurveyResponse
    trigger: TriggerCondition
    once_per_session: bool = True
    once_per_user: bool = False
    cooldown_seconds: float | None = None
    max_attempts: int | None = Field(default=None, ge=0)
    attempt_cooldown_seconds: float | None = None
    notification: NotificationConfig | None = None

    @model_validator(mode="before")
    @classmethod
    def _legacy_options(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        if "response" in data:
            return data
        if "options" in data:
            data = dict(data)
            data["response"] = {"type": str(ResponseType.OPTIONS), "options": data.pop("options")}
            return data
        raise ValueError("规则缺少 response（或旧格式 options）")

    @property
    def effective_attempt_cooldown(self) -> float | None:
        """attemptCooldownSeconds 优先，缺省回退 cooldownSeconds"""
        if self.attempt_cooldown_seconds is not None:
            return self.attempt_cooldown_seconds
        return self.cooldown_seconds


class SurveyConfig(CamelModel):
    """问卷配置文档"""

    surveys: list[SurveyRule] = Field(default_factory=list)

    @field_validator("surveys")
    @classmethod
    def _unique_rule_ids(cls, surveys: list[SurveyRule]) -> list[SurveyRule]:
        seen: set[str] = set()
        for rule in surveys:
            if rule.rule_id in seen:
                raise ValueError(f"重复的规则 id: {rule.rule_id}")
            seen.add(rule.rule_id)
        return surveys

    def rule(self, rule_id: str) -> SurveyRule | None:
        """按 id 查找规则"""
        for rule in self.surveys:
            if rule.rule_id == rule_id:
                return rule
        return None

    @property
    def rule_ids(self) -> list[str]:
        return [rule.rule_id for rule in self.surveys]

    @classmethod
    def from_json(cls, data: str | bytes, source: str | None = None) -> "SurveyConfig":
        """解码 JSON 配置文档

        Raises:
            ConfigDecodeError: JSON 非法或规则不符合 schema
        """
        try:
            return cls.model_validate_json(data)
        except ValidationError as e:
            raise ConfigDecodeError(
                f"问卷配置解码失败: {e.error_count()} 处错误\n{e}",
                source=source,
            ) from e

    @classmethod
    def from_data(cls, data: Mapping[str, Any], source: str | None = None) -> "SurveyConfig":
        """从已解析的 dict 构造"""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigDecodeError(
                f"问卷配置解码失败: {e.error_count()} 处错误\n{e}",
                source=source,
            ) from e

    @classmethod
    def from_path(cls, path: str | Path) -> "SurveyConfig":
        """从本地文件加载

        Raises:
            ConfigDecodeError: 文件不存在/不可读或内容非法
        """
        file_path = Path(path)
        try:
            raw = file_path.read_bytes()
        except OSError as e:
            raise ConfigDecodeError(f"无法读取配置文件: {e}", source=str(file_path)) from e
        return cls.from_json(raw, source=str(file_path))
