"""surveycue Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .debug import SurveyDebugConfig
from .enums import MatchOp, PresentationSource, ResponseType, SessionLifecycle
from .event import Event, EventSession, SessionLifecycleEvent, new_id, utcnow
from .gating import GatingDocument, GatingRecord
from .matcher import PropertyMatcher
from .retention import RetentionPolicy
from .scheduled import ScheduledDocument, ScheduledSurvey
from .submission import (
    ResponseDraft,
    can_submit_combined,
    can_submit_text,
    decode_combined_response,
    encode_combined_response,
)
from .survey import (
    CombinedResponse,
    EventTrigger,
    NotificationConfig,
    OptionsResponse,
    SurveyConfig,
    SurveyResponse,
    SurveyRule,
    TextFieldConfig,
    TextResponse,
    TriggerCondition,
)
from .values import EventValue, as_double, as_string, values_equal

__all__ = [
    # 枚举
    "MatchOp",
    "ResponseType",
    "SessionLifecycle",
    "PresentationSource",
    # 事件与会话
    "EventValue",
    "as_double",
    "as_string",
    "values_equal",
    "Event",
    "EventSession",
    "SessionLifecycleEvent",
    "new_id",
    "utcnow",
    "RetentionPolicy",
    # 问卷配置
    "SurveyConfig",
    "SurveyRule",
    "SurveyResponse",
    "OptionsResponse",
    "TextResponse",
    "TextFieldConfig",
    "CombinedResponse",
    "TriggerCondition",
    "EventTrigger",
    "PropertyMatcher",
    "NotificationConfig",
    "SurveyDebugConfig",
    # 门控与调度
    "GatingRecord",
    "GatingDocument",
    "ScheduledSurvey",
    "ScheduledDocument",
    # 提交
    "ResponseDraft",
    "can_submit_text",
    "can_submit_combined",
    "encode_combined_response",
    "decode_combined_response",
]
