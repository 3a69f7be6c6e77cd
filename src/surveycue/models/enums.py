"""枚举定义 -- 匹配操作符、响应类型、会话生命周期、展示来源"""

from enum import StrEnum


class MatchOp(StrEnum):
    """属性匹配操作符，取值即 JSON 中的 op 字段"""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    EXISTS = "exists"
    NOT_EXISTS = "notExists"


# 数值比较类操作符（事件值需为数值）
ORDERING_OPS: frozenset[MatchOp] = frozenset(
    {MatchOp.GT, MatchOp.GTE, MatchOp.LT, MatchOp.LTE}
)

# 字符串类操作符（事件值需为字符串）
STRING_OPS: frozenset[MatchOp] = frozenset({MatchOp.CONTAINS, MatchOp.NOT_CONTAINS})

# 仅检查 key 是否存在，不携带 value
PRESENCE_OPS: frozenset[MatchOp] = frozenset({MatchOp.EXISTS, MatchOp.NOT_EXISTS})


class ResponseType(StrEnum):
    """问卷响应形态，取值即 JSON 中的 type 判别字段"""

    OPTIONS = "options"
    TEXT = "text"
    COMBINED = "combined"


class SessionLifecycle(StrEnum):
    """会话生命周期通知类型"""

    STARTED = "started"
    ENDED = "ended"


class PresentationSource(StrEnum):
    """问卷展示来源"""

    IMMEDIATE = "immediate"
    SCHEDULED = "scheduled"
    RESTORED = "restored"
    NOTIFICATION = "notification"
