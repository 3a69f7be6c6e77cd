"""PropertyMatcher -- 事件属性匹配器

JSON 形态：
- 简写：裸值（"pro" / 3 / true）等价于 {"op": "eq", "value": ...}
- 完整：{"op": "...", "value": ...}
- exists / notExists 不携带 value

求值规则：
- eq/ne 跨数值类型比较（3 与 3.0 相等）
- gt/gte/lt/lte 事件值需为数值，否则不匹配
- contains/notContains 事件值需为字符串
- exists/notExists 只看 key 是否存在
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, model_serializer, model_validator

from .enums import ORDERING_OPS, PRESENCE_OPS, STRING_OPS, MatchOp
from .values import EventValue, as_double, as_string, is_numeric, values_equal


class PropertyMatcher(BaseModel):
    """单个属性的匹配条件"""

    model_config = ConfigDict(frozen=True)

    op: MatchOp
    value: EventValue | None = None

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        # 裸值简写 -> eq
        if isinstance(data, str | int | float | bool):
            return {"op": MatchOp.EQ, "value": data}
        if not isinstance(data, dict):
            return data

        if "op" not in data:
            raise ValueError("属性匹配器对象缺少 op 字段")
        raw_op = data["op"]
        try:
            op = MatchOp(raw_op)
        except ValueError:
            raise ValueError(f"未知的匹配操作符: {raw_op!r}") from None

        value = data.get("value")
        if op in PRESENCE_OPS:
            return {"op": op, "value": None}
        if op in ORDERING_OPS:
            if not is_numeric(value):
                raise ValueError(f"操作符 {op} 需要数值 value")
            return {"op": op, "value": float(value)}
        if op in STRING_OPS:
            if not isinstance(value, str):
                raise ValueError(f"操作符 {op} 需要字符串 value")
            return {"op": op, "value": value}
        if value is None:
            raise ValueError(f"操作符 {op} 缺少 value")
        return {"op": op, "value": value}

    @model_serializer
    def _serialize(self) -> Any:
        if self.op == MatchOp.EQ:
            return self.value
        if self.op in PRESENCE_OPS:
            return {"op": str(self.op)}
        return {"op": str(self.op), "value": self.value}

    # 便捷构造

    @classmethod
    def equals(cls, value: Any) -> "PropertyMatcher":
        return cls(op=MatchOp.EQ, value=value)

    @classmethod
    def not_equals(cls, value: Any) -> "PropertyMatcher":
        return cls(op=MatchOp.NE, value=value)

    @classmethod
    def greater_than(cls, value: float) -> "PropertyMatcher":
        return cls(op=MatchOp.GT, value=value)

    @classmethod
    def greater_than_or_equal(cls, value: float) -> "PropertyMatcher":
        return cls(op=MatchOp.GTE, value=value)

    @classmethod
    def less_than(cls, value: float) -> "PropertyMatcher":
        return cls(op=MatchOp.LT, value=value)

    @classmethod
    def less_than_or_equal(cls, value: float) -> "PropertyMatcher":
        return cls(op=MatchOp.LTE, value=value)

    @classmethod
    def contains(cls, value: str) -> "PropertyMatcher":
        return cls(op=MatchOp.CONTAINS, value=value)

    @classmethod
    def not_contains(cls, value: str) -> "PropertyMatcher":
        return cls(op=MatchOp.NOT_CONTAINS, value=value)

    @classmethod
    def exists(cls, present: bool = True) -> "PropertyMatcher":
        return cls(op=MatchOp.EXISTS if present else MatchOp.NOT_EXISTS)

    def evaluate(self, properties: Mapping[str, Any] | None, key: str) -> bool:
        """对属性包中的 key 求值

        类型不符视为不匹配，不抛异常。
        """
        props = properties or {}
        present = key in props

        if self.op == MatchOp.EXISTS:
            return present
        if self.op == MatchOp.NOT_EXISTS:
            return not present
        if not present:
            return False

        actual = props[key]
        if self.op == MatchOp.EQ:
            return values_equal(self.value, actual)
        if self.op == MatchOp.NE:
            return not values_equal(self.value, actual)

        if self.op in ORDERING_OPS:
            number = as_double(actual)
            if number is None:
                return False
            if self.op == MatchOp.GT:
                return number > self.value
            if self.op == MatchOp.GTE:
                return number >= self.value
            if self.op == MatchOp.LT:
                return number < self.value
            return number <= self.value

        text = as_string(actual)
        if self.op == MatchOp.CONTAINS:
            return text is not None and self.value in text
        # notContains：非字符串值视为“不包含”
        return text is None or self.value not in text
