"""EventValue -- 事件属性值的带标签联合 {str, int, float, bool}

bool 在 Python 中是 int 的子类，这里统一把 bool 视为独立类型：
数值比较与数值相等都不接受 bool。
"""

from pydantic import StrictBool, StrictFloat, StrictInt, StrictStr

EventValue = StrictStr | StrictBool | StrictInt | StrictFloat


def is_numeric(value: object) -> bool:
    """int/float（不含 bool）"""
    return isinstance(value, int | float) and not isinstance(value, bool)


def as_double(value: object) -> float | None:
    """数值转 float，非数值返回 None"""
    if is_numeric(value):
        return float(value)
    return None


def as_string(value: object) -> str | None:
    if isinstance(value, str):
        return value
    return None


def values_equal(expected: object, actual: object) -> bool:
    """跨数值类型的相等判断

    int 与 float 按数值比较；bool 只与 bool 相等；str 只与 str 相等。
    """
    if isinstance(expected, bool) or isinstance(actual, bool):
        return (
            isinstance(expected, bool)
            and isinstance(actual, bool)
            and expected == actual
        )
    if is_numeric(expected) and is_numeric(actual):
        return float(expected) == float(actual)
    if isinstance(expected, str) and isinstance(actual, str):
        return expected == actual
    return False
