"""模型基类 -- Python 侧 snake_case 字段，JSON 侧 camelCase 键"""

from datetime import UTC, datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """持久化/配置文档模型基类

    序列化统一使用 by_alias=True，保证磁盘与配置文档的键名稳定。
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _ensure_utc(value: datetime) -> datetime:
    # 无时区的时间戳按 UTC 解释
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_ensure_utc)]
