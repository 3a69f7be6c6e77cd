"""surveycue Store -- 基于 JSON 文件的持久化实现

提供工厂函数创建共享同一目录与文件锁表的 Store 实例组。
"""

from pathlib import Path

from .documents import FileLockRegistry, read_document, write_document
from .event_store import JsonlEventStore
from .gating_store import JsonGatingStore
from .paths import ANONYMOUS_USER_FOLDER, StorageLayout, safe_user_folder
from .protocols import GatingStore, ScheduledSurveyStore
from .scheduled_store import JsonScheduledSurveyStore


class StoreGroup:
    """Store 实例组 -- 共享同一个存储目录和文件锁表"""

    def __init__(self, base_dir: str | Path) -> None:
        self.layout = StorageLayout(base_dir)
        self.locks = FileLockRegistry()
        self.event_store = JsonlEventStore(self.layout, self.locks)
        self.gating_store = JsonGatingStore(self.layout, self.locks)
        self.scheduled_store = JsonScheduledSurveyStore(self.layout, self.locks)

    @property
    def base_dir(self) -> Path:
        return self.layout.base_dir


def create_store_group(base_dir: str | Path) -> StoreGroup:
    """创建 Store 实例组

    Args:
        base_dir: 存储根目录，不存在时创建

    Returns:
        StoreGroup 实例
    """
    base_path = Path(base_dir)
    base_path.mkdir(parents=True, exist_ok=True)
    return StoreGroup(base_path)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "StorageLayout",
    "safe_user_folder",
    "ANONYMOUS_USER_FOLDER",
    "FileLockRegistry",
    "read_document",
    "write_document",
    "JsonlEventStore",
    "JsonGatingStore",
    "JsonScheduledSurveyStore",
    "GatingStore",
    "ScheduledSurveyStore",
]
