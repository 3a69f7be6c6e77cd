"""JSON 文档读写 -- 按文件串行化 + 整体原子替换

每个用户的 gating.json / scheduled.json 是一个整体 JSON 文档，
每次修改都写临时文件后 os.replace，不会留下半截内容。
读写失败只记录日志，由调用方降级为安全默认值。
"""

import asyncio
import os
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TypeVar

import structlog
from pydantic import BaseModel, ValidationError

log = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)


class _LockEntry:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.holders = 0


class FileLockRegistry:
    """按文件路径分配 asyncio.Lock

    同一文件的读-改-写在锁内完成；不同文件互不阻塞。
    最后一个持有/等待者释放后移除该路径的锁，锁表大小只取决于并发中的文件数。
    """

    def __init__(self) -> None:
        self._locks: dict[Path, _LockEntry] = {}

    @asynccontextmanager
    async def lock_for(self, path: Path) -> AsyncIterator[None]:
        key = Path(path)
        entry = self._locks.get(key)
        if entry is None:
            entry = _LockEntry()
            self._locks[key] = entry
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0 and self._locks.get(key) is entry:
                del self._locks[key]

    @property
    def active_count(self) -> int:
        """当前被持有或等待中的路径数"""
        return len(self._locks)


def _read_bytes(path: Path) -> bytes | None:
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None


def _write_atomic(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise


async def read_document(path: Path, model_cls: type[ModelT]) -> ModelT | None:
    """读取 JSON 文档

    Returns:
        文件不存在、不可读或内容损坏时返回 None（损坏会记录 warning）
    """
    try:
        raw = await asyncio.to_thread(_read_bytes, path)
    except OSError as e:
        log.warning(
            "document_read_failed",
            path=str(path),
            error_type=type(e).__name__,
            error=str(e),
        )
        return None
    if raw is None:
        return None
    try:
        return model_cls.model_validate_json(raw)
    except ValidationError as e:
        log.warning(
            "document_decode_failed",
            path=str(path),
            model=model_cls.__name__,
            error_count=e.error_count(),
        )
        return None


async def write_document(path: Path, document: BaseModel) -> bool:
    """整体原子写入 JSON 文档

    Returns:
        是否写入成功；失败只记录日志
    """
    content = document.model_dump_json(by_alias=True, exclude_none=True, indent=2)
    try:
        await asyncio.to_thread(_write_atomic, path, content)
    except OSError as e:
        log.warning(
            "document_write_failed",
            path=str(path),
            error_type=type(e).__name__,
            error=str(e),
        )
        return False
    return True


async def remove_document(path: Path) -> None:
    """删除文档，不存在时忽略"""
    try:
        await asyncio.to_thread(path.unlink, missing_ok=True)
    except OSError as e:
        log.warning(
            "document_remove_failed",
            path=str(path),
            error_type=type(e).__name__,
        )
