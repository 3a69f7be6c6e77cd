"""全局 pytest 配置 -- 临时存储目录 + Recorder/Store fixture"""

import logging
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
import structlog

from surveycue.logging_config import LOGGER_NAMESPACE
from surveycue.models import RetentionPolicy
from surveycue.services import EventRecorder
from surveycue.store import StorageLayout, create_store_group


@pytest.fixture
def store_dir(tmp_path: Path) -> Path:
    """提供临时存储根目录"""
    path = tmp_path / "surveycue"
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def layout(store_dir: Path) -> StorageLayout:
    return StorageLayout(store_dir)


@pytest.fixture
def store_group(store_dir: Path):
    """提供共享锁表的 Store 实例组"""
    return create_store_group(store_dir)


@pytest_asyncio.fixture
async def recorder(store_dir: Path) -> AsyncGenerator[EventRecorder, None]:
    """提供不做自动清理的 EventRecorder"""
    rec = EventRecorder(store_dir, retention_policy=RetentionPolicy.none())
    yield rec
    await rec.end_session()


@pytest.fixture
def reset_logging():
    """撤销 setup_logging 对 surveycue logger 与 structlog 的配置"""
    package_logger = logging.getLogger(LOGGER_NAMESPACE)
    handlers = list(package_logger.handlers)
    level, propagate = package_logger.level, package_logger.propagate
    yield
    package_logger.handlers[:] = handlers
    package_logger.setLevel(level)
    package_logger.propagate = propagate
    structlog.reset_defaults()
