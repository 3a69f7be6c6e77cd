"""配置常量模块 -- 可通过环境变量覆盖

包含存储根目录、调度清理阈值、远程配置刷新间隔等可配置常量。
"""

import os
from pathlib import Path

import structlog

log = structlog.get_logger()


def _env_int(env_var: str, default: int) -> int:
    """读取整数环境变量，非法值回退默认值"""
    val = os.environ.get(env_var)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        log.warning(
            "invalid_config_value",
            env_var=env_var,
            value=val,
            fallback=default,
        )
        # 使用默认值，不阻塞导入
        return default


def get_data_dir() -> Path:
    """获取事件与问卷状态的存储根目录"""
    return Path(os.environ.get("SURVEYCUE_DATA_DIR", str(Path("data") / "surveycue")))


# 过期调度记录清理阈值（秒），按 scheduledAt 计算
SCHEDULED_MAX_AGE_S: int = _env_int("SURVEYCUE_SCHEDULED_MAX_AGE_S", 86400)

# 远程配置自动刷新间隔（秒）
CONFIG_REFRESH_INTERVAL_S: int = _env_int("SURVEYCUE_CONFIG_REFRESH_INTERVAL_S", 300)

# 远程配置 HTTP 超时（秒）
HTTP_TIMEOUT_S: int = _env_int("SURVEYCUE_HTTP_TIMEOUT_S", 10)

# 事件流订阅队列默认容量
EVENT_HUB_QUEUE_MAXSIZE: int = 100
