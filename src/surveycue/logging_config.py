"""structlog 配置模块

dev 模式：pretty print 可读输出
json 模式：结构化 JSON 输出
库本身不在导入时配置日志，由宿主应用或 CLI 调用 setup_logging()。
只在 surveycue 日志命名空间上挂 handler，不改动宿主的 root logger。
"""

import logging
import os
from typing import IO

import structlog

LOGGER_NAMESPACE = "surveycue"

_HANDLER_NAME = "surveycue-structlog"


def setup_logging(
    log_format: str | None = None,
    level: str | None = None,
    *,
    stream: IO[str] | None = None,
) -> logging.Handler:
    """初始化 structlog 配置

    Args:
        log_format: "json" 或 "dev"，缺省取 SURVEYCUE_LOG_FORMAT（默认 dev）
        level: 日志级别名，缺省取 SURVEYCUE_LOG_LEVEL（默认 INFO）
        stream: 输出流，缺省 stderr

    Returns:
        挂在 surveycue logger 上的 handler；重复调用会替换上一次的 handler
    """
    log_format = log_format or os.environ.get("SURVEYCUE_LOG_FORMAT", "dev")
    level = level or os.environ.get("SURVEYCUE_LOG_LEVEL", "INFO")

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(stream)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(formatter)

    package_logger = logging.getLogger(LOGGER_NAMESPACE)
    for existing in list(package_logger.handlers):
        if existing.get_name() == _HANDLER_NAME:
            package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    # 已由自己的 handler 输出，不再冒泡到宿主 root logger
    package_logger.propagate = False
    return handler
