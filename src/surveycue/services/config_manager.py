"""SurveyConfigManager -- 当前问卷配置 + 远程拉取与定时刷新

远程内容与上次生效内容相同（SHA-256）时不重复解码、不通知订阅者。
解码失败保留当前配置并抛出 ConfigDecodeError；自动刷新循环中的错误只记录日志。
"""

import asyncio
import hashlib
from collections.abc import Callable
from pathlib import Path

import httpx
import structlog

from ..config import CONFIG_REFRESH_INTERVAL_S, HTTP_TIMEOUT_S
from ..exceptions import ConfigFetchError, SurveyCueError
from ..models.debug import SurveyDebugConfig
from ..models.survey import SurveyConfig

log = structlog.get_logger()

ConfigListener = Callable[[SurveyConfig], None]


def load_config_file(
    path: str | Path,
    debug_config: SurveyDebugConfig | None = None,
) -> SurveyConfig:
    """加载本地配置文件并应用调试覆盖

    Raises:
        ConfigDecodeError: 文件不存在或内容非法
    """
    config = SurveyConfig.from_path(path)
    if debug_config is not None:
        config = debug_config.apply(config)
    return config


class SurveyConfigManager:
    """持有当前配置并向订阅者推送更新"""

    def __init__(
        self,
        initial: SurveyConfig,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = HTTP_TIMEOUT_S,
    ) -> None:
        self._config = initial
        self._client = client
        self._timeout_s = timeout_s
        self._listeners: list[ConfigListener] = []
        self._last_digest: str | None = None
        self._refresh_task: asyncio.Task | None = None

    @property
    def current_config(self) -> SurveyConfig:
        return self._config

    def subscribe(self, listener: ConfigListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: ConfigListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _publish(self, config: SurveyConfig) -> None:
        self._config = config
        for listener in list(self._listeners):
            try:
                listener(config)
            except Exception as e:
                log.error(
                    "config_listener_failed",
                    error_type=type(e).__name__,
                    error=str(e),
                )

    async def _fetch(self, url: str) -> bytes:
        try:
            if self._client is not None:
                resp = await self._client.get(url)
            else:
                async with httpx.AsyncClient(timeout=self._timeout_s) as client:
                    resp = await client.get(url)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ConfigFetchError(url, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise ConfigFetchError(url, f"{type(e).__name__}: {e}") from e
        return resp.content

    async def load_remote(self, url: str) -> SurveyConfig:
        """拉取远程配置并生效

        Raises:
            ConfigFetchError: 连接失败或非 2xx 状态码
            ConfigDecodeError: 内容不是合法的问卷配置
        """
        content = await self._fetch(url)
        digest = hashlib.sha256(content).hexdigest()
        if digest == self._last_digest:
            log.debug("remote_config_unchanged", url=url)
            return self._config

        config = SurveyConfig.from_json(content, source=url)
        self._last_digest = digest
        self._publish(config)
        log.info("remote_config_applied", url=url, rules=len(config.surveys))
        return config

    def start_auto_refresh(
        self,
        url: str,
        interval_s: float = CONFIG_REFRESH_INTERVAL_S,
    ) -> asyncio.Task:
        """立即拉取一次，之后按间隔刷新；重复调用会替换旧的刷新任务"""
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
        self._refresh_task = asyncio.create_task(self._refresh_loop(url, interval_s))
        return self._refresh_task

    async def stop_auto_refresh(self) -> None:
        task, self._refresh_task = self._refresh_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _refresh_loop(self, url: str, interval_s: float) -> None:
        while True:
            try:
                await self.load_remote(url)
            except SurveyCueError as e:
                log.warning(
                    "remote_config_refresh_failed",
                    url=url,
                    error_type=type(e).__name__,
                    error=str(e),
                )
            await asyncio.sleep(interval_s)
