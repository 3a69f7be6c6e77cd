"""异常体系 -- 配置错误显式抛出，持久化/求值错误不外泄

SurveyCueError (基类)
├── ConfigDecodeError  配置文档解码失败（JSON 非法、缺字段、未知 op/type）
└── ConfigFetchError   远程配置拉取失败（连接错误、HTTP 状态码）
"""


class SurveyCueError(Exception):
    """surveycue 异常基类"""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigDecodeError(SurveyCueError):
    """问卷配置解码失败

    原始的 ValidationError / OSError 通过 __cause__ 保留。
    """

    def __init__(self, message: str, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source

    def __str__(self) -> str:
        if self.source:
            return f"{self.message} (source={self.source})"
        return self.message


class ConfigFetchError(SurveyCueError):
    """远程配置拉取失败"""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"拉取配置失败 {url}: {message}")
        self.url = url
