"""存储目录布局

<base>/users/<safeUser>/sessions/<sessionId>/events.jsonl
<base>/users/<safeUser>/sessions/<sessionId>/session.json
<base>/users/<safeUser>/surveys/gating.json
<base>/users/<safeUser>/surveys/scheduled.json
"""

import re
from pathlib import Path

# 匿名用户保留目录名
ANONYMOUS_USER_FOLDER = "anon"

_UNSAFE_CHARS = re.compile(r"[^\w\-@.]")


def safe_user_folder(user_id: str | None) -> str:
    """userId 转文件系统安全的目录名

    字母、数字与 -_@. 以外的字符替换为 _；None 或空串映射到 anon。
    """
    if not user_id:
        return ANONYMOUS_USER_FOLDER
    folder = _UNSAFE_CHARS.sub("_", user_id)
    if folder in {".", ".."}:
        return "_" * len(folder)
    return folder


class StorageLayout:
    """按用户分桶的目录布局"""

    def __init__(self, base_dir: str | Path) -> None:
        self.base_dir = Path(base_dir)

    @property
    def users_dir(self) -> Path:
        return self.base_dir / "users"

    def user_dir(self, user_id: str | None) -> Path:
        return self.users_dir / safe_user_folder(user_id)

    def sessions_dir(self, user_id: str | None) -> Path:
        return self.user_dir(user_id) / "sessions"

    def session_dir(self, user_id: str | None, session_id: str) -> Path:
        return self.sessions_dir(user_id) / session_id

    def events_path(self, user_id: str | None, session_id: str) -> Path:
        return self.session_dir(user_id, session_id) / "events.jsonl"

    def session_meta_path(self, user_id: str | None, session_id: str) -> Path:
        return self.session_dir(user_id, session_id) / "session.json"

    def surveys_dir(self, user_id: str | None) -> Path:
        return self.user_dir(user_id) / "surveys"

    def gating_path(self, user_id: str | None) -> Path:
        return self.surveys_dir(user_id) / "gating.json"

    def scheduled_path(self, user_id: str | None) -> Path:
        return self.surveys_dir(user_id) / "scheduled.json"

    def user_folders(self) -> list[Path]:
        """已存在的全部用户目录"""
        if not self.users_dir.is_dir():
            return []
        return sorted(p for p in self.users_dir.iterdir() if p.is_dir())
