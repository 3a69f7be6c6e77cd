"""测试辅助函数 -- 规则构造与门控/调度文件预置"""

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from surveycue.models import (
    EventTrigger,
    OptionsResponse,
    SurveyRule,
    TriggerCondition,
)
from surveycue.store import StorageLayout


def make_rule(
    rule_id: str = "survey1",
    event: str = "scan",
    *,
    properties: dict[str, Any] | None = None,
    schedule_after_seconds: float | None = None,
    response: Any = None,
    **kwargs: Any,
) -> SurveyRule:
    """构造一条事件触发规则"""
    return SurveyRule(
        rule_id=rule_id,
        title="Survey",
        message="Please answer",
        response=response or OptionsResponse(options=["Yes", "No"]),
        trigger=TriggerCondition(
            event=EventTrigger(
                name=event,
                properties=properties,
                schedule_after_seconds=schedule_after_seconds,
            )
        ),
        **kwargs,
    )


def iso_past(seconds: float) -> str:
    return (datetime.now(UTC) - timedelta(seconds=seconds)).isoformat().replace("+00:00", "Z")


def write_gating(
    base_dir: Path,
    user_id: str | None,
    rule_id: str,
    *,
    last_shown_seconds_ago: float = 3600,
    attempt_count: int = 1,
    completed_once: bool = False,
) -> Path:
    """直接写入 gating.json，模拟历史展示记录"""
    path = StorageLayout(base_dir).gating_path(user_id)
    path.parent.mkdir(parents=True, exist_ok=True)
    doc = {
        "rules": {
            rule_id: {
                "lastShownAt": iso_past(last_shown_seconds_ago),
                "shownOnce": True,
                "attemptCount": attempt_count,
                "completedOnce": completed_once,
            }
        }
    }
    path.write_text(json.dumps(doc), encoding="utf-8")
    return path
