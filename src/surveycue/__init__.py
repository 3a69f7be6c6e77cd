"""surveycue -- 本地事件记录 + 声明式规则驱动的微问卷触发引擎

常用入口：
    recorder = EventRecorder(directory)
    orchestrator = SurveyOrchestrator(recorder, SurveyConfig.from_path(path))
    await orchestrator.start()
    await recorder.record("purchase", {"plan": "pro"})
"""

from .exceptions import ConfigDecodeError, ConfigFetchError, SurveyCueError
from .models import (
    Event,
    EventSession,
    PropertyMatcher,
    ResponseDraft,
    RetentionPolicy,
    SurveyConfig,
    SurveyDebugConfig,
    SurveyRule,
)
from .services import (
    EventRecorder,
    InMemoryNotificationScheduler,
    NotificationScheduler,
    SurveyConfigManager,
    SurveyOrchestrator,
    SurveyPresentation,
)

__version__ = "0.1.0"

__all__ = [
    "SurveyCueError",
    "ConfigDecodeError",
    "ConfigFetchError",
    "Event",
    "EventSession",
    "PropertyMatcher",
    "ResponseDraft",
    "RetentionPolicy",
    "SurveyConfig",
    "SurveyDebugConfig",
    "SurveyRule",
    "EventRecorder",
    "SurveyOrchestrator",
    "SurveyPresentation",
    "SurveyConfigManager",
    "NotificationScheduler",
    "InMemoryNotificationScheduler",
]
