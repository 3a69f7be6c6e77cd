"""surveycue Services -- 事件记录、问卷编排、远程配置、通知调度"""

from .config_manager import SurveyConfigManager, load_config_file
from .event_hub import EVENTS_TOPIC, SESSIONS_TOPIC, EventHub
from .notifications import (
    InMemoryNotificationScheduler,
    NotificationScheduler,
    notification_identifier,
)
from .orchestrator import SurveyOrchestrator, SurveyPresentation
from .recorder import EventRecorder
from .session_coordinator import SessionCoordinator

__all__ = [
    "EventRecorder",
    "SessionCoordinator",
    "EventHub",
    "EVENTS_TOPIC",
    "SESSIONS_TOPIC",
    "SurveyOrchestrator",
    "SurveyPresentation",
    "SurveyConfigManager",
    "load_config_file",
    "NotificationScheduler",
    "InMemoryNotificationScheduler",
    "notification_identifier",
]
