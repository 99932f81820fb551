"""Reviewcore - adaptive spaced-repetition review scheduling."""

from .models import (
    ContentItem,
    LearningStage,
    Lesson,
    ReviewItem,
    ReviewSession,
    ScheduleRecord,
)
from .scheduler import AdaptiveScheduler, SchedulerConfig
from .fallback import FallbackConfig, FallbackSelector
from .session_generator import (
    FallbackSelection,
    ScheduledSelection,
    SessionGenerator,
)
from .store import ContentHistory, ScheduleStore
from .db import ScheduleDatabase
from .parser import YAMLProcessor, YAMLProcessorConfig

__all__ = [
    "ContentItem",
    "LearningStage",
    "Lesson",
    "ReviewItem",
    "ReviewSession",
    "ScheduleRecord",
    "AdaptiveScheduler",
    "SchedulerConfig",
    "FallbackConfig",
    "FallbackSelector",
    "FallbackSelection",
    "ScheduledSelection",
    "SessionGenerator",
    "ContentHistory",
    "ScheduleStore",
    "ScheduleDatabase",
    "YAMLProcessor",
    "YAMLProcessorConfig",
]
