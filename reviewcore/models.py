"""
Pydantic models for schedule records, content references and review sessions.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from enum import IntEnum
from typing import Dict, List, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from .constants import (
    DEFAULT_DIFFICULTY,
    DEFAULT_EASE,
    MAX_DIFFICULTY,
    MAX_EASE,
    MIN_DIFFICULTY,
    MIN_EASE,
)

# Regex for Kebab-case validation (e.g., "lesson-1", "greetings-basic")
KEBAB_CASE_REGEX_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class LearningStage(IntEnum):
    """
    Coarse progress bucket of a learner's memory of an item.
    """

    New = 0
    Learning = 1
    Review = 2
    Graduated = 3


class ScheduleRecord(BaseModel):
    """
    Persisted scheduling state for one (learner, item) pair.

    Created the first time an item enters the scheduler for a learner and
    mutated exactly once per submitted answer. Never deleted.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    learner_id: str = Field(..., min_length=1, description="Learner identifier.")
    item_id: str = Field(..., min_length=1, description="Content item identifier.")
    interval_days: int = Field(
        default=0,
        ge=0,
        description="Days between last review and next review (0 before the first review).",
    )
    ease_factor: float = Field(
        default=DEFAULT_EASE,
        ge=MIN_EASE,
        le=MAX_EASE,
        description="Retention multiplier; higher means longer gaps.",
    )
    next_review_at: date = Field(
        ..., description="Date the item becomes due."
    )
    last_reviewed_at: Optional[date] = Field(
        default=None, description="Date of the last answer (None if never reviewed)."
    )
    review_count: int = Field(default=0, ge=0, description="Answers submitted so far.")
    learning_stage: LearningStage = Field(default=LearningStage.New)
    correct_count: int = Field(
        default=0, ge=0, description="Correct answers submitted so far."
    )
    consecutive_correct: int = Field(
        default=0, ge=0, description="Length of the current run of correct answers."
    )

    @model_validator(mode="after")
    def check_schedule_consistency(self) -> "ScheduleRecord":
        """Enforce the interval/date invariants and sane history counters."""
        if self.correct_count > self.review_count:
            raise ValueError("correct_count cannot exceed review_count.")
        if self.consecutive_correct > self.correct_count:
            raise ValueError("consecutive_correct cannot exceed correct_count.")
        if self.last_reviewed_at is not None:
            if self.interval_days < 1:
                raise ValueError(
                    "interval_days must be at least 1 once the item has been reviewed."
                )
            expected = self.last_reviewed_at + timedelta(days=self.interval_days)
            if self.next_review_at != expected:
                raise ValueError(
                    f"next_review_at {self.next_review_at} does not match "
                    f"last_reviewed_at + interval_days ({expected})."
                )
        return self

    @property
    def historical_success_rate(self) -> Optional[float]:
        """Share of correct answers, or None before the first review."""
        if self.review_count == 0:
            return None
        return self.correct_count / self.review_count

    def is_due(self, on_date: date) -> bool:
        return self.next_review_at <= on_date


class ContentItem(BaseModel):
    """
    A reviewable piece of lesson content (e.g. a vocabulary entry).
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    item_id: str = Field(..., min_length=1)
    lesson_id: Optional[str] = Field(
        default=None, description="Lesson the item was ingested from."
    )
    prompt: str = Field(default="", max_length=1024)
    answer: str = Field(default="", max_length=1024)
    difficulty: int = Field(
        default=DEFAULT_DIFFICULTY, ge=MIN_DIFFICULTY, le=MAX_DIFFICULTY
    )


class Lesson(BaseModel):
    """A lesson and the ids of the content items it teaches."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    lesson_id: str = Field(..., min_length=1)
    title: Optional[str] = None
    items: List[ContentItem] = Field(default_factory=list)

    @field_validator("lesson_id")
    @classmethod
    def validate_lesson_id_kebab_case(cls, v: str) -> str:
        if not re.match(KEBAB_CASE_REGEX_PATTERN, v):
            raise ValueError(f"Lesson id '{v}' is not in kebab-case.")
        return v


class ReviewItem(BaseModel):
    """
    Transient wrapper around a content reference, produced for display.

    Persisted only through its ScheduleRecord once the learner answers it.
    """

    model_config = ConfigDict(extra="forbid")

    item_id: str = Field(..., min_length=1)
    content: Optional[ContentItem] = None
    due_date: date
    difficulty: int = Field(..., ge=MIN_DIFFICULTY, le=MAX_DIFFICULTY)
    interval_days: int = Field(..., ge=0)


class ReviewSession(BaseModel):
    """Ordered review items for one learner. Not persisted."""

    model_config = ConfigDict(extra="forbid")

    learner_id: str
    items: List[ReviewItem] = Field(default_factory=list)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    source: Literal["scheduled", "fallback"] = "scheduled"

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def item_ids(self) -> List[str]:
        return [item.item_id for item in self.items]


class ResponseOutcome(BaseModel):
    """
    Result of applying one answer.

    `saved` is False when the record was computed but could not be persisted
    ("progress not saved"); the caller may continue the session.
    """

    model_config = ConfigDict(extra="forbid")

    record: ScheduleRecord
    saved: bool = True
    error: Optional[str] = None


def _empty_stage_counts() -> Dict[str, int]:
    return {stage.name: 0 for stage in LearningStage}


class LearnerStats(BaseModel):
    """Aggregate scheduling statistics for one learner."""

    model_config = ConfigDict(extra="forbid")

    total: int = Field(default=0, ge=0)
    due_today: int = Field(default=0, ge=0)
    stages: Dict[str, int] = Field(default_factory=_empty_stage_counts)
