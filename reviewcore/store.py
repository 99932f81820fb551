"""
Contracts the scheduling core consumes: the schedule store and the
content/history collaborator.

reviewcore.db.ScheduleDatabase implements both on DuckDB; any other backend
only needs to honour these signatures. Implementations signal failures by
raising reviewcore.exceptions.DatabaseError (or a subclass).
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import List, Optional

from .constants import DEFAULT_EASE
from .models import ContentItem, LearningStage, ScheduleRecord


class ScheduleStore(ABC):
    """Per-(learner, item) persisted scheduling records."""

    @abstractmethod
    def get(self, learner_id: str, item_id: str) -> Optional[ScheduleRecord]:
        """Return the record for the pair, or None if the item was never scheduled."""

    @abstractmethod
    def list_due(
        self, learner_id: str, on_date: date, limit: Optional[int] = None
    ) -> List[ScheduleRecord]:
        """
        Return the learner's records with next_review_at on or before
        `on_date`, ordered by next_review_at ascending (ties by item_id),
        at most `limit` of them.
        """

    @abstractmethod
    def upsert(self, record: ScheduleRecord) -> None:
        """Insert the record or replace the stored one for the same pair."""

    @abstractmethod
    def list_records(self, learner_id: str) -> List[ScheduleRecord]:
        """Return every record of the learner, ordered by item_id."""

    def create_new(
        self, learner_id: str, item_id: str, on_date: Optional[date] = None
    ) -> ScheduleRecord:
        """
        Build the initial record for an item entering the scheduler.

        The record is New, has interval 0 and the default ease, and is due on
        `on_date` (today by default). It is not persisted; pass it to
        upsert() for that.
        """
        return ScheduleRecord(
            learner_id=learner_id,
            item_id=item_id,
            interval_days=0,
            ease_factor=DEFAULT_EASE,
            next_review_at=on_date or date.today(),
            last_reviewed_at=None,
            review_count=0,
            learning_stage=LearningStage.New,
        )


class ContentHistory(ABC):
    """Lesson content and per-learner lesson completion history."""

    @abstractmethod
    def list_completed_lesson_ids(self, learner_id: str) -> List[str]:
        """Return the ids of lessons the learner has completed."""

    @abstractmethod
    def list_items_for_lesson(self, lesson_id: str) -> List[ContentItem]:
        """Return the content items taught by the lesson."""

    @abstractmethod
    def completion_date(self, learner_id: str, lesson_id: str) -> datetime:
        """Return when the learner completed the lesson."""

    @abstractmethod
    def get_item(self, item_id: str) -> Optional[ContentItem]:
        """Return a content item by id, or None if unknown."""
