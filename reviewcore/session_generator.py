"""
This module defines the SessionGenerator, which decides between scheduled
and fallback review items, assembles review sessions and applies answers
back to the schedule store.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional, Union

from . import constants
from .exceptions import DatabaseError
from .fallback import FallbackSelector
from .models import (
    LearnerStats,
    LearningStage,
    ResponseOutcome,
    ReviewItem,
    ReviewSession,
    ScheduleRecord,
)
from .review_processor import ReviewProcessor
from .scheduler import AdaptiveScheduler, BaseScheduler
from .store import ContentHistory, ScheduleStore

# Initialize logger
logger = logging.getLogger(__name__)


@dataclass
class ScheduledSelection:
    """Review items backed by due records of the schedule store."""

    items: List[ReviewItem] = field(default_factory=list)
    source = "scheduled"


@dataclass
class FallbackSelection:
    """Review items synthesised from lesson completion history."""

    items: List[ReviewItem] = field(default_factory=list)
    source = "fallback"


SelectionResult = Union[ScheduledSelection, FallbackSelection]


class SessionGenerator:
    """
    Orchestrates the schedule store and the fallback selector.

    This class is responsible for:
    - Choosing between store-backed and fallback review items.
    - Building bounded ReviewSessions from that choice.
    - Applying answers to the schedule through a ReviewProcessor.
    - Enrolling items and reporting per-learner statistics.
    """

    def __init__(
        self,
        store: ScheduleStore,
        history: ContentHistory,
        scheduler: Optional[BaseScheduler] = None,
        fallback_selector: Optional[FallbackSelector] = None,
    ):
        """
        Create a SessionGenerator over a schedule store and a content history.

        Parameters:
            store (ScheduleStore): Persisted schedule records.
            history (ContentHistory): Lesson content and completion history;
                used for fallback selection and for content lookups.
            scheduler (BaseScheduler): Interval calculator; defaults to
                AdaptiveScheduler().
            fallback_selector (FallbackSelector): Defaults to a selector over
                `history` with an unseeded random source.
        """
        self.store = store
        self.history = history
        self.scheduler = scheduler or AdaptiveScheduler()
        self.fallback_selector = fallback_selector or FallbackSelector(history)
        self.review_processor = ReviewProcessor(store, self.scheduler)

    def _record_to_review_item(self, record: ScheduleRecord) -> ReviewItem:
        content = None
        try:
            content = self.history.get_item(record.item_id)
        except DatabaseError as e:
            logger.warning(f"Could not load content for item {record.item_id}: {e}")
        difficulty = content.difficulty if content else constants.DEFAULT_DIFFICULTY
        return ReviewItem(
            item_id=record.item_id,
            content=content,
            due_date=record.next_review_at,
            difficulty=difficulty,
            interval_days=record.interval_days,
        )

    def select_review_items(
        self, learner_id: str, today: date, limit: int
    ) -> SelectionResult:
        """
        Decide where the learner's review items come from.

        Returns ScheduledSelection when the store has at least one due record,
        otherwise FallbackSelection. A failed store read counts as "nothing due";
        a failed fallback yields an empty FallbackSelection.
        """
        try:
            due_records = self.store.list_due(learner_id, today, limit)
        except DatabaseError as e:
            logger.warning(
                f"Schedule store unavailable for learner {learner_id}, "
                f"using fallback selection: {e}"
            )
            due_records = []

        if due_records:
            return ScheduledSelection(
                items=[self._record_to_review_item(r) for r in due_records[:limit]]
            )

        try:
            items = self.fallback_selector.select(learner_id, limit, today=today)
        except DatabaseError as e:
            logger.error(f"Fallback selection failed for learner {learner_id}: {e}")
            items = []
        return FallbackSelection(items=items)

    def build_session(
        self,
        learner_id: str,
        limit: int = constants.DEFAULT_SESSION_LIMIT,
        now: Optional[datetime] = None,
    ) -> ReviewSession:
        """
        Build a review session of at most `limit` items.

        Store-provided due items are always preferred and never mixed with
        fallback items. An empty session means there is nothing to review;
        user-facing messaging is up to the caller.
        """
        now = now or datetime.now(timezone.utc)
        logger.info(f"Building review session for learner {learner_id} (limit {limit})")

        selection = self.select_review_items(learner_id, now.date(), limit)
        session = ReviewSession(
            learner_id=learner_id,
            items=selection.items,
            created_at=now,
            source=selection.source,
        )
        logger.info(
            f"Built {session.source} session with {len(session.items)} items "
            f"for learner {learner_id}."
        )
        logger.debug(f"Session items for learner {learner_id}: {session.item_ids}")
        return session

    def record_response(
        self,
        learner_id: str,
        item_id: str,
        was_correct: bool,
        difficulty: int,
        now: Optional[datetime] = None,
    ) -> ResponseOutcome:
        """
        Apply one answer to the learner's schedule.

        Returns:
            ResponseOutcome: the updated record; `saved` is False if the
            store could not read or persist it.

        Raises:
            ValueError: If difficulty is outside 1-5.
        """
        reviewed_on = (now or datetime.now(timezone.utc)).date()
        return self.review_processor.record_response(
            learner_id=learner_id,
            item_id=item_id,
            was_correct=was_correct,
            difficulty=difficulty,
            reviewed_on=reviewed_on,
        )

    def enroll_item(
        self, learner_id: str, item_id: str, now: Optional[datetime] = None
    ) -> bool:
        """
        Put an item into the learner's schedule, due immediately.

        Existing records are left untouched.

        Returns:
            True if the learner has a record for the item afterwards, False if
            the store failed.
        """
        today = (now or datetime.now(timezone.utc)).date()
        try:
            if self.store.get(learner_id, item_id) is not None:
                logger.debug(f"Item {item_id} already scheduled for learner {learner_id}")
                return True
            record = self.store.create_new(learner_id, item_id, today)
            self.store.upsert(record)
        except DatabaseError as e:
            logger.error(f"Failed to enroll item {item_id} for learner {learner_id}: {e}")
            return False
        logger.info(f"Enrolled item {item_id} for learner {learner_id}")
        return True

    def get_learner_stats(
        self, learner_id: str, now: Optional[datetime] = None
    ) -> LearnerStats:
        """
        Count the learner's scheduled items, those due today and those per
        learning stage. A store failure yields zeroed statistics.
        """
        today = (now or datetime.now(timezone.utc)).date()
        try:
            records = self.store.list_records(learner_id)
        except DatabaseError as e:
            logger.warning(f"Could not load statistics for learner {learner_id}: {e}")
            return LearnerStats()

        stats = LearnerStats(total=len(records))
        for record in records:
            if record.is_due(today):
                stats.due_today += 1
            stats.stages[LearningStage(record.learning_stage).name] += 1
        return stats
