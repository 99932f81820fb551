"""
Shared answer processing logic for reviewcore.

The ReviewProcessor applies one learner answer to the schedule:
1. Date handling
2. Record lookup (or creation for items entering the scheduler)
3. Scheduler computation
4. Learning-stage transition
5. Persistence, reporting a failed read or write instead of raising it
"""

import logging
from datetime import date
from typing import Optional, Tuple

from . import constants
from .exceptions import DatabaseError
from .models import ResponseOutcome, ScheduleRecord
from .scheduler import BaseScheduler, SchedulerConfig, next_learning_stage
from .store import ScheduleStore

# Initialize logger
logger = logging.getLogger(__name__)


class ReviewProcessor:
    """
    Processes answer submissions against a ScheduleStore.

    Reads happen before the write for the same (learner, item); two answers
    for the same pair racing each other resolve last-write-wins.
    """

    def __init__(
        self,
        store: ScheduleStore,
        scheduler: BaseScheduler,
        stage_config: Optional[SchedulerConfig] = None,
    ):
        """
        Initialize the ReviewProcessor.

        Args:
            store: Schedule store used to load and persist records
            scheduler: Scheduler computing the next interval and ease
            stage_config: Source of the stage thresholds; defaults to the
                scheduler's own config when it has one
        """
        self.store = store
        self.scheduler = scheduler
        self.stage_config = stage_config or getattr(scheduler, "config", None)

    def load_or_create(
        self, learner_id: str, item_id: str, on_date: date
    ) -> Tuple[ScheduleRecord, Optional[DatabaseError]]:
        """
        Return the stored record for the pair or a fresh New record.

        A failed read is treated like a missing record; the read error is
        returned alongside the new record, which is then never written back.
        """
        try:
            record = self.store.get(learner_id, item_id)
        except DatabaseError as e:
            logger.warning(
                f"Could not read schedule for learner {learner_id}, item {item_id}; "
                f"starting a new record: {e}"
            )
            return self.store.create_new(learner_id, item_id, on_date), e
        if record is None:
            record = self.store.create_new(learner_id, item_id, on_date)
        return record, None

    def apply_answer(
        self,
        record: ScheduleRecord,
        was_correct: bool,
        difficulty: int,
        reviewed_on: date,
    ) -> ScheduleRecord:
        """
        Compute the record that results from one answer. Pure; nothing is saved.

        Raises:
            ValueError: If difficulty is outside 1-5.
        """
        success_rate = record.historical_success_rate
        if success_rate is None:
            success_rate = constants.DEFAULT_SUCCESS_RATE

        output = self.scheduler.compute_next(
            current_interval=record.interval_days,
            was_correct=was_correct,
            difficulty=difficulty,
            ease_factor=record.ease_factor,
            consecutive_correct=record.consecutive_correct,
            historical_success_rate=success_rate,
            review_date=reviewed_on,
        )

        new_stage = next_learning_stage(
            record.learning_stage,
            was_correct,
            output.interval_days,
            self.stage_config,
        )

        data = record.model_dump()
        data.update(
            {
                "interval_days": output.interval_days,
                "ease_factor": output.ease_factor,
                "next_review_at": output.next_review_date,
                "last_reviewed_at": reviewed_on,
                "review_count": record.review_count + 1,
                "learning_stage": new_stage,
                "correct_count": record.correct_count + (1 if was_correct else 0),
                "consecutive_correct": (
                    record.consecutive_correct + 1 if was_correct else 0
                ),
            }
        )
        return ScheduleRecord(**data)

    def record_response(
        self,
        learner_id: str,
        item_id: str,
        was_correct: bool,
        difficulty: int,
        reviewed_on: Optional[date] = None,
    ) -> ResponseOutcome:
        """
        Apply an answer and persist the updated record.

        Args:
            learner_id: The answering learner
            item_id: The answered content item
            was_correct: Whether the answer was correct
            difficulty: Declared difficulty of the item (1-5)
            reviewed_on: Date of the answer (defaults to today)

        Returns:
            ResponseOutcome with the updated record. `saved` is False when the
            stored record could not be read (nothing is written over it) or
            the store rejected the write; the record is still the computed result.

        Raises:
            ValueError: If difficulty is outside 1-5
        """
        # Step 1: Handle date
        today = reviewed_on or date.today()

        logger.debug(
            f"Recording {'correct' if was_correct else 'incorrect'} answer for "
            f"learner {learner_id}, item {item_id} (difficulty {difficulty})"
        )

        # Steps 2-4: Load, compute, transition
        record, read_error = self.load_or_create(learner_id, item_id, today)
        updated = self.apply_answer(record, was_correct, difficulty, today)

        # Step 5: Persist
        if read_error is not None:
            logger.warning(
                f"Progress not saved for learner {learner_id}, item {item_id}: "
                f"stored schedule could not be read"
            )
            return ResponseOutcome(
                record=updated,
                saved=False,
                error=f"Stored schedule could not be read: {read_error}",
            )
        try:
            self.store.upsert(updated)
        except DatabaseError as e:
            logger.warning(
                f"Progress not saved for learner {learner_id}, item {item_id}: {e}"
            )
            return ResponseOutcome(record=updated, saved=False, error=str(e))

        logger.debug(
            f"Answer recorded for item {item_id}. Next review: "
            f"{updated.next_review_at}, Stage: {updated.learning_stage.name}"
        )
        return ResponseOutcome(record=updated, saved=True)
