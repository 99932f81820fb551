"""
Fallback selection of review items for learners without a persisted schedule.

When the schedule store has nothing due (the learner was never provisioned, or
the backend is unavailable) review candidates are synthesised from the
learner's lesson completion history: recently completed and harder items rank
first, and part of every selection is drawn at random from the rest so the
same high-priority items do not crowd out everything else.
"""

import logging
import math
import random
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from . import constants
from .models import ContentItem, ReviewItem
from .scheduler import round_half_up
from .store import ContentHistory

logger = logging.getLogger(__name__)


class FallbackConfig(BaseModel):
    """Tunable weights of the fallback selector."""

    retention_window_days: int = Field(default=constants.RETENTION_WINDOW_DAYS, gt=0)
    recency_weight: float = constants.RECENCY_WEIGHT
    difficulty_weight: float = constants.DIFFICULTY_WEIGHT
    exploitation_ratio: float = Field(
        default=constants.EXPLOITATION_RATIO, ge=0.0, le=1.0
    )
    recent_completion_days: int = constants.RECENT_COMPLETION_DAYS
    recency_decay_days: int = Field(default=constants.RECENCY_DECAY_DAYS, gt=0)
    min_recency_factor: float = constants.MIN_RECENCY_FACTOR


@dataclass
class FallbackCandidate:
    item: ContentItem
    days_since_completion: int
    priority_score: float = 0.0


class FallbackSelector:
    """
    Builds a prioritised list of transient ReviewItems from completed lessons.

    No ScheduleRecord is created here; selected items stay unscheduled until
    the learner answers one of them.
    """

    def __init__(
        self,
        history: ContentHistory,
        config: Optional[FallbackConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            history: Source of completed lessons, their items and completion dates.
            config: Selector weights; defaults to FallbackConfig().
            rng: Random source for the exploration shuffle. Pass a seeded
                random.Random for reproducible selections.
        """
        self.history = history
        self.config = config or FallbackConfig()
        self.rng = rng or random.Random()

    def gather_candidates(
        self, learner_id: str, today: date
    ) -> List[FallbackCandidate]:
        """
        Collect the items of every completed lesson, one candidate per item id.

        An item taught by several lessons keeps the most recent completion.
        """
        by_item: Dict[str, FallbackCandidate] = {}
        for lesson_id in self.history.list_completed_lesson_ids(learner_id):
            completed_at = self.history.completion_date(learner_id, lesson_id)
            days = max(0, (today - completed_at.date()).days)
            for item in self.history.list_items_for_lesson(lesson_id):
                existing = by_item.get(item.item_id)
                if existing is None or days < existing.days_since_completion:
                    by_item[item.item_id] = FallbackCandidate(
                        item=item, days_since_completion=days
                    )
        return list(by_item.values())

    def priority_score(self, candidate: FallbackCandidate) -> float:
        cfg = self.config
        window = cfg.retention_window_days
        recency_score = max(0, window - candidate.days_since_completion) / window
        difficulty_weight = candidate.item.difficulty / constants.MAX_DIFFICULTY
        return recency_score * cfg.recency_weight + difficulty_weight * cfg.difficulty_weight

    def synthesize_review_item(
        self, candidate: FallbackCandidate, today: date
    ) -> ReviewItem:
        cfg = self.config
        difficulty = candidate.item.difficulty
        days = candidate.days_since_completion

        base_days_ahead = max(1, 6 - difficulty)
        if days < cfg.recent_completion_days:
            recency_factor = max(
                cfg.min_recency_factor, 1 - days / cfg.recency_decay_days
            )
        else:
            recency_factor = cfg.min_recency_factor
        interval_days = max(1, round_half_up(base_days_ahead * recency_factor))

        return ReviewItem(
            item_id=candidate.item.item_id,
            content=candidate.item,
            due_date=today + timedelta(days=interval_days),
            difficulty=difficulty,
            interval_days=interval_days,
        )

    def select(
        self, learner_id: str, limit: int, today: Optional[date] = None
    ) -> List[ReviewItem]:
        """
        Select at most `limit` review items with distinct item ids.

        The top ceil(limit * exploitation_ratio) candidates by priority are
        taken directly; the remaining slots are filled from a shuffle of the
        rest.
        """
        if limit <= 0:
            return []
        today = today or date.today()

        candidates = self.gather_candidates(learner_id, today)
        if not candidates:
            logger.info(f"No completed lesson content for learner {learner_id}.")
            return []

        for candidate in candidates:
            candidate.priority_score = self.priority_score(candidate)
        ranked = sorted(
            candidates, key=lambda c: (-c.priority_score, c.item.item_id)
        )

        # round() guards against float error such as 10 * 0.7 == 7.000000000000001
        exploit_count = math.ceil(round(limit * self.config.exploitation_ratio, 9))
        exploited = ranked[:exploit_count]
        remainder = ranked[exploit_count:]
        self.rng.shuffle(remainder)
        explored = remainder[: max(0, limit - len(exploited))]

        selected = exploited + explored
        logger.info(
            f"Fallback selected {len(selected)} of {len(candidates)} candidates "
            f"for learner {learner_id} ({len(exploited)} by priority, "
            f"{len(explored)} explored)."
        )
        return [self.synthesize_review_item(c, today) for c in selected]
