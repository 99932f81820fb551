# reviewcore/scheduler.py

"""
Defines the BaseScheduler abstract class and the AdaptiveScheduler, the pure
interval/ease calculator of reviewcore, together with the learning-stage
transition table.
"""

import logging
import math
from abc import ABC, abstractmethod
import datetime
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, model_validator

from . import constants
from .models import LearningStage

logger = logging.getLogger(__name__)


@dataclass
class SchedulerOutput:
    interval_days: int
    ease_factor: float
    next_review_date: datetime.date


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


class SchedulerConfig(BaseModel):
    """Tunable coefficients of the adaptive scheduler.

    The defaults are empirically chosen, not derived; override them per
    deployment as needed.
    """

    default_ease: float = constants.DEFAULT_EASE
    min_ease: float = constants.MIN_EASE
    max_ease: float = constants.MAX_EASE
    ease_decay_rate: float = constants.EASE_DECAY_RATE

    easy_ease_bonus: float = constants.EASY_EASE_BONUS
    consistency_bonus_per_streak: float = constants.CONSISTENCY_BONUS_PER_STREAK
    max_consecutive_bonus: int = constants.MAX_CONSECUTIVE_BONUS
    hard_ease_penalty_per_level: float = constants.HARD_EASE_PENALTY_PER_LEVEL
    incorrect_ease_penalty: float = constants.INCORRECT_EASE_PENALTY
    max_forgiveness: float = constants.MAX_FORGIVENESS

    again_factor: float = constants.AGAIN_FACTOR
    again_relaxation: float = constants.AGAIN_RELAXATION
    hard_factor: float = constants.HARD_FACTOR
    medium_factor: float = constants.MEDIUM_FACTOR
    easy_factor: float = constants.EASY_FACTOR

    damping_threshold_days: int = constants.DAMPING_THRESHOLD_DAYS
    damping_strength: float = constants.DAMPING_STRENGTH
    confidence_streak_threshold: int = constants.CONSECUTIVE_CORRECT_BONUS_THRESHOLD
    confidence_boost_per_streak: float = constants.CONFIDENCE_BOOST_PER_STREAK
    confidence_boost_cap: float = constants.CONFIDENCE_BOOST_CAP
    performance_boost: float = constants.PERFORMANCE_BOOST

    max_interval: int = constants.MAX_INTERVAL_DAYS

    learning_to_review_threshold: int = constants.LEARNING_TO_REVIEW_THRESHOLD
    review_to_graduated_threshold: int = constants.REVIEW_TO_GRADUATED_THRESHOLD

    @model_validator(mode="after")
    def check_ease_bounds(self) -> "SchedulerConfig":
        if not (self.min_ease <= self.default_ease <= self.max_ease):
            raise ValueError(
                "Ease bounds must satisfy min_ease <= default_ease <= max_ease."
            )
        # A config may narrow the record's ease bounds, never widen them.
        if self.min_ease < constants.MIN_EASE or self.max_ease > constants.MAX_EASE:
            raise ValueError(
                f"Ease bounds must lie within [{constants.MIN_EASE}, {constants.MAX_EASE}]."
            )
        return self


class BaseScheduler(ABC):
    """
    Abstract base class for all schedulers in reviewcore.
    """

    @abstractmethod
    def compute_next(
        self,
        current_interval: int,
        was_correct: bool,
        difficulty: int,
        ease_factor: float,
        consecutive_correct: int,
        historical_success_rate: float,
        review_date: datetime.date,
    ) -> SchedulerOutput:
        """
        Computes the next interval, ease factor and due date of an item.

        Args:
            current_interval: The item's interval before this answer, in days.
            was_correct: Whether the learner answered correctly.
            difficulty: Declared difficulty of the item (1=easiest, 5=hardest).
            ease_factor: The item's ease factor before this answer.
            consecutive_correct: Correct answers in a row before this one.
            historical_success_rate: Share of past answers that were correct (0-1).
            review_date: The date of the answer; the due date is counted from it.

        Returns:
            A SchedulerOutput with the new interval, ease factor and due date.

        Raises:
            ValueError: If any input is outside its documented range.
        """
        pass


class AdaptiveScheduler(BaseScheduler):
    """
    Ease-factor scheduler with difficulty tiers and an adaptive multiplier.

    Keeps no state between calls and never touches a store or the clock.
    """

    def __init__(self, config: Optional[SchedulerConfig] = None):
        if config is None:
            config = SchedulerConfig()
        self.config = config

    def _validate_inputs(
        self,
        current_interval: int,
        difficulty: int,
        consecutive_correct: int,
        historical_success_rate: float,
    ) -> None:
        if isinstance(difficulty, bool) or not isinstance(difficulty, int):
            raise ValueError(f"Invalid difficulty: {difficulty!r}. Must be an integer 1-5.")
        if not (constants.MIN_DIFFICULTY <= difficulty <= constants.MAX_DIFFICULTY):
            raise ValueError(f"Invalid difficulty: {difficulty}. Must be 1-5.")
        if current_interval < 0:
            raise ValueError(f"Invalid interval: {current_interval}. Must be >= 0.")
        if consecutive_correct < 0:
            raise ValueError(
                f"Invalid consecutive_correct: {consecutive_correct}. Must be >= 0."
            )
        if not (0.0 <= historical_success_rate <= 1.0):
            raise ValueError(
                f"Invalid historical_success_rate: {historical_success_rate}. Must be 0-1."
            )

    def _clamp_ease(self, ease: float) -> float:
        return min(self.config.max_ease, max(self.config.min_ease, ease))

    def _adjust_ease(
        self,
        ease_factor: float,
        was_correct: bool,
        difficulty: int,
        consecutive_correct: int,
        historical_success_rate: float,
    ) -> float:
        cfg = self.config
        ease = self._clamp_ease(ease_factor - cfg.ease_decay_rate)

        if was_correct:
            if difficulty <= 2:
                streak = min(consecutive_correct, cfg.max_consecutive_bonus)
                ease += cfg.easy_ease_bonus + streak * cfg.consistency_bonus_per_streak
            elif difficulty >= 4:
                ease -= cfg.hard_ease_penalty_per_level * (difficulty - 3)
        else:
            # Learners with a good track record lose less ease on a slip.
            forgiveness = historical_success_rate * cfg.max_forgiveness
            penalty = cfg.incorrect_ease_penalty * math.sqrt(ease / cfg.min_ease)
            ease -= penalty * (1.0 - forgiveness)

        return self._clamp_ease(ease)

    def _base_multiplier(
        self, was_correct: bool, difficulty: int, historical_success_rate: float
    ) -> float:
        cfg = self.config
        if not was_correct:
            return cfg.again_factor + cfg.again_relaxation * historical_success_rate
        if difficulty <= 2:
            return cfg.easy_factor
        if difficulty == 3:
            return cfg.medium_factor
        return cfg.hard_factor

    def _adaptive_multiplier(
        self,
        current_interval: int,
        was_correct: bool,
        consecutive_correct: int,
        historical_success_rate: float,
    ) -> float:
        cfg = self.config

        damping = 1.0
        if current_interval > cfg.damping_threshold_days:
            ratio = current_interval / cfg.damping_threshold_days
            damping = 1.0 / (1.0 + cfg.damping_strength * math.log(ratio))

        # A broken streak earns no confidence boost.
        confidence = 1.0
        if was_correct and consecutive_correct > cfg.confidence_streak_threshold:
            extra = consecutive_correct - cfg.confidence_streak_threshold
            confidence += min(
                extra * cfg.confidence_boost_per_streak, cfg.confidence_boost_cap
            )

        performance = 1.0 + cfg.performance_boost * historical_success_rate

        return damping * confidence * performance

    def compute_next(
        self,
        current_interval: int,
        was_correct: bool,
        difficulty: int,
        ease_factor: float,
        consecutive_correct: int,
        historical_success_rate: float,
        review_date: datetime.date,
    ) -> SchedulerOutput:
        self._validate_inputs(
            current_interval, difficulty, consecutive_correct, historical_success_rate
        )

        new_ease = self._adjust_ease(
            ease_factor,
            was_correct,
            difficulty,
            consecutive_correct,
            historical_success_rate,
        )

        multiplier = self._base_multiplier(
            was_correct, difficulty, historical_success_rate
        )
        multiplier *= new_ease / self.config.default_ease
        multiplier *= self._adaptive_multiplier(
            current_interval, was_correct, consecutive_correct, historical_success_rate
        )
        if was_correct:
            # A correct answer never shortens the gap.
            multiplier = max(1.0, multiplier)

        if current_interval == 0 and was_correct:
            new_interval = 1
        else:
            new_interval = max(1, round_half_up(current_interval * multiplier))
        new_interval = min(new_interval, self.config.max_interval)

        next_review_date = review_date + datetime.timedelta(days=new_interval)

        logger.debug(
            f"compute_next: interval {current_interval} -> {new_interval}, "
            f"ease {ease_factor:.3f} -> {new_ease:.3f}, multiplier {multiplier:.3f}"
        )

        return SchedulerOutput(
            interval_days=new_interval,
            ease_factor=new_ease,
            next_review_date=next_review_date,
        )


# (stage before a correct answer) -> (stage after, minimum new interval)
_CORRECT_TRANSITIONS: Dict[LearningStage, Tuple[LearningStage, str]] = {
    LearningStage.New: (LearningStage.Learning, ""),
    LearningStage.Learning: (LearningStage.Review, "learning_to_review_threshold"),
    LearningStage.Review: (LearningStage.Graduated, "review_to_graduated_threshold"),
    LearningStage.Graduated: (LearningStage.Graduated, ""),
}

# (stage before an incorrect answer) -> stage after
_INCORRECT_TRANSITIONS: Dict[LearningStage, LearningStage] = {
    LearningStage.New: LearningStage.New,
    LearningStage.Learning: LearningStage.Learning,
    LearningStage.Review: LearningStage.Learning,
    LearningStage.Graduated: LearningStage.Learning,
}


def next_learning_stage(
    stage: LearningStage,
    was_correct: bool,
    new_interval: int,
    config: Optional[SchedulerConfig] = None,
) -> LearningStage:
    """
    Apply the learning-stage transition table to one answer.

    Correct answers advance New -> Learning unconditionally, Learning -> Review
    once the new interval reaches the review threshold and Review -> Graduated
    once it reaches the graduation threshold. Incorrect answers send every
    stage except New back to Learning.
    """
    if not was_correct:
        return _INCORRECT_TRANSITIONS[stage]

    cfg = config or SchedulerConfig()
    target, threshold_field = _CORRECT_TRANSITIONS[stage]
    if threshold_field and new_interval < getattr(cfg, threshold_field):
        return stage
    return target
