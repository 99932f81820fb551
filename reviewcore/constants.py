"""
Spaced repetition constants.

Static defaults for the adaptive scheduler, the learning-stage thresholds and
the fallback selector. No runtime configuration here - pure constants only.
SchedulerConfig and FallbackConfig take their defaults from this module.
"""

# Ease factor bounds
DEFAULT_EASE: float = 2.5
MIN_EASE: float = 1.3
MAX_EASE: float = 3.0

# Natural decay applied before any other ease adjustment (gradual forgetting).
EASE_DECAY_RATE: float = 0.01

# Ease adjustments
EASY_EASE_BONUS: float = 0.15
CONSISTENCY_BONUS_PER_STREAK: float = 0.005
HARD_EASE_PENALTY_PER_LEVEL: float = 0.025
INCORRECT_EASE_PENALTY: float = 0.2
MAX_FORGIVENESS: float = 0.5

# Interval multipliers by outcome/difficulty tier
AGAIN_FACTOR: float = 0.5  # incorrect
AGAIN_RELAXATION: float = 0.2  # added to AGAIN_FACTOR, scaled by success rate
HARD_FACTOR: float = 1.2  # correct, difficulty >= 4
MEDIUM_FACTOR: float = 1.5  # correct, difficulty == 3
EASY_FACTOR: float = 2.5  # correct, difficulty <= 2

# Adaptive multiplier
DAMPING_THRESHOLD_DAYS: int = 30
DAMPING_STRENGTH: float = 0.3
CONSECUTIVE_CORRECT_BONUS_THRESHOLD: int = 3
MAX_CONSECUTIVE_BONUS: int = 10
CONFIDENCE_BOOST_PER_STREAK: float = 0.02
CONFIDENCE_BOOST_CAP: float = 0.15
PERFORMANCE_BOOST: float = 0.1

MAX_INTERVAL_DAYS: int = 36500

# Difficulty scale of content items
MIN_DIFFICULTY: int = 1
MAX_DIFFICULTY: int = 5
DEFAULT_DIFFICULTY: int = 3

# Success rate assumed for a record that has never been reviewed.
DEFAULT_SUCCESS_RATE: float = 0.0

# Learning stage transitions (interval thresholds in days)
LEARNING_TO_REVIEW_THRESHOLD: int = 7
REVIEW_TO_GRADUATED_THRESHOLD: int = 30

# Fallback selection
RETENTION_WINDOW_DAYS: int = 30
RECENCY_WEIGHT: float = 0.7
DIFFICULTY_WEIGHT: float = 0.3
EXPLOITATION_RATIO: float = 0.7
RECENT_COMPLETION_DAYS: int = 7
RECENCY_DECAY_DAYS: int = 14
MIN_RECENCY_FACTOR: float = 0.5

DEFAULT_SESSION_LIMIT: int = 10
