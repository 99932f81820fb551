"""
Tests for the FallbackSelector: candidate gathering, priority scoring, interval
synthesis and the exploit/explore split.
"""

import random
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from reviewcore.fallback import FallbackCandidate, FallbackConfig, FallbackSelector
from reviewcore.models import ContentItem, Lesson
from reviewcore.store import ContentHistory

from conftest import make_lesson

TODAY = date(2024, 3, 15)


class FakeHistory(ContentHistory):
    """Lesson history held in dictionaries."""

    def __init__(self, lessons: List[Lesson], completed: Dict[str, datetime]):
        self.lessons = {lesson.lesson_id: lesson for lesson in lessons}
        self.completed = completed

    def list_completed_lesson_ids(self, learner_id: str) -> List[str]:
        return list(self.completed)

    def list_items_for_lesson(self, lesson_id: str) -> List[ContentItem]:
        return list(self.lessons[lesson_id].items)

    def completion_date(self, learner_id: str, lesson_id: str) -> datetime:
        return self.completed[lesson_id]

    def get_item(self, item_id: str) -> Optional[ContentItem]:
        for lesson in self.lessons.values():
            for item in lesson.items:
                if item.item_id == item_id:
                    return item
        return None


def _completed(days_ago: int) -> datetime:
    day = TODAY - timedelta(days=days_ago)
    return datetime(day.year, day.month, day.day, 18, 0, tzinfo=timezone.utc)


@pytest.fixture
def three_lessons() -> FakeHistory:
    """3 completed lessons with 12 items in total."""
    lessons = [
        make_lesson("lesson-1", 5, difficulty=2),
        make_lesson("lesson-2", 4, difficulty=3),
        make_lesson("lesson-3", 3, difficulty=5),
    ]
    completed = {
        "lesson-1": _completed(20),
        "lesson-2": _completed(5),
        "lesson-3": _completed(0),
    }
    return FakeHistory(lessons, completed)


def _candidate(difficulty: int, days: int) -> FallbackCandidate:
    return FallbackCandidate(
        item=ContentItem(item_id="x", difficulty=difficulty), days_since_completion=days
    )


@pytest.mark.parametrize("limit", [1, 5, 10, 12, 20])
def test_fallback_session_size_is_bounded_and_unique(three_lessons, limit):
    selector = FallbackSelector(three_lessons, rng=random.Random(3))
    items = selector.select("learner-1", limit, today=TODAY)

    ids = [item.item_id for item in items]
    assert len(ids) == min(limit, 12)
    assert len(set(ids)) == len(ids)


def test_same_seed_gives_same_selection(three_lessons):
    first = FallbackSelector(three_lessons, rng=random.Random(99)).select(
        "learner-1", 6, today=TODAY
    )
    second = FallbackSelector(three_lessons, rng=random.Random(99)).select(
        "learner-1", 6, today=TODAY
    )
    assert [i.item_id for i in first] == [i.item_id for i in second]


def test_top_priority_items_are_always_selected(three_lessons):
    """ceil(10 * 0.7) = 7 slots go to the highest-priority candidates."""
    for seed in range(5):
        selector = FallbackSelector(three_lessons, rng=random.Random(seed))
        items = selector.select("learner-1", 10, today=TODAY)
        ids = [item.item_id for item in items]

        # lesson-3 (today, difficulty 5) and lesson-2 (5 days ago) outrank lesson-1.
        expected_top = [f"lesson-3-item-{n}" for n in range(1, 4)] + [
            f"lesson-2-item-{n}" for n in range(1, 5)
        ]
        assert ids[:7] == expected_top
        assert all(i.startswith("lesson-1") for i in ids[7:])


def test_small_limit_is_filled_by_priority_only(three_lessons):
    selector = FallbackSelector(three_lessons, rng=random.Random(0))
    items = selector.select("learner-1", 3, today=TODAY)
    assert [i.item_id for i in items] == [
        "lesson-3-item-1",
        "lesson-3-item-2",
        "lesson-3-item-3",
    ]


def test_zero_exploitation_ratio_selects_at_random(three_lessons):
    config = FallbackConfig(exploitation_ratio=0.0)
    selector = FallbackSelector(three_lessons, config=config, rng=random.Random(5))
    items = selector.select("learner-1", 4, today=TODAY)
    assert len({i.item_id for i in items}) == 4


@pytest.mark.parametrize("limit", [0, -3])
def test_non_positive_limit_returns_nothing(three_lessons, limit):
    assert FallbackSelector(three_lessons).select("learner-1", limit, today=TODAY) == []


def test_no_completed_lessons_returns_nothing():
    history = FakeHistory([make_lesson("lesson-1", 3)], completed={})
    assert FallbackSelector(history).select("learner-1", 10, today=TODAY) == []


def test_item_shared_by_lessons_keeps_latest_completion():
    shared = ContentItem(item_id="shared", difficulty=3)
    older = Lesson(lesson_id="older", items=[shared])
    newer = Lesson(lesson_id="newer", items=[shared])
    history = FakeHistory(
        [older, newer], {"older": _completed(25), "newer": _completed(2)}
    )

    candidates = FallbackSelector(history).gather_candidates("learner-1", TODAY)
    assert len(candidates) == 1
    assert candidates[0].days_since_completion == 2


def test_future_completion_counts_as_today():
    history = FakeHistory([make_lesson("lesson-1", 1)], {"lesson-1": _completed(-3)})
    candidates = FallbackSelector(history).gather_candidates("learner-1", TODAY)
    assert candidates[0].days_since_completion == 0


@pytest.mark.parametrize(
    "difficulty, days, expected",
    [
        (5, 0, 1.0),
        (1, 15, 0.5 * 0.7 + 0.2 * 0.3),
        (3, 30, 0.6 * 0.3),
        (3, 45, 0.6 * 0.3),
    ],
)
def test_priority_score(difficulty, days, expected):
    selector = FallbackSelector(FakeHistory([], {}))
    assert selector.priority_score(_candidate(difficulty, days)) == pytest.approx(expected)


@pytest.mark.parametrize(
    "difficulty, days, expected_interval",
    [
        (2, 0, 4),  # base 4, full recency factor
        (5, 0, 1),  # base floored at 1
        (1, 3, 4),  # 5 * (1 - 3/14) = 3.93
        (1, 10, 3),  # past the recent window: 5 * 0.5 = 2.5 rounds up
        (3, 10, 2),  # 3 * 0.5 = 1.5 rounds up
        (4, 30, 1),  # 2 * 0.5
    ],
)
def test_synthesized_interval(difficulty, days, expected_interval):
    selector = FallbackSelector(FakeHistory([], {}))
    item = selector.synthesize_review_item(_candidate(difficulty, days), TODAY)

    assert item.interval_days == expected_interval
    assert item.due_date == TODAY + timedelta(days=expected_interval)
    assert item.difficulty == difficulty
    assert item.content is not None
