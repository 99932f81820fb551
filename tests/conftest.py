import sys
import pytest
from pathlib import Path
from typing import Generator, List
from datetime import date, datetime, timedelta, timezone

from reviewcore.models import ContentItem, LearningStage, Lesson, ScheduleRecord
from reviewcore.db import ScheduleDatabase


# each test runs on cwd to its temp dir
@pytest.fixture(autouse=True)
def go_to_tmpdir(request):
    """
    Temporarily change the process working directory to the test's tmpdir and prepend that tmpdir to sys.path.
    """
    tmpdir = request.getfixturevalue("tmpdir")
    # ensure local test created packages can be imported
    sys.path.insert(0, str(tmpdir))
    # Chdir only for the duration of the test.
    with tmpdir.as_cwd():
        yield


# --- Database Fixtures ---
@pytest.fixture
def db_path_memory() -> str:
    return ":memory:"


@pytest.fixture
def db_path_file(tmp_path: Path) -> Path:
    return tmp_path / "test_review.db"


@pytest.fixture(params=["memory", "file"])
def db_manager(
    request, db_path_memory: str, db_path_file: Path
) -> Generator[ScheduleDatabase, None, None]:
    """
    Provide a ScheduleDatabase, either in-memory or file-backed, closed on teardown.
    """
    if request.param == "memory":
        db_man = ScheduleDatabase(db_path_memory)
    else:
        db_man = ScheduleDatabase(db_path_file)
    try:
        yield db_man
    finally:
        db_man.close_connection()
        if request.param == "file" and db_path_file.exists():
            try:
                db_path_file.unlink()
            except OSError as e:
                import logging

                logging.warning(
                    f"Error removing temporary DB file in test fixture teardown: {e}"
                )


@pytest.fixture
def initialized_db_manager(db_manager: ScheduleDatabase) -> ScheduleDatabase:
    db_manager.initialize_schema()
    return db_manager


@pytest.fixture
def in_memory_db() -> Generator[ScheduleDatabase, None, None]:
    """An initialized in-memory database."""
    db = ScheduleDatabase(":memory:")
    db.initialize_schema()
    try:
        yield db
    finally:
        db.close_connection()


# --- Model Fixtures ---
@pytest.fixture
def today() -> date:
    return date(2024, 3, 15)


@pytest.fixture
def now(today: date) -> datetime:
    return datetime(today.year, today.month, today.day, 9, 30, tzinfo=timezone.utc)


def make_reviewed_record(
    learner_id: str = "learner-1",
    item_id: str = "item-1",
    interval_days: int = 10,
    last_reviewed_at: date = date(2024, 3, 1),
    ease_factor: float = 2.5,
    stage: LearningStage = LearningStage.Review,
    review_count: int = 5,
    correct_count: int = 4,
    consecutive_correct: int = 3,
) -> ScheduleRecord:
    """Build a consistent record that has been reviewed at least once."""
    return ScheduleRecord(
        learner_id=learner_id,
        item_id=item_id,
        interval_days=interval_days,
        ease_factor=ease_factor,
        last_reviewed_at=last_reviewed_at,
        next_review_at=last_reviewed_at + timedelta(days=interval_days),
        review_count=review_count,
        learning_stage=stage,
        correct_count=correct_count,
        consecutive_correct=consecutive_correct,
    )


@pytest.fixture
def sample_record() -> ScheduleRecord:
    """A Review-stage record due on 2024-03-11."""
    return make_reviewed_record()


def make_lesson(lesson_id: str, item_count: int, difficulty: int = 3) -> Lesson:
    """Build a lesson with `item_count` items named '<lesson_id>-item-<n>'."""
    return Lesson(
        lesson_id=lesson_id,
        title=lesson_id.replace("-", " ").title(),
        items=[
            ContentItem(
                item_id=f"{lesson_id}-item-{n}",
                lesson_id=lesson_id,
                prompt=f"Prompt {n} of {lesson_id}",
                answer=f"Answer {n} of {lesson_id}",
                difficulty=difficulty,
            )
            for n in range(1, item_count + 1)
        ],
    )


@pytest.fixture
def sample_lessons() -> List[Lesson]:
    """Three lessons with 12 items in total."""
    return [
        make_lesson("lesson-1", 5, difficulty=2),
        make_lesson("lesson-2", 4, difficulty=3),
        make_lesson("lesson-3", 3, difficulty=5),
    ]


@pytest.fixture
def db_with_history(
    in_memory_db: ScheduleDatabase, sample_lessons: List[Lesson], now: datetime
) -> ScheduleDatabase:
    """In-memory database where learner-1 completed all sample lessons."""
    in_memory_db.upsert_lessons(sample_lessons)
    for days_ago, lesson in enumerate(sample_lessons):
        in_memory_db.mark_lesson_completed(
            "learner-1", lesson.lesson_id, now - timedelta(days=days_ago * 5)
        )
    return in_memory_db
