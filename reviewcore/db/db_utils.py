"""
Utility functions for data marshalling between Pydantic models and database formats.
This module keeps the conversion details out of the core database logic.
"""

import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from ..exceptions import MarshallingError
from ..models import ContentItem, LearningStage, ScheduleRecord


def to_db_timestamp(ts: datetime) -> datetime:
    """Convert a datetime to the naive UTC form stored in the database.

    Naive inputs are assumed to already be UTC.
    """
    if ts.tzinfo is None or ts.tzinfo.utcoffset(ts) is None:
        return ts
    return ts.astimezone(timezone.utc).replace(tzinfo=None)


def from_db_timestamp(ts: datetime) -> datetime:
    """Attach UTC to a naive timestamp read from the database."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def record_to_db_params_tuple(record: ScheduleRecord) -> Tuple:
    """
    Convert a ScheduleRecord into a tuple suitable for the upsert statement.

    Returns:
        tuple: Ordered tuple with fields:
            (learner_id, item_id, interval_days, ease_factor, next_review_at,
             last_reviewed_at, review_count, learning_stage_name,
             correct_count, consecutive_correct, modified_at)
    """
    return (
        record.learner_id,
        record.item_id,
        record.interval_days,
        record.ease_factor,
        record.next_review_at,
        record.last_reviewed_at,
        record.review_count,
        LearningStage(record.learning_stage).name,
        record.correct_count,
        record.consecutive_correct,
        to_db_timestamp(datetime.now(timezone.utc)),
    )


def db_row_to_record(row_dict: Dict[str, Any]) -> ScheduleRecord:
    """
    Create a ScheduleRecord from a database row dictionary.

    The stored stage name is mapped back to LearningStage; bookkeeping columns
    such as `modified_at` are dropped.

    Raises:
        MarshallingError: If the row does not form a valid ScheduleRecord.
    """
    data = row_dict.copy()
    data.pop("modified_at", None)

    stage_val = data.pop("learning_stage", None)
    try:
        if stage_val:
            data["learning_stage"] = LearningStage[stage_val]
        return ScheduleRecord(**data)
    except (KeyError, ValidationError) as e:
        raise MarshallingError(
            f"Failed to parse schedule record from DB row: {row_dict}. Error: {e}",
            original_exception=e,
        ) from e


def content_item_to_db_params_tuple(item: ContentItem) -> Tuple:
    """(item_id, lesson_id, prompt, answer, difficulty)"""
    return (
        item.item_id,
        item.lesson_id,
        item.prompt,
        item.answer,
        item.difficulty,
    )


def db_row_to_content_item(row_dict: Dict[str, Any]) -> ContentItem:
    """
    Create a ContentItem from a database row dictionary.

    Raises:
        MarshallingError: If the row does not form a valid ContentItem.
    """
    try:
        return ContentItem(**row_dict)
    except ValidationError as e:
        raise MarshallingError(
            f"Failed to parse content item from DB row: {row_dict}. Error: {e}",
            original_exception=e,
        ) from e


def find_latest_backup(db_path: Path) -> Optional[Path]:
    """
    Locate the most recent backup file for the given database path.

    Parameters:
        db_path (Path): Path to the main database file; backups live in a
            "backups" subdirectory of db_path.parent.

    Returns:
        Path or None: Path to the latest backup file, or `None` if no
            backups are found.
    """
    backup_dir = db_path.parent / "backups"
    if not backup_dir.exists():
        return None

    backup_files = list(backup_dir.glob(f"{db_path.stem}-backup-*{db_path.suffix}"))
    if not backup_files:
        return None

    # File names embed the timestamp, so the greatest name is the newest.
    return max(backup_files, key=lambda p: p.name)


def backup_database(db_path: Path) -> Path:
    """
    Creates a timestamped backup of the database file.

    Args:
        db_path: The path to the database file.

    Returns:
        The path to the created backup file, or `db_path` itself when there
        is no database file to back up yet.
    """
    if not db_path.exists():
        return db_path

    backup_dir = db_path.parent / "backups"
    backup_dir.mkdir(exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    backup_filename = f"{db_path.stem}-backup-{timestamp}{db_path.suffix}"
    backup_path = backup_dir / backup_filename

    shutil.copy2(db_path, backup_path)
    return backup_path
