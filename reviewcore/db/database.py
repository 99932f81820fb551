"""
DuckDB database interactions for reviewcore.
Implements ScheduleDatabase, the DuckDB-backed ScheduleStore and ContentHistory.
"""

import duckdb
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union, cast

from datetime import date, datetime
import logging
from . import db_utils

from ..exceptions import (
    ContentOperationError,
    DatabaseConnectionError,
    MarshallingError,
    ScheduleOperationError,
)
from ..models import ContentItem, Lesson, ScheduleRecord
from ..store import ContentHistory, ScheduleStore
from .connection import ConnectionHandler
from .schema_manager import SchemaManager

# --- Logging Setup ---
logger = logging.getLogger(__name__)

# --- Helper Functions ---

_RECORD_COLUMNS = (
    "learner_id, item_id, interval_days, ease_factor, next_review_at, "
    "last_reviewed_at, review_count, learning_stage, correct_count, "
    "consecutive_correct"
)


def _rows_to_dicts(cursor: duckdb.DuckDBPyConnection) -> List[Dict[str, Any]]:
    """Convert cursor results to list of dictionaries using column names."""
    rows = cursor.fetchall()
    if not rows:
        return []
    description = cursor.description
    if description is None:
        return []
    columns = [desc[0] for desc in description]
    return [dict(zip(columns, row, strict=True)) for row in rows]



class ScheduleDatabase(ScheduleStore, ContentHistory):
    """
    Acts as a Facade for the database subsystem: schedule records, lesson
    content and lesson completion history.

    It coordinates the ConnectionHandler, SchemaManager, and data marshalling
    utilities. Intended for use as a context manager.
    """

    def __init__(self, db_path: Union[str, Path], read_only: bool = False):
        """
        Create a ScheduleDatabase backed by the given DuckDB path.

        Args:
            db_path (str | Path): Path to the database file. Use ':memory:' for an in-memory database.
            read_only (bool): If True, open the database in read-only mode.
        """
        self._handler = ConnectionHandler(db_path=db_path, read_only=read_only)
        self._schema_manager = SchemaManager(self._handler)
        logger.info(
            f"ScheduleDatabase initialized for DB at: {self._handler.db_path_resolved}"
        )

    @property
    def db_path_resolved(self) -> Path:
        return self._handler.db_path_resolved

    @property
    def read_only(self) -> bool:
        return self._handler.read_only

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        return self._handler.get_connection()

    def close_connection(self) -> None:
        self._handler.close_connection()

    def __enter__(self) -> "ScheduleDatabase":
        """
        Open the database connection and initialize the schema if a new writable database was created.
        """
        self.get_connection()
        if self._handler.is_new_db and not self._handler.read_only:
            self.initialize_schema()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Ensures the connection is closed on exiting the context."""
        self.close_connection()

    def initialize_schema(self, force_recreate_tables: bool = False) -> None:
        """
        Ensure the database schema exists; optionally drop and recreate all tables.
        """
        self._schema_manager.initialize_schema(
            force_recreate_tables=force_recreate_tables
        )

    def _ensure_writable(self, action: str) -> None:
        if self.read_only:
            raise DatabaseConnectionError(f"Cannot {action} in read-only mode.")

    # --- Schedule Record Operations ---
    # fmt: off
    _UPSERT_RECORD_SQL = """
        INSERT INTO schedule_records (learner_id, item_id, interval_days, ease_factor,
                                      next_review_at, last_reviewed_at, review_count,
                                      learning_stage, correct_count, consecutive_correct,
                                      modified_at)
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
        ON CONFLICT (learner_id, item_id) DO UPDATE SET
            interval_days = EXCLUDED.interval_days,
            ease_factor = EXCLUDED.ease_factor,
            next_review_at = EXCLUDED.next_review_at,
            last_reviewed_at = EXCLUDED.last_reviewed_at,
            review_count = EXCLUDED.review_count,
            learning_stage = EXCLUDED.learning_stage,
            correct_count = EXCLUDED.correct_count,
            consecutive_correct = EXCLUDED.consecutive_correct,
            modified_at = EXCLUDED.modified_at;
        """
    # fmt: on

    def _rows_to_records(self, rows: List[Dict[str, Any]]) -> List[ScheduleRecord]:
        try:
            return [
                db_utils.db_row_to_record(cast(Dict[str, Any], row))
                for row in rows
            ]
        except MarshallingError as e:
            raise ScheduleOperationError(
                "Failed to parse schedule records from database.",
                original_exception=e,
            ) from e

    def get(self, learner_id: str, item_id: str) -> Optional[ScheduleRecord]:
        """
        Fetch the schedule record of one (learner, item) pair.

        Returns:
            ScheduleRecord | None: The record, or `None` if the item was never scheduled for the learner.

        Raises:
            ScheduleOperationError: If a database error occurs or the row cannot be parsed.
        """
        conn = self.get_connection()
        sql = f"SELECT {_RECORD_COLUMNS} FROM schedule_records WHERE learner_id = $1 AND item_id = $2;"
        try:
            cursor = conn.execute(sql, (learner_id, item_id))
            rows = _rows_to_dicts(cursor)
        except duckdb.Error as e:
            logger.error(
                f"Error fetching schedule record ({learner_id}, {item_id}): {e}"
            )
            raise ScheduleOperationError(
                f"Failed to fetch schedule record: {e}", original_exception=e
            ) from e
        if not rows:
            return None
        return self._rows_to_records(rows)[0]

    def list_due(
        self, learner_id: str, on_date: date, limit: Optional[int] = None
    ) -> List[ScheduleRecord]:
        """
        Retrieve the learner's records due on or before `on_date`.

        Results are ordered by `next_review_at` ascending, then `item_id`.

        Parameters:
            learner_id (str): The learner whose schedule is queried.
            on_date (date): Inclusive cutoff date.
            limit (Optional[int]): Maximum number of records; `None` means no limit, 0 returns an empty list.

        Raises:
            ScheduleOperationError: If a database error occurs or rows cannot be parsed.
        """
        if limit is not None and limit <= 0:
            return []
        conn = self.get_connection()
        sql = f"""
        SELECT {_RECORD_COLUMNS} FROM schedule_records
        WHERE learner_id = $1 AND next_review_at <= $2
        ORDER BY next_review_at ASC, item_id ASC
        """
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        try:
            cursor = conn.execute(sql, (learner_id, on_date))
            rows = _rows_to_dicts(cursor)
        except duckdb.Error as e:
            logger.error(
                f"Error fetching due records for learner '{learner_id}' on {on_date}: {e}"
            )
            raise ScheduleOperationError(
                f"Failed to fetch due records: {e}", original_exception=e
            ) from e
        return self._rows_to_records(rows)

    def list_records(self, learner_id: str) -> List[ScheduleRecord]:
        """
        Retrieve every schedule record of the learner, ordered by item id.

        Raises:
            ScheduleOperationError: If a database error occurs or rows cannot be parsed.
        """
        conn = self.get_connection()
        sql = f"SELECT {_RECORD_COLUMNS} FROM schedule_records WHERE learner_id = $1 ORDER BY item_id;"
        try:
            cursor = conn.execute(sql, (learner_id,))
            rows = _rows_to_dicts(cursor)
        except duckdb.Error as e:
            logger.error(f"Error fetching records for learner '{learner_id}': {e}")
            raise ScheduleOperationError(
                f"Failed to fetch records: {e}", original_exception=e
            ) from e
        return self._rows_to_records(rows)

    def upsert(self, record: ScheduleRecord) -> None:
        """
        Insert the record or replace the stored one for the same (learner, item) pair.

        Raises:
            DatabaseConnectionError: If the database is opened in read-only mode.
            ScheduleOperationError: If the write fails; the transaction is rolled back.
        """
        self._ensure_writable("upsert schedule records")
        params = db_utils.record_to_db_params_tuple(record)

        try:
            with self._handler.transaction("schedule upsert") as cursor:
                cursor.execute(self._UPSERT_RECORD_SQL, params)
        except duckdb.Error as e:
            logger.error(
                f"Error upserting schedule record ({record.learner_id}, {record.item_id}): {e}"
            )
            raise ScheduleOperationError(
                f"Schedule record upsert failed: {e}", original_exception=e
            ) from e
        logger.debug(
            f"Upserted schedule record ({record.learner_id}, {record.item_id})"
        )

    # --- Content Operations ---
    def upsert_lessons(self, lessons: Sequence[Lesson]) -> int:
        """
        Insert or replace lessons and their content items in one transaction.

        A lesson's item list is replaced wholesale; content items are keyed by
        `item_id` across lessons, so the last lesson defining an item wins its
        prompt, answer and difficulty.

        Returns:
            int: Number of content items written.

        Raises:
            DatabaseConnectionError: If the database is opened in read-only mode.
            ContentOperationError: If the write fails; the transaction is rolled back.
        """
        self._ensure_writable("upsert lessons")
        if not lessons:
            return 0

        lesson_params: List[Tuple] = []
        item_params: List[Tuple] = []
        link_params: List[Tuple] = []
        for lesson in lessons:
            lesson_params.append((lesson.lesson_id, lesson.title))
            for position, item in enumerate(lesson.items):
                item_params.append(db_utils.content_item_to_db_params_tuple(item))
                link_params.append((lesson.lesson_id, item.item_id, position))

        try:
            with self._handler.transaction("lesson upsert") as cursor:
                cursor.executemany(
                    """
                    INSERT INTO lessons (lesson_id, title) VALUES ($1, $2)
                    ON CONFLICT (lesson_id) DO UPDATE SET title = EXCLUDED.title;
                    """,
                    lesson_params,
                )
                cursor.executemany(
                    "DELETE FROM lesson_items WHERE lesson_id = $1;",
                    [(lesson.lesson_id,) for lesson in lessons],
                )
                if item_params:
                    cursor.executemany(
                        """
                        INSERT INTO content_items (item_id, lesson_id, prompt, answer, difficulty)
                        VALUES ($1, $2, $3, $4, $5)
                        ON CONFLICT (item_id) DO UPDATE SET
                            lesson_id = EXCLUDED.lesson_id,
                            prompt = EXCLUDED.prompt,
                            answer = EXCLUDED.answer,
                            difficulty = EXCLUDED.difficulty;
                        """,
                        item_params,
                    )
                    cursor.executemany(
                        "INSERT INTO lesson_items (lesson_id, item_id, position) VALUES ($1, $2, $3);",
                        link_params,
                    )
        except duckdb.Error as e:
            logger.error(f"Error during lesson upsert: {e}")
            raise ContentOperationError(
                f"Lesson upsert failed: {e}", original_exception=e
            ) from e

        logger.info(
            f"Successfully upserted {len(lesson_params)} lessons with {len(item_params)} items."
        )
        return len(item_params)

    def mark_lesson_completed(
        self,
        learner_id: str,
        lesson_id: str,
        completed_at: Optional[datetime] = None,
    ) -> None:
        """
        Record that the learner completed a lesson. Re-completing a lesson
        moves its completion timestamp.

        Raises:
            DatabaseConnectionError: If the database is opened in read-only mode.
            ContentOperationError: If the lesson is unknown or the write fails.
        """
        self._ensure_writable("record lesson completion")
        ts = db_utils.to_db_timestamp(completed_at or datetime.now().astimezone())

        conn = self.get_connection()
        try:
            known = conn.execute(
                "SELECT COUNT(*) FROM lessons WHERE lesson_id = $1;", (lesson_id,)
            ).fetchone()
            if not known or known[0] == 0:
                raise ContentOperationError(f"Lesson '{lesson_id}' not found.")
            with self._handler.transaction("lesson completion") as cursor:
                cursor.execute(
                    """
                    INSERT INTO lesson_completions (learner_id, lesson_id, completed_at)
                    VALUES ($1, $2, $3)
                    ON CONFLICT (learner_id, lesson_id) DO UPDATE SET
                        completed_at = EXCLUDED.completed_at;
                    """,
                    (learner_id, lesson_id, ts),
                )
        except duckdb.Error as e:
            logger.error(
                f"Error recording completion of lesson '{lesson_id}' for learner '{learner_id}': {e}"
            )
            raise ContentOperationError(
                f"Failed to record lesson completion: {e}", original_exception=e
            ) from e

    def list_completed_lesson_ids(self, learner_id: str) -> List[str]:
        """
        Return the learner's completed lessons, most recently completed first.

        Raises:
            ContentOperationError: If the database query fails.
        """
        conn = self.get_connection()
        sql = """
        SELECT lesson_id FROM lesson_completions
        WHERE learner_id = $1
        ORDER BY completed_at DESC, lesson_id ASC;
        """
        try:
            rows = conn.execute(sql, (learner_id,)).fetchall()
        except duckdb.Error as e:
            logger.error(f"Error fetching completed lessons for '{learner_id}': {e}")
            raise ContentOperationError(
                f"Failed to fetch completed lessons: {e}", original_exception=e
            ) from e
        return [row[0] for row in rows]

    def completion_date(self, learner_id: str, lesson_id: str) -> datetime:
        """
        Return when the learner completed the lesson, as a UTC datetime.

        Raises:
            ContentOperationError: If the lesson was not completed by the learner or the query fails.
        """
        conn = self.get_connection()
        sql = """
        SELECT completed_at FROM lesson_completions
        WHERE learner_id = $1 AND lesson_id = $2;
        """
        try:
            row = conn.execute(sql, (learner_id, lesson_id)).fetchone()
        except duckdb.Error as e:
            logger.error(
                f"Error fetching completion of lesson '{lesson_id}' for '{learner_id}': {e}"
            )
            raise ContentOperationError(
                f"Failed to fetch completion date: {e}", original_exception=e
            ) from e
        if row is None:
            raise ContentOperationError(
                f"Learner '{learner_id}' has not completed lesson '{lesson_id}'."
            )
        return db_utils.from_db_timestamp(row[0])

    def _rows_to_items(self, rows: List[Dict[str, Any]]) -> List[ContentItem]:
        try:
            return [
                db_utils.db_row_to_content_item(cast(Dict[str, Any], row))
                for row in rows
            ]
        except MarshallingError as e:
            raise ContentOperationError(
                "Failed to parse content items from database.",
                original_exception=e,
            ) from e

    def list_items_for_lesson(self, lesson_id: str) -> List[ContentItem]:
        """
        Return the content items of a lesson in authored order.

        Raises:
            ContentOperationError: If the query fails or rows cannot be parsed.
        """
        conn = self.get_connection()
        sql = """
        SELECT c.item_id, c.lesson_id, c.prompt, c.answer, c.difficulty
        FROM lesson_items li
        JOIN content_items c ON c.item_id = li.item_id
        WHERE li.lesson_id = $1
        ORDER BY li.position ASC;
        """
        try:
            cursor = conn.execute(sql, (lesson_id,))
            rows = _rows_to_dicts(cursor)
        except duckdb.Error as e:
            logger.error(f"Error fetching items for lesson '{lesson_id}': {e}")
            raise ContentOperationError(
                f"Failed to fetch lesson items: {e}", original_exception=e
            ) from e
        return self._rows_to_items(rows)

    def get_item(self, item_id: str) -> Optional[ContentItem]:
        """
        Fetch a content item by id.

        Raises:
            ContentOperationError: If the query fails or the row cannot be parsed.
        """
        conn = self.get_connection()
        sql = """
        SELECT item_id, lesson_id, prompt, answer, difficulty
        FROM content_items WHERE item_id = $1;
        """
        try:
            cursor = conn.execute(sql, (item_id,))
            rows = _rows_to_dicts(cursor)
        except duckdb.Error as e:
            logger.error(f"Error fetching content item '{item_id}': {e}")
            raise ContentOperationError(
                f"Failed to fetch content item: {e}", original_exception=e
            ) from e
        if not rows:
            return None
        return self._rows_to_items(rows)[0]
