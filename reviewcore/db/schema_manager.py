import duckdb
import logging

from .connection import ConnectionHandler
from .schema import DB_SCHEMA_SQL
from ..config import settings
from ..exceptions import DatabaseConnectionError, SchemaInitializationError

logger = logging.getLogger(__name__)


class SchemaManager:
    """Manages the database schema initialization and maintenance."""

    def __init__(self, handler: ConnectionHandler):
        """
        Initializes the SchemaManager with a connection handler.

        Args:
            handler: The ConnectionHandler instance for the database.
        """
        self._handler = handler

    def initialize_schema(self, force_recreate_tables: bool = False) -> None:
        """
        Initializes the database schema inside a transaction. Skipped in
        read-only mode unless the DB is in-memory. Can force recreation of
        tables, which deletes all existing data.
        """
        if self._handle_read_only_initialization(force_recreate_tables):
            return

        try:
            with self._handler.transaction("schema initialization") as cursor:
                if force_recreate_tables:
                    self._recreate_tables(cursor)
                cursor.execute(DB_SCHEMA_SQL)
            logger.info(
                f"Database schema at {self._handler.db_path_resolved} initialized successfully (or already exists)."
            )
        except duckdb.Error as e:
            logger.error(
                f"Error initializing database schema at {self._handler.db_path_resolved}: {e}"
            )
            raise SchemaInitializationError(
                f"Failed to initialize schema: {e}", original_exception=e
            ) from e

    def _handle_read_only_initialization(self, force_recreate_tables: bool) -> bool:
        """Returns True if initialization should be skipped because the
        database is read-only."""
        if self._handler.read_only:
            if force_recreate_tables:
                raise DatabaseConnectionError(
                    "Cannot force_recreate_tables in read-only mode."
                )
            if not self._handler.is_memory:
                logger.warning(
                    "Attempting to initialize schema in read-only mode. Skipping."
                )
                return True
        return False

    def _perform_safety_check(self, cursor: duckdb.DuckDBPyConnection) -> None:
        """Refuses to drop tables that hold schedule records."""
        if self._handler.is_memory or settings.testing_mode:
            return

        try:
            result = cursor.execute(
                "SELECT COUNT(*) FROM schedule_records"
            ).fetchone()
        except duckdb.CatalogException:
            # Table does not exist yet; nothing to lose.
            return
        except duckdb.Error as e:
            error_msg = f"CRITICAL: Cannot verify if tables contain data before dropping. Refusing to proceed to prevent data loss. Error: {e}"
            logger.error(error_msg)
            raise ValueError(error_msg) from e

        record_count = result[0] if result else 0
        if record_count > 0:
            error_msg = f"CRITICAL: Attempted to drop tables with {record_count} existing schedule records! Use backup/restore instead."
            logger.error(error_msg)
            raise ValueError(error_msg)

    def _recreate_tables(self, cursor: duckdb.DuckDBPyConnection) -> None:
        """Drops all tables to force recreation."""
        self._perform_safety_check(cursor)

        logger.warning(
            f"Forcing table recreation for {self._handler.db_path_resolved}. ALL EXISTING DATA WILL BE LOST."
        )
        for table in (
            "lesson_completions",
            "lesson_items",
            "lessons",
            "content_items",
            "schedule_records",
        ):
            cursor.execute(f"DROP TABLE IF EXISTS {table} CASCADE;")
