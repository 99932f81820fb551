"""
Connection and transaction handling for the DuckDB schedule store.
"""

import duckdb
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from ..exceptions import DatabaseConnectionError

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


class ConnectionHandler:
    """
    Owns the single DuckDB connection of a ScheduleDatabase and runs its
    write transactions.
    """

    def __init__(self, db_path: Union[str, Path], read_only: bool = False):
        """
        Args:
            db_path: Path to the database file, or ':memory:' (any case) for
                an in-memory database. File paths are resolved to absolute paths.
            read_only: Open the database read-only. The file must already exist.
        """
        if isinstance(db_path, str) and db_path.lower() == MEMORY_PATH:
            self.db_path_resolved = Path(MEMORY_PATH)
        else:
            self.db_path_resolved = Path(db_path).resolve()
        self.read_only: bool = read_only
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        # True once a connection was opened on a database that had no file yet.
        self.is_new_db: bool = False

    @property
    def is_memory(self) -> bool:
        return str(self.db_path_resolved) == MEMORY_PATH

    def _prepare_file(self) -> None:
        if self.db_path_resolved.exists():
            self.is_new_db = False
            return
        if self.read_only:
            raise DatabaseConnectionError(
                f"Database file {self.db_path_resolved} does not exist; "
                f"cannot open it read-only."
            )
        self.is_new_db = True
        self.db_path_resolved.parent.mkdir(parents=True, exist_ok=True)

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        """
        Return the open connection, connecting on first use.

        Raises:
            DatabaseConnectionError: If a read-only database file is missing
                or DuckDB refuses the connection.
        """
        if self._connection is not None:
            return self._connection

        if self.is_memory:
            self.is_new_db = True
        else:
            self._prepare_file()

        mode = "read-only" if self.read_only else "read-write"
        try:
            self._connection = duckdb.connect(
                database=str(self.db_path_resolved), read_only=self.read_only
            )
        except duckdb.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to database: {e}", original_exception=e
            ) from e
        logger.info(f"Opened {mode} schedule store at {self.db_path_resolved}.")
        return self._connection

    def close_connection(self) -> None:
        """Close the connection, if any; the next call reconnects."""
        if self._connection is None:
            return
        try:
            self._connection.close()
            logger.info(f"Closed schedule store at {self.db_path_resolved}.")
        except duckdb.Error as e:
            logger.error(f"Error closing the database connection: {e}")
        finally:
            self._connection = None

    @contextmanager
    def transaction(self, context: str) -> Iterator[duckdb.DuckDBPyConnection]:
        """
        Yield a cursor inside BEGIN/COMMIT.

        On a duckdb.Error the transaction is rolled back and the error is
        re-raised for the caller to wrap. A failed rollback is logged, not
        raised, so the original error is the one the caller sees.

        Args:
            context: Short name of the operation, used in log messages.
        """
        conn = self.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.begin()
                yield cursor
                cursor.commit()
        except duckdb.Error:
            self._rollback(conn, context)
            raise

    @staticmethod
    def _rollback(conn: duckdb.DuckDBPyConnection, context: str) -> None:
        if getattr(conn, "closed", True):
            return
        try:
            conn.rollback()
            logger.info(f"Transaction rolled back due to {context} error.")
        except duckdb.Error as rb_err:
            logger.error(f"Failed to rollback transaction: {rb_err}")
