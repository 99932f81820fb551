"""Database package for reviewcore.

DuckDB-backed implementation of the ScheduleStore and ContentHistory
contracts. Only ScheduleDatabase is exported as the public API.
"""

from .database import ScheduleDatabase

__all__ = ["ScheduleDatabase"]
