"""Database module for SQLite persistence.

Provides:
- Database connection management
- Schema initialization
- Repository functions for users, problems and workbooks

Review records, schedules and statistics live in
woodie.core.review_repository.
"""

from woodie.db.database import get_db, get_db_path, init_db


class RecordNotFoundError(LookupError):
    """Raised when a row referenced by id does not exist."""

    def __init__(self, table: str, record_id: int):
        self.table = table
        self.record_id = record_id
        super().__init__(f"{table} {record_id} not found")


__all__ = ["RecordNotFoundError", "get_db", "get_db_path", "init_db"]
