"""Repository functions for users table.

Users are soft-deleted through the is_active flag; lookups only return
active users unless stated otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from woodie.db.database import get_db
from woodie.utils.dates import to_iso, utc_now

logger = structlog.get_logger(__name__)

ROLES = ("admin", "teacher", "student")


@dataclass
class UserRecord:
    """User record from database."""

    id: int
    username: str
    email: str
    full_name: str | None
    role: str
    is_active: bool
    created_at: str
    updated_at: str
    last_login: str | None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_dict(self) -> dict:
        """Public representation (no password hash)."""
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "fullName": self.full_name,
            "role": self.role,
            "isActive": self.is_active,
            "createdAt": self.created_at,
            "lastLogin": self.last_login,
        }


def insert_user(
    username: str,
    email: str,
    role: str = "student",
    full_name: str | None = None,
    password_hash: str = "",
) -> UserRecord:
    """Insert a new user.

    Args:
        username: Unique login name
        email: Unique email address
        role: admin | teacher | student
        full_name: Display name
        password_hash: Pre-computed hash (issuing credentials is out of scope)

    Returns:
        The created UserRecord

    Raises:
        ValueError: If role is unknown
        sqlite3.IntegrityError: If username or email already exists
    """
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")

    with get_db() as conn:
        cursor = conn.execute(
            """
            INSERT INTO users (username, email, password_hash, full_name, role)
            VALUES (?, ?, ?, ?, ?)
            """,
            (username, email, password_hash, full_name, role),
        )
        user_id = cursor.lastrowid

    logger.debug("users.inserted", user_id=user_id, role=role)
    user = get_user_by_id(user_id)
    assert user is not None
    return user


def get_user_by_id(user_id: int, include_inactive: bool = False) -> UserRecord | None:
    """Get user by ID.

    Args:
        user_id: User identifier
        include_inactive: Also return soft-deleted users

    Returns:
        UserRecord if found, None otherwise
    """
    query = "SELECT * FROM users WHERE id = ?"
    if not include_inactive:
        query += " AND is_active = 1"

    with get_db() as conn:
        row = conn.execute(query, (user_id,)).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_user_by_username(username: str) -> UserRecord | None:
    """Get an active user by username."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM users WHERE username = ? AND is_active = 1", (username,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def list_active_user_ids() -> list[int]:
    """IDs of all active users."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT id FROM users WHERE is_active = 1 ORDER BY id"
        ).fetchall()

    return [row["id"] for row in rows]


def deactivate_user(user_id: int) -> bool:
    """Soft-delete a user.

    Returns:
        True if a user was deactivated, False if not found or already inactive
    """
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE users SET is_active = 0, updated_at = ? WHERE id = ? AND is_active = 1",
            (to_iso(utc_now()), user_id),
        )

    deactivated = cursor.rowcount > 0
    if deactivated:
        logger.info("users.deactivated", user_id=user_id)

    return deactivated


def _row_to_record(row) -> UserRecord:
    """Convert database row to UserRecord."""
    return UserRecord(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        full_name=row["full_name"],
        role=row["role"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        last_login=row["last_login"],
    )
