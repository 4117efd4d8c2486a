"""Request dependencies: caller identity and role checks.

The caller is identified by the X-User-Id header. Issuing and verifying
credentials happens in front of this service.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, Header, HTTPException, status

from woodie.db.users_repository import UserRecord, get_user_by_id


def get_current_user(x_user_id: str | None = Header(default=None)) -> UserRecord:
    """Resolve the active user named by X-User-Id.

    Raises:
        HTTPException: 401 if the header is missing, malformed, or names an
            unknown or inactive user
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user id",
        ) from None

    user = get_user_by_id(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown or inactive user",
        )
    return user


def require_roles(*roles: str) -> Callable[..., UserRecord]:
    """Build a dependency that only lets the given roles through (403 otherwise)."""

    def dependency(user: UserRecord = Depends(get_current_user)) -> UserRecord:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return dependency


require_admin = require_roles("admin")
require_teacher = require_roles("teacher", "admin")
