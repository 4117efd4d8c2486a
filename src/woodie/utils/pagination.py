"""Pagination helpers for list endpoints."""

from __future__ import annotations

import math
from typing import Any, Sequence


def build_pagination(page: int, limit: int, total: int) -> dict[str, int]:
    """Pagination block used in list responses."""
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit > 0 else 0,
    }


def paginate(items: Sequence[Any], page: int, limit: int) -> dict[str, Any]:
    """Slice an in-memory list into one page.

    Returns:
        {"data": [...], "pagination": {...}}
    """
    if page < 1 or limit < 1:
        raise ValueError("page and limit must be positive")
    start = (page - 1) * limit
    return {
        "data": list(items[start:start + limit]),
        "pagination": build_pagination(page, limit, len(items)),
    }
