"""Repository functions for workbooks and workbook_problems tables.

A workbook is an ordered collection of problems. order_index is kept
contiguous from 1, so removing or reordering renumbers the remaining rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from woodie.core.mastery import progress_percentage
from woodie.db import RecordNotFoundError
from woodie.db.database import get_db

logger = structlog.get_logger(__name__)

WORKBOOK_STATUSES = ("draft", "published", "archived")


@dataclass
class WorkbookRecord:
    """Workbook record from database."""

    id: int
    title: str
    description: str | None
    status: str
    created_by: int | None
    created_at: str


def insert_workbook(
    title: str,
    description: str | None = None,
    status: str = "draft",
    created_by: int | None = None,
) -> WorkbookRecord:
    """Insert a new workbook.

    Raises:
        ValueError: If status is unknown
    """
    if status not in WORKBOOK_STATUSES:
        raise ValueError(f"Unknown workbook status: {status}")

    with get_db() as conn:
        cursor = conn.execute(
            "INSERT INTO workbooks (title, description, status, created_by) VALUES (?, ?, ?, ?)",
            (title, description, status, created_by),
        )
        workbook_id = cursor.lastrowid

    logger.debug("workbooks.inserted", workbook_id=workbook_id)
    workbook = get_workbook_by_id(workbook_id)
    assert workbook is not None
    return workbook


def get_workbook_by_id(workbook_id: int) -> WorkbookRecord | None:
    """Get workbook by ID."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM workbooks WHERE id = ?", (workbook_id,)
        ).fetchone()

    if row is None:
        return None

    return WorkbookRecord(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        status=row["status"],
        created_by=row["created_by"],
        created_at=row["created_at"],
    )


def add_problem_to_workbook(workbook_id: int, problem_id: int) -> int:
    """Append a problem at the end of a workbook.

    Returns:
        The order_index assigned to the problem

    Raises:
        RecordNotFoundError: If the workbook does not exist
        sqlite3.IntegrityError: If the problem is already in the workbook
    """
    with get_db() as conn:
        if conn.execute("SELECT 1 FROM workbooks WHERE id = ?", (workbook_id,)).fetchone() is None:
            raise RecordNotFoundError("workbooks", workbook_id)
        next_index = conn.execute(
            "SELECT COALESCE(MAX(order_index), 0) + 1 FROM workbook_problems WHERE workbook_id = ?",
            (workbook_id,),
        ).fetchone()[0]
        conn.execute(
            "INSERT INTO workbook_problems (workbook_id, problem_id, order_index) VALUES (?, ?, ?)",
            (workbook_id, problem_id, next_index),
        )

    logger.debug("workbooks.problem_added", workbook_id=workbook_id, problem_id=problem_id)
    return next_index


def remove_problem_from_workbook(workbook_id: int, problem_id: int) -> bool:
    """Remove a problem and close the gap in order_index.

    Returns:
        True if removed, False if the problem was not in the workbook
    """
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM workbook_problems WHERE workbook_id = ? AND problem_id = ?",
            (workbook_id, problem_id),
        )
        if cursor.rowcount == 0:
            return False
        remaining = conn.execute(
            "SELECT id FROM workbook_problems WHERE workbook_id = ? ORDER BY order_index",
            (workbook_id,),
        ).fetchall()
        _renumber(conn, [row["id"] for row in remaining])

    logger.debug("workbooks.problem_removed", workbook_id=workbook_id, problem_id=problem_id)
    return True


def reorder_workbook_problems(workbook_id: int, problem_ids: list[int]) -> None:
    """Set a new problem order for a workbook.

    Args:
        workbook_id: Workbook identifier
        problem_ids: Every problem of the workbook, in the desired order

    Raises:
        ValueError: If problem_ids is not a permutation of the workbook's problems
    """
    with get_db() as conn:
        rows = conn.execute(
            "SELECT id, problem_id FROM workbook_problems WHERE workbook_id = ?",
            (workbook_id,),
        ).fetchall()
        by_problem = {row["problem_id"]: row["id"] for row in rows}

        if sorted(problem_ids) != sorted(by_problem):
            raise ValueError("problem_ids must list every problem of the workbook exactly once")

        _renumber(conn, [by_problem[pid] for pid in problem_ids])

    logger.debug("workbooks.reordered", workbook_id=workbook_id, count=len(problem_ids))


def _renumber(conn, link_ids: list[int]) -> None:
    """Assign order_index 1..n following the given workbook_problems ids."""
    for position, link_id in enumerate(link_ids, start=1):
        conn.execute(
            "UPDATE workbook_problems SET order_index = ? WHERE id = ?",
            (position, link_id),
        )


def list_workbook_problem_ids(workbook_id: int) -> list[int]:
    """Problem IDs of a workbook in order."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT problem_id FROM workbook_problems WHERE workbook_id = ? ORDER BY order_index",
            (workbook_id,),
        ).fetchall()

    return [row["problem_id"] for row in rows]


def count_workbook_problems(workbook_id: int) -> int:
    """Number of problems in a workbook."""
    with get_db() as conn:
        return conn.execute(
            "SELECT COUNT(*) FROM workbook_problems WHERE workbook_id = ?",
            (workbook_id,),
        ).fetchone()[0]


def get_solved_problems(user_id: int, workbook_id: int) -> list[dict[str, Any]]:
    """Problems of a workbook the user has answered correctly at least once.

    Returns:
        One dict per solved problem, in workbook order
    """
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT wp.problem_id, wp.order_index, p.title,
                   MIN(sr.submitted_at) AS first_solved_at,
                   COUNT(sr.id) AS correct_attempts
            FROM workbook_problems wp
            JOIN problems p ON p.id = wp.problem_id
            JOIN solution_records sr
              ON sr.problem_id = wp.problem_id AND sr.user_id = ? AND sr.is_correct = 1
            WHERE wp.workbook_id = ?
            GROUP BY wp.problem_id, wp.order_index, p.title
            ORDER BY wp.order_index
            """,
            (user_id, workbook_id),
        ).fetchall()

    return [
        {
            "problemId": row["problem_id"],
            "orderIndex": row["order_index"],
            "title": row["title"],
            "firstSolvedAt": row["first_solved_at"],
            "correctAttempts": row["correct_attempts"],
        }
        for row in rows
    ]


def get_workbook_progress(user_id: int, workbook_id: int) -> dict[str, Any]:
    """Progress of a user through one workbook.

    A workbook without problems reports 0% and an empty problem list.
    """
    total = count_workbook_problems(workbook_id)
    if total == 0:
        return {
            "workbookId": workbook_id,
            "totalProblems": 0,
            "solvedProblems": 0,
            "progressPercentage": 0,
            "problems": [],
        }

    solved = get_solved_problems(user_id, workbook_id)
    return {
        "workbookId": workbook_id,
        "totalProblems": total,
        "solvedProblems": len(solved),
        "progressPercentage": progress_percentage(len(solved), total),
        "problems": solved,
    }


def get_all_workbooks_progress(user_id: int) -> list[dict[str, Any]]:
    """Progress summary for every workbook the user has started."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT DISTINCT w.id, w.title
            FROM workbooks w
            JOIN workbook_problems wp ON wp.workbook_id = w.id
            JOIN solution_records sr ON sr.problem_id = wp.problem_id AND sr.user_id = ?
            WHERE w.status != 'archived'
            ORDER BY w.id
            """,
            (user_id,),
        ).fetchall()

    summaries = []
    for row in rows:
        progress = get_workbook_progress(user_id, row["id"])
        summaries.append(
            {
                "workbookId": row["id"],
                "title": row["title"],
                "totalProblems": progress["totalProblems"],
                "solvedProblems": progress["solvedProblems"],
                "progressPercentage": progress["progressPercentage"],
            }
        )
    return summaries
