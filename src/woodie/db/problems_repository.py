"""Repository functions for problems table."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from woodie.db.database import get_db
from woodie.utils.dates import to_iso, utc_now
from woodie.utils.pagination import build_pagination

logger = structlog.get_logger(__name__)

DIFFICULTIES = ("easy", "medium", "hard")
PROBLEM_TYPES = ("multiple_choice", "true_false", "short_answer", "essay")
EDITABLE_FIELDS = (
    "title",
    "content",
    "answer",
    "explanation",
    "difficulty",
    "subject",
    "topic",
    "problem_type",
    "points",
)
REQUIRED_FIELDS = ("title", "content", "subject", "difficulty", "problem_type", "points")


@dataclass
class ProblemRecord:
    """Problem record from database."""

    id: int
    title: str
    content: str
    answer: str | None
    explanation: str | None
    difficulty: str
    subject: str
    topic: str | None
    problem_type: str
    points: int
    created_by: int | None
    created_at: str

    def to_dict(self, include_answer: bool = False) -> dict[str, Any]:
        """Convert to API dictionary; the answer is hidden unless requested."""
        result = {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "difficulty": self.difficulty,
            "subject": self.subject,
            "topic": self.topic,
            "problemType": self.problem_type,
            "points": self.points,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
        }
        if include_answer:
            result["answer"] = self.answer
            result["explanation"] = self.explanation
        return result


def insert_problem(
    title: str,
    content: str,
    subject: str,
    answer: str | None = None,
    explanation: str | None = None,
    difficulty: str = "medium",
    topic: str | None = None,
    problem_type: str = "multiple_choice",
    points: int = 1,
    created_by: int | None = None,
) -> ProblemRecord:
    """Insert a new problem.

    Raises:
        ValueError: If difficulty or problem_type is unknown
    """
    if difficulty not in DIFFICULTIES:
        raise ValueError(f"Unknown difficulty: {difficulty}")
    if problem_type not in PROBLEM_TYPES:
        raise ValueError(f"Unknown problem type: {problem_type}")

    with get_db() as conn:
        cursor = conn.execute(
            """
            INSERT INTO problems (
                title, content, answer, explanation, difficulty,
                subject, topic, problem_type, points, created_by
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                title,
                content,
                answer,
                explanation,
                difficulty,
                subject,
                topic,
                problem_type,
                points,
                created_by,
            ),
        )
        problem_id = cursor.lastrowid

    logger.debug("problems.inserted", problem_id=problem_id, subject=subject)
    problem = get_problem_by_id(problem_id)
    assert problem is not None
    return problem


def get_problem_by_id(problem_id: int) -> ProblemRecord | None:
    """Get an active problem by ID."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM problems WHERE id = ? AND is_active = 1", (problem_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def update_problem(problem_id: int, **fields: Any) -> ProblemRecord | None:
    """Update editable fields of an active problem.

    Args:
        problem_id: Problem to edit
        **fields: Column values keyed by EDITABLE_FIELDS names

    Returns:
        The updated ProblemRecord, or None if no active problem has that id

    Raises:
        ValueError: If a field is not editable, a required field is None,
            or difficulty or problem_type is unknown
    """
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Fields not editable: {', '.join(sorted(unknown))}")
    for column in REQUIRED_FIELDS:
        if column in fields and fields[column] is None:
            raise ValueError(f"{column} must not be empty")
    if "difficulty" in fields and fields["difficulty"] not in DIFFICULTIES:
        raise ValueError(f"Unknown difficulty: {fields['difficulty']}")
    if "problem_type" in fields and fields["problem_type"] not in PROBLEM_TYPES:
        raise ValueError(f"Unknown problem type: {fields['problem_type']}")

    if fields:
        assignments = ", ".join(f"{column} = ?" for column in fields)
        with get_db() as conn:
            cursor = conn.execute(
                f"UPDATE problems SET {assignments}, updated_at = ? WHERE id = ? AND is_active = 1",
                [*fields.values(), to_iso(utc_now()), problem_id],
            )
        if cursor.rowcount == 0:
            return None
        logger.info("problems.updated", problem_id=problem_id, fields=sorted(fields))

    return get_problem_by_id(problem_id)


def deactivate_problem(problem_id: int) -> bool:
    """Soft-delete a problem.

    Existing solution records keep their reference; the problem just stops
    being listed or answerable.

    Returns:
        True if a problem was deactivated, False if not found or already inactive
    """
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE problems SET is_active = 0, updated_at = ? WHERE id = ? AND is_active = 1",
            (to_iso(utc_now()), problem_id),
        )

    deactivated = cursor.rowcount > 0
    if deactivated:
        logger.info("problems.deactivated", problem_id=problem_id)

    return deactivated


def list_problems(
    page: int = 1,
    limit: int = 10,
    subject: str | None = None,
    difficulty: str | None = None,
    topic: str | None = None,
) -> dict[str, Any]:
    """List active problems, newest first, with pagination.

    Returns:
        {"data": [ProblemRecord, ...], "pagination": {...}}
    """
    clauses = ["is_active = 1"]
    params: list[Any] = []
    for column, value in (("subject", subject), ("difficulty", difficulty), ("topic", topic)):
        if value:
            clauses.append(f"{column} = ?")
            params.append(value)
    where = " AND ".join(clauses)
    offset = (page - 1) * limit

    with get_db() as conn:
        total = conn.execute(
            f"SELECT COUNT(*) FROM problems WHERE {where}", params
        ).fetchone()[0]
        rows = conn.execute(
            f"SELECT * FROM problems WHERE {where} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
            [*params, limit, offset],
        ).fetchall()

    return {
        "data": [_row_to_record(row) for row in rows],
        "pagination": build_pagination(page, limit, total),
    }


def _row_to_record(row) -> ProblemRecord:
    """Convert database row to ProblemRecord."""
    return ProblemRecord(
        id=row["id"],
        title=row["title"],
        content=row["content"],
        answer=row["answer"],
        explanation=row["explanation"],
        difficulty=row["difficulty"],
        subject=row["subject"],
        topic=row["topic"],
        problem_type=row["problem_type"],
        points=row["points"],
        created_by=row["created_by"],
        created_at=row["created_at"],
    )
