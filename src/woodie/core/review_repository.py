"""Review repository module.

Responsibilities:
- Store solution records (one per submission) with their initial mastery
- Answer "what is due" questions: today targets, overdue priority, progress
- Complete reviews: mastery transition, review history, daily statistics
- Problem-level review schedules and workbook-level review schedules
- Aggregates used by the batch scheduler

Only the latest solution record of a user for a problem is an active
review item. Items at mastery level 4 are retired and never due.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

import structlog

from woodie.config import load_app_config
from woodie.core.mastery import (
    MAX_MASTERY_LEVEL,
    initial_mastery,
    interval_days,
    mastery_distribution,
    rank_by_priority,
    transition,
)
from woodie.db import RecordNotFoundError
from woodie.db.database import get_db
from woodie.utils.dates import (
    end_of_day,
    local_date,
    parse_iso,
    start_of_day,
    to_iso,
    utc_now,
)
from woodie.utils.pagination import paginate

logger = structlog.get_logger(__name__)

MAX_EFFICIENCY_RANGE_DAYS = 366

# Latest record per (user, problem), still in active review
_ACTIVE_RECORDS_SQL = """
    SELECT sr.*, p.title AS problem_title, p.subject AS problem_subject,
           p.difficulty AS problem_difficulty, p.content AS problem_content,
           p.problem_type AS problem_type
    FROM solution_records sr
    JOIN problems p ON p.id = sr.problem_id
    WHERE sr.id IN (
        SELECT MAX(id) FROM solution_records WHERE user_id = ? GROUP BY problem_id
    )
      AND sr.mastery_level < ?
      AND sr.next_review_date <= ?
    ORDER BY sr.next_review_date ASC, sr.id ASC
"""


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class SolutionRecord:
    """One submitted answer."""

    id: int
    user_id: int
    problem_id: int
    workbook_id: int | None
    user_answer: str
    is_correct: bool
    time_spent: int | None
    attempt_number: int
    mastery_level: int
    next_review_date: str
    submitted_at: str
    last_reviewed_at: str | None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON responses."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "problem_id": self.problem_id,
            "workbook_id": self.workbook_id,
            "user_answer": self.user_answer,
            "is_correct": self.is_correct,
            "time_spent": self.time_spent,
            "attempt_number": self.attempt_number,
            "mastery_level": self.mastery_level,
            "next_review_date": self.next_review_date,
            "submitted_at": self.submitted_at,
            "last_reviewed_at": self.last_reviewed_at,
        }


@dataclass
class ReviewOutcome:
    """Result of completing a problem review."""

    record_id: int
    previous_mastery_level: int
    mastery_level: int
    next_review_date: str

    @property
    def mastery_level_changed(self) -> bool:
        return self.previous_mastery_level != self.mastery_level


@dataclass
class WorkbookReviewOutcome:
    """Result of completing a workbook review."""

    schedule_id: int
    review_stage: int
    next_review_date: str
    stage_changed: bool
    completed: bool


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def _settings() -> tuple[dict[int, int], str]:
    review = load_app_config().review
    return review.intervals, review.timezone


def _row_to_record(row) -> SolutionRecord:
    """Convert database row to SolutionRecord."""
    return SolutionRecord(
        id=row["id"],
        user_id=row["user_id"],
        problem_id=row["problem_id"],
        workbook_id=row["workbook_id"],
        user_answer=row["user_answer"],
        is_correct=bool(row["is_correct"]),
        time_spent=row["time_spent"],
        attempt_number=row["attempt_number"],
        mastery_level=row["mastery_level"],
        next_review_date=row["next_review_date"],
        submitted_at=row["submitted_at"],
        last_reviewed_at=row["last_reviewed_at"],
    )


def _row_to_target(row) -> dict[str, Any]:
    """Review target dict: the record plus a nested problem summary."""
    target = _row_to_record(row).to_dict()
    target["problem"] = {
        "id": row["problem_id"],
        "title": row["problem_title"],
        "subject": row["problem_subject"],
        "difficulty": row["problem_difficulty"],
        "content": row["problem_content"],
        "problem_type": row["problem_type"],
    }
    return target


def _fetch_active_targets(user_id: int, due_until: datetime) -> list[dict[str, Any]]:
    with get_db() as conn:
        rows = conn.execute(
            _ACTIVE_RECORDS_SQL, (user_id, MAX_MASTERY_LEVEL, to_iso(due_until))
        ).fetchall()
    return [_row_to_target(row) for row in rows]


# =============================================================================
# SOLUTION RECORDS
# =============================================================================


def create_solution_record(
    user_id: int,
    problem_id: int,
    user_answer: str,
    is_correct: bool,
    time_spent: int | None = None,
    workbook_id: int | None = None,
    now: datetime | None = None,
) -> SolutionRecord:
    """Store a submission with its initial mastery level.

    attempt_number counts previous submissions of the same user for the
    same problem.

    Args:
        user_id: Submitting user
        problem_id: Answered problem
        user_answer: Raw answer text
        is_correct: Result of answer validation
        time_spent: Seconds spent, if reported
        workbook_id: Workbook the problem was solved in, if any
        now: Submission time (defaults to current UTC time)

    Returns:
        The stored SolutionRecord
    """
    now = now or utc_now()
    intervals, _ = _settings()
    level, next_review = initial_mastery(is_correct, now, intervals)

    with get_db() as conn:
        previous = conn.execute(
            "SELECT COUNT(*) FROM solution_records WHERE user_id = ? AND problem_id = ?",
            (user_id, problem_id),
        ).fetchone()[0]
        cursor = conn.execute(
            """
            INSERT INTO solution_records (
                user_id, problem_id, workbook_id, user_answer, is_correct,
                time_spent, attempt_number, mastery_level, next_review_date, submitted_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                user_id,
                problem_id,
                workbook_id,
                user_answer,
                int(is_correct),
                time_spent,
                previous + 1,
                level,
                to_iso(next_review),
                to_iso(now),
            ),
        )
        record_id = cursor.lastrowid
        row = conn.execute(
            "SELECT * FROM solution_records WHERE id = ?", (record_id,)
        ).fetchone()

    logger.info(
        "solutions.recorded",
        record_id=record_id,
        user_id=user_id,
        problem_id=problem_id,
        is_correct=is_correct,
        attempt_number=previous + 1,
    )
    return _row_to_record(row)


def get_solution_record(record_id: int) -> SolutionRecord | None:
    """Get a solution record by ID."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM solution_records WHERE id = ?", (record_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def list_user_solution_records(
    user_id: int,
    page: int = 1,
    limit: int = 10,
    workbook_id: int | None = None,
    problem_id: int | None = None,
) -> dict[str, Any]:
    """List a user's submissions, newest first, with pagination."""
    clauses = ["user_id = ?"]
    params: list[Any] = [user_id]
    if workbook_id is not None:
        clauses.append("workbook_id = ?")
        params.append(workbook_id)
    if problem_id is not None:
        clauses.append("problem_id = ?")
        params.append(problem_id)
    where = " AND ".join(clauses)

    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM solution_records WHERE {where} ORDER BY submitted_at DESC, id DESC",
            params,
        ).fetchall()

    return paginate([_row_to_record(row).to_dict() for row in rows], page, limit)


def get_problem_status(user_id: int, problem_id: int) -> dict[str, Any]:
    """Summary of a user's attempts at one problem."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM solution_records
            WHERE user_id = ? AND problem_id = ?
            ORDER BY submitted_at DESC, id DESC
            """,
            (user_id, problem_id),
        ).fetchall()

    records = [_row_to_record(row) for row in rows]
    correct = [r for r in records if r.is_correct]
    timed = [r.time_spent for r in correct if r.time_spent]

    return {
        "isSolved": bool(correct),
        "totalAttempts": len(records),
        "correctAttempts": len(correct),
        "latestRecord": records[0].to_dict() if records else None,
        "bestTime": min(timed) if timed else None,
    }


def get_user_stats(user_id: int, now: datetime | None = None) -> dict[str, Any]:
    """Overall counters and the current activity streak in days.

    The streak counts consecutive local days with at least one submission,
    ending today.
    """
    now = now or utc_now()
    _, tz_name = _settings()
    today = local_date(now, tz_name)

    with get_db() as conn:
        total, correct = conn.execute(
            "SELECT COUNT(*), COALESCE(SUM(is_correct), 0) FROM solution_records WHERE user_id = ?",
            (user_id,),
        ).fetchone()
        submitted = conn.execute(
            "SELECT submitted_at FROM solution_records WHERE user_id = ?", (user_id,)
        ).fetchall()
        today_reviews = conn.execute(
            "SELECT COUNT(*) FROM review_schedules WHERE user_id = ? AND scheduled_date = ?",
            (user_id, today.isoformat()),
        ).fetchone()[0]

    active_days = {local_date(parse_iso(row["submitted_at"]), tz_name) for row in submitted}
    streak = 0
    while today - timedelta(days=streak) in active_days:
        streak += 1

    return {
        "totalProblems": total,
        "solvedProblems": correct,
        "accuracy": round(correct / total * 100, 1) if total else 0.0,
        "todayReviews": today_reviews,
        "streak": streak,
    }


# =============================================================================
# REVIEW TARGETS
# =============================================================================


def get_today_review_targets(
    user_id: int,
    page: int = 1,
    limit: int | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Active review items due by the end of the current local day.

    Returns:
        {"data": [target, ...], "pagination": {...}}, oldest due first
    """
    now = now or utc_now()
    _, tz_name = _settings()
    limit = limit or load_app_config().review.default_page_size

    targets = _fetch_active_targets(user_id, end_of_day(now, tz_name))
    return paginate(targets, page, limit)


def get_review_targets_by_priority(
    user_id: int,
    page: int = 1,
    limit: int | None = None,
    max_overdue_days: int | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Due items ranked by days overdue, most overdue first.

    Args:
        user_id: Learner
        page: 1-based page number
        limit: Page size (defaults to review.default_page_size)
        max_overdue_days: Drop items more than this many days overdue
        now: Evaluation time

    Returns:
        {"data": [target + overdue_days + priority_rank, ...], "pagination": {...}}
    """
    if max_overdue_days is not None and max_overdue_days < 0:
        raise ValueError("max_overdue_days must not be negative")

    now = now or utc_now()
    limit = limit or load_app_config().review.default_page_size

    targets = _fetch_active_targets(user_id, now)
    for target in targets:
        target["next_review_date"] = parse_iso(target["next_review_date"])

    ranked = rank_by_priority(targets, now, max_overdue_days)
    for target in ranked:
        target["next_review_date"] = to_iso(target["next_review_date"])

    return paginate(ranked, page, limit)


def get_review_progress(user_id: int, now: datetime | None = None) -> dict[str, Any]:
    """Today's total and mastery distribution of due items.

    "completed" counts the user's retired items (level 4).
    """
    now = now or utc_now()
    _, tz_name = _settings()

    targets = _fetch_active_targets(user_id, end_of_day(now, tz_name))
    distribution = mastery_distribution(t["mastery_level"] for t in targets)

    with get_db() as conn:
        distribution["completed"] = conn.execute(
            """
            SELECT COUNT(*) FROM solution_records
            WHERE id IN (
                SELECT MAX(id) FROM solution_records WHERE user_id = ? GROUP BY problem_id
            ) AND mastery_level >= ?
            """,
            (user_id, MAX_MASTERY_LEVEL),
        ).fetchone()[0]

    return {
        "todayTotal": len(targets),
        "masteryDistribution": distribution,
        "reviewDate": local_date(now, tz_name).isoformat(),
    }


# =============================================================================
# REVIEW COMPLETION
# =============================================================================


def complete_review(
    record_id: int,
    is_correct: bool,
    time_spent: int | None = None,
    confidence_level: int | None = None,
    difficulty_perceived: int | None = None,
    now: datetime | None = None,
) -> ReviewOutcome:
    """Apply a review result to a solution record.

    Updates mastery and next review date in place, appends review history,
    bumps today's daily statistics and rolls the problem's review schedule
    forward.

    Raises:
        RecordNotFoundError: If the record does not exist
        ValueError: If a newer submission replaced the record
    """
    now = now or utc_now()
    intervals, tz_name = _settings()
    today = local_date(now, tz_name).isoformat()

    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM solution_records WHERE id = ?", (record_id,)
        ).fetchone()
        if row is None:
            raise RecordNotFoundError("solution_records", record_id)

        record = _row_to_record(row)
        latest_id = conn.execute(
            "SELECT MAX(id) FROM solution_records WHERE user_id = ? AND problem_id = ?",
            (record.user_id, record.problem_id),
        ).fetchone()[0]
        if latest_id != record_id:
            raise ValueError(
                f"Solution record {record_id} was superseded by record {latest_id}"
            )

        result = transition(
            record.mastery_level,
            is_correct,
            parse_iso(record.next_review_date),
            now,
            intervals,
        )
        next_review = to_iso(result.next_review_date)

        conn.execute(
            """
            UPDATE solution_records
            SET mastery_level = ?, next_review_date = ?, last_reviewed_at = ?
            WHERE id = ?
            """,
            (result.new_level, next_review, to_iso(now), record_id),
        )
        conn.execute(
            """
            INSERT INTO review_history (
                user_id, record_id, is_correct, time_spent, confidence_level,
                difficulty_perceived, previous_mastery_level, new_mastery_level, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.user_id,
                record_id,
                int(is_correct),
                time_spent,
                confidence_level,
                difficulty_perceived,
                result.previous_level,
                result.new_level,
                to_iso(now),
            ),
        )
        conn.execute(
            """
            INSERT INTO daily_review_stats (
                user_id, target_date, completed_review_count, correct_answers, total_time_spent
            ) VALUES (?, ?, 1, ?, ?)
            ON CONFLICT (user_id, target_date) DO UPDATE SET
                completed_review_count = completed_review_count + 1,
                correct_answers = correct_answers + excluded.correct_answers,
                total_time_spent = total_time_spent + excluded.total_time_spent
            """,
            (record.user_id, today, int(is_correct), time_spent or 0),
        )
        conn.execute(
            """
            UPDATE review_schedules SET is_completed = 1, completed_date = ?
            WHERE user_id = ? AND problem_id = ? AND is_completed = 0
            """,
            (today, record.user_id, record.problem_id),
        )
        if not result.retired:
            _insert_review_schedule(
                conn,
                user_id=record.user_id,
                problem_id=record.problem_id,
                workbook_id=record.workbook_id,
                review_stage=result.new_level,
                scheduled_date=local_date(result.next_review_date, tz_name),
            )

    logger.info(
        "reviews.completed",
        record_id=record_id,
        user_id=record.user_id,
        is_correct=is_correct,
        previous_level=result.previous_level,
        new_level=result.new_level,
        next_review_date=next_review,
    )

    return ReviewOutcome(
        record_id=record_id,
        previous_mastery_level=result.previous_level,
        mastery_level=result.new_level,
        next_review_date=next_review,
    )


# =============================================================================
# PROBLEM REVIEW SCHEDULES
# =============================================================================


def _insert_review_schedule(
    conn: sqlite3.Connection,
    user_id: int,
    problem_id: int,
    workbook_id: int | None,
    review_stage: int,
    scheduled_date: date,
) -> int:
    cursor = conn.execute(
        """
        INSERT INTO review_schedules (user_id, problem_id, workbook_id, review_stage, scheduled_date)
        VALUES (?, ?, ?, ?, ?)
        """,
        (user_id, problem_id, workbook_id, review_stage, scheduled_date.isoformat()),
    )
    return cursor.lastrowid


def get_review_schedule(
    user_id: int,
    day: date | None = None,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Open problem review schedules of a user for a local calendar day."""
    if day is None:
        _, tz_name = _settings()
        day = local_date(now or utc_now(), tz_name)
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT rs.*, p.title AS problem_title, p.subject AS problem_subject
            FROM review_schedules rs
            JOIN problems p ON p.id = rs.problem_id
            WHERE rs.user_id = ? AND rs.scheduled_date = ? AND rs.is_completed = 0
            ORDER BY rs.review_stage ASC, rs.id ASC
            """,
            (user_id, day.isoformat()),
        ).fetchall()

    return [
        {
            "id": row["id"],
            "problem_id": row["problem_id"],
            "workbook_id": row["workbook_id"],
            "review_stage": row["review_stage"],
            "scheduled_date": row["scheduled_date"],
            "problem": {"title": row["problem_title"], "subject": row["problem_subject"]},
        }
        for row in rows
    ]


# =============================================================================
# STATISTICS
# =============================================================================


def _history_between(user_id: int, start: datetime, end: datetime) -> list[sqlite3.Row]:
    with get_db() as conn:
        return conn.execute(
            """
            SELECT * FROM review_history
            WHERE user_id = ? AND created_at >= ? AND created_at < ?
            ORDER BY created_at
            """,
            (user_id, to_iso(start), to_iso(end)),
        ).fetchall()


def get_daily_review_stats(
    user_id: int,
    day: date | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Review statistics for one local calendar day (default today)."""
    _, tz_name = _settings()
    day = day or local_date(now or utc_now(), tz_name)

    history = _history_between(
        user_id,
        start_of_day(day, tz_name),
        start_of_day(day + timedelta(days=1), tz_name),
    )
    with get_db() as conn:
        stats_row = conn.execute(
            "SELECT target_review_count FROM daily_review_stats WHERE user_id = ? AND target_date = ?",
            (user_id, day.isoformat()),
        ).fetchone()

    correct = sum(1 for h in history if h["is_correct"])
    timed = [h["time_spent"] for h in history if h["time_spent"] is not None]
    changes = {"increased": 0, "decreased": 0, "unchanged": 0}
    for h in history:
        if h["new_mastery_level"] > h["previous_mastery_level"]:
            changes["increased"] += 1
        elif h["new_mastery_level"] < h["previous_mastery_level"]:
            changes["decreased"] += 1
        else:
            changes["unchanged"] += 1

    return {
        "date": day.isoformat(),
        "targetReviewCount": stats_row["target_review_count"] if stats_row else 0,
        "totalReviewsCompleted": len(history),
        "correctAnswers": correct,
        "incorrectAnswers": len(history) - correct,
        "averageTimeSpent": round(sum(timed) / len(timed), 1) if timed else 0,
        "masteryLevelChanges": changes,
    }


def get_review_efficiency(
    user_id: int,
    start_day: date | None = None,
    end_day: date | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Review accuracy and mastery gains over an inclusive day range.

    Defaults to the seven days ending today.

    Raises:
        ValueError: If the range is inverted or longer than a year
    """
    _, tz_name = _settings()
    today = local_date(now or utc_now(), tz_name)
    end_day = end_day or today
    start_day = start_day or end_day - timedelta(days=6)

    if start_day > end_day:
        raise ValueError("start date must not be after end date")
    span = (end_day - start_day).days + 1
    if span > MAX_EFFICIENCY_RANGE_DAYS:
        raise ValueError(f"date range must not exceed {MAX_EFFICIENCY_RANGE_DAYS} days")

    history = _history_between(
        user_id,
        start_of_day(start_day, tz_name),
        start_of_day(end_day + timedelta(days=1), tz_name),
    )

    per_day: dict[str, dict[str, int]] = {
        (start_day + timedelta(days=offset)).isoformat(): {"reviews": 0, "correct": 0}
        for offset in range(span)
    }
    for h in history:
        key = local_date(parse_iso(h["created_at"]), tz_name).isoformat()
        per_day[key]["reviews"] += 1
        per_day[key]["correct"] += int(bool(h["is_correct"]))

    total = len(history)
    correct = sum(day["correct"] for day in per_day.values())
    timed = [h["time_spent"] for h in history if h["time_spent"] is not None]

    return {
        "startDate": start_day.isoformat(),
        "endDate": end_day.isoformat(),
        "totalReviews": total,
        "correctAnswers": correct,
        "accuracyRate": round(correct / total * 100) if total else 0,
        "averageTimeSpent": round(sum(timed) / len(timed), 1) if timed else 0,
        "masteryImprovements": sum(
            1 for h in history if h["new_mastery_level"] > h["previous_mastery_level"]
        ),
        "retiredItems": sum(
            1
            for h in history
            if h["new_mastery_level"] >= MAX_MASTERY_LEVEL > h["previous_mastery_level"]
        ),
        "daily": [
            {
                "date": key,
                "reviews": value["reviews"],
                "correct": value["correct"],
                "accuracyRate": round(value["correct"] / value["reviews"] * 100)
                if value["reviews"]
                else 0,
            }
            for key, value in per_day.items()
        ],
    }


# =============================================================================
# WORKBOOK REVIEW SCHEDULES
# =============================================================================


def create_workbook_review_schedule(
    user_id: int,
    workbook_id: int,
    now: datetime | None = None,
) -> int | None:
    """Open a workbook review schedule at stage 0.

    The first review is due after the level-1 interval. Nothing is created
    when the user already has an open schedule for the workbook.

    Returns:
        The new schedule id, or None if one was already open
    """
    now = now or utc_now()
    intervals, _ = _settings()
    due = now + timedelta(days=interval_days(1, intervals))

    with get_db() as conn:
        existing = conn.execute(
            """
            SELECT id FROM workbook_review_schedules
            WHERE user_id = ? AND workbook_id = ? AND is_completed = 0
            """,
            (user_id, workbook_id),
        ).fetchone()
        if existing is not None:
            return None
        cursor = conn.execute(
            """
            INSERT INTO workbook_review_schedules (
                user_id, workbook_id, review_stage, next_review_date, created_at, updated_at
            ) VALUES (?, ?, 0, ?, ?, ?)
            """,
            (user_id, workbook_id, to_iso(due), to_iso(now), to_iso(now)),
        )
        schedule_id = cursor.lastrowid

    logger.info(
        "workbook_reviews.scheduled",
        schedule_id=schedule_id,
        user_id=user_id,
        workbook_id=workbook_id,
    )
    return schedule_id


def get_workbook_review_schedule(schedule_id: int) -> dict[str, Any] | None:
    """Get a workbook review schedule by ID."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM workbook_review_schedules WHERE id = ?", (schedule_id,)
        ).fetchone()

    if row is None:
        return None

    return {
        "id": row["id"],
        "user_id": row["user_id"],
        "workbook_id": row["workbook_id"],
        "review_stage": row["review_stage"],
        "next_review_date": row["next_review_date"],
        "is_completed": bool(row["is_completed"]),
        "completed_at": row["completed_at"],
    }


def get_workbook_review_targets(
    user_id: int,
    page: int = 1,
    limit: int | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Open workbook review schedules due by the end of the local day."""
    now = now or utc_now()
    _, tz_name = _settings()
    limit = limit or load_app_config().review.default_page_size

    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT wrs.*, w.title AS workbook_title, w.description AS workbook_description
            FROM workbook_review_schedules wrs
            JOIN workbooks w ON w.id = wrs.workbook_id
            WHERE wrs.user_id = ? AND wrs.is_completed = 0 AND wrs.next_review_date <= ?
            ORDER BY wrs.next_review_date ASC, wrs.id ASC
            """,
            (user_id, to_iso(end_of_day(now, tz_name))),
        ).fetchall()

    targets = [
        {
            "id": row["id"],
            "user_id": row["user_id"],
            "workbook_id": row["workbook_id"],
            "review_stage": row["review_stage"],
            "next_review_date": row["next_review_date"],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
            "workbook": {
                "id": row["workbook_id"],
                "title": row["workbook_title"],
                "description": row["workbook_description"],
            },
        }
        for row in rows
    ]
    return paginate(targets, page, limit)


def complete_workbook_review(
    schedule_id: int,
    success: bool,
    now: datetime | None = None,
) -> WorkbookReviewOutcome:
    """Advance or step back a workbook review schedule.

    Success moves the stage up and the due date forward; reaching the top
    stage completes the schedule. Failure moves the stage down and makes the
    workbook due now.

    Raises:
        RecordNotFoundError: If the schedule does not exist
        ValueError: If the schedule is already completed
    """
    now = now or utc_now()
    intervals, _ = _settings()

    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM workbook_review_schedules WHERE id = ?", (schedule_id,)
        ).fetchone()
        if row is None:
            raise RecordNotFoundError("workbook_review_schedules", schedule_id)
        if row["is_completed"]:
            raise ValueError(f"Workbook review schedule {schedule_id} is already completed")

        result = transition(
            row["review_stage"],
            success,
            parse_iso(row["next_review_date"]),
            now,
            intervals,
        )
        completed = success and result.retired
        next_review = to_iso(result.next_review_date)

        conn.execute(
            """
            UPDATE workbook_review_schedules
            SET review_stage = ?, next_review_date = ?, is_completed = ?,
                completed_at = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                result.new_level,
                next_review,
                int(completed),
                to_iso(now) if completed else None,
                to_iso(now),
                schedule_id,
            ),
        )

    logger.info(
        "workbook_reviews.completed",
        schedule_id=schedule_id,
        success=success,
        review_stage=result.new_level,
        completed=completed,
    )

    return WorkbookReviewOutcome(
        schedule_id=schedule_id,
        review_stage=result.new_level,
        next_review_date=next_review,
        stage_changed=result.changed,
        completed=completed,
    )


# =============================================================================
# BATCH AGGREGATES
# =============================================================================


def count_due_targets(user_id: int, now: datetime | None = None) -> int:
    """Problem plus workbook review targets due today for a user."""
    now = now or utc_now()
    problems = get_today_review_targets(user_id, limit=1, now=now)
    workbooks = get_workbook_review_targets(user_id, limit=1, now=now)
    return problems["pagination"]["total"] + workbooks["pagination"]["total"]


def ensure_daily_stats_rows(user_ids: list[int], day: date) -> int:
    """Create zeroed daily stats rows; existing rows are left untouched.

    Returns:
        Number of rows created
    """
    with get_db() as conn:
        created = 0
        for user_id in user_ids:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO daily_review_stats (user_id, target_date) VALUES (?, ?)",
                (user_id, day.isoformat()),
            )
            created += cursor.rowcount
    return created


def upsert_daily_target(user_id: int, day: date, target_count: int) -> None:
    """Set the day's target review count, keeping completion counters."""
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO daily_review_stats (user_id, target_date, target_review_count)
            VALUES (?, ?, ?)
            ON CONFLICT (user_id, target_date) DO UPDATE SET
                target_review_count = excluded.target_review_count
            """,
            (user_id, day.isoformat(), target_count),
        )


def purge_expired(
    schedules_before: date,
    history_before: datetime,
    stats_before: date,
) -> dict[str, int]:
    """Delete old completed schedules, review history and daily stats.

    Returns:
        Deleted row counts per table
    """
    with get_db() as conn:
        schedules = conn.execute(
            "DELETE FROM review_schedules WHERE is_completed = 1 AND completed_date < ?",
            (schedules_before.isoformat(),),
        ).rowcount
        history = conn.execute(
            "DELETE FROM review_history WHERE created_at < ?",
            (to_iso(history_before),),
        ).rowcount
        stats = conn.execute(
            "DELETE FROM daily_review_stats WHERE target_date < ?",
            (stats_before.isoformat(),),
        ).rowcount

    return {"review_schedules": schedules, "review_history": history, "daily_review_stats": stats}


def users_due_by(until: datetime) -> list[int]:
    """Distinct users with an active review item due by the given time."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT DISTINCT sr.user_id
            FROM solution_records sr
            JOIN users u ON u.id = sr.user_id AND u.is_active = 1
            WHERE sr.id IN (
                SELECT MAX(id) FROM solution_records GROUP BY user_id, problem_id
            )
              AND sr.mastery_level < ?
              AND sr.next_review_date <= ?
            ORDER BY sr.user_id
            """,
            (MAX_MASTERY_LEVEL, to_iso(until)),
        ).fetchall()

    return [row["user_id"] for row in rows]


def get_daily_stats_for_date(day: date) -> list[dict[str, Any]]:
    """Daily stats rows of every user for one day."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM daily_review_stats WHERE target_date = ? ORDER BY user_id",
            (day.isoformat(),),
        ).fetchall()

    return [dict(row) for row in rows]
