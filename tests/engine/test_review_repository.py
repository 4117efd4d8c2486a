"""Tests for solution records, review targets, completion and statistics."""

from datetime import date, datetime, timedelta, timezone

import pytest

from woodie.core import review_repository as repo
from woodie.db import RecordNotFoundError
from woodie.db.database import get_db
from woodie.utils.dates import to_iso

# Asia/Seoul: 2025-03-10 ends at 14:59:59 UTC
END_OF_TODAY = datetime(2025, 3, 10, 14, 59, 59, tzinfo=timezone.utc)


def _set_due(record_id: int, moment: datetime, level: int | None = None) -> None:
    with get_db() as conn:
        conn.execute(
            "UPDATE solution_records SET next_review_date = ? WHERE id = ?",
            (to_iso(moment), record_id),
        )
        if level is not None:
            conn.execute(
                "UPDATE solution_records SET mastery_level = ? WHERE id = ?",
                (level, record_id),
            )


def _submit(user, problem, is_correct, now, **kwargs):
    return repo.create_solution_record(
        user_id=user.id,
        problem_id=problem.id,
        user_answer="answer",
        is_correct=is_correct,
        now=now,
        **kwargs,
    )


class TestCreateSolutionRecord:
    """Tests for create_solution_record."""

    def test_correct_submission_starts_at_level_one(self, student, make_problem, now):
        """Correct answer: level 1, due in one day."""
        record = _submit(student, make_problem(), True, now, time_spent=40)
        assert record.mastery_level == 1
        assert record.next_review_date == to_iso(now + timedelta(days=1))
        assert record.attempt_number == 1
        assert record.time_spent == 40

    def test_incorrect_submission_is_due_now(self, student, make_problem, now):
        """Wrong answer: level 0, due immediately."""
        record = _submit(student, make_problem(), False, now)
        assert record.mastery_level == 0
        assert record.next_review_date == to_iso(now)

    def test_attempt_number_counts_previous_submissions(self, student, other_student, make_problem, now):
        """attempt_number is per user and problem."""
        problem = make_problem()
        _submit(student, problem, False, now)
        _submit(other_student, problem, False, now)
        second = _submit(student, problem, True, now)
        assert second.attempt_number == 2

    def test_get_solution_record(self, student, make_problem, now):
        """Records can be fetched by id."""
        record = _submit(student, make_problem(), True, now)
        assert repo.get_solution_record(record.id) == record
        assert repo.get_solution_record(9999) is None


class TestSolutionQueries:
    """Tests for listing and status queries."""

    def test_list_newest_first_with_pagination(self, student, make_problem, now):
        """Listing is paged, newest first."""
        problem = make_problem()
        for offset in range(3):
            _submit(student, problem, False, now + timedelta(minutes=offset))

        result = repo.list_user_solution_records(student.id, page=1, limit=2)
        assert result["pagination"] == {"page": 1, "limit": 2, "total": 3, "totalPages": 2}
        assert [r["attempt_number"] for r in result["data"]] == [3, 2]

    def test_problem_status(self, student, make_problem, now):
        """Status summarizes attempts and best time."""
        problem = make_problem()
        _submit(student, problem, False, now, time_spent=10)
        _submit(student, problem, True, now + timedelta(minutes=1), time_spent=50)
        _submit(student, problem, True, now + timedelta(minutes=2), time_spent=30)

        status = repo.get_problem_status(student.id, problem.id)
        assert status["isSolved"] is True
        assert status["totalAttempts"] == 3
        assert status["correctAttempts"] == 2
        assert status["bestTime"] == 30
        assert status["latestRecord"]["attempt_number"] == 3

    def test_problem_status_unattempted(self, student, make_problem):
        """No attempts gives an empty status."""
        status = repo.get_problem_status(student.id, make_problem().id)
        assert status["isSolved"] is False
        assert status["latestRecord"] is None
        assert status["bestTime"] is None

    def test_user_stats_streak(self, student, make_problem, now):
        """Streak counts consecutive active days ending today."""
        problem = make_problem()
        _submit(student, problem, True, now)
        _submit(student, problem, False, now - timedelta(days=1))
        _submit(student, problem, True, now - timedelta(days=3))

        stats = repo.get_user_stats(student.id, now=now)
        assert stats["totalProblems"] == 3
        assert stats["solvedProblems"] == 2
        assert stats["streak"] == 2


class TestTodayTargets:
    """Tests for get_today_review_targets."""

    def test_includes_items_due_by_end_of_local_day(self, student, make_problem, now):
        """Due up to 23:59:59 local time is today."""
        inside = _submit(student, make_problem(), True, now)
        outside = _submit(student, make_problem(), True, now)
        _set_due(inside.id, END_OF_TODAY)
        _set_due(outside.id, END_OF_TODAY + timedelta(seconds=1))

        result = repo.get_today_review_targets(student.id, now=now)
        assert [t["id"] for t in result["data"]] == [inside.id]
        assert result["data"][0]["problem"]["subject"] == "math"

    def test_only_latest_record_per_problem(self, student, make_problem, now):
        """An older due record is superseded by a newer one."""
        problem = make_problem()
        _submit(student, problem, False, now - timedelta(hours=2))
        _submit(student, problem, True, now)

        result = repo.get_today_review_targets(student.id, now=now)
        assert result["data"] == []

    def test_retired_items_excluded(self, student, make_problem, now):
        """Level 4 items are never due."""
        record = _submit(student, make_problem(), True, now)
        _set_due(record.id, now - timedelta(days=2), level=4)

        assert repo.get_today_review_targets(student.id, now=now)["data"] == []

    def test_other_users_excluded(self, student, other_student, make_problem, now):
        """Targets are per user."""
        _submit(other_student, make_problem(), False, now)
        assert repo.get_today_review_targets(student.id, now=now)["pagination"]["total"] == 0

    def test_pagination(self, student, make_problem, now):
        """Results are paged with the default page size."""
        for _ in range(3):
            _submit(student, make_problem(), False, now)

        result = repo.get_today_review_targets(student.id, page=2, limit=2, now=now)
        assert len(result["data"]) == 1
        assert result["pagination"]["totalPages"] == 2


class TestPriorityTargets:
    """Tests for get_review_targets_by_priority."""

    def test_orders_by_overdue_days(self, student, make_problem, now):
        """Most overdue first, each with overdue_days and rank."""
        a = _submit(student, make_problem(), False, now)
        b = _submit(student, make_problem(), False, now)
        c = _submit(student, make_problem(), True, now)
        _set_due(a.id, now - timedelta(days=1))
        _set_due(b.id, now - timedelta(days=4))
        _set_due(c.id, now + timedelta(hours=3))

        result = repo.get_review_targets_by_priority(student.id, now=now)
        data = result["data"]
        assert [t["id"] for t in data] == [b.id, a.id]
        assert [t["overdue_days"] for t in data] == [4, 1]
        assert [t["priority_rank"] for t in data] == [1, 2]
        assert data[0]["next_review_date"] == to_iso(now - timedelta(days=4))

    def test_max_overdue_days(self, student, make_problem, now):
        """Items beyond maxOverdueDays are dropped."""
        a = _submit(student, make_problem(), False, now)
        b = _submit(student, make_problem(), False, now)
        _set_due(a.id, now - timedelta(days=1))
        _set_due(b.id, now - timedelta(days=4))

        result = repo.get_review_targets_by_priority(student.id, max_overdue_days=2, now=now)
        assert [t["id"] for t in result["data"]] == [a.id]

    def test_negative_bound_rejected(self, student):
        with pytest.raises(ValueError):
            repo.get_review_targets_by_priority(student.id, max_overdue_days=-1)


class TestReviewProgress:
    """Tests for get_review_progress."""

    def test_distribution(self, student, make_problem, now):
        """Due items are bucketed by level; retired items count as completed."""
        _submit(student, make_problem(), False, now)
        leveled = _submit(student, make_problem(), True, now)
        _set_due(leveled.id, now, level=2)
        retired = _submit(student, make_problem(), True, now)
        _set_due(retired.id, now, level=4)

        progress = repo.get_review_progress(student.id, now=now)
        assert progress["todayTotal"] == 2
        assert progress["masteryDistribution"] == {
            "level0": 1,
            "level1": 0,
            "level2": 1,
            "level3": 0,
            "completed": 1,
        }
        assert progress["reviewDate"] == "2025-03-10"


class TestCompleteReview:
    """Tests for complete_review."""

    def test_correct_review(self, student, make_problem, now):
        """Correct review: level up, history, stats and next schedule."""
        record = _submit(student, make_problem(), True, now - timedelta(days=1))

        outcome = repo.complete_review(record.id, True, time_spent=30, confidence_level=4, now=now)
        assert outcome.previous_mastery_level == 1
        assert outcome.mastery_level == 2
        assert outcome.mastery_level_changed
        assert outcome.next_review_date == to_iso(now + timedelta(days=3))

        stored = repo.get_solution_record(record.id)
        assert stored.mastery_level == 2
        assert stored.last_reviewed_at == to_iso(now)

        with get_db() as conn:
            history = conn.execute("SELECT * FROM review_history").fetchall()
            stats = conn.execute("SELECT * FROM daily_review_stats").fetchone()
            schedules = conn.execute("SELECT * FROM review_schedules").fetchall()

        assert len(history) == 1
        assert history[0]["confidence_level"] == 4
        assert history[0]["previous_mastery_level"] == 1
        assert stats["target_date"] == "2025-03-10"
        assert stats["completed_review_count"] == 1
        assert stats["correct_answers"] == 1
        assert stats["total_time_spent"] == 30
        assert len(schedules) == 1
        assert schedules[0]["review_stage"] == 2
        assert schedules[0]["scheduled_date"] == "2025-03-13"

    def test_incorrect_review(self, student, make_problem, now):
        """Wrong review: level down, due now."""
        record = _submit(student, make_problem(), True, now - timedelta(days=1))
        outcome = repo.complete_review(record.id, False, now=now)
        assert outcome.mastery_level == 0
        assert outcome.next_review_date == to_iso(now)

    def test_second_review_completes_previous_schedule(self, student, make_problem, now):
        """Only one open schedule per problem remains."""
        record = _submit(student, make_problem(), False, now)
        repo.complete_review(record.id, True, now=now)
        repo.complete_review(record.id, True, now=now + timedelta(days=1))

        with get_db() as conn:
            rows = conn.execute(
                "SELECT is_completed, completed_date FROM review_schedules ORDER BY id"
            ).fetchall()
        assert [row["is_completed"] for row in rows] == [1, 0]
        assert rows[0]["completed_date"] == "2025-03-11"

    def test_stats_accumulate(self, student, make_problem, now):
        """Daily counters add up across reviews."""
        first = _submit(student, make_problem(), False, now)
        second = _submit(student, make_problem(), False, now)
        repo.complete_review(first.id, True, time_spent=10, now=now)
        repo.complete_review(second.id, False, time_spent=20, now=now)

        stats = repo.get_daily_review_stats(student.id, day=date(2025, 3, 10))
        assert stats["totalReviewsCompleted"] == 2
        assert stats["correctAnswers"] == 1
        assert stats["incorrectAnswers"] == 1
        assert stats["averageTimeSpent"] == 15
        assert stats["masteryLevelChanges"] == {"increased": 1, "decreased": 0, "unchanged": 1}

    def test_retiring_review_creates_no_schedule(self, student, make_problem, now):
        """Reaching level 4 leaves no open schedule."""
        record = _submit(student, make_problem(), True, now)
        _set_due(record.id, now, level=3)
        outcome = repo.complete_review(record.id, True, now=now)
        assert outcome.mastery_level == 4

        with get_db() as conn:
            open_count = conn.execute(
                "SELECT COUNT(*) FROM review_schedules WHERE is_completed = 0"
            ).fetchone()[0]
        assert open_count == 0

    def test_unknown_record(self):
        with pytest.raises(RecordNotFoundError):
            repo.complete_review(9999, True)

    def test_superseded_record_rejected(self, student, make_problem, now):
        """Only the latest submission for a problem can be reviewed."""
        problem = make_problem()
        older = _submit(student, problem, False, now)
        _submit(student, problem, True, now)

        with pytest.raises(ValueError, match="superseded"):
            repo.complete_review(older.id, False, now=now)

        assert repo.get_review_schedule(student.id, day=date(2025, 3, 10)) == []
        assert repo.get_today_review_targets(student.id, now=now)["data"] == []
        with get_db() as conn:
            history = conn.execute("SELECT COUNT(*) FROM review_history").fetchone()[0]
        assert history == 0


class TestEfficiency:
    """Tests for get_review_efficiency."""

    def test_per_day_breakdown(self, student, make_problem, now):
        """Accuracy per day across the range."""
        record = _submit(student, make_problem(), False, now - timedelta(days=2))
        repo.complete_review(record.id, False, now=now - timedelta(days=1))
        repo.complete_review(record.id, True, now=now)

        result = repo.get_review_efficiency(
            student.id, start_day=date(2025, 3, 8), end_day=date(2025, 3, 10)
        )
        assert result["totalReviews"] == 2
        assert result["accuracyRate"] == 50
        assert result["masteryImprovements"] == 1
        assert [d["reviews"] for d in result["daily"]] == [0, 1, 1]

    def test_inverted_range_rejected(self, student):
        with pytest.raises(ValueError):
            repo.get_review_efficiency(
                student.id, start_day=date(2025, 3, 10), end_day=date(2025, 3, 1)
            )


class TestWorkbookReviews:
    """Tests for workbook review schedules."""

    def test_create_is_idempotent_while_open(self, student, workbook, now):
        """A second open schedule is not created."""
        first = repo.create_workbook_review_schedule(student.id, workbook.id, now=now)
        assert first is not None
        assert repo.create_workbook_review_schedule(student.id, workbook.id, now=now) is None

        schedule = repo.get_workbook_review_schedule(first)
        assert schedule["review_stage"] == 0
        assert schedule["next_review_date"] == to_iso(now + timedelta(days=1))

    def test_targets_due_by_end_of_day(self, student, workbook, now):
        """A new schedule is due tomorrow, not today."""
        repo.create_workbook_review_schedule(student.id, workbook.id, now=now)
        assert repo.get_workbook_review_targets(student.id, now=now)["data"] == []

        due = repo.get_workbook_review_targets(student.id, now=now + timedelta(days=1))
        assert due["data"][0]["workbook"]["title"] == "Algebra basics"

    def test_success_path_completes_at_stage_four(self, student, workbook, now):
        """Four successful reviews complete the schedule."""
        schedule_id = repo.create_workbook_review_schedule(student.id, workbook.id, now=now)

        moment = now
        outcomes = []
        for _ in range(4):
            moment += timedelta(days=1)
            outcomes.append(repo.complete_workbook_review(schedule_id, True, now=moment))

        assert [o.review_stage for o in outcomes] == [1, 2, 3, 4]
        assert [o.completed for o in outcomes] == [False, False, False, True]
        assert repo.get_workbook_review_schedule(schedule_id)["is_completed"] is True

        with pytest.raises(ValueError):
            repo.complete_workbook_review(schedule_id, True, now=moment)

    def test_failure_steps_back(self, student, workbook, now):
        """Failure lowers the stage and makes the workbook due now."""
        schedule_id = repo.create_workbook_review_schedule(student.id, workbook.id, now=now)
        repo.complete_workbook_review(schedule_id, True, now=now)
        outcome = repo.complete_workbook_review(schedule_id, False, now=now)
        assert outcome.review_stage == 0
        assert outcome.stage_changed
        assert outcome.next_review_date == to_iso(now)

    def test_unknown_schedule(self):
        with pytest.raises(RecordNotFoundError):
            repo.complete_workbook_review(9999, True)


class TestBatchAggregates:
    """Tests for helpers used by the scheduler jobs."""

    def test_ensure_daily_stats_rows_keeps_existing(self, student, other_student, make_problem, now):
        """Existing rows are left untouched."""
        record = _submit(student, make_problem(), False, now)
        repo.complete_review(record.id, True, now=now)

        created = repo.ensure_daily_stats_rows([student.id, other_student.id], date(2025, 3, 10))
        assert created == 1

        rows = repo.get_daily_stats_for_date(date(2025, 3, 10))
        by_user = {row["user_id"]: row for row in rows}
        assert by_user[student.id]["completed_review_count"] == 1
        assert by_user[other_student.id]["completed_review_count"] == 0

    def test_upsert_daily_target_preserves_counters(self, student, make_problem, now):
        """Setting the target keeps completion counters."""
        record = _submit(student, make_problem(), False, now)
        repo.complete_review(record.id, True, now=now)

        repo.upsert_daily_target(student.id, date(2025, 3, 10), 5)

        row = repo.get_daily_stats_for_date(date(2025, 3, 10))[0]
        assert row["target_review_count"] == 5
        assert row["completed_review_count"] == 1

    def test_count_due_targets(self, student, workbook, make_problem, now):
        """Problem and workbook targets are both counted."""
        _submit(student, make_problem(), False, now)
        repo.create_workbook_review_schedule(student.id, workbook.id, now=now - timedelta(days=1))
        assert repo.count_due_targets(student.id, now=now) == 2

    def test_purge_expired(self, student, make_problem, now):
        """Old rows go, recent rows stay."""
        old = now - timedelta(days=100)
        record = _submit(student, make_problem(), False, old)
        repo.complete_review(record.id, True, now=old)
        with get_db() as conn:
            conn.execute(
                """
                INSERT INTO review_schedules (user_id, problem_id, review_stage, scheduled_date,
                                              is_completed, completed_date)
                VALUES (?, ?, 1, '2024-12-30', 1, '2025-01-01')
                """,
                (student.id, record.problem_id),
            )
        repo.complete_review(record.id, True, now=now)

        deleted = repo.purge_expired(
            schedules_before=date(2025, 2, 8),
            history_before=now - timedelta(days=90),
            stats_before=date(2025, 2, 8),
        )
        assert deleted == {"review_schedules": 1, "review_history": 1, "daily_review_stats": 1}

    def test_users_due_by(self, student, other_student, make_problem, now):
        """Only users with an active item due by the cutoff."""
        _submit(student, make_problem(), False, now)
        _submit(other_student, make_problem(), True, now)

        assert repo.users_due_by(now) == [student.id]
        assert repo.users_due_by(now + timedelta(days=2)) == [student.id, other_student.id]
