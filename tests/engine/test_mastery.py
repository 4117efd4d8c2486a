"""Tests for mastery transitions, intervals, ranking and progress."""

import random
from datetime import datetime, timedelta, timezone

import pytest

from woodie.core.mastery import (
    MAX_MASTERY_LEVEL,
    MIN_MASTERY_LEVEL,
    initial_mastery,
    interval_days,
    mastery_distribution,
    overdue_days,
    progress_percentage,
    rank_by_priority,
    transition,
)

NOW = datetime(2025, 3, 10, 3, 0, 0, tzinfo=timezone.utc)


class TestIntervals:
    """Tests for interval_days."""

    @pytest.mark.parametrize("level,days", [(0, 0), (1, 1), (2, 3), (3, 7), (4, 14)])
    def test_default_table(self, level, days):
        """Default table is 1/3/7/14 days, level 0 has no delay."""
        assert interval_days(level) == days

    def test_custom_table(self):
        """A custom table overrides the defaults."""
        assert interval_days(2, {1: 2, 2: 4, 3: 8, 4: 16}) == 4

    def test_out_of_range_level_is_clamped(self):
        """Levels beyond 4 use the level-4 interval."""
        assert interval_days(9) == 14


class TestInitialMastery:
    """Tests for first submissions."""

    def test_correct_starts_at_level_one(self):
        """Correct first answer: level 1, due after one day."""
        level, due = initial_mastery(True, NOW)
        assert level == 1
        assert due == NOW + timedelta(days=1)

    def test_incorrect_stays_at_zero_and_is_due_now(self):
        """Wrong first answer: level 0, due immediately."""
        level, due = initial_mastery(False, NOW)
        assert level == 0
        assert due == NOW


class TestTransition:
    """Tests for review transitions."""

    def test_correct_increments_level(self):
        """Correct review moves up one level."""
        result = transition(1, True, NOW, NOW)
        assert result.previous_level == 1
        assert result.new_level == 2
        assert result.next_review_date == NOW + timedelta(days=3)
        assert result.changed

    def test_correct_at_top_level_is_capped(self):
        """Level never exceeds 4."""
        result = transition(4, True, NOW, NOW)
        assert result.new_level == MAX_MASTERY_LEVEL
        assert not result.changed
        assert result.retired

    def test_reaching_level_four_retires(self):
        """Reaching level 4 retires the item."""
        result = transition(3, True, NOW, NOW)
        assert result.new_level == 4
        assert result.retired
        assert result.next_review_date == NOW + timedelta(days=14)

    def test_incorrect_decrements_and_resets_date(self):
        """Wrong review moves down one level and is due now."""
        result = transition(3, False, NOW + timedelta(days=2), NOW)
        assert result.new_level == 2
        assert result.next_review_date == NOW

    def test_incorrect_at_zero_is_floored(self):
        """Level never drops below 0."""
        result = transition(0, False, NOW, NOW)
        assert result.new_level == MIN_MASTERY_LEVEL
        assert not result.changed

    def test_early_review_still_moves_date_forward(self):
        """Reviewing ahead of schedule never pulls the due date back."""
        scheduled = NOW + timedelta(days=5)
        result = transition(1, True, scheduled, NOW)
        assert result.next_review_date > scheduled
        assert result.next_review_date == scheduled + timedelta(days=3)

    def test_custom_intervals(self):
        """Interval table comes from the caller."""
        result = transition(0, True, NOW, NOW, {1: 2, 2: 5, 3: 10, 4: 20})
        assert result.next_review_date == NOW + timedelta(days=2)

    def test_level_stays_in_range_under_random_reviews(self):
        """Any sequence of outcomes keeps the level within 0..4."""
        rng = random.Random(7)
        level, due, moment = 0, NOW, NOW
        for _ in range(200):
            is_correct = rng.random() < 0.6
            result = transition(level, is_correct, due, moment)
            assert MIN_MASTERY_LEVEL <= result.new_level <= MAX_MASTERY_LEVEL
            if is_correct:
                assert result.next_review_date > due
            else:
                assert result.next_review_date == moment
            level, due = result.new_level, result.next_review_date
            moment += timedelta(hours=rng.randint(1, 48))


class TestOverdueRanking:
    """Tests for overdue_days and rank_by_priority."""

    def test_overdue_days_floors(self):
        """Partial days do not count."""
        assert overdue_days(NOW - timedelta(days=2, hours=23), NOW) == 2

    def test_overdue_days_not_negative(self):
        """Items not yet due are 0 days overdue."""
        assert overdue_days(NOW + timedelta(hours=5), NOW) == 0

    def _items(self):
        return [
            {"id": 1, "mastery_level": 1, "next_review_date": NOW - timedelta(days=1)},
            {"id": 2, "mastery_level": 2, "next_review_date": NOW - timedelta(days=3)},
            {"id": 3, "mastery_level": 0, "next_review_date": NOW - timedelta(days=3, hours=2)},
            {"id": 4, "mastery_level": 0, "next_review_date": NOW + timedelta(hours=1)},
            {"id": 5, "mastery_level": 0, "next_review_date": NOW},
        ]

    def test_orders_by_overdue_then_level(self):
        """Most overdue first, ties broken by lower level."""
        ranked = rank_by_priority(self._items(), NOW)
        assert [item["id"] for item in ranked] == [3, 2, 1, 5]
        assert [item["priority_rank"] for item in ranked] == [1, 2, 3, 4]
        assert ranked[0]["overdue_days"] == 3

    def test_excludes_items_not_yet_due(self):
        """Future items are dropped."""
        ranked = rank_by_priority(self._items(), NOW)
        assert 4 not in [item["id"] for item in ranked]

    def test_max_overdue_days_filter(self):
        """Items more overdue than the bound are dropped."""
        ranked = rank_by_priority(self._items(), NOW, max_overdue_days=2)
        assert [item["id"] for item in ranked] == [1, 5]

    def test_input_items_not_mutated(self):
        """Ranking returns copies."""
        items = self._items()
        rank_by_priority(items, NOW)
        assert "priority_rank" not in items[0]


class TestProgress:
    """Tests for progress_percentage and mastery_distribution."""

    @pytest.mark.parametrize(
        "solved,total,expected",
        [(0, 0, 0), (0, 5, 0), (1, 3, 33), (2, 3, 67), (1, 8, 13), (3, 3, 100)],
    )
    def test_rounds_half_up(self, solved, total, expected):
        """Percentages round half up (12.5 -> 13)."""
        assert progress_percentage(solved, total) == expected

    def test_distribution_buckets(self):
        """Levels 0..3 get their own bucket, 4 counts as completed."""
        assert mastery_distribution([0, 0, 1, 3, 4]) == {
            "level0": 2,
            "level1": 1,
            "level2": 0,
            "level3": 1,
            "completed": 1,
        }
