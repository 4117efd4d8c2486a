"""Mastery progression and review-interval math.

Pure functions, no database access:
- transition(): mastery level change and next review date after a review
- initial_mastery(): level/date for a brand-new solution record
- overdue_days() / rank_by_priority(): overdue ranking of due items
- progress_percentage(): workbook completion percentage

Levels run 0 (new) to 4 (retired from active review). The interval table
maps the level reached after a correct review to the number of days until
the next review.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping

from woodie.config.app_config import DEFAULT_INTERVALS
from woodie.utils.dates import days_between

MIN_MASTERY_LEVEL = 0
MAX_MASTERY_LEVEL = 4


@dataclass(frozen=True)
class MasteryTransition:
    """Outcome of one review."""

    previous_level: int
    new_level: int
    next_review_date: datetime

    @property
    def changed(self) -> bool:
        return self.previous_level != self.new_level

    @property
    def retired(self) -> bool:
        return self.new_level >= MAX_MASTERY_LEVEL


def clamp_level(level: int) -> int:
    """Clamp a stored level into [0, 4]."""
    return max(MIN_MASTERY_LEVEL, min(MAX_MASTERY_LEVEL, int(level)))


def interval_days(level: int, intervals: Mapping[int, int] | None = None) -> int:
    """Days until the next review once a level has been reached."""
    level = clamp_level(level)
    if level == MIN_MASTERY_LEVEL:
        return 0
    table = intervals or DEFAULT_INTERVALS
    return table[level]


def initial_mastery(
    is_correct: bool,
    now: datetime,
    intervals: Mapping[int, int] | None = None,
) -> tuple[int, datetime]:
    """Level and next review date for a first submission.

    A correct answer starts at level 1; a wrong one stays at 0 and is due
    immediately.
    """
    if is_correct:
        return 1, now + timedelta(days=interval_days(1, intervals))
    return MIN_MASTERY_LEVEL, now


def transition(
    level: int,
    is_correct: bool,
    previous_next_review: datetime | None,
    now: datetime,
    intervals: Mapping[int, int] | None = None,
) -> MasteryTransition:
    """Apply one review outcome to a mastery level.

    Correct: level goes up one (capped at 4) and the next review moves
    forward by the interval of the new level. The new date is always later
    than previous_next_review, even when reviewing ahead of schedule.
    Incorrect: level goes down one (floored at 0) and the item is due now.

    Args:
        level: Current mastery level
        is_correct: Whether the review was answered correctly
        previous_next_review: Current next_review_date of the item
        now: Review time (aware datetime)
        intervals: Level -> days table (defaults to 1/3/7/14)

    Returns:
        MasteryTransition with old/new level and next review date
    """
    current = clamp_level(level)

    if not is_correct:
        return MasteryTransition(
            previous_level=current,
            new_level=max(current - 1, MIN_MASTERY_LEVEL),
            next_review_date=now,
        )

    new_level = min(current + 1, MAX_MASTERY_LEVEL)
    step = timedelta(days=interval_days(new_level, intervals))
    next_review = now + step
    if previous_next_review is not None and next_review <= previous_next_review:
        next_review = previous_next_review + step

    return MasteryTransition(
        previous_level=current,
        new_level=new_level,
        next_review_date=next_review,
    )


def overdue_days(next_review_date: datetime, now: datetime) -> int:
    """Whole days an item is past due (0 when due today or not yet due)."""
    return max(days_between(next_review_date, now), 0)


def rank_by_priority(
    items: Iterable[dict[str, Any]],
    now: datetime,
    max_overdue_days: int | None = None,
) -> list[dict[str, Any]]:
    """Order due items by how overdue they are.

    Each item needs a parsed ``next_review_date`` datetime, ``mastery_level``
    and ``id``. Items not yet due are dropped, as are items more than
    max_overdue_days overdue when that bound is given. The returned dicts are
    copies carrying ``overdue_days`` and a 1-based ``priority_rank``.
    """
    ranked = []
    for item in items:
        due = item["next_review_date"]
        if due > now:
            continue
        days = overdue_days(due, now)
        if max_overdue_days is not None and days > max_overdue_days:
            continue
        ranked.append({**item, "overdue_days": days})

    ranked.sort(key=lambda i: (-i["overdue_days"], i["mastery_level"], i["id"]))
    for position, item in enumerate(ranked, start=1):
        item["priority_rank"] = position
    return ranked


def progress_percentage(solved: int, total: int) -> int:
    """Solved/total as a whole percentage, rounding halves up."""
    if total <= 0:
        return 0
    ratio = Decimal(solved * 100) / Decimal(total)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def mastery_distribution(levels: Iterable[int]) -> dict[str, int]:
    """Count levels into level0..level3 buckets plus completed (level 4)."""
    distribution = {"level0": 0, "level1": 0, "level2": 0, "level3": 0, "completed": 0}
    for level in levels:
        level = clamp_level(level)
        if level >= MAX_MASTERY_LEVEL:
            distribution["completed"] += 1
        else:
            distribution[f"level{level}"] += 1
    return distribution
