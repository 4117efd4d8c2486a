"""Fixtures for review engine, repository, config and scheduler tests."""

from datetime import datetime, timezone

import pytest

from woodie.db.workbooks_repository import add_problem_to_workbook, insert_workbook

# 2025-03-10 12:00 in Asia/Seoul
NOW = datetime(2025, 3, 10, 3, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Fixed reference time used by repository tests."""
    return NOW


@pytest.fixture
def workbook(make_problem):
    """Published workbook holding two problems."""
    book = insert_workbook("Algebra basics", status="published")
    for _ in range(2):
        add_problem_to_workbook(book.id, make_problem().id)
    return book


@pytest.fixture
def workbook_with_problems(make_problem):
    """Draft workbook with three problems, returned with the problems in order."""
    book = insert_workbook("Geometry", description="Angles and shapes")
    problems = [make_problem() for _ in range(3)]
    for problem in problems:
        add_problem_to_workbook(book.id, problem.id)
    return book, problems
