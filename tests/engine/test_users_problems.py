"""Tests for users and problems repositories."""

import sqlite3

import pytest

from woodie.db.problems_repository import (
    deactivate_problem,
    get_problem_by_id,
    insert_problem,
    list_problems,
    update_problem,
)
from woodie.db.users_repository import (
    deactivate_user,
    get_user_by_id,
    get_user_by_username,
    insert_user,
    list_active_user_ids,
)


class TestUsers:
    """Tests for users_repository."""

    def test_insert_and_lookup(self):
        user = insert_user("minji", "minji@example.com", role="teacher", full_name="Kim Minji")
        assert user.role == "teacher"
        assert user.is_active is True
        assert get_user_by_username("minji") == user
        assert user.to_dict()["fullName"] == "Kim Minji"

    def test_unknown_role(self):
        with pytest.raises(ValueError):
            insert_user("minji", "minji@example.com", role="parent")

    def test_duplicate_username(self):
        insert_user("minji", "minji@example.com")
        with pytest.raises(sqlite3.IntegrityError):
            insert_user("minji", "other@example.com")

    def test_deactivate_hides_user(self, student, other_student):
        """Deactivated users vanish from default lookups."""
        assert deactivate_user(student.id) is True
        assert deactivate_user(student.id) is False
        assert get_user_by_id(student.id) is None
        assert get_user_by_id(student.id, include_inactive=True).is_active is False
        assert list_active_user_ids() == [other_student.id]

    def test_admin_flag(self, admin, student):
        assert admin.is_admin
        assert not student.is_admin


class TestProblems:
    """Tests for problems_repository."""

    def test_answer_hidden_by_default(self, make_problem):
        problem = make_problem(answer="7", explanation="3 + 4")
        assert "answer" not in problem.to_dict()
        assert problem.to_dict(include_answer=True)["answer"] == "7"

    def test_invalid_difficulty(self):
        with pytest.raises(ValueError):
            insert_problem("t", "c", "math", difficulty="extreme")

    def test_invalid_problem_type(self):
        with pytest.raises(ValueError):
            insert_problem("t", "c", "math", problem_type="matching")

    def test_list_filters_and_pages(self, make_problem):
        make_problem(subject="math", difficulty="easy")
        make_problem(subject="math", difficulty="hard")
        make_problem(subject="science")

        result = list_problems(page=1, limit=1, subject="math")
        assert result["pagination"]["total"] == 2
        assert result["pagination"]["totalPages"] == 2
        assert len(result["data"]) == 1

        hard = list_problems(difficulty="hard")
        assert [p.difficulty for p in hard["data"]] == ["hard"]

    def test_get_missing(self):
        assert get_problem_by_id(9999) is None

    def test_update_changes_only_given_fields(self, make_problem):
        problem = make_problem(answer="42", difficulty="easy")
        updated = update_problem(problem.id, answer="43", points=3)
        assert updated.answer == "43"
        assert updated.points == 3
        assert updated.difficulty == "easy"
        assert updated.title == problem.title

    def test_update_rejects_bad_values(self, make_problem):
        problem = make_problem()
        with pytest.raises(ValueError):
            update_problem(problem.id, difficulty="extreme")
        with pytest.raises(ValueError):
            update_problem(problem.id, title=None)
        with pytest.raises(ValueError):
            update_problem(problem.id, created_by=1)

    def test_update_missing(self):
        assert update_problem(9999, title="x") is None

    def test_deactivate_hides_problem(self, make_problem):
        problem = make_problem()
        assert deactivate_problem(problem.id)
        assert get_problem_by_id(problem.id) is None
        assert list_problems()["pagination"]["total"] == 0
        assert not deactivate_problem(problem.id)
        assert update_problem(problem.id, title="x") is None
