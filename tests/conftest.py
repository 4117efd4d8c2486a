"""Shared fixtures.

Every test runs against its own SQLite file under tmp_path, with the batch
scheduler disabled and no config file, so ./db and ./data are never touched.
"""

import pytest

from woodie.config import clear_config_cache
from woodie.core.scheduler import reset_scheduler
from woodie.db.database import init_db
from woodie.db.problems_repository import insert_problem
from woodie.db.users_repository import insert_user


@pytest.fixture(autouse=True)
def isolated_db(tmp_path, monkeypatch):
    """Point config and database at tmp_path."""
    db_path = tmp_path / "db" / "woodie.db"
    monkeypatch.setenv("WOODIE_DB_PATH", str(db_path))
    monkeypatch.setenv("WOODIE_CONFIG_FILE", str(tmp_path / "woodie_config.yaml"))
    monkeypatch.setenv("WOODIE_SCHEDULER_ENABLED", "false")
    monkeypatch.delenv("WOODIE_TIMEZONE", raising=False)
    clear_config_cache()
    reset_scheduler()

    init_db(db_path)
    yield db_path

    reset_scheduler()
    clear_config_cache()


@pytest.fixture
def student():
    return insert_user("student1", "student1@example.com", role="student")


@pytest.fixture
def other_student():
    return insert_user("student2", "student2@example.com", role="student")


@pytest.fixture
def teacher():
    return insert_user("teacher1", "teacher1@example.com", role="teacher")


@pytest.fixture
def admin():
    return insert_user("admin1", "admin1@example.com", role="admin")


@pytest.fixture
def make_problem():
    """Factory creating short-answer problems."""
    counter = {"n": 0}

    def _make(answer: str = "42", **kwargs):
        counter["n"] += 1
        fields = {
            "title": f"Problem {counter['n']}",
            "content": f"Question {counter['n']}?",
            "subject": "math",
            "answer": answer,
            "problem_type": "short_answer",
        }
        fields.update(kwargs)
        return insert_problem(**fields)

    return _make

