"""Fixtures for CLI tests."""

import pytest
from typer.testing import CliRunner

from woodie.cli.commands import app


@pytest.fixture
def invoke():
    """Run a woodie command and return the click Result."""
    runner = CliRunner()

    def _invoke(*args: str):
        return runner.invoke(app, list(args))

    return _invoke
