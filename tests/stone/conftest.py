"""Pytest fixtures for Stone tests."""

import pytest

from tests.stone.helpers import ScriptedCommandRunner, make_github_client


@pytest.fixture
def github_client():
    return make_github_client()


@pytest.fixture
def command_runner():
    return ScriptedCommandRunner()
