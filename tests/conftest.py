import pytest
from fastapi.testclient import TestClient


@pytest.fixture(scope="function", autouse=True)
def setup_for_every_test(monkeypatch, tmp_path):
    # Every test gets its own event-log database file.
    monkeypatch.setenv("DATABASE_FILE", str(tmp_path / "test_app_db.sqlite"))

    from db_setup import setup_database
    setup_database()

    yield


@pytest.fixture
def test_app_client():
    """Provides a TestClient to the app. Entering the client runs the lifespan hook."""
    from main import app
    with TestClient(app) as client:
        yield client


@pytest.fixture
def parse_ok():
    """Parses a command and asserts it was accepted, returning the command."""
    from command_parser import parse_trade_command

    def _parse(text):
        result = parse_trade_command(text)
        assert result.success, f"{text!r} was rejected: {result.errors}"
        return result.command
    return _parse


@pytest.fixture
def parse_fail():
    """Parses a command and asserts it was rejected, returning the error list."""
    from command_parser import parse_trade_command

    def _parse(text):
        result = parse_trade_command(text)
        assert not result.success, f"{text!r} was accepted: {result.command}"
        return result.errors
    return _parse
