"""Tests for application entry point helpers."""

import logging

import pytest
import structlog

from src.main import configure_logging, open_session
from src.store import InMemoryRemoteStore


@pytest.fixture
def restore_structlog():
    """Reset structlog configuration after the test."""
    yield
    structlog.reset_defaults()


def test_configure_logging(restore_structlog, caplog: pytest.LogCaptureFixture) -> None:
    """Log events are rendered as key-value pairs through stdlib logging."""
    configure_logging("debug")

    with caplog.at_level(logging.DEBUG):
        structlog.get_logger("roster").info("configured", session_id="s1")

    assert structlog.is_configured()
    assert "event='configured'" in caplog.text
    assert "session_id='s1'" in caplog.text


async def test_open_session(store: InMemoryRemoteStore) -> None:
    session = await open_session("spring", "s1", store)

    assert session.loaded
    assert len(session.roster) == 2
