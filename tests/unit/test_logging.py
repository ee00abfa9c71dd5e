"""Unit tests for logging helpers."""

import pytest
import structlog

from podforge.logging import add_log_level, bind_run_context, clear_run_context


@pytest.fixture(autouse=True)
def clean_context():
    clear_run_context()
    yield
    clear_run_context()


@pytest.mark.parametrize(
    "method, level",
    [("info", "INFO"), ("warn", "WARNING"), ("exception", "ERROR"), ("critical", "CRITICAL")],
)
def test_add_log_level(method, level):
    """Test logging methods map to level names."""
    assert add_log_level(None, method, {})["level"] == level


def test_add_log_level_unknown_method():
    """Test unknown methods leave the event untouched."""
    assert add_log_level(None, "msg", {"event": "x"}) == {"event": "x"}


def test_run_context_bound_and_cleared():
    """Test bound values are visible until cleared."""
    bind_run_context(run_id="2025-03-14T12-00-00")

    assert structlog.contextvars.get_contextvars() == {"run_id": "2025-03-14T12-00-00"}

    clear_run_context()
    assert structlog.contextvars.get_contextvars() == {}
