"""Tests for logging helpers."""

import logging

import pytest

from cabbage_bot.core.logging import (
    SessionStats,
    get_session_stats,
    log_timing,
    reset_session_stats,
)


class TestSessionStats:
    def test_increment(self):
        stats = SessionStats()
        stats.increment("messages_sent")
        stats.increment("messages_sent", 2)
        assert stats.messages_sent == 3

    def test_unknown_or_private_stat_ignored(self):
        stats = SessionStats()
        stats.increment("nonexistent")
        stats.increment("_lock")
        stats.increment("event_types")
        assert stats.summary()["event_types"] == {}

    def test_event_types(self):
        stats = SessionStats()
        stats.record_event_type(1)
        stats.record_event_type(1)
        stats.record_event_type(3)
        assert stats.summary()["event_types"] == {1: 2, 3: 1}

    def test_summary_line(self):
        stats = SessionStats(events_received=4, messages_sent=1, messages_edited=1)
        line = stats.summary_line()
        assert "received=4" in line
        assert "sent=1" in line
        assert "edited=1" in line

    def test_global_instance_reset(self):
        get_session_stats().increment("errors")
        assert get_session_stats().errors == 1
        reset_session_stats()
        assert get_session_stats().errors == 0


def test_log_timing(caplog: pytest.LogCaptureFixture):
    logger = logging.getLogger("cabbage_bot.test")
    with caplog.at_level(logging.DEBUG, logger="cabbage_bot.test"):
        with log_timing(logger, "Login"):
            pass
    assert "Login completed in" in caplog.text
