"""Logging utilities for cabbage-bot."""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Generator


@dataclass
class SessionStats:
    """Cumulative statistics for a session.

    Thread-safe counters for tracking bot activity metrics.
    """

    events_received: int = 0
    messages_sent: int = 0
    messages_edited: int = 0
    commands_triggered: int = 0
    errors: int = 0
    event_types: dict[int, int] = field(default_factory=dict)
    _lock: Lock = field(default_factory=Lock, repr=False)

    def increment(self, stat: str, amount: int = 1) -> None:
        """Increment a stat counter."""
        with self._lock:
            if hasattr(self, stat) and stat != "_lock":
                current = getattr(self, stat)
                if isinstance(current, int):
                    setattr(self, stat, current + amount)

    def record_event_type(self, event_type: int) -> None:
        """Track how many events of each type arrived."""
        with self._lock:
            self.event_types[event_type] = self.event_types.get(event_type, 0) + 1

    def summary(self) -> dict[str, Any]:
        """Return a summary of all stats."""
        with self._lock:
            return {
                "received": self.events_received,
                "sent": self.messages_sent,
                "edited": self.messages_edited,
                "commands": self.commands_triggered,
                "errors": self.errors,
                "event_types": dict(self.event_types),
            }

    def summary_line(self) -> str:
        """Return a single-line summary for logging."""
        with self._lock:
            return (
                f"received={self.events_received} "
                f"sent={self.messages_sent} edited={self.messages_edited} "
                f"commands={self.commands_triggered} errors={self.errors}"
            )


# Global session stats instance
_session_stats: SessionStats | None = None
_stats_lock = Lock()


def get_session_stats() -> SessionStats:
    """Get the global session stats instance."""
    global _session_stats
    with _stats_lock:
        if _session_stats is None:
            _session_stats = SessionStats()
        return _session_stats


def reset_session_stats() -> None:
    """Reset session stats (mainly for testing)."""
    global _session_stats
    with _stats_lock:
        _session_stats = SessionStats()


@contextmanager
def log_timing(
    logger: logging.Logger, operation: str
) -> Generator[None, None, None]:
    """Context manager for timing operations.

    Logs at DEBUG level on completion.

    Example:
        with log_timing(logger, "Login"):
            await openid_login(...)
        # Logs: "Login completed in 812.40ms"
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(f"{operation} completed in {elapsed_ms:.2f}ms")
