"""Core bot plumbing."""

from .commands import Command, CommandDispatcher
from .http import ChatHttp
from .logging import SessionStats, get_session_stats, log_timing, reset_session_stats

__all__ = [
    "ChatHttp",
    "Command",
    "CommandDispatcher",
    "SessionStats",
    "get_session_stats",
    "log_timing",
    "reset_session_stats",
]
