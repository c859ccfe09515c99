"""Chat session and push channel."""

from .events import ChatEvent, EventType
from .session import ChatSession, SessionState
from .stream import EventStream, extract_events, parse_frame

__all__ = [
    "ChatEvent",
    "ChatSession",
    "EventStream",
    "EventType",
    "SessionState",
    "extract_events",
    "parse_frame",
]
