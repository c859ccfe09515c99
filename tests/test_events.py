"""Tests for chat events and frame demultiplexing."""

import json

from hypothesis import given
from hypothesis import strategies as st

from cabbage_bot.chat.events import ChatEvent, EventType
from cabbage_bot.chat.stream import extract_events, parse_frame

RABBIT_FRAME = {
    "123": {
        "e": [{"event_type": 1, "content": "!!rabbit", "room_id": 123}],
        "t": 5,
        "d": 4,
    }
}


class TestChatEvent:
    def test_from_dict(self):
        event = ChatEvent.from_dict(
            {
                "event_type": 1,
                "time_stamp": 1400000000,
                "content": "hello",
                "id": 77,
                "user_id": 5,
                "user_name": "alice",
                "room_id": 123,
                "room_name": "Sandbox",
                "message_id": 9001,
            }
        )
        assert event.type is EventType.MESSAGE_POSTED
        assert event.is_message
        assert event.content == "hello"
        assert event.room_id == 123
        assert event.message_id == 9001
        assert event.user_name == "alice"
        assert event.raw["room_name"] == "Sandbox"

    def test_missing_fields_default(self):
        event = ChatEvent.from_dict({"event_type": 3})
        assert event.type is EventType.USER_ENTERED
        assert not event.is_message
        assert event.content == ""
        assert event.room_id is None
        assert event.message_id is None

    def test_unknown_type(self):
        event = ChatEvent.from_dict({"event_type": 999})
        assert event.type is None
        assert "EVENT_999" in str(event)

    def test_str_representation(self):
        event = ChatEvent(event_type=1, content="hi", room_id=1, user_name="bob")
        assert str(event) == "[1] MESSAGE_POSTED <bob> hi"


class TestExtractEvents:
    """Tests for turning frames into events."""

    def test_rabbit_frame_yields_one_event(self):
        events = extract_events(RABBIT_FRAME)
        assert len(events) == 1
        assert events[0].content == "!!rabbit"
        assert events[0].room_id == 123

    def test_heartbeat_yields_nothing(self):
        frame = {"r123": {"e": [{"event_type": 1, "content": "x"}], "t": 5, "d": 5}}
        assert extract_events(frame) == []

    def test_room_without_events(self):
        assert extract_events({"r123": {"t": 5, "d": 4}}) == []
        assert extract_events({"r123": {}}) == []

    def test_non_dict_entries_ignored(self):
        assert extract_events({"r1": None, "r2": [1, 2], "r3": "x"}) == []

    def test_multiple_rooms_in_order(self):
        frame = {
            "r1": {"e": [{"event_type": 1, "id": 1}, {"event_type": 2, "id": 2}], "t": 3, "d": 1},
            "r2": {"e": [{"event_type": 3, "id": 3}], "t": 1, "d": 0},
        }
        assert [e.id for e in extract_events(frame)] == [1, 2, 3]

    def test_non_dict_items_skipped(self):
        frame = {"r1": {"e": ["junk", {"event_type": 1, "id": 4}], "t": 2, "d": 1}}
        assert [e.id for e in extract_events(frame)] == [4]

    @given(
        count=st.integers(min_value=0, max_value=10_000),
        n_events=st.integers(min_value=0, max_value=5),
    )
    def test_unchanged_counters_never_publish(self, count: int, n_events: int):
        """Whatever the event list holds, d == t means nothing new."""
        frame = {"r1": {"e": [{"event_type": 1}] * n_events, "t": count, "d": count}}
        assert extract_events(frame) == []

    @given(
        total=st.integers(min_value=1, max_value=10_000),
        n_events=st.integers(min_value=0, max_value=5),
    )
    def test_changed_counters_publish_every_event(self, total: int, n_events: int):
        frame = {"r1": {"e": [{"event_type": 1}] * n_events, "t": total, "d": total - 1}}
        assert len(extract_events(frame)) == n_events


class TestParseFrame:
    def test_valid(self):
        assert parse_frame(json.dumps(RABBIT_FRAME)) == RABBIT_FRAME

    def test_malformed_json(self):
        assert parse_frame("{not json") is None

    def test_non_object(self):
        assert parse_frame("[1, 2, 3]") is None
