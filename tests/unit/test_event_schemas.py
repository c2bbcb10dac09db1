"""Domain event wire-format tests."""

from __future__ import annotations

import json

import pytest

from signquest.events.channel import channel_for, parse_event
from signquest.events.schemas import EVENT_TYPES, CrownLeveledUp, LessonCompleted, XPGained


class TestEventSerialisation:
    """Test camelCase payloads and channel naming."""

    def test_camel_case_keys(self):
        event = XPGained(user_id=7, xp_amount=40, source="session", metadata={"lessonId": "l1"})
        payload = json.loads(event.model_dump_json(by_alias=True))
        assert payload == {"userId": 7, "xpAmount": 40, "source": "session", "metadata": {"lessonId": "l1"}}

    def test_channel_name(self):
        assert channel_for(CrownLeveledUp.event_name) == "events:crown.leveled_up"

    def test_parse_round_trip(self):
        event = LessonCompleted(user_id=3, lesson_id="lesson-1", xp_gained=30, score=80.0)
        parsed = parse_event("events:lesson.completed", event.model_dump_json(by_alias=True))
        assert parsed == event

    def test_parse_bytes(self):
        parsed = parse_event("events:xp.gained", b'{"userId": 1, "xpAmount": 5, "source": "crown_level_up"}')
        assert isinstance(parsed, XPGained)
        assert parsed.xp_amount == 5

    def test_unknown_channel(self):
        assert parse_event("events:unknown.thing", "{}") is None

    def test_invalid_payload_raises(self):
        with pytest.raises(ValueError):
            parse_event("events:xp.gained", '{"userId": 1}')

    def test_every_event_type_is_registered_by_name(self):
        assert all(cls.event_name == name for name, cls in EVENT_TYPES.items())
        assert len(EVENT_TYPES) == 12
