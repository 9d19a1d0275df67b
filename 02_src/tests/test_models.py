"""Tests for data models."""

from datetime import datetime, timezone

import pytest

from taskflow.errors import CooldownActiveError, ValidationError
from taskflow.models import (
    ClaimResult,
    ClaimSettings,
    ClaimedItem,
    DirectTarget,
    EventType,
    GroupTarget,
    Message,
    RealtimeEvent,
    parse_chat_target,
)


class TestChatTarget:
    """Tests for parse_chat_target."""

    def test_direct(self):
        """Test that a recipient id gives a direct target."""
        target = parse_chat_target(recipient_id="bob")
        assert target == DirectTarget(recipient_id="bob")
        assert target.chat_type == "direct"

    def test_group(self):
        """Test that a group id gives a group target."""
        target = parse_chat_target(group_id="g1")
        assert target == GroupTarget(group_id="g1")
        assert target.chat_type == "group"

    def test_both_rejected(self):
        """Test that both ids together are rejected."""
        with pytest.raises(ValidationError):
            parse_chat_target(recipient_id="bob", group_id="g1")

    def test_neither_rejected(self):
        """Test that a missing target is rejected."""
        with pytest.raises(ValidationError):
            parse_chat_target()


class TestMessage:
    """Tests for Message model."""

    def test_requires_exactly_one_destination(self):
        """Test that a message needs exactly one destination."""
        ts = datetime.now(timezone.utc)
        with pytest.raises(ValueError):
            Message(
                id="m1",
                team_id="t",
                sender_id="a",
                sender_name="A",
                content="hi",
                created_at=ts,
            )
        with pytest.raises(ValueError):
            Message(
                id="m1",
                team_id="t",
                sender_id="a",
                sender_name="A",
                content="hi",
                created_at=ts,
                recipient_id="b",
                group_id="g",
            )

    def test_to_dict(self):
        """Test that to_dict uses the wire field names."""
        ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
        msg = Message(
            id="m1",
            team_id="t",
            sender_id="a",
            sender_name="Alice",
            content="hi",
            created_at=ts,
            recipient_id="b",
            read_by=["b"],
        )
        data = msg.to_dict()
        assert data["sender"] == "a"
        assert data["recipient"] == "b"
        assert data["groupId"] is None
        assert data["createdAt"] == ts.isoformat()
        assert data["readBy"] == ["b"]
        assert data["deleted"] is False
        assert msg.target == DirectTarget(recipient_id="b")


class TestClaimModels:
    """Tests for claim payloads."""

    def test_claim_result_to_dict(self):
        """Test that ClaimResult serializes its items and deadline."""
        now = datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
        until = datetime(2024, 1, 1, 12, 30, tzinfo=timezone.utc)
        item = ClaimedItem(
            id="c1",
            team_id="t",
            content="555-0100",
            claimed_by="a",
            claimed_by_name="Alice",
            claimed_at=now,
            cooldown_until=until,
        )
        data = ClaimResult(claimed_at=now, cooldown_until=until, items=[item]).to_dict()
        assert data["success"] is True
        assert data["claimedCount"] == 1
        assert data["cooldownUntil"] == until.isoformat()
        assert data["claimedLines"][0]["content"] == "555-0100"

    def test_settings_to_dict(self):
        """Test that ClaimSettings serializes camelCase fields."""
        data = ClaimSettings(team_id="t", line_count=7, cooldown_minutes=2.0).to_dict()
        assert data["lineCount"] == 7
        assert data["cooldownMinutes"] == 2.0


class TestRealtimeEvent:
    """Tests for RealtimeEvent serialization."""

    def test_to_dict(self):
        """Test that to_dict uses the wire field names."""
        event = RealtimeEvent(
            type=EventType.MESSAGE_SENT,
            team_id="t",
            room_id="dm-a-b",
            payload={"id": "m1"},
        )
        data = event.to_dict()
        assert data["type"] == "message-sent"
        assert data["roomId"] == "dm-a-b"
        assert data["payload"] == {"id": "m1"}
        assert "timestamp" in data


class TestErrors:
    """Tests for error rendering."""

    def test_validation_error_body(self):
        """Test that errors serialize to code and message."""
        err = ValidationError("bad input")
        assert err.status_code == 400
        assert err.to_dict() == {"error": "validation_error", "message": "bad input"}

    def test_cooldown_error_carries_deadline(self):
        """Test that CooldownActiveError includes cooldownUntil."""
        until = datetime(2024, 1, 1, tzinfo=timezone.utc)
        err = CooldownActiveError(until)
        assert err.status_code == 429
        assert err.to_dict()["cooldownUntil"] == until.isoformat()
