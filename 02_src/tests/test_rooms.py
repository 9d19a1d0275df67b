"""Tests for room identity, presence and the room broadcaster."""

import pytest

from taskflow.models import (
    DirectTarget,
    EventType,
    GroupTarget,
    RealtimeEvent,
)
from taskflow.realtime import direct_room_id, room_for_target

from conftest import OTHER_TEAM, TEAM, FakeConnection


def _event(room_id: str = "room", team_id: str = TEAM) -> RealtimeEvent:
    return RealtimeEvent(
        type=EventType.MESSAGE_SENT, team_id=team_id, room_id=room_id, payload={}
    )


class TestRoomId:
    """Tests for room identity rules."""

    def test_direct_room_is_symmetric(self):
        """Test that both users map to the same direct room."""
        assert direct_room_id("alice", "bob") == direct_room_id("bob", "alice")
        assert direct_room_id("alice", "bob") == "dm-alice-bob"

    def test_room_for_target(self):
        """Test that targets map to direct and group room ids."""
        assert room_for_target(DirectTarget("bob"), "alice") == "dm-alice-bob"
        assert room_for_target(GroupTarget("g1"), "alice") == "g1"


class TestPresence:
    """Tests for PresenceRegistry."""

    def test_multiple_connections_count_once(self, presence):
        """Test that two tabs make one online user."""
        tab1 = FakeConnection("alice")
        tab2 = FakeConnection("alice")

        assert presence.register(tab1) is True
        assert presence.register(tab2) is False
        assert presence.online_users(TEAM) == ["alice"]

        assert presence.unregister(tab1) is False
        assert presence.is_online("alice")
        assert presence.unregister(tab2) is True
        assert not presence.is_online("alice")

    def test_online_users_per_team(self, presence):
        """Test that online users are listed per team."""
        presence.register(FakeConnection("alice"))
        presence.register(FakeConnection("dave", team_id=OTHER_TEAM))
        assert presence.online_users(TEAM) == ["alice"]
        assert presence.online_users(OTHER_TEAM) == ["dave"]


class TestBroadcasterLifecycle:
    """Tests for connect/disconnect announcements."""

    async def test_first_connection_announces_online(self, broadcaster):
        """Test that the first connection announces user-online."""
        bob = FakeConnection("bob")
        await broadcaster.connect(bob)

        alice = FakeConnection("alice")
        await broadcaster.connect(alice)

        assert bob.types() == ["user-online"]
        assert bob.events[0].payload == {"userId": "alice"}
        # The connecting client is not told about itself
        assert alice.events == []

    async def test_second_tab_does_not_announce(self, broadcaster):
        """Test that a second connection stays silent."""
        bob = FakeConnection("bob")
        await broadcaster.connect(bob)
        await broadcaster.connect(FakeConnection("alice"))
        await broadcaster.connect(FakeConnection("alice"))

        assert bob.types() == ["user-online"]

    async def test_last_disconnect_announces_offline(self, broadcaster):
        """Test that only the last disconnect announces user-offline."""
        bob = FakeConnection("bob")
        tab1 = FakeConnection("alice")
        tab2 = FakeConnection("alice")
        for conn in (bob, tab1, tab2):
            await broadcaster.connect(conn)
        bob.events.clear()

        await broadcaster.disconnect(tab1)
        assert bob.events == []

        await broadcaster.disconnect(tab2)
        assert bob.types() == ["user-offline"]

    async def test_presence_not_leaked_across_teams(self, broadcaster):
        """Test that presence events stay within the team."""
        dave = FakeConnection("dave", team_id=OTHER_TEAM)
        await broadcaster.connect(dave)
        await broadcaster.connect(FakeConnection("alice"))
        assert dave.events == []

    async def test_disconnect_leaves_rooms(self, broadcaster):
        """Test that disconnect removes the connection from its rooms."""
        alice = FakeConnection("alice")
        await broadcaster.connect(alice)
        broadcaster.join(alice, "room")

        await broadcaster.disconnect(alice)
        assert broadcaster.room_members("room") == []
        assert broadcaster.rooms_of(alice) == set()


class TestBroadcast:
    """Tests for room fan-out."""

    async def test_join_is_idempotent(self, broadcaster):
        """Test that joining twice is harmless."""
        alice = FakeConnection("alice")
        assert broadcaster.join(alice, "room") is True
        assert broadcaster.join(alice, "room") is False
        assert broadcaster.leave(alice, "room") is True
        assert broadcaster.leave(alice, "room") is False

    async def test_broadcast_reaches_room_members_only(self, broadcaster):
        """Test that a broadcast reaches room members only."""
        alice, bob, carol = (FakeConnection(u) for u in ("alice", "bob", "carol"))
        broadcaster.join(alice, "room")
        broadcaster.join(bob, "room")
        broadcaster.join(carol, "other")

        delivered = await broadcaster.broadcast("room", _event())
        assert delivered == 2
        assert len(alice.events) == 1 and len(bob.events) == 1
        assert carol.events == []

    async def test_broadcast_skips_excluded(self, broadcaster):
        """Test that the excluded connection is skipped."""
        alice, bob = FakeConnection("alice"), FakeConnection("bob")
        broadcaster.join(alice, "room")
        broadcaster.join(bob, "room")

        delivered = await broadcaster.broadcast("room", _event(), exclude=alice)
        assert delivered == 1
        assert alice.events == []

    async def test_dead_connection_does_not_fail_broadcast(self, broadcaster):
        """Test that one failing connection does not stop delivery."""
        dead = FakeConnection("alice", fail=True)
        bob = FakeConnection("bob")
        broadcaster.join(dead, "room")
        broadcaster.join(bob, "room")

        delivered = await broadcaster.broadcast("room", _event())
        assert delivered == 1
        assert len(bob.events) == 1

    async def test_events_keep_broadcast_order(self, broadcaster):
        """Test that events arrive in broadcast order."""
        bob = FakeConnection("bob")
        broadcaster.join(bob, "room")
        for i in range(5):
            await broadcaster.broadcast(
                "room",
                RealtimeEvent(
                    type=EventType.MESSAGE_SENT,
                    team_id=TEAM,
                    room_id="room",
                    payload={"n": i},
                ),
            )
        assert [e.payload["n"] for e in bob.events] == [0, 1, 2, 3, 4]

    async def test_broadcast_never_crosses_teams(self, broadcaster):
        """Test that a team broadcast never reaches another team."""
        dave = FakeConnection("dave", team_id=OTHER_TEAM)
        broadcaster.join(dave, "room")
        assert await broadcaster.broadcast("room", _event(team_id=TEAM)) == 0
        assert dave.events == []


@pytest.mark.parametrize("user_a,user_b", [("a", "b"), ("zed", "amy")])
def test_direct_room_sorted(user_a, user_b):
    low, high = sorted((user_a, user_b))
    assert direct_room_id(user_a, user_b) == f"dm-{low}-{high}"
