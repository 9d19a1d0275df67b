"""Tests for the HTTP API."""

import httpx
import pytest
import pytest_asyncio

from taskflow.api import create_fastapi_app

from conftest import OTHER_TEAM, TEAM, FakeConnection, make_user, token_for


@pytest_asyncio.fixture
async def seeded(application):
    """Users stored in the running application, keyed by id."""
    seeded = {
        "alice": make_user("alice", role="admin"),
        "bob": make_user("bob"),
        "carol": make_user("carol"),
        "dave": make_user("dave", team_id=OTHER_TEAM),
    }
    for user in seeded.values():
        await application.storage.save_user(user)
    return seeded


@pytest_asyncio.fixture
async def client(application, seeded):
    fastapi_app = create_fastapi_app(application)
    transport = httpx.ASGITransport(app=fastapi_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def auth(seeded, test_settings):
    """Build an Authorization header for a seeded user."""

    def _auth(user_id: str) -> dict:
        token = token_for(seeded[user_id], test_settings)
        return {"Authorization": f"Bearer {token}"}

    return _auth


class TestAuth:
    """Tests for bearer authentication."""

    async def test_missing_token(self, client):
        """Test that a request without a bearer token gets 401."""
        response = await client.get("/api/chat/unread")
        assert response.status_code == 401
        assert response.json()["error"] == "authentication_error"

    async def test_bad_token(self, client):
        """Test that an undecodable token gets 401."""
        response = await client.get(
            "/api/chat/unread", headers={"Authorization": "Bearer garbage"}
        )
        assert response.status_code == 401

    async def test_health_is_public(self, client):
        """Test that /health needs no token."""
        response = await client.get("/health")
        assert response.json() == {"status": "ok"}


class TestChatRoutes:
    """Tests for /api/chat."""

    async def test_send_and_list(self, client, auth):
        """Test that a sent message is listed for the recipient."""
        response = await client.post(
            "/api/chat/messages",
            json={"content": "hi", "recipientId": "bob"},
            headers=auth("alice"),
        )
        assert response.status_code == 201
        sent = response.json()
        assert sent["sender"] == "alice"
        assert sent["senderName"] == "Alice"

        listed = await client.get(
            "/api/chat/messages", params={"recipientId": "alice"}, headers=auth("bob")
        )
        body = listed.json()
        assert body["roomId"] == "dm-alice-bob"
        assert [m["id"] for m in body["messages"]] == [sent["id"]]

    async def test_send_to_both_targets_rejected(self, client, auth):
        """Test that recipientId and groupId together are rejected."""
        response = await client.post(
            "/api/chat/messages",
            json={"content": "hi", "recipientId": "bob", "groupId": "g1"},
            headers=auth("alice"),
        )
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    async def test_missing_content_is_validation_error(self, client, auth):
        """Test that a body without content maps to validation_error."""
        response = await client.post(
            "/api/chat/messages", json={"recipientId": "bob"}, headers=auth("alice")
        )
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    async def test_cross_team_recipient_not_found(self, client, auth):
        """Test that a recipient from another team is not found."""
        response = await client.post(
            "/api/chat/messages",
            json={"content": "hi", "recipientId": "dave"},
            headers=auth("alice"),
        )
        assert response.status_code == 404

    async def test_edit_by_other_user_forbidden(self, client, auth):
        """Test that only the sender may edit a message."""
        sent = (
            await client.post(
                "/api/chat/messages",
                json={"content": "hi", "recipientId": "bob"},
                headers=auth("alice"),
            )
        ).json()
        response = await client.post(
            f"/api/chat/messages/{sent['id']}/edit",
            json={"content": "mine now"},
            headers=auth("bob"),
        )
        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"

    async def test_send_is_broadcast_to_room(self, client, auth, application):
        """Test that a sent message is fanned out to the direct room."""
        bob = FakeConnection("bob")
        application.broadcaster.join(bob, "dm-alice-bob")

        await client.post(
            "/api/chat/messages",
            json={"content": "hi", "recipientId": "bob"},
            headers=auth("alice"),
        )
        assert bob.types() == ["message-sent"]
        assert bob.events[0].room_id == "dm-alice-bob"
        assert bob.events[0].payload["content"] == "hi"

    async def test_read_edit_delete_flow(self, client, auth, application):
        """Test that read, edit and delete each broadcast once."""
        bob = FakeConnection("bob")
        application.broadcaster.join(bob, "dm-alice-bob")
        sent = (
            await client.post(
                "/api/chat/messages",
                json={"content": "hi", "recipientId": "bob"},
                headers=auth("alice"),
            )
        ).json()

        for _ in range(2):
            read = await client.post(
                f"/api/chat/messages/{sent['id']}/read", headers=auth("bob")
            )
            assert read.json()["readBy"] == ["bob"]

        edited = await client.post(
            f"/api/chat/messages/{sent['id']}/edit",
            json={"content": "hello"},
            headers=auth("alice"),
        )
        assert edited.json()["content"] == "hello"

        deleted = await client.post(
            f"/api/chat/messages/{sent['id']}/delete", headers=auth("alice")
        )
        assert deleted.json()["deleted"] is True

        # The repeated read adds nothing, so it is not broadcast again
        assert bob.types() == [
            "message-sent",
            "message-read",
            "message-edited",
            "message-deleted",
        ]

    async def test_group_chat_and_unread(self, client, auth):
        """Test that group messages show up as unread until the chat is read."""
        group = (await client.get("/api/chat/group", headers=auth("alice"))).json()
        assert group["name"] == "Team Chat"

        await client.post(
            "/api/chat/messages",
            json={"content": "standup", "groupId": group["id"]},
            headers=auth("alice"),
        )
        unread = (await client.get("/api/chat/unread", headers=auth("bob"))).json()
        assert unread["unread"] == {group["id"]: 1}

        marked = await client.post(
            "/api/chat/read", json={"groupId": group["id"]}, headers=auth("bob")
        )
        assert marked.json() == {"marked": 1}
        unread = (await client.get("/api/chat/unread", headers=auth("bob"))).json()
        assert unread["unread"] == {}

    async def test_typing(self, client, auth):
        """Test that typing can be set, seen by the peer and cleared."""
        response = await client.post(
            "/api/chat/typing",
            json={"recipientId": "bob", "isTyping": True},
            headers=auth("alice"),
        )
        assert response.json()["chatId"] == "dm-alice-bob"

        status = await client.get(
            "/api/chat/typing", params={"recipientId": "alice"}, headers=auth("bob")
        )
        typing = status.json()["typing"]
        assert [t["userId"] for t in typing] == ["alice"]

        await client.post(
            "/api/chat/typing",
            json={"recipientId": "bob", "isTyping": False},
            headers=auth("alice"),
        )
        status = await client.get(
            "/api/chat/typing", params={"recipientId": "alice"}, headers=auth("bob")
        )
        assert status.json()["typing"] == []

    async def test_send_clears_sender_typing(self, client, auth, application):
        """Test that sending a message stops the sender showing as typing."""
        bob = FakeConnection("bob")
        application.broadcaster.join(bob, "dm-alice-bob")
        await client.post(
            "/api/chat/typing",
            json={"recipientId": "bob", "isTyping": True},
            headers=auth("alice"),
        )

        sent = await client.post(
            "/api/chat/messages",
            json={"content": "hi", "recipientId": "bob"},
            headers=auth("alice"),
        )
        assert sent.status_code == 201

        status = await client.get(
            "/api/chat/typing", params={"recipientId": "alice"}, headers=auth("bob")
        )
        assert status.json()["typing"] == []
        assert bob.types() == ["typing", "message-sent", "typing"]
        assert bob.events[-1].payload["isTyping"] is False

    async def test_send_without_typing_broadcasts_no_typing_event(
        self, client, auth, application
    ):
        """Test that a send with no active indicator emits only the message."""
        bob = FakeConnection("bob")
        application.broadcaster.join(bob, "dm-alice-bob")

        await client.post(
            "/api/chat/messages",
            json={"content": "hi", "recipientId": "bob"},
            headers=auth("alice"),
        )
        assert bob.types() == ["message-sent"]

    async def test_online(self, client, auth, application):
        """Test that online users reflect registered connections."""
        application.presence.register(FakeConnection("carol"))
        response = await client.get("/api/chat/online", headers=auth("alice"))
        assert response.json() == {"onlineUsers": ["carol"]}


class TestClaimRoutes:
    """Tests for queue, claims, settings and history routes."""

    async def test_claim_flow(self, client, auth):
        """Test that queued lines are claimed, listed and recorded in history."""
        added = await client.post(
            "/api/queue", json={"text": "A\nB\n\nC"}, headers=auth("alice")
        )
        assert added.status_code == 201
        assert added.json()["added"] == 3

        claimed = await client.post("/api/claims", headers=auth("bob"))
        body = claimed.json()
        assert body["success"] is True
        assert [line["content"] for line in body["claimedLines"]] == ["A", "B", "C"]

        empty = await client.post("/api/claims", headers=auth("carol"))
        assert empty.status_code == 409
        assert empty.json()["error"] == "no_items_available"

        mine = (await client.get("/api/claims", headers=auth("bob"))).json()
        assert len(mine["items"]) == 3
        assert mine["cooldownUntil"] == body["cooldownUntil"]

        history = (await client.get("/api/history", headers=auth("bob"))).json()
        assert len(history["entries"]) == 3

    async def test_cooldown_then_release(self, client, auth):
        """Test that a claim inside the cooldown gets 429 until release."""
        await client.post(
            "/api/queue", json={"lines": [f"n{i}" for i in range(10)]}, headers=auth("alice")
        )
        await client.post("/api/claims", headers=auth("bob"))

        blocked = await client.post("/api/claims", headers=auth("bob"))
        assert blocked.status_code == 429
        assert "cooldownUntil" in blocked.json()

        released = await client.post("/api/claims/release", headers=auth("bob"))
        assert released.json() == {"released": 5}
        again = await client.post("/api/claims", headers=auth("bob"))
        assert again.status_code == 200

    async def test_settings(self, client, auth):
        """Test that only admins can change claim settings."""
        default = (await client.get("/api/claims/settings", headers=auth("bob"))).json()
        assert (default["lineCount"], default["cooldownMinutes"]) == (5, 30.0)

        denied = await client.put(
            "/api/claims/settings",
            json={"lineCount": 7, "cooldownMinutes": 2},
            headers=auth("bob"),
        )
        assert denied.status_code == 403

        updated = await client.put(
            "/api/claims/settings",
            json={"lineCount": 7, "cooldownMinutes": 2},
            headers=auth("alice"),
        )
        assert updated.status_code == 200
        stored = (await client.get("/api/claims/settings", headers=auth("bob"))).json()
        assert (stored["lineCount"], stored["cooldownMinutes"]) == (7, 2.0)

    async def test_settings_out_of_range(self, client, auth):
        """Test that an out-of-range line count is rejected."""
        response = await client.put(
            "/api/claims/settings",
            json={"lineCount": 0, "cooldownMinutes": 2},
            headers=auth("alice"),
        )
        assert response.status_code == 400

    async def test_remove_queued_item(self, client, auth):
        """Test that a queued item can be removed once."""
        added = (
            await client.post("/api/queue", json={"lines": ["A"]}, headers=auth("alice"))
        ).json()
        item_id = added["items"][0]["id"]

        response = await client.delete(f"/api/queue/{item_id}", headers=auth("alice"))
        assert response.status_code == 200
        missing = await client.delete(f"/api/queue/{item_id}", headers=auth("alice"))
        assert missing.status_code == 404

    async def test_queue_is_team_scoped(self, client, auth):
        """Test that another team sees none of our queue."""
        await client.post("/api/queue", json={"lines": ["A"]}, headers=auth("alice"))
        theirs = (await client.get("/api/queue", headers=auth("dave"))).json()
        assert theirs["count"] == 0


class TestMemberRoutes:
    """Tests for /api/members."""

    async def test_list_and_create(self, client, auth):
        """Test that an admin-created member appears in the listing."""
        created = await client.post(
            "/api/members",
            json={"name": "Erin", "email": "erin@example.com"},
            headers=auth("alice"),
        )
        assert created.status_code == 201

        listed = (await client.get("/api/members", headers=auth("bob"))).json()
        assert {m["name"] for m in listed["members"]} == {"Alice", "Bob", "Carol", "Erin"}

    async def test_member_cannot_create(self, client, auth):
        """Test that a plain member cannot create members."""
        response = await client.post(
            "/api/members",
            json={"name": "Erin", "email": "erin@example.com"},
            headers=auth("bob"),
        )
        assert response.status_code == 403
