"""Chat API routes."""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from ...app import Application
from ...models import (
    ChatTarget,
    ChatType,
    EventType,
    Message,
    Principal,
    RealtimeEvent,
    parse_chat_target,
)
from ...realtime import IConnection, room_for_message, room_for_target
from ..dependencies import create_principal_dependency


class ChatTargetRequest(BaseModel):
    """A direct chat (recipientId) or a group chat (groupId)."""

    model_config = ConfigDict(populate_by_name=True)

    recipient_id: str | None = Field(default=None, alias="recipientId")
    group_id: str | None = Field(default=None, alias="groupId")

    def target(self) -> ChatTarget:
        return parse_chat_target(self.recipient_id, self.group_id)


class SendMessageRequest(ChatTargetRequest):
    content: str


class EditMessageRequest(BaseModel):
    content: str


class TypingRequest(ChatTargetRequest):
    is_typing: bool = Field(default=True, alias="isTyping")


class GroupMemberRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    group_id: str = Field(alias="groupId")
    user_id: str = Field(alias="userId")


async def publish_message_event(
    app: Application, event_type: EventType, message: Message, payload: dict | None = None
) -> None:
    """Fan a persisted message change out to its room."""
    await app.broadcaster.broadcast(
        room_for_message(message),
        RealtimeEvent(
            type=event_type,
            team_id=message.team_id,
            room_id=room_for_message(message),
            payload=payload if payload is not None else message.to_dict(),
        ),
    )


async def publish_typing(
    app: Application,
    user_id: str,
    team_id: str,
    target: ChatTarget,
    is_typing: bool,
    exclude: IConnection | None = None,
) -> str:
    """Record a typing change and tell the chat's room. Returns the room id."""
    await app.chat.validate_target(team_id, target, user_id)
    user = await app.chat.require_member(team_id, user_id)
    room_id = room_for_target(target, user_id)

    if is_typing:
        app.typing.set_typing(user_id, room_id, target.chat_type, user.name)
    else:
        app.typing.clear_typing(user_id, room_id)

    await app.broadcaster.broadcast(
        room_id,
        RealtimeEvent(
            type=EventType.TYPING,
            team_id=team_id,
            room_id=room_id,
            payload={
                "userId": user_id,
                "senderName": user.name,
                "chatId": room_id,
                "chatType": target.chat_type,
                "isTyping": is_typing,
            },
        ),
        exclude=exclude,
    )
    return room_id


async def clear_typing_on_send(
    app: Application, message: Message, chat_type: ChatType
) -> None:
    """Drop the sender's typing marker once their message is stored."""
    room_id = room_for_message(message)
    if not app.typing.clear_typing(message.sender_id, room_id):
        return
    await app.broadcaster.broadcast(
        room_id,
        RealtimeEvent(
            type=EventType.TYPING,
            team_id=message.team_id,
            room_id=room_id,
            payload={
                "userId": message.sender_id,
                "senderName": message.sender_name,
                "chatId": room_id,
                "chatType": chat_type,
                "isTyping": False,
            },
        ),
    )


def create_chat_router(app: Application) -> APIRouter:
    """Create chat router."""
    router = APIRouter(prefix="/api/chat", tags=["chat"])
    get_principal = create_principal_dependency(app)

    @router.post("/messages", status_code=201)
    async def send_message(
        request: SendMessageRequest, principal: Principal = Depends(get_principal)
    ) -> dict:
        target = request.target()
        message = await app.chat.send_message(
            principal.user_id, principal.team_id, request.content, target
        )
        await publish_message_event(app, EventType.MESSAGE_SENT, message)
        await clear_typing_on_send(app, message, target.chat_type)
        return message.to_dict()

    @router.get("/messages")
    async def list_messages(
        recipient_id: str | None = Query(default=None, alias="recipientId"),
        group_id: str | None = Query(default=None, alias="groupId"),
        limit: int | None = Query(default=None, ge=1),
        principal: Principal = Depends(get_principal),
    ) -> dict:
        target = parse_chat_target(recipient_id, group_id)
        messages = await app.chat.list_messages(
            principal.team_id, target, principal.user_id, limit
        )
        return {
            "roomId": room_for_target(target, principal.user_id),
            "messages": [message.to_dict() for message in messages],
        }

    @router.post("/messages/{message_id}/edit")
    async def edit_message(
        message_id: str,
        request: EditMessageRequest,
        principal: Principal = Depends(get_principal),
    ) -> dict:
        message = await app.chat.edit_message(
            principal.team_id, message_id, request.content, principal.user_id
        )
        await publish_message_event(app, EventType.MESSAGE_EDITED, message)
        return message.to_dict()

    @router.post("/messages/{message_id}/delete")
    async def delete_message(
        message_id: str, principal: Principal = Depends(get_principal)
    ) -> dict:
        message = await app.chat.delete_message(
            principal.team_id, message_id, principal.user_id
        )
        await publish_message_event(app, EventType.MESSAGE_DELETED, message)
        return message.to_dict()

    @router.post("/messages/{message_id}/read")
    async def mark_read(
        message_id: str, principal: Principal = Depends(get_principal)
    ) -> dict:
        message, added = await app.chat.mark_read(
            principal.team_id, message_id, principal.user_id
        )
        if added:
            await publish_message_event(
                app,
                EventType.MESSAGE_READ,
                message,
                payload={
                    "messageId": message.id,
                    "userId": principal.user_id,
                    "readBy": list(message.read_by),
                },
            )
        return {"messageId": message.id, "readBy": list(message.read_by)}

    @router.post("/read")
    async def mark_chat_read(
        request: ChatTargetRequest, principal: Principal = Depends(get_principal)
    ) -> dict:
        target = request.target()
        marked = await app.chat.mark_chat_read(
            principal.team_id, target, principal.user_id
        )
        if marked:
            room_id = room_for_target(target, principal.user_id)
            await app.broadcaster.broadcast(
                room_id,
                RealtimeEvent(
                    type=EventType.MESSAGE_READ,
                    team_id=principal.team_id,
                    room_id=room_id,
                    payload={"userId": principal.user_id, "count": marked},
                ),
            )
        return {"marked": marked}

    @router.get("/unread")
    async def unread_counts(principal: Principal = Depends(get_principal)) -> dict:
        counts = await app.chat.unread_counts(principal.team_id, principal.user_id)
        return {"unread": counts}

    @router.get("/group")
    async def group_chat(principal: Principal = Depends(get_principal)) -> dict:
        group = await app.chat.get_or_create_group_chat(
            principal.team_id, principal.user_id
        )
        return group.to_dict()

    @router.post("/group/members")
    async def add_group_member(
        request: GroupMemberRequest, principal: Principal = Depends(get_principal)
    ) -> dict:
        group = await app.chat.add_group_member(
            principal.team_id, request.group_id, request.user_id
        )
        return group.to_dict()

    @router.post("/typing")
    async def set_typing(
        request: TypingRequest, principal: Principal = Depends(get_principal)
    ) -> dict:
        room_id = await publish_typing(
            app, principal.user_id, principal.team_id, request.target(), request.is_typing
        )
        return {"chatId": room_id, "isTyping": request.is_typing}

    @router.get("/typing")
    async def typing_status(
        recipient_id: str | None = Query(default=None, alias="recipientId"),
        group_id: str | None = Query(default=None, alias="groupId"),
        principal: Principal = Depends(get_principal),
    ) -> dict:
        target = parse_chat_target(recipient_id, group_id)
        await app.chat.validate_target(principal.team_id, target, principal.user_id)
        room_id = room_for_target(target, principal.user_id)
        typing = app.typing.get_typing(room_id, exclude_user=principal.user_id)
        return {
            "chatId": room_id,
            "typing": [indicator.to_dict() for indicator in typing],
        }

    @router.get("/online")
    async def online_users(principal: Principal = Depends(get_principal)) -> dict:
        return {"onlineUsers": app.presence.online_users(principal.team_id)}

    return router
