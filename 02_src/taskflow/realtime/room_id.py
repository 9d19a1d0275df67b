"""Room identity rules."""

from ..models import ChatTarget, DirectTarget, Message


def direct_room_id(user_a: str, user_b: str) -> str:
    """Room of a direct conversation; identical for both participants."""
    low, high = sorted((user_a, user_b))
    return f"dm-{low}-{high}"


def group_room_id(group_id: str) -> str:
    """Room of a group conversation is the group's own id."""
    return group_id


def room_for_target(target: ChatTarget, requester_id: str) -> str:
    if isinstance(target, DirectTarget):
        return direct_room_id(requester_id, target.recipient_id)
    return group_room_id(target.group_id)


def room_for_message(message: Message) -> str:
    return room_for_target(message.target, message.sender_id)
