import logging
from datetime import datetime, timedelta

from fastapi import status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.chat import Chat, Message
from app.models.user import PLAN_PREMIUM, ROLE_MEMBER, ROLE_TRAINER, User
from app.utils.response import ApiError

logger = logging.getLogger(__name__)

MESSAGE_DELETE_WINDOW = timedelta(minutes=15)


class ChatAccessError(ApiError):
    def __init__(self, detail: str, code: str = "ACCESS_DENIED"):
        super().__init__(status.HTTP_403_FORBIDDEN, detail, code=code)


def check_subscription_access(user: User, now: datetime | None = None, code: str = "SUBSCRIPTION_REQUIRED") -> None:
    """Members need a running premium subscription to chat; trainers always pass."""
    if user.role != ROLE_MEMBER:
        return
    if user.subscription_plan != PLAN_PREMIUM:
        raise ChatAccessError("Premium subscription required for chat access", code=code)
    now = now or datetime.utcnow()
    if not user.subscription_valid_till or user.subscription_valid_till <= now:
        raise ChatAccessError("Subscription expired. Please renew to access chat", code=code)


def validate_chat_participants(member: User, trainer: User) -> None:
    if member.role != ROLE_MEMBER:
        raise ChatAccessError("First participant must be a member")
    if trainer.role != ROLE_TRAINER:
        raise ChatAccessError("Second participant must be a trainer")
    if not trainer.is_verified:
        raise ChatAccessError("Trainer must be verified to participate in chats")
    if member.trainer_assigned_id != trainer.id:
        raise ChatAccessError("Chat can only be initiated between assigned trainer and member")


def split_pair(current_user: User, participant: User) -> tuple[User, User]:
    """Return (member, trainer) for the two parties of a chat request."""
    if current_user.role == ROLE_MEMBER:
        return current_user, participant
    if current_user.role == ROLE_TRAINER:
        return participant, current_user
    raise ApiError(
        status.HTTP_403_FORBIDDEN,
        "Only members and trainers can initiate chats",
        code="INVALID_USER_ROLE",
    )


def find_chat(db: Session, member_id: int, trainer_id: int) -> Chat | None:
    return (
        db.query(Chat)
        .filter(Chat.member_id == member_id, Chat.trainer_id == trainer_id)
        .first()
    )


def find_or_create_chat(db: Session, member: User, trainer: User) -> tuple[Chat, bool]:
    """Return (chat, created). A concurrent insert for the same pair loses on the
    unique constraint and falls back to the winner's row."""
    chat = find_chat(db, member.id, trainer.id)
    if chat:
        return chat, False

    member_id, trainer_id = member.id, trainer.id
    chat = Chat(member_id=member_id, trainer_id=trainer_id)
    db.add(chat)
    try:
        db.flush()
    except IntegrityError:
        # Only reads precede the insert in this unit of work.
        db.rollback()
        logger.info("Chat for member %s and trainer %s created concurrently", member_id, trainer_id)
        existing = find_chat(db, member_id, trainer_id)
        if existing is None:
            raise
        return existing, False
    return chat, True


def get_participant_chat(db: Session, chat_id: int, user_id: int) -> Chat | None:
    return (
        db.query(Chat)
        .filter(Chat.id == chat_id, (Chat.member_id == user_id) | (Chat.trainer_id == user_id))
        .first()
    )


def other_participant(chat: Chat, user_id: int) -> User:
    return chat.trainer if chat.member_id == user_id else chat.member


def append_message(db: Session, chat: Chat, sender: User, content: str, now: datetime | None = None) -> Message:
    now = now or datetime.utcnow()
    message = Message(chat_id=chat.id, sender_id=sender.id, content=content, created_at=now, updated_at=now)
    db.add(message)
    chat.updated_at = now
    db.flush()
    return message


def ensure_deletable(message: Message, now: datetime | None = None) -> None:
    now = now or datetime.utcnow()
    if now - message.created_at > MESSAGE_DELETE_WINDOW:
        raise ApiError(
            status.HTTP_403_FORBIDDEN,
            "Messages can only be deleted within 15 minutes of sending",
            code="DELETE_TIME_EXPIRED",
        )


def serialize_user_brief(user: User | None) -> dict | None:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "email": user.email, "role": user.role}


def serialize_message(message: Message) -> dict:
    sender = message.sender
    return {
        "id": message.id,
        "chat_id": message.chat_id,
        "content": message.content,
        "sender": {"id": sender.id, "name": sender.name, "role": sender.role} if sender else None,
        "created_at": message.created_at,
        "updated_at": message.updated_at,
    }


def serialize_chat(chat: Chat, messages: list[Message] | None = None, viewer_id: int | None = None) -> dict:
    payload = {
        "id": chat.id,
        "participants": [serialize_user_brief(chat.member), serialize_user_brief(chat.trainer)],
        "created_at": chat.created_at,
        "updated_at": chat.updated_at,
    }
    if viewer_id is not None:
        payload["other_participant"] = serialize_user_brief(other_participant(chat, viewer_id))
    if messages is not None:
        payload["messages"] = [serialize_message(message) for message in messages]
    return payload
