import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.chat import MESSAGE_MAX_LENGTH, Chat, Message
from app.models.user import ROLE_MEMBER, ROLE_TRAINER, User
from app.schemas.chat import InitiateChat, SendMessage
from app.services.auth_middleware import require_verification, require_verified_role
from app.services.chat_service import (
    append_message,
    check_subscription_access,
    ensure_deletable,
    find_or_create_chat,
    get_participant_chat,
    serialize_chat,
    serialize_message,
    split_pair,
    validate_chat_participants,
)
from app.utils.pagination import MAX_PAGE_SIZE, page_offset, pagination_meta
from app.utils.response import ApiError, create_response, handle_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["Chat"])

get_chat_user = require_verified_role(ROLE_MEMBER, ROLE_TRAINER)

RECENT_MESSAGES_LIMIT = 50


def _chat_or_404(db: Session, chat_id: int, user: User) -> Chat:
    chat = get_participant_chat(db, chat_id, user.id)
    if not chat:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Chat not found or access denied", code="CHAT_NOT_FOUND")
    return chat


def _recent_messages(db: Session, chat_id: int, limit: int, offset: int = 0) -> list[Message]:
    """Newest ``limit`` messages after skipping ``offset``, returned oldest first."""
    messages = (
        db.query(Message)
        .filter(Message.chat_id == chat_id)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return list(reversed(messages))


@router.post("/initiate", status_code=status.HTTP_201_CREATED)
def initiate_chat(body: InitiateChat, db: Session = Depends(get_db), user: User = Depends(require_verification)):
    try:
        if body.participant_id is None:
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Participant ID is required", code="MISSING_PARTICIPANT_ID")
        if body.participant_id == user.id:
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Cannot create chat with yourself", code="SELF_CHAT_NOT_ALLOWED")

        participant = db.query(User).filter(User.id == body.participant_id).first()
        if not participant:
            raise ApiError(status.HTTP_404_NOT_FOUND, "Participant not found", code="PARTICIPANT_NOT_FOUND")
        if not participant.is_verified:
            raise ApiError(
                status.HTTP_403_FORBIDDEN,
                "Participant account must be verified",
                code="VERIFICATION_REQUIRED",
            )

        member, trainer = split_pair(user, participant)
        validate_chat_participants(member, trainer)
        check_subscription_access(member, code="ACCESS_DENIED")

        viewer_id = user.id
        chat, created = find_or_create_chat(db, member, trainer)
        if created:
            db.commit()
            db.refresh(chat)
            logger.info("Chat %s created between member %s and trainer %s", chat.id, chat.member_id, chat.trainer_id)
            return create_response(
                message="Chat created successfully",
                data={"chat": serialize_chat(chat, messages=[], viewer_id=viewer_id)},
                status_code=status.HTTP_201_CREATED,
            )

        messages = _recent_messages(db, chat.id, RECENT_MESSAGES_LIMIT)
        return create_response(
            message="Chat already exists",
            data={"chat": serialize_chat(chat, messages=messages, viewer_id=viewer_id)},
        )
    except Exception as exc:
        db.rollback()
        return handle_exception(exc)


@router.get("")
def list_chats(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    user: User = Depends(get_chat_user),
):
    try:
        check_subscription_access(user)

        query = db.query(Chat).filter((Chat.member_id == user.id) | (Chat.trainer_id == user.id))
        total = query.count()
        chats = (
            query.order_by(Chat.updated_at.desc(), Chat.id.desc())
            .offset(page_offset(page, limit))
            .limit(limit)
            .all()
        )

        data = []
        for chat in chats:
            payload = serialize_chat(chat, viewer_id=user.id)
            last = _recent_messages(db, chat.id, 1)
            payload["last_message"] = serialize_message(last[0]) if last else None
            data.append(payload)

        return create_response(
            message="Chats fetched",
            data={"chats": data, "pagination": pagination_meta(page, limit, total)},
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/{chat_id}/history")
def chat_history(
    chat_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(RECENT_MESSAGES_LIMIT, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    user: User = Depends(get_chat_user),
):
    try:
        chat = _chat_or_404(db, chat_id, user)
        check_subscription_access(user)
        total = db.query(Message).filter(Message.chat_id == chat.id).count()
        messages = _recent_messages(db, chat.id, limit, offset=page_offset(page, limit))
        return create_response(
            message="Chat history fetched",
            data={
                "chat": serialize_chat(chat, viewer_id=user.id),
                "messages": [serialize_message(message) for message in messages],
                "pagination": pagination_meta(page, limit, total),
            },
        )
    except Exception as exc:
        return handle_exception(exc)


@router.put("/{chat_id}/read")
def mark_read(chat_id: int, db: Session = Depends(get_db), user: User = Depends(get_chat_user)):
    try:
        chat = _chat_or_404(db, chat_id, user)
        # TODO: persist per-participant read receipts once messages carry a read_at column.
        return create_response(message="Messages marked as read", data={"chat_id": chat.id})
    except Exception as exc:
        return handle_exception(exc)


@router.post("/message", status_code=status.HTTP_201_CREATED)
def send_message(body: SendMessage, db: Session = Depends(get_db), user: User = Depends(get_chat_user)):
    try:
        if body.chat_id is None or body.content is None:
            raise ApiError(
                status.HTTP_400_BAD_REQUEST,
                "Chat ID and message content are required",
                code="MISSING_REQUIRED_FIELDS",
            )
        content = body.content.strip()
        if not content:
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Message content cannot be empty", code="EMPTY_MESSAGE")
        if len(content) > MESSAGE_MAX_LENGTH:
            raise ApiError(
                status.HTTP_400_BAD_REQUEST,
                f"Message too long (max {MESSAGE_MAX_LENGTH} characters)",
                code="MESSAGE_TOO_LONG",
            )

        chat = _chat_or_404(db, body.chat_id, user)
        now = datetime.utcnow()
        # Re-checked per message; a subscription can lapse mid-conversation.
        check_subscription_access(user, now)

        message = append_message(db, chat, user, content, now)
        db.commit()
        db.refresh(message)
        return create_response(
            message="Message sent successfully",
            data={"message": serialize_message(message)},
            status_code=status.HTTP_201_CREATED,
        )
    except Exception as exc:
        db.rollback()
        return handle_exception(exc)


@router.delete("/message/{message_id}")
def delete_message(message_id: int, db: Session = Depends(get_db), user: User = Depends(get_chat_user)):
    try:
        message = (
            db.query(Message)
            .filter(Message.id == message_id, Message.sender_id == user.id)
            .first()
        )
        if not message:
            raise ApiError(
                status.HTTP_404_NOT_FOUND,
                "Message not found or you don't have permission to delete it",
                code="MESSAGE_NOT_FOUND",
            )
        ensure_deletable(message)
        db.delete(message)
        db.commit()
        return create_response(message="Message deleted successfully", data={"message_id": message_id})
    except Exception as exc:
        db.rollback()
        return handle_exception(exc)
