"""
Chat messaging: append-only message log per chat with read tracking
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from ..core.logging import get_logger
from ..models.base import utcnow
from ..models.chat import Chat, Message

logger = get_logger(__name__)


def get_chat_for_participant(db: Session, chat_id: str, user_id: str) -> Chat:
    chat = db.query(Chat).filter(Chat.id == chat_id).first()
    if not chat:
        raise NotFoundError("Chat not found")
    if not chat.has_participant(user_id):
        raise PermissionDeniedError("Not authorized to access this chat")
    return chat


def send_message(
    db: Session,
    chat_id: str,
    sender_id: str,
    content: Optional[str],
    image_url: Optional[str] = None,
) -> Message:
    """Append a message and move the chat's last_message_at to its timestamp in one commit"""
    content = (content or "").strip()
    if not content and not image_url:
        raise ValidationError("Message must have content or an image")

    chat = get_chat_for_participant(db, chat_id, sender_id)

    message = Message(
        chat_id=chat.id,
        sender_id=sender_id,
        content=content,
        image_url=image_url,
        is_read=False,
        created_at=utcnow(),
        created_by=sender_id,
    )
    db.add(message)
    chat.last_message_at = message.created_at
    chat.updated_by = sender_id
    db.commit()
    db.refresh(message)
    return message


def mark_read(db: Session, chat_id: str, viewer_id: str, message_ids: Optional[Iterable[str]] = None) -> int:
    """Mark the counterpart's unread messages read (optionally limited to message_ids)"""
    query = db.query(Message).filter(
        Message.chat_id == chat_id,
        Message.sender_id != viewer_id,
        Message.is_read == False,  # noqa: E712
    )
    if message_ids is not None:
        message_ids = list(message_ids)
        if not message_ids:
            return 0
        query = query.filter(Message.id.in_(message_ids))

    updated = query.update({"is_read": True, "read_at": utcnow()}, synchronize_session=False)
    db.commit()
    return updated


def fetch_messages(db: Session, chat_id: str, viewer_id: str) -> List[Message]:
    """Full history in created_at order; the viewer's unread incoming messages become read"""
    get_chat_for_participant(db, chat_id, viewer_id)

    messages = (
        db.query(Message)
        .filter(Message.chat_id == chat_id)
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )

    unread_ids = [m.id for m in messages if not m.is_read and m.sender_id != viewer_id]
    if unread_ids:
        updated = mark_read(db, chat_id, viewer_id, unread_ids)
        logger.debug(f"Marked {updated} messages read in chat {chat_id} for {viewer_id}")
        for message in messages:
            db.refresh(message)
    return messages


def merge_messages(history: Iterable[dict], incoming: Iterable[dict]) -> List[dict]:
    """Merge live message events into fetched history, one entry per id, oldest first"""
    merged = {}
    for message in list(history) + list(incoming):
        merged.setdefault(message["id"], message)
    return sorted(merged.values(), key=lambda m: (message_time(m.get("created_at")), m["id"]))


EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def message_time(value) -> datetime:
    """Comparable UTC timestamp from a datetime or ISO string; naive values are taken as UTC"""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return EPOCH
    if not isinstance(value, datetime):
        return EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def unread_count(db: Session, chat_id: str, user_id: str) -> int:
    return db.query(Message).filter(
        Message.chat_id == chat_id,
        Message.sender_id != user_id,
        Message.is_read == False,  # noqa: E712
    ).count()


def last_message(db: Session, chat_id: str) -> Optional[Message]:
    return (
        db.query(Message)
        .filter(Message.chat_id == chat_id)
        .order_by(Message.created_at.desc())
        .first()
    )


def list_chats(db: Session, user_id: str) -> List[Chat]:
    """The user's chats, most recently active first"""
    return (
        db.query(Chat)
        .filter((Chat.buyer_id == user_id) | (Chat.seller_id == user_id))
        .order_by(Chat.last_message_at.desc().nullslast(), Chat.created_at.desc())
        .all()
    )
