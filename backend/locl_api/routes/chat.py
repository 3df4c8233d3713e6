"""
Chat routes for messaging between buyer and seller
"""

import asyncio
from typing import List, Set

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from ..auth.dependencies import get_current_user, user_from_token
from ..core.exceptions import MarketplaceError
from ..core.logging import get_logger
from ..database import get_db
from ..models.chat import Chat
from ..models.user import User
from ..schemas.chat import ChatResponse, MessageCreate, MessageResponse
from ..services import messaging
from ..services.realtime import ChatSubscription, chat_hub, message_event

router = APIRouter()

logger = get_logger(__name__)


def serialize_chat(db: Session, chat: Chat, viewer_id: str) -> ChatResponse:
    other_user_id = chat.other_participant(viewer_id)
    other_user = db.query(User).filter(User.id == other_user_id).first()
    last = messaging.last_message(db, chat.id)
    listing = chat.listing

    return ChatResponse(
        id=chat.id,
        listing_id=chat.listing_id,
        buyer_id=chat.buyer_id,
        seller_id=chat.seller_id,
        is_active=chat.is_active,
        last_message_at=chat.last_message_at,
        created_at=chat.created_at,
        listing_title=listing.title if listing else None,
        listing_image=listing.main_image_url if listing else None,
        other_user_id=other_user_id,
        other_user_name=other_user.display_name if other_user else "Unknown User",
        other_user_avatar_url=other_user.avatar_url if other_user else None,
        unread_count=messaging.unread_count(db, chat.id, viewer_id),
        last_message=MessageResponse.model_validate(last) if last else None,
    )


@router.get("/chats", response_model=List[ChatResponse])
def get_chats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get all chats for the current user, most recently active first"""
    return [serialize_chat(db, chat, current_user.id) for chat in messaging.list_chats(db, current_user.id)]


@router.get("/chats/{chat_id}", response_model=ChatResponse)
def get_chat(
    chat_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    chat = messaging.get_chat_for_participant(db, chat_id, current_user.id)
    return serialize_chat(db, chat, current_user.id)


@router.get("/chats/{chat_id}/messages", response_model=List[MessageResponse])
def get_messages(
    chat_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Full history, oldest first; incoming messages are marked read"""
    return messaging.fetch_messages(db, chat_id, current_user.id)


@router.post("/chats/{chat_id}/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def send_message(
    chat_id: str,
    message_data: MessageCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    message = messaging.send_message(
        db,
        chat_id,
        current_user.id,
        message_data.content,
        image_url=message_data.image_url,
    )
    listeners = chat_hub.publish(chat_id, message_event(message))
    logger.debug(f"Message {message.id} in chat {chat_id} published to {listeners} listeners")
    return message


async def relay_messages(
    websocket: WebSocket,
    subscription: ChatSubscription,
    db: Session,
    viewer_id: str,
    seen: Set[str],
):
    """Forward new-message events to the socket, once per message id"""
    while True:
        event = await subscription.get()
        if event["id"] in seen:
            continue
        seen.add(event["id"])
        if event["sender_id"] != viewer_id and not event["is_read"]:
            await run_in_threadpool(messaging.mark_read, db, subscription.chat_id, viewer_id, [event["id"]])
            event = dict(event, is_read=True)
        await websocket.send_json({"type": "message", "data": event})


@router.websocket("/ws/chats/{chat_id}")
async def chat_websocket(websocket: WebSocket, chat_id: str, db: Session = Depends(get_db)):
    """Live view of one chat: history first, then new messages as they are sent"""
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=1008, reason="Token required")
        return

    try:
        user = user_from_token(db, token)
        messaging.get_chat_for_participant(db, chat_id, user.id)
    except MarketplaceError as e:
        await websocket.close(code=1008, reason=e.message)
        return

    await websocket.accept()
    # Subscribe before reading history so messages sent in between are not lost
    subscription = chat_hub.subscribe(chat_id)
    relay = None
    try:
        history = [message_event(m) for m in messaging.fetch_messages(db, chat_id, user.id)]
        seen = {m["id"] for m in history}
        await websocket.send_json({"type": "history", "data": history})

        relay = asyncio.create_task(relay_messages(websocket, subscription, db, user.id, seen))
        while True:
            data = await websocket.receive_text()
            await websocket.send_json({"type": "pong", "data": data})
    except WebSocketDisconnect:
        logger.debug(f"User {user.id} left chat {chat_id}")
    finally:
        if relay is not None:
            relay.cancel()
        subscription.close()
