"""
Notification inbox routes plus the live notification socket
"""

import asyncio

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Query as OrmQuery, Session
from typing import List

from ..auth.dependencies import get_current_user, user_from_token
from ..core.exceptions import MarketplaceError, NotFoundError
from ..core.logging import get_logger
from ..database import get_db
from ..models.base import utcnow
from ..models.notification import Notification
from ..models.user import User
from ..schemas.notification import ActivitySummary, NotificationResponse
from ..services.notifications import NotificationCenter, NotificationEvent, activity_summary, notification_center

router = APIRouter()

logger = get_logger(__name__)


def get_notification_center() -> NotificationCenter:
    return notification_center


def _inbox(db: Session, user: User) -> OrmQuery:
    return db.query(Notification).filter(Notification.user_id == user.id)


def _unread(db: Session, user: User) -> OrmQuery:
    return _inbox(db, user).filter(Notification.is_read.is_(False))


def _owned_notification(db: Session, user: User, notification_id: str) -> Notification:
    found = _inbox(db, user).filter(Notification.id == notification_id).first()
    if found is None:
        raise NotFoundError("Notification not found")
    return found


@router.get("/", response_model=List[NotificationResponse])
def list_notifications(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    unread_only: bool = Query(False),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Newest first; optionally only the unread ones"""
    query = _unread(db, current_user) if unread_only else _inbox(db, current_user)
    return query.order_by(Notification.created_at.desc()).offset(skip).limit(limit).all()


@router.get("/unread-count")
def unread_count(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"unread_count": _unread(db, current_user).count()}


@router.get("/activity", response_model=ActivitySummary)
def get_activity(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Whether anything new is waiting: pending offers, unread notifications or messages"""
    return activity_summary(db, current_user.id)


@router.put("/read-all")
def read_all(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    marked = _unread(db, current_user).update(
        {Notification.is_read: True, Notification.read_at: utcnow()},
        synchronize_session=False,
    )
    db.commit()
    return {"message": f"Marked {marked} notifications as read"}


@router.put("/{notification_id}/read", response_model=NotificationResponse)
def read_one(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notification = _owned_notification(db, current_user, notification_id)
    # Re-reading keeps the original read_at
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
        db.commit()
        db.refresh(notification)
    return notification


@router.delete("/{notification_id}")
def remove_notification(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    db.delete(_owned_notification(db, current_user, notification_id))
    db.commit()
    return {"message": "Notification deleted"}


class SocketForwarder:
    """
    Bridges NotificationCenter callbacks (any thread) onto the socket's event loop.

    The center only holds a weak reference to forward(), so the forwarder
    must stay referenced for as long as the socket is open.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue()

    def forward(self, event: NotificationEvent) -> None:
        self.loop.call_soon_threadsafe(self.queue.put_nowait, event.to_dict())

    async def pump(self, websocket: WebSocket):
        while True:
            payload = await self.queue.get()
            await websocket.send_json({"type": "notification", "data": payload})


@router.websocket("/ws")
async def notifications_websocket(
    websocket: WebSocket,
    db: Session = Depends(get_db),
    center: NotificationCenter = Depends(get_notification_center),
):
    """Push notification events for the token's user while connected"""
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=1008, reason="Token required")
        return

    try:
        user = user_from_token(db, token)
    except MarketplaceError as e:
        await websocket.close(code=1008, reason=e.message)
        return

    await websocket.accept()
    forwarder = SocketForwarder(asyncio.get_running_loop())
    subscription = center.subscribe(user.id, forwarder.forward)
    pump = asyncio.create_task(forwarder.pump(websocket))
    await websocket.send_json({"type": "connected", "data": {"user_id": user.id}})

    try:
        while True:
            data = await websocket.receive_text()
            await websocket.send_json({"type": "pong", "data": data})
    except WebSocketDisconnect:
        logger.debug(f"Notification socket closed for user {user.id}")
    finally:
        pump.cancel()
        subscription.unsubscribe()
