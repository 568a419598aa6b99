"""Notification router: delivery history and the in-app inbox."""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import List

from deadline_notifier.dependencies import get_notification_store
from deadline_notifier.schemas.notification import (
    AssignmentNotificationsResponse,
    MarkReadResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from deadline_notifier.services.notification_store import NotificationStore

router = APIRouter(tags=["Notifications"])  # No prefix since main.py adds /api prefix


@router.get("/assignments/{assignment_id}/notifications", response_model=AssignmentNotificationsResponse)
async def list_assignment_notifications(
    assignment_id: str,
    store: NotificationStore = Depends(get_notification_store),
):
    """Delivery records for an assignment with counts per status."""
    counts = store.count_by_status(assignment_id)
    return AssignmentNotificationsResponse(
        assignment_id=assignment_id,
        counts={s.value: n for s, n in counts.items()},
        notifications=store.list_for_assignment(assignment_id),
    )


@router.get("/{recipient_id}/notifications", response_model=List[NotificationResponse])
async def list_notifications(
    recipient_id: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    store: NotificationStore = Depends(get_notification_store),
):
    """List a recipient's notifications, newest first."""
    return store.list_for_recipient(recipient_id, limit=limit, offset=offset)


@router.get("/{recipient_id}/notifications/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    recipient_id: str,
    store: NotificationStore = Depends(get_notification_store),
):
    return UnreadCountResponse(recipient_id=recipient_id, unread=store.unread_count(recipient_id))


@router.post("/{recipient_id}/notifications/read-all", response_model=MarkReadResponse)
async def mark_all_read(
    recipient_id: str,
    store: NotificationStore = Depends(get_notification_store),
):
    """Mark every notification of a recipient as read."""
    return MarkReadResponse(updated=store.mark_all_read(recipient_id))


@router.post("/{recipient_id}/notifications/{record_id}/read", response_model=MarkReadResponse)
async def mark_read(
    recipient_id: str,
    record_id: int,
    store: NotificationStore = Depends(get_notification_store),
):
    """Mark one notification as read."""
    if not store.mark_read(record_id, recipient_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found"
        )
    return MarkReadResponse(updated=1)
