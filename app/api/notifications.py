"""In-app notification endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query

from app.api.dependencies import ContextDep, IdentityDep
from app.api.schemas import (
    MarkAllReadResponse,
    NotificationResponse,
    NotificationsListResponse,
    UnreadCountResponse,
)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationsListResponse)
async def list_notifications(
    context: ContextDep,
    identity: IdentityDep,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
) -> NotificationsListResponse:
    notifications = await context.notifications.list(identity.user_id, limit)
    return NotificationsListResponse(
        notifications=[NotificationResponse.from_domain(n) for n in notifications]
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(context: ContextDep, identity: IdentityDep) -> UnreadCountResponse:
    return UnreadCountResponse(count=await context.notifications.unread_count(identity.user_id))


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: str,
    context: ContextDep,
    identity: IdentityDep,
) -> NotificationResponse:
    notification = await context.notifications.mark_read(notification_id, identity.user_id)
    return NotificationResponse.from_domain(notification)


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(context: ContextDep, identity: IdentityDep) -> MarkAllReadResponse:
    return MarkAllReadResponse(updated=await context.notifications.mark_all_read(identity.user_id))
