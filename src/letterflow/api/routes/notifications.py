"""Notification inbox routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from letterflow.dependencies import CurrentUser, get_db
from letterflow.errors.exceptions import NotFoundError
from letterflow.repositories.notification_repo import NotificationRepository

router = APIRouter(tags=["Notifications"])


def _to_dict(row) -> dict:
    return {
        "notification_id": row.notification_id,
        "letter_id": row.letter_id,
        "kind": row.kind,
        "title": row.title,
        "body": row.body,
        "read": row.read,
        "link": row.link,
        "metadata": row.extra_data,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


@router.get("/notifications")
async def list_notifications(
    user: CurrentUser,
    unread_only: bool = False,
    limit: int = 50,
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    repo = NotificationRepository(db)
    rows = await repo.list_for_recipient(user["sub"], unread_only=unread_only, limit=min(limit, 200))
    return [_to_dict(r) for r in rows]


@router.post("/notifications/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> dict:
    repo = NotificationRepository(db)
    if not await repo.mark_read(notification_id, user["sub"]):
        raise NotFoundError("Notification", notification_id)
    await db.commit()
    return {"notification_id": notification_id, "read": True}
