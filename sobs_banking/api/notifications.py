"""
Notification endpoints
"""

from fastapi import APIRouter, Depends, HTTPException

from .auth import BankingSystem, get_banking_system, get_current_user_id
from .schemas import ok


router = APIRouter()

_NOT_FOUND = {"error": "NOTIFICATION_NOT_FOUND", "message": "Notification not found"}


@router.get("")
async def list_notifications(
    unread_only: bool = False,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    notifications = system.notifications.get_notifications(user_id, unread_only=unread_only)
    return ok({
        "notifications": [n.to_dict() for n in notifications],
        "unread_count": system.notifications.get_unread_count(user_id)
    })


@router.put("/read-all")
async def mark_all_read(
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    return ok({"updated": system.notifications.mark_all_as_read(user_id)})


@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    if not system.notifications.mark_as_read(user_id, notification_id):
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return ok({"id": notification_id, "is_read": True})


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
    system: BankingSystem = Depends(get_banking_system)
):
    if not system.notifications.delete(user_id, notification_id):
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return ok({"id": notification_id, "deleted": True})
