"""
Notification Module

In-app notifications for money movements. The notification center subscribes
to posted-movement domain events; it only reads what the ledger has already
finalized and never touches balances.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional
from enum import Enum
import uuid

from .currency import Currency, Money
from .events import DomainEvent, EventDispatcher, EventPayload
from .logging_config import get_logger
from .storage import StorageInterface, StorageRecord


class NotificationType(Enum):
    """Types of notifications"""
    DEPOSIT_RECEIVED = "deposit_received"
    TRANSFER_SENT = "transfer_sent"
    BILL_PAID = "bill_paid"
    SAVINGS_CONTRIBUTION = "savings_contribution"
    SECURITY = "security"


_MOVEMENT_NOTIFICATIONS = {
    "deposit": (NotificationType.DEPOSIT_RECEIVED, "Money Received", "{amount} was deposited to account {account}"),
    "transfer": (NotificationType.TRANSFER_SENT, "Transfer Sent", "{description}: {amount}"),
    "bill_payment": (NotificationType.BILL_PAID, "Bill Paid", "{description} of {amount} was paid successfully"),
    "savings_contribution": (NotificationType.SAVINGS_CONTRIBUTION, "Savings Updated", "{amount} added to {goal}"),
}


@dataclass
class Notification(StorageRecord):
    """Notification shown to one user"""
    user_id: str
    notification_type: NotificationType
    title: str
    message: str
    amount: Optional[str] = None
    is_read: bool = False

    @classmethod
    def from_dict(cls, data: Dict) -> 'Notification':
        data = dict(data)
        data['created_at'] = datetime.fromisoformat(data['created_at'])
        data['updated_at'] = datetime.fromisoformat(data['updated_at'])
        data['notification_type'] = NotificationType(data['notification_type'])
        return cls(**data)


class NotificationCenter:
    """Stores and serves in-app notifications"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table_name = "notifications"
        self.storage.create_index(self.table_name, "user_id")
        self.logger = get_logger("sobs.notifications")

    def subscribe(self, dispatcher: EventDispatcher) -> None:
        dispatcher.subscribe(DomainEvent.MOVEMENT_POSTED, self.on_movement_posted)

    def on_movement_posted(self, event: EventPayload) -> None:
        data = event.data
        template_entry = _MOVEMENT_NOTIFICATIONS.get(data.get("operation"))
        if template_entry is None:
            return

        notification_type, title, template = template_entry
        amount = Money(Decimal(data["amount"]), Currency[data["currency"]])
        message = template.format(
            amount=amount.to_string(),
            account=data["account_number"],
            description=data.get("description", ""),
            goal=data.get("goal_name", "your savings goal")
        )
        self.notify(data["user_id"], notification_type, title, message, amount=data["amount"])

    def notify_login(self, user_id: str) -> Notification:
        return self.notify(user_id, NotificationType.SECURITY, "Security Alert", "New login to your account")

    def notify(
        self,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        amount: Optional[str] = None
    ) -> Notification:
        now = datetime.now(timezone.utc)
        notification = Notification(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            message=message,
            amount=amount
        )
        self.storage.save(self.table_name, notification.id, notification.to_dict())
        self.logger.debug(f"Notification {notification_type.value} created for {user_id}")
        return notification

    def get_notifications(self, user_id: str, unread_only: bool = False) -> List[Notification]:
        """Notifications for a user, newest first"""
        filters = {"user_id": user_id}
        if unread_only:
            filters["is_read"] = False
        notifications = [Notification.from_dict(d) for d in self.storage.find(self.table_name, filters)]
        # Storage order is insertion order; reversing first keeps ties newest first
        notifications.reverse()
        notifications.sort(key=lambda n: n.created_at, reverse=True)
        return notifications

    def get_unread_count(self, user_id: str) -> int:
        return len(self.storage.find(self.table_name, {"user_id": user_id, "is_read": False}))

    def mark_as_read(self, user_id: str, notification_id: str) -> bool:
        data = self.storage.load(self.table_name, notification_id)
        if data is None or data["user_id"] != user_id:
            return False
        notification = Notification.from_dict(data)
        notification.is_read = True
        notification.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.table_name, notification.id, notification.to_dict())
        return True

    def mark_all_as_read(self, user_id: str) -> int:
        unread = self.get_notifications(user_id, unread_only=True)
        for notification in unread:
            self.mark_as_read(user_id, notification.id)
        return len(unread)

    def delete(self, user_id: str, notification_id: str) -> bool:
        data = self.storage.load(self.table_name, notification_id)
        if data is None or data["user_id"] != user_id:
            return False
        return self.storage.delete(self.table_name, notification_id)
