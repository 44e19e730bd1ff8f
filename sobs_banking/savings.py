"""
Savings Goals Module

Per-user savings goals. A goal's saved amount only grows through a savings
contribution, which debits the funding account in the same atomic block.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional
import uuid

from .audit import AuditTrail, AuditEventType
from .currency import Money, Currency
from .errors import SavingsGoalNotFound
from .storage import StorageInterface, StorageRecord


@dataclass
class SavingsGoal(StorageRecord):
    """Target amount a user is saving towards"""
    user_id: str
    name: str
    icon: str
    target_amount: Money
    current_amount: Money

    @property
    def progress(self) -> Decimal:
        """Percentage of the target reached, capped at 100"""
        if not self.target_amount.is_positive():
            return Decimal('100')
        pct = self.current_amount.amount / self.target_amount.amount * 100
        return min(pct, Decimal('100')).quantize(Decimal('0.01'))

    @property
    def is_reached(self) -> bool:
        return self.current_amount >= self.target_amount

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "icon": self.icon,
            "target_amount": str(self.target_amount.amount),
            "current_amount": str(self.current_amount.amount),
            "currency": self.target_amount.currency.code,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'SavingsGoal':
        currency = Currency[data["currency"]]
        return cls(
            id=data["id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            user_id=data["user_id"],
            name=data["name"],
            icon=data["icon"],
            target_amount=Money(Decimal(data["target_amount"]), currency),
            current_amount=Money(Decimal(data["current_amount"]), currency),
        )


class SavingsGoalManager:
    """Creates and reads savings goals"""

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.table_name = "savings_goals"
        self.storage.create_index(self.table_name, "user_id")

    def create_goal(
        self,
        user_id: str,
        name: str,
        target_amount: Money,
        icon: str = "savings",
        current_amount: Optional[Money] = None
    ) -> SavingsGoal:
        """
        Create a savings goal

        ``current_amount`` is only for seeding existing goals; new goals
        start at zero.
        """
        if not name or not name.strip():
            raise ValueError("Savings goal name is required")
        if not target_amount.is_positive():
            raise ValueError("Savings goal target must be positive")

        current = current_amount or Money.zero(target_amount.currency)
        if current.is_negative():
            raise ValueError("Savings goal amount cannot be negative")

        now = datetime.now(timezone.utc)
        goal = SavingsGoal(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            user_id=user_id,
            name=name.strip(),
            icon=icon,
            target_amount=target_amount,
            current_amount=current
        )
        self.storage.save(self.table_name, goal.id, goal.to_dict())

        self.audit_trail.log_event(
            event_type=AuditEventType.SAVINGS_GOAL_CREATED,
            entity_type="savings_goal",
            entity_id=goal.id,
            user_id=user_id,
            metadata={
                "name": goal.name,
                "target_amount": target_amount.to_string()
            }
        )
        return goal

    def get_goal(self, user_id: str, goal_id: str) -> SavingsGoal:
        """
        Raises:
            SavingsGoalNotFound: Unknown goal, or a goal of another user
        """
        data = self.storage.load(self.table_name, goal_id)
        if data is None or data["user_id"] != user_id:
            raise SavingsGoalNotFound(goal_id)
        return SavingsGoal.from_dict(data)

    def list_goals(self, user_id: str) -> List[SavingsGoal]:
        goals = [SavingsGoal.from_dict(d) for d in self.storage.find(self.table_name, {"user_id": user_id})]
        goals.sort(key=lambda g: g.created_at)
        return goals

    def add_to_goal(self, goal: SavingsGoal, amount: Money) -> SavingsGoal:
        # Called by the money movement service inside its atomic block
        goal.current_amount = goal.current_amount + amount
        goal.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.table_name, goal.id, goal.to_dict())
        return goal
