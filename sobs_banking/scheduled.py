"""
Scheduled Payments Module

Standing orders a user sets up for recurring transfers, bills or rent. This
module keeps the schedule only: it records what should be paid, to whom and
how often, and works out the next due date. Nothing here moves money.
"""

from datetime import date, datetime, timedelta, timezone
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Type
import calendar
import threading
import uuid

from .audit import AuditTrail, AuditEventType
from .currency import Currency, Money
from .errors import ScheduledPaymentNotFound
from .logging_config import get_logger, log_action
from .movements import parse_amount, to_currency_money
from .storage import StorageInterface, StorageRecord


class ScheduledPaymentType(Enum):
    TRANSFER = "transfer"
    BILL = "bill"
    RENT = "rent"


class PaymentFrequency(Enum):
    """How often a scheduled payment falls due"""
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


_DAY_STEPS = {PaymentFrequency.WEEKLY: 7, PaymentFrequency.BIWEEKLY: 14}
_MONTH_STEPS = {PaymentFrequency.MONTHLY: 1, PaymentFrequency.QUARTERLY: 3}

EDITABLE_FIELDS = frozenset({
    "name", "payment_type", "amount", "recipient_account", "frequency", "start_date", "is_paused"
})


def add_months(start: date, months: int) -> date:
    """Add months to a date, clamping to the last day of shorter months"""
    month = start.month - 1 + months
    year = start.year + month // 12
    month = month % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


@dataclass
class ScheduledPayment(StorageRecord):
    """Recurring payment set up by a user"""
    user_id: str
    name: str
    payment_type: ScheduledPaymentType
    amount: Money
    recipient_account: str
    frequency: PaymentFrequency
    start_date: date
    from_account_number: Optional[str] = None
    is_paused: bool = False

    def occurrence(self, n: int) -> date:
        """Due date of the n-th payment, counting the start date as 0"""
        if self.frequency in _DAY_STEPS:
            return self.start_date + timedelta(days=n * _DAY_STEPS[self.frequency])
        # Always counted from the start date so month-end days do not drift
        return add_months(self.start_date, n * _MONTH_STEPS[self.frequency])

    def next_due_date(self, on: date) -> Optional[date]:
        """First due date on or after ``on``; None while paused"""
        if self.is_paused:
            return None
        if on <= self.start_date:
            return self.start_date

        if self.frequency in _DAY_STEPS:
            step = _DAY_STEPS[self.frequency]
            n = -(-(on - self.start_date).days // step)
        else:
            months = (on.year - self.start_date.year) * 12 + on.month - self.start_date.month
            n = months // _MONTH_STEPS[self.frequency]
            while self.occurrence(n) < on:
                n += 1
        return self.occurrence(n)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "payment_type": self.payment_type.value,
            "amount": str(self.amount.amount),
            "currency": self.amount.currency.code,
            "recipient_account": self.recipient_account,
            "frequency": self.frequency.value,
            "start_date": self.start_date.isoformat(),
            "from_account_number": self.from_account_number,
            "is_paused": self.is_paused,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'ScheduledPayment':
        return cls(
            id=data["id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            user_id=data["user_id"],
            name=data["name"],
            payment_type=ScheduledPaymentType(data["payment_type"]),
            amount=Money(Decimal(data["amount"]), Currency[data["currency"]]),
            recipient_account=data["recipient_account"],
            frequency=PaymentFrequency(data["frequency"]),
            start_date=date.fromisoformat(data["start_date"]),
            from_account_number=data.get("from_account_number"),
            is_paused=data.get("is_paused", False),
        )


def _coerce_enum(enum_type: Type[Enum], value: Any, label: str) -> Enum:
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_type)
        raise ValueError(f"Unknown {label} {value!r}; expected one of {choices}")


def _coerce_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValueError(f"Start date must be an ISO date (got {value!r})")


def _coerce_text(value: Any, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{label} is required")
    return value.strip()


class ScheduledPaymentManager:
    """Creates, edits, pauses and removes scheduled payments"""

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.table_name = "scheduled_payments"
        self.storage.create_index(self.table_name, "user_id")
        self._lock = threading.Lock()
        self.logger = get_logger("sobs.scheduled")

    def create_payment(
        self,
        user_id: str,
        name: str,
        amount: Money,
        recipient_account: str,
        frequency: Any = PaymentFrequency.MONTHLY,
        payment_type: Any = ScheduledPaymentType.TRANSFER,
        start_date: Any = None,
        from_account_number: Optional[str] = None
    ) -> ScheduledPayment:
        """
        Set up a recurring payment; it starts active

        Args:
            amount: Payment amount in the currency of the paying account
            frequency: PaymentFrequency or its wire value
            payment_type: ScheduledPaymentType or its wire value
            start_date: First due date, date or ISO string; today if omitted

        Raises:
            ValueError: Missing name or recipient, non-positive amount,
                unknown frequency or type, bad start date
        """
        if not amount.is_positive():
            raise ValueError("Scheduled payment amount must be positive")

        now = datetime.now(timezone.utc)
        payment = ScheduledPayment(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            user_id=user_id,
            name=_coerce_text(name, "Payment name"),
            payment_type=_coerce_enum(ScheduledPaymentType, payment_type, "payment type"),
            amount=amount,
            recipient_account=_coerce_text(recipient_account, "Recipient account"),
            frequency=_coerce_enum(PaymentFrequency, frequency, "frequency"),
            start_date=now.date() if start_date is None else _coerce_date(start_date),
            from_account_number=from_account_number
        )
        self.storage.save(self.table_name, payment.id, payment.to_dict())

        self.audit_trail.log_event(
            event_type=AuditEventType.SCHEDULED_PAYMENT_CREATED,
            entity_type="scheduled_payment",
            entity_id=payment.id,
            user_id=user_id,
            metadata={
                "amount": amount.to_string(),
                "recipient_account": payment.recipient_account,
                "frequency": payment.frequency.value
            }
        )
        log_action(
            self.logger, "info", f"Scheduled payment created: {payment.id}",
            user_id=user_id, action="create_scheduled_payment", resource=f"scheduled_payment:{payment.id}"
        )
        return payment

    def get_payment(self, user_id: str, payment_id: str) -> ScheduledPayment:
        """
        Raises:
            ScheduledPaymentNotFound: Unknown id, or a payment of another user
        """
        data = self.storage.load(self.table_name, payment_id)
        if data is None or data["user_id"] != user_id:
            raise ScheduledPaymentNotFound(payment_id)
        return ScheduledPayment.from_dict(data)

    def list_payments(self, user_id: str) -> List[ScheduledPayment]:
        payments = [ScheduledPayment.from_dict(d) for d in self.storage.find(self.table_name, {"user_id": user_id})]
        payments.sort(key=lambda p: p.created_at)
        return payments

    def update_payment(self, user_id: str, payment_id: str, **changes: Any) -> ScheduledPayment:
        """
        Shallow-merge the provided fields into a scheduled payment

        The amount keeps the payment's currency.

        Raises:
            ScheduledPaymentNotFound: Unknown id, or a payment of another user
            InvalidAmount: Bad amount
            ValueError: Unknown field or invalid value
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown scheduled payment fields: {', '.join(sorted(unknown))}")
        if "is_paused" in changes and not isinstance(changes["is_paused"], bool):
            raise ValueError("is_paused must be true or false")

        with self._lock:
            current = self.get_payment(user_id, payment_id)
            cleaned = self._clean(changes, current.amount.currency)
            payment = replace(current, updated_at=datetime.now(timezone.utc), **cleaned)
            self.storage.save(self.table_name, payment.id, payment.to_dict())

        self.audit_trail.log_event(
            event_type=AuditEventType.SCHEDULED_PAYMENT_UPDATED,
            entity_type="scheduled_payment",
            entity_id=payment.id,
            user_id=user_id,
            metadata={"changes": sorted(cleaned)}
        )
        return payment

    def pause(self, user_id: str, payment_id: str) -> ScheduledPayment:
        return self.update_payment(user_id, payment_id, is_paused=True)

    def resume(self, user_id: str, payment_id: str) -> ScheduledPayment:
        return self.update_payment(user_id, payment_id, is_paused=False)

    def delete_payment(self, user_id: str, payment_id: str) -> None:
        """
        Raises:
            ScheduledPaymentNotFound: Unknown id, or a payment of another user
        """
        with self._lock:
            payment = self.get_payment(user_id, payment_id)
            self.storage.delete(self.table_name, payment.id)

        self.audit_trail.log_event(
            event_type=AuditEventType.SCHEDULED_PAYMENT_DELETED,
            entity_type="scheduled_payment",
            entity_id=payment.id,
            user_id=user_id
        )
        log_action(
            self.logger, "info", f"Scheduled payment deleted: {payment.id}",
            user_id=user_id, action="delete_scheduled_payment", resource=f"scheduled_payment:{payment.id}"
        )

    @staticmethod
    def _clean(changes: Dict[str, Any], currency: Currency) -> Dict[str, Any]:
        cleaned = dict(changes)
        if "name" in changes:
            cleaned["name"] = _coerce_text(changes["name"], "Payment name")
        if "recipient_account" in changes:
            cleaned["recipient_account"] = _coerce_text(changes["recipient_account"], "Recipient account")
        if "payment_type" in changes:
            cleaned["payment_type"] = _coerce_enum(ScheduledPaymentType, changes["payment_type"], "payment type")
        if "frequency" in changes:
            cleaned["frequency"] = _coerce_enum(PaymentFrequency, changes["frequency"], "frequency")
        if "start_date" in changes:
            cleaned["start_date"] = _coerce_date(changes["start_date"])
        if "amount" in changes:
            raw = changes["amount"]
            if isinstance(raw, Money):
                if raw.currency != currency:
                    raise ValueError(f"Scheduled payment amount must be in {currency.code}")
                raw = raw.amount
            cleaned["amount"] = to_currency_money(parse_amount(raw), currency, raw)
        return cleaned
