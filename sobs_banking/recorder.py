"""
Transaction Recorder

Builds and stores TransactionRecords. The recorder is the only writer of
transaction history, and it is only called from the ledger's credit/debit
primitives, inside the same atomic block as the balance change.

Records are immutable once appended. History is returned newest-first by
append order.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional
import threading
import uuid

from .currency import Currency, Money
from .storage import StorageInterface


class Direction(Enum):
    """Direction of a balance change"""
    CREDIT = "credit"
    DEBIT = "debit"


class TransactionStatus(Enum):
    """Only completed movements are ever recorded; failures leave no record"""
    COMPLETED = "completed"


class TransactionCategory(Enum):
    """
    Categories written by the money movement operations. The record field is a
    free-form string, so analytics also accepts categories outside this list
    (shopping, food, ...).
    """
    DEPOSIT = "deposit"
    TRANSFER = "transfer"
    BILL = "bill"
    SAVINGS = "savings"


@dataclass(frozen=True)
class TransactionRecord:
    """One balance-affecting event on one account"""
    id: str
    account_number: str
    timestamp: datetime
    direction: Direction
    category: str
    amount: Money
    description: str
    status: TransactionStatus = TransactionStatus.COMPLETED
    sequence: int = 0

    @property
    def is_credit(self) -> bool:
        return self.direction == Direction.CREDIT

    @property
    def is_debit(self) -> bool:
        return self.direction == Direction.DEBIT

    @property
    def signed_amount(self) -> Decimal:
        """Amount as it affects the balance: positive credit, negative debit"""
        return self.amount.amount if self.is_credit else -self.amount.amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "account_number": self.account_number,
            "timestamp": self.timestamp.isoformat(),
            "direction": self.direction.value,
            "category": self.category,
            "amount": str(self.amount.amount),
            "currency": self.amount.currency.code,
            "description": self.description,
            "status": self.status.value,
            "sequence": self.sequence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TransactionRecord':
        return cls(
            id=data["id"],
            account_number=data["account_number"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            direction=Direction(data["direction"]),
            category=data["category"],
            amount=Money(Decimal(data["amount"]), Currency[data["currency"]]),
            description=data["description"],
            status=TransactionStatus(data["status"]),
            sequence=data["sequence"],
        )


class TransactionRecorder:
    """Appends and reads TransactionRecords"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table_name = "transaction_records"
        self._sequence_lock = threading.Lock()
        self._sequence = self.storage.count(self.table_name)
        self.storage.create_index(self.table_name, "account_number")

    def _next_sequence(self) -> int:
        with self._sequence_lock:
            self._sequence += 1
            return self._sequence

    def append(
        self,
        account_number: str,
        direction: Direction,
        amount: Money,
        category: str,
        description: str
    ) -> TransactionRecord:
        """
        Build a record with a fresh id and the current time and store it

        Raises:
            ValueError: If amount is not positive
        """
        if not amount.is_positive():
            raise ValueError("Transaction record amount must be positive")

        record = TransactionRecord(
            id=str(uuid.uuid4()),
            account_number=account_number,
            timestamp=datetime.now(timezone.utc),
            direction=direction,
            category=category,
            amount=amount,
            description=description,
            sequence=self._next_sequence(),
        )
        self.storage.save(self.table_name, record.id, record.to_dict())
        return record

    def history(
        self,
        account_number: str,
        limit: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[TransactionRecord]:
        """
        Records of one account, newest first

        Args:
            account_number: Account to read
            limit: Optional cap on the number of records returned
            start: Optional inclusive lower bound on timestamp
            end: Optional inclusive upper bound on timestamp
        """
        rows = self.storage.find(self.table_name, {"account_number": account_number})
        rows.sort(key=lambda row: row["sequence"], reverse=True)
        if start is None and end is None and limit is not None:
            rows = rows[:max(limit, 0)]

        records = [TransactionRecord.from_dict(row) for row in rows]
        if start:
            records = [r for r in records if r.timestamp >= start]
        if end:
            records = [r for r in records if r.timestamp <= end]

        if limit is not None:
            records = records[:max(limit, 0)]
        return records

    def get(self, record_id: str) -> Optional[TransactionRecord]:
        data = self.storage.load(self.table_name, record_id)
        return TransactionRecord.from_dict(data) if data else None
