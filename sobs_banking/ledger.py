"""
Ledger Store

Single source of truth for account balances and transaction history.

Every balance change goes through ``credit`` or ``debit``, which adjust the
stored balance and append exactly one TransactionRecord inside one atomic
storage block: an observer never sees a new balance without its record, or a
record without its balance change. Replaying an account's history from zero
therefore always reproduces its balance.

Policy is not this module's concern; ``debit`` only refuses to take a balance
below zero.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterator, List, Optional
import threading

from .currency import Currency, Money
from .errors import AccountNotFound, InsufficientFunds
from .recorder import Direction, TransactionRecord, TransactionRecorder
from .storage import StorageInterface


class LedgerStore:
    """
    Balances and history for every account

    ``account_lock(account_number)`` returns the account's re-entrant lock.
    Money movement operations hold it across their policy check and mutation
    so that operations on the same account are serialized. Operations on
    different accounts take different locks.
    """

    def __init__(self, storage: StorageInterface, recorder: Optional[TransactionRecorder] = None):
        self.storage = storage
        self.recorder = recorder or TransactionRecorder(storage)
        self.table_name = "ledger_balances"
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def account_lock(self, account_number: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(account_number, threading.RLock())
        with lock:
            yield

    def open_account(self, account_number: str, currency: Currency) -> Money:
        """Create a zero balance for a new account"""
        if self.storage.exists(self.table_name, account_number):
            raise ValueError(f"Ledger for account {account_number} already exists")

        self.storage.save(self.table_name, account_number, {
            "id": account_number,
            "balance": "0",
            "currency": currency.code,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        })
        return Money.zero(currency)

    def has_account(self, account_number: str) -> bool:
        return self.storage.exists(self.table_name, account_number)

    def get_balance(self, account_number: str) -> Money:
        """
        Raises:
            AccountNotFound: If no ledger was opened for the account
        """
        row = self.storage.load(self.table_name, account_number)
        if row is None:
            raise AccountNotFound(account_number)
        return Money(Decimal(row["balance"]), Currency[row["currency"]])

    def get_history(
        self,
        account_number: str,
        limit: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[TransactionRecord]:
        """Transaction records for an account, newest first"""
        if not self.has_account(account_number):
            raise AccountNotFound(account_number)
        return self.recorder.history(account_number, limit=limit, start=start, end=end)

    def credit(
        self,
        account_number: str,
        amount: Money,
        category: str,
        description: str
    ) -> TransactionRecord:
        """Add ``amount`` to the balance and record it"""
        return self._post(account_number, Direction.CREDIT, amount, category, description)

    def debit(
        self,
        account_number: str,
        amount: Money,
        category: str,
        description: str
    ) -> TransactionRecord:
        """
        Subtract ``amount`` from the balance and record it

        Raises:
            InsufficientFunds: If amount exceeds the current balance
        """
        return self._post(account_number, Direction.DEBIT, amount, category, description)

    def replay_balance(self, account_number: str) -> Money:
        """Net of every recorded movement, starting from zero"""
        currency = self.get_balance(account_number).currency
        total = sum((r.signed_amount for r in self.recorder.history(account_number)), Decimal('0'))
        return Money(total, currency)

    def _post(
        self,
        account_number: str,
        direction: Direction,
        amount: Money,
        category: str,
        description: str
    ) -> TransactionRecord:
        if not amount.is_positive():
            raise ValueError("Ledger amounts must be positive")

        with self.account_lock(account_number), self.storage.atomic():
            balance = self.get_balance(account_number)
            if amount.currency != balance.currency:
                raise ValueError(
                    f"Cannot post {amount.currency.code} to a {balance.currency.code} account"
                )

            if direction == Direction.CREDIT:
                new_balance = balance + amount
            else:
                if amount > balance:
                    raise InsufficientFunds(balance=balance, amount=amount)
                new_balance = balance - amount

            record = self.recorder.append(
                account_number=account_number,
                direction=direction,
                amount=amount,
                category=category,
                description=description
            )
            self.storage.save(self.table_name, account_number, {
                "id": account_number,
                "balance": str(new_balance.amount),
                "currency": new_balance.currency.code,
                "updated_at": record.timestamp.isoformat(),
            })
            return record
