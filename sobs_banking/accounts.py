"""
Account Management Module

Registers customer accounts, opens their ledgers and card settings, and
resolves the acting account for a user. An account's balance lives in the
ledger; this module only holds descriptive, immutable data.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from enum import Enum
import secrets

from .audit import AuditTrail, AuditEventType
from .cards import CardSettings, CardSettingsStore
from .currency import Money, Currency
from .errors import AccountNotFound
from .ledger import LedgerStore
from .logging_config import get_logger, log_action
from .recorder import TransactionCategory
from .storage import StorageInterface, StorageRecord


ACCOUNT_NUMBER_LENGTH = 14
OPENING_BALANCE_DESCRIPTION = "Opening balance"


class AccountType(Enum):
    """Retail account products"""
    SAVINGS = "savings"
    CHECKING = "checking"


class AccountStatus(Enum):
    """Accounts are never closed or deleted in this system"""
    ACTIVE = "active"


@dataclass
class Account(StorageRecord):
    """Balance-bearing account owned by exactly one user"""
    account_number: str
    user_id: str
    account_type: AccountType
    currency: Currency
    display_name: str
    status: AccountStatus = AccountStatus.ACTIVE
    position: int = 0  # Order within the owner's account list


@dataclass(frozen=True)
class AccountView:
    """Account with its current balance and card settings attached"""
    account: Account
    balance: Money
    card_settings: CardSettings

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account_number": self.account.account_number,
            "account_type": self.account.account_type.value,
            "display_name": self.account.display_name,
            "currency": self.account.currency.code,
            "status": self.account.status.value,
            "balance": str(self.balance.amount),
            "card_settings": self.card_settings.to_dict(),
        }


class AccountManager:
    """
    Manages account registration and lookup
    """

    def __init__(
        self,
        storage: StorageInterface,
        ledger: LedgerStore,
        card_settings: CardSettingsStore,
        audit_trail: AuditTrail
    ):
        self.storage = storage
        self.ledger = ledger
        self.card_settings = card_settings
        self.audit_trail = audit_trail
        self.table_name = "accounts"
        self.storage.create_index(self.table_name, "user_id")
        self.logger = get_logger("sobs.accounts")

    def create_account(
        self,
        user_id: str,
        account_type: AccountType,
        currency: Currency,
        display_name: str,
        opening_balance: Decimal = Decimal('0'),
        account_number: Optional[str] = None,
        card_settings: Optional[CardSettings] = None
    ) -> Account:
        """
        Create a new account

        The opening balance is posted as a deposit record so that the balance
        equals the net of the account's history from the first moment.

        Args:
            user_id: Owner of the account
            account_type: Savings or checking
            currency: Account currency
            display_name: Card name shown to the user
            opening_balance: Initial funds, zero or positive
            account_number: Specific account number (generated if not provided)
            card_settings: Initial card controls (defaults if not provided)

        Returns:
            Created Account object
        """
        opening = Money(opening_balance, currency)
        if opening.is_negative():
            raise ValueError("Opening balance cannot be negative")

        if account_number is None:
            account_number = self._generate_account_number()
        elif self.storage.exists(self.table_name, account_number):
            raise ValueError(f"Account number {account_number} already exists")

        with self.ledger.account_lock(account_number), self.storage.atomic():
            now = datetime.now(timezone.utc)
            account = Account(
                id=account_number,
                created_at=now,
                updated_at=now,
                account_number=account_number,
                user_id=user_id,
                account_type=account_type,
                currency=currency,
                display_name=display_name,
                position=len(self.storage.find(self.table_name, {"user_id": user_id}))
            )
            self.storage.save(self.table_name, account.id, account.to_dict())
            self.ledger.open_account(account_number, currency)
            self.card_settings.initialize(account_number, card_settings)
            if opening.is_positive():
                self.ledger.credit(
                    account_number, opening,
                    category=TransactionCategory.DEPOSIT.value,
                    description=OPENING_BALANCE_DESCRIPTION
                )

        log_action(
            self.logger, "info", f"Account opened: {account_number}",
            user_id=user_id, action="open_account", resource=f"account:{account_number}",
            extra={
                "account_type": account_type.value,
                "currency": currency.code,
                "opening_balance": opening.to_string()
            }
        )

        self.audit_trail.log_event(
            event_type=AuditEventType.ACCOUNT_OPENED,
            entity_type="account",
            entity_id=account_number,
            user_id=user_id,
            metadata={
                "account_type": account_type.value,
                "currency": currency.code,
                "display_name": display_name,
                "opening_balance": str(opening.amount)
            }
        )

        return account

    def get_account(self, account_number: str) -> Optional[Account]:
        """Get account by account number"""
        data = self.storage.load(self.table_name, account_number)
        if data:
            return self._account_from_dict(data)
        return None

    def get_user_accounts(self, user_id: str) -> List[Account]:
        """All accounts of a user, in the order they were opened"""
        accounts = [self._account_from_dict(d) for d in self.storage.find(self.table_name, {"user_id": user_id})]
        accounts.sort(key=lambda a: a.position)
        return accounts

    def resolve_account(self, user_id: str, account_number: Optional[str] = None) -> Account:
        """
        Resolve the acting account for a user

        When no account number is given the user's first account is used.

        Raises:
            AccountNotFound: If the account does not exist or is not the user's
        """
        if account_number:
            account = self.get_account(account_number)
            if account is None or account.user_id != user_id:
                raise AccountNotFound(account_number)
            return account

        accounts = self.get_user_accounts(user_id)
        if not accounts:
            raise AccountNotFound()
        return accounts[0]

    def list_accounts_with_settings(self, user_id: str) -> List[AccountView]:
        """Every account of the user with its balance and card settings"""
        return [
            AccountView(
                account=account,
                balance=self.ledger.get_balance(account.account_number),
                card_settings=self.card_settings.get(account.account_number)
            )
            for account in self.get_user_accounts(user_id)
        ]

    def _generate_account_number(self) -> str:
        """Random 14-digit number not already in use"""
        while True:
            number = str(10 ** (ACCOUNT_NUMBER_LENGTH - 1) + secrets.randbelow(9 * 10 ** (ACCOUNT_NUMBER_LENGTH - 1)))
            if not self.storage.exists(self.table_name, number):
                return number

    def _account_from_dict(self, data: Dict) -> Account:
        return Account(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            account_number=data['account_number'],
            user_id=data['user_id'],
            account_type=AccountType(data['account_type']),
            currency=Currency[data['currency']],
            display_name=data['display_name'],
            status=AccountStatus(data['status']),
            position=data['position']
        )
