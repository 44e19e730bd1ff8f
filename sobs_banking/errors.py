"""
Banking Error Types

Typed failures raised by the ledger, policy gate and money movement
operations. All of them are ValueError subclasses so callers that only care
about "bad request" can keep catching ValueError.
"""

from enum import Enum
from typing import Any, Dict, Optional

from .currency import Money


class FailureKind(Enum):
    """Kinds of money movement failure surfaced to callers"""
    INVALID_AMOUNT = "INVALID_AMOUNT"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    CARD_FROZEN = "CARD_FROZEN"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    SAVINGS_GOAL_NOT_FOUND = "SAVINGS_GOAL_NOT_FOUND"
    BENEFICIARY_NOT_FOUND = "BENEFICIARY_NOT_FOUND"
    SCHEDULED_PAYMENT_NOT_FOUND = "SCHEDULED_PAYMENT_NOT_FOUND"


class BankingError(ValueError):
    """Base class for all typed banking failures"""

    kind: FailureKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind.value, "message": self.message}


class InvalidAmount(BankingError):
    kind = FailureKind.INVALID_AMOUNT

    def __init__(self, amount: Any, reason: str = "Amount must be a positive number"):
        super().__init__(f"{reason} (got {amount!r})")
        self.amount = amount


class AccountNotFound(BankingError):
    kind = FailureKind.ACCOUNT_NOT_FOUND

    def __init__(self, account_number: Optional[str] = None):
        if account_number:
            message = f"Account {account_number} not found"
        else:
            message = "No account found for this user"
        super().__init__(message)
        self.account_number = account_number


class CardFrozen(BankingError):
    kind = FailureKind.CARD_FROZEN

    def __init__(self, account_number: str):
        super().__init__(
            f"Your card for account {account_number} is frozen. "
            f"Unfreeze it in Card Controls to move money."
        )
        self.account_number = account_number


class LimitExceeded(BankingError):
    kind = FailureKind.LIMIT_EXCEEDED

    def __init__(self, limit: Money, amount: Money):
        super().__init__(
            f"Amount {amount.to_string()} exceeds your card spending limit of "
            f"{limit.to_string()}. Adjust your limit in Card Controls."
        )
        self.limit = limit
        self.amount = amount

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["limit"] = str(self.limit.amount)
        result["amount"] = str(self.amount.amount)
        return result


class InsufficientFunds(BankingError):
    kind = FailureKind.INSUFFICIENT_FUNDS

    def __init__(self, balance: Money, amount: Money):
        super().__init__(
            f"Insufficient funds: available {balance.to_string()}, "
            f"requested {amount.to_string()}"
        )
        self.balance = balance
        self.amount = amount

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["amount"] = str(self.amount.amount)
        return result


class SavingsGoalNotFound(BankingError):
    kind = FailureKind.SAVINGS_GOAL_NOT_FOUND

    def __init__(self, goal_id: str):
        super().__init__(f"Savings goal {goal_id} not found")
        self.goal_id = goal_id


class BeneficiaryNotFound(BankingError):
    kind = FailureKind.BENEFICIARY_NOT_FOUND

    def __init__(self, beneficiary_id: str):
        super().__init__(f"Beneficiary {beneficiary_id} not found")
        self.beneficiary_id = beneficiary_id


class ScheduledPaymentNotFound(BankingError):
    kind = FailureKind.SCHEDULED_PAYMENT_NOT_FOUND

    def __init__(self, payment_id: str):
        super().__init__(f"Scheduled payment {payment_id} not found")
        self.payment_id = payment_id


class InvalidSettings(ValueError):
    """Rejected card settings update"""
    pass

