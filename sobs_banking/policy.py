"""
Policy Gate

Pure evaluation of whether a proposed movement against an account is
permitted. Nothing here mutates state; callers pass in one settings snapshot
and the balance they read under the account lock.

Debit checks run in a fixed order and the first failing check is the reported
reason:

1. card frozen
2. amount above a non-null spending limit
3. amount above the balance

The channel toggles on CardSettings (online, international, contactless) are
not consulted.
"""

from dataclasses import dataclass
from decimal import ROUND_DOWN
from typing import Optional

from .cards import CardSettings
from .currency import Money
from .errors import (
    BankingError, CardFrozen, FailureKind, InsufficientFunds, LimitExceeded
)


@dataclass(frozen=True)
class PolicyDecision:
    """Outcome of a policy evaluation"""
    allowed: bool
    reason: Optional[FailureKind] = None
    error: Optional[BankingError] = None

    @classmethod
    def allow(cls) -> 'PolicyDecision':
        return cls(allowed=True)

    @classmethod
    def deny(cls, error: BankingError) -> 'PolicyDecision':
        return cls(allowed=False, reason=error.kind, error=error)

    def raise_if_denied(self) -> None:
        if not self.allowed:
            raise self.error


def evaluate_debit(
    account_number: str,
    settings: CardSettings,
    balance: Money,
    amount: Money
) -> PolicyDecision:
    """
    Evaluate a debit of ``amount`` against an account.

    Args:
        account_number: Account being debited (used in denial messages)
        settings: Settings snapshot, read once for all three checks
        balance: Current balance of the account
        amount: Positive amount to debit, in the account currency

    Returns:
        PolicyDecision, allowed or carrying the first failing reason
    """
    if settings.is_frozen:
        return PolicyDecision.deny(CardFrozen(account_number))

    if settings.spending_limit is not None:
        # Amounts are whole minor units; a finer limit rounds down to one
        limit = Money(
            settings.spending_limit.quantize(amount.currency.quantum, rounding=ROUND_DOWN),
            amount.currency
        )
        if amount > limit:
            return PolicyDecision.deny(LimitExceeded(limit=limit, amount=amount))

    if amount > balance:
        return PolicyDecision.deny(InsufficientFunds(balance=balance, amount=amount))

    return PolicyDecision.allow()


def evaluate_credit(account_number: str, settings: CardSettings) -> PolicyDecision:
    """A frozen card is fully inert: it receives deposits no more than it spends"""
    if settings.is_frozen:
        return PolicyDecision.deny(CardFrozen(account_number))
    return PolicyDecision.allow()
