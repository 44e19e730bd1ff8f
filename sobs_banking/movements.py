"""
Money Movement Operations

Deposit, Transfer, BillPayment and SavingsContribution. Every operation runs
the same pipeline:

1. validate the amount (INVALID_AMOUNT)
2. resolve the acting account, defaulting to the user's first account
   (ACCOUNT_NOT_FOUND)
3. under the account lock, read one card settings snapshot and the balance,
   run the Policy Gate, then post to the ledger

The public methods never raise for business failures; they return a
MovementResult that is either a success carrying the new balance and the
record id, or a failure carrying the error kind and its context.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from .accounts import Account, AccountManager
from .audit import AuditTrail, AuditEventType
from .cards import CardSettingsStore
from .currency import Currency, Money, to_decimal
from .errors import BankingError, FailureKind, InvalidAmount
from .events import DomainEvent, EventDispatcher, EventPayload
from .ledger import LedgerStore
from .logging_config import get_logger, log_action
from .policy import evaluate_credit, evaluate_debit
from .recorder import TransactionCategory, TransactionRecord
from .savings import SavingsGoal, SavingsGoalManager


MAX_AMOUNT_DIGITS = 15  # Integer digits accepted for a single movement

DEFAULT_DEPOSIT_DESCRIPTION = "Card Deposit"


class MovementType(Enum):
    DEPOSIT = "deposit"
    TRANSFER = "transfer"
    BILL_PAYMENT = "bill_payment"
    SAVINGS_CONTRIBUTION = "savings_contribution"


# Request structs

@dataclass(frozen=True)
class DepositRequest:
    amount: Any
    account_number: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class TransferRequest:
    """Transfer to an external account; the recipient is an opaque reference"""
    recipient_account_number: str
    amount: Any
    from_account_number: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self):
        if not self.recipient_account_number or not str(self.recipient_account_number).strip():
            raise ValueError("Recipient account number is required")


@dataclass(frozen=True)
class BillPaymentRequest:
    provider: str
    amount: Any
    bill_reference: Optional[str] = None
    from_account_number: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self):
        if not self.provider or not self.provider.strip():
            raise ValueError("Bill provider is required")


@dataclass(frozen=True)
class SavingsContributionRequest:
    goal_id: str
    amount: Any
    from_account_number: Optional[str] = None


# Results

@dataclass(frozen=True)
class MovementFailure:
    """Why a movement was refused; limit/amount are set for LIMIT_EXCEEDED"""
    kind: FailureKind
    message: str
    limit: Optional[Money] = None
    amount: Optional[Money] = None

    @classmethod
    def from_error(cls, error: BankingError) -> 'MovementFailure':
        limit = getattr(error, "limit", None)
        amount = getattr(error, "amount", None)
        return cls(
            kind=error.kind,
            message=error.message,
            limit=limit if isinstance(limit, Money) else None,
            amount=amount if isinstance(amount, Money) else None
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {"error": self.kind.value, "message": self.message}
        if self.limit is not None:
            result["limit"] = str(self.limit.amount)
        if self.amount is not None:
            result["amount"] = str(self.amount.amount)
        return result


@dataclass(frozen=True)
class MovementResult:
    operation: MovementType
    success: bool
    account_number: Optional[str] = None
    new_balance: Optional[Money] = None
    record: Optional[TransactionRecord] = None
    goal: Optional[SavingsGoal] = None
    failure: Optional[MovementFailure] = None

    @property
    def transaction_id(self) -> Optional[str]:
        return self.record.id if self.record else None

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            return self.failure.to_dict()
        result = {
            "account_number": self.account_number,
            "transaction_id": self.transaction_id,
            "new_balance": str(self.new_balance.amount),
            "currency": self.new_balance.currency.code,
        }
        if self.goal is not None:
            result["goal"] = self.goal.to_dict()
        return result


_Body = Callable[[Account, Money], Tuple[TransactionRecord, Optional[SavingsGoal]]]


class MoneyMovementService:
    """
    Executes money movement operations with consistent policy enforcement
    """

    def __init__(
        self,
        accounts: AccountManager,
        ledger: LedgerStore,
        card_settings: CardSettingsStore,
        savings_goals: SavingsGoalManager,
        audit_trail: AuditTrail,
        event_dispatcher: Optional[EventDispatcher] = None
    ):
        self.accounts = accounts
        self.ledger = ledger
        self.card_settings = card_settings
        self.savings_goals = savings_goals
        self.audit_trail = audit_trail
        self._event_dispatcher = event_dispatcher
        self.logger = get_logger("sobs.movements")

    def deposit(self, user_id: str, request: DepositRequest) -> MovementResult:
        """Credit the account; a frozen card also refuses deposits"""
        description = request.description or DEFAULT_DEPOSIT_DESCRIPTION

        def body(account: Account, amount: Money):
            settings = self.card_settings.get(account.account_number)
            evaluate_credit(account.account_number, settings).raise_if_denied()
            record = self.ledger.credit(
                account.account_number, amount,
                category=TransactionCategory.DEPOSIT.value,
                description=description
            )
            return record, None

        return self._execute(MovementType.DEPOSIT, user_id, request.amount, request.account_number, body)

    def transfer(self, user_id: str, request: TransferRequest) -> MovementResult:
        """Debit the source account towards an external recipient"""
        recipient = str(request.recipient_account_number).strip()
        description = f"Transfer to {recipient}"
        if request.description:
            description = f"{description} - {request.description}"

        def body(account: Account, amount: Money):
            record = self._guarded_debit(account, amount, TransactionCategory.TRANSFER, description)
            return record, None

        return self._execute(MovementType.TRANSFER, user_id, request.amount, request.from_account_number, body)

    def pay_bill(self, user_id: str, request: BillPaymentRequest) -> MovementResult:
        """Debit the source account to pay a provider's bill"""
        description = request.description or f"{request.provider.strip()} Bill Payment"
        if request.bill_reference:
            description = f"{description} (ref {request.bill_reference})"

        def body(account: Account, amount: Money):
            record = self._guarded_debit(account, amount, TransactionCategory.BILL, description)
            return record, None

        return self._execute(MovementType.BILL_PAYMENT, user_id, request.amount, request.from_account_number, body)

    def contribute_to_savings(self, user_id: str, request: SavingsContributionRequest) -> MovementResult:
        """
        Move funds from an account into a savings goal

        The debit and the goal increase share one atomic block; a refused or
        failed debit leaves the goal untouched.
        """
        def body(account: Account, amount: Money):
            with self.ledger.storage.atomic():
                goal = self.savings_goals.get_goal(user_id, request.goal_id)
                if goal.target_amount.currency != account.currency:
                    raise InvalidAmount(
                        request.amount,
                        f"Savings goal is in {goal.target_amount.currency.code}, "
                        f"account {account.account_number} is in {account.currency.code}"
                    )
                record = self._guarded_debit(
                    account, amount, TransactionCategory.SAVINGS,
                    f"Savings Goal Deposit: {goal.name}"
                )
                goal = self.savings_goals.add_to_goal(goal, amount)
            return record, goal

        return self._execute(
            MovementType.SAVINGS_CONTRIBUTION, user_id, request.amount, request.from_account_number, body
        )

    def _guarded_debit(
        self,
        account: Account,
        amount: Money,
        category: TransactionCategory,
        description: str
    ) -> TransactionRecord:
        # Settings are read once; all three checks see the same snapshot
        settings = self.card_settings.get(account.account_number)
        balance = self.ledger.get_balance(account.account_number)
        evaluate_debit(account.account_number, settings, balance, amount).raise_if_denied()
        return self.ledger.debit(account.account_number, amount, category.value, description)

    def _execute(
        self,
        operation: MovementType,
        user_id: str,
        raw_amount: Any,
        account_number: Optional[str],
        body: _Body
    ) -> MovementResult:
        account = None
        try:
            value = parse_amount(raw_amount)
            account = self.accounts.resolve_account(user_id, account_number)
            amount = to_account_money(value, account, raw_amount)

            with self.ledger.account_lock(account.account_number):
                record, goal = body(account, amount)
                new_balance = self.ledger.get_balance(account.account_number)
        except BankingError as error:
            failure = MovementFailure.from_error(error)
            rejected_account = account.account_number if account else account_number
            self._on_rejected(operation, user_id, rejected_account, raw_amount, failure)
            return MovementResult(
                operation=operation,
                success=False,
                account_number=rejected_account,
                failure=failure
            )

        result = MovementResult(
            operation=operation,
            success=True,
            account_number=account.account_number,
            new_balance=new_balance,
            record=record,
            goal=goal
        )
        self._on_posted(user_id, result)
        return result

    def _on_posted(self, user_id: str, result: MovementResult) -> None:
        record = result.record
        log_action(
            self.logger, "info", f"{result.operation.value} posted",
            user_id=user_id, action=result.operation.value,
            resource=f"account:{result.account_number}",
            extra={
                "transaction_id": record.id,
                "direction": record.direction.value,
                "amount": record.amount.to_string(),
                "new_balance": result.new_balance.to_string()
            }
        )

        self.audit_trail.log_event(
            event_type=AuditEventType.MOVEMENT_POSTED,
            entity_type="account",
            entity_id=result.account_number,
            user_id=user_id,
            metadata={
                "operation": result.operation.value,
                "transaction_id": record.id,
                "direction": record.direction.value,
                "category": record.category,
                "amount": str(record.amount.amount),
                "new_balance": str(result.new_balance.amount)
            }
        )

        data = {
            "user_id": user_id,
            "operation": result.operation.value,
            "account_number": result.account_number,
            "transaction_id": record.id,
            "amount": str(record.amount.amount),
            "currency": record.amount.currency.code,
            "description": record.description,
            "new_balance": str(result.new_balance.amount)
        }
        if result.goal is not None:
            data["goal_id"] = result.goal.id
            data["goal_name"] = result.goal.name
        self._publish(DomainEvent.MOVEMENT_POSTED, result.account_number, data)

    def _on_rejected(
        self,
        operation: MovementType,
        user_id: str,
        account_number: Optional[str],
        raw_amount: Any,
        failure: MovementFailure
    ) -> None:
        log_action(
            self.logger, "warning", f"{operation.value} rejected: {failure.kind.value}",
            user_id=user_id, action=operation.value,
            resource=f"account:{account_number}" if account_number else None,
            extra={"amount": str(raw_amount), "reason": failure.message}
        )

        self.audit_trail.log_event(
            event_type=AuditEventType.MOVEMENT_REJECTED,
            entity_type="account",
            entity_id=account_number or "",
            user_id=user_id,
            metadata={
                "operation": operation.value,
                "amount": str(raw_amount),
                **failure.to_dict()
            }
        )

        self._publish(DomainEvent.MOVEMENT_REJECTED, account_number or "", {
            "user_id": user_id,
            "operation": operation.value,
            **failure.to_dict()
        })

    def _publish(self, event_type: DomainEvent, account_number: str, data: Dict[str, Any]) -> None:
        if self._event_dispatcher:
            self._event_dispatcher.publish(EventPayload(
                event_type=event_type,
                entity_type="account",
                entity_id=account_number,
                data=data
            ))


def parse_amount(raw: Any) -> Decimal:
    """
    Validate a caller-supplied amount before anything else is touched

    Raises:
        InvalidAmount: Non-numeric, non-finite, non-positive or absurdly large
    """
    try:
        value = to_decimal(raw)
    except ValueError:
        raise InvalidAmount(raw)
    if value <= 0:
        raise InvalidAmount(raw)
    if value.adjusted() >= MAX_AMOUNT_DIGITS:
        raise InvalidAmount(raw, "Amount is too large")
    return value


def to_account_money(value: Decimal, account: Account, raw: Any) -> Money:
    """Amounts finer than the account currency's minor unit are refused, never rounded"""
    return to_currency_money(value, account.currency, raw)


def to_currency_money(value: Decimal, currency: Currency, raw: Any) -> Money:
    if value != value.quantize(currency.quantum):
        raise InvalidAmount(
            raw, f"Amount has more than {currency.precision} decimal places for {currency.code}"
        )
    return Money(value, currency)
