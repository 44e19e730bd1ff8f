"""
Test suite for money movement operations

Tests deposits, transfers, bill payments and savings contributions against
the demo accounts, including the card policy checks every debit shares.
"""

import pytest
import threading
from decimal import Decimal

from sobs_banking.accounts import AccountType
from sobs_banking.audit import AuditEventType
from sobs_banking.cards import CardSettings
from sobs_banking.config import SobsConfig
from sobs_banking.currency import Money, Currency
from sobs_banking.errors import FailureKind
from sobs_banking.events import DomainEvent
from sobs_banking.movements import (
    BillPaymentRequest, DepositRequest, MovementType, SavingsContributionRequest,
    TransferRequest, parse_amount
)
from sobs_banking.seed import DEMO_USER_ID, seed_demo_data
from sobs_banking.system import BankingSystem


PRIMARY = "12345678901234"
BUSINESS = "99887766554433"


def egp(value: str) -> Money:
    return Money(Decimal(value), Currency.EGP)


class MovementTestBase:

    def setup_method(self):
        self.system = BankingSystem(config=SobsConfig(seed_demo_data=False))
        seed_demo_data(self.system)
        self.movements = self.system.movements
        self.ledger = self.system.ledger

    def balance(self, account_number: str) -> Money:
        return self.ledger.get_balance(account_number)

    def history_length(self, account_number: str) -> int:
        return len(self.ledger.get_history(account_number))


class TestDeposits(MovementTestBase):
    """Test deposits"""

    def test_deposit_increases_balance(self):
        result = self.movements.deposit(DEMO_USER_ID, DepositRequest(amount=15000, account_number=PRIMARY))

        assert result.success
        assert result.operation == MovementType.DEPOSIT
        assert result.new_balance == egp('65000')
        assert self.balance(PRIMARY) == egp('65000')

        record = self.ledger.get_history(PRIMARY, limit=1)[0]
        assert record.id == result.transaction_id
        assert record.is_credit
        assert record.description == "Card Deposit"

    def test_deposit_defaults_to_first_account(self):
        result = self.movements.deposit(DEMO_USER_ID, DepositRequest(amount="100.25"))
        assert result.account_number == PRIMARY
        assert self.balance(PRIMARY) == egp('50100.25')

    def test_deposit_ignores_spending_limit(self):
        result = self.movements.deposit(DEMO_USER_ID, DepositRequest(amount=100000, account_number=BUSINESS))
        assert result.success
        assert self.balance(BUSINESS) == egp('112500.50')

    def test_result_dict(self):
        result = self.movements.deposit(DEMO_USER_ID, DepositRequest(amount=1, account_number=BUSINESS))
        data = result.to_dict()
        assert data["new_balance"] == "12501.50"
        assert data["currency"] == "EGP"
        assert data["transaction_id"] == result.transaction_id


class TestDebitPolicy(MovementTestBase):
    """Test the shared frozen / limit / balance checks"""

    def test_transfer_over_limit_reports_limit_and_amount(self):
        result = self.movements.transfer(DEMO_USER_ID, TransferRequest(
            recipient_account_number="5555666677778888",
            amount=30000,
            from_account_number=BUSINESS
        ))

        assert not result.success
        assert result.failure.kind == FailureKind.LIMIT_EXCEEDED
        assert result.failure.limit == egp('25000')
        assert result.failure.amount == egp('30000')
        assert result.failure.to_dict() == {
            "error": "LIMIT_EXCEEDED",
            "message": result.failure.message,
            "limit": "25000.00",
            "amount": "30000.00",
        }
        assert self.balance(BUSINESS) == egp('12500.50')
        assert self.history_length(BUSINESS) == 1

    def test_frozen_card_blocks_bill_without_record(self):
        self.system.card_settings.update(PRIMARY, is_frozen=True)
        before = self.history_length(PRIMARY)

        result = self.movements.pay_bill(DEMO_USER_ID, BillPaymentRequest(
            provider="Electricity", amount=500, from_account_number=PRIMARY
        ))

        assert result.failure.kind == FailureKind.CARD_FROZEN
        assert self.balance(PRIMARY) == egp('50000')
        assert self.history_length(PRIMARY) == before

    def test_frozen_card_blocks_every_operation(self):
        self.system.card_settings.update(PRIMARY, is_frozen=True)
        goal = self.system.savings_goals.list_goals(DEMO_USER_ID)[0]

        results = [
            self.movements.deposit(DEMO_USER_ID, DepositRequest(amount=10, account_number=PRIMARY)),
            self.movements.transfer(DEMO_USER_ID, TransferRequest("1111222233334444", 10, PRIMARY)),
            self.movements.pay_bill(DEMO_USER_ID, BillPaymentRequest("Water", 10, from_account_number=PRIMARY)),
            self.movements.contribute_to_savings(DEMO_USER_ID, SavingsContributionRequest(goal.id, 10, PRIMARY)),
        ]

        assert [r.failure.kind for r in results] == [FailureKind.CARD_FROZEN] * 4
        assert self.balance(PRIMARY) == egp('50000')
        assert self.system.savings_goals.get_goal(DEMO_USER_ID, goal.id).current_amount == goal.current_amount

    def test_frozen_wins_over_limit_and_balance(self):
        self.system.card_settings.update(BUSINESS, is_frozen=True)
        result = self.movements.transfer(DEMO_USER_ID, TransferRequest("1111222233334444", 999999, BUSINESS))
        assert result.failure.kind == FailureKind.CARD_FROZEN

    def test_limit_boundary(self):
        self.system.card_settings.update(PRIMARY, spending_limit="1000")

        ok = self.movements.transfer(DEMO_USER_ID, TransferRequest("1111222233334444", "1000", PRIMARY))
        over = self.movements.transfer(DEMO_USER_ID, TransferRequest("1111222233334444", "1000.01", PRIMARY))

        assert ok.success
        assert over.failure.kind == FailureKind.LIMIT_EXCEEDED
        assert self.balance(PRIMARY) == egp('49000')

    def test_sub_cent_limit_is_not_rounded_up(self):
        self.system.card_settings.update(PRIMARY, spending_limit="999.995")

        result = self.movements.transfer(DEMO_USER_ID, TransferRequest("1111222233334444", "1000.00", PRIMARY))

        assert result.failure.kind == FailureKind.LIMIT_EXCEEDED
        assert result.failure.limit == egp('999.99')
        assert self.balance(PRIMARY) == egp('50000')
        assert self.history_length(PRIMARY) == 1

    def test_zero_limit_blocks_all_debits(self):
        self.system.card_settings.update(PRIMARY, spending_limit=0)
        result = self.movements.pay_bill(DEMO_USER_ID, BillPaymentRequest("Internet", "0.01", from_account_number=PRIMARY))
        assert result.failure.kind == FailureKind.LIMIT_EXCEEDED

    def test_removed_limit_is_unlimited(self):
        self.system.card_settings.update(BUSINESS, spending_limit=None)
        result = self.movements.transfer(DEMO_USER_ID, TransferRequest("1111222233334444", "12500.50", BUSINESS))
        assert result.success
        assert self.balance(BUSINESS).is_zero()

    def test_balance_boundary(self):
        account = self.system.account_manager.create_account(
            DEMO_USER_ID, AccountType.CHECKING, Currency.EGP, "Small",
            opening_balance=Decimal('500'), card_settings=CardSettings()
        )

        exact = self.movements.pay_bill(DEMO_USER_ID, BillPaymentRequest(
            "Gas", 500, from_account_number=account.account_number
        ))
        more = self.movements.pay_bill(DEMO_USER_ID, BillPaymentRequest(
            "Gas", "0.01", from_account_number=account.account_number
        ))

        assert exact.success
        assert exact.new_balance.is_zero()
        assert more.failure.kind == FailureKind.INSUFFICIENT_FUNDS
        assert more.failure.amount == egp('0.01')

    def test_channel_toggles_do_not_block(self):
        self.system.card_settings.update(
            PRIMARY, online_purchases=False, international_transactions=False, contactless_payments=False
        )
        result = self.movements.pay_bill(DEMO_USER_ID, BillPaymentRequest("Mobile", 50, from_account_number=PRIMARY))
        assert result.success


class TestValidation(MovementTestBase):
    """Test amount and account validation"""

    @pytest.mark.parametrize("amount", ["abc", "", None, 0, "-5", -0.01, "NaN", True, "1e20"])
    def test_invalid_amounts(self, amount):
        result = self.movements.transfer(DEMO_USER_ID, TransferRequest("1111222233334444", amount, PRIMARY))
        assert result.failure.kind == FailureKind.INVALID_AMOUNT
        assert self.balance(PRIMARY) == egp('50000')

    def test_sub_cent_amount_is_refused(self):
        result = self.movements.deposit(DEMO_USER_ID, DepositRequest(amount="10.005", account_number=PRIMARY))
        assert result.failure.kind == FailureKind.INVALID_AMOUNT

    def test_amount_checked_before_account(self):
        result = self.movements.deposit(DEMO_USER_ID, DepositRequest(amount="abc", account_number="00000000000000"))
        assert result.failure.kind == FailureKind.INVALID_AMOUNT

    def test_unknown_or_foreign_account(self):
        other = self.system.user_directory.register_user("other@example.com", "pw", "Other User")
        foreign = self.system.account_manager.get_user_accounts(other.id)[0]

        missing = self.movements.deposit(DEMO_USER_ID, DepositRequest(amount=10, account_number="00000000000000"))
        not_mine = self.movements.transfer(DEMO_USER_ID, TransferRequest(
            "1111222233334444", 10, foreign.account_number
        ))

        assert missing.failure.kind == FailureKind.ACCOUNT_NOT_FOUND
        assert not_mine.failure.kind == FailureKind.ACCOUNT_NOT_FOUND
        assert self.balance(foreign.account_number) == egp('1000')

    def test_request_validation(self):
        with pytest.raises(ValueError):
            TransferRequest(recipient_account_number=" ", amount=10)
        with pytest.raises(ValueError):
            BillPaymentRequest(provider="", amount=10)

    def test_parse_amount(self):
        assert parse_amount("15000") == Decimal('15000')
        assert parse_amount(0.1) == Decimal('0.1')


class TestDescriptions(MovementTestBase):
    """Test record descriptions"""

    def test_transfer_description(self):
        result = self.movements.transfer(DEMO_USER_ID, TransferRequest(
            "1111222233334444", 100, PRIMARY, description="Rent"
        ))
        assert result.record.description == "Transfer to 1111222233334444 - Rent"
        assert result.record.category == "transfer"

    def test_bill_description(self):
        result = self.movements.pay_bill(DEMO_USER_ID, BillPaymentRequest(
            "Electricity", 350, bill_reference="INV-42", from_account_number=PRIMARY
        ))
        assert result.record.description == "Electricity Bill Payment (ref INV-42)"
        assert result.record.category == "bill"


class TestSavingsContribution(MovementTestBase):
    """Test moving money into savings goals"""

    def setup_method(self):
        super().setup_method()
        self.goal = self.system.savings_goals.list_goals(DEMO_USER_ID)[0]

    def test_contribution_debits_account_and_grows_goal(self):
        result = self.movements.contribute_to_savings(DEMO_USER_ID, SavingsContributionRequest(
            goal_id=self.goal.id, amount=2500, from_account_number=PRIMARY
        ))

        assert result.success
        assert result.goal.current_amount == self.goal.current_amount + egp('2500')
        assert self.balance(PRIMARY) == egp('47500')
        assert result.record.description == f"Savings Goal Deposit: {self.goal.name}"
        assert self.system.savings_goals.get_goal(DEMO_USER_ID, self.goal.id).current_amount == egp('15000')

    def test_unknown_goal_moves_nothing(self):
        result = self.movements.contribute_to_savings(DEMO_USER_ID, SavingsContributionRequest(
            goal_id="missing", amount=100, from_account_number=PRIMARY
        ))
        assert result.failure.kind == FailureKind.SAVINGS_GOAL_NOT_FOUND
        assert self.balance(PRIMARY) == egp('50000')

    def test_refused_debit_leaves_goal_unchanged(self):
        result = self.movements.contribute_to_savings(DEMO_USER_ID, SavingsContributionRequest(
            goal_id=self.goal.id, amount=20000, from_account_number=BUSINESS
        ))
        assert result.failure.kind == FailureKind.INSUFFICIENT_FUNDS
        assert self.system.savings_goals.get_goal(DEMO_USER_ID, self.goal.id).current_amount == self.goal.current_amount


class TestSideEffects(MovementTestBase):
    """Test audit, events and notifications"""

    def test_posted_and_rejected_are_audited(self):
        self.movements.deposit(DEMO_USER_ID, DepositRequest(amount=10, account_number=PRIMARY))
        self.movements.transfer(DEMO_USER_ID, TransferRequest("1111222233334444", 30000, BUSINESS))

        audit = self.system.audit_trail
        posted = audit.get_events_by_type(AuditEventType.MOVEMENT_POSTED)
        rejected = audit.get_events_by_type(AuditEventType.MOVEMENT_REJECTED)

        assert len(posted) == 1
        assert posted[0].metadata["operation"] == "deposit"
        assert len(rejected) == 1
        assert rejected[0].metadata["error"] == "LIMIT_EXCEEDED"
        assert audit.verify_integrity()["valid"]

    def test_events_are_published(self):
        received = []
        self.system.event_dispatcher.subscribe_all(received.append)

        self.movements.deposit(DEMO_USER_ID, DepositRequest(amount=10, account_number=PRIMARY))
        self.movements.deposit(DEMO_USER_ID, DepositRequest(amount="x", account_number=PRIMARY))

        assert [e.event_type for e in received] == [DomainEvent.MOVEMENT_POSTED, DomainEvent.MOVEMENT_REJECTED]
        assert received[0].data["new_balance"] == "50010.00"

    def test_successful_movement_creates_notification(self):
        self.movements.pay_bill(DEMO_USER_ID, BillPaymentRequest("Electricity", 350, from_account_number=PRIMARY))

        notifications = self.system.notifications.get_notifications(DEMO_USER_ID)
        assert len(notifications) == 1
        assert notifications[0].title == "Bill Paid"
        assert notifications[0].amount == "350.00"

    def test_rejected_movement_creates_no_notification(self):
        self.movements.transfer(DEMO_USER_ID, TransferRequest("1111222233334444", 30000, BUSINESS))
        assert self.system.notifications.get_notifications(DEMO_USER_ID) == []


class TestConcurrency(MovementTestBase):
    """Test serialization of operations on one account"""

    def test_concurrent_transfers_never_overdraw(self):
        self.system.card_settings.update(BUSINESS, spending_limit=None)
        results = []
        lock = threading.Lock()

        def worker():
            for _ in range(10):
                result = self.movements.transfer(DEMO_USER_ID, TransferRequest("1111222233334444", 500, BUSINESS))
                with lock:
                    results.append(result)

        threads = [threading.Thread(target=worker) for _ in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        successes = [r for r in results if r.success]
        # 12500.50 affords 25 debits of 500
        assert len(successes) == 25
        assert all(r.failure.kind == FailureKind.INSUFFICIENT_FUNDS for r in results if not r.success)
        assert self.balance(BUSINESS) == egp('0.50')
        assert self.ledger.replay_balance(BUSINESS) == self.balance(BUSINESS)

    def test_concurrent_freeze_and_debits(self):
        outcomes = []

        def spend():
            for _ in range(20):
                outcomes.append(self.movements.pay_bill(
                    DEMO_USER_ID, BillPaymentRequest("Water", 10, from_account_number=PRIMARY)
                ))

        spender = threading.Thread(target=spend)
        spender.start()
        self.system.card_settings.update(PRIMARY, is_frozen=True)
        spender.join()

        posted = [o for o in outcomes if o.success]
        assert all(not o.success and o.failure.kind == FailureKind.CARD_FROZEN for o in outcomes[len(posted):])
        assert self.balance(PRIMARY) == egp('50000') - egp(str(10 * len(posted)))
