"""
Demo data

Seeds the demo user with two EGP accounts, their card controls, three
savings goals, saved beneficiaries and two monthly standing orders.
Seeding is idempotent: an existing demo user is left alone.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from .accounts import AccountType
from .cards import CardSettings
from .currency import Currency, Money
from .logging_config import get_logger
from .scheduled import PaymentFrequency, ScheduledPaymentType
from .system import BankingSystem
from .users import User


DEMO_USER_ID = "USR001"
DEMO_EMAIL = "seif@example.com"
DEMO_PASSWORD = "SecurePass123!"
DEMO_FULL_NAME = "Seif Alaa"
DEMO_PHONE = "+201001234567"

DEMO_ACCOUNTS = [
    {
        "account_number": "12345678901234",
        "account_type": AccountType.SAVINGS,
        "display_name": "Primary Card",
        "opening_balance": Decimal("50000.00"),
        "card_settings": CardSettings(
            is_frozen=False,
            spending_limit=Decimal("50000"),
            online_purchases=True,
            international_transactions=True,
            contactless_payments=True
        ),
    },
    {
        "account_number": "99887766554433",
        "account_type": AccountType.CHECKING,
        "display_name": "Business Card",
        "opening_balance": Decimal("12500.50"),
        "card_settings": CardSettings(
            is_frozen=False,
            spending_limit=Decimal("25000"),
            online_purchases=True,
            international_transactions=False,
            contactless_payments=True
        ),
    },
]

# (name, icon, target, saved so far)
DEMO_SAVINGS_GOALS = [
    ("Dream Vacation", "vacation", Decimal("30000"), Decimal("12500")),
    ("Emergency Fund", "emergency", Decimal("50000"), Decimal("35000")),
    ("New Car", "car", Decimal("200000"), Decimal("45000")),
]

# (name, account number, bank, nickname, favorite)
DEMO_BENEFICIARIES = [
    ("Mohamed Ali", "9876543210123456", "CIB", "Brother", True),
    ("Sara Ahmed", "5555666677778888", "QNB", "Mom", True),
    ("Landlord Office", "1111222233334444", "NBE", "Rent", False),
    ("Fatma Hassan", "4444333322221111", "HSBC", "Sister", True),
    ("Omar Khaled", "7777888899990000", "Banque Misr", "Best Friend", False),
    ("Youssef Mahmoud", "1234123412341234", "Alex Bank", "Colleague", False),
    ("Nour El-Din", "9999000011112222", "Arab African Bank", "Trainer", False),
    ("Laila Mostafa", "6666777788889999", "Faisal Islamic Bank", "Wife", True),
]

# (name, type, amount, recipient, frequency, start date)
DEMO_SCHEDULED_PAYMENTS = [
    ("Monthly Rent", ScheduledPaymentType.RENT, Decimal("8000"), "1111222233334444",
     PaymentFrequency.MONTHLY, date(2025, 1, 1)),
    ("Internet Bill", ScheduledPaymentType.BILL, Decimal("350"), "5555666677778888",
     PaymentFrequency.MONTHLY, date(2025, 1, 15)),
]

logger = get_logger("sobs.seed")


def seed_demo_data(system: BankingSystem) -> Optional[User]:
    """
    Create the demo user and its accounts

    Returns:
        The demo user, or None if it already existed
    """
    if system.user_directory.get_user(DEMO_USER_ID) is not None:
        return None

    user = system.user_directory.create_user(
        email=DEMO_EMAIL,
        password=DEMO_PASSWORD,
        full_name=DEMO_FULL_NAME,
        phone=DEMO_PHONE,
        user_id=DEMO_USER_ID
    )

    for demo_account in DEMO_ACCOUNTS:
        system.account_manager.create_account(
            user_id=user.id,
            account_type=demo_account["account_type"],
            currency=Currency.EGP,
            display_name=demo_account["display_name"],
            opening_balance=demo_account["opening_balance"],
            account_number=demo_account["account_number"],
            card_settings=demo_account["card_settings"]
        )

    for name, icon, target, saved in DEMO_SAVINGS_GOALS:
        system.savings_goals.create_goal(
            user_id=user.id,
            name=name,
            icon=icon,
            target_amount=Money(target, Currency.EGP),
            current_amount=Money(saved, Currency.EGP)
        )

    for name, account_number, bank, nickname, favorite in DEMO_BENEFICIARIES:
        system.beneficiaries.add_beneficiary(
            user_id=user.id,
            name=name,
            account_number=account_number,
            bank=bank,
            nickname=nickname,
            is_favorite=favorite
        )

    primary = DEMO_ACCOUNTS[0]["account_number"]
    for name, payment_type, amount, recipient, frequency, start in DEMO_SCHEDULED_PAYMENTS:
        system.scheduled_payments.create_payment(
            user_id=user.id,
            name=name,
            payment_type=payment_type,
            amount=Money(amount, Currency.EGP),
            recipient_account=recipient,
            frequency=frequency,
            start_date=start,
            from_account_number=primary
        )

    logger.info(f"Demo data seeded for {user.email}")
    return user
