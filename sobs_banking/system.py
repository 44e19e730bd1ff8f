"""
Banking system container

Wires every component against one storage instance. The HTTP layer keeps one
BankingSystem per application; tests build their own.
"""

from typing import Optional

from .accounts import AccountManager
from .analytics import AnalyticsEngine
from .audit import AuditTrail
from .beneficiaries import BeneficiaryManager
from .cards import CardSettingsStore
from .config import SobsConfig, get_config
from .events import EventDispatcher
from .ledger import LedgerStore
from .movements import MoneyMovementService
from .notifications import NotificationCenter
from .recorder import TransactionRecorder
from .savings import SavingsGoalManager
from .scheduled import ScheduledPaymentManager
from .storage import InMemoryStorage, StorageInterface
from .users import UserDirectory


class BankingSystem:
    """Core banking system with all components initialized"""

    def __init__(self, storage: Optional[StorageInterface] = None, config: Optional[SobsConfig] = None):
        self.config = config or get_config()
        self.storage = storage or InMemoryStorage()

        # Core components
        self.audit_trail = AuditTrail(self.storage)
        self.recorder = TransactionRecorder(self.storage)
        self.ledger = LedgerStore(self.storage, self.recorder)
        self.card_settings = CardSettingsStore(self.storage, self.audit_trail)
        self.account_manager = AccountManager(self.storage, self.ledger, self.card_settings, self.audit_trail)
        self.savings_goals = SavingsGoalManager(self.storage, self.audit_trail)
        self.beneficiaries = BeneficiaryManager(self.storage, self.audit_trail)
        self.scheduled_payments = ScheduledPaymentManager(self.storage, self.audit_trail)
        self.user_directory = UserDirectory(self.storage, self.account_manager, self.audit_trail, self.config)

        # Money movement and its subscribers
        self.event_dispatcher = EventDispatcher()
        self.movements = MoneyMovementService(
            self.account_manager, self.ledger, self.card_settings,
            self.savings_goals, self.audit_trail, self.event_dispatcher
        )
        self.notifications = NotificationCenter(self.storage)
        if self.config.enable_notifications:
            self.notifications.subscribe(self.event_dispatcher)

        self.analytics = AnalyticsEngine(self.ledger)
