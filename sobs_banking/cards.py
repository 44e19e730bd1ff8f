"""
Card Settings Module

Per-account card controls: freeze flag, per-transaction spending limit and
channel toggles. The Policy Gate reads these; only an explicit settings
update changes them.
"""

from dataclasses import dataclass, fields, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional
import threading

from .audit import AuditTrail, AuditEventType
from .currency import to_decimal
from .errors import InvalidSettings
from .logging_config import get_logger, log_action
from .storage import StorageInterface


@dataclass(frozen=True)
class CardSettings:
    """
    Immutable snapshot of one account's card controls.

    ``spending_limit`` is a per-transaction ceiling in the account currency;
    None means unlimited. The channel toggles are recorded for the card
    controls screen but no operation enforces them.
    """
    is_frozen: bool = False
    spending_limit: Optional[Decimal] = None
    online_purchases: bool = True
    international_transactions: bool = True
    contactless_payments: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_frozen": self.is_frozen,
            "spending_limit": str(self.spending_limit) if self.spending_limit is not None else None,
            "online_purchases": self.online_purchases,
            "international_transactions": self.international_transactions,
            "contactless_payments": self.contactless_payments,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CardSettings':
        limit = data.get("spending_limit")
        return cls(
            is_frozen=data.get("is_frozen", False),
            spending_limit=Decimal(limit) if limit is not None else None,
            online_purchases=data.get("online_purchases", True),
            international_transactions=data.get("international_transactions", True),
            contactless_payments=data.get("contactless_payments", True),
        )


SETTING_NAMES = frozenset(f.name for f in fields(CardSettings))
_FLAG_NAMES = SETTING_NAMES - {"spending_limit"}


def normalize_spending_limit(value: Any) -> Optional[Decimal]:
    """Coerce a spending limit to Decimal; None means unlimited"""
    if value is None:
        return None
    try:
        limit = to_decimal(value)
    except ValueError as e:
        raise InvalidSettings(f"Invalid spending limit: {e}")
    if limit < 0:
        raise InvalidSettings(f"Spending limit cannot be negative (got {value!r})")
    return limit


class CardSettingsStore:
    """
    Stores card settings keyed by account number.

    Reads return frozen snapshots, so an operation that reads settings once
    sees one consistent value for every policy check even if an update lands
    concurrently.
    """

    def __init__(self, storage: StorageInterface, audit_trail: Optional[AuditTrail] = None):
        self.storage = storage
        self.audit_trail = audit_trail
        self.table_name = "card_settings"
        self._lock = threading.Lock()
        self.logger = get_logger("sobs.cards")

    def get(self, account_number: str) -> CardSettings:
        """Get settings for an account, defaults if none were ever stored"""
        data = self.storage.load(self.table_name, account_number)
        if data is None:
            return CardSettings()
        return CardSettings.from_dict(data)

    def initialize(self, account_number: str, settings: Optional[CardSettings] = None) -> CardSettings:
        """Store the initial settings of a newly opened account"""
        settings = settings or CardSettings()
        self._save(account_number, settings)
        return settings

    def update(self, account_number: str, user_id: Optional[str] = None, **changes: Any) -> CardSettings:
        """
        Shallow-merge the provided keys into the account's settings

        Args:
            account_number: Account whose card is being changed
            user_id: Acting user, for the audit trail
            **changes: Any subset of CardSettings fields

        Returns:
            The full settings after the merge

        Raises:
            InvalidSettings: Unknown key, non-boolean flag or bad limit
        """
        unknown = set(changes) - SETTING_NAMES
        if unknown:
            raise InvalidSettings(f"Unknown card settings: {', '.join(sorted(unknown))}")

        for name in _FLAG_NAMES & set(changes):
            if not isinstance(changes[name], bool):
                raise InvalidSettings(f"{name} must be true or false")
        if "spending_limit" in changes:
            changes["spending_limit"] = normalize_spending_limit(changes["spending_limit"])

        with self._lock:
            previous = self.get(account_number)
            settings = replace(previous, **changes)
            self._save(account_number, settings)

        log_action(
            self.logger, "info", f"Card settings updated for {account_number}",
            user_id=user_id, action="update_card_settings",
            resource=f"account:{account_number}",
            extra={"changes": sorted(changes)}
        )

        if self.audit_trail:
            if changes.get("is_frozen") is True and not previous.is_frozen:
                event_type = AuditEventType.CARD_FROZEN
            elif changes.get("is_frozen") is False and previous.is_frozen:
                event_type = AuditEventType.CARD_UNFROZEN
            else:
                event_type = AuditEventType.CARD_SETTINGS_UPDATED
            self.audit_trail.log_event(
                event_type=event_type,
                entity_type="account",
                entity_id=account_number,
                user_id=user_id,
                metadata={
                    "before": previous.to_dict(),
                    "after": settings.to_dict()
                }
            )

        return settings

    def _save(self, account_number: str, settings: CardSettings) -> None:
        data = settings.to_dict()
        data["id"] = account_number
        data["updated_at"] = datetime.now(timezone.utc).isoformat()
        self.storage.save(self.table_name, account_number, data)
