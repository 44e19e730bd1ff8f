"""
Beneficiaries Module

Saved transfer recipients, per user. A beneficiary is only an address book
entry; transfers to it still go through the money movement service.
"""

from datetime import datetime, timezone
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional
import threading
import uuid

from .audit import AuditTrail, AuditEventType
from .errors import BeneficiaryNotFound
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord


EDITABLE_FIELDS = frozenset({"name", "account_number", "bank", "nickname", "is_favorite"})


@dataclass
class Beneficiary(StorageRecord):
    """Saved recipient of a user's transfers"""
    user_id: str
    name: str
    account_number: str
    bank: Optional[str] = None
    nickname: Optional[str] = None
    is_favorite: bool = False

    @property
    def label(self) -> str:
        return self.nickname or self.name

    @classmethod
    def from_dict(cls, data: Dict) -> 'Beneficiary':
        data = dict(data)
        data['created_at'] = datetime.fromisoformat(data['created_at'])
        data['updated_at'] = datetime.fromisoformat(data['updated_at'])
        return cls(**data)


def _required(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Beneficiary {field_name.replace('_', ' ')} is required")
    return value.strip()


def _optional(value: Any, field_name: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"Beneficiary {field_name} must be text")
    return value.strip() or None


def _clean(changes: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown beneficiary fields: {', '.join(sorted(unknown))}")

    cleaned = {}
    for name, value in changes.items():
        if name in ("name", "account_number"):
            cleaned[name] = _required(value, name)
        elif name == "is_favorite":
            if not isinstance(value, bool):
                raise ValueError("is_favorite must be true or false")
            cleaned[name] = value
        else:
            cleaned[name] = _optional(value, name)
    return cleaned


class BeneficiaryManager:
    """Adds, edits and removes a user's saved recipients"""

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.table_name = "beneficiaries"
        self.storage.create_index(self.table_name, "user_id")
        self._lock = threading.Lock()
        self.logger = get_logger("sobs.beneficiaries")

    def add_beneficiary(
        self,
        user_id: str,
        name: str,
        account_number: str,
        bank: Optional[str] = None,
        nickname: Optional[str] = None,
        is_favorite: bool = False
    ) -> Beneficiary:
        """
        Save a new recipient

        Raises:
            ValueError: Missing name or account number, or the account
                number is already saved for this user
        """
        values = _clean({
            "name": name,
            "account_number": account_number,
            "bank": bank,
            "nickname": nickname,
            "is_favorite": is_favorite,
        })

        with self._lock:
            self._check_unique(user_id, values["account_number"])
            now = datetime.now(timezone.utc)
            beneficiary = Beneficiary(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                user_id=user_id,
                **values
            )
            self.storage.save(self.table_name, beneficiary.id, beneficiary.to_dict())

        self.audit_trail.log_event(
            event_type=AuditEventType.BENEFICIARY_ADDED,
            entity_type="beneficiary",
            entity_id=beneficiary.id,
            user_id=user_id,
            metadata={"account_number": beneficiary.account_number}
        )
        log_action(
            self.logger, "info", f"Beneficiary added: {beneficiary.id}",
            user_id=user_id, action="add_beneficiary", resource=f"beneficiary:{beneficiary.id}"
        )
        return beneficiary

    def get_beneficiary(self, user_id: str, beneficiary_id: str) -> Beneficiary:
        """
        Raises:
            BeneficiaryNotFound: Unknown id, or a beneficiary of another user
        """
        data = self.storage.load(self.table_name, beneficiary_id)
        if data is None or data["user_id"] != user_id:
            raise BeneficiaryNotFound(beneficiary_id)
        return Beneficiary.from_dict(data)

    def list_beneficiaries(self, user_id: str, favorites_only: bool = False) -> List[Beneficiary]:
        filters = {"user_id": user_id}
        if favorites_only:
            filters["is_favorite"] = True
        beneficiaries = [Beneficiary.from_dict(d) for d in self.storage.find(self.table_name, filters)]
        beneficiaries.sort(key=lambda b: b.created_at)
        return beneficiaries

    def update_beneficiary(self, user_id: str, beneficiary_id: str, **changes: Any) -> Beneficiary:
        """
        Shallow-merge the provided fields into a saved recipient

        Raises:
            BeneficiaryNotFound: Unknown id, or a beneficiary of another user
            ValueError: Unknown field, invalid value or duplicate account number
        """
        cleaned = _clean(changes)

        with self._lock:
            current = self.get_beneficiary(user_id, beneficiary_id)
            if cleaned.get("account_number", current.account_number) != current.account_number:
                self._check_unique(user_id, cleaned["account_number"])
            beneficiary = replace(current, updated_at=datetime.now(timezone.utc), **cleaned)
            self.storage.save(self.table_name, beneficiary.id, beneficiary.to_dict())

        self.audit_trail.log_event(
            event_type=AuditEventType.BENEFICIARY_UPDATED,
            entity_type="beneficiary",
            entity_id=beneficiary.id,
            user_id=user_id,
            metadata={"changes": sorted(cleaned)}
        )
        return beneficiary

    def remove_beneficiary(self, user_id: str, beneficiary_id: str) -> None:
        """
        Raises:
            BeneficiaryNotFound: Unknown id, or a beneficiary of another user
        """
        with self._lock:
            beneficiary = self.get_beneficiary(user_id, beneficiary_id)
            self.storage.delete(self.table_name, beneficiary.id)

        self.audit_trail.log_event(
            event_type=AuditEventType.BENEFICIARY_REMOVED,
            entity_type="beneficiary",
            entity_id=beneficiary.id,
            user_id=user_id
        )
        log_action(
            self.logger, "info", f"Beneficiary removed: {beneficiary.id}",
            user_id=user_id, action="remove_beneficiary", resource=f"beneficiary:{beneficiary.id}"
        )

    def _check_unique(self, user_id: str, account_number: str) -> None:
        if self.storage.find(self.table_name, {"user_id": user_id, "account_number": account_number}):
            raise ValueError(f"Account {account_number} is already a saved beneficiary")
