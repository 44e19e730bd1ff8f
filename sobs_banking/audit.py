"""
Audit Trail Module

Append-only log of user, account, card and money movement changes. Each
event carries the SHA-256 digest of the previous one, so editing or removing
a stored event breaks the chain and is reported by ``verify_integrity``.
"""

import hashlib
import json
import threading
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Tuple
from enum import Enum
import uuid

from .storage import StorageInterface, StorageRecord, to_plain


GENESIS_HASH = ""


class AuditEventType(Enum):
    """What happened"""
    USER_REGISTERED = "user_registered"
    ACCOUNT_OPENED = "account_opened"
    CARD_SETTINGS_UPDATED = "card_settings_updated"
    CARD_FROZEN = "card_frozen"
    CARD_UNFROZEN = "card_unfrozen"
    MOVEMENT_POSTED = "movement_posted"
    MOVEMENT_REJECTED = "movement_rejected"
    SAVINGS_GOAL_CREATED = "savings_goal_created"
    BENEFICIARY_ADDED = "beneficiary_added"
    BENEFICIARY_UPDATED = "beneficiary_updated"
    BENEFICIARY_REMOVED = "beneficiary_removed"
    SCHEDULED_PAYMENT_CREATED = "scheduled_payment_created"
    SCHEDULED_PAYMENT_UPDATED = "scheduled_payment_updated"
    SCHEDULED_PAYMENT_DELETED = "scheduled_payment_deleted"


def _digest(payload: Dict[str, Any]) -> str:
    canonical = json.dumps(payload, sort_keys=True, separators=(',', ':'))
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()


@dataclass
class AuditEvent(StorageRecord):
    """One link of the audit chain"""
    event_type: AuditEventType
    entity_type: str
    entity_id: str
    previous_hash: str
    current_hash: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    sequence: int = 0
    user_id: Optional[str] = None

    def __post_init__(self):
        self.metadata = to_plain(self.metadata or {})

    def calculate_hash(self) -> str:
        """Digest over every field except ``updated_at`` and the hash itself"""
        payload = self.to_dict()
        del payload['current_hash']
        del payload['updated_at']
        return _digest(payload)

    def verify_hash(self) -> bool:
        return self.current_hash == self.calculate_hash()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditEvent':
        data = dict(data)
        for key in ('created_at', 'updated_at'):
            data[key] = datetime.fromisoformat(data[key])
        data['event_type'] = AuditEventType(data['event_type'])
        return cls(**data)


class AuditTrail:
    """
    Hash-chained audit trail over a storage table

    The chain head (last sequence number and digest) is read back from storage
    on construction, so a trail rebuilt over existing storage keeps extending
    the same chain.
    """

    def __init__(self, storage: StorageInterface, table_name: str = "audit_events"):
        self.storage = storage
        self.table_name = table_name
        self.storage.create_index(self.table_name, "entity_id")
        self._lock = threading.Lock()
        self._head: Tuple[int, str] = self._read_head()

    def _read_head(self) -> Tuple[int, str]:
        rows = self.storage.load_all(self.table_name)
        if not rows:
            return 0, GENESIS_HASH
        last = max(rows, key=lambda row: row.get('sequence', 0))
        return last.get('sequence', 0), last.get('current_hash', GENESIS_HASH)

    def log_event(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None
    ) -> AuditEvent:
        """
        Append an event to the chain

        Args:
            event_type: What happened
            entity_type: Kind of entity it happened to ("account", "user", ...)
            entity_id: Identifier of that entity
            metadata: Event details; Decimal, datetime and Enum values are
                stored as strings
            user_id: Acting user, if any

        Returns:
            The stored event
        """
        with self._lock:
            sequence, previous_hash = self._head
            now = datetime.now(timezone.utc)
            event = AuditEvent(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                previous_hash=previous_hash,
                current_hash="",
                metadata=metadata or {},
                sequence=sequence + 1,
                user_id=user_id
            )
            event.current_hash = event.calculate_hash()
            self.storage.save(self.table_name, event.id, event.to_dict())
            self._head = (event.sequence, event.current_hash)
            return event

    def _load_sorted(self, rows: List[Dict[str, Any]]) -> List[AuditEvent]:
        return sorted((AuditEvent.from_dict(row) for row in rows), key=lambda e: e.sequence)

    def get_all_events(self) -> List[AuditEvent]:
        return self._load_sorted(self.storage.load_all(self.table_name))

    def get_events_for_entity(
        self,
        entity_type: str,
        entity_id: str,
        limit: Optional[int] = None
    ) -> List[AuditEvent]:
        """Events for one entity in chain order; ``limit`` keeps the latest N"""
        events = self._load_sorted(self.storage.find(
            self.table_name, {'entity_type': entity_type, 'entity_id': entity_id}
        ))
        return events[-limit:] if limit else events

    def get_events_by_type(self, event_type: AuditEventType) -> List[AuditEvent]:
        return self._load_sorted(self.storage.find(self.table_name, {'event_type': event_type.value}))

    def count_events(self) -> int:
        return self.storage.count(self.table_name)

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Walk the chain and report every broken link

        Returns:
            ``valid`` flag, ``total_events``, plus ``hash_errors`` (events whose
            stored digest no longer matches their content) and ``chain_breaks``
            (events not pointing at their predecessor's digest)
        """
        events = self.get_all_events()
        hash_errors = []
        chain_breaks = []

        expected_previous = GENESIS_HASH
        for position, event in enumerate(events):
            recomputed = event.calculate_hash()
            if recomputed != event.current_hash:
                hash_errors.append({
                    'event_id': event.id,
                    'position': position,
                    'expected_hash': recomputed,
                    'actual_hash': event.current_hash
                })
            if event.previous_hash != expected_previous:
                chain_breaks.append({
                    'event_id': event.id,
                    'position': position,
                    'expected_previous_hash': expected_previous,
                    'actual_previous_hash': event.previous_hash
                })
            expected_previous = event.current_hash

        return {
            'valid': not hash_errors and not chain_breaks,
            'total_events': len(events),
            'hash_errors': hash_errors,
            'chain_breaks': chain_breaks
        }
