"""
User Directory Module

Online banking users and registration. Registering a user also opens their
first savings account with the configured opening balance and default card
controls. Password hashing here is demo-grade.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, Optional
import hashlib
import hmac
import re
import secrets
import threading

from .accounts import Account, AccountManager, AccountType
from .audit import AuditTrail, AuditEventType
from .cards import CardSettings, normalize_spending_limit
from .config import SobsConfig, get_config
from .currency import Currency, to_decimal
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord


DEFAULT_CARD_NAME = "My Card"

_EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


@dataclass
class User(StorageRecord):
    """Online banking user"""
    email: str
    full_name: str
    phone: Optional[str] = None
    password_hash: Optional[str] = None
    password_salt: Optional[str] = None

    def to_public_dict(self) -> Dict:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "phone": self.phone,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'User':
        data = dict(data)
        data.pop('email_key', None)
        data['created_at'] = datetime.fromisoformat(data['created_at'])
        data['updated_at'] = datetime.fromisoformat(data['updated_at'])
        return cls(**data)


@dataclass(frozen=True)
class DefaultAccountTerms:
    """Currency, opening balance and card controls of a registration account"""
    currency: Currency
    opening_balance: Decimal
    card_settings: CardSettings


class UserDirectory:
    """Registers and authenticates users"""

    def __init__(
        self,
        storage: StorageInterface,
        accounts: AccountManager,
        audit_trail: AuditTrail,
        config: Optional[SobsConfig] = None
    ):
        self.storage = storage
        self.accounts = accounts
        self.audit_trail = audit_trail
        self.config = config or get_config()
        self.table_name = "users"
        self.storage.create_index(self.table_name, "email_key")
        self.logger = get_logger("sobs.users")
        self._lock = threading.Lock()

    def register_user(
        self,
        email: str,
        password: str,
        full_name: str,
        phone: Optional[str] = None
    ) -> User:
        """
        Register a user and open their default savings account

        Either both the user and the account exist afterwards or neither does.

        Raises:
            ValueError: Invalid input, email already registered, or unusable
                default account configuration
        """
        terms = self._default_account_terms()
        user = self._insert_user(email, password, full_name, phone)
        try:
            self.open_default_account(user, terms)
        except Exception:
            self.storage.delete(self.table_name, user.id)
            log_action(
                self.logger, "error", f"Registration of {user.id} undone: default account could not be opened",
                user_id=user.id, action="register_user", resource=f"user:{user.id}"
            )
            raise
        self._record_registration(user)
        return user

    def create_user(
        self,
        email: str,
        password: str,
        full_name: str,
        phone: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> User:
        """Create the user record only; no account is opened"""
        user = self._insert_user(email, password, full_name, phone, user_id)
        self._record_registration(user)
        return user

    def open_default_account(self, user: User, terms: Optional[DefaultAccountTerms] = None) -> Account:
        """First savings account of a newly registered user"""
        terms = terms or self._default_account_terms()
        return self.accounts.create_account(
            user_id=user.id,
            account_type=AccountType.SAVINGS,
            currency=terms.currency,
            display_name=DEFAULT_CARD_NAME,
            opening_balance=terms.opening_balance,
            card_settings=terms.card_settings
        )

    def _default_account_terms(self) -> DefaultAccountTerms:
        """Read the configured defaults, failing before anything is written"""
        code = (self.config.default_currency or "").strip().upper()
        try:
            currency = Currency[code]
        except KeyError:
            raise ValueError(f"Unknown default currency: {self.config.default_currency!r}")

        opening = to_decimal(self.config.registration_opening_balance)
        if opening < 0:
            raise ValueError("Registration opening balance cannot be negative")

        limit = normalize_spending_limit(self.config.default_spending_limit or None)
        return DefaultAccountTerms(currency, opening, CardSettings(spending_limit=limit))

    def _insert_user(
        self,
        email: str,
        password: str,
        full_name: str,
        phone: Optional[str],
        user_id: Optional[str] = None
    ) -> User:
        email = (email or "").strip()
        if not _EMAIL_PATTERN.match(email):
            raise ValueError(f"Invalid email address: {email!r}")
        if not password:
            raise ValueError("Password is required")
        if not full_name or not full_name.strip():
            raise ValueError("Full name is required")

        with self._lock:
            if self.get_user_by_email(email) is not None:
                raise ValueError("Email already registered")

            now = datetime.now(timezone.utc)
            salt = self._generate_salt()
            user = User(
                id=user_id or f"USR{secrets.token_hex(6).upper()}",
                created_at=now,
                updated_at=now,
                email=email,
                full_name=full_name.strip(),
                phone=phone,
                password_hash=self._hash_password(password, salt),
                password_salt=salt
            )
            self.storage.save(self.table_name, user.id, self._user_to_dict(user))
        return user

    def _record_registration(self, user: User) -> None:
        self.audit_trail.log_event(
            event_type=AuditEventType.USER_REGISTERED,
            entity_type="user",
            entity_id=user.id,
            user_id=user.id,
            metadata={"email": user.email}
        )
        log_action(
            self.logger, "info", f"User registered: {user.id}",
            user_id=user.id, action="register_user", resource=f"user:{user.id}"
        )

    def get_user(self, user_id: str) -> Optional[User]:
        data = self.storage.load(self.table_name, user_id)
        if data:
            return User.from_dict(data)
        return None

    def get_user_by_email(self, email: str) -> Optional[User]:
        """Emails are matched case-insensitively"""
        matches = self.storage.find(self.table_name, {"email_key": email.strip().lower()})
        if matches:
            return User.from_dict(matches[0])
        return None

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the user if the credentials match, otherwise None"""
        user = self.get_user_by_email(email or "")
        if user is None or not self._verify_password(user, password or ""):
            log_action(self.logger, "warning", "Login failed", action="login", extra={"email": email})
            return None
        return user

    def _user_to_dict(self, user: User) -> Dict:
        result = user.to_dict()
        result['email_key'] = user.email.lower()
        return result

    def _generate_salt(self) -> str:
        return secrets.token_hex(16)

    def _hash_password(self, password: str, salt: str) -> str:
        return hashlib.scrypt(
            password.encode(),
            salt=salt.encode(),
            n=16384, r=8, p=1
        ).hex()

    def _verify_password(self, user: User, password: str) -> bool:
        if not user.password_hash or not user.password_salt:
            return False
        expected = self._hash_password(password, user.password_salt)
        return hmac.compare_digest(expected, user.password_hash)
