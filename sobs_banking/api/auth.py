"""
Authentication and authorization dependencies

Demo-mode identity: login starts a session and returns its one-time code to
the caller, verifying the code issues a bearer token, and every protected
endpoint resolves that token to a user id. Not real cryptographic
authentication.
"""

from datetime import datetime, timezone, timedelta
from dataclasses import dataclass
from typing import Dict, Optional
import secrets
import threading

from fastapi import Depends, Header, HTTPException, Request, status

from ..logging_config import get_logger
from ..system import BankingSystem


@dataclass(frozen=True)
class PendingLogin:
    """Session waiting for its one-time code"""
    session_id: str
    user_id: str
    otp: str
    expires_at: datetime


@dataclass(frozen=True)
class Session:
    token: str
    user_id: str


class DemoSessionStore:
    """In-memory sessions, one-time codes and bearer tokens"""

    def __init__(self, otp_length: int = 6, otp_expiry_seconds: int = 300):
        self.otp_length = otp_length
        self.otp_expiry = timedelta(seconds=otp_expiry_seconds)
        self._pending: Dict[str, PendingLogin] = {}
        self._tokens: Dict[str, str] = {}
        self._lock = threading.Lock()
        self.logger = get_logger("sobs.auth")

    def start_login(self, user_id: str, now: Optional[datetime] = None) -> PendingLogin:
        now = now or datetime.now(timezone.utc)
        pending = PendingLogin(
            session_id=secrets.token_hex(8),
            user_id=user_id,
            otp="".join(secrets.choice("0123456789") for _ in range(self.otp_length)),
            expires_at=now + self.otp_expiry
        )
        with self._lock:
            self._pending[pending.session_id] = pending
        self.logger.info(f"OTP issued for {user_id} (session {pending.session_id})")
        return pending

    def verify_otp(self, session_id: str, otp: str, now: Optional[datetime] = None) -> Optional[Session]:
        """
        Consume the session's code and issue a bearer token

        Returns:
            The new Session, or None if the session is unknown, the code is
            wrong or the code has expired
        """
        now = now or datetime.now(timezone.utc)
        with self._lock:
            pending = self._pending.get(session_id)
            if pending is None:
                return None
            if now > pending.expires_at:
                del self._pending[session_id]
                return None
            if not secrets.compare_digest(pending.otp, str(otp)):
                return None

            del self._pending[session_id]
            token = secrets.token_urlsafe(32)
            self._tokens[token] = pending.user_id

        return Session(token=token, user_id=pending.user_id)

    def resolve_token(self, token: str) -> Optional[str]:
        with self._lock:
            return self._tokens.get(token)

    def revoke(self, token: str) -> bool:
        with self._lock:
            return self._tokens.pop(token, None) is not None


# Dependency to get banking system
def get_banking_system(request: Request) -> BankingSystem:
    return request.app.state.banking_system


def get_session_store(request: Request) -> DemoSessionStore:
    return request.app.state.sessions


def get_current_user_id(
    authorization: Optional[str] = Header(None),
    sessions: DemoSessionStore = Depends(get_session_store)
) -> str:
    """Resolve ``Authorization: Bearer <token>`` to the acting user id"""
    token = None
    if authorization:
        scheme, _, value = authorization.partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            token = value.strip()

    user_id = sessions.resolve_token(token) if token else None
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "UNAUTHENTICATED", "message": "Authentication required"},
            headers={"WWW-Authenticate": "Bearer"}
        )
    return user_id
