"""
Session Management Module

Persisted sessions and request-time session resolution.

``SessionStore`` only stores rows; it never decides whether a session is
alive. ``SessionResolver`` owns that decision: it captures one timestamp per
resolution and treats a session as alive only while ``expires_at > now``.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .errors import InvalidToken
from .logging_config import get_logger
from .storage import StorageInterface, StorageRecord, utc_now
from .tokens import TokenCodec
from .transport import RequestTransport, SESSION_COOKIE, extract_session_token
from .users import AuthenticatedIdentity, UserStore

logger = get_logger("securebank.sessions")


@dataclass
class Session(StorageRecord):
    """User authentication session"""
    token: str
    user_id: int
    expires_at: datetime

    datetime_fields = ('created_at', 'expires_at')

    def is_alive_at(self, now: datetime) -> bool:
        """Expiry is exclusive: a session is dead at its exact expiry instant"""
        return self.expires_at > now


class SessionStore:
    """Persistence for issued sessions"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.sessions_table = "sessions"

    def create(self, user_id: int, token: str, expires_at: datetime) -> Session:
        with self.storage.atomic():
            now = utc_now()
            data = {
                "token": token,
                "user_id": user_id,
                "expires_at": expires_at.isoformat(),
                "created_at": now.isoformat(),
            }
            session_id = self.storage.insert(self.sessions_table, data)
            return Session(
                id=session_id, created_at=now, token=token,
                user_id=user_id, expires_at=expires_at,
            )

    def find_by_token(self, token: str) -> Optional[Session]:
        data = self.storage.find_one(self.sessions_table, {"token": token})
        if data:
            return Session.from_dict(data)
        return None

    def delete_by_token(self, token: str) -> int:
        with self.storage.atomic():
            return self.storage.delete_where(self.sessions_table, {"token": token})

    def delete_all_for_user(self, user_id: int) -> int:
        with self.storage.atomic():
            return self.storage.delete_where(self.sessions_table, {"user_id": user_id})

    def list_for_user(self, user_id: int) -> List[Session]:
        return [
            Session.from_dict(data)
            for data in self.storage.find(self.sessions_table, {"user_id": user_id})
        ]

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete every session that is no longer alive at ``now``"""
        now = now or utc_now()
        removed = 0
        with self.storage.atomic():
            for data in self.storage.load_all(self.sessions_table):
                if not Session.from_dict(data).is_alive_at(now):
                    self.storage.delete(self.sessions_table, data["id"])
                    removed += 1
        if removed:
            logger.info("Purged %d expired sessions", removed)
        return removed


class SessionResolver:
    """Resolve an inbound request to the identity that owns its session"""

    def __init__(self, codec: TokenCodec, sessions: SessionStore, users: UserStore,
                 clock: Optional[Callable[[], datetime]] = None,
                 cookie_name: str = SESSION_COOKIE):
        self.codec = codec
        self.sessions = sessions
        self.users = users
        self.cookie_name = cookie_name
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def extract_token(self, transport: Optional[RequestTransport]) -> Optional[str]:
        return extract_session_token(transport, self.cookie_name)

    def resolve(self, transport: Optional[RequestTransport]) -> Optional[AuthenticatedIdentity]:
        """Return the sanitized owner of the request's live session, or None"""
        now = self._clock()
        token = self.extract_token(transport)
        if not token:
            return None

        try:
            claimed_user_id = self.codec.verify(token)
        except InvalidToken:
            return None

        session = self.sessions.find_by_token(token)
        if session is None:
            return None

        if not session.is_alive_at(now):
            # lazily drop rows that outlived their expiry
            self.sessions.delete_by_token(token)
            logger.info("Expired session removed", extra={"user_id": session.user_id})
            return None

        if session.user_id != claimed_user_id:
            logger.warning("Session owner does not match token subject",
                           extra={"user_id": session.user_id})
            return None

        user = self.users.get(session.user_id)
        if user is None:
            return None

        remaining = (session.expires_at - now).total_seconds()
        if remaining < 60:
            logger.info("Session about to expire", extra={"user_id": user.id})

        return user.sanitized()
