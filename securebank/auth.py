"""
Authentication Flows

Signup, login, logout and "who am I" for a single request. Each flow takes
the request's resolved identity explicitly (``None`` when anonymous) and
finishes in one call. Issuing a session revokes every earlier session of the
same user inside the same unit of work, so a user never holds more than one
live session.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from .encryption import EncryptionProvider, encrypt_ssn
from .errors import (
    AlreadyAuthenticated, DuplicateAccount, InternalError, InvalidCredentials,
)
from .logging_config import get_logger, log_action
from .passwords import PasswordHasher
from .sessions import SessionStore
from .storage import StorageInterface
from .tokens import TokenCodec
from .transport import RequestTransport, SESSION_COOKIE, SessionCookie, extract_session_token
from .users import AuthenticatedIdentity, UserStore
from .validation import PasswordPolicy, normalize_email, validate_signup

logger = get_logger("securebank.auth")


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful signup or login"""
    user: AuthenticatedIdentity
    token: str
    cookie: SessionCookie
    notifications: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class LogoutResult:
    success: bool
    message: str
    cookie: SessionCookie


class AuthFlowController:
    """Orchestrates signup, login and logout"""

    def __init__(self, storage: StorageInterface, users: UserStore, sessions: SessionStore,
                 codec: TokenCodec, hasher: PasswordHasher, encryption: EncryptionProvider,
                 session_lifetime: timedelta = timedelta(days=7),
                 password_policy: Optional[PasswordPolicy] = None,
                 cookie_name: str = SESSION_COOKIE, cookie_path: str = "/",
                 clock: Optional[Callable[[], datetime]] = None):
        self.storage = storage
        self.users = users
        self.sessions = sessions
        self.codec = codec
        self.hasher = hasher
        self.encryption = encryption
        self.session_lifetime = session_lifetime
        self.password_policy = password_policy or PasswordPolicy()
        self.cookie_name = cookie_name
        self.cookie_path = cookie_path
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        # Dummy digest so unknown emails cost the same as a wrong password
        self._dummy_digest = hasher.hash("dummy-password-for-timing")

    def _issue_session(self, user_id: int) -> SessionCookie:
        """Revoke the user's prior sessions and create exactly one new one"""
        token = self.codec.issue(user_id)
        expires_at = self._clock() + self.session_lifetime
        with self.storage.atomic():
            revoked = self.sessions.delete_all_for_user(user_id)
            self.sessions.create(user_id, token, expires_at)
        if revoked:
            logger.info("Revoked %d prior session(s)", revoked, extra={"user_id": user_id})
        return SessionCookie.issue(
            token, int(self.session_lifetime.total_seconds()),
            name=self.cookie_name, path=self.cookie_path,
        )

    def signup(self, fields: Mapping[str, Any],
               identity: Optional[AuthenticatedIdentity]) -> AuthResult:
        """
        Register a new user and sign them in.

        Raises:
            AlreadyAuthenticated: The request already carries a live session
            ValidationError: One or more fields are invalid (all are reported)
            DuplicateAccount: The normalized email is already registered
            InternalError: The user row could not be read back
        """
        if identity is not None:
            raise AlreadyAuthenticated()

        signup = validate_signup(fields, self.password_policy)
        password_hash = self.hasher.hash(signup.password)
        ssn_envelope = encrypt_ssn(self.encryption, signup.ssn)

        with self.storage.atomic():
            if self.users.email_exists(signup.email):
                raise DuplicateAccount()

            user_id = self.users.create(signup.email, password_hash, ssn_envelope, signup.profile())
            user = self.users.get(user_id)
            if user is None:
                raise InternalError("Failed to create user")

            cookie = self._issue_session(user.id)

        log_action(logger, "info", "User signed up", user_id=user.id,
                   action="signup", resource="auth")
        return AuthResult(
            user=user.sanitized(), token=cookie.value, cookie=cookie,
            notifications=signup.notifications,
        )

    def login(self, email: str, password: str,
              identity: Optional[AuthenticatedIdentity]) -> AuthResult:
        """
        Authenticate by email and password.

        Raises:
            AlreadyAuthenticated: The request already carries a live session
            InvalidCredentials: Unknown email or wrong password, indistinguishably
        """
        if identity is not None:
            raise AlreadyAuthenticated()

        user = self.users.get_by_email(normalize_email(email or ""))
        if user is None:
            self.hasher.verify(password or "", self._dummy_digest)
            log_action(logger, "warning", "Login failed", action="login_failed", resource="auth")
            raise InvalidCredentials()

        if not self.hasher.verify(password or "", user.password_hash):
            log_action(logger, "warning", "Login failed", user_id=user.id,
                       action="login_failed", resource="auth")
            raise InvalidCredentials()

        cookie = self._issue_session(user.id)
        log_action(logger, "info", "User logged in", user_id=user.id,
                   action="login", resource="auth")
        return AuthResult(user=user.sanitized(), token=cookie.value, cookie=cookie)

    def logout(self, identity: Optional[AuthenticatedIdentity],
               transport: Optional[RequestTransport]) -> LogoutResult:
        """Delete the request's session; succeeds even when there is none"""
        cookie = SessionCookie.clear(name=self.cookie_name, path=self.cookie_path)
        if identity is None:
            return LogoutResult(success=True, message="No active session", cookie=cookie)

        token = extract_session_token(transport, self.cookie_name)
        if token:
            self.sessions.delete_by_token(token)

        log_action(logger, "info", "User logged out", user_id=identity.id,
                   action="logout", resource="auth")
        return LogoutResult(success=True, message="Logged out successfully", cookie=cookie)

    def me(self, identity: Optional[AuthenticatedIdentity]) -> Optional[AuthenticatedIdentity]:
        return identity
