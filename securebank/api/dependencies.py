"""
Request dependencies and the banking system container
"""

from datetime import timedelta
from typing import Optional

from fastapi import Depends, Request

from ..accounts import AccountService
from ..auth import AuthFlowController
from ..config import BankConfig
from ..encryption import create_encryption_provider
from ..errors import Unauthorized
from ..ledger import LedgerStore
from ..passwords import PasswordHasher
from ..sessions import SessionResolver, SessionStore
from ..storage import StorageInterface, create_storage
from ..tokens import TokenCodec
from ..transport import RequestTransport
from ..users import AuthenticatedIdentity, UserStore
from ..validation import PasswordPolicy


class BankingSystem:
    """SecureBank components wired over one storage backend"""

    def __init__(self, settings: BankConfig, storage: Optional[StorageInterface] = None):
        self.config = settings
        self.storage = storage or create_storage(settings.database_url)

        lifetime = timedelta(days=settings.session_lifetime_days)

        self.users = UserStore(self.storage)
        self.sessions = SessionStore(self.storage)
        self.ledger = LedgerStore(self.storage)
        self.codec = TokenCodec(settings.jwt_secret, settings.jwt_algorithm, lifetime)
        self.encryption = create_encryption_provider(settings.encryption_key)

        self.resolver = SessionResolver(
            self.codec, self.sessions, self.users,
            cookie_name=settings.session_cookie_name,
        )
        self.auth = AuthFlowController(
            self.storage, self.users, self.sessions, self.codec,
            PasswordHasher(), self.encryption,
            session_lifetime=lifetime,
            password_policy=PasswordPolicy(min_length=settings.password_min_length),
            cookie_name=settings.session_cookie_name,
            cookie_path=settings.session_cookie_path,
        )
        self.accounts = AccountService(self.ledger)

    def close(self) -> None:
        self.storage.close()


def get_banking_system(request: Request) -> BankingSystem:
    return request.app.state.system


def get_transport(request: Request) -> RequestTransport:
    """Describe the inbound request the way the session resolver reads it"""
    return RequestTransport(
        cookies=dict(request.cookies),
        header_getter=request.headers.get,
    )


def get_identity(
    transport: RequestTransport = Depends(get_transport),
    system: BankingSystem = Depends(get_banking_system),
) -> Optional[AuthenticatedIdentity]:
    return system.resolver.resolve(transport)


def require_identity(
    identity: Optional[AuthenticatedIdentity] = Depends(get_identity),
) -> AuthenticatedIdentity:
    if identity is None:
        raise Unauthorized()
    return identity
