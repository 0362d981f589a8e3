"""
User Records

Identity records created at signup. The stored row carries the password
digest and the SSN encryption envelope; everything handed to callers goes
through ``AuthenticatedIdentity``, which has no slot for either.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from .storage import StorageInterface, StorageRecord, utc_now


@dataclass
class User(StorageRecord):
    """Stored user row, including secrets"""
    email: str
    password_hash: str
    first_name: str
    last_name: str
    phone_number: str
    date_of_birth: str
    ssn: str  # encryption envelope, never plaintext
    address: str
    city: str
    state: str
    zip_code: str

    def sanitized(self) -> 'AuthenticatedIdentity':
        return AuthenticatedIdentity(
            id=self.id,
            email=self.email,
            first_name=self.first_name,
            last_name=self.last_name,
            phone_number=self.phone_number,
            date_of_birth=self.date_of_birth,
            address=self.address,
            city=self.city,
            state=self.state,
            zip_code=self.zip_code,
            created_at=self.created_at,
        )


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """A user as seen by request handlers: no credential, no PII envelope"""
    id: int
    email: str
    first_name: str
    last_name: str
    phone_number: str
    date_of_birth: str
    address: str
    city: str
    state: str
    zip_code: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "phoneNumber": self.phone_number,
            "dateOfBirth": self.date_of_birth,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zipCode": self.zip_code,
            "createdAt": self.created_at.isoformat(),
        }


class UserStore:
    """Persistence for user rows"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.users_table = "users"

    def create(self, email: str, password_hash: str, ssn_envelope: str,
               profile: Dict[str, str]) -> int:
        """Insert a user row and return its id"""
        data = {
            "email": email,
            "password_hash": password_hash,
            "ssn": ssn_envelope,
            "created_at": utc_now().isoformat(),
        }
        data.update(profile)
        return self.storage.insert(self.users_table, data)

    def get(self, user_id: int) -> Optional[User]:
        data = self.storage.load(self.users_table, user_id)
        if data:
            return User.from_dict(data)
        return None

    def get_by_email(self, email: str) -> Optional[User]:
        data = self.storage.find_one(self.users_table, {"email": email})
        if data:
            return User.from_dict(data)
        return None

    def email_exists(self, email: str) -> bool:
        return self.storage.find_one(self.users_table, {"email": email}) is not None
