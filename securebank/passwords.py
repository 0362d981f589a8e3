"""
Credential Hashing

Salted scrypt digests in the form ``scrypt$<salt>$<hex digest>``. The
plaintext never leaves this module and digests are compared in constant time.
"""

import hashlib
import hmac
import secrets

SCHEME = "scrypt"


class PasswordHasher:
    """Hash and verify user passwords"""

    def __init__(self, n: int = 16384, r: int = 8, p: int = 1):
        self.n = n
        self.r = r
        self.p = p

    def _generate_salt(self) -> str:
        """Generate random salt for password hashing"""
        return secrets.token_hex(16)

    def _derive(self, password: str, salt: str) -> str:
        return hashlib.scrypt(
            password.encode(),
            salt=salt.encode(),
            n=self.n, r=self.r, p=self.p
        ).hex()

    def hash(self, password: str) -> str:
        salt = self._generate_salt()
        return f"{SCHEME}${salt}${self._derive(password, salt)}"

    def verify(self, password: str, digest: str) -> bool:
        """Check a plaintext against a stored digest; malformed digests never match"""
        try:
            scheme, salt, expected = digest.split("$")
        except (AttributeError, ValueError):
            return False
        if scheme != SCHEME or not salt or not expected:
            return False
        return hmac.compare_digest(self._derive(password, salt), expected)
