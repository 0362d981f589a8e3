"""
Session Token Codec

Signed, opaque session tokens (JWT via PyJWT). Each token binds a user id,
a random per-issuance nonce and an expiry; verification fails closed.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt

from .errors import InvalidToken

ALLOWED_ALGORITHMS = ("HS256", "HS384", "HS512")


class TokenCodec:
    """Issue and verify session tokens"""

    def __init__(self, secret: str, algorithm: str = "HS256",
                 lifetime: timedelta = timedelta(days=7),
                 clock: Optional[Callable[[], datetime]] = None):
        if not secret:
            raise ValueError("Token secret must not be empty")
        if algorithm not in ALLOWED_ALGORITHMS:
            raise ValueError(f"Unsupported token algorithm: {algorithm}")
        self.secret = secret
        self.algorithm = algorithm
        self.lifetime = lifetime
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def issue(self, user_id: int) -> str:
        now = self._clock()
        payload = {
            "userId": user_id,
            "sessionId": secrets.token_urlsafe(16),
            "iat": now,
            "exp": now + self.lifetime,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> int:
        """Return the user id bound to ``token`` or raise InvalidToken"""
        if not isinstance(token, str) or not token:
            raise InvalidToken()
        try:
            payload = jwt.decode(
                token, self.secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidToken("Session token expired")
        except jwt.InvalidTokenError:
            raise InvalidToken()

        user_id = payload.get("userId")
        # bool is an int subclass
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            raise InvalidToken()
        if not isinstance(payload.get("sessionId"), str):
            raise InvalidToken()
        return user_id
