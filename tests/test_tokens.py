"""
Tests for session tokens and password hashing
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from securebank.errors import InvalidToken
from securebank.passwords import PasswordHasher
from securebank.tokens import TokenCodec

SECRET = "test-secret-key-with-enough-length"


class TestTokenCodec:
    """Test token issue and verification"""

    def setup_method(self):
        self.codec = TokenCodec(SECRET)

    def test_issue_and_verify(self):
        token = self.codec.issue(42)
        assert self.codec.verify(token) == 42

    def test_tokens_are_unique_per_issuance(self):
        assert self.codec.issue(1) != self.codec.issue(1)

    def test_claims(self):
        payload = jwt.decode(self.codec.issue(7), SECRET, algorithms=["HS256"])
        assert payload["userId"] == 7
        assert isinstance(payload["sessionId"], str)
        assert payload["exp"] - payload["iat"] == int(timedelta(days=7).total_seconds())

    def test_wrong_secret_rejected(self):
        other = TokenCodec("another-secret-key-with-enough-length")
        with pytest.raises(InvalidToken):
            other.verify(self.codec.issue(1))

    def test_expired_token_rejected(self):
        past = datetime.now(timezone.utc) - timedelta(days=8)
        stale = TokenCodec(SECRET, clock=lambda: past)
        with pytest.raises(InvalidToken):
            self.codec.verify(stale.issue(1))

    def test_garbage_rejected(self):
        for token in ("", "not-a-token", "a.b.c"):
            with pytest.raises(InvalidToken):
                self.codec.verify(token)

    def test_missing_or_malformed_claims_rejected(self):
        now = datetime.now(timezone.utc)
        exp = now + timedelta(days=1)
        bad_payloads = [
            {"sessionId": "x", "iat": now, "exp": exp},
            {"userId": "1", "sessionId": "x", "iat": now, "exp": exp},
            {"userId": True, "sessionId": "x", "iat": now, "exp": exp},
            {"userId": 1, "iat": now, "exp": exp},
            {"userId": 1, "sessionId": "x", "exp": exp},
            {"userId": 1, "sessionId": "x", "iat": now},
        ]
        for payload in bad_payloads:
            token = jwt.encode(payload, SECRET, algorithm="HS256")
            with pytest.raises(InvalidToken):
                self.codec.verify(token)

    def test_unsigned_token_rejected(self):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"userId": 1, "sessionId": "x", "iat": now, "exp": now + timedelta(days=1)},
            None, algorithm="none",
        )
        with pytest.raises(InvalidToken):
            self.codec.verify(token)

    def test_configuration_checked(self):
        with pytest.raises(ValueError):
            TokenCodec("")
        with pytest.raises(ValueError):
            TokenCodec(SECRET, algorithm="none")


class TestPasswordHasher:

    def setup_method(self):
        # Cheaper parameters keep the suite fast
        self.hasher = PasswordHasher(n=1024)

    def test_hash_is_not_plaintext(self):
        digest = self.hasher.hash("Sup3r$ecret")
        assert "Sup3r$ecret" not in digest
        assert digest.startswith("scrypt$")

    def test_hash_is_salted(self):
        assert self.hasher.hash("Sup3r$ecret") != self.hasher.hash("Sup3r$ecret")

    def test_verify(self):
        digest = self.hasher.hash("Sup3r$ecret")
        assert self.hasher.verify("Sup3r$ecret", digest)
        assert not self.hasher.verify("wrong", digest)

    def test_malformed_digest_never_matches(self):
        for digest in ("", "plain", "bcrypt$salt$abc", "scrypt$$abc", None):
            assert not self.hasher.verify("anything", digest)
