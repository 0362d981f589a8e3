"""
PII Encryption at Rest Module

Provides field-level encryption for sensitive PII (SSNs) before it is written.
Uses AES-256-GCM from the cryptography library; every envelope carries its own
random nonce and an authentication tag, so tampering is detected on decrypt.
"""

import base64
import binascii
import logging
import os
import re
from abc import ABC, abstractmethod

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import EncryptionKeyError

logger = logging.getLogger(__name__)

# Encryption marker prefix
ENCRYPTION_PREFIX = "ENC:"

KEY_LENGTH = 32  # bytes
NONCE_LENGTH = 12  # bytes for AES-GCM

SSN_PATTERN = re.compile(r"^\d{9}$")


class EncryptionProvider(ABC):
    """Abstract base class for encryption providers"""

    @abstractmethod
    def encrypt(self, plaintext: str) -> str:
        """Encrypt plaintext and return ciphertext"""
        pass

    @abstractmethod
    def decrypt(self, ciphertext: str) -> str:
        """Decrypt ciphertext and return plaintext"""
        pass


def parse_key(raw_key: str) -> bytes:
    """
    Turn a configured hex key into 32 key bytes.

    Non-hex separators are ignored; at least 64 hex characters are required and
    only the first 64 are used.
    """
    if not raw_key:
        raise EncryptionKeyError("Encryption key is not configured")
    normalized = re.sub(r"[^a-fA-F0-9]", "", raw_key)
    if len(normalized) < KEY_LENGTH * 2:
        raise EncryptionKeyError("Encryption key must be at least 64 hex characters (32 bytes)")
    return bytes.fromhex(normalized[:KEY_LENGTH * 2])


class AESGCMEncryptionProvider(EncryptionProvider):
    """AES-256-GCM encryption provider (authenticated encryption)"""

    def __init__(self, key: str):
        self.aesgcm = AESGCM(parse_key(key))
        logger.info("AESGCMEncryptionProvider initialized successfully")

    def encrypt(self, plaintext: str) -> str:
        """Encrypt plaintext using AES-256-GCM with random nonce"""
        if not isinstance(plaintext, str):
            plaintext = str(plaintext)

        nonce = os.urandom(NONCE_LENGTH)
        encrypted_bytes = self.aesgcm.encrypt(nonce, plaintext.encode('utf-8'), None)

        # Prefix ciphertext with nonce for decryption
        encoded = base64.urlsafe_b64encode(nonce + encrypted_bytes).decode('ascii')
        return f"{ENCRYPTION_PREFIX}{encoded}"

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt an envelope produced by encrypt()"""
        if not isinstance(ciphertext, str) or not ciphertext.startswith(ENCRYPTION_PREFIX):
            raise ValueError("Invalid encrypted value format")

        try:
            combined = base64.urlsafe_b64decode(ciphertext[len(ENCRYPTION_PREFIX):].encode('ascii'))
        except (binascii.Error, UnicodeEncodeError) as e:
            raise ValueError(f"Invalid encrypted value format: {e}")

        # nonce + at least the 16-byte tag
        if len(combined) < NONCE_LENGTH + 16:
            raise ValueError("Invalid encrypted value format")

        nonce, encrypted_bytes = combined[:NONCE_LENGTH], combined[NONCE_LENGTH:]
        try:
            return self.aesgcm.decrypt(nonce, encrypted_bytes, None).decode('utf-8')
        except InvalidTag:
            logger.error("Failed to decrypt data: authentication tag mismatch")
            raise ValueError("Failed to decrypt data")


def create_encryption_provider(key: str) -> EncryptionProvider:
    """Factory function; fails if the key is absent or malformed"""
    return AESGCMEncryptionProvider(key)


def validate_ssn(ssn: str) -> None:
    if not isinstance(ssn, str) or not SSN_PATTERN.match(ssn):
        raise ValueError("SSN must be exactly 9 numeric digits")


def encrypt_ssn(provider: EncryptionProvider, ssn: str) -> str:
    validate_ssn(ssn)
    return provider.encrypt(ssn)


def decrypt_ssn(provider: EncryptionProvider, envelope: str) -> str:
    try:
        ssn = provider.decrypt(envelope)
        validate_ssn(ssn)
    except ValueError:
        raise ValueError("Failed to decrypt SSN")
    return ssn
