"""Column types that encrypt on write and decrypt on read.

Learn: OAuth tokens are credentials for third-party accounts, so they are
never stored in plaintext. EncryptedJSON serializes the value to JSON and
encrypts it with Fernet (AES-128-CBC + HMAC-SHA256) before it reaches the
database; loading a row decrypts it again, so ORM objects always hold the
plaintext view.

Fernet ciphertexts are randomized, so re-encrypting happens whenever the
attribute is assigned a new value. Mutating the dict in place is NOT tracked
— always assign a fresh dict.
"""

import base64
import hashlib
import json
from functools import lru_cache

from cryptography.fernet import Fernet
from sqlalchemy import Text
from sqlalchemy.types import TypeDecorator

from teamaccounts.config import settings


@lru_cache(maxsize=4)
def _fernet(secret: str) -> Fernet:
    """Derive a Fernet key from an arbitrary-length secret."""
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def encrypt_value(value, secret: str | None = None) -> str:
    payload = json.dumps(value).encode("utf-8")
    return _fernet(secret or settings.encrypt_secret).encrypt(payload).decode("ascii")


def decrypt_value(ciphertext: str, secret: str | None = None):
    payload = _fernet(secret or settings.encrypt_secret).decrypt(ciphertext.encode("ascii"))
    return json.loads(payload)


class EncryptedJSON(TypeDecorator):
    """JSON value stored as a Fernet token in a TEXT column."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return encrypt_value(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return decrypt_value(value)
