"""Passwordless login tokens — generation and hashing.

Learn: A login token is a one-time secret sent by email. Like a
password, only its bcrypt hash is stored, so a leaked login_tokens
table can't be replayed. bcrypt includes a random salt automatically
and produces hashes starting with "$2b$".
"""

import secrets

import bcrypt


def generate_token() -> str:
    """A fresh URL-safe login token (~128 bits of entropy)."""
    return secrets.token_urlsafe(16)


def hash_token(token: str, rounds: int = 12) -> str:
    """Hash a login token with bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(token.encode("utf-8"), salt).decode("utf-8")


def verify_token(token: str, token_hash: str) -> bool:
    """Check a login token against its stored hash."""
    try:
        return bcrypt.checkpw(token.encode("utf-8"), token_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False
