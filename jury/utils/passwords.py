"""Poll password hashing (SHA-256 hex, compared in constant time)."""

import hashlib
import hmac
from typing import Optional


def hash_poll_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def check_poll_password(password: Optional[str], password_hash: Optional[str]) -> bool:
    """Polls without a password accept anything."""
    if not password_hash:
        return True
    if not password:
        return False
    return hmac.compare_digest(hash_poll_password(password), password_hash)
