"""PBKDF2 password hashing."""

from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import Optional, Tuple


ITERATIONS = 100000


def hash_password(password: str, salt: Optional[str] = None) -> Tuple[str, str]:
    """Return (hash_hex, salt) for ``password``; a new salt is generated when none is given."""
    salt = salt or secrets.token_hex(16)
    password_hash = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), ITERATIONS).hex()
    return password_hash, salt


def verify_password(password: str, password_hash: str, salt: str) -> bool:
    computed_hash, _ = hash_password(password or "", salt)
    return hmac.compare_digest(computed_hash, password_hash or "")
