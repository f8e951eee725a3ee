"""Username/password login on top of the content store.

Only usernames and outcomes are logged; passwords, hashes, salts and
tokens never are.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from anrsi.auth.passwords import verify_password
from anrsi.auth.tokens import TokenService
from anrsi.errors import AuthenticationError
from anrsi.storage.content_store import ContentStore


logger = logging.getLogger(__name__)


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    """User fields that are safe to return to clients."""
    return {
        "id": user["id"],
        "username": user["username"],
        "email": user["email"],
        "firstName": user.get("first_name"),
        "lastName": user.get("last_name"),
        "role": user["role"],
        "isActive": bool(user.get("is_active", True)),
        "createdAt": user.get("created_at"),
        "lastLogin": user.get("last_login"),
    }


class AuthService:
    def __init__(self, store: ContentStore, tokens: TokenService):
        self.store = store
        self.tokens = tokens

    def authenticate(self, username: str, password: str) -> Dict[str, Any]:
        username = (username or "").strip()
        if not username or not password:
            raise AuthenticationError("Username and password required")

        user = self.store.get_user_by_username(username)
        if user is None:
            logger.warning(f"Login failed for username: {username} (unknown user)")
            raise AuthenticationError("Invalid credentials")
        if not verify_password(password, user["password_hash"], user["salt"]):
            logger.warning(f"Login failed for username: {username} (bad password)")
            raise AuthenticationError("Invalid credentials")
        if not user["is_active"]:
            logger.warning(f"Login failed for username: {username} (inactive account)")
            raise AuthenticationError("Account is disabled")

        self.store.touch_last_login(user["id"])
        token = self.tokens.issue(user["username"], user["role"])
        logger.info(f"Login successful for username: {username}")
        return {
            "token": token,
            "expiresIn": self.tokens.expires_seconds,
            "user": public_user(user),
        }

    def current_user(self, token: Optional[str]) -> Dict[str, Any]:
        """Resolve a bearer token to an active user."""
        if not token:
            raise AuthenticationError("Authentication required")
        claims = self.tokens.decode(token)
        user = self.store.get_user_by_username(claims["sub"])
        if user is None or not user["is_active"]:
            raise AuthenticationError("Invalid token")
        return user
