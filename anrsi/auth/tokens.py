"""Signed bearer tokens (HS256 JWT)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt

from anrsi.errors import AuthenticationError


ALGORITHM = "HS256"


class TokenService:
    def __init__(self, secret: str, expires_seconds: int = 3600):
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self._secret = secret
        self.expires_seconds = int(expires_seconds)

    def __repr__(self) -> str:
        return f"TokenService(expires_seconds={self.expires_seconds})"

    def issue(self, username: str, role: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": username,
            "role": role,
            "iat": now,
            "exp": now + timedelta(seconds=self.expires_seconds),
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def decode(self, token: str) -> Dict[str, Any]:
        """Verify signature and expiry; raise AuthenticationError otherwise."""
        try:
            claims = jwt.decode(token, self._secret, algorithms=[ALGORITHM], options={"require": ["sub", "exp"]})
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError("Token expired") from e
        except jwt.InvalidTokenError as e:
            raise AuthenticationError("Invalid token") from e
        return claims
