"""Runtime configuration.

Everything is read once from the environment (optionally populated from a
.env file) into an immutable Settings object that is handed to constructors.
"""

from __future__ import annotations

import os
import secrets
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from dotenv import load_dotenv


DEFAULT_CORS_ORIGINS = (
    "http://localhost:4200",
    "http://localhost:3000",
    "http://127.0.0.1:4200",
)


def _split_csv(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(p.strip() for p in value.split(",") if p.strip())


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Settings:
    db_path: str = "anrsi.db"
    upload_dir: str = "uploads"
    context_path: str = ""
    import_base_dirs: Tuple[str, ...] = ()
    jwt_secret: str = field(default_factory=lambda: secrets.token_hex(32), repr=False)
    jwt_expires_seconds: int = 3600
    default_admin_password: str = field(default="", repr=False)
    default_editor_password: str = field(default="", repr=False)
    cors_origins: Tuple[str, ...] = DEFAULT_CORS_ORIGINS
    image_connect_timeout: float = 10.0
    image_read_timeout: float = 30.0
    port: int = 8080
    debug: bool = False

    @property
    def datastore_configured(self) -> bool:
        return bool((self.db_path or "").strip())

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()
        env = os.environ
        base_dirs = _split_csv(env.get("IMPORT_BASE_DIRS")) or (os.getcwd(), os.path.join(os.getcwd(), "data"))
        return cls(
            db_path=env.get("DB_PATH", "anrsi.db"),
            upload_dir=env.get("UPLOAD_DIR", "uploads"),
            context_path=env.get("CONTEXT_PATH", ""),
            import_base_dirs=base_dirs,
            jwt_secret=env.get("JWT_SECRET") or secrets.token_hex(32),
            jwt_expires_seconds=_int_env("JWT_EXPIRES_SECONDS", 3600),
            default_admin_password=env.get("DEFAULT_ADMIN_PASSWORD", ""),
            default_editor_password=env.get("DEFAULT_EDITOR_PASSWORD", ""),
            cors_origins=_split_csv(env.get("CORS_ORIGINS")) or DEFAULT_CORS_ORIGINS,
            image_connect_timeout=_float_env("IMAGE_CONNECT_TIMEOUT", 10.0),
            image_read_timeout=_float_env("IMAGE_READ_TIMEOUT", 30.0),
            port=_int_env("PORT", 8080),
            debug=env.get("FLASK_ENV") == "development",
        )

    def with_overrides(self, **kwargs) -> "Settings":
        return replace(self, **kwargs)
