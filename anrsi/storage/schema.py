"""SQLite schema management for the content backend.

Schema creation is idempotent (CREATE IF NOT EXISTS) and safe to run on every start.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Iterable, Optional


logger = logging.getLogger(__name__)


SCHEMA_STATEMENTS: list[str] = [
    # Users
    """
    CREATE TABLE IF NOT EXISTS users (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      username TEXT UNIQUE NOT NULL,
      email TEXT UNIQUE NOT NULL,
      password_hash TEXT NOT NULL,
      salt TEXT NOT NULL,
      first_name TEXT,
      last_name TEXT,
      role TEXT NOT NULL DEFAULT 'USER',
      is_active BOOLEAN NOT NULL DEFAULT TRUE,
      created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
      last_login TEXT
    );
    """,
    # Articles (content lives in article_translations)
    """
    CREATE TABLE IF NOT EXISTS articles (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      source_node_id INTEGER UNIQUE,
      author TEXT NOT NULL,
      publish_date TEXT NOT NULL,
      image_url TEXT,
      featured BOOLEAN NOT NULL DEFAULT FALSE,
      published BOOLEAN NOT NULL DEFAULT TRUE,
      created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
      updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS article_translations (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      article_id INTEGER NOT NULL REFERENCES articles(id) ON DELETE CASCADE,
      language TEXT NOT NULL,
      title TEXT NOT NULL,
      content TEXT NOT NULL,
      excerpt TEXT NOT NULL DEFAULT '',
      is_fallback BOOLEAN NOT NULL DEFAULT FALSE,
      UNIQUE (article_id, language)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_articles_publish_date ON articles (publish_date DESC);",
    # Pages (structured pages keep per-language JSON in page_translations.content)
    """
    CREATE TABLE IF NOT EXISTS pages (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      slug TEXT UNIQUE NOT NULL,
      title TEXT NOT NULL,
      hero_title TEXT,
      hero_subtitle TEXT,
      hero_image_url TEXT,
      page_type TEXT NOT NULL DEFAULT 'SIMPLE',
      is_published BOOLEAN NOT NULL DEFAULT FALSE,
      is_active BOOLEAN NOT NULL DEFAULT TRUE,
      created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
      updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS page_translations (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      page_id INTEGER NOT NULL REFERENCES pages(id) ON DELETE CASCADE,
      language TEXT NOT NULL,
      title TEXT NOT NULL,
      hero_title TEXT,
      hero_subtitle TEXT,
      content TEXT,
      extra TEXT,
      UNIQUE (page_id, language)
    );
    """,
    # Site content managed from the admin dashboard
    """
    CREATE TABLE IF NOT EXISTS videos (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      title TEXT NOT NULL,
      url TEXT NOT NULL,
      type TEXT,
      description TEXT,
      thumbnail_url TEXT,
      created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
      updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS statistics (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      research_projects INTEGER NOT NULL DEFAULT 500,
      partner_institutions INTEGER NOT NULL DEFAULT 50,
      published_articles INTEGER NOT NULL DEFAULT 2000,
      research_funding INTEGER NOT NULL DEFAULT 250,
      created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
      updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS contact_messages (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      name TEXT NOT NULL,
      email TEXT NOT NULL,
      subject TEXT NOT NULL,
      message TEXT NOT NULL,
      is_read BOOLEAN NOT NULL DEFAULT FALSE,
      created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS useful_websites (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      name TEXT NOT NULL,
      url TEXT NOT NULL,
      display_order INTEGER NOT NULL DEFAULT 0,
      created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
      updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    );
    """,
]

# Columns added after the first release: (table, column, definition)
COLUMN_MIGRATIONS: list[tuple[str, str, str]] = [
    ("article_translations", "is_fallback", "BOOLEAN NOT NULL DEFAULT FALSE"),
]


def _table_columns(conn: sqlite3.Connection, table: str) -> set[str]:
    return {r[1] for r in conn.execute(f"PRAGMA table_info({table})").fetchall()}


def ensure_schema(conn: sqlite3.Connection, *, statements: Optional[Iterable[str]] = None) -> None:
    """Ensure the schema exists on an open connection."""
    stmts = list(statements) if statements is not None else SCHEMA_STATEMENTS
    for s in stmts:
        conn.execute(s)
    for table, column, definition in COLUMN_MIGRATIONS:
        existing = _table_columns(conn, table)
        if existing and column not in existing:
            conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")
            logger.info(f"Added missing {column} column to {table}")
    conn.commit()
