"""SQLite-backed storage for articles, pages, users, dashboard-managed site content
(videos, statistics, contact messages, useful links) and translations.

Translations are keyed by (owner, language). Writing a translation set is
additive: languages present in the new set are replaced in full, languages
absent from it are left as they are.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from anrsi.errors import DatabaseError, DuplicateIdentityError
from anrsi.storage.schema import ensure_schema


logger = logging.getLogger(__name__)

LANGUAGE_PREFERENCE = ("fr", "ar", "en")

_ARTICLE_COLUMNS = "id, source_node_id, author, publish_date, image_url, featured, published, created_at, updated_at"
_PAGE_COLUMNS = (
    "id, slug, title, hero_title, hero_subtitle, hero_image_url, page_type, "
    "is_published, is_active, created_at, updated_at"
)
_PAGE_MUTABLE_COLUMNS = (
    "title", "hero_title", "hero_subtitle", "hero_image_url", "page_type", "is_published", "is_active",
)
PAGE_TYPES = ("SIMPLE", "LIST", "STRUCTURED", "FAQ")
_VIDEO_COLUMNS = "id, title, url, type, description, thumbnail_url, created_at, updated_at"
STATISTICS_FIELDS = ("research_projects", "partner_institutions", "published_articles", "research_funding")
_STATISTICS_COLUMNS = "id, " + ", ".join(STATISTICS_FIELDS)
_MESSAGE_COLUMNS = "id, name, email, subject, message, is_read, created_at"
_WEBSITE_COLUMNS = "id, name, url, display_order, created_at, updated_at"
_USER_COLUMNS = (
    "id, username, email, password_hash, salt, first_name, last_name, role, is_active, created_at, last_login"
)


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _user_conflict(e: DuplicateIdentityError) -> DuplicateIdentityError:
    if "username" in str(e):
        return DuplicateIdentityError("Username already exists")
    if "email" in str(e):
        return DuplicateIdentityError("Email already exists")
    return DuplicateIdentityError(str(e))


def _iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    return str(value)


class ContentStore:
    """Database manager for the CMS content tables."""

    def __init__(self, db_path: str):
        if not db_path:
            raise DatabaseError("Datastore not configured")
        self.db_path = db_path
        self.max_retries = 3
        self.retry_delay = 1.0
        self._ensure_db_directory()
        with self.get_connection() as conn:
            ensure_schema(conn)

    def _ensure_db_directory(self):
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        for attempt in range(self.max_retries):
            try:
                conn = sqlite3.connect(self.db_path, timeout=30.0, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA foreign_keys=ON;")
                return conn
            except sqlite3.OperationalError as e:
                if "database is locked" in str(e) and attempt < self.max_retries - 1:
                    logger.warning(f"Database locked, retrying in {self.retry_delay}s (attempt {attempt + 1})")
                    time.sleep(self.retry_delay)
                    continue
                raise DatabaseError(f"Database connection failed: {e}") from e
        raise DatabaseError("Database connection failed")

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a connection; the caller commits."""
        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Commit on success, roll back everything on any error."""
        with self.get_connection() as conn:
            try:
                yield conn
                conn.commit()
            except sqlite3.IntegrityError as e:
                conn.rollback()
                if "UNIQUE" in str(e):
                    raise DuplicateIdentityError(str(e)) from e
                raise DatabaseError(str(e)) from e
            except sqlite3.Error as e:
                conn.rollback()
                raise DatabaseError(str(e)) from e
            except Exception:
                conn.rollback()
                raise

    # ------------------------------------------------------------------
    # Translations
    # ------------------------------------------------------------------

    @staticmethod
    def _write_article_translations(
        conn,
        article_id: int,
        translations: Mapping[str, Mapping[str, Any]],
        fallback_languages: Iterable[str] = (),
    ) -> None:
        fallback_languages = set(fallback_languages)
        for lang, tr in translations.items():
            is_fallback = lang in fallback_languages
            # A fallback copy may only replace another fallback copy, never a real translation
            guard = "WHERE article_translations.is_fallback" if is_fallback else ""
            conn.execute(
                f"""
                INSERT INTO article_translations (article_id, language, title, content, excerpt, is_fallback)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (article_id, language) DO UPDATE SET
                  title = excluded.title,
                  content = excluded.content,
                  excerpt = excluded.excerpt,
                  is_fallback = excluded.is_fallback
                {guard}
                """,
                (
                    article_id,
                    lang,
                    tr["title"].strip(),
                    tr["content"].strip(),
                    (tr.get("excerpt") or "").strip(),
                    is_fallback,
                ),
            )

    @staticmethod
    def _write_page_translations(conn, page_id: int, translations: Mapping[str, Mapping[str, Any]]) -> None:
        for lang, tr in translations.items():
            conn.execute(
                """
                INSERT INTO page_translations (page_id, language, title, hero_title, hero_subtitle, content, extra)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (page_id, language) DO UPDATE SET
                  title = excluded.title,
                  hero_title = excluded.hero_title,
                  hero_subtitle = excluded.hero_subtitle,
                  content = excluded.content,
                  extra = excluded.extra
                """,
                (
                    page_id,
                    lang,
                    tr.get("title") or "Untitled",
                    tr.get("hero_title"),
                    tr.get("hero_subtitle"),
                    tr.get("content"),
                    tr.get("extra"),
                ),
            )

    # ------------------------------------------------------------------
    # Articles
    # ------------------------------------------------------------------

    def upsert_article_by_node(
        self,
        node_id: int,
        translations: Mapping[str, Mapping[str, Any]],
        *,
        author: str = "ANRSI",
        publish_date: Optional[datetime] = None,
        image_url: Optional[str] = None,
        published: bool = True,
        featured: bool = False,
        fallback_languages: Iterable[str] = (),
    ) -> Tuple[int, bool]:
        """Create or update the article imported from ``node_id`` in one transaction.

        Languages listed in ``fallback_languages`` carry copied text: they fill
        gaps and refresh earlier copies but never replace a real translation.

        Returns (article_id, created).
        """
        if not translations:
            raise ValueError("At least one translation is required")
        with self.transaction() as conn:
            row = conn.execute("SELECT id FROM articles WHERE source_node_id = ?", (node_id,)).fetchone()
            if row is None:
                cur = conn.execute(
                    """
                    INSERT INTO articles (source_node_id, author, publish_date, image_url, featured, published,
                                          created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (node_id, author, _iso(publish_date) or _now(), image_url, featured, published, _now(), _now()),
                )
                article_id, created = int(cur.lastrowid), True
            else:
                article_id, created = int(row["id"]), False
                conn.execute(
                    """
                    UPDATE articles
                    SET author = ?, publish_date = ?, image_url = ?, featured = ?, published = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (author, _iso(publish_date) or _now(), image_url, featured, published, _now(), article_id),
                )
            self._write_article_translations(conn, article_id, translations, fallback_languages)
        return article_id, created

    def create_article(
        self,
        translations: Mapping[str, Mapping[str, Any]],
        *,
        author: str,
        publish_date: Optional[datetime] = None,
        image_url: Optional[str] = None,
        published: bool = True,
        featured: bool = False,
    ) -> int:
        if not translations:
            raise ValueError("At least one translation is required")
        with self.transaction() as conn:
            cur = conn.execute(
                """
                INSERT INTO articles (author, publish_date, image_url, featured, published, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (author, _iso(publish_date) or _now(), image_url, featured, published, _now(), _now()),
            )
            article_id = int(cur.lastrowid)
            self._write_article_translations(conn, article_id, translations)
        return article_id

    def update_article(
        self,
        article_id: int,
        fields: Mapping[str, Any],
        translations: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> bool:
        """Update scalar columns present in ``fields`` and replace the given translations."""
        sets = []
        params: List[Any] = []
        for col in ("author", "publish_date", "image_url", "featured", "published"):
            if col not in fields:
                continue
            value = fields[col]
            # image_url is the only nullable column
            if value is None and col != "image_url":
                continue
            sets.append(f"{col} = ?")
            params.append(_iso(value) if col == "publish_date" else value)
        sets.append("updated_at = ?")
        params.extend([_now(), article_id])
        with self.transaction() as conn:
            cur = conn.execute(f"UPDATE articles SET {', '.join(sets)} WHERE id = ?", params)
            if cur.rowcount == 0:
                return False
            if translations:
                self._write_article_translations(conn, article_id, translations)
        return True

    def _article_dict(self, conn, row) -> Dict[str, Any]:
        trows = conn.execute(
            "SELECT language, title, content, excerpt, is_fallback FROM article_translations WHERE article_id = ?",
            (row["id"],),
        ).fetchall()
        translations = {
            t["language"]: {
                "language": t["language"],
                "title": t["title"],
                "content": t["content"],
                "excerpt": t["excerpt"],
                "isFallback": bool(t["is_fallback"]),
            }
            for t in trows
        }
        article = {
            "id": int(row["id"]),
            "sourceNodeId": row["source_node_id"],
            "author": row["author"],
            "publishDate": row["publish_date"],
            "imageUrl": row["image_url"],
            "featured": bool(row["featured"]),
            "published": bool(row["published"]),
            "createdAt": row["created_at"],
            "updatedAt": row["updated_at"],
            "translations": translations,
            "title": None,
            "content": None,
            "excerpt": None,
        }
        # Flat title/content for clients that are not translation aware
        for lang in LANGUAGE_PREFERENCE:
            if lang in translations:
                article.update({k: translations[lang][k] for k in ("title", "content", "excerpt")})
                break
        return article

    def get_article(self, article_id: int) -> Optional[Dict[str, Any]]:
        with self.get_connection() as conn:
            row = conn.execute(f"SELECT {_ARTICLE_COLUMNS} FROM articles WHERE id = ?", (article_id,)).fetchone()
            return self._article_dict(conn, row) if row else None

    def get_article_by_node(self, node_id: int) -> Optional[Dict[str, Any]]:
        with self.get_connection() as conn:
            row = conn.execute(
                f"SELECT {_ARTICLE_COLUMNS} FROM articles WHERE source_node_id = ?", (node_id,)
            ).fetchone()
            return self._article_dict(conn, row) if row else None

    def list_articles(
        self, *, published_only: bool = True, featured: Optional[bool] = None, limit: int = 100
    ) -> List[Dict[str, Any]]:
        limit = max(1, min(int(limit), 500))
        clauses = []
        params: List[Any] = []
        if published_only:
            clauses.append("published = TRUE")
        if featured is not None:
            clauses.append("featured = ?")
            params.append(featured)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self.get_connection() as conn:
            rows = conn.execute(
                f"SELECT {_ARTICLE_COLUMNS} FROM articles {where} ORDER BY publish_date DESC, id DESC LIMIT ?",
                (*params, limit),
            ).fetchall()
            return [self._article_dict(conn, r) for r in rows]

    def search_articles(self, term: str, *, limit: int = 50) -> List[Dict[str, Any]]:
        """Published articles whose title, content or excerpt contains ``term`` in any language."""
        like = f"%{(term or '').strip()}%"
        with self.get_connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {_ARTICLE_COLUMNS} FROM articles
                WHERE published = TRUE AND id IN (
                  SELECT article_id FROM article_translations
                  WHERE title LIKE ? OR content LIKE ? OR excerpt LIKE ?
                )
                ORDER BY publish_date DESC, id DESC LIMIT ?
                """,
                (like, like, like, max(1, min(int(limit), 500))),
            ).fetchall()
            return [self._article_dict(conn, r) for r in rows]

    def delete_article(self, article_id: int) -> bool:
        with self.transaction() as conn:
            cur = conn.execute("DELETE FROM articles WHERE id = ?", (article_id,))
            return cur.rowcount > 0

    def count_articles(self, *, published: Optional[bool] = None, since: Optional[datetime] = None) -> int:
        clauses = []
        params: List[Any] = []
        if published is not None:
            clauses.append("published = ?")
            params.append(published)
        if since is not None:
            clauses.append("publish_date > ?")
            params.append(_iso(since))
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self.get_connection() as conn:
            return int(conn.execute(f"SELECT COUNT(*) FROM articles {where}", params).fetchone()[0])

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def _insert_page(self, conn, slug: str, fields: Mapping[str, Any]) -> int:
        cur = conn.execute(
            """
            INSERT INTO pages (slug, title, hero_title, hero_subtitle, hero_image_url, page_type,
                               is_published, is_active, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                slug,
                fields.get("title") or slug,
                fields.get("hero_title"),
                fields.get("hero_subtitle"),
                fields.get("hero_image_url"),
                fields.get("page_type") or "SIMPLE",
                bool(fields.get("is_published", False)),
                bool(fields.get("is_active", True)),
                _now(),
                _now(),
            ),
        )
        return int(cur.lastrowid)

    def create_page(
        self, slug: str, fields: Mapping[str, Any], translations: Mapping[str, Mapping[str, Any]]
    ) -> int:
        if not translations:
            raise ValueError("At least one translation is required")
        with self.transaction() as conn:
            if conn.execute("SELECT 1 FROM pages WHERE slug = ?", (slug,)).fetchone():
                raise DuplicateIdentityError(f"Page with slug '{slug}' already exists")
            page_id = self._insert_page(conn, slug, fields)
            self._write_page_translations(conn, page_id, translations)
        return page_id

    def upsert_page_by_slug(
        self, slug: str, fields: Mapping[str, Any], translations: Mapping[str, Mapping[str, Any]]
    ) -> Tuple[int, bool]:
        """Create or update the page with ``slug`` in one transaction.

        Returns (page_id, created).
        """
        with self.transaction() as conn:
            row = conn.execute("SELECT id FROM pages WHERE slug = ?", (slug,)).fetchone()
            if row is None:
                page_id, created = self._insert_page(conn, slug, fields), True
            else:
                page_id, created = int(row["id"]), False
                sets = []
                params: List[Any] = []
                for col in _PAGE_MUTABLE_COLUMNS:
                    if fields.get(col) is not None:
                        sets.append(f"{col} = ?")
                        params.append(fields[col])
                sets.append("updated_at = ?")
                params.extend([_now(), page_id])
                conn.execute(f"UPDATE pages SET {', '.join(sets)} WHERE id = ?", params)
            self._write_page_translations(conn, page_id, translations)
        return page_id, created

    def update_page(
        self,
        page_id: int,
        fields: Mapping[str, Any],
        translations: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> bool:
        """Update the non-null ``fields`` and replace the given translations."""
        with self.transaction() as conn:
            row = conn.execute("SELECT slug FROM pages WHERE id = ?", (page_id,)).fetchone()
            if row is None:
                return False
            slug = fields.get("slug")
            if slug and slug != row["slug"]:
                if conn.execute("SELECT 1 FROM pages WHERE slug = ?", (slug,)).fetchone():
                    raise DuplicateIdentityError(f"Page with slug '{slug}' already exists")
            sets = []
            params: List[Any] = []
            for col in ("slug",) + _PAGE_MUTABLE_COLUMNS:
                if fields.get(col) is not None:
                    sets.append(f"{col} = ?")
                    params.append(fields[col])
            sets.append("updated_at = ?")
            params.extend([_now(), page_id])
            conn.execute(f"UPDATE pages SET {', '.join(sets)} WHERE id = ?", params)
            if translations:
                self._write_page_translations(conn, page_id, translations)
        return True

    def set_page_published(self, page_id: int, published: bool) -> bool:
        with self.transaction() as conn:
            cur = conn.execute(
                "UPDATE pages SET is_published = ?, updated_at = ? WHERE id = ?", (published, _now(), page_id)
            )
            return cur.rowcount > 0

    def toggle_page_active(self, page_id: int) -> bool:
        with self.transaction() as conn:
            cur = conn.execute(
                "UPDATE pages SET is_active = NOT is_active, updated_at = ? WHERE id = ?", (_now(), page_id)
            )
            return cur.rowcount > 0

    def delete_page(self, page_id: int) -> bool:
        with self.transaction() as conn:
            cur = conn.execute("DELETE FROM pages WHERE id = ?", (page_id,))
            return cur.rowcount > 0

    def list_page_slugs(self) -> List[str]:
        with self.get_connection() as conn:
            return [r["slug"] for r in conn.execute("SELECT slug FROM pages ORDER BY slug").fetchall()]

    def _page_dict(self, conn, row) -> Dict[str, Any]:
        trows = conn.execute(
            "SELECT language, title, hero_title, hero_subtitle, content, extra FROM page_translations WHERE page_id = ?",
            (row["id"],),
        ).fetchall()
        return {
            "id": int(row["id"]),
            "slug": row["slug"],
            "title": row["title"],
            "heroTitle": row["hero_title"],
            "heroSubtitle": row["hero_subtitle"],
            "heroImageUrl": row["hero_image_url"],
            "pageType": row["page_type"],
            "isPublished": bool(row["is_published"]),
            "isActive": bool(row["is_active"]),
            "createdAt": row["created_at"],
            "updatedAt": row["updated_at"],
            "translations": {
                t["language"]: {
                    "language": t["language"],
                    "title": t["title"],
                    "heroTitle": t["hero_title"],
                    "heroSubtitle": t["hero_subtitle"],
                    "content": t["content"],
                    "extra": t["extra"],
                }
                for t in trows
            },
        }

    def get_page(self, page_id: int) -> Optional[Dict[str, Any]]:
        with self.get_connection() as conn:
            row = conn.execute(f"SELECT {_PAGE_COLUMNS} FROM pages WHERE id = ?", (page_id,)).fetchone()
            return self._page_dict(conn, row) if row else None

    def get_page_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        with self.get_connection() as conn:
            row = conn.execute(f"SELECT {_PAGE_COLUMNS} FROM pages WHERE slug = ?", (slug,)).fetchone()
            return self._page_dict(conn, row) if row else None

    def list_pages(self, *, published_only: bool = False) -> List[Dict[str, Any]]:
        where = "WHERE is_published = TRUE AND is_active = TRUE" if published_only else ""
        with self.get_connection() as conn:
            rows = conn.execute(f"SELECT {_PAGE_COLUMNS} FROM pages {where} ORDER BY updated_at DESC, id").fetchall()
            return [self._page_dict(conn, r) for r in rows]

    def count_pages(self, slug: Optional[str] = None) -> int:
        with self.get_connection() as conn:
            if slug is None:
                return int(conn.execute("SELECT COUNT(*) FROM pages").fetchone()[0])
            return int(conn.execute("SELECT COUNT(*) FROM pages WHERE slug = ?", (slug,)).fetchone()[0])

    # ------------------------------------------------------------------
    # Videos
    # ------------------------------------------------------------------

    @staticmethod
    def _video_dict(row) -> Dict[str, Any]:
        return {
            "id": int(row["id"]),
            "title": row["title"],
            "url": row["url"],
            "type": row["type"],
            "description": row["description"],
            "thumbnailUrl": row["thumbnail_url"],
            "createdAt": row["created_at"],
            "updatedAt": row["updated_at"],
        }

    def list_videos(self) -> List[Dict[str, Any]]:
        with self.get_connection() as conn:
            rows = conn.execute(f"SELECT {_VIDEO_COLUMNS} FROM videos ORDER BY created_at DESC, id DESC").fetchall()
            return [self._video_dict(r) for r in rows]

    def get_video(self, video_id: int) -> Optional[Dict[str, Any]]:
        with self.get_connection() as conn:
            row = conn.execute(f"SELECT {_VIDEO_COLUMNS} FROM videos WHERE id = ?", (video_id,)).fetchone()
            return self._video_dict(row) if row else None

    def create_video(
        self,
        *,
        title: str,
        url: str,
        type: Optional[str] = None,
        description: Optional[str] = None,
        thumbnail_url: Optional[str] = None,
    ) -> int:
        with self.transaction() as conn:
            cur = conn.execute(
                """
                INSERT INTO videos (title, url, type, description, thumbnail_url, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (title, url, type, description, thumbnail_url, _now(), _now()),
            )
            return int(cur.lastrowid)

    def update_video(self, video_id: int, **fields) -> bool:
        with self.transaction() as conn:
            cur = conn.execute(
                """
                UPDATE videos SET title = ?, url = ?, type = ?, description = ?, thumbnail_url = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    fields.get("title"),
                    fields.get("url"),
                    fields.get("type"),
                    fields.get("description"),
                    fields.get("thumbnail_url"),
                    _now(),
                    video_id,
                ),
            )
            return cur.rowcount > 0

    def delete_video(self, video_id: int) -> bool:
        with self.transaction() as conn:
            return conn.execute("DELETE FROM videos WHERE id = ?", (video_id,)).rowcount > 0

    def count_videos(self) -> int:
        with self.get_connection() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM videos").fetchone()[0])

    # ------------------------------------------------------------------
    # Statistics (a single row of homepage counters)
    # ------------------------------------------------------------------

    @staticmethod
    def _statistics_dict(row) -> Dict[str, Any]:
        return {
            "id": int(row["id"]),
            "researchProjects": row["research_projects"],
            "partnerInstitutions": row["partner_institutions"],
            "publishedArticles": row["published_articles"],
            "researchFunding": row["research_funding"],
        }

    def _statistics_row(self, conn):
        row = conn.execute(f"SELECT {_STATISTICS_COLUMNS} FROM statistics ORDER BY id LIMIT 1").fetchone()
        if row is None:
            conn.execute("INSERT INTO statistics (created_at, updated_at) VALUES (?, ?)", (_now(), _now()))
            row = conn.execute(f"SELECT {_STATISTICS_COLUMNS} FROM statistics ORDER BY id LIMIT 1").fetchone()
        return row

    def get_statistics(self) -> Dict[str, Any]:
        """Return the counters, creating the default row on first use."""
        with self.transaction() as conn:
            return self._statistics_dict(self._statistics_row(conn))

    def update_statistics(self, values: Mapping[str, Optional[int]]) -> Dict[str, Any]:
        """Set every counter in ``values`` that is not None."""
        with self.transaction() as conn:
            stats_id = int(self._statistics_row(conn)["id"])
            for col in STATISTICS_FIELDS:
                if values.get(col) is not None:
                    conn.execute(
                        f"UPDATE statistics SET {col} = ?, updated_at = ? WHERE id = ?",
                        (int(values[col]), _now(), stats_id),
                    )
            return self._statistics_dict(self._statistics_row(conn))

    # ------------------------------------------------------------------
    # Contact messages
    # ------------------------------------------------------------------

    @staticmethod
    def _message_dict(row) -> Dict[str, Any]:
        return {
            "id": int(row["id"]),
            "name": row["name"],
            "email": row["email"],
            "subject": row["subject"],
            "message": row["message"],
            "isRead": bool(row["is_read"]),
            "createdAt": row["created_at"],
        }

    def create_contact_message(self, *, name: str, email: str, subject: str, message: str) -> int:
        with self.transaction() as conn:
            cur = conn.execute(
                """
                INSERT INTO contact_messages (name, email, subject, message, is_read, created_at)
                VALUES (?, ?, ?, ?, FALSE, ?)
                """,
                (name, email, subject, message, _now()),
            )
            return int(cur.lastrowid)

    def list_contact_messages(self, *, unread_only: bool = False) -> List[Dict[str, Any]]:
        where = "WHERE is_read = FALSE" if unread_only else ""
        with self.get_connection() as conn:
            rows = conn.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM contact_messages {where} ORDER BY created_at DESC, id DESC"
            ).fetchall()
            return [self._message_dict(r) for r in rows]

    def get_contact_message(self, message_id: int) -> Optional[Dict[str, Any]]:
        with self.get_connection() as conn:
            row = conn.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM contact_messages WHERE id = ?", (message_id,)
            ).fetchone()
            return self._message_dict(row) if row else None

    def mark_contact_message_read(self, message_id: int) -> bool:
        with self.transaction() as conn:
            cur = conn.execute("UPDATE contact_messages SET is_read = TRUE WHERE id = ?", (message_id,))
            return cur.rowcount > 0

    def delete_contact_message(self, message_id: int) -> bool:
        with self.transaction() as conn:
            return conn.execute("DELETE FROM contact_messages WHERE id = ?", (message_id,)).rowcount > 0

    def count_unread_contact_messages(self) -> int:
        with self.get_connection() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM contact_messages WHERE is_read = FALSE").fetchone()[0])

    # ------------------------------------------------------------------
    # Useful websites
    # ------------------------------------------------------------------

    @staticmethod
    def _website_dict(row) -> Dict[str, Any]:
        return {
            "id": int(row["id"]),
            "name": row["name"],
            "url": row["url"],
            "order": row["display_order"],
            "createdAt": row["created_at"],
            "updatedAt": row["updated_at"],
        }

    def list_websites(self) -> List[Dict[str, Any]]:
        with self.get_connection() as conn:
            rows = conn.execute(
                f"SELECT {_WEBSITE_COLUMNS} FROM useful_websites ORDER BY display_order, id"
            ).fetchall()
            return [self._website_dict(r) for r in rows]

    def get_website(self, website_id: int) -> Optional[Dict[str, Any]]:
        with self.get_connection() as conn:
            row = conn.execute(
                f"SELECT {_WEBSITE_COLUMNS} FROM useful_websites WHERE id = ?", (website_id,)
            ).fetchone()
            return self._website_dict(row) if row else None

    def create_website(self, *, name: str, url: str, order: int) -> int:
        with self.transaction() as conn:
            cur = conn.execute(
                "INSERT INTO useful_websites (name, url, display_order, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                (name, url, order, _now(), _now()),
            )
            return int(cur.lastrowid)

    def update_website(self, website_id: int, *, name: str, url: str, order: int) -> bool:
        with self.transaction() as conn:
            cur = conn.execute(
                "UPDATE useful_websites SET name = ?, url = ?, display_order = ?, updated_at = ? WHERE id = ?",
                (name, url, order, _now(), website_id),
            )
            return cur.rowcount > 0

    def delete_website(self, website_id: int) -> bool:
        with self.transaction() as conn:
            return conn.execute("DELETE FROM useful_websites WHERE id = ?", (website_id,)).rowcount > 0

    def reorder_websites(self, orders: Iterable[Tuple[int, int]]) -> None:
        """Apply (id, order) pairs in one transaction; an unknown id rolls everything back."""
        with self.transaction() as conn:
            for website_id, order in orders:
                cur = conn.execute(
                    "UPDATE useful_websites SET display_order = ?, updated_at = ? WHERE id = ?",
                    (order, _now(), website_id),
                )
                if cur.rowcount == 0:
                    raise LookupError(f"Useful website not found with id: {website_id}")

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(
        self,
        *,
        username: str,
        email: str,
        password_hash: str,
        salt: str,
        role: str = "USER",
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        is_active: bool = True,
    ) -> int:
        try:
            with self.transaction() as conn:
                cur = conn.execute(
                    """
                    INSERT INTO users (username, email, password_hash, salt, first_name, last_name, role, is_active, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (username, email, password_hash, salt, first_name, last_name, role, is_active, _now()),
                )
                user_id = int(cur.lastrowid)
        except DuplicateIdentityError as e:
            raise _user_conflict(e) from e
        logger.info(f"Created new user: {username} (ID: {user_id})")
        return user_id

    @staticmethod
    def _user_dict(row) -> Dict[str, Any]:
        user = dict(row)
        user["is_active"] = bool(user["is_active"])
        return user

    def get_user_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        with self.get_connection() as conn:
            row = conn.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE username = ?", (username,)).fetchone()
            return self._user_dict(row) if row else None

    def touch_last_login(self, user_id: int) -> None:
        with self.transaction() as conn:
            conn.execute("UPDATE users SET last_login = ? WHERE id = ?", (_now(), user_id))

    def count_users(self) -> int:
        with self.get_connection() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM users").fetchone()[0])

    def count_active_users(self) -> int:
        with self.get_connection() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM users WHERE is_active = TRUE").fetchone()[0])

    def list_users(self) -> List[Dict[str, Any]]:
        with self.get_connection() as conn:
            rows = conn.execute(f"SELECT {_USER_COLUMNS} FROM users ORDER BY id").fetchall()
            return [self._user_dict(r) for r in rows]

    def get_user(self, user_id: int) -> Optional[Dict[str, Any]]:
        with self.get_connection() as conn:
            row = conn.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (user_id,)).fetchone()
            return self._user_dict(row) if row else None

    def update_user(self, user_id: int, fields: Mapping[str, Any]) -> bool:
        """Update the non-null ``fields``; password_hash and salt only change together."""
        sets = []
        params: List[Any] = []
        for col in ("username", "email", "first_name", "last_name", "role", "is_active", "password_hash", "salt"):
            if fields.get(col) is not None:
                sets.append(f"{col} = ?")
                params.append(fields[col])
        if not sets:
            return self.get_user(user_id) is not None
        params.append(user_id)
        try:
            with self.transaction() as conn:
                cur = conn.execute(f"UPDATE users SET {', '.join(sets)} WHERE id = ?", params)
                updated = cur.rowcount > 0
        except DuplicateIdentityError as e:
            raise _user_conflict(e) from e
        return updated

    def toggle_user_active(self, user_id: int) -> bool:
        with self.transaction() as conn:
            return conn.execute("UPDATE users SET is_active = NOT is_active WHERE id = ?", (user_id,)).rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        with self.transaction() as conn:
            return conn.execute("DELETE FROM users WHERE id = ?", (user_id,)).rowcount > 0
