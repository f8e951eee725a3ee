import os
import sqlite3
import tempfile
import unittest
from datetime import datetime

from anrsi.errors import DatabaseError, DuplicateIdentityError
from anrsi.storage.content_store import ContentStore


def tr(title, content="<p>x</p>", excerpt="x"):
    return {"title": title, "content": content, "excerpt": excerpt}


class TestContentStore(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.store = ContentStore(os.path.join(self._tmp.name, "db", "anrsi.db"))

    def test_empty_path_is_not_configured(self):
        with self.assertRaises(DatabaseError):
            ContentStore("")

    def test_upsert_article_by_node_creates_then_updates(self):
        article_id, created = self.store.upsert_article_by_node(
            42, {"fr": tr("Un"), "ar": tr("واحد")}, publish_date=datetime(2023, 1, 2, 3, 4, 5)
        )
        self.assertTrue(created)
        again_id, created = self.store.upsert_article_by_node(42, {"fr": tr("Un (modifié)")})
        self.assertFalse(created)
        self.assertEqual(again_id, article_id)
        self.assertEqual(self.store.count_articles(), 1)

        article = self.store.get_article_by_node(42)
        self.assertEqual(article["translations"]["fr"]["title"], "Un (modifié)")
        # languages absent from the new set are kept
        self.assertEqual(article["translations"]["ar"]["title"], "واحد")
        self.assertEqual(article["title"], "Un (modifié)")
        self.assertEqual(article["author"], "ANRSI")

    def test_fallback_copies_never_replace_real_translations(self):
        self.store.upsert_article_by_node(5, {"fr": tr("Bonjour"), "ar": tr("مرحبا")})
        self.store.upsert_article_by_node(5, {"fr": tr("Bonjour"), "ar": tr("Bonjour"), "en": tr("Bonjour")},
                                          fallback_languages=["ar", "en"])
        article = self.store.get_article_by_node(5)
        self.assertEqual(article["translations"]["ar"]["title"], "مرحبا")
        self.assertFalse(article["translations"]["ar"]["isFallback"])
        self.assertEqual(article["translations"]["en"]["title"], "Bonjour")
        self.assertTrue(article["translations"]["en"]["isFallback"])

    def test_fallback_copies_are_refreshed(self):
        self.store.upsert_article_by_node(6, {"fr": tr("v1"), "en": tr("v1")}, fallback_languages=["en"])
        self.store.upsert_article_by_node(6, {"fr": tr("v2"), "en": tr("v2")}, fallback_languages=["en"])
        self.assertEqual(self.store.get_article_by_node(6)["translations"]["en"]["title"], "v2")

    def test_schema_migration_adds_fallback_column(self):
        legacy = os.path.join(self._tmp.name, "legacy.db")
        conn = sqlite3.connect(legacy)
        conn.execute(
            "CREATE TABLE article_translations (id INTEGER PRIMARY KEY AUTOINCREMENT, article_id INTEGER NOT NULL, "
            "language TEXT NOT NULL, title TEXT NOT NULL, content TEXT NOT NULL, excerpt TEXT NOT NULL DEFAULT '', "
            "UNIQUE (article_id, language))"
        )
        conn.commit()
        conn.close()
        store = ContentStore(legacy)
        store.upsert_article_by_node(1, {"fr": tr("Un"), "ar": tr("Un")}, fallback_languages=["ar"])
        self.assertTrue(store.get_article_by_node(1)["translations"]["ar"]["isFallback"])

    def test_upsert_requires_translations(self):
        with self.assertRaises(ValueError):
            self.store.upsert_article_by_node(1, {})

    def test_list_and_delete_articles(self):
        visible = self.store.create_article({"fr": tr("Visible")}, author="Rédaction")
        self.store.create_article({"fr": tr("Brouillon")}, author="Rédaction", published=False)
        self.assertEqual([a["id"] for a in self.store.list_articles()], [visible])
        self.assertEqual(len(self.store.list_articles(published_only=False)), 2)

        self.assertTrue(self.store.delete_article(visible))
        self.assertFalse(self.store.delete_article(visible))
        self.assertIsNone(self.store.get_article(visible))
        with self.store.get_connection() as conn:
            left = conn.execute("SELECT COUNT(*) FROM article_translations WHERE article_id = ?", (visible,))
            self.assertEqual(left.fetchone()[0], 0)

    def test_create_page_rejects_existing_slug(self):
        self.store.create_page("cooperation", {"title": "Coopération"}, {"fr": {"title": "Coopération"}})
        with self.assertRaises(DuplicateIdentityError):
            self.store.create_page("cooperation", {"title": "Autre"}, {"fr": {"title": "Autre"}})
        self.assertEqual(self.store.count_pages("cooperation"), 1)

    def test_upsert_page_by_slug_is_additive(self):
        page_id, created = self.store.upsert_page_by_slug(
            "appels-candidatures",
            {"title": "Appels", "page_type": "STRUCTURED", "is_published": True},
            {"fr": {"title": "Appels", "content": "{}"}, "ar": {"title": "دعوات", "content": "{}"}},
        )
        self.assertTrue(created)
        same_id, created = self.store.upsert_page_by_slug(
            "appels-candidatures", {"title": "Appels"}, {"fr": {"title": "Appels", "content": '{"appels": []}'}}
        )
        self.assertFalse(created)
        self.assertEqual(same_id, page_id)
        page = self.store.get_page_by_slug("appels-candidatures")
        self.assertEqual(page["pageType"], "STRUCTURED")
        self.assertTrue(page["isPublished"])
        self.assertEqual(page["translations"]["fr"]["content"], '{"appels": []}')
        self.assertEqual(page["translations"]["ar"]["title"], "دعوات")

    def test_failed_transaction_rolls_back(self):
        with self.assertRaises(RuntimeError):
            with self.store.transaction() as conn:
                conn.execute(
                    "INSERT INTO pages (slug, title, created_at, updated_at) VALUES ('tmp', 'tmp', 'x', 'x')"
                )
                raise RuntimeError("boom")
        self.assertIsNone(self.store.get_page_by_slug("tmp"))

    def test_users(self):
        user_id = self.store.create_user(
            username="admin", email="admin@anrsi.mr", password_hash="h", salt="s", role="ADMIN"
        )
        with self.assertRaises(DuplicateIdentityError) as ctx:
            self.store.create_user(username="admin", email="other@anrsi.mr", password_hash="h", salt="s")
        self.assertEqual(str(ctx.exception), "Username already exists")

        user = self.store.get_user_by_username("admin")
        self.assertEqual(user["id"], user_id)
        self.assertIsNone(user["last_login"])
        self.store.touch_last_login(user_id)
        self.assertIsNotNone(self.store.get_user_by_username("admin")["last_login"])
        self.assertEqual(self.store.count_users(), 1)


if __name__ == "__main__":
    unittest.main()
