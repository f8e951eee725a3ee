import io
import json
import os
import tempfile
import unittest

from anrsi.config import Settings
from anrsi.importing.assets import AssetLocalizer
from anrsi.seed import ensure_default_state
from anrsi.storage.content_store import ContentStore
from fakes import FakeSession, write_json
from web_app import create_app


class WebAppTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.dir = self._tmp.name
        self.settings = Settings(
            db_path=os.path.join(self.dir, "anrsi.db"),
            upload_dir=os.path.join(self.dir, "uploads"),
            import_base_dirs=(self.dir,),
            jwt_secret="web-test-secret-0123456789abcdef0123",
            default_admin_password="admin-pass-123",
            default_editor_password="editor-pass-456",
        )
        self.store = ContentStore(self.settings.db_path)
        ensure_default_state(self.store, self.settings)
        self.session = FakeSession()
        self.app = create_app(
            self.settings,
            store=self.store,
            localizer_factory=lambda: AssetLocalizer(self.settings.upload_dir, session=self.session),
        )
        self.app.config["TESTING"] = True
        self.client = self.app.test_client()

    def login(self, username, password):
        resp = self.client.post("/api/auth/login", json={"username": username, "password": password})
        self.assertEqual(resp.status_code, 200, resp.get_json())
        return {"Authorization": f"Bearer {resp.get_json()['token']}"}


class TestAuthEndpoints(WebAppTestCase):
    def test_health(self):
        resp = self.client.get("/api/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["status"], "healthy")
        self.assertEqual(resp.headers["X-Frame-Options"], "DENY")

    def test_login_and_me(self):
        headers = self.login("admin", "admin-pass-123")
        resp = self.client.get("/api/auth/me", headers=headers)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["user"]["role"], "ADMIN")

    def test_bad_credentials(self):
        resp = self.client.post("/api/auth/login", json={"username": "admin", "password": "nope"})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.get_json(), {"success": False, "error": "Invalid credentials"})
        resp = self.client.post("/api/auth/login", json={"username": "admin"})
        self.assertEqual(resp.status_code, 400)

    def test_me_requires_token(self):
        self.assertEqual(self.client.get("/api/auth/me").status_code, 401)
        resp = self.client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
        self.assertEqual(resp.status_code, 401)

    def test_unknown_endpoint(self):
        resp = self.client.get("/api/nothing-here")
        self.assertEqual(resp.status_code, 404)
        self.assertFalse(resp.get_json()["success"])


class TestImportEndpoints(WebAppTestCase):
    def write_articles(self):
        return write_json(self.dir, "articles.json", [
            {"node_id": 1, "url": "https://anrsi.mr/node/1", "title": "Un", "content_html": "<p>Un</p>"},
            {"node_id": 1, "url": "https://anrsi.mr/en/node/1", "title": "One", "content_html": "<p>One</p>"},
            {"node_id": 2, "url": "https://anrsi.mr/node/2", "title": "Deux", "content_html": "<p>Deux</p>"},
        ])

    def test_article_import_and_reads(self):
        self.write_articles()
        headers = self.login("editor", "editor-pass-456")
        resp = self.client.post("/api/articles/import", json={"filePaths": ["articles.json"]}, headers=headers)
        self.assertEqual(resp.status_code, 200)
        body = resp.get_json()
        self.assertTrue(body["success"])
        self.assertEqual((body["totalNodes"], body["successCount"], body["failureCount"]), (2, 2, 0))

        listing = self.client.get("/api/articles").get_json()
        self.assertEqual(listing["count"], 2)
        article_id = listing["articles"][0]["id"]
        article = self.client.get(f"/api/articles/{article_id}").get_json()["article"]
        self.assertEqual(set(article["translations"]), {"fr", "ar", "en"})

        resp = self.client.delete(f"/api/articles/{article_id}", headers=headers)
        self.assertEqual(resp.status_code, 403)
        admin = self.login("admin", "admin-pass-123")
        resp = self.client.delete(f"/api/articles/{article_id}", headers=admin)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.client.get(f"/api/articles/{article_id}").status_code, 404)

    def test_article_import_partial_success_is_200(self):
        path = self.write_articles()
        headers = self.login("admin", "admin-pass-123")
        resp = self.client.post("/api/articles/import", json={"filePaths": [path, "missing.json"]}, headers=headers)
        self.assertEqual(resp.status_code, 200)
        body = resp.get_json()
        self.assertEqual(body["successCount"], 2)
        self.assertIn("File not found: missing.json", body["errors"])

    def test_article_import_requires_paths_and_auth(self):
        self.assertEqual(self.client.post("/api/articles/import", json={"filePath": "x.json"}).status_code, 401)
        headers = self.login("editor", "editor-pass-456")
        resp = self.client.post("/api/articles/import", json={}, headers=headers)
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(resp.get_json()["success"])

    def test_announcement_import_is_admin_only(self):
        write_json(self.dir, "appels.json", [{"fr": {"title": "Appel"}}])
        headers = self.login("editor", "editor-pass-456")
        resp = self.client.post("/api/admin/appels-candidatures/import", json={"filePath": "appels.json"}, headers=headers)
        self.assertEqual(resp.status_code, 403)

    def test_announcement_import_from_path(self):
        write_json(self.dir, "appels.json", [{"fr": {"title": "Appel 2024", "summary": "Résumé"}}])
        headers = self.login("admin", "admin-pass-123")
        resp = self.client.post(
            "/api/admin/appels-candidatures/import", data={"filePath": "appels.json"}, headers=headers
        )
        self.assertEqual(resp.status_code, 200, resp.get_json())
        self.assertEqual(resp.get_json()["message"], "Import completed successfully")

        page = self.client.get("/api/pages/slug/appels-candidatures").get_json()["page"]
        appels = json.loads(page["translations"]["fr"]["content"])["appels"]
        self.assertEqual([a["title"] for a in appels], ["Appel 2024"])
        self.assertEqual(self.client.get(f"/api/pages/{page['id']}").status_code, 200)

    def test_announcement_import_from_upload(self):
        headers = self.login("admin", "admin-pass-123")
        payload = json.dumps([{"title": "Appel téléversé"}]).encode("utf-8")
        resp = self.client.post(
            "/api/admin/appels-candidatures/import",
            data={"file": (io.BytesIO(payload), "appels.json")},
            content_type="multipart/form-data",
            headers=headers,
        )
        self.assertEqual(resp.status_code, 200, resp.get_json())
        page = self.store.get_page_by_slug("appels-candidatures")
        self.assertIn("Appel téléversé", page["translations"]["ar"]["content"])

    def test_announcement_import_errors(self):
        headers = self.login("admin", "admin-pass-123")
        resp = self.client.post("/api/admin/appels-candidatures/import", json={}, headers=headers)
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post(
            "/api/admin/appels-candidatures/import", json={"filePath": "absent.json"}, headers=headers
        )
        self.assertEqual(resp.status_code, 400)
        self.assertIn("File not found or cannot be read", resp.get_json()["error"])

    def test_pages_listing(self):
        pages = self.client.get("/api/pages").get_json()["pages"]
        self.assertEqual({p["slug"] for p in pages}, {"appels-candidatures", "agence-medias", "cooperation"})
        self.assertEqual(self.client.get("/api/pages/slug/unknown").status_code, 404)


class TestArticleAdministration(WebAppTestCase):
    def test_create_update_and_admin_listing(self):
        editor = self.login("editor", "editor-pass-456")
        resp = self.client.post("/api/articles", json={
            "author": "Rédaction",
            "published": False,
            "translations": {"fr": {"title": "Bourse", "content": "<p>Appel à bourses doctorales</p>"}},
        }, headers=editor)
        self.assertEqual(resp.status_code, 201, resp.get_json())
        article = resp.get_json()["article"]
        self.assertEqual(article["translations"]["fr"]["excerpt"], "Appel à bourses doctorales")
        self.assertEqual(self.client.get(f"/api/articles/{article['id']}").status_code, 404)

        admin_list = self.client.get("/api/articles/admin/all", headers=editor).get_json()
        self.assertEqual(admin_list["count"], 1)

        resp = self.client.put(f"/api/articles/{article['id']}", json={"published": True, "featured": True},
                               headers=editor)
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.get_json()["article"]["featured"])
        self.assertEqual(self.client.get("/api/articles/featured").get_json()["count"], 1)
        self.assertEqual(self.client.get("/api/articles/recent").get_json()["count"], 1)
        self.assertEqual(self.client.get("/api/articles/search?q=doctorales").get_json()["count"], 1)
        self.assertEqual(self.client.get("/api/articles/search").status_code, 400)

    def test_validation_and_guards(self):
        self.assertEqual(self.client.post("/api/articles", json={"title": "x"}).status_code, 401)
        editor = self.login("editor", "editor-pass-456")
        resp = self.client.post("/api/articles", json={"title": "Sans contenu", "author": "A"}, headers=editor)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()["error"], "translations.fr.content is required")
        resp = self.client.put("/api/articles/999", json={"featured": True}, headers=editor)
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(self.client.get("/api/articles/admin/all").status_code, 401)


class TestPageAdministration(WebAppTestCase):
    def test_create_update_publish_flow(self):
        editor = self.login("editor", "editor-pass-456")
        resp = self.client.post("/api/pages", json={
            "slug": "faq",
            "pageType": "faq",
            "translations": {
                "fr": {"title": "Questions fréquentes", "content": {"items": [{"q": "Qui ?", "a": "ANRSI"}]}},
                "ar": {"title": "أسئلة"},
            },
        }, headers=editor)
        self.assertEqual(resp.status_code, 201, resp.get_json())
        page = resp.get_json()["page"]
        self.assertEqual(page["pageType"], "FAQ")
        self.assertFalse(page["isPublished"])
        self.assertEqual(json.loads(page["translations"]["fr"]["content"])["items"][0]["a"], "ANRSI")
        self.assertEqual(self.client.get("/api/pages/slug/faq").status_code, 404)
        self.assertEqual(self.client.get("/api/pages/admin/slug/faq", headers=editor).status_code, 200)

        resp = self.client.post("/api/pages", json={"slug": "faq", "translations": {"fr": {"title": "x"}}},
                                headers=editor)
        self.assertEqual(resp.status_code, 409)

        resp = self.client.put(f"/api/pages/{page['id']}", json={"heroTitle": "Aide", "slug": "aide"}, headers=editor)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["page"]["slug"], "aide")
        self.assertEqual(resp.get_json()["page"]["heroTitle"], "Aide")

        self.assertEqual(self.client.put(f"/api/pages/{page['id']}/publish", headers=editor).status_code, 200)
        self.assertEqual(self.client.get("/api/pages/slug/aide").status_code, 200)
        self.client.put(f"/api/pages/{page['id']}/toggle", headers=editor)
        self.assertEqual(self.client.get("/api/pages/slug/aide").status_code, 404)

        slugs = self.client.get("/api/pages/admin/slugs", headers=editor).get_json()["slugs"]
        self.assertIn("aide", slugs)
        types = self.client.get("/api/pages/admin/types", headers=editor).get_json()["types"]
        self.assertEqual(types, ["SIMPLE", "LIST", "STRUCTURED", "FAQ"])

        self.assertEqual(self.client.delete(f"/api/pages/{page['id']}", headers=editor).status_code, 403)
        admin = self.login("admin", "admin-pass-123")
        self.assertEqual(self.client.delete(f"/api/pages/{page['id']}", headers=admin).status_code, 200)
        self.assertEqual(self.client.get(f"/api/pages/admin/{page['id']}", headers=admin).status_code, 404)

    def test_bad_page_type(self):
        editor = self.login("editor", "editor-pass-456")
        resp = self.client.post("/api/pages", json={
            "slug": "x", "pageType": "GALLERY", "translations": {"fr": {"title": "x"}},
        }, headers=editor)
        self.assertEqual(resp.status_code, 400)


class TestSiteContentEndpoints(WebAppTestCase):
    def test_videos(self):
        editor = self.login("editor", "editor-pass-456")
        resp = self.client.post("/api/videos", json={"title": "Forum", "url": "https://youtu.be/x"}, headers=editor)
        self.assertEqual(resp.status_code, 201)
        video_id = resp.get_json()["video"]["id"]
        self.assertEqual(self.client.get("/api/videos").get_json()["count"], 1)
        resp = self.client.put(f"/api/videos/{video_id}", json={"title": "Forum 2024", "url": "https://youtu.be/x"},
                               headers=editor)
        self.assertEqual(resp.get_json()["video"]["title"], "Forum 2024")
        self.assertEqual(self.client.post("/api/videos", json={"title": "Sans URL"}, headers=editor).status_code, 400)
        self.assertEqual(self.client.delete(f"/api/videos/{video_id}", headers=editor).status_code, 403)
        admin = self.login("admin", "admin-pass-123")
        self.assertEqual(self.client.delete(f"/api/videos/{video_id}", headers=admin).status_code, 200)
        self.assertEqual(self.client.get(f"/api/videos/{video_id}").status_code, 404)

    def test_statistics(self):
        stats = self.client.get("/api/statistics").get_json()["statistics"]
        self.assertEqual(stats["researchProjects"], 500)
        self.assertEqual(self.client.put("/api/statistics", json={"researchProjects": 1}).status_code, 401)
        editor = self.login("editor", "editor-pass-456")
        resp = self.client.put("/api/statistics", json={"researchProjects": 640}, headers=editor)
        self.assertEqual(resp.get_json()["statistics"]["researchProjects"], 640)
        resp = self.client.put("/api/statistics", json={"researchFunding": -3}, headers=editor)
        self.assertEqual(resp.status_code, 400)

    def test_contact_messages(self):
        message = {"name": "Aïcha", "email": "aicha@example.mr", "subject": "Bourse", "message": "Bonjour"}
        resp = self.client.post("/api/contact", json=message)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()["error"], "Consent is required to submit a contact message")
        resp = self.client.post("/api/contact", json={**message, "consent": True, "email": "pas-un-email"})
        self.assertEqual(resp.get_json()["error"], "Email should be valid")
        resp = self.client.post("/api/contact", json={**message, "consent": True})
        self.assertEqual(resp.status_code, 201)
        message_id = resp.get_json()["message"]["id"]

        self.assertEqual(self.client.get("/api/contact").status_code, 401)
        editor = self.login("editor", "editor-pass-456")
        self.assertEqual(self.client.get("/api/contact/unread/count", headers=editor).get_json()["count"], 1)
        resp = self.client.put(f"/api/contact/{message_id}/read", headers=editor)
        self.assertTrue(resp.get_json()["message"]["isRead"])
        self.assertEqual(self.client.get("/api/contact/unread", headers=editor).get_json()["count"], 0)
        self.assertEqual(self.client.get("/api/contact", headers=editor).get_json()["count"], 1)
        self.assertEqual(self.client.delete(f"/api/contact/{message_id}", headers=editor).status_code, 403)
        admin = self.login("admin", "admin-pass-123")
        self.assertEqual(self.client.delete(f"/api/contact/{message_id}", headers=admin).status_code, 200)
        self.assertEqual(self.client.get(f"/api/contact/{message_id}", headers=admin).status_code, 404)

    def test_useful_websites(self):
        editor = self.login("editor", "editor-pass-456")
        first = self.client.post("/api/useful-websites", json={"name": "AUF", "url": "https://auf.org", "order": 1},
                                 headers=editor).get_json()["website"]["id"]
        second = self.client.post("/api/useful-websites", json={"name": "UNESCO", "url": "https://unesco.org", "order": 2},
                                  headers=editor).get_json()["website"]["id"]
        resp = self.client.put("/api/useful-websites/reorder", json={"websites": [
            {"id": first, "order": 3}, {"id": second, "order": 0},
        ]}, headers=editor)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([w["id"] for w in resp.get_json()["websites"]], [second, first])

        resp = self.client.put("/api/useful-websites/reorder", json={"websites": [
            {"id": first, "order": 9}, {"id": 4242, "order": 1},
        ]}, headers=editor)
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(self.client.get(f"/api/useful-websites/{first}").get_json()["website"]["order"], 3)

        resp = self.client.post("/api/useful-websites", json={"name": "Sans ordre", "url": "https://x.org"},
                                headers=editor)
        self.assertEqual(resp.status_code, 400)


class TestUserAdministration(WebAppTestCase):
    def test_admin_manages_users(self):
        admin = self.login("admin", "admin-pass-123")
        resp = self.client.post("/api/users", json={
            "username": "mariem", "email": "mariem@anrsi.mr", "password": "secret-789", "role": "editor",
        }, headers=admin)
        self.assertEqual(resp.status_code, 201, resp.get_json())
        user = resp.get_json()["user"]
        self.assertEqual(user["role"], "EDITOR")
        self.assertNotIn("password_hash", user)
        self.login("mariem", "secret-789")

        resp = self.client.post("/api/users", json={
            "username": "mariem", "email": "autre@anrsi.mr", "password": "secret-789", "role": "USER",
        }, headers=admin)
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.get_json()["error"], "Username already exists")

        resp = self.client.put(f"/api/users/{user['id']}", json={"password": "nouveau-123", "firstName": "Mariem"},
                               headers=admin)
        self.assertEqual(resp.get_json()["user"]["firstName"], "Mariem")
        self.login("mariem", "nouveau-123")

        resp = self.client.put(f"/api/users/{user['id']}/toggle", headers=admin)
        self.assertFalse(resp.get_json()["user"]["isActive"])
        self.assertEqual(self.client.get("/api/users", headers=admin).get_json()["count"], 3)
        self.assertEqual(self.client.delete(f"/api/users/{user['id']}", headers=admin).status_code, 200)
        self.assertEqual(self.client.get(f"/api/users/{user['id']}", headers=admin).status_code, 404)

    def test_user_endpoints_are_admin_only(self):
        editor = self.login("editor", "editor-pass-456")
        self.assertEqual(self.client.get("/api/users", headers=editor).status_code, 403)
        admin = self.login("admin", "admin-pass-123")
        resp = self.client.post("/api/users", json={
            "username": "court", "email": "court@anrsi.mr", "password": "abc", "role": "USER",
        }, headers=admin)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()["error"], "Password must be at least 6 characters")


class TestDashboard(WebAppTestCase):
    def test_stats(self):
        self.store.create_article({"fr": {"title": "Publié", "content": "<p>a</p>", "excerpt": "a"}}, author="A")
        self.store.create_article({"fr": {"title": "Brouillon", "content": "<p>b</p>", "excerpt": "b"}}, author="A",
                                  published=False)
        self.store.create_video(title="Forum", url="https://youtu.be/x")
        editor = self.login("editor", "editor-pass-456")
        stats = self.client.get("/api/dashboard/stats", headers=editor).get_json()["stats"]
        self.assertEqual(stats, {
            "totalArticles": 2,
            "publishedArticles": 1,
            "draftArticles": 1,
            "recentArticles": 2,
            "totalUsers": 2,
            "activeUsers": 2,
            "totalVideos": 1,
        })
        self.assertEqual(self.client.get("/api/dashboard/stats").status_code, 401)


class TestDegradedMode(unittest.TestCase):
    def setUp(self):
        self.app = create_app(Settings(db_path="", jwt_secret="degraded-secret-0123456789abcdef01"))
        self.client = self.app.test_client()

    def test_endpoints_report_missing_datastore(self):
        for method, url in (
            ("get", "/api/articles"),
            ("get", "/api/pages/slug/cooperation"),
            ("post", "/api/articles/import"),
            ("post", "/api/admin/appels-candidatures/import"),
            ("post", "/api/auth/login"),
            ("get", "/api/statistics"),
            ("post", "/api/contact"),
            ("get", "/api/dashboard/stats"),
        ):
            resp = getattr(self.client, method)(url, json={})
            self.assertEqual(resp.status_code, 503, url)
            self.assertEqual(resp.get_json(), {"success": False, "error": "Datastore not configured"})

    def test_health_reports_degraded(self):
        body = self.client.get("/api/health").get_json()
        self.assertEqual(body["status"], "degraded")
        self.assertFalse(body["datastore"])


if __name__ == "__main__":
    unittest.main()
