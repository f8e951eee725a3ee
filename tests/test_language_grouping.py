import unittest

from anrsi.importing.grouping import group_by_node
from anrsi.importing.languages import language_from_url
from anrsi.importing.records import SourceRecord


class TestLanguageFromUrl(unittest.TestCase):
    def test_arabic_markers(self):
        self.assertEqual(language_from_url("https://anrsi.mr/ar/node/12"), "ar")
        self.assertEqual(language_from_url("https://anrsi.mr/?q=ar/node/12"), "ar")

    def test_english_markers(self):
        self.assertEqual(language_from_url("https://anrsi.mr/en/node/12"), "en")
        self.assertEqual(language_from_url("https://anrsi.mr/?q=en/node/12"), "en")

    def test_defaults_to_french(self):
        self.assertEqual(language_from_url("https://anrsi.mr/node/12"), "fr")
        self.assertEqual(language_from_url("https://anrsi.mr/fr/node/12"), "fr")
        self.assertEqual(language_from_url(None), "fr")
        self.assertEqual(language_from_url(""), "fr")


class TestGroupByNode(unittest.TestCase):
    def test_groups_across_files_by_node_and_language(self):
        files = [
            ("a.json", [
                SourceRecord(node_id=1, url="https://anrsi.mr/node/1", title="Bonjour"),
                SourceRecord(node_id=2, url="https://anrsi.mr/node/2", title="Deux"),
            ]),
            ("b.json", [
                SourceRecord(node_id=1, url="https://anrsi.mr/en/node/1", title="Hello"),
            ]),
        ]
        groups, errors = group_by_node(files)
        self.assertEqual(errors, [])
        self.assertEqual(list(groups), [1, 2])
        self.assertEqual(set(groups[1]), {"fr", "en"})
        self.assertEqual(groups[1]["en"].title, "Hello")

    def test_last_record_wins_for_same_node_and_language(self):
        files = [
            ("a.json", [SourceRecord(node_id=3, url="https://anrsi.mr/node/3", title="Ancien")]),
            ("b.json", [SourceRecord(node_id=3, url="https://anrsi.mr/node/3", title="Nouveau")]),
        ]
        groups, _ = group_by_node(files)
        self.assertEqual(groups[3]["fr"].title, "Nouveau")

    def test_missing_node_id_is_reported(self):
        files = [("broken.json", [SourceRecord(node_id=None, title="Orphan")])]
        groups, errors = group_by_node(files)
        self.assertEqual(groups, {})
        self.assertEqual(errors, ["Node with null node_id found in file: broken.json"])


if __name__ == "__main__":
    unittest.main()
