import json
import tempfile
import unittest
from pathlib import Path

from s3_tree.settings import MAX_PAGE_SIZE, MAX_SHARE_EXPIRY_SECONDS, AdapterSettings, SettingsStorage


class SettingsStorageTests(unittest.TestCase):
    def test_load_returns_defaults_when_missing(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"
            storage = SettingsStorage(path)

            settings = storage.load()

            self.assertEqual(AdapterSettings(), settings)

    def test_load_sanitizes_invalid_values(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"
            payload = {
                "page_size": "nope",
                "item_error_policy": "explode",
                "share_expiry_seconds": MAX_SHARE_EXPIRY_SECONDS + 1,
            }
            path.write_text(json.dumps(payload), encoding="utf-8")
            storage = SettingsStorage(path)

            settings = storage.load()

            self.assertEqual(AdapterSettings.page_size, settings.page_size)
            self.assertEqual("continue", settings.item_error_policy)
            self.assertEqual(AdapterSettings.share_expiry_seconds, settings.share_expiry_seconds)

    def test_load_accepts_valid_values(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"
            payload = {"page_size": 50, "item_error_policy": " STOP ", "share_expiry_seconds": 60}
            path.write_text(json.dumps(payload), encoding="utf-8")

            settings = SettingsStorage(path).load()

            self.assertEqual(AdapterSettings(50, "stop", 60), settings)

    def test_load_ignores_corrupt_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"
            path.write_text("{not json", encoding="utf-8")

            with self.assertLogs("s3_tree.settings", level="WARNING"):
                settings = SettingsStorage(path).load()

            self.assertEqual(AdapterSettings(), settings)

    def test_save_clamps_values(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"
            storage = SettingsStorage(path)
            settings = AdapterSettings(page_size=0, item_error_policy="maybe", share_expiry_seconds=10**9)

            storage.save(settings)

            saved = json.loads(path.read_text(encoding="utf-8"))
            self.assertEqual(1, saved["page_size"])
            self.assertEqual("continue", saved["item_error_policy"])
            self.assertEqual(MAX_SHARE_EXPIRY_SECONDS, saved["share_expiry_seconds"])

            storage.save(AdapterSettings(page_size=MAX_PAGE_SIZE * 2))
            self.assertEqual(MAX_PAGE_SIZE, json.loads(path.read_text(encoding="utf-8"))["page_size"])


if __name__ == "__main__":
    unittest.main()
