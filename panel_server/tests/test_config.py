import os
import unittest
from unittest import mock

from panel_server.config import Settings


def load(env: dict) -> Settings:
    with mock.patch.dict(os.environ, env, clear=True):
        return Settings(_env_file=None)


class SettingsTests(unittest.TestCase):
    def test_defaults(self):
        settings = load({})
        self.assertEqual(settings.port, 3000)
        self.assertEqual(settings.upload_dir, "data/uploads")
        self.assertEqual(settings.thumb_dir, "data/thumbs")
        self.assertEqual(settings.database_url, "sqlite:///data/db.sqlite")
        self.assertEqual(settings.max_upload_bytes, 5 * 1024 * 1024)
        self.assertEqual(settings.public_base_url, "http://localhost:3000")
        self.assertFalse(settings.base_url_configured)
        self.assertEqual((settings.full_max_width, settings.full_quality), (1080, 75))
        self.assertEqual((settings.thumb_max_width, settings.thumb_quality), (400, 60))

    def test_environment_overrides(self):
        settings = load(
            {
                "PORT": "8080",
                "UPLOAD_DIR": "/srv/panels/full",
                "THUMB_DIR": "/srv/panels/small",
                "MAX_UPLOAD_MB": "1.5",
            }
        )
        self.assertEqual(settings.port, 8080)
        self.assertEqual(settings.upload_dir, "/srv/panels/full")
        self.assertEqual(settings.thumb_dir, "/srv/panels/small")
        self.assertEqual(settings.max_upload_bytes, int(1.5 * 1024 * 1024))
        self.assertEqual(settings.public_base_url, "http://localhost:8080")

    def test_base_url_strips_trailing_slash(self):
        settings = load({"BASE_URL": "https://panels.example.org/"})
        self.assertTrue(settings.base_url_configured)
        self.assertEqual(settings.public_base_url, "https://panels.example.org")

    def test_data_dir_moves_every_default_path(self):
        settings = load({"DATA_DIR": "/var/lib/panels/"})
        self.assertEqual(settings.upload_dir, "/var/lib/panels/uploads")
        self.assertEqual(settings.thumb_dir, "/var/lib/panels/thumbs")
        self.assertEqual(settings.database_url, "sqlite:////var/lib/panels/db.sqlite")

    def test_data_dir_at_filesystem_root_stays_absolute(self):
        settings = load({"DATA_DIR": "/"})
        self.assertEqual(settings.upload_dir, "/uploads")
        self.assertEqual(settings.thumb_dir, "/thumbs")
        self.assertEqual(settings.database_url, "sqlite:////db.sqlite")

    def test_rejects_non_positive_upload_cap(self):
        with self.assertRaises(ValueError):
            load({"MAX_UPLOAD_MB": "0"})


if __name__ == "__main__":
    unittest.main()
