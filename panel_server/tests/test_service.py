import unittest

from panel_server.db import InMemoryPanelStore
from panel_server.errors import (
    ImageProcessingError,
    PanelNotFoundError,
    StorageWriteError,
)
from panel_server.imaging import FULL, THUMB
from panel_server.service import PanelService
from panel_server.storage import InMemoryFileStorage
from panel_server.tests.helpers import png_bytes


class PanelServiceTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.store = InMemoryPanelStore()
        self.files = InMemoryFileStorage()
        self.service = PanelService(
            store=self.store,
            files=self.files,
            full_spec=FULL,
            thumb_spec=THUMB,
            base_url="http://localhost:3000",
        )

    async def test_ingest_writes_both_files_then_records(self):
        result = await self.service.ingest(png_bytes(1500, 500), chain_id="c", author_id="a")
        panel_id = result.record.id

        self.assertEqual(
            set(self.files.files),
            {("uploads", f"{panel_id}.webp"), ("thumbs", f"{panel_id}_thumb.webp")},
        )
        self.assertEqual(self.store.get_panel(panel_id), result.record)
        self.assertEqual(result.image_url, f"http://localhost:3000/uploads/{panel_id}.webp")
        self.assertEqual(result.thumb_url, f"http://localhost:3000/thumbs/{panel_id}_thumb.webp")

    async def test_ingest_defaults_and_base_url_override(self):
        result = await self.service.ingest(png_bytes(100, 50), base_url="https://proxy.test/")
        self.assertEqual(result.record.chain_id, "unknown")
        self.assertEqual(result.record.author_id, "anonymous")
        self.assertTrue(result.image_url.startswith("https://proxy.test/uploads/"))

    async def test_ids_are_unique(self):
        first = await self.service.ingest(png_bytes(100, 50))
        second = await self.service.ingest(png_bytes(100, 50))
        self.assertNotEqual(first.record.id, second.record.id)
        self.assertEqual(len(self.files.files), 4)

    async def test_decode_failure_writes_nothing(self):
        with self.assertRaises(ImageProcessingError):
            await self.service.ingest(b"garbage")
        self.assertEqual(self.files.files, {})
        self.assertEqual(self.store.list_recent(), [])

    async def test_insert_failure_discards_written_files(self):
        def reject(record):
            raise ValueError("duplicate")

        self.store.insert_panel = reject
        with self.assertRaises(StorageWriteError):
            await self.service.ingest(png_bytes(200, 100))
        self.assertEqual(self.files.files, {})

    async def test_unexpected_write_error_discards_written_files(self):
        write = self.files.write

        def fail_on_thumb(kind, filename, data):
            if kind == "thumbs":
                raise RuntimeError("disk went away")
            return write(kind, filename, data)

        self.files.write = fail_on_thumb
        with self.assertRaises(RuntimeError):
            await self.service.ingest(png_bytes(200, 100))
        self.assertEqual(self.files.files, {})
        self.assertEqual(self.store.list_recent(), [])

    def test_get_panel_missing(self):
        with self.assertRaises(PanelNotFoundError):
            self.service.get_panel("nope")

    async def test_list_panels_uses_fixed_limit(self):
        self.service.list_limit = 2
        for _ in range(3):
            await self.service.ingest(png_bytes(100, 50), chain_id="c")
        self.assertEqual(len(self.service.list_panels()), 2)
        self.assertEqual(len(self.service.list_panels(chain_id="c")), 2)
        self.assertEqual(self.service.list_panels(chain_id="other"), [])


if __name__ == "__main__":
    unittest.main()
