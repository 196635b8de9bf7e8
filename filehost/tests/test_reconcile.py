import unittest
from unittest.mock import patch

from filehost.config import Settings
from filehost.context import Backends, CallerContext
from filehost.db import InMemoryDbClient
from filehost.feed import InMemoryChangeFeed
from filehost.reconcile import find_orphaned_blobs, sweep_orphaned_blobs
from filehost.storage import InMemoryStorageClient
from filehost.uploads import upload_file


class OrphanSweepTests(unittest.TestCase):
    def setUp(self):
        self.backends = Backends(
            db=InMemoryDbClient(),
            storage=InMemoryStorageClient(),
            feed=InMemoryChangeFeed(),
            settings=Settings(_env_file=None, orphan_grace_seconds=60),
        )
        upload_file(
            self.backends, CallerContext("U1"), filename="a.css", content=b".a{}"
        )
        # Blob written, metadata write failed.
        with patch.object(
            self.backends.db, "replace_file", side_effect=RuntimeError("db down")
        ):
            with self.assertRaises(RuntimeError):
                upload_file(
                    self.backends,
                    CallerContext("U1"),
                    filename="b.css",
                    content=b".b{}",
                )
        self.written_at = self.backends.storage.modified_at["U1/b.css"]

    def test_orphan_is_found_after_grace_period(self):
        self.assertEqual(
            find_orphaned_blobs(self.backends, now=self.written_at + 10), []
        )
        orphans = find_orphaned_blobs(self.backends, now=self.written_at + 61)
        self.assertEqual([o.key for o in orphans], ["U1/b.css"])

    def test_dry_run_keeps_blobs(self):
        removed = sweep_orphaned_blobs(
            self.backends, dry_run=True, grace_seconds=0, now=self.written_at
        )
        self.assertEqual(removed, ["U1/b.css"])
        self.assertIn("U1/b.css", self.backends.storage.stored_objects)

    def test_sweep_deletes_only_orphans(self):
        removed = sweep_orphaned_blobs(
            self.backends, grace_seconds=0, now=self.written_at
        )
        self.assertEqual(removed, ["U1/b.css"])
        self.assertEqual(list(self.backends.storage.stored_objects), ["U1/a.css"])


if __name__ == "__main__":
    unittest.main()
