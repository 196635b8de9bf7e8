import unittest
from unittest.mock import patch

from filehost.config import Settings
from filehost.context import AdminContext, Backends, CallerContext
from filehost.db import InMemoryDbClient
from filehost.editing import read_content, save_content
from filehost.errors import (
    AccessDenied,
    MissingField,
    NotFound,
    QuotaExceeded,
    StorageReadFailed,
    StorageWriteFailed,
    TooLarge,
    Unauthenticated,
)
from filehost.feed import EVENT_UPDATE, InMemoryChangeFeed
from filehost.storage import InMemoryStorageClient, StorageUnavailable
from filehost.uploads import upload_file


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        self.now += 1.0
        return self.now


def make_backends(**overrides) -> Backends:
    return Backends(
        db=InMemoryDbClient(),
        storage=InMemoryStorageClient(),
        feed=InMemoryChangeFeed(),
        settings=Settings(_env_file=None, **overrides),
        clock=FakeClock(),
    )


class ContentEditTests(unittest.TestCase):
    def setUp(self):
        self.backends = make_backends()
        self.owner = CallerContext(owner_id="U1")
        self.record = upload_file(
            self.backends,
            self.owner,
            filename="a.css",
            content=b".a { color: red; }",
        ).record

    def test_read_returns_stored_content(self):
        self.assertEqual(
            read_content(self.backends, self.owner, self.record.id), ".a{color:red}"
        )

    def test_js_round_trips_exact_bytes(self):
        source = "const label = \"caf\u00e9\";\n"
        record = upload_file(
            self.backends,
            self.owner,
            filename="app.js",
            content=source.encode("utf-8"),
        ).record
        self.assertEqual(read_content(self.backends, self.owner, record.id), source)

    def test_read_checks_ownership(self):
        with self.assertRaises(AccessDenied):
            read_content(self.backends, CallerContext("U2"), self.record.id)
        admin = AdminContext(owner_id="ADMIN", role="superadmin")
        self.assertEqual(
            read_content(self.backends, admin, self.record.id), ".a{color:red}"
        )

    def test_read_unknown_file(self):
        with self.assertRaises(NotFound):
            read_content(self.backends, self.owner, "missing")
        with self.assertRaises(MissingField):
            read_content(self.backends, self.owner, "")

    def test_read_requires_identity(self):
        with self.assertRaises(Unauthenticated):
            read_content(
                self.backends, CallerContext("public", anonymous=True), self.record.id
            )

    def test_read_missing_blob(self):
        self.backends.storage.delete_object("U1/a.css")
        with self.assertRaises(NotFound):
            read_content(self.backends, self.owner, self.record.id)

    def test_read_storage_failure(self):
        with patch.object(
            self.backends.storage, "get_bytes", side_effect=StorageUnavailable("U1/a.css")
        ):
            with self.assertRaises(StorageReadFailed):
                read_content(self.backends, self.owner, self.record.id)

    def test_save_minifies_and_updates_metadata(self):
        updated = save_content(
            self.backends,
            self.owner,
            self.record.id,
            "/* new */\n.a {\n  color: blue;\n  margin: 0;\n}\n",
        )
        expected = b".a{color:blue;margin:0}"
        self.assertEqual(self.backends.storage.get_bytes("U1/a.css"), expected)
        self.assertEqual(updated.size_bytes, len(expected))
        self.assertIsNotNone(updated.last_edited_at)
        self.assertGreater(updated.last_edited_at, updated.created_at)
        self.assertEqual(
            self.backends.db.get_profile("U1").storage_used, len(expected)
        )
        self.assertEqual(
            read_content(self.backends, self.owner, self.record.id),
            expected.decode("utf-8"),
        )
        self.assertEqual(self.backends.feed.published[-1].event, EVENT_UPDATE)

    def test_save_shrinking_content_releases_quota(self):
        save_content(self.backends, self.owner, self.record.id, ".a{}")
        self.assertEqual(self.backends.db.get_profile("U1").storage_used, 4)

    def test_save_requires_content(self):
        with self.assertRaises(MissingField):
            save_content(self.backends, self.owner, self.record.id, "")
        with self.assertRaises(MissingField):
            save_content(self.backends, self.owner, self.record.id, None)

    def test_save_checks_ownership(self):
        with self.assertRaises(AccessDenied):
            save_content(self.backends, CallerContext("U2"), self.record.id, ".b{}")
        with self.assertRaises(AccessDenied):
            save_content(
                self.backends, self.owner, self.record.id, ".b{}", owner_id="U2"
            )
        self.assertEqual(
            self.backends.storage.get_bytes("U1/a.css"), b".a{color:red}"
        )

    def test_save_rejects_oversized_content(self):
        with self.assertRaises(TooLarge):
            save_content(
                self.backends, self.owner, self.record.id, "a" * (1024 * 1024 + 1)
            )

    def test_save_enforces_quota_on_growth(self):
        self.backends.settings = Settings(_env_file=None, storage_quota_bytes=20)
        with self.assertRaises(QuotaExceeded):
            save_content(
                self.backends,
                self.owner,
                self.record.id,
                ".a{color:red;background:white}",
            )
        fetched = self.backends.db.find_by_id(self.record.id)
        self.assertEqual(fetched.size_bytes, 13)
        self.assertIsNone(fetched.last_edited_at)
        self.assertEqual(
            self.backends.storage.get_bytes("U1/a.css"), b".a{color:red}"
        )

    def test_save_storage_failure_keeps_metadata(self):
        with patch.object(
            self.backends.storage, "put_object", side_effect=StorageUnavailable("U1/a.css")
        ):
            with self.assertRaises(StorageWriteFailed):
                save_content(self.backends, self.owner, self.record.id, ".b{}")
        self.assertIsNone(self.backends.db.find_by_id(self.record.id).last_edited_at)

    def test_suspended_caller_cannot_save(self):
        with self.assertRaises(AccessDenied):
            save_content(
                self.backends,
                CallerContext("U1", suspended=True),
                self.record.id,
                ".b{}",
            )

    def test_js_edit_is_not_minified(self):
        js = upload_file(
            self.backends, self.owner, filename="app.js", content=b"let a = 1;"
        ).record
        save_content(self.backends, self.owner, js.id, "let a = 2;  // two\n")
        self.assertEqual(
            self.backends.storage.get_bytes("U1/app.js"), b"let a = 2;  // two\n"
        )


if __name__ == "__main__":
    unittest.main()
