import unittest

from filehost.db import (
    ROLE_SUPERADMIN,
    FileRecord,
    InMemoryDbClient,
    PostgresDbClient,
)
from filehost.errors import DatabaseError


class DbClientContract:
    """
    Shared checks for every DbClient. Subclasses provide ``make_db``.
    """

    def make_db(self):
        raise NotImplementedError

    def setUp(self):
        self.db = self.make_db()

    def _record(self, owner="U1", name="a.css", size=13, created_at=100.0):
        return FileRecord(
            owner_id=owner,
            name=name,
            content_type=name.rsplit(".", 1)[1],
            size_bytes=size,
            created_at=created_at,
        )

    def test_insert_and_find_by_id(self):
        record = self._record()
        file_id = self.db.insert_file(record)
        fetched = self.db.find_by_id(file_id)
        self.assertIsNotNone(fetched)
        self.assertEqual(fetched.name, "a.css")
        self.assertEqual(fetched.storage_key, "U1/a.css")
        self.assertIsNone(fetched.last_edited_at)
        self.assertIsNone(self.db.find_by_id("missing"))

    def test_find_by_owner_newest_first(self):
        self.db.insert_file(self._record(name="old.css", created_at=1.0))
        self.db.insert_file(self._record(name="new.css", created_at=3.0))
        self.db.insert_file(self._record(name="mid.js", created_at=2.0))
        self.db.insert_file(self._record(owner="U2", name="x.css", created_at=4.0))
        names = [r.name for r in self.db.find_by_owner("U1")]
        self.assertEqual(names, ["new.css", "mid.js", "old.css"])
        self.assertEqual(len(self.db.list_files()), 4)
        self.assertEqual(len(self.db.list_files(limit=2)), 2)

    def test_replace_keeps_one_row_per_owner_and_name(self):
        first, previous = self.db.replace_file(self._record(size=13, created_at=1.0))
        self.assertIsNone(previous)
        self.assertEqual(self.db.get_profile("U1").storage_used, 13)

        second, previous = self.db.replace_file(self._record(size=14, created_at=2.0))
        self.assertEqual(previous.id, first.id)
        rows = self.db.find_by_owner("U1")
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].id, second.id)
        self.assertEqual(rows[0].size_bytes, 14)
        self.assertEqual(self.db.get_profile("U1").storage_used, 14)

    def test_replace_is_scoped_to_owner(self):
        self.db.replace_file(self._record(owner="U1"))
        self.db.replace_file(self._record(owner="U2"))
        self.assertEqual(len(self.db.find_by_owner("U1")), 1)
        self.assertEqual(len(self.db.find_by_owner("U2")), 1)

    def test_owner_and_name_are_unique(self):
        self.db.insert_file(self._record(size=10))
        with self.assertRaises(DatabaseError):
            self.db.insert_file(self._record(size=20))
        records = self.db.find_by_owner("U1")
        self.assertEqual([r.size_bytes for r in records], [10])
        self.db.insert_file(self._record(owner="U2"))
        self.assertEqual(len(self.db.list_files()), 2)

    def test_delete_file(self):
        file_id = self.db.insert_file(self._record())
        deleted = self.db.delete_file(file_id)
        self.assertEqual(deleted.id, file_id)
        self.assertIsNone(self.db.find_by_id(file_id))
        self.assertIsNone(self.db.delete_file(file_id))

    def test_update_size_and_last_edited(self):
        file_id = self.db.insert_file(self._record())
        self.db.update_size(file_id, 20)
        self.db.update_last_edited(file_id, 200.0)
        fetched = self.db.find_by_id(file_id)
        self.assertEqual(fetched.size_bytes, 20)
        self.assertEqual(fetched.last_edited_at, 200.0)

    def test_storage_counter(self):
        self.assertEqual(self.db.update_storage_used("U1", 100), 100)
        self.assertEqual(self.db.update_storage_used("U1", -40), 60)
        self.assertEqual(self.db.get_profile("U1").storage_used, 60)

    def test_profiles(self):
        profile = self.db.ensure_profile("U1")
        self.assertEqual(profile.role, "standard")
        self.assertFalse(profile.suspended)
        self.assertEqual(self.db.ensure_profile("U1").id, "U1")
        self.assertEqual(len(self.db.list_profiles()), 1)

        self.assertTrue(self.db.set_suspended("U1", True).suspended)
        self.assertTrue(self.db.set_role("U1", ROLE_SUPERADMIN).is_superadmin)
        self.assertIsNone(self.db.set_suspended("nobody", True))

        self.assertTrue(self.db.delete_profile("U1"))
        self.assertFalse(self.db.delete_profile("U1"))
        self.assertIsNone(self.db.get_profile("U1"))

    def test_total_storage(self):
        self.assertEqual(self.db.total_storage(), 0)
        self.db.insert_file(self._record(name="a.css", size=10))
        self.db.insert_file(self._record(owner="U2", name="b.js", size=5))
        self.assertEqual(self.db.total_storage(), 15)


class PostgresDbClientTests(DbClientContract, unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    def make_db(self):
        return PostgresDbClient("sqlite+pysqlite:///:memory:")


class InMemoryDbClientTests(DbClientContract, unittest.TestCase):
    def make_db(self):
        return InMemoryDbClient()


if __name__ == "__main__":
    unittest.main()
