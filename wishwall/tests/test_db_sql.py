import time
import unittest

from wishwall.db import SqlRowStore, SubmissionRecord


class SqlRowStoreTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the SQL row store.
    """

    def setUp(self):
        self.db = SqlRowStore("sqlite+pysqlite:///:memory:")

    def _record(self, name, ip="203.0.113.1", photo_path=None):
        return SubmissionRecord(
            name=name,
            wish="Happy birthday!!",
            avatar_id="slyv3",
            photo_path=photo_path,
            ip_plain=ip,
            ip_truncated="203.0.113.xxx",
            ip_hash="abc",
            ua="agent",
        )

    def test_insert_returns_generated_id(self):
        row_id = self.db.insert(self._record("Alex", photo_path="wishes/1-a.jpg"))
        self.assertTrue(row_id)
        (row,) = self.db.list_recent()
        self.assertEqual(row.id, row_id)
        self.assertEqual(row.name, "Alex")
        self.assertEqual(row.photo_path, "wishes/1-a.jpg")
        self.assertIsNotNone(row.created_at)

    def test_list_recent_newest_first_with_limit(self):
        for name in ("a", "b", "c", "d"):
            self.db.insert(self._record(name))
        rows = self.db.list_recent(limit=3)
        self.assertEqual([row.name for row in rows], ["d", "c", "b"])
        timestamps = [row.created_at for row in rows]
        self.assertEqual(timestamps, sorted(timestamps, reverse=True))

    def test_query_filters_by_address_and_time(self):
        before = time.time() - 1
        self.db.insert(self._record("mine"))
        self.db.insert(self._record("theirs", ip="198.51.100.9"))

        mine = self.db.query(ip_plain="203.0.113.1", since=before)
        self.assertEqual([row.name for row in mine], ["mine"])
        self.assertEqual(self.db.query(ip_plain="203.0.113.1", since=time.time() + 60), [])


if __name__ == "__main__":
    unittest.main()
