import time
import unittest

from wishwall.db import InMemoryRowStore, SubmissionRecord
from wishwall.errors import RateLimitError, UpstreamStoreError
from wishwall.identity import (
    RateLimitGuard,
    client_ip_from_headers,
    hash_ip,
    identify_client,
    truncate_ip,
)


class ClientAddressTests(unittest.TestCase):
    def test_forwarded_for_first_entry_wins(self):
        headers = {"x-forwarded-for": " 203.0.113.5 , 10.0.0.2", "x-real-ip": "10.9.9.9"}
        self.assertEqual(client_ip_from_headers(headers), "203.0.113.5")

    def test_real_ip_fallback(self):
        self.assertEqual(client_ip_from_headers({"x-real-ip": " 10.9.9.9 "}), "10.9.9.9")

    def test_unknown_when_no_headers(self):
        self.assertEqual(client_ip_from_headers({}), "unknown")

    def test_truncate(self):
        self.assertEqual(truncate_ip("203.0.113.5"), "203.0.113.xxx")
        self.assertEqual(truncate_ip("2001:db8::1"), "2001:0db8:0000:0000:*")
        self.assertEqual(truncate_ip("unknown"), "unknown")
        self.assertEqual(truncate_ip("not-an-ip"), "unknown")

    def test_hash_depends_on_salt(self):
        self.assertEqual(hash_ip("203.0.113.5", "a"), hash_ip("203.0.113.5", "a"))
        self.assertNotEqual(hash_ip("203.0.113.5", "a"), hash_ip("203.0.113.5", "b"))

    def test_identify_client(self):
        client = identify_client({"x-forwarded-for": "198.51.100.20"}, "pepper")
        self.assertEqual(client.raw, "198.51.100.20")
        self.assertEqual(client.truncated, "198.51.100.xxx")
        self.assertEqual(client.hashed, hash_ip("198.51.100.20", "pepper"))


class RateLimitGuardTests(unittest.TestCase):
    def setUp(self):
        self.rows = InMemoryRowStore()

    def _add(self, ip, created_at):
        record = SubmissionRecord(
            name="n", wish="hello", avatar_id="slyv1", ip_plain=ip, id=ip + str(created_at),
            created_at=created_at,
        )
        self.rows.rows[record.id] = record

    def test_allows_below_threshold(self):
        now = time.time()
        self._add("1.2.3.4", now - 5)
        self._add("1.2.3.4", now - 10)
        RateLimitGuard(self.rows, per_minute=3).check("1.2.3.4", now=now)

    def test_minute_window(self):
        now = time.time()
        for offset in (1, 2, 3):
            self._add("1.2.3.4", now - offset)
        with self.assertRaises(RateLimitError) as ctx:
            RateLimitGuard(self.rows, per_minute=3).check("1.2.3.4", now=now)
        self.assertEqual(ctx.exception.message, "Too many requests. Try again in a minute.")
        self.assertEqual(ctx.exception.retry_after, 60)
        self.assertEqual(ctx.exception.status_code, 429)

    def test_rows_outside_minute_window_do_not_count(self):
        now = time.time()
        for offset in (61, 120, 600):
            self._add("1.2.3.4", now - offset)
        RateLimitGuard(self.rows, per_minute=3, per_day=25).check("1.2.3.4", now=now)

    def test_day_window(self):
        now = time.time()
        for offset in (3600, 7200):
            self._add("1.2.3.4", now - offset)
        self._add("1.2.3.4", now - 2 * 24 * 3600)
        guard = RateLimitGuard(self.rows, per_minute=3, per_day=2)
        with self.assertRaises(RateLimitError) as ctx:
            guard.check("1.2.3.4", now=now)
        self.assertEqual(ctx.exception.message, "Daily limit reached.")

    def test_other_addresses_ignored(self):
        now = time.time()
        for offset in (1, 2, 3):
            self._add("5.6.7.8", now - offset)
        RateLimitGuard(self.rows, per_minute=3).check("1.2.3.4", now=now)

    def test_store_failure_names_window(self):
        class BrokenStore(InMemoryRowStore):
            def query(self, *, ip_plain, since):
                raise UpstreamStoreError("timeout")

        with self.assertRaises(UpstreamStoreError) as ctx:
            RateLimitGuard(BrokenStore()).check("1.2.3.4")
        self.assertEqual(ctx.exception.message, "DB error (minute): timeout")


if __name__ == "__main__":
    unittest.main()
