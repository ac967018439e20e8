import json
import unittest
from unittest.mock import patch

from redis.exceptions import ConnectionError as RedisConnectionError

from dashboard.session_store.redis import RedisSessionStore


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.expires = {}

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.expires[key] = ttl

    def get(self, key):
        return self.store.get(key)

    def expire(self, key, ttl):
        self.expires[key] = ttl

    def delete(self, key):
        self.store.pop(key, None)
        self.expires.pop(key, None)

    def scan_iter(self, pattern):
        prefix = pattern.rstrip("*")
        return [k for k in list(self.store.keys()) if k.startswith(prefix)]


class TestRedisSessionStore(unittest.TestCase):
    def test_round_trip_through_json(self):
        client = FakeRedis()
        store = RedisSessionStore(client, ttl_seconds=120)
        session = store.create_session("user-1", "a@example.com")

        key = f"dashboard:session:{session.access_token}"
        self.assertIn(key, client.store)
        self.assertEqual(client.expires[key], 120)
        payload = json.loads(client.store[key].decode("utf-8"))
        self.assertEqual(payload["user_id"], "user-1")

        fetched = store.get_session(session.access_token)
        self.assertEqual(fetched, session)

    def test_get_refreshes_ttl(self):
        client = FakeRedis()
        store = RedisSessionStore(client, ttl_seconds=60)
        session = store.create_session("u", "u@example.com")
        key = store._key(session.access_token)
        client.expires[key] = 5
        store.get_session(session.access_token)
        self.assertEqual(client.expires[key], 60)

    def test_untouched_lookup_keeps_ttl(self):
        client = FakeRedis()
        store = RedisSessionStore(client, ttl_seconds=60)
        session = store.create_session("u", "u@example.com")
        key = store._key(session.access_token)
        client.expires[key] = 5
        self.assertEqual(store.get_session(session.access_token, touch=False), session)
        self.assertEqual(client.expires[key], 5)

    def test_corrupt_payload_returns_none(self):
        client = FakeRedis()
        store = RedisSessionStore(client)
        client.store[store._key("bad")] = b"not-json"
        self.assertIsNone(store.get_session("bad"))

    def test_max_age_expiry_deletes(self):
        client = FakeRedis()
        store = RedisSessionStore(client, ttl_seconds=60, max_age_seconds=10)
        with patch("dashboard.session_store.redis.time.time", return_value=1000.0):
            session = store.create_session("u", "u@example.com")
        self.assertEqual(client.expires[store._key(session.access_token)], 10)
        with patch("dashboard.session_store.redis.time.time", return_value=1011.0):
            self.assertIsNone(store.get_session(session.access_token))
        self.assertNotIn(store._key(session.access_token), client.store)

    def test_delete_and_clear(self):
        client = FakeRedis()
        store = RedisSessionStore(client)
        a = store.create_session("a", "a@example.com")
        store.create_session("b", "b@example.com")
        client.store["other:key"] = b"x"

        store.delete_session(a.access_token)
        self.assertIsNone(store.get_session(a.access_token))

        store.clear()
        self.assertEqual(list(client.store.keys()), ["other:key"])

    def test_unreachable_redis_reads_as_signed_out(self):
        client = FakeRedis()
        store = RedisSessionStore(client)
        session = store.create_session("u", "u@example.com")

        def broken_get(key):
            raise RedisConnectionError("Connection refused")

        client.get = broken_get
        with self.assertLogs("dashboard.session_store.redis", level="ERROR"):
            self.assertIsNone(store.get_session(session.access_token))


if __name__ == "__main__":
    unittest.main()
