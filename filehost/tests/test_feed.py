import unittest
from unittest.mock import MagicMock, patch

from filehost.feed import (
    EVENT_INSERT,
    EVENT_UPDATE,
    FileChange,
    InMemoryChangeFeed,
    RedisChangeFeed,
)


class InMemoryChangeFeedTests(unittest.TestCase):
    def test_events_are_scoped_to_owner(self):
        feed = InMemoryChangeFeed()
        mine = feed.subscribe("U1")
        theirs = feed.subscribe("U2")

        feed.publish(FileChange(EVENT_INSERT, "U1", "f1", "a.css"))

        change = mine.get(timeout=0.1)
        self.assertEqual(change.file_id, "f1")
        self.assertIsNone(theirs.get(timeout=0.01))

    def test_close_unsubscribes(self):
        feed = InMemoryChangeFeed()
        subscription = feed.subscribe("U1")
        subscription.close()
        self.assertEqual(feed.subscribers, {})
        feed.publish(FileChange(EVENT_UPDATE, "U1", "f1", "a.css"))
        self.assertIsNone(subscription.get(timeout=0.01))
        self.assertEqual(len(feed.published), 1)

    def test_json_payload(self):
        change = FileChange(EVENT_UPDATE, "U1", "f1", "a.css")
        self.assertEqual(FileChange.from_json(change.to_json().encode("utf-8")), change)


class RedisChangeFeedTests(unittest.TestCase):
    @patch("filehost.feed.redis.Redis.from_url")
    def test_publish_uses_owner_channel(self, mock_from_url):
        client = MagicMock()
        mock_from_url.return_value = client
        feed = RedisChangeFeed(url="redis://localhost:6379/0")

        change = FileChange(EVENT_INSERT, "U1", "f1", "a.css")
        feed.publish(change)

        client.publish.assert_called_once_with("filehost:files:U1", change.to_json())

    @patch("filehost.feed.redis.Redis.from_url")
    def test_subscription_decodes_messages(self, mock_from_url):
        change = FileChange(EVENT_INSERT, "U1", "f1", "a.css")
        pubsub = MagicMock()
        pubsub.get_message.side_effect = [
            {"type": "message", "data": change.to_json().encode("utf-8")},
            None,
        ]
        client = MagicMock()
        client.pubsub.return_value = pubsub
        mock_from_url.return_value = client

        subscription = RedisChangeFeed(url="redis://localhost:6379/0").subscribe("U1")

        pubsub.subscribe.assert_called_once_with("filehost:files:U1")
        self.assertEqual(subscription.get(timeout=0.1), change)
        self.assertIsNone(subscription.get(timeout=0.1))
        subscription.close()
        pubsub.close.assert_called_once()


if __name__ == "__main__":
    unittest.main()
