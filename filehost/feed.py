"""
Change feed for file metadata.

Every committed insert, update or delete of a file record is published on
a topic named after the owning account. Browsers subscribe to their own
topic and refetch their file list when an event arrives.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
from dataclasses import asdict, dataclass, field
from typing import Dict, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)

EVENT_INSERT = "INSERT"
EVENT_UPDATE = "UPDATE"
EVENT_DELETE = "DELETE"


@dataclass
class FileChange:
    event: str
    owner_id: str
    file_id: str
    name: str

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, payload: str | bytes) -> "FileChange":
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        return cls(**json.loads(payload))


class Subscription(Protocol):
    def get(self, timeout: float = 1.0) -> Optional[FileChange]:
        ...

    def close(self) -> None:
        ...


class ChangeFeed(Protocol):
    """Publish/subscribe interface keyed by owner id."""

    def publish(self, change: FileChange) -> None:
        ...

    def subscribe(self, owner_id: str) -> Subscription:
        ...


@dataclass
class InMemorySubscription:
    feed: "InMemoryChangeFeed"
    owner_id: str
    events: "queue.Queue[FileChange]" = field(default_factory=queue.Queue)

    def get(self, timeout: float = 1.0) -> Optional[FileChange]:
        try:
            return self.events.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self) -> None:
        self.feed.unsubscribe(self)


class InMemoryChangeFeed:
    """Process-local fan-out, used in tests and single-process runs."""

    def __init__(self):
        self.subscribers: Dict[str, list[InMemorySubscription]] = {}
        self.published: list[FileChange] = []
        self._lock = threading.Lock()

    def publish(self, change: FileChange) -> None:
        with self._lock:
            self.published.append(change)
            targets = list(self.subscribers.get(change.owner_id, []))
        for subscription in targets:
            subscription.events.put(change)

    def subscribe(self, owner_id: str) -> InMemorySubscription:
        subscription = InMemorySubscription(feed=self, owner_id=owner_id)
        with self._lock:
            self.subscribers.setdefault(owner_id, []).append(subscription)
        return subscription

    def unsubscribe(self, subscription: InMemorySubscription) -> None:
        with self._lock:
            subscribers = self.subscribers.get(subscription.owner_id, [])
            if subscription in subscribers:
                subscribers.remove(subscription)
            if not subscribers:
                self.subscribers.pop(subscription.owner_id, None)

    def reset(self) -> None:
        with self._lock:
            self.subscribers.clear()
            self.published.clear()


@dataclass
class RedisSubscription:
    pubsub: "redis.client.PubSub"

    def get(self, timeout: float = 1.0) -> Optional[FileChange]:
        message = self.pubsub.get_message(
            ignore_subscribe_messages=True, timeout=timeout
        )
        if not message or message.get("type") != "message":
            return None
        return FileChange.from_json(message["data"])

    def close(self) -> None:
        self.pubsub.close()


@dataclass
class RedisChangeFeed:
    """Redis pub/sub feed shared by every API process."""

    url: str
    prefix: str = "filehost:files"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def channel(self, owner_id: str) -> str:
        return f"{self.prefix}:{owner_id}"

    def publish(self, change: FileChange) -> None:
        try:
            self.client.publish(self.channel(change.owner_id), change.to_json())
        except redis_exceptions.ConnectionError:
            # Connection resets can happen on managed Redis. Reconnect and retry once.
            self.client = redis.Redis.from_url(self.url)
            self.client.publish(self.channel(change.owner_id), change.to_json())

    def subscribe(self, owner_id: str) -> RedisSubscription:
        pubsub = self.client.pubsub()
        pubsub.subscribe(self.channel(owner_id))
        return RedisSubscription(pubsub=pubsub)
