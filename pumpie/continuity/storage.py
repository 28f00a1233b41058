"""Persistent storage for the topic queue, memory log, and knowledge base.

All three structures live as Redis lists.  The process keeps no authoritative
copy between calls: every operation reads or rewrites the remote list.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Sequence

from .policy import FailSoft
from .schemas import (
    KnowledgeEntry,
    MemoryEntry,
    TopicItem,
    decode_record,
    encode_record,
    now_ms,
)

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "pumpie"
MEMORY_CAPACITY = 20
KNOWLEDGE_CAPACITY = 50
EXCERPT_LENGTH = 200


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return value if isinstance(value, str) else str(value)


class RedisListStore:
    """Fail-soft wrapper over the list commands of a redis-py client.

    Transport errors never escape: reads degrade to empty results and writes
    report ``False``.  ``client`` is anything exposing ``lpush``, ``rpush``,
    ``lpop``, ``lrange``, ``ltrim``, ``llen``, ``linsert``, ``delete`` and
    ``pipeline``.
    """

    def __init__(self, client: Any, *, policy: Optional[FailSoft] = None) -> None:
        self.client = client
        self.policy = policy or FailSoft("store")

    def push_left(self, key: str, value: str) -> bool:
        return self.policy.call("lpush", lambda: self._write(self.client.lpush, key, value), False)

    def push_right(self, key: str, value: str) -> bool:
        return self.policy.call("rpush", lambda: self._write(self.client.rpush, key, value), False)

    def pop_left(self, key: str) -> Optional[str]:
        def _pop() -> Optional[str]:
            value = self.client.lpop(key)
            return None if value is None else _text(value)

        return self.policy.call("lpop", _pop, None)

    def range(self, key: str, start: int = 0, end: int = -1) -> List[str]:
        return self.policy.call(
            "lrange", lambda: [_text(item) for item in self.client.lrange(key, start, end)], []
        )

    def trim(self, key: str, start: int, end: int) -> bool:
        return self.policy.call("ltrim", lambda: self._write(self.client.ltrim, key, start, end), False)

    def length(self, key: str) -> int:
        return self.policy.call("llen", lambda: int(self.client.llen(key) or 0), 0)

    def insert_before(self, key: str, pivot: str, value: str) -> bool:
        """Insert ``value`` ahead of the first element equal to ``pivot``.

        Returns ``False`` when the pivot is no longer in the list.
        """

        return self.policy.call(
            "linsert", lambda: int(self.client.linsert(key, "BEFORE", pivot, value)) > 0, False
        )

    def delete(self, key: str) -> bool:
        return self.policy.call("delete", lambda: self._write(self.client.delete, key), False)

    def replace(self, key: str, values: Sequence[str]) -> bool:
        """Swap the whole list for ``values`` in one MULTI/EXEC transaction."""

        def _replace() -> bool:
            pipe = self.client.pipeline(transaction=True)
            pipe.delete(key)
            if values:
                pipe.rpush(key, *values)
            pipe.execute()
            return True

        return self.policy.call("replace", _replace, False)

    @staticmethod
    def _write(command: Callable[..., Any], *args: Any) -> bool:
        command(*args)
        return True


@dataclass
class TopicQueue:
    """Priority-aware FIFO of pending topics.

    Normal topics join the tail.  Urgent topics join behind the urgent block
    at the head, ahead of every normal topic, so arrival order holds within
    each priority.
    """

    store: RedisListStore
    key: str = f"{DEFAULT_KEY_PREFIX}:topic_queue"
    clock: Callable[[], int] = now_ms

    def enqueue(self, topic: Mapping[str, Any]) -> Optional[TopicItem]:
        item = TopicItem.create(topic, topic_id=self.clock())
        payload = encode_record(item)
        if item.is_urgent:
            stored = self._insert_urgent(payload)
        else:
            stored = self.store.push_right(self.key, payload)
        if not stored:
            return None
        logger.info("Topic %s queued (%s). Queue length: %s", item.id, item.priority, self.length())
        return item

    def _insert_urgent(self, payload: str) -> bool:
        # Not a plain LPUSH: a new urgent topic must not overtake urgent topics
        # already waiting, so it goes in front of the first normal topic instead.
        raw_items = self.store.range(self.key, 0, -1)
        pivot = next(
            (raw for raw in raw_items if not decode_record(raw, TopicItem).is_urgent), None
        )
        if pivot is None:
            return self.store.push_right(self.key, payload)
        if pivot == raw_items[0]:
            return self.store.push_left(self.key, payload)
        if self.store.insert_before(self.key, pivot, payload):
            return True
        # The pivot was popped or removed since the read; last write wins.
        logger.debug("Urgent insert pivot vanished, pushing to queue head")
        return self.store.push_left(self.key, payload)

    def peek_all(self) -> List[TopicItem]:
        return [decode_record(raw, TopicItem) for raw in self.store.range(self.key, 0, -1)]

    def pop_next(self) -> Optional[TopicItem]:
        raw = self.store.pop_left(self.key)
        if raw is None:
            return None
        return decode_record(raw, TopicItem)

    def remove_by_id(self, topic_id: int) -> bool:
        # Read-modify-replace; concurrent writers between the read and the
        # replace can be lost.
        raw_items = self.store.range(self.key, 0, -1)
        kept = [raw for raw in raw_items if decode_record(raw, TopicItem).id != topic_id]
        if len(kept) == len(raw_items):
            logger.debug("Topic %s not queued, nothing to remove", topic_id)
            return True
        removed = self.store.replace(self.key, kept)
        if removed:
            logger.info("Topic %s removed from queue", topic_id)
        return removed

    def length(self) -> int:
        return self.store.length(self.key)

    def clear(self) -> bool:
        return self.store.delete(self.key)


@dataclass
class MemoryLog:
    """Most-recent-first log of generated segments, capped at ``capacity``."""

    store: RedisListStore
    key: str = f"{DEFAULT_KEY_PREFIX}:memory"
    capacity: int = MEMORY_CAPACITY

    def append(self, entry: MemoryEntry) -> bool:
        if not self.store.push_left(self.key, encode_record(entry)):
            return False
        # A failed trim leaves the list over capacity until the next append.
        self.store.trim(self.key, 0, self.capacity - 1)
        return True

    def read_recent(self, limit: Optional[int] = None) -> List[MemoryEntry]:
        count = self.capacity if limit is None else limit
        if count <= 0:
            return []
        return [decode_record(raw, MemoryEntry) for raw in self.store.range(self.key, 0, count - 1)]

    def length(self) -> int:
        return self.store.length(self.key)

    def clear(self) -> bool:
        return self.store.delete(self.key)


@dataclass
class KnowledgeBase:
    """Most-recent-first facts derived from topical memory entries."""

    store: RedisListStore
    key: str = f"{DEFAULT_KEY_PREFIX}:knowledge"
    capacity: int = KNOWLEDGE_CAPACITY
    excerpt_length: int = EXCERPT_LENGTH

    def derive(self, entry: MemoryEntry) -> Optional[KnowledgeEntry]:
        label = entry.topic_label
        if label is None or entry.topic is None:
            return None
        return KnowledgeEntry(
            topic_label=label,
            timestamp=entry.timestamp,
            context_excerpt=entry.generated_text[: self.excerpt_length],
            keywords=list(entry.keywords),
            category=entry.topic.category,
        )

    def append(self, knowledge: KnowledgeEntry) -> bool:
        if not self.store.push_left(self.key, encode_record(knowledge)):
            return False
        # A failed trim leaves the list over capacity until the next append.
        self.store.trim(self.key, 0, self.capacity - 1)
        return True

    def record(self, entry: MemoryEntry) -> Optional[KnowledgeEntry]:
        """Derive a knowledge entry from ``entry`` and store it when there is one."""

        knowledge = self.derive(entry)
        if knowledge is None:
            return None
        if not self.append(knowledge):
            return None
        return knowledge

    def read_all(self) -> List[KnowledgeEntry]:
        return [decode_record(raw, KnowledgeEntry) for raw in self.store.range(self.key, 0, -1)]

    def read_recent(self, limit: Optional[int] = None) -> List[KnowledgeEntry]:
        count = self.capacity if limit is None else limit
        if count <= 0:
            return []
        return [
            decode_record(raw, KnowledgeEntry) for raw in self.store.range(self.key, 0, count - 1)
        ]

    def length(self) -> int:
        return self.store.length(self.key)

    def clear(self) -> bool:
        return self.store.delete(self.key)


def build_keys(prefix: str = DEFAULT_KEY_PREFIX) -> Mapping[str, str]:
    return {
        "topic_queue": f"{prefix}:topic_queue",
        "memory": f"{prefix}:memory",
        "knowledge": f"{prefix}:knowledge",
    }


__all__ = [
    "KnowledgeBase",
    "MemoryLog",
    "RedisListStore",
    "TopicQueue",
    "build_keys",
]
