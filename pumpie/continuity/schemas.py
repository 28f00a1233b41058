"""Typed records persisted by the continuity system.

Every record crosses the store boundary through :func:`encode_record` and
:func:`decode_record`.  Decoding is forward tolerant: unknown fields are
ignored, missing fields take their defaults, and the field names written by
earlier releases of the service (``type``, ``reporter``, ``cryptoPrices`` ...)
are still understood.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type, TypeVar, Union

from .policy import InvalidRequestError

logger = logging.getLogger(__name__)

PRIORITY_NORMAL = "normal"
PRIORITY_URGENT = "urgent"
PRIORITIES = frozenset({PRIORITY_NORMAL, PRIORITY_URGENT})

DEFAULT_CATEGORY = "general"
BREAKING_CATEGORY = "breaking"
DEFAULT_SOURCE = "system"
DEFAULT_REQUEST_KIND = "segment"

MARKET_SNAPSHOT_LIMIT = 3
PARSE_ERROR_TEXT = "Parse error"

RawRecord = Union[str, bytes, bytearray, Mapping[str, Any]]


def now_ms() -> int:
    return int(time.time() * 1000)


def _unique(values: Optional[Iterable[Any]]) -> List[str]:
    seen: List[str] = []
    for value in values or []:
        text = str(value)
        if text not in seen:
            seen.append(text)
    return seen


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _tag_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


def _as_int(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    return int(value)


@dataclass
class TopicItem:
    """A pending discussion topic."""

    KIND = "topic"

    content: str
    id: int = field(default_factory=now_ms)
    category: str = DEFAULT_CATEGORY
    priority: str = PRIORITY_NORMAL
    created_at: int = 0
    tags: List[str] = field(default_factory=list)
    source: str = DEFAULT_SOURCE

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = self.id
        self.tags = _unique(self.tags)

    @property
    def is_urgent(self) -> bool:
        return self.priority == PRIORITY_URGENT

    @classmethod
    def create(
        cls,
        topic: Mapping[str, Any],
        *,
        topic_id: Optional[int] = None,
    ) -> "TopicItem":
        """Validate a producer's topic request and stamp it with an id."""

        if not isinstance(topic, Mapping):
            raise InvalidRequestError("topic must be an object with a 'content' field")
        content = topic.get("content")
        if not isinstance(content, str) or not content.strip():
            raise InvalidRequestError("topic content must be a non-empty string")
        priority = topic.get("priority") or PRIORITY_NORMAL
        if priority not in PRIORITIES:
            raise InvalidRequestError(
                f"unsupported priority '{priority}', expected one of {sorted(PRIORITIES)}"
            )
        stamp = topic_id if topic_id is not None else now_ms()
        return cls(
            content=content.strip(),
            id=stamp,
            category=str(_first(topic, "category", "type") or DEFAULT_CATEGORY),
            priority=priority,
            created_at=stamp,
            tags=_tag_list(topic.get("tags")),
            source=str(_first(topic, "source", "reporter") or DEFAULT_SOURCE),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "kind": self.KIND,
            "id": self.id,
            "content": self.content,
            "category": self.category,
            "priority": self.priority,
            "created_at": self.created_at,
            "tags": list(self.tags),
            "source": self.source,
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "TopicItem":
        created = _as_int(_first(data, "created_at", "timestamp"), 0)
        topic_id = _as_int(data.get("id"), created or now_ms())
        return cls(
            content=str(data.get("content") or ""),
            id=topic_id,
            category=str(_first(data, "category", "type") or DEFAULT_CATEGORY),
            priority=str(data.get("priority") or PRIORITY_NORMAL),
            created_at=created or topic_id,
            tags=_tag_list(data.get("tags")),
            source=str(_first(data, "source", "reporter") or DEFAULT_SOURCE),
        )

    @classmethod
    def placeholder(cls, raw: RawRecord) -> "TopicItem":
        return cls(content=_raw_text(raw))


@dataclass
class MemoryEntry:
    """One generated segment and the context it was produced in."""

    KIND = "memory"

    generated_text: str
    timestamp: int = field(default_factory=now_ms)
    topic: Optional[TopicItem] = None
    market_snapshot: List[Mapping[str, Any]] = field(default_factory=list)
    request_kind: str = DEFAULT_REQUEST_KIND
    keywords: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.market_snapshot = list(self.market_snapshot or [])[:MARKET_SNAPSHOT_LIMIT]
        self.keywords = _unique(self.keywords)

    @property
    def topic_label(self) -> Optional[str]:
        if self.topic is None or not self.topic.content:
            return None
        return self.topic.content

    def to_payload(self) -> Dict[str, Any]:
        return {
            "kind": self.KIND,
            "timestamp": self.timestamp,
            "generated_text": self.generated_text,
            "topic": self.topic.to_payload() if self.topic else None,
            "market_snapshot": [dict(item) for item in self.market_snapshot],
            "request_kind": self.request_kind,
            "keywords": list(self.keywords),
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "MemoryEntry":
        raw_topic = data.get("topic")
        topic: Optional[TopicItem] = None
        if isinstance(raw_topic, Mapping):
            topic = TopicItem.from_payload(raw_topic)
        elif isinstance(raw_topic, str) and raw_topic:
            topic = TopicItem(content=raw_topic)
        snapshot = _first(data, "market_snapshot", "cryptoPrices") or []
        return cls(
            generated_text=str(_first(data, "generated_text", "content") or ""),
            timestamp=_as_int(data.get("timestamp"), now_ms()),
            topic=topic,
            market_snapshot=[item for item in snapshot if isinstance(item, Mapping)],
            request_kind=str(_first(data, "request_kind", "type") or DEFAULT_REQUEST_KIND),
            keywords=list(data.get("keywords") or []),
        )

    @classmethod
    def placeholder(cls, raw: RawRecord) -> "MemoryEntry":
        return cls(generated_text=PARSE_ERROR_TEXT)


@dataclass
class KnowledgeEntry:
    """A distilled fact derived from a memory entry that carried a topic."""

    KIND = "knowledge"

    topic_label: str
    timestamp: int = field(default_factory=now_ms)
    context_excerpt: str = ""
    keywords: List[str] = field(default_factory=list)
    category: str = DEFAULT_CATEGORY

    def __post_init__(self) -> None:
        self.keywords = _unique(self.keywords)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "kind": self.KIND,
            "timestamp": self.timestamp,
            "topic_label": self.topic_label,
            "context_excerpt": self.context_excerpt,
            "keywords": list(self.keywords),
            "category": self.category,
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "KnowledgeEntry":
        return cls(
            topic_label=str(_first(data, "topic_label", "topic") or ""),
            timestamp=_as_int(data.get("timestamp"), now_ms()),
            context_excerpt=str(_first(data, "context_excerpt", "context") or ""),
            keywords=list(data.get("keywords") or []),
            category=str(_first(data, "category", "type") or DEFAULT_CATEGORY),
        )

    @classmethod
    def placeholder(cls, raw: RawRecord) -> "KnowledgeEntry":
        return cls(topic_label=PARSE_ERROR_TEXT)


Record = TypeVar("Record", TopicItem, MemoryEntry, KnowledgeEntry)


def _raw_text(raw: RawRecord) -> str:
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw).decode("utf-8", errors="replace")
    if isinstance(raw, Mapping):
        return json.dumps(dict(raw), ensure_ascii=False, default=str)
    return str(raw)


def encode_record(record: Union[TopicItem, MemoryEntry, KnowledgeEntry]) -> str:
    return json.dumps(record.to_payload(), ensure_ascii=False, default=str)


def decode_record(raw: RawRecord, record_type: Type[Record]) -> Record:
    """Parse one stored value, substituting a placeholder when it is malformed."""

    try:
        data = raw if isinstance(raw, Mapping) else json.loads(_raw_text(raw))
        if not isinstance(data, Mapping):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        kind = data.get("kind")
        if kind is not None and kind != record_type.KIND:
            raise ValueError(f"expected a '{record_type.KIND}' record, got '{kind}'")
        return record_type.from_payload(data)
    except (TypeError, ValueError) as exc:
        logger.warning("Unreadable %s record, using placeholder: %s", record_type.KIND, exc)
        return record_type.placeholder(raw)


def dumps_payload(data: Any) -> str:
    """Render ``data`` as compact JSON for prompt injection."""

    return json.dumps(data, ensure_ascii=False, default=str)


__all__ = [
    "BREAKING_CATEGORY",
    "DEFAULT_CATEGORY",
    "DEFAULT_REQUEST_KIND",
    "KnowledgeEntry",
    "MARKET_SNAPSHOT_LIMIT",
    "MemoryEntry",
    "PRIORITIES",
    "PRIORITY_NORMAL",
    "PRIORITY_URGENT",
    "TopicItem",
    "decode_record",
    "dumps_payload",
    "encode_record",
    "now_ms",
]
