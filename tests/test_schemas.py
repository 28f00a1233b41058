from __future__ import annotations

import json

import pytest

from pumpie.continuity.policy import InvalidRequestError
from pumpie.continuity.schemas import (
    KnowledgeEntry,
    MemoryEntry,
    TopicItem,
    decode_record,
    encode_record,
)


def test_topic_create_applies_defaults() -> None:
    item = TopicItem.create({"content": "  New launchpad rumours  "}, topic_id=42)

    assert item.id == 42
    assert item.created_at == 42
    assert item.content == "New launchpad rumours"
    assert item.category == "general"
    assert item.priority == "normal"
    assert item.tags == []
    assert item.source == "system"


@pytest.mark.parametrize(
    "topic",
    [
        {},
        {"content": "   "},
        {"content": 12},
        {"content": "ok", "priority": "critical"},
        "just a string",
    ],
)
def test_topic_create_rejects_invalid_requests(topic: object) -> None:
    with pytest.raises(InvalidRequestError):
        TopicItem.create(topic)  # type: ignore[arg-type]


def test_topic_tags_are_deduplicated() -> None:
    item = TopicItem.create({"content": "x", "tags": ["sol", "sol", "meme"]}, topic_id=1)
    assert item.tags == ["sol", "meme"]


def test_decode_ignores_unknown_fields_and_defaults_missing() -> None:
    raw = json.dumps({"kind": "topic", "id": 7, "content": "Whale alert", "mood": "spicy"})

    item = decode_record(raw, TopicItem)

    assert item.id == 7
    assert item.content == "Whale alert"
    assert item.category == "general"
    assert item.created_at == 7


def test_decode_understands_legacy_field_names() -> None:
    legacy_topic = json.dumps(
        {
            "id": 1700000000000,
            "content": "Dev dumped",
            "type": "breaking_news",
            "priority": "urgent",
            "timestamp": 1700000000000,
            "tags": ["rug"],
            "reporter": "pumpie",
        }
    )
    topic = decode_record(legacy_topic, TopicItem)
    assert topic.category == "breaking_news"
    assert topic.source == "pumpie"
    assert topic.is_urgent

    legacy_memory = json.dumps(
        {
            "timestamp": 1700000000000,
            "content": "We covered the rug.",
            "topic": {"content": "Dev dumped", "type": "breaking_news"},
            "cryptoPrices": [{"symbol": "SOL"}, {"symbol": "BTC"}, {"symbol": "ETH"}, {"symbol": "X"}],
            "type": "segment",
            "keywords": ["dump"],
        }
    )
    memory = decode_record(legacy_memory, MemoryEntry)
    assert memory.generated_text == "We covered the rug."
    assert memory.topic_label == "Dev dumped"
    assert [item["symbol"] for item in memory.market_snapshot] == ["SOL", "BTC", "ETH"]

    legacy_knowledge = json.dumps(
        {"timestamp": 1, "topic": "Dev dumped", "context": "We covered", "keywords": [], "type": "news"}
    )
    knowledge = decode_record(legacy_knowledge, KnowledgeEntry)
    assert knowledge.topic_label == "Dev dumped"
    assert knowledge.context_excerpt == "We covered"
    assert knowledge.category == "news"


def test_malformed_topic_becomes_placeholder_carrying_raw_text() -> None:
    item = decode_record("not json at all", TopicItem)
    assert item.content == "not json at all"
    assert item.priority == "normal"


@pytest.mark.parametrize("raw", ["[1, 2]", "{\"timestamp\": \"soon\"}", "\"text\""])
def test_malformed_memory_and_knowledge_become_parse_error(raw: str) -> None:
    assert decode_record(raw, MemoryEntry).generated_text == "Parse error"
    assert decode_record(raw, KnowledgeEntry).topic_label == "Parse error"


def test_decode_rejects_records_of_another_kind() -> None:
    raw = encode_record(KnowledgeEntry(topic_label="SOL", timestamp=1))
    assert decode_record(raw, MemoryEntry).generated_text == "Parse error"


def test_memory_entry_keeps_nested_topic() -> None:
    topic = TopicItem(content="ETF flows", id=5, category="macro")
    entry = MemoryEntry(generated_text="Big flows.", timestamp=9, topic=topic, keywords=["surge", "surge"])

    decoded = decode_record(encode_record(entry), MemoryEntry)

    assert decoded.topic == topic
    assert decoded.keywords == ["surge"]
    assert decoded.timestamp == 9


def test_memory_entry_caps_market_snapshot() -> None:
    entry = MemoryEntry(generated_text="x", market_snapshot=[{"i": i} for i in range(6)])
    assert len(entry.market_snapshot) == 3


def test_memory_entry_without_topic_content_has_no_label() -> None:
    assert MemoryEntry(generated_text="x").topic_label is None
    assert MemoryEntry(generated_text="x", topic=TopicItem(content="")).topic_label is None


def test_decode_wraps_a_single_string_tag() -> None:
    topic = decode_record(json.dumps({"id": 4, "content": "ETF", "tags": "macro"}), TopicItem)
    assert topic.tags == ["macro"]
