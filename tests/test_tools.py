from __future__ import annotations

from pumpie.continuity.schemas import KnowledgeEntry, MemoryEntry, TopicItem
from pumpie.continuity.tools import (
    ContextAssembler,
    build_context,
    clean_generated_text,
    extract_keywords,
    format_day,
)

DAY = 1_760_000_000_000  # 2025-10-09 UTC


def _recent(count: int) -> list[MemoryEntry]:
    entries = []
    for index in range(count):
        topic = TopicItem(content=f"topic {index}") if index % 2 == 0 else None
        entries.append(MemoryEntry(generated_text="...", timestamp=DAY, topic=topic))
    return entries


def test_context_without_memory_names_current_markets() -> None:
    assert build_context([], []) == "REFERENCE PREVIOUS KNOWLEDGE WHEN RELEVANT TO: current markets"


def test_context_lists_five_recent_conversations() -> None:
    context = build_context(_recent(7), [], TopicItem(content="SOL ETF"))

    assert context == (
        "RECENT CONVERSATIONS:\n"
        "- 10/9/2025: Discussed topic 0\n"
        "- 10/9/2025: Discussed general crypto\n"
        "- 10/9/2025: Discussed topic 2\n"
        "- 10/9/2025: Discussed general crypto\n"
        "- 10/9/2025: Discussed topic 4\n"
        "\n"
        "REFERENCE PREVIOUS KNOWLEDGE WHEN RELEVANT TO: SOL ETF"
    )


def test_context_lists_first_ten_distinct_knowledge_topics() -> None:
    labels = ["BONK", "WIF", "BONK"] + [f"coin {i}" for i in range(12)]
    knowledge = [KnowledgeEntry(topic_label=label, timestamp=DAY) for label in labels]

    context = build_context([], knowledge)

    lines = context.split("\n")
    assert lines[0] == "ACCUMULATED KNOWLEDGE BASE:"
    assert lines[1:11] == ["- BONK", "- WIF"] + [f"- coin {i}" for i in range(8)]
    assert lines[11] == ""
    assert lines[12] == "REFERENCE PREVIOUS KNOWLEDGE WHEN RELEVANT TO: current markets"


def test_context_is_deterministic() -> None:
    recent = _recent(6)
    knowledge = [KnowledgeEntry(topic_label=f"t{i}", timestamp=DAY + i) for i in range(20)]
    topic = TopicItem(content="Rug pull watch", id=1)

    assert build_context(recent, knowledge, topic) == build_context(recent, knowledge, topic)


def test_assembler_limits_are_configurable() -> None:
    assembler = ContextAssembler(recent_limit=1, topic_limit=1)
    knowledge = [KnowledgeEntry(topic_label="a"), KnowledgeEntry(topic_label="b")]

    context = assembler(_recent(3), knowledge)

    assert context.count("Discussed") == 1
    assert "- a" in context and "- b" not in context


def test_format_day_uses_utc() -> None:
    assert format_day(0) == "1/1/1970"


def test_clean_generated_text_removes_stage_directions() -> None:
    raw = "  *adjusts headphones* PUMP PUMP family! (laughs) $WIF is [SFX: airhorn] flying!  "
    assert clean_generated_text(raw) == "PUMP PUMP family! $WIF is flying!"


def test_clean_generated_text_can_empty_a_reply() -> None:
    assert clean_generated_text("*silence*") == ""


def test_extract_keywords_matches_assets_and_actions() -> None:
    text = "Bitcoin and $BONK surge while whales dump on pump.fun. BITCOIN again, bullish!"
    assert extract_keywords(text) == ["bitcoin", "$bonk", "pump.fun", "surge", "whale", "dump", "pump", "bullish"]


def test_extract_keywords_ignores_short_tickers() -> None:
    assert extract_keywords("$AB is quiet") == []
