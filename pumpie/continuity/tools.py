from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from .schemas import KnowledgeEntry, MemoryEntry, TopicItem

STAGE_DIRECTION_PATTERN = re.compile(r"\*[^*]*\*|\([^)]*\)|\[[^\]]*\]")
ASSET_PATTERN = re.compile(
    r"\$[A-Z]{3,10}|bitcoin|ethereum|solana|cardano|dogecoin|pump\.fun", re.IGNORECASE
)
ACTION_PATTERN = re.compile(r"pump|dump|bullish|bearish|whale|moon|crash|surge|launch", re.IGNORECASE)

GENERAL_TOPIC_LABEL = "general crypto"
CURRENT_MARKETS_LABEL = "current markets"


def format_day(timestamp_ms: int) -> str:
    """Render a millisecond timestamp as ``M/D/YYYY`` in UTC."""

    day = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return f"{day.month}/{day.day}/{day.year}"


@dataclass
class ContextAssembler:
    """Build the grounding text from memory, knowledge, and the current topic.

    Output depends only on the arguments.
    """

    recent_limit: int = 5
    topic_limit: int = 10

    def __call__(
        self,
        recent: Sequence[MemoryEntry],
        knowledge: Sequence[KnowledgeEntry],
        topic: Optional[TopicItem] = None,
    ) -> str:
        context = ""

        if recent:
            lines = [
                f"- {format_day(entry.timestamp)}: Discussed {entry.topic_label or GENERAL_TOPIC_LABEL}"
                for entry in recent[: self.recent_limit]
            ]
            context += "RECENT CONVERSATIONS:\n" + "\n".join(lines) + "\n\n"

        if knowledge:
            labels: List[str] = []
            for entry in knowledge:
                if entry.topic_label not in labels:
                    labels.append(entry.topic_label)
            lines = [f"- {label}" for label in labels[: self.topic_limit]]
            context += "ACCUMULATED KNOWLEDGE BASE:\n" + "\n".join(lines) + "\n\n"

        subject = topic.content if topic is not None and topic.content else CURRENT_MARKETS_LABEL
        context += f"REFERENCE PREVIOUS KNOWLEDGE WHEN RELEVANT TO: {subject}"
        return context


def build_context(
    recent: Sequence[MemoryEntry],
    knowledge: Sequence[KnowledgeEntry],
    topic: Optional[TopicItem] = None,
) -> str:
    return ContextAssembler()(recent, knowledge, topic)


def clean_generated_text(text: str) -> str:
    """Drop ``*action*``, ``(aside)`` and ``[cue]`` fragments the persona must not speak."""

    stripped = STAGE_DIRECTION_PATTERN.sub("", text)
    stripped = re.sub(r"[ \t]{2,}", " ", stripped)
    stripped = re.sub(r" +([,.!?])", r"\1", stripped)
    return stripped.strip()


def extract_keywords(text: str) -> List[str]:
    keywords: List[str] = []
    for pattern in (ASSET_PATTERN, ACTION_PATTERN):
        for match in pattern.findall(text):
            word = match.lower()
            if word not in keywords:
                keywords.append(word)
    return keywords


__all__ = [
    "ContextAssembler",
    "build_context",
    "clean_generated_text",
    "extract_keywords",
    "format_day",
]
