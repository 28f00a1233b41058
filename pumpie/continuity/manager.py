"""High-level orchestration for persona segment generation."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .clients import LLMClient
from .policy import FailSoft, InvalidRequestError
from .prompts import (
    CLOSING_CONTINUE,
    CLOSING_FINAL,
    FOCUS_FREESTYLE,
    FOCUS_TOPIC,
    FREESTYLE_TOPIC_LINE,
    GENERIC_FALLBACK,
    PERSONA_PROMPT,
    TOPIC_FALLBACK,
    TOPIC_LINE,
    URGENT_LINE,
)
from .schemas import (
    BREAKING_CATEGORY,
    DEFAULT_REQUEST_KIND,
    MARKET_SNAPSHOT_LIMIT,
    PRIORITY_URGENT,
    KnowledgeEntry,
    MemoryEntry,
    TopicItem,
    dumps_payload,
    now_ms,
)
from .storage import KnowledgeBase, MemoryLog, TopicQueue
from .tools import ContextAssembler, clean_generated_text, extract_keywords

logger = logging.getLogger(__name__)

FINAL_SEGMENT_KIND = "final_segment"
URGENT_SOURCE = "field_intel"


@dataclass
class GenerationResult:
    text: str
    topic: Optional[TopicItem]
    queue_length: int
    memory_entries: int
    knowledge_entries: int
    used_fallback: bool = False

    def to_payload(self) -> Mapping[str, Any]:
        return {
            "content": self.text,
            "metadata": {
                "topic_discussed": self.topic.to_payload() if self.topic else None,
                "queue_length": self.queue_length,
                "memory_entries": self.memory_entries,
                "knowledge_entries": self.knowledge_entries,
                "fallback": self.used_fallback,
            },
        }


@dataclass
class BroadcastManager:
    """Select a topic, ground it in memory, generate a segment, and remember it.

    Every request ends with a :class:`GenerationResult`; store and generator
    failures degrade to empty reads and fallback text.
    """

    queue: TopicQueue
    memory: MemoryLog
    knowledge: KnowledgeBase
    llm_client: LLMClient
    max_tokens: int = 300
    assembler: ContextAssembler = field(default_factory=ContextAssembler)
    policy: FailSoft = field(default_factory=lambda: FailSoft("generator"))
    clock: Callable[[], int] = now_ms

    def generate(
        self,
        live_data: Optional[Sequence[Mapping[str, Any]]] = None,
        request_kind: str = DEFAULT_REQUEST_KIND,
        urgent_topic: Optional[str] = None,
    ) -> GenerationResult:
        if any(not isinstance(item, Mapping) for item in live_data or []):
            raise InvalidRequestError("live data must be a list of price records")
        market = [dict(item) for item in live_data or []]
        try:
            dumps_payload(market)
        except (TypeError, ValueError) as exc:
            raise InvalidRequestError(f"live data must be JSON serializable: {exc}") from exc
        request_kind = request_kind or DEFAULT_REQUEST_KIND

        topic = self.select_topic(urgent_topic)
        context = self.assemble_context(topic)
        raw = self.generate_text(context=context, market=market, topic=topic, request_kind=request_kind)
        text, keywords, used_fallback = self.postprocess(raw, topic)
        self.persist(text=text, topic=topic, market=market, request_kind=request_kind, keywords=keywords)
        return GenerationResult(
            text=text,
            topic=topic,
            queue_length=self.queue.length(),
            memory_entries=self.memory.length(),
            knowledge_entries=self.knowledge.length(),
            used_fallback=used_fallback,
        )

    # ------------------------------------------------------------------
    # Request stages
    # ------------------------------------------------------------------
    def select_topic(self, urgent_topic: Optional[str] = None) -> Optional[TopicItem]:
        if urgent_topic and urgent_topic.strip():
            stamp = self.clock()
            # Out-of-band intel bypasses the queue; nothing is popped.
            return TopicItem(
                content=urgent_topic.strip(),
                id=stamp,
                category=BREAKING_CATEGORY,
                priority=PRIORITY_URGENT,
                created_at=stamp,
                source=URGENT_SOURCE,
            )
        return self.queue.pop_next()

    def assemble_context(self, topic: Optional[TopicItem]) -> str:
        recent = self.memory.read_recent()
        knowledge = self.knowledge.read_recent()
        return self.assembler(recent, knowledge, topic)

    def generate_text(
        self,
        *,
        context: str,
        market: Sequence[Mapping[str, Any]],
        topic: Optional[TopicItem],
        request_kind: str,
    ) -> Optional[str]:
        messages = [{"role": "user", "content": self.build_prompt(context, market, topic, request_kind)}]
        reply = self.policy.call(
            "chat", lambda: self.llm_client.chat(messages, max_tokens=self.max_tokens), None
        )
        if not isinstance(reply, str):
            if reply is not None:
                logger.warning("Generator returned %s instead of text", type(reply).__name__)
            return None
        return reply

    def postprocess(
        self, raw: Optional[str], topic: Optional[TopicItem]
    ) -> tuple[str, List[str], bool]:
        text = clean_generated_text(raw or "")
        used_fallback = not text
        if used_fallback:
            if raw:
                logger.warning("Generated text was empty after cleanup, using fallback")
            text = self.fallback_text(topic)
        return text, extract_keywords(text), used_fallback

    def persist(
        self,
        *,
        text: str,
        topic: Optional[TopicItem],
        market: Sequence[Mapping[str, Any]],
        request_kind: str,
        keywords: Sequence[str],
    ) -> MemoryEntry:
        entry = MemoryEntry(
            generated_text=text,
            timestamp=self.clock(),
            topic=topic,
            market_snapshot=list(market[:MARKET_SNAPSHOT_LIMIT]),
            request_kind=request_kind,
            keywords=list(keywords),
        )
        if not self.memory.append(entry):
            logger.warning("Memory entry was not stored")
        knowledge = self.knowledge.record(entry)
        if knowledge is not None:
            logger.info("Knowledge recorded on '%s'", knowledge.topic_label)
        return entry

    # ------------------------------------------------------------------
    # Prompt helpers
    # ------------------------------------------------------------------
    @staticmethod
    def build_prompt(
        context: str,
        market: Sequence[Mapping[str, Any]],
        topic: Optional[TopicItem],
        request_kind: str,
    ) -> str:
        if topic is not None:
            topic_line = TOPIC_LINE.format(
                content=topic.content, category=topic.category, priority=topic.priority
            )
        else:
            topic_line = FREESTYLE_TOPIC_LINE
        return PERSONA_PROMPT.format(
            context=context,
            market_data=dumps_payload(list(market)),
            topic_line=topic_line,
            request_kind=request_kind.upper(),
            focus_line=FOCUS_TOPIC if topic is not None else FOCUS_FREESTYLE,
            closing_line=CLOSING_FINAL if request_kind == FINAL_SEGMENT_KIND else CLOSING_CONTINUE,
            urgent_line=URGENT_LINE if topic is not None and topic.is_urgent else "",
        )

    @staticmethod
    def fallback_text(topic: Optional[TopicItem]) -> str:
        if topic is not None and topic.content:
            return TOPIC_FALLBACK.format(content=topic.content)
        return GENERIC_FALLBACK


@dataclass
class PersonaAgent:
    """Agent facade exposing the operations callers may request."""

    manager: BroadcastManager

    @property
    def queue(self) -> TopicQueue:
        return self.manager.queue

    @property
    def memory(self) -> MemoryLog:
        return self.manager.memory

    @property
    def knowledge(self) -> KnowledgeBase:
        return self.manager.knowledge

    def generate_content(
        self,
        live_data: Optional[Sequence[Mapping[str, Any]]] = None,
        request_kind: str = DEFAULT_REQUEST_KIND,
        urgent_topic: Optional[str] = None,
    ) -> Mapping[str, Any]:
        return self.manager.generate(live_data, request_kind, urgent_topic).to_payload()

    def add_topic(self, topic: Mapping[str, Any]) -> bool:
        return self.queue.enqueue(topic) is not None

    def list_queue(self) -> List[TopicItem]:
        return self.queue.peek_all()

    def list_memory(self) -> List[MemoryEntry]:
        return self.memory.read_recent()

    def list_knowledge(self) -> List[KnowledgeEntry]:
        return self.knowledge.read_all()

    def remove_topic(self, topic_id: Any) -> bool:
        return self.queue.remove_by_id(_parse_topic_id(topic_id))

    def clear_memory(self) -> bool:
        results = [self.memory.clear(), self.knowledge.clear(), self.queue.clear()]
        if all(results):
            logger.info("All data cleared")
        return all(results)

    # ------------------------------------------------------------------
    # Request-boundary helpers
    # ------------------------------------------------------------------
    def snapshot(self) -> Dict[str, List[Any]]:
        """Read queue, memory and knowledge concurrently for a combined listing."""

        with ThreadPoolExecutor(max_workers=3) as pool:
            queue = pool.submit(self.list_queue)
            memory = pool.submit(self.list_memory)
            knowledge = pool.submit(self.list_knowledge)
            return {
                "queue": queue.result(),
                "memory": memory.result(),
                "knowledge": knowledge.result(),
            }

    def retrieve(self, kind: Optional[str] = None) -> Mapping[str, List[Mapping[str, Any]]]:
        readers = {
            "queue": self.list_queue,
            "memory": self.list_memory,
            "knowledge": self.list_knowledge,
        }
        if kind is None:
            listing = self.snapshot()
        elif kind in readers:
            listing = {kind: readers[kind]()}
        else:
            raise InvalidRequestError(
                f"unsupported listing '{kind}', expected one of {sorted(readers)}"
            )
        return {name: [record.to_payload() for record in records] for name, records in listing.items()}

    def delete(self, kind: Optional[str], topic_id: Any = None) -> bool:
        if kind == "topic":
            if topic_id is None or topic_id == "":
                raise InvalidRequestError("removing a topic requires its id")
            return self.remove_topic(topic_id)
        if kind == "memory":
            return self.clear_memory()
        raise InvalidRequestError(f"unsupported deletion '{kind}', expected 'topic' or 'memory'")


def _parse_topic_id(topic_id: Any) -> int:
    if isinstance(topic_id, (bool, float)):
        raise InvalidRequestError("topic id must be an integer")
    try:
        return int(topic_id)
    except (TypeError, ValueError) as exc:
        raise InvalidRequestError(f"topic id must be an integer, got {topic_id!r}") from exc


__all__ = ["BroadcastManager", "GenerationResult", "PersonaAgent"]
