"""Conversational continuity for the PUMPIE FM persona.

This subpackage keeps the persona's segments connected across requests.  It
wires together

* a fail-soft adapter over the Redis list commands,
* a priority-aware topic queue, a capped memory log, and a capped knowledge
  base, each persisted as one Redis list,
* a deterministic context assembler over memory, knowledge and the current
  topic, and
* a manager that selects a topic, calls the remote generator, cleans its
  output, and writes the segment back into memory and knowledge.
"""

from .clients import LLMClient
from .manager import BroadcastManager, GenerationResult, PersonaAgent
from .policy import FailSoft, InvalidRequestError
from .runtime import PersonaRuntime, main as runtime_main
from .schemas import (
    KnowledgeEntry,
    MemoryEntry,
    TopicItem,
    decode_record,
    encode_record,
)
from .storage import KnowledgeBase, MemoryLog, RedisListStore, TopicQueue
from .tools import ContextAssembler, build_context, clean_generated_text, extract_keywords

__all__ = [
    "BroadcastManager",
    "ContextAssembler",
    "FailSoft",
    "GenerationResult",
    "InvalidRequestError",
    "KnowledgeBase",
    "KnowledgeEntry",
    "LLMClient",
    "MemoryEntry",
    "MemoryLog",
    "PersonaAgent",
    "PersonaRuntime",
    "RedisListStore",
    "TopicItem",
    "TopicQueue",
    "build_context",
    "clean_generated_text",
    "decode_record",
    "encode_record",
    "extract_keywords",
    "runtime_main",
]
