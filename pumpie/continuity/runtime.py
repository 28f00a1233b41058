"""Runtime helpers for deploying the persona continuity service."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

import redis

from .clients import LLMClient
from .manager import BroadcastManager, PersonaAgent
from .policy import FailSoft, InvalidRequestError
from .schemas import DEFAULT_REQUEST_KIND, PRIORITIES, PRIORITY_NORMAL
from .storage import (
    DEFAULT_KEY_PREFIX,
    KNOWLEDGE_CAPACITY,
    MEMORY_CAPACITY,
    KnowledgeBase,
    MemoryLog,
    RedisListStore,
    TopicQueue,
    build_keys,
)

logger = logging.getLogger(__name__)

DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_MODEL = "claude-sonnet-4-20250514"


def _default_redis_url() -> str:
    return os.environ.get("KV_URL") or os.environ.get("REDIS_URL") or DEFAULT_REDIS_URL


@dataclass
class PersonaRuntime:
    """Process-level wiring: one redis connection, one LLM client, one agent.

    ``redis_client`` and ``llm_client`` may be supplied directly, in which case
    no connection is built for them.
    """

    redis_url: str = field(default_factory=_default_redis_url)
    key_prefix: str = DEFAULT_KEY_PREFIX
    store_timeout: float = 5.0
    llm_url: Optional[str] = None
    llm_model: str = DEFAULT_MODEL
    llm_provider: str = "anthropic"
    llm_timeout: float = 30.0
    max_tokens: int = 300
    memory_capacity: int = MEMORY_CAPACITY
    knowledge_capacity: int = KNOWLEDGE_CAPACITY
    redis_client: Any = None
    llm_client: Any = None

    def __post_init__(self) -> None:
        if self.redis_client is None:
            self.redis_client = redis.Redis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_timeout=self.store_timeout,
                socket_connect_timeout=self.store_timeout,
            )
        if self.llm_client is None:
            self.llm_client = LLMClient(
                base_url=self.llm_url,
                model=self.llm_model,
                provider=self.llm_provider,
                timeout=self.llm_timeout,
            )

        keys = build_keys(self.key_prefix)
        self.store = RedisListStore(self.redis_client, policy=FailSoft("store"))
        self.queue = TopicQueue(self.store, key=keys["topic_queue"])
        self.memory = MemoryLog(self.store, key=keys["memory"], capacity=self.memory_capacity)
        self.knowledge = KnowledgeBase(
            self.store, key=keys["knowledge"], capacity=self.knowledge_capacity
        )
        self.manager = BroadcastManager(
            queue=self.queue,
            memory=self.memory,
            knowledge=self.knowledge,
            llm_client=self.llm_client,
            max_tokens=self.max_tokens,
        )
        self.agent = PersonaAgent(manager=self.manager)
        logger.debug(
            "Persona runtime ready (prefix=%s, provider=%s, model=%s)",
            self.key_prefix,
            self.llm_provider,
            self.llm_model,
        )

    def close(self) -> None:
        for client in (self.redis_client, self.llm_client):
            closer = getattr(client, "close", None)
            if callable(closer):
                closer()


def _load_live_data(path: Optional[Path]) -> list:
    if path is None:
        return []
    with path.open("r", encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise InvalidRequestError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise InvalidRequestError(f"{path} must contain a JSON list of price records")
    return data


def _run_command(agent: PersonaAgent, args: argparse.Namespace) -> Mapping[str, Any]:
    if args.command == "generate":
        return agent.generate_content(
            live_data=_load_live_data(args.data),
            request_kind=args.kind,
            urgent_topic=args.urgent,
        )
    if args.command == "add-topic":
        topic = {
            "content": args.content,
            "category": args.category,
            "priority": args.priority,
            "tags": args.tag,
            "source": args.source,
        }
        return {"success": agent.add_topic(topic)}
    if args.command == "list":
        return agent.retrieve(args.kind)
    if args.command == "remove-topic":
        return {"success": agent.delete("topic", args.id)}
    if args.command == "clear":
        return {"success": agent.delete("memory")}
    raise InvalidRequestError(f"unsupported command '{args.command}'")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the PUMPIE FM persona continuity service")
    parser.add_argument("--redis-url", default=None, help="Redis URL (defaults to $KV_URL or $REDIS_URL)")
    parser.add_argument("--key-prefix", default=DEFAULT_KEY_PREFIX, help="Prefix for the three list keys")
    parser.add_argument("--llm-url", default=None, help="Base URL of the OpenAI-compatible endpoint")
    parser.add_argument("--llm-model", default=DEFAULT_MODEL, help="Model name exposed by the provider")
    parser.add_argument(
        "--llm-provider",
        choices=["anthropic", "openai", "deepseek", "vllm"],
        default="anthropic",
        help="LLM provider type",
    )
    parser.add_argument("--max-tokens", type=int, default=300, help="Upper bound on segment length")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging to trace prompt/response payloads.",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    generate = commands.add_parser("generate", help="Generate the next segment")
    generate.add_argument("--data", type=Path, help="JSON file holding a list of price records")
    generate.add_argument("--kind", default=DEFAULT_REQUEST_KIND, help="Request kind, e.g. final_segment")
    generate.add_argument("--urgent", default=None, help="Breaking intel that bypasses the queue")

    add_topic = commands.add_parser("add-topic", help="Queue a topic for discussion")
    add_topic.add_argument("content")
    add_topic.add_argument("--category", default=None)
    add_topic.add_argument("--priority", choices=sorted(PRIORITIES), default=PRIORITY_NORMAL)
    add_topic.add_argument("--tag", action="append", default=[])
    add_topic.add_argument("--source", default=None)

    listing = commands.add_parser("list", help="Show queue, memory, and knowledge")
    listing.add_argument("kind", nargs="?", choices=["queue", "memory", "knowledge"], default=None)

    remove = commands.add_parser("remove-topic", help="Remove a queued topic by id")
    remove.add_argument("id")

    commands.add_parser("clear", help="Clear memory, knowledge, and the topic queue")
    return parser


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    runtime = PersonaRuntime(
        redis_url=args.redis_url or _default_redis_url(),
        key_prefix=args.key_prefix,
        llm_url=args.llm_url,
        llm_model=args.llm_model,
        llm_provider=args.llm_provider,
        max_tokens=args.max_tokens,
    )
    try:
        result = _run_command(runtime.agent, args)
    except InvalidRequestError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    finally:
        runtime.close()

    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
