"""In-memory stand-ins for the redis and LLM clients."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import redis


def _window(length: int, start: int, end: int) -> tuple[int, int]:
    if start < 0:
        start = max(length + start, 0)
    if end < 0:
        end = length + end
    return start, min(end, length - 1)


class FakePipeline:
    def __init__(self, backend: "FakeRedis") -> None:
        self.backend = backend
        self.commands: List[Callable[[], Any]] = []

    def delete(self, *keys: str) -> "FakePipeline":
        self.commands.append(lambda: self.backend.delete(*keys))
        return self

    def rpush(self, key: str, *values: str) -> "FakePipeline":
        self.commands.append(lambda: self.backend.rpush(key, *values))
        return self

    def execute(self) -> List[Any]:
        results = [command() for command in self.commands]
        self.commands.clear()
        return results


class FakeRedis:
    """In-memory stand-in for the list commands of ``redis.Redis``."""

    def __init__(self) -> None:
        self.lists: Dict[str, List[str]] = {}
        self.closed = False

    def lpush(self, key: str, *values: str) -> int:
        items = self.lists.setdefault(key, [])
        for value in values:
            items.insert(0, value)
        return len(items)

    def rpush(self, key: str, *values: str) -> int:
        items = self.lists.setdefault(key, [])
        items.extend(values)
        return len(items)

    def lpop(self, key: str) -> Optional[str]:
        items = self.lists.get(key)
        if not items:
            return None
        value = items.pop(0)
        if not items:
            del self.lists[key]
        return value

    def lrange(self, key: str, start: int, end: int) -> List[str]:
        items = self.lists.get(key, [])
        start, end = _window(len(items), start, end)
        if start > end:
            return []
        return list(items[start : end + 1])

    def ltrim(self, key: str, start: int, end: int) -> bool:
        items = self.lists.get(key, [])
        start, end = _window(len(items), start, end)
        kept = items[start : end + 1] if start <= end else []
        if kept:
            self.lists[key] = kept
        else:
            self.lists.pop(key, None)
        return True

    def llen(self, key: str) -> int:
        return len(self.lists.get(key, []))

    def linsert(self, key: str, where: str, refvalue: str, value: str) -> int:
        items = self.lists.get(key)
        if items is None:
            return 0
        if refvalue not in items:
            return -1
        index = items.index(refvalue)
        items.insert(index if where.upper() == "BEFORE" else index + 1, value)
        return len(items)

    def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.lists.pop(key, None) is not None:
                removed += 1
        return removed

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)

    def close(self) -> None:
        self.closed = True


class BrokenRedis:
    """Every command fails the way an unreachable server does."""

    def __getattr__(self, name: str) -> Callable[..., Any]:
        def _fail(*args: Any, **kwargs: Any) -> Any:
            raise redis.ConnectionError(f"{name}: connection refused")

        return _fail


class FakeLLMClient:
    def __init__(self, replies: Sequence[Any] = (), default: Any = None) -> None:
        self.replies = list(replies)
        self.default = default
        self.calls: List[Mapping[str, Any]] = []

    def chat(
        self,
        messages: Sequence[Mapping[str, Any]],
        *,
        max_tokens: Optional[int] = None,
        extra_body: Mapping[str, Any] | None = None,
    ) -> Any:
        self.calls.append({"messages": list(messages), "max_tokens": max_tokens})
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        if reply is None:
            raise AssertionError("No reply queued for chat call")
        return reply

    @property
    def last_prompt(self) -> str:
        return str(self.calls[-1]["messages"][-1]["content"])


