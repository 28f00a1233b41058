from __future__ import annotations

import itertools
from typing import Callable

import pytest

from fakes import FakeLLMClient, FakeRedis
from pumpie.continuity.manager import BroadcastManager, PersonaAgent
from pumpie.continuity.policy import FailSoft
from pumpie.continuity.storage import KnowledgeBase, MemoryLog, RedisListStore, TopicQueue


@pytest.fixture
def ticker() -> Callable[[], int]:
    counter = itertools.count(1_760_000_000_000, 1000)
    return lambda: next(counter)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def store(fake_redis: FakeRedis) -> RedisListStore:
    return RedisListStore(fake_redis, policy=FailSoft("store"))


@pytest.fixture
def queue(store: RedisListStore, ticker: Callable[[], int]) -> TopicQueue:
    return TopicQueue(store, clock=ticker)


@pytest.fixture
def memory(store: RedisListStore) -> MemoryLog:
    return MemoryLog(store)


@pytest.fixture
def knowledge(store: RedisListStore) -> KnowledgeBase:
    return KnowledgeBase(store)


@pytest.fixture
def llm() -> FakeLLMClient:
    return FakeLLMClient(default="PUMP PUMP crypto family! $BONK is pumping and whales are bullish!")


@pytest.fixture
def manager(
    queue: TopicQueue,
    memory: MemoryLog,
    knowledge: KnowledgeBase,
    llm: FakeLLMClient,
    ticker: Callable[[], int],
) -> BroadcastManager:
    return BroadcastManager(
        queue=queue, memory=memory, knowledge=knowledge, llm_client=llm, clock=ticker
    )


@pytest.fixture
def agent(manager: BroadcastManager) -> PersonaAgent:
    return PersonaAgent(manager=manager)
