"""Failure policy shared by the continuity components."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InvalidRequestError(ValueError):
    """Raised when a caller asks for an unsupported operation or combination.

    This is the only failure surfaced to callers.  Store, record and generator
    failures degrade through :class:`FailSoft` instead.
    """


@dataclass
class Failure:
    component: str
    operation: str
    error: Exception


@dataclass
class FailSoft:
    """Degrade-to-fallback policy: run an operation, log and record any error.

    Each component owns one instance so tests can inspect which operations
    degraded and why.
    """

    component: str
    failures: List[Failure] = field(default_factory=list)

    def call(self, operation: str, fn: Callable[[], T], default: T) -> T:
        try:
            return fn()
        except Exception as exc:
            logger.warning("%s: %s failed, using fallback: %s", self.component, operation, exc)
            self.failures.append(Failure(component=self.component, operation=operation, error=exc))
            return default

    @property
    def last_error(self) -> Optional[Exception]:
        return self.failures[-1].error if self.failures else None

    def reset(self) -> None:
        self.failures.clear()


__all__ = ["FailSoft", "Failure", "InvalidRequestError"]
