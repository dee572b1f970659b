"""Data structures for selector resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from .models import Selector


@dataclass(slots=True)
class StrategyAttempt:
    """Outcome of querying the page with a single strategy."""

    strategy: str
    value: str
    matches: int
    outcome: str  # matched, no-match, ambiguous, hidden, error
    error: str | None = None

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "strategy": self.strategy,
            "value": self.value,
            "matches": self.matches,
            "outcome": self.outcome,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass(slots=True)
class ResolvedElement:
    """A selector resolved to exactly one visible element."""

    selector: Selector
    strategy: str
    value: str
    locator: Any = field(repr=False)
    attempts: List[StrategyAttempt] = field(default_factory=list)
    elapsed_ms: float = 0.0

    def metadata(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "value": self.value,
            "attempts": [attempt.as_dict() for attempt in self.attempts],
        }
