"""Run result models and the mutable accumulator the engine fills in."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

RunStatus = Literal["success", "partial", "failed", "cancelled"]


class ActionError(BaseModel):
    model_config = ConfigDict(frozen=True)

    action_id: str
    action_type: str
    index: int
    message: str
    code: str = "PLAYBACK_ERROR"
    timestamp: float = Field(default_factory=time.time)
    screenshot_path: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class SkippedAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    action_id: str
    action_type: str
    index: int
    reason: str


class RunResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    run_id: str
    test_name: str = ""
    browser: str
    status: RunStatus
    actions_total: int
    actions_executed: int = 0
    actions_failed: int = 0
    actions_skipped: int = 0
    duration_ms: float = 0
    errors: List[ActionError] = Field(default_factory=list)
    skipped: List[SkippedAction] = Field(default_factory=list)
    partial_actions: List[str] = Field(default_factory=list)
    screenshots: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


@dataclass(slots=True)
class RunAccumulator:
    """Mutable counterpart of :class:`RunResult`, owned by one engine run."""

    run_id: str
    test_name: str
    browser: str
    actions_total: int = 0
    executed: int = 0
    failed: int = 0
    errors: List[ActionError] = field(default_factory=list)
    skipped: List[SkippedAction] = field(default_factory=list)
    partial_actions: List[str] = field(default_factory=list)
    screenshots: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None
    halted: bool = False
    cancelled: bool = False
    started_at: float = field(default_factory=time.monotonic)

    def status(self) -> RunStatus:
        if self.cancelled:
            return "cancelled"
        if self.failed == 0 and self.error is None and self.executed == self.actions_total:
            return "success"
        if self.halted or self.error is not None or self.executed == 0:
            return "failed"
        return "partial"

    def freeze(self) -> RunResult:
        return RunResult(
            run_id=self.run_id,
            test_name=self.test_name,
            browser=self.browser,
            status=self.status(),
            actions_total=self.actions_total,
            actions_executed=self.executed,
            actions_failed=self.failed,
            actions_skipped=len(self.skipped),
            duration_ms=round((time.monotonic() - self.started_at) * 1000, 1),
            errors=list(self.errors),
            skipped=list(self.skipped),
            partial_actions=list(self.partial_actions),
            screenshots=list(self.screenshots),
            warnings=list(self.warnings),
            error=self.error,
        )
