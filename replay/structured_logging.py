"""JSON-lines event log for playback runs."""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Dict, Optional

from recording.models import ActionBase

from .executors import ActionOutcome
from .reporter import Reporter, RunInfo
from .result import ActionError, RunResult


class JsonlReporter(Reporter):
    """Writes one JSON object per reporter event.

    The file is opened on ``on_start`` and closed on ``on_complete`` so one
    instance covers exactly one run.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.run_id: Optional[str] = None
        self._step = 0
        self._fh = None

    def _emit(self, event: str, payload: Dict[str, Any]) -> None:
        if self._fh is None:
            return
        self._step += 1
        record = {
            "ts": time.time(),
            "run_id": self.run_id,
            "step": self._step,
            "event": event,
            **payload,
        }
        self._fh.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")
        self._fh.flush()

    def on_start(self, info: RunInfo) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = self.path.open("a", encoding="utf-8")
        self.run_id = info.run_id
        self._emit(
            "run:started",
            {
                "test_name": info.test_name,
                "browser": info.browser,
                "start_url": info.start_url,
                "total_actions": info.total_actions,
                "warnings": list(info.warnings),
            },
        )

    def on_action_start(self, action: ActionBase, index: int) -> None:
        self._emit("action:started", {"index": index, "action": action.summary()})

    def on_action_success(self, action: ActionBase, index: int, duration_ms: float, outcome: ActionOutcome) -> None:
        self._emit(
            "action:success",
            {"index": index, "action": action.summary(), "duration_ms": duration_ms, "result": outcome.as_dict()},
        )

    def on_action_error(self, action: ActionBase, index: int, error: ActionError, duration_ms: float) -> None:
        self._emit(
            "action:failed",
            {
                "index": index,
                "action": action.summary(),
                "duration_ms": duration_ms,
                "error": error.model_dump(),
            },
        )

    def on_action_skipped(self, action: ActionBase, index: int, reason: str) -> None:
        self._emit("action:skipped", {"index": index, "action": action.summary(), "reason": reason})

    def on_complete(self, result: RunResult) -> None:
        self._emit("run:completed", {"result": result.model_dump(exclude={"errors", "skipped"})})
        self.close()

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
