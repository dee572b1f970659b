"""Loading, validation and normalisation of recording files."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, List

from pydantic import ValidationError

from .models import ActionBase, Recording

log = logging.getLogger(__name__)

# Timestamps above this are Unix epoch milliseconds rather than offsets.
EPOCH_THRESHOLD_MS = 1_000_000_000_000
CLOSE_TIMESTAMP_MS = 2

_RECORDER_ID = re.compile(r"^act_(\d+)$")


class RecordingFormatError(ValueError):
    """Raised when a recording does not match the expected schema."""

    def __init__(self, message: str, *, errors: List[Any] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


def parse_recording(data: Any) -> Recording:
    """Validate a decoded JSON object into a :class:`Recording`."""

    if isinstance(data, Recording):
        return data
    try:
        return Recording.model_validate(data)
    except ValidationError as exc:
        raise RecordingFormatError(
            f"Invalid recording format: {exc.error_count()} validation error(s)\n{exc}",
            errors=exc.errors(include_url=False),
        ) from exc


def parse_recording_json(text: str | bytes) -> Recording:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RecordingFormatError(f"Recording is not valid JSON: {exc}") from exc
    return parse_recording(data)


def load_recording(path: Path | str, *, normalize: bool = True) -> Recording:
    path = Path(path)
    log.debug("Loading recording from %s", path)
    recording = parse_recording_json(path.read_text(encoding="utf-8"))
    return normalize_recording(recording) if normalize else recording


def _sequence_number(action: ActionBase) -> int | None:
    match = _RECORDER_ID.match(action.id)
    return int(match.group(1)) if match else None


def sort_actions(actions: List[ActionBase]) -> List[ActionBase]:
    """Order actions by the sequence number embedded in their ids.

    Recorder ids are sequential (``act_001``, ``act_002`` ...) and reflect the
    capture order even when clock skew produces out-of-order timestamps.  When
    any id is not of that form the recorded order is kept.
    """

    numbers = [_sequence_number(action) for action in actions]
    if any(number is None for number in numbers):
        return list(actions)
    order = sorted(range(len(actions)), key=lambda idx: numbers[idx])
    return [actions[idx] for idx in order]


def normalize_recording(recording: Recording) -> Recording:
    """Sort actions by sequence and convert epoch timestamps to offsets."""

    if not recording.actions:
        return recording

    actions = sort_actions(list(recording.actions))
    first = actions[0].timestamp
    if first > EPOCH_THRESHOLD_MS:
        actions = [action.model_copy(update={"timestamp": action.timestamp - first}) for action in actions]

    for prev, curr in zip(actions, actions[1:]):
        gap = curr.timestamp - prev.timestamp
        if gap < 0:
            log.warning(
                "Timestamp inversion: %s (%.0fms) follows %s (%.0fms)",
                curr.id,
                curr.timestamp,
                prev.id,
                prev.timestamp,
            )
        elif gap < CLOSE_TIMESTAMP_MS and curr.action_name != prev.action_name:
            log.debug("Very close timestamps: %s and %s (%.0fms apart)", prev.id, curr.id, gap)

    return recording.with_actions(actions)
