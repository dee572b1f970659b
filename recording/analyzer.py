"""Static statistics over a recording, used by the ``info`` command."""

from __future__ import annotations

import logging
import statistics
from collections import Counter
from pathlib import Path
from typing import Dict, List, Literal, Optional
from urllib.parse import urlsplit, urlunsplit

from pydantic import BaseModel, Field

from .models import Recording

log = logging.getLogger(__name__)

CURRENT_SCHEMA_VERSIONS = {"1.0", "1.0.0"}


class RecordingMetadata(BaseModel):
    test_name: str
    recording_id: str
    start_url: str
    recorded_at: Optional[str] = None
    completed_at: Optional[str] = None
    schema_version: str
    user_agent: Optional[str] = None


class ViewportInfo(BaseModel):
    category: Literal["Mobile", "Tablet", "Desktop"]
    width: int
    height: int


class GapStats(BaseModel):
    min: float = 0
    max: float = 0
    avg: float = 0
    median: float = 0


class TimingAnalysis(BaseModel):
    recording_duration_ms: float = 0
    action_span_ms: float = 0
    gaps: GapStats = Field(default_factory=GapStats)


class ActionStatistics(BaseModel):
    total: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)
    by_page: Dict[str, int] = Field(default_factory=dict)
    percentages: Dict[str, float] = Field(default_factory=dict)


class NavigationInsights(BaseModel):
    unique_pages: int = 0
    transitions: int = 0
    flow_type: Literal["SPA", "MPA", "N/A"] = "N/A"


class RecordingAnalysis(BaseModel):
    file: str
    metadata: RecordingMetadata
    viewport: ViewportInfo
    statistics: ActionStatistics
    timing: TimingAnalysis
    navigation: NavigationInsights


def normalize_page_url(url: str) -> str:
    """Drop the fragment and trailing slash so equivalent pages group together."""

    if not url:
        return ""
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return url
    path = parts.path
    if path == "/" and not parts.query:
        return f"{parts.scheme}://{parts.netloc}"
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))


def viewport_category(width: int) -> str:
    if width <= 768:
        return "Mobile"
    if width <= 1024:
        return "Tablet"
    return "Desktop"


def analyze_recording(recording: Recording, file_path: Path | str = "") -> RecordingAnalysis:
    version = recording.schema_version or "unknown"
    if version not in CURRENT_SCHEMA_VERSIONS:
        log.warning("Recording uses schema v%s; some fields may not be available", version)

    metadata = RecordingMetadata(
        test_name=recording.test_name,
        recording_id=recording.id,
        start_url=recording.url,
        recorded_at=recording.start_time.isoformat() if recording.start_time else None,
        completed_at=(recording.end_time or recording.start_time).isoformat() if recording.start_time else None,
        schema_version=version,
        user_agent=recording.user_agent,
    )
    viewport = ViewportInfo(
        category=viewport_category(recording.viewport.width),
        width=recording.viewport.width,
        height=recording.viewport.height,
    )
    return RecordingAnalysis(
        file=Path(file_path).name if file_path else "",
        metadata=metadata,
        viewport=viewport,
        statistics=_action_statistics(recording),
        timing=_timing(recording),
        navigation=_navigation(recording),
    )


def _action_statistics(recording: Recording) -> ActionStatistics:
    total = len(recording.actions)
    if not total:
        return ActionStatistics()
    by_type = Counter(action.action_name for action in recording.actions)
    by_page = Counter(normalize_page_url(action.url) for action in recording.actions if action.url)
    return ActionStatistics(
        total=total,
        by_type=dict(by_type),
        by_page=dict(by_page),
        percentages={name: count / total * 100 for name, count in by_type.items()},
    )


def _timing(recording: Recording) -> TimingAnalysis:
    timestamps = [action.timestamp for action in recording.actions if action.timestamp > 0]
    duration = 0.0
    if recording.start_time and recording.end_time:
        duration = (recording.end_time - recording.start_time).total_seconds() * 1000
    if not timestamps:
        return TimingAnalysis(recording_duration_ms=duration)
    gaps: List[float] = [b - a for a, b in zip(timestamps, timestamps[1:])]
    gap_stats = GapStats()
    if gaps:
        gap_stats = GapStats(
            min=min(gaps),
            max=max(gaps),
            avg=statistics.fmean(gaps),
            median=statistics.median(gaps),
        )
    return TimingAnalysis(
        recording_duration_ms=duration,
        action_span_ms=max(timestamps) - min(timestamps),
        gaps=gap_stats,
    )


def _navigation(recording: Recording) -> NavigationInsights:
    pages = {normalize_page_url(action.url) for action in recording.actions if action.url}
    if not pages:
        return NavigationInsights()
    return NavigationInsights(
        unique_pages=len(pages),
        transitions=len(pages) - 1,
        flow_type="SPA" if len(pages) == 1 else "MPA",
    )
