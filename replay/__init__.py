"""Playwright playback engine for captured browser recordings."""

from .cancellation import CancellationToken
from .config import RunOptions, load_options
from .engine import PlaybackEngine, PlaybackState, backoff_delay, run_recording, screenshot_name
from .errors import (
    ActionVerificationError,
    ElementNotFoundError,
    MalformedActionError,
    NavigationTimeoutError,
    PlaybackCancelledError,
    PlaybackError,
)
from .navigation_analyzer import (
    NavigationAnalysis,
    analyze_navigation,
    detect_missing_prerequisites,
    preprocess_recording,
)
from .reporter import CompositeReporter, ConsoleReporter, NullReporter, Reporter, RunInfo
from .result import ActionError, RunResult, SkippedAction
from .selector_resolver import SelectorResolver

__all__ = [
    "ActionError",
    "ActionVerificationError",
    "CancellationToken",
    "CompositeReporter",
    "ConsoleReporter",
    "ElementNotFoundError",
    "MalformedActionError",
    "NavigationAnalysis",
    "NavigationTimeoutError",
    "NullReporter",
    "PlaybackCancelledError",
    "PlaybackEngine",
    "PlaybackError",
    "PlaybackState",
    "Reporter",
    "RunInfo",
    "RunOptions",
    "RunResult",
    "SelectorResolver",
    "SkippedAction",
    "analyze_navigation",
    "backoff_delay",
    "detect_missing_prerequisites",
    "load_options",
    "preprocess_recording",
    "run_recording",
    "screenshot_name",
]
