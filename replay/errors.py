"""Error taxonomy for playback failures."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from recording.resolution import StrategyAttempt

CANCELLED_PREFIX = "CANCELLED:"

# Substrings of driver errors after which the session cannot be used again.
FATAL_BROWSER_MESSAGES = (
    "browser has been closed",
    "context has been closed",
    "target closed",
    "target page, context or browser has been closed",
)


class PlaybackError(Exception):
    def __init__(self, message: str, *, code: str = "PLAYBACK_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}


class ElementNotFoundError(PlaybackError):
    """No strategy matched exactly one visible element within the timeout."""

    def __init__(self, message: str, *, attempts: Sequence[StrategyAttempt] = ()):
        self.attempts: List[StrategyAttempt] = list(attempts)
        super().__init__(
            message,
            code="ELEMENT_NOT_FOUND",
            details={"attempts": [attempt.as_dict() for attempt in self.attempts]},
        )

    @property
    def attempted_strategies(self) -> List[str]:
        return [attempt.strategy for attempt in self.attempts]


class ActionVerificationError(PlaybackError):
    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="VERIFICATION_FAILED", details=details)


class NavigationTimeoutError(PlaybackError):
    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="NAVIGATION_TIMEOUT", details=details)


class MalformedActionError(PlaybackError):
    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="VALIDATION", details=details)


class PlaybackCancelledError(PlaybackError):
    def __init__(self, reason: str = "Run cancelled"):
        message = reason if reason.startswith(CANCELLED_PREFIX) else f"{CANCELLED_PREFIX} {reason}"
        super().__init__(message, code="CANCELLED")


def is_fatal_browser_error(exc: BaseException) -> bool:
    text = str(exc).lower()
    return any(marker in text for marker in FATAL_BROWSER_MESSAGES)
