"""Run options for playback, loaded from defaults, TOML and environment."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from .cancellation import CancellationToken

BROWSERS = ("chromium", "firefox", "webkit")
SCREENSHOT_MODES = ("never", "on-failure", "always")
TIMING_MODES = {"instant": 0.0, "fast": 0.25, "realistic": 1.0}

ENV_PREFIX = "REPLAY_"
DEFAULT_CONFIG_FILE = Path("replay.toml")

DEFAULTS: Dict[str, Any] = {
    "browser": "chromium",
    "headless": True,
    "headless_fallback": True,
    "action_timeout_ms": 10000,
    "navigation_timeout_ms": 30000,
    "continue_on_error": False,
    "screenshot_enabled": True,
    "screenshot_mode": "on-failure",
    "screenshot_dir": "screenshots",
    "run_id": "",
    "max_retries": 2,
    "retry_backoff_base": 0.5,
    "locator_poll_interval_ms": 250,
    "settle_delay_ms": 300,
    "scroll_tolerance_px": 2,
    "timing_mode": "realistic",
    "max_action_delay_ms": 30000,
    "auto_correct_page_state": True,
    "insert_prerequisite_hovers": False,
}


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


@dataclass(slots=True)
class RunOptions:
    browser: str = DEFAULTS["browser"]
    headless: bool = DEFAULTS["headless"]
    headless_fallback: bool = DEFAULTS["headless_fallback"]
    action_timeout_ms: int = DEFAULTS["action_timeout_ms"]
    navigation_timeout_ms: int = DEFAULTS["navigation_timeout_ms"]
    continue_on_error: bool = DEFAULTS["continue_on_error"]
    screenshot_enabled: bool = DEFAULTS["screenshot_enabled"]
    screenshot_mode: str = DEFAULTS["screenshot_mode"]
    screenshot_dir: Path = field(default_factory=lambda: Path(DEFAULTS["screenshot_dir"]))
    run_id: str = DEFAULTS["run_id"]
    max_retries: int = DEFAULTS["max_retries"]
    retry_backoff_base: float = DEFAULTS["retry_backoff_base"]
    locator_poll_interval_ms: int = DEFAULTS["locator_poll_interval_ms"]
    settle_delay_ms: int = DEFAULTS["settle_delay_ms"]
    scroll_tolerance_px: float = DEFAULTS["scroll_tolerance_px"]
    timing_mode: str = DEFAULTS["timing_mode"]
    max_action_delay_ms: int = DEFAULTS["max_action_delay_ms"]
    auto_correct_page_state: bool = DEFAULTS["auto_correct_page_state"]
    insert_prerequisite_hovers: bool = DEFAULTS["insert_prerequisite_hovers"]
    cancel_token: Optional[CancellationToken] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.browser not in BROWSERS:
            raise ValueError(f"browser must be one of {', '.join(BROWSERS)}, got {self.browser!r}")
        if self.screenshot_mode not in SCREENSHOT_MODES:
            raise ValueError(f"screenshot_mode must be one of {', '.join(SCREENSHOT_MODES)}, got {self.screenshot_mode!r}")
        if self.timing_mode not in TIMING_MODES:
            raise ValueError(f"timing_mode must be one of {', '.join(TIMING_MODES)}, got {self.timing_mode!r}")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    @property
    def effective_screenshot_mode(self) -> str:
        return self.screenshot_mode if self.screenshot_enabled else "never"

    @property
    def timing_multiplier(self) -> float:
        return TIMING_MODES[self.timing_mode]

    @classmethod
    def from_mapping(cls, mapping: Dict[str, Any]) -> "RunOptions":
        data = dict(DEFAULTS)
        data.update({key: value for key, value in mapping.items() if value is not None})
        return cls(
            browser=str(data["browser"]).lower(),
            headless=_as_bool(data["headless"]),
            headless_fallback=_as_bool(data["headless_fallback"]),
            action_timeout_ms=int(data["action_timeout_ms"]),
            navigation_timeout_ms=int(data["navigation_timeout_ms"]),
            continue_on_error=_as_bool(data["continue_on_error"]),
            screenshot_enabled=_as_bool(data["screenshot_enabled"]),
            screenshot_mode=str(data["screenshot_mode"]),
            screenshot_dir=Path(data["screenshot_dir"]),
            run_id=str(data["run_id"]),
            max_retries=int(data["max_retries"]),
            retry_backoff_base=float(data["retry_backoff_base"]),
            locator_poll_interval_ms=int(data["locator_poll_interval_ms"]),
            settle_delay_ms=int(data["settle_delay_ms"]),
            scroll_tolerance_px=float(data["scroll_tolerance_px"]),
            timing_mode=str(data["timing_mode"]),
            max_action_delay_ms=int(data["max_action_delay_ms"]),
            auto_correct_page_state=_as_bool(data["auto_correct_page_state"]),
            insert_prerequisite_hovers=_as_bool(data["insert_prerequisite_hovers"]),
            cancel_token=data.get("cancel_token"),
        )


def _load_toml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("rb") as fh:
        return tomllib.load(fh)


def load_options(config_path: Path | None = None, **overrides: Any) -> RunOptions:
    """Merge defaults, the ``[replay]`` TOML table, ``REPLAY_*`` env vars and overrides."""

    file_map: Dict[str, Any] = {}
    path = Path(config_path) if config_path else DEFAULT_CONFIG_FILE
    if path.exists():
        file_map = _load_toml(path).get("replay", {})

    env_map: Dict[str, Any] = {}
    for key, value in os.environ.items():
        if key.startswith(ENV_PREFIX):
            env_map[key[len(ENV_PREFIX):].lower()] = value

    merged = {**file_map, **env_map, **overrides}
    return RunOptions.from_mapping(merged)


def ensure_screenshot_dir(options: RunOptions) -> Path:
    options.screenshot_dir.mkdir(parents=True, exist_ok=True)
    return options.screenshot_dir
