"""Heuristics classifying what actually caused a recorded navigation."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Literal, Optional, Tuple
from urllib.parse import urlsplit

from recording.models import (
    ActionBase,
    ClickAction,
    HoverAction,
    NavigationAction,
    Recording,
    Selector,
    SubmitAction,
)

log = logging.getLogger(__name__)

Confidence = Literal["high", "medium", "low"]

CAUSAL_WINDOW_MS = 2000
IDLE_GAP_MS = 3000
PREREQUISITE_LOOKBACK = 3
SYNTHETIC_HOVER_LEAD_MS = 100

# The recorder writes "click" where the analyzer says "link-click".
_EQUIVALENT_LABELS = {"click": "link-click"}

_DROPDOWN_CSS_MARKERS = ("dropdown", "menu-item", "menuitem", "submenu")
_ANCHOR_SEGMENT = re.compile(r"^a(?:$|[.#\[:])")


@dataclass(frozen=True, slots=True)
class NavigationAnalysis:
    real_trigger: str
    confidence: Confidence
    reason: str


@dataclass(slots=True)
class PreprocessResult:
    recording: Recording
    warnings: List[str] = field(default_factory=list)
    corrections: int = 0


@dataclass(slots=True)
class PrerequisiteInsertion:
    """A hover proposed immediately before the click at ``before_index``."""

    before_index: int
    action: HoverAction
    reason: str

    @property
    def after_index(self) -> int:
        return self.before_index - 1


def _looks_like_anchor(action: ClickAction) -> bool:
    if (action.tag_name or "").lower() == "a":
        return True
    selector = action.selector
    css = selector.css if selector else None
    if not css:
        return False
    if "href" in css:
        return True
    last = re.split(r"[\s>+~]+", css.strip())[-1]
    return bool(_ANCHOR_SEGMENT.match(last))


def url_relationship(from_url: str, to_url: str) -> str:
    """Return parent-to-child, child-to-parent, same-level or different-domain."""

    try:
        source = urlsplit(from_url)
        target = urlsplit(to_url)
    except ValueError:
        return "same-level"
    # Relative or empty URLs carry no host to compare.
    if not (source.scheme and source.netloc and target.scheme and target.netloc):
        return "same-level"
    if source.hostname != target.hostname:
        return "different-domain"
    from_parts = [part for part in source.path.split("/") if part]
    to_parts = [part for part in target.path.split("/") if part]
    if len(to_parts) > len(from_parts) and to_parts[: len(from_parts)] == from_parts:
        return "parent-to-child"
    if len(from_parts) > len(to_parts) and from_parts[: len(to_parts)] == to_parts:
        return "child-to-parent"
    return "same-level"


def analyze_navigation(nav: NavigationAction, previous: Optional[ActionBase]) -> NavigationAnalysis:
    """Classify the real trigger of ``nav`` from the action recorded before it.

    Pure: the result depends only on the two actions passed in.
    """

    gap = nav.timestamp - previous.timestamp if previous is not None else None

    if isinstance(previous, SubmitAction) and gap is not None and gap < CAUSAL_WINDOW_MS:
        return NavigationAnalysis("form-submit", "high", "Previous action was form submit")

    if isinstance(previous, ClickAction) and gap is not None and gap < CAUSAL_WINDOW_MS:
        if _looks_like_anchor(previous):
            return NavigationAnalysis("link-click", "high", "Previous action was click on link")
        return NavigationAnalysis("link-click", "medium", "Previous action was click (likely triggered navigation)")

    relationship = url_relationship(nav.from_url, nav.to)
    if relationship == "parent-to-child":
        return NavigationAnalysis("link-click", "high", "URL moved deeper into site hierarchy (forward navigation)")
    if relationship == "child-to-parent":
        return NavigationAnalysis("back", "medium", "URL moved up in site hierarchy (likely back button)")
    if relationship == "same-level":
        return NavigationAnalysis("link-click", "low", "URL at same hierarchy level (likely link click)")

    if gap is None or gap > IDLE_GAP_MS:
        return NavigationAnalysis("back", "medium", "No recent action triggered this (likely browser button)")

    return NavigationAnalysis("unknown", "low", "Could not determine navigation trigger")


def _same_label(recorded: str, analysed: str) -> bool:
    return _EQUIVALENT_LABELS.get(recorded, recorded) == _EQUIVALENT_LABELS.get(analysed, analysed)


def preprocess_recording(recording: Recording) -> PreprocessResult:
    """Correct high-confidence mislabeled navigation triggers.

    Replay is unaffected; corrected actions keep the recorder's label in
    ``original_trigger`` and the analyzer's reason in ``correction_reason``.
    """

    actions: List[ActionBase] = []
    warnings: List[str] = []
    corrections = 0
    previous: Optional[ActionBase] = None
    for action in recording.actions:
        current = action
        if isinstance(action, NavigationAction):
            analysis = analyze_navigation(action, previous)
            recorded = action.navigation_trigger
            if analysis.confidence == "high" and not _same_label(recorded, analysis.real_trigger):
                warnings.append(
                    f'[{action.id}] Navigation mislabeled: Extension says "{recorded}", '
                    f'but analysis indicates "{analysis.real_trigger}" ({analysis.reason})'
                )
                current = action.model_copy(
                    update={
                        "navigation_trigger": analysis.real_trigger,
                        "original_trigger": recorded,
                        "correction_reason": analysis.reason,
                    }
                )
                corrections += 1
        actions.append(current)
        previous = action

    for warning in warnings:
        log.warning(warning)
    return PreprocessResult(recording=recording.with_actions(actions), warnings=warnings, corrections=corrections)


def _is_dropdown_item(selector: Optional[Selector]) -> bool:
    if selector is None:
        return False
    css = selector.css or ""
    xpath = selector.xpath or ""
    return any(marker in css for marker in _DROPDOWN_CSS_MARKERS) or "menu" in xpath


def parent_selector(css: str) -> Optional[str]:
    """Strip the last combinator segment: ``nav > ul.menu > li`` -> ``nav > ul.menu``."""

    parts = [part.strip() for part in css.split(">")]
    if len(parts) > 1:
        return " > ".join(parts[:-1])
    words = css.split()
    if len(words) > 1:
        return " ".join(words[:-1])
    return None


def _has_recent_parent_interaction(actions: List[ActionBase], index: int, css: str) -> bool:
    current = actions[index]
    for prev in reversed(actions[max(0, index - PREREQUISITE_LOOKBACK) : index]):
        if current.timestamp - prev.timestamp > CAUSAL_WINDOW_MS:
            break
        if isinstance(prev, (ClickAction, HoverAction)):
            prev_css = prev.selector.css if prev.selector else None
            if prev_css and css.startswith(prev_css):
                return True
    return False


def detect_missing_prerequisites(recording: Recording) -> List[PrerequisiteInsertion]:
    """Propose hovers before dropdown item clicks that lack a parent interaction."""

    actions = list(recording.actions)
    insertions: List[PrerequisiteInsertion] = []
    for index, action in enumerate(actions):
        if not isinstance(action, ClickAction) or not _is_dropdown_item(action.selector):
            continue
        css = action.selector.css if action.selector else None
        if not css or _has_recent_parent_interaction(actions, index, css):
            continue
        parent = parent_selector(css)
        if not parent:
            continue
        hover = HoverAction(
            id=f"act_synthetic_hover_{index}",
            timestamp=action.timestamp - SYNTHETIC_HOVER_LEAD_MS,
            url=action.url,
            selector=Selector(css=parent, priority=["css"]),
            is_optional=True,
            is_dropdown_parent=True,
            reason="synthetic prerequisite hover",
        )
        insertions.append(
            PrerequisiteInsertion(
                before_index=index,
                action=hover,
                reason=f"Dropdown item click requires parent hover: {parent}",
            )
        )
    return insertions


def apply_insertions(recording: Recording, insertions: List[PrerequisiteInsertion]) -> Tuple[Recording, List[str]]:
    if not insertions:
        return recording, []
    by_index = {insertion.before_index: insertion for insertion in insertions}
    actions: List[ActionBase] = []
    notes: List[str] = []
    for index, action in enumerate(recording.actions):
        insertion = by_index.get(index)
        if insertion is not None:
            actions.append(insertion.action)
            notes.append(f"Inserted {insertion.action.id} before {action.id}: {insertion.reason}")
        actions.append(action)
    return recording.with_actions(actions), notes
