"""Recording schema, action registry and loaders."""

from .models import (
    Action,
    ActionBase,
    ActionTypes,
    CheckpointAction,
    ClickAction,
    HoverAction,
    InputAction,
    KeypressAction,
    ModalLifecycleAction,
    NavigationAction,
    Point,
    Recording,
    ScrollAction,
    SelectAction,
    Selector,
    StructuralPosition,
    SubmitAction,
    Viewport,
)
from .parser import RecordingFormatError, load_recording, normalize_recording, parse_recording, parse_recording_json
from .registry import ActionRegistry, ActionKind, parse_action, registry

__all__ = [
    "Action",
    "ActionBase",
    "ActionRegistry",
    "ActionKind",
    "ActionTypes",
    "CheckpointAction",
    "ClickAction",
    "HoverAction",
    "InputAction",
    "KeypressAction",
    "ModalLifecycleAction",
    "NavigationAction",
    "Point",
    "Recording",
    "RecordingFormatError",
    "ScrollAction",
    "SelectAction",
    "Selector",
    "StructuralPosition",
    "SubmitAction",
    "Viewport",
    "load_recording",
    "normalize_recording",
    "parse_action",
    "parse_recording",
    "parse_recording_json",
    "registry",
]
