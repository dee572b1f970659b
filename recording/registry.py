"""Lookup table from a recorded ``type`` tag to the model that parses it."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Dict, List, Optional, Tuple, Type, Union

from pydantic import Field, TypeAdapter

from .models import (
    ActionBase,
    CheckpointAction,
    ClickAction,
    HoverAction,
    InputAction,
    KeypressAction,
    ModalLifecycleAction,
    NavigationAction,
    ScrollAction,
    SelectAction,
    SubmitAction,
)


@dataclass(frozen=True, slots=True)
class ActionKind:
    tag: str
    model: Type[ActionBase]
    summary: str = ""

    def describe(self) -> Dict[str, Any]:
        return {
            "tag": self.tag,
            "model": self.model.__name__,
            "requires_selector": self.model.__requires_selector__,
            "summary": self.summary,
        }


class ActionRegistry:
    """Known action kinds, in registration order.

    Parsing goes through a discriminated union over every registered model,
    rebuilt lazily whenever a kind is added.
    """

    def __init__(self) -> None:
        self._kinds: Dict[str, ActionKind] = {}
        self._union: Optional[TypeAdapter[Any]] = None

    def add(self, model: Type[ActionBase], summary: str = "") -> Type[ActionBase]:
        if not (isinstance(model, type) and issubclass(model, ActionBase)):
            raise TypeError(f"{model!r} is not an action model")
        tag = model.__action_name__
        if tag in self._kinds and self._kinds[tag].model is not model:
            raise ValueError(f"Action tag {tag!r} is already bound to {self._kinds[tag].model.__name__}")
        self._kinds[tag] = ActionKind(tag, model, summary)
        self._union = None
        return model

    def kind(self, tag: str) -> ActionKind:
        if tag not in self._kinds:
            raise KeyError(f"No action kind registered for {tag!r}")
        return self._kinds[tag]

    def tags(self) -> List[str]:
        return list(self._kinds)

    def models(self) -> Tuple[Type[ActionBase], ...]:
        return tuple(kind.model for kind in self._kinds.values())

    def _adapter(self) -> TypeAdapter[Any]:
        if self._union is not None:
            return self._union
        models = self.models()
        if not models:
            raise RuntimeError("Cannot parse actions before any kind is registered")
        self._union = TypeAdapter(Annotated[Union[models], Field(discriminator="type")])
        return self._union

    def parse_action(self, data: Any) -> ActionBase:
        if isinstance(data, ActionBase):
            return data
        return self._adapter().validate_python(data)

    def parse_json(self, raw: str | bytes) -> ActionBase:
        return self._adapter().validate_json(raw)

    def describe(self) -> Dict[str, Dict[str, Any]]:
        return {tag: kind.describe() for tag, kind in self._kinds.items()}


registry = ActionRegistry()

for _model, _summary in (
    (ClickAction, "Mouse click on a resolved element"),
    (InputAction, "Text entry into an input or textarea"),
    (SelectAction, "Option choice in a <select> element"),
    (ScrollAction, "Window or element scroll to an offset"),
    (NavigationAction, "Page navigation between two URLs"),
    (HoverAction, "Pointer hover, typically opening menus"),
    (SubmitAction, "Form submission"),
    (KeypressAction, "Keyboard key press with modifiers"),
    (CheckpointAction, "Recorded assertion about page state"),
    (ModalLifecycleAction, "Modal open/close marker"),
):
    registry.add(_model, _summary)


def parse_action(data: Any) -> ActionBase:
    return registry.parse_action(data)
