"""Typed models for captured browser recordings."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

ModifierKey = Literal["ctrl", "shift", "alt", "meta"]

# Strategy name as written by the recorder -> model field holding its value.
STRATEGY_FIELDS: Dict[str, str] = {
    "id": "id",
    "dataTestId": "data_test_id",
    "ariaLabel": "aria_label",
    "name": "name",
    "css": "css",
    "xpath": "xpath",
    "xpathAbsolute": "xpath_absolute",
    "text": "text",
    "textContains": "text_contains",
    "position": "position",
}

_SNAKE_TO_STRATEGY = {field: name for name, field in STRATEGY_FIELDS.items()}


class RecordingModel(BaseModel):
    """Base configuration shared by every recording model."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class StructuralPosition(RecordingModel):
    parent: str
    index: int = Field(ge=0)

    def as_css(self) -> str:
        return f"{self.parent} > :nth-child({self.index + 1})"


class Selector(RecordingModel):
    """Multi-strategy element descriptor.

    ``priority`` lists strategy names in the order they are tried.  Entries
    naming a strategy with no value are dropped while validating, so every
    remaining entry can be turned into a locator.  When the recorder omitted
    ``priority`` entirely the default order is applied to whatever strategies
    are present; an explicit empty list is kept empty.
    """

    id: Optional[str] = None
    data_test_id: Optional[str] = None
    aria_label: Optional[str] = None
    name: Optional[str] = None
    css: Optional[str] = None
    xpath: Optional[str] = None
    xpath_absolute: Optional[str] = None
    text: Optional[str] = None
    text_contains: Optional[str] = None
    position: Optional[Union[StructuralPosition, str]] = None
    priority: Optional[List[str]] = Field(default=None, validate_default=True)

    DEFAULT_PRIORITY: ClassVar[Tuple[str, ...]] = (
        "dataTestId",
        "id",
        "ariaLabel",
        "name",
        "css",
        "xpath",
        "xpathAbsolute",
        "text",
        "textContains",
        "position",
    )

    @field_validator("priority")
    @classmethod
    def _validate_priority(cls, value: Optional[List[str]], info: ValidationInfo) -> Optional[List[str]]:
        if value is None:
            return None
        if isinstance(value, str):
            value = [value]
        ordered: List[str] = []
        for item in value:
            name = _SNAKE_TO_STRATEGY.get(item, item)
            field_name = STRATEGY_FIELDS.get(name)
            if field_name is None or name in ordered:
                continue
            if _has_value(info.data.get(field_name)):
                ordered.append(name)
        return ordered

    def value_for(self, strategy: str) -> Any:
        return getattr(self, STRATEGY_FIELDS[strategy])

    def effective_priority(self) -> Tuple[str, ...]:
        if self.priority is not None:
            return tuple(self.priority)
        return tuple(name for name in self.DEFAULT_PRIORITY if _has_value(self.value_for(name)))

    def describe(self) -> str:
        for strategy in self.effective_priority():
            value = self.value_for(strategy)
            if isinstance(value, StructuralPosition):
                value = value.as_css()
            return f"{strategy}={value}"
        return "<empty selector>"


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


class Point(RecordingModel):
    x: float
    y: float


class Viewport(RecordingModel):
    width: int = Field(default=1280, gt=0)
    height: int = Field(default=720, gt=0)


class ActionBase(RecordingModel):
    """Fields common to every recorded action."""

    __action_name__: ClassVar[str]
    __requires_selector__: ClassVar[bool] = False

    id: str
    timestamp: float = 0
    url: str = ""
    completed_at: Optional[float] = None
    is_optional: bool = False
    skip_if_not_found: bool = False
    reason: Optional[str] = None

    @property
    def action_name(self) -> str:
        return self.__action_name__

    @property
    def skippable(self) -> bool:
        return self.is_optional or self.skip_if_not_found

    def target_selector(self) -> Optional[Selector]:
        selector = getattr(self, "selector", None)
        return selector if isinstance(selector, Selector) else None

    def summary(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "type": self.__action_name__}
        selector = self.target_selector()
        if selector is not None:
            data["selector"] = selector.describe()
        return data


class ClickAction(ActionBase):
    __action_name__ = "click"
    __requires_selector__ = True

    type: Literal["click"] = "click"
    selector: Optional[Selector] = None
    tag_name: Optional[str] = None
    text: Optional[str] = None
    coordinates: Optional[Point] = None
    coordinates_relative_to: Optional[Literal["element", "viewport", "document"]] = None
    button: Literal["left", "right", "middle"] = "left"
    click_count: int = Field(default=1, ge=1)
    modifiers: List[ModifierKey] = Field(default_factory=list)


class InputAction(ActionBase):
    __action_name__ = "input"
    __requires_selector__ = True

    type: Literal["input"] = "input"
    selector: Optional[Selector] = None
    tag_name: Optional[str] = None
    value: str = ""
    input_type: Optional[str] = None
    is_sensitive: bool = False
    simulation_type: Literal["type", "setValue"] = "setValue"
    typing_delay: Optional[int] = Field(default=None, ge=0)

    def display_value(self) -> str:
        return "***" if self.is_sensitive else self.value


class SelectAction(ActionBase):
    __action_name__ = "select"
    __requires_selector__ = True

    type: Literal["select"] = "select"
    selector: Optional[Selector] = None
    tag_name: Optional[str] = None
    selected_value: Optional[str] = None
    selected_text: Optional[str] = None
    selected_index: Optional[int] = Field(default=None, ge=0)


class ScrollAction(ActionBase):
    __action_name__ = "scroll"

    type: Literal["scroll"] = "scroll"
    element: Union[Literal["window"], Selector] = "window"
    scroll_x: float = 0
    scroll_y: float = 0

    def target_selector(self) -> Optional[Selector]:
        return self.element if isinstance(self.element, Selector) else None


NavigationTrigger = Literal[
    "click",
    "link-click",
    "form-submit",
    "manual",
    "redirect",
    "back",
    "forward",
    "unknown",
]


class NavigationAction(ActionBase):
    __action_name__ = "navigation"

    type: Literal["navigation"] = "navigation"
    from_url: str = Field(default="", alias="from")
    to: str = ""
    navigation_trigger: NavigationTrigger = "manual"
    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = "load"
    duration: Optional[float] = None
    original_trigger: Optional[NavigationTrigger] = None
    correction_reason: Optional[str] = None


class HoverAction(ActionBase):
    __action_name__ = "hover"
    __requires_selector__ = True

    type: Literal["hover"] = "hover"
    selector: Optional[Selector] = None
    tag_name: Optional[str] = None
    text: Optional[str] = None
    duration: Optional[float] = None
    is_dropdown_parent: bool = False


class SubmitAction(ActionBase):
    __action_name__ = "submit"
    __requires_selector__ = True

    type: Literal["submit"] = "submit"
    selector: Optional[Selector] = None
    tag_name: Optional[str] = "form"
    form_data: Dict[str, str] = Field(default_factory=dict)


class KeypressAction(ActionBase):
    __action_name__ = "keypress"

    type: Literal["keypress"] = "keypress"
    key: str = ""
    code: Optional[str] = None
    modifiers: List[ModifierKey] = Field(default_factory=list)

    def key_combo(self) -> str:
        names = {"ctrl": "Control", "shift": "Shift", "alt": "Alt", "meta": "Meta"}
        parts = [names[modifier] for modifier in self.modifiers]
        parts.append(self.key)
        return "+".join(parts)


class CheckpointAction(ActionBase):
    __action_name__ = "checkpoint"

    type: Literal["checkpoint"] = "checkpoint"
    check_type: Literal["urlMatch", "elementVisible", "elementText", "pageLoad"] = "pageLoad"
    expected_url: Optional[str] = None
    actual_url: Optional[str] = None
    selector: Optional[Selector] = None
    expected_value: Optional[str] = None
    actual_value: Optional[str] = None
    passed: bool = False


class ModalLifecycleAction(ActionBase):
    __action_name__ = "modal-lifecycle"

    type: Literal["modal-lifecycle"] = "modal-lifecycle"
    event: str = ""
    modal_element: Optional[Dict[str, Any]] = None


ActionTypes = Union[
    ClickAction,
    InputAction,
    SelectAction,
    ScrollAction,
    NavigationAction,
    HoverAction,
    SubmitAction,
    KeypressAction,
    CheckpointAction,
    ModalLifecycleAction,
]

Action = Annotated[ActionTypes, Field(discriminator="type")]


class Recording(RecordingModel):
    """A captured session: start URL, browser environment and ordered actions."""

    id: str
    test_name: str = ""
    url: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    viewport: Viewport = Field(default_factory=Viewport)
    user_agent: Optional[str] = None
    schema_version: str = Field(default="1.0.0", alias="version")
    actions: List[Action] = Field(default_factory=list)

    def with_actions(self, actions: List[ActionBase]) -> "Recording":
        return self.model_copy(update={"actions": list(actions)})
