import asyncio

import pytest

from fakes import FakeElement, FakePage
from recording.models import (
    CheckpointAction,
    ClickAction,
    InputAction,
    KeypressAction,
    ModalLifecycleAction,
    NavigationAction,
    ScrollAction,
    SelectAction,
    Selector,
    SubmitAction,
)
from recording.registry import registry
from replay.config import RunOptions
from replay.errors import ActionVerificationError, ElementNotFoundError, MalformedActionError
from replay.executors import EXECUTORS, ActionContext, check_exhaustive, executor_for


def _context(page, **overrides):
    params = dict(settle_delay_ms=0, action_timeout_ms=0, locator_poll_interval_ms=0)
    params.update(overrides)
    return ActionContext(page, RunOptions(**params))


def _run(ctx, action):
    executor = executor_for(action)
    executor.validate(action)
    return asyncio.run(executor.execute(ctx, action))


def test_every_registered_kind_has_an_executor():
    check_exhaustive(registry.models())

    assert set(EXECUTORS) == set(registry.models())


def test_check_exhaustive_reports_missing_kinds():
    class Orphan(ClickAction):
        __action_name__ = "orphan"

    with pytest.raises(RuntimeError, match="orphan"):
        check_exhaustive([Orphan])


def test_click_records_navigation():
    page = FakePage({"#next": [FakeElement(navigates_to="https://a.test/2")]}, url="https://a.test/1")
    ctx = _context(page)

    outcome = _run(ctx, ClickAction(id="act_1", selector=Selector(css="#next")))

    assert outcome.details["navigated_to"] == "https://a.test/2"
    assert outcome.details["method"] == "click"
    assert outcome.resolved.strategy == "css"
    assert ctx.history.current_url == "https://a.test/2"


def test_click_without_selector_is_malformed():
    with pytest.raises(MalformedActionError) as excinfo:
        executor_for(ClickAction(id="act_1")).validate(ClickAction(id="act_1"))

    assert excinfo.value.code == "VALIDATION"


def test_input_fill_is_verified():
    element = FakeElement()
    page = FakePage({"#email": [element]})

    outcome = _run(
        _context(page),
        InputAction(id="act_1", selector=Selector(css="#email"), tag_name="input", value="a@b.test"),
    )

    assert element.value == "a@b.test"
    assert outcome.details["verified"] is True
    assert outcome.details["simulation"] == "setValue"


def test_input_type_simulation_sends_keys():
    element = FakeElement(value="stale")
    page = FakePage({"#q": [element]})

    _run(
        _context(page),
        InputAction(id="act_1", selector=Selector(css="#q"), tag_name="input", value="lamp", simulation_type="type", typing_delay=5),
    )

    assert element.value == "lamp"
    assert any(action == "press_sequentially" for _, action, _ in page.calls)


class MaskedElement(FakeElement):
    """Element whose value the page rewrites, like an input with a formatter."""

    @property
    def value(self):
        return "reformatted"

    @value.setter
    def value(self, _):
        pass


def test_input_verification_mismatch_masks_sensitive_values():
    page = FakePage({"#pw": [MaskedElement()]})
    action = InputAction(id="act_1", selector=Selector(css="#pw"), tag_name="input", value="secret", is_sensitive=True)

    with pytest.raises(ActionVerificationError) as excinfo:
        _run(_context(page), action)

    assert "secret" not in str(excinfo.value)
    assert "reformatted" not in str(excinfo.value)
    assert excinfo.value.code == "VERIFICATION_FAILED"


def test_input_verification_skipped_for_checkboxes():
    page = FakePage({"#agree": [MaskedElement()]})
    action = InputAction(id="act_1", selector=Selector(css="#agree"), tag_name="input", input_type="checkbox", value="on")

    outcome = _run(_context(page), action)

    assert "verified" not in outcome.details


def test_select_requires_a_choice():
    action = SelectAction(id="act_1", selector=Selector(css="select"))

    with pytest.raises(MalformedActionError):
        executor_for(action).validate(action)


def test_select_by_value_is_verified():
    element = FakeElement()
    page = FakePage({"select": [element]})

    outcome = _run(_context(page), SelectAction(id="act_1", selector=Selector(css="select"), selected_value="fr"))

    assert outcome.details["selected"] == ["fr"]
    assert element.value == "fr"


def test_window_scroll_within_tolerance_is_success():
    page = FakePage()

    outcome = _run(_context(page), ScrollAction(id="act_1", scroll_x=0, scroll_y=400))

    assert not outcome.partial
    assert outcome.details["actual"] == [0, 400]


def test_window_scroll_clamped_by_page_is_partial():
    page = FakePage()
    page.max_scroll = (0, 250)

    outcome = _run(_context(page), ScrollAction(id="act_1", scroll_y=400))

    assert outcome.partial
    assert outcome.details["actual"] == [0, 250]
    assert "instead of" in outcome.warnings[0]


def test_element_scroll_uses_resolved_element():
    element = FakeElement(scroll_clamp=(0, 399))
    page = FakePage({".pane": [element]})

    outcome = _run(_context(page), ScrollAction(id="act_1", element=Selector(css=".pane"), scroll_y=400))

    assert element.scroll == [0, 399]
    assert not outcome.partial
    assert outcome.details["element"] == ".pane"


def test_navigation_already_there():
    page = FakePage(url="https://a.test/done?ref=1")

    outcome = _run(_context(page), NavigationAction(id="act_1", to="https://a.test/done"))

    assert outcome.details["method"] == "already-there"
    assert page.visited == []


def test_navigation_goes_to_target():
    page = FakePage(url="https://a.test/")

    outcome = _run(_context(page), NavigationAction(id="act_1", to="https://a.test/next"))

    assert outcome.details["method"] == "goto"
    assert page.url == "https://a.test/next"


def test_navigation_without_target_is_malformed():
    action = NavigationAction(id="act_1", to="  ")

    with pytest.raises(MalformedActionError):
        executor_for(action).validate(action)


def test_submit_uses_enclosing_form():
    page = FakePage({"form#login": [FakeElement(is_form=True, navigates_to="https://a.test/home")]}, url="https://a.test/login")

    outcome = _run(
        _context(page),
        SubmitAction(id="act_1", selector=Selector(css="form#login"), form_data={"user": "x", "pass": "y"}),
    )

    assert outcome.details["fields"] == ["pass", "user"]
    assert outcome.details["navigated_to"] == "https://a.test/home"


def test_submit_after_page_moved_on_counts_as_submitted():
    page = FakePage(url="https://a.test/home")

    outcome = _run(
        _context(page),
        SubmitAction(id="act_1", url="https://a.test/login", selector=Selector(css="form#login")),
    )

    assert outcome.details["already_submitted"] is True


def test_submit_missing_form_on_same_page_fails():
    page = FakePage(url="https://a.test/login")

    with pytest.raises(ElementNotFoundError):
        _run(_context(page), SubmitAction(id="act_1", url="https://a.test/login", selector=Selector(css="form#login")))


def test_submit_without_form_fails_verification():
    page = FakePage({"button": [FakeElement(is_form=False)]})

    with pytest.raises(ActionVerificationError, match="No form found"):
        _run(_context(page), SubmitAction(id="act_1", selector=Selector(css="button")))


def test_keypress_presses_combo():
    page = FakePage()

    outcome = _run(_context(page), KeypressAction(id="act_1", key="Enter", modifiers=["shift"]))

    assert page.keyboard.pressed == ["Shift+Enter"]
    assert outcome.details["keys"] == "Shift+Enter"


def test_failed_checkpoint_is_informational():
    page = FakePage(url="https://a.test/elsewhere")

    outcome = _run(
        _context(page),
        CheckpointAction(id="cp_1", check_type="urlMatch", expected_url="https://a.test/cart", passed=False),
    )

    assert outcome.details["verified"] is False


def test_url_checkpoint_is_verified():
    page = FakePage(url="https://a.test/elsewhere")
    action = CheckpointAction(id="cp_1", check_type="urlMatch", expected_url="https://a.test/cart", passed=True)

    with pytest.raises(ActionVerificationError):
        _run(_context(page), action)


def test_text_checkpoint_checks_inner_text():
    page = FakePage({"h1": [FakeElement(text="Order confirmed #42")]})
    action = CheckpointAction(
        id="cp_1", check_type="elementText", selector=Selector(css="h1"), expected_value="confirmed", passed=True
    )

    outcome = _run(_context(page), action)

    assert outcome.details["verified"] is True


def test_modal_lifecycle_is_informational():
    outcome = _run(_context(FakePage()), ModalLifecycleAction(id="m_1", event="open"))

    assert outcome.details == {"event": "open", "informational": True}
