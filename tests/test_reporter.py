import io
import json

from recording.models import ClickAction, Selector
from replay.executors import ActionOutcome
from replay.reporter import CompositeReporter, ConsoleReporter, Reporter, RunInfo
from replay.result import ActionError, RunAccumulator
from replay.structured_logging import JsonlReporter

INFO = RunInfo(
    run_id="run-1",
    test_name="login",
    browser="chromium",
    start_url="https://a.test/",
    total_actions=2,
    warnings=("[act_2] Navigation mislabeled",),
)
ACTION = ClickAction(id="act_1", selector=Selector(css="#go"))


def _result(**fields):
    acc = RunAccumulator(run_id="run-1", test_name="login", browser="chromium", actions_total=2)
    for key, value in fields.items():
        setattr(acc, key, value)
    return acc.freeze()


def test_run_status_rules():
    assert _result(executed=2).status == "success"
    assert _result(executed=1).status == "partial"
    assert _result(executed=1, halted=True).status == "failed"
    assert _result(executed=0).status == "failed"
    assert _result(executed=2, failed=1).status == "partial"
    assert _result(executed=2, error="boom").status == "failed"
    assert _result(executed=2, cancelled=True).status == "cancelled"


def test_composite_isolates_failing_reporters(caplog):
    calls = []

    class Broken(Reporter):
        def on_start(self, info):
            raise RuntimeError("nope")

    class Tracking(Reporter):
        def on_start(self, info):
            calls.append(info.run_id)

    composite = CompositeReporter([Broken(), Tracking()])
    composite.on_start(INFO)

    assert calls == ["run-1"]
    assert "Reporter Broken failed in on_start" in caplog.text


def test_console_reporter_lines():
    stream = io.StringIO()
    reporter = ConsoleReporter(stream, verbose=True)
    error = ActionError(action_id="act_2", action_type="click", index=2, message="Element not found", screenshot_path="s.png")

    reporter.on_start(INFO)
    reporter.on_action_start(ACTION, 1)
    reporter.on_action_success(ACTION, 1, 12.4, ActionOutcome(status="partial", warnings=["offset differs"]))
    reporter.on_action_error(ACTION, 2, error, 40)
    reporter.on_complete(_result(executed=1, failed=1, halted=True, error="stopped"))

    lines = stream.getvalue().splitlines()
    assert lines[0] == "Running login on chromium (2 actions)"
    assert "  warning: [act_2] Navigation mislabeled" in lines
    assert "[1/2] click act_1 ..." in lines
    assert "[1/2] ~ click act_1 (12ms)" in lines
    assert "    offset differs" in lines
    assert "[2/2] FAIL click act_1 (40ms): Element not found" in lines
    assert "    screenshot: s.png" in lines
    assert lines[-2].startswith("FAILED: 1/2 executed, 1 failed, 0 skipped")
    assert lines[-1] == "  stopped"


def test_jsonl_reporter_writes_ordered_events(tmp_path):
    path = tmp_path / "logs" / "events.jsonl"
    reporter = JsonlReporter(path)
    error = ActionError(action_id="act_2", action_type="click", index=2, message="gone", code="ELEMENT_NOT_FOUND")

    reporter.on_start(INFO)
    reporter.on_action_start(ACTION, 1)
    reporter.on_action_success(ACTION, 1, 5.0, ActionOutcome(details={"method": "click"}))
    reporter.on_action_skipped(ACTION, 2, "optional")
    reporter.on_action_error(ACTION, 2, error, 3.0)
    reporter.on_complete(_result(executed=1, failed=1))

    records = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [r["event"] for r in records] == [
        "run:started",
        "action:started",
        "action:success",
        "action:skipped",
        "action:failed",
        "run:completed",
    ]
    assert [r["step"] for r in records] == [1, 2, 3, 4, 5, 6]
    assert {r["run_id"] for r in records} == {"run-1"}
    assert records[0]["total_actions"] == 2
    assert records[1]["action"] == {"id": "act_1", "type": "click", "selector": "css=#go"}
    assert records[2]["result"]["details"] == {"method": "click"}
    assert records[4]["error"]["code"] == "ELEMENT_NOT_FOUND"
    assert records[5]["result"]["status"] == "partial"
    assert "errors" not in records[5]["result"]


def test_jsonl_reporter_ignores_events_after_close(tmp_path):
    path = tmp_path / "events.jsonl"
    reporter = JsonlReporter(path)
    reporter.on_start(INFO)
    reporter.on_complete(_result(executed=2))

    reporter.on_action_start(ACTION, 3)

    assert len(path.read_text(encoding="utf-8").splitlines()) == 2
