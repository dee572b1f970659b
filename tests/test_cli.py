import json

import pytest

from fakes import FakeElement, FakePage, session_factory
from replay import run as cli
from replay.engine import PlaybackEngine

RECORDING = {
    "id": "rec_1",
    "testName": "search",
    "url": "https://shop.test/",
    "version": "1.0.0",
    "viewport": {"width": 375, "height": 812},
    "actions": [
        {"type": "click", "id": "act_1", "timestamp": 0, "url": "https://shop.test/", "selector": {"css": "#q"}},
        {"type": "input", "id": "act_2", "timestamp": 10, "url": "https://shop.test/", "selector": {"css": "#q"}, "value": "lamp"},
    ],
}


@pytest.fixture
def recording_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("REPLAY_SETTLE_DELAY_MS", "0")
    monkeypatch.setenv("REPLAY_LOCATOR_POLL_INTERVAL_MS", "0")
    path = tmp_path / "search.json"
    path.write_text(json.dumps(RECORDING), encoding="utf-8")
    return path


def _patch_engine(monkeypatch, page):
    async def no_sleep(delay):
        return None

    def build(options, reporter):
        return PlaybackEngine(options, reporter, session_factory=session_factory(page), sleep=no_sleep)

    monkeypatch.setattr(cli, "PlaybackEngine", build)


def test_validate_reports_action_count(recording_file, capsys):
    assert cli.main(["validate", str(recording_file)]) == 0

    assert "2 actions, schema v1.0.0" in capsys.readouterr().out


def test_validate_rejects_bad_recording(tmp_path, capsys):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"id": "x", "actions": [{"type": "click"}]}), encoding="utf-8")

    assert cli.main(["validate", str(path)]) == 1
    assert "Invalid recording format" in capsys.readouterr().err


def test_missing_file_exits_2(tmp_path, capsys):
    assert cli.main(["validate", str(tmp_path / "nope.json")]) == 2
    assert "error:" in capsys.readouterr().err


def test_info_prints_summary(recording_file, capsys):
    assert cli.main(["info", str(recording_file)]) == 0

    out = capsys.readouterr().out
    assert "Recording: search.json" in out
    assert "(Mobile)" in out
    assert "Navigation: 1 page(s), 0 transition(s), SPA" in out


def test_info_json(recording_file, capsys):
    assert cli.main(["info", "--json", str(recording_file)]) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["statistics"]["by_type"] == {"click": 1, "input": 1}


def test_run_success_writes_result_and_events(recording_file, tmp_path, monkeypatch):
    page = FakePage({"#q": [FakeElement()]})
    _patch_engine(monkeypatch, page)
    output = tmp_path / "out" / "result.json"
    events = tmp_path / "events.jsonl"

    code = cli.main(
        ["run", str(recording_file), "--timeout", "0", "--run-id", "cli-run", "--output", str(output), "--events", str(events)]
    )

    assert code == 0
    result = json.loads(output.read_text(encoding="utf-8"))
    assert result["status"] == "success"
    assert result["run_id"] == "cli-run"
    assert events.read_text(encoding="utf-8").count("\n") == 6


def test_run_failure_exits_1(recording_file, tmp_path, monkeypatch):
    _patch_engine(monkeypatch, FakePage())

    code = cli.main(["run", str(recording_file), "--timeout", "0", "--screenshots", "never"])

    assert code == 1
    assert not (tmp_path / "screenshots").exists()


def test_run_rejects_unknown_browser(recording_file):
    with pytest.raises(SystemExit):
        cli.main(["run", str(recording_file), "--browser", "opera"])


def test_overrides_drop_unset_flags():
    args = cli.build_parser().parse_args(["run", "rec.json", "--headed", "--timing", "fast"])

    assert cli._overrides(args) == {"headless": False, "timing_mode": "fast"}
