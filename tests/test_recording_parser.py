import json
import logging

import pytest

from recording.parser import (
    RecordingFormatError,
    load_recording,
    normalize_recording,
    parse_recording,
    parse_recording_json,
    sort_actions,
)
from recording.models import ClickAction, Recording


def _recording(actions, **extra):
    data = {"id": "rec_1", "testName": "demo", "url": "https://example.test/", "actions": actions}
    data.update(extra)
    return data


def test_parse_recording_reports_validation_errors():
    with pytest.raises(RecordingFormatError) as excinfo:
        parse_recording({"id": "rec_1", "actions": []})

    assert excinfo.value.errors
    assert excinfo.value.errors[0]["loc"] == ("url",)


def test_parse_recording_json_rejects_invalid_json():
    with pytest.raises(RecordingFormatError, match="not valid JSON"):
        parse_recording_json("{not json")


def test_parse_recording_passes_through_models():
    recording = Recording(id="r", url="https://example.test/")

    assert parse_recording(recording) is recording


def test_sort_actions_uses_id_sequence():
    actions = [
        ClickAction(id="act_003", timestamp=5),
        ClickAction(id="act_001", timestamp=9),
        ClickAction(id="act_002", timestamp=1),
    ]

    assert [a.id for a in sort_actions(actions)] == ["act_001", "act_002", "act_003"]


def test_sort_actions_keeps_order_when_ids_lack_numbers():
    actions = [ClickAction(id="b"), ClickAction(id="act_1"), ClickAction(id="a")]

    assert [a.id for a in sort_actions(actions)] == ["b", "act_1", "a"]


def test_sort_actions_keeps_order_for_non_recorder_ids():
    actions = [
        ClickAction(id="9f1c-a", timestamp=0),
        ClickAction(id="1b2d-b", timestamp=10),
        ClickAction(id="5e00-c", timestamp=20),
    ]

    assert [a.id for a in sort_actions(actions)] == ["9f1c-a", "1b2d-b", "5e00-c"]


def test_normalize_converts_epoch_timestamps_to_offsets():
    recording = parse_recording(
        _recording(
            [
                {"type": "click", "id": "act_1", "timestamp": 1_700_000_000_000, "selector": {"css": "#a"}},
                {"type": "click", "id": "act_2", "timestamp": 1_700_000_000_750, "selector": {"css": "#b"}},
            ]
        )
    )

    normalized = normalize_recording(recording)

    assert [a.timestamp for a in normalized.actions] == [0, 750]
    # Original is untouched.
    assert recording.actions[0].timestamp == 1_700_000_000_000


def test_normalize_logs_timestamp_inversions(caplog):
    recording = parse_recording(
        _recording(
            [
                {"type": "click", "id": "act_1", "timestamp": 500, "selector": {"css": "#a"}},
                {"type": "click", "id": "act_2", "timestamp": 100, "selector": {"css": "#b"}},
            ]
        )
    )

    with caplog.at_level(logging.WARNING, logger="recording.parser"):
        normalized = normalize_recording(recording)

    assert [a.id for a in normalized.actions] == ["act_1", "act_2"]
    assert "Timestamp inversion" in caplog.text


def test_load_recording_reads_file(tmp_path):
    path = tmp_path / "rec.json"
    path.write_text(
        json.dumps(
            _recording(
                [
                    {"type": "navigation", "id": "act_2", "timestamp": 20, "to": "https://example.test/b"},
                    {"type": "click", "id": "act_1", "timestamp": 10, "selector": {"css": "#a"}},
                ]
            )
        ),
        encoding="utf-8",
    )

    recording = load_recording(path)
    raw = load_recording(path, normalize=False)

    assert [a.id for a in recording.actions] == ["act_1", "act_2"]
    assert [a.id for a in raw.actions] == ["act_2", "act_1"]


def test_load_recording_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_recording(tmp_path / "missing.json")
