from recording.analyzer import analyze_recording, normalize_page_url, viewport_category
from recording.parser import parse_recording


def _recording():
    return parse_recording(
        {
            "id": "rec_9",
            "testName": "search flow",
            "url": "https://shop.test/",
            "startTime": "2024-05-01T10:00:00Z",
            "endTime": "2024-05-01T10:00:05Z",
            "viewport": {"width": 800, "height": 600},
            "actions": [
                {"type": "click", "id": "act_1", "timestamp": 100, "url": "https://shop.test/", "selector": {"css": "#q"}},
                {"type": "input", "id": "act_2", "timestamp": 400, "url": "https://shop.test/#top", "selector": {"css": "#q"}, "value": "lamp"},
                {"type": "submit", "id": "act_3", "timestamp": 1400, "url": "https://shop.test/", "selector": {"css": "form"}},
                {"type": "click", "id": "act_4", "timestamp": 3400, "url": "https://shop.test/results/", "selector": {"css": ".item"}},
            ],
        }
    )


def test_viewport_categories():
    assert viewport_category(375) == "Mobile"
    assert viewport_category(768) == "Mobile"
    assert viewport_category(1024) == "Tablet"
    assert viewport_category(1280) == "Desktop"


def test_normalize_page_url_groups_equivalent_pages():
    assert normalize_page_url("https://shop.test/#top") == "https://shop.test"
    assert normalize_page_url("https://shop.test/results/") == "https://shop.test/results"
    assert normalize_page_url("https://shop.test/results?q=1#x") == "https://shop.test/results?q=1"
    assert normalize_page_url("") == ""


def test_analyze_recording_statistics():
    analysis = analyze_recording(_recording(), "recordings/search.json")

    assert analysis.file == "search.json"
    assert analysis.metadata.test_name == "search flow"
    assert analysis.viewport.category == "Tablet"
    assert analysis.statistics.total == 4
    assert analysis.statistics.by_type == {"click": 2, "input": 1, "submit": 1}
    assert analysis.statistics.percentages["click"] == 50.0
    assert analysis.statistics.by_page == {"https://shop.test": 3, "https://shop.test/results": 1}


def test_analyze_recording_timing_and_navigation():
    analysis = analyze_recording(_recording())

    assert analysis.timing.recording_duration_ms == 5000
    assert analysis.timing.action_span_ms == 3300
    assert analysis.timing.gaps.min == 300
    assert analysis.timing.gaps.max == 2000
    assert analysis.timing.gaps.median == 1000
    assert analysis.navigation.unique_pages == 2
    assert analysis.navigation.transitions == 1
    assert analysis.navigation.flow_type == "MPA"


def test_analyze_empty_recording():
    recording = parse_recording({"id": "rec_0", "url": "https://a.test/", "actions": []})

    analysis = analyze_recording(recording)

    assert analysis.statistics.total == 0
    assert analysis.navigation.flow_type == "N/A"
    assert analysis.viewport.category == "Desktop"
