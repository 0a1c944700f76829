from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest
from fastapi.testclient import TestClient
from youtube_fakes import FakeYouTubeApi

from ytsearch import main
from ytsearch.dependencies import get_run_controller
from ytsearch.main import request_scope
from ytsearch.services.errors import YouTubeApiError
from ytsearch.telemetry import TelemetryClient

PYTHON_QUERY = "(python OR pycon) talk -shorts"
RUST_QUERY = "rust (async OR ownership OR compiler) -game -shorts"


class _CaptureSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self.events.append((event_name, dict(attributes)))


def _seed_default_presets(fake_api: FakeYouTubeApi) -> None:
    fake_api.add_video(
        "py1",
        title="PyCon talk on typing",
        channel_id="UC_py",
        channel_title="PyCon",
        published_at="2026-10-10T00:00:00Z",
        duration="PT30M",
    )
    fake_api.add_video(
        "shared",
        title="Async Rust and Python talk",
        channel_id="UC_shared",
        channel_title="Shared Talks",
        published_at="2026-10-12T00:00:00Z",
        duration="PT45M",
    )
    fake_api.add_search_results(PYTHON_QUERY, ["py1", "shared"])
    fake_api.add_search_results(RUST_QUERY, ["shared"])


def test_health_endpoint_echoes_request_id(client: TestClient) -> None:
    response = client.get("/health", headers={"X-Request-ID": "req-42"})

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Request-ID"] == "req-42"


def test_list_presets_returns_builtins(client: TestClient) -> None:
    response = client.get("/presets")

    assert response.status_code == 200
    ids = [preset["id"] for preset in response.json()["presets"]]
    assert ids == ["python-talks", "rust-deep-dives", "ml-papers"]


def test_save_preset_generates_id_and_persists(client: TestClient) -> None:
    response = client.post("/presets", json={"name": "Go Talks", "query": {"q": "golang"}})

    assert response.status_code == 200
    assert response.json()["id"] == "go-talks"
    ids = [preset["id"] for preset in client.get("/presets").json()["presets"]]
    assert ids[-1] == "go-talks"


def test_save_preset_rejects_empty_query(client: TestClient) -> None:
    response = client.post("/presets", json={"name": "Nothing", "query": {"not_terms": ["x"]}})

    assert response.status_code == 400
    assert response.json()["detail"] == "Configure at least one query term."


def test_duplicate_import_and_delete_presets(client: TestClient) -> None:
    duplicate = client.post("/presets/python-talks/duplicate")
    assert duplicate.status_code == 200
    assert duplicate.json()["name"] == "Python talks copy"
    assert duplicate.json()["system"] is False

    imported = client.post(
        "/presets/import",
        json={"payload": '{"name": "Imported", "enabled": false, "query": {"q": "zig"}}'},
    )
    assert imported.status_code == 200
    assert imported.json()["id"] == "imported"
    assert imported.json()["enabled"] is True

    assert client.delete("/presets/imported").status_code == 200
    assert client.delete("/presets/python-talks").status_code == 400
    assert client.delete("/presets/missing").status_code == 404
    assert client.post("/presets/missing/duplicate").status_code == 404
    assert client.post("/presets/import", json={"payload": "{"}).status_code == 400


def test_reset_presets_restores_builtins(client: TestClient) -> None:
    client.post("/presets", json={"name": "Temp", "query": {"q": "temp"}})

    response = client.post("/presets/reset")

    assert response.status_code == 200
    assert [preset["id"] for preset in response.json()["presets"]] == [
        "python-talks",
        "rust-deep-dives",
        "ml-papers",
    ]


def test_run_search_merges_presets_and_caches_results(
    client: TestClient,
    fake_api: FakeYouTubeApi,
) -> None:
    _seed_default_presets(fake_api)

    response = client.post("/search/run", json={"mode": "any"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["presets_ran"] == 2
    assert payload["duplicates_across_presets"] == 1
    assert [video["video_id"] for video in payload["videos"]] == ["shared", "py1"]
    assert payload["videos"][0]["source_presets"] == ["Python talks", "Rust deep dives"]
    assert payload["videos"][0]["duration_label"] == "45m 0s"
    assert payload["status_line"].startswith("Ran 2 preset(s)")
    assert {call[0] for call in fake_api.search_calls} == {"test-key"}

    cached = client.get("/search/last")
    assert cached.status_code == 200
    assert [video["video_id"] for video in cached.json()["videos"]] == ["shared", "py1"]


def test_run_search_single_mode_and_sorting(client: TestClient, fake_api: FakeYouTubeApi) -> None:
    _seed_default_presets(fake_api)

    response = client.post(
        "/search/run",
        json={"mode": "single", "preset_id": "python-talks", "sort": "oldest"},
    )

    assert response.status_code == 200
    assert [video["video_id"] for video in response.json()["videos"]] == ["py1", "shared"]
    assert {call[1]["q"] for call in fake_api.search_calls} == {PYTHON_QUERY}


def test_run_search_reports_configuration_and_api_errors(
    client: TestClient,
    fake_api: FakeYouTubeApi,
) -> None:
    missing = client.post("/search/run", json={"mode": "single", "preset_id": "nope"})
    assert missing.status_code == 400
    assert missing.json()["detail"] == "Preset 'nope' not found."

    fake_api.search_errors[PYTHON_QUERY] = YouTubeApiError("HTTP 500: down", status_code=500)
    fake_api.search_errors[RUST_QUERY] = YouTubeApiError("HTTP 500: down", status_code=500)
    failed = client.post("/search/run", json={"mode": "any"})
    assert failed.status_code == 502
    assert "search.list failed for preset 'Python talks'" in failed.json()["detail"]


def test_run_search_reports_partial_failures(client: TestClient, fake_api: FakeYouTubeApi) -> None:
    _seed_default_presets(fake_api)
    fake_api.search_errors[RUST_QUERY] = YouTubeApiError("HTTP 500: down", status_code=500)

    response = client.post("/search/run", json={"mode": "any"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["presets_ran"] == 1
    assert payload["failed_presets"][0]["preset_id"] == "rust-deep-dives"
    assert payload["status_line"].endswith("Failed: Rust deep dives.")


def test_last_results_404_before_any_run(client: TestClient) -> None:
    assert client.get("/search/last").status_code == 404


def test_background_run_lifecycle(client: TestClient, fake_api: FakeYouTubeApi) -> None:
    _seed_default_presets(fake_api)

    launched = client.post("/search/runs", json={"mode": "any"})
    assert launched.status_code == 202
    run_id = launched.json()["run_id"]

    get_run_controller().wait(5.0)
    current = client.get("/search/runs/current", params={"sort": "oldest"})
    assert current.status_code == 200
    state = current.json()
    assert state["status"] == "succeeded"
    assert state["run_id"] == run_id
    assert [video["video_id"] for video in state["result"]["videos"]] == ["py1", "shared"]
    assert client.get("/search/last").status_code == 200

    cancelled = client.delete("/search/runs/current")
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "idle"
    assert client.delete("/search/runs/current").status_code == 404
    assert client.get("/search/runs/current").json()["status"] == "idle"


def test_blocked_channels_round_trip_and_hide_results(
    client: TestClient,
    fake_api: FakeYouTubeApi,
) -> None:
    _seed_default_presets(fake_api)

    blocked = client.post(
        "/blocked-channels",
        json={"channel_id": "UC_shared", "channel_title": "Shared Talks"},
    )
    assert blocked.status_code == 200
    assert blocked.json()["channels"] == [{"key": "uc_shared", "label": "Shared Talks"}]
    assert client.post("/blocked-channels", json={"channel_id": "UC_shared"}).status_code == 400
    assert client.post("/blocked-channels", json={}).status_code == 400

    run = client.post("/search/run", json={"mode": "any"})
    assert [video["video_id"] for video in run.json()["videos"]] == ["py1"]

    assert client.delete("/blocked-channels/uc_shared").status_code == 200
    assert client.get("/blocked-channels").json()["channels"] == []
    assert client.delete("/blocked-channels/uc_shared").status_code == 404


def test_duration_bucket_toggle(client: TestClient) -> None:
    initial = client.get("/duration-buckets").json()
    assert initial["allow_multiple"] is True
    assert [bucket["id"] for bucket in initial["buckets"] if bucket["selected"]] == ["any"]

    toggled = client.post("/duration-buckets/long/toggle")
    assert toggled.status_code == 200
    assert [bucket["id"] for bucket in toggled.json()["buckets"] if bucket["selected"]] == ["long"]
    assert client.get("/duration-buckets").json() == toggled.json()

    assert client.post("/duration-buckets/huge/toggle").status_code == 404


def test_request_scope_names_addressed_resource() -> None:
    assert request_scope("/presets/python-talks/duplicate") == {
        "resource": "presets",
        "preset_id": "python-talks",
    }
    assert request_scope("/presets/import") == {"resource": "presets"}
    assert request_scope("/blocked-channels/uc_noise") == {
        "resource": "blocked-channels",
        "channel_key": "uc_noise",
    }
    assert request_scope("/duration-buckets/long/toggle") == {
        "resource": "duration-buckets",
        "bucket_id": "long",
    }
    assert request_scope("/search/runs/current") == {"resource": "search"}
    assert request_scope("/") == {}


def test_request_telemetry_carries_resource_scope(
    client: TestClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    sink = _CaptureSink()
    monkeypatch.setattr(main, "get_telemetry", lambda: TelemetryClient(enabled=True, sink=sink))

    client.post("/presets/python-talks/duplicate", headers={"X-Request-ID": "req-7"})
    client.get("/health")

    assert [name for name, _ in sink.events] == ["api.request.finish"]
    attributes = sink.events[0][1]
    assert attributes["request_id"] == "req-7"
    assert attributes["method"] == "POST"
    assert attributes["resource"] == "presets"
    assert attributes["preset_id"] == "python-talks"
    assert attributes["status_code"] == 200
