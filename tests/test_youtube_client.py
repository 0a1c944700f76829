from __future__ import annotations

import json
import threading
import types
from typing import Any

import pytest

from ytsearch.services import youtube_client
from ytsearch.services.errors import YouTubeApiError
from ytsearch.services.youtube_client import (
    CredentialChain,
    GoogleApiYouTubeClient,
    parse_channels_list_response,
    parse_search_list_response,
    parse_videos_list_response,
    youtube_api_error_from_response,
)


class _FakeRequest:
    def __init__(self, response: object = None, error: Exception | None = None) -> None:
        self._response = response
        self._error = error

    def execute(self) -> object:
        if self._error is not None:
            raise self._error
        return self._response


class _FakeResource:
    def __init__(self, response: object = None, error: Exception | None = None) -> None:
        self.calls: list[dict[str, Any]] = []
        self._response = response
        self._error = error

    def list(self, **kwargs: Any) -> _FakeRequest:
        self.calls.append(kwargs)
        return _FakeRequest(self._response, self._error)


class _FakeDiscoveryClient:
    def __init__(
        self,
        *,
        search: _FakeResource | None = None,
        videos: _FakeResource | None = None,
        channels: _FakeResource | None = None,
    ) -> None:
        self._search = search or _FakeResource({"items": []})
        self._videos = videos or _FakeResource({"items": []})
        self._channels = channels or _FakeResource({"items": []})

    def search(self) -> _FakeResource:
        return self._search

    def videos(self) -> _FakeResource:
        return self._videos

    def channels(self) -> _FakeResource:
        return self._channels


class _FakeHttpError(Exception):
    def __init__(self, status: int, content: bytes) -> None:
        super().__init__(f"HttpError {status}")
        self.resp = types.SimpleNamespace(status=status)
        self.content = content


def _error_body(reason: str, message: str) -> str:
    return json.dumps(
        {"error": {"code": 403, "message": message, "errors": [{"reason": reason}]}}
    )


def test_error_from_json_body_includes_reason_and_message() -> None:
    error = youtube_api_error_from_response(403, _error_body("quotaExceeded", "Quota exceeded."))

    assert str(error) == "HTTP 403 (quotaExceeded): Quota exceeded."
    assert error.status_code == 403
    assert error.reason == "quotaExceeded"
    assert error.is_credential_failure is True


def test_error_without_json_message_uses_raw_body() -> None:
    assert str(youtube_api_error_from_response(502, "bad gateway")) == "HTTP 502: bad gateway"
    assert str(youtube_api_error_from_response(500, "  ")) == "HTTP 500: <empty response body>"


def test_only_forbidden_key_reasons_are_credential_failures() -> None:
    assert not youtube_api_error_from_response(400, _error_body("badRequest", "x")).is_credential_failure
    assert not YouTubeApiError("HTTP 500", status_code=500, reason="quotaExceeded").is_credential_failure
    assert YouTubeApiError("HTTP 403", status_code=403, reason="keyInvalid").is_credential_failure


def test_parse_search_list_response_keeps_items_without_video_ids() -> None:
    page = parse_search_list_response(
        {
            "nextPageToken": "CAUQAA",
            "items": [
                {"id": {"videoId": "abc"}, "snippet": {"publishedAt": "2026-10-01T00:00:00Z"}},
                {"id": {"channelId": "UC1"}, "snippet": {}},
                "garbage",
            ],
        }
    )

    assert page.next_page_token == "CAUQAA"
    assert [item.video_id for item in page.items] == ["abc", None, None]
    assert page.items[0].published_at == "2026-10-01T00:00:00Z"


def test_parse_videos_list_response_reads_snippet_and_content_details() -> None:
    records = parse_videos_list_response(
        {
            "items": [
                {
                    "id": "abc",
                    "snippet": {
                        "title": "A talk",
                        "channelId": "UC1",
                        "channelTitle": "Channel",
                        "publishedAt": "2026-10-01T00:00:00Z",
                        "defaultAudioLanguage": "en-US",
                        "thumbnails": {"medium": {"url": "https://i.ytimg.com/m.jpg"}},
                    },
                    "contentDetails": {"duration": "PT12M3S"},
                },
                {"snippet": {"title": "no id"}},
            ]
        }
    )

    assert len(records) == 1
    record = records[0]
    assert record.video_id == "abc"
    assert record.duration == "PT12M3S"
    assert record.default_audio_language == "en-US"
    assert record.default_language is None
    assert record.thumbnail_url == "https://i.ytimg.com/m.jpg"


def test_parse_channels_list_response() -> None:
    records = parse_channels_list_response(
        {"items": [{"id": "UC1", "snippet": {"title": "Chan", "customUrl": "@chan"}}]}
    )

    assert records[0].channel_id == "UC1"
    assert records[0].title == "Chan"
    assert records[0].custom_url == "@chan"


def test_build_client_uses_discovery_with_developer_key(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    def _build(*args: Any, **kwargs: Any) -> str:
        captured["args"] = args
        captured["kwargs"] = kwargs
        return "client"

    monkeypatch.setattr(
        youtube_client,
        "import_module",
        lambda name: types.SimpleNamespace(build=_build),
    )

    assert youtube_client._build_youtube_client("secret-key") == "client"  # pyright: ignore[reportPrivateUsage]
    assert captured["args"] == ("youtube", "v3")
    assert captured["kwargs"] == {"developerKey": "secret-key", "cache_discovery": False}


def test_client_forwards_search_params_and_builds_per_call(monkeypatch: pytest.MonkeyPatch) -> None:
    search = _FakeResource({"items": [{"id": {"videoId": "abc"}, "snippet": {}}]})
    built_for: list[str] = []

    def _build(api_key: str) -> _FakeDiscoveryClient:
        built_for.append(api_key)
        return _FakeDiscoveryClient(search=search)

    monkeypatch.setattr(youtube_client, "_build_youtube_client", _build)
    client = GoogleApiYouTubeClient()

    first = client.search_list("k1", [("q", "python"), ("order", "date")], None)
    client.search_list("k1", [("q", "python")], "NEXT")

    assert [item.video_id for item in first.items] == ["abc"]
    assert built_for == ["k1", "k1"]
    assert search.calls[0] == {"part": "snippet", "type": "video", "q": "python", "order": "date"}
    assert search.calls[1]["pageToken"] == "NEXT"


def test_concurrent_calls_do_not_share_a_discovery_client(monkeypatch: pytest.MonkeyPatch) -> None:
    used: dict[str, _FakeDiscoveryClient] = {}
    barrier = threading.Barrier(2)

    def _build(api_key: str) -> _FakeDiscoveryClient:
        discovery_client = _FakeDiscoveryClient()
        used[threading.current_thread().name] = discovery_client
        barrier.wait(timeout=5)
        return discovery_client

    monkeypatch.setattr(youtube_client, "_build_youtube_client", _build)
    client = GoogleApiYouTubeClient()
    workers = [
        threading.Thread(target=client.search_list, args=("k", [("q", "x")], None), name=name)
        for name in ("first", "second")
    ]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join(timeout=5)

    assert set(used) == {"first", "second"}
    assert used["first"] is not used["second"]


def test_client_requests_details_in_one_batch(monkeypatch: pytest.MonkeyPatch) -> None:
    videos = _FakeResource({"items": []})
    monkeypatch.setattr(
        youtube_client,
        "_build_youtube_client",
        lambda api_key: _FakeDiscoveryClient(videos=videos),
    )
    client = GoogleApiYouTubeClient()

    assert client.videos_list("k1", []) == []
    client.videos_list("k1", ["a", "b"])

    assert videos.calls == [{"part": "snippet,contentDetails", "id": "a,b", "maxResults": 2}]


def test_client_converts_http_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    failing = _FakeResource(
        error=_FakeHttpError(403, _error_body("quotaExceeded", "Out of quota").encode("utf-8"))
    )
    monkeypatch.setattr(
        youtube_client,
        "_build_youtube_client",
        lambda api_key: _FakeDiscoveryClient(search=failing),
    )

    with pytest.raises(YouTubeApiError) as exc_info:
        GoogleApiYouTubeClient().search_list("k1", [("q", "x")], None)

    assert str(exc_info.value) == "HTTP 403 (quotaExceeded): Out of quota"
    assert exc_info.value.is_credential_failure


def test_client_wraps_transport_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    failing = _FakeResource(error=ConnectionError("connection reset"))
    monkeypatch.setattr(
        youtube_client,
        "_build_youtube_client",
        lambda api_key: _FakeDiscoveryClient(channels=failing),
    )

    with pytest.raises(YouTubeApiError, match="channels.list request failed: connection reset"):
        GoogleApiYouTubeClient().channels_list("k1", ["UC1"])


def test_credential_chain_deduplicates_and_requires_a_key() -> None:
    chain = CredentialChain(" k1 ", ["k1", "", "k2"])

    assert chain.candidates == ("k1", "k2")
    assert chain.active_key == "k1"
    with pytest.raises(ValueError):
        CredentialChain("  ", ["  "])


def test_credential_chain_raises_last_error_when_all_keys_fail() -> None:
    chain = CredentialChain("k1", ["k2"])
    attempted: list[str] = []

    def _operation(key: str) -> str:
        attempted.append(key)
        raise YouTubeApiError(f"HTTP 403 {key}", status_code=403, reason="keyInvalid")

    with pytest.raises(YouTubeApiError, match="HTTP 403 k2"):
        chain.call("search.list", _operation)

    assert attempted == ["k1", "k2"]
    assert chain.active_key == "k1"
