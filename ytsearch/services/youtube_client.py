from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from importlib import import_module
from typing import Any, Protocol, TypeVar, cast

from ytsearch.services.errors import YouTubeApiError

LOGGER = logging.getLogger("ytsearch.youtube")

MAX_IDS_PER_LOOKUP = 50
_T = TypeVar("_T")


@dataclass(frozen=True)
class SearchListItem:
    video_id: str | None
    published_at: str


@dataclass(frozen=True)
class SearchListPage:
    items: list[SearchListItem]
    next_page_token: str | None


@dataclass(frozen=True)
class VideoRecord:
    video_id: str
    title: str
    channel_id: str
    channel_title: str
    published_at: str
    duration: str
    default_audio_language: str | None = None
    default_language: str | None = None
    thumbnail_url: str | None = None


@dataclass(frozen=True)
class ChannelRecord:
    channel_id: str
    title: str
    custom_url: str | None = None


class YouTubeDataApi(Protocol):
    def search_list(
        self,
        api_key: str,
        params: Sequence[tuple[str, str]],
        page_token: str | None,
    ) -> SearchListPage:
        ...

    def videos_list(self, api_key: str, video_ids: Sequence[str]) -> list[VideoRecord]:
        ...

    def channels_list(self, api_key: str, channel_ids: Sequence[str]) -> list[ChannelRecord]:
        ...


class GoogleApiYouTubeClient:
    """
    YouTube Data API v3 access through google-api-python-client.

    A discovery client is built for every call; its httplib2 transport is not
    safe to share between run workers and request threads.
    """

    def search_list(
        self,
        api_key: str,
        params: Sequence[tuple[str, str]],
        page_token: str | None,
    ) -> SearchListPage:
        query_kwargs: dict[str, object] = {"part": "snippet", "type": "video"}
        for key, value in params:
            query_kwargs[key] = value
        if page_token is not None:
            query_kwargs["pageToken"] = page_token

        client = _build_youtube_client(api_key)
        response = _execute("search.list", lambda: client.search().list(**query_kwargs).execute())
        return parse_search_list_response(response)

    def videos_list(self, api_key: str, video_ids: Sequence[str]) -> list[VideoRecord]:
        if not video_ids:
            return []
        client = _build_youtube_client(api_key)
        response = _execute(
            "videos.list",
            lambda: client.videos()
            .list(
                part="snippet,contentDetails",
                id=",".join(video_ids[:MAX_IDS_PER_LOOKUP]),
                maxResults=min(len(video_ids), MAX_IDS_PER_LOOKUP),
            )
            .execute(),
        )
        return parse_videos_list_response(response)

    def channels_list(self, api_key: str, channel_ids: Sequence[str]) -> list[ChannelRecord]:
        if not channel_ids:
            return []
        client = _build_youtube_client(api_key)
        response = _execute(
            "channels.list",
            lambda: client.channels()
            .list(
                part="snippet",
                id=",".join(channel_ids[:MAX_IDS_PER_LOOKUP]),
                maxResults=min(len(channel_ids), MAX_IDS_PER_LOOKUP),
            )
            .execute(),
        )
        return parse_channels_list_response(response)


class CredentialChain:
    """
    The primary API key followed by ordered fallback keys.

    A call that fails with a key/quota error is retried once per remaining
    key; the first key that succeeds stays active for later calls.
    """

    def __init__(self, primary_key: str, fallback_keys: Sequence[str] = ()) -> None:
        candidates: list[str] = []
        for raw_key in (primary_key, *fallback_keys):
            key = raw_key.strip()
            if key and key not in candidates:
                candidates.append(key)
        if not candidates:
            raise ValueError("CredentialChain requires at least one non-blank key")
        self._candidates = candidates
        self.active_key = candidates[0]

    @property
    def candidates(self) -> tuple[str, ...]:
        return tuple(self._candidates)

    def call(self, stage: str, operation: Callable[[str], _T]) -> _T:
        try:
            return operation(self.active_key)
        except YouTubeApiError as exc:
            if not exc.is_credential_failure:
                raise
            last_error = exc

        failed_key = self.active_key
        for index, key in enumerate(self._candidates):
            if key == failed_key:
                continue
            LOGGER.warning(
                "youtube credential_fallback stage=%s candidate=%s reason=%s",
                stage,
                index,
                last_error.reason,
            )
            try:
                result = operation(key)
            except YouTubeApiError as exc:
                if not exc.is_credential_failure:
                    raise
                last_error = exc
                continue
            self.active_key = key
            return result

        raise last_error


def youtube_api_error_from_response(status_code: int, raw_body: str) -> YouTubeApiError:
    payload = _parse_json_dict(raw_body)
    error = _as_dict(payload.get("error"))
    message = _coerce_nonempty_string(error.get("message"))
    reason: str | None = None
    for raw_detail in _as_list(error.get("errors")):
        reason = _coerce_nonempty_string(_as_dict(raw_detail).get("reason"))
        if reason is not None:
            break

    if message is None:
        body = raw_body.strip() or "<empty response body>"
        return YouTubeApiError(
            f"HTTP {status_code}: {body}",
            status_code=status_code,
            reason=reason,
        )

    reason_text = f" ({reason})" if reason else ""
    return YouTubeApiError(
        f"HTTP {status_code}{reason_text}: {message}",
        status_code=status_code,
        reason=reason,
    )


def parse_search_list_response(response: object) -> SearchListPage:
    payload = _as_dict(response)
    items: list[SearchListItem] = []
    for raw_item in _as_list(payload.get("items")):
        item = _as_dict(raw_item)
        identity = _as_dict(item.get("id"))
        snippet = _as_dict(item.get("snippet"))
        items.append(
            SearchListItem(
                video_id=_coerce_nonempty_string(identity.get("videoId")),
                published_at=_coerce_str(snippet.get("publishedAt")),
            )
        )
    return SearchListPage(
        items=items,
        next_page_token=_coerce_nonempty_string(payload.get("nextPageToken")),
    )


def parse_videos_list_response(response: object) -> list[VideoRecord]:
    records: list[VideoRecord] = []
    for raw_item in _as_list(_as_dict(response).get("items")):
        item = _as_dict(raw_item)
        video_id = _coerce_nonempty_string(item.get("id"))
        if video_id is None:
            continue
        snippet = _as_dict(item.get("snippet"))
        content_details = _as_dict(item.get("contentDetails"))
        thumbnails = _as_dict(snippet.get("thumbnails"))
        medium = _as_dict(thumbnails.get("medium"))
        records.append(
            VideoRecord(
                video_id=video_id,
                title=_coerce_str(snippet.get("title")),
                channel_id=_coerce_str(snippet.get("channelId")),
                channel_title=_coerce_str(snippet.get("channelTitle")),
                published_at=_coerce_str(snippet.get("publishedAt")),
                duration=_coerce_str(content_details.get("duration")),
                default_audio_language=_coerce_nonempty_string(
                    snippet.get("defaultAudioLanguage")
                ),
                default_language=_coerce_nonempty_string(snippet.get("defaultLanguage")),
                thumbnail_url=_coerce_nonempty_string(medium.get("url")),
            )
        )
    return records


def parse_channels_list_response(response: object) -> list[ChannelRecord]:
    records: list[ChannelRecord] = []
    for raw_item in _as_list(_as_dict(response).get("items")):
        item = _as_dict(raw_item)
        channel_id = _coerce_nonempty_string(item.get("id"))
        if channel_id is None:
            continue
        snippet = _as_dict(item.get("snippet"))
        records.append(
            ChannelRecord(
                channel_id=channel_id,
                title=_coerce_str(snippet.get("title")),
                custom_url=_coerce_nonempty_string(snippet.get("customUrl")),
            )
        )
    return records


def _build_youtube_client(api_key: str) -> Any:
    try:
        discovery_module = import_module("googleapiclient.discovery")
    except ImportError as exc:  # pragma: no cover - dependency controlled at runtime
        raise YouTubeApiError(
            "YouTube Data API access requires the google-api-python-client dependency"
        ) from exc

    build_fn: Any = discovery_module.build
    return build_fn("youtube", "v3", developerKey=api_key, cache_discovery=False)


def _execute(stage: str, request: Callable[[], object]) -> dict[str, Any]:
    try:
        response = request()
    except YouTubeApiError:
        raise
    except Exception as exc:
        status_code = _http_status_from_error(exc)
        if status_code is None:
            raise YouTubeApiError(f"{stage} request failed: {exc}") from exc
        raise youtube_api_error_from_response(status_code, _http_body_from_error(exc)) from exc

    if not isinstance(response, dict):
        raise YouTubeApiError(f"{stage} returned a malformed response: {response!r}")
    return _as_dict(response)


def _http_status_from_error(exc: Exception) -> int | None:
    response = getattr(exc, "resp", None)
    raw_status = getattr(response, "status", None)
    if isinstance(raw_status, int):
        return raw_status
    if isinstance(raw_status, str) and raw_status.isdigit():
        return int(raw_status)
    return None


def _http_body_from_error(exc: Exception) -> str:
    content = getattr(exc, "content", None)
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    if isinstance(content, str):
        return content
    return str(exc)


def _parse_json_dict(raw_body: str) -> dict[str, Any]:
    if not raw_body.strip():
        return {}
    try:
        parsed = json.loads(raw_body)
    except json.JSONDecodeError:
        return {}
    return _as_dict(parsed)


def _coerce_nonempty_string(raw_value: object) -> str | None:
    if isinstance(raw_value, str) and raw_value.strip():
        return raw_value
    return None


def _coerce_str(raw_value: object) -> str:
    if isinstance(raw_value, str):
        return raw_value
    return ""


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        raw_dict = cast(dict[object, object], value)
        converted: dict[str, Any] = {}
        for key, item in raw_dict.items():
            if isinstance(key, str):
                converted[key] = item
        return converted
    return {}


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return list(cast(list[Any], value))
    return []
