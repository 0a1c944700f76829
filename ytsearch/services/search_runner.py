from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from ytsearch.models.preferences import GlobalPrefs, Prefs, SearchPreset
from ytsearch.models.videos import WATCH_URL_TEMPLATE, VideoDetails
from ytsearch.services.block_list import blocked_keys as block_list_keys
from ytsearch.services.duration_buckets import normalize_duration_filters
from ytsearch.services.errors import (
    SearchCancelledError,
    SearchConfigurationError,
    SearchStageError,
    YouTubeApiError,
)
from ytsearch.services.post_filters import matches_post_filters, parse_iso8601_duration
from ytsearch.services.query_builder import QueryParams, build_query_params
from ytsearch.services.time_window import resolve_window
from ytsearch.services.youtube_client import (
    MAX_IDS_PER_LOOKUP,
    CredentialChain,
    SearchListPage,
    VideoRecord,
    YouTubeDataApi,
)

LOGGER = logging.getLogger("ytsearch.search")

DEFAULT_MAX_SEARCH_PAGES = 4
MAX_SEARCH_PAGES_LIMIT = 10
DEFAULT_SEARCH_PAGE_SIZE = 25
MAX_SEARCH_PAGE_SIZE = 50

SEARCH_STAGE = "search.list"
DETAILS_STAGE = "videos.list"


@dataclass(frozen=True)
class RunMode:
    """`preset_id=None` runs every enabled preset; otherwise just that one."""

    preset_id: str | None = None

    @classmethod
    def any_enabled(cls) -> RunMode:
        return cls()

    @classmethod
    def single(cls, preset_id: str) -> RunMode:
        return cls(preset_id=preset_id)

    @property
    def is_any(self) -> bool:
        return self.preset_id is None


@dataclass(frozen=True)
class PresetFailure:
    preset_id: str
    preset_name: str
    stage: str
    message: str


@dataclass
class PresetFetchOutcome:
    videos: list[VideoDetails] = field(default_factory=list)
    pages_fetched: int = 0
    duplicates_within: int = 0
    raw_items: int = 0
    unique_ids: int = 0


@dataclass
class SearchOutcome:
    videos: list[VideoDetails] = field(default_factory=list)
    presets_ran: int = 0
    pages_fetched: int = 0
    duplicates_within_presets: int = 0
    duplicates_across_presets: int = 0
    raw_items: int = 0
    unique_ids: int = 0
    passed_filters: int = 0
    failed_presets: list[PresetFailure] = field(default_factory=list)


def coerce_max_search_pages(raw_value: object) -> int:
    """Accept 1..10 (ints or numeric strings); anything else means the default."""
    if isinstance(raw_value, bool):
        return DEFAULT_MAX_SEARCH_PAGES
    if isinstance(raw_value, int):
        candidate = raw_value
    elif isinstance(raw_value, str) and raw_value.strip().isdigit():
        candidate = int(raw_value.strip())
    else:
        return DEFAULT_MAX_SEARCH_PAGES
    if 1 <= candidate <= MAX_SEARCH_PAGES_LIMIT:
        return candidate
    return DEFAULT_MAX_SEARCH_PAGES


def run_searches(
    prefs: Prefs,
    mode: RunMode,
    *,
    api: YouTubeDataApi,
    fallback_api_keys: Sequence[str] = (),
    max_pages: int = DEFAULT_MAX_SEARCH_PAGES,
    page_size: int = DEFAULT_SEARCH_PAGE_SIZE,
    cancel_event: threading.Event | None = None,
    now: datetime | None = None,
) -> SearchOutcome:
    """
    Run the targeted presets one after another and combine their videos.

    `prefs` is never mutated; the run works on a private snapshot. In Any
    mode videos are merged by id with provenance accumulated across presets,
    and a preset whose API calls fail is recorded in `failed_presets` while
    the others continue. The merged list is sorted newest first.
    """
    snapshot = prefs.snapshot()
    global_prefs = snapshot.global_prefs
    normalize_duration_filters(global_prefs)

    api_key = snapshot.api_key.strip()
    if not api_key:
        raise SearchConfigurationError("Set your YouTube Data API key in the settings first.")
    if not snapshot.searches:
        raise SearchConfigurationError("No searches configured. Add a preset first.")

    targets = _select_targets(snapshot.searches, mode)
    credentials = CredentialChain(api_key, fallback_api_keys)
    keys = block_list_keys(snapshot.blocked_channels)
    pages_cap = coerce_max_search_pages(max_pages)
    size = min(max(page_size, 1), MAX_SEARCH_PAGE_SIZE)

    outcome = SearchOutcome()
    index_by_id: dict[str, int] = {}
    first_error: SearchStageError | None = None

    for preset in targets:
        try:
            fetched = fetch_preset(
                api,
                credentials,
                global_prefs,
                preset,
                keys,
                max_pages=pages_cap,
                page_size=size,
                cancel_event=cancel_event,
                now=now,
            )
        except SearchStageError as exc:
            LOGGER.warning(
                "search preset_fetch_failed preset_id=%s stage=%s error=%s",
                preset.id,
                exc.stage,
                exc.cause,
            )
            outcome.failed_presets.append(
                PresetFailure(
                    preset_id=preset.id,
                    preset_name=preset.name,
                    stage=exc.stage,
                    message=str(exc),
                )
            )
            if first_error is None:
                first_error = exc
            continue

        outcome.presets_ran += 1
        outcome.pages_fetched += fetched.pages_fetched
        outcome.duplicates_within_presets += fetched.duplicates_within
        outcome.raw_items += fetched.raw_items
        outcome.unique_ids += fetched.unique_ids
        outcome.passed_filters += len(fetched.videos)

        if not mode.is_any:
            outcome.videos.extend(fetched.videos)
            continue

        for video in fetched.videos:
            existing_index = index_by_id.get(video.video_id)
            if existing_index is None:
                index_by_id[video.video_id] = len(outcome.videos)
                outcome.videos.append(video)
                continue
            existing = outcome.videos[existing_index]
            for source in video.source_presets:
                existing.add_source(source)
            outcome.duplicates_across_presets += 1

    if first_error is not None and outcome.presets_ran == 0:
        raise first_error

    outcome.videos.sort(key=lambda video: video.published_at, reverse=True)
    LOGGER.info(
        "search run_completed presets=%s pages=%s raw=%s unique=%s passed=%s kept=%s failed=%s",
        outcome.presets_ran,
        outcome.pages_fetched,
        outcome.raw_items,
        outcome.unique_ids,
        outcome.passed_filters,
        len(outcome.videos),
        len(outcome.failed_presets),
    )
    return outcome


def fetch_preset(
    api: YouTubeDataApi,
    credentials: CredentialChain,
    global_prefs: GlobalPrefs,
    preset: SearchPreset,
    blocked_keys: list[str],
    *,
    max_pages: int = DEFAULT_MAX_SEARCH_PAGES,
    page_size: int = DEFAULT_SEARCH_PAGE_SIZE,
    cancel_event: threading.Event | None = None,
    now: datetime | None = None,
) -> PresetFetchOutcome:
    base_params = build_query_params(global_prefs, preset)
    window = resolve_window(global_prefs, preset, now=now)
    if window is not None:
        base_params.append(("publishedAfter", window.start_rfc3339))
        base_params.append(("publishedBefore", window.end_rfc3339))
    base_params.append(("order", "date"))
    base_params.append(("maxResults", str(page_size)))

    outcome = PresetFetchOutcome()
    seen_ids: set[str] = set()
    page_token: str | None = None

    while outcome.pages_fetched < max_pages:
        _raise_if_cancelled(cancel_event)
        page = _search_page(api, credentials, preset, base_params, page_token)
        outcome.pages_fetched += 1
        outcome.raw_items += len(page.items)

        request_ids: list[str] = []
        for item in page.items:
            if item.video_id is None:
                continue
            if item.video_id in seen_ids:
                outcome.duplicates_within += 1
                continue
            seen_ids.add(item.video_id)
            request_ids.append(item.video_id)
        outcome.unique_ids += len(request_ids)

        for start in range(0, len(request_ids), MAX_IDS_PER_LOOKUP):
            _raise_if_cancelled(cancel_event)
            chunk = request_ids[start : start + MAX_IDS_PER_LOOKUP]
            for record in _video_details(api, credentials, preset, chunk):
                details = map_video_item(record)
                if matches_post_filters(details, global_prefs, preset, blocked_keys):
                    details.add_source(preset.name)
                    outcome.videos.append(details)

        if page.next_page_token is None:
            break
        page_token = page.next_page_token

    if outcome.videos:
        enrich_channel_metadata(
            api,
            credentials.active_key,
            outcome.videos,
            cancel_event=cancel_event,
        )

    LOGGER.debug(
        "search preset_fetched preset_id=%s pages=%s raw=%s unique=%s kept=%s",
        preset.id,
        outcome.pages_fetched,
        outcome.raw_items,
        outcome.unique_ids,
        len(outcome.videos),
    )
    return outcome


def enrich_channel_metadata(
    api: YouTubeDataApi,
    api_key: str,
    videos: list[VideoDetails],
    *,
    cancel_event: threading.Event | None = None,
) -> None:
    """Fill channel display names and @handles in place; lookup failures are non-fatal."""
    channel_ids = sorted(
        {video.channel_handle for video in videos if video.channel_handle.strip()}
    )

    metadata: dict[str, tuple[str, str | None]] = {}
    for start in range(0, len(channel_ids), MAX_IDS_PER_LOOKUP):
        _raise_if_cancelled(cancel_event)
        chunk = channel_ids[start : start + MAX_IDS_PER_LOOKUP]
        try:
            records = api.channels_list(api_key, chunk)
        except YouTubeApiError:
            LOGGER.warning(
                "search channel_enrichment_failed channels=%s",
                len(chunk),
                exc_info=True,
            )
            continue
        for record in records:
            metadata[record.channel_id] = (record.title.strip(), _as_handle(record.custom_url))

    for video in videos:
        resolved = metadata.get(video.channel_handle)
        if resolved is not None:
            title, handle = resolved
            if title:
                video.channel_display_name = title
            if handle is not None:
                video.channel_custom_url = handle

        if video.channel_display_name is None and video.channel_title.strip():
            video.channel_display_name = video.channel_title
        if video.channel_custom_url is None and video.channel_handle.startswith("@"):
            video.channel_custom_url = video.channel_handle


def map_video_item(record: VideoRecord) -> VideoDetails:
    return VideoDetails(
        video_id=record.video_id,
        title=record.title,
        title_lower=record.title.lower(),
        channel_title=record.channel_title,
        channel_handle=record.channel_id,
        published_at=record.published_at,
        duration_secs=parse_iso8601_duration(record.duration),
        url=WATCH_URL_TEMPLATE.format(video_id=record.video_id),
        default_audio_lang=record.default_audio_language,
        default_lang=record.default_language,
        thumbnail_url=record.thumbnail_url,
    )


def _select_targets(searches: list[SearchPreset], mode: RunMode) -> list[SearchPreset]:
    if mode.is_any:
        enabled = [preset for preset in searches if preset.enabled]
        if not enabled:
            raise SearchConfigurationError("Enable at least one preset before running in Any mode.")
        return enabled

    for preset in searches:
        if preset.id == mode.preset_id:
            return [preset]
    raise SearchConfigurationError(f"Preset '{mode.preset_id}' not found.")


def _search_page(
    api: YouTubeDataApi,
    credentials: CredentialChain,
    preset: SearchPreset,
    params: QueryParams,
    page_token: str | None,
) -> SearchListPage:
    try:
        return credentials.call(
            SEARCH_STAGE,
            lambda key: api.search_list(key, params, page_token),
        )
    except YouTubeApiError as exc:
        raise SearchStageError(SEARCH_STAGE, preset.name, exc) from exc


def _video_details(
    api: YouTubeDataApi,
    credentials: CredentialChain,
    preset: SearchPreset,
    video_ids: list[str],
) -> list[VideoRecord]:
    try:
        return credentials.call(
            DETAILS_STAGE,
            lambda key: api.videos_list(key, video_ids),
        )
    except YouTubeApiError as exc:
        raise SearchStageError(DETAILS_STAGE, preset.name, exc) from exc


def _as_handle(custom_url: str | None) -> str | None:
    if custom_url is None or not custom_url.strip():
        return None
    return f"@{custom_url.strip().lstrip('@')}"


def _raise_if_cancelled(cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise SearchCancelledError("search run cancelled")
