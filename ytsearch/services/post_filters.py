from __future__ import annotations

import re
from collections.abc import Iterable

from ytsearch.models.preferences import GlobalPrefs, SearchPreset
from ytsearch.models.videos import VideoDetails

ISO8601_DURATION_PATTERN = re.compile(
    r"^PT(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?$"
)
ENGLISH_TITLE_MIN_PERCENT = 60
ASCII_PUNCTUATION: frozenset[str] = frozenset("-_:!?,.;'\"/()#")


def parse_iso8601_duration(raw_value: object) -> int:
    """Parse the `PT#H#M#S` subset; anything else is a zero duration."""
    if not isinstance(raw_value, str):
        return 0
    matched = ISO8601_DURATION_PATTERN.match(raw_value.strip())
    if matched is None:
        return 0

    hours = int(matched.group("hours") or 0)
    minutes = int(matched.group("minutes") or 0)
    seconds = int(matched.group("seconds") or 0)
    return hours * 3_600 + minutes * 60 + seconds


def matches_post_filters(
    video: VideoDetails,
    global_prefs: GlobalPrefs,
    preset: SearchPreset,
    blocked_keys: list[str],
) -> bool:
    if video.duration_secs < preset.effective_min_duration(global_prefs):
        return False

    if not duration_buckets_allow(global_prefs, video.duration_secs):
        return False

    if preset.effective_english_only(global_prefs) and not is_probably_english(video):
        return False

    if contains_any(video.title_lower, preset.query.not_terms):
        return False

    if matches_channel(video.channel_handle, video.channel_title, blocked_keys):
        return False

    query = preset.query
    if query.channel_deny and matches_channel(
        video.channel_handle, video.channel_title, query.channel_deny
    ):
        return False

    if query.channel_allow and not matches_channel(
        video.channel_handle, video.channel_title, query.channel_allow
    ):
        return False

    return True


def duration_buckets_allow(global_prefs: GlobalPrefs, duration_secs: int) -> bool:
    # No active bucket means no duration restriction.
    active_ids = set(global_prefs.active_duration_bucket_ids)
    active = [
        bucket for bucket in global_prefs.duration_filters.buckets if bucket.id in active_ids
    ]
    if not active:
        return True
    return any(bucket.contains(duration_secs) for bucket in active)


def is_probably_english(video: VideoDetails) -> bool:
    return (
        _language_is_english(video.default_audio_lang)
        or _language_is_english(video.default_lang)
        or bool(video.has_caption_lang_en)
        or looks_english(video.title)
    )


def looks_english(text: str) -> bool:
    total = 0
    asciiish = 0
    for char in text:
        if char.isspace():
            continue
        total += 1
        if (char.isascii() and char.isalpha()) or char in ASCII_PUNCTUATION:
            asciiish += 1
    if total == 0:
        return True
    return asciiish * 100 // total >= ENGLISH_TITLE_MIN_PERCENT


def contains_any(haystack: str, needles: Iterable[str]) -> bool:
    lowered = haystack.lower()
    for needle in needles:
        cleaned = needle.strip().lower()
        if cleaned and cleaned in lowered:
            return True
    return False


def normalize_channel_key(raw_value: str) -> str:
    return raw_value.strip().lstrip("@").lower()


def matches_channel(handle: str, title: str, patterns: Iterable[str]) -> bool:
    normalized_handle = normalize_channel_key(handle)
    normalized_title = title.lower()
    for pattern in patterns:
        cleaned = normalize_channel_key(pattern)
        if not cleaned:
            continue
        if (
            normalized_handle == cleaned
            or normalized_title == cleaned
            or cleaned in normalized_title
        ):
            return True
    return False


def _language_is_english(code: str | None) -> bool:
    if code is None:
        return False
    return code.strip().lower().startswith("en")
