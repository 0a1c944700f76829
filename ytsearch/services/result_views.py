from __future__ import annotations

from enum import Enum

from ytsearch.models.preferences import Prefs
from ytsearch.models.videos import VideoDetails
from ytsearch.services.search_runner import RunMode, SearchOutcome


class ResultSort(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    SHORTEST = "shortest"
    LONGEST = "longest"
    CHANNEL = "channel"

    @property
    def label(self) -> str:
        return self.value.capitalize()


def sort_results(videos: list[VideoDetails], order: ResultSort) -> list[VideoDetails]:
    # Every secondary ordering is newest first; apply it before the stable primary sort.
    newest_first = sorted(videos, key=lambda video: video.published_at, reverse=True)
    if order is ResultSort.NEWEST:
        return newest_first
    if order is ResultSort.OLDEST:
        return sorted(videos, key=lambda video: video.published_at)
    if order is ResultSort.SHORTEST:
        return sorted(newest_first, key=lambda video: video.duration_secs)
    if order is ResultSort.LONGEST:
        return sorted(newest_first, key=lambda video: -video.duration_secs)
    return sorted(newest_first, key=channel_sort_key)


def channel_sort_key(video: VideoDetails) -> str:
    for candidate in (video.channel_display_name, video.channel_title, video.channel_handle):
        if candidate is not None and candidate.strip():
            return candidate.strip().lower()
    return ""


def visible_results(
    videos: list[VideoDetails],
    prefs: Prefs,
    mode: RunMode,
    *,
    order: ResultSort = ResultSort.NEWEST,
) -> list[VideoDetails]:
    """Narrow a stored result list to what the given run mode should display."""
    if mode.is_any:
        enabled_names = {preset.name for preset in prefs.searches if preset.enabled}
        selected = [
            video
            for video in videos
            if any(name in enabled_names for name in video.source_presets)
        ]
    else:
        preset = prefs.find_preset(mode.preset_id or "")
        if preset is None:
            selected = list(videos)
        else:
            selected = [video for video in videos if preset.name in video.source_presets]
    return sort_results(selected, order)


def format_duration(total_secs: int) -> str:
    total = max(0, total_secs)
    hours, remainder = divmod(total, 3_600)
    minutes, seconds = divmod(remainder, 60)

    parts: list[str] = []
    if hours:
        parts.append(f"{hours}h")
    if minutes or hours:
        parts.append(f"{minutes}m")
    parts.append(f"{seconds}s")
    return " ".join(parts)


def status_line(outcome: SearchOutcome, *, kept: int | None = None) -> str:
    kept_count = len(outcome.videos) if kept is None else kept
    skipped = outcome.duplicates_within_presets + outcome.duplicates_across_presets
    line = (
        f"Ran {outcome.presets_ran} preset(s) across {outcome.pages_fetched} page(s); "
        f"raw {outcome.raw_items}, unique {outcome.unique_ids}, "
        f"passed {outcome.passed_filters}, kept {kept_count} "
        f"(skipped {skipped} duplicates)."
    )
    if outcome.failed_presets:
        names = ", ".join(failure.preset_name or failure.preset_id for failure in outcome.failed_presets)
        line = f"{line} Failed: {names}."
    return line
