from __future__ import annotations

from ytsearch.models.preferences import Prefs, SearchPreset
from ytsearch.models.videos import VideoDetails
from ytsearch.services.result_views import (
    ResultSort,
    channel_sort_key,
    format_duration,
    sort_results,
    status_line,
    visible_results,
)
from ytsearch.services.search_runner import PresetFailure, RunMode, SearchOutcome


def _video(
    video_id: str,
    published_at: str,
    duration_secs: int,
    channel_title: str = "Chan",
    sources: list[str] | None = None,
) -> VideoDetails:
    return VideoDetails(
        video_id=video_id,
        title=video_id,
        title_lower=video_id,
        channel_title=channel_title,
        channel_handle="UC1",
        published_at=published_at,
        duration_secs=duration_secs,
        url=f"https://www.youtube.com/watch?v={video_id}",
        source_presets=sources or [],
    )


VIDEOS = [
    _video("old-long", "2026-10-01T00:00:00Z", 3_000, "beta"),
    _video("new-short", "2026-10-03T00:00:00Z", 100, "Alpha"),
    _video("mid-short", "2026-10-02T00:00:00Z", 100, "alpha"),
]


def _ids(videos: list[VideoDetails]) -> list[str]:
    return [video.video_id for video in videos]


def test_sort_orders() -> None:
    assert _ids(sort_results(VIDEOS, ResultSort.NEWEST)) == ["new-short", "mid-short", "old-long"]
    assert _ids(sort_results(VIDEOS, ResultSort.OLDEST)) == ["old-long", "mid-short", "new-short"]
    assert _ids(sort_results(VIDEOS, ResultSort.SHORTEST)) == ["new-short", "mid-short", "old-long"]
    assert _ids(sort_results(VIDEOS, ResultSort.LONGEST)) == ["old-long", "new-short", "mid-short"]
    assert _ids(sort_results(VIDEOS, ResultSort.CHANNEL)) == ["new-short", "mid-short", "old-long"]
    assert ResultSort.CHANNEL.label == "Channel"


def test_channel_sort_key_prefers_display_name() -> None:
    video = _video("v", "2026-10-01T00:00:00Z", 1, "Raw")
    video.channel_display_name = "  Pretty "

    assert channel_sort_key(video) == "pretty"


def test_visible_results_any_mode_uses_enabled_presets() -> None:
    prefs = Prefs(
        searches=[
            SearchPreset(id="a", name="A"),
            SearchPreset(id="b", name="B", enabled=False),
        ]
    )
    videos = [
        _video("from-a", "2026-10-01T00:00:00Z", 1, sources=["A"]),
        _video("from-b", "2026-10-02T00:00:00Z", 1, sources=["B"]),
        _video("both", "2026-10-03T00:00:00Z", 1, sources=["B", "A"]),
    ]

    assert _ids(visible_results(videos, prefs, RunMode.any_enabled())) == ["both", "from-a"]
    assert _ids(visible_results(videos, prefs, RunMode.single("b"))) == ["both", "from-b"]
    assert len(visible_results(videos, prefs, RunMode.single("gone"))) == 3


def test_format_duration() -> None:
    assert format_duration(3_723) == "1h 2m 3s"
    assert format_duration(3_600) == "1h 0m 0s"
    assert format_duration(65) == "1m 5s"
    assert format_duration(5) == "5s"
    assert format_duration(-3) == "0s"


def test_status_line_reports_counts_and_failures() -> None:
    outcome = SearchOutcome(
        videos=VIDEOS,
        presets_ran=2,
        pages_fetched=5,
        duplicates_within_presets=1,
        duplicates_across_presets=2,
        raw_items=40,
        unique_ids=30,
        passed_filters=12,
        failed_presets=[PresetFailure("c", "Broken", "search.list", "HTTP 500")],
    )

    assert status_line(outcome, kept=2) == (
        "Ran 2 preset(s) across 5 page(s); raw 40, unique 30, passed 12, kept 2 "
        "(skipped 3 duplicates). Failed: Broken."
    )
    assert "kept 3 " in status_line(outcome)
