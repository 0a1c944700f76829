from __future__ import annotations

import pytest

from ytsearch.models.videos import VideoDetails
from ytsearch.services.block_list import (
    BlockedChannel,
    BlockListError,
    block_channel,
    blocked_keys,
    drop_blocked,
    is_channel_blocked,
    normalize_block_list,
    parse_block_entry,
    unblock_channel,
)


def _video(video_id: str, handle: str, title: str) -> VideoDetails:
    return VideoDetails(
        video_id=video_id,
        title=video_id,
        title_lower=video_id,
        channel_title=title,
        channel_handle=handle,
        published_at="2026-10-15T00:00:00Z",
        duration_secs=600,
        url=f"https://www.youtube.com/watch?v={video_id}",
    )


def test_parse_block_entry_variants() -> None:
    assert parse_block_entry("UC1|Channel One") == BlockedChannel(key="uc1", label="Channel One")
    assert parse_block_entry("@Foo") == BlockedChannel(key="foo", label="@Foo")
    assert parse_block_entry("UC2|  ") == BlockedChannel(key="uc2", label="UC2")
    assert parse_block_entry("   ") == BlockedChannel(key="", label="")


def test_normalize_deduplicates_by_key_and_sorts() -> None:
    entries = ["b|Bee", "A|Ay", "a|Duplicate", "", "|no key"]

    assert normalize_block_list(entries) == ["a|Ay", "b|Bee"]
    assert blocked_keys(entries) == ["b", "a", "a"]


def test_block_channel_adds_normalized_entry() -> None:
    entries = block_channel(["zeta|Zeta"], channel_id="UCabc", channel_title="Abc Talks")

    assert entries == ["ucabc|Abc Talks", "zeta|Zeta"]


def test_block_channel_falls_back_to_title() -> None:
    assert block_channel([], channel_id=" ", channel_title="Only Title") == ["only title|Only Title"]


def test_block_channel_rejects_duplicates_and_blank_identity() -> None:
    with pytest.raises(BlockListError, match="already blocked"):
        block_channel(["ucabc|Abc"], channel_id="UCABC", channel_title="Abc")
    with pytest.raises(BlockListError, match="unavailable"):
        block_channel([], channel_id="", channel_title="  ")


def test_unblock_channel_reports_whether_anything_changed() -> None:
    entries = ["a|A", "b|B"]

    remaining, changed = unblock_channel(entries, "@A")
    assert changed
    assert remaining == ["b|B"]

    unchanged, changed = unblock_channel(entries, "zzz")
    assert not changed
    assert unchanged is entries


def test_drop_blocked_matches_handles_and_titles() -> None:
    videos = [
        _video("v1", "UC1", "Kept"),
        _video("v2", "UC2", "Spam Central"),
        _video("v3", "@loud", "Loud"),
    ]
    entries = ["spam|Spam", "loud|Loud"]

    assert [video.video_id for video in drop_blocked(videos, entries)] == ["v1"]
    assert drop_blocked(videos, []) == videos
    assert is_channel_blocked(videos[2], entries)
    assert not is_channel_blocked(videos[0], entries)
