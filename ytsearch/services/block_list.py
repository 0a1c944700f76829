from __future__ import annotations

from dataclasses import dataclass

from ytsearch.models.videos import VideoDetails
from ytsearch.services.post_filters import matches_channel, normalize_channel_key


@dataclass(frozen=True)
class BlockedChannel:
    key: str
    label: str

    def to_entry(self) -> str:
        return f"{self.key}|{self.label}"


class BlockListError(ValueError):
    pass


def parse_block_entry(entry: str) -> BlockedChannel:
    """Split a `"<key>|<label>"` entry; bare entries use themselves as the label."""
    trimmed = entry.strip()
    if not trimmed:
        return BlockedChannel(key="", label="")

    if "|" in trimmed:
        raw_key, raw_label = trimmed.split("|", 1)
        key = normalize_channel_key(raw_key)
        label = raw_label.strip() or raw_key.strip()
        return BlockedChannel(key=key, label=label)

    return BlockedChannel(key=normalize_channel_key(trimmed), label=trimmed)


def normalize_block_list(entries: list[str]) -> list[str]:
    """Drop empty keys, keep the first label per key, sort by key."""
    by_key: dict[str, str] = {}
    for entry in entries:
        parsed = parse_block_entry(entry)
        if not parsed.key or parsed.key in by_key:
            continue
        by_key[parsed.key] = parsed.to_entry()
    return [by_key[key] for key in sorted(by_key)]


def blocked_keys(entries: list[str]) -> list[str]:
    keys: list[str] = []
    for entry in entries:
        key = parse_block_entry(entry).key
        if key:
            keys.append(key)
    return keys


def block_channel(entries: list[str], *, channel_id: str, channel_title: str) -> list[str]:
    source = channel_id.strip() or channel_title.strip()
    if not source:
        raise BlockListError("Channel identifier unavailable for blocking.")

    key = normalize_channel_key(source)
    if key in blocked_keys(entries):
        raise BlockListError(f"Channel '{channel_title.strip() or source}' already blocked.")

    label = channel_title.strip() or source
    return normalize_block_list([*entries, BlockedChannel(key=key, label=label).to_entry()])


def unblock_channel(entries: list[str], channel_key: str) -> tuple[list[str], bool]:
    target = normalize_channel_key(channel_key)
    kept = [entry for entry in entries if parse_block_entry(entry).key != target]
    if len(kept) == len(entries):
        return entries, False
    return normalize_block_list(kept), True


def is_channel_blocked(video: VideoDetails, entries: list[str]) -> bool:
    return matches_channel(video.channel_handle, video.channel_title, blocked_keys(entries))


def drop_blocked(videos: list[VideoDetails], entries: list[str]) -> list[VideoDetails]:
    keys = blocked_keys(entries)
    if not keys:
        return list(videos)
    return [
        video
        for video in videos
        if not matches_channel(video.channel_handle, video.channel_title, keys)
    ]
