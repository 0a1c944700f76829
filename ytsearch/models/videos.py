from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

WATCH_URL_TEMPLATE = "https://www.youtube.com/watch?v={video_id}"


@dataclass
class VideoDetails:
    video_id: str
    title: str
    title_lower: str
    channel_title: str
    # The upstream channel id; handle-style values start with "@".
    channel_handle: str
    published_at: str
    duration_secs: int
    url: str
    channel_display_name: str | None = None
    channel_custom_url: str | None = None
    default_audio_lang: str | None = None
    default_lang: str | None = None
    thumbnail_url: str | None = None
    # No fetch path fills this in yet.
    has_caption_lang_en: bool | None = None
    source_presets: list[str] = field(default_factory=list)

    def add_source(self, preset_name: str) -> bool:
        if preset_name in self.source_presets:
            return False
        self.source_presets.append(preset_name)
        return True

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> VideoDetails:
        title = str(raw.get("title") or "")
        video_id = str(raw.get("video_id") or "")
        return cls(
            video_id=video_id,
            title=title,
            title_lower=str(raw.get("title_lower") or title.lower()),
            channel_title=str(raw.get("channel_title") or ""),
            channel_handle=str(raw.get("channel_handle") or ""),
            published_at=str(raw.get("published_at") or ""),
            duration_secs=int(raw.get("duration_secs") or 0),
            url=str(raw.get("url") or WATCH_URL_TEMPLATE.format(video_id=video_id)),
            channel_display_name=_optional_str(raw.get("channel_display_name")),
            channel_custom_url=_optional_str(raw.get("channel_custom_url")),
            default_audio_lang=_optional_str(raw.get("default_audio_lang")),
            default_lang=_optional_str(raw.get("default_lang")),
            thumbnail_url=_optional_str(raw.get("thumbnail_url")),
            has_caption_lang_en=_optional_bool(raw.get("has_caption_lang_en")),
            source_presets=[
                str(name) for name in raw.get("source_presets") or [] if isinstance(name, str)
            ],
        )


@dataclass(frozen=True)
class CachedResults:
    generated_at: str
    status_line: str
    videos: list[VideoDetails]
    saved_at_unix: int = 0


def _optional_str(value: object) -> str | None:
    if isinstance(value, str):
        return value
    return None


def _optional_bool(value: object) -> bool | None:
    if isinstance(value, bool):
        return value
    return None
