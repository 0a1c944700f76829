from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from ytsearch.models.preferences import SearchPreset
from ytsearch.models.videos import CachedResults, VideoDetails
from ytsearch.services.block_list import parse_block_entry
from ytsearch.services.result_views import ResultSort, format_duration, status_line
from ytsearch.services.run_controller import RunSnapshot
from ytsearch.services.search_runner import RunMode, SearchOutcome


class VideoResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    video_id: str
    title: str
    url: str
    channel_title: str
    channel_handle: str
    channel_display_name: str | None = None
    channel_custom_url: str | None = None
    published_at: str
    duration_secs: int
    duration_label: str
    thumbnail_url: str | None = None
    source_presets: list[str] = Field(default_factory=list)

    @classmethod
    def from_video(cls, video: VideoDetails) -> VideoResponse:
        return cls(
            video_id=video.video_id,
            title=video.title,
            url=video.url,
            channel_title=video.channel_title,
            channel_handle=video.channel_handle,
            channel_display_name=video.channel_display_name,
            channel_custom_url=video.channel_custom_url,
            published_at=video.published_at,
            duration_secs=video.duration_secs,
            duration_label=format_duration(video.duration_secs),
            thumbnail_url=video.thumbnail_url,
            source_presets=list(video.source_presets),
        )


class PresetFailureResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    preset_id: str
    preset_name: str
    stage: str
    message: str


class SearchRunRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mode: Literal["any", "single"] = "any"
    preset_id: str | None = None
    sort: ResultSort = ResultSort.NEWEST

    def run_mode(self) -> RunMode:
        if self.mode == "single":
            return RunMode.single(self.preset_id or "")
        return RunMode.any_enabled()


class SearchRunResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status_line: str
    presets_ran: int
    pages_fetched: int
    raw_items: int
    unique_ids: int
    passed_filters: int
    duplicates_within_presets: int
    duplicates_across_presets: int
    failed_presets: list[PresetFailureResponse] = Field(default_factory=list)
    videos: list[VideoResponse] = Field(default_factory=list)

    @classmethod
    def from_outcome(
        cls,
        outcome: SearchOutcome,
        videos: list[VideoDetails] | None = None,
    ) -> SearchRunResponse:
        shown = outcome.videos if videos is None else videos
        return cls(
            status_line=status_line(outcome, kept=len(shown)),
            presets_ran=outcome.presets_ran,
            pages_fetched=outcome.pages_fetched,
            raw_items=outcome.raw_items,
            unique_ids=outcome.unique_ids,
            passed_filters=outcome.passed_filters,
            duplicates_within_presets=outcome.duplicates_within_presets,
            duplicates_across_presets=outcome.duplicates_across_presets,
            failed_presets=[
                PresetFailureResponse(
                    preset_id=failure.preset_id,
                    preset_name=failure.preset_name,
                    stage=failure.stage,
                    message=failure.message,
                )
                for failure in outcome.failed_presets
            ],
            videos=[VideoResponse.from_video(video) for video in shown],
        )


class RunLaunchResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    run_id: str


class RunStateResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: Literal["idle", "running", "succeeded", "failed"]
    run_id: str | None = None
    started_at: str | None = None
    finished_at: str | None = None
    error: str | None = None
    result: SearchRunResponse | None = None

    @classmethod
    def from_snapshot(
        cls,
        snapshot: RunSnapshot,
        videos: list[VideoDetails] | None = None,
    ) -> RunStateResponse:
        result = None
        if snapshot.outcome is not None:
            result = SearchRunResponse.from_outcome(snapshot.outcome, videos)
        return cls(
            status=snapshot.status.value,
            run_id=snapshot.run_id,
            started_at=snapshot.started_at,
            finished_at=snapshot.finished_at,
            error=snapshot.error,
            result=result,
        )


class CachedResultsResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    generated_at: str
    status_line: str
    saved_at_unix: int
    videos: list[VideoResponse] = Field(default_factory=list)

    @classmethod
    def from_cached(cls, cached: CachedResults) -> CachedResultsResponse:
        return cls(
            generated_at=cached.generated_at,
            status_line=cached.status_line,
            saved_at_unix=cached.saved_at_unix,
            videos=[VideoResponse.from_video(video) for video in cached.videos],
        )


class PresetListResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    presets: list[SearchPreset]


class PresetImportRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    payload: str


class BlockChannelRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    channel_id: str = ""
    channel_title: str = ""


class BlockedChannelResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key: str
    label: str


class BlockedChannelsResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    channels: list[BlockedChannelResponse] = Field(default_factory=list)

    @classmethod
    def from_entries(cls, entries: list[str]) -> BlockedChannelsResponse:
        channels: list[BlockedChannelResponse] = []
        for entry in entries:
            parsed = parse_block_entry(entry)
            if parsed.key:
                channels.append(BlockedChannelResponse(key=parsed.key, label=parsed.label))
        return cls(channels=channels)


class DurationBucketResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    label: str
    min_secs: int
    max_secs: int | None
    selected: bool


class DurationBucketsResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    allow_multiple: bool
    buckets: list[DurationBucketResponse] = Field(default_factory=list)
