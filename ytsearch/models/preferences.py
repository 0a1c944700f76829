from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TimeWindowPreset(str, Enum):
    TODAY = "Today"
    H48 = "H48"
    D7 = "D7"
    ALL_TIME = "AllTime"


class TimeWindow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    start_rfc3339: str
    end_rfc3339: str


class QuerySpec(BaseModel):
    model_config = ConfigDict(extra="ignore")

    q: str | None = None
    any_terms: list[str] = Field(default_factory=list)
    all_terms: list[str] = Field(default_factory=list)
    not_terms: list[str] = Field(default_factory=list)
    channel_allow: list[str] = Field(default_factory=list)
    channel_deny: list[str] = Field(default_factory=list)
    category_id: int | None = None

    def has_positive_terms(self) -> bool:
        if self.q is not None and self.q.strip():
            return True
        return any(term.strip() for term in (*self.any_terms, *self.all_terms))


class SearchPreset(BaseModel):
    """
    A named saved search.

    The `*_override` fields are `None` when the preset defers to the
    matching `GlobalPrefs` default.
    """

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    name: str = ""
    enabled: bool = True
    query: QuerySpec = Field(default_factory=QuerySpec)
    window_override: TimeWindow | None = None
    english_only_override: bool | None = None
    require_captions_override: bool | None = None
    min_duration_override: int | None = Field(default=None, ge=0)
    priority: int = 0
    system: bool = False

    def effective_english_only(self, global_prefs: GlobalPrefs) -> bool:
        if self.english_only_override is None:
            return global_prefs.english_only
        return self.english_only_override

    def effective_require_captions(self, global_prefs: GlobalPrefs) -> bool:
        if self.require_captions_override is None:
            return global_prefs.require_captions
        return self.require_captions_override

    def effective_min_duration(self, global_prefs: GlobalPrefs) -> int:
        if self.min_duration_override is None:
            return global_prefs.min_duration_secs
        return self.min_duration_override


class DurationBucketConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    label: str
    min_secs: int = Field(default=0, ge=0)
    # Exclusive; None means unbounded.
    max_secs: int | None = Field(default=None, ge=0)
    default_selected: bool = False

    def contains(self, secs: int) -> bool:
        if secs < self.min_secs:
            return False
        if self.max_secs is None:
            return True
        return secs < self.max_secs

    def is_catch_all(self) -> bool:
        return self.min_secs == 0 and self.max_secs is None


def _default_duration_buckets() -> list[DurationBucketConfig]:
    return [
        DurationBucketConfig(id="any", label="Any length", default_selected=True),
        DurationBucketConfig(id="short", label="Under 4 min", min_secs=0, max_secs=240),
        DurationBucketConfig(id="medium", label="4-20 min", min_secs=240, max_secs=1_200),
        DurationBucketConfig(id="long", label="20-60 min", min_secs=1_200, max_secs=3_600),
        DurationBucketConfig(id="very_long", label="Over 1 hour", min_secs=3_600),
    ]


class DurationFilterConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    allow_multiple: bool = True
    buckets: list[DurationBucketConfig] = Field(default_factory=_default_duration_buckets)

    def bucket_by_id(self, bucket_id: str) -> DurationBucketConfig | None:
        for bucket in self.buckets:
            if bucket.id == bucket_id:
                return bucket
        return None


class GlobalPrefs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    default_window: TimeWindowPreset = TimeWindowPreset.D7
    english_only: bool = True
    require_captions: bool = False
    # Reserved; no caption verification collaborator exists.
    verify_captions_with_oauth: bool = False
    min_duration_secs: int = Field(default=75, ge=0)
    duration_filters: DurationFilterConfig = Field(default_factory=DurationFilterConfig)
    active_duration_bucket_ids: list[str] = Field(default_factory=lambda: ["any"])
    region_code: str | None = "US"

    @field_validator("region_code", mode="before")
    @classmethod
    def _normalize_region_code(cls, value: Any) -> str | None:
        if value is None or not isinstance(value, str):
            return None
        normalized = value.strip().upper()
        return normalized or None


class Prefs(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    api_key: str = ""
    global_prefs: GlobalPrefs = Field(default_factory=GlobalPrefs, alias="global")
    searches: list[SearchPreset] = Field(default_factory=list)
    blocked_channels: list[str] = Field(default_factory=list)

    def snapshot(self) -> Prefs:
        return self.model_copy(deep=True)

    def find_preset(self, preset_id: str) -> SearchPreset | None:
        for preset in self.searches:
            if preset.id == preset_id:
                return preset
        return None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)
