from __future__ import annotations

from datetime import UTC, datetime, timedelta

from ytsearch.models.preferences import GlobalPrefs, SearchPreset, TimeWindow, TimeWindowPreset

EPOCH_RFC3339 = "1970-01-01T00:00:00Z"
ROLLING_WINDOWS: dict[TimeWindowPreset, timedelta] = {
    TimeWindowPreset.TODAY: timedelta(hours=24),
    TimeWindowPreset.H48: timedelta(hours=48),
    TimeWindowPreset.D7: timedelta(hours=168),
}
TIME_WINDOW_LABELS: dict[TimeWindowPreset, str] = {
    TimeWindowPreset.TODAY: "Today",
    TimeWindowPreset.H48: "48h",
    TimeWindowPreset.D7: "7d",
    TimeWindowPreset.ALL_TIME: "Any date",
}


def resolve_window(
    global_prefs: GlobalPrefs,
    preset: SearchPreset,
    *,
    now: datetime | None = None,
) -> TimeWindow | None:
    """Return the publish-date window for `preset`, or None for no restriction.

    An explicit override wins and is returned as-is (start/end ordering is
    not checked here).
    """
    if preset.window_override is not None:
        return preset.window_override
    return window_for_preset(global_prefs.default_window, now=now)


def window_for_preset(
    window_preset: TimeWindowPreset,
    *,
    now: datetime | None = None,
) -> TimeWindow | None:
    span = ROLLING_WINDOWS.get(window_preset)
    if span is None:
        return None

    end = now if now is not None else datetime.now(UTC)
    return TimeWindow(
        start_rfc3339=format_rfc3339(_safe_subtract(end, span)),
        end_rfc3339=format_rfc3339(end),
    )


def hours_back_window(hours: int, *, now: datetime | None = None) -> TimeWindow:
    end = now if now is not None else datetime.now(UTC)
    return TimeWindow(
        start_rfc3339=format_rfc3339(_safe_subtract(end, timedelta(hours=max(0, hours)))),
        end_rfc3339=format_rfc3339(end),
    )


def format_rfc3339(value: datetime | None) -> str:
    if value is None:
        return EPOCH_RFC3339
    try:
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.strftime("%Y-%m-%dT%H:%M:%SZ")
    except (ValueError, OverflowError, OSError):
        return EPOCH_RFC3339


def time_window_label(window_preset: TimeWindowPreset) -> str:
    return TIME_WINDOW_LABELS[window_preset]


def _safe_subtract(value: datetime, span: timedelta) -> datetime | None:
    try:
        return value - span
    except OverflowError:
        return None
