from __future__ import annotations

from dataclasses import dataclass

from ytsearch.models.preferences import DurationBucketConfig, GlobalPrefs


@dataclass
class DurationBucketState:
    config: DurationBucketConfig
    selected: bool = False


class DurationFilterState:
    """
    Selection state over the configured duration buckets.

    Invariants after every public mutation:
    - at least one bucket is selected (when any bucket is configured),
    - at most one bucket is selected when `allow_multiple` is false.

    The catch-all bucket and the specific buckets are mutually exclusive when
    several buckets may be selected.
    """

    def __init__(self, buckets: list[DurationBucketConfig], *, allow_multiple: bool) -> None:
        self.allow_multiple = allow_multiple
        self.buckets = [DurationBucketState(config=bucket) for bucket in buckets]

    @classmethod
    def from_global(cls, global_prefs: GlobalPrefs) -> DurationFilterState:
        state = cls(
            list(global_prefs.duration_filters.buckets),
            allow_multiple=global_prefs.duration_filters.allow_multiple,
        )
        state.sync_from_ids(global_prefs.active_duration_bucket_ids)
        return state

    def sync_from_ids(self, ids: list[str]) -> bool:
        active = set(ids)
        changed = False
        for bucket in self.buckets:
            wanted = bucket.config.id in active
            if bucket.selected != wanted:
                bucket.selected = wanted
                changed = True
        changed |= self._ensure_minimum_selection()
        if not self.allow_multiple:
            changed |= self._enforce_single_selection()
        return changed

    def toggle(self, bucket_id: str) -> bool:
        index = self._index_of(bucket_id)
        if index is None:
            return False

        target = self.buckets[index]
        changed = False
        if target.config.is_catch_all():
            # Turning the catch-all off would leave nothing selected.
            changed |= self._select_only(index)
        elif self.allow_multiple:
            new_state = not target.selected
            changed |= _set_selected(target, new_state)
            if new_state:
                for bucket in self.buckets:
                    if bucket.config.is_catch_all():
                        changed |= _set_selected(bucket, False)
            elif not self._any_selected():
                changed |= self._activate_catch_all()
        else:
            changed |= self._select_only(index)

        if not self.allow_multiple:
            changed |= self._enforce_single_selection()
        changed |= self._ensure_minimum_selection()
        return changed

    def selected_ids(self) -> list[str]:
        return [bucket.config.id for bucket in self.buckets if bucket.selected]

    def allows(self, secs: int) -> bool:
        any_active = False
        for bucket in self.buckets:
            if not bucket.selected:
                continue
            any_active = True
            if bucket.config.contains(secs):
                return True
        return not any_active

    def _index_of(self, bucket_id: str) -> int | None:
        for position, bucket in enumerate(self.buckets):
            if bucket.config.id == bucket_id:
                return position
        return None

    def _any_selected(self) -> bool:
        return any(bucket.selected for bucket in self.buckets)

    def _ensure_minimum_selection(self) -> bool:
        if not self.buckets or self._any_selected():
            return False

        for position, bucket in enumerate(self.buckets):
            if bucket.config.default_selected:
                return self._select_only(position)
        return self._activate_catch_all()

    def _enforce_single_selection(self) -> bool:
        found = False
        changed = False
        for bucket in self.buckets:
            if not bucket.selected:
                continue
            if not found:
                found = True
                continue
            bucket.selected = False
            changed = True
        return changed

    def _activate_catch_all(self) -> bool:
        if not any(bucket.config.is_catch_all() for bucket in self.buckets):
            if self.buckets and not self.buckets[0].selected:
                self.buckets[0].selected = True
                return True
            return False

        changed = False
        for bucket in self.buckets:
            changed |= _set_selected(bucket, bucket.config.is_catch_all())
        return changed

    def _select_only(self, index: int) -> bool:
        changed = False
        for position, bucket in enumerate(self.buckets):
            changed |= _set_selected(bucket, position == index)
        return changed


def normalize_duration_filters(global_prefs: GlobalPrefs) -> bool:
    """Rewrite `active_duration_bucket_ids` so it satisfies the selection invariants."""
    state = DurationFilterState.from_global(global_prefs)
    selected = state.selected_ids()
    if selected == global_prefs.active_duration_bucket_ids:
        return False
    global_prefs.active_duration_bucket_ids = selected
    return True


def toggle_duration_bucket(global_prefs: GlobalPrefs, bucket_id: str) -> bool:
    state = DurationFilterState.from_global(global_prefs)
    changed = state.toggle(bucket_id)
    selected = state.selected_ids()
    if selected != global_prefs.active_duration_bucket_ids:
        global_prefs.active_duration_bucket_ids = selected
        changed = True
    return changed


def _set_selected(bucket: DurationBucketState, selected: bool) -> bool:
    if bucket.selected == selected:
        return False
    bucket.selected = selected
    return True
