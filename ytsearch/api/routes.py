from __future__ import annotations

from collections.abc import Callable
from typing import Annotated, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query

from ytsearch.dependencies import (
    get_preferences_repository,
    get_run_controller,
    get_search_service,
)
from ytsearch.models.api_contracts import (
    BlockChannelRequest,
    BlockedChannelsResponse,
    CachedResultsResponse,
    DurationBucketResponse,
    DurationBucketsResponse,
    PresetImportRequest,
    PresetListResponse,
    RunLaunchResponse,
    RunStateResponse,
    SearchRunRequest,
    SearchRunResponse,
)
from ytsearch.models.preferences import Prefs, SearchPreset
from ytsearch.repositories.preferences_repository import PreferencesRepository
from ytsearch.services.block_list import BlockListError, block_channel, drop_blocked, unblock_channel
from ytsearch.services.duration_buckets import DurationFilterState, toggle_duration_bucket
from ytsearch.services.errors import (
    SearchConfigurationError,
    SearchStageError,
    YouTubeApiError,
)
from ytsearch.services.preset_ops import (
    delete_preset,
    duplicate_preset,
    import_preset,
    upsert_preset,
)
from ytsearch.services.result_views import ResultSort, sort_results
from ytsearch.services.run_controller import SearchRunController
from ytsearch.services.search_service import SearchService

router = APIRouter()
_T = TypeVar("_T")

PrefsRepo = Annotated[PreferencesRepository, Depends(get_preferences_repository)]


@router.get(
    "/presets",
    response_model=PresetListResponse,
    tags=["presets"],
    operation_id="list_presets",
)
def list_presets(repository: PrefsRepo) -> PresetListResponse:
    return PresetListResponse(presets=repository.load().searches)


@router.post(
    "/presets",
    response_model=SearchPreset,
    tags=["presets"],
    operation_id="save_preset",
)
def save_preset(preset: SearchPreset, repository: PrefsRepo) -> SearchPreset:
    prefs = repository.load()
    stored = _call_with_config_errors(lambda: upsert_preset(prefs, preset))
    repository.save(prefs)
    return stored


@router.post(
    "/presets/import",
    response_model=SearchPreset,
    tags=["presets"],
    operation_id="import_preset",
)
def import_preset_route(request: PresetImportRequest, repository: PrefsRepo) -> SearchPreset:
    prefs = repository.load()
    stored = _call_with_config_errors(lambda: import_preset(prefs, request.payload))
    repository.save(prefs)
    return stored


@router.post(
    "/presets/{preset_id}/duplicate",
    response_model=SearchPreset,
    tags=["presets"],
    operation_id="duplicate_preset",
)
def duplicate_preset_route(preset_id: str, repository: PrefsRepo) -> SearchPreset:
    prefs = repository.load()
    duplicate = _call_with_config_errors(lambda: duplicate_preset(prefs, preset_id), not_found=True)
    repository.save(prefs)
    return duplicate


@router.delete(
    "/presets/{preset_id}",
    response_model=SearchPreset,
    tags=["presets"],
    operation_id="delete_preset",
)
def delete_preset_route(preset_id: str, repository: PrefsRepo) -> SearchPreset:
    prefs = repository.load()
    removed = _call_with_config_errors(lambda: delete_preset(prefs, preset_id), not_found=True)
    repository.save(prefs)
    return removed


@router.post(
    "/presets/reset",
    response_model=PresetListResponse,
    tags=["presets"],
    operation_id="reset_presets",
)
def reset_presets(repository: PrefsRepo) -> PresetListResponse:
    defaults = repository.reset_to_defaults(repository.load())
    return PresetListResponse(presets=defaults.searches)


@router.post(
    "/search/run",
    response_model=SearchRunResponse,
    tags=["search"],
    operation_id="run_search",
)
def run_search(
    request: SearchRunRequest,
    repository: PrefsRepo,
    service: Annotated[SearchService, Depends(get_search_service)],
) -> SearchRunResponse:
    prefs = repository.load()
    mode = request.run_mode()
    try:
        outcome = service.run(prefs, mode)
    except SearchConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except (SearchStageError, YouTubeApiError) as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    service.remember(prefs, mode, outcome)
    videos = sort_results(drop_blocked(outcome.videos, prefs.blocked_channels), request.sort)
    return SearchRunResponse.from_outcome(outcome, videos)


@router.post(
    "/search/runs",
    response_model=RunLaunchResponse,
    status_code=202,
    tags=["search"],
    operation_id="launch_search_run",
)
def launch_search_run(
    request: SearchRunRequest,
    repository: PrefsRepo,
    controller: Annotated[SearchRunController, Depends(get_run_controller)],
) -> RunLaunchResponse:
    run_id = controller.launch(repository.load(), request.run_mode())
    return RunLaunchResponse(run_id=run_id)


@router.get(
    "/search/runs/current",
    response_model=RunStateResponse,
    tags=["search"],
    operation_id="current_search_run",
)
def current_search_run(
    repository: PrefsRepo,
    controller: Annotated[SearchRunController, Depends(get_run_controller)],
    sort: Annotated[ResultSort, Query()] = ResultSort.NEWEST,
) -> RunStateResponse:
    snapshot = controller.poll()
    videos = None
    if snapshot.outcome is not None:
        prefs = repository.load()
        videos = sort_results(drop_blocked(snapshot.outcome.videos, prefs.blocked_channels), sort)
    return RunStateResponse.from_snapshot(snapshot, videos)


@router.delete(
    "/search/runs/current",
    response_model=RunStateResponse,
    tags=["search"],
    operation_id="cancel_search_run",
)
def cancel_search_run(
    controller: Annotated[SearchRunController, Depends(get_run_controller)],
) -> RunStateResponse:
    if not controller.cancel():
        raise HTTPException(status_code=404, detail="No search run in progress.")
    return RunStateResponse.from_snapshot(controller.poll())


@router.get(
    "/search/last",
    response_model=CachedResultsResponse,
    tags=["search"],
    operation_id="last_search_results",
)
def last_search_results(
    repository: PrefsRepo,
    service: Annotated[SearchService, Depends(get_search_service)],
) -> CachedResultsResponse:
    cached = service.last_results(repository.load())
    if cached is None:
        raise HTTPException(status_code=404, detail="No cached results yet.")
    return CachedResultsResponse.from_cached(cached)


@router.get(
    "/blocked-channels",
    response_model=BlockedChannelsResponse,
    tags=["channels"],
    operation_id="list_blocked_channels",
)
def list_blocked_channels(repository: PrefsRepo) -> BlockedChannelsResponse:
    return BlockedChannelsResponse.from_entries(repository.load().blocked_channels)


@router.post(
    "/blocked-channels",
    response_model=BlockedChannelsResponse,
    tags=["channels"],
    operation_id="block_channel",
)
def block_channel_route(request: BlockChannelRequest, repository: PrefsRepo) -> BlockedChannelsResponse:
    prefs = repository.load()
    try:
        prefs.blocked_channels = block_channel(
            prefs.blocked_channels,
            channel_id=request.channel_id,
            channel_title=request.channel_title,
        )
    except BlockListError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    repository.save(prefs)
    return BlockedChannelsResponse.from_entries(prefs.blocked_channels)


@router.delete(
    "/blocked-channels/{channel_key}",
    response_model=BlockedChannelsResponse,
    tags=["channels"],
    operation_id="unblock_channel",
)
def unblock_channel_route(channel_key: str, repository: PrefsRepo) -> BlockedChannelsResponse:
    prefs = repository.load()
    remaining, changed = unblock_channel(prefs.blocked_channels, channel_key)
    if not changed:
        raise HTTPException(status_code=404, detail=f"Channel '{channel_key}' is not blocked.")
    prefs.blocked_channels = remaining
    repository.save(prefs)
    return BlockedChannelsResponse.from_entries(prefs.blocked_channels)


@router.get(
    "/duration-buckets",
    response_model=DurationBucketsResponse,
    tags=["filters"],
    operation_id="list_duration_buckets",
)
def list_duration_buckets(repository: PrefsRepo) -> DurationBucketsResponse:
    return _duration_buckets_response(repository.load())


@router.post(
    "/duration-buckets/{bucket_id}/toggle",
    response_model=DurationBucketsResponse,
    tags=["filters"],
    operation_id="toggle_duration_bucket",
)
def toggle_duration_bucket_route(bucket_id: str, repository: PrefsRepo) -> DurationBucketsResponse:
    prefs = repository.load()
    if prefs.global_prefs.duration_filters.bucket_by_id(bucket_id) is None:
        raise HTTPException(status_code=404, detail=f"Duration bucket '{bucket_id}' not found.")
    if toggle_duration_bucket(prefs.global_prefs, bucket_id):
        repository.save(prefs)
    return _duration_buckets_response(prefs)


def _duration_buckets_response(prefs: Prefs) -> DurationBucketsResponse:
    state = DurationFilterState.from_global(prefs.global_prefs)
    return DurationBucketsResponse(
        allow_multiple=state.allow_multiple,
        buckets=[
            DurationBucketResponse(
                id=bucket.config.id,
                label=bucket.config.label,
                min_secs=bucket.config.min_secs,
                max_secs=bucket.config.max_secs,
                selected=bucket.selected,
            )
            for bucket in state.buckets
        ],
    )


def _call_with_config_errors(operation: Callable[[], _T], *, not_found: bool = False) -> _T:
    try:
        return operation()
    except SearchConfigurationError as exc:
        status_code = 404 if not_found and "not found" in str(exc) else 400
        raise HTTPException(status_code=status_code, detail=str(exc)) from exc
