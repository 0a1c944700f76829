from __future__ import annotations

from functools import lru_cache

from ytsearch.config import AppSettings, load_settings
from ytsearch.repositories.database import Database
from ytsearch.repositories.preferences_repository import (
    PreferencesRepository,
    read_api_key_files,
)
from ytsearch.repositories.results_cache_repository import ResultsCacheRepository
from ytsearch.services.run_controller import SearchRunController
from ytsearch.services.search_service import SearchService
from ytsearch.services.youtube_client import GoogleApiYouTubeClient, YouTubeDataApi
from ytsearch.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


@lru_cache(maxsize=1)
def get_database() -> Database:
    database = Database(get_settings().db_path)
    database.initialize()
    return database


@lru_cache(maxsize=1)
def get_fallback_api_keys() -> tuple[str, ...]:
    """The settings key, then the contents of each credential file, deduplicated."""
    settings = get_settings()
    keys: list[str] = []
    if settings.api_key:
        keys.append(settings.api_key)
    for key in read_api_key_files(settings.api_key_files or ()):
        if key not in keys:
            keys.append(key)
    return tuple(keys)


@lru_cache(maxsize=1)
def get_preferences_repository() -> PreferencesRepository:
    return PreferencesRepository(
        get_settings().prefs_path,
        fallback_api_keys=get_fallback_api_keys(),
    )


@lru_cache(maxsize=1)
def get_results_cache_repository() -> ResultsCacheRepository:
    return ResultsCacheRepository(get_database())


@lru_cache(maxsize=1)
def get_youtube_api() -> YouTubeDataApi:
    return GoogleApiYouTubeClient()


@lru_cache(maxsize=1)
def get_search_service() -> SearchService:
    settings = get_settings()
    return SearchService(
        get_youtube_api(),
        fallback_api_keys=get_fallback_api_keys(),
        max_pages=settings.max_search_pages,
        page_size=settings.search_page_size,
        cache_repository=(
            get_results_cache_repository() if settings.results_cache_enabled else None
        ),
    )


@lru_cache(maxsize=1)
def get_run_controller() -> SearchRunController:
    service = get_search_service()
    return SearchRunController(
        service.run,
        telemetry=get_telemetry(),
        on_success=service.remember,
    )


def reset_cached_dependencies() -> None:
    get_run_controller.cache_clear()
    get_search_service.cache_clear()
    get_youtube_api.cache_clear()
    get_results_cache_repository.cache_clear()
    get_preferences_repository.cache_clear()
    get_fallback_api_keys.cache_clear()
    get_database.cache_clear()
    get_telemetry.cache_clear()
    get_settings.cache_clear()
