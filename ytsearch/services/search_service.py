from __future__ import annotations

import logging
import threading
from collections.abc import Sequence

from ytsearch.models.preferences import Prefs
from ytsearch.models.videos import CachedResults
from ytsearch.repositories.results_cache_repository import ResultsCacheRepository
from ytsearch.services.block_list import drop_blocked
from ytsearch.services.result_views import status_line
from ytsearch.services.search_runner import (
    DEFAULT_MAX_SEARCH_PAGES,
    DEFAULT_SEARCH_PAGE_SIZE,
    RunMode,
    SearchOutcome,
    run_searches,
)
from ytsearch.services.youtube_client import YouTubeDataApi

LOGGER = logging.getLogger("ytsearch.search")


class SearchService:
    """Runs searches against one API client and remembers the latest results."""

    def __init__(
        self,
        api: YouTubeDataApi,
        *,
        fallback_api_keys: Sequence[str] = (),
        max_pages: int = DEFAULT_MAX_SEARCH_PAGES,
        page_size: int = DEFAULT_SEARCH_PAGE_SIZE,
        cache_repository: ResultsCacheRepository | None = None,
    ) -> None:
        self._api = api
        self._fallback_api_keys = tuple(fallback_api_keys)
        self._max_pages = max_pages
        self._page_size = page_size
        self._cache_repository = cache_repository

    def run(
        self,
        prefs: Prefs,
        mode: RunMode,
        cancel_event: threading.Event | None = None,
    ) -> SearchOutcome:
        return run_searches(
            prefs,
            mode,
            api=self._api,
            fallback_api_keys=self._fallback_api_keys,
            max_pages=self._max_pages,
            page_size=self._page_size,
            cancel_event=cancel_event,
        )

    def remember(self, prefs: Prefs, mode: RunMode, outcome: SearchOutcome) -> CachedResults | None:
        if self._cache_repository is None:
            return None
        kept = drop_blocked(outcome.videos, prefs.blocked_channels)
        cached = self._cache_repository.save(
            status_line=status_line(outcome, kept=len(kept)),
            videos=kept,
        )
        LOGGER.debug(
            "search results_cached mode=%s videos=%s",
            "any" if mode.is_any else mode.preset_id,
            len(kept),
        )
        return cached

    def last_results(self, prefs: Prefs) -> CachedResults | None:
        if self._cache_repository is None:
            return None
        return self._cache_repository.load(blocked_channels=prefs.blocked_channels)
