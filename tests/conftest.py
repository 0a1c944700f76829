from __future__ import annotations

from collections.abc import Iterator
from functools import lru_cache
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from youtube_fakes import FakeYouTubeApi

from ytsearch import dependencies
from ytsearch.dependencies import reset_cached_dependencies
from ytsearch.main import create_app


@pytest.fixture(autouse=True)
def runtime_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    data_dir = tmp_path / "runtime-data"
    monkeypatch.chdir(tmp_path)
    for name in (
        "YTSEARCH_PREFS_PATH",
        "YTSEARCH_DB_PATH",
        "YTSEARCH_LOG_DIR",
        "YTSEARCH_MAX_SEARCH_PAGES",
        "YTSEARCH_SEARCH_PAGE_SIZE",
        "YTSEARCH_RESULTS_CACHE_ENABLED",
        "YTSEARCH_TELEMETRY_ENABLED",
        "YTSEARCH_TELEMETRY_SINK",
        "YTSEARCH_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("YTSEARCH_DATA_DIR", str(data_dir))
    monkeypatch.setenv("YTSEARCH_API_KEY", "test-key")
    monkeypatch.setenv("YTSEARCH_API_KEY_FILES", "[]")
    reset_cached_dependencies()
    yield data_dir
    reset_cached_dependencies()


@pytest.fixture
def fake_api() -> FakeYouTubeApi:
    return FakeYouTubeApi()


@pytest.fixture
def patched_youtube_api(fake_api: FakeYouTubeApi, monkeypatch: pytest.MonkeyPatch) -> FakeYouTubeApi:
    monkeypatch.setattr(dependencies, "get_youtube_api", lru_cache(maxsize=1)(lambda: fake_api))
    reset_cached_dependencies()
    return fake_api


@pytest.fixture
def client(patched_youtube_api: FakeYouTubeApi) -> Iterator[TestClient]:
    _ = patched_youtube_api
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
