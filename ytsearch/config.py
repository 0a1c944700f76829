from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ytsearch.services.search_runner import (
    DEFAULT_SEARCH_PAGE_SIZE,
    MAX_SEARCH_PAGE_SIZE,
    coerce_max_search_pages,
)

DEFAULT_DATA_DIR = ".ytsearch"
API_KEY_FILE_NAME = "YT_API_private"
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (
    ("prefs_path", Path("prefs.json")),
    ("db_path", Path("state.db")),
    ("log_dir", Path("logs")),
)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = (
    "results_cache_enabled",
    "telemetry_enabled",
)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _data_dir_default_note(relative_path: Path) -> str:
    return f"Defaults to `${{YTSEARCH_DATA_DIR}}/{relative_path}` when not explicitly set."


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _parse_bool_with_default(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value == 1:
            return True
        if value == 0:
            return False
        return default
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


class AppSettings(BaseSettings):
    """
    Runtime configuration, read from `YTSEARCH_*` environment variables
    (and `.env`). Search preferences themselves live in the prefs file.
    """

    model_config = SettingsConfigDict(
        env_prefix="YTSEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Paths.
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for preferences, cached results, and logs.",
    )
    prefs_path: Path = Field(
        default=_default_in_data_dir(Path("prefs.json")),
        description=f"Preferences JSON file. {_data_dir_default_note(Path('prefs.json'))}",
    )
    db_path: Path = Field(
        default=_default_in_data_dir(Path("state.db")),
        description=f"SQLite database path. {_data_dir_default_note(Path('state.db'))}",
    )

    # Credentials.
    api_key: str | None = Field(
        default=None,
        description="YouTube Data API key used when the preferences carry a blank key.",
    )
    api_key_files: tuple[Path, ...] | None = Field(
        default=None,
        description=(
            "Ordered fallback credential files (JSON list). Defaults to "
            f"`./{API_KEY_FILE_NAME}` then `${{YTSEARCH_DATA_DIR}}/{API_KEY_FILE_NAME}`."
        ),
    )

    # Search behavior.
    max_search_pages: int = Field(
        default=4,
        description="search.list page ceiling per preset; values outside 1..10 mean 4.",
    )
    search_page_size: int = Field(
        default=DEFAULT_SEARCH_PAGE_SIZE,
        description="maxResults per search.list page, clamped to 1..50.",
    )
    results_cache_enabled: bool = Field(
        default=True,
        description="Persist the last successful result set for the next start.",
    )

    # Logging.
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description=f"Directory for log files. {_data_dir_default_note(Path('logs'))}",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level.",
    )

    # Telemetry.
    telemetry_enabled: bool = Field(
        default=True,
        description="Emit structured telemetry events for runs and HTTP requests.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description=(
            "Telemetry sink backend. `log` emits structured telemetry locally; "
            "`none` disables sink output."
        ),
    )

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("YTSEARCH_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("YTSEARCH_TELEMETRY_SINK must be set to: none, log.")

    @field_validator("max_search_pages", mode="before")
    @classmethod
    def _normalize_max_search_pages(cls, value: Any) -> int:
        return coerce_max_search_pages(value)

    @field_validator("search_page_size", mode="before")
    @classmethod
    def _normalize_page_size(cls, value: Any) -> int:
        try:
            parsed = int(value)
        except (TypeError, ValueError):
            return DEFAULT_SEARCH_PAGE_SIZE
        return min(max(parsed, 1), MAX_SEARCH_PAGE_SIZE)

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            return "INFO"
        return value.strip().upper()

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator(*_BOOLEAN_COERCION_FIELDS, mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return _parse_bool_with_default(value, default=default_value)

    @field_validator("api_key", mode="before")
    @classmethod
    def _normalize_api_key(cls, value: Any) -> str | None:
        if not isinstance(value, str):
            return None
        return value.strip() or None


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Any] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if settings.api_key_files is None:
        updates["api_key_files"] = (
            Path(API_KEY_FILE_NAME),
            settings.data_dir / API_KEY_FILE_NAME,
        )
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates: dict[str, Any] = {
        field_name: _resolve_path(getattr(settings, field_name)) for field_name in _PATH_FIELDS
    }
    resolved_updates["api_key_files"] = tuple(
        _resolve_path(path) for path in settings.api_key_files or ()
    )
    return settings.model_copy(update=resolved_updates)


def load_settings() -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    return _resolve_path_fields(settings)
