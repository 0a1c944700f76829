from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from importlib import resources
from pathlib import Path

import yaml
from pydantic import ValidationError

from ytsearch.models.preferences import Prefs
from ytsearch.services.block_list import normalize_block_list
from ytsearch.services.duration_buckets import normalize_duration_filters

LOGGER = logging.getLogger("ytsearch.prefs")

DEFAULT_PREFS_RESOURCE = "default_prefs.yaml"


def builtin_default_prefs() -> Prefs:
    raw_text = (
        resources.files("ytsearch.repositories")
        .joinpath(DEFAULT_PREFS_RESOURCE)
        .read_text(encoding="utf-8")
    )
    data = yaml.safe_load(raw_text) or {}
    return Prefs.model_validate(data)


def add_missing_defaults(prefs: Prefs, defaults: Prefs | None = None) -> bool:
    source = defaults if defaults is not None else builtin_default_prefs()
    known_ids = {preset.id for preset in prefs.searches}
    added = False
    for preset in source.searches:
        if preset.id not in known_ids:
            prefs.searches.append(preset.model_copy(deep=True))
            known_ids.add(preset.id)
            added = True
    return added


def read_api_key_files(paths: Sequence[Path]) -> list[str]:
    """Return the distinct non-empty keys found in `paths`, in order."""
    keys: list[str] = []
    for path in paths:
        try:
            content = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            continue
        except OSError:
            LOGGER.warning("prefs api_key_file_unreadable path=%s", path, exc_info=True)
            continue
        if content and content not in keys:
            keys.append(content)
    return keys


class PreferencesRepository:
    def __init__(self, path: Path, *, fallback_api_keys: Sequence[str] = ()) -> None:
        self._path = path
        self._fallback_api_keys = [key for key in fallback_api_keys if key.strip()]

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Prefs:
        prefs = self._read_or_default()
        add_missing_defaults(prefs)
        prefs.blocked_channels = normalize_block_list(prefs.blocked_channels)
        if not prefs.api_key.strip() and self._fallback_api_keys:
            prefs.api_key = self._fallback_api_keys[0]
        normalize_duration_filters(prefs.global_prefs)
        return prefs

    def save(self, prefs: Prefs) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(prefs.to_json() + "\n", encoding="utf-8")
        LOGGER.debug("prefs saved path=%s presets=%s", self._path, len(prefs.searches))

    def reset_to_defaults(self, current: Prefs) -> Prefs:
        """Restore built-in presets, keeping the API key and minimum duration."""
        defaults = builtin_default_prefs()
        defaults.api_key = current.api_key
        defaults.blocked_channels = []
        defaults.global_prefs.min_duration_secs = current.global_prefs.min_duration_secs
        normalize_duration_filters(defaults.global_prefs)
        self.save(defaults)
        return defaults

    def _read_or_default(self) -> Prefs:
        try:
            raw_text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return builtin_default_prefs()

        try:
            return Prefs.model_validate(json.loads(raw_text))
        except (json.JSONDecodeError, ValidationError):
            LOGGER.warning("prefs invalid_file path=%s; using defaults", self._path, exc_info=True)
            return builtin_default_prefs()
