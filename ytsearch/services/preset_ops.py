from __future__ import annotations

import json
import re
import time
from typing import Any, cast

from pydantic import ValidationError

from ytsearch.models.preferences import Prefs, SearchPreset
from ytsearch.services.errors import SearchConfigurationError

_NON_ID_CHARS = re.compile(r"[^a-z0-9]")
_DASH_RUNS = re.compile(r"-{2,}")


def sanitize_id_source(name: str) -> str:
    lowered = _NON_ID_CHARS.sub("-", name.strip().lower())
    return _DASH_RUNS.sub("-", lowered).strip("-")


def generate_unique_id(name: str, existing: list[SearchPreset], *, now: float | None = None) -> str:
    base = sanitize_id_source(name)
    if not base:
        base = f"preset-{int(now if now is not None else time.time())}"

    taken = {preset.id for preset in existing}
    candidate = base
    counter = 2
    while candidate in taken:
        candidate = f"{base}-{counter}"
        counter += 1
    return candidate


def validate_preset(preset: SearchPreset) -> None:
    if not preset.name.strip():
        raise SearchConfigurationError("Name cannot be empty.")
    if not preset.query.has_positive_terms():
        raise SearchConfigurationError("Configure at least one query term.")


def upsert_preset(prefs: Prefs, preset: SearchPreset) -> SearchPreset:
    """
    Validate and store `preset` in `prefs`.

    A preset whose id matches an existing one replaces it in place and keeps
    its position. Anything else is appended, with an id generated from its
    name when the id is blank.
    """
    validate_preset(preset)

    for index, existing in enumerate(prefs.searches):
        if preset.id and existing.id == preset.id:
            stored = preset.model_copy(update={"system": existing.system})
            prefs.searches[index] = stored
            return stored

    stored = preset.model_copy(deep=True)
    if not stored.id.strip():
        stored.id = generate_unique_id(stored.name, prefs.searches)
    prefs.searches.append(stored)
    return stored


def duplicate_preset(prefs: Prefs, preset_id: str) -> SearchPreset:
    source = prefs.find_preset(preset_id)
    if source is None:
        raise SearchConfigurationError(f"Preset '{preset_id}' not found.")

    duplicate = source.model_copy(deep=True)
    duplicate.name = f"{source.name.strip()} copy" if source.name.strip() else "New preset"
    duplicate.id = generate_unique_id(duplicate.name, prefs.searches)
    duplicate.system = False
    duplicate.priority = len(prefs.searches)
    prefs.searches.append(duplicate)
    return duplicate


def delete_preset(prefs: Prefs, preset_id: str) -> SearchPreset:
    for index, preset in enumerate(prefs.searches):
        if preset.id != preset_id:
            continue
        if preset.system:
            raise SearchConfigurationError(f"Built-in preset '{preset.name}' cannot be deleted.")
        return prefs.searches.pop(index)
    raise SearchConfigurationError(f"Preset '{preset_id}' not found.")


def parse_preset_payload(raw: str) -> SearchPreset:
    """Accept a preset object, a list of presets, or a whole prefs document."""
    trimmed = raw.strip()
    if not trimmed:
        raise SearchConfigurationError("Preset payload is empty.")

    try:
        decoded: Any = json.loads(trimmed)
    except json.JSONDecodeError as exc:
        raise SearchConfigurationError(f"Preset payload is not valid JSON: {exc.msg}") from exc

    if isinstance(decoded, list):
        for item in cast(list[Any], decoded):
            preset = _try_preset(item)
            if preset is not None:
                return preset
    elif isinstance(decoded, dict):
        payload = cast(dict[str, Any], decoded)
        if "searches" in payload:
            for item in _as_list(payload.get("searches")):
                preset = _try_preset(item)
                if preset is not None:
                    return preset
        else:
            preset = _try_preset(payload)
            if preset is not None:
                return preset

    raise SearchConfigurationError("Preset JSON did not contain a preset.")


def import_preset(prefs: Prefs, raw: str) -> SearchPreset:
    """Parse `raw` and add it to `prefs` as a new, enabled, user-owned preset."""
    imported = parse_preset_payload(raw)
    imported.id = ""
    imported.enabled = True
    imported.system = False
    return upsert_preset(prefs, imported)


def export_preset(preset: SearchPreset) -> str:
    return preset.model_dump_json(indent=2)


def _try_preset(raw: object) -> SearchPreset | None:
    if not isinstance(raw, dict):
        return None
    if "name" not in raw and "query" not in raw:
        return None
    try:
        return SearchPreset.model_validate(raw)
    except ValidationError:
        return None


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return list(cast(list[Any], value))
    return []
