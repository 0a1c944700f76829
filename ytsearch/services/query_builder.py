from __future__ import annotations

from ytsearch.models.preferences import GlobalPrefs, QuerySpec, SearchPreset
from ytsearch.services.errors import SearchConfigurationError

QueryParams = list[tuple[str, str]]

LONG_DURATION_HINT_SECONDS = 1_200
MEDIUM_DURATION_HINT_SECONDS = 600


def build_query_params(global_prefs: GlobalPrefs, preset: SearchPreset) -> QueryParams:
    """Build the search.list parameters for one preset, in a stable order.

    The duration hint is coarse; the exact floor is enforced by the post filter.
    """
    query = preset.query
    positive_text = _join_parts(_positive_parts(query))
    if not positive_text:
        raise SearchConfigurationError(
            f"Search query for preset '{preset.name or preset.id}' is empty. "
            "Add some terms to your preset."
        )

    params: QueryParams = [("q", build_query_text(query))]

    if query.category_id is not None:
        params.append(("videoCategoryId", str(query.category_id)))

    if global_prefs.region_code:
        params.append(("regionCode", global_prefs.region_code))

    if preset.effective_require_captions(global_prefs):
        params.append(("videoCaption", "closedCaption"))

    min_duration = preset.effective_min_duration(global_prefs)
    if min_duration >= LONG_DURATION_HINT_SECONDS:
        params.append(("videoDuration", "long"))
    elif min_duration >= MEDIUM_DURATION_HINT_SECONDS:
        params.append(("videoDuration", "medium"))

    return params


def build_query_text(query: QuerySpec) -> str:
    parts = _positive_parts(query)
    for term in _clean_terms(query.not_terms):
        parts.append(f"-{format_query_token(term)}")
    return _join_parts(parts)


def format_query_token(term: str) -> str:
    if not term:
        return ""
    needs_quotes = '"' in term or any(char.isspace() for char in term)
    if not needs_quotes:
        return term
    escaped = term.replace('"', '\\"')
    return f'"{escaped}"'


def _positive_parts(query: QuerySpec) -> list[str]:
    parts: list[str] = []
    if query.q is not None and query.q.strip():
        parts.append(query.q.strip())

    any_terms = [format_query_token(term) for term in _clean_terms(query.any_terms)]
    if any_terms:
        parts.append(f"({' OR '.join(any_terms)})")

    parts.extend(format_query_token(term) for term in _clean_terms(query.all_terms))
    return parts


def _clean_terms(terms: list[str]) -> list[str]:
    return [term.strip() for term in terms if term.strip()]


def _join_parts(parts: list[str]) -> str:
    return " ".join(parts).strip()
