from __future__ import annotations

import json
import logging
from typing import Any, cast

from ytsearch.models.videos import CachedResults, VideoDetails
from ytsearch.repositories.common import utc_now
from ytsearch.repositories.database import Database
from ytsearch.services.block_list import drop_blocked

LOGGER = logging.getLogger("ytsearch.cache")


class ResultsCacheRepository:
    """The single most recent successful result set."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def save(self, *, status_line: str, videos: list[VideoDetails]) -> CachedResults:
        now = utc_now().replace(microsecond=0)
        cached = CachedResults(
            generated_at=now.strftime("%Y-%m-%dT%H:%M:%SZ"),
            status_line=status_line,
            videos=list(videos),
            saved_at_unix=int(now.timestamp()),
        )
        videos_json = json.dumps(
            [video.to_dict() for video in cached.videos],
            ensure_ascii=True,
        )
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO last_results (slot, generated_at, status_line, videos_json, saved_at_unix)
                VALUES (1, ?, ?, ?, ?)
                ON CONFLICT(slot) DO UPDATE SET
                    generated_at = excluded.generated_at,
                    status_line = excluded.status_line,
                    videos_json = excluded.videos_json,
                    saved_at_unix = excluded.saved_at_unix
                """,
                (cached.generated_at, cached.status_line, videos_json, cached.saved_at_unix),
            )
        return cached

    def load(self, *, blocked_channels: list[str] | None = None) -> CachedResults | None:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT generated_at, status_line, videos_json, saved_at_unix
                FROM last_results
                WHERE slot = 1
                """
            ).fetchone()
        if row is None:
            return None

        videos = _decode_videos(row["videos_json"])
        if blocked_channels:
            videos = drop_blocked(videos, blocked_channels)
        return CachedResults(
            generated_at=str(row["generated_at"]),
            status_line=str(row["status_line"]),
            videos=videos,
            saved_at_unix=int(row["saved_at_unix"] or 0),
        )

    def clear(self) -> bool:
        with self._db.connection() as conn:
            cursor = conn.execute("DELETE FROM last_results")
        return cursor.rowcount > 0


def _decode_videos(raw_value: object) -> list[VideoDetails]:
    if not isinstance(raw_value, str):
        return []
    try:
        parsed: Any = json.loads(raw_value)
    except json.JSONDecodeError:
        LOGGER.warning("cache videos_json_invalid; ignoring cached videos")
        return []
    if not isinstance(parsed, list):
        return []

    videos: list[VideoDetails] = []
    for item in cast(list[Any], parsed):
        if isinstance(item, dict):
            videos.append(VideoDetails.from_dict(cast(dict[str, Any], item)))
    return videos
