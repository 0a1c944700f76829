from __future__ import annotations


class YTSearchError(Exception):
    pass


class SearchConfigurationError(YTSearchError):
    pass


class SearchCancelledError(YTSearchError):
    pass


class YouTubeApiError(YTSearchError):
    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason

    @property
    def is_credential_failure(self) -> bool:
        return self.status_code == 403 and self.reason in CREDENTIAL_FAILURE_REASONS


class SearchStageError(YTSearchError):
    def __init__(self, stage: str, preset_name: str, cause: YouTubeApiError) -> None:
        super().__init__(
            f"{stage} failed for preset '{preset_name}' "
            f"(check API key, quotas, or restrictions): {cause}"
        )
        self.stage = stage
        self.preset_name = preset_name
        self.cause = cause


CREDENTIAL_FAILURE_REASONS: frozenset[str] = frozenset(
    {
        "quotaExceeded",
        "dailyLimitExceeded",
        "keyInvalid",
        "forbidden",
        "ipRefererBlocked",
        "refererBlocked",
        "accessNotConfigured",
    }
)
