"""
Search telemetry events.

Events are flat mappings of scalars. A client bound to a run carries the run
id and mode, so every event a run emits (including its per-preset failures)
can be correlated in the telemetry log.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal, Protocol

import structlog

if TYPE_CHECKING:
    from ytsearch.services.search_runner import SearchOutcome

Scalar = bool | int | float | str | None

# Any attribute whose name contains one of these is never written out.
_REDACTED_NAME_PARTS = ("api_key", "key_file", "credential", "secret", "token", "payload")
_MAX_TEXT_LENGTH = 160
_REDACTED = "[redacted]"


class TelemetrySink(Protocol):
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        ...


class NoOpTelemetrySink:
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        _ = (event_name, attributes)


class StructuredLogTelemetrySink:
    """Writes events to the `ytsearch.telemetry` logger, one JSON line each."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger("ytsearch.telemetry")

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self._logger.info(event_name, **dict(attributes))


@dataclass(frozen=True)
class TelemetryClient:
    enabled: bool
    sink: TelemetrySink
    context: Mapping[str, Scalar] = field(default_factory=dict)

    @classmethod
    def disabled(cls) -> TelemetryClient:
        return cls(enabled=False, sink=NoOpTelemetrySink())

    def bind(self, **context: Any) -> TelemetryClient:
        """Return a client that adds `context` to every event it emits."""
        return replace(self, context={**self.context, **scrub_attributes(context)})

    def emit(self, event_name: str, **attributes: Any) -> None:
        if not self.enabled:
            return
        self.sink.emit(
            event_name=event_name,
            attributes={**self.context, **scrub_attributes(attributes)},
        )

    def emit_outcome(self, outcome: SearchOutcome, **attributes: Any) -> None:
        self.emit(
            "search.run.finish",
            presets_ran=outcome.presets_ran,
            pages_fetched=outcome.pages_fetched,
            raw_items=outcome.raw_items,
            unique_ids=outcome.unique_ids,
            passed_filters=outcome.passed_filters,
            duplicates_within_presets=outcome.duplicates_within_presets,
            duplicates_across_presets=outcome.duplicates_across_presets,
            videos=len(outcome.videos),
            failed_presets=len(outcome.failed_presets),
            **attributes,
        )
        for failure in outcome.failed_presets:
            self.emit(
                "search.preset.failed",
                preset_id=failure.preset_id,
                stage=failure.stage,
                message=failure.message,
            )


def build_telemetry_client(*, enabled: bool, sink: Literal["none", "log"]) -> TelemetryClient:
    if not enabled or sink == "none":
        return TelemetryClient.disabled()
    if sink == "log":
        return TelemetryClient(enabled=True, sink=StructuredLogTelemetrySink())

    logging.getLogger("ytsearch.telemetry").warning(
        "unknown telemetry sink %r, telemetry disabled",
        sink,
    )
    return TelemetryClient.disabled()


def scrub_attributes(attributes: Mapping[str, Any]) -> dict[str, Scalar]:
    scrubbed: dict[str, Scalar] = {}
    for raw_name, raw_value in attributes.items():
        name = str(raw_name).strip().lower()
        if not name:
            continue
        if any(part in name for part in _REDACTED_NAME_PARTS):
            scrubbed[name] = _REDACTED
        else:
            scrubbed[name] = _to_scalar(raw_value)
    return scrubbed


def _to_scalar(value: Any) -> Scalar:
    if isinstance(value, Enum):
        value = value.value
    if value is None or isinstance(value, bool | int | float):
        return value
    if isinstance(value, str):
        text = " ".join(value.split())
        if len(text) > _MAX_TEXT_LENGTH:
            return text[:_MAX_TEXT_LENGTH] + "..."
        return text
    # Collections are reported by size; their members may be user content.
    if isinstance(value, list | tuple | set | frozenset | dict):
        return len(value)
    return type(value).__name__
