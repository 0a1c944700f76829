from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from uuid import uuid4

from structlog.contextvars import bind_contextvars, reset_contextvars

from ytsearch.models.preferences import Prefs
from ytsearch.repositories.common import utc_now_iso
from ytsearch.services.errors import SearchCancelledError, YTSearchError
from ytsearch.services.search_runner import RunMode, SearchOutcome
from ytsearch.telemetry import TelemetryClient

LOGGER = logging.getLogger("ytsearch.runs")

SearchFunction = Callable[[Prefs, RunMode, threading.Event], SearchOutcome]
SuccessCallback = Callable[[Prefs, RunMode, SearchOutcome], None]


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class RunSnapshot:
    status: RunStatus
    run_id: str | None = None
    mode: RunMode | None = None
    started_at: str | None = None
    finished_at: str | None = None
    outcome: SearchOutcome | None = None
    error: str | None = None


@dataclass
class _ActiveRun:
    run_id: str
    mode: RunMode
    started_at: str
    cancel_event: threading.Event = field(default_factory=threading.Event)
    # Single producer (the worker) and single consumer (poll).
    results: queue.Queue[tuple[str, SearchOutcome | str]] = field(
        default_factory=lambda: queue.Queue(maxsize=1)
    )
    finished: RunSnapshot | None = None
    thread: threading.Thread | None = None


class SearchRunController:
    """
    Owns at most one in-flight search run.

    Launching a run cancels the previous one and drops its result queue, so a
    superseded run can never deliver results.
    """

    def __init__(
        self,
        search_fn: SearchFunction,
        *,
        telemetry: TelemetryClient | None = None,
        on_success: SuccessCallback | None = None,
    ) -> None:
        self._search_fn = search_fn
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()
        self._on_success = on_success
        self._lock = threading.Lock()
        self._current: _ActiveRun | None = None

    def launch(self, prefs: Prefs, mode: RunMode) -> str:
        snapshot = prefs.snapshot()
        run = _ActiveRun(run_id=uuid4().hex, mode=mode, started_at=utc_now_iso())
        with self._lock:
            previous = self._current
            if previous is not None:
                previous.cancel_event.set()
                LOGGER.info("runs superseded run_id=%s by=%s", previous.run_id, run.run_id)
            self._current = run

        run.thread = threading.Thread(
            target=self._run_worker,
            args=(run, snapshot),
            name=f"ytsearch-run-{run.run_id[:8]}",
        )
        run.thread.daemon = True
        run.thread.start()
        return run.run_id

    def cancel(self) -> bool:
        with self._lock:
            run = self._current
            self._current = None
        if run is None:
            return False
        run.cancel_event.set()
        LOGGER.info("runs cancelled run_id=%s", run.run_id)
        return True

    def poll(self) -> RunSnapshot:
        with self._lock:
            run = self._current
            if run is None:
                return RunSnapshot(status=RunStatus.IDLE)
            return self._snapshot_for(run)

    def wait(self, timeout_seconds: float | None = None) -> RunSnapshot:
        with self._lock:
            run = self._current
        if run is None:
            return RunSnapshot(status=RunStatus.IDLE)
        if run.thread is not None:
            run.thread.join(timeout=timeout_seconds)
        return self.poll()

    def _snapshot_for(self, run: _ActiveRun) -> RunSnapshot:
        if run.finished is not None:
            return run.finished

        try:
            kind, payload = run.results.get_nowait()
        except queue.Empty:
            return RunSnapshot(
                status=RunStatus.RUNNING,
                run_id=run.run_id,
                mode=run.mode,
                started_at=run.started_at,
            )

        if kind == "ok" and isinstance(payload, SearchOutcome):
            run.finished = RunSnapshot(
                status=RunStatus.SUCCEEDED,
                run_id=run.run_id,
                mode=run.mode,
                started_at=run.started_at,
                finished_at=utc_now_iso(),
                outcome=payload,
            )
        else:
            run.finished = RunSnapshot(
                status=RunStatus.FAILED,
                run_id=run.run_id,
                mode=run.mode,
                started_at=run.started_at,
                finished_at=utc_now_iso(),
                error=str(payload),
            )
        return run.finished

    def _run_worker(self, run: _ActiveRun, prefs: Prefs) -> None:
        tokens = bind_contextvars(search_run_id=run.run_id)
        started_at = time.perf_counter()
        telemetry = self._telemetry.bind(
            run_id=run.run_id,
            mode="any" if run.mode.is_any else "single",
            preset_id=run.mode.preset_id,
        )
        telemetry.emit("search.run.start", configured_presets=len(prefs.searches))
        try:
            outcome = self._search_fn(prefs, run.mode, run.cancel_event)
        except SearchCancelledError:
            LOGGER.debug("runs worker_cancelled run_id=%s", run.run_id)
            telemetry.emit("search.run.cancelled", duration_ms=_elapsed_ms(started_at))
            return
        except YTSearchError as exc:
            _emit_error(telemetry, started_at, exc)
            self._deliver(run, ("error", str(exc)))
            return
        except Exception as exc:
            LOGGER.exception("runs worker_crashed run_id=%s", run.run_id)
            _emit_error(telemetry, started_at, exc)
            self._deliver(run, ("error", f"Search failed unexpectedly: {exc}"))
            return
        finally:
            reset_contextvars(**tokens)

        if run.cancel_event.is_set():
            LOGGER.debug("runs result_discarded run_id=%s", run.run_id)
            telemetry.emit("search.run.cancelled", duration_ms=_elapsed_ms(started_at))
            return

        telemetry.emit_outcome(outcome, duration_ms=_elapsed_ms(started_at))
        if self._on_success is not None:
            try:
                self._on_success(prefs, run.mode, outcome)
            except Exception:
                LOGGER.warning("runs success_callback_failed run_id=%s", run.run_id, exc_info=True)
        self._deliver(run, ("ok", outcome))

    def _deliver(self, run: _ActiveRun, message: tuple[str, SearchOutcome | str]) -> None:
        if run.cancel_event.is_set():
            return
        run.results.put_nowait(message)


def _emit_error(telemetry: TelemetryClient, started_at: float, exc: Exception) -> None:
    telemetry.emit(
        "search.run.error",
        duration_ms=_elapsed_ms(started_at),
        error_type=type(exc).__name__,
    )


def _elapsed_ms(started_at: float) -> int:
    return int((time.perf_counter() - started_at) * 1000)
