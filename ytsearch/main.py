from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from structlog.contextvars import bind_contextvars, reset_contextvars

from ytsearch.api.routes import router
from ytsearch.dependencies import get_run_controller, get_settings, get_telemetry
from ytsearch.logging_config import configure_application_logging


def health_check() -> dict[str, str]:
    return {"status": "ok"}


@asynccontextmanager
async def app_lifespan(_: FastAPI) -> AsyncIterator[None]:
    configure_application_logging(get_settings())
    try:
        yield
    finally:
        get_run_controller().cancel()


_RESOURCE_ID_NAMES = {
    "presets": "preset_id",
    "blocked-channels": "channel_key",
    "duration-buckets": "bucket_id",
}
_UNSCOPED_SEGMENTS = frozenset({"import", "reset", "run", "runs", "current", "last"})


def request_scope(path: str) -> dict[str, str]:
    """Name the resource a request path addresses, e.g. `/presets/a/duplicate`."""
    segments = [segment for segment in path.split("/") if segment]
    if not segments:
        return {}
    scope = {"resource": segments[0]}
    id_name = _RESOURCE_ID_NAMES.get(segments[0])
    if id_name is not None and len(segments) > 1 and segments[1] not in _UNSCOPED_SEGMENTS:
        scope[id_name] = segments[1]
    return scope


async def request_context_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    header_value = (request.headers.get("X-Request-ID") or "").strip()
    request_id = header_value or uuid4().hex
    scope = request_scope(request.url.path)
    context_tokens = bind_contextvars(api_request_id=request_id, **scope)
    telemetry = get_telemetry().bind(request_id=request_id, method=request.method, **scope)
    started_at = perf_counter()
    try:
        response = await call_next(request)
    except Exception as exc:
        telemetry.emit(
            "api.request.error",
            duration_ms=int((perf_counter() - started_at) * 1000),
            error_type=type(exc).__name__,
        )
        raise
    else:
        response.headers["X-Request-ID"] = request_id
        if scope.get("resource") != "health":
            telemetry.emit(
                "api.request.finish",
                duration_ms=int((perf_counter() - started_at) * 1000),
                status_code=response.status_code,
            )
        return response
    finally:
        reset_contextvars(**context_tokens)


def create_app() -> FastAPI:
    app = FastAPI(title="YTSearch API", version="0.1.0", lifespan=app_lifespan)
    app.middleware("http")(request_context_middleware)
    app.include_router(router)
    app.add_api_route(
        "/health",
        health_check,
        methods=["GET"],
        tags=["system"],
        operation_id="health_check",
    )
    return app
