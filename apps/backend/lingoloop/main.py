from __future__ import annotations

import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response

from .config import settings
from .logging import bind_request_context, clear_request_context, configure_logging, logger
from .metrics import registry
from .providers import shutdown_providers
from .routers import backup, expressions, health, review, stats, visual
from .srs import InvalidRating
from .store import StoreUnavailable, store


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assign a request ID to each incoming request and expose it in headers.

    - Sets `request.state.request_id`
    - Adds `X-Request-ID` to the response headers
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class AccessLogAndMetricsMiddleware(BaseHTTPMiddleware):
    """Emit structured request logs and capture latency/metrics for each call.

    各リクエストの `request_id` と `user_id` をログへ束縛し、パス別の遅延とエラー有無を記録する。
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:  # type: ignore[override]
        start = time.time()
        path = request.url.path
        method = request.method
        request_id = getattr(request.state, "request_id", None) or uuid.uuid4().hex
        user_id = request.headers.get("x-user-id")
        bind_request_context(request_id, user_id)
        is_error = False
        status_code: int | None = None
        error_type: str | None = None
        try:
            response = await call_next(request)
            status_code = response.status_code
            is_error = status_code >= 500
            return response
        except Exception as exc:
            is_error = True
            status_code = 500
            error_type = exc.__class__.__name__
            raise
        finally:
            latency_ms = (time.time() - start) * 1000
            registry.record(path, latency_ms, is_error=is_error)
            log_method = logger.error if is_error else logger.info
            log_method(
                "request_complete",
                path=path,
                method=method,
                latency_ms=latency_ms,
                is_error=is_error,
                status_code=status_code,
                error_type=error_type,
                user_id=user_id,
            )
            clear_request_context()


async def _invalid_rating_handler(_request: Request, exc: Exception) -> JSONResponse:
    quality = getattr(exc, "quality", None)
    return JSONResponse(
        status_code=422,
        content={
            "detail": {
                "message": str(exc),
                "reason_code": InvalidRating.reason_code,
                "quality": quality if isinstance(quality, (int, float, str)) else None,
            }
        },
    )


async def _store_unavailable_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.error("store_unavailable", error=str(exc)[:200])
    return JSONResponse(
        status_code=503,
        content={"detail": {"message": "storage backend unavailable", "reason_code": "STORE_UNAVAILABLE"}},
    )


async def _on_shutdown() -> None:
    """Ensure providers (LLM clients) and the store are gracefully terminated."""
    shutdown_providers()
    store.close()


@asynccontextmanager
async def _lifespan(_app: FastAPI) -> AsyncIterator[None]:
    yield
    await _on_shutdown()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    configure_logging()
    logger.info(
        "app_init",
        environment=settings.environment,
        storage_backend=settings.storage_backend,
        llm_provider=settings.llm_provider,
        strict_mode=settings.strict_mode,
    )
    app = FastAPI(title="LingoLoop API", version="0.1.0", lifespan=_lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Starlette では後から追加したミドルウェアが外側で実行される。
    # RequestID を外側に置き、採番済みの ID を AccessLog 側で構造化ログに載せる。
    app.add_middleware(AccessLogAndMetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(InvalidRating, _invalid_rating_handler)
    app.add_exception_handler(StoreUnavailable, _store_unavailable_handler)

    app.include_router(health.router)
    app.include_router(expressions.router, prefix="/api/expressions")
    app.include_router(review.router, prefix="/api/review")
    app.include_router(stats.router, prefix="/api")
    app.include_router(backup.router, prefix="/api")
    app.include_router(visual.router, prefix="/api/visual")

    return app


app = create_app()
