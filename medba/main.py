import asyncio
import logging
import uuid
from contextlib import suppress

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from medba.api import download, fallback, formats, health
from medba.config.settings import config
from medba.core.errors import Internal, MedbaError
from medba.core.logging import log_error, log_warning, setup_logging
from medba.core.state import state
from medba.i18n import i18n
from medba.infra.rate_limit import InMemoryRateLimiter, RedisRateLimiter
from medba.infra.redis import close_redis, init_redis
from medba.infra.tempfiles import ensure_temp_dir, purge_stale_files
from medba.models.response import ErrorResponse
from medba.services.ytdlp import FetcherAdapter, YTDLPCommandBuilder
from medba.utils.locale import get_locale

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-site",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}

VERSION_PROBE_TIMEOUT = 15.0

logger = logging.getLogger("medba")

app = FastAPI(
    title=config.api.title,
    version=config.api.version,
    docs_url="/docs" if config.api.debug else None,
    redoc_url=None
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api.cors_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


@app.middleware("http")
async def add_request_context(request: Request, call_next):
    request.state.request_id = uuid.uuid4().hex[:8]
    response = await call_next(request)
    response.headers["X-Request-ID"] = request.state.request_id
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


def error_response(request: Request, key: str, status_code: int, headers=None, **params) -> JSONResponse:
    locale = get_locale(request.headers.get("accept-language"))
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=i18n.get(key, locale, **params)).model_dump(),
        headers=headers,
    )


@app.exception_handler(MedbaError)
async def medba_error_handler(request: Request, exc: MedbaError):
    log_warning(request, f"{exc.kind} -> {exc.status_code}: {exc.detail or exc.message_key}")
    return error_response(request, exc.message_key, exc.status_code, exc.headers or None, **exc.params)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return error_response(request, "error.not_found", 404)
    if exc.status_code >= 500:
        return error_response(request, "error.internal", exc.status_code, exc.headers)
    return error_response(request, "error.invalid_request", exc.status_code, exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    log_warning(request, f"Malformed request: {exc.errors()}")
    return error_response(request, "error.invalid_request", 400)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    log_error(request, f"Unhandled error: {exc}", exc_info=True)
    error = Internal(str(exc))
    return error_response(request, error.message_key, error.status_code)


# Routes
app.include_router(health.router, tags=["Health"])
app.include_router(formats.router, tags=["Formats"])
app.include_router(download.router, tags=["Download"])
# Must stay last: catches every unmatched /api path
app.include_router(fallback.router)


async def probe_ytdlp_version() -> str:
    probe = FetcherAdapter(timeout=VERSION_PROBE_TIMEOUT)
    try:
        result = await probe.invoke(YTDLPCommandBuilder.build_version_command())
    except MedbaError as e:
        logger.warning(f"yt-dlp version probe failed: {e.kind} ({e.detail})")
        return "unknown"
    return result.stdout.strip() or "unknown"


async def build_rate_limiter():
    if config.rate_limit.backend == "redis":
        redis_client = await init_redis()
        if redis_client is not None:
            return RedisRateLimiter(redis_client)
    return InMemoryRateLimiter()


@app.on_event("startup")
async def startup_event():
    setup_logging()

    ensure_temp_dir()
    purge_stale_files()

    state.fetcher = FetcherAdapter()
    state.http_client = httpx.AsyncClient(follow_redirects=True)
    state.rate_limiter = await build_rate_limiter()
    state.sweeper_task = asyncio.create_task(state.rate_limiter.run_sweeper())
    state.ytdlp_version = await probe_ytdlp_version()


@app.on_event("shutdown")
async def shutdown_event():
    if state.sweeper_task is not None:
        state.sweeper_task.cancel()
        with suppress(asyncio.CancelledError):
            await state.sweeper_task
        state.sweeper_task = None

    if state.http_client is not None:
        await state.http_client.aclose()
        state.http_client = None

    if state.rate_limiter is not None:
        await state.rate_limiter.close()

    await close_redis()
