from fastapi import APIRouter, Request

from medba import __version__
from medba.config.settings import config
from medba.core.state import state
from medba.i18n import i18n
from medba.infra.redis import get_redis
from medba.utils.locale import get_locale

router = APIRouter()


def _backend() -> str:
    if not config.rate_limit.enabled:
        return "disabled"
    return getattr(state.rate_limiter, "backend", "memory")


@router.get("/")
async def root(request: Request):
    """Root endpoint"""
    locale = get_locale(request.headers.get("accept-language"))
    return {
        "status": i18n.get("response.status_running", locale),
        "service": config.api.title,
        "version": __version__,
        "ytdlp_version": state.ytdlp_version,
        "rate_limit_backend": _backend(),
        "redis_enabled": get_redis() is not None,
    }


@router.get("/health")
async def health_check():
    """Lightweight health check"""
    return {
        "status": i18n.get("health.status"),
        "ytdlp_version": state.ytdlp_version,
        "rate_limit_backend": _backend(),
    }
