"""
Dependency injection for the API routes.

Runtime singletons live on ``medba.core.state`` and are created at startup;
the getters below create a default lazily when startup did not run, and tests
replace them via app.dependency_overrides[get_xxx] = lambda: fake.
"""
import httpx
from fastapi import Depends, Request

from medba.config.settings import config
from medba.core.errors import RateLimited
from medba.core.logging import log_warning
from medba.core.state import state
from medba.infra.rate_limit import InMemoryRateLimiter, client_key
from medba.services.ytdlp import FetcherAdapter


def get_fetcher() -> FetcherAdapter:
    if state.fetcher is None:
        state.fetcher = FetcherAdapter()
    return state.fetcher


def get_rate_limiter():
    if state.rate_limiter is None:
        state.rate_limiter = InMemoryRateLimiter()
    return state.rate_limiter


def get_http_client() -> httpx.AsyncClient:
    if state.http_client is None:
        state.http_client = httpx.AsyncClient(follow_redirects=True)
    return state.http_client


async def enforce_rate_limit(request: Request, limiter=Depends(get_rate_limiter)) -> None:
    """Reject the request with 429 once the client has spent its window budget"""
    if not config.rate_limit.enabled:
        return

    key = client_key(request)
    decision = await limiter.admit(key)
    if not decision.allowed:
        log_warning(request, f"Rate limit exceeded for {key}, retry in {decision.retry_after}s")
        raise RateLimited(decision.retry_after)
