import asyncio
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from redis.asyncio import Redis


@dataclass
class RuntimeState:
    """Centralized runtime state"""
    redis: Optional[Redis] = None
    rate_limiter: Any = None
    fetcher: Any = None
    http_client: Optional[httpx.AsyncClient] = None
    sweeper_task: Optional[asyncio.Task] = None
    ytdlp_version: str = "unknown"


state = RuntimeState()
