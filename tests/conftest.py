import json
import os
from typing import Callable, List, Optional

import httpx
import pytest

from medba.config.settings import config
from medba.core.state import state
from medba.services.ytdlp import FetcherResult

SAMPLE_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"

SAMPLE_METADATA = {
    "title": "Sample Clip",
    "duration": 212.7,
    "uploader": "Sample Channel",
    "thumbnail": "https://i.ytimg.com/vi/dQw4w9WgXcQ/default.jpg",
    "thumbnails": [
        {"url": "https://i.ytimg.com/vi/dQw4w9WgXcQ/mq.jpg", "width": 320, "height": 180},
        {"url": "//i.ytimg.com/vi/dQw4w9WgXcQ/maxres.webp", "width": 1280, "height": 720},
    ],
    "formats": [
        {"format_id": "136", "ext": "mp4", "vcodec": "avc1", "acodec": "none", "height": 720, "tbr": 1500},
        {"format_id": "22", "ext": "mp4", "vcodec": "avc1", "acodec": "mp4a", "height": 720, "tbr": 900},
        {"format_id": "135", "ext": "mp4", "vcodec": "avc1", "acodec": "none", "height": 480, "tbr": 700},
        {"format_id": "251", "ext": "webm", "vcodec": "none", "acodec": "opus"},
    ],
}


class SpyFetcher:
    """
    Stand-in for FetcherAdapter that records every argument list.

    Metadata dumps answer with ``metadata``, title probes with ``title``, and
    download commands create the file yt-dlp would have written.
    """

    def __init__(
        self,
        metadata: Optional[dict] = None,
        title: str = "Sample Clip",
        payload: bytes = b"media-bytes",
        output_ext: Optional[str] = None,
        error: Optional[Exception] = None,
    ):
        self.metadata = SAMPLE_METADATA if metadata is None else metadata
        self.title = title
        self.payload = payload
        self.output_ext = output_ext
        self.error = error
        self.calls: List[List[str]] = []

    async def invoke(self, args) -> FetcherResult:
        args = list(args)
        self.calls.append(args)
        if self.error is not None:
            raise self.error

        if "-J" in args:
            return FetcherResult(stdout=json.dumps(self.metadata), stderr="")
        if "--print" in args:
            return FetcherResult(stdout=f"{self.title}\n", stderr="")
        if "-o" in args:
            template = args[args.index("-o") + 1]
            ext = self.output_ext or ("mp3" if "-x" in args else "mp4")
            with open(template.replace("%(ext)s", ext), "wb") as f:
                f.write(self.payload)
        return FetcherResult(stdout="", stderr="")


@pytest.fixture(autouse=True)
def temp_dir(tmp_path, monkeypatch):
    """Point the download directory at a per-test folder"""
    directory = tmp_path / "downloads"
    directory.mkdir()
    monkeypatch.setattr(config.download, "temp_dir", str(directory))
    return directory


@pytest.fixture(autouse=True)
def reset_state():
    yield
    state.fetcher = None
    state.rate_limiter = None
    state.http_client = None


@pytest.fixture
def app_client() -> Callable[..., httpx.AsyncClient]:
    """Factory for an AsyncClient on the app with dependency overrides applied"""
    from medba.main import app

    def provider(value):
        def provide():
            return value
        return provide

    def factory(overrides: Optional[dict] = None, raise_app_exceptions: bool = True) -> httpx.AsyncClient:
        app.dependency_overrides.clear()
        for dependency, value in (overrides or {}).items():
            app.dependency_overrides[dependency] = provider(value)
        transport = httpx.ASGITransport(app=app, raise_app_exceptions=raise_app_exceptions)
        return httpx.AsyncClient(transport=transport, base_url="http://test")

    yield factory
    app.dependency_overrides.clear()


def list_dir(directory) -> List[str]:
    return sorted(os.listdir(directory))
