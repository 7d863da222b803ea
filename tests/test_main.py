import logging
import os

import httpx
import pytest

from conftest import SAMPLE_URL, SpyFetcher
from medba.api.dependencies import get_fetcher, get_http_client, get_rate_limiter
from medba.core.errors import ServiceUnavailable, VideoPrivate
from medba.infra.rate_limit import InMemoryRateLimiter


@pytest.mark.asyncio
async def test_health_check(app_client):
    async with app_client() as ac:
        response = await ac.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["x-frame-options"] == "DENY"
    assert len(response.headers["x-request-id"]) == 8


@pytest.mark.asyncio
async def test_unknown_route_is_json_404(app_client):
    async with app_client() as ac:
        response = await ac.get("/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "This page is not available."}


@pytest.mark.asyncio
async def test_formats_response_shape(app_client):
    fetcher = SpyFetcher()
    async with app_client({get_fetcher: fetcher}) as ac:
        response = await ac.post("/api/formats", json={"url": SAMPLE_URL})

    assert response.status_code == 200
    assert response.json() == {
        "title": "Sample Clip",
        "duration": 212,
        "thumbnail": "https://i.ytimg.com/vi/dQw4w9WgXcQ/maxres.webp",
        "channel": {"name": "Sample Channel"},
        "formats": [
            {"formatId": "22", "quality": "720p", "hasAudio": True},
            {"formatId": "135", "quality": "480p", "hasAudio": False},
        ],
    }
    assert len(fetcher.calls) == 1
    assert "-J" in fetcher.calls[0]
    assert fetcher.calls[0][-1] == SAMPLE_URL


@pytest.mark.asyncio
async def test_formats_without_qualities(app_client):
    fetcher = SpyFetcher(metadata={"title": "x", "formats": []})
    async with app_client({get_fetcher: fetcher}) as ac:
        response = await ac.post("/api/formats", json={"url": SAMPLE_URL})
    assert response.status_code == 404
    assert "error" in response.json()


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"url": "https://evil.example/watch?v=1"}, {"url": 12}])
async def test_formats_rejects_bad_input_without_fetching(app_client, body):
    fetcher = SpyFetcher()
    async with app_client({get_fetcher: fetcher}) as ac:
        response = await ac.post("/api/formats", json=body)
    assert response.status_code == 400
    assert "error" in response.json()
    assert fetcher.calls == []


@pytest.mark.asyncio
async def test_fetcher_error_is_localized(app_client):
    fetcher = SpyFetcher(error=VideoPrivate("Private video"))
    async with app_client({get_fetcher: fetcher}) as ac:
        english = await ac.post("/api/formats", json={"url": SAMPLE_URL})
        japanese = await ac.post(
            "/api/formats", json={"url": SAMPLE_URL}, headers={"Accept-Language": "ja-JP,ja;q=0.9"}
        )

    assert english.status_code == 403
    assert english.json() == {"error": "This video is private."}
    assert japanese.json() == {"error": "この動画は非公開です。"}


@pytest.mark.asyncio
async def test_fetcher_timeout_maps_to_504(app_client):
    fetcher = SpyFetcher(error=ServiceUnavailable("timed out", timed_out=True))
    async with app_client({get_fetcher: fetcher}) as ac:
        response = await ac.post("/api/formats", json={"url": SAMPLE_URL})
    assert response.status_code == 504


@pytest.mark.asyncio
async def test_unexpected_error_is_generic_500(app_client):
    fetcher = SpyFetcher(error=RuntimeError("boom"))
    async with app_client({get_fetcher: fetcher}, raise_app_exceptions=False) as ac:
        response = await ac.post("/api/formats", json={"url": SAMPLE_URL})

    assert response.status_code == 500
    assert response.json() == {"error": "Something went wrong on the server. Please try again."}


@pytest.mark.asyncio
async def test_video_download_streams_and_cleans_up(app_client, temp_dir):
    fetcher = SpyFetcher(payload=b"video-bytes")
    async with app_client({get_fetcher: fetcher}) as ac:
        response = await ac.get(
            "/api/download/video",
            params={"url": SAMPLE_URL, "formatId": "136", "hasAudio": "false", "title": "My Clip"},
        )

    assert response.status_code == 200
    assert response.content == b"video-bytes"
    assert response.headers["content-type"] == "video/mp4"
    assert response.headers["content-disposition"].startswith('attachment; filename="My Clip.mp4"')
    assert os.listdir(temp_dir) == []

    assert len(fetcher.calls) == 1
    cmd = fetcher.calls[0]
    assert cmd[cmd.index("-f") + 1].startswith("136+bestaudio[ext=m4a]")
    assert cmd[-1] == SAMPLE_URL


@pytest.mark.asyncio
async def test_download_logs_options_without_url(app_client, caplog):
    caplog.set_level(logging.DEBUG, logger="medba.request")
    fetcher = SpyFetcher()
    async with app_client({get_fetcher: fetcher}) as ac:
        response = await ac.get("/api/download/mp3", params={"url": SAMPLE_URL, "title": "t"})

    assert response.status_code == 200
    records = [r for r in caplog.records if r.getMessage().startswith("yt-dlp options:")]
    assert len(records) == 1
    assert records[0].levelno == logging.DEBUG
    assert "--audio-format mp3" in records[0].getMessage()
    assert SAMPLE_URL not in records[0].getMessage()
    assert len(records[0].request_id) == 8


@pytest.mark.asyncio
async def test_mp3_download_probes_title(app_client, temp_dir):
    fetcher = SpyFetcher(title="Probed / Title", payload=b"mp3-bytes")
    async with app_client({get_fetcher: fetcher}) as ac:
        response = await ac.get("/api/download/mp3", params={"url": SAMPLE_URL})

    assert response.status_code == 200
    assert response.content == b"mp3-bytes"
    assert response.headers["content-type"] == "audio/mpeg"
    assert 'filename="Probed Title.mp3"' in response.headers["content-disposition"]
    assert "--print" in fetcher.calls[0]
    assert "-x" in fetcher.calls[1]
    assert os.listdir(temp_dir) == []


@pytest.mark.asyncio
async def test_download_failure_leaves_no_files(app_client, temp_dir):
    fetcher = SpyFetcher(error=VideoPrivate("Private video"))
    async with app_client({get_fetcher: fetcher}) as ac:
        response = await ac.get(
            "/api/download/video",
            params={"url": SAMPLE_URL, "formatId": "22", "title": "t"},
        )
    assert response.status_code == 403
    assert os.listdir(temp_dir) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("params", [
    {"url": "https://evil.example/v"},
    {"url": SAMPLE_URL},
    {"url": SAMPLE_URL, "formatId": "22 && ls"},
    {"url": SAMPLE_URL, "formatId": "137\n"},
])
async def test_video_rejects_bad_input_without_fetching(app_client, params):
    fetcher = SpyFetcher()
    async with app_client({get_fetcher: fetcher}) as ac:
        response = await ac.get("/api/download/video", params=params)
    assert response.status_code == 400
    assert fetcher.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/api/download/mp3", "/api/download/thumbnail"])
@pytest.mark.parametrize("url", ["https://evil.example/watch?v=1", "not a url", ""])
async def test_audio_and_thumbnail_reject_bad_url_without_fetching(app_client, path, url):
    fetcher = SpyFetcher()
    async with app_client({get_fetcher: fetcher}) as ac:
        response = await ac.get(path, params={"url": url, "title": "t"})
    assert response.status_code == 400
    assert response.json() == {"error": "Please enter a valid YouTube link."}
    assert fetcher.calls == []


@pytest.mark.asyncio
async def test_thumbnail_relay(app_client):
    def handler(request):
        assert request.url == "https://i.ytimg.com/vi/dQw4w9WgXcQ/maxres.webp"
        return httpx.Response(200, content=b"image-bytes", headers={"Content-Type": "image/webp"})

    fetcher = SpyFetcher()
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as upstream:
        async with app_client({get_fetcher: fetcher, get_http_client: upstream}) as ac:
            response = await ac.get("/api/download/thumbnail", params={"url": SAMPLE_URL})

    assert response.status_code == 200
    assert response.content == b"image-bytes"
    assert response.headers["content-type"] == "image/webp"
    assert 'filename="Sample Clip.webp"' in response.headers["content-disposition"]
    assert len(fetcher.calls) == 1


@pytest.mark.asyncio
async def test_thumbnail_missing(app_client):
    fetcher = SpyFetcher(metadata={"title": "x"})
    async with app_client({get_fetcher: fetcher}) as ac:
        response = await ac.get("/api/download/thumbnail", params={"url": SAMPLE_URL})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_rate_limit_returns_429_before_work(app_client):
    fetcher = SpyFetcher()
    limiter = InMemoryRateLimiter(max_requests=2, window_seconds=60)
    async with app_client({get_fetcher: fetcher, get_rate_limiter: limiter}) as ac:
        for _ in range(2):
            await ac.post("/api/formats", json={"url": SAMPLE_URL})
        response = await ac.get("/api/download/mp3", params={"url": SAMPLE_URL})

    assert response.status_code == 429
    assert int(response.headers["retry-after"]) >= 1
    assert "error" in response.json()
    assert len(fetcher.calls) == 2


@pytest.mark.asyncio
async def test_unknown_api_path_counts_against_rate_limit(app_client):
    limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60)
    async with app_client({get_rate_limiter: limiter}) as ac:
        first = await ac.get("/api/unknown")
        second = await ac.post("/api/download/unknown")

    assert first.status_code == 404
    assert first.json() == {"error": "This page is not available."}
    assert second.status_code == 429
    assert "retry-after" in second.headers
