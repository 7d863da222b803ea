import logging
import stat
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import aiofiles
import aiofiles.os
import httpx
from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from medba.config.settings import config
from medba.core.errors import FilePreparationFailed, ServiceUnavailable, StreamInterrupted, ThumbnailUnavailable
from medba.infra.tempfiles import TemporaryMediaFile
from medba.models.internal import MEDIA_PROFILES, MediaKind, ThumbnailInfo
from medba.utils.filename import build_content_disposition, build_download_name
from medba.utils.mime import content_type_from_extension, extension_from_content_type, sanitize_file_extension

logger = logging.getLogger(__name__)

UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)


class CleanupStreamingResponse(StreamingResponse):
    """
    StreamingResponse that runs ``on_close`` when the response ends.

    The callback fires however the ASGI call terminates: body fully sent,
    client disconnect, cancellation or an error while streaming.
    """

    def __init__(self, content: AsyncIterator[bytes], on_close: Callable[[], Awaitable[Any]], **kwargs):
        super().__init__(content, **kwargs)
        self.on_close = on_close

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.on_close()


def _base_headers(download_name: str) -> dict:
    return {
        "Content-Disposition": build_content_disposition(download_name),
        "Cache-Control": "no-store",
    }


class FileDelivery:
    """Stream a finished temporary rendition and delete it afterwards"""

    @staticmethod
    async def iter_file(path: str, chunk_size: int, on_finish: Callable[[], Awaitable[Any]]) -> AsyncIterator[bytes]:
        try:
            async with aiofiles.open(path, "rb") as f:
                while True:
                    chunk = await f.read(chunk_size)
                    if not chunk:
                        break
                    yield chunk
        except OSError as e:
            logger.error(f"Streaming error for {path}: {e}")
            raise StreamInterrupted(str(e)) from e
        finally:
            await on_finish()

    @staticmethod
    async def deliver(
        media: TemporaryMediaFile,
        content_type: str,
        download_name: str,
        chunk_size: Optional[int] = None,
    ) -> CleanupStreamingResponse:
        """
        Build the response for ``media``. From this call on the response owns
        the file; if no response can be built the file is deleted here.
        """
        try:
            path = await media.locate()
            if path is None:
                raise FilePreparationFailed("Output file not found after download")

            try:
                file_stat = await aiofiles.os.stat(path)
            except OSError as e:
                raise FilePreparationFailed(str(e)) from e

            if not stat.S_ISREG(file_stat.st_mode):
                raise FilePreparationFailed(f"{path} is not a regular file")
        except BaseException:
            await media.cleanup()
            raise

        headers = _base_headers(download_name)
        headers["Content-Length"] = str(file_stat.st_size)
        logger.info(f"Streaming {download_name} ({file_stat.st_size / 1024 / 1024:.1f} MB)")

        return CleanupStreamingResponse(
            FileDelivery.iter_file(path, chunk_size or config.download.chunk_size, media.cleanup),
            on_close=media.cleanup,
            media_type=content_type,
            headers=headers,
        )


class RemoteRelay:
    """Relay a remote image (the best thumbnail) straight to the client"""

    @staticmethod
    async def iter_upstream(upstream: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in upstream.aiter_bytes():
                yield chunk
        except httpx.HTTPError as e:
            logger.error(f"Thumbnail relay interrupted: {e}")
            raise StreamInterrupted(str(e)) from e
        finally:
            await upstream.aclose()

    @staticmethod
    async def deliver(
        thumbnail: ThumbnailInfo,
        base_name: str,
        client: httpx.AsyncClient,
        timeout: Optional[float] = None,
    ) -> CleanupStreamingResponse:
        timeout = timeout if timeout is not None else config.thumbnail.fetch_timeout_seconds
        req = client.build_request(
            "GET",
            thumbnail.url,
            headers={"User-Agent": UA, "Accept": "image/*,*/*", "Accept-Encoding": "identity"},
            timeout=timeout,
        )

        try:
            upstream = await client.send(req, stream=True)
        except httpx.TimeoutException as e:
            raise ServiceUnavailable(f"Thumbnail fetch timed out: {e}", timed_out=True) from e
        except httpx.HTTPError as e:
            raise ThumbnailUnavailable(f"Thumbnail fetch failed: {e}") from e

        if not upstream.is_success:
            await upstream.aclose()
            raise ThumbnailUnavailable(f"Thumbnail upstream answered {upstream.status_code}")

        profile = MEDIA_PROFILES[MediaKind.THUMBNAIL]
        content_type = (
            upstream.headers.get("content-type")
            or content_type_from_extension(thumbnail.ext)
            or profile.media_type
        )
        extension = (
            extension_from_content_type(content_type)
            or sanitize_file_extension(thumbnail.ext)
            or profile.ext
        )

        headers = _base_headers(build_download_name(base_name, extension, profile.fallback_name))
        content_length = upstream.headers.get("content-length")
        if content_length and content_length.isdigit():
            headers["Content-Length"] = content_length

        return CleanupStreamingResponse(
            RemoteRelay.iter_upstream(upstream),
            on_close=upstream.aclose,
            media_type=content_type,
            headers=headers,
        )
