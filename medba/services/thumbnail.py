from typing import Tuple

import httpx
from fastapi import Request

from medba.core.errors import MetadataUnreadable, ThumbnailUnavailable
from medba.core.logging import log_info
from medba.models.internal import MEDIA_PROFILES, MediaKind, ThumbnailInfo
from medba.models.request import MediaRequest
from medba.services.delivery import CleanupStreamingResponse, RemoteRelay
from medba.services.quality import QualityResolver
from medba.services.ytdlp import FetcherAdapter, YTDLPCommandBuilder
from medba.utils.filename import sanitize_filename


class ThumbnailService:
    """Best thumbnail lookup and relay"""

    @staticmethod
    async def fetch_best(url: str, fetcher: FetcherAdapter) -> Tuple[ThumbnailInfo, str]:
        """Best thumbnail and the title from the same metadata dump"""
        result = await fetcher.invoke(YTDLPCommandBuilder.build_metadata_command(url))

        try:
            metadata = QualityResolver.parse(result.stdout)
        except MetadataUnreadable as e:
            raise ThumbnailUnavailable("Metadata dump unreadable") from e

        thumbnail = QualityResolver.best_thumbnail(metadata)
        if thumbnail is None:
            raise ThumbnailUnavailable("No usable thumbnail URL")

        title = metadata.get("title")
        return thumbnail, title if isinstance(title, str) else ""

    @staticmethod
    async def download(
        media_request: MediaRequest,
        fetcher: FetcherAdapter,
        client: httpx.AsyncClient,
        request: Request,
    ) -> CleanupStreamingResponse:
        profile = MEDIA_PROFILES[MediaKind.THUMBNAIL]
        thumbnail, fetched_title = await ThumbnailService.fetch_best(media_request.url, fetcher)

        base_name = (
            sanitize_filename(media_request.title)
            or sanitize_filename(fetched_title)
            or profile.fallback_name
        )

        log_info(request, f"Relaying thumbnail {thumbnail.url}")
        return await RemoteRelay.deliver(thumbnail, base_name, client)
