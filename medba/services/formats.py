from fastapi import Request

from medba.core.logging import log_info
from medba.models.request import MediaRequest
from medba.models.response import ChannelInfo, FormatsResponse
from medba.services.quality import QualityResolver
from medba.services.ytdlp import FetcherAdapter, YTDLPCommandBuilder
from medba.utils.locale import safe_url_for_log


class VideoFormatsService:
    """Format listing: one metadata dump, resolved into ranked qualities"""

    @staticmethod
    async def fetch(media_request: MediaRequest, fetcher: FetcherAdapter, request: Request) -> FormatsResponse:
        cmd = YTDLPCommandBuilder.build_metadata_command(media_request.url)
        result = await fetcher.invoke(cmd)

        preview = QualityResolver.resolve(result.stdout)
        log_info(
            request,
            f"Resolved {len(preview.qualities)} qualities for {safe_url_for_log(media_request.url)}"
        )

        return FormatsResponse(
            title=preview.title,
            duration=preview.duration,
            thumbnail=preview.thumbnail.url if preview.thumbnail else "",
            channel=ChannelInfo(name=preview.channel_name),
            formats=preview.qualities,
        )
